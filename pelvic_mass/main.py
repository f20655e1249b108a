"""
Main entry point for the pelvic mass biomarker analysis.

This script provides a command-line interface to run the individual
analysis steps (significance ranking, leave-one-variable-out ablation,
model tuning and ensemble stacking) or the whole pipeline.
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from .config import PipelineConfig, ensure_output_dirs
from .data import PelvicMassDataLoader, BiomarkerDataset, StratifiedBootstrap, stratified_split
from .analysis import VariableSignificanceRanker, LeaveOneOutEstimator
from .models import (
    FAMILIES, ModelTuner, TuningResult, EnsembleStacker,
    evaluate_on_test, permutation_importance_table
)
from .utils import BiomarkerVisualizer

STEPS = ['rank', 'ablate', 'tune', 'stack']


def run_data_exploration(config: PipelineConfig) -> BiomarkerDataset:
    """Load, clean and summarize the data."""
    print("=== Pelvic Mass Data Exploration ===")

    loader = PelvicMassDataLoader(
        data_file=config.data_file,
        sheet_name=config.sheet_name,
        header_offset=config.header_offset,
        na_token=config.na_token,
        label_column=config.label_column,
        verbose=config.verbose
    )
    loader.preprocess_data()

    summary = loader.get_summary_statistics()
    print("\nData Summary:")
    for key, value in summary.items():
        print(f"{key}: {value}")

    return loader.to_dataset()


def run_significance_ranking(dataset: BiomarkerDataset, config: PipelineConfig,
                             dirs: Dict[str, Path], visualizer: BiomarkerVisualizer) -> pd.DataFrame:
    """Rank predictors by BH-adjusted Welch t-test and draw the volcano plot."""
    print("\n=== Per-Variable Significance Ranking ===")

    ranker = VariableSignificanceRanker(alpha=config.significance_threshold, verbose=config.verbose)
    results = ranker.rank(dataset)

    results.to_csv(dirs['results'] / 'variable_significance.csv', index=False)
    visualizer.volcano_plot(results, threshold=config.significance_threshold,
                            save_name='volcano_plot')
    visualizer.close_all()

    return results


def run_ablation(train: BiomarkerDataset, config: PipelineConfig,
                 dirs: Dict[str, Path], visualizer: BiomarkerVisualizer) -> pd.DataFrame:
    """Leave-one-variable-out logistic regression over bootstrap replicates."""
    print("\n=== Leave-One-Variable-Out Performance ===")

    resampler = StratifiedBootstrap(n_resamples=config.n_bootstraps,
                                    random_state=config.seed_for('ablation'))
    estimator = LeaveOneOutEstimator(resampler, random_state=config.seed_for('ablation'),
                                     n_workers=config.n_workers, verbose=config.verbose)
    summary = estimator.fit(train)

    summary.to_csv(dirs['results'] / 'ablation_summary.csv', index=False)
    estimator.resample_results_.to_csv(dirs['results'] / 'ablation_resamples.csv', index=False)
    visualizer.performance_drop_plot(summary, save_name='performance_drop')
    visualizer.close_all()

    return summary


def run_tuning(train: BiomarkerDataset, resampler: StratifiedBootstrap, config: PipelineConfig,
               dirs: Dict[str, Path], visualizer: BiomarkerVisualizer) -> Dict[str, TuningResult]:
    """Tune every configured model family on the shared resampler."""
    print("\n=== Model Tuning ===")
    print(f"Resampler: {resampler}")

    results = {}
    for family in config.families:
        tuner = ModelTuner(family, resampler, random_state=config.seed_for('tuning'),
                           n_workers=config.n_workers, verbose=config.verbose)
        if family in config.bayes_families:
            result = tuner.bayes_search(train, n_iter=config.bayes_iterations)
            if result.search_history is not None:
                result.search_history.to_csv(dirs['results'] / f'search_history_{family}.csv',
                                             index=False)
        else:
            result = tuner.grid_search(train)
        board = result.leaderboard()
        board.to_csv(dirs['results'] / f'tuning_{family}.csv', index=False)
        if not board.empty:
            param = next(iter(result.candidates[0].config.params))
            visualizer.tuning_plot(board, param=param, title=f"{tuner.family.label}: roc_auc by {param}",
                                   save_name=f'tuning_{family}')
            visualizer.close_all()
        results[family] = result

    return results


def run_stacking(train: BiomarkerDataset, test: BiomarkerDataset,
                 tuning_results: Dict[str, TuningResult], config: PipelineConfig,
                 dirs: Dict[str, Path], visualizer: BiomarkerVisualizer) -> Dict:
    """Stack the tuned candidates and evaluate the ensemble on the test set."""
    print("\n=== Ensemble Stacking ===")

    stacker = EnsembleStacker(random_state=config.seed_for('stacking'), verbose=config.verbose)
    for result in tuning_results.values():
        stacker.add_candidates(result.candidates)
    ensemble = stacker.fit_members(train)
    if ensemble.active_members:
        comparison, paired = stacker.compare_with_best_member()
        comparison.to_csv(dirs['results'] / 'ensemble_vs_best_member.csv', index=False)
        with open(dirs['results'] / 'ensemble_vs_best_member.json', 'w') as f:
            json.dump(paired, f, indent=2)

    evaluation = evaluate_on_test(ensemble, test, verbose=config.verbose)
    importance = permutation_importance_table(ensemble, test,
                                              random_state=config.seed_for('importance'))

    weights = ensemble.weights_frame()
    weights.to_csv(dirs['results'] / 'ensemble_weights.csv', index=False)
    stacker.penalty_scores_.to_csv(dirs['results'] / 'ensemble_penalties.csv', index=False)
    evaluation['auc_table'].to_csv(dirs['results'] / 'test_auc.csv', index=False)
    evaluation['confusion_matrix'].to_csv(dirs['results'] / 'confusion_matrix.csv')
    evaluation['predictions'].to_csv(dirs['results'] / 'test_predictions.csv')
    importance.to_csv(dirs['results'] / 'variable_importance.csv', index=False)

    members = {name: ensemble.configs[name].to_dict() for name in ensemble.active_members}
    with open(dirs['results'] / 'ensemble_members.json', 'w') as f:
        json.dump({'intercept': ensemble.intercept, 'penalty': ensemble.penalty,
                   'weights': ensemble.weights, 'members': members}, f, indent=2)

    visualizer.roc_curves(evaluation['roc_curves'], evaluation['auc_table'], save_name='roc_curves')
    visualizer.variable_importance_plot(importance, save_name='variable_importance')
    visualizer.confusion_matrix_heatmap(evaluation['confusion_matrix'], save_name='confusion_matrix')
    visualizer.ensemble_weights_plot(weights, save_name='ensemble_weights')
    top_two = importance['variable'].head(2).tolist()
    if len(top_two) == 2:
        visualizer.outcome_scatter(evaluation['predictions'], x=top_two[0], y=top_two[1],
                                   save_name='prediction_outcomes')
    visualizer.close_all()

    return evaluation


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Pelvic Mass Biomarker Analysis')
    parser.add_argument(
        '--step',
        choices=STEPS,
        help='Run a specific analysis step (stack also runs tune)'
    )
    parser.add_argument(
        '--explore',
        action='store_true',
        help='Run data exploration'
    )
    parser.add_argument(
        '--all',
        action='store_true',
        help='Run all analyses'
    )
    parser.add_argument('--data', type=Path, help='Path to the data spreadsheet')
    parser.add_argument('--seed', type=int, help='Random seed')
    parser.add_argument('--bootstraps', type=int, help='Number of bootstrap resamples')
    parser.add_argument(
        '--families',
        nargs='+',
        choices=sorted(FAMILIES),
        help='Model families to tune'
    )
    parser.add_argument('--workers', type=int, help='Worker processes for resampling')
    parser.add_argument('--output', type=Path, help='Output directory')
    parser.add_argument('--quiet', action='store_true', help='Reduce progress output')
    return parser


def config_from_args(args: argparse.Namespace) -> PipelineConfig:
    config = PipelineConfig()
    if args.data is not None:
        config.data_file = args.data
    if args.seed is not None:
        config.random_seed = args.seed
    if args.bootstraps is not None:
        config.n_bootstraps = args.bootstraps
    if args.families:
        config.families = list(args.families)
    if args.workers is not None:
        config.n_workers = args.workers
    if args.output is not None:
        config.output_dir = args.output
    config.verbose = not args.quiet
    return config


def main(argv: Optional[List[str]] = None):
    """Main function."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not any([args.step, args.explore, args.all]):
        parser.print_help()
        return 0

    config = config_from_args(args)

    try:
        dirs = ensure_output_dirs(config.output_dir)
        visualizer = BiomarkerVisualizer(save_dir=dirs['figures'])

        dataset = run_data_exploration(config)

        if args.explore and not (args.step or args.all):
            return 0

        with open(dirs['results'] / 'pipeline_config.json', 'w') as f:
            json.dump(config.to_dict(), f, indent=2)

        if args.step == 'rank' or args.all:
            run_significance_ranking(dataset, config, dirs, visualizer)

        if args.step in ('ablate', 'tune', 'stack') or args.all:
            train, test = stratified_split(dataset, test_size=config.test_size,
                                           random_state=config.seed_for('split'),
                                           verbose=config.verbose)

        if args.step == 'ablate' or args.all:
            run_ablation(train, config, dirs, visualizer)

        if args.step in ('tune', 'stack') or args.all:
            # One resampler for every family so candidates stack row by row
            resampler = StratifiedBootstrap(n_resamples=config.n_bootstraps,
                                            random_state=config.seed_for('bootstrap'))
            tuning_results = run_tuning(train, resampler, config, dirs, visualizer)

            if args.step == 'stack' or args.all:
                run_stacking(train, test, tuning_results, config, dirs, visualizer)

        print("\nAnalysis completed successfully!")

    except Exception as e:
        print(f"Error during analysis: {str(e)}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
