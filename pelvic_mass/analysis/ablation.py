"""
Leave-one-variable-out performance estimation.

A logistic regression on all predictors ("everything") and one logistic
regression per predictor with that predictor removed are fit on every
bootstrap replicate of the training data. The drop in out-of-bag AUC
relative to the full model, paired by replicate, measures each predictor's
marginal contribution to discrimination.
"""

import warnings
import numpy as np
import pandas as pd
from concurrent.futures import ProcessPoolExecutor, as_completed
from typing import Dict, List, Any, Optional, Tuple

from sklearn.dummy import DummyClassifier

from ..data.loader import BiomarkerDataset
from ..data.resampling import StratifiedBootstrap, BootstrapReplicate
from ..models.families import get_family
from ..utils.statistics import StatisticalAnalyzer
from ..config.settings import AnalysisConfig

FULL_MODEL = 'everything'
METRICS = ['roc_auc', 'accuracy', 'sensitivity', 'specificity']


def build_configurations(predictors: List[str]) -> Dict[str, List[str]]:
    """
    Explicit predictor subsets: the full model plus one per dropped predictor.

    Args:
        predictors: All predictor names, in order

    Returns:
        Ordered mapping of configuration name to included predictors
    """
    if FULL_MODEL in predictors:
        raise ValueError(f"'{FULL_MODEL}' is reserved for the full model and cannot name a predictor")
    configurations = {FULL_MODEL: list(predictors)}
    for dropped in predictors:
        configurations[dropped] = [p for p in predictors if p != dropped]
    return configurations


def _fit_configuration(X: pd.DataFrame, y: np.ndarray, included: List[str],
                       rep: BootstrapReplicate, params: Dict[str, Any],
                       random_state: int) -> Dict[str, float]:
    if included:
        model = get_family('logistic').build_pipeline(params, included, random_state)
    else:
        model = DummyClassifier(strategy='prior')
    try:
        with warnings.catch_warnings():
            warnings.simplefilter('ignore')
            model.fit(X.iloc[rep.in_bag], y[rep.in_bag])
            prob = model.predict_proba(X.iloc[rep.out_of_bag])[:, 1]
        return StatisticalAnalyzer.classification_metrics(y[rep.out_of_bag], prob)
    except Exception:
        return {m: np.nan for m in METRICS}


def _evaluate_replicate(args: Tuple) -> List[Dict[str, Any]]:
    """Fit every configuration on one replicate (unit of parallel work)."""
    X, y, configurations, rep, params, random_state, metric = args

    scores = {
        name: _fit_configuration(X, y, included, rep, params, random_state)
        for name, included in configurations.items()
    }
    full = scores[FULL_MODEL][metric]

    rows = []
    for name, metrics in scores.items():
        row = {'configuration': name, 'resample_id': rep.resample_id}
        row.update(metrics)
        row['full_metric'] = full
        # The full model is compared with itself, so its drop is exactly 0
        row['drop'] = 0.0 if name == FULL_MODEL and np.isfinite(full) else full - metrics[metric]
        rows.append(row)
    return rows


class LeaveOneOutEstimator:
    """
    Estimates each predictor's contribution by its paired performance drop.
    """

    def __init__(self, resampler: StratifiedBootstrap, metric: str = 'roc_auc',
                 params: Optional[Dict[str, Any]] = None,
                 legacy_standard_error: bool = False,
                 random_state: int = AnalysisConfig.RANDOM_SEED,
                 n_workers: Optional[int] = None, verbose: bool = True):
        """
        Initialize the estimator.

        Args:
            resampler: Bootstrap resampler (its seed fixes the replicates)
            metric: Metric whose drop is measured
            params: Logistic regression hyperparameters
            legacy_standard_error: Use sd / n instead of sd / sqrt(n)
            random_state: Random seed of the classifiers
            n_workers: Worker processes (None = serial)
            verbose: Whether to print progress information
        """
        if metric not in METRICS:
            raise ValueError(f"Unknown metric '{metric}'. Choose from {METRICS}")
        self.resampler = resampler
        self.metric = metric
        self.params = params or {'C': 1.0}
        self.legacy_standard_error = legacy_standard_error
        self.random_state = random_state
        self.n_workers = n_workers
        self.verbose = verbose
        self.stats_analyzer = StatisticalAnalyzer()
        self.resample_results_: Optional[pd.DataFrame] = None
        self.summary_: Optional[pd.DataFrame] = None

    def fit(self, train: BiomarkerDataset) -> pd.DataFrame:
        """
        Run the ablation over all replicates and aggregate the drops.

        Args:
            train: Training partition

        Returns:
            Summary ranked ascending by mean drop (most important variable last)
        """
        configurations = build_configurations(train.predictors)
        X, y = train.X, train.y.to_numpy()
        replicates = list(self.resampler.replicates(y))
        args_list = [(X, y, configurations, rep, self.params, self.random_state, self.metric)
                     for rep in replicates]

        if self.verbose:
            print("\n🧩 Leave-one-variable-out ablation:")
            print(f"   Configurations: {len(configurations)} | Resamples: {len(replicates)}")

        rows: List[Dict[str, Any]] = []
        if self.n_workers is None or self.n_workers == 1:
            for i, args in enumerate(args_list):
                rows.extend(_evaluate_replicate(args))
                if self.verbose and (i + 1) % max(1, len(args_list) // 5) == 0:
                    print(f"   Progress: {i + 1}/{len(args_list)}")
        else:
            with ProcessPoolExecutor(max_workers=self.n_workers) as executor:
                futures = [executor.submit(_evaluate_replicate, args) for args in args_list]
                for future in as_completed(futures):
                    rows.extend(future.result())

        order = {name: i for i, name in enumerate(configurations)}
        results = pd.DataFrame(rows)
        results['_order'] = results['configuration'].map(order)
        results = results.sort_values(['_order', 'resample_id']).drop(columns='_order')
        self.resample_results_ = results.reset_index(drop=True)

        self.summary_ = self.summarize(self.resample_results_, list(configurations))

        if self.verbose:
            n_missing = int(self.resample_results_['drop'].isna().sum())
            if n_missing:
                print(f"   ⚠️ Missing drops (failed fits or single-class folds): {n_missing}")
            top = self.most_important()
            top_row = self.summary_[self.summary_['configuration'] == top].iloc[0]
            print(f"   🏆 Largest drop: {top} "
                  f"({top_row['mean_drop']:.4f}, 95% CI {top_row['ci_lower']:.4f} to {top_row['ci_upper']:.4f})")

        return self.summary_

    def summarize(self, resample_results: pd.DataFrame,
                  configurations: Optional[List[str]] = None) -> pd.DataFrame:
        """
        Aggregate per-replicate drops per configuration.

        Args:
            resample_results: Long table from `fit`
            configurations: Configuration order used to break ties

        Returns:
            DataFrame with mean drop, standard error and 95% CI per configuration
        """
        configurations = configurations or list(pd.unique(resample_results['configuration']))
        rows = []
        for name in configurations:
            subset = resample_results[resample_results['configuration'] == name]
            summary = self.stats_analyzer.summarize_resamples(
                subset['drop'], legacy_standard_error=self.legacy_standard_error
            )
            rows.append({
                'configuration': name,
                'mean_metric': float(subset[self.metric].mean(skipna=True)),
                'mean_drop': summary['mean'],
                'std_error': summary['std_error'],
                'ci_lower': summary['ci_lower'],
                'ci_upper': summary['ci_upper'],
                'n_resamples': summary['n'],
            })
        table = pd.DataFrame(rows)
        return table.sort_values('mean_drop', kind='mergesort', na_position='first').reset_index(drop=True)

    def most_important(self) -> str:
        """Predictor whose removal costs the most performance."""
        if self.summary_ is None:
            raise ValueError("Must call fit first")
        variables = self.summary_[self.summary_['configuration'] != FULL_MODEL]
        variables = variables.dropna(subset=['mean_drop'])
        if variables.empty:
            raise ValueError("No predictor has a defined performance drop")
        return variables.loc[variables['mean_drop'].idxmax(), 'configuration']

    def paired_drops(self) -> pd.DataFrame:
        """Wide table of drops: one row per replicate, one column per configuration."""
        if self.resample_results_ is None:
            raise ValueError("Must call fit first")
        return self.resample_results_.pivot(index='resample_id', columns='configuration', values='drop')
