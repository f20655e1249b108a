"""
Per-variable significance ranking for the volcano plot.

Each predictor is compared between Benign and Cancer with a Welch t-test,
the whole family of p-values is corrected at once with Benjamini-Hochberg,
and a log2 fold-change between the class means is attached.
"""

import numpy as np
import pandas as pd
from typing import Dict, Any, List, Optional

from ..data.loader import BiomarkerDataset
from ..utils.statistics import StatisticalAnalyzer
from ..config.settings import AnalysisConfig


RESULT_COLUMNS = [
    'variable', 'n_benign', 'n_cancer', 'mean_benign', 'mean_cancer',
    'prevalence_benign', 'prevalence_cancer', 'log2_fold_change',
    't_statistic', 'p_value', 'p_adjusted', 'neg_log10_p_adjusted', 'significant'
]


class VariableSignificanceRanker:
    """
    Ranks predictors by corrected two-sample significance.

    The correction sees the full family of tests simultaneously; degenerate
    predictors (all missing or constant within the classes) surface as
    missing results rather than errors.
    """

    def __init__(self, alpha: float = AnalysisConfig.SIGNIFICANCE_THRESHOLD,
                 correction: str = 'fdr_bh', verbose: bool = True):
        """
        Initialize the ranker.

        Args:
            alpha: Threshold on adjusted p-values for the significance flag
            correction: statsmodels multipletests method
            verbose: Whether to print a short report
        """
        self.alpha = alpha
        self.correction = correction
        self.verbose = verbose
        self.stats_analyzer = StatisticalAnalyzer(alpha=alpha)
        self.results_: Optional[pd.DataFrame] = None

    def _compare_variable(self, values: pd.Series, y: pd.Series) -> Dict[str, Any]:
        benign = values[y == 0]
        cancer = values[y == 1]

        # Test cancer against benign so positive t means higher in cancer
        test = self.stats_analyzer.welch_t_test(cancer, benign)
        mean_cancer = test['group1_stats']['mean']
        mean_benign = test['group2_stats']['mean']
        overall_mean = values.dropna().mean() if values.notna().any() else np.nan

        if pd.notna(overall_mean) and overall_mean != 0:
            prevalence_benign = mean_benign / overall_mean
            prevalence_cancer = mean_cancer / overall_mean
        else:
            prevalence_benign = prevalence_cancer = np.nan

        return {
            'n_benign': test['group2_stats']['count'],
            'n_cancer': test['group1_stats']['count'],
            'mean_benign': mean_benign,
            'mean_cancer': mean_cancer,
            'prevalence_benign': prevalence_benign,
            'prevalence_cancer': prevalence_cancer,
            'log2_fold_change': StatisticalAnalyzer.log2_fold_change(mean_cancer, mean_benign),
            't_statistic': test['t_statistic'],
            'p_value': test['p_value'],
        }

    def rank(self, dataset: BiomarkerDataset) -> pd.DataFrame:
        """
        Compute VariableStat rows for every predictor.

        Args:
            dataset: Cleaned dataset

        Returns:
            DataFrame ranked by adjusted p-value (ties keep predictor order,
            missing results last)
        """
        rows = []
        for variable in dataset.predictors:
            row = {'variable': variable}
            row.update(self._compare_variable(dataset.X[variable], dataset.y))
            rows.append(row)

        results = pd.DataFrame(rows)
        results['p_adjusted'] = self.stats_analyzer.adjust_p_values(
            results['p_value'].to_numpy(), method=self.correction
        )
        results['neg_log10_p_adjusted'] = -np.log10(results['p_adjusted'])
        results['significant'] = (results['p_adjusted'] < self.alpha).fillna(False).astype(bool)

        results = results.sort_values(
            'p_adjusted', kind='mergesort', na_position='last'
        ).reset_index(drop=True)
        results = results[RESULT_COLUMNS]

        self.results_ = results

        if self.verbose:
            n_missing = int(results['p_value'].isna().sum())
            print("🧪 Per-variable significance ranking:")
            print(f"   Variables tested: {len(results) - n_missing}/{len(results)}")
            if n_missing:
                print(f"   ⚠️ Undefined tests (degenerate predictors): {n_missing}")
            print(f"   Significant at adjusted p < {self.alpha}: {self.significant_variables()}")

        return results

    def significant_variables(self) -> List[str]:
        """Names of predictors flagged significant, in rank order."""
        if self.results_ is None:
            raise ValueError("Must call rank first")
        return self.results_.loc[self.results_['significant'], 'variable'].tolist()

    def volcano_data(self) -> pd.DataFrame:
        """Columns needed by the volcano plot."""
        if self.results_ is None:
            raise ValueError("Must call rank first")
        return self.results_[['variable', 'log2_fold_change', 'neg_log10_p_adjusted',
                              'p_adjusted', 'significant']].copy()
