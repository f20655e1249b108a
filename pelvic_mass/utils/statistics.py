"""
Statistical utilities for the pelvic mass analysis.
"""

import numpy as np
import pandas as pd
from scipy import stats
from sklearn.metrics import roc_auc_score, confusion_matrix
from statsmodels.stats.multitest import multipletests
from typing import Dict, Any, Optional, Sequence

from ..config.settings import AnalysisConfig


class StatisticalAnalyzer:
    """
    Statistical analysis utilities for biomarker data.

    Provides two-sample tests, multiple-testing correction, fold-change
    scores, classification metrics and resample summaries.
    """

    def __init__(self, alpha: float = AnalysisConfig.SIGNIFICANCE_THRESHOLD,
                 ci_z: float = AnalysisConfig.CI_Z):
        """
        Initialize the statistical analyzer.

        Args:
            alpha: Significance level applied to adjusted p-values
            ci_z: Normal quantile used for confidence intervals
        """
        self.alpha = alpha
        self.ci_z = ci_z

    def welch_t_test(self, group1: pd.Series, group2: pd.Series) -> Dict[str, Any]:
        """
        Two-sample t-test of mean difference assuming unequal variances.

        Degenerate inputs (fewer than two observations in a group, or no
        variance in either group) yield NaN statistic and p-value.

        Args:
            group1: First group data (missing values allowed)
            group2: Second group data (missing values allowed)

        Returns:
            Dictionary with t-test results
        """
        g1 = pd.Series(group1, dtype=float).dropna()
        g2 = pd.Series(group2, dtype=float).dropna()

        t_stat, p_value = np.nan, np.nan
        degenerate = (
            len(g1) < 2 or len(g2) < 2
            or (np.var(g1, ddof=1) == 0 and np.var(g2, ddof=1) == 0)
        )
        if not degenerate:
            t_stat, p_value = stats.ttest_ind(g1, g2, equal_var=False)

        return {
            't_statistic': float(t_stat),
            'p_value': float(p_value),
            'group1_stats': {
                'count': len(g1),
                'mean': float(np.mean(g1)) if len(g1) else np.nan,
                'std': float(np.std(g1, ddof=1)) if len(g1) > 1 else np.nan,
            },
            'group2_stats': {
                'count': len(g2),
                'mean': float(np.mean(g2)) if len(g2) else np.nan,
                'std': float(np.std(g2, ddof=1)) if len(g2) > 1 else np.nan,
            },
            'test_type': 'welch',
        }

    def adjust_p_values(self, p_values: Sequence[float], method: str = 'fdr_bh') -> np.ndarray:
        """
        Multiple-testing correction across the whole family of p-values.

        Missing p-values are excluded from the family and stay missing.

        Args:
            p_values: Raw p-values, one per test
            method: statsmodels multipletests method (default Benjamini-Hochberg)

        Returns:
            Array of adjusted p-values aligned with the input
        """
        p = np.asarray(p_values, dtype=float)
        adjusted = np.full(p.shape, np.nan)
        valid = ~np.isnan(p)
        if valid.any():
            _, p_adj, _, _ = multipletests(p[valid], alpha=self.alpha, method=method)
            adjusted[valid] = p_adj
        return adjusted

    @staticmethod
    def log2_fold_change(mean_numerator: float, mean_denominator: float) -> float:
        """
        log2 ratio of two group means.

        Undefined (NaN) unless both means are positive.
        """
        if (pd.isna(mean_numerator) or pd.isna(mean_denominator)
                or mean_numerator <= 0 or mean_denominator <= 0):
            return np.nan
        return float(np.log2(mean_numerator / mean_denominator))

    @staticmethod
    def classification_metrics(y_true: np.ndarray, y_prob: np.ndarray,
                               threshold: float = AnalysisConfig.PROBABILITY_THRESHOLD) -> Dict[str, float]:
        """
        AUC, accuracy, sensitivity and specificity for binary predictions.

        AUC is NaN when only one class is present in y_true.

        Args:
            y_true: True labels (1 = Cancer)
            y_prob: Predicted probability of Cancer
            threshold: Probability threshold for class predictions

        Returns:
            Dictionary of metric values
        """
        y_true = np.asarray(y_true).astype(int)
        y_prob = np.asarray(y_prob, dtype=float)
        y_pred = (y_prob >= threshold).astype(int)

        auc = roc_auc_score(y_true, y_prob) if len(np.unique(y_true)) == 2 else np.nan
        tn, fp, fn, tp = confusion_matrix(y_true, y_pred, labels=[0, 1]).ravel()

        return {
            'roc_auc': float(auc),
            'accuracy': float((tp + tn) / len(y_true)) if len(y_true) else np.nan,
            'sensitivity': float(tp / (tp + fn)) if (tp + fn) > 0 else np.nan,
            'specificity': float(tn / (tn + fp)) if (tn + fp) > 0 else np.nan,
        }

    def summarize_resamples(self, values: Sequence[float],
                            legacy_standard_error: bool = False) -> Dict[str, float]:
        """
        Mean, standard error and normal-approximation CI over resamples.

        Missing entries are ignored. The standard error is sd / sqrt(n);
        `legacy_standard_error=True` reproduces the sd / n variant found in
        earlier analyses of this dataset.

        Args:
            values: Per-resample values
            legacy_standard_error: Use sd / n instead of sd / sqrt(n)

        Returns:
            Dictionary with mean, std_error, ci_lower, ci_upper and n
        """
        v = np.asarray(values, dtype=float)
        v = v[~np.isnan(v)]
        n = len(v)

        if n == 0:
            return {'mean': np.nan, 'std_error': np.nan, 'ci_lower': np.nan,
                    'ci_upper': np.nan, 'n': 0}

        mean = float(np.mean(v))
        sd = float(np.std(v, ddof=1)) if n > 1 else 0.0
        se = sd / n if legacy_standard_error else sd / np.sqrt(n)

        return {
            'mean': mean,
            'std_error': float(se),
            'ci_lower': mean - self.ci_z * se,
            'ci_upper': mean + self.ci_z * se,
            'n': n,
        }

    def paired_difference_test(self, a: Sequence[float], b: Sequence[float]) -> Dict[str, Any]:
        """
        Paired t-test between two matched sequences of resample metrics.

        Args:
            a: Metric values for the first model, one per resample
            b: Metric values for the second model, same resample order

        Returns:
            Dictionary with mean difference and paired t-test results
        """
        clean = pd.DataFrame({'a': a, 'b': b}).dropna()
        diff = clean['a'] - clean['b']
        if len(clean) < 2 or np.std(diff, ddof=1) == 0:
            t_stat, p_value = np.nan, np.nan
        else:
            t_stat, p_value = stats.ttest_rel(clean['a'], clean['b'])
        return {
            'mean_difference': float(diff.mean()) if len(diff) else np.nan,
            't_statistic': float(t_stat),
            'p_value': float(p_value),
            'n_pairs': len(clean),
            'significant': bool(p_value < self.alpha) if not np.isnan(p_value) else False,
        }
