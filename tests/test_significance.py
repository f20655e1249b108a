"""Tests for per-variable significance ranking and the statistics helpers."""

import numpy as np
import pandas as pd
import pytest

from pelvic_mass.analysis import VariableSignificanceRanker
from pelvic_mass.data import BiomarkerDataset
from pelvic_mass.utils import StatisticalAnalyzer

from conftest import make_noisy_dataset


def _swap_labels(dataset: BiomarkerDataset) -> BiomarkerDataset:
    return BiomarkerDataset(X=dataset.X, y=1 - dataset.y)


class TestBenjaminiHochberg:
    """Properties of the corrected p-values."""

    def test_monotone_in_raw_p(self):
        """Adjusted p-values never decrease along ascending raw p-values."""
        rng = np.random.RandomState(5)
        p = rng.uniform(0, 1, 50) ** 3
        adjusted = StatisticalAnalyzer().adjust_p_values(p)

        order = np.argsort(p)
        assert np.all(np.diff(adjusted[order]) >= -1e-12)

    def test_bounds(self):
        """Every adjusted p-value lies in [raw p-value, 1]."""
        rng = np.random.RandomState(6)
        p = rng.uniform(0, 1, 30) ** 2
        adjusted = StatisticalAnalyzer().adjust_p_values(p)
        assert np.all(adjusted >= p - 1e-12)
        assert np.all(adjusted <= 1.0)

    def test_missing_p_values_stay_missing(self):
        """NaN p-values are excluded from the family."""
        adjusted = StatisticalAnalyzer().adjust_p_values([0.01, np.nan, 0.02])
        assert np.isnan(adjusted[1])
        assert adjusted[0] == pytest.approx(0.02)
        assert adjusted[2] == pytest.approx(0.02)

    def test_ranker_properties(self, noisy_dataset):
        """The ranker's table satisfies monotonicity and bounds."""
        results = VariableSignificanceRanker(verbose=False).rank(noisy_dataset)
        by_raw = results.sort_values("p_value")
        assert np.all(np.diff(by_raw["p_adjusted"].to_numpy()) >= -1e-12)
        assert (results["p_adjusted"] >= results["p_value"] - 1e-12).all()
        assert (results["p_adjusted"] <= 1).all()


class TestFoldChange:
    """Properties of the log2 fold-change."""

    def test_antisymmetric(self):
        """fc(A, B) == -fc(B, A)."""
        fc = StatisticalAnalyzer.log2_fold_change
        assert fc(8.0, 2.0) == pytest.approx(2.0)
        assert fc(8.0, 2.0) == pytest.approx(-fc(2.0, 8.0))

    def test_undefined_for_non_positive_means(self):
        """Non-positive means give NaN."""
        assert np.isnan(StatisticalAnalyzer.log2_fold_change(0.0, 3.0))
        assert np.isnan(StatisticalAnalyzer.log2_fold_change(-1.0, 3.0))

    def test_label_swap_flips_sign(self):
        """Swapping the class labels negates fold-change and t statistic."""
        dataset = make_noisy_dataset(seed=2)
        ranker = VariableSignificanceRanker(verbose=False)
        original = ranker.rank(dataset).set_index("variable")
        swapped = ranker.rank(_swap_labels(dataset)).set_index("variable")

        for variable in dataset.predictors:
            assert swapped.loc[variable, "log2_fold_change"] == pytest.approx(
                -original.loc[variable, "log2_fold_change"])
            assert swapped.loc[variable, "t_statistic"] == pytest.approx(
                -original.loc[variable, "t_statistic"])
            assert swapped.loc[variable, "p_value"] == pytest.approx(original.loc[variable, "p_value"])


class TestRanker:
    """Tests for VariableSignificanceRanker."""

    def test_separating_predictor_flagged(self, separable_dataset):
        """Only the separating predictor is significant at 0.01."""
        ranker = VariableSignificanceRanker(alpha=0.01, verbose=False)
        results = ranker.rank(separable_dataset)

        assert ranker.significant_variables() == ["ca125"]
        assert results.iloc[0]["variable"] == "ca125"
        assert results.iloc[0]["log2_fold_change"] > 0

    def test_ties_keep_predictor_order(self, separable_dataset):
        """Equal adjusted p-values keep spreadsheet order."""
        results = VariableSignificanceRanker(verbose=False).rank(separable_dataset)
        assert results["variable"].tolist() == ["ca125", "he4", "age"]

    def test_degenerate_predictors_are_missing(self):
        """Constant and all-missing predictors give NaN rows ranked last."""
        n = 20
        y = pd.Series([0] * 10 + [1] * 10)
        X = pd.DataFrame({
            "constant": np.full(n, 3.0),
            "empty": np.full(n, np.nan),
            "signal": np.r_[np.linspace(1, 2, 10), np.linspace(5, 6, 10)],
        })
        results = VariableSignificanceRanker(verbose=False).rank(BiomarkerDataset(X=X, y=y))

        assert results.iloc[0]["variable"] == "signal"
        degenerate = results.set_index("variable").loc[["constant", "empty"]]
        assert degenerate["p_value"].isna().all()
        assert degenerate["p_adjusted"].isna().all()
        assert not degenerate["significant"].any()

    def test_prevalence(self, separable_dataset):
        """Prevalence is the class mean relative to the overall mean."""
        results = VariableSignificanceRanker(verbose=False).rank(separable_dataset).set_index("variable")
        overall = separable_dataset.X["ca125"].mean()
        assert results.loc["ca125", "prevalence_cancer"] == pytest.approx(109.5 / overall)
        assert results.loc["he4", "prevalence_benign"] == pytest.approx(1.0)

    def test_volcano_data_requires_rank(self):
        """volcano_data before rank is an error."""
        with pytest.raises(ValueError):
            VariableSignificanceRanker(verbose=False).volcano_data()


class TestResampleSummary:
    """Tests for mean / standard error / CI over resamples."""

    def test_standard_error(self):
        """Default standard error is sd / sqrt(n) and ignores NaN."""
        values = [0.1, 0.2, np.nan, 0.3, 0.4]
        summary = StatisticalAnalyzer().summarize_resamples(values)
        sd = np.std([0.1, 0.2, 0.3, 0.4], ddof=1)

        assert summary["n"] == 4
        assert summary["mean"] == pytest.approx(0.25)
        assert summary["std_error"] == pytest.approx(sd / 2)
        assert summary["ci_upper"] - summary["mean"] == pytest.approx(1.96 * sd / 2)

    def test_legacy_standard_error(self):
        """The legacy option divides by n."""
        values = [0.1, 0.2, 0.3, 0.4]
        summary = StatisticalAnalyzer().summarize_resamples(values, legacy_standard_error=True)
        assert summary["std_error"] == pytest.approx(np.std(values, ddof=1) / 4)

    def test_all_missing(self):
        """No finite values gives NaN summaries."""
        summary = StatisticalAnalyzer().summarize_resamples([np.nan, np.nan])
        assert summary["n"] == 0
        assert np.isnan(summary["mean"])

    def test_single_class_auc_is_missing(self):
        """AUC is undefined when only one class is present."""
        metrics = StatisticalAnalyzer.classification_metrics(np.array([1, 1, 1]), np.array([0.2, 0.6, 0.9]))
        assert np.isnan(metrics["roc_auc"])
        assert metrics["sensitivity"] == pytest.approx(2 / 3)
