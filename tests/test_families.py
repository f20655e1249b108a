"""Tests for model families, transformers and the rule-based classifier."""

import numpy as np
import pandas as pd
import pytest
from sklearn.model_selection import ParameterGrid

from pelvic_mass.models import FAMILIES, get_family
from pelvic_mass.models.rules import RuleFitClassifier
from pelvic_mass.models.transformers import ColumnSubset, SplineBasisExpander, spline_feature_counts

TUNED_FAMILIES = ['random_forest', 'xgboost', 'elastic_net', 'decision_tree', 'mars',
                  'naive_bayes', 'neural_net', 'svm', 'rule_based']


class TestFamilies:
    """Every family builds a working pipeline."""

    def test_registry(self):
        """All tuned families are registered."""
        assert set(TUNED_FAMILIES) <= set(FAMILIES)

    @pytest.mark.parametrize("name", TUNED_FAMILIES)
    def test_default_grid_point_fits(self, name, noisy_dataset):
        """The first grid point fits with missing values and gives probabilities."""
        family = get_family(name)
        params = next(iter(ParameterGrid(family.param_grid())))
        pipeline = family.build_pipeline(params, noisy_dataset.predictors, random_state=0)
        pipeline.fit(noisy_dataset.X, noisy_dataset.y.to_numpy())

        prob = pipeline.predict_proba(noisy_dataset.X)[:, 1]
        assert prob.shape == (noisy_dataset.n_samples,)
        assert np.all((prob >= 0) & (prob <= 1))

    @pytest.mark.parametrize("name", TUNED_FAMILIES)
    def test_search_space_decodes_to_valid_params(self, name):
        """A sampled configuration names every search dimension."""
        space = get_family(name).search_space()
        params = space.sample(np.random.RandomState(0))[0]
        assert set(params) == set(space.names)

    def test_imputation_only_sees_training_rows(self, noisy_dataset):
        """The imputer's medians come from the rows the pipeline was fit on."""
        # Both classes, and a class mix different from the full data
        train = noisy_dataset.subset(np.r_[0:30, 60:80])
        pipeline = get_family("elastic_net").build_pipeline({"C": 1.0, "l1_ratio": 0.5},
                                                            noisy_dataset.predictors, 0)
        pipeline.fit(train.X, train.y.to_numpy())
        medians = pipeline.named_steps["impute"].statistics_
        np.testing.assert_allclose(medians, train.X.median().to_numpy())
        assert not np.allclose(medians, noisy_dataset.X.median().to_numpy())


class TestColumnSubset:
    """Tests for explicit predictor selection."""

    def test_selects_in_order(self):
        """Columns are returned in the requested order."""
        X = pd.DataFrame({"a": [1.0], "b": [2.0], "c": [3.0]})
        assert list(ColumnSubset(["c", "a"]).fit_transform(X).columns) == ["c", "a"]

    def test_missing_column(self):
        """Unknown predictors are rejected."""
        with pytest.raises(ValueError, match="not present"):
            ColumnSubset(["z"]).fit(pd.DataFrame({"a": [1.0]}))


class TestSplineBasisExpander:
    """Tests for the MARS-style basis."""

    def test_basis_width(self):
        """Each continuous predictor expands to knots + degree columns."""
        rng = np.random.RandomState(0)
        X = np.column_stack([rng.normal(size=50), rng.uniform(size=50)])
        expander = SplineBasisExpander(n_knots=3, degree=1).fit(X)
        assert spline_feature_counts(expander) == [4, 4]
        assert expander.transform(X).shape == (50, 8)

    def test_binary_predictor_stays_linear(self):
        """A predictor with few distinct values enters as one linear column."""
        X = np.column_stack([np.tile([0.0, 1.0], 25), np.linspace(0, 1, 50)])
        expander = SplineBasisExpander(n_knots=2, degree=2).fit(X)
        assert spline_feature_counts(expander)[0] == 1
        np.testing.assert_array_equal(expander.transform(X)[:, 0], X[:, 0])

    def test_out_of_range_values_are_clipped(self):
        """New data outside the training range is evaluated at the boundary."""
        X = np.linspace(0, 10, 40).reshape(-1, 1)
        expander = SplineBasisExpander(n_knots=2, degree=1).fit(X)
        outside = expander.transform(np.array([[-5.0], [20.0]]))
        edges = expander.transform(np.array([[0.0], [10.0]]))
        np.testing.assert_allclose(outside, edges)

    def test_invalid_degree(self):
        """Degree must be at least one."""
        with pytest.raises(ValueError):
            SplineBasisExpander(degree=0).fit(np.zeros((5, 1)))


class TestRuleFitClassifier:
    """Tests for the rule-based classifier."""

    @pytest.fixture
    def fitted(self):
        rng = np.random.RandomState(0)
        X = rng.normal(size=(120, 3))
        y = (X[:, 0] > 0.2).astype(int)
        return RuleFitClassifier(n_trees=10, max_depth=2, C=1.0, feature_names=["ca125", "he4", "age"],
                                 random_state=0).fit(X, y), X, y

    def test_learns_threshold(self, fitted):
        """A single-threshold signal is recovered."""
        model, X, y = fitted
        assert (model.predict(X) == y).mean() > 0.9

    def test_rules_name_features(self, fitted):
        """Rule descriptions use the predictor names."""
        model, _, _ = fitted
        rules = model.get_rules()
        assert not rules.empty
        assert rules["rule"].str.contains("ca125").any()

    def test_importances_favour_signal(self, fitted):
        """The signal variable carries the most importance."""
        model, _, _ = fitted
        importances = model.feature_importances_
        assert importances.sum() == pytest.approx(1.0)
        assert np.argmax(importances) == 0

    def test_requires_two_classes(self):
        """A single-class label is rejected."""
        with pytest.raises(ValueError):
            RuleFitClassifier(n_trees=2).fit(np.zeros((10, 2)), np.zeros(10))
