"""
Pipeline transformers fit on in-bag rows only.
These transformers implement the fit/transform pattern so that every
resample learns its own statistics and nothing leaks from assessment rows.
"""

import numpy as np
import pandas as pd
from typing import List, Optional, Sequence
from patsy import bs
from sklearn.base import BaseEstimator, TransformerMixin


class ColumnSubset(BaseEstimator, TransformerMixin):
    """Select an explicit, ordered set of predictors by name."""

    def __init__(self, columns: Optional[Sequence[str]] = None):
        self.columns = columns

    def fit(self, X: pd.DataFrame, y=None):
        if not isinstance(X, pd.DataFrame):
            raise TypeError("ColumnSubset expects a DataFrame with named predictors")
        selected = list(X.columns) if self.columns is None else list(self.columns)
        missing = [c for c in selected if c not in X.columns]
        if missing:
            raise ValueError(f"Predictors not present in data: {missing}")
        self.columns_ = selected
        return self

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        return X[self.columns_]

    def get_feature_names_out(self, input_features=None):
        return np.asarray(self.columns_, dtype=object)


class SplineBasisExpander(BaseEstimator, TransformerMixin):
    """
    Additive piecewise-polynomial basis (B-splines via patsy) per predictor.

    With degree=1 the basis spans the same functions as MARS hinge terms at
    the chosen knots. Knots sit at training quantiles; new data is clipped
    to the training range before evaluation. Predictors with too few
    distinct values enter linearly.
    """

    def __init__(self, n_knots: int = 3, degree: int = 1):
        self.n_knots = n_knots
        self.degree = degree

    def fit(self, X, y=None):
        X = np.asarray(X, dtype=float)
        if self.degree < 1:
            raise ValueError(f"degree must be >= 1, got {self.degree}")
        if self.n_knots < 0:
            raise ValueError(f"n_knots must be >= 0, got {self.n_knots}")

        quantiles = np.linspace(0, 1, self.n_knots + 2)[1:-1]
        self.bounds_ = []
        self.knots_ = []
        for j in range(X.shape[1]):
            col = X[:, j][~np.isnan(X[:, j])]
            if len(np.unique(col)) <= self.degree + self.n_knots:
                # Linear term only
                self.bounds_.append(None)
                self.knots_.append(None)
                continue
            lower, upper = float(col.min()), float(col.max())
            inner = np.unique(np.percentile(col, quantiles * 100)) if len(quantiles) else np.array([])
            inner = inner[(inner > lower) & (inner < upper)]
            self.bounds_.append((lower, upper))
            self.knots_.append(inner)
        self.n_features_in_ = X.shape[1]
        return self

    def transform(self, X) -> np.ndarray:
        X = np.asarray(X, dtype=float)
        blocks = []
        for j in range(self.n_features_in_):
            x = X[:, j]
            if self.bounds_[j] is None:
                blocks.append(x.reshape(-1, 1))
                continue
            lower, upper = self.bounds_[j]
            basis = bs(np.clip(x, lower, upper), knots=self.knots_[j], degree=self.degree,
                       lower_bound=lower, upper_bound=upper)
            blocks.append(np.asarray(basis))
        return np.hstack(blocks)


def spline_feature_counts(expander: SplineBasisExpander) -> List[int]:
    """Number of basis columns generated per input predictor."""
    counts = []
    for bounds, knots in zip(expander.bounds_, expander.knots_):
        counts.append(1 if bounds is None else len(knots) + expander.degree)
    return counts
