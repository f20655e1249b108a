"""Pytest fixtures for the pelvic mass analysis tests."""

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from pelvic_mass.data import BiomarkerDataset


def make_separable_dataset(n_benign: int = 40, n_cancer: int = 20) -> BiomarkerDataset:
    """
    Three predictors: `ca125` fully separates the classes, the two noise
    predictors hold the same values in both classes (Welch t = 0).
    """
    if n_benign % n_cancer != 0:
        raise ValueError("n_benign must be a multiple of n_cancer")
    repeats = n_benign // n_cancer
    base = np.arange(1, n_cancer + 1, dtype=float)

    benign = pd.DataFrame({
        "ca125": np.arange(1, n_benign + 1, dtype=float),
        "he4": np.tile(base, repeats),
        "age": np.tile(base[::-1] + 40, repeats),
    })
    cancer = pd.DataFrame({
        "ca125": np.arange(100, 100 + n_cancer, dtype=float),
        "he4": base,
        "age": base[::-1] + 40,
    })
    X = pd.concat([benign, cancer], ignore_index=True)
    y = pd.Series([0] * n_benign + [1] * n_cancer, name="label")
    return BiomarkerDataset(X=X, y=y)


def make_noisy_dataset(n_benign: int = 60, n_cancer: int = 40, seed: int = 0) -> BiomarkerDataset:
    """Overlapping classes with a few missing values, for model fitting tests."""
    rng = np.random.RandomState(seed)
    y = np.array([0] * n_benign + [1] * n_cancer)
    X = pd.DataFrame({
        "ca125": rng.lognormal(3.0 + 1.2 * y, 0.6),
        "he4": rng.normal(60 + 25 * y, 15),
        "cea": rng.lognormal(0.5, 0.5, len(y)),
        "age": rng.normal(55, 10, len(y)),
    })
    X.loc[rng.choice(len(y), 5, replace=False), "cea"] = np.nan
    return BiomarkerDataset(X=X, y=pd.Series(y, name="label"))


@pytest.fixture
def separable_dataset() -> BiomarkerDataset:
    """60 rows (40 Benign, 20 Cancer) with one separating predictor."""
    return make_separable_dataset()


@pytest.fixture
def noisy_dataset() -> BiomarkerDataset:
    """100 rows with overlapping classes and missing values."""
    return make_noisy_dataset()


@pytest.fixture
def raw_frame() -> pd.DataFrame:
    """Spreadsheet-like frame as read from the raw data sheet."""
    return pd.DataFrame({
        "Patient ID": [101, 102, 103, 104, 105, 106],
        "Diagnosis": ["Benign", "Cancer", " benign ", "Cancer", "Benign", "Cancer"],
        "CA-125": ["12.5", "350", ".", "410.2", "20", "515"],
        "HE4": [45.0, 180.0, 50.5, np.nan, 40.0, 210.0],
        "Menopausal Status": ["Pre", "Post", "Pre", "Post", "Pre", "Post"],
        "Unused Marker": [".", ".", ".", ".", ".", "."],
    })
