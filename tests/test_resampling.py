"""Tests for stratified splitting and bootstrap resampling."""

import numpy as np
import pandas as pd
import pytest

from pelvic_mass.data import (
    BiomarkerDataset, StratificationError, StratifiedBootstrap, stratified_split
)


def _dataset(n_benign: int, n_cancer: int) -> BiomarkerDataset:
    n = n_benign + n_cancer
    X = pd.DataFrame({"ca125": np.arange(n, dtype=float)})
    y = pd.Series([0] * n_benign + [1] * n_cancer)
    return BiomarkerDataset(X=X, y=y)


class TestStratifiedSplit:
    """Tests for the train/test partition."""

    def test_class_ratio_preserved(self):
        """200 Benign / 100 Cancer split 75/25 keeps a 2:1 ratio in both parts."""
        train, test = stratified_split(_dataset(200, 100), test_size=0.25,
                                       random_state=1, verbose=False)
        for part in (train, test):
            counts = part.class_counts()
            assert counts["Benign"] / counts["Cancer"] == pytest.approx(2.0, abs=0.1)
        assert train.n_samples == 225
        assert test.n_samples == 75

    def test_partitions_disjoint(self):
        """Train and test share no observation."""
        train, test = stratified_split(_dataset(40, 20), random_state=3, verbose=False)
        assert set(train.X.index).isdisjoint(test.X.index)
        assert train.n_samples + test.n_samples == 60

    def test_deterministic(self):
        """The same seed gives the same partition."""
        data = _dataset(40, 20)
        a, _ = stratified_split(data, random_state=7, verbose=False)
        b, _ = stratified_split(data, random_state=7, verbose=False)
        assert a.X.index.tolist() == b.X.index.tolist()

    def test_single_class_is_fatal(self):
        """A dataset without Cancer cases cannot be stratified."""
        with pytest.raises(StratificationError, match="both Benign and Cancer"):
            stratified_split(_dataset(30, 0), verbose=False)

    def test_too_few_cases(self):
        """One case of a class is too few to stratify."""
        with pytest.raises(StratificationError):
            stratified_split(_dataset(30, 1), verbose=False)

    def test_invalid_test_size(self):
        """test_size must be a proportion."""
        with pytest.raises(ValueError):
            stratified_split(_dataset(30, 10), test_size=1.5, verbose=False)


class TestStratifiedBootstrap:
    """Tests for the bootstrap resampler."""

    def test_resample_ids(self):
        """Replicates are named Bootstrap01, Bootstrap02, ..."""
        resampler = StratifiedBootstrap(n_resamples=3, random_state=0)
        assert resampler.resample_ids() == ["Bootstrap01", "Bootstrap02", "Bootstrap03"]
        assert resampler.get_n_splits() == 3

    def test_class_sizes_preserved_in_bag(self):
        """Each in-bag draw holds as many rows of each class as the data."""
        y = np.array([0] * 40 + [1] * 20)
        for rep in StratifiedBootstrap(n_resamples=5, random_state=0).replicates(y):
            assert np.sum(y[rep.in_bag] == 0) == 40
            assert np.sum(y[rep.in_bag] == 1) == 20

    def test_out_of_bag_complements_in_bag(self):
        """Out-of-bag rows are exactly the rows never drawn."""
        y = np.array([0] * 40 + [1] * 20)
        for rep in StratifiedBootstrap(n_resamples=5, random_state=0).replicates(y):
            assert set(rep.out_of_bag) == set(range(60)) - set(rep.in_bag)
            assert len(rep.out_of_bag) > 0

    def test_deterministic(self):
        """Same seed, same replicates."""
        y = np.array([0] * 30 + [1] * 15)
        first = list(StratifiedBootstrap(n_resamples=4, random_state=11).replicates(y))
        second = list(StratifiedBootstrap(n_resamples=4, random_state=11).replicates(y))
        for a, b in zip(first, second):
            assert a.resample_id == b.resample_id
            np.testing.assert_array_equal(a.in_bag, b.in_bag)

    def test_sklearn_split_protocol(self):
        """split yields (in_bag, out_of_bag) pairs."""
        y = np.array([0] * 30 + [1] * 15)
        splits = list(StratifiedBootstrap(n_resamples=2, random_state=0).split(np.zeros((45, 1)), y))
        assert len(splits) == 2
        assert all(len(train) == 45 for train, _ in splits)

    def test_split_requires_labels(self):
        """Labels are required to stratify."""
        with pytest.raises(ValueError):
            list(StratifiedBootstrap(n_resamples=2).split(np.zeros((10, 1))))

    def test_single_class_is_fatal(self):
        """Resampling a single-class vector fails."""
        with pytest.raises(StratificationError):
            list(StratifiedBootstrap(n_resamples=2).replicates(np.zeros(20)))

    def test_describe(self):
        """describe lists one row per replicate."""
        y = np.array([0] * 30 + [1] * 15)
        table = StratifiedBootstrap(n_resamples=3, random_state=0).describe(y)
        assert table["resample_id"].tolist() == ["Bootstrap01", "Bootstrap02", "Bootstrap03"]
        assert (table["oob_negative"] + table["oob_positive"] == table["n_out_of_bag"]).all()
