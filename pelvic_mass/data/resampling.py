"""
Stratified partitioning and bootstrap resampling.

All comparisons downstream (ablation drops, ensemble vs. member) are paired
by resample id, so every consumer must draw its replicates from the same
seeded StratifiedBootstrap.
"""

import numpy as np
import pandas as pd
from typing import Iterator, List, NamedTuple, Tuple, Dict, Any, Optional
from sklearn.model_selection import train_test_split

from .loader import BiomarkerDataset
from ..config.settings import AnalysisConfig


class StratificationError(ValueError):
    """Raised when a partition or resample cannot preserve both classes."""


class BootstrapReplicate(NamedTuple):
    resample_id: str
    in_bag: np.ndarray
    out_of_bag: np.ndarray


def _check_class_sizes(y: np.ndarray, minimum: int, context: str):
    classes, counts = np.unique(y, return_counts=True)
    if len(classes) < 2:
        raise StratificationError(
            f"{context}: only class {classes.tolist()} present; both Benign and Cancer cases are required"
        )
    too_small = {int(c): int(n) for c, n in zip(classes, counts) if n < minimum}
    if too_small:
        raise StratificationError(
            f"{context}: at least {minimum} cases per class required, got {too_small}"
        )


def stratified_split(dataset: BiomarkerDataset,
                     test_size: float = AnalysisConfig.TEST_SIZE,
                     random_state: int = AnalysisConfig.RANDOM_SEED,
                     verbose: bool = True) -> Tuple[BiomarkerDataset, BiomarkerDataset]:
    """
    Label-stratified train/test split.

    Args:
        dataset: Cleaned dataset
        test_size: Proportion of observations held out for testing
        random_state: Random seed for reproducibility
        verbose: Whether to print split statistics

    Returns:
        Tuple of (train, test) datasets with disjoint rows
    """
    if not 0 < test_size < 1:
        raise ValueError(f"test_size must lie in (0, 1), got {test_size}")

    y = dataset.y.to_numpy()
    _check_class_sizes(y, minimum=2, context="Train/test split")

    positions = np.arange(dataset.n_samples)
    try:
        train_idx, test_idx = train_test_split(
            positions, test_size=test_size, stratify=y, random_state=random_state
        )
    except ValueError as e:
        raise StratificationError(f"Train/test split failed: {e}") from e

    train_idx = np.sort(train_idx)
    test_idx = np.sort(test_idx)
    for name, idx in (('train', train_idx), ('test', test_idx)):
        if len(np.unique(y[idx])) < 2:
            raise StratificationError(
                f"Train/test split left the {name} partition with a single class; "
                f"increase the data or adjust test_size={test_size}"
            )

    train, test = dataset.subset(train_idx), dataset.subset(test_idx)

    if verbose:
        print("🔄 Stratified train/test split:")
        print(f"   Training set: {train.n_samples} samples {train.class_counts()}")
        print(f"   Test set: {test.n_samples} samples {test.class_counts()}")

    return train, test


class StratifiedBootstrap:
    """
    Stratified bootstrap resampler.

    Each replicate draws, within each class, as many rows as the class holds
    (with replacement). Rows never drawn form the out-of-bag assessment set.
    Compatible with the scikit-learn splitter protocol (`split`,
    `get_n_splits`).
    """

    def __init__(self, n_resamples: int = AnalysisConfig.N_BOOTSTRAPS,
                 random_state: int = AnalysisConfig.RANDOM_SEED):
        if n_resamples < 1:
            raise ValueError(f"n_resamples must be positive, got {n_resamples}")
        self.n_resamples = n_resamples
        self.random_state = random_state

    def resample_ids(self) -> List[str]:
        width = max(2, len(str(self.n_resamples)))
        return [f"Bootstrap{i + 1:0{width}d}" for i in range(self.n_resamples)]

    def get_n_splits(self, X=None, y=None, groups=None) -> int:
        return self.n_resamples

    def replicates(self, y) -> Iterator[BootstrapReplicate]:
        """
        Generate the bootstrap replicates for a label vector.

        Args:
            y: Binary label vector (positional)

        Yields:
            BootstrapReplicate with resample id, in-bag and out-of-bag positions
        """
        y = np.asarray(y)
        _check_class_sizes(y, minimum=2, context="Stratified bootstrap")

        rng = np.random.RandomState(self.random_state)
        class_positions = [np.flatnonzero(y == c) for c in np.unique(y)]
        n = len(y)

        for resample_id in self.resample_ids():
            drawn = [rng.choice(pos, size=len(pos), replace=True) for pos in class_positions]
            in_bag = np.sort(np.concatenate(drawn))
            out_of_bag = np.setdiff1d(np.arange(n), in_bag)
            if len(out_of_bag) == 0:
                raise StratificationError(
                    f"{resample_id} has an empty out-of-bag set; the data set is too small to resample"
                )
            yield BootstrapReplicate(resample_id, in_bag, out_of_bag)

    def split(self, X, y=None, groups=None) -> Iterator[Tuple[np.ndarray, np.ndarray]]:
        if y is None:
            raise ValueError("StratifiedBootstrap requires the label vector")
        for replicate in self.replicates(y):
            yield replicate.in_bag, replicate.out_of_bag

    def describe(self, y) -> pd.DataFrame:
        """Per-replicate sizes and out-of-bag class counts."""
        y = np.asarray(y)
        rows = []
        for rep in self.replicates(y):
            rows.append({
                'resample_id': rep.resample_id,
                'n_in_bag_unique': len(np.unique(rep.in_bag)),
                'n_out_of_bag': len(rep.out_of_bag),
                'oob_negative': int(np.sum(y[rep.out_of_bag] == 0)),
                'oob_positive': int(np.sum(y[rep.out_of_bag] == 1)),
            })
        return pd.DataFrame(rows)

    def get_params(self) -> Dict[str, Any]:
        return {'n_resamples': self.n_resamples, 'random_state': self.random_state}

    def __repr__(self) -> str:
        return f"StratifiedBootstrap(n_resamples={self.n_resamples}, random_state={self.random_state})"
