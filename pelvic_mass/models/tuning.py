"""
Hyperparameter tuning over bootstrap resamples.

Each configuration of a model family is fit on the in-bag rows of every
bootstrap replicate and scored on the out-of-bag rows. All configurations
of all families share the same replicates, so their out-of-bag predictions
line up row by row for stacking and paired comparison.
"""

import json
import warnings
import numpy as np
import pandas as pd
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field, asdict
from typing import Dict, List, Any, Optional

from sklearn.model_selection import ParameterGrid

from ..data.loader import BiomarkerDataset
from ..data.resampling import StratifiedBootstrap
from ..utils.statistics import StatisticalAnalyzer
from ..config.settings import AnalysisConfig
from .families import get_family
from .search import BayesianOptimizer

METRICS = ['roc_auc', 'accuracy', 'sensitivity', 'specificity']


def _to_builtin(value):
    if isinstance(value, np.integer):
        return int(value)
    if isinstance(value, np.floating):
        return float(value)
    if isinstance(value, (list, tuple)):
        return [_to_builtin(v) for v in value]
    return value


@dataclass
class CandidateConfig:
    """Serializable definition of one (family, hyperparameters) candidate."""
    family: str
    params: Dict[str, Any]
    predictors: List[str]
    random_state: int = AnalysisConfig.RANDOM_SEED
    candidate_id: str = ''

    def __post_init__(self):
        self.params = {k: _to_builtin(v) for k, v in self.params.items()}
        self.predictors = list(self.predictors)
        if not self.candidate_id:
            self.candidate_id = f"{self.family}_candidate"

    def build_pipeline(self):
        return get_family(self.family).build_pipeline(self.params, self.predictors, self.random_state)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CandidateConfig':
        return cls(**data)

    @classmethod
    def from_json(cls, text: str) -> 'CandidateConfig':
        return cls.from_dict(json.loads(text))


@dataclass
class ModelCandidate:
    """Container for one candidate's resample-level results."""
    config: CandidateConfig
    resample_metrics: pd.DataFrame
    predictions: pd.DataFrame
    n_failed: int = 0

    @property
    def candidate_id(self) -> str:
        return self.config.candidate_id

    @property
    def family(self) -> str:
        return self.config.family

    @property
    def resample_ids(self) -> List[str]:
        return self.resample_metrics['resample_id'].tolist()

    def mean_metrics(self) -> Dict[str, float]:
        """Metric means over resamples, ignoring failed folds."""
        return {m: float(self.resample_metrics[m].mean(skipna=True)) for m in METRICS}

    def score(self, metric: str = 'roc_auc') -> float:
        return self.mean_metrics()[metric]

    def summary(self) -> Dict[str, Any]:
        row = {'candidate_id': self.candidate_id, 'family': self.family}
        row.update(self.config.params)
        for metric, value in self.mean_metrics().items():
            row[metric] = value
            row[f"{metric}_std_err"] = float(
                self.resample_metrics[metric].std(ddof=1)
                / np.sqrt(max(self.resample_metrics[metric].notna().sum(), 1))
            )
        row['n_failed'] = self.n_failed
        return row


def evaluate_candidate(config: CandidateConfig, train: BiomarkerDataset,
                       resampler: StratifiedBootstrap) -> ModelCandidate:
    """
    Fit one configuration on every replicate and score out-of-bag rows.

    A fit that fails on a replicate is recorded with missing metrics for
    that replicate; it does not stop the evaluation.

    Args:
        config: Candidate definition
        train: Training partition
        resampler: Bootstrap resampler shared by all candidates

    Returns:
        ModelCandidate with per-resample metrics and out-of-bag predictions
    """
    X, y = train.X, train.y.to_numpy()
    metric_rows, prediction_frames = [], []
    n_failed = 0

    for rep in resampler.replicates(y):
        pipeline = config.build_pipeline()
        try:
            with warnings.catch_warnings():
                warnings.simplefilter('ignore')
                pipeline.fit(X.iloc[rep.in_bag], y[rep.in_bag])
                prob = pipeline.predict_proba(X.iloc[rep.out_of_bag])[:, 1]
            if not np.all(np.isfinite(prob)):
                raise ValueError("non-finite predicted probabilities")
        except Exception as e:
            n_failed += 1
            row = {'resample_id': rep.resample_id, 'error': str(e)[:200]}
            row.update({m: np.nan for m in METRICS})
            metric_rows.append(row)
            continue

        row = {'resample_id': rep.resample_id, 'error': None}
        row.update(StatisticalAnalyzer.classification_metrics(y[rep.out_of_bag], prob))
        metric_rows.append(row)
        prediction_frames.append(pd.DataFrame({
            'resample_id': rep.resample_id,
            'row': rep.out_of_bag,
            'y_true': y[rep.out_of_bag],
            'prob': prob,
        }))

    predictions = (pd.concat(prediction_frames, ignore_index=True) if prediction_frames
                   else pd.DataFrame(columns=['resample_id', 'row', 'y_true', 'prob']))

    return ModelCandidate(
        config=config,
        resample_metrics=pd.DataFrame(metric_rows),
        predictions=predictions,
        n_failed=n_failed
    )


@dataclass
class TuningResult:
    """All candidates evaluated by one search."""
    family: str
    method: str
    metric: str
    candidates: List[ModelCandidate] = field(default_factory=list)
    search_history: Optional[pd.DataFrame] = None

    def leaderboard(self) -> pd.DataFrame:
        """Candidates ordered by mean metric (best first)."""
        table = pd.DataFrame([c.summary() for c in self.candidates])
        if table.empty:
            return table
        return table.sort_values(self.metric, ascending=False, kind='mergesort',
                                 na_position='last').reset_index(drop=True)

    @property
    def best_candidate(self) -> ModelCandidate:
        scored = [c for c in self.candidates if np.isfinite(c.score(self.metric))]
        if not scored:
            raise ValueError(f"No {self.family} candidate produced a valid {self.metric}")
        return max(scored, key=lambda c: c.score(self.metric))


class ModelTuner:
    """
    Hyperparameter search for one model family.

    Implements grid search and sequential Bayesian search over a shared
    bootstrap resampler, scored by a chosen out-of-bag metric.
    """

    def __init__(self, family: str, resampler: StratifiedBootstrap,
                 metric: str = 'roc_auc', predictors: Optional[List[str]] = None,
                 random_state: int = AnalysisConfig.RANDOM_SEED,
                 n_workers: Optional[int] = None, verbose: bool = True):
        """
        Initialize the tuner.

        Args:
            family: Model family name (see models.families.FAMILIES)
            resampler: Bootstrap resampler shared with the other tuners
            metric: Metric to maximize ('roc_auc', 'accuracy', ...)
            predictors: Predictor subset; all predictors when None
            random_state: Random seed for estimators and the optimizer
            n_workers: Worker processes for grid search (None = serial)
            verbose: Whether to print progress information
        """
        if metric not in METRICS:
            raise ValueError(f"Unknown metric '{metric}'. Choose from {METRICS}")
        self.family = get_family(family)
        self.resampler = resampler
        self.metric = metric
        self.predictors = predictors
        self.random_state = random_state
        self.n_workers = n_workers
        self.verbose = verbose

    def _config(self, params: Dict[str, Any], predictors: List[str], tag: str) -> CandidateConfig:
        return CandidateConfig(
            family=self.family.name,
            params=params,
            predictors=predictors,
            random_state=self.random_state,
            candidate_id=f"{self.family.name}_{tag}"
        )

    def grid_search(self, train: BiomarkerDataset,
                    grid: Optional[Dict[str, List[Any]]] = None) -> TuningResult:
        """
        Evaluate every configuration of a parameter grid.

        Args:
            train: Training partition
            grid: Parameter grid; the family default when None

        Returns:
            TuningResult with one candidate per grid point
        """
        predictors = self.predictors or train.predictors
        grid = grid if grid is not None else self.family.param_grid()
        configs = [self._config(p, predictors, f"grid_{i + 1:02d}")
                   for i, p in enumerate(ParameterGrid(grid))]

        if self.verbose:
            print(f"\n🔍 Grid search: {self.family.label} "
                  f"({len(configs)} configurations x {self.resampler.n_resamples} resamples)")

        if self.n_workers is None or self.n_workers == 1:
            candidates = [evaluate_candidate(c, train, self.resampler) for c in configs]
        else:
            with ProcessPoolExecutor(max_workers=self.n_workers) as executor:
                futures = [executor.submit(evaluate_candidate, c, train, self.resampler)
                           for c in configs]
                candidates = [f.result() for f in futures]

        result = TuningResult(family=self.family.name, method='grid',
                              metric=self.metric, candidates=candidates)
        self._report(result)
        return result

    def bayes_search(self, train: BiomarkerDataset, n_iter: int = 20,
                     n_initial: int = 5, no_improve: int = 10,
                     initial: Optional[TuningResult] = None) -> TuningResult:
        """
        Sequential Bayesian search (optuna TPE sampler).

        Args:
            train: Training partition
            n_iter: Evaluation budget
            n_initial: Random configurations before the surrogate is used
            no_improve: Stop after this many iterations without improvement
            initial: Earlier results (e.g. a grid search) used to seed the history;
                configurations outside the search space are skipped

        Returns:
            TuningResult with one candidate per evaluated configuration
        """
        predictors = self.predictors or train.predictors
        optimizer = BayesianOptimizer(space=self.family.search_space(),
                                      n_initial=n_initial,
                                      random_state=self.random_state)
        candidates: List[ModelCandidate] = []

        if initial is not None:
            seeded = [c for c in initial.candidates if optimizer.space.contains(c.config.params)]
            for c in seeded:
                optimizer.tell(c.config.params, c.score(self.metric))
            if self.verbose:
                print(f"   🌱 Seeded {len(seeded)}/{len(initial.candidates)} earlier configurations")

        if self.verbose:
            print(f"\n🎯 Bayesian search: {self.family.label} "
                  f"(budget {n_iter}, patience {no_improve}, {self.resampler.n_resamples} resamples)")

        def objective(params: Dict[str, Any]) -> float:
            config = self._config(params, predictors, f"bayes_{len(candidates) + 1:02d}")
            candidate = evaluate_candidate(config, train, self.resampler)
            candidates.append(candidate)
            return candidate.score(self.metric)

        optimizer.run(objective, n_iter=n_iter, no_improve=no_improve, verbose=self.verbose)

        result = TuningResult(family=self.family.name, method='bayes', metric=self.metric,
                              candidates=candidates, search_history=optimizer.history_frame())
        self._report(result)
        return result

    def _report(self, result: TuningResult):
        if not self.verbose:
            return
        n_failed = sum(c.n_failed for c in result.candidates)
        if n_failed:
            print(f"   ⚠️ Failed fits recorded as missing: {n_failed}")
        try:
            best = result.best_candidate
            print(f"   ✅ Best {self.metric}: {best.score(self.metric):.4f}")
            print(f"   📊 Best params: {best.config.params}")
        except ValueError as e:
            print(f"   ❌ {e}")
