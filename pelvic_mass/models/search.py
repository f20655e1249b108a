"""
Hyperparameter search spaces and a sequential Bayesian optimizer.

The optimizer keeps its state explicitly in an optuna study: the sampler
models the scored history and proposes the next configuration, and the
study's trials are mirrored as a plain trial history.
"""

import numpy as np
import pandas as pd
import optuna
from dataclasses import dataclass, field
from numbers import Number
from typing import Dict, List, Any, Optional, Callable, Sequence
from optuna.distributions import CategoricalDistribution, FloatDistribution, IntDistribution
from optuna.samplers import TPESampler
from optuna.trial import TrialState, create_trial

optuna.logging.set_verbosity(optuna.logging.WARNING)


def _is_number(value) -> bool:
    return isinstance(value, Number) and not isinstance(value, bool)


class Real:
    """Continuous hyperparameter on [low, high], optionally log-scaled."""

    def __init__(self, low: float, high: float, log: bool = False):
        if low >= high:
            raise ValueError(f"low must be < high, got {low}, {high}")
        if log and low <= 0:
            raise ValueError("log-scaled dimensions need a positive lower bound")
        self.low, self.high, self.log = low, high, log

    def contains(self, value) -> bool:
        return _is_number(value) and np.isfinite(value) and self.low <= value <= self.high

    def distribution(self):
        return FloatDistribution(self.low, self.high, log=self.log)

    def suggest(self, trial: optuna.Trial, name: str):
        return trial.suggest_float(name, self.low, self.high, log=self.log)

    def sample(self, rng: np.random.RandomState):
        if self.log:
            return float(10 ** rng.uniform(np.log10(self.low), np.log10(self.high)))
        return float(rng.uniform(self.low, self.high))

    def __repr__(self):
        return f"Real({self.low}, {self.high}, log={self.log})"


class Integer(Real):
    """Integer hyperparameter on [low, high]."""

    def contains(self, value) -> bool:
        return super().contains(value) and float(value).is_integer()

    def distribution(self):
        return IntDistribution(int(self.low), int(self.high), log=self.log)

    def suggest(self, trial: optuna.Trial, name: str):
        return trial.suggest_int(name, int(self.low), int(self.high), log=self.log)

    def sample(self, rng: np.random.RandomState):
        return int(np.clip(round(super().sample(rng)), self.low, self.high))

    def __repr__(self):
        return f"Integer({self.low}, {self.high}, log={self.log})"


class Categorical:
    """Hyperparameter taking one of a fixed set of values."""

    def __init__(self, choices: Sequence[Any]):
        if len(choices) == 0:
            raise ValueError("Categorical needs at least one choice")
        self.choices = list(choices)

    def contains(self, value) -> bool:
        return value in self.choices

    def distribution(self):
        return CategoricalDistribution(self.choices)

    def suggest(self, trial: optuna.Trial, name: str):
        return trial.suggest_categorical(name, self.choices)

    def sample(self, rng: np.random.RandomState):
        return self.choices[rng.randint(len(self.choices))]

    def __repr__(self):
        return f"Categorical({self.choices})"


class SearchSpace:
    """Named hyperparameter dimensions."""

    def __init__(self, dimensions: Dict[str, Any]):
        if not dimensions:
            raise ValueError("SearchSpace needs at least one dimension")
        self.dimensions = dict(dimensions)
        self.names = list(self.dimensions)

    def __len__(self):
        return len(self.names)

    def contains(self, params: Dict[str, Any]) -> bool:
        """True when params name exactly these dimensions, each value in range."""
        if set(params) != set(self.names):
            return False
        return all(self.dimensions[n].contains(params[n]) for n in self.names)

    def distributions(self) -> Dict[str, Any]:
        return {n: d.distribution() for n, d in self.dimensions.items()}

    def suggest(self, trial: optuna.Trial) -> Dict[str, Any]:
        return {n: d.suggest(trial, n) for n, d in self.dimensions.items()}

    def sample(self, rng: np.random.RandomState, n: int = 1) -> List[Dict[str, Any]]:
        return [{name: d.sample(rng) for name, d in self.dimensions.items()} for _ in range(n)]


@dataclass
class Trial:
    iteration: int
    params: Dict[str, Any]
    score: float
    source: str  # 'initial' or 'acquisition'


class NoImprovementStopper:
    """Study callback that stops after `patience` trials without a new best score."""

    def __init__(self, patience: int, best: float = -np.inf):
        self.patience = patience
        self.best = best
        self.stall = 0

    def __call__(self, study: optuna.Study, trial: optuna.trial.FrozenTrial):
        score = trial.value if trial.state == TrialState.COMPLETE else np.nan
        if np.isfinite(score) and score > self.best:
            self.best = score
            self.stall = 0
        else:
            self.stall += 1
        if self.stall >= self.patience:
            study.stop()


@dataclass
class BayesianOptimizer:
    """
    Sequential model-based optimizer (ask/tell interface) over an optuna study.

    Attributes:
        space: Hyperparameter search space
        n_initial: Random configurations evaluated before the sampler models the history
        n_candidates: Candidates scored by the sampler's acquisition per step
        random_state: Random seed
        history: Evaluated trials in order
    """
    space: SearchSpace
    n_initial: int = 5
    n_candidates: int = 24
    random_state: int = 42
    history: List[Trial] = field(default_factory=list)

    def __post_init__(self):
        self.sampler = TPESampler(n_startup_trials=self.n_initial,
                                  n_ei_candidates=self.n_candidates,
                                  seed=self.random_state)
        self.study = optuna.create_study(direction='maximize', sampler=self.sampler)
        self._pending: List[tuple] = []

    @property
    def best_trial(self) -> Optional[Trial]:
        scored = [t for t in self.history if np.isfinite(t.score)]
        if not scored:
            return None
        return max(scored, key=lambda t: t.score)

    def _record(self, params: Dict[str, Any], score: float) -> Trial:
        source = 'initial' if len(self.history) < self.n_initial else 'acquisition'
        trial = Trial(iteration=len(self.history) + 1, params=dict(params),
                      score=float(score), source=source)
        self.history.append(trial)
        return trial

    def ask(self) -> Dict[str, Any]:
        """Propose the next configuration to evaluate."""
        trial = self.study.ask()
        params = self.space.suggest(trial)
        self._pending.append((trial, params))
        return params

    def tell(self, params: Dict[str, Any], score: float) -> Trial:
        """
        Record the score of an evaluated configuration.

        Configurations that were not proposed by `ask` (e.g. earlier grid
        results) are added to the study as completed trials and must lie
        inside the search space.
        """
        score = float(score)
        finite = np.isfinite(score)
        for i, (pending, proposed) in enumerate(self._pending):
            if proposed == params:
                del self._pending[i]
                if finite:
                    self.study.tell(pending, score)
                else:
                    self.study.tell(pending, state=TrialState.FAIL)
                break
        else:
            if not self.space.contains(params):
                raise ValueError(f"Configuration {params} lies outside the search space")
            self.study.add_trial(create_trial(
                params=dict(params),
                distributions=self.space.distributions(),
                value=score if finite else None,
                state=TrialState.COMPLETE if finite else TrialState.FAIL
            ))
        return self._record(params, score)

    def run(self, objective: Callable[[Dict[str, Any]], float], n_iter: int = 20,
            no_improve: int = 10, verbose: bool = False) -> Optional[Trial]:
        """
        Optimize an objective (higher is better).

        Stops after n_iter evaluations or after `no_improve` consecutive
        evaluations that fail to beat the best score.

        Args:
            objective: Function mapping a configuration to a score (NaN allowed)
            n_iter: Total evaluation budget
            no_improve: Patience in iterations without improvement
            verbose: Whether to print progress
        """
        best = self.best_trial
        stopper = NoImprovementStopper(no_improve, best.score if best else -np.inf)

        def study_objective(study_trial: optuna.Trial) -> float:
            previous_best = stopper.best
            params = self.space.suggest(study_trial)
            trial = self._record(params, objective(params))

            if verbose:
                improved = np.isfinite(trial.score) and trial.score > previous_best
                mark = "⭐" if improved else "  "
                print(f"   {mark} Iter {trial.iteration:>3} ({trial.source}): "
                      f"score={trial.score:.4f} {params}")
            # NaN marks the study trial as failed
            return trial.score

        self.study.optimize(study_objective, n_trials=n_iter, callbacks=[stopper],
                            show_progress_bar=False)

        if verbose and stopper.stall >= no_improve:
            print(f"   ⏹️ No improvement for {no_improve} iterations, stopping")

        return self.best_trial

    def history_frame(self) -> pd.DataFrame:
        """Trial history as a DataFrame (one column per hyperparameter)."""
        rows = []
        for t in self.history:
            row = {'iteration': t.iteration, 'score': t.score, 'source': t.source}
            row.update(t.params)
            rows.append(row)
        return pd.DataFrame(rows)
