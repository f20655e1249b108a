"""
Stacked ensemble of tuned candidates.

The out-of-bag probabilities of every candidate (averaged per training row
over the shared bootstrap replicates) form the data stack. A logistic
meta-model with non-negative, L1-penalized member weights is fit on the
stack; members with non-zero weight are refit on the full training data.
"""

import warnings
import numpy as np
import pandas as pd
from dataclasses import dataclass, field
from typing import Dict, List, Any, Optional, Sequence, Tuple

from scipy.optimize import minimize
from scipy.special import expit
from sklearn.metrics import roc_auc_score

from ..data.loader import BiomarkerDataset
from ..data.resampling import StratifiedBootstrap
from ..config.settings import AnalysisConfig
from ..utils.statistics import StatisticalAnalyzer
from .tuning import ModelCandidate, CandidateConfig

DEFAULT_PENALTIES = [10.0 ** k for k in range(-6, 0)]


def fit_nonnegative_logistic(Z: np.ndarray, y: np.ndarray, penalty: float) -> Tuple[float, np.ndarray]:
    """
    Logistic regression with non-negative weights and an L1 penalty.

    With weights constrained to be non-negative the L1 norm is their sum,
    so the objective stays smooth and L-BFGS-B with bounds applies.

    Args:
        Z: Member predictions (rows x members)
        y: Binary labels
        penalty: L1 penalty strength

    Returns:
        Tuple of (intercept, weights)
    """
    Z = np.asarray(Z, dtype=float)
    y = np.asarray(y, dtype=float)
    n, k = Z.shape

    def objective(theta):
        eta = theta[0] + Z @ theta[1:]
        loss = np.mean(np.logaddexp(0, eta) - y * eta) + penalty * np.sum(theta[1:])
        residual = expit(eta) - y
        grad = np.empty_like(theta)
        grad[0] = residual.mean()
        grad[1:] = Z.T @ residual / n + penalty
        return loss, grad

    prevalence = np.clip(y.mean(), 1e-6, 1 - 1e-6)
    theta0 = np.concatenate([[np.log(prevalence / (1 - prevalence))], np.full(k, 0.1)])
    bounds = [(None, None)] + [(0.0, None)] * k
    result = minimize(objective, theta0, jac=True, method='L-BFGS-B', bounds=bounds)

    weights = result.x[1:].copy()
    weights[weights < 1e-8] = 0.0
    return float(result.x[0]), weights


@dataclass
class StackedEnsemble:
    """
    Fitted stacked ensemble: intercept, member weights and refit members.

    Probabilities are sigmoid(intercept + sum_j weight_j * p_j) where p_j is
    member j's predicted probability of Cancer.
    """
    intercept: float
    weights: Dict[str, float]
    members: Dict[str, Any]
    configs: Dict[str, CandidateConfig]
    penalty: float
    penalty_scores: Optional[pd.DataFrame] = None
    classes_: np.ndarray = field(default_factory=lambda: np.array([0, 1]))

    @property
    def active_members(self) -> List[str]:
        return [name for name, w in self.weights.items() if w > 0]

    def fit(self, X: pd.DataFrame, y) -> 'StackedEnsemble':
        """Refit the active members on new data, keeping the blend weights."""
        for name in self.active_members:
            with warnings.catch_warnings():
                warnings.simplefilter('ignore')
                self.members[name].fit(X, np.asarray(y))
        return self

    def member_predictions(self, X: pd.DataFrame) -> pd.DataFrame:
        """Predicted probability of Cancer from each active member."""
        preds = {}
        for name in self.active_members:
            with warnings.catch_warnings():
                warnings.simplefilter('ignore')
                preds[name] = self.members[name].predict_proba(X)[:, 1]
        return pd.DataFrame(preds, index=X.index)

    def decision_function(self, X: pd.DataFrame) -> np.ndarray:
        eta = np.full(len(X), self.intercept, dtype=float)
        if self.active_members:
            member_preds = self.member_predictions(X)
            w = np.array([self.weights[name] for name in member_preds.columns])
            eta = eta + member_preds.to_numpy() @ w
        return eta

    def predict_proba(self, X: pd.DataFrame) -> np.ndarray:
        """Class probabilities (columns: Benign, Cancer)."""
        p = expit(self.decision_function(X))
        return np.column_stack([1 - p, p])

    def predict(self, X: pd.DataFrame,
                threshold: float = AnalysisConfig.PROBABILITY_THRESHOLD) -> np.ndarray:
        return (self.predict_proba(X)[:, 1] >= threshold).astype(int)

    def without_member(self, candidate_id: str) -> 'StackedEnsemble':
        """Copy of the ensemble with one member removed (weights unchanged otherwise)."""
        if candidate_id not in self.weights:
            raise ValueError(f"'{candidate_id}' is not a member of the ensemble")
        return StackedEnsemble(
            intercept=self.intercept,
            weights={k: v for k, v in self.weights.items() if k != candidate_id},
            members={k: v for k, v in self.members.items() if k != candidate_id},
            configs={k: v for k, v in self.configs.items() if k != candidate_id},
            penalty=self.penalty,
            penalty_scores=self.penalty_scores,
        )

    def weights_frame(self) -> pd.DataFrame:
        """Member weights with family and configuration, largest first."""
        rows = []
        for name, weight in self.weights.items():
            config = self.configs[name]
            rows.append({
                'member': name,
                'family': config.family,
                'weight': weight,
                'params': config.params,
            })
        table = pd.DataFrame(rows)
        return table.sort_values('weight', ascending=False, kind='mergesort').reset_index(drop=True)


class EnsembleStacker:
    """
    Builds a stacked ensemble from candidates evaluated on shared replicates.
    """

    def __init__(self, penalties: Optional[Sequence[float]] = None,
                 n_resamples: int = 10,
                 random_state: int = AnalysisConfig.RANDOM_SEED,
                 verbose: bool = True):
        """
        Initialize the stacker.

        Args:
            penalties: Candidate L1 penalties for the meta-model
            n_resamples: Bootstrap resamples of the data stack used to pick the penalty
            random_state: Random seed for penalty selection
            verbose: Whether to print progress information
        """
        self.penalties = list(penalties) if penalties is not None else list(DEFAULT_PENALTIES)
        self.n_resamples = n_resamples
        self.random_state = random_state
        self.verbose = verbose
        self.candidates: Dict[str, ModelCandidate] = {}
        self.intercept_: Optional[float] = None
        self.weights_: Optional[Dict[str, float]] = None
        self.penalty_: Optional[float] = None
        self.penalty_scores_: Optional[pd.DataFrame] = None

    def add_candidates(self, candidates: Sequence[ModelCandidate]) -> 'EnsembleStacker':
        """
        Add candidates to the stack.

        All candidates must come from the same resampling scheme.
        """
        for candidate in candidates:
            if candidate.predictions.empty:
                if self.verbose:
                    print(f"   ⚠️ Skipping {candidate.candidate_id}: no out-of-bag predictions")
                continue
            if self.candidates:
                reference = next(iter(self.candidates.values()))
                if candidate.resample_ids != reference.resample_ids:
                    raise ValueError(
                        f"Candidate {candidate.candidate_id} was evaluated on different resamples "
                        f"than {reference.candidate_id}; stacking needs a shared resampler"
                    )
            if candidate.candidate_id in self.candidates:
                raise ValueError(f"Duplicate candidate id: {candidate.candidate_id}")
            self.candidates[candidate.candidate_id] = candidate
        return self

    def build_data_stack(self, train: BiomarkerDataset) -> pd.DataFrame:
        """
        Average out-of-bag predictions per training row and candidate.

        Rows without a prediction from every candidate are dropped.

        Args:
            train: Training partition the candidates were evaluated on

        Returns:
            DataFrame (rows x candidates) plus a `label` column
        """
        if not self.candidates:
            raise ValueError("No candidates added to the stacker")

        columns = {}
        for name, candidate in self.candidates.items():
            mean_pred = candidate.predictions.groupby('row')['prob'].mean()
            columns[name] = mean_pred.reindex(range(train.n_samples))

        stack = pd.DataFrame(columns)
        stack['label'] = train.y.to_numpy()
        n_before = len(stack)
        stack = stack.dropna()
        if self.verbose and len(stack) < n_before:
            print(f"   ⚠️ {n_before - len(stack)} training rows lack out-of-bag predictions and were skipped")
        return stack

    def _penalty_score(self, Z: np.ndarray, y: np.ndarray, penalty: float) -> float:
        resampler = StratifiedBootstrap(n_resamples=self.n_resamples, random_state=self.random_state)
        scores = []
        for rep in resampler.replicates(y):
            intercept, w = fit_nonnegative_logistic(Z[rep.in_bag], y[rep.in_bag], penalty)
            eta = intercept + Z[rep.out_of_bag] @ w
            y_oob = y[rep.out_of_bag]
            scores.append(roc_auc_score(y_oob, eta) if len(np.unique(y_oob)) == 2 else np.nan)
        return float(np.nanmean(scores)) if np.any(np.isfinite(scores)) else np.nan

    def blend_predictions(self, train: BiomarkerDataset) -> Dict[str, float]:
        """
        Fit the meta-model and choose the penalty by resampled AUC.

        Ties favour the larger penalty (fewer members).

        Args:
            train: Training partition

        Returns:
            Dictionary of member weights
        """
        stack = self.build_data_stack(train)
        names = [c for c in stack.columns if c != 'label']
        Z = stack[names].to_numpy()
        y = stack['label'].to_numpy().astype(int)

        if self.verbose:
            print(f"\n🧱 Blending {len(names)} candidates on {len(stack)} training rows...")

        scores = [{'penalty': p, 'roc_auc': self._penalty_score(Z, y, p)} for p in self.penalties]
        self.penalty_scores_ = pd.DataFrame(scores)

        best = self.penalty_scores_.dropna(subset=['roc_auc'])
        if best.empty:
            raise ValueError("Meta-model could not be scored for any penalty")
        best = best.sort_values(['roc_auc', 'penalty'], ascending=[False, False]).iloc[0]
        self.penalty_ = float(best['penalty'])

        self.intercept_, weights = fit_nonnegative_logistic(Z, y, self.penalty_)
        self.weights_ = dict(zip(names, weights.tolist()))

        if self.verbose:
            active = {k: round(v, 4) for k, v in self.weights_.items() if v > 0}
            print(f"   ✅ Penalty {self.penalty_:.0e} (resampled AUC {best['roc_auc']:.4f})")
            print(f"   📊 Members with non-zero weight: {len(active)}/{len(names)} {active}")

        return self.weights_

    def fit_members(self, train: BiomarkerDataset) -> StackedEnsemble:
        """
        Refit members with non-zero weight on the full training partition.

        Args:
            train: Training partition

        Returns:
            Fitted StackedEnsemble
        """
        if self.weights_ is None:
            self.blend_predictions(train)

        members = {}
        for name, weight in self.weights_.items():
            if weight <= 0:
                continue
            pipeline = self.candidates[name].config.build_pipeline()
            with warnings.catch_warnings():
                warnings.simplefilter('ignore')
                pipeline.fit(train.X, train.y.to_numpy())
            members[name] = pipeline
            if self.verbose:
                print(f"   🔧 Refit {name} on {train.n_samples} rows")

        return StackedEnsemble(
            intercept=self.intercept_,
            weights=dict(self.weights_),
            members=members,
            configs={name: c.config for name, c in self.candidates.items()},
            penalty=self.penalty_,
            penalty_scores=self.penalty_scores_,
        )

    def compare_with_best_member(self, metric: str = 'roc_auc') -> Tuple[pd.DataFrame, Dict[str, Any]]:
        """
        Paired comparison of the blended ensemble against its best single member.

        On each shared replicate the out-of-bag predictions of the members
        with non-zero weight are blended with the fitted weights and scored;
        the best member (highest mean metric) is scored on the same rows of
        the same replicate. The matched differences are tested with a paired
        t-test.

        Args:
            metric: Metric compared ('roc_auc', 'accuracy', ...)

        Returns:
            Tuple of (per-resample frame, paired test result)
        """
        if self.weights_ is None:
            raise ValueError("Call blend_predictions before comparing with members")
        active = [name for name, w in self.weights_.items() if w > 0]
        if not active:
            raise ValueError("The ensemble has no members with non-zero weight")

        scored = {name: c for name, c in self.candidates.items() if np.isfinite(c.score(metric))}
        if not scored:
            raise ValueError(f"No candidate produced a valid {metric}")
        best_name = max(scored, key=lambda name: scored[name].score(metric))

        names = list(dict.fromkeys(active + [best_name]))
        frames = [self.candidates[name].predictions.assign(member=name) for name in names]
        wide = pd.concat(frames, ignore_index=True).pivot_table(
            index=['resample_id', 'row', 'y_true'], columns='member', values='prob'
        ).reset_index()

        w = np.array([self.weights_[name] for name in active])
        rows = []
        for resample_id in next(iter(self.candidates.values())).resample_ids:
            group = wide[wide['resample_id'] == resample_id].dropna(subset=names)
            if group.empty:
                ensemble_score = member_score = np.nan
            else:
                y_true = group['y_true'].to_numpy()
                blended = expit(self.intercept_ + group[active].to_numpy() @ w)
                ensemble_score = StatisticalAnalyzer.classification_metrics(y_true, blended)[metric]
                member_score = StatisticalAnalyzer.classification_metrics(
                    y_true, group[best_name].to_numpy())[metric]
            rows.append({
                'resample_id': resample_id,
                'ensemble': ensemble_score,
                'best_member': member_score,
                'difference': ensemble_score - member_score,
            })

        table = pd.DataFrame(rows)
        result = StatisticalAnalyzer().paired_difference_test(table['ensemble'], table['best_member'])
        result.update({'best_member': best_name, 'metric': metric})

        if self.verbose:
            print(f"   ⚖️ Ensemble vs {best_name}: mean {metric} difference "
                  f"{result['mean_difference']:+.4f} over {result['n_pairs']} resamples "
                  f"(p={result['p_value']:.3g})")

        return table, result
