"""
Held-out test set evaluation of the stacked ensemble and its members.
"""

import numpy as np
import pandas as pd
from typing import Dict, Any

from sklearn.inspection import permutation_importance
from sklearn.metrics import roc_auc_score, roc_curve, confusion_matrix

from ..data.loader import BiomarkerDataset
from ..utils.statistics import StatisticalAnalyzer
from ..config.settings import AnalysisConfig
from .ensemble import StackedEnsemble

ENSEMBLE_NAME = 'ensemble'


def _outcome(y_true: int, y_pred: int) -> str:
    if y_true == 1:
        return 'TP' if y_pred == 1 else 'FN'
    return 'FP' if y_pred == 1 else 'TN'


def evaluate_on_test(ensemble: StackedEnsemble, test: BiomarkerDataset,
                     threshold: float = AnalysisConfig.PROBABILITY_THRESHOLD,
                     verbose: bool = True) -> Dict[str, Any]:
    """
    Evaluate the ensemble and each active member on the test partition.

    Args:
        ensemble: Fitted stacked ensemble
        test: Held-out test partition
        threshold: Probability threshold for class predictions
        verbose: Whether to print the results

    Returns:
        Dictionary with the AUC table, confusion matrix, per-row predictions,
        ROC curve points and ensemble metrics
    """
    y = test.y.to_numpy()
    if len(np.unique(y)) < 2:
        raise ValueError("Test partition must contain both classes to compute AUC")

    member_preds = ensemble.member_predictions(test.X)
    ensemble_prob = ensemble.predict_proba(test.X)[:, 1]

    auc_rows = []
    roc_curves = {}
    for name in member_preds.columns:
        prob = member_preds[name].to_numpy()
        auc_rows.append({'model': name, 'family': ensemble.configs[name].family,
                         'weight': ensemble.weights[name], 'roc_auc': roc_auc_score(y, prob)})
        fpr, tpr, _ = roc_curve(y, prob)
        roc_curves[name] = pd.DataFrame({'fpr': fpr, 'tpr': tpr})

    auc_rows.append({'model': ENSEMBLE_NAME, 'family': ENSEMBLE_NAME, 'weight': np.nan,
                     'roc_auc': roc_auc_score(y, ensemble_prob)})
    fpr, tpr, _ = roc_curve(y, ensemble_prob)
    roc_curves[ENSEMBLE_NAME] = pd.DataFrame({'fpr': fpr, 'tpr': tpr})

    y_pred = (ensemble_prob >= threshold).astype(int)
    cm = confusion_matrix(y, y_pred, labels=[0, 1])
    names = [test.label_names[0], test.label_names[1]]
    cm_frame = pd.DataFrame(cm, index=[f"true_{n}" for n in names],
                            columns=[f"pred_{n}" for n in names])

    predictions = test.X.copy()
    predictions['y_true'] = y
    predictions['prob'] = ensemble_prob
    predictions['y_pred'] = y_pred
    predictions['outcome'] = [_outcome(t, p) for t, p in zip(y, y_pred)]

    metrics = StatisticalAnalyzer.classification_metrics(y, ensemble_prob, threshold=threshold)
    auc_table = pd.DataFrame(auc_rows).sort_values('roc_auc', ascending=False).reset_index(drop=True)

    if verbose:
        print("\n📋 Test set evaluation:")
        for _, row in auc_table.iterrows():
            print(f"   {row['model']:<30} AUC={row['roc_auc']:.4f}")
        print(f"   🎯 Ensemble accuracy={metrics['accuracy']:.4f} "
              f"sensitivity={metrics['sensitivity']:.4f} specificity={metrics['specificity']:.4f}")
        print(f"   Confusion matrix (threshold {threshold}):")
        print(cm_frame.to_string())

    return {
        'auc_table': auc_table,
        'confusion_matrix': cm_frame,
        'predictions': predictions,
        'roc_curves': roc_curves,
        'metrics': metrics,
    }


def _auc_scorer(estimator, X, y) -> float:
    return roc_auc_score(y, estimator.predict_proba(X)[:, 1])


def permutation_importance_table(ensemble: StackedEnsemble, test: BiomarkerDataset,
                                 n_repeats: int = 10,
                                 random_state: int = AnalysisConfig.RANDOM_SEED) -> pd.DataFrame:
    """
    Permutation variable importance of the ensemble (AUC decrease).

    Args:
        ensemble: Fitted stacked ensemble
        test: Data on which predictors are permuted
        n_repeats: Permutations per predictor
        random_state: Random seed

    Returns:
        DataFrame with mean and std importance per predictor, largest first
    """
    result = permutation_importance(
        ensemble, test.X, test.y.to_numpy(), scoring=_auc_scorer,
        n_repeats=n_repeats, random_state=random_state
    )
    table = pd.DataFrame({
        'variable': test.predictors,
        'importance_mean': result.importances_mean,
        'importance_std': result.importances_std,
    })
    return table.sort_values('importance_mean', ascending=False).reset_index(drop=True)
