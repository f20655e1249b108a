"""
Analysis modules: per-variable significance ranking and leave-one-variable-out
performance estimation.
"""

from .significance import VariableSignificanceRanker
from .ablation import LeaveOneOutEstimator, build_configurations, FULL_MODEL

__all__ = [
    'VariableSignificanceRanker',
    'LeaveOneOutEstimator',
    'build_configurations',
    'FULL_MODEL',
]
