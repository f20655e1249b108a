"""
Models module for the pelvic mass analysis.
Contains the model families, hyperparameter search, stacking and evaluation.
"""

from .families import *
from .search import *
from .tuning import *
from .ensemble import *
from .evaluation import *

__all__ = [
    # Model families
    'ModelFamily',
    'FAMILIES',
    'get_family',

    # Search
    'Real',
    'Integer',
    'Categorical',
    'SearchSpace',
    'BayesianOptimizer',
    'NoImprovementStopper',
    'Trial',

    # Tuning
    'CandidateConfig',
    'ModelCandidate',
    'ModelTuner',
    'TuningResult',
    'evaluate_candidate',

    # Stacking
    'EnsembleStacker',
    'StackedEnsemble',
    'fit_nonnegative_logistic',

    # Evaluation
    'evaluate_on_test',
    'permutation_importance_table',
]
