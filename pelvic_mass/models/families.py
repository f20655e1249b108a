"""
Model families for tuning and stacking.

Every family implements the same interface: a default search grid, a
Bayesian search space, and `build_pipeline`, which assembles predictor
selection, preprocessing and the estimator into one scikit-learn Pipeline.
Preprocessing lives inside the pipeline so it is fit only on the rows the
pipeline is trained on.
"""

from typing import Dict, List, Any, Optional

import xgboost as xgb
from sklearn.ensemble import RandomForestClassifier
from sklearn.impute import SimpleImputer, KNNImputer
from sklearn.linear_model import LogisticRegression
from sklearn.naive_bayes import GaussianNB
from sklearn.neural_network import MLPClassifier
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import StandardScaler, PowerTransformer
from sklearn.svm import SVC
from sklearn.tree import DecisionTreeClassifier

from .rules import RuleFitClassifier
from .search import SearchSpace, Real, Integer, Categorical
from .transformers import ColumnSubset, SplineBasisExpander


class ModelFamily:
    """Common interface of a tunable model family."""

    name: str = ''
    label: str = ''

    def param_grid(self) -> Dict[str, List[Any]]:
        raise NotImplementedError

    def search_space(self) -> SearchSpace:
        raise NotImplementedError

    def preprocessing(self, params: Dict[str, Any]) -> List[tuple]:
        return [('impute', SimpleImputer(strategy='median'))]

    def estimator(self, params: Dict[str, Any], predictors: List[str],
                  random_state: Optional[int]):
        raise NotImplementedError

    def build_pipeline(self, params: Dict[str, Any], predictors: List[str],
                       random_state: Optional[int] = None) -> Pipeline:
        """
        Assemble the full pipeline for one configuration.

        Args:
            params: Hyperparameter configuration
            predictors: Explicit predictor subset used by the model
            random_state: Random seed of the estimator

        Returns:
            Unfitted scikit-learn Pipeline
        """
        steps = [('select', ColumnSubset(columns=list(predictors)))]
        steps += self.preprocessing(params)
        steps.append(('model', self.estimator(params, list(predictors), random_state)))
        return Pipeline(steps)

    def __repr__(self):
        return f"{self.__class__.__name__}(name='{self.name}')"


class RandomForestFamily(ModelFamily):
    name = 'random_forest'
    label = 'Random Forest'

    def param_grid(self):
        return {
            'max_features': [0.3, 0.6, 1.0],
            'min_samples_leaf': [1, 5, 10],
        }

    def search_space(self):
        return SearchSpace({
            'max_features': Real(0.1, 1.0),
            'min_samples_leaf': Integer(1, 20),
        })

    def estimator(self, params, predictors, random_state):
        return RandomForestClassifier(
            n_estimators=params.get('n_estimators', 500),
            max_features=params.get('max_features', 'sqrt'),
            min_samples_leaf=params.get('min_samples_leaf', 1),
            random_state=random_state,
            n_jobs=1
        )


class XGBoostFamily(ModelFamily):
    name = 'xgboost'
    label = 'Gradient Boosting'

    def param_grid(self):
        return {
            'max_depth': [2, 4, 6],
            'learning_rate': [0.05, 0.1, 0.3],
            'n_estimators': [100, 300],
        }

    def search_space(self):
        return SearchSpace({
            'learning_rate': Real(0.01, 0.3, log=True),
            'max_depth': Integer(1, 8),
            'min_child_weight': Integer(1, 10),
            'subsample': Real(0.5, 1.0),
            'n_estimators': Integer(50, 500),
        })

    def preprocessing(self, params):
        # XGBoost handles missing values natively
        return []

    def estimator(self, params, predictors, random_state):
        return xgb.XGBClassifier(
            objective='binary:logistic',
            eval_metric='logloss',
            max_depth=params.get('max_depth', 4),
            learning_rate=params.get('learning_rate', 0.1),
            n_estimators=params.get('n_estimators', 100),
            min_child_weight=params.get('min_child_weight', 1),
            subsample=params.get('subsample', 1.0),
            random_state=random_state,
            n_jobs=1
        )


class ElasticNetFamily(ModelFamily):
    name = 'elastic_net'
    label = 'Elastic Net'

    def param_grid(self):
        return {
            'C': [0.01, 0.1, 1.0, 10.0],
            'l1_ratio': [0.0, 0.5, 1.0],
        }

    def search_space(self):
        return SearchSpace({
            'C': Real(1e-3, 1e2, log=True),
            'l1_ratio': Real(0.0, 1.0),
        })

    def preprocessing(self, params):
        return [
            ('impute', SimpleImputer(strategy='median')),
            ('yeo_johnson', PowerTransformer(method='yeo-johnson', standardize=True)),
        ]

    def estimator(self, params, predictors, random_state):
        return LogisticRegression(
            penalty='elasticnet',
            solver='saga',
            C=params.get('C', 1.0),
            l1_ratio=params.get('l1_ratio', 0.5),
            max_iter=5000,
            random_state=random_state
        )


class DecisionTreeFamily(ModelFamily):
    name = 'decision_tree'
    label = 'Decision Tree'

    def param_grid(self):
        return {
            'max_depth': [2, 4, 8],
            'min_samples_leaf': [2, 10],
            'ccp_alpha': [0.0, 0.001, 0.01],
        }

    def search_space(self):
        return SearchSpace({
            'max_depth': Integer(1, 15),
            'min_samples_leaf': Integer(1, 20),
            'ccp_alpha': Real(1e-5, 0.1, log=True),
        })

    def estimator(self, params, predictors, random_state):
        return DecisionTreeClassifier(
            max_depth=params.get('max_depth'),
            min_samples_leaf=params.get('min_samples_leaf', 1),
            ccp_alpha=params.get('ccp_alpha', 0.0),
            random_state=random_state
        )


class MarsFamily(ModelFamily):
    """Additive piecewise-linear/quadratic spline logistic model (MARS-style)."""

    name = 'mars'
    label = 'MARS'

    def param_grid(self):
        return {
            'n_knots': [1, 3, 5],
            'degree': [1, 2],
            'C': [0.1, 1.0, 10.0],
        }

    def search_space(self):
        return SearchSpace({
            'n_knots': Integer(0, 8),
            'degree': Categorical([1, 2]),
            'C': Real(1e-2, 1e2, log=True),
        })

    def preprocessing(self, params):
        return [
            ('impute', SimpleImputer(strategy='median')),
            ('splines', SplineBasisExpander(n_knots=params.get('n_knots', 3),
                                            degree=params.get('degree', 1))),
            ('scale', StandardScaler()),
        ]

    def estimator(self, params, predictors, random_state):
        return LogisticRegression(C=params.get('C', 1.0), max_iter=5000,
                                  random_state=random_state)


class NaiveBayesFamily(ModelFamily):
    name = 'naive_bayes'
    label = 'Naive Bayes'

    def param_grid(self):
        return {
            'var_smoothing': [1e-9, 1e-6, 1e-3, 1e-1],
            'n_neighbors': [5],
        }

    def search_space(self):
        return SearchSpace({
            'var_smoothing': Real(1e-10, 1.0, log=True),
            'n_neighbors': Integer(2, 15),
        })

    def preprocessing(self, params):
        return [
            ('impute', KNNImputer(n_neighbors=params.get('n_neighbors', 5))),
            ('yeo_johnson', PowerTransformer(method='yeo-johnson', standardize=True)),
        ]

    def estimator(self, params, predictors, random_state):
        return GaussianNB(var_smoothing=params.get('var_smoothing', 1e-9))


class NeuralNetFamily(ModelFamily):
    name = 'neural_net'
    label = 'Neural Network'

    def param_grid(self):
        return {
            'hidden_units': [5, 10],
            'alpha': [1e-4, 1e-2, 1.0],
        }

    def search_space(self):
        return SearchSpace({
            'hidden_units': Integer(2, 20),
            'alpha': Real(1e-5, 10.0, log=True),
            'learning_rate_init': Real(1e-4, 1e-1, log=True),
        })

    def preprocessing(self, params):
        return [
            ('impute', SimpleImputer(strategy='median')),
            ('scale', StandardScaler()),
        ]

    def estimator(self, params, predictors, random_state):
        return MLPClassifier(
            hidden_layer_sizes=(int(params.get('hidden_units', 10)),),
            alpha=params.get('alpha', 1e-4),
            learning_rate_init=params.get('learning_rate_init', 1e-3),
            max_iter=2000,
            random_state=random_state
        )


class SVMFamily(ModelFamily):
    name = 'svm'
    label = 'Support Vector Machine'

    def param_grid(self):
        return {
            'C': [0.25, 1.0, 4.0, 16.0],
            'gamma': ['scale', 0.01, 0.1],
        }

    def search_space(self):
        return SearchSpace({
            'C': Real(1e-2, 1e2, log=True),
            'gamma': Real(1e-4, 1.0, log=True),
        })

    def preprocessing(self, params):
        return [
            ('impute', SimpleImputer(strategy='median')),
            ('scale', StandardScaler()),
        ]

    def estimator(self, params, predictors, random_state):
        return SVC(
            kernel='rbf',
            C=params.get('C', 1.0),
            gamma=params.get('gamma', 'scale'),
            probability=True,
            random_state=random_state
        )


class RuleBasedFamily(ModelFamily):
    name = 'rule_based'
    label = 'Rule-Based'

    def param_grid(self):
        return {
            'n_trees': [25, 50],
            'max_depth': [2, 3],
            'C': [0.05, 0.5],
        }

    def search_space(self):
        return SearchSpace({
            'n_trees': Integer(10, 100),
            'max_depth': Integer(1, 4),
            'C': Real(1e-2, 10.0, log=True),
        })

    def estimator(self, params, predictors, random_state):
        return RuleFitClassifier(
            n_trees=params.get('n_trees', 50),
            max_depth=params.get('max_depth', 3),
            C=params.get('C', 0.1),
            feature_names=list(predictors),
            random_state=random_state
        )


class LogisticFamily(ModelFamily):
    """Plain logistic regression used by the leave-one-out ablation."""

    name = 'logistic'
    label = 'Logistic Regression'

    def param_grid(self):
        return {'C': [1.0]}

    def search_space(self):
        return SearchSpace({'C': Real(1e-3, 1e3, log=True)})

    def preprocessing(self, params):
        return [
            ('impute', SimpleImputer(strategy='median')),
            ('scale', StandardScaler()),
        ]

    def estimator(self, params, predictors, random_state):
        return LogisticRegression(C=params.get('C', 1.0), max_iter=5000,
                                  random_state=random_state)


FAMILIES: Dict[str, ModelFamily] = {
    family.name: family for family in [
        RandomForestFamily(), XGBoostFamily(), ElasticNetFamily(),
        DecisionTreeFamily(), MarsFamily(), NaiveBayesFamily(),
        NeuralNetFamily(), SVMFamily(), RuleBasedFamily(), LogisticFamily(),
    ]
}


def get_family(name: str) -> ModelFamily:
    """Look up a model family by name."""
    if name not in FAMILIES:
        raise ValueError(f"Unknown model family '{name}'. Available: {sorted(FAMILIES)}")
    return FAMILIES[name]
