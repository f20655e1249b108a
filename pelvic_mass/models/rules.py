"""
Rule-based classifier for the rule-based model family.

Rules are the conjunctions of split conditions leading to each node of a
set of shallow boosted trees. Rule indicators and the standardized linear
terms are combined in an L1-penalized logistic regression, so only a sparse
set of rules carries weight.
"""

import numpy as np
import pandas as pd
from typing import List, Optional, Dict
from scipy import sparse
from sklearn.base import BaseEstimator, ClassifierMixin
from sklearn.ensemble import GradientBoostingClassifier
from sklearn.linear_model import LogisticRegression
from sklearn.preprocessing import StandardScaler


class RuleFitClassifier(BaseEstimator, ClassifierMixin):
    """
    Sparse rule ensemble for binary classification.

    Args:
        n_trees: Number of boosted trees used to generate rules
        max_depth: Depth of each tree (maximum rule length)
        C: Inverse L1 penalty strength of the rule-selection model
        learning_rate: Shrinkage of the rule-generating boosting
        subsample: Row fraction per tree (adds rule diversity)
        feature_names: Optional names used in rule descriptions
        random_state: Random seed
    """

    def __init__(self, n_trees: int = 50, max_depth: int = 3, C: float = 0.1,
                 learning_rate: float = 0.1, subsample: float = 0.5,
                 feature_names: Optional[List[str]] = None,
                 random_state: Optional[int] = None):
        self.n_trees = n_trees
        self.max_depth = max_depth
        self.C = C
        self.learning_rate = learning_rate
        self.subsample = subsample
        self.feature_names = feature_names
        self.random_state = random_state

    def _rule_matrix(self, X: np.ndarray):
        blocks = []
        for est in self.generator_.estimators_[:, 0]:
            path = est.decision_path(X)
            # Drop the root node, which every sample reaches
            blocks.append(path[:, 1:])
        return sparse.hstack(blocks).tocsr()

    def _design(self, X: np.ndarray):
        rules = self._rule_matrix(X)
        linear = sparse.csr_matrix(self.scaler_.transform(X))
        return sparse.hstack([rules, linear]).tocsr()

    def fit(self, X, y):
        X = np.asarray(X, dtype=float)
        y = np.asarray(y)
        self.classes_ = np.unique(y)
        if len(self.classes_) != 2:
            raise ValueError(f"RuleFitClassifier needs two classes, got {self.classes_.tolist()}")

        self.generator_ = GradientBoostingClassifier(
            n_estimators=self.n_trees, max_depth=self.max_depth,
            learning_rate=self.learning_rate, subsample=self.subsample,
            random_state=self.random_state
        )
        self.generator_.fit(X, y)
        self.scaler_ = StandardScaler().fit(X)

        self.selector_ = LogisticRegression(
            penalty='l1', solver='liblinear', C=self.C,
            max_iter=5000, random_state=self.random_state
        )
        self.selector_.fit(self._design(X), y)
        self.n_features_in_ = X.shape[1]
        return self

    def predict_proba(self, X) -> np.ndarray:
        X = np.asarray(X, dtype=float)
        return self.selector_.predict_proba(self._design(X))

    def predict(self, X) -> np.ndarray:
        proba = self.predict_proba(X)
        return self.classes_[np.argmax(proba, axis=1)]

    def _describe_tree_nodes(self, tree) -> List[str]:
        names = self.feature_names or [f"x{i}" for i in range(self.n_features_in_)]
        t = tree.tree_
        conditions: Dict[int, List[str]] = {0: []}
        stack = [0]
        while stack:
            node = stack.pop()
            left, right = t.children_left[node], t.children_right[node]
            if left == right:
                continue
            name, thr = names[t.feature[node]], t.threshold[node]
            conditions[left] = conditions[node] + [f"{name} <= {thr:.4g}"]
            conditions[right] = conditions[node] + [f"{name} > {thr:.4g}"]
            stack.extend([left, right])
        return [" & ".join(conditions[n]) for n in range(1, t.node_count)]

    def get_rules(self, exclude_zero: bool = True) -> pd.DataFrame:
        """
        Rules and linear terms with their coefficients.

        Args:
            exclude_zero: Drop terms the L1 penalty removed

        Returns:
            DataFrame with rule text, type and coefficient
        """
        descriptions = []
        for est in self.generator_.estimators_[:, 0]:
            descriptions.extend(self._describe_tree_nodes(est))
        names = self.feature_names or [f"x{i}" for i in range(self.n_features_in_)]

        coef = self.selector_.coef_.ravel()
        table = pd.DataFrame({
            'rule': descriptions + list(names),
            'type': ['rule'] * len(descriptions) + ['linear'] * len(names),
            'coefficient': coef,
        })
        if exclude_zero:
            table = table[table['coefficient'] != 0]
        table = table.reindex(table['coefficient'].abs().sort_values(ascending=False).index)
        return table.reset_index(drop=True)

    @property
    def feature_importances_(self) -> np.ndarray:
        """Absolute linear-term coefficients plus rule coefficients per input variable."""
        importances = np.zeros(self.n_features_in_)
        coef = self.selector_.coef_.ravel()
        offset = 0
        for est in self.generator_.estimators_[:, 0]:
            t = est.tree_
            # Attribute each rule node to the variable split at its parent
            parents = np.full(t.node_count, -1)
            for node in range(t.node_count):
                for child in (t.children_left[node], t.children_right[node]):
                    if child != -1:
                        parents[child] = node
            for node in range(1, t.node_count):
                importances[t.feature[parents[node]]] += abs(coef[offset + node - 1])
            offset += t.node_count - 1
        importances += np.abs(coef[offset:])
        total = importances.sum()
        return importances / total if total > 0 else importances

