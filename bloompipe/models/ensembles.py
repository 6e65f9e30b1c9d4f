"""
bloompipe.models.ensembles
==========================
Tree-ensemble families backed by scikit-learn.

**RandomForestFamily** — ``RandomForestClassifier``; tree count and the
number of features drawn per split.

**BaggedTreesFamily** — ``BaggingClassifier`` over
``DecisionTreeClassifier``; bag count plus the tree's cost-complexity,
depth and minimum split size.
"""

from __future__ import annotations

from typing import Optional

import numpy as np
from sklearn.ensemble import BaggingClassifier, RandomForestClassifier
from sklearn.tree import DecisionTreeClassifier

from ..config import ModelFamily
from .base import BloomClassifier


class _SklearnFamily(BloomClassifier):
    """Shared fit / predict_proba around a scikit-learn estimator."""

    def _build(self, n_features: int):
        raise NotImplementedError

    def fit(self, X, y):
        y_bin = self._encode(y)
        self.model_ = self._build(X.shape[1])
        self.model_.fit(np.asarray(X, dtype=np.float64), y_bin)
        return self

    def predict_proba(self, X):
        proba = self.model_.predict_proba(np.asarray(X, dtype=np.float64))
        classes = list(self.model_.classes_)
        if 1 not in classes:
            return self._check_proba(np.zeros(len(X)))
        return self._check_proba(proba[:, classes.index(1)])


class RandomForestFamily(_SklearnFamily):
    family = ModelFamily.RANDOM_FOREST

    def __init__(
        self,
        n_estimators: int = 500,
        max_features: Optional[int] = 3,
        min_samples_leaf: int = 1,
        random_state: int = 42,
        n_jobs: int = 1,
    ):
        self.n_estimators = n_estimators
        self.max_features = max_features
        self.min_samples_leaf = min_samples_leaf
        self.random_state = random_state
        self.n_jobs = n_jobs

    def _build(self, n_features):
        max_features = self.max_features
        if isinstance(max_features, (int, np.integer)):
            max_features = int(min(max(max_features, 1), n_features))
        return RandomForestClassifier(
            n_estimators=int(self.n_estimators),
            max_features=max_features,
            min_samples_leaf=int(self.min_samples_leaf),
            random_state=self.random_state,
            n_jobs=self.n_jobs,
        )

    def get_params(self):
        return {
            "n_estimators": self.n_estimators,
            "max_features": self.max_features,
            "min_samples_leaf": self.min_samples_leaf,
        }


class BaggedTreesFamily(_SklearnFamily):
    family = ModelFamily.BAGGED_TREES

    def __init__(
        self,
        n_bags: int = 25,
        ccp_alpha: float = 0.0,
        max_depth: Optional[int] = None,
        min_samples_split: int = 2,
        random_state: int = 42,
        n_jobs: int = 1,
    ):
        self.n_bags = n_bags
        self.ccp_alpha = ccp_alpha
        self.max_depth = max_depth
        self.min_samples_split = min_samples_split
        self.random_state = random_state
        self.n_jobs = n_jobs

    def _build(self, n_features):
        tree = DecisionTreeClassifier(
            ccp_alpha=float(self.ccp_alpha),
            max_depth=None if self.max_depth is None else int(self.max_depth),
            min_samples_split=int(self.min_samples_split),
        )
        return BaggingClassifier(
            estimator=tree,
            n_estimators=int(self.n_bags),
            random_state=self.random_state,
            n_jobs=self.n_jobs,
        )

    def get_params(self):
        return {
            "n_bags": self.n_bags,
            "ccp_alpha": self.ccp_alpha,
            "max_depth": self.max_depth,
            "min_samples_split": self.min_samples_split,
        }
