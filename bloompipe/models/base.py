"""
bloompipe.models.base
=====================
Common interface shared by every classifier family, and the fitted-model
artefact handed to the evaluator.

Every family implements::

    fit(X, y)          → self          (y holds "high" / "low")
    predict_proba(X)   → np.ndarray    (probability of "high", shape (n,))

so the trainer and evaluator never branch on the family.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Tuple

import numpy as np
import pandas as pd

from ..config import HIGH, LOW, ModelFamily
from ..errors import TrainingDivergedError


class BloomClassifier:
    """Base class: binary classifier scoring the ``high`` class."""

    family: ModelFamily

    def fit(self, X: pd.DataFrame, y: pd.Series) -> "BloomClassifier":
        raise NotImplementedError

    def predict_proba(self, X: pd.DataFrame) -> np.ndarray:
        raise NotImplementedError

    def get_params(self) -> Dict[str, Any]:
        raise NotImplementedError

    # -- helpers for subclasses --
    @staticmethod
    def _encode(y) -> np.ndarray:
        """``"high"`` → 1, ``"low"`` → 0."""
        y = np.asarray(y)
        unknown = set(np.unique(y)) - {HIGH, LOW}
        if unknown:
            raise ValueError(f"Unexpected class labels: {sorted(unknown)}")
        return (y == HIGH).astype(np.int64)

    def _check_proba(self, proba: np.ndarray) -> np.ndarray:
        proba = np.asarray(proba, dtype=np.float64)
        if not np.all(np.isfinite(proba)):
            raise TrainingDivergedError(
                "Model returned non-finite probabilities.",
                family=self.family.value,
                context={"params": self.get_params()},
            )
        return proba


@dataclass
class FittedModel:
    """
    Deployable artefact: a family fitted on the full preprocessed
    training set, plus what is needed to use it on new rows.
    """

    family: ModelFamily
    params: Dict[str, Any]
    estimator: BloomClassifier
    feature_names: Tuple[str, ...]
    threshold: float = 0.5
    cv_summary: Dict[str, Any] = field(default_factory=dict)

    def predict_proba(self, X: pd.DataFrame) -> np.ndarray:
        X = X.reindex(columns=list(self.feature_names), fill_value=0.0)
        return self.estimator.predict_proba(X)

    def predict(self, X: pd.DataFrame) -> pd.DataFrame:
        """
        Per row: ``predicted_label`` and ``prob_high``, indexed like ``X``.
        """
        proba = self.predict_proba(X)
        labels = np.where(proba >= self.threshold, HIGH, LOW)
        return pd.DataFrame(
            {"predicted_label": labels, "prob_high": proba},
            index=X.index,
        )
