"""
bloompipe.evaluation
====================
Classification metrics, confusion matrices and held-out evaluation.

Metrics
-------
``high`` is the event (positive) class throughout.

* **accuracy**     — (TP + TN) / n
* **sensitivity**  — TP / (TP + FN)
* **specificity**  — TN / (TN + FP)
* **precision**    — TP / (TP + FP)
* **recall**       — TP / (TP + FN)  (same quantity as sensitivity)
* **f_measure**    — harmonic mean of precision and recall

Undefined ratios (empty denominators) are reported as 0.

Confusion matrix layout
-----------------------
Rows are the **predicted** class, columns the **true** class, both in the
order ``["high", "low"]``.

Public API
----------
compute_metrics(y_true, y_pred)             → dict
confusion_frame(y_true, y_pred)             → 2×2 DataFrame
average_metrics(list_of_dicts)              → dict (mean per metric)
resampled_confusion(list_of_frames)         → {"sum": ..., "mean": ...}
evaluate(fitted_model, X_test, y_test)      → EvaluationResult
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Sequence

import numpy as np
import pandas as pd
from sklearn.metrics import (
    accuracy_score,
    confusion_matrix,
    f1_score,
    precision_score,
    recall_score,
)

from .config import CLASS_LEVELS, HIGH, LOW, METRIC_NAMES
from .models.base import FittedModel


# ======================================================================== #
#  Metrics                                                                  #
# ======================================================================== #

def compute_metrics(y_true, y_pred) -> Dict[str, float]:
    """
    Compute the metric set for ``"high"`` / ``"low"`` labels.

    Returns
    -------
    dict
        Keys: ``accuracy, sensitivity, specificity, precision, recall,
        f_measure``.
    """
    y_true = np.asarray(y_true, dtype=object)
    y_pred = np.asarray(y_pred, dtype=object)

    metrics: Dict[str, float] = {}
    metrics["accuracy"] = float(accuracy_score(y_true, y_pred))
    metrics["sensitivity"] = float(
        recall_score(y_true, y_pred, pos_label=HIGH, zero_division=0)
    )
    metrics["specificity"] = float(
        recall_score(y_true, y_pred, pos_label=LOW, zero_division=0)
    )
    metrics["precision"] = float(
        precision_score(y_true, y_pred, pos_label=HIGH, zero_division=0)
    )
    metrics["recall"] = metrics["sensitivity"]
    metrics["f_measure"] = float(
        f1_score(y_true, y_pred, pos_label=HIGH, zero_division=0)
    )
    return metrics


def confusion_frame(y_true, y_pred) -> pd.DataFrame:
    """2×2 counts, rows = predicted, columns = truth."""
    cm = confusion_matrix(
        np.asarray(y_true, dtype=object),
        np.asarray(y_pred, dtype=object),
        labels=CLASS_LEVELS,
    )
    # sklearn puts truth on rows
    return pd.DataFrame(
        cm.T,
        index=pd.Index(CLASS_LEVELS, name="predicted"),
        columns=pd.Index(CLASS_LEVELS, name="truth"),
    )


def average_metrics(fold_metrics: Sequence[Dict[str, float]]) -> Dict[str, float]:
    """Mean of each metric across folds (order-independent)."""
    if not fold_metrics:
        return {}
    return {
        name: float(np.mean([m[name] for m in fold_metrics]))
        for name in METRIC_NAMES
    }


def resampled_confusion(frames: List[pd.DataFrame]) -> Dict[str, pd.DataFrame]:
    """Fold confusion matrices summed, and averaged per fold."""
    total = sum(frames[1:], frames[0].copy())
    return {"sum": total, "mean": total / len(frames)}


# ======================================================================== #
#  Held-out evaluation                                                      #
# ======================================================================== #

@dataclass
class EvaluationResult:
    predictions: pd.DataFrame        # predicted_label, prob_high, true_label
    metrics: Dict[str, float]
    confusion: pd.DataFrame


def evaluate(
    model: FittedModel,
    X_test: pd.DataFrame,
    y_test: pd.Series,
) -> EvaluationResult:
    """
    Score a fitted model on preprocessed held-out rows.

    Neither ``model`` nor the inputs are modified.
    """
    preds = model.predict(X_test)
    preds["true_label"] = np.asarray(y_test, dtype=object)
    return EvaluationResult(
        predictions=preds,
        metrics=compute_metrics(y_test, preds["predicted_label"]),
        confusion=confusion_frame(y_test, preds["predicted_label"]),
    )
