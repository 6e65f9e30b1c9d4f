"""
bloompipe.training
==================
Model trainer: stratified k-fold cross-validation and the final refit.

Resampling protocol
-------------------
The trainer receives the training subset **after** the fitted transform
chain but **before** upsampling.  For every fold:

.. code-block:: text

    analysis rows   → upsample (train-only step) → fit
    assessment rows → natural class balance      → predict → metrics

The final model is refit on *all* training rows (upsampled the same way)
with the chosen hyperparameters.  Folds are independent and may run in
parallel (``n_jobs``); results are collected in fold order, so the
averaged metrics are identical for any ``n_jobs``.

Public API
----------
cross_validate(family, params, train_df, state, folds, seed, threshold) → CVResult
fit_final(family, params, train_df, state, seed, threshold)         → FittedModel
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from joblib import Parallel, delayed

from .config import HIGH, LOW, ModelFamily
from .evaluation import (
    average_metrics,
    compute_metrics,
    confusion_frame,
    resampled_confusion,
)
from .models.base import FittedModel
from .models.registry import instantiate_model, resolve_params
from .preprocessing import PreprocessingState, resample, split_xy


@dataclass
class CVResult:
    """Fold-level and averaged resampling results for one configuration."""

    family: ModelFamily
    params: Dict[str, Any]
    fold_metrics: List[Dict[str, float]]
    mean_metrics: Dict[str, float]
    confusion_sum: pd.DataFrame
    confusion_mean: pd.DataFrame
    threshold: float = 0.5

    def score(self, metric: str) -> float:
        return self.mean_metrics[metric]

    def summary(self) -> Dict[str, Any]:
        row: Dict[str, Any] = {"family": self.family.value}
        row.update({f"cv_{k}": v for k, v in self.mean_metrics.items()})
        return row


# ======================================================================== #
#  Cross-validation                                                         #
# ======================================================================== #

def cross_validate(
    family: ModelFamily,
    params: Optional[Dict[str, Any]],
    train_df: pd.DataFrame,
    state: PreprocessingState,
    folds: Sequence[Tuple[np.ndarray, np.ndarray]],
    seed: int,
    n_jobs: int = 1,
    threshold: float = 0.5,
) -> CVResult:
    """
    Fit ``family`` on every analysis fold and score its assessment fold.

    Parameters
    ----------
    family : ModelFamily
    params : dict, optional
        Hyperparameter overrides (family defaults fill the rest).
    train_df : pd.DataFrame
        Transformed, **not yet upsampled** training rows (features + label).
    state : PreprocessingState
        Supplies the upsampling step and feature order.
    folds : list of (analysis_idx, assessment_idx)
        Positional indices into ``train_df``, e.g. from ``make_folds``.
    seed : int
    n_jobs : int
        Parallel fold workers (joblib).
    threshold : float
        Cut-off on ``prob_high`` for the assessment-fold predictions.
    """
    params = resolve_params(family, params)
    outputs = Parallel(n_jobs=n_jobs)(
        delayed(_fit_fold)(family, params, train_df, state, analysis, assessment,
                           seed, threshold)
        for analysis, assessment in folds
    )
    fold_metrics = [m for m, _ in outputs]
    cms = resampled_confusion([cm for _, cm in outputs])

    return CVResult(
        family=ModelFamily(family),
        params=params,
        fold_metrics=fold_metrics,
        mean_metrics=average_metrics(fold_metrics),
        confusion_sum=cms["sum"],
        confusion_mean=cms["mean"],
        threshold=threshold,
    )


def _fit_fold(
    family: ModelFamily,
    params: Dict[str, Any],
    train_df: pd.DataFrame,
    state: PreprocessingState,
    analysis: np.ndarray,
    assessment: np.ndarray,
    seed: int,
    threshold: float,
) -> Tuple[Dict[str, float], pd.DataFrame]:
    fit_rows = resample(state, train_df.iloc[analysis])
    X_fit, y_fit = split_xy(state, fit_rows)
    X_val, y_val = split_xy(state, train_df.iloc[assessment])

    model = instantiate_model(family, seed, **params)
    model.fit(X_fit, y_fit)
    proba = model.predict_proba(X_val)
    y_hat = np.where(proba >= threshold, HIGH, LOW)

    return compute_metrics(y_val, y_hat), confusion_frame(y_val, y_hat)


# ======================================================================== #
#  Final refit                                                              #
# ======================================================================== #

def fit_final(
    family: ModelFamily,
    params: Optional[Dict[str, Any]],
    train_df: pd.DataFrame,
    state: PreprocessingState,
    seed: int,
    threshold: float = 0.5,
    cv_result: Optional[CVResult] = None,
) -> FittedModel:
    """
    Refit on the entire training subset (upsampled) → deployable model.
    """
    params = resolve_params(family, params)
    X, y = split_xy(state, resample(state, train_df))

    model = instantiate_model(family, seed, **params)
    model.fit(X, y)

    return FittedModel(
        family=ModelFamily(family),
        params=params,
        estimator=model,
        feature_names=tuple(state.feature_names),
        threshold=threshold,
        cv_summary=dict(cv_result.mean_metrics) if cv_result else {},
    )
