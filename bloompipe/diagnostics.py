"""
bloompipe.diagnostics
=====================
Plot-ready data relating predicted ``high`` probability to the abundance
actually being predicted.  Rendering happens elsewhere; nothing in the
pipeline depends on these tables.

Each prediction row *t* is paired with ``target_count`` / ``target_date``
(the abundance and date of period *t + label_shift*) from the
un-preprocessed feature table, matched on the row index.

Abundance is shown as ``log10(1 + count)`` so zero counts stay finite.

Public API
----------
build_diagnostics(predictions, test_features, ...) → DiagnosticsData
response_curve(x, prob, degree)                     → pd.DataFrame
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict

import numpy as np
import pandas as pd

from .config import LABEL_COL, TARGET_COUNT_COL, TARGET_DATE_COL


@dataclass
class DiagnosticsData:
    scatter: pd.DataFrame          # prob_high vs log_count
    timeseries: pd.DataFrame       # prob_high and log_count over target_date
    response: pd.DataFrame         # covariate grid → fitted probability
    reference_lines: Dict[str, float] = field(default_factory=dict)
    response_meta: Dict[str, Any] = field(default_factory=dict)


def log_abundance(counts: pd.Series) -> pd.Series:
    return np.log10(1.0 + counts.astype(float))


def build_diagnostics(
    predictions: pd.DataFrame,
    test_features: pd.DataFrame,
    count_threshold: float,
    decision_threshold: float = 0.5,
    covariate: str = "flow",
    degree: int = 2,
) -> DiagnosticsData:
    """
    Parameters
    ----------
    predictions : pd.DataFrame
        ``prob_high`` (and ``predicted_label``), indexed like the test rows.
    test_features : pd.DataFrame
        The test rows of the feature table *before* preprocessing.
    count_threshold : float
        Abundance threshold that defines ``high``.
    decision_threshold : float
        Probability cut-off used for ``predicted_label``.
    covariate : str
        Covariate for the response curve (raw units).
    degree : int
        Polynomial degree of the response-curve fit.
    """
    cols = [TARGET_DATE_COL, TARGET_COUNT_COL, LABEL_COL]
    if covariate not in cols:
        cols.append(covariate)
    joined = predictions[["prob_high"]].join(test_features[cols], how="inner")
    if joined.empty:
        raise ValueError("Predictions and test features share no rows.")

    joined["log_count"] = log_abundance(joined[TARGET_COUNT_COL])

    scatter = joined[["log_count", "prob_high", LABEL_COL]].rename(
        columns={LABEL_COL: "true_label"}
    )
    timeseries = (
        joined[[TARGET_DATE_COL, "prob_high", "log_count"]]
        .sort_values(TARGET_DATE_COL)
        .reset_index(drop=True)
    )

    response = response_curve(joined[covariate], joined["prob_high"], degree)

    return DiagnosticsData(
        scatter=scatter,
        timeseries=timeseries,
        response=response,
        reference_lines={
            "prob_high": decision_threshold,
            "log_count": float(np.log10(1.0 + count_threshold)),
        },
        response_meta={"covariate": covariate, "degree": degree},
    )


def response_curve(
    x: pd.Series,
    prob: pd.Series,
    degree: int = 2,
    n_points: int = 50,
) -> pd.DataFrame:
    """Least-squares polynomial of ``prob`` on ``x``, clipped to [0, 1]."""
    x = np.asarray(x, dtype=np.float64)
    prob = np.asarray(prob, dtype=np.float64)
    ok = np.isfinite(x) & np.isfinite(prob)
    x, prob = x[ok], prob[ok]

    # a polynomial needs more distinct points than its degree
    degree = int(min(degree, max(len(np.unique(x)) - 1, 0)))
    grid = np.linspace(x.min(), x.max(), n_points) if len(x) else np.array([])
    if len(x) == 0:
        fitted = grid
    elif degree == 0:
        fitted = np.full_like(grid, prob.mean())
    else:
        coefs = np.polyfit(x, prob, degree)
        fitted = np.clip(np.polyval(coefs, grid), 0.0, 1.0)

    return pd.DataFrame({"x": grid, "fitted_prob": fitted})
