"""
bloompipe.features
==================
Feature builder: per-covariate lag / lead shifts, calendar covariate, and
the lead-shifted bloom label.

Public API
----------
build_features(df, lag_config, label_config) → (feature_df, feature_meta)

Convention
----------
Shifts follow ``pandas.Series.shift``: a positive shift *k* is a **lag**
(row *t* holds the value observed at *t - k*), a negative shift is a
**lead** (row *t* holds the value at *t + |k|*), zero leaves the column
untouched.  Shifted columns keep their original names.

``week_of_year`` is shifted together with the label, so it describes the
*target* period rather than the covariate period.

Rows without a full set of shifted values (series edges) are dropped,
never imputed.  The output keeps the positional index of the input so a
feature row can be traced back to its observation row.
"""

from __future__ import annotations

from typing import Any, Dict, List, Tuple

import pandas as pd

from .config import (
    COUNT_COL,
    DATE_COL,
    LABEL_COL,
    TARGET_COUNT_COL,
    TARGET_DATE_COL,
    WEEK_COL,
    LabelConfig,
    LagConfig,
)
from .errors import InsufficientDataError
from .ingestion import validate_observations
from .targets import add_target_columns


# ======================================================================== #
#  Public entry point                                                       #
# ======================================================================== #

def build_features(
    df: pd.DataFrame,
    lag_config: LagConfig,
    label_config: LabelConfig,
) -> Tuple[pd.DataFrame, Dict[str, Any]]:
    """
    Generate the labelled feature table from the observation table.

    Parameters
    ----------
    df : pd.DataFrame
        Must contain ``date``, ``raw_count`` and every covariate named in
        ``lag_config.lags``; sorted ascending by date with unique dates.
    lag_config : LagConfig
        Per-covariate shift counts.
    label_config : LabelConfig
        Threshold and lead shift for ``class_label``.

    Returns
    -------
    feature_df : pd.DataFrame
        ``date``, shifted covariates, ``week_of_year``, ``raw_count``,
        ``class_label``, ``target_count``, ``target_date``.
    feature_meta : dict
        ``{"feature_names": [...], "lags": {...}, "dropped_head": n, ...}``
    """
    lags = dict(lag_config.lags)
    validate_observations(df, covariates=list(lags))

    base = df.reset_index(drop=True)
    out, target_meta = add_target_columns(base, label_config)

    # --- Covariate shifts (independent per column) ---
    for col, shift in lags.items():
        if shift != 0:
            out[col] = base[col].shift(shift)

    # --- Calendar covariate, aligned with the label ---
    week = pd.to_datetime(base[DATE_COL]).dt.isocalendar().week.astype("float64")
    out[WEEK_COL] = week.shift(-label_config.label_shift)

    feature_cols: List[str] = list(lags) + [WEEK_COL]
    required = feature_cols + [LABEL_COL]
    complete = out[required].notna().all(axis=1)

    keep = out.loc[complete, [DATE_COL] + feature_cols + [
        COUNT_COL, LABEL_COL, TARGET_COUNT_COL, TARGET_DATE_COL,
    ]]

    if keep.empty:
        raise InsufficientDataError(
            "No rows left after applying lag / lead shifts.",
            {"n_rows": len(base), "lags": lags,
             "label_shift": label_config.label_shift},
        )

    positions = keep.index
    meta = {
        "feature_names": feature_cols,
        "lags": lags,
        "label_shift": label_config.label_shift,
        "n_input": len(base),
        "n_output": len(keep),
        "dropped_head": int(positions.min()),
        "dropped_tail": int(len(base) - 1 - positions.max()),
        "target": target_meta,
    }
    return keep, meta


def expected_edge_drop(lags: Dict[str, int], label_shift: int) -> Tuple[int, int]:
    """
    Rows lost at the (start, end) of a gap-free series for a set of lags.

    Lags empty the head of the series, leads (including the label lead)
    empty the tail.
    """
    shifts = list(lags.values()) + [-label_shift]
    head = max([s for s in shifts if s > 0], default=0)
    tail = max([-s for s in shifts if s < 0], default=0)
    return head, tail
