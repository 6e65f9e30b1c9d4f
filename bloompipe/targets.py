"""
bloompipe.targets
=================
Binary bloom label construction.

Rule
----
The class is derived from the abundance observed on the same row,

.. code-block:: text

    class_label[t] = "high" if raw_count[t] >= threshold else "low"

and **only then** lead-shifted by ``label_shift`` rows, so that the row
carrying covariates for period *t* is labelled with the class of period
*t + label_shift*:

.. code-block:: text

    label[t]        = class_label[t + label_shift]
    target_count[t] = raw_count[t + label_shift]
    target_date[t]  = date[t + label_shift]

The last ``label_shift`` rows have no label and are dropped by the
feature builder.

Public API
----------
derive_class_label(counts, threshold)          → pd.Series of "high"/"low"
add_target_columns(df, label_config)           → (df, target_meta)
"""

from __future__ import annotations

from typing import Any, Dict, Tuple

import numpy as np
import pandas as pd

from .config import (
    COUNT_COL,
    DATE_COL,
    HIGH,
    LABEL_COL,
    LOW,
    TARGET_COUNT_COL,
    TARGET_DATE_COL,
    LabelConfig,
)


def derive_class_label(counts: pd.Series, threshold: float) -> pd.Series:
    """Map abundances to ``"high"`` / ``"low"``; missing counts stay missing."""
    labels = pd.Series(
        np.where(counts >= threshold, HIGH, LOW),
        index=counts.index,
        dtype=object,
    )
    labels[counts.isna()] = None
    return labels


def add_target_columns(
    df: pd.DataFrame,
    label_config: LabelConfig,
) -> Tuple[pd.DataFrame, Dict[str, Any]]:
    """
    Add the lead-shifted label, target abundance and target date.

    Parameters
    ----------
    df : pd.DataFrame
        Observation table sorted ascending by ``date``.
    label_config : LabelConfig

    Returns
    -------
    df : pd.DataFrame
        Copy with ``class_label``, ``target_count`` and ``target_date``.
    target_meta : dict
    """
    if label_config.label_shift < 0:
        raise ValueError(
            f"label_shift must be >= 0 (lead), got {label_config.label_shift}"
        )

    out = df.copy()
    lead = -label_config.label_shift
    same_row = derive_class_label(out[COUNT_COL], label_config.threshold)

    out[LABEL_COL] = same_row.shift(lead)
    out[TARGET_COUNT_COL] = out[COUNT_COL].shift(lead)
    out[TARGET_DATE_COL] = out[DATE_COL].shift(lead)

    labelled = out[LABEL_COL].dropna()
    meta = {
        "threshold": label_config.threshold,
        "label_shift": label_config.label_shift,
        "n_high": int((labelled == HIGH).sum()),
        "n_low": int((labelled == LOW).sum()),
    }
    return out, meta
