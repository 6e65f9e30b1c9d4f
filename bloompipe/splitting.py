"""
bloompipe.splitting
===================
Chronological train / test splitting and fold construction with strict
leakage prevention.

Public API
----------
split_train_test(df, split_config)   → (train, test)
make_folds(y, n_folds, seed)         → list of (analysis_idx, assessment_idx)
check_no_leakage(train, test)        → assertion-based leakage audit

Rules
-----
* The split point is ``floor(train_fraction * n)``; rows before it are
  train, rows from it on are test.  No shuffling, no randomness: the
  result depends only on row order.
* Cross-validation folds are built **inside** the training subset only,
  stratified on the class label, seeded explicitly.
"""

from __future__ import annotations

import math
from typing import List, Tuple

import numpy as np
import pandas as pd
from sklearn.model_selection import StratifiedKFold

from .config import DATE_COL, SplitConfig
from .errors import InsufficientDataError, InvalidSplitError


# ======================================================================== #
#  1.  Train / test split                                                   #
# ======================================================================== #

def split_train_test(
    df: pd.DataFrame,
    split_config: SplitConfig,
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Split a date-ordered table into its earliest and latest portions.

    Parameters
    ----------
    df : pd.DataFrame
        Labelled feature table, sorted ascending by ``date``.
    split_config : SplitConfig

    Returns
    -------
    (train, test) : tuple of pd.DataFrame

    Raises
    ------
    InvalidSplitError
        If the fraction is outside (0, 1) or leaves a partition empty.
    """
    p = split_config.train_fraction
    n = len(df)
    if not 0.0 < p < 1.0:
        raise InvalidSplitError(
            "train_fraction must lie strictly between 0 and 1.",
            {"train_fraction": p, "n_rows": n},
        )

    cut = math.floor(p * n)
    if cut < 1 or cut >= n:
        raise InvalidSplitError(
            "train_fraction leaves an empty train or test partition.",
            {"train_fraction": p, "n_rows": n, "split_row": cut},
        )

    train = df.iloc[:cut]
    test = df.iloc[cut:]
    _log_split_sizes(train, test)
    return train, test


def _log_split_sizes(train: pd.DataFrame, test: pd.DataFrame):
    print(f"  Split sizes — train: {len(train):,}  test: {len(test):,}")


# ======================================================================== #
#  2.  Stratified folds (training subset only)                              #
# ======================================================================== #

def make_folds(
    y: pd.Series | np.ndarray,
    n_folds: int,
    seed: int,
) -> List[Tuple[np.ndarray, np.ndarray]]:
    """
    Positional (analysis, assessment) index pairs for stratified k-fold.

    Raises
    ------
    InsufficientDataError
        Fewer rows than folds, or a class with fewer members than folds.
    """
    y = np.asarray(y)
    if n_folds < 2:
        raise ValueError(f"n_folds must be >= 2, got {n_folds}")
    if len(y) < n_folds:
        raise InsufficientDataError(
            "Fewer training rows than cross-validation folds.",
            {"n_rows": len(y), "n_folds": n_folds},
        )

    levels, counts = np.unique(y, return_counts=True)
    if len(levels) < 2 or counts.min() < n_folds:
        raise InsufficientDataError(
            "Each class needs at least one row per fold.",
            {"class_counts": dict(zip(levels.tolist(), counts.tolist())),
             "n_folds": n_folds},
        )

    skf = StratifiedKFold(n_splits=n_folds, shuffle=True, random_state=seed)
    return list(skf.split(np.zeros(len(y)), y))


# ======================================================================== #
#  3.  Leakage checks / assertions                                          #
# ======================================================================== #

def check_no_leakage(
    train: pd.DataFrame,
    test: pd.DataFrame,
    time_col: str = DATE_COL,
) -> None:
    """
    Verify the split is a clean chronological partition.

    Raises
    ------
    AssertionError
        With a descriptive message if any check fails.
    """
    assert len(train) > 0, "Train set is empty"
    assert len(test) > 0, "Test set is empty"

    overlap = train.index.intersection(test.index)
    assert overlap.empty, f"LEAKAGE: train ∩ test != ∅ ({len(overlap)} rows)"

    t_train_max = pd.to_datetime(train[time_col]).max()
    t_test_min = pd.to_datetime(test[time_col]).min()
    assert t_train_max < t_test_min, (
        f"LEAKAGE: max train time ({t_train_max}) >= min test time ({t_test_min})"
    )

    print("  ✓ Leakage checks passed.")
