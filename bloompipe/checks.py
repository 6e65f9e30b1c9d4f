"""
bloompipe.checks
================
Lag-alignment assertions, leakage guards, and data-quality checks.

Can be run standalone (``python -m bloompipe.checks``) or imported.
"""

from __future__ import annotations

from typing import Dict, List

import numpy as np
import pandas as pd

from .config import CLASS_LEVELS, DATE_COL


# ======================================================================== #
#  Temporal leakage checks                                                  #
# ======================================================================== #

def assert_no_future_in_features(feature_cols: List[str]) -> None:
    """Predictor names must not look like label / target columns."""
    suspicious = [
        c for c in feature_cols
        if any(kw in c.lower() for kw in ("target", "label", "count"))
    ]
    assert not suspicious, (
        f"Suspicious feature names (possible leakage): {suspicious}"
    )


def assert_lag_integrity(
    raw_df: pd.DataFrame,
    feature_df: pd.DataFrame,
    lags: Dict[str, int],
    n_rows: int = 5,
) -> None:
    """
    For a few rows, verify each shifted covariate equals the raw value
    ``shift`` rows earlier (lag) or later (lead).

    ``feature_df`` must keep the positional index of ``raw_df``.
    """
    raw = raw_df.reset_index(drop=True)
    rng = np.random.default_rng(42)
    positions = rng.choice(
        feature_df.index.to_numpy(), size=min(n_rows, len(feature_df)), replace=False
    )

    for pos in positions:
        for col, shift in lags.items():
            src = pos - shift
            if src not in raw.index:
                continue
            expected = raw.loc[src, col]
            actual = feature_df.loc[pos, col]
            if pd.notna(actual) and pd.notna(expected):
                assert np.isclose(actual, expected, rtol=1e-9), (
                    f"Lag integrity failure: row={pos}, col={col}, shift={shift}: "
                    f"expected {expected}, got {actual}"
                )


def assert_temporal_ordering(
    train_times: pd.Series,
    test_times: pd.Series,
) -> None:
    """Strict temporal ordering: max(train) < min(test)."""
    t_tr = pd.to_datetime(train_times)
    t_te = pd.to_datetime(test_times)

    assert t_tr.max() < t_te.min(), (
        f"Train/test overlap: train max={t_tr.max()}, test min={t_te.min()}"
    )
    print("  ✓ Temporal ordering verified.")


# ======================================================================== #
#  Data quality                                                             #
# ======================================================================== #

def assert_no_nan_in_features(df: pd.DataFrame, feature_cols: List[str]) -> None:
    """Verify that the final feature matrix has no NaN values."""
    nan_counts = df[feature_cols].isna().sum()
    has_nan = nan_counts[nan_counts > 0]
    assert has_nan.empty, f"NaN values in features:\n{has_nan}"


def assert_label_values(y: pd.Series) -> None:
    """Labels must be drawn from ``["high", "low"]``."""
    bad = set(y.dropna().unique()) - set(CLASS_LEVELS)
    assert not bad, f"Unexpected class labels: {sorted(bad)}"


# ======================================================================== #
#  Run all checks                                                           #
# ======================================================================== #

def run_all_checks(
    raw_df: pd.DataFrame,
    feature_df: pd.DataFrame,
    lags: Dict[str, int],
    train: pd.DataFrame,
    test: pd.DataFrame,
    model_cols: List[str],
    model_df: pd.DataFrame,
    label_col: str,
) -> None:
    """Run the full battery of data-quality and leakage checks."""
    print("Running data quality and leakage checks...")

    assert_no_future_in_features(model_cols)
    assert_lag_integrity(raw_df, feature_df, lags)
    assert_temporal_ordering(train[DATE_COL], test[DATE_COL])
    assert_no_nan_in_features(model_df, model_cols)
    assert_label_values(model_df[label_col])

    print("  ✓ All data quality checks passed.")


if __name__ == "__main__":
    print("bloompipe.checks — import and call run_all_checks() from your pipeline.")
