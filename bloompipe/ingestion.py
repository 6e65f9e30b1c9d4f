"""
bloompipe.ingestion
===================
Read and validate the joined station table (``count_env``).

Joining the raw monitoring-station files into this table happens upstream;
this module only reads the single prepared table and checks the
observation-record invariants the rest of the pipeline relies on.

Public API
----------
read_observations(path)          → pd.DataFrame   (CSV or Parquet)
validate_observations(df)        → None  (raises on schema / ordering problems)
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional

import pandas as pd

from .config import COUNT_COL, DATE_COL


# ======================================================================== #
#  1.  Reading                                                              #
# ======================================================================== #

def read_observations(
    path: str | Path,
    covariates: Optional[Iterable[str]] = None,
) -> pd.DataFrame:
    """
    Read the joined observation table and validate it.

    Parameters
    ----------
    path : str or Path
        ``.csv`` or ``.parquet`` file with at least ``date``, the
        covariates and ``raw_count``.
    covariates : iterable of str, optional
        Covariate columns that must be present.

    Returns
    -------
    pd.DataFrame
        One row per timestamp, ``date`` parsed as datetime.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Observation table not found: {path}")

    if path.suffix == ".parquet":
        df = pd.read_parquet(path)
    elif path.suffix == ".csv":
        df = pd.read_csv(path)
    else:
        raise ValueError(f"Unsupported table format: {path.suffix}")

    if DATE_COL in df.columns:
        df[DATE_COL] = pd.to_datetime(df[DATE_COL])

    validate_observations(df, covariates)
    return df


# ======================================================================== #
#  2.  Validation                                                           #
# ======================================================================== #

def validate_observations(
    df: pd.DataFrame,
    covariates: Optional[Iterable[str]] = None,
) -> None:
    """
    Check the observation-record invariants.

    Raises
    ------
    ValueError
        Missing columns, unsorted or duplicated dates, negative counts.
    """
    required = [DATE_COL, COUNT_COL] + list(covariates or [])
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise ValueError(
            f"Observation table is missing columns {missing}; "
            f"found {list(df.columns)}"
        )

    dates = pd.to_datetime(df[DATE_COL])
    if dates.duplicated().any():
        dups = dates[dates.duplicated()].head(3).tolist()
        raise ValueError(f"Duplicate dates in observation table, e.g. {dups}")
    if not dates.is_monotonic_increasing:
        raise ValueError("Observation table must be sorted ascending by date.")

    counts = df[COUNT_COL].dropna()
    if (counts < 0).any():
        raise ValueError(f"'{COUNT_COL}' contains negative abundances.")
