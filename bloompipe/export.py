"""
bloompipe.export
================
Artefact export, metadata logging, and reproducibility utilities.

Folder layout
-------------
::

    experiments/
        pipeline_config.json          ← master config snapshot
        summary_results.csv           ← one row per family per run
        <family>/
            metadata.json             ← config, environment, params, metrics
            predictions.parquet       ← test predictions (+ true label)
            confusion_test.csv
            confusion_cv_sum.csv
            search_history.csv        (only when tuning ran)
            model.joblib              ← FittedModel + PreprocessingState
"""

from __future__ import annotations

import json
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import joblib
import numpy as np
import pandas as pd

from .config import PipelineConfig, file_hash, get_environment_info


# ======================================================================== #
#  Save datasets                                                            #
# ======================================================================== #

def save_dataframe(
    df: pd.DataFrame,
    path: str | Path,
    fmt: str = "parquet",
    index: bool = False,
) -> str:
    """
    Save a DataFrame to disk.

    Parameters
    ----------
    df : pd.DataFrame
    path : str or Path
        Target file path (extension will be corrected).
    fmt : str
        ``'parquet'`` (default) or ``'csv'``.

    Returns
    -------
    str  – actual path written.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    if fmt == "parquet":
        path = path.with_suffix(".parquet")
        df.to_parquet(path, index=index)
    elif fmt == "csv":
        path = path.with_suffix(".csv")
        df.to_csv(path, index=index)
    else:
        raise ValueError(f"Unsupported format: {fmt}")

    return str(path)


# ======================================================================== #
#  Run artefacts                                                            #
# ======================================================================== #

def save_run_artifacts(
    exp_dir: str | Path,
    config: PipelineConfig,
    family: str,
    params: Dict[str, Any],
    metrics: Dict[str, Dict],
    predictions: pd.DataFrame,
    confusion: Dict[str, pd.DataFrame],
    model_bundle: Optional[Dict[str, Any]] = None,
    search_history: Optional[pd.DataFrame] = None,
    files_used: Optional[List[str]] = None,
) -> str:
    """
    Write every artefact of one family's run and return the directory.
    """
    exp_dir = Path(exp_dir)
    exp_dir.mkdir(parents=True, exist_ok=True)

    save_dataframe(predictions, exp_dir / "predictions", index=True)
    for name, frame in confusion.items():
        save_dataframe(frame, exp_dir / f"confusion_{name}", fmt="csv", index=True)
    if search_history is not None:
        save_dataframe(search_history, exp_dir / "search_history", fmt="csv")
    if model_bundle is not None:
        joblib.dump(model_bundle, exp_dir / "model.joblib")

    meta = {
        "timestamp": datetime.now().isoformat(),
        "family": family,
        "params": _make_serialisable(params),
        "pipeline_config": config.to_dict(),
        "metrics": _make_serialisable(metrics),
        "environment": get_environment_info(),
    }
    if files_used:
        meta["files_used"] = {
            os.path.basename(f): file_hash(f)
            for f in files_used
            if os.path.exists(f)
        }

    (exp_dir / "metadata.json").write_text(json.dumps(meta, indent=2, default=str))
    return str(exp_dir)


def load_model_bundle(path: str | Path) -> Dict[str, Any]:
    """Inverse of the ``model.joblib`` dump: ``{"model", "state"}``."""
    return joblib.load(path)


# ======================================================================== #
#  Summary table                                                            #
# ======================================================================== #

def update_summary_table(
    output_dir: str | Path,
    row: Dict[str, Any],
    filename: str = "summary_results.csv",
) -> pd.DataFrame:
    """
    Append a result row to the summary CSV.  Creates the file if needed.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    csv_path = output_dir / filename

    new_row = pd.DataFrame([_make_serialisable(row)])

    if csv_path.exists():
        existing = pd.read_csv(csv_path)
        combined = pd.concat([existing, new_row], ignore_index=True)
    else:
        combined = new_row

    combined.to_csv(csv_path, index=False)
    return combined


# ======================================================================== #
#  Internal helpers                                                         #
# ======================================================================== #

def _make_serialisable(obj: Any) -> Any:
    """Recursively convert numpy types for JSON serialisation."""
    if isinstance(obj, dict):
        return {k: _make_serialisable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_make_serialisable(v) for v in obj]
    if isinstance(obj, (np.integer,)):
        return int(obj)
    if isinstance(obj, (np.floating,)):
        return float(obj)
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, (np.bool_,)):
        return bool(obj)
    return obj
