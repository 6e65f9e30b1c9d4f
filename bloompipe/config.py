"""
bloompipe.config
================
Central configuration: constants, dataclasses, and sane defaults.

Every experiment is fully described by a `PipelineConfig` dataclass that is
serialised alongside results for reproducibility.
"""

from __future__ import annotations

import hashlib
import json
import math
import platform
import subprocess
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional


# ---------------------------------------------------------------------------
# Column catalogue  (station table naming)
# ---------------------------------------------------------------------------
DATE_COL: str = "date"
COUNT_COL: str = "raw_count"
LABEL_COL: str = "class_label"
WEEK_COL: str = "week_of_year"
TARGET_COUNT_COL: str = "target_count"
TARGET_DATE_COL: str = "target_date"

COVARIATES: List[str] = [
    "temperature",
    "salinity",
    "irradiance",
    "flow",
    "wind_speed",
    "wind_direction",
    "pressure",
]

# Per-covariate shift: positive = lag (look back), negative = lead, 0 = none
DEFAULT_LAGS: Dict[str, int] = {
    "temperature": 1,
    "salinity": 1,
    "irradiance": 0,
    "flow": 2,
    "wind_speed": 3,
    "wind_direction": 3,
    "pressure": 0,
}

HIGH: str = "high"
LOW: str = "low"
CLASS_LEVELS: List[str] = [HIGH, LOW]   # event level first

METRIC_NAMES: List[str] = [
    "accuracy",
    "sensitivity",
    "specificity",
    "precision",
    "recall",
    "f_measure",
]


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------
class ModelFamily(str, Enum):
    """Classifier families the trainer can fit."""
    MLP = "mlp"                      # feed-forward neural network
    RANDOM_FOREST = "random_forest"  # random-forest ensemble
    BAGGED_TREES = "bagged_trees"    # bagged decision trees


class SearchMethod(str, Enum):
    """Hyperparameter search strategy."""
    BAYES = "bayes"    # TPE sampler, `initial` random starts then `iterations`
    GRID = "grid"      # regular grid over the declared space


# ---------------------------------------------------------------------------
# Configuration dataclasses
# ---------------------------------------------------------------------------
@dataclass
class LagConfig:
    """Per-covariate temporal shifts applied by the feature builder."""
    lags: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_LAGS))

    def to_dict(self) -> dict:
        return {"lags": dict(self.lags)}


@dataclass
class LabelConfig:
    """
    Parameters for the binary bloom label.

    The label is derived from ``raw_count`` **before** it is lead-shifted by
    ``label_shift`` rows, so row *t* carries the class observed at *t + 1*.
    """
    threshold: float = 5000.0
    label_shift: int = 1

    def to_dict(self) -> dict:
        return {"threshold": self.threshold, "label_shift": self.label_shift}


@dataclass
class SplitConfig:
    """Chronological train / test split."""
    train_fraction: float = 0.9

    def to_dict(self) -> dict:
        return {"train_fraction": self.train_fraction}


@dataclass
class PreprocessConfig:
    """Transform chain parameters (all learned on the training subset)."""
    predictors: List[str] = field(
        default_factory=lambda: [
            "temperature", "irradiance", "flow", "wind_direction", "salinity",
        ]
    )
    signed_log_cols: List[str] = field(default_factory=lambda: ["irradiance"])
    log_cols: List[str] = field(default_factory=lambda: ["flow"])
    log_base: float = math.e
    categorical_cols: List[str] = field(default_factory=lambda: ["wind_direction"])
    wind_direction_sectors: int = 8     # 0 = keep wind direction numeric
    upsample_ratio: float = 0.35        # minority : majority after upsampling

    def to_dict(self) -> dict:
        return {
            "predictors": self.predictors,
            "signed_log_cols": self.signed_log_cols,
            "log_cols": self.log_cols,
            "log_base": self.log_base,
            "categorical_cols": self.categorical_cols,
            "wind_direction_sectors": self.wind_direction_sectors,
            "upsample_ratio": self.upsample_ratio,
        }


@dataclass
class CVConfig:
    """Stratified k-fold settings shared by CV and hyperparameter search."""
    n_folds: int = 5
    n_jobs: int = 1
    primary_metric: str = "accuracy"
    decision_threshold: float = 0.5     # on prob_high, for CV and test alike

    def to_dict(self) -> dict:
        return {
            "n_folds": self.n_folds,
            "n_jobs": self.n_jobs,
            "primary_metric": self.primary_metric,
            "decision_threshold": self.decision_threshold,
        }


@dataclass
class SearchConfig:
    """Hyperparameter search budget."""
    enabled: bool = False
    method: SearchMethod = SearchMethod.BAYES
    initial: int = 5          # random start-up candidates (bayes)
    iterations: int = 10      # guided candidates after the start-up phase
    grid_levels: int = 3      # points per numeric dimension (grid)

    def to_dict(self) -> dict:
        return {
            "enabled": self.enabled,
            "method": self.method.value,
            "initial": self.initial,
            "iterations": self.iterations,
            "grid_levels": self.grid_levels,
        }


@dataclass
class ModelConfig:
    """Which classifier family to fit, and overrides of its defaults."""
    family: ModelFamily = ModelFamily.RANDOM_FOREST
    params: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"family": self.family.value, "params": dict(self.params)}


@dataclass
class PipelineConfig:
    """Master configuration for one experiment run."""

    # -- Paths --
    data_path: Optional[str] = "data/count_env.csv"
    output_dir: str = "experiments"

    # -- Sub-configs --
    lag_config: LagConfig = field(default_factory=LagConfig)
    label_config: LabelConfig = field(default_factory=LabelConfig)
    split_config: SplitConfig = field(default_factory=SplitConfig)
    preprocess_config: PreprocessConfig = field(default_factory=PreprocessConfig)
    cv_config: CVConfig = field(default_factory=CVConfig)
    search_config: SearchConfig = field(default_factory=SearchConfig)
    model_config: ModelConfig = field(default_factory=ModelConfig)

    # -- Comparison: None = only model_config.family --
    families: Optional[List[ModelFamily]] = None

    # -- Reproducibility --
    random_seed: int = 42
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())

    # ----- helpers -----
    def resolved_families(self) -> List[ModelFamily]:
        if self.families:
            return [ModelFamily(f) for f in self.families]
        return [self.model_config.family]

    def to_dict(self) -> dict:
        return {
            "data_path": self.data_path,
            "output_dir": self.output_dir,
            "lag_config": self.lag_config.to_dict(),
            "label_config": self.label_config.to_dict(),
            "split_config": self.split_config.to_dict(),
            "preprocess_config": self.preprocess_config.to_dict(),
            "cv_config": self.cv_config.to_dict(),
            "search_config": self.search_config.to_dict(),
            "model_config": self.model_config.to_dict(),
            "families": (
                [ModelFamily(f).value for f in self.families]
                if self.families else None
            ),
            "random_seed": self.random_seed,
            "created_at": self.created_at,
        }

    def save(self, path: str | Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.to_dict(), indent=2))

    @classmethod
    def load(cls, path: str | Path) -> "PipelineConfig":
        raw = json.loads(Path(path).read_text())
        raw["lag_config"] = LagConfig(**raw["lag_config"])
        raw["label_config"] = LabelConfig(**raw["label_config"])
        raw["split_config"] = SplitConfig(**raw["split_config"])
        raw["preprocess_config"] = PreprocessConfig(**raw["preprocess_config"])
        raw["cv_config"] = CVConfig(**raw["cv_config"])
        sc = raw["search_config"]
        sc["method"] = SearchMethod(sc["method"])
        raw["search_config"] = SearchConfig(**sc)
        mc = raw["model_config"]
        mc["family"] = ModelFamily(mc["family"])
        raw["model_config"] = ModelConfig(**mc)
        if raw.get("families"):
            raw["families"] = [ModelFamily(f) for f in raw["families"]]
        return cls(**raw)


# ---------------------------------------------------------------------------
# Environment / reproducibility snapshot
# ---------------------------------------------------------------------------
def get_environment_info() -> dict:
    """Capture runtime environment for metadata."""
    info = {
        "python": platform.python_version(),
        "platform": platform.platform(),
        "timestamp": datetime.now().isoformat(),
    }
    try:
        info["git_commit"] = (
            subprocess.check_output(
                ["git", "rev-parse", "HEAD"], stderr=subprocess.DEVNULL
            )
            .decode()
            .strip()
        )
    except (OSError, subprocess.CalledProcessError):
        info["git_commit"] = None
    return info


def file_hash(filepath: str | Path, algo: str = "sha256") -> str:
    """Compute hash of a file for provenance tracking."""
    h = hashlib.new(algo)
    with open(filepath, "rb") as f:
        for chunk in iter(lambda: f.read(1 << 20), b""):
            h.update(chunk)
    return h.hexdigest()
