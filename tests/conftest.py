"""
Shared fixtures: a synthetic daily station table with a seasonal bloom.

Abundance follows the same annual cycle as river flow, so the ``high``
class (``raw_count >= 5000``) is a roughly 20 % seasonal minority.
"""

from __future__ import annotations

import sys
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


def _make_observations(n: int = 1000, seed: int = 42, start: str = "2015-01-01") -> pd.DataFrame:
    rng = np.random.default_rng(seed)
    t = np.arange(n)
    season = np.sin(2 * np.pi * t / 365.25)

    return pd.DataFrame({
        "date": pd.date_range(start, periods=n, freq="D"),
        "temperature": 18 + 7 * np.sin(2 * np.pi * (t - 30) / 365.25) + rng.normal(0, 1, n),
        "salinity": 25 - 6 * season + rng.normal(0, 1, n),
        "irradiance": np.exp(4.5 + 1.0 * np.sin(2 * np.pi * (t - 60) / 365.25)
                             + rng.normal(0, 0.2, n)),
        "flow": np.exp(3.0 + 1.5 * season + rng.normal(0, 0.2, n)),
        "wind_speed": rng.gamma(2.0, 2.5, n),
        "wind_direction": rng.uniform(0, 360, n),
        "pressure": 1013 + rng.normal(0, 5, n),
        "raw_count": np.round(np.exp(7.0 + 1.8 * season + rng.normal(0, 0.3, n))),
    })


@pytest.fixture(scope="session")
def observations() -> pd.DataFrame:
    """1000 daily rows; treat as read-only (copy before modifying)."""
    return _make_observations()


@pytest.fixture
def make_observations():
    return _make_observations


@pytest.fixture(scope="session")
def prepared(observations):
    """Features → split → fitted transform state, with default configs."""
    from bloompipe.config import LabelConfig, LagConfig, PreprocessConfig, SplitConfig
    from bloompipe.features import build_features
    from bloompipe.preprocessing import apply, build_pipeline
    from bloompipe.splitting import split_train_test

    features, meta = build_features(observations, LagConfig(), LabelConfig())
    train, test = split_train_test(features, SplitConfig())
    state = build_pipeline(PreprocessConfig(), seed=42).fit(train)
    return {
        "features": features,
        "meta": meta,
        "train": train,
        "test": test,
        "state": state,
        "train_pre": apply(state, train),
        "test_pre": apply(state, test),
    }


@pytest.fixture
def small_config(tmp_path):
    """Fast configuration: few trees, few epochs, artefacts under tmp_path."""
    from bloompipe.config import ModelConfig, ModelFamily, PipelineConfig

    return PipelineConfig(
        data_path=None,
        output_dir=str(tmp_path / "experiments"),
        model_config=ModelConfig(
            family=ModelFamily.RANDOM_FOREST,
            params={"n_estimators": 50},
        ),
    )
