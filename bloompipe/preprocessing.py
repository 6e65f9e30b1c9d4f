"""
bloompipe.preprocessing
=======================
Leakage-safe transform chain: an ordered list of stateless transform
objects, each exposing ``fit(train) → params`` and ``apply(params, data)``,
composed by a runner that threads the learned params through in order.

Public API
----------
build_pipeline(preprocess_config, seed)   → PreprocessingPipeline
PreprocessingPipeline.fit(train)          → PreprocessingState  (immutable)
apply(state, df, training=False)          → transformed DataFrame
resample(state, df)                       → train-only steps on transformed rows
split_xy(state, df)                       → (X, y)

Transform order
---------------
====  ===================  ==============================================
#     Step                 Learned on train
====  ===================  ==============================================
0     select               predictor + label columns
1     drop_missing         —  (rows with any missing value are dropped)
2     wind_sectors         —  (degrees → compass sector labels)
3     signed_log           —  ``sign(x) * log(1 + |x|)``
4     log                  smallest positive value (apply-time floor)
5     box_cox              lambda per numeric predictor
6     normalize            mean / standard deviation per numeric predictor
7     dummy                category levels per categorical predictor
8     upsample             minority:majority target ratio  (train only)
====  ===================  ==============================================

Leakage checklist
-----------------
✓  Every parameter is learned once, on the training subset.
✓  ``apply`` never re-fits; test rows only ever see training params.
✓  Upsampling runs only when ``training=True``; test keeps its natural
   class balance and row count.
✓  Unseen categories at apply time become an all-zero encoding and emit
   ``UnseenCategoryWarning``.
"""

from __future__ import annotations

import math
import warnings
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from imblearn.over_sampling import RandomOverSampler
from scipy import special, stats
from sklearn.preprocessing import OneHotEncoder, StandardScaler

from .config import LABEL_COL, PreprocessConfig
from .errors import InsufficientDataError, TransformFitError, UnseenCategoryWarning


# Box-Cox lambda outside this range is treated as a degenerate estimate
BOXCOX_LIMITS: Tuple[float, float] = (-5.0, 5.0)

COMPASS: Dict[int, List[str]] = {
    4: ["N", "E", "S", "W"],
    8: ["N", "NE", "E", "SE", "S", "SW", "W", "NW"],
    16: ["N", "NNE", "NE", "ENE", "E", "ESE", "SE", "SSE",
         "S", "SSW", "SW", "WSW", "W", "WNW", "NW", "NNW"],
}


# ======================================================================== #
#  Transform steps                                                          #
# ======================================================================== #

class Transform:
    """
    One step of the chain.  Holds configuration only; everything learned
    from data is returned by :meth:`fit` and passed back into :meth:`apply`.
    """

    name: str = "transform"
    train_only: bool = False

    def fit(self, df: pd.DataFrame) -> Dict[str, Any]:
        return {}

    def apply(self, params: Mapping[str, Any], df: pd.DataFrame) -> pd.DataFrame:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class SelectColumns(Transform):
    name = "select"

    def __init__(self, columns: Sequence[str]):
        self.columns = list(columns)

    def fit(self, df):
        missing = [c for c in self.columns if c not in df.columns]
        if missing:
            raise ValueError(f"Columns {missing} not found in training data.")
        return {"columns": tuple(self.columns)}

    def apply(self, params, df):
        return df.loc[:, list(params["columns"])].copy()


class DropMissing(Transform):
    name = "drop_missing"

    def apply(self, params, df):
        return df.dropna(how="any")


class WindSectors(Transform):
    """Bin a direction in degrees into equal compass sectors."""

    name = "wind_sectors"

    def __init__(self, column: str, n_sectors: int):
        if n_sectors < 2:
            raise ValueError(f"n_sectors must be >= 2, got {n_sectors}")
        self.column = column
        self.n_sectors = n_sectors

    def fit(self, df):
        names = COMPASS.get(
            self.n_sectors, [f"S{i}" for i in range(self.n_sectors)]
        )
        return {"column": self.column, "labels": tuple(names)}

    def apply(self, params, df):
        out = df.copy()
        width = 360.0 / len(params["labels"])
        degrees = out[params["column"]].astype(float) % 360.0
        # sector 0 is centred on north
        idx = np.floor(((degrees + width / 2.0) % 360.0) / width).astype(int)
        labels = np.asarray(params["labels"], dtype=object)
        out[params["column"]] = labels[idx.to_numpy()]
        return out


class SignedLog(Transform):
    """``sign(x) * log(1 + |x|)``: finite for zero and negative inputs."""

    name = "signed_log"

    def __init__(self, columns: Sequence[str], base: float = math.e):
        self.columns = list(columns)
        self.base = base

    def fit(self, df):
        return {"columns": tuple(self.columns), "base": self.base}

    def apply(self, params, df):
        out = df.copy()
        denom = math.log(params["base"])
        for col in params["columns"]:
            x = out[col].astype(float)
            out[col] = np.sign(x) * np.log1p(np.abs(x)) / denom
        return out


class LogTransform(Transform):
    """Plain log; training values must be strictly positive."""

    name = "log"

    def __init__(self, columns: Sequence[str], base: float = math.e):
        self.columns = list(columns)
        self.base = base

    def fit(self, df):
        floors = {}
        for col in self.columns:
            x = df[col].astype(float)
            if (x <= 0).any():
                raise TransformFitError(
                    f"Non-positive values in '{col}' cannot be log-transformed.",
                    column=col,
                    transform=self.name,
                    context={"n_non_positive": int((x <= 0).sum())},
                )
            floors[col] = float(x.min())
        return {"columns": tuple(self.columns), "base": self.base,
                "floors": floors}

    def apply(self, params, df):
        out = df.copy()
        denom = math.log(params["base"])
        for col in params["columns"]:
            x = _floor_to_domain(out[col].astype(float), params["floors"][col],
                                 col, self.name)
            out[col] = np.log(x) / denom
        return out


class BoxCox(Transform):
    """
    Per-column Box-Cox power transform with MLE lambda from the training
    data.  Columns holding non-positive training values are left
    untransformed (with a warning), as Box-Cox is undefined there.
    """

    name = "box_cox"

    def __init__(self, columns: Sequence[str]):
        self.columns = list(columns)

    def fit(self, df):
        lambdas: Dict[str, Optional[float]] = {}
        floors: Dict[str, float] = {}
        for col in self.columns:
            x = df[col].astype(float).to_numpy()
            if (x <= 0).any():
                warnings.warn(
                    f"Box-Cox skipped for '{col}': training data has "
                    f"non-positive values."
                )
                lambdas[col] = None
                continue
            if np.ptp(x) == 0:
                raise TransformFitError(
                    f"'{col}' is constant; Box-Cox lambda is undefined.",
                    column=col,
                    transform=self.name,
                )
            lam = float(stats.boxcox_normmax(x, method="mle"))
            lo, hi = BOXCOX_LIMITS
            if not np.isfinite(lam) or not lo <= lam <= hi:
                raise TransformFitError(
                    f"Degenerate Box-Cox lambda for '{col}'.",
                    column=col,
                    transform=self.name,
                    context={"lambda": lam, "limits": BOXCOX_LIMITS},
                )
            lambdas[col] = lam
            floors[col] = float(x.min())
        return {"lambdas": lambdas,
                "floors": floors}

    def apply(self, params, df):
        out = df.copy()
        for col, lam in params["lambdas"].items():
            if lam is None:
                continue
            x = _floor_to_domain(out[col].astype(float), params["floors"][col],
                                 col, self.name)
            out[col] = special.boxcox(x.to_numpy(), lam)
        return out


class Normalize(Transform):
    """z-score with training mean and standard deviation."""

    name = "normalize"

    def __init__(self, columns: Sequence[str]):
        self.columns = list(columns)

    def fit(self, df):
        for col in self.columns:
            if not np.nanstd(df[col].astype(float)) > 0:
                raise TransformFitError(
                    f"'{col}' has zero variance in the training data.",
                    column=col,
                    transform=self.name,
                )
        scaler = StandardScaler()
        scaler.fit(df[self.columns].astype(float))
        return {"columns": tuple(self.columns), "scaler": scaler}

    def apply(self, params, df):
        cols = list(params["columns"])
        out = df.copy()
        if cols:
            out[cols] = params["scaler"].transform(out[cols].astype(float))
        return out


class DummyEncode(Transform):
    """One indicator column per training level; unseen levels → all zeros."""

    name = "dummy"

    def __init__(self, columns: Sequence[str]):
        self.columns = list(columns)

    def fit(self, df):
        encoder = OneHotEncoder(handle_unknown="ignore", sparse_output=False)
        encoder.fit(df[self.columns].astype(str))
        return {
            "columns": tuple(self.columns),
            "encoder": encoder,
            "levels": {
                col: tuple(cats.tolist())
                for col, cats in zip(self.columns, encoder.categories_)
            },
        }

    def apply(self, params, df):
        cols = list(params["columns"])
        values = df[cols].astype(str)
        for col in cols:
            unseen = sorted(set(values[col]) - set(params["levels"][col]))
            if unseen:
                warnings.warn(
                    f"Unseen levels {unseen} in '{col}' encoded as all zeros.",
                    UnseenCategoryWarning,
                )
        encoder = params["encoder"]
        dummies = pd.DataFrame(
            encoder.transform(values),
            columns=encoder.get_feature_names_out(cols),
            index=df.index,
        )
        return pd.concat([df.drop(columns=cols), dummies], axis=1)


class Upsample(Transform):
    """Randomly duplicate minority rows up to a minority:majority ratio."""

    name = "upsample"
    train_only = True

    def __init__(self, label_col: str, ratio: float, seed: int):
        if not 0.0 < ratio <= 1.0:
            raise ValueError(f"upsample ratio must lie in (0, 1], got {ratio}")
        self.label_col = label_col
        self.ratio = ratio
        self.seed = seed

    def fit(self, df):
        counts = df[self.label_col].value_counts()
        if len(counts) < 2:
            raise InsufficientDataError(
                "Training data holds a single class; nothing to upsample against.",
                {"class_counts": counts.to_dict()},
            )
        return {
            "label_col": self.label_col,
            "ratio": self.ratio,
            "seed": self.seed,
        }

    def apply(self, params, df):
        y = df[params["label_col"]]
        counts = y.value_counts()
        if len(counts) < 2 or counts.min() / counts.max() >= params["ratio"]:
            return df
        sampler = RandomOverSampler(
            sampling_strategy=params["ratio"], random_state=params["seed"]
        )
        sampler.fit_resample(df.drop(columns=[params["label_col"]]), y)
        return df.iloc[sampler.sample_indices_]


def _floor_to_domain(x: pd.Series, floor: float, col: str, step: str) -> pd.Series:
    """Clip apply-time values below the transform's domain to the train minimum."""
    bad = x <= 0
    if bad.any():
        warnings.warn(
            f"{step}: {int(bad.sum())} non-positive value(s) in '{col}' "
            f"clipped to the training minimum {floor:g}."
        )
        x = x.where(~bad, floor)
    return x


# ======================================================================== #
#  State + runner                                                           #
# ======================================================================== #

@dataclass(frozen=True)
class PreprocessingState:
    """Everything learned from the training subset.  Never mutated."""

    steps: Tuple[Tuple[Transform, Mapping[str, Any]], ...]
    feature_names: Tuple[str, ...]
    label_col: str

    def params(self, name: str) -> Mapping[str, Any]:
        for step, params in self.steps:
            if step.name == name:
                return params
        raise KeyError(f"No step named '{name}' in preprocessing state.")

    def apply(self, df: pd.DataFrame, training: bool = False) -> pd.DataFrame:
        return apply(self, df, training=training)


class PreprocessingPipeline:
    """Ordered transform chain; :meth:`fit` returns a `PreprocessingState`."""

    def __init__(self, steps: Sequence[Transform], label_col: str = LABEL_COL):
        self.steps = list(steps)
        self.label_col = label_col

    def fit(self, train: pd.DataFrame) -> PreprocessingState:
        data = train
        learned: List[Tuple[Transform, Mapping[str, Any]]] = []
        for step in self.steps:
            params = dict(step.fit(data))
            learned.append((step, params))
            if not step.train_only:
                data = step.apply(params, data)

        if data.empty:
            raise InsufficientDataError(
                "No training rows left after preprocessing.",
                {"n_input": len(train)},
            )

        features = tuple(c for c in data.columns if c != self.label_col)
        return PreprocessingState(
            steps=tuple(learned),
            feature_names=features,
            label_col=self.label_col,
        )

    def __repr__(self) -> str:
        names = " → ".join(s.name for s in self.steps)
        return f"PreprocessingPipeline({names})"


def apply(
    state: PreprocessingState,
    df: pd.DataFrame,
    training: bool = False,
) -> pd.DataFrame:
    """
    Run every step with its learned params.

    ``training=True`` additionally runs the train-only steps (upsampling);
    leave it ``False`` for test or any held-out rows.
    """
    data = df
    for step, params in state.steps:
        if step.train_only and not training:
            continue
        data = step.apply(params, data)
    return data


def resample(state: PreprocessingState, df: pd.DataFrame) -> pd.DataFrame:
    """Run only the train-only steps on already-transformed rows."""
    data = df
    for step, params in state.steps:
        if step.train_only:
            data = step.apply(params, data)
    return data


def split_xy(state: PreprocessingState, df: pd.DataFrame) -> Tuple[pd.DataFrame, pd.Series]:
    """Feature matrix in the fitted column order, and the label column."""
    X = df.reindex(columns=list(state.feature_names), fill_value=0.0)
    return X.astype(float), df[state.label_col]


# ======================================================================== #
#  Construction from config                                                 #
# ======================================================================== #

def build_pipeline(
    cfg: PreprocessConfig,
    seed: int,
    label_col: str = LABEL_COL,
) -> PreprocessingPipeline:
    """Assemble the standard transform chain from a `PreprocessConfig`."""
    predictors = list(cfg.predictors)
    for group in (cfg.signed_log_cols, cfg.log_cols, cfg.categorical_cols):
        stray = [c for c in group if c not in predictors]
        if stray:
            raise ValueError(f"Transform columns {stray} are not predictors.")

    categorical = list(cfg.categorical_cols)
    steps: List[Transform] = [
        SelectColumns(predictors + [label_col]),
        DropMissing(),
    ]

    if "wind_direction" in categorical:
        if cfg.wind_direction_sectors > 0:
            steps.append(WindSectors("wind_direction", cfg.wind_direction_sectors))
        else:
            categorical.remove("wind_direction")

    numeric = [c for c in predictors if c not in categorical]
    if cfg.signed_log_cols:
        steps.append(SignedLog(cfg.signed_log_cols, cfg.log_base))
    if cfg.log_cols:
        steps.append(LogTransform(cfg.log_cols, cfg.log_base))
    if numeric:
        steps.append(BoxCox(numeric))
        steps.append(Normalize(numeric))
    if categorical:
        steps.append(DummyEncode(categorical))
    steps.append(Upsample(label_col, cfg.upsample_ratio, seed))

    return PreprocessingPipeline(steps, label_col=label_col)
