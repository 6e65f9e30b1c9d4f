"""
bloompipe.search
================
Hyperparameter search over a family's declared space, scored by
cross-validation on the *same* folds for every candidate.

Strategies
----------
**BAYES** – Optuna TPE sampler: ``initial`` random start-up candidates,
            then ``iterations`` model-guided candidates.  Seeded.
**GRID**  – Cartesian product of ``grid_levels`` evenly spaced values per
            numeric dimension (log-spaced where the space says so) and all
            categorical choices.

Both maximise ``cv_config.primary_metric`` and return the winning
configuration plus the full candidate history.

Public API
----------
tune_hyperparameters(family, train_df, state, folds, ...) → SearchResult
"""

from __future__ import annotations

from dataclasses import dataclass
from itertools import product
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import optuna
import pandas as pd

from .config import METRIC_NAMES, CVConfig, ModelFamily, SearchConfig, SearchMethod
from .models.registry import get_model
from .preprocessing import PreprocessingState
from .training import CVResult, cross_validate


@dataclass
class SearchResult:
    best_params: Dict[str, Any]
    best_score: float
    metric: str
    history: pd.DataFrame
    best_cv: CVResult


def tune_hyperparameters(
    family: ModelFamily,
    train_df: pd.DataFrame,
    state: PreprocessingState,
    folds: Sequence[Tuple[np.ndarray, np.ndarray]],
    search_config: SearchConfig,
    cv_config: CVConfig,
    seed: int,
    base_params: Optional[Dict[str, Any]] = None,
) -> SearchResult:
    """
    Search the family's declared space; fixed ``base_params`` are kept
    for every candidate and overridden only on the searched dimensions.
    """
    metric = cv_config.primary_metric
    if metric not in METRIC_NAMES:
        raise ValueError(f"Unknown primary metric '{metric}'. Choose from {METRIC_NAMES}")

    space = get_model(family)["search_space"]
    if not space:
        raise ValueError(f"No search space declared for family '{family}'.")

    base = dict(base_params or {})
    results: List[CVResult] = []

    def score(candidate: Dict[str, Any]) -> float:
        params = {**base, **candidate}
        res = cross_validate(family, params, train_df, state, folds, seed,
                             n_jobs=cv_config.n_jobs,
                             threshold=cv_config.decision_threshold)
        results.append(res)
        value = res.score(metric)
        print(f"      candidate {len(results):>3}  {candidate}  {metric}={value:.4f}")
        return value

    if search_config.method == SearchMethod.BAYES:
        _run_bayes(space, score, search_config, seed)
    elif search_config.method == SearchMethod.GRID:
        for candidate in _grid(space, search_config.grid_levels):
            score(candidate)
    else:
        raise ValueError(f"Unknown search method: {search_config.method}")

    # first candidate wins ties
    scores = [r.score(metric) for r in results]
    best = results[int(np.argmax(scores))]

    history = pd.DataFrame(
        [{**r.params, **{f"cv_{k}": v for k, v in r.mean_metrics.items()}}
         for r in results]
    )
    return SearchResult(
        best_params=best.params,
        best_score=best.score(metric),
        metric=metric,
        history=history,
        best_cv=best,
    )


# ======================================================================== #
#  Strategies                                                               #
# ======================================================================== #

def _run_bayes(space: Dict[str, tuple], score, cfg: SearchConfig, seed: int) -> None:
    optuna.logging.set_verbosity(optuna.logging.WARNING)
    sampler = optuna.samplers.TPESampler(seed=seed, n_startup_trials=cfg.initial)
    study = optuna.create_study(direction="maximize", sampler=sampler)

    def objective(trial: optuna.Trial) -> float:
        return score(_suggest(trial, space))

    study.optimize(objective, n_trials=cfg.initial + cfg.iterations)


def _suggest(trial: optuna.Trial, space: Dict[str, tuple]) -> Dict[str, Any]:
    params: Dict[str, Any] = {}
    for name, dim in space.items():
        kind = dim[0]
        if kind == "int":
            params[name] = trial.suggest_int(name, dim[1], dim[2])
        elif kind == "float":
            log = bool(dim[3]) if len(dim) > 3 else False
            params[name] = trial.suggest_float(name, dim[1], dim[2], log=log)
        elif kind == "categorical":
            params[name] = trial.suggest_categorical(name, list(dim[1]))
        else:
            raise ValueError(f"Unknown search dimension type: {kind}")
    return params


def _grid(space: Dict[str, tuple], levels: int) -> List[Dict[str, Any]]:
    """Regular grid; integer dimensions are de-duplicated after rounding."""
    if levels < 1:
        raise ValueError(f"grid_levels must be >= 1, got {levels}")
    axes: Dict[str, list] = {}
    for name, dim in space.items():
        kind = dim[0]
        if kind == "int":
            pts = np.unique(np.round(np.linspace(dim[1], dim[2], levels)).astype(int))
            axes[name] = [int(p) for p in pts]
        elif kind == "float":
            log = bool(dim[3]) if len(dim) > 3 else False
            pts = (np.geomspace if log else np.linspace)(dim[1], dim[2], levels)
            axes[name] = [float(p) for p in pts]
        elif kind == "categorical":
            axes[name] = list(dim[1])
        else:
            raise ValueError(f"Unknown search dimension type: {kind}")

    names = list(axes)
    return [dict(zip(names, combo)) for combo in product(*axes.values())]
