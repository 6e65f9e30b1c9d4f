"""
bloompipe.models.registry
=========================
Centralised catalogue of every classifier family the pipeline supports.

Each entry describes:
  • wrapper class (dotted path, imported lazily)
  • default hyperparameters
  • declared search space for hyperparameter tuning

Model Families
--------------
=============  =====================  ======================================
Tag            Wrapper                Tunable
=============  =====================  ======================================
mlp            MLPFamily (PyTorch)    hidden_units, epochs
random_forest  RandomForestFamily     n_estimators, max_features
bagged_trees   BaggedTreesFamily      ccp_alpha, max_depth, min_samples_split
=============  =====================  ======================================

Search-space grammar
--------------------
``{"name": ("int", low, high)}``,
``{"name": ("float", low, high, log)}``,
``{"name": ("categorical", [choices])}``.
"""

from __future__ import annotations

import importlib
from typing import Any, Dict, List, Optional

from ..config import ModelFamily
from .base import BloomClassifier


# ======================================================================== #
#  Registry structure                                                       #
# ======================================================================== #

def _entry(
    cls_path: str,
    family: ModelFamily,
    name: str,
    default_params: Optional[Dict] = None,
    search_space: Optional[Dict] = None,
    notes: str = "",
) -> Dict[str, Any]:
    return {
        "cls_path": cls_path,
        "family": family,
        "name": name,
        "default_params": default_params or {},
        "search_space": search_space or {},
        "notes": notes,
    }


# ======================================================================== #
#  The registry                                                             #
# ======================================================================== #

MODEL_FAMILIES: Dict[ModelFamily, Dict[str, Any]] = {
    ModelFamily.MLP: _entry(
        "bloompipe.models.mlp.MLPFamily", ModelFamily.MLP, "NeuralNetwork",
        default_params={
            "hidden_units": 5,
            "epochs": 100,
            "dropout": 0.1,
            "learning_rate": 0.01,
            "activation": "relu",
            "batch_size": 64,
        },
        search_space={
            "hidden_units": ("int", 1, 10),
            "epochs": ("int", 10, 500),
        },
        notes="Single hidden layer.  Needs normalised inputs.",
    ),
    ModelFamily.RANDOM_FOREST: _entry(
        "bloompipe.models.ensembles.RandomForestFamily",
        ModelFamily.RANDOM_FOREST, "RandomForest",
        default_params={
            "n_estimators": 500,
            "max_features": 3,
            "min_samples_leaf": 1,
        },
        search_space={
            "n_estimators": ("int", 100, 1000),
            "max_features": ("int", 1, 8),
        },
        notes="max_features is clipped to the available predictor count.",
    ),
    ModelFamily.BAGGED_TREES: _entry(
        "bloompipe.models.ensembles.BaggedTreesFamily",
        ModelFamily.BAGGED_TREES, "BaggedTrees",
        default_params={
            "n_bags": 25,
            "ccp_alpha": 0.0,
            "max_depth": None,
            "min_samples_split": 2,
        },
        search_space={
            "ccp_alpha": ("float", 1e-6, 1e-1, True),
            "max_depth": ("int", 2, 20),
            "min_samples_split": ("int", 2, 40),
        },
    ),
}


# ======================================================================== #
#  Public helpers                                                           #
# ======================================================================== #

def get_model(family: ModelFamily | str) -> Dict[str, Any]:
    """Look up a registry entry by family tag."""
    try:
        return MODEL_FAMILIES[ModelFamily(family)]
    except ValueError:
        raise KeyError(
            f"Model family '{family}' not found in registry; "
            f"choose from {[f.value for f in MODEL_FAMILIES]}."
        ) from None


def get_model_registry(
    families: Optional[List[ModelFamily | str]] = None,
) -> List[Dict[str, Any]]:
    """Return registry entries, optionally filtered by family tags."""
    if families is None:
        return list(MODEL_FAMILIES.values())
    return [get_model(f) for f in families]


def resolve_params(
    family: ModelFamily | str,
    overrides: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Family defaults with ``overrides`` applied; unknown keys are rejected."""
    entry = get_model(family)
    overrides = dict(overrides or {})
    unknown = set(overrides) - set(entry["default_params"])
    if unknown:
        raise ValueError(
            f"Unknown hyperparameters for {entry['name']}: {sorted(unknown)}"
        )
    return {**entry["default_params"], **overrides}


def instantiate_model(
    family: ModelFamily | str,
    seed: int,
    **overrides,
) -> BloomClassifier:
    """
    Dynamically import and instantiate a family wrapper.

    Parameters
    ----------
    family : ModelFamily or str
    seed : int
        Passed as ``random_state``; every stochastic part of the fit
        derives from it.
    **overrides
        Override any default hyperparameter.
    """
    entry = get_model(family)
    cls = _import_class(entry["cls_path"])
    params = resolve_params(family, overrides)
    return cls(random_state=seed, **params)


def _import_class(dotted_path: str):
    """Import a class from a dotted module path like 'bloompipe.models.mlp.MLPFamily'."""
    parts = dotted_path.rsplit(".", 1)
    if len(parts) != 2:
        raise ImportError(f"Invalid class path: {dotted_path}")
    module_path, class_name = parts
    try:
        module = importlib.import_module(module_path)
    except ImportError as e:
        raise ImportError(
            f"Cannot import module '{module_path}' — "
            f"is the package installed?  ({e})"
        ) from e
    return getattr(module, class_name)
