"""Classifier families: common interface, wrappers, and the registry."""

from .base import BloomClassifier, FittedModel
from .registry import get_model, get_model_registry, instantiate_model, resolve_params

__all__ = [
    "BloomClassifier",
    "FittedModel",
    "get_model",
    "get_model_registry",
    "instantiate_model",
    "resolve_params",
]
