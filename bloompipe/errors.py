"""
bloompipe.errors
================
Failure modes of a pipeline run.

Every fatal error carries the stage that raised it and the parameters
needed to reproduce it; ``str(err)`` renders both.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class BloomPipelineError(Exception):
    """Base class for fatal pipeline errors."""

    stage: str = "pipeline"

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = dict(context or {})

    def __str__(self) -> str:
        if not self.context:
            return f"[{self.stage}] {self.message}"
        ctx = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
        return f"[{self.stage}] {self.message} ({ctx})"


class InvalidSplitError(BloomPipelineError, ValueError):
    """Train fraction leaves the train or test partition empty."""

    stage = "split"


class InsufficientDataError(BloomPipelineError, ValueError):
    """Too few rows (or too few of one class) for the requested resampling."""

    stage = "data"


class TransformFitError(BloomPipelineError, ValueError):
    """A preprocessing step cannot be fitted on a training column."""

    stage = "preprocess"

    def __init__(
        self,
        message: str,
        column: str = "",
        transform: str = "",
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = {"column": column, "transform": transform}
        ctx.update(context or {})
        super().__init__(message, ctx)
        self.column = column
        self.transform = transform


class TrainingDivergedError(BloomPipelineError, RuntimeError):
    """Model fitting produced a non-finite loss or non-finite probabilities."""

    stage = "train"

    def __init__(
        self,
        message: str,
        family: str = "",
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = {"family": family}
        ctx.update(context or {})
        super().__init__(message, ctx)
        self.family = family


class UnseenCategoryWarning(UserWarning):
    """A categorical level appears at apply time that was not seen in train."""
