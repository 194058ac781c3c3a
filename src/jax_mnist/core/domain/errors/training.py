from __future__ import annotations


class TrainingError(RuntimeError):
    """Base error for anything that stops a training/evaluation run."""


class ConfigurationError(TrainingError, ValueError):
    """Unknown optimizer, loss, metric or pipeline identifier."""


class ShapeMismatchError(TrainingError, ValueError):
    """An array does not match the shape a model or step declared."""


class DatasetError(TrainingError):
    """The dataset could not be loaded or is malformed."""
