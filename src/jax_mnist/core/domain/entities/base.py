from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

import numpy as np

# "flat": (N, H*W) for dense models, "spatial": (N, H, W, 1) for conv models.
InputLayout = Literal["flat", "spatial"]


@dataclass(frozen=True)
class Batch:
    """A single supervised batch.

    `x` is a NumPy array already reshaped and rescaled for the model.
    `y` is one-hot encoded, shape (batch, num_classes).
    """

    x: np.ndarray
    y: np.ndarray


@dataclass(frozen=True)
class EvaluationResult:
    """Scalar metrics produced by one evaluation call."""

    loss: float
    accuracy: float
    num_samples: int

    @property
    def error_rate(self) -> float:
        return 1.0 - self.accuracy

    def as_dict(self, prefix: str = "test") -> dict[str, float]:
        return {f"{prefix}/loss": self.loss, f"{prefix}/acc": self.accuracy}
