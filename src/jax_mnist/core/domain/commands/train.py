from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

from jax_mnist.core.domain.entities.pipeline import PipelineVariant


@dataclass(frozen=True)
class TrainCommand:
    """Intent to fit and evaluate one pipeline."""

    epochs: int = 5
    batch_size: int = 128
    seed: int = 0

    # Compile step: identifiers resolved by the trainable model.
    optimizer: str = "rmsprop"
    learning_rate: float = 1e-3
    loss: str = "categorical_crossentropy"
    metrics: tuple[str, ...] = ("accuracy",)

    # Evaluation only affects memory use, never the reported metrics.
    eval_batch_size: int = 1000

    # Logging
    log_every_steps: int = 100

    @classmethod
    def for_variant(cls, variant: PipelineVariant, **overrides: Any) -> TrainCommand:
        """Command with the variant's epochs/batch size, then `overrides` on top."""

        base = cls(epochs=variant.default_epochs, batch_size=variant.default_batch_size)
        return replace(base, **overrides)
