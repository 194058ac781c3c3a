from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol

import numpy as np

from jax_mnist.core.domain.entities.base import EvaluationResult
from jax_mnist.core.domain.entities.model import ClassifierFns, Params


class TrainableModelPort(Protocol):
    """A model that can be configured, fitted and evaluated.

    The numeric backend lives behind this port; pipelines only see arrays in
    and scalars out.
    """

    @property
    def params(self) -> Params: ...

    def compile(
        self,
        *,
        optimizer: str,
        loss: str,
        metrics: Sequence[str],
        learning_rate: float,
    ) -> None: ...

    def fit(
        self,
        x: np.ndarray,
        y: np.ndarray,
        *,
        epochs: int,
        batch_size: int,
        seed: int,
    ) -> list[dict[str, Any]]: ...

    def evaluate(self, x: np.ndarray, y: np.ndarray, *, batch_size: int) -> EvaluationResult: ...

    def predict(self, x: np.ndarray, *, batch_size: int) -> np.ndarray: ...


class TrainableModelFactoryPort(Protocol):
    """Builds fresh, uncompiled models for a given architecture."""

    def build(
        self,
        *,
        model_fns: ClassifierFns,
        input_shape: tuple[int, ...],
        num_classes: int,
        seed: int,
        log_every_steps: int = 100,
        run_name: str | None = None,
    ) -> TrainableModelPort: ...
