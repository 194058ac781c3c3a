from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from jax_mnist.core.domain.entities.base import InputLayout
from jax_mnist.core.domain.entities.model import ClassifierFns, ConvClassifierFns, DenseClassifierFns
from jax_mnist.core.domain.errors.training import ConfigurationError


@dataclass(frozen=True)
class PipelineVariant:
    """One end-to-end recipe: how to lay out images and which model to fit."""

    name: str
    layout: InputLayout
    model_fns: ClassifierFns
    default_epochs: int
    default_batch_size: int


def dense_pipeline(*, hidden_sizes: tuple[int, ...] = (512,)) -> PipelineVariant:
    return PipelineVariant(
        name="dense",
        layout="flat",
        model_fns=DenseClassifierFns(hidden_sizes=hidden_sizes),
        default_epochs=5,
        default_batch_size=128,
    )


def conv_pipeline(
    *,
    filters: tuple[int, ...] = (32, 64, 64),
    hidden_sizes: tuple[int, ...] = (64,),
) -> PipelineVariant:
    return PipelineVariant(
        name="conv",
        layout="spatial",
        model_fns=ConvClassifierFns(filters=filters, hidden_sizes=hidden_sizes),
        default_epochs=5,
        default_batch_size=64,
    )


PIPELINES: dict[str, Callable[[], PipelineVariant]] = {
    "dense": dense_pipeline,
    "conv": conv_pipeline,
}


def get_pipeline(name: str) -> PipelineVariant:
    key = name.lower().strip()
    if key not in PIPELINES:
        raise ConfigurationError(f"unknown pipeline {name!r}; expected one of: {', '.join(PIPELINES)}")
    return PIPELINES[key]()
