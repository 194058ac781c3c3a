"""Identifier lookups for the compile step (optimizer, loss, metrics)."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Callable

import jax
import optax

from jax_mnist.core.domain.errors.training import ConfigurationError
from jax_mnist.core.domain.utils.metrics import categorical_accuracy, categorical_crossentropy

LossFn = Callable[[jax.Array, jax.Array], jax.Array]
MetricFn = Callable[[jax.Array, jax.Array], jax.Array]

OPTIMIZERS: dict[str, Callable[[float], optax.GradientTransformation]] = {
    # Keras RMSprop defaults: rho=0.9, epsilon=1e-7.
    "rmsprop": lambda lr: optax.rmsprop(learning_rate=lr, decay=0.9, eps=1e-7),
    "adam": lambda lr: optax.adam(learning_rate=lr),
    "adamw": lambda lr: optax.adamw(learning_rate=lr),
    "sgd": lambda lr: optax.sgd(learning_rate=lr),
}

LOSSES: dict[str, LossFn] = {
    "categorical_crossentropy": categorical_crossentropy,
}

METRICS: dict[str, MetricFn] = {
    "accuracy": categorical_accuracy,
    "acc": categorical_accuracy,
}


def _lookup(kind: str, name: str, table: dict):
    key = name.lower().strip()
    if key not in table:
        raise ConfigurationError(f"unknown {kind} {name!r}; expected one of: {', '.join(sorted(table))}")
    return table[key]


def resolve_optimizer(name: str, learning_rate: float) -> optax.GradientTransformation:
    if learning_rate < 0:
        raise ConfigurationError(f"learning_rate must be >= 0, got {learning_rate}")
    return _lookup("optimizer", name, OPTIMIZERS)(learning_rate)


def resolve_loss(name: str) -> LossFn:
    return _lookup("loss", name, LOSSES)


def resolve_metrics(names: Sequence[str]) -> dict[str, MetricFn]:
    """Map each metric name to its function, normalising aliases to `acc`."""

    resolved: dict[str, MetricFn] = {}
    for name in names:
        fn = _lookup("metric", name, METRICS)
        short = "acc" if fn is categorical_accuracy else name.lower().strip()
        resolved[short] = fn
    return resolved
