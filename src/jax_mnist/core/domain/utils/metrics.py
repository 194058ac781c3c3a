from __future__ import annotations

import jax
import jax.numpy as jnp
import optax


def categorical_crossentropy(logits: jax.Array, targets: jax.Array) -> jax.Array:
    """Mean cross-entropy between softmax(logits) and one-hot targets."""

    return optax.softmax_cross_entropy(logits, targets).mean()


def categorical_accuracy(logits: jax.Array, targets: jax.Array) -> jax.Array:
    return jnp.mean(jnp.argmax(logits, axis=-1) == jnp.argmax(targets, axis=-1))


def error_rate_improvement(baseline_accuracy: float, candidate_accuracy: float) -> float:
    """Relative reduction of the error rate going from baseline to candidate.

    0.5 means the candidate makes half as many mistakes. Negative values mean
    the candidate is worse. A baseline with no errors cannot be improved on.
    """

    for name, acc in (("baseline_accuracy", baseline_accuracy), ("candidate_accuracy", candidate_accuracy)):
        if not 0.0 <= acc <= 1.0:
            raise ValueError(f"{name} must be in [0, 1], got {acc}")

    baseline_error = 1.0 - baseline_accuracy
    if baseline_error == 0.0:
        return 0.0
    return (baseline_error - (1.0 - candidate_accuracy)) / baseline_error
