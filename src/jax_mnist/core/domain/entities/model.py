from __future__ import annotations

from dataclasses import dataclass
from math import prod
from typing import Any, Callable, Protocol

import jax
import jax.numpy as jnp

from jax_mnist.core.domain.errors.training import ShapeMismatchError

Params = Any  # JAX pytree

_glorot_uniform = jax.nn.initializers.glorot_uniform()


class ClassifierFns(Protocol):
    """Pure model functions the trainable model wraps.

    `apply` returns raw logits; the softmax distribution is `predict_proba`.
    Implementations must be JAX-compatible (jit/vmap friendly).
    """

    # Rank of a single sample: 1 for (features,), 3 for (height, width, channels).
    input_rank: int

    def init(self, *, key: jax.Array, input_shape: tuple[int, ...], num_classes: int) -> Params: ...

    def apply(self, params: Params, x: jax.Array, *, is_training: bool) -> jax.Array: ...

    def predict_proba(self, params: Params, x: jax.Array) -> jax.Array: ...


def _init_dense_stack(keys: jax.Array, sizes: tuple[int, ...]) -> list[dict[str, jax.Array]]:
    layers = []
    for (m, n), k in zip(zip(sizes[:-1], sizes[1:]), keys):
        layers.append({"w": _glorot_uniform(k, (m, n), jnp.float32), "b": jnp.zeros((n,), jnp.float32)})
    return layers


def _apply_dense_stack(
    layers: list[dict[str, jax.Array]],
    h: jax.Array,
    activation: Callable[[jax.Array], jax.Array],
) -> jax.Array:
    for layer in layers[:-1]:
        h = activation(jnp.dot(h, layer["w"]) + layer["b"])
    last = layers[-1]
    return jnp.dot(h, last["w"]) + last["b"]


class _SoftmaxOutput:
    def predict_proba(self, params: Params, x: jax.Array) -> jax.Array:
        return jax.nn.softmax(self.apply(params, x, is_training=False), axis=-1)


@dataclass(frozen=True)
class DenseClassifierFns(_SoftmaxOutput):
    """Flat input -> Dense(hidden, relu) ... -> Dense(num_classes)."""

    hidden_sizes: tuple[int, ...] = (512,)
    activation: Callable[[jax.Array], jax.Array] = jax.nn.relu

    input_rank = 1

    def init(self, *, key: jax.Array, input_shape: tuple[int, ...], num_classes: int) -> Params:
        if len(input_shape) != self.input_rank:
            raise ShapeMismatchError(
                f"dense classifier expects flat inputs (features,), got input_shape={input_shape}"
            )
        sizes = (int(input_shape[0]), *self.hidden_sizes, num_classes)
        keys = jax.random.split(key, len(sizes) - 1)
        return _init_dense_stack(keys, sizes)

    def apply(self, params: Params, x: jax.Array, *, is_training: bool) -> jax.Array:
        # x: (batch, features)
        return _apply_dense_stack(params, x, self.activation)


@dataclass(frozen=True)
class ConvClassifierFns(_SoftmaxOutput):
    """Stacked [Conv2D -> relu -> MaxPool] stages, then a dense head.

    Convolutions and pooling use VALID padding, so a 28x28x1 input shrinks
    28 -> 26 -> 13 -> 11 -> 5 -> 3 -> 1 with the default three stages.
    """

    filters: tuple[int, ...] = (32, 64, 64)
    kernel_size: tuple[int, int] = (3, 3)
    pool_size: tuple[int, int] = (2, 2)
    hidden_sizes: tuple[int, ...] = (64,)
    activation: Callable[[jax.Array], jax.Array] = jax.nn.relu

    input_rank = 3

    def feature_shape(self, input_shape: tuple[int, ...]) -> tuple[int, int, int]:
        """Shape of the last feature volume for a (H, W, C) input."""

        if len(input_shape) != self.input_rank:
            raise ShapeMismatchError(
                f"conv classifier expects (height, width, channels) inputs, got input_shape={input_shape}"
            )
        h, w = int(input_shape[0]), int(input_shape[1])
        kh, kw = self.kernel_size
        ph, pw = self.pool_size
        for stage, _ in enumerate(self.filters, start=1):
            h, w = (h - kh + 1) // ph, (w - kw + 1) // pw
            if h < 1 or w < 1:
                raise ShapeMismatchError(
                    f"input_shape={input_shape} is too small: feature maps vanish at conv stage {stage}"
                )
        return h, w, self.filters[-1]

    def init(self, *, key: jax.Array, input_shape: tuple[int, ...], num_classes: int) -> Params:
        fh, fw, fc = self.feature_shape(input_shape)
        n_conv = len(self.filters)
        keys = jax.random.split(key, n_conv + len(self.hidden_sizes) + 1)

        kh, kw = self.kernel_size
        in_ch = int(input_shape[-1])
        conv = []
        for out_ch, k in zip(self.filters, keys[:n_conv]):
            conv.append(
                {
                    "w": _glorot_uniform(k, (kh, kw, in_ch, out_ch), jnp.float32),
                    "b": jnp.zeros((out_ch,), jnp.float32),
                }
            )
            in_ch = out_ch

        sizes = (prod((fh, fw, fc)), *self.hidden_sizes, num_classes)
        return {"conv": conv, "dense": _init_dense_stack(keys[n_conv:], sizes)}

    def apply(self, params: Params, x: jax.Array, *, is_training: bool) -> jax.Array:
        # x: (batch, height, width, channels)
        ph, pw = self.pool_size
        h = x
        for layer in params["conv"]:
            h = jax.lax.conv_general_dilated(
                h,
                layer["w"],
                window_strides=(1, 1),
                padding="VALID",
                dimension_numbers=("NHWC", "HWIO", "NHWC"),
            )
            h = self.activation(h + layer["b"])
            h = jax.lax.reduce_window(h, -jnp.inf, jax.lax.max, (1, ph, pw, 1), (1, ph, pw, 1), "VALID")
        h = jnp.reshape(h, (h.shape[0], -1))
        return _apply_dense_stack(params["dense"], h, self.activation)
