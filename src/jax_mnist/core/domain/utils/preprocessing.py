from __future__ import annotations

import numpy as np

from jax_mnist.core.domain.entities.base import InputLayout
from jax_mnist.core.domain.errors.training import ConfigurationError, ShapeMismatchError


def _require_image_stack(images: np.ndarray) -> np.ndarray:
    images = np.asarray(images)
    if images.ndim != 3:
        raise ShapeMismatchError(f"expected images of shape (N, H, W), got {images.shape}")
    return images


def flatten_images(images: np.ndarray) -> np.ndarray:
    """(N, H, W) -> (N, H*W)."""

    images = _require_image_stack(images)
    n, h, w = images.shape
    return images.reshape((n, h * w))


def add_channel_axis(images: np.ndarray) -> np.ndarray:
    """(N, H, W) -> (N, H, W, 1)."""

    images = _require_image_stack(images)
    return images.reshape((*images.shape, 1))


def rescale_pixels(images: np.ndarray, *, max_value: float = 255.0) -> np.ndarray:
    """Map integer intensities in [0, max_value] to float32 in [0, 1].

    Always returns a new array, so the caller's raw data is left untouched.
    """

    images = np.asarray(images)
    if images.size and (images.min() < 0 or images.max() > max_value):
        raise ValueError(
            f"pixel values must lie in [0, {max_value}], got [{images.min()}, {images.max()}]"
        )
    return images.astype(np.float32) / np.float32(max_value)


def prepare_images(images: np.ndarray, layout: InputLayout) -> np.ndarray:
    if layout == "flat":
        reshaped = flatten_images(images)
    elif layout == "spatial":
        reshaped = add_channel_axis(images)
    else:
        raise ConfigurationError(f"layout must be one of: flat, spatial (got {layout!r})")
    return rescale_pixels(reshaped)


def to_categorical(labels: np.ndarray, num_classes: int) -> np.ndarray:
    """One-hot encode integer class ids into float32 (N, num_classes)."""

    labels = np.asarray(labels)
    if labels.ndim != 1:
        raise ShapeMismatchError(f"expected labels of shape (N,), got {labels.shape}")
    if not np.issubdtype(labels.dtype, np.integer):
        raise ValueError(f"labels must be integers, got dtype {labels.dtype}")
    if labels.size and (labels.min() < 0 or labels.max() >= num_classes):
        raise ValueError(
            f"labels must lie in [0, {num_classes}), got [{labels.min()}, {labels.max()}]"
        )

    out = np.zeros((labels.shape[0], num_classes), dtype=np.float32)
    out[np.arange(labels.shape[0]), labels] = 1.0
    return out
