from __future__ import annotations

import numpy as np
import pytest

from jax_mnist.core.domain.errors.training import ConfigurationError, ShapeMismatchError
from jax_mnist.core.domain.utils.preprocessing import (
    add_channel_axis,
    flatten_images,
    prepare_images,
    rescale_pixels,
    to_categorical,
)


def _images(n: int = 12) -> np.ndarray:
    return np.random.default_rng(0).integers(0, 256, size=(n, 28, 28), dtype=np.uint8)


def test_flatten_preserves_element_count() -> None:
    images = _images()
    flat = flatten_images(images)
    assert flat.shape == (12, 784)
    assert flat.size == images.size
    np.testing.assert_array_equal(flat[3], images[3].ravel())


def test_channel_axis_preserves_element_count() -> None:
    images = _images()
    vol = add_channel_axis(images)
    assert vol.shape == (12, 28, 28, 1)
    assert vol.size == images.size


def test_rescale_maps_into_unit_interval() -> None:
    images = _images()
    images[0, 0, 0] = 0
    images[0, 0, 1] = 255
    scaled = rescale_pixels(images)
    assert scaled.dtype == np.float32
    assert scaled.min() >= 0.0
    assert scaled.max() <= 1.0
    assert scaled[0, 0, 1] == pytest.approx(1.0)


def test_rescale_rejects_out_of_range_values() -> None:
    with pytest.raises(ValueError):
        rescale_pixels(np.array([[[-1, 3]]]))
    with pytest.raises(ValueError):
        rescale_pixels(np.array([[[256, 3]]]))


def test_prepare_images_does_not_touch_raw_data() -> None:
    images = _images()
    before = images.copy()

    flat = prepare_images(images, "flat")
    spatial = prepare_images(images, "spatial")

    np.testing.assert_array_equal(images, before)
    assert flat.shape == (12, 784)
    assert spatial.shape == (12, 28, 28, 1)
    np.testing.assert_allclose(flat.reshape(spatial.shape), spatial)


def test_prepare_images_rejects_wrong_rank_and_layout() -> None:
    with pytest.raises(ShapeMismatchError):
        prepare_images(np.zeros((4, 784), dtype=np.uint8), "flat")
    with pytest.raises(ConfigurationError):
        prepare_images(_images(), "volumetric")  # type: ignore[arg-type]


def test_to_categorical_rows_are_one_hot() -> None:
    labels = np.arange(10).repeat(3)
    y = to_categorical(labels, 10)
    assert y.shape == (30, 10)
    np.testing.assert_array_equal(y.sum(axis=1), np.ones(30))
    np.testing.assert_array_equal(y.argmax(axis=1), labels)
    assert set(np.unique(y)) == {0.0, 1.0}


def test_to_categorical_validates_labels() -> None:
    with pytest.raises(ValueError):
        to_categorical(np.array([0, 10]), 10)
    with pytest.raises(ValueError):
        to_categorical(np.array([0.0, 1.0]), 10)
    with pytest.raises(ShapeMismatchError):
        to_categorical(np.zeros((2, 2), dtype=np.int64), 10)
