from __future__ import annotations

import numpy as np
import pytest

from jax_mnist.adapters.right.data_loaders.npz_mnist import NpzMnistDatasetProvider
from jax_mnist.core.domain.errors.training import DatasetError


def _write_npz(path, **overrides) -> None:
    rng = np.random.default_rng(0)
    arrays = {
        "x_train": rng.integers(0, 256, size=(20, 28, 28), dtype=np.uint8),
        "y_train": np.arange(20, dtype=np.uint8) % 10,
        "x_test": rng.integers(0, 256, size=(8, 28, 28), dtype=np.uint8),
        "y_test": np.arange(8, dtype=np.uint8),
    }
    arrays.update(overrides)
    np.savez(path, **{k: v for k, v in arrays.items() if v is not None})


def test_loads_keras_style_npz(tmp_path) -> None:
    path = tmp_path / "mnist.npz"
    _write_npz(path)

    provider = NpzMnistDatasetProvider(path=str(path))
    assert provider.info.num_classes == 10
    assert provider.info.input_shape == (28, 28)
    assert (provider.info.train_size, provider.info.test_size) == (20, 8)

    raw = provider.load()
    assert raw.x_train.shape == (20, 28, 28)
    assert raw.y_train.dtype == np.int64


def test_missing_split_is_a_dataset_error(tmp_path) -> None:
    path = tmp_path / "broken.npz"
    _write_npz(path, x_test=None, y_test=None)
    with pytest.raises(DatasetError):
        NpzMnistDatasetProvider(path=str(path))


def test_unreadable_file_is_a_dataset_error(tmp_path) -> None:
    with pytest.raises(DatasetError):
        NpzMnistDatasetProvider(path=str(tmp_path / "missing.npz"))


def test_negative_labels_are_a_dataset_error(tmp_path) -> None:
    path = tmp_path / "negative.npz"
    _write_npz(path, y_train=np.arange(20, dtype=np.int64) - 1)
    with pytest.raises(DatasetError, match="negative"):
        NpzMnistDatasetProvider(path=str(path))


def test_labels_beyond_declared_classes_are_a_dataset_error(tmp_path) -> None:
    path = tmp_path / "mnist.npz"
    _write_npz(path)
    with pytest.raises(DatasetError, match="num_classes"):
        NpzMnistDatasetProvider(path=str(path), num_classes=5)


def test_single_npy_array_is_a_dataset_error(tmp_path) -> None:
    path = tmp_path / "images.npy"
    np.save(path, np.zeros((4, 28, 28), dtype=np.uint8))
    with pytest.raises(DatasetError, match="not an .npz"):
        NpzMnistDatasetProvider(path=str(path))
