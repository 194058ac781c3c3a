from __future__ import annotations

import os

# Ensure tests run on CPU-only machines even if JAX is installed with CUDA extras.
os.environ.setdefault("JAX_PLATFORMS", "cpu")

import numpy as np
import pytest

from jax_mnist.core.domain.entities.dataset import DatasetInfo, RawDataset
from jax_mnist.core.ports.dataset_provider import DatasetProviderPort


class TinyDigitsDataset(DatasetProviderPort):
    """A few random 28x28 "digits" with MNIST-shaped arrays."""

    def __init__(self, *, n_train: int = 64, n_test: int = 32, seed: int = 0) -> None:
        rng = np.random.default_rng(seed)
        self._raw = RawDataset(
            x_train=rng.integers(0, 256, size=(n_train, 28, 28), dtype=np.uint8),
            y_train=rng.integers(0, 10, size=(n_train,), dtype=np.int64),
            x_test=rng.integers(0, 256, size=(n_test, 28, 28), dtype=np.uint8),
            y_test=rng.integers(0, 10, size=(n_test,), dtype=np.int64),
        )
        self._info = DatasetInfo(num_classes=10, input_shape=(28, 28), train_size=n_train, test_size=n_test)
        self.load_calls = 0

    @property
    def info(self) -> DatasetInfo:
        return self._info

    def load(self) -> RawDataset:
        self.load_calls += 1
        return self._raw


@pytest.fixture
def tiny_digits() -> TinyDigitsDataset:
    return TinyDigitsDataset()
