from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class DatasetInfo:
    """Metadata required by the pipelines."""

    num_classes: int
    input_shape: tuple[int, ...]
    train_size: int | None = None
    test_size: int | None = None
    class_names: tuple[str, ...] | None = None


@dataclass(frozen=True)
class RawDataset:
    """Images and integer labels exactly as the provider loaded them.

    Images are (N, H, W) intensity grids and labels are (N,) class ids.
    Pipelines derive their own arrays from these and never write back.
    """

    x_train: np.ndarray
    y_train: np.ndarray
    x_test: np.ndarray
    y_test: np.ndarray

    @property
    def train_size(self) -> int:
        return int(self.x_train.shape[0])

    @property
    def test_size(self) -> int:
        return int(self.x_test.shape[0])
