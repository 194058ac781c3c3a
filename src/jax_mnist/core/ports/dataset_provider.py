from __future__ import annotations

from typing import Protocol

from jax_mnist.core.domain.entities.dataset import DatasetInfo, RawDataset


class DatasetProviderPort(Protocol):
    """Port for providing a labelled train/test image split to the core."""

    @property
    def info(self) -> DatasetInfo: ...

    def load(self) -> RawDataset: ...
