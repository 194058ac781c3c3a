from __future__ import annotations

import numpy as np

from jax_mnist.core.domain.entities.dataset import DatasetInfo, RawDataset
from jax_mnist.core.domain.errors.training import DatasetError
from jax_mnist.core.ports.dataset_provider import DatasetProviderPort


def _check_labels(name: str, labels: np.ndarray, num_classes: int | None) -> None:
    if labels.ndim != 1 or not np.issubdtype(labels.dtype, np.integer):
        raise DatasetError(f"{name} must be a 1-D integer array, got shape {labels.shape} dtype {labels.dtype}")
    if labels.size and labels.min() < 0:
        raise DatasetError(f"{name} contains negative class ids (min {labels.min()})")
    if num_classes is not None and labels.size and labels.max() >= num_classes:
        raise DatasetError(f"{name} contains class ids >= num_classes={num_classes} (max {labels.max()})")


class NpzMnistDatasetProvider(DatasetProviderPort):
    """Loads a Keras-style `mnist.npz`.

    Expected keys:
      - x_train, y_train
      - x_test, y_test  (or x_valid, y_valid)

    Images are (N, H, W) integer grids, labels are (N,) non-negative class ids.
    """

    def __init__(self, *, path: str, num_classes: int | None = None) -> None:
        try:
            data = np.load(path)
        except (OSError, ValueError) as exc:
            raise DatasetError(f"could not read {path}: {exc}") from exc

        if not isinstance(data, np.lib.npyio.NpzFile):
            raise DatasetError(f"{path} is not an .npz archive (got a single {type(data).__name__})")

        with data:
            if "x_train" not in data or "y_train" not in data:
                raise DatasetError(f"{path} must contain x_train and y_train")
            x_train = data["x_train"]
            y_train = data["y_train"]

            if "x_valid" in data and "y_valid" in data:
                x_test, y_test = data["x_valid"], data["y_valid"]
            elif "x_test" in data and "y_test" in data:
                x_test, y_test = data["x_test"], data["y_test"]
            else:
                raise DatasetError(f"{path} must contain x_test/y_test or x_valid/y_valid")

        if x_train.ndim != 3 or x_test.ndim != 3:
            raise DatasetError(f"images must be (N, H, W), got train={x_train.shape} test={x_test.shape}")
        if x_train.shape[1:] != x_test.shape[1:]:
            raise DatasetError(f"train/test image shapes differ: {x_train.shape[1:]} vs {x_test.shape[1:]}")
        if len(x_train) != len(y_train) or len(x_test) != len(y_test):
            raise DatasetError("every image needs exactly one label")
        _check_labels("y_train", y_train, num_classes)
        _check_labels("y_test", y_test, num_classes)

        self._raw = RawDataset(
            x_train=x_train,
            y_train=y_train.astype(np.int64),
            x_test=x_test,
            y_test=y_test.astype(np.int64),
        )

        if num_classes is None:
            num_classes = int(max(np.max(y_train, initial=0), np.max(y_test, initial=0))) + 1
        self._info = DatasetInfo(
            num_classes=num_classes,
            input_shape=tuple(int(d) for d in x_train.shape[1:]),
            train_size=self._raw.train_size,
            test_size=self._raw.test_size,
        )

    @property
    def info(self) -> DatasetInfo:
        return self._info

    def load(self) -> RawDataset:
        return self._raw
