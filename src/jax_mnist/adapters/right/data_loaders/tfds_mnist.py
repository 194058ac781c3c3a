from __future__ import annotations

import numpy as np
import tensorflow as tf
import tensorflow_datasets as tfds

from jax_mnist.core.domain.entities.dataset import DatasetInfo, RawDataset
from jax_mnist.core.domain.errors.training import DatasetError
from jax_mnist.core.ports.dataset_provider import DatasetProviderPort


def _drop_channel(images: np.ndarray) -> np.ndarray:
    # TFDS stores grayscale images as (N, H, W, 1); the core works on (N, H, W) grids.
    if images.ndim == 4 and images.shape[-1] == 1:
        return images[..., 0]
    return images


class TfdsMnistDatasetProvider(DatasetProviderPort):
    """TFDS-backed provider for MNIST-style grayscale digit datasets.

    Loads every split as one full batch on construction and keeps the NumPy
    arrays; `load()` hands back the same `RawDataset` each time.
    """

    def __init__(
        self,
        *,
        name: str = "mnist",
        data_dir: str = "/tmp/tfds",
        hide_gpus_from_tf: bool = True,
    ) -> None:
        if hide_gpus_from_tf:
            # Keep TF from grabbing accelerator memory that JAX will want.
            tf.config.set_visible_devices([], "GPU")

        try:
            data, info = tfds.load(
                name=name,
                data_dir=data_dir,
                batch_size=-1,
                as_supervised=True,
                with_info=True,
            )
        except Exception as exc:  # pylint: disable=broad-exception-caught
            raise DatasetError(f"could not load TFDS dataset {name!r}: {exc}") from exc

        train = data.get("train")
        test = data.get("test") or data.get("validation")
        if train is None or test is None:
            raise DatasetError(f"TFDS dataset '{name}' must have train and test/validation splits")

        (x_train, y_train), (x_test, y_test) = tfds.as_numpy(train), tfds.as_numpy(test)
        self._raw = RawDataset(
            x_train=_drop_channel(np.asarray(x_train)),
            y_train=np.asarray(y_train, dtype=np.int64),
            x_test=_drop_channel(np.asarray(x_test)),
            y_test=np.asarray(y_test, dtype=np.int64),
        )

        label = info.features["label"]
        self._info = DatasetInfo(
            num_classes=int(label.num_classes),
            input_shape=tuple(int(d) for d in self._raw.x_train.shape[1:]),
            train_size=self._raw.train_size,
            test_size=self._raw.test_size,
            class_names=tuple(label.names),
        )

    @property
    def info(self) -> DatasetInfo:
        return self._info

    def load(self) -> RawDataset:
        return self._raw
