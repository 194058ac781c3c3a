
from .npz_mnist import NpzMnistDatasetProvider
from .tfds_mnist import TfdsMnistDatasetProvider

__all__ = [
	"NpzMnistDatasetProvider",
	"TfdsMnistDatasetProvider",
]
