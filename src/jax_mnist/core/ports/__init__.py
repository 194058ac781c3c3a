
from .checkpoint_store import CheckpointStorePort
from .dataset_provider import DatasetProviderPort
from .metrics_sink import MetricsSinkPort
from .trainable_model import TrainableModelFactoryPort, TrainableModelPort

__all__ = [
	"CheckpointStorePort",
	"DatasetProviderPort",
	"MetricsSinkPort",
	"TrainableModelFactoryPort",
	"TrainableModelPort",
]
