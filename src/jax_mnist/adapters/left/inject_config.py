from __future__ import annotations

from typing import Optional

import inject

from jax_mnist.core.ports.dataset_provider import DatasetProviderPort
from jax_mnist.core.ports.metrics_sink import MetricsSinkPort
from jax_mnist.core.ports.trainable_model import TrainableModelFactoryPort
from jax_mnist.core.use_cases.compare_pipelines import ComparePipelinesUseCase
from jax_mnist.core.use_cases.run_pipeline import RunPipelineUseCase


# pylint: disable=invalid-name
def get_dependencies_injection_config(
    *,
    dataset_provider: DatasetProviderPort,
    model_factory: TrainableModelFactoryPort,
    metrics_sink: Optional[MetricsSinkPort] = None,
):
    """Return an inject binder function wiring ports to the use cases."""

    run_pipeline = RunPipelineUseCase(
        dataset_provider=dataset_provider,
        model_factory=model_factory,
        metrics_sink=metrics_sink,
    )
    compare = ComparePipelinesUseCase(run_pipeline=run_pipeline, metrics_sink=metrics_sink)

    def configure_dependencies_injection(binder: inject.Binder) -> None:
        binder.bind(DatasetProviderPort, dataset_provider)
        binder.bind(TrainableModelFactoryPort, model_factory)
        if metrics_sink is not None:
            binder.bind(MetricsSinkPort, metrics_sink)

        # Use cases are bound fully wired.
        binder.bind(RunPipelineUseCase, run_pipeline)
        binder.bind(ComparePipelinesUseCase, compare)

    return configure_dependencies_injection


def configure_injections(
    *,
    dataset_provider: DatasetProviderPort,
    model_factory: TrainableModelFactoryPort,
    metrics_sink: Optional[MetricsSinkPort] = None,
) -> None:
    """Configure inject with this app's runtime bindings.

    Safe to call multiple times (clears previous bindings).
    """

    config = get_dependencies_injection_config(
        dataset_provider=dataset_provider,
        model_factory=model_factory,
        metrics_sink=metrics_sink,
    )

    if inject.is_configured():
        inject.clear_and_configure(config)
    else:
        inject.configure(config)
