from __future__ import annotations

from dataclasses import dataclass

from jax_mnist.core.domain.commands.train import TrainCommand
from jax_mnist.core.domain.entities.pipeline import PipelineVariant, conv_pipeline, dense_pipeline
from jax_mnist.core.domain.utils.metrics import error_rate_improvement
from jax_mnist.core.ports.metrics_sink import MetricsSinkPort
from jax_mnist.core.use_cases.run_pipeline import PipelineResult, RunPipelineUseCase


@dataclass(frozen=True)
class ComparisonResult:
    dense: PipelineResult
    conv: PipelineResult
    # Relative drop in error rate from dense to conv (0.5 = half the mistakes).
    error_rate_improvement: float


class ComparePipelinesUseCase:
    """Fit the dense and conv pipelines on the same data and compare them."""

    def __init__(
        self,
        *,
        run_pipeline: RunPipelineUseCase,
        metrics_sink: MetricsSinkPort | None = None,
    ) -> None:
        self._run_pipeline = run_pipeline
        self._metrics = metrics_sink

    def run(
        self,
        *,
        dense_command: TrainCommand | None = None,
        conv_command: TrainCommand | None = None,
        dense_variant: PipelineVariant | None = None,
        conv_variant: PipelineVariant | None = None,
    ) -> ComparisonResult:
        dense_variant = dense_variant or dense_pipeline()
        conv_variant = conv_variant or conv_pipeline()

        dense = self._run_pipeline.run(dense_variant, dense_command or TrainCommand.for_variant(dense_variant))
        conv = self._run_pipeline.run(conv_variant, conv_command or TrainCommand.for_variant(conv_variant))

        improvement = error_rate_improvement(dense.evaluation.accuracy, conv.evaluation.accuracy)

        if self._metrics:
            self._metrics.log(
                step=0,
                metrics={
                    "event": "comparison",
                    "dense/acc": dense.evaluation.accuracy,
                    "conv/acc": conv.evaluation.accuracy,
                    "error_rate_improvement": improvement,
                },
            )

        return ComparisonResult(dense=dense, conv=conv, error_rate_improvement=improvement)
