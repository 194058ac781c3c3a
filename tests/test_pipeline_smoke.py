from __future__ import annotations

import numpy as np
import pytest

from jax_mnist.adapters.right.models.jax_trainable_model import JaxTrainableModelFactory
from jax_mnist.core.domain.commands.train import TrainCommand
from jax_mnist.core.domain.entities.pipeline import conv_pipeline, dense_pipeline, get_pipeline
from jax_mnist.core.domain.errors.training import ConfigurationError
from jax_mnist.core.domain.utils.metrics import error_rate_improvement
from jax_mnist.core.use_cases.compare_pipelines import ComparePipelinesUseCase
from jax_mnist.core.use_cases.run_pipeline import RunPipelineUseCase


class _RecordingSink:
    def __init__(self) -> None:
        self.records: list[dict] = []

    def log(self, *, step: int, metrics: dict) -> None:
        self.records.append(dict(metrics))


def _use_case(dataset, sink=None) -> RunPipelineUseCase:
    return RunPipelineUseCase(
        dataset_provider=dataset,
        model_factory=JaxTrainableModelFactory(metrics_sink=sink),
        metrics_sink=sink,
    )


def test_variant_defaults() -> None:
    dense = TrainCommand.for_variant(dense_pipeline())
    conv = TrainCommand.for_variant(conv_pipeline(), seed=3)
    assert (dense.epochs, dense.batch_size) == (5, 128)
    assert (conv.epochs, conv.batch_size, conv.seed) == (5, 64, 3)
    assert get_pipeline(" Conv ").layout == "spatial"
    with pytest.raises(ConfigurationError):
        get_pipeline("transformer")


def test_dense_pipeline_runs_end_to_end(tiny_digits) -> None:
    sink = _RecordingSink()
    variant = dense_pipeline(hidden_sizes=(32,))
    result = _use_case(tiny_digits, sink).run(variant, TrainCommand(epochs=1, batch_size=16))

    assert result.name == "dense"
    assert len(result.history) == 1
    assert 0.0 <= result.evaluation.accuracy <= 1.0
    assert result.evaluation.loss >= 0.0
    assert result.evaluation.num_samples == 32
    assert result.params[0]["w"].shape == (784, 32)

    events = [r.get("event") for r in sink.records if "event" in r]
    assert events == ["pipeline_start", "pipeline_end"]


def test_conv_pipeline_runs_end_to_end(tiny_digits) -> None:
    variant = conv_pipeline(filters=(4, 8, 8), hidden_sizes=(16,))
    result = _use_case(tiny_digits).run(variant, TrainCommand(epochs=1, batch_size=16))

    assert result.name == "conv"
    assert 0.0 <= result.evaluation.accuracy <= 1.0
    assert result.evaluation.loss >= 0.0
    assert result.params["conv"][0]["w"].shape == (3, 3, 1, 4)


def test_compare_runs_both_pipelines_on_untouched_raw_data(tiny_digits) -> None:
    raw_before = tiny_digits.load().x_train.copy()

    compare = ComparePipelinesUseCase(run_pipeline=_use_case(tiny_digits))
    result = compare.run(
        dense_command=TrainCommand(epochs=1, batch_size=32),
        conv_command=TrainCommand(epochs=1, batch_size=32),
        dense_variant=dense_pipeline(hidden_sizes=(16,)),
        conv_variant=conv_pipeline(filters=(4, 4, 4), hidden_sizes=(8,)),
    )

    assert result.dense.name == "dense"
    assert result.conv.name == "conv"
    assert result.error_rate_improvement == pytest.approx(
        error_rate_improvement(result.dense.evaluation.accuracy, result.conv.evaluation.accuracy)
    )

    # Dense flattened its copy; conv still saw (N, 28, 28) grids.
    np.testing.assert_array_equal(tiny_digits.load().x_train, raw_before)
    assert tiny_digits.load().x_train.shape == (64, 28, 28)
