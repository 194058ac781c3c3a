from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from jax_mnist.core.domain.commands.train import TrainCommand
from jax_mnist.core.domain.entities.base import EvaluationResult
from jax_mnist.core.domain.entities.dataset import RawDataset
from jax_mnist.core.domain.entities.model import Params
from jax_mnist.core.domain.entities.pipeline import PipelineVariant
from jax_mnist.core.domain.errors.training import ShapeMismatchError
from jax_mnist.core.domain.utils.preprocessing import prepare_images, to_categorical
from jax_mnist.core.ports.dataset_provider import DatasetProviderPort
from jax_mnist.core.ports.metrics_sink import MetricsSinkPort
from jax_mnist.core.ports.trainable_model import TrainableModelFactoryPort


@dataclass(frozen=True)
class PipelineResult:
    name: str
    evaluation: EvaluationResult
    history: list[dict[str, Any]]
    params: Params


class RunPipelineUseCase:
    """Load -> reshape/rescale -> one-hot -> build -> compile -> fit -> evaluate."""

    def __init__(
        self,
        *,
        dataset_provider: DatasetProviderPort,
        model_factory: TrainableModelFactoryPort,
        metrics_sink: MetricsSinkPort | None = None,
    ) -> None:
        self._dataset = dataset_provider
        self._models = model_factory
        self._metrics = metrics_sink

    def run(self, variant: PipelineVariant, command: TrainCommand) -> PipelineResult:
        info = self._dataset.info
        raw: RawDataset = self._dataset.load()

        # Each run derives fresh arrays from the raw split; nothing here writes back.
        x_train = prepare_images(raw.x_train, variant.layout)
        x_test = prepare_images(raw.x_test, variant.layout)
        y_train = to_categorical(raw.y_train, info.num_classes)
        y_test = to_categorical(raw.y_test, info.num_classes)

        input_shape = tuple(x_train.shape[1:])
        if len(input_shape) != variant.model_fns.input_rank:
            raise ShapeMismatchError(
                f"pipeline {variant.name!r} produced samples of shape {input_shape}, "
                f"but its model expects rank {variant.model_fns.input_rank}"
            )

        model = self._models.build(
            model_fns=variant.model_fns,
            input_shape=input_shape,
            num_classes=info.num_classes,
            seed=command.seed,
            log_every_steps=command.log_every_steps,
            run_name=variant.name,
        )
        model.compile(
            optimizer=command.optimizer,
            loss=command.loss,
            metrics=command.metrics,
            learning_rate=command.learning_rate,
        )

        if self._metrics:
            self._metrics.log(
                step=0,
                metrics={
                    "event": "pipeline_start",
                    "pipeline": variant.name,
                    "train_size": raw.train_size,
                    "test_size": raw.test_size,
                    "input_shape": list(input_shape),
                    "epochs": command.epochs,
                    "batch_size": command.batch_size,
                    "optimizer": command.optimizer,
                    "lr": command.learning_rate,
                    "seed": command.seed,
                },
            )

        history = model.fit(
            x_train,
            y_train,
            epochs=command.epochs,
            batch_size=command.batch_size,
            seed=command.seed,
        )
        evaluation = model.evaluate(x_test, y_test, batch_size=command.eval_batch_size)

        if self._metrics:
            global_step = int(history[-1].get("global_step", 0)) if history else 0
            self._metrics.log(
                step=global_step,
                metrics={
                    "event": "pipeline_end",
                    "pipeline": variant.name,
                    "epoch": command.epochs,
                    **evaluation.as_dict("test"),
                },
            )

        return PipelineResult(name=variant.name, evaluation=evaluation, history=history, params=model.params)
