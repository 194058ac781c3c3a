from __future__ import annotations

import os
import warnings
from dataclasses import asdict
from pathlib import Path

import inject
import typer

# Default to CPU unless explicitly overridden by the user.
# This avoids noisy CUDA plugin initialization errors on machines without CUDA libraries.
os.environ.setdefault("JAX_PLATFORMS", "cpu")

# Reduce known-noisy warning coming from TF in some environments.
warnings.filterwarnings(
    "ignore",
    message=r"In the future `np\.object` will be defined as the corresponding NumPy scalar\.",
    category=FutureWarning,
)

from jax_mnist.adapters.left.inject_config import configure_injections
from jax_mnist.adapters.right.checkpoints_filesystem import FilesystemCheckpointStore
from jax_mnist.adapters.right.data_loaders import NpzMnistDatasetProvider, TfdsMnistDatasetProvider
from jax_mnist.adapters.right.metrics_jsonl import CompositeMetricsSink, JsonlFileMetricsSink
from jax_mnist.adapters.right.metrics_plotting import plot_metrics_from_logs
from jax_mnist.adapters.right.metrics_stdout import StdoutMetricsSink
from jax_mnist.adapters.right.models.jax_trainable_model import JaxTrainableModelFactory
from jax_mnist.core.domain.commands.train import TrainCommand
from jax_mnist.core.domain.entities.pipeline import PipelineVariant, get_pipeline
from jax_mnist.core.domain.errors.training import TrainingError
from jax_mnist.core.ports.dataset_provider import DatasetProviderPort
from jax_mnist.core.ports.metrics_sink import MetricsSinkPort
from jax_mnist.core.use_cases.compare_pipelines import ComparePipelinesUseCase
from jax_mnist.core.use_cases.run_pipeline import RunPipelineUseCase

app = typer.Typer(add_completion=False, no_args_is_help=True)


def _build_dataset(*, dataset_kind: str, tfds_name: str, tfds_data_dir: str, npz_path: str) -> DatasetProviderPort:
    dataset_kind = dataset_kind.lower().strip()
    if dataset_kind == "tfds":
        return TfdsMnistDatasetProvider(name=tfds_name, data_dir=tfds_data_dir)
    if dataset_kind == "npz":
        if not npz_path:
            raise typer.BadParameter("--npz-path is required when dataset_kind=npz")
        return NpzMnistDatasetProvider(path=npz_path)
    raise typer.BadParameter("dataset_kind must be one of: tfds, npz")


def _build_metrics(log_path: str) -> MetricsSinkPort:
    stdout_metrics = StdoutMetricsSink()
    if log_path:
        return CompositeMetricsSink(stdout_metrics, JsonlFileMetricsSink(path=log_path))
    return stdout_metrics


def _command_for(
    variant: PipelineVariant,
    *,
    epochs: int,
    batch_size: int,
    optimizer: str,
    lr: float,
    seed: int,
) -> TrainCommand:
    overrides = {"seed": seed, "optimizer": optimizer, "learning_rate": lr}
    if epochs > 0:
        overrides["epochs"] = epochs
    if batch_size > 0:
        overrides["batch_size"] = batch_size
    return TrainCommand.for_variant(variant, **overrides)


@app.command()
def train(
    pipeline: str = typer.Option("dense", help="Pipeline to run: dense | conv"),
    dataset_kind: str = typer.Option("tfds", help="Dataset adapter to use: tfds | npz"),
    tfds_name: str = typer.Option("mnist", help="TFDS dataset name (when dataset_kind=tfds)"),
    tfds_data_dir: str = typer.Option("/tmp/tfds", help="TFDS cache directory (when dataset_kind=tfds)"),
    npz_path: str = typer.Option("", help="Path to a Keras-style mnist.npz (when dataset_kind=npz)"),
    epochs: int = typer.Option(0, min=0, help="0 uses the pipeline default (5)"),
    batch_size: int = typer.Option(0, min=0, help="0 uses the pipeline default (dense 128, conv 64)"),
    optimizer: str = typer.Option("rmsprop", help="rmsprop | adam | adamw | sgd"),
    lr: float = typer.Option(1e-3),
    seed: int = typer.Option(0),
    ckpt_dir: str = typer.Option("", help="If set, save checkpoints to this folder"),
    log_path: str = typer.Option(
        "",
        help="If set, append metrics/events as JSONL to this path (e.g. logs/train.jsonl)",
    ),
) -> None:
    """Fit one pipeline and report its held-out loss and accuracy."""

    try:
        variant = get_pipeline(pipeline)
        dataset = _build_dataset(
            dataset_kind=dataset_kind, tfds_name=tfds_name, tfds_data_dir=tfds_data_dir, npz_path=npz_path
        )
        metrics = _build_metrics(log_path)
        ckpt = FilesystemCheckpointStore(dir_path=ckpt_dir) if ckpt_dir else None
        configure_injections(
            dataset_provider=dataset,
            model_factory=JaxTrainableModelFactory(metrics_sink=metrics, checkpoint_store=ckpt),
            metrics_sink=metrics,
        )

        cmd = _command_for(variant, epochs=epochs, batch_size=batch_size, optimizer=optimizer, lr=lr, seed=seed)
        metrics.log(step=0, metrics={"event": "run_start", "command": "train", "dataset_kind": dataset_kind})

        result = inject.instance(RunPipelineUseCase).run(variant, cmd)
    except TrainingError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    typer.echo("Training complete")
    typer.echo(f"Test loss: {result.evaluation.loss:.4f}")
    typer.echo(f"Test accuracy: {result.evaluation.accuracy:.4f}")
    typer.echo(f"Train command: {asdict(cmd)}")


@app.command()
def compare(
    dataset_kind: str = typer.Option("tfds", help="Dataset adapter to use: tfds | npz"),
    tfds_name: str = typer.Option("mnist", help="TFDS dataset name (when dataset_kind=tfds)"),
    tfds_data_dir: str = typer.Option("/tmp/tfds", help="TFDS cache directory (when dataset_kind=tfds)"),
    npz_path: str = typer.Option("", help="Path to a Keras-style mnist.npz (when dataset_kind=npz)"),
    epochs: int = typer.Option(0, min=0, help="0 uses the pipeline defaults (5)"),
    optimizer: str = typer.Option("rmsprop", help="rmsprop | adam | adamw | sgd"),
    lr: float = typer.Option(1e-3),
    seed: int = typer.Option(0),
    log_path: str = typer.Option("", help="If set, append metrics/events as JSONL to this path"),
) -> None:
    """Fit the dense and conv pipelines on the same data and compare error rates."""

    try:
        dense_variant = get_pipeline("dense")
        conv_variant = get_pipeline("conv")
        dataset = _build_dataset(
            dataset_kind=dataset_kind, tfds_name=tfds_name, tfds_data_dir=tfds_data_dir, npz_path=npz_path
        )
        metrics = _build_metrics(log_path)
        configure_injections(
            dataset_provider=dataset,
            model_factory=JaxTrainableModelFactory(metrics_sink=metrics),
            metrics_sink=metrics,
        )

        common = {"epochs": epochs, "batch_size": 0, "optimizer": optimizer, "lr": lr, "seed": seed}
        metrics.log(step=0, metrics={"event": "run_start", "command": "compare", "dataset_kind": dataset_kind})

        result = inject.instance(ComparePipelinesUseCase).run(
            dense_command=_command_for(dense_variant, **common),
            conv_command=_command_for(conv_variant, **common),
            dense_variant=dense_variant,
            conv_variant=conv_variant,
        )
    except TrainingError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    typer.echo(f"Dense test accuracy: {result.dense.evaluation.accuracy:.4f}")
    typer.echo(f"Conv test accuracy: {result.conv.evaluation.accuracy:.4f}")
    typer.echo(f"Error rate reduced by {result.error_rate_improvement * 100:.1f}%")


@app.command(name="plot-metrics")
def plot_metrics(
    log_paths: list[Path] = typer.Argument(..., help="One or more JSONL metric logs"),
    out_path: Path = typer.Option(Path("metrics.png"), help="Where to save the figure"),
    x_axis: str = typer.Option("step", help="step | epoch"),
    metric: list[str] = typer.Option([], help="Repeatable metric filter: --metric train/loss"),
    group_by: str = typer.Option("suffix", help="suffix | none"),
    title: str = typer.Option("", help="Figure title"),
    show: bool = typer.Option(False, "--show/--no-show", help="Open an interactive window"),
) -> None:
    """Plot training/evaluation curves from JSONL logs."""

    try:
        saved = plot_metrics_from_logs(
            log_paths=list(log_paths),
            out_path=out_path,
            show=show,
            x_axis=x_axis,
            metrics=metric or None,
            group_by=group_by,
            title=title or None,
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    if saved is not None:
        typer.echo(f"Wrote plot to: {saved}")


if __name__ == "__main__":
    app()
