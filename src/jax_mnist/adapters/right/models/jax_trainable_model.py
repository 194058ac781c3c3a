from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

import jax
import jax.numpy as jnp
import numpy as np
import optax

from jax_mnist.core.domain.entities.base import Batch, EvaluationResult
from jax_mnist.core.domain.entities.model import ClassifierFns, Params
from jax_mnist.core.domain.errors.training import ShapeMismatchError, TrainingError
from jax_mnist.core.domain.registry import resolve_loss, resolve_metrics, resolve_optimizer
from jax_mnist.core.domain.utils.metrics import categorical_accuracy
from jax_mnist.core.ports.checkpoint_store import CheckpointStorePort
from jax_mnist.core.ports.metrics_sink import MetricsSinkPort
from jax_mnist.core.ports.trainable_model import TrainableModelFactoryPort, TrainableModelPort


def iter_batches(
    x: np.ndarray,
    y: np.ndarray | None,
    *,
    batch_size: int,
    shuffle: bool,
    seed: int,
) -> Iterable[Batch]:
    n = len(x)
    idx = np.arange(n)
    if shuffle:
        rng = np.random.default_rng(seed)
        rng.shuffle(idx)

    for start in range(0, n, batch_size):
        sel = idx[start : start + batch_size]
        yield Batch(x=x[sel], y=y[sel] if y is not None else np.empty((len(sel), 0), dtype=np.float32))


class JaxTrainableModel(TrainableModelPort):
    """JAX + Optax implementation of compile/fit/evaluate/predict.

    The model owns its params and optimizer state; `fit` updates them in place
    from the caller's point of view. Inputs are validated against the declared
    `input_shape` before anything reaches XLA.
    """

    def __init__(
        self,
        *,
        model_fns: ClassifierFns,
        input_shape: tuple[int, ...],
        num_classes: int,
        seed: int = 0,
        metrics_sink: MetricsSinkPort | None = None,
        checkpoint_store: CheckpointStorePort | None = None,
        log_every_steps: int = 100,
        run_name: str | None = None,
    ) -> None:
        if num_classes <= 1:
            raise TrainingError(f"num_classes must be >= 2, got {num_classes}")
        if log_every_steps < 1:
            raise TrainingError(f"log_every_steps must be >= 1, got {log_every_steps}")

        self._model = model_fns
        self._input_shape = tuple(int(d) for d in input_shape)
        self._num_classes = int(num_classes)
        self._metrics = metrics_sink
        self._ckpt = checkpoint_store
        self._log_every_steps = log_every_steps
        self._tags: dict[str, Any] = {"pipeline": run_name} if run_name else {}

        key = jax.random.PRNGKey(seed)
        self._params = model_fns.init(key=key, input_shape=self._input_shape, num_classes=self._num_classes)

        self._opt_state: optax.OptState | None = None
        self._train_step = None
        self._eval_step = None
        self._global_step = 0

        model = self._model

        @jax.jit
        def predict_step(p: Params, x: jax.Array) -> jax.Array:
            return model.predict_proba(p, x)

        self._predict_step = predict_step

    @property
    def params(self) -> Params:
        return self._params

    @property
    def input_shape(self) -> tuple[int, ...]:
        return self._input_shape

    @property
    def num_classes(self) -> int:
        return self._num_classes

    @property
    def is_compiled(self) -> bool:
        return self._train_step is not None

    def compile(
        self,
        *,
        optimizer: str = "rmsprop",
        loss: str = "categorical_crossentropy",
        metrics: Sequence[str] = ("accuracy",),
        learning_rate: float = 1e-3,
    ) -> None:
        tx = resolve_optimizer(optimizer, learning_rate)
        loss_fn = resolve_loss(loss)
        metric_fns = resolve_metrics(metrics)
        # Evaluation always reports accuracy, whatever was requested for training logs.
        eval_metric_fns = {"acc": categorical_accuracy, **metric_fns}
        model = self._model

        @jax.jit
        def train_step(p: Params, s: optax.OptState, x: jax.Array, y: jax.Array):
            def _loss_fn(pp: Params):
                logits = model.apply(pp, x, is_training=True)
                return loss_fn(logits, y), logits

            (loss_value, logits), grads = jax.value_and_grad(_loss_fn, has_aux=True)(p)
            updates, s2 = tx.update(grads, s, p)
            p2 = optax.apply_updates(p, updates)
            return p2, s2, loss_value, {name: fn(logits, y) for name, fn in metric_fns.items()}

        @jax.jit
        def eval_step(p: Params, x: jax.Array, y: jax.Array):
            logits = model.apply(p, x, is_training=False)
            return loss_fn(logits, y), {name: fn(logits, y) for name, fn in eval_metric_fns.items()}

        self._opt_state = tx.init(self._params)
        self._train_step = train_step
        self._eval_step = eval_step

    def _check_x(self, x: np.ndarray) -> np.ndarray:
        x = np.asarray(x, dtype=np.float32)
        if x.ndim < 1 or tuple(x.shape[1:]) != self._input_shape:
            raise ShapeMismatchError(
                f"expected inputs of shape (N, {', '.join(map(str, self._input_shape))}), got {x.shape}"
            )
        return x

    def _check_xy(self, x: np.ndarray, y: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        x = self._check_x(x)
        y = np.asarray(y, dtype=np.float32)
        if y.ndim != 2 or y.shape[1] != self._num_classes:
            raise ShapeMismatchError(
                f"expected one-hot targets of shape (N, {self._num_classes}), got {y.shape}"
            )
        if len(y) != len(x):
            raise ShapeMismatchError(f"got {len(x)} inputs but {len(y)} targets")
        return x, y

    def _log(self, metrics: dict[str, Any]) -> None:
        if self._metrics:
            self._metrics.log(step=self._global_step, metrics={**self._tags, **metrics})

    def fit(
        self,
        x: np.ndarray,
        y: np.ndarray,
        *,
        epochs: int,
        batch_size: int,
        seed: int = 0,
    ) -> list[dict[str, Any]]:
        if not self.is_compiled:
            raise TrainingError("model must be compiled before fit()")
        if epochs < 1:
            raise TrainingError(f"epochs must be >= 1, got {epochs}")
        if batch_size < 1:
            raise TrainingError(f"batch_size must be >= 1, got {batch_size}")
        x, y = self._check_xy(x, y)
        if len(x) == 0:
            raise TrainingError("cannot fit on an empty training split")

        history: list[dict[str, Any]] = []
        for epoch in range(1, epochs + 1):
            seen = 0
            loss_sum = 0.0
            metric_sums: dict[str, float] = {}

            for batch in iter_batches(x, y, batch_size=batch_size, shuffle=True, seed=seed + epoch):
                self._params, self._opt_state, loss, step_metrics = self._train_step(
                    self._params, self._opt_state, jnp.asarray(batch.x), jnp.asarray(batch.y)
                )
                self._global_step += 1

                k = len(batch.x)
                seen += k
                loss_sum += float(loss) * k
                for name, value in step_metrics.items():
                    metric_sums[name] = metric_sums.get(name, 0.0) + float(value) * k

                if self._global_step % self._log_every_steps == 0:
                    self._log(
                        {"train/loss": float(loss), **{f"train/{n}": float(v) for n, v in step_metrics.items()}}
                    )

            epoch_summary: dict[str, Any] = {
                "epoch": epoch,
                "train/loss": loss_sum / seen,
                **{f"train/{name}": total / seen for name, total in metric_sums.items()},
                "global_step": self._global_step,
            }
            history.append(epoch_summary)
            self._log(epoch_summary)

            if self._ckpt:
                self._ckpt.save(
                    step=self._global_step,
                    state={"params": self._params, "opt_state": self._opt_state},
                    metadata={**self._tags, **epoch_summary},
                )

        return history

    def evaluate(self, x: np.ndarray, y: np.ndarray, *, batch_size: int = 1000) -> EvaluationResult:
        if not self.is_compiled:
            raise TrainingError("model must be compiled before evaluate()")
        if batch_size < 1:
            raise TrainingError(f"batch_size must be >= 1, got {batch_size}")
        x, y = self._check_xy(x, y)
        if len(x) == 0:
            raise TrainingError("cannot evaluate on an empty split")

        # Weight per-batch means by batch size so a short last batch counts correctly.
        loss_sum = 0.0
        acc_sum = 0.0
        for batch in iter_batches(x, y, batch_size=batch_size, shuffle=False, seed=0):
            loss, metrics = self._eval_step(self._params, jnp.asarray(batch.x), jnp.asarray(batch.y))
            k = len(batch.x)
            loss_sum += float(loss) * k
            acc_sum += float(metrics["acc"]) * k

        n = len(x)
        return EvaluationResult(loss=max(0.0, loss_sum / n), accuracy=min(1.0, acc_sum / n), num_samples=n)

    def predict(self, x: np.ndarray, *, batch_size: int = 1000) -> np.ndarray:
        """Class probabilities, shape (N, num_classes); each row sums to 1."""

        if batch_size < 1:
            raise TrainingError(f"batch_size must be >= 1, got {batch_size}")
        x = self._check_x(x)
        outs = [
            np.asarray(self._predict_step(self._params, jnp.asarray(batch.x)))
            for batch in iter_batches(x, None, batch_size=batch_size, shuffle=False, seed=0)
        ]
        if not outs:
            return np.zeros((0, self._num_classes), dtype=np.float32)
        return np.concatenate(outs, axis=0)


class JaxTrainableModelFactory(TrainableModelFactoryPort):
    """Builds `JaxTrainableModel`s sharing one metrics sink and checkpoint store."""

    def __init__(
        self,
        *,
        metrics_sink: MetricsSinkPort | None = None,
        checkpoint_store: CheckpointStorePort | None = None,
    ) -> None:
        self._metrics = metrics_sink
        self._ckpt = checkpoint_store

    def build(
        self,
        *,
        model_fns: ClassifierFns,
        input_shape: tuple[int, ...],
        num_classes: int,
        seed: int,
        log_every_steps: int = 100,
        run_name: str | None = None,
    ) -> JaxTrainableModel:
        return JaxTrainableModel(
            model_fns=model_fns,
            input_shape=input_shape,
            num_classes=num_classes,
            seed=seed,
            metrics_sink=self._metrics,
            checkpoint_store=self._ckpt,
            log_every_steps=log_every_steps,
            run_name=run_name,
        )
