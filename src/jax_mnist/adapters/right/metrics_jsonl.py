from __future__ import annotations

import dataclasses
import json
import math
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any

import numpy as np

from jax_mnist.core.ports.metrics_sink import MetricsSinkPort


def _to_jsonable(value: Any) -> Any:
    """Turn a metric value into strict JSON.

    Handles NumPy/JAX scalars and arrays, result dataclasses such as
    `EvaluationResult` and paths. NaN/inf become null so every line stays
    parseable by `json.loads` outside Python.
    """

    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if value is None or isinstance(value, (bool, int, str)):
        return value

    if isinstance(value, np.generic):
        return _to_jsonable(value.item())

    # numpy / jax arrays
    if hasattr(value, "shape") and hasattr(value, "dtype"):
        arr = np.asarray(value)
        return _to_jsonable(arr.item() if arr.shape == () else arr.tolist())

    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return _to_jsonable(dataclasses.asdict(value))

    if isinstance(value, Path):
        return str(value)

    if isinstance(value, dict):
        return {str(k): _to_jsonable(v) for k, v in value.items()}

    if isinstance(value, (list, tuple)):
        return [_to_jsonable(v) for v in value]

    return str(value)


class JsonlFileMetricsSink(MetricsSinkPort):
    """Append-only JSONL run log, one `{"ts", "step", "metrics"}` object per line.

    `metrics_plotting.read_jsonl_metrics_records` reads the same format back.
    """

    def __init__(self, *, path: str | Path) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = Lock()

    @property
    def path(self) -> Path:
        return self._path

    def log(self, *, step: int, metrics: dict[str, Any]) -> None:
        line = json.dumps(
            {
                "ts": datetime.now(timezone.utc).isoformat(),
                "step": int(step),
                "metrics": _to_jsonable(metrics),
            },
            ensure_ascii=False,
            allow_nan=False,
        )
        with self._lock, self._path.open("a", encoding="utf-8") as f:
            f.write(line + "\n")


class CompositeMetricsSink(MetricsSinkPort):
    """Fan one record out to several sinks (e.g. stdout and a JSONL file)."""

    def __init__(self, *sinks: MetricsSinkPort | None) -> None:
        self._sinks = [s for s in sinks if s is not None]

    def log(self, *, step: int, metrics: dict[str, Any]) -> None:
        for s in self._sinks:
            s.log(step=step, metrics=metrics)
