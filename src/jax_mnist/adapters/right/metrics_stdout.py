from __future__ import annotations

from typing import Any

from jax_mnist.core.ports.metrics_sink import MetricsSinkPort


def _fmt(value: Any) -> str:
    if isinstance(value, float):
        return f"{value:.4f}"
    return str(value)


class StdoutMetricsSink(MetricsSinkPort):
    def log(self, *, step: int, metrics: dict[str, Any]) -> None:
        items = ", ".join(f"{k}={_fmt(v)}" for k, v in metrics.items())
        print(f"[step={step}] {items}")
