from __future__ import annotations

import json
from pathlib import Path

import pytest

from jax_mnist.adapters.right.metrics_plotting import (
    extract_metric_series,
    group_metrics,
    plot_metrics_from_logs,
    read_jsonl_metrics_records,
)


def _write_log(path: Path) -> None:
    records = [
        {"step": 0, "metrics": {"event": "run_start", "command": "compare"}},
        {"step": 0, "metrics": {"event": "pipeline_start", "pipeline": "dense", "epochs": 2}},
        {"step": 5, "metrics": {"pipeline": "dense", "epoch": 1, "train/loss": 1.0, "train/acc": 0.4}},
        {"step": 10, "metrics": {"pipeline": "dense", "epoch": 2, "train/loss": 0.8, "train/acc": 0.5}},
        {"step": 5, "metrics": {"pipeline": "conv", "epoch": 1, "train/loss": 0.9, "train/acc": 0.5}},
        {"step": 10, "metrics": {"pipeline": "conv", "epoch": 2, "train/loss": 0.6, "train/acc": 0.7}},
    ]
    with path.open("w", encoding="utf-8") as f:
        for r in records:
            f.write(json.dumps(r) + "\n")
        f.write("not json\n")


def test_series_are_split_per_pipeline(tmp_path: Path) -> None:
    log_path = tmp_path / "run.jsonl"
    _write_log(log_path)

    records = read_jsonl_metrics_records(log_path)
    assert len(records) == 6

    series = extract_metric_series(records, x_axis="epoch")
    assert set(series) == {"dense:train/loss", "dense:train/acc", "conv:train/loss", "conv:train/acc"}
    assert series["conv:train/acc"].xs == [1.0, 2.0]
    assert series["conv:train/acc"].ys == [0.5, 0.7]

    groups = group_metrics(series.keys())
    assert set(groups) == {"loss", "acc"}

    with pytest.raises(ValueError):
        extract_metric_series(records, x_axis="wallclock")


def test_plot_metrics_writes_png(tmp_path: Path) -> None:
    log_path = tmp_path / "run.jsonl"
    _write_log(log_path)
    out_path = tmp_path / "plots" / "metrics.png"

    saved = plot_metrics_from_logs(
        log_paths=[log_path],
        out_path=out_path,
        show=False,
        x_axis="step",
        title="unit test",
    )

    assert saved is not None
    assert saved.exists()
    assert saved.stat().st_size > 0


def test_plot_metrics_requires_output_when_headless(tmp_path: Path) -> None:
    log_path = tmp_path / "run.jsonl"
    _write_log(log_path)
    with pytest.raises(ValueError):
        plot_metrics_from_logs(log_paths=[log_path], out_path=None, show=False)
