from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

# Keys that describe a record rather than measure something.
_NON_METRIC_KEYS = {"event", "pipeline", "epoch", "global_step", "command"}


@dataclass
class MetricSeries:
    name: str
    xs: list[float] = field(default_factory=list)
    ys: list[float] = field(default_factory=list)


def _is_number(x: Any) -> bool:
    return isinstance(x, (int, float)) and not isinstance(x, bool)


def read_jsonl_metrics_records(path: str | Path) -> list[dict[str, Any]]:
    """Read records written by `JsonlFileMetricsSink`; malformed lines are skipped."""

    records: list[dict[str, Any]] = []
    with Path(path).open("r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                rec = json.loads(line)
            except json.JSONDecodeError:
                continue
            if isinstance(rec, dict) and isinstance(rec.get("metrics"), dict) and "step" in rec:
                records.append(rec)
    return records


def extract_metric_series(
    records: list[dict[str, Any]],
    *,
    x_axis: str = "step",
    include_metrics: Iterable[str] | None = None,
) -> dict[str, MetricSeries]:
    """Collect numeric series, one per (pipeline, metric) pair.

    Records tagged with a pipeline produce names like `conv:train/loss`, so a
    single log holding both pipelines yields separate curves.

    x_axis is "step" (record step) or "epoch" (records without an epoch are
    skipped). Series with fewer than two points are dropped.
    """

    x_axis = x_axis.strip().lower()
    if x_axis not in {"step", "epoch"}:
        raise ValueError(f"x_axis must be one of: step, epoch (got {x_axis!r})")
    include = {m.strip() for m in include_metrics if m and m.strip()} if include_metrics is not None else None

    series: dict[str, MetricSeries] = {}
    for rec in records:
        metrics = rec["metrics"]
        x = rec.get("step") if x_axis == "step" else metrics.get("epoch")
        if not _is_number(x):
            continue

        pipeline = metrics.get("pipeline")
        for key, value in metrics.items():
            if key in _NON_METRIC_KEYS or not _is_number(value):
                continue
            if include is not None and key not in include:
                continue
            name = f"{pipeline}:{key}" if isinstance(pipeline, str) and pipeline else key
            s = series.setdefault(name, MetricSeries(name=name))
            s.xs.append(float(x))
            s.ys.append(float(value))

    out: dict[str, MetricSeries] = {}
    for name, s in series.items():
        if len(s.xs) < 2:
            continue
        order = sorted(range(len(s.xs)), key=lambda i: s.xs[i])
        out[name] = MetricSeries(name=name, xs=[s.xs[i] for i in order], ys=[s.ys[i] for i in order])
    return out


def group_metrics(metric_names: Iterable[str], *, group_by: str = "suffix") -> dict[str, list[str]]:
    """Group series into subplots: by metric suffix (`loss`, `acc`) or one each."""

    group_by = group_by.strip().lower()
    if group_by not in {"suffix", "none"}:
        raise ValueError(f"group_by must be one of: suffix, none (got {group_by!r})")

    groups: dict[str, list[str]] = {}
    for name in sorted(metric_names):
        g = name if group_by == "none" else name.split("/")[-1]
        groups.setdefault(g, []).append(name)
    return groups


def plot_metrics_from_logs(
    *,
    log_paths: list[str | Path],
    out_path: str | Path | None,
    show: bool = False,
    x_axis: str = "step",
    metrics: list[str] | None = None,
    group_by: str = "suffix",
    title: str | None = None,
) -> Path | None:
    """Plot metrics from one or more JSONL logs.

    If show is False, out_path must be provided and the figure is saved there.
    Returns the saved path (or None if nothing was saved).
    """

    if not log_paths:
        raise ValueError("No log files provided")
    if not show and not out_path:
        raise ValueError("out_path is required when show=False")

    # Choose backend before importing pyplot.
    import matplotlib

    if not show:
        matplotlib.use("Agg", force=True)

    import matplotlib.pyplot as plt  # pylint: disable=import-error

    multi_file = len(log_paths) > 1
    series: dict[str, MetricSeries] = {}
    for lp in log_paths:
        p = Path(lp)
        for name, s in extract_metric_series(
            read_jsonl_metrics_records(p), x_axis=x_axis, include_metrics=metrics
        ).items():
            label = f"{p.stem}: {name}" if multi_file else name
            series[label] = MetricSeries(name=label, xs=s.xs, ys=s.ys)

    if not series:
        raise ValueError("No matching numeric metrics found to plot")

    groups = group_metrics(series.keys(), group_by=group_by)
    fig, axes = plt.subplots(
        nrows=len(groups),
        ncols=1,
        figsize=(11.0, max(3.0, 3.0 * len(groups))),
        sharex=True,
        constrained_layout=True,
        squeeze=False,
    )

    for ax, (group_name, names) in zip(axes[:, 0], groups.items()):
        for name in names:
            s = series[name]
            ax.plot(s.xs, s.ys, marker="o", markersize=2.5, linewidth=1.5, label=name)
        ax.set_title(group_name)
        ax.grid(True, alpha=0.3)
        ax.legend(loc="best", fontsize=9)

    axes[-1, 0].set_xlabel(x_axis)
    if title:
        fig.suptitle(title)

    saved: Path | None = None
    if out_path:
        saved = Path(out_path)
        saved.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(saved, dpi=140)

    if show:
        plt.show()
    else:
        plt.close(fig)

    return saved
