from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

import jax
import numpy as np
from safetensors.numpy import load_file, save_file

from jax_mnist.core.ports.checkpoint_store import CheckpointStorePort

_PARAMS_RE = re.compile(r"^params_step_(\d+)\.safetensors$")


def _path_key(path: tuple[Any, ...]) -> str:
    parts = []
    for entry in path:
        if isinstance(entry, jax.tree_util.DictKey):
            parts.append(str(entry.key))
        elif isinstance(entry, jax.tree_util.SequenceKey):
            parts.append(str(entry.idx))
        else:
            parts.append(str(entry))
    return ".".join(parts)


def flatten_params(params: Any) -> dict[str, np.ndarray]:
    """Params pytree -> {"conv.0.w": array, "dense.1.b": array, ...}."""

    leaves, _ = jax.tree_util.tree_flatten_with_path(params)
    return {_path_key(path): np.asarray(leaf) for path, leaf in leaves}


class FilesystemCheckpointStore(CheckpointStorePort):
    """Writes params as safetensors plus a JSON metadata file per step.

    Only `params` are persisted; optimizer state is not.
    """

    def __init__(self, *, dir_path: str | Path) -> None:
        self._dir = Path(dir_path)
        self._dir.mkdir(parents=True, exist_ok=True)

    def save(self, *, step: int, state: dict[str, Any], metadata: dict[str, Any] | None = None) -> None:
        params = state.get("params") if isinstance(state, dict) else None
        if params is None:
            raise ValueError("state must be a dict containing 'params'")

        save_file(flatten_params(params), str(self._dir / f"params_step_{step}.safetensors"))
        with (self._dir / f"meta_step_{step}.json").open("w", encoding="utf-8") as f:
            json.dump(metadata or {}, f)

    def load_latest(self) -> tuple[int, dict[str, Any]] | None:
        """Return (step, {"params": flat arrays, "metadata": dict}) for the newest step."""

        steps = [int(m.group(1)) for p in self._dir.iterdir() if (m := _PARAMS_RE.match(p.name))]
        if not steps:
            return None

        step = max(steps)
        params = load_file(str(self._dir / f"params_step_{step}.safetensors"))
        meta_path = self._dir / f"meta_step_{step}.json"
        metadata = json.loads(meta_path.read_text(encoding="utf-8")) if meta_path.exists() else {}
        return step, {"params": params, "metadata": metadata}
