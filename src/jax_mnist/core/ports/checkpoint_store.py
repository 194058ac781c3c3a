from __future__ import annotations

from typing import Any, Protocol


class CheckpointStorePort(Protocol):
    """Where a trainable model puts its state at the end of each epoch.

    `state` is a dict holding at least `params` (and usually `opt_state`);
    `metadata` is the epoch summary tagged with the pipeline name.
    `load_latest` returns the newest `(global_step, state)` or None when the
    store is empty.
    """

    def save(self, *, step: int, state: dict[str, Any], metadata: dict[str, Any] | None = None) -> None: ...

    def load_latest(self) -> tuple[int, dict[str, Any]] | None: ...
