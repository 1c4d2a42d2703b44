from __future__ import annotations

from typing import Any, Protocol


class _WorkerHandler(Protocol):
    def _send_json(self, payload: dict[str, Any] | list[Any], status: int = 200) -> None: ...
