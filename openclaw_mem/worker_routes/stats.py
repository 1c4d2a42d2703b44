from __future__ import annotations

from .. import __version__
from ..store import MemoryStore
from ..store.utils import now_iso
from ._types import _WorkerHandler


def handle_get(handler: _WorkerHandler, store: MemoryStore, path: str, query: str) -> bool:
    if path == "/api/health":
        handler._send_json({"status": "ok", "timestamp": now_iso(), "version": __version__})
        return True
    if path == "/api/stats":
        handler._send_json(store.stats())
        return True
    return False
