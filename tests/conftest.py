from __future__ import annotations

import threading
from collections.abc import Iterator
from pathlib import Path

import pytest

from openclaw_mem.config import OpenclawMemConfig
from openclaw_mem.store import MemoryStore
from openclaw_mem.worker import WorkerServer, create_server

_ENV_VARS = (
    "OPENCLAW_MEM_PORT",
    "OPENCLAW_MEM_HOST",
    "OPENCLAW_MEM_DB",
    "OPENCLAW_MEM_LOG_LEVEL",
    "OPENCLAW_MEM_CONTEXT_INJECTION",
)


@pytest.fixture(autouse=True)
def _isolate_config(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("OPENCLAW_MEM_CONFIG", str(tmp_path / "settings.json"))
    monkeypatch.setenv("OPENCLAW_MEM_DATA_DIR", str(tmp_path / "data"))


@pytest.fixture
def store(tmp_path: Path) -> Iterator[MemoryStore]:
    handle = MemoryStore(tmp_path / "mem.sqlite", check_same_thread=False)
    try:
        yield handle
    finally:
        handle.close()


@pytest.fixture
def server(store: MemoryStore) -> Iterator[WorkerServer]:
    worker = create_server(OpenclawMemConfig(), store, host="127.0.0.1", port=0)
    thread = threading.Thread(target=worker.serve_forever, daemon=True)
    thread.start()
    try:
        yield worker
    finally:
        worker.shutdown()
        worker.server_close()
