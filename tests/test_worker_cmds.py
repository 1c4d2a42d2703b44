from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest
import typer

from openclaw_mem.commands import worker_cmds
from openclaw_mem.config import OpenclawMemConfig


def _config(tmp_path: Path) -> OpenclawMemConfig:
    return OpenclawMemConfig(data_dir=str(tmp_path / "data"), port=38999)


def test_pid_file_helpers(tmp_path: Path) -> None:
    pid_path = tmp_path / "run" / "worker.pid"
    assert worker_cmds._read_pid(pid_path) is None
    worker_cmds._write_pid(pid_path, 4242)
    assert worker_cmds._read_pid(pid_path) == 4242
    pid_path.write_text("garbage")
    assert worker_cmds._read_pid(pid_path) is None
    worker_cmds._clear_pid(pid_path)
    worker_cmds._clear_pid(pid_path)
    assert not pid_path.exists()


def test_serve_background_ignores_stale_pid_file(monkeypatch: Any, tmp_path: Path) -> None:
    # A PID file pointing at a live process whose port is closed is stale.
    calls: dict[str, Any] = {"popen": [], "cleared": 0, "written": None}

    monkeypatch.setattr(worker_cmds, "_read_pid", lambda *_: 123)
    monkeypatch.setattr(worker_cmds, "_pid_running", lambda *_: True)
    monkeypatch.setattr(worker_cmds.worker, "port_open", lambda *_: False)
    monkeypatch.setattr(
        worker_cmds, "_clear_pid", lambda *_: calls.__setitem__("cleared", calls["cleared"] + 1)
    )

    def fake_popen(cmd: list[str], **kwargs: Any) -> Any:
        calls["popen"].append(cmd)
        return SimpleNamespace(pid=999)

    monkeypatch.setattr(worker_cmds.subprocess, "Popen", fake_popen)
    monkeypatch.setattr(
        worker_cmds, "_write_pid", lambda _path, pid: calls.__setitem__("written", pid)
    )

    worker_cmds.serve_cmd(
        config=_config(tmp_path),
        db_path=str(tmp_path / "mem.sqlite"),
        host=None,
        port=None,
        background=True,
        stop=False,
        restart=False,
    )

    assert calls["cleared"] == 1
    assert calls["written"] == 999
    [cmd] = calls["popen"]
    assert cmd[1:4] == ["-m", "openclaw_mem.cli", "serve"]
    assert "38999" in cmd
    assert cmd[-2:] == ["--db-path", str(tmp_path / "mem.sqlite")]


def test_serve_background_skips_when_running(monkeypatch: Any, tmp_path: Path) -> None:
    monkeypatch.setattr(worker_cmds, "_read_pid", lambda *_: 123)
    monkeypatch.setattr(worker_cmds, "_pid_running", lambda *_: True)
    monkeypatch.setattr(worker_cmds.worker, "port_open", lambda *_: True)

    def fail_popen(*_args: Any, **_kwargs: Any) -> Any:
        raise AssertionError("should not spawn")

    monkeypatch.setattr(worker_cmds.subprocess, "Popen", fail_popen)
    worker_cmds.serve_cmd(
        config=_config(tmp_path),
        db_path=None,
        host=None,
        port=None,
        background=True,
        stop=False,
        restart=False,
    )


def test_stop_sends_sigterm_and_clears_pid(monkeypatch: Any, tmp_path: Path) -> None:
    config = _config(tmp_path)
    worker_cmds._write_pid(config.pid_path, 321)
    running = {"value": True}
    killed: list[tuple[int, int]] = []

    def fake_kill(pid: int, sig: int) -> None:
        killed.append((pid, sig))
        running["value"] = False

    monkeypatch.setattr(worker_cmds, "_pid_running", lambda *_: running["value"])
    monkeypatch.setattr(worker_cmds.os, "kill", fake_kill)

    worker_cmds.serve_cmd(
        config=config,
        db_path=None,
        host=None,
        port=None,
        background=False,
        stop=True,
        restart=False,
    )

    assert killed == [(321, worker_cmds.signal.SIGTERM)]
    assert not config.pid_path.exists()


def test_stop_and_restart_are_exclusive(tmp_path: Path) -> None:
    with pytest.raises(typer.Exit):
        worker_cmds.serve_cmd(
            config=_config(tmp_path),
            db_path=None,
            host=None,
            port=None,
            background=False,
            stop=True,
            restart=True,
        )
