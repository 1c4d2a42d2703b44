from __future__ import annotations

import os
import signal
import subprocess
import sys
import time
from pathlib import Path

import typer
from rich import print

from openclaw_mem import worker
from openclaw_mem.client import WorkerClient
from openclaw_mem.config import OpenclawMemConfig, worker_url


def _read_pid(pid_path: Path) -> int | None:
    try:
        raw = pid_path.read_text().strip()
    except FileNotFoundError:
        return None
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def _pid_running(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


def _write_pid(pid_path: Path, pid: int) -> None:
    pid_path.parent.mkdir(parents=True, exist_ok=True)
    pid_path.write_text(f"{pid}\n")


def _clear_pid(pid_path: Path) -> None:
    try:
        pid_path.unlink()
    except FileNotFoundError:
        return


def _stop_background(pid_path: Path, host: str, port: int) -> None:
    pid = _read_pid(pid_path)
    if pid is None:
        if worker.port_open(host, port):
            print("[yellow]Worker is running but no PID file was found[/yellow]")
        else:
            print("[yellow]No background worker found[/yellow]")
        return
    if not _pid_running(pid):
        _clear_pid(pid_path)
        print("[yellow]Removed stale worker PID file[/yellow]")
        return
    os.kill(pid, signal.SIGTERM)
    deadline = time.monotonic() + 2.0
    while time.monotonic() < deadline:
        if not _pid_running(pid):
            break
        time.sleep(0.05)
    _clear_pid(pid_path)
    print(f"[green]Stopped worker (pid {pid})[/green]")


def _spawn_background(pid_path: Path, host: str, port: int, db_path: str | None) -> None:
    cmd = [
        sys.executable,
        "-m",
        "openclaw_mem.cli",
        "serve",
        "--host",
        host,
        "--port",
        str(port),
    ]
    if db_path:
        cmd += ["--db-path", db_path]
    proc = subprocess.Popen(
        cmd,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        start_new_session=True,
        env=os.environ.copy(),
    )
    _write_pid(pid_path, proc.pid)
    print(
        f"[green]Worker started in background (pid {proc.pid}) at {worker_url(host, port)}[/green]"
    )


def serve_cmd(
    *,
    config: OpenclawMemConfig,
    db_path: str | None,
    host: str | None,
    port: int | None,
    background: bool,
    stop: bool,
    restart: bool,
) -> None:
    """Run the worker (foreground or background)."""

    if stop and restart:
        print("[red]Use only one of --stop or --restart[/red]")
        raise typer.Exit(code=1)

    host = host or config.host
    port = config.port if port is None else port
    if db_path:
        config.db_path = db_path
    pid_path = config.pid_path

    if stop or restart:
        _stop_background(pid_path, host, port)
        if stop:
            return
        background = True

    if background:
        pid = _read_pid(pid_path)
        if pid is not None:
            if _pid_running(pid) and worker.port_open(host, port):
                print(f"[yellow]Worker already running (pid {pid})[/yellow]")
                return
            _clear_pid(pid_path)
        if worker.port_open(host, port):
            print(f"[yellow]Worker already running at {worker_url(host, port)}[/yellow]")
            return
        _spawn_background(pid_path, host, port, db_path)
        return

    if worker.port_open(host, port):
        print(f"[yellow]Worker already running at {worker_url(host, port)}[/yellow]")
        return
    worker.configure_logging(config.log_level)
    print(f"[green]Worker running at {worker_url(host, port)}[/green]")
    worker.serve(config, host=host, port=port)


def status_cmd(*, config: OpenclawMemConfig, store_from_path, db_path: str | None) -> None:
    """Report worker reachability and store counts."""

    client = WorkerClient.from_config(config)
    health = client.health()
    if health.ok:
        print(f"[green]Worker: running at {client.base_url}[/green]")
    else:
        print(f"[yellow]Worker: not reachable at {client.base_url} ({health.error})[/yellow]")
    pid = _read_pid(config.pid_path)
    if pid is not None:
        state = "running" if _pid_running(pid) else "stale"
        print(f"- PID file: {config.pid_path} (pid {pid}, {state})")

    store = store_from_path(db_path)
    try:
        stats = store.stats()
    finally:
        store.close()
    print(f"- Database: {stats['database']['path']}")
    print(
        f"- Sessions: {stats['totalSessions']} (open {stats['openSessions']}), "
        f"observations: {stats['totalObservations']}"
    )
