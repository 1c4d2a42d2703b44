from __future__ import annotations

import typer
from rich import print

from . import __version__
from .commands.common import load_config_or_exit, store_from_path
from .commands.memory_cmds import (
    context_cmd,
    init_db_cmd,
    search_cmd,
    show_cmd,
    stats_cmd,
    timeline_cmd,
)
from .commands.setup_cmds import install_cmd
from .commands.worker_cmds import serve_cmd, status_cmd
from .store.search import DEFAULT_LIMIT, MAX_LIMIT
from .store.timeline import DEFAULT_RANGE_HOURS

app = typer.Typer(help="openclaw-mem: persistent observation memory for agent sessions")


@app.command()
def serve(
    db_path: str = typer.Option(None, help="Path to SQLite database"),
    host: str = typer.Option(None, help="Host to bind the worker"),
    port: int = typer.Option(None, help="Port to bind the worker"),
    background: bool = typer.Option(False, help="Run worker in background"),
    stop: bool = typer.Option(False, help="Stop background worker"),
    restart: bool = typer.Option(False, help="Restart background worker"),
) -> None:
    """Run the HTTP worker."""

    serve_cmd(
        config=load_config_or_exit(),
        db_path=db_path,
        host=host,
        port=port,
        background=background,
        stop=stop,
        restart=restart,
    )


@app.command()
def status(db_path: str = typer.Option(None, help="Path to SQLite database")) -> None:
    """Show worker reachability and store counts."""

    status_cmd(config=load_config_or_exit(), store_from_path=store_from_path, db_path=db_path)


@app.command()
def search(
    query: str = typer.Argument(..., help="FTS5 query"),
    type: str = typer.Option(None, "--type", help="Only this observation type"),
    since: str = typer.Option(None, help="ISO-8601 lower bound on created_at"),
    project: str = typer.Option(None, help="Only sessions with this project path"),
    limit: int = typer.Option(DEFAULT_LIMIT, min=1, max=MAX_LIMIT, help="Max results"),
    db_path: str = typer.Option(None, help="Path to SQLite database"),
) -> None:
    """Search observations."""

    search_cmd(
        store_from_path=store_from_path,
        db_path=db_path,
        query=query,
        type=type,
        since=since,
        project=project,
        limit=limit,
    )


@app.command()
def show(
    observation_id: int = typer.Argument(..., help="Observation id"),
    db_path: str = typer.Option(None, help="Path to SQLite database"),
) -> None:
    """Print one observation as JSON."""

    show_cmd(store_from_path=store_from_path, db_path=db_path, observation_id=observation_id)


@app.command()
def timeline(
    observation_id: int = typer.Argument(..., help="Center observation id"),
    range_hours: float = typer.Option(DEFAULT_RANGE_HOURS, help="Hours either side"),
    db_path: str = typer.Option(None, help="Path to SQLite database"),
) -> None:
    """Show observations recorded around another one."""

    timeline_cmd(
        store_from_path=store_from_path,
        db_path=db_path,
        observation_id=observation_id,
        range_hours=range_hours,
    )


@app.command()
def context(
    project: str = typer.Option(None, help="Only sessions with this project path"),
    max_tokens: int = typer.Option(None, help="Token budget (defaults to settings)"),
    db_path: str = typer.Option(None, help="Path to SQLite database"),
) -> None:
    """Preview the memory block injected at session start."""

    context_cmd(
        config=load_config_or_exit(),
        store_from_path=store_from_path,
        db_path=db_path,
        project=project,
        max_tokens=max_tokens,
    )


@app.command()
def stats(db_path: str = typer.Option(None, help="Path to SQLite database")) -> None:
    """Show database statistics."""

    stats_cmd(store_from_path=store_from_path, db_path=db_path)


@app.command()
def install(force: bool = typer.Option(False, help="Overwrite existing settings")) -> None:
    """Write the default settings file."""

    install_cmd(force=force)


@app.command("init-db")
def init_db(db_path: str = typer.Option(None, help="Path to SQLite database")) -> None:
    """Create the SQLite database."""

    init_db_cmd(store_from_path=store_from_path, db_path=db_path)


@app.command("version")
def version() -> None:
    """Print version."""

    print(__version__)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
