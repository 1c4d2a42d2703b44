from __future__ import annotations

import json

import typer
from rich import print
from rich.markup import escape

from openclaw_mem.commands.common import one_line
from openclaw_mem.config import OpenclawMemConfig
from openclaw_mem.errors import ValidationError
from openclaw_mem.store.context import format_memory_block
from openclaw_mem.store.search import search_response


def search_cmd(
    *,
    store_from_path,
    db_path: str | None,
    query: str,
    type: str | None,
    since: str | None,
    project: str | None,
    limit: int,
) -> None:
    """Full-text search over observations."""

    store = store_from_path(db_path)
    try:
        try:
            response = search_response(
                store, query, type=type, since=since, project=project, limit=limit
            )
        except ValidationError as exc:
            print(f"[red]{exc}[/red]")
            raise typer.Exit(code=1) from exc
    finally:
        store.close()
    if response.get("error"):
        print(f"[red]{response['error']}[/red]")
        raise typer.Exit(code=1)
    if not response["results"]:
        print("[yellow]No matching observations[/yellow]")
        return
    for item in response["results"]:
        label = item["summary"] or item["tool_name"] or ""
        print(
            f"[{item['id']}] ({item['type']}) {escape(one_line(label))}\n"
            f"{item['created_at']} importance={item['importance']:.2f} rank={item['rank']:.3f}\n"
        )


def show_cmd(*, store_from_path, db_path: str | None, observation_id: int) -> None:
    """Print an observation as JSON."""

    store = store_from_path(db_path)
    try:
        observation = store.get_observation(observation_id)
    finally:
        store.close()
    if observation is None:
        print(f"[red]Observation {observation_id} not found[/red]")
        raise typer.Exit(code=1)
    print(escape(json.dumps(observation.to_dict(), indent=2)))


def timeline_cmd(
    *, store_from_path, db_path: str | None, observation_id: int, range_hours: float
) -> None:
    store = store_from_path(db_path)
    try:
        try:
            observations = store.timeline(observation_id, range_hours=range_hours)
        except ValidationError as exc:
            print(f"[red]{exc}[/red]")
            raise typer.Exit(code=1) from exc
    finally:
        store.close()
    if not observations:
        print(f"[yellow]Observation {observation_id} not found[/yellow]")
        raise typer.Exit(code=1)
    for obs in observations:
        marker = "*" if obs.id == observation_id else " "
        text = obs.summary or obs.output or obs.input or obs.tool_name or ""
        print(f"{marker} {obs.created_at} [{obs.id}] ({obs.type}) {escape(one_line(text))}")


def context_cmd(
    *,
    config: OpenclawMemConfig,
    store_from_path,
    db_path: str | None,
    project: str | None,
    max_tokens: int | None,
) -> None:
    """Print the memory block a new session would receive."""

    settings = config.context_injection
    store = store_from_path(db_path)
    try:
        bundle = store.get_context_for_injection(
            project_path=project,
            max_tokens=settings.max_tokens if max_tokens is None else max_tokens,
            include_types=settings.include_types,
        )
    finally:
        store.close()
    block = format_memory_block(bundle.context_text, bundle.total_tokens)
    if not block:
        print("[yellow]No observations qualify for injection[/yellow]")
        return
    print(escape(block))


def _format_bytes(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    if size < 1024 * 1024 * 1024:
        return f"{size / 1024 / 1024:.1f} MB"
    return f"{size / 1024 / 1024 / 1024:.1f} GB"


def stats_cmd(*, store_from_path, db_path: str | None) -> None:
    store = store_from_path(db_path)
    try:
        stats = store.stats()
    finally:
        store.close()

    db_stats = stats["database"]
    print("[bold]Database[/bold]")
    print(f"- Path: {db_stats['path']}")
    print(f"- Size: {_format_bytes(int(db_stats['size_bytes']))}")
    print(f"- Sessions: {stats['totalSessions']} (open {stats['openSessions']})")
    print(f"- Observations: {stats['totalObservations']}")

    print("\n[bold]By type[/bold]")
    by_type = stats["observationsByType"]
    if not by_type:
        print("- No observations recorded yet")
        return
    for obs_type, count in by_type.items():
        print(f"- {obs_type}: {count}")


def init_db_cmd(*, store_from_path, db_path: str | None) -> None:
    """Create the SQLite database (no-op if it already exists)."""

    store = store_from_path(db_path)
    store.close()
    print(f"Initialized database at {store.db_path}")
