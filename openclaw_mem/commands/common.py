from __future__ import annotations

from typing import Any

import typer
from rich import print

from openclaw_mem.config import OpenclawMemConfig, load_config, read_config_file, write_config_file
from openclaw_mem.errors import UnavailableError
from openclaw_mem.store import MemoryStore


def load_config_or_exit() -> OpenclawMemConfig:
    try:
        read_config_file()
    except ValueError as exc:
        print(f"[red]Invalid config file: {exc}[/red]")
        raise typer.Exit(code=1) from exc
    return load_config()


def store_from_path(db_path: str | None) -> MemoryStore:
    path = db_path or load_config().database_path
    try:
        return MemoryStore(path)
    except UnavailableError as exc:
        print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc


def read_config_or_exit() -> dict[str, Any]:
    try:
        return read_config_file()
    except ValueError as exc:
        print(f"[red]Invalid config file: {exc}[/red]")
        raise typer.Exit(code=1) from exc


def write_config_or_exit(data: dict[str, Any]) -> None:
    try:
        write_config_file(data)
    except OSError as exc:
        print(f"[red]Failed to write config: {exc}[/red]")
        raise typer.Exit(code=1) from exc


def one_line(text: str | None, limit: int = 120) -> str:
    if not text:
        return ""
    collapsed = " ".join(text.split())
    if len(collapsed) > limit:
        return collapsed[: limit - 3] + "..."
    return collapsed
