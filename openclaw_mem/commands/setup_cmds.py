from __future__ import annotations

from rich import print

from openclaw_mem.commands.common import read_config_or_exit, write_config_or_exit
from openclaw_mem.config import default_settings_document, get_config_path


def install_cmd(*, force: bool) -> None:
    """Write the default settings document unless one already exists."""

    config_path = get_config_path()
    existing = read_config_or_exit()
    if existing and not force:
        print(f"[yellow]Settings already present at {config_path}[/yellow]")
        return
    write_config_or_exit(default_settings_document())
    print(f"[green]Wrote settings to {config_path}[/green]")
