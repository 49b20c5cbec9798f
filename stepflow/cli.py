"""Command line interface for inspecting persisted stepflow snapshots."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import typer

from stepflow.storage import ListableStorage, Storage, get_storage

app = typer.Typer(help="CLI for stepflow snapshots")

snapshot_app = typer.Typer(help="Commands for inspecting stored snapshots")
app.add_typer(snapshot_app, name="snapshot")

_state = {"storage_url": None}


@app.callback()
def main(
    storage_url: Optional[str] = typer.Option(
        None, "--storage-url", help="Storage URL, e.g. sqlite://snapshots.db"
    ),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Python logging level, e.g. DEBUG"
    ),
) -> None:
    """Stepflow CLI entry point."""
    _state["storage_url"] = storage_url
    if log_level:
        logging.basicConfig(level=log_level.upper())


def _storage() -> Storage:
    return get_storage(_state["storage_url"])


@snapshot_app.command("list")
def snapshot_list(
    prefix: str = typer.Option("", help="Only keys starting with this, e.g. 'workflow:'"),
) -> None:
    """
    List stored snapshots with their status.

    Example:
        stepflow --storage-url sqlite://snapshots.db snapshot list
        # Output: step:abc    success
        #         workflow:wf-1    running
    """
    storage = _storage()
    if not isinstance(storage, ListableStorage):
        typer.secho("Storage backend cannot list keys", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    async def _collect():
        keys = await storage.keys(prefix)
        return [(key, await storage.get(key)) for key in keys]

    entries = asyncio.run(_collect())
    if not entries:
        typer.echo("No snapshots found")
        return
    for key, snapshot in entries:
        status = snapshot.status.value if snapshot is not None else "missing"
        typer.echo(f"{key}\t{status}")


@snapshot_app.command("show")
def snapshot_show(key: str) -> None:
    """
    Show a stored snapshot as JSON.

    Example:
        stepflow snapshot show workflow:wf-1
    """
    snapshot = asyncio.run(_storage().get(key))
    if snapshot is None:
        typer.echo("Snapshot not found")
        raise typer.Exit(code=1)
    typer.echo(f"{snapshot.type.capitalize()} {snapshot.id}: {snapshot.status.value}")
    if snapshot.error:
        typer.echo(f"Error: {snapshot.error}")
    typer.echo(snapshot.model_dump_json(indent=2))


@snapshot_app.command("delete")
def snapshot_delete(key: str) -> None:
    """Remove a stored snapshot."""
    storage = _storage()

    async def _delete() -> bool:
        if await storage.get(key) is None:
            return False
        await storage.delete(key)
        return True

    if not asyncio.run(_delete()):
        typer.echo("Snapshot not found")
        raise typer.Exit(code=1)
    typer.echo(f"Deleted {key}")


if __name__ == "__main__":
    app()
