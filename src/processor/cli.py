#!/usr/bin/env python3
"""
CLI tool for inspecting and preparing the Marathon Match ledger.
"""

import asyncio
import os
import sys

import click
import toml
from rich.console import Console
from rich.table import Table
from sqlalchemy import select

from core.db.models import IdSequence, LongCompResult

from .seed import seed_ledger
from .store import LedgerStore

console = Console()


class LedgerAdmin:
    """Administrative operations on the ledger database."""

    def __init__(self, database_url: str):
        self.database_url = database_url
        self.store = LedgerStore.from_url(database_url)

    async def init_db(self):
        """Create every ledger table that is missing."""
        await self.store.create_all()

    async def seed(self) -> int:
        return await seed_ledger(self.store)

    async def list_sequences(self):
        async with self.store.transaction() as ledger:
            result = await ledger.session.execute(
                select(IdSequence).order_by(IdSequence.name)
            )
            return result.scalars().all()

    async def list_standings(self, round_id: int):
        """Result rows of a round, placed contestants first."""
        async with self.store.transaction() as ledger:
            result = await ledger.session.execute(
                select(LongCompResult)
                .where(LongCompResult.round_id == round_id)
                .order_by(
                    (LongCompResult.placed == 0).asc(),
                    LongCompResult.placed,
                    LongCompResult.coder_id,
                )
            )
            return result.scalars().all()

    async def cleanup(self):
        """Cleanup database connections."""
        await self.store.dispose()


@click.group()
@click.option(
    "--database-url",
    envvar="DATABASE_URL",
    help="Database URL (can also be set via DATABASE_URL env var)",
)
@click.option(
    "--config",
    type=click.Path(exists=True),
    help="Path to processor.toml config file",
)
@click.pass_context
def cli(ctx, database_url, config):
    """Ledger processor CLI - Prepare and inspect the ledger database."""
    if not database_url:
        config_paths = []

        # If config path is specified, use it first
        if config:
            config_paths.append(config)

        config_paths.extend(
            [
                "processor.toml",
                "config/processor.toml",
                os.path.expanduser("~/.ledger-processor/processor.toml"),
            ]
        )

        for config_path in config_paths:
            if os.path.exists(config_path):
                try:
                    with open(config_path, "r") as f:
                        config_data = toml.load(f)
                        database_url = config_data.get("database_url")
                        if database_url:
                            console.print(
                                f"[dim]Using config from: {config_path}[/dim]"
                            )
                            break
                except (OSError, toml.TomlDecodeError) as e:
                    if config:  # Only show error if user explicitly specified this file
                        console.print(
                            f"[yellow]Warning:[/yellow] Failed to load config from {config_path}: {e}"
                        )

    if not database_url:
        console.print(
            "[red]ERROR:[/red] No database URL configured. "
            "Set --database-url or DATABASE_URL environment variable."
        )
        sys.exit(1)

    ctx.obj = LedgerAdmin(database_url)


@cli.command(name="init-db")
@click.pass_context
def init_db(ctx):
    """Create the ledger tables."""
    admin = ctx.obj

    async def _init():
        try:
            await admin.init_db()
            console.print("[green]✓[/green] Ledger tables created")
        finally:
            await admin.cleanup()

    asyncio.run(_init())


@cli.command()
@click.pass_context
def seed(ctx):
    """Load the development fixture data."""
    admin = ctx.obj

    async def _seed():
        try:
            added = await admin.seed()
            console.print(f"[green]✓[/green] Seeded {added} row(s)")
        finally:
            await admin.cleanup()

    asyncio.run(_seed())


@cli.command()
@click.pass_context
def sequences(ctx):
    """Show identifier sequences and their next block."""
    admin = ctx.obj

    async def _list():
        try:
            rows = await admin.list_sequences()
        finally:
            await admin.cleanup()

        if not rows:
            console.print("No identifier sequences found.")
            return

        table = Table(title="Identifier Sequences")
        table.add_column("Name", style="cyan")
        table.add_column("Next Block Start", style="green", justify="right")
        table.add_column("Block Size", style="magenta", justify="right")

        for row in rows:
            table.add_row(row.name, str(row.next_block_start), str(row.block_size))

        console.print(table)

    asyncio.run(_list())


@cli.command()
@click.argument("round_id", type=int)
@click.pass_context
def standings(ctx, round_id):
    """Show the result rows of a round."""
    admin = ctx.obj

    async def _standings():
        try:
            rows = await admin.list_standings(round_id)
        finally:
            await admin.cleanup()

        if not rows:
            console.print(f"No results found for round {round_id}.")
            return

        table = Table(title=f"Round {round_id} Standings")
        table.add_column("Placed", style="cyan", justify="right")
        table.add_column("Coder", style="white")
        table.add_column("Attended", style="green")
        table.add_column("System Points", style="magenta", justify="right")
        table.add_column("Initial Points", style="blue", justify="right")
        table.add_column("Old Rating", style="yellow", justify="right")
        table.add_column("Old Vol", style="dim", justify="right")

        for row in rows:
            table.add_row(
                str(row.placed) if row.placed else "-",
                str(row.coder_id),
                row.attended,
                "-" if row.system_point_total is None else f"{row.system_point_total:g}",
                "-" if row.point_total is None else f"{row.point_total:g}",
                "-" if row.old_rating is None else str(row.old_rating),
                "-" if row.old_vol is None else str(row.old_vol),
            )

        console.print(table)
        console.print(f"\nTotal: {len(rows)} contestant(s)")

    asyncio.run(_standings())


if __name__ == "__main__":
    cli()
