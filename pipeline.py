"""morningstack CLI: collect and inspect morning/evening editions."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from datetime import datetime, timezone

import click

from morningstack.config import settings
from morningstack.db import EditionStore
from morningstack.models import Edition, EditionType


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Debug logging.")
def cli(verbose):
    """morningstack: twice-daily tech news editions.

    \b
    pipeline.py collect           # Build the edition for the current slot
    pipeline.py show              # Print the latest published edition
    pipeline.py drafts            # List editions stuck in draft
    pipeline.py delete-edition    # Remove an edition so its slot can be re-run
    pipeline.py serve             # Run the HTTP trigger + query API
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    EditionStore(settings.database_path).init_db()


# ---------------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------------


@cli.command("init-db")
def init_db():
    """Create the edition tables (idempotent)."""
    click.echo(f"Database ready at {settings.database_path}")


@cli.command()
@click.option("--at", "at", default=None, help="Pretend it is this ISO timestamp (UTC if naive).")
def collect(at):
    """Fetch every source and publish the edition for the current slot."""
    from morningstack.collector import build_collector

    now = None
    if at:
        now = datetime.fromisoformat(at)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)

    async def _run():
        collector = build_collector(settings)
        try:
            return await collector.collect(now)
        finally:
            await collector.cache.close()

    result = asyncio.run(_run())
    click.echo(json.dumps(result.to_dict(), indent=2))

    for source in result.failed_sources:
        click.echo(f"  ! {source.source}: {source.error}", err=True)

    if result.status == "error":
        sys.exit(1)


@cli.command()
@click.option("--host", default="127.0.0.1")
@click.option("--port", default=8000, type=int)
def serve(host, port):
    """Serve the trigger endpoint and edition queries."""
    import uvicorn

    from morningstack.api import create_app

    uvicorn.run(create_app(settings), host=host, port=port)


# ---------------------------------------------------------------------------
# Inspection / maintenance
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--date", "date_", default=None, help="Edition date (YYYY-MM-DD).")
@click.option("--type", "edition_type", type=click.Choice(["morning", "evening"]), default=None)
@click.option("--limit", default=5, help="Articles shown per source.")
def show(date_, edition_type, limit):
    """Show a published edition (latest by default)."""
    store = EditionStore(settings.database_path)
    if date_ and edition_type:
        edition = store.get_edition(EditionType(edition_type), date_)
    else:
        edition = store.get_latest_edition()

    if edition is None:
        click.echo("No published edition found. Run 'collect' first.")
        return

    _print_edition(edition, limit)


@cli.command()
def drafts():
    """List editions left in draft by a failed run."""
    store = EditionStore(settings.database_path)
    stuck = store.list_drafts()
    if not stuck:
        click.echo("No draft editions.")
        return

    for edition in stuck:
        count = store.count_articles(edition.id)
        click.echo(f"  {edition.date} {edition.type.value:<8} {edition.id}  ({count} articles)")
    click.echo("\nRun 'delete-edition --date <DATE> --type <TYPE>' to clear a slot for re-collection.")


@cli.command("delete-edition")
@click.option("--date", "date_", required=True, help="Edition date (YYYY-MM-DD).")
@click.option("--type", "edition_type", type=click.Choice(["morning", "evening"]), default=None,
              help="Only this edition type (default: both).")
@click.confirmation_option(prompt="Delete the edition and all its articles?")
def delete_edition(date_, edition_type):
    """Delete an edition and its articles so the slot can be collected again."""
    store = EditionStore(settings.database_path)
    editions = store.list_editions(date_)
    if edition_type:
        editions = [e for e in editions if e.type.value == edition_type]

    if not editions:
        click.echo(f"No edition found for {date_}")
        return

    for edition in editions:
        store.delete_edition(edition.id)
        click.echo(f"Deleted {edition.type.value} edition {edition.id} ({date_}, {edition.status.value})")


def _print_edition(edition: Edition, limit: int):
    published = edition.published_at.isoformat() if edition.published_at else "-"
    click.echo(f"{edition.type.value.title()} edition {edition.date}  (published {published})")
    click.echo(f"{len(edition.articles)} articles\n")

    for source, articles in edition.articles_by_source().items():
        click.echo(f"[{source}]")
        for a in articles[:limit]:
            click.echo(f"  {a.score:>5.0f}  {a.title[:70]}")
            click.echo(f"         {a.url[:80]}")
        click.echo("")


if __name__ == "__main__":
    cli()
