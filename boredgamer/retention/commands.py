"""CLI entry point for the scheduled retention sweep."""

from __future__ import annotations

import sys

import click
from flask import current_app
from flask.cli import with_appcontext

from boredgamer.extensions import get_db

from .services import RetentionSweeper


@click.command("sweep-events")
@click.option(
    "--batch-size",
    type=click.IntRange(min=1),
    default=None,
    help="Events deleted per batch (defaults to RETENTION_BATCH_SIZE).",
)
@with_appcontext
def sweep_events_command(batch_size):
    """Delete events older than each studio's retention window."""
    size = batch_size or current_app.config["RETENTION_BATCH_SIZE"]
    report = RetentionSweeper(get_db(), batch_size=size).sweep()

    click.echo(
        f"Swept {report.studios_processed} studios: "
        f"{report.events_deleted} events deleted in {report.batches} batches."
    )
    if report.failed_studios:
        click.echo(f"Failed studios: {', '.join(report.failed_studios)}", err=True)
        sys.exit(1)
