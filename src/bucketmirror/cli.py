"""Command-line interface for bucketmirror.

Commands:
- store: Store a file in a repository and replicate it
- scan: Run a catch-up scan for a destination and wait for it
- serve: Run the scan scheduler until interrupted
- unmark: Clear a publish mark so the next scan republishes the file
"""

from __future__ import annotations

import logging
import os
import sys
import time
from pathlib import Path

import click

from bucketmirror.app import build_publisher, setup_logging
from bucketmirror.core.config import PublishConfig, load_config
from bucketmirror.core.errors import StorageFailure


def _load(config_path: str | None, verbose: bool) -> PublishConfig:
    resolved = config_path or os.environ.get("BUCKETMIRROR_CONFIG")
    try:
        config = load_config(resolved)
    except ValueError as e:
        click.echo(f"Error: invalid configuration: {e}", err=True)
        sys.exit(1)
    setup_logging(config.log_path, logging.DEBUG if verbose else logging.INFO)
    return config


@click.group()
@click.version_option(package_name="bucketmirror")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="JSON configuration file (default: BUCKETMIRROR_CONFIG).",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """bucketmirror - replicate repository artifacts to object storage."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose


@cli.command()
@click.argument("repository")
@click.argument("path")
@click.argument("source", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def store(ctx: click.Context, repository: str, path: str, source: str) -> None:
    """Store SOURCE as PATH in REPOSITORY and replicate it."""
    config = _load(ctx.obj["config_path"], ctx.obj["verbose"])
    data = Path(source).read_bytes()

    with build_publisher(config) as publisher:
        try:
            publisher.store.store(repository, path, data)
        except (StorageFailure, ValueError) as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)

    click.echo(f"Stored {repository}:{path} ({len(data)} bytes)")


@cli.command()
@click.argument("config_id")
@click.pass_context
def scan(ctx: click.Context, config_id: str) -> None:
    """Publish every unmarked file of the repositories bound to CONFIG_ID."""
    config = _load(ctx.obj["config_path"], ctx.obj["verbose"])

    with build_publisher(config) as publisher:
        try:
            task = publisher.scheduler.run_on_demand(config_id, wait=True)
        except KeyboardInterrupt:
            click.echo("Interrupted.", err=True)
            sys.exit(130)

        for result in task.results:
            click.echo(
                f"{result.repository_id}: {result.published} published, "
                f"{result.skipped} already published, {result.ignored} ignored, "
                f"{result.failed} failed"
            )
        click.echo(task.counter.report())


@cli.command()
@click.pass_context
def serve(ctx: click.Context) -> None:
    """Run scheduled catch-up scans until interrupted."""
    config = _load(ctx.obj["config_path"], ctx.obj["verbose"])

    with build_publisher(config) as publisher:
        publisher.scheduler.start()
        jobs = publisher.scheduler.schedule_all()
        if not jobs:
            click.echo("No destination declares a schedule.", err=True)
            return

        click.echo(f"Scheduled {len(jobs)} scan(s). Press Ctrl+C to stop.")
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            click.echo("Stopping...")


@cli.command()
@click.argument("repository")
@click.argument("path")
@click.pass_context
def unmark(ctx: click.Context, repository: str, path: str) -> None:
    """Clear the publish mark of PATH in REPOSITORY."""
    config = _load(ctx.obj["config_path"], ctx.obj["verbose"])

    with build_publisher(config) as publisher:
        if publisher.marks.clear(repository, path):
            click.echo(f"Cleared mark for {repository}:{path}")
        else:
            click.echo(f"No mark for {repository}:{path}")


def main() -> None:
    """Entry point for the CLI."""
    cli()
