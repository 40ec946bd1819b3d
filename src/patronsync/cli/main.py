"""Command-line interface for patronsync.

Provides the ingest command run by the upload scheduler and the checksum
table administration commands.
"""

import importlib.metadata
import sys
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

import click

from patronsync.errors import PatronSyncError, SetupError

if TYPE_CHECKING:
    from patronsync.checksum import ChecksumStore
    from patronsync.engine import IngestConfig

__all__ = ["cli"]

try:
    __version__ = importlib.metadata.version("patronsync")
except importlib.metadata.PackageNotFoundError:
    __version__ = "0.1.0"  # Fallback for development


@click.group()
@click.version_option(version=__version__, prog_name="patronsync")
def cli() -> None:
    """Student record ingest into a library patron directory.

    Use 'patronsync COMMAND --help' for command-specific help.
    """


@cli.command()
@click.argument("config_path", metavar="CONFIG", type=click.Path(exists=True, dir_okay=False))
@click.argument("data_file", type=click.Path(dir_okay=False))
@click.option(
    "--client",
    "client_label",
    type=str,
    default=None,
    help="Client namespace and id (e.g. pps01); derived from DATA_FILE's path if omitted",
)
@click.option("--no-mail", is_flag=True, help="Do not mail the run report")
@click.option("--keep-file", is_flag=True, help="Keep DATA_FILE after a completed run")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose output",
)
def ingest(
    config_path: str,
    data_file: str,
    client_label: str | None,
    no_mail: bool,
    keep_file: bool,
    verbose: bool,
) -> None:
    """Ingest DATA_FILE into the patron directory using CONFIG.

    Exits 0 when the run completes, even if individual rows were invalid,
    ambiguous or failed. Exits 1 on a setup failure: bad configuration,
    unreadable data file, header mismatch or failed login.

    Examples
    --------
        patronsync ingest config.yaml /srv/upload/pps01/incoming/students.csv
        patronsync ingest config.yaml students.csv --client pps01 --keep-file
    """
    from patronsync.engine import run_ingest

    if verbose:
        click.echo(f"Ingesting: {data_file}", err=True)

    try:
        result = run_ingest(
            Path(config_path),
            Path(data_file),
            client=client_label,
            send_mail=not no_mail,
            keep_file=keep_file,
            verbose=verbose,
        )
    except SetupError as e:
        click.secho(f"✗ Error: {e}", fg="red", err=True)
        if verbose:
            import traceback

            click.echo(traceback.format_exc(), err=True)
        sys.exit(1)

    counters = result.counters
    click.secho(
        f"✓ {result.client}: {counters.updates} updates, {counters.creates} creates, "
        f"{counters.ambiguous} ambiguous, {counters.checksum} unchanged",
        fg="green",
    )
    if verbose:
        click.echo(counters.matches_line(), err=True)
        click.echo(counters.skipped_line(), err=True)
        click.echo(f"  Audit CSV: {result.audit_csv}", err=True)
        click.echo(f"  Report: {result.report_path}", err=True)
        click.echo(f"  Event log: {result.event_log}", err=True)


@cli.group()
def checksums() -> None:
    """Administer the checksum table."""


def _open_store(config_path: str) -> tuple["IngestConfig", "ChecksumStore"]:
    from patronsync.checksum import ChecksumStore
    from patronsync.engine import load_config

    config = load_config(Path(config_path))
    return config, ChecksumStore.from_url(config.database.url)


@checksums.command("init")
@click.argument("config_path", metavar="CONFIG", type=click.Path(exists=True, dir_okay=False))
def checksums_init(config_path: str) -> None:
    """Create the checksum table if it does not exist."""
    try:
        _, store = _open_store(config_path)
        store.create_schema()
        store.close()
    except PatronSyncError as e:
        click.secho(f"✗ Error: {e}", fg="red", err=True)
        sys.exit(1)
    click.secho("✓ Checksum table ready", fg="green")


@checksums.command("expire")
@click.argument("config_path", metavar="CONFIG", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--max-age",
    type=int,
    default=None,
    help="Maximum age in days (default: database.max_checksum_age)",
)
@click.option(
    "--today",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="Reference date (default: today)",
)
def checksums_expire(config_path: str, max_age: int | None, today: datetime | None) -> None:
    """Delete checksums older than the maximum age.

    Expired students are re-sent to the directory on their next ingest.
    """
    try:
        config, store = _open_store(config_path)
        age = max_age if max_age is not None else config.database.max_checksum_age
        deleted = store.expire(age, today=today.date() if today is not None else None)
        store.close()
    except PatronSyncError as e:
        click.secho(f"✗ Error: {e}", fg="red", err=True)
        sys.exit(1)
    click.secho(f"✓ Deleted {deleted} checksums older than {age} days", fg="green")


@checksums.command("report")
@click.argument("config_path", metavar="CONFIG", type=click.Path(exists=True, dir_okay=False))
def checksums_report(config_path: str) -> None:
    """Print the number of checksums per date added."""
    try:
        _, store = _open_store(config_path)
        counts = store.date_counts()
        store.close()
    except PatronSyncError as e:
        click.secho(f"✗ Error: {e}", fg="red", err=True)
        sys.exit(1)
    for day, count in counts:
        click.echo(f"{day.isoformat()}\t{count}")
    click.echo(f"Total\t{sum(count for _, count in counts)}")


if __name__ == "__main__":
    cli()
