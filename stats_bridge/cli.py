"""cli.py – Discord Stats Bridge Command-Line Interface

Click-based CLI for running the bridge and for peeking into what it has
written to Firestore.

Usage examples
--------------
$ python -m stats_bridge.cli run                 # bot + health server
$ python -m stats_bridge.cli run --no-health     # bot only
$ python -m stats_bridge.cli stats               # current counters as JSON
$ python -m stats_bridge.cli events -n 5 -t message

Configuration is read from the environment (and a local ``.env`` file); see
:mod:`stats_bridge.config`.
"""

from __future__ import annotations

from typing import Optional
import json

import click

from stats_bridge import verbs
from stats_bridge.config import ConfigurationError, Settings, load_settings
from stats_bridge.database.models import EventType
from stats_bridge.database.writer import AggregateWriter
from stats_bridge.helper_functions import CredentialInitError, create_firestore_client
from stats_bridge.runtime import configure_logging, run_bridge


def _build_writer(settings: Settings) -> AggregateWriter:
    try:
        db = create_firestore_client(settings)
    except CredentialInitError as exc:
        raise click.ClickException(f"Firestore credentials unavailable: {exc}") from exc
    return AggregateWriter.from_settings(db, settings)


def _echo_json(payload) -> None:
    click.echo(json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True))


# ---------------------------------------------------------------------------
# Click entry-point
# ---------------------------------------------------------------------------


@click.group()
@click.pass_context
def cli(ctx: click.Context):  # noqa: D401 – Click callback
    """Discord Stats Bridge command-line interface."""

    if ctx.obj is None:
        try:
            ctx.obj = {"settings": load_settings()}
        except ConfigurationError as exc:
            raise click.ClickException(str(exc)) from exc


@cli.command("run", help="Connect to Discord and mirror events into Firestore.")
@click.option(
    "--health/--no-health",
    default=None,
    help="Serve the HTTP health/stats endpoints (default: ENABLE_HEALTH_SERVER).",
)
@click.pass_context
def run_command(ctx: click.Context, health: Optional[bool]) -> None:
    settings: Settings = ctx.obj["settings"]
    configure_logging(settings)
    ctx.exit(run_bridge(settings, health=health))


@cli.command("stats", help="Print the current stats document.")
@click.pass_context
def stats_command(ctx: click.Context) -> None:
    writer = _build_writer(ctx.obj["settings"])
    try:
        payload = verbs.get_stats(writer)
    except Exception as exc:
        raise click.ClickException(f"Could not read stats: {exc}") from exc
    _echo_json(payload)


@cli.command("events", help="Print the most recent event records.")
@click.option(
    "-n",
    "--limit",
    type=click.IntRange(1, verbs.MAX_EVENTS),
    default=20,
    show_default=True,
    help="How many records to show.",
)
@click.option(
    "-t",
    "--type",
    "event_type",
    type=click.Choice([e.value for e in EventType]),
    default=None,
    help="Only show events of this type.",
)
@click.pass_context
def events_command(ctx: click.Context, limit: int, event_type: Optional[str]) -> None:
    writer = _build_writer(ctx.obj["settings"])
    try:
        payload = verbs.list_events(writer, limit=limit, event_type=event_type)
    except Exception as exc:
        raise click.ClickException(f"Could not read events: {exc}") from exc
    _echo_json(payload)


if __name__ == "__main__":  # pragma: no cover – manual execution shortcut
    cli()  # pylint: disable=no-value-for-parameter
