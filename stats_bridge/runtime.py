"""runtime.py – Process wiring

Builds the object graph of one bridge process explicitly (settings →
Firestore client → writer → Discord listener → HTTP surface) and owns the
logging setup.  Nothing here is created at import time; ``main_driver.py``
and the ``run`` CLI command call :func:`main` / :func:`run_bridge`.
"""

from __future__ import annotations

from typing import Optional
import logging
import sys
import threading

import discord
from google.cloud import logging as gcp_logging

from stats_bridge import create_app
from stats_bridge.config import ConfigurationError, Settings, load_settings
from stats_bridge.database.writer import AggregateWriter
from stats_bridge.helper_functions import (
    CredentialInitError,
    create_firestore_client,
    resolve_discord_token,
)
from stats_bridge.inputs.discord import DiscordListener

__all__ = [
    "CloudLoggingHandler",
    "configure_logging",
    "start_health_server",
    "run_bridge",
    "main",
]

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s – %(message)s"

# ---------------------------------------------------------------------------
# Google Cloud Logging – centralised configuration
# ---------------------------------------------------------------------------


class CloudLoggingHandler(logging.Handler):
    """Stdlib logging handler that forwards records to Google Cloud Logging."""

    def __init__(self, gcp_logger):  # noqa: D401 – simple pass-through
        super().__init__()
        self._gcp_logger = gcp_logger

    def emit(self, record: logging.LogRecord) -> None:  # noqa: D401
        try:
            msg = self.format(record)
            severity = record.levelname.upper()
            self._gcp_logger.log_text(msg, severity=severity)
        except Exception:  # pragma: no cover – never let logging crash the app
            super().handleError(record)


def configure_logging(settings: Settings, *, logging_client_factory=gcp_logging.Client) -> logging.Handler:
    """Attach one handler to the *root* logger and return it.

    Modules only use ``logging.getLogger(__name__)``; where the records end
    up is decided here.  With ``ENABLE_CLOUD_LOGGING`` the records go to
    Cloud Logging under ``<ENV_NAME>_discord_stats_bridge``, otherwise to
    stderr.  A Cloud Logging client that cannot be created (no credentials)
    degrades to stderr with a warning.
    """

    handler: Optional[logging.Handler] = None
    cloud_error: Optional[Exception] = None

    if settings.enable_cloud_logging:
        try:
            logging_client = logging_client_factory()
            handler = CloudLoggingHandler(logging_client.logger(settings.log_name))
        except Exception as exc:
            cloud_error = exc

    if handler is None:
        handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.log_level, logging.INFO))
    root_logger.addHandler(handler)

    if cloud_error is not None:
        logger.warning("Cloud Logging unavailable, logging to stderr: %s", cloud_error)
    return handler


# ---------------------------------------------------------------------------
# HTTP surface
# ---------------------------------------------------------------------------


def start_health_server(app, port: int) -> threading.Thread:
    """Serve ``app`` from a daemon thread so it dies with the bot."""

    thread = threading.Thread(
        target=app.run,
        kwargs={"host": "0.0.0.0", "port": port, "debug": False, "use_reloader": False},
        name="health-server",
        daemon=True,
    )
    thread.start()
    logger.info("Health server listening on port %d", port)
    return thread


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def run_bridge(settings: Settings, *, health: Optional[bool] = None) -> int:
    """Build every component and block on the Discord client.

    Returns the process exit status: ``0`` after a clean shutdown, ``1`` when
    credentials or the bot token are unusable.
    """

    try:
        token = resolve_discord_token(settings)
        db = create_firestore_client(settings)
    except (ConfigurationError, CredentialInitError) as exc:
        logger.error("Startup aborted: %s", exc)
        return 1

    writer = AggregateWriter.from_settings(db, settings)
    bot = DiscordListener(writer, token)

    if settings.enable_health_server if health is None else health:
        start_health_server(create_app(writer, is_ready=bot.is_ready), settings.port)

    try:
        bot.run_bot()
    except discord.LoginFailure as exc:
        logger.error("Discord rejected the bot token: %s", exc)
        return 1

    logger.info("Discord bot stopped.")
    return 0


def main() -> None:
    settings = load_settings()
    configure_logging(settings)
    logger.info("Application starting up (%s)", settings.env_name)
    sys.exit(run_bridge(settings))
