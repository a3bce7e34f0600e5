"""
Discord Stats Bridge – mirrors Discord gateway events into Cloud Firestore

The package forwards ready, message and member join/leave events to an
append-only ``discordEvents`` collection and keeps rolling counters in the
``discordStats/current`` document.

This module hosts the Flask application factory for the small HTTP surface
that runs beside the bot: a liveness probe (required by Cloud Run and load
balancers) plus read-only views of the stats document and the event log.
"""

# ---------------------------------------------------------------------------
# Imports
# ---------------------------------------------------------------------------
from __future__ import annotations

from typing import Any, Callable, Optional
import logging

from flask import Flask, jsonify, request
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from stats_bridge import verbs

__all__ = [
    "create_app",
    "limiter",
]

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Rate limiter – instantiated at module level to avoid circular imports
# ---------------------------------------------------------------------------

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["200 per day", "50 per hour"],
    storage_uri="memory://",
)

# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(writer, *, is_ready: Optional[Callable[[], bool]] = None) -> Flask:
    """Create and configure the Flask application instance.

    Parameters
    ----------
    writer:
        The :class:`~stats_bridge.database.writer.AggregateWriter` used to
        read the stats document and the event log.
    is_ready:
        Callable reporting whether the Discord client finished its handshake.
        Typically ``DiscordListener.is_ready``.
    """

    app = Flask(__name__)
    limiter.init_app(app)

    # ---------------------------------------------------------------------
    # Health check route – required by Cloud Run / load-balancers
    # ---------------------------------------------------------------------
    @app.route("/", methods=["GET"])
    @limiter.exempt
    def health_check():  # type: ignore[return-value]
        """Light-weight liveness probe endpoint."""
        ready = bool(is_ready()) if is_ready is not None else False
        return jsonify({"status": "ok", "bot_ready": ready}), 200

    @app.route("/stats", methods=["GET"])
    def stats():  # type: ignore[return-value]
        try:
            payload = verbs.get_stats(writer)
        except Exception as exc:
            logger.error("Failed to read stats document: %s", exc)
            return _error("Stats are temporarily unavailable.", 503)
        return jsonify(payload), 200

    @app.route("/events", methods=["GET"])
    def events():  # type: ignore[return-value]
        raw_limit = request.args.get("limit", "20")
        event_type = request.args.get("type")
        try:
            limit = int(raw_limit)
        except ValueError:
            return _error(f"limit must be an integer, got {raw_limit!r}", 400)
        try:
            payload = verbs.list_events(writer, limit=limit, event_type=event_type)
        except ValueError as exc:
            return _error(str(exc), 400)
        except Exception as exc:
            logger.error("Failed to read event log: %s", exc)
            return _error("Events are temporarily unavailable.", 503)
        return jsonify(payload), 200

    # ---------------------------------------------------------------------
    # Rate-limit error handler – converts 429 into JSON response & structured log
    # ---------------------------------------------------------------------
    @app.errorhandler(429)  # type: ignore[arg-type]
    def _ratelimit_handler(error):  # noqa: D401 – internal handler
        client_ip = request.remote_addr or "unknown"
        user_agent = request.headers.get("User-Agent", "Unknown")
        logger.warning(
            "Rate limit exceeded: %s – IP: %s, User-Agent: %s", error, client_ip, user_agent
        )
        return _error("Rate limit exceeded. Please try again later.", 429)

    logger.info("Flask application initialised")
    return app


def _error(message: str, status: int) -> Any:
    return jsonify({"status": "error", "message": message}), status
