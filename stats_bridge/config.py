"""config.py – Environment-driven settings

All runtime knobs of the bridge are read from environment variables (a local
``.env`` file is honoured via ``python-dotenv``).  The values are collected in
a single :class:`Settings` object which is constructed once by the entry
point and passed down explicitly to the components that need it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional
import os

from dotenv import load_dotenv

__all__ = [
    "Settings",
    "ConfigurationError",
    "load_settings",
]


class ConfigurationError(RuntimeError):
    """Raised when a mandatory setting is missing or malformed."""


_TRUTHY = {"1", "true", "yes", "on"}


def _as_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in _TRUTHY


def _as_int(name: str, value: Optional[str], default: int) -> int:
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from exc


@dataclass(frozen=True)
class Settings:
    """Resolved configuration of one bridge process."""

    discord_token: Optional[str] = None
    discord_token_secret_id: str = "discord-bot-token"
    google_cloud_project: Optional[str] = None

    firebase_project_id: str = "poznamky-test"
    service_account_json: Optional[str] = None
    service_account_file: str = "serviceAccountKey.json"

    events_collection: str = "discordEvents"
    stats_collection: str = "discordStats"
    stats_document: str = "current"
    atomic_counters: bool = False

    enable_health_server: bool = True
    port: int = 8080

    env_name: str = "dev"
    enable_cloud_logging: bool = False
    log_level: str = "INFO"

    @property
    def log_name(self) -> str:
        """Cloud Logging log name, e.g. ``dev_discord_stats_bridge``."""
        return f"{self.env_name}_discord_stats_bridge"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        return cls(
            discord_token=env.get("DISCORD_TOKEN") or None,
            discord_token_secret_id=env.get("DISCORD_TOKEN_SECRET_ID", "discord-bot-token"),
            google_cloud_project=env.get("GOOGLE_CLOUD_PROJECT") or None,
            firebase_project_id=env.get("FIREBASE_PROJECT_ID", "poznamky-test"),
            service_account_json=env.get("FIREBASE_SERVICE_ACCOUNT") or None,
            service_account_file=env.get("FIREBASE_SERVICE_ACCOUNT_FILE", "serviceAccountKey.json"),
            events_collection=env.get("EVENTS_COLLECTION", "discordEvents"),
            stats_collection=env.get("STATS_COLLECTION", "discordStats"),
            stats_document=env.get("STATS_DOCUMENT", "current"),
            atomic_counters=_as_bool(env.get("ATOMIC_COUNTERS"), False),
            enable_health_server=_as_bool(env.get("ENABLE_HEALTH_SERVER"), True),
            port=_as_int("PORT", env.get("PORT"), 8080),
            env_name=env.get("ENV_NAME", "dev"),
            enable_cloud_logging=_as_bool(env.get("ENABLE_CLOUD_LOGGING"), False),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
        )


def load_settings(*, dotenv: bool = True) -> Settings:
    """Load ``.env`` (unless disabled) and build :class:`Settings` from the environment.

    ``LOCAL_CREDS`` is kept as a convenience shim for local development: when
    set, it is copied into ``GOOGLE_APPLICATION_CREDENTIALS`` so that the
    Google client libraries pick it up as Application Default Credentials.
    """

    if dotenv:
        load_dotenv()

    local_creds = os.getenv("LOCAL_CREDS")
    if local_creds is not None:
        os.environ.setdefault("GOOGLE_APPLICATION_CREDENTIALS", local_creds)

    return Settings.from_env()
