"""helper_functions.py – Credential and client plumbing

Everything that talks to Google Cloud *before* the bot is connected lives
here: Secret Manager lookups, resolving the Discord bot token and building
the Firestore client through the credential fallback chain.

Firestore credential chain
--------------------------
1. ``FIREBASE_SERVICE_ACCOUNT`` – a service-account JSON blob in the
   environment (preferred for cloud deployments).
2. A service-account key file on disk (``serviceAccountKey.json`` by
   default; local development).
3. Application Default Credentials.

When all three fail :class:`CredentialInitError` is raised; the entry point
turns that into a non-zero exit status.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Dict, Optional
import json
import logging

from google.cloud import firestore, secretmanager
from google.oauth2 import service_account

from stats_bridge.config import ConfigurationError, Settings

__all__ = [
    "CredentialInitError",
    "get_secret_value",
    "load_service_account_info",
    "create_firestore_client",
    "resolve_discord_token",
]

logger = logging.getLogger(__name__)


class CredentialInitError(RuntimeError):
    """No usable credential source for the Firestore client."""


def get_secret_value(project_id, secret_id, version_id="latest"):
    """
    Retrieve a secret value from Google Cloud Secret Manager.

    Parameters
    ----------
    project_id : str
        The Google Cloud project ID where the secret is stored
    secret_id : str
        The ID of the secret to retrieve
    version_id : str, optional
        The version of the secret to retrieve, defaults to "latest"

    Returns
    -------
    str
        The secret payload as a UTF-8 decoded string
    """
    # Never log the payload itself.
    logger.debug(
        "Fetching secret '%s' from project '%s' (version '%s').",
        secret_id,
        project_id,
        version_id,
    )
    client = secretmanager.SecretManagerServiceClient()

    name = f"projects/{project_id}/secrets/{secret_id}/versions/{version_id}"
    response = client.access_secret_version(request={"name": name})
    payload = response.payload.data.decode("UTF-8")

    logger.info("Successfully fetched secret '%s'.", secret_id)
    return payload


def resolve_discord_token(settings: Settings) -> str:
    """Return the bot token: ``DISCORD_TOKEN`` first, Secret Manager second."""

    if settings.discord_token:
        return settings.discord_token.strip()

    if not settings.google_cloud_project:
        raise ConfigurationError(
            "DISCORD_TOKEN is not set and GOOGLE_CLOUD_PROJECT is missing – "
            "cannot fetch the bot token from Secret Manager."
        )

    try:
        token = get_secret_value(
            settings.google_cloud_project, settings.discord_token_secret_id
        )
    except Exception as exc:
        raise ConfigurationError(
            f"Failed to retrieve Discord token from Secret Manager: {exc}"
        ) from exc

    token = token.strip()
    if not token:
        raise ConfigurationError("Discord token secret is empty.")
    return token


def load_service_account_info(settings: Settings) -> Optional[Dict[str, Any]]:
    """Return the service-account mapping from the env blob or the key file.

    ``None`` means neither source is available (or usable) and the caller
    should fall back to Application Default Credentials.
    """

    if settings.service_account_json:
        try:
            info = json.loads(settings.service_account_json)
        except json.JSONDecodeError as exc:
            logger.warning("FIREBASE_SERVICE_ACCOUNT is not valid JSON: %s", exc)
            return None
        logger.info("Loaded service account from environment variable")
        return info

    key_file = Path(settings.service_account_file)
    try:
        info = json.loads(key_file.read_text(encoding="utf-8"))
    except FileNotFoundError:
        logger.info("Service account key file %s not found", key_file)
        return None
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Could not read service account key file %s: %s", key_file, exc)
        return None

    logger.info("Loaded service account from file %s", key_file)
    return info


def create_firestore_client(
    settings: Settings,
    *,
    client_factory: Callable[..., Any] = firestore.Client,
):
    """Build a Firestore client, walking env → file → ADC.

    ``client_factory`` defaults to :class:`google.cloud.firestore.Client` and
    is only swapped out in tests.
    """

    info = load_service_account_info(settings)
    if info is not None:
        try:
            credentials = service_account.Credentials.from_service_account_info(info)
            client = client_factory(
                project=settings.firebase_project_id, credentials=credentials
            )
        except Exception as exc:
            logger.warning(
                "Service account credentials rejected (%s); falling back to "
                "Application Default Credentials.",
                exc,
            )
        else:
            logger.info("Firestore initialised with service account")
            return client

    try:
        client = client_factory(project=settings.firebase_project_id)
    except Exception as exc:
        logger.error("Failed to initialise Firestore: %s", exc)
        logger.error(
            "Make sure FIREBASE_SERVICE_ACCOUNT or %s is available.",
            settings.service_account_file,
        )
        raise CredentialInitError(str(exc)) from exc

    logger.info("Firestore initialised with Application Default Credentials")
    return client
