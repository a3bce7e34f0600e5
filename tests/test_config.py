"""Tests for `stats_bridge.config`."""

from __future__ import annotations

import os

import pytest

from stats_bridge.config import ConfigurationError, Settings, load_settings


def test_defaults():
    settings = Settings.from_env({})

    assert settings.discord_token is None
    assert settings.firebase_project_id == "poznamky-test"
    assert settings.service_account_file == "serviceAccountKey.json"
    assert settings.events_collection == "discordEvents"
    assert settings.stats_collection == "discordStats"
    assert settings.stats_document == "current"
    assert settings.atomic_counters is False
    assert settings.enable_health_server is True
    assert settings.port == 8080
    assert settings.log_name == "dev_discord_stats_bridge"


def test_overrides():
    settings = Settings.from_env(
        {
            "DISCORD_TOKEN": "abc",
            "FIREBASE_SERVICE_ACCOUNT": "{}",
            "ATOMIC_COUNTERS": "yes",
            "ENABLE_HEALTH_SERVER": "false",
            "PORT": "9090",
            "ENV_NAME": "prod",
            "LOG_LEVEL": "debug",
        }
    )

    assert settings.discord_token == "abc"
    assert settings.service_account_json == "{}"
    assert settings.atomic_counters is True
    assert settings.enable_health_server is False
    assert settings.port == 9090
    assert settings.log_name == "prod_discord_stats_bridge"
    assert settings.log_level == "DEBUG"


def test_empty_token_is_treated_as_missing():
    assert Settings.from_env({"DISCORD_TOKEN": ""}).discord_token is None


def test_bad_port():
    with pytest.raises(ConfigurationError):
        Settings.from_env({"PORT": "eighty"})


def test_load_settings_applies_local_creds(monkeypatch):
    environ = {"LOCAL_CREDS": "/tmp/creds.json", "DISCORD_TOKEN": "tok"}
    monkeypatch.setattr(os, "environ", environ)

    settings = load_settings(dotenv=False)

    assert environ["GOOGLE_APPLICATION_CREDENTIALS"] == "/tmp/creds.json"
    assert settings.discord_token == "tok"


def test_local_creds_do_not_override_explicit_credentials(monkeypatch):
    environ = {"LOCAL_CREDS": "/tmp/creds.json", "GOOGLE_APPLICATION_CREDENTIALS": "/etc/sa.json"}
    monkeypatch.setattr(os, "environ", environ)

    load_settings(dotenv=False)

    assert environ["GOOGLE_APPLICATION_CREDENTIALS"] == "/etc/sa.json"
