"""Tests for Settings, the production credential gate, and get_settings.

Covers: defaults, env-override, production credential gate, dev-mode warnings,
and lru_cache behavior.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from dropit.config import Settings, get_settings, validate_credentials

# ---------------------------------------------------------------------------
# Settings defaults
# ---------------------------------------------------------------------------

class TestSettingsDefaults:
    """Verify that Settings fields have the expected default values."""

    def test_settings_defaults(self) -> None:
        s = Settings(_env_file=None)  # type: ignore[call-arg]

        assert s.production is False
        assert s.server_port == 3001
        assert s.upload_dir == Path("uploads")
        assert s.vapi_base_url == "https://api.vapi.ai"
        assert s.agent_config_mode == "shared"
        assert s.poll_interval_seconds == 2.0
        assert s.poll_backoff_seconds == 5.0
        assert s.provider_timeout_seconds == 10.0
        assert s.end_calls_on_shutdown is False
        assert s.access_token_expire_minutes == 1440

    def test_settings_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PRODUCTION", "true")
        monkeypatch.setenv("SERVER_PORT", "9090")
        monkeypatch.setenv("VAPI_API_KEY", "vapi-test")
        monkeypatch.setenv("AGENT_CONFIG_MODE", "per_call")

        s = Settings(_env_file=None)  # type: ignore[call-arg]

        assert s.production is True
        assert s.server_port == 9090
        assert s.vapi_api_key.get_secret_value() == "vapi-test"
        assert s.agent_config_mode == "per_call"

    def test_secret_not_in_repr(self) -> None:
        s = Settings(_env_file=None, vapi_api_key="super-secret")  # type: ignore[call-arg]

        assert "super-secret" not in repr(s)


# ---------------------------------------------------------------------------
# Credential validation
# ---------------------------------------------------------------------------

class TestValidateCredentials:
    """Verify validate_credentials behaviour in production and dev modes."""

    def test_validate_credentials_production_missing(self, capsys) -> None:
        """Production mode exits when credentials are missing."""
        settings = Settings(
            _env_file=None,  # type: ignore[call-arg]
            production=True,
            vapi_api_key="",  # type: ignore[arg-type]
            jwt_secret_key="",  # type: ignore[arg-type]
        )

        with pytest.raises(SystemExit) as exc_info:
            validate_credentials(settings)

        assert exc_info.value.code == 1
        err = capsys.readouterr().err
        assert "VAPI_API_KEY is empty or not set" in err
        assert "JWT_SECRET_KEY is empty or not set" in err

    def test_validate_credentials_production_valid(self) -> None:
        """Production mode passes when all credentials exist."""
        settings = Settings(
            _env_file=None,  # type: ignore[call-arg]
            production=True,
            vapi_api_key="vapi-valid",  # type: ignore[arg-type]
            vapi_assistant_id="asst_1",
            agent_phone_number="+15719329354",
            jwt_secret_key="jwt-valid",  # type: ignore[arg-type]
        )

        # Should NOT raise or exit
        validate_credentials(settings)

    def test_per_call_mode_does_not_need_assistant_id(self) -> None:
        settings = Settings(
            _env_file=None,  # type: ignore[call-arg]
            production=True,
            agent_config_mode="per_call",
            vapi_api_key="vapi-valid",  # type: ignore[arg-type]
            vapi_assistant_id="",
            agent_phone_number="+15719329354",
            jwt_secret_key="jwt-valid",  # type: ignore[arg-type]
        )

        validate_credentials(settings)

    def test_shared_mode_requires_assistant_id(self) -> None:
        settings = Settings(
            _env_file=None,  # type: ignore[call-arg]
            production=True,
            vapi_api_key="vapi-valid",  # type: ignore[arg-type]
            vapi_assistant_id="",
            agent_phone_number="+15719329354",
            jwt_secret_key="jwt-valid",  # type: ignore[arg-type]
        )

        with pytest.raises(SystemExit):
            validate_credentials(settings)

    def test_validate_credentials_dev_mode_warns(self) -> None:
        """Dev mode logs warnings but does NOT exit."""
        settings = Settings(
            _env_file=None,  # type: ignore[call-arg]
            production=False,
            vapi_api_key="",  # type: ignore[arg-type]
        )

        # Should NOT raise or exit
        validate_credentials(settings)


# ---------------------------------------------------------------------------
# get_settings cache
# ---------------------------------------------------------------------------

class TestGetSettingsCached:
    """Verify lru_cache on get_settings."""

    def test_get_settings_cached(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Calling get_settings() twice returns the exact same object."""
        monkeypatch.delenv("PRODUCTION", raising=False)

        first = get_settings()
        second = get_settings()

        assert first is second

    def test_get_settings_exits_on_invalid_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SERVER_PORT", "not-a-number")

        with pytest.raises(SystemExit):
            get_settings()
