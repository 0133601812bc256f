"""Typed settings for the DropIt server, read by pydantic-settings.

``Settings`` merges environment variables with an optional ``.env`` file;
``get_settings()`` parses them once per process; ``validate_credentials()``
refuses to boot a production server that cannot reach the voice provider or
sign tokens.

This module imports nothing from ``dropit`` so every other module can import
it without cycles.
"""

from __future__ import annotations

import sys
from functools import lru_cache
from pathlib import Path
from typing import Literal

import structlog
from pydantic import SecretStr, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger()


class Settings(BaseSettings):
    """Application settings loaded from environment variables and ``.env`` file.

    ``SecretStr`` fields prevent accidental leaks in logs or error output.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- General ---------------------------------------------------------------
    production: bool = False
    server_host: str = "0.0.0.0"
    server_port: int = 3001
    cors_origins: list[str] = ["http://localhost:3000"]
    upload_dir: Path = Path("uploads")
    max_upload_bytes: int = 10 * 1024 * 1024
    sentry_dsn: str = ""

    # -- Vapi (voice provider) -------------------------------------------------
    vapi_api_key: SecretStr = SecretStr("")
    vapi_base_url: str = "https://api.vapi.ai"
    vapi_assistant_id: str = ""
    agent_phone_number: str = ""
    provider_timeout_seconds: float = 10.0

    # "shared" rewrites one provider assistant before each call (serialized by a
    # lock); "per_call" sends the assistant inline with every call.
    agent_config_mode: Literal["shared", "per_call"] = "shared"
    agent_model_provider: str = "openai"
    agent_model: str = "gpt-4o"
    agent_voice_provider: str = "vapi"
    agent_voice_id: str = "Cole"

    # -- Negotiation tracking --------------------------------------------------
    poll_interval_seconds: float = 2.0
    poll_backoff_seconds: float = 5.0
    end_calls_on_shutdown: bool = False

    # -- Auth ------------------------------------------------------------------
    jwt_secret_key: SecretStr = SecretStr("")
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24


@lru_cache
def get_settings() -> Settings:
    """Parse settings once per process.

    Tests call ``get_settings.cache_clear()`` to pick up a changed environment.
    A malformed value is fatal: the field errors are logged and the process
    exits.
    """
    try:
        return Settings()
    except ValidationError as exc:
        # exc itself may render SecretStr inputs; errors() does not.
        logger.error("settings_validation_failed", errors=exc.errors())
        sys.exit(1)


def validate_credentials(settings: Settings) -> None:
    """Check that the server can place calls and sign tokens.

    A production server with anything missing prints the list to stderr and
    exits with status 1.  In development each gap is only logged, so the
    server can be started against a partial ``.env``.

    Args:
        settings: The loaded application settings.
    """
    missing: list[str] = []

    if not settings.vapi_api_key.get_secret_value():
        missing.append("VAPI_API_KEY is empty or not set")

    if settings.agent_config_mode == "shared" and not settings.vapi_assistant_id:
        missing.append("VAPI_ASSISTANT_ID is required when AGENT_CONFIG_MODE=shared")

    if not settings.agent_phone_number:
        missing.append("AGENT_PHONE_NUMBER is empty or not set")

    if not settings.jwt_secret_key.get_secret_value():
        missing.append("JWT_SECRET_KEY is empty or not set")

    if not missing:
        logger.info("credential_validation_passed")
        return

    if not settings.production:
        for detail in missing:
            logger.warning("credential_missing_dev", detail=detail)
        return

    for detail in missing:
        logger.error("credential_missing", detail=detail)
    lines = "\n".join(f"  - {detail}" for detail in missing)
    print(f"\nDropIt cannot start in production mode. Missing:\n{lines}\n", file=sys.stderr)
    sys.exit(1)
