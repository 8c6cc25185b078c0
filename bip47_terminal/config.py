"""Configuration management for the BIP47 Terminal.

Centralises environment variable loading and validation logic while keeping the
public API intentionally simple.
"""

from __future__ import annotations

import os
from typing import Any, Mapping, Optional, TypedDict

_TRUTHY_VALUES = {"1", "true", "yes", "on"}

_DEV_SECRET = "dev-secret-CHANGE-ME-IN-PRODUCTION"


class AppConfig(TypedDict, total=False):
    """Typed representation of the application's configuration."""

    FLASK_SECRET_KEY: Optional[str]
    FLASK_ENV: str
    FLASK_DEBUG: bool
    CALLBACK_URL: str
    CHALLENGE_TTL: int
    CHALLENGE_RETENTION: int
    CHALLENGE_SWEEP_INTERVAL: int
    PAYNYM_API_URL: str
    PAYNYM_TIMEOUT: int
    DATABASE_URL: Optional[str]
    GUESTBOOK_MAX_MESSAGE_LENGTH: int
    CORS_ORIGINS: str
    RATE_LIMIT_ENABLED: bool
    RATE_LIMIT_DEFAULT: str
    FORCE_HTTPS: bool
    LOG_LEVEL: str
    APP_NAME: str
    APP_VERSION: str
    APP_HOST: str
    APP_PORT: int


def _get_env_bool(name: str, default: bool) -> bool:
    """Return an environment variable as a boolean."""

    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in _TRUTHY_VALUES


def _get_env_int(name: str, default: int) -> int:
    """Return an environment variable as an integer, raising on invalid input."""

    raw_value = os.getenv(name)
    if raw_value is None or raw_value == "":
        return default

    try:
        return int(raw_value)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be an integer (got {raw_value!r})") from exc


def get_config() -> AppConfig:
    """Load application configuration from environment variables."""

    app_port = _get_env_int("APP_PORT", _get_env_int("PORT", 3000))

    return {
        # Flask Configuration
        "FLASK_SECRET_KEY": os.getenv("FLASK_SECRET_KEY"),
        "FLASK_ENV": os.getenv("FLASK_ENV", "development"),
        "FLASK_DEBUG": _get_env_bool("FLASK_DEBUG", False),
        # Auth47 Configuration
        "CALLBACK_URL": os.getenv("CALLBACK_URL") or f"http://localhost:{app_port}/callback",
        "CHALLENGE_TTL": _get_env_int("CHALLENGE_TTL", 300),
        "CHALLENGE_RETENTION": _get_env_int("CHALLENGE_RETENTION", 300),
        "CHALLENGE_SWEEP_INTERVAL": _get_env_int("CHALLENGE_SWEEP_INTERVAL", 60),
        # Paynym API
        "PAYNYM_API_URL": os.getenv("PAYNYM_API_URL", "https://paynym.rs"),
        "PAYNYM_TIMEOUT": _get_env_int("PAYNYM_TIMEOUT", 10),
        # Guestbook persistence
        "DATABASE_URL": os.getenv("DATABASE_URL") or os.getenv("GUESTBOOK_DATABASE_URL"),
        "GUESTBOOK_MAX_MESSAGE_LENGTH": _get_env_int("GUESTBOOK_MAX_MESSAGE_LENGTH", 500),
        # CORS Configuration
        "CORS_ORIGINS": os.getenv("CORS_ORIGINS", "*"),
        # Rate Limiting
        "RATE_LIMIT_ENABLED": _get_env_bool("RATE_LIMIT_ENABLED", True),
        "RATE_LIMIT_DEFAULT": os.getenv("RATE_LIMIT_DEFAULT", "300/hour"),
        "FORCE_HTTPS": _get_env_bool(
            "FORCE_HTTPS",
            os.getenv("FLASK_ENV", "development").lower() == "production",
        ),
        # Logging
        "LOG_LEVEL": os.getenv("LOG_LEVEL", "INFO"),
        # Application Settings
        "APP_NAME": os.getenv("APP_NAME", "BIP47 Terminal"),
        "APP_VERSION": os.getenv("APP_VERSION", "1.0.0"),
        "APP_HOST": os.getenv("APP_HOST", "0.0.0.0"),
        "APP_PORT": app_port,
    }


def validate_config(config: Mapping[str, Any]) -> bool:
    """Validate critical configuration values.

    Args:
        config: Configuration mapping to validate.

    Returns:
        True if configuration is valid, raises ValueError otherwise.
    """

    ttl = config.get("CHALLENGE_TTL", 300)
    retention = config.get("CHALLENGE_RETENTION", 300)
    if ttl <= 0:
        raise ValueError("CHALLENGE_TTL must be positive")
    if retention < ttl:
        raise ValueError("CHALLENGE_RETENTION must be at least CHALLENGE_TTL")

    if config.get("FLASK_ENV") == "production":
        secret = config.get("FLASK_SECRET_KEY")
        if not secret or secret == _DEV_SECRET:
            raise ValueError("⚠️  FLASK_SECRET_KEY must be set for production!")

        if str(config.get("CALLBACK_URL", "")).startswith("http://localhost"):
            import warnings

            warnings.warn(
                "⚠️  CALLBACK_URL points at localhost - wallets will not be able to reach the callback!",
                stacklevel=2,
            )

        if not config.get("DATABASE_URL"):
            import warnings

            warnings.warn("⚠️  DATABASE_URL not set - guestbook will be disabled!", stacklevel=2)

    return True
