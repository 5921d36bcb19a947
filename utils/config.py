"""
Centralized configuration with environment variable overrides.

Business details, the timezone human input is read in, and the
reconciliation batch limits live here. Secrets (database URL) do not:
they come from Vault, see clients.vault_client.
"""

import logging
import os
from dataclasses import dataclass, field
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

# Hard per-batch operation ceiling of the document store
STORE_BATCH_CEILING = 500

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _optional(env_var: str) -> str | None:
    value = (os.getenv(env_var) or "").strip()
    return value or None


@dataclass(frozen=True)
class BusinessConfig:
    """Salon details printed on bills, and the local timezone."""

    name: str = (os.getenv("SALON_NAME") or "").strip() or "Salon"
    phone: str | None = _optional("SALON_PHONE")
    email: str | None = _optional("SALON_EMAIL")
    website: str | None = _optional("SALON_WEBSITE")
    address: str | None = _optional("SALON_ADDRESS")
    timezone: str = os.getenv("SALON_TIMEZONE", "UTC")


@dataclass(frozen=True)
class StoreConfig:
    """Batch sizing for the appointment rebuild job."""

    rebuild_flush_threshold: int = _safe_int("REBUILD_FLUSH_THRESHOLD", "450")
    rebuild_max_tickets: int = _safe_int("REBUILD_MAX_TICKETS", "200")
    rebuild_max_service_items: int = _safe_int("REBUILD_MAX_SERVICE_ITEMS", "200")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    business: BusinessConfig = field(default_factory=BusinessConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if config.log_level.upper() not in LOG_LEVELS:
        raise ValueError(
            f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got {config.log_level!r}"
        )

    try:
        ZoneInfo(config.business.timezone)
    except (KeyError, ValueError):
        raise ValueError(
            f"SALON_TIMEZONE must be an IANA timezone name, got {config.business.timezone!r}"
        ) from None

    if not 1 <= config.store.rebuild_flush_threshold <= STORE_BATCH_CEILING:
        raise ValueError(
            f"REBUILD_FLUSH_THRESHOLD must be between 1 and {STORE_BATCH_CEILING}, "
            f"got {config.store.rebuild_flush_threshold}"
        )
    if config.store.rebuild_max_tickets < 1:
        raise ValueError(
            f"REBUILD_MAX_TICKETS must be >= 1, got {config.store.rebuild_max_tickets}"
        )
    if config.store.rebuild_max_service_items < 1:
        raise ValueError(
            "REBUILD_MAX_SERVICE_ITEMS must be >= 1, "
            f"got {config.store.rebuild_max_service_items}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logger.debug("Configuration loaded for '%s'", config.business.name)
    return config


# Singleton instance
settings = load_config()
