"""
Centralized configuration with environment variable overrides.

Business details, backend endpoints, email credentials and booking
thresholds are configurable here. Operating hours are not: they live
as a constant next to the slot generator.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from barbershop.logging_context import RequestIdFilter

load_dotenv()

logger = logging.getLogger(__name__)

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off", ""}


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


def _safe_bool(env_var: str, default: str) -> bool:
    """Parse a boolean flag from an env var."""
    raw = os.getenv(env_var, default).strip().lower()
    if raw in _TRUTHY:
        return True
    if raw in _FALSY:
        return False
    raise ValueError(f"Invalid boolean for {env_var}: {raw!r}")


@dataclass(frozen=True)
class BusinessConfig:
    """Shop details shown in emails."""

    name: str = os.getenv("BUSINESS_NAME", "K-Parturi")
    address: str = os.getenv("BUSINESS_ADDRESS", "Heinolankaari 9, 67600 Kokkola")
    phone: str = os.getenv("BUSINESS_PHONE", "+358 40 773 6334")


@dataclass(frozen=True)
class StoreConfig:
    """Hosted relational backend (Supabase PostgREST) credentials."""

    url: str = os.getenv("SUPABASE_URL", "")
    anon_key: str = os.getenv("SUPABASE_ANON_KEY", "")
    service_role_key: str = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")


@dataclass(frozen=True)
class EmailConfig:
    """Transactional email (Resend) settings."""

    resend_api_key: str = os.getenv("RESEND_API_KEY", "")
    admin_email: str = os.getenv("ADMIN_EMAIL", "")
    booking_sender: str = os.getenv(
        "BOOKING_SENDER", "K-Parturi <booking@notify.k-parturi.fi>"
    )
    verification_sender: str = os.getenv(
        "VERIFICATION_SENDER", "K-Parturi <codeverification@notify.k-parturi.fi>"
    )
    error_sender: str = os.getenv(
        "ERROR_SENDER", "K-Parturi Errors <errors@notify.k-parturi.fi>"
    )


@dataclass(frozen=True)
class BookingConfig:
    """Slot generation, verification and loyalty thresholds."""

    slot_step_minutes: int = _safe_int("SLOT_STEP_MINUTES", "15")
    enforce_closing_time: bool = _safe_bool("ENFORCE_CLOSING_TIME", "false")
    verification_code_ttl_minutes: int = _safe_int("VERIFICATION_CODE_TTL_MINUTES", "15")
    lookup_cache_ttl_hours: int = _safe_int("LOOKUP_CACHE_TTL_HOURS", "24")
    stamps_per_card: int = _safe_int("STAMPS_PER_CARD", "10")


@dataclass(frozen=True)
class FunctionsConfig:
    """Where the serverless functions are reachable from the client side."""

    base_url: str = os.getenv("FUNCTIONS_URL", "http://localhost:8000/functions/v1")
    host: str = os.getenv("FUNCTIONS_HOST", "127.0.0.1")
    port: int = _safe_int("FUNCTIONS_PORT", "8000")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    business: BusinessConfig = field(default_factory=BusinessConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    email: EmailConfig = field(default_factory=EmailConfig)
    booking: BookingConfig = field(default_factory=BookingConfig)
    functions: FunctionsConfig = field(default_factory=FunctionsConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    http_timeout_seconds: float = _safe_float("HTTP_TIMEOUT_SECONDS", "10.0")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if config.booking.slot_step_minutes < 1:
        raise ValueError(
            f"SLOT_STEP_MINUTES must be >= 1, got {config.booking.slot_step_minutes}"
        )
    if config.booking.verification_code_ttl_minutes < 1:
        raise ValueError(
            "VERIFICATION_CODE_TTL_MINUTES must be >= 1, "
            f"got {config.booking.verification_code_ttl_minutes}"
        )
    if config.booking.lookup_cache_ttl_hours < 1:
        raise ValueError(
            f"LOOKUP_CACHE_TTL_HOURS must be >= 1, got {config.booking.lookup_cache_ttl_hours}"
        )
    if config.booking.stamps_per_card < 1:
        raise ValueError(
            f"STAMPS_PER_CARD must be >= 1, got {config.booking.stamps_per_card}"
        )
    if config.http_timeout_seconds <= 0:
        raise ValueError(
            f"HTTP_TIMEOUT_SECONDS must be > 0, got {config.http_timeout_seconds}"
        )
    if not 1 <= config.functions.port <= 65535:
        raise ValueError(f"FUNCTIONS_PORT must be a valid port, got {config.functions.port}")


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] [%(request_id)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # Every record gets a request_id, whichever logger emitted it.
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, RequestIdFilter) for f in handler.filters):
            handler.addFilter(RequestIdFilter())
    logger.info("Configuration loaded for '%s'", config.business.name)
    if not config.store.url:
        logger.warning("SUPABASE_URL is not set; only the in-memory store is usable")
    return config


# Singleton instance
settings = load_config()
