"""Environment-variable configuration for the dispatcher service."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

import pytz

from .adapters.real_senders import missing_channel_env, missing_template_env
from .errors import ConfigurationError
from .types import CHANNELS, CONFIRMATION, WHATSAPP

SCHEDULE_MODES = ("aligned", "interval")


@dataclass(frozen=True)
class Settings:
    base44_api_url: str
    base44_api_key: str
    provider_timeout_seconds: float = 10.0
    timezone_name: str = "Asia/Jerusalem"
    default_channel: str = WHATSAPP
    enabled_channels: tuple[str, ...] = (WHATSAPP,)
    phone_country_code: str = "972"
    reminder_tolerance_minutes: float = 10.0
    reminder_schedule_mode: str = "aligned"
    reminder_poll_minutes: int = 15
    confirmations_enabled: bool = True
    confirmation_poll_seconds: float = 60.0
    confirmation_lookback_hours: float = 24.0
    reminder_store_path: str = "sent-reminders.json"
    confirmation_store_path: str = "sent-confirmations.json"
    dedup_retention_days: float = 7.0
    dedup_strict_persistence: bool = False
    control_api_secret: str | None = None
    port: int = 3000
    broadcast_send_delay_seconds: float = 0.1
    log_level: str = "INFO"


def load_settings(*, serve_http: bool = True, check_credentials: bool = True) -> Settings:
    """Build `Settings` from the environment or raise `ConfigurationError`."""
    default_channel = os.getenv("DEFAULT_CHANNEL", WHATSAPP).strip().lower()
    enabled_raw = os.getenv("ENABLED_CHANNELS", default_channel)
    enabled_channels = tuple(
        item.strip().lower() for item in enabled_raw.split(",") if item.strip()
    )

    settings = Settings(
        base44_api_url=_required_env("BASE44_API_URL"),
        base44_api_key=_required_env("BASE44_API_KEY"),
        provider_timeout_seconds=_env_float("PROVIDER_TIMEOUT_SECONDS", 10.0),
        timezone_name=os.getenv("REFERENCE_TIMEZONE", "Asia/Jerusalem").strip(),
        default_channel=default_channel,
        enabled_channels=enabled_channels,
        phone_country_code=os.getenv("PHONE_COUNTRY_CODE", "972").strip().lstrip("+"),
        reminder_tolerance_minutes=_env_float("REMINDER_TOLERANCE_MINUTES", 10.0),
        reminder_schedule_mode=os.getenv("REMINDER_SCHEDULE_MODE", "aligned").strip().lower(),
        reminder_poll_minutes=_env_int("REMINDER_POLL_MINUTES", 15),
        confirmations_enabled=_env_bool("CONFIRMATIONS_ENABLED", default=True),
        confirmation_poll_seconds=_env_float("CONFIRMATION_POLL_SECONDS", 60.0),
        confirmation_lookback_hours=_env_float("CONFIRMATION_LOOKBACK_HOURS", 24.0),
        reminder_store_path=os.getenv("REMINDER_STORE_PATH", "sent-reminders.json"),
        confirmation_store_path=os.getenv("CONFIRMATION_STORE_PATH", "sent-confirmations.json"),
        dedup_retention_days=_env_float("DEDUP_RETENTION_DAYS", 7.0),
        dedup_strict_persistence=_env_bool("DEDUP_STRICT_PERSISTENCE", default=False),
        control_api_secret=(os.getenv("CONTROL_API_SECRET") or "").strip() or None,
        port=_env_int("PORT", 3000),
        broadcast_send_delay_seconds=_env_float("BROADCAST_SEND_DELAY_SECONDS", 0.1),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
    )
    validate_settings(settings, serve_http=serve_http, check_credentials=check_credentials)
    return settings


def validate_settings(
    settings: Settings,
    *,
    serve_http: bool = True,
    check_credentials: bool = True,
) -> None:
    unknown = [name for name in settings.enabled_channels if name not in CHANNELS]
    if unknown:
        raise ConfigurationError(f"Unknown channel(s) in ENABLED_CHANNELS: {', '.join(unknown)}")
    if not settings.enabled_channels:
        raise ConfigurationError("ENABLED_CHANNELS must include at least one channel")
    if settings.default_channel not in settings.enabled_channels:
        raise ConfigurationError(
            f"DEFAULT_CHANNEL={settings.default_channel!r} is not in ENABLED_CHANNELS"
        )

    if check_credentials:
        missing = sorted(
            {name for channel in settings.enabled_channels for name in missing_channel_env(channel)}
        )
        if settings.confirmations_enabled and WHATSAPP in settings.enabled_channels:
            missing = sorted(set(missing) | set(missing_template_env([CONFIRMATION])))
        if missing:
            raise ConfigurationError(
                f"Missing channel credentials: {', '.join(missing)}"
            )

    if settings.timezone_name not in pytz.all_timezones_set:
        raise ConfigurationError(f"Unknown REFERENCE_TIMEZONE: {settings.timezone_name!r}")

    if settings.reminder_schedule_mode not in SCHEDULE_MODES:
        raise ConfigurationError(
            f"REMINDER_SCHEDULE_MODE must be one of {SCHEDULE_MODES}, "
            f"got {settings.reminder_schedule_mode!r}"
        )
    if settings.reminder_poll_minutes <= 0:
        raise ConfigurationError("REMINDER_POLL_MINUTES must be > 0")
    if settings.reminder_poll_minutes >= 2 * settings.reminder_tolerance_minutes:
        raise ConfigurationError(
            "REMINDER_POLL_MINUTES must be smaller than 2 * REMINDER_TOLERANCE_MINUTES "
            f"({settings.reminder_poll_minutes} >= {2 * settings.reminder_tolerance_minutes:g}); "
            "reminder windows could fall between two polls"
        )
    if settings.confirmation_poll_seconds <= 0:
        raise ConfigurationError("CONFIRMATION_POLL_SECONDS must be > 0")
    if settings.confirmation_lookback_hours >= settings.dedup_retention_days * 24:
        raise ConfigurationError(
            "CONFIRMATION_LOOKBACK_HOURS must be shorter than DEDUP_RETENTION_DAYS"
        )

    if serve_http and not settings.control_api_secret:
        raise ConfigurationError("Missing required environment variable: CONTROL_API_SECRET")


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def _required_env(name: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        raise ConfigurationError(f"Missing required environment variable: {name}")
    return value.strip()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    normalized = raw.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ConfigurationError(f"Invalid boolean value for {name}: {raw!r}")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid number for {name}: {raw!r}") from exc


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid integer for {name}: {raw!r}") from exc
