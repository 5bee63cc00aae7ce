"""
Configuration Validation for the Diary Application

This module contains configuration validation logic.
Extracted from settings.py for better separation of concerns.
"""

from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from utils.exceptions import ConfigurationError


def _is_known_zone(name) -> bool:
    if not name or not isinstance(name, str):
        return False
    try:
        ZoneInfo(name)
        return True
    except (ZoneInfoNotFoundError, ValueError):
        return False


def validate_settings():
    """
    Validate that all required settings are properly configured.

    Raises:
        ConfigurationError: If required settings are missing or invalid.
    """
    # Import settings here to avoid circular imports
    from config import settings

    errors = []

    # Required environment variables
    required_vars = [
        ("BACKEND_URL", settings.BACKEND_URL),
        ("BACKEND_API_KEY", settings.BACKEND_API_KEY),
    ]

    for var_name, var_value in required_vars:
        if not var_value:
            errors.append(f"Missing required environment variable: {var_name}")

    if settings.BACKEND_URL and not str(settings.BACKEND_URL).startswith(("http://", "https://")):
        errors.append(f"BACKEND_URL must be an http(s) URL, got {settings.BACKEND_URL}")

    # Timezones must be real IANA names so offsets follow each zone's rules
    zone_settings = [
        ("SOURCE_TIMEZONE", settings.SOURCE_TIMEZONE),
        ("TARGET_TIMEZONE", settings.TARGET_TIMEZONE),
    ]
    zone_settings.extend(("CLOCK_ZONES", zone) for zone in settings.CLOCK_ZONES)

    for name, zone in zone_settings:
        if not _is_known_zone(zone):
            errors.append(f"{name} contains an unknown timezone: {zone}")

    if not settings.CLOCK_ZONES:
        errors.append("CLOCK_ZONES must name at least one timezone")

    try:
        target = datetime.fromisoformat(settings.COUNTDOWN_TARGET)
        if target.tzinfo is None:
            errors.append("COUNTDOWN_TARGET must include a UTC offset")
    except (TypeError, ValueError):
        errors.append(f"COUNTDOWN_TARGET is not an ISO 8601 instant: {settings.COUNTDOWN_TARGET}")

    # Validate numeric settings
    positive_settings = [
        ("DRAG_THRESHOLD", settings.DRAG_THRESHOLD),
        ("REQUEST_TIMEOUT", settings.REQUEST_TIMEOUT),
        ("PREVIEW_IMAGE_LIMIT", settings.PREVIEW_IMAGE_LIMIT),
    ]

    for name, value in positive_settings:
        if not isinstance(value, int) or value <= 0:
            errors.append(f"{name} must be a positive integer, got {value}")

    if not isinstance(settings.CLOCK_TICK_INTERVAL, int) or settings.CLOCK_TICK_INTERVAL < 0:
        errors.append(f"CLOCK_TICK_INTERVAL must be 0 or a positive integer, got {settings.CLOCK_TICK_INTERVAL}")
    elif settings.CLOCK_TICK_INTERVAL > 60:
        errors.append("CLOCK_TICK_INTERVAL must be at most 60 seconds so the clock updates every minute")

    if not settings.UNKNOWN_USER_NICKNAME:
        errors.append("UNKNOWN_USER_NICKNAME must not be empty")

    # Raise all errors at once
    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        raise ConfigurationError(error_msg)

    return True


def get_config_summary() -> dict:
    """
    Returns a summary of current configuration (without sensitive values).
    Useful for logging startup state.
    """
    # Import settings here to avoid circular imports
    from config import settings

    return {
        "backend": {
            "url": settings.BACKEND_URL[:30] + "..." if settings.BACKEND_URL and len(settings.BACKEND_URL) > 30 else settings.BACKEND_URL,
            "api_key_configured": bool(settings.BACKEND_API_KEY),
            "diary_table": settings.DIARY_TABLE,
            "users_table": settings.USERS_TABLE,
            "image_bucket": settings.IMAGE_BUCKET,
        },
        "time": {
            "source": f"{settings.SOURCE_TIMEZONE} ({settings.SOURCE_ZONE_LABEL})",
            "target": f"{settings.TARGET_TIMEZONE} ({settings.TARGET_ZONE_LABEL})",
            "clock_zones": list(settings.CLOCK_ZONES),
            "countdown_target": settings.COUNTDOWN_TARGET,
            "tick": "top of minute" if not settings.CLOCK_TICK_INTERVAL else f"every {settings.CLOCK_TICK_INTERVAL}s",
        },
        "interaction": {
            "drag_threshold": settings.DRAG_THRESHOLD,
            "preview_image_limit": settings.PREVIEW_IMAGE_LIMIT,
        }
    }
