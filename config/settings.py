"""
Configuration Settings for the Diary Application

This module centralizes all configuration settings for the diary application,
including backend credentials, timezone choices, and interaction constants.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Determine the application root directory
APP_ROOT = Path(__file__).resolve().parent.parent

# Load environment variables from .env file
load_dotenv(dotenv_path=os.path.join(APP_ROOT, '.env'))


def _get_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        # Left as-is so validate_settings() reports it
        return value  # type: ignore[return-value]


# =============================================================================
# Backend Settings
# =============================================================================

BACKEND_URL = os.getenv("BACKEND_URL", "").rstrip("/")
BACKEND_API_KEY = os.getenv("BACKEND_API_KEY", "")

DIARY_TABLE = os.getenv("DIARY_TABLE", "diaries")
USERS_TABLE = os.getenv("USERS_TABLE", "users")
IMAGE_BUCKET = os.getenv("IMAGE_BUCKET", "diary-images")

LOGIN_EMAIL_DOMAIN = os.getenv("LOGIN_EMAIL_DOMAIN", "local.com")  # username@<domain>
REQUEST_TIMEOUT = _get_int("REQUEST_TIMEOUT", 15)                # Seconds per HTTP call

# =============================================================================
# Timezone Settings
# =============================================================================

SOURCE_TIMEZONE = os.getenv("SOURCE_TIMEZONE", "Asia/Shanghai")   # Zone entries are written in
TARGET_TIMEZONE = os.getenv("TARGET_TIMEZONE", "Europe/London")   # Zone entries are also shown in
SOURCE_ZONE_LABEL = os.getenv("SOURCE_ZONE_LABEL", "CN")
TARGET_ZONE_LABEL = os.getenv("TARGET_ZONE_LABEL", "UK")

# Zones shown by the live clock, in display order
CLOCK_ZONES = [
    zone.strip()
    for zone in os.getenv("CLOCK_ZONES", f"{SOURCE_TIMEZONE},{TARGET_TIMEZONE}").split(",")
    if zone.strip()
]

# Fixed instant the countdown counts toward (ISO 8601 with offset)
COUNTDOWN_TARGET = os.getenv("COUNTDOWN_TARGET", "2025-06-11T12:00:00+08:00")

# 0 = recompute at the top of every minute; otherwise a fixed interval in seconds
CLOCK_TICK_INTERVAL = _get_int("CLOCK_TICK_INTERVAL", 0)

# =============================================================================
# Feed & Carousel Settings
# =============================================================================

DRAG_THRESHOLD = _get_int("DRAG_THRESHOLD", 50)            # Distance units a drag must exceed
UNKNOWN_USER_NICKNAME = os.getenv("UNKNOWN_USER_NICKNAME", "unknown user")
PREVIEW_IMAGE_LIMIT = _get_int("PREVIEW_IMAGE_LIMIT", 3)    # Thumbnails before "+N"


# =============================================================================
# Configuration Validation
# =============================================================================

def validate_settings():
    """
    Validate that all required settings are properly configured.

    Delegates to config.validators.validate_settings().

    Raises:
        ConfigurationError: If required settings are missing or invalid.
    """
    from config.validators import validate_settings as _validate
    return _validate()


def get_config_summary() -> dict:
    """
    Returns a summary of current configuration (without sensitive values).
    Useful for logging startup state.
    """
    from config.validators import get_config_summary as _summary
    return _summary()
