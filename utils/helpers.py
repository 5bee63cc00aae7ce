"""
Helper Utility Module

This module provides various helper functions used throughout the diary application.
"""

import os
import uuid
from typing import Optional, Dict, Any
from datetime import date, datetime


def normalize_date_string(value: str) -> str:
    """
    Normalize a calendar date string to ISO separators.

    Entries store dates as "YYYY/MM/DD"; both slashes and dashes are accepted.

    Args:
        value: The date string to normalize

    Returns:
        str: The date with "/" replaced by "-"
    """
    return value.strip().replace('/', '-')


def parse_calendar_date(value: Optional[str]) -> Optional[date]:
    """
    Parse an entry date string.

    Args:
        value: A "YYYY/MM/DD" or "YYYY-MM-DD" string

    Returns:
        date: The parsed date, or None if missing or malformed
    """
    if not value:
        return None
    try:
        return datetime.strptime(normalize_date_string(value), '%Y-%m-%d').date()
    except ValueError:
        return None


def format_calendar_date(value: date) -> str:
    """Format a date the way entries store it ("YYYY/MM/DD")."""
    return value.strftime('%Y/%m/%d')


def random_file_name(original_name: str) -> str:
    """
    Build a random storage name that keeps the original extension.

    Args:
        original_name: The uploaded file's name

    Returns:
        str: e.g. "3f2a...c1.jpg"
    """
    _, ext = os.path.splitext(original_name)
    return f"{uuid.uuid4().hex}{ext.lower()}"


def email_local_part(email: Optional[str]) -> str:
    """Return the part of an e-mail address before "@" (empty if missing)."""
    if not email:
        return ""
    return email.split('@')[0]


def safe_get(data: Dict[str, Any], *keys, default: Any = None) -> Any:
    """
    Safely get a value from a nested dictionary.

    Args:
        data: The dictionary to search
        *keys: The keys to follow
        default: Default value if key doesn't exist

    Returns:
        The value at the specified keys or the default value
    """
    for key in keys:
        try:
            data = data[key]
        except (KeyError, TypeError, IndexError):
            return default
    return data
