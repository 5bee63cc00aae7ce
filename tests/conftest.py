"""
Shared Test Fixtures for the Diary Application

This module provides common fixtures used across all test modules.
Fixtures include a mock backend, settings overrides, logging capture,
HTTP responses, and data factories for rows and sessions.
"""

import pytest
from unittest.mock import MagicMock
from typing import Optional, Dict, Any, List
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


# =============================================================================
# Settings Fixtures
# =============================================================================

@pytest.fixture
def diary_settings(monkeypatch):
    """
    Pin the settings module to known test values.

    Usage:
        def test_something(diary_settings):
            diary_settings.DRAG_THRESHOLD = 80   # restored after the test

    Returns:
        module: The config.settings module with test values applied.
    """
    from config import settings

    values = {
        "BACKEND_URL": "https://backend.test",
        "BACKEND_API_KEY": "test-anon-key",
        "DIARY_TABLE": "diaries",
        "USERS_TABLE": "users",
        "IMAGE_BUCKET": "diary-images",
        "LOGIN_EMAIL_DOMAIN": "local.com",
        "REQUEST_TIMEOUT": 15,
        "SOURCE_TIMEZONE": "Asia/Shanghai",
        "TARGET_TIMEZONE": "Europe/London",
        "SOURCE_ZONE_LABEL": "CN",
        "TARGET_ZONE_LABEL": "UK",
        "CLOCK_ZONES": ["Asia/Shanghai", "Europe/London"],
        "COUNTDOWN_TARGET": "2025-06-11T12:00:00+08:00",
        "CLOCK_TICK_INTERVAL": 0,
        "DRAG_THRESHOLD": 50,
        "UNKNOWN_USER_NICKNAME": "unknown user",
        "PREVIEW_IMAGE_LIMIT": 3,
    }
    for name, value in values.items():
        monkeypatch.setattr(settings, name, value)

    # Attribute assignments made by the test are undone by monkeypatch too
    class _Tracked:
        def __getattr__(self, name):
            return getattr(settings, name)

        def __setattr__(self, name, value):
            monkeypatch.setattr(settings, name, value)

    return _Tracked()


# =============================================================================
# Backend Fixtures
# =============================================================================

@pytest.fixture
def session_factory():
    """
    Factory fixture for creating Session objects.

    Usage:
        def test_x(session_factory):
            session = session_factory(user_id="A", nickname="Ann")
    """
    from data.models import Session

    def _create_session(
        user_id: str = "user-a",
        email: Optional[str] = "ann@local.com",
        nickname: Optional[str] = "Ann",
        access_token: str = "test-access-token",
    ) -> Session:
        return Session(access_token=access_token, user_id=user_id, email=email, nickname=nickname)

    return _create_session


@pytest.fixture
def mock_backend(session_factory):
    """
    Mock DiaryBackend with a signed-in session and an empty feed.

    Usage:
        def test_feed(mock_backend, entry_row_factory):
            mock_backend.query_entries.return_value = [entry_row_factory()]

    Returns:
        MagicMock: A mock spec'd on BackendConnection.
    """
    from data.database import BackendConnection

    backend = MagicMock(spec=BackendConnection)
    backend.get_session.return_value = session_factory()
    backend.query_entries.return_value = []
    backend.query_users.return_value = []
    backend.insert_entry.return_value = [{"id": 99}]
    backend.soft_delete_entry.return_value = [{"id": 1, "is_hidden": True}]
    backend.upload_image.side_effect = lambda name, content, content_type: f"https://cdn.test/{name}"
    return backend


# =============================================================================
# Data Model Factories
# =============================================================================

@pytest.fixture
def entry_row_factory():
    """
    Factory fixture for creating raw entry rows as the backend returns them.

    Usage:
        row = entry_row_factory(id=2, user_id="B", is_hidden=True)
    """
    def _create_row(
        id: Any = 1,
        content: str = "Test entry",
        date: str = "2024/03/31",
        beijing_time: str = "15:30",
        image_urls: Optional[List[str]] = None,
        user_id: str = "user-a",
        is_hidden: bool = False,
        created_at: str = "2024-03-31T07:30:00+00:00",
        **kwargs
    ) -> Dict[str, Any]:
        row = {
            "id": id,
            "content": content,
            "date": date,
            "beijing_time": beijing_time,
            "image_urls": image_urls,
            "user_id": user_id,
            "is_hidden": is_hidden,
            "created_at": created_at,
        }
        row.update(kwargs)
        return row

    return _create_row


@pytest.fixture
def user_row_factory():
    """Factory fixture for creating raw author rows."""
    def _create_row(id: str = "user-a", nickname: Optional[str] = "Ann") -> Dict[str, Any]:
        return {"id": id, "nickname": nickname}

    return _create_row


# =============================================================================
# Logging Fixtures
# =============================================================================

@pytest.fixture
def capture_logs():
    """
    Capture log messages for assertion in tests.

    Returns:
        list: A list that will contain captured log records.
    """
    import logging

    class LogCapture(logging.Handler):
        def __init__(self):
            super().__init__()
            self.records = []

        def emit(self, record):
            self.records.append(record)

    handler = LogCapture()
    handler.setLevel(logging.DEBUG)

    app_logger = logging.getLogger("diary")
    original_level = app_logger.level
    app_logger.setLevel(logging.DEBUG)
    app_logger.addHandler(handler)

    yield handler.records

    app_logger.removeHandler(handler)
    app_logger.setLevel(original_level)


# =============================================================================
# HTTP Response Fixtures
# =============================================================================

@pytest.fixture
def mock_http_response():
    """
    Factory fixture for creating mock HTTP responses.

    Usage:
        def test_http_request(mock_http_response):
            response = mock_http_response(status_code=200, json_data=[{'id': 1}])

    Returns:
        callable: A factory function for creating mock responses.
    """
    def _create_response(
        status_code: int = 200,
        json_data: Any = None,
        content: Optional[bytes] = None,
        raise_for_status: bool = False
    ) -> MagicMock:
        """
        Create a mock HTTP response object.

        Args:
            status_code: HTTP status code (default 200).
            json_data: Value to return from response.json().
            content: Raw body; derived from json_data when omitted.
            raise_for_status: If True, raise_for_status() will raise an exception.

        Returns:
            MagicMock: A mock response object mimicking requests.Response.
        """
        import json

        mock_response = MagicMock()
        mock_response.status_code = status_code
        mock_response.ok = 200 <= status_code < 300

        if content is None:
            content = json.dumps(json_data).encode('utf-8') if json_data is not None else b''
        mock_response.content = content

        if json_data is not None:
            mock_response.json.return_value = json_data
        else:
            mock_response.json.side_effect = ValueError("No JSON data")

        if raise_for_status or status_code >= 400:
            from requests.exceptions import HTTPError
            mock_response.raise_for_status.side_effect = HTTPError(
                f"{status_code} Error",
                response=mock_response
            )
        else:
            mock_response.raise_for_status.return_value = None

        return mock_response

    return _create_response


@pytest.fixture
def mock_http(mock_http_response):
    """
    A mock requests.Session to inject into BackendConnection.

    Usage:
        def test_call(mock_http):
            mock_http.request.return_value = mock_http.response(json_data=[])

    Returns:
        MagicMock: Mock session with the response factory attached.
    """
    http = MagicMock()
    http.response = mock_http_response
    http.request.return_value = mock_http_response(json_data=[])
    return http
