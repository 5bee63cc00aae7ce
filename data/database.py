"""
Backend Connection Module for the Diary Application

This module talks to the hosted backend over HTTP: password sign-in,
table reads and writes through its REST interface, and image uploads to
object storage. It implements the DiaryBackend protocol; nothing here
decides what is visible or who owns what.
"""

from typing import Optional, List, Dict, Any, Iterable

import requests

from config import settings
from data.models import Session
from utils.exceptions import AuthenticationError, QueryError, StorageError
from utils.helpers import safe_get
from utils.logger import get_logger

logger = get_logger(__name__)


class BackendConnection:
    """REST client for the hosted backend."""

    def __init__(self, base_url: Optional[str] = None, api_key: Optional[str] = None,
                 http: Optional[requests.Session] = None):
        """
        Initialize the backend connection.

        Args:
            base_url: Backend base URL, defaults to settings.BACKEND_URL.
            api_key: Public API key, defaults to settings.BACKEND_API_KEY.
            http: Optional requests.Session to reuse.
        """
        self.base_url = (base_url or settings.BACKEND_URL).rstrip("/")
        self.api_key = api_key or settings.BACKEND_API_KEY
        self.http = http or requests.Session()
        self.session: Optional[Session] = None

    # -------------------------------------------------------------------------
    # Plumbing
    # -------------------------------------------------------------------------

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        token = self.session.access_token if self.session else self.api_key
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {token}",
        }
        if extra:
            headers.update(extra)
        return headers

    def _rest_url(self, table: str) -> str:
        return f"{self.base_url}/rest/v1/{table}"

    def _request(self, method: str, url: str, error_cls, action: str, **kwargs) -> requests.Response:
        """Send one request; any transport or HTTP failure becomes ``error_cls``."""
        try:
            response = self.http.request(method, url, timeout=settings.REQUEST_TIMEOUT, **kwargs)
            response.raise_for_status()
            return response
        except requests.exceptions.RequestException as e:
            logger.error(f"Backend call failed ({action}): {e}")
            raise error_cls(f"{action} failed: {e}") from e

    @staticmethod
    def _json_rows(response: requests.Response, action: str) -> List[Dict[str, Any]]:
        if not response.content:
            return []
        try:
            data = response.json()
        except ValueError as e:
            raise QueryError(f"{action} returned invalid JSON") from e
        if isinstance(data, dict):
            return [data]
        return list(data or [])

    # -------------------------------------------------------------------------
    # Auth
    # -------------------------------------------------------------------------

    def get_session(self) -> Optional[Session]:
        """Return the current session, or None if nobody is signed in."""
        return self.session

    def sign_in(self, email: str, password: str) -> Session:
        """
        Sign in with e-mail and password.

        Args:
            email: Account e-mail.
            password: Account password.

        Returns:
            Session: The new session (also kept on this connection).

        Raises:
            AuthenticationError: If the backend rejects the credentials.
        """
        response = self._request(
            "POST",
            f"{self.base_url}/auth/v1/token",
            AuthenticationError,
            "sign in",
            params={"grant_type": "password"},
            headers={"apikey": self.api_key},
            json={"email": email, "password": password},
        )
        try:
            data = response.json()
        except ValueError as e:
            raise AuthenticationError("sign in returned invalid JSON") from e

        access_token = data.get("access_token")
        user_id = safe_get(data, "user", "id")
        if not access_token or not user_id:
            raise AuthenticationError("sign in response is missing the token or user id")

        self.session = Session(
            access_token=access_token,
            user_id=user_id,
            email=safe_get(data, "user", "email"),
            nickname=safe_get(data, "user", "user_metadata", "nickname"),
        )
        logger.info(f"Signed in as {self.session.email}")
        return self.session

    def sign_out(self) -> None:
        """Forget the current session."""
        self.session = None

    def update_user_metadata(self, data: Dict[str, Any]) -> None:
        """
        Merge data into the signed-in account's metadata.

        Raises:
            AuthenticationError: If nobody is signed in or the update fails.
        """
        if not self.session:
            raise AuthenticationError("No active session")

        self._request(
            "PUT",
            f"{self.base_url}/auth/v1/user",
            AuthenticationError,
            "update user metadata",
            headers=self._headers(),
            json={"data": data},
        )

    # -------------------------------------------------------------------------
    # Tables
    # -------------------------------------------------------------------------

    def query_entries(self, include_hidden: bool = False, newest_first: bool = True) -> List[Dict[str, Any]]:
        """
        Fetch entry rows.

        Args:
            include_hidden: Whether hidden rows are returned.
            newest_first: Order by created_at descending.

        Returns:
            List[Dict]: Raw entry rows in the order the backend returned them.

        Raises:
            QueryError: If the read fails.
        """
        params = {"select": "*"}
        if not include_hidden:
            params["is_hidden"] = "eq.false"
        params["order"] = "created_at.desc" if newest_first else "created_at.asc"

        response = self._request(
            "GET", self._rest_url(settings.DIARY_TABLE), QueryError, "query entries",
            params=params, headers=self._headers(),
        )
        rows = self._json_rows(response, "query entries")
        logger.debug(f"Fetched {len(rows)} entry rows")
        return rows

    def query_users(self, ids: Iterable[str]) -> List[Dict[str, Any]]:
        """
        Fetch author rows by id.

        Args:
            ids: Author ids to look up.

        Returns:
            List[Dict]: Rows with "id" and "nickname".

        Raises:
            QueryError: If the read fails.
        """
        unique_ids = sorted({str(i) for i in ids if i is not None})
        if not unique_ids:
            return []

        params = {
            "select": "id,nickname",
            "id": f"in.({','.join(unique_ids)})",
        }
        response = self._request(
            "GET", self._rest_url(settings.USERS_TABLE), QueryError, "query users",
            params=params, headers=self._headers(),
        )
        return self._json_rows(response, "query users")

    def insert_entry(self, payload: Dict[str, Any]) -> List[Dict[str, Any]]:
        """
        Insert one entry row.

        Raises:
            QueryError: If the insert fails.
        """
        response = self._request(
            "POST", self._rest_url(settings.DIARY_TABLE), QueryError, "insert entry",
            headers=self._headers({"Prefer": "return=representation"}),
            json=[payload],
        )
        rows = self._json_rows(response, "insert entry")
        logger.info(f"Inserted entry for user {payload.get('user_id')}")
        return rows

    def soft_delete_entry(self, entry_id: Any, requester_id: str) -> List[Dict[str, Any]]:
        """
        Mark an entry hidden.

        The update is filtered on the entry id and on the requester as author,
        so the store itself refuses to touch someone else's entry.

        Returns:
            List[Dict]: Rows that were changed; empty when nothing matched.

        Raises:
            QueryError: If the store rejects the update.
        """
        params = {
            "id": f"eq.{entry_id}",
            "user_id": f"eq.{requester_id}",
        }
        response = self._request(
            "PATCH", self._rest_url(settings.DIARY_TABLE), QueryError, "soft delete entry",
            params=params,
            headers=self._headers({"Prefer": "return=representation"}),
            json={"is_hidden": True},
        )
        return self._json_rows(response, "soft delete entry")

    def update_user_nickname(self, user_id: str, nickname: str) -> None:
        """
        Update the nickname column of an author row.

        Raises:
            QueryError: If the update fails.
        """
        self._request(
            "PATCH", self._rest_url(settings.USERS_TABLE), QueryError, "update nickname",
            params={"id": f"eq.{user_id}"},
            headers=self._headers(),
            json={"nickname": nickname},
        )

    # -------------------------------------------------------------------------
    # Storage
    # -------------------------------------------------------------------------

    def public_url(self, file_name: str) -> str:
        """Public URL of an object in the image bucket."""
        return f"{self.base_url}/storage/v1/object/public/{settings.IMAGE_BUCKET}/{file_name}"

    def upload_image(self, file_name: str, content: bytes, content_type: str) -> str:
        """
        Upload an image to the image bucket.

        Returns:
            str: The object's public URL.

        Raises:
            StorageError: If the upload fails.
        """
        self._request(
            "POST",
            f"{self.base_url}/storage/v1/object/{settings.IMAGE_BUCKET}/{file_name}",
            StorageError,
            "upload image",
            headers=self._headers({"Content-Type": content_type}),
            data=content,
        )
        logger.info(f"Uploaded image {file_name}")
        return self.public_url(file_name)
