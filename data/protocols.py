"""
Data Layer Protocol Definitions

This module defines typing.Protocol interfaces for the hosted backend.
These protocols enable dependency injection for storage, auth and upload
calls, making services testable without a live backend.

Protocols defined:
- DiaryBackend: Interface for sessions, entry/author tables and image storage
"""

from typing import Protocol, Optional, List, Dict, Any, Iterable

from data.models import Session


class DiaryBackend(Protocol):
    """Protocol defining the interface of the external backend.

    Implementations should provide methods for:
    - Reading the current session and signing in
    - Querying entries and authors
    - Inserting entries and soft-deleting them
    - Uploading images and updating the author's nickname

    The core never reimplements these; it only orchestrates them.
    """

    def get_session(self) -> Optional[Session]:
        """Return the current session, or None if nobody is signed in."""
        ...

    def sign_in(self, email: str, password: str) -> Session:
        """Sign in with e-mail and password.

        Raises:
            AuthenticationError: If the credentials are rejected.
        """
        ...

    def query_entries(self, include_hidden: bool = False, newest_first: bool = True) -> List[Dict[str, Any]]:
        """Fetch entry rows.

        Args:
            include_hidden: Whether hidden rows are returned.
            newest_first: Order by created_at descending.

        Returns:
            Raw entry rows in storage order.
        """
        ...

    def query_users(self, ids: Iterable[str]) -> List[Dict[str, Any]]:
        """Fetch author rows whose id is in ``ids``."""
        ...

    def insert_entry(self, payload: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Insert one entry row and return the stored rows."""
        ...

    def soft_delete_entry(self, entry_id: Any, requester_id: str) -> List[Dict[str, Any]]:
        """Mark an entry hidden, filtered on both id and author id.

        Returns:
            The rows that were changed (empty if nothing matched).
        """
        ...

    def upload_image(self, file_name: str, content: bytes, content_type: str) -> str:
        """Store an image and return its public URL."""
        ...

    def update_user_metadata(self, data: Dict[str, Any]) -> None:
        """Merge ``data`` into the signed-in account's metadata."""
        ...

    def update_user_nickname(self, user_id: str, nickname: str) -> None:
        """Update the nickname column of an author row."""
        ...
