"""
Feed Service Module

This module turns raw entry and author rows into the feed everyone sees:
hidden entries are dropped, authors are attached (with a fallback when the
lookup fails), ownership is worked out per viewer, and owners can soft-delete
their own entries.
"""

from typing import Optional, List, Dict, Any, Iterable, Mapping, Union

from config import settings
from data.models import Entry, User, DisplayEntry, ViewerContext
from data.protocols import DiaryBackend
from services.timezone_service import convert_local_time
from utils.exceptions import (
    AuthRequired, BackendError, JoinResolutionFailure, MutationRejected, QueryError
)
from utils.logger import get_logger

logger = get_logger(__name__)

RawEntry = Union[Entry, Mapping[str, Any]]
RawUser = Union[User, Mapping[str, Any]]


def _to_entry(raw: RawEntry) -> Entry:
    return raw if isinstance(raw, Entry) else Entry.from_row(raw)


def _to_user(raw: RawUser) -> User:
    return raw if isinstance(raw, User) else User.from_row(raw)


def aggregate(raw_entries: Iterable[RawEntry],
              raw_users: Optional[Iterable[RawUser]],
              viewer_id: Optional[str],
              unknown_nickname: Optional[str] = None) -> List[DisplayEntry]:
    """
    Build display entries from raw rows.

    Hidden entries are removed; everything else keeps its input order (the
    caller asks the backend for newest-first). ``raw_users`` of None means
    the author lookup failed, in which case every entry gets the fallback
    nickname instead of the whole feed failing.

    Args:
        raw_entries: Entry rows or Entry objects.
        raw_users: Author rows or User objects, or None if the lookup failed.
        viewer_id: Id of the signed-in viewer, None when signed out.
        unknown_nickname: Fallback nickname, defaults to settings.UNKNOWN_USER_NICKNAME.

    Returns:
        List[DisplayEntry]: One per visible entry.
    """
    fallback = unknown_nickname or settings.UNKNOWN_USER_NICKNAME

    nicknames: Dict[str, str] = {}
    for raw in raw_users or []:
        user = _to_user(raw)
        if user.id is not None and user.nickname:
            nicknames[user.id] = user.nickname

    display = []
    for raw in raw_entries:
        entry = _to_entry(raw)
        if entry.is_hidden:
            continue
        display.append(DisplayEntry(
            entry=entry,
            author_nickname=nicknames.get(entry.author_id, fallback),
            is_owner=viewer_id is not None and entry.author_id == viewer_id,
        ))
    return display


def format_timestamp_line(display_entry: DisplayEntry) -> str:
    """
    Timestamp line shown under an entry.

    Example: "2024/03/31, 15:30(CN), 08:30(UK)"
    """
    entry = display_entry.entry
    target_time = display_entry.target_time
    if target_time is None:
        target_time = convert_local_time(entry.date, entry.source_time) or ""
    return (
        f"{entry.date}, {entry.source_time}({settings.SOURCE_ZONE_LABEL}), "
        f"{target_time}({settings.TARGET_ZONE_LABEL})"
    )


def preview_thumbnails(image_urls: Optional[List[str]],
                       limit: Optional[int] = None) -> Dict[str, Any]:
    """
    Split an entry's images into visible thumbnails and an overflow count.

    Returns:
        dict: {"thumbnails": first ``limit`` URLs, "overflow": how many more}
    """
    limit = settings.PREVIEW_IMAGE_LIMIT if limit is None else limit
    urls = list(image_urls or [])
    return {
        "thumbnails": urls[:limit],
        "overflow": max(len(urls) - limit, 0),
    }


class FeedService:
    """Fetches, joins and mutates the shared feed through the backend."""

    def __init__(self, backend: DiaryBackend):
        """
        Args:
            backend: The hosted backend (anything implementing DiaryBackend).
        """
        self.backend = backend

    def _fetch_users(self, entries: List[Entry]) -> List[Dict[str, Any]]:
        author_ids = {entry.author_id for entry in entries if entry.author_id is not None}
        try:
            return self.backend.query_users(author_ids)
        except BackendError as e:
            raise JoinResolutionFailure(f"Author lookup failed: {e}") from e

    def fetch_feed(self, context: ViewerContext) -> List[DisplayEntry]:
        """
        Fetch the visible feed for a viewer.

        Args:
            context: The viewer; must be signed in.

        Returns:
            List[DisplayEntry]: Newest first, with target-zone times filled in.

        Raises:
            AuthRequired: If there is no session.
            QueryError: If the entries themselves cannot be read.
        """
        if not context.is_authenticated:
            raise AuthRequired("Sign in to read the feed")

        rows = self.backend.query_entries(include_hidden=False, newest_first=True)
        entries = [Entry.from_row(row) for row in rows]
        try:
            users = self._fetch_users(entries)
        except JoinResolutionFailure as e:
            logger.warning(f"{e}; showing fallback nicknames")
            users = None

        feed = aggregate(entries, users, context.viewer_id)
        feed = [
            item.with_target_time(convert_local_time(item.entry.date, item.entry.source_time))
            for item in feed
        ]
        logger.info(f"Loaded {len(feed)} entries")
        return feed

    def request_soft_delete(self, entry_id: Any, requester_id: Optional[str]) -> None:
        """
        Hide an entry on behalf of its author.

        The request carries the requester as an author filter, so the store
        only changes the row if the requester owns it. No changed row means
        "no such entry for this requester", whatever the reason.

        Raises:
            AuthRequired: If there is no requester.
            MutationRejected: If the store rejected or skipped the update.
        """
        if not requester_id:
            raise AuthRequired("Sign in to delete entries")

        try:
            changed = self.backend.soft_delete_entry(entry_id, requester_id)
        except QueryError as e:
            raise MutationRejected(f"Delete of entry {entry_id} was rejected: {e}") from e

        if not changed:
            raise MutationRejected(f"No entry {entry_id} for requester {requester_id}")

        logger.info(f"Entry {entry_id} hidden by its author")
