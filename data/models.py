"""
Data Models for the Diary Application

This module contains data classes used throughout the application:
the signed-in session, raw entry and author rows, and the derived
display entries built by the feed aggregator.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional, List, Dict, Any, Mapping


@dataclass
class Session:
    """An authenticated backend session."""
    access_token: str
    user_id: str
    email: Optional[str] = None
    nickname: Optional[str] = None     # From the account's metadata, may be unset


@dataclass
class ViewerContext:
    """Who is looking at the page.

    Passed explicitly to aggregation and mutation calls instead of reading
    a process-wide session.
    """
    session: Optional[Session] = None

    @property
    def viewer_id(self) -> Optional[str]:
        return self.session.user_id if self.session else None

    @property
    def is_authenticated(self) -> bool:
        return self.session is not None


@dataclass
class Entry:
    """A diary entry row as stored by the backend."""
    id: Any                            # Assigned by storage
    content: str = ""
    date: str = ""                     # Source-zone calendar date, "YYYY/MM/DD"
    source_time: str = ""              # Source-zone wall time, "HH:MM"
    image_urls: Optional[List[str]] = None
    author_id: Optional[str] = None
    is_hidden: bool = False
    created_at: Optional[str] = None   # Server timestamp, only used for ordering

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Entry":
        """Build an Entry from a backend row (column names as stored)."""
        image_urls = row.get("image_urls")
        return cls(
            id=row.get("id"),
            content=row.get("content") or "",
            date=row.get("date") or "",
            source_time=row.get("beijing_time") or "",
            image_urls=list(image_urls) if image_urls else None,
            author_id=row.get("user_id"),
            is_hidden=bool(row.get("is_hidden", False)),
            created_at=row.get("created_at"),
        )


@dataclass
class User:
    """An author row."""
    id: str
    nickname: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "User":
        return cls(id=row.get("id"), nickname=row.get("nickname"))


@dataclass
class DisplayEntry:
    """An entry enriched for display. Never persisted."""
    entry: Entry
    author_nickname: str
    is_owner: bool
    target_time: Optional[str] = None  # Source time rendered in the target zone

    @property
    def id(self) -> Any:
        return self.entry.id

    @property
    def image_urls(self) -> List[str]:
        return list(self.entry.image_urls or [])

    def with_target_time(self, target_time: Optional[str]) -> "DisplayEntry":
        return replace(self, target_time=target_time)


@dataclass(frozen=True)
class Countdown:
    """Whole days and hours left until a fixed instant (negative once passed)."""
    days: int
    hours: int

    @property
    def has_passed(self) -> bool:
        return self.days < 0 or self.hours < 0


@dataclass
class ClockReading:
    """One tick of the live clock."""
    now: datetime
    times: Dict[str, str] = field(default_factory=dict)   # zone name -> "HH:MM"
    countdown: Optional[Countdown] = None


@dataclass
class ImageFile:
    """A local image waiting to be uploaded."""
    name: str
    content: bytes
    content_type: str = "application/octet-stream"
