"""
Post Service Module

This module holds the draft of a new entry: its text and the images
already uploaded for it. It uploads attachments, builds the entry payload
stamped with the source-zone date and time, and submits it.
"""

from datetime import datetime, timezone
from typing import Optional, List, Dict, Any, Iterable
from zoneinfo import ZoneInfo

from config import settings
from data.models import ImageFile, ViewerContext
from data.protocols import DiaryBackend
from utils.exceptions import AuthRequired, BackendError, UploadFailure
from utils.helpers import format_calendar_date, random_file_name
from utils.logger import get_logger

logger = get_logger(__name__)


class PostComposer:
    """Draft state and submission for a new entry."""

    def __init__(self, backend: DiaryBackend):
        self.backend = backend
        self.content = ""
        self.image_urls: List[str] = []

    def clear(self) -> None:
        """Reset the draft."""
        self.content = ""
        self.image_urls = []

    def attach_images(self, files: Iterable[ImageFile]) -> List[str]:
        """
        Upload images and attach them to the draft.

        Files are uploaded one after another. The batch is attached only if
        every upload succeeds; on failure the draft keeps exactly the images
        it had before.

        Args:
            files: Images to upload.

        Returns:
            List[str]: Public URLs of the newly attached images.

        Raises:
            UploadFailure: If any upload in the batch fails.
        """
        files = list(files)
        if not files:
            return []

        new_urls = []
        for image in files:
            file_name = random_file_name(image.name)
            try:
                url = self.backend.upload_image(file_name, image.content, image.content_type)
            except BackendError as e:
                raise UploadFailure(f"Uploading {image.name} failed: {e}") from e
            new_urls.append(url)

        self.image_urls.extend(new_urls)
        logger.info(f"Attached {len(new_urls)} image(s) to the draft")
        return new_urls

    def remove_image(self, index: int) -> bool:
        """
        Detach one image from the draft.

        Returns:
            bool: False if ``index`` is out of range.
        """
        if not 0 <= index < len(self.image_urls):
            return False
        del self.image_urls[index]
        return True

    def build_payload(self, context: ViewerContext, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Build the row for a new entry.

        The date and time are taken once, in the source zone, and stored
        as-is; they are never recomputed.

        Raises:
            AuthRequired: If there is no session.
        """
        if not context.is_authenticated:
            raise AuthRequired("Sign in to post")

        current = (now or datetime.now(timezone.utc)).astimezone(ZoneInfo(settings.SOURCE_TIMEZONE))
        return {
            "content": self.content,
            "date": format_calendar_date(current.date()),
            "beijing_time": current.strftime("%H:%M"),
            "image_urls": list(self.image_urls) if self.image_urls else None,
            "user_id": context.viewer_id,
        }

    def submit(self, context: ViewerContext, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """
        Insert the draft as a new entry and clear it.

        Returns:
            List[Dict]: Rows returned by the backend.

        Raises:
            AuthRequired: If there is no session.
            QueryError: If the insert fails; the draft is left untouched.
        """
        payload = self.build_payload(context, now)
        rows = self.backend.insert_entry(payload)
        self.clear()
        return rows
