"""
Diary Application

This is the main entry point for the diary application.
DiaryPage composes the feed, the draft, the live clock and the image
carousel around the hosted backend; the command line drives it.
"""

import sys
import time
import argparse
import logging
from functools import wraps
from pathlib import Path
from typing import Optional, List, Iterable

from config import settings
from data.database import BackendConnection
from data.models import DisplayEntry, ClockReading, ImageFile
from data.protocols import DiaryBackend
from services.account_service import AccountService
from services.carousel import GestureCarousel
from services.feed_service import FeedService, format_timestamp_line, preview_thumbnails
from services.post_service import PostComposer
from services.timezone_service import ClockTicker, read_clock
from utils.exceptions import (
    DiaryError, AuthRequired, AuthenticationError, BackendError,
    MutationRejected, UploadFailure
)
from utils.logger import get_logger, setup_file_logging

# Set up logging
logger = get_logger(__name__)


def guarded_action(func):
    """
    Run a user-initiated network action only if no other one is in flight.

    While it runs ``loading`` is True (the UI disables its controls); it is
    always cleared afterwards. A refused call returns False.
    """
    @wraps(func)
    def wrapper(self, *args, **kwargs):
        if self.loading:
            logger.warning(f"Ignoring {func.__name__}: another action is still running")
            return False
        self.loading = True
        try:
            return func(self, *args, **kwargs)
        finally:
            self.loading = False
    return wrapper


class DiaryPage:
    """
    Page controller for the shared diary.

    Every failure is logged and swallowed here; the page keeps its previous
    state and nothing is retried automatically.
    """

    def __init__(self, backend: Optional[DiaryBackend] = None,
                 feed_service: Optional[FeedService] = None,
                 account_service: Optional[AccountService] = None,
                 composer: Optional[PostComposer] = None,
                 validate: bool = True):
        """Initialize the page, creating any collaborator that was not injected."""
        if validate:
            settings.validate_settings()

        self.backend = backend or BackendConnection()
        self.feed_service = feed_service or FeedService(self.backend)
        self.account_service = account_service or AccountService(self.backend)
        self.composer = composer or PostComposer(self.backend)

        self.entries: List[DisplayEntry] = []
        self.nickname: Optional[str] = None
        self.loading = False
        self.needs_login = False
        self.pending_delete: Optional[DisplayEntry] = None
        self.carousel: Optional[GestureCarousel] = None
        self.clock: Optional[ClockTicker] = None
        self.clock_reading: Optional[ClockReading] = None

    # -------------------------------------------------------------------------
    # Session
    # -------------------------------------------------------------------------

    def _context(self):
        return self.account_service.current_context()

    def _require_login(self, error: AuthRequired) -> bool:
        logger.info(f"Redirecting to login: {error}")
        self.needs_login = True
        return False

    @guarded_action
    def sign_in(self, username: str, password: str) -> bool:
        """Sign in with the username/password pair from the login form."""
        try:
            session = self.account_service.sign_in(username, password)
        except AuthenticationError as e:
            logger.error(f"Login failed: {e}")
            return False
        self.needs_login = False
        self.nickname = session.nickname
        return True

    def load(self, start_clock: bool = True) -> bool:
        """
        Open the page: check the session, resolve the nickname, load the feed.

        Returns:
            bool: False if the viewer has to sign in first.
        """
        context = self._context()
        try:
            self.nickname = self.account_service.resolve_nickname(context)
        except AuthRequired as e:
            return self._require_login(e)

        self.needs_login = False
        if start_clock:
            self.start_clock()
        return self.refresh_feed()

    # -------------------------------------------------------------------------
    # Feed
    # -------------------------------------------------------------------------

    def refresh_feed(self) -> bool:
        """Reload the feed; on failure the previous entries stay on screen."""
        try:
            self.entries = self.feed_service.fetch_feed(self._context())
            return True
        except AuthRequired as e:
            return self._require_login(e)
        except DiaryError as e:
            logger.error(f"Error fetching diaries: {e}", exc_info=True)
            return False

    def render_feed(self) -> List[str]:
        """Plain-text rendering of the feed, one block per entry."""
        blocks = []
        for item in self.entries:
            lines = [f"#{item.id} {item.author_nickname}" + (" (you)" if item.is_owner else "")]
            if item.entry.content:
                lines.append(item.entry.content)
            previews = preview_thumbnails(item.image_urls)
            for url in previews["thumbnails"]:
                lines.append(f"  [image] {url}")
            if previews["overflow"]:
                lines.append(f"  +{previews['overflow']}")
            lines.append(format_timestamp_line(item))
            blocks.append("\n".join(lines))
        return blocks

    # -------------------------------------------------------------------------
    # Draft
    # -------------------------------------------------------------------------

    @guarded_action
    def attach_images(self, files: Iterable[ImageFile]) -> bool:
        """Upload images into the draft; a failed batch leaves the draft as it was."""
        try:
            self.composer.attach_images(files)
            return True
        except UploadFailure as e:
            logger.error(f"Error uploading images: {e}")
            return False

    def remove_image(self, index: int) -> bool:
        return self.composer.remove_image(index)

    @guarded_action
    def submit_entry(self, content: Optional[str] = None) -> bool:
        """Publish the draft (optionally replacing its text first)."""
        if content is not None:
            self.composer.content = content
        try:
            self.composer.submit(self._context())
        except AuthRequired as e:
            return self._require_login(e)
        except BackendError as e:
            logger.error(f"Error creating diary: {e}")
            return False

        self.refresh_feed()
        return True

    # -------------------------------------------------------------------------
    # Delete
    # -------------------------------------------------------------------------

    def request_delete(self, entry: DisplayEntry) -> bool:
        """Ask for confirmation before hiding one of the viewer's own entries."""
        if not entry.is_owner:
            logger.warning(f"Entry {entry.id} is not owned by the viewer; delete not offered")
            return False
        self.pending_delete = entry
        return True

    def cancel_delete(self) -> None:
        self.pending_delete = None

    @guarded_action
    def confirm_delete(self) -> bool:
        """Hide the entry awaiting confirmation."""
        if self.pending_delete is None:
            return False

        entry = self.pending_delete
        try:
            self.feed_service.request_soft_delete(entry.id, self._context().viewer_id)
        except AuthRequired as e:
            return self._require_login(e)
        except MutationRejected as e:
            logger.error(f"Error hiding diary: {e}")
            return False

        self.pending_delete = None
        self.refresh_feed()
        return True

    # -------------------------------------------------------------------------
    # Nickname
    # -------------------------------------------------------------------------

    @guarded_action
    def update_nickname(self, new_nickname: str) -> bool:
        """Rename the viewer and reload the feed so attributions follow."""
        try:
            if not self.account_service.update_nickname(self._context(), new_nickname):
                return False
        except AuthRequired as e:
            return self._require_login(e)
        except BackendError as e:
            logger.error(f"Error updating nickname: {e}")
            return False

        self.nickname = new_nickname.strip()
        self.refresh_feed()
        return True

    # -------------------------------------------------------------------------
    # Image preview
    # -------------------------------------------------------------------------

    def open_preview(self, images: List[str], start_index: int = 0) -> Optional[GestureCarousel]:
        """Open the carousel on ``images`` at ``start_index``."""
        try:
            self.carousel = GestureCarousel(images, start_index)
        except ValueError as e:
            logger.warning(f"Cannot open preview: {e}")
            self.carousel = None
        return self.carousel

    def close_preview(self) -> None:
        self.carousel = None

    # -------------------------------------------------------------------------
    # Clock
    # -------------------------------------------------------------------------

    def _on_clock(self, reading: ClockReading) -> None:
        self.clock_reading = reading

    def start_clock(self, scheduler=None) -> ClockTicker:
        """Start the live clock if it is not running yet."""
        if self.clock is None:
            self.clock = ClockTicker(self._on_clock, scheduler=scheduler)
        self.clock.start()
        return self.clock

    def teardown(self) -> None:
        """Stop timers and drop transient state when the page goes away."""
        if self.clock is not None:
            self.clock.stop()
            self.clock = None
        self.close_preview()
        self.cancel_delete()


def format_clock(reading: ClockReading) -> str:
    """One line: each zone's time, then the countdown."""
    parts = [f"{zone}: {value}" for zone, value in reading.times.items()]
    if reading.countdown is not None:
        countdown = reading.countdown
        if countdown.has_passed:
            parts.append("countdown: passed")
        else:
            parts.append(f"countdown: {countdown.days}d {countdown.hours}h")
    return " | ".join(parts)


def load_image_files(paths: Iterable[str]) -> List[ImageFile]:
    """Read local image files for upload."""
    files = []
    for path in paths:
        p = Path(path)
        suffix = p.suffix.lower().lstrip(".")
        content_type = f"image/{'jpeg' if suffix == 'jpg' else suffix}" if suffix else "application/octet-stream"
        files.append(ImageFile(name=p.name, content=p.read_bytes(), content_type=content_type))
    return files


def parse_arguments(argv: Optional[List[str]] = None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description='Shared Diary')
    parser.add_argument('--log-file', type=str, default='diary.log', help='Log file path')
    parser.add_argument('--log-level', type=str, choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        default='INFO', help='Logging level')
    parser.add_argument('--username', type=str, default=None, help='Username to sign in with')
    parser.add_argument('--password', type=str, default=None, help='Password to sign in with')

    commands = parser.add_subparsers(dest='command', required=True)

    commands.add_parser('feed', help='Show the feed')

    post = commands.add_parser('post', help='Publish a new entry')
    post.add_argument('content', type=str, help='Entry text')
    post.add_argument('--image', action='append', default=[], help='Image file to attach (repeatable)')

    delete = commands.add_parser('delete', help='Hide one of your entries')
    delete.add_argument('entry_id', type=str, help='Id of the entry to hide')

    nickname = commands.add_parser('nickname', help='Change your nickname')
    nickname.add_argument('nickname', type=str, help='New nickname')

    clock = commands.add_parser('clock', help='Show the dual-zone clock and countdown')
    clock.add_argument('--watch', action='store_true', help='Keep updating until interrupted')

    return parser.parse_args(argv)


def run_command(page: DiaryPage, args) -> bool:
    """Execute one sub-command against a page."""
    if args.command == 'clock':
        if not args.watch:
            print(format_clock(read_clock()))
            return True
        ticker = ClockTicker(lambda reading: print(format_clock(reading), flush=True))
        with ticker:
            try:
                while True:
                    time.sleep(1)
            except KeyboardInterrupt:
                pass
        return True

    if args.username and args.password:
        if not page.sign_in(args.username, args.password):
            return False

    if not page.load(start_clock=False):
        logger.warning("Not signed in; pass --username and --password")
        return False

    if args.command == 'feed':
        for block in page.render_feed():
            print(block)
            print()
        return True

    if args.command == 'post':
        if args.image and not page.attach_images(load_image_files(args.image)):
            return False
        return page.submit_entry(args.content)

    if args.command == 'delete':
        entry = next((e for e in page.entries if str(e.id) == args.entry_id), None)
        if entry is None or not page.request_delete(entry):
            logger.warning(f"No entry {args.entry_id} of yours in the feed")
            return False
        return page.confirm_delete()

    if args.command == 'nickname':
        return page.update_nickname(args.nickname)

    return False


def main(argv: Optional[List[str]] = None):
    """Main entry point for the application."""
    # Parse command line arguments
    args = parse_arguments(argv)

    # Set up logging
    log_level = getattr(logging, args.log_level)
    setup_file_logging(args.log_file, log_level)

    logger.info(f"Starting diary command: {args.command}")

    page = None
    try:
        page = DiaryPage(validate=args.command != 'clock')
        logger.debug(f"Configuration: {settings.get_config_summary()}")
        success = run_command(page, args)
        exit_code = 0 if success else 1
    except DiaryError as e:
        logger.error(f"Diary error: {e}", exc_info=True)
        exit_code = 2
    except Exception as e:
        logger.error(f"Unhandled exception: {e}", exc_info=True)
        exit_code = 2
    finally:
        if page is not None:
            page.teardown()

    logger.info(f"Diary command finished with exit code {exit_code}")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
