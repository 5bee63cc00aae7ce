"""
Tests for the Diary Page and Command Line

Tests cover page loading and login redirects, the single in-flight action
guard, posting, the delete confirmation flow, nickname changes, the image
preview, clock lifecycle, and the command line entry point.
"""

import pytest
from unittest.mock import MagicMock, patch
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from main import DiaryPage, format_clock, load_image_files, parse_arguments, run_command, main
from data.models import ClockReading, Countdown, DisplayEntry, Entry, ImageFile
from utils.exceptions import AuthenticationError, ConfigurationError, QueryError, StorageError


@pytest.fixture
def page(diary_settings, mock_backend):
    return DiaryPage(backend=mock_backend, validate=False)


def display(entry_id, owner=True):
    return DisplayEntry(Entry(id=entry_id, author_id="user-a" if owner else "user-b"), "Ann", owner)


# =============================================================================
# Loading & Session Tests
# =============================================================================

class TestLoad:
    """Tests for opening the page."""

    def test_load_fetches_feed_and_nickname(self, page, mock_backend, entry_row_factory, user_row_factory):
        mock_backend.query_entries.return_value = [entry_row_factory(id=1, user_id="user-a")]
        mock_backend.query_users.return_value = [user_row_factory("user-a", "Ann")]

        assert page.load(start_clock=False) is True

        assert page.nickname == "Ann"
        assert [(e.id, e.is_owner) for e in page.entries] == [(1, True)]
        assert page.needs_login is False

    def test_load_without_session_redirects(self, page, mock_backend):
        mock_backend.get_session.return_value = None

        assert page.load(start_clock=False) is False

        assert page.needs_login is True
        mock_backend.query_entries.assert_not_called()

    def test_failed_refresh_keeps_previous_entries(self, page, mock_backend, capture_logs):
        """
        Test feed failure handling.

        Verifies that a failed reload is logged and the entries already
        on screen are kept.
        """
        previous = [display(1)]
        page.entries = previous
        mock_backend.query_entries.side_effect = QueryError("down")

        assert page.refresh_feed() is False

        assert page.entries is previous
        assert any("Error fetching diaries" in r.getMessage() for r in capture_logs)

    def test_sign_in(self, page, mock_backend, session_factory):
        mock_backend.sign_in.return_value = session_factory(nickname="Ann")
        page.needs_login = True

        assert page.sign_in("ann", "secret") is True
        assert page.needs_login is False
        assert page.nickname == "Ann"

    def test_sign_in_rejected(self, page, mock_backend):
        mock_backend.sign_in.side_effect = AuthenticationError("invalid grant")
        assert page.sign_in("ann", "wrong") is False
        assert page.loading is False

    def test_render_feed(self, page, diary_settings):
        item = DisplayEntry(
            Entry(id=4, content="hello", date="2024/01/15", source_time="15:30",
                  image_urls=["u0", "u1", "u2", "u3"], author_id="user-a"),
            "Ann", True, "07:30"
        )
        page.entries = [item]

        block = page.render_feed()[0]

        assert block.splitlines()[0] == "#4 Ann (you)"
        assert "  [image] u2" in block
        assert "  [image] u3" not in block
        assert "  +1" in block
        assert block.endswith("2024/01/15, 15:30(CN), 07:30(UK)")


# =============================================================================
# In-Flight Guard Tests
# =============================================================================

class TestGuardedActions:
    """Tests for the one-action-at-a-time rule."""

    def test_second_action_refused_while_first_runs(self, page, mock_backend):
        """
        Test re-entrant submission.

        A submit triggered while another submit is still in flight is
        refused and only one insert reaches the backend.
        """
        nested = []

        def insert(payload):
            nested.append(page.submit_entry("again"))
            nested.append(page.confirm_delete())
            return [{"id": 1}]

        mock_backend.insert_entry.side_effect = insert

        assert page.submit_entry("first") is True
        assert nested == [False, False]
        assert mock_backend.insert_entry.call_count == 1

    def test_loading_set_only_while_running(self, page, mock_backend):
        seen = []
        mock_backend.insert_entry.side_effect = lambda payload: seen.append(page.loading) or [{"id": 1}]

        page.submit_entry("hi")

        assert seen == [True]
        assert page.loading is False

    def test_loading_cleared_after_unexpected_error(self, page, mock_backend):
        mock_backend.insert_entry.side_effect = RuntimeError("boom")
        with pytest.raises(RuntimeError):
            page.submit_entry("hi")
        assert page.loading is False


# =============================================================================
# Draft Tests
# =============================================================================

class TestDraft:
    """Tests for attaching images and posting."""

    def test_submit_posts_and_reloads(self, page, mock_backend):
        assert page.submit_entry("hello") is True

        payload = mock_backend.insert_entry.call_args[0][0]
        assert payload["content"] == "hello"
        assert payload["user_id"] == "user-a"
        assert page.composer.content == ""
        mock_backend.query_entries.assert_called_once()

    def test_submit_failure_keeps_draft(self, page, mock_backend):
        mock_backend.insert_entry.side_effect = QueryError("insert failed")
        assert page.submit_entry("hello") is False
        assert page.composer.content == "hello"

    def test_submit_without_session_redirects(self, page, mock_backend):
        mock_backend.get_session.return_value = None
        assert page.submit_entry("hello") is False
        assert page.needs_login is True

    def test_attach_failure_leaves_draft(self, page, mock_backend):
        page.composer.image_urls = ["old"]
        mock_backend.upload_image.side_effect = StorageError("full")

        assert page.attach_images([ImageFile("a.jpg", b"x", "image/jpeg")]) is False
        assert page.composer.image_urls == ["old"]

    def test_attach_and_remove(self, page):
        assert page.attach_images([ImageFile("a.jpg", b"x", "image/jpeg")]) is True
        assert len(page.composer.image_urls) == 1
        assert page.remove_image(0) is True
        assert page.composer.image_urls == []


# =============================================================================
# Delete Flow Tests
# =============================================================================

class TestDeleteFlow:
    """Tests for confirm-then-hide deletion."""

    def test_only_owned_entries_offer_delete(self, page):
        assert page.request_delete(display(1, owner=False)) is False
        assert page.pending_delete is None

    def test_confirm_hides_and_reloads(self, page, mock_backend):
        page.request_delete(display(7))

        assert page.confirm_delete() is True

        mock_backend.soft_delete_entry.assert_called_once_with(7, "user-a")
        assert page.pending_delete is None
        mock_backend.query_entries.assert_called_once()

    def test_cancel(self, page, mock_backend):
        page.request_delete(display(7))
        page.cancel_delete()
        assert page.confirm_delete() is False
        mock_backend.soft_delete_entry.assert_not_called()

    def test_rejected_delete_keeps_confirmation_open(self, page, mock_backend):
        mock_backend.soft_delete_entry.return_value = []
        page.request_delete(display(7))

        assert page.confirm_delete() is False
        assert page.pending_delete is not None


# =============================================================================
# Nickname, Preview & Clock Tests
# =============================================================================

class TestNickname:
    """Tests for renaming the viewer from the page."""

    def test_update_nickname(self, page, mock_backend):
        assert page.update_nickname(" Annie ") is True
        assert page.nickname == "Annie"
        mock_backend.update_user_nickname.assert_called_once_with("user-a", "Annie")
        mock_backend.query_entries.assert_called_once()

    def test_blank_nickname_ignored(self, page, mock_backend):
        assert page.update_nickname("  ") is False
        mock_backend.update_user_metadata.assert_not_called()

    def test_backend_failure(self, page, mock_backend):
        mock_backend.update_user_nickname.side_effect = QueryError("denied")
        assert page.update_nickname("Annie") is False


class TestPreviewAndClock:
    """Tests for the image preview and the live clock lifecycle."""

    def test_open_and_close_preview(self, page):
        carousel = page.open_preview(["a", "b"], 1)
        assert carousel.current_image == "b"
        page.close_preview()
        assert page.carousel is None

    def test_preview_with_no_images(self, page):
        assert page.open_preview([]) is None

    def test_clock_started_and_torn_down(self, page):
        scheduler = MagicMock()
        scheduler.running = False

        page.start_clock(scheduler=scheduler)
        assert isinstance(page.clock_reading, ClockReading)

        page.teardown()

        scheduler.add_job.return_value.remove.assert_called_once()
        assert page.clock is None

    def test_teardown_clears_transient_state(self, page):
        page.open_preview(["a"])
        page.request_delete(display(1))
        page.teardown()
        assert page.carousel is None
        assert page.pending_delete is None


# =============================================================================
# Command Line Tests
# =============================================================================

class TestCommandLine:
    """Tests for argument parsing and command dispatch."""

    def test_parse_post_with_images(self):
        args = parse_arguments(["--username", "ann", "post", "hello", "--image", "a.jpg", "--image", "b.png"])
        assert args.command == "post"
        assert args.content == "hello"
        assert args.image == ["a.jpg", "b.png"]
        assert args.username == "ann"

    def test_command_required(self):
        with pytest.raises(SystemExit):
            parse_arguments([])

    def test_format_clock(self):
        reading = ClockReading(now=None, times={"Asia/Shanghai": "15:30"}, countdown=Countdown(2, 5))
        assert format_clock(reading) == "Asia/Shanghai: 15:30 | countdown: 2d 5h"

    def test_format_clock_after_target(self):
        reading = ClockReading(now=None, times={}, countdown=Countdown(0, -1))
        assert format_clock(reading) == "countdown: passed"

    def test_load_image_files(self, tmp_path):
        path = tmp_path / "cat.JPG"
        path.write_bytes(b"\xff\xd8")
        files = load_image_files([str(path)])
        assert files == [ImageFile(name="cat.JPG", content=b"\xff\xd8", content_type="image/jpeg")]

    def test_run_feed(self, capsys):
        page = MagicMock()
        page.load.return_value = True
        page.render_feed.return_value = ["#1 Ann"]

        assert run_command(page, parse_arguments(["feed"])) is True
        assert "#1 Ann" in capsys.readouterr().out
        page.sign_in.assert_not_called()

    def test_run_signs_in_first(self):
        page = MagicMock()
        page.sign_in.return_value = False

        assert run_command(page, parse_arguments(["--username", "ann", "--password", "x", "feed"])) is False
        page.load.assert_not_called()

    def test_run_not_signed_in(self):
        page = MagicMock()
        page.load.return_value = False
        assert run_command(page, parse_arguments(["feed"])) is False

    def test_run_delete(self):
        page = MagicMock()
        page.load.return_value = True
        page.entries = [display(7)]
        page.request_delete.return_value = True
        page.confirm_delete.return_value = True

        assert run_command(page, parse_arguments(["delete", "7"])) is True
        page.request_delete.assert_called_once_with(page.entries[0])

    def test_run_delete_unknown_entry(self):
        page = MagicMock()
        page.load.return_value = True
        page.entries = [display(7)]
        assert run_command(page, parse_arguments(["delete", "8"])) is False
        page.confirm_delete.assert_not_called()

    def test_run_clock_once(self, diary_settings, capsys):
        assert run_command(MagicMock(), parse_arguments(["clock"])) is True
        out = capsys.readouterr().out
        assert "Asia/Shanghai:" in out
        assert "Europe/London:" in out

    def test_main_exit_codes(self, diary_settings):
        with patch("main.setup_file_logging"), patch("main.DiaryPage") as page_cls:
            page = page_cls.return_value
            page.load.return_value = True
            page.render_feed.return_value = []
            assert main(["feed"]) == 0
            page.teardown.assert_called_once()

            page.load.return_value = False
            assert main(["feed"]) == 1

            page_cls.side_effect = ConfigurationError("BACKEND_URL missing")
            assert main(["feed"]) == 2
