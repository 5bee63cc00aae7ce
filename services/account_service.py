"""
Account Service Module

Sign-in by username, the viewer's display nickname, and nickname changes.
"""

from typing import Optional

from config import settings
from data.models import Session, ViewerContext
from data.protocols import DiaryBackend
from utils.exceptions import AuthRequired, BackendError
from utils.helpers import email_local_part
from utils.logger import get_logger

logger = get_logger(__name__)


def username_to_email(username: str) -> str:
    """Accounts are e-mail based; the login form only asks for the local part."""
    return f"{username.strip()}@{settings.LOGIN_EMAIL_DOMAIN}"


class AccountService:
    """Session and nickname operations."""

    def __init__(self, backend: DiaryBackend):
        self.backend = backend

    def current_context(self) -> ViewerContext:
        """Wrap the backend's current session (possibly None) as a viewer context."""
        return ViewerContext(session=self.backend.get_session())

    def sign_in(self, username: str, password: str) -> Session:
        """
        Sign in with a username and password.

        If the account has no nickname yet, the username becomes its
        nickname; failing to store it is logged and ignored.

        Raises:
            AuthenticationError: If the credentials are rejected.
        """
        session = self.backend.sign_in(username_to_email(username), password)

        if not session.nickname:
            try:
                self.backend.update_user_metadata({"nickname": username.strip()})
                session.nickname = username.strip()
            except BackendError as e:
                logger.error(f"Error updating user metadata: {e}")

        return session

    def resolve_nickname(self, context: ViewerContext) -> Optional[str]:
        """
        The viewer's display nickname.

        Falls back to the e-mail's local part when the account has none,
        and tries to save that fallback.

        Raises:
            AuthRequired: If there is no session.
        """
        if not context.is_authenticated:
            raise AuthRequired("Sign in to see your nickname")

        session = context.session
        if session.nickname:
            return session.nickname

        nickname = email_local_part(session.email)
        try:
            self.backend.update_user_metadata({"nickname": nickname})
        except BackendError as e:
            logger.error(f"Error updating user metadata: {e}")
        session.nickname = nickname
        return nickname

    def update_nickname(self, context: ViewerContext, new_nickname: str) -> bool:
        """
        Change the viewer's nickname in both the account and the users table.

        Returns:
            bool: False when the new nickname is blank (nothing is sent).

        Raises:
            AuthRequired: If there is no session.
            BackendError: If either update fails.
        """
        nickname = (new_nickname or "").strip()
        if not nickname:
            return False
        if not context.is_authenticated:
            raise AuthRequired("Sign in to change your nickname")

        self.backend.update_user_metadata({"nickname": nickname})
        try:
            self.backend.update_user_nickname(context.viewer_id, nickname)
        except BackendError as e:
            logger.error(f"Nickname {nickname} saved to the account but not to the users table: {e}")
            raise
        context.session.nickname = nickname
        logger.info(f"Nickname changed to {nickname}")
        return True
