"""
Session Manager - single owner of the signed-in user

The backend authenticates with an opaque session cookie. This object hydrates
the user on startup, re-checks liveness before sensitive actions and drops the
user whenever the backend stops recognising the cookie. Views receive it
explicitly instead of looking the user up globally.
"""

from typing import Callable, List, Optional

from streetwise.api_client import StreetwiseAPIClient
from streetwise.exceptions import SessionExpiredError
from streetwise.logging_config import logger
from streetwise.models import CurrentUser


# Roles allowed to file security reports
REPORTER_ROLES = {"student"}


class SessionManager:
    """Tracks the current user for one client session"""

    def __init__(self, api: StreetwiseAPIClient):
        self.api = api
        self._user: Optional[CurrentUser] = None
        self._listeners: List[Callable[[Optional[CurrentUser]], None]] = []
        self.loading = True

    @property
    def user(self) -> Optional[CurrentUser]:
        return self._user

    @property
    def is_authenticated(self) -> bool:
        return self._user is not None

    @property
    def role(self) -> Optional[str]:
        return self._user.role if self._user else None

    @property
    def can_report(self) -> bool:
        """Best-effort local hint; the backend has the final say (403)"""
        return self.role is None or self.role in REPORTER_ROLES

    def on_change(self, callback: Callable[[Optional[CurrentUser]], None]) -> None:
        """Register a callback fired whenever the user changes"""
        self._listeners.append(callback)

    def _set_user(self, user: Optional[CurrentUser]) -> None:
        changed = (user is None) != (self._user is None) or user != self._user
        self._user = user
        if not changed:
            return
        for callback in self._listeners:
            try:
                callback(user)
            except Exception as e:
                logger.error(f"Session listener error: {e}")

    async def hydrate(self) -> Optional[CurrentUser]:
        """Load the current user from the backend; failures leave us signed out"""
        self.loading = True
        try:
            user = await self.api.get_current_user()
        except Exception as e:
            logger.log_auth_event("hydrate", False, reason=str(e))
            user = None
        finally:
            self.loading = False

        self._set_user(user)
        if user:
            logger.log_auth_event("hydrate", True, user_email=user.email)
        return user

    async def verify(self) -> CurrentUser:
        """
        Re-check the session right before a sensitive action.

        Raises:
            SessionExpiredError: the backend no longer accepts the cookie.
                The local user is cleared before raising.
        """
        user = await self.api.get_current_user()
        if user is None:
            logger.log_auth_event("verify", False, reason="current_user rejected")
            self.invalidate()
            raise SessionExpiredError("Please login again")

        self._set_user(user)
        return user

    def invalidate(self) -> None:
        """Forget the current user (called on any 401)"""
        if self._user is not None:
            logger.log_auth_event("invalidate", True, user_email=self._user.email)
        self._set_user(None)
