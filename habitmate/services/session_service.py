"""Auth session service.

Holds the signed-in user's session on the client side and tells listeners
about sign-in, sign-out and token refresh. Verifying the user's identity is
the auth provider's job; this service starts from an already verified user.
"""

import logging
import secrets
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from enum import StrEnum

from pydantic import BaseModel, Field

from habitmate.core.config import settings
from habitmate.core.errors import InputValidationError, NotAuthenticatedError
from habitmate.core.logging import span


logger = logging.getLogger(__name__)


class AuthEvent(StrEnum):
    """Auth state changes listeners are told about."""

    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"


class AuthUser(BaseModel):
    """The verified identity behind a session."""

    id: str = Field(..., description="Auth user ID, also used as the profile ID")
    email: str = Field(..., description="Email address of the auth user")


class Session(BaseModel):
    """An access token pair for one signed-in user."""

    access_token: str
    refresh_token: str
    user: AuthUser
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


AuthListener = Callable[[AuthEvent, Session | None], Awaitable[None]]


def _utc_now() -> datetime:
    return datetime.now(UTC)


class SessionService:
    """Client-side session holder for one signed-in user at a time."""

    def __init__(
        self,
        *,
        clock: Callable[[], datetime] = _utc_now,
        ttl_minutes: int | None = None,
    ) -> None:
        self._clock = clock
        self._ttl = timedelta(minutes=ttl_minutes or settings.session_ttl_minutes)
        self._session: Session | None = None
        self._listeners: list[AuthListener] = []

    @property
    def current_session(self) -> Session | None:
        return self._session

    @property
    def current_user(self) -> AuthUser | None:
        """The signed-in user, or None when signed out."""
        return self._session.user if self._session else None

    def on_auth_state_change(self, listener: AuthListener) -> Callable[[], None]:
        """Register ``listener`` and return a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def _emit(self, event: AuthEvent, session: Session | None) -> None:
        for listener in list(self._listeners):
            await listener(event, session)

    def _new_session(self, user: AuthUser) -> Session:
        return Session(
            access_token=secrets.token_urlsafe(32),
            refresh_token=secrets.token_urlsafe(32),
            user=user,
            expires_at=self._clock() + self._ttl,
        )

    async def sign_in(self, *, user_id: str, email: str) -> Session:
        """Start a session for a user the auth provider has already verified.

        Raises:
            InputValidationError: If the user ID or email is missing
        """
        with span("session_service.sign_in"):
            if not user_id.strip() or not email.strip():
                raise InputValidationError("User ID and email are required")

            self._session = self._new_session(AuthUser(id=user_id, email=email.strip()))
            logger.info("Signed in", extra={"user_id": user_id})
            await self._emit(AuthEvent.SIGNED_IN, self._session)
            return self._session

    async def sign_out(self) -> None:
        """End the current session. Signing out while signed out is a no-op."""
        with span("session_service.sign_out"):
            if self._session is None:
                return
            user_id = self._session.user.id
            self._session = None
            logger.info("Signed out", extra={"user_id": user_id})
            await self._emit(AuthEvent.SIGNED_OUT, None)

    async def refresh(self, refresh_token: str | None = None) -> Session:
        """Swap the current token pair for a fresh one.

        Raises:
            NotAuthenticatedError: If signed out or the refresh token does not match
        """
        with span("session_service.refresh"):
            if self._session is None:
                raise NotAuthenticatedError()
            if refresh_token is not None and not secrets.compare_digest(refresh_token, self._session.refresh_token):
                raise NotAuthenticatedError("Invalid token")

            self._session = self._new_session(self._session.user)
            logger.info("Refreshed session", extra={"user_id": self._session.user.id})
            await self._emit(AuthEvent.TOKEN_REFRESHED, self._session)
            return self._session

    def get_session(self, access_token: str | None = None) -> Session | None:
        """Return the current session if it is live (and matches ``access_token`` when given)."""
        session = self._session
        if session is None or session.is_expired(self._clock()):
            return None
        if access_token is not None and not secrets.compare_digest(access_token, session.access_token):
            return None
        return session
