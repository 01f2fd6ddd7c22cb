"""Unit tests for the auth session service."""

from datetime import UTC, datetime, timedelta

import pytest

from habitmate.core.errors import InputValidationError, NotAuthenticatedError
from habitmate.services.session_service import AuthEvent, SessionService


class FakeClock:
    """A clock tests can move forward."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> None:
        self.now += timedelta(**delta)


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 1, 12, 12, 0, tzinfo=UTC))


@pytest.fixture
def sessions(clock):
    return SessionService(clock=clock, ttl_minutes=30)


@pytest.fixture
def events(sessions):
    received = []

    async def listener(event, session):
        received.append((event, session.user.id if session else None))

    sessions.on_auth_state_change(listener)
    return received


@pytest.mark.unit
class TestSignInOut:
    """Tests for sign_in and sign_out."""

    async def test_sign_in(self, sessions, events, clock):
        session = await sessions.sign_in(user_id="alice", email=" alice@example.com ")

        assert sessions.current_user.id == "alice"
        assert sessions.current_user.email == "alice@example.com"
        assert session.expires_at == clock.now + timedelta(minutes=30)
        assert session.access_token != session.refresh_token
        assert events == [(AuthEvent.SIGNED_IN, "alice")]

    @pytest.mark.parametrize(("user_id", "email"), [("", "a@x.com"), ("alice", ""), ("  ", "  ")])
    async def test_sign_in_requires_id_and_email(self, sessions, events, user_id, email):
        with pytest.raises(InputValidationError, match="User ID and email are required"):
            await sessions.sign_in(user_id=user_id, email=email)

        assert sessions.current_user is None
        assert events == []

    async def test_sign_out(self, sessions, events):
        await sessions.sign_in(user_id="alice", email="alice@example.com")

        await sessions.sign_out()

        assert sessions.current_session is None
        assert events[-1] == (AuthEvent.SIGNED_OUT, None)

    async def test_sign_out_when_signed_out_is_a_no_op(self, sessions, events):
        await sessions.sign_out()
        assert events == []

    async def test_unsubscribe(self, sessions):
        received = []

        async def listener(event, session):
            received.append(event)

        unsubscribe = sessions.on_auth_state_change(listener)
        unsubscribe()
        unsubscribe()
        await sessions.sign_in(user_id="alice", email="alice@example.com")

        assert received == []


@pytest.mark.unit
class TestRefreshAndExpiry:
    """Tests for refresh and get_session."""

    async def test_refresh_rotates_tokens(self, sessions, events, clock):
        first = await sessions.sign_in(user_id="alice", email="alice@example.com")
        clock.advance(minutes=20)

        second = await sessions.refresh(first.refresh_token)

        assert second.access_token != first.access_token
        assert second.expires_at == clock.now + timedelta(minutes=30)
        assert events[-1] == (AuthEvent.TOKEN_REFRESHED, "alice")

    async def test_refresh_with_wrong_token(self, sessions):
        await sessions.sign_in(user_id="alice", email="alice@example.com")

        with pytest.raises(NotAuthenticatedError, match="Invalid token"):
            await sessions.refresh("not-the-token")

    async def test_refresh_when_signed_out(self, sessions):
        with pytest.raises(NotAuthenticatedError):
            await sessions.refresh()

    async def test_get_session_checks_token_and_expiry(self, sessions, clock):
        session = await sessions.sign_in(user_id="alice", email="alice@example.com")

        assert sessions.get_session(session.access_token) is session
        assert sessions.get_session() is session
        assert sessions.get_session("other") is None

        clock.advance(minutes=30)
        assert sessions.get_session(session.access_token) is None

    async def test_old_access_token_stops_working_after_refresh(self, sessions):
        first = await sessions.sign_in(user_id="alice", email="alice@example.com")
        second = await sessions.refresh()

        assert sessions.get_session(first.access_token) is None
        assert sessions.get_session(second.access_token) is second
