"""Unit tests for friendship_service module."""

from datetime import date

import pytest

from habitmate.core import db_client
from habitmate.core.errors import InputValidationError
from habitmate.domain.friendship import FriendshipRelation, FriendshipStatus
from habitmate.services import friendship_service
from tests.unit.conftest import make_friends, make_profile


TODAY = date(2024, 1, 12)


@pytest.fixture
async def people(patched_db):
    for user_id in ("alice", "bob", "carol", "dave"):
        await make_profile(patched_db, user_id, first_name=user_id.title(), last_name="Smith")
    return patched_db


@pytest.mark.unit
class TestFriendRequests:
    """Tests for sending, accepting and removing friend requests."""

    async def test_send_request(self, people):
        friendship = await friendship_service.send_request(requester_id="alice", addressee_id="bob")

        assert friendship.status == FriendshipStatus.REQUESTED
        assert await friendship_service.get_relation(user_id="alice", other_id="bob") == FriendshipRelation.OUTGOING
        assert await friendship_service.get_relation(user_id="bob", other_id="alice") == FriendshipRelation.INCOMING

    async def test_cannot_befriend_yourself(self, people):
        with pytest.raises(InputValidationError, match="yourself"):
            await friendship_service.send_request(requester_id="alice", addressee_id="alice")

    async def test_duplicate_request_in_either_direction(self, people):
        await friendship_service.send_request(requester_id="alice", addressee_id="bob")

        with pytest.raises(InputValidationError, match="Friendship already exists"):
            await friendship_service.send_request(requester_id="alice", addressee_id="bob")
        with pytest.raises(InputValidationError, match="Friendship already exists"):
            await friendship_service.send_request(requester_id="bob", addressee_id="alice")

    async def test_accept_request(self, people):
        await friendship_service.send_request(requester_id="alice", addressee_id="bob")

        friendship = await friendship_service.accept_request(user_id="bob", requester_id="alice")

        assert friendship.status == FriendshipStatus.CONFIRMED
        assert await friendship_service.are_friends(user_id="alice", other_id="bob")
        assert await friendship_service.get_relation(user_id="alice", other_id="bob") == FriendshipRelation.FRIENDS

    async def test_requester_cannot_accept_own_request(self, people):
        await friendship_service.send_request(requester_id="alice", addressee_id="bob")

        with pytest.raises(db_client.RecordNotFoundError, match="Friend request not found"):
            await friendship_service.accept_request(user_id="alice", requester_id="bob")

    async def test_accept_missing_request(self, people):
        with pytest.raises(db_client.RecordNotFoundError):
            await friendship_service.accept_request(user_id="bob", requester_id="carol")

    @pytest.mark.parametrize("remover", ["alice", "bob"])
    async def test_unfriend_from_either_side(self, people, remover):
        await make_friends(people, "alice", "bob")
        other = "bob" if remover == "alice" else "alice"

        removed = await friendship_service.unfriend_or_cancel(user_id=remover, other_id=other)

        assert removed == 1
        assert await friendship_service.get_relation(user_id="alice", other_id="bob") == FriendshipRelation.NONE

    async def test_unfriend_leaves_other_friendships(self, people):
        await make_friends(people, "alice", "bob")
        await make_friends(people, "alice", "carol")

        await friendship_service.unfriend_or_cancel(user_id="alice", other_id="bob")

        assert await friendship_service.get_friend_ids(user_id="alice") == ["carol"]

    async def test_unfriend_without_friendship(self, people):
        assert await friendship_service.unfriend_or_cancel(user_id="alice", other_id="dave") == 0


@pytest.mark.unit
class TestGetFriendships:
    """Tests for get_friendships."""

    async def test_buckets(self, people):
        await make_friends(people, "alice", "bob")
        await make_friends(people, "carol", "alice", status="requested")
        await make_friends(people, "alice", "dave", status="requested")

        buckets = await friendship_service.get_friendships(user_id="alice", today=TODAY)

        assert [f.profile.id for f in buckets.friends] == ["bob"]
        assert [f.profile.id for f in buckets.incoming_requests] == ["carol"]
        assert [f.profile.id for f in buckets.outgoing_requests] == ["dave"]
        assert buckets.incoming_requests[0].streak is None

    async def test_friend_streak_uses_all_their_tasks(self, people):
        await make_friends(people, "alice", "bob")
        for task_id, day in [("t1", "2024-01-12"), ("t2", "2024-01-11"), ("t1", "2024-01-10")]:
            await people.create_record(
                collection="task_completions", data={"task_id": task_id, "user_id": "bob", "completed_on": day}
            )

        buckets = await friendship_service.get_friendships(user_id="alice", today=TODAY)

        assert buckets.friends[0].streak == 3

    async def test_friend_without_completions_has_zero_streak(self, people):
        await make_friends(people, "bob", "alice")

        buckets = await friendship_service.get_friendships(user_id="alice", today=TODAY)

        assert buckets.friends[0].streak == 0
        assert buckets.friends[0].profile.display_name == "Bob Smith"

    async def test_rows_without_profile_are_dropped(self, people):
        await make_friends(people, "alice", "ghost")

        buckets = await friendship_service.get_friendships(user_id="alice", today=TODAY)

        assert buckets.friends == ()

    async def test_no_friendships(self, people):
        buckets = await friendship_service.get_friendships(user_id="alice", today=TODAY)

        assert buckets.friends == ()
        assert buckets.incoming_requests == ()
        assert buckets.outgoing_requests == ()
