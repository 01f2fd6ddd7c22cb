"""Unit tests for the data orchestrator."""

import pytest

from habitmate.core.errors import DatabaseError
from habitmate.domain.friendship import FriendshipRelation
from habitmate.services import feed_service, profile_service, task_service
from habitmate.services.orchestrator import DataOrchestrator
from habitmate.services.session_service import SessionService
from tests.unit.conftest import make_friends, make_profile


@pytest.fixture
def world(patched_db, photo_dir, utc_timezone, fixed_now):
    """Shared store plus a clock fixed at 2024-01-12 12:00 UTC."""
    return patched_db


def _client(fixed_now) -> tuple[SessionService, DataOrchestrator]:
    sessions = SessionService(clock=lambda: fixed_now)
    return sessions, DataOrchestrator(sessions, clock=lambda: fixed_now)


@pytest.fixture
async def alice(world, fixed_now):
    await make_profile(world, "alice", first_name="Alice", last_name="W")
    sessions, orchestrator = _client(fixed_now)
    await sessions.sign_in(user_id="alice", email="alice@example.com")
    yield sessions, orchestrator
    orchestrator.close()


@pytest.mark.unit
class TestLoading:
    """Tests for load, reset and auth event handling."""

    async def test_load_without_user_is_empty(self, world, fixed_now):
        _, orchestrator = _client(fixed_now)

        state = await orchestrator.load()

        assert state.user_id is None
        assert state.tasks == ()

    async def test_sign_in_loads_state(self, alice):
        _, orchestrator = alice

        state = orchestrator.state
        assert state.user_id == "alice"
        assert state.profile.display_name == "Alice W"
        assert state.loading is False
        assert state.error is None

    async def test_second_load_is_a_no_op_unless_forced(self, alice, monkeypatch):
        _, orchestrator = alice
        calls = []
        original = profile_service.get_profile

        async def counting_get_profile(**kwargs):
            calls.append(kwargs)
            return await original(**kwargs)

        monkeypatch.setattr(profile_service, "get_profile", counting_get_profile)

        await orchestrator.load()
        assert calls == []

        await orchestrator.load(force=True)
        assert len(calls) == 1

    async def test_sign_out_resets_state(self, alice):
        sessions, orchestrator = alice

        await sessions.sign_out()

        assert orchestrator.state.user_id is None
        assert orchestrator.state.profile is None

    async def test_failed_load_publishes_error_and_allows_retry(self, world, fixed_now, monkeypatch):
        await make_profile(world, "alice")
        original = profile_service.get_profile

        async def failing_get_profile(**kwargs):
            raise DatabaseError("database is locked")

        monkeypatch.setattr(profile_service, "get_profile", failing_get_profile)
        sessions, orchestrator = _client(fixed_now)
        await sessions.sign_in(user_id="alice", email="alice@example.com")

        assert orchestrator.state.error == "Network error occurred."
        assert orchestrator.state.loading is False

        monkeypatch.setattr(profile_service, "get_profile", original)
        state = await orchestrator.load()

        assert state.error is None
        assert state.profile is not None

    async def test_load_for_a_user_who_signed_out_is_discarded(self, world, fixed_now, monkeypatch):
        await make_profile(world, "alice")
        sessions, orchestrator = _client(fixed_now)

        async def sign_out_midway(**kwargs):
            await sessions.sign_out()
            return []

        monkeypatch.setattr(feed_service, "get_friend_posts", sign_out_midway)
        await sessions.sign_in(user_id="alice", email="alice@example.com")

        assert orchestrator.state.user_id is None
        assert orchestrator.state.profile is None


@pytest.mark.unit
class TestTaskMutations:
    """Tests for the personal task mutations."""

    async def test_create_complete_uncomplete_delete(self, alice):
        _, orchestrator = alice

        created = await orchestrator.create_task("Read 10 pages")
        assert created.ok
        assert [t.task.title for t in orchestrator.state.tasks] == ["Read 10 pages"]
        assert orchestrator.state.tasks[0].current_streak == 0
        task_id = created.data.id

        completed = await orchestrator.complete_task(task_id, b"photo", caption="Chapter 1", filename="p.jpg")
        assert completed.ok
        status = orchestrator.state.tasks[0]
        assert status.completed_today is True
        assert status.current_streak == 1
        assert status.todays_caption == "Chapter 1"
        assert [p.task_title for p in orchestrator.state.posts] == ["Read 10 pages"]

        uncompleted = await orchestrator.uncomplete_task(task_id, status.todays_completion_id)
        assert uncompleted.ok
        assert orchestrator.state.tasks[0].completed_today is False
        assert orchestrator.state.posts == ()

        deleted = await orchestrator.delete_task(task_id)
        assert deleted.ok
        assert orchestrator.state.tasks == ()

    async def test_duplicate_completion_reports_error_and_keeps_state(self, alice):
        _, orchestrator = alice
        task_id = (await orchestrator.create_task("Read")).data.id
        await orchestrator.complete_task(task_id, b"photo")
        before = orchestrator.state

        result = await orchestrator.complete_task(task_id, b"photo")

        assert result.error == "Task already completed today"
        assert orchestrator.state == before

    async def test_completion_without_photo_is_rejected(self, alice, world):
        _, orchestrator = alice
        task_id = (await orchestrator.create_task("Read")).data.id
        before = orchestrator.state

        result = await orchestrator.complete_task(task_id, None)

        assert result.error == "Photo is required to complete a task"
        assert orchestrator.state == before
        assert await world.list_records(collection="task_completions") == []

    async def test_invalid_title(self, alice):
        _, orchestrator = alice

        result = await orchestrator.create_task("   ")

        assert result.error == "Title is required"
        assert orchestrator.state.tasks == ()

    async def test_update_task(self, alice):
        _, orchestrator = alice
        task_id = (await orchestrator.create_task("Read")).data.id

        result = await orchestrator.update_task(task_id, "Read 20 pages")

        assert result.ok
        assert orchestrator.state.tasks[0].task.title == "Read 20 pages"

    async def test_mutation_when_signed_out(self, world, fixed_now):
        _, orchestrator = _client(fixed_now)

        result = await orchestrator.create_task("Read")

        assert result.error == "Not authenticated"

    async def test_failed_refetch_keeps_previous_snapshot(self, alice, monkeypatch):
        _, orchestrator = alice
        await orchestrator.create_task("Read")
        before = orchestrator.state.tasks

        async def failing_list_tasks(**kwargs):
            raise DatabaseError("database is locked")

        monkeypatch.setattr(task_service, "list_tasks", failing_list_tasks)

        assert await orchestrator.refetch_tasks() is False
        assert orchestrator.state.tasks == before


@pytest.mark.unit
class TestProfileAndSocial:
    """Tests for profile, search, friendship and feed mutations."""

    async def test_update_profile(self, alice):
        _, orchestrator = alice

        result = await orchestrator.update_profile({"username": "alice_w", "caption": "Hi"})

        assert result.ok
        assert orchestrator.state.profile.username == "alice_w"

    async def test_username_taken(self, alice, world):
        await make_profile(world, "bob", username="taken")
        _, orchestrator = alice

        result = await orchestrator.update_profile({"username": "taken"})

        assert result.error == "Username already taken"

    async def test_search_users(self, alice, world):
        await make_profile(world, "bob", username="bobby")
        _, orchestrator = alice

        result = await orchestrator.search_users("bob")

        assert [p.id for p in result.data] == ["bob"]

    async def test_friend_request_flow(self, alice, world, fixed_now):
        await make_profile(world, "bob", username="bobby")
        _, alice_orchestrator = alice
        bob_sessions, bob_orchestrator = _client(fixed_now)
        await bob_sessions.sign_in(user_id="bob", email="bob@example.com")

        sent = await alice_orchestrator.send_friend_request("bob")
        assert sent.ok
        assert [f.profile.id for f in alice_orchestrator.state.outgoing_requests] == ["bob"]
        assert (await alice_orchestrator.get_friendship_status("bob")).data == FriendshipRelation.OUTGOING

        await bob_orchestrator.refetch_friendships()
        assert [f.profile.id for f in bob_orchestrator.state.incoming_requests] == ["alice"]

        accepted = await bob_orchestrator.accept_friend_request("alice")
        assert accepted.ok
        assert [f.profile.id for f in bob_orchestrator.state.friends] == ["alice"]
        assert bob_orchestrator.state.friends[0].streak == 0

        removed = await alice_orchestrator.unfriend_or_cancel("bob")
        assert removed.ok
        assert alice_orchestrator.state.friends == ()

    async def test_accept_missing_request(self, alice):
        _, orchestrator = alice

        result = await orchestrator.accept_friend_request("nobody")

        assert result.error == "Friend request not found"

    async def test_friend_posts_and_other_users_posts(self, alice, world, fixed_now):
        await make_profile(world, "bob", username="bobby")
        await make_friends(world, "alice", "bob")
        task = await task_service.create_task(owner_id="bob", title="Cold Plunge")
        await task_service.complete_task(
            task_id=task.id, user_id="bob", today=fixed_now.date(), now=fixed_now, photo=b"img"
        )
        _, orchestrator = alice

        await orchestrator.refetch_friend_posts()
        bob_posts = await orchestrator.refetch_posts("bob")

        assert [p.user.username for p in orchestrator.state.friend_posts] == ["@bobby"]
        assert [p.task_title for p in bob_posts] == ["Cold Plunge"]
        assert orchestrator.state.posts == ()


@pytest.mark.unit
class TestPartnerTaskMutations:
    """Tests for the partner task workflow across two signed-in users."""

    async def test_joint_completion(self, alice, world, fixed_now):
        await make_profile(world, "bob")
        await make_friends(world, "alice", "bob")
        _, alice_orchestrator = alice
        bob_sessions, bob_orchestrator = _client(fixed_now)
        await bob_sessions.sign_in(user_id="bob", email="bob@example.com")

        created = await alice_orchestrator.create_partner_task("bob", "Cold Plunge")
        assert created.ok
        partner_task_id = created.data.id
        assert [t.id for t in alice_orchestrator.state.outgoing_partner_invites] == [partner_task_id]
        assert alice_orchestrator.state.partner_tasks == ()

        await bob_orchestrator.refetch_partner_tasks()
        assert [t.id for t in bob_orchestrator.state.pending_partner_invites] == [partner_task_id]

        assert (await bob_orchestrator.accept_partner_task(partner_task_id)).ok
        assert bob_orchestrator.state.pending_partner_invites == ()

        assert (await alice_orchestrator.toggle_partner_task_completion(partner_task_id, b"a", "a.jpg")).ok
        assert (await bob_orchestrator.toggle_partner_task_completion(partner_task_id, b"b", "b.jpg")).ok
        await alice_orchestrator.refetch_partner_tasks()

        for orchestrator in (alice_orchestrator, bob_orchestrator):
            (status,) = orchestrator.state.partner_tasks
            assert status.both_completed_today is True
            assert status.current_streak == 1
            assert status.total_completions == 1

        check = await alice_orchestrator.get_partner_completion_status(partner_task_id)
        assert check.data.current_user_completed is True
        assert check.data.partner_completed is True

        undone = await bob_orchestrator.toggle_partner_task_completion(partner_task_id)
        assert undone.ok
        assert undone.data is None
        assert bob_orchestrator.state.partner_tasks[0].current_streak == 0

    async def test_toggle_without_photo(self, alice, world):
        await make_profile(world, "bob")
        await make_friends(world, "alice", "bob")
        await world.create_record(
            collection="partner_tasks",
            data={
                "id": "p1",
                "creator_profile_id": "alice",
                "partner_profile_id": "bob",
                "title": "Run",
                "status": "accepted",
            },
        )
        _, orchestrator = alice

        result = await orchestrator.toggle_partner_task_completion("p1")

        assert result.error == "Photo is required to complete a partner task"

    async def test_invite_non_friend(self, alice, world):
        await make_profile(world, "carol")
        _, orchestrator = alice

        result = await orchestrator.create_partner_task("carol", "Run")

        assert result.error == "You can only invite friends to partner tasks"

    async def test_decline_and_delete(self, alice, world, fixed_now):
        await make_profile(world, "bob")
        await make_friends(world, "alice", "bob")
        _, alice_orchestrator = alice
        bob_sessions, bob_orchestrator = _client(fixed_now)
        await bob_sessions.sign_in(user_id="bob", email="bob@example.com")

        first = (await alice_orchestrator.create_partner_task("bob", "Run")).data.id
        second = (await alice_orchestrator.create_partner_task("bob", "Swim")).data.id

        assert (await bob_orchestrator.decline_partner_task(first)).ok
        deleted = await alice_orchestrator.delete_partner_task(second)
        assert deleted.ok
        assert alice_orchestrator.state.outgoing_partner_invites == ()

        again = await alice_orchestrator.delete_partner_task(first)
        assert again.error == "Cannot delete a declined partner task"
