"""Tests for the in-memory stores"""
import pytest
from datetime import timedelta

from drasbot.db.memory_store import InMemoryCommandLogStore
from drasbot.models.context import Context
from drasbot.models.user import User, UserLevel


def make_context(user_id, now, ttl_minutes=5):
    return Context(
        user_id=user_id,
        context_type="registration",
        step="awaiting_name",
        created_at=now,
        last_interaction=now,
        expires_at=now + timedelta(minutes=ttl_minutes)
    )


class TestInMemoryUserStore:

    @pytest.mark.asyncio
    async def test_create_sets_timestamps(self, user_store, clock):
        user = await user_store.create(User(identity="34600111222"))
        assert user.created_at == clock.now
        assert user.updated_at == clock.now

    @pytest.mark.asyncio
    async def test_second_create_keeps_first_record(self, user_store):
        await user_store.create(User(identity="34600111222", level=UserLevel.ADMIN))
        user = await user_store.create(User(identity="34600111222", display_name="Ana"))

        assert user.level is UserLevel.ADMIN
        assert user.display_name == "Ana"

    @pytest.mark.asyncio
    async def test_returned_users_are_copies(self, user_store):
        await user_store.create(User(identity="34600111222", preferences={"language": "es"}))
        user = await user_store.get("34600111222")
        user.preferences["language"] = "en"

        assert (await user_store.get("34600111222")).language == "es"

    @pytest.mark.asyncio
    async def test_update_merges_preferences(self, user_store):
        await user_store.create(User(identity="34600111222", preferences={"language": "es"}))
        user = await user_store.update("34600111222", {"preferences": {"notifications": False}})

        assert user.preferences == {"language": "es", "notifications": False}

    @pytest.mark.asyncio
    async def test_update_missing_user(self, user_store):
        assert await user_store.update("nobody", {"display_name": "X"}) is None

    @pytest.mark.asyncio
    async def test_list_most_recently_active_first(self, user_store, clock):
        for identity in ("a", "b", "c"):
            await user_store.create(User(identity=identity))
        await user_store.touch("b", clock.advance(seconds=10))
        await user_store.touch("c", clock.advance(seconds=10))

        users = await user_store.list(limit=2)
        assert [u.identity for u in users] == ["c", "b"]
        assert await user_store.count() == 3


class TestInMemoryContextStore:

    @pytest.mark.asyncio
    async def test_save_overwrites_single_context(self, context_store, clock):
        await context_store.save(make_context("u1", clock.now))
        replaced = make_context("u1", clock.now).model_copy(update={"step": "start"})
        await context_store.save(replaced)

        assert (await context_store.load("u1")).step == "start"
        assert list(context_store._contexts) == ["u1"]

    @pytest.mark.asyncio
    async def test_compare_and_clear_keeps_refreshed_context(self, context_store, clock):
        await context_store.save(make_context("u1", clock.now))

        assert await context_store.deactivate("u1", expired_before=clock.now) is False
        assert await context_store.deactivate("u1", expired_before=clock.now + timedelta(minutes=6)) is True
        assert await context_store.load("u1") is None

    @pytest.mark.asyncio
    async def test_expired_users(self, context_store, clock):
        await context_store.save(make_context("short", clock.now, ttl_minutes=1))
        await context_store.save(make_context("long", clock.now, ttl_minutes=10))

        assert await context_store.expired_users(clock.now + timedelta(minutes=2)) == ["short"]


@pytest.mark.asyncio
async def test_command_log_recent_newest_first(clock):
    logs = InMemoryCommandLogStore()
    await logs.append("u1", "help", [], True, clock.now)
    await logs.append("u2", "perfil", [], True, clock.advance(seconds=1))
    await logs.append("u1", "status", [], False, clock.advance(seconds=1))

    assert [e["command"] for e in await logs.recent()] == ["status", "perfil", "help"]
    assert [e["command"] for e in await logs.recent(user_id="u1", limit=1)] == ["status"]
