"""Unit tests for UserService"""
import pytest
from unittest.mock import AsyncMock

from drasbot.exceptions import RecordNotFoundError
from drasbot.models.user import UserLevel, UserUpdate


@pytest.mark.asyncio
async def test_ensure_creates_then_finds(user_service, clock, test_user_id):
    created = await user_service.ensure(test_user_id, push_name="Anita")

    assert created.identity == test_user_id
    assert created.level is UserLevel.USER
    assert created.is_registered is False
    assert created.preferences == {"push_name": "Anita"}
    assert created.last_activity == clock.now

    clock.advance(minutes=1)
    again = await user_service.ensure(test_user_id, push_name="Other")
    assert again.preferences == {"push_name": "Anita"}
    assert again.last_activity == clock.now
    assert await user_service.count() == 1


@pytest.mark.asyncio
async def test_owner_ids_are_promoted(user_service, owner_id):
    owner = await user_service.ensure(owner_id)
    assert owner.level is UserLevel.OWNER


@pytest.mark.asyncio
async def test_create_existing_identity_is_an_update(user_service, test_user_id):
    await user_service.create(test_user_id)
    updated = await user_service.create(test_user_id, display_name="Ana")

    assert updated.display_name == "Ana"
    assert await user_service.count() == 1


@pytest.mark.asyncio
async def test_update_merges_preferences(user_service, test_user_id):
    await user_service.create(test_user_id, preferences={"language": "es"})

    user = await user_service.update(test_user_id, UserUpdate(preferences={"notifications": False}))

    assert user.preferences == {"language": "es", "notifications": False}


@pytest.mark.asyncio
async def test_update_only_touches_set_fields(user_service, test_user_id):
    await user_service.create(test_user_id, display_name="Ana", is_registered=True)

    user = await user_service.update(test_user_id, UserUpdate(level=UserLevel.MODERATOR))

    assert user.display_name == "Ana"
    assert user.is_registered is True
    assert user.level is UserLevel.MODERATOR


@pytest.mark.asyncio
async def test_update_unknown_user_raises(user_service):
    with pytest.raises(RecordNotFoundError):
        await user_service.update("nobody", UserUpdate(display_name="X"))


@pytest.mark.asyncio
async def test_touch_failure_is_swallowed(user_service, test_user_id):
    await user_service.create(test_user_id)
    user_service.store.touch = AsyncMock(side_effect=RuntimeError("db down"))

    # Must not raise
    await user_service.touch_activity(test_user_id)


@pytest.mark.asyncio
async def test_list_users_most_recent_first(user_service, clock):
    await user_service.ensure("a")
    clock.advance(minutes=1)
    await user_service.ensure("b")

    users = await user_service.list_users(limit=10)
    assert [u.identity for u in users] == ["b", "a"]


class TestUserLevel:

    def test_total_order(self):
        assert UserLevel.ADMIN.satisfies(UserLevel.MODERATOR)
        assert UserLevel.USER.satisfies(UserLevel.GUEST)
        assert not UserLevel.GUEST.satisfies(UserLevel.USER)
        assert not UserLevel.BLOCKED.satisfies(UserLevel.GUEST)

    def test_owner_satisfies_everything(self):
        for level in UserLevel:
            assert UserLevel.OWNER.satisfies(level)

    def test_parse_is_case_insensitive(self):
        assert UserLevel.parse(" Admin ") is UserLevel.ADMIN
        with pytest.raises(ValueError):
            UserLevel.parse("superuser")
