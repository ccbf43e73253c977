"""Unit tests for ContextManager, the sweeper and escape transitions"""
import asyncio
import random
import pytest

from drasbot.models.context import IDLE, PAUSED_KEY, STEP_HISTORY_KEY, ContextPatch, ContextTransition
from drasbot.services.context_manager import (
    ContextManager,
    ContextSweeper,
    EscapeOutcome,
    back_transition,
    pause_transition,
    reset_transition,
    resume_transition,
)

USER = "34600111222"


def patch(step=None, data=None, context_type=None):
    return ContextPatch(context_type=context_type, step=step, data=data or {})


# ============================================================================
# get / set / clear
# ============================================================================

class TestLifecycle:

    @pytest.mark.asyncio
    async def test_set_then_get_round_trips(self, context_manager, clock):
        await context_manager.set(USER, patch("awaiting_name", {"attempts": 0}, "registration"))

        context = await context_manager.get(USER)
        assert context.context_type == "registration"
        assert context.step == "awaiting_name"
        assert context.data == {"attempts": 0}
        assert context.expires_at == clock.now + context_manager.ttl

    @pytest.mark.asyncio
    async def test_new_context_requires_type_and_step(self, context_manager):
        with pytest.raises(ValueError):
            await context_manager.set(USER, patch(step="awaiting_name"))

    @pytest.mark.asyncio
    async def test_merge_keeps_existing_data_and_refreshes_ttl(self, context_manager, clock):
        await context_manager.set(USER, patch("awaiting_name", {"attempts": 0}, "registration"))
        clock.advance(minutes=4)
        await context_manager.set(USER, patch(data={"last_error": "name_error_numeric"}))

        context = await context_manager.get(USER)
        assert context.data == {"attempts": 0, "last_error": "name_error_numeric"}
        assert context.last_interaction == clock.now
        assert context.expires_at == clock.now + context_manager.ttl

    @pytest.mark.asyncio
    async def test_step_change_is_recorded_in_history(self, context_manager):
        await context_manager.set(USER, patch("start", context_type="registration"))
        await context_manager.set(USER, patch("awaiting_name"))

        context = await context_manager.get(USER)
        assert context.step_history == ["start"]

    @pytest.mark.asyncio
    async def test_fresh_replaces_previous_context(self, context_manager):
        await context_manager.set(USER, patch("awaiting_name", {"attempts": 2}, "registration"))
        await context_manager.set(USER, patch("awaiting_value", {"setting": "language"}, "configuration"), fresh=True)

        context = await context_manager.get(USER)
        assert context.context_type == "configuration"
        assert context.data == {"setting": "language"}

    @pytest.mark.asyncio
    async def test_clear_is_idempotent(self, context_manager):
        await context_manager.set(USER, patch("awaiting_name", context_type="registration"))

        assert await context_manager.clear(USER) is True
        assert await context_manager.clear(USER) is False
        assert await context_manager.get(USER) is None

    @pytest.mark.asyncio
    async def test_returned_context_is_a_copy(self, context_manager):
        await context_manager.set(USER, patch("awaiting_name", {"attempts": 0}, "registration"))
        context = await context_manager.get(USER)
        context.data["attempts"] = 99

        assert (await context_manager.get(USER)).data["attempts"] == 0

    @pytest.mark.asyncio
    async def test_apply_transitions(self, context_manager):
        created = await context_manager.apply(USER, ContextTransition.set("start", context_type="registration"))
        assert created.step == "start"

        unchanged = await context_manager.apply(USER, ContextTransition.no_change())
        assert unchanged.step == "start"

        assert await context_manager.apply(USER, ContextTransition.clear()) is None
        assert await context_manager.get(USER) is None


# ============================================================================
# Expiry
# ============================================================================

class TestExpiry:

    @pytest.mark.asyncio
    async def test_context_is_alive_until_ttl(self, context_manager, clock):
        await context_manager.set(USER, patch("awaiting_name", context_type="registration"))
        clock.advance(minutes=5)
        assert await context_manager.get(USER) is not None

    @pytest.mark.asyncio
    async def test_expired_context_reads_as_absent_without_leaking_data(self, context_manager, context_store, clock):
        await context_manager.set(USER, patch("awaiting_name", {"attempts": 2}, "registration"))
        clock.advance(minutes=6)

        assert await context_manager.get(USER) is None
        assert await context_store.load(USER) is None

        # A new context starts clean
        await context_manager.set(USER, patch("awaiting_value", context_type="configuration"))
        assert (await context_manager.get(USER)).data == {}

    @pytest.mark.asyncio
    async def test_sweep_clears_contexts_nobody_reads(self, context_manager, context_store, clock):
        await context_manager.set("a", patch("awaiting_name", context_type="registration"))
        clock.advance(minutes=3)
        await context_manager.set("b", patch("awaiting_name", context_type="registration"))
        clock.advance(minutes=3)

        cleared = await context_manager.sweep()

        assert cleared == 1
        assert await context_store.load("a") is None
        assert await context_store.load("b") is not None

    @pytest.mark.asyncio
    async def test_sweep_spares_context_refreshed_after_expiry_check(self, context_store, clock):
        manager = ContextManager(context_store, ttl_seconds=300, clock=clock)
        await manager.set(USER, patch("awaiting_name", context_type="registration"))
        clock.advance(minutes=6)

        # The user writes again before the sweep reaches the key
        async with manager.session(USER):
            sweep = asyncio.create_task(manager.sweep())
            await asyncio.sleep(0)
            await manager.set(USER, patch("awaiting_value", context_type="configuration"), fresh=True)
        cleared = await sweep

        assert cleared == 0
        assert (await manager.get(USER)).context_type == "configuration"

    @pytest.mark.asyncio
    async def test_sweeper_runs_in_background(self, context_manager, clock):
        await context_manager.set(USER, patch("awaiting_name", context_type="registration"))
        clock.advance(minutes=10)

        sweeper = ContextSweeper(context_manager, interval_seconds=0)
        sweeper.start()
        assert sweeper.running
        for _ in range(5):
            await asyncio.sleep(0)
        await sweeper.stop()

        assert not sweeper.running
        assert USER not in context_manager._cache


# ============================================================================
# Concurrency
# ============================================================================

class TestConcurrency:

    @pytest.mark.asyncio
    async def test_interleaved_writes_keep_one_active_context(self, context_manager, context_store):
        rng = random.Random(7)
        users = ["u1", "u2", "u3"]

        async def worker(user_id):
            for i in range(20):
                op = rng.choice(["set", "fresh", "clear", "get"])
                async with context_manager.session(user_id):
                    if op == "set":
                        current = await context_manager.get(user_id)
                        if current is None:
                            await context_manager.set(user_id, patch("start", context_type="registration"))
                        else:
                            await context_manager.set(user_id, patch(data={"i": i}))
                    elif op == "fresh":
                        await context_manager.set(user_id, patch("awaiting_value", context_type="configuration"), fresh=True)
                    elif op == "clear":
                        await context_manager.clear(user_id)
                    else:
                        await context_manager.get(user_id)
                await asyncio.sleep(0)

        await asyncio.gather(*(worker(u) for u in users for _ in range(3)))

        for user_id in users:
            cached = context_manager._cache.get(user_id)
            stored = await context_store.load(user_id)
            assert (cached is None) == (stored is None)
            if stored is not None:
                assert cached.context_type == stored.context_type
                assert cached.step == stored.step

    @pytest.mark.asyncio
    async def test_session_serializes_one_user_only(self, context_manager):
        order = []

        async def hold(user_id, label):
            async with context_manager.session(user_id):
                order.append(f"{label}-in")
                await asyncio.sleep(0)
                await asyncio.sleep(0)
                order.append(f"{label}-out")

        await asyncio.gather(hold("a", "a1"), hold("a", "a2"), hold("b", "b1"))

        a1 = order.index("a1-in")
        assert order[a1 + 1] != "a2-in"
        assert order.index("a1-out") < order.index("a2-in")
        assert order.index("b1-in") < order.index("a1-out")


# ============================================================================
# Escape transitions
# ============================================================================

class TestEscapeTransitions:

    @pytest.mark.asyncio
    async def test_pause_and_resume_restore_the_exchange(self, context_manager):
        await context_manager.set(USER, patch("awaiting_name", {"attempts": 1}, "registration"))

        paused = pause_transition(await context_manager.get(USER))
        assert paused.ok
        await context_manager.apply(USER, paused.transition)
        idle = await context_manager.get(USER)
        assert idle.context_type == IDLE
        assert idle.data[PAUSED_KEY]["step"] == "awaiting_name"

        resumed = resume_transition(idle)
        assert resumed.ok
        await context_manager.apply(USER, resumed.transition)
        restored = await context_manager.get(USER)
        assert restored.context_type == "registration"
        assert restored.step == "awaiting_name"
        assert restored.data == {"attempts": 1}

    @pytest.mark.asyncio
    async def test_pause_twice_and_resume_without_pause(self, context_manager):
        assert pause_transition(None).outcome is EscapeOutcome.NOTHING_ACTIVE
        assert resume_transition(None).outcome is EscapeOutcome.NOT_PAUSED

        await context_manager.set(USER, patch("awaiting_name", context_type="registration"))
        await context_manager.apply(USER, pause_transition(await context_manager.get(USER)).transition)

        assert pause_transition(await context_manager.get(USER)).outcome is EscapeOutcome.ALREADY_PAUSED

    @pytest.mark.asyncio
    async def test_back_pops_step_history(self, context_manager):
        await context_manager.set(USER, patch("start", context_type="registration"))
        await context_manager.set(USER, patch("awaiting_name"))

        back = back_transition(await context_manager.get(USER))
        assert back.ok
        await context_manager.apply(USER, back.transition)

        context = await context_manager.get(USER)
        assert context.step == "start"
        assert context.data[STEP_HISTORY_KEY] == []

    @pytest.mark.asyncio
    async def test_back_without_history_fails_gracefully(self, context_manager):
        await context_manager.set(USER, patch("awaiting_name", context_type="registration"))

        back = back_transition(await context_manager.get(USER))
        assert back.outcome is EscapeOutcome.NO_HISTORY
        assert back.transition == ContextTransition.no_change()

    def test_reset_always_clears(self):
        assert reset_transition(None).transition == ContextTransition.clear()
        assert reset_transition(None).outcome is EscapeOutcome.NOTHING_ACTIVE
