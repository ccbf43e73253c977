"""
ContextManager - per-user conversation state

Keeps at most one active context per user: an in-memory cache in front of a
persistent ContextStore. Contexts expire a fixed TTL after their last
interaction; expiry is enforced lazily on read and by a periodic sweep, both
using compare-and-clear so a context refreshed in the meantime survives.

The manager is type-agnostic: it never validates steps or data. Each context
flow validates its own schema (see drasbot.handlers.base.ContextFlow).

Concurrency: `session(user_id)` serializes all work for one user. The
dispatcher holds it across get -> handle -> apply; the sweeper takes it per
key. get/set/clear do not lock on their own, so they can be called inside a
session without deadlocking.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import AsyncIterator, Optional

from drasbot.config import CONTEXT_SWEEP_INTERVAL_SECONDS, CONTEXT_TTL_SECONDS
from drasbot.db.stores import ContextStore
from drasbot.models.context import (
    IDLE,
    PAUSED_KEY,
    STEP_HISTORY_KEY,
    Context,
    ContextPatch,
    ContextTransition,
    TransitionKind,
)
from drasbot.monitoring import record_context_expired, update_context_cache_size
from drasbot.utils.datetime_helpers import Clock, now_utc
from drasbot.utils.locks import KeyedLock

logger = logging.getLogger(__name__)

IDLE_STEP = "idle"


class ContextManager:
    """
    Service for the single active context of each user.

    Args:
        store: Persistent context store
        ttl_seconds: Lifetime of a context after its last interaction
        clock: Source of "now" (tests inject a controllable clock)
    """

    def __init__(
        self,
        store: ContextStore,
        ttl_seconds: int = CONTEXT_TTL_SECONDS,
        clock: Clock = now_utc
    ):
        self.store = store
        self.ttl = timedelta(seconds=ttl_seconds)
        self.clock = clock
        self._cache: dict[str, Context] = {}
        self._locks = KeyedLock()

    @asynccontextmanager
    async def session(self, user_id: str) -> AsyncIterator["ContextManager"]:
        """Hold the per-user lock; unrelated users are not blocked"""
        async with self._locks.hold(user_id):
            yield self

    async def get(self, user_id: str) -> Optional[Context]:
        """
        Return the user's active context, or None.

        An active context past its expiry is cleared as a side effect and
        reported as absent.
        """
        context = self._cache.get(user_id)
        if context is None:
            context = await self.store.load(user_id)
            if context is None:
                return None
            self._cache[user_id] = context

        if not context.active:
            self._cache.pop(user_id, None)
            return None

        now = self.clock()
        if context.is_expired(now):
            await self._clear_if_expired(user_id, now, reason="read")
            return None

        return context.model_copy(deep=True)

    async def set(
        self,
        user_id: str,
        patch: ContextPatch,
        fresh: bool = False,
        record_history: bool = True
    ) -> Context:
        """
        Create the user's context, or merge `patch` into the active one.

        Always refreshes last_interaction and recomputes expires_at = now + TTL.
        When the step changes and `record_history` is set, the previous step
        is pushed onto the step history kept in the data payload.

        Args:
            user_id: Owner of the context
            patch: Type, step and data to apply; data keys are merged
            fresh: Discard any current context and start a new one
            record_history: Track the step change for `back`

        Raises:
            ValueError: A new context was requested without type and step
        """
        current = None if fresh else await self.get(user_id)
        if fresh:
            await self.clear(user_id)

        now = self.clock()
        if current is None:
            if not patch.context_type or not patch.step:
                raise ValueError("A new context needs both context_type and step")
            context = Context(
                user_id=user_id,
                context_type=patch.context_type,
                step=patch.step,
                data=dict(patch.data),
                created_at=now,
                last_interaction=now,
                expires_at=now + self.ttl
            )
        else:
            data = {**current.data, **patch.data}
            step = patch.step or current.step
            if record_history and step != current.step:
                data[STEP_HISTORY_KEY] = current.step_history + [current.step]
            context = current.model_copy(update={
                "context_type": patch.context_type or current.context_type,
                "step": step,
                "data": data,
                "last_interaction": now,
                "expires_at": now + self.ttl,
            })

        await self.store.save(context)
        self._cache[user_id] = context
        update_context_cache_size(len(self._cache))
        logger.debug(f"Context for {user_id} is now {context.context_type}/{context.step}")
        return context.model_copy(deep=True)

    async def clear(self, user_id: str) -> bool:
        """
        Deactivate the user's context. Idempotent.

        Returns:
            True if there was an active context to clear
        """
        cached = self._cache.pop(user_id, None)
        stored = await self.store.deactivate(user_id)
        update_context_cache_size(len(self._cache))
        cleared = stored or (cached is not None and cached.active)
        if cleared:
            logger.debug(f"Cleared context for {user_id}")
        return cleared

    async def apply(self, user_id: str, transition: ContextTransition) -> Optional[Context]:
        """
        Apply a handler's context transition.

        Returns:
            The resulting context, or None when there is none
        """
        if transition.kind is TransitionKind.CLEAR:
            await self.clear(user_id)
            return None
        if transition.kind is TransitionKind.SET and transition.patch is not None:
            return await self.set(
                user_id,
                transition.patch,
                fresh=transition.fresh,
                record_history=transition.record_history
            )
        return await self.get(user_id)

    async def sweep(self) -> int:
        """
        Clear every context that expired, whether or not its owner writes again.

        Returns:
            Number of contexts cleared
        """
        now = self.clock()
        candidates = {uid for uid, ctx in self._cache.items() if ctx.is_expired(now)}
        candidates.update(await self.store.expired_users(now))

        cleared = 0
        for user_id in candidates:
            async with self._locks.hold(user_id):
                if await self._clear_if_expired(user_id, now, reason="sweep"):
                    cleared += 1

        if cleared:
            logger.info(f"Context sweep cleared {cleared} expired context(s)")
        return cleared

    async def _clear_if_expired(self, user_id: str, now: datetime, reason: str) -> bool:
        """Compare-and-clear: only a context still expired at `now` is removed"""
        cached = self._cache.get(user_id)
        if cached is not None and not cached.is_expired(now):
            return False

        self._cache.pop(user_id, None)
        cleared = await self.store.deactivate(user_id, expired_before=now)
        cleared = cleared or cached is not None
        if cleared:
            record_context_expired(reason)
            update_context_cache_size(len(self._cache))
            logger.info(f"Context for {user_id} expired ({reason})")
        return cleared


class ContextSweeper:
    """Background task running ContextManager.sweep on a fixed interval"""

    def __init__(self, manager: ContextManager, interval_seconds: int = CONTEXT_SWEEP_INTERVAL_SECONDS):
        self.manager = manager
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="context-sweeper")
        logger.info(f"Context sweeper started (every {self.interval_seconds}s)")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Context sweeper stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.manager.sweep()
            except Exception as e:
                logger.error(f"Context sweep failed: {e}", exc_info=True)


# ==========================================
# Escape transitions (pause / resume / back / reset)
# ==========================================

class EscapeOutcome(str, Enum):
    OK = "ok"
    NOTHING_ACTIVE = "nothing_active"
    ALREADY_PAUSED = "already_paused"
    NOT_PAUSED = "not_paused"
    NO_HISTORY = "no_history"


@dataclass(frozen=True)
class EscapeResult:
    outcome: EscapeOutcome
    transition: ContextTransition

    @property
    def ok(self) -> bool:
        return self.outcome is EscapeOutcome.OK


def pause_transition(context: Optional[Context]) -> EscapeResult:
    """Snapshot the current exchange into the data payload and go idle"""
    if context is None:
        return EscapeResult(EscapeOutcome.NOTHING_ACTIVE, ContextTransition.no_change())
    if context.context_type == IDLE:
        return EscapeResult(EscapeOutcome.ALREADY_PAUSED, ContextTransition.no_change())

    snapshot = {
        "context_type": context.context_type,
        "step": context.step,
        "data": context.data,
    }
    return EscapeResult(
        EscapeOutcome.OK,
        ContextTransition.set(
            context_type=IDLE,
            step=IDLE_STEP,
            data={PAUSED_KEY: snapshot},
            fresh=True,
            record_history=False
        )
    )


def resume_transition(context: Optional[Context]) -> EscapeResult:
    """Restore the exchange saved by pause"""
    if context is None or context.context_type != IDLE or PAUSED_KEY not in context.data:
        return EscapeResult(EscapeOutcome.NOT_PAUSED, ContextTransition.no_change())

    snapshot = context.data[PAUSED_KEY]
    return EscapeResult(
        EscapeOutcome.OK,
        ContextTransition.set(
            context_type=snapshot["context_type"],
            step=snapshot["step"],
            data=dict(snapshot.get("data", {})),
            fresh=True,
            record_history=False
        )
    )


def back_transition(context: Optional[Context]) -> EscapeResult:
    """Return to the previous step recorded in the step history"""
    if context is None:
        return EscapeResult(EscapeOutcome.NOTHING_ACTIVE, ContextTransition.no_change())

    history = context.step_history
    if not history:
        return EscapeResult(EscapeOutcome.NO_HISTORY, ContextTransition.no_change())

    return EscapeResult(
        EscapeOutcome.OK,
        ContextTransition.set(
            step=history[-1],
            data={STEP_HISTORY_KEY: history[:-1]},
            record_history=False
        )
    )


def reset_transition(context: Optional[Context]) -> EscapeResult:
    """Drop the exchange entirely; clearing nothing is still a clear"""
    outcome = EscapeOutcome.OK if context is not None else EscapeOutcome.NOTHING_ACTIVE
    return EscapeResult(outcome, ContextTransition.clear())
