"""Batched usage tracking.

Events are queued and written after a short quiet period so that a burst
of views/copies from one client becomes a single deduplicated batch. Each
application owns its own tracker instance (see ``main.lifespan``).
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

import structlog

from prompt_keeper.core.analytics import UsageAnalyticsService
from prompt_keeper.core.errors import KeeperError

logger = structlog.get_logger()


@dataclass(frozen=True)
class UsageEvent:
    prompt_id: str
    action: str
    user_id: str
    team_id: str | None = None

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.prompt_id, self.action, self.user_id)


class UsageTracker:
    """Queues usage events and flushes them in deduplicated batches."""

    def __init__(self, analytics: UsageAnalyticsService, batch_delay: float = 2.0) -> None:
        self.analytics = analytics
        self.batch_delay = batch_delay
        self.enabled = True
        self._queue: list[UsageEvent] = []
        self._timer: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task] = set()

    async def track(
        self,
        prompt_id: str,
        action: str,
        user_id: str | None,
        team_id: str | None = None,
        immediate: bool = False,
    ) -> bool:
        """Record a usage event. Returns False when the event was ignored."""
        if not self.enabled or not prompt_id:
            return False
        if not user_id:
            logger.warning("usage.no_user", prompt_id=prompt_id, action=action)
            return False

        event = UsageEvent(prompt_id=prompt_id, action=action, user_id=user_id, team_id=team_id)
        if immediate:
            await self._write(event)
            return True

        self._queue.append(event)
        self._schedule()
        return True

    def _schedule(self) -> None:
        if self._timer:
            self._timer.cancel()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.batch_delay, self._fire)

    def _fire(self) -> None:
        self._timer = None
        task = asyncio.get_running_loop().create_task(self.process_batch())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _write(self, event: UsageEvent) -> None:
        await asyncio.to_thread(
            self.analytics.log_usage, event.prompt_id, event.user_id, event.team_id, event.action
        )

    async def process_batch(self) -> int:
        """Write queued events once per (prompt, action, user). Returns events written."""
        if not self._queue:
            return 0

        batch, self._queue = self._queue, []
        unique: dict[tuple[str, str, str], UsageEvent] = {}
        for event in batch:
            unique.setdefault(event.key, event)

        written = 0
        retry: list[UsageEvent] = []
        for event in unique.values():
            try:
                await self._write(event)
                written += 1
            except KeeperError as e:
                # Missing prompt or bad action: retrying cannot help.
                logger.warning("usage.event_dropped", prompt_id=event.prompt_id, error=str(e))
            except Exception as e:
                logger.warning("usage.batch_failed", prompt_id=event.prompt_id, error=str(e))
                retry.append(event)

        if retry:
            self._queue[:0] = retry
        return written

    async def flush(self) -> int:
        """Write pending events now."""
        if self._timer:
            self._timer.cancel()
            self._timer = None
        return await self.process_batch()

    def stats(self) -> dict[str, Any]:
        return {
            "tracking_enabled": self.enabled,
            "queue_size": len(self._queue),
            "has_pending_batch": self._timer is not None,
        }
