"""Live prompt lists.

``PromptFeed.subscribe`` polls the registry and calls back whenever the
visible snapshot changes; it returns a function that stops the
subscription. Merging and filtering are plain functions over snapshots.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from functools import lru_cache
from typing import Any

import structlog

from prompt_keeper.config import get_settings
from prompt_keeper.core import permissions
from prompt_keeper.core.registry import PromptRegistry, get_registry
from prompt_keeper.db.models import UserRow

logger = structlog.get_logger()

FEED_SCOPES = ("private", "team", "global", "team+global")


def filter_by_scope(
    prompts: list[dict[str, Any]],
    user: UserRow,
    scope: str,
    team_id: str | None = None,
) -> list[dict[str, Any]]:
    """Prompts from a snapshot that belong in ``scope`` and that ``user`` may see."""
    if scope == "private":
        selected = [p for p in prompts if p.get("created_by") == user.id]
    elif scope == "team":
        team_id = team_id or user.team_id
        selected = [p for p in prompts if p.get("sharing") == "team" and p.get("team_id") == team_id]
    elif scope == "global":
        selected = [p for p in prompts if p.get("sharing") == "global"]
    else:
        raise ValueError(f"Unknown scope '{scope}'")
    return [p for p in selected if permissions.can_view_prompt(user, p)]


def merge_team_and_global(
    team_prompts: list[dict[str, Any]], global_prompts: list[dict[str, Any]]
) -> list[dict[str, Any]]:
    """One list, newest first, each prompt once (team copy wins)."""
    merged: dict[str, dict[str, Any]] = {}
    for prompt in [*team_prompts, *global_prompts]:
        merged.setdefault(prompt["id"], prompt)
    return sorted(merged.values(), key=lambda p: p.get("created_at") or "", reverse=True)


def snapshot_signature(prompts: list[dict[str, Any]]) -> tuple[tuple[str, str], ...]:
    return tuple((p["id"], p.get("last_modified") or "") for p in prompts)


class PromptFeed:
    """Polling-backed subscriptions over prompt scopes."""

    def __init__(self, registry: PromptRegistry, poll_interval: float = 5.0) -> None:
        self.registry = registry
        self.poll_interval = poll_interval

    def load(self, user: UserRow, scope: str, team_id: str | None = None) -> list[dict[str, Any]]:
        if scope == "team+global":
            return merge_team_and_global(
                self.registry.list_prompts(user, "team", team_id),
                self.registry.list_prompts(user, "global"),
            )
        if scope not in FEED_SCOPES:
            raise ValueError(f"Unknown scope '{scope}'")
        return self.registry.list_prompts(user, scope, team_id)

    def subscribe(
        self,
        user: UserRow,
        scope: str,
        callback: Callable[[list[dict[str, Any]]], None],
        team_id: str | None = None,
    ) -> Callable[[], None]:
        """Start delivering snapshots to ``callback``; call the result to stop."""
        if scope not in FEED_SCOPES:
            raise ValueError(f"Unknown scope '{scope}'")
        task = asyncio.get_running_loop().create_task(
            self._poll(user, scope, callback, team_id)
        )

        def unsubscribe() -> None:
            task.cancel()

        return unsubscribe

    async def _poll(
        self,
        user: UserRow,
        scope: str,
        callback: Callable[[list[dict[str, Any]]], None],
        team_id: str | None,
    ) -> None:
        last: tuple[tuple[str, str], ...] | None = None
        while True:
            try:
                prompts = await asyncio.to_thread(self.load, user, scope, team_id)
                signature = snapshot_signature(prompts)
                if signature != last:
                    last = signature
                    callback(prompts)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning("feed.poll_failed", scope=scope, error=str(e))
            await asyncio.sleep(self.poll_interval)


@lru_cache
def get_prompt_feed() -> PromptFeed:
    """Get cached prompt feed."""
    return PromptFeed(get_registry(), get_settings().feed_poll_interval)
