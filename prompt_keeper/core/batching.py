"""Per-item isolated execution of a store operation over many prompt IDs."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import structlog

from prompt_keeper.core.errors import KeeperError

logger = structlog.get_logger()


@dataclass
class BulkFailure:
    prompt_id: str
    error: str


@dataclass
class BulkOperationResult:
    """Every input ID appears in exactly one of ``successful`` / ``failed``."""

    successful: list[str] = field(default_factory=list)
    failed: list[BulkFailure] = field(default_factory=list)
    operation: dict[str, Any] | None = None


async def run_bounded(
    prompt_ids: list[str],
    worker: Callable[[str], Any],
    limit: int = 8,
) -> BulkOperationResult:
    """Run blocking ``worker(prompt_id)`` for each ID, at most ``limit`` at a time.

    Failures are collected, never raised, so one bad item does not abort the
    batch. Each distinct ID is processed once, but the result holds one entry
    per input position, so repeated IDs repeat their outcome.
    """
    unique_ids = list(dict.fromkeys(prompt_ids))
    semaphore = asyncio.Semaphore(max(1, limit))

    async def _one(prompt_id: str) -> BulkFailure | None:
        async with semaphore:
            try:
                await asyncio.to_thread(worker, prompt_id)
                return None
            except KeeperError as e:
                return BulkFailure(prompt_id=prompt_id, error=str(e))
            except Exception as e:
                logger.warning("bulk.item_failed", prompt_id=prompt_id, error=str(e))
                return BulkFailure(prompt_id=prompt_id, error=str(e) or type(e).__name__)

    outcomes = dict(zip(unique_ids, await asyncio.gather(*(_one(pid) for pid in unique_ids))))

    result = BulkOperationResult()
    for prompt_id in prompt_ids:
        failure = outcomes[prompt_id]
        if failure is None:
            result.successful.append(prompt_id)
        else:
            result.failed.append(failure)
    return result
