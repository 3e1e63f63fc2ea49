"""NATS event publishing for prompt lifecycle changes.

Deletes, restores and bulk operations are announced so that other clients
can refresh their views. Publishing is best-effort: without a NATS
connection every publish is a no-op.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any
from uuid import uuid4

import nats
import structlog

from prompt_keeper.config import get_settings

logger = structlog.get_logger()


class EventPublisher:
    """Publishes prompt lifecycle events to NATS."""

    def __init__(self, nats_url: str = "nats://localhost:4222") -> None:
        self.nats_url = nats_url
        self._nc = None
        self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected

    async def connect(self) -> bool:
        """Connect to NATS. Returns True if successful."""
        try:
            self._nc = await nats.connect(self.nats_url, allow_reconnect=False)
            self._connected = True
            logger.info("events.nats_connected", url=self.nats_url)
            return True
        except Exception as e:
            logger.warning("events.nats_connect_failed", error=str(e))
            self._connected = False
            return False

    async def disconnect(self) -> None:
        """Disconnect from NATS."""
        if self._nc and self._connected:
            await self._nc.close()
        self._connected = False

    async def publish(
        self,
        event_type: str,
        subject: str,
        data: dict[str, Any],
        actor: str | None = None,
    ) -> bool:
        """Publish an event envelope. Returns False if NATS is unavailable."""
        if not self._connected or not self._nc:
            return False

        envelope = {
            "id": str(uuid4()),
            "type": event_type,
            "source": "prompt-keeper",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "actor": actor,
            "data": data,
        }

        try:
            await self._nc.publish(subject, json.dumps(envelope, default=str).encode())
            logger.debug("events.published", subject=subject, type=event_type)
            return True
        except Exception as e:
            logger.warning("events.publish_failed", subject=subject, error=str(e))
            return False

    async def publish_prompt_event(
        self,
        prompt_id: str,
        action: str,
        data: dict[str, Any],
        actor: str | None = None,
    ) -> bool:
        """Publish ``keeper.prompt.<id>.<action>``."""
        return await self.publish(
            event_type=f"prompt.{action}",
            subject=f"keeper.prompt.{prompt_id}.{action}",
            data=data,
            actor=actor,
        )


@lru_cache
def get_event_publisher() -> EventPublisher:
    """Get the process-wide event publisher (connected during startup)."""
    return EventPublisher(get_settings().nats_url)
