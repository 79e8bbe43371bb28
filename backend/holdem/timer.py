"""Turn timer: background task that auto-acts for players who exceed their turn timeout."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

from holdem import table_manager

logger = logging.getLogger(__name__)

# How often the timer loop checks for expired deadlines (seconds)
TICK_INTERVAL = 1.0


class ActionTimer:
    """Per-table turn deadlines driven by a single asyncio background loop.

    Each deadline remembers the engine's ``action_count`` at the moment it
    was armed; a firing whose count no longer matches is discarded.
    """

    def __init__(self) -> None:
        self._task: asyncio.Task | None = None
        # table_id -> (deadline as Unix timestamp, action_count when armed)
        self._deadlines: dict[str, tuple[float, int]] = {}

    def start(self) -> None:
        """Start the background timer loop."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._loop())
            logger.info("Action timer started")

    def stop(self) -> None:
        """Stop the background timer loop."""
        if self._task and not self._task.done():
            self._task.cancel()
            logger.info("Action timer stopped")

    def arm(self, table_id: str, state: dict[str, Any], timeout: float | None = None) -> None:
        """Register the deadline for whoever acts next in ``state``, or clear it."""
        if timeout is None:
            timeout = table_manager.registry.settings.turn_timeout
        if not state.get("hand_active") or timeout <= 0:
            self.clear(table_id)
            return
        self._deadlines[table_id] = (time.time() + timeout, state["action_count"])

    def clear(self, table_id: str) -> None:
        self._deadlines.pop(table_id, None)

    def deadline(self, table_id: str) -> float | None:
        entry = self._deadlines.get(table_id)
        return entry[0] if entry else None

    async def tick(self, now: float | None = None) -> None:
        """Fire every expired deadline once."""
        if now is None:
            now = time.time()
        expired = [
            (table_id, count)
            for table_id, (dl, count) in list(self._deadlines.items())
            if now >= dl
        ]

        for table_id, count in expired:
            self._deadlines.pop(table_id, None)
            try:
                await self._handle_timeout(table_id, count)
            except Exception:
                logger.exception("Timer error for table %s", table_id)

    async def _loop(self) -> None:
        """Main timer loop: checks all tracked deadlines each tick."""
        try:
            while True:
                await asyncio.sleep(TICK_INTERVAL)
                await self.tick()
        except asyncio.CancelledError:
            pass

    async def _handle_timeout(self, table_id: str, action_count: int) -> None:
        state = await table_manager.apply_timeout(table_id, action_count)
        if state is None:
            logger.debug("Stale timeout ignored for table %s", table_id)
            return
        # Re-arm for the next player if the hand is still going
        self.arm(table_id, state)


# Singleton
action_timer = ActionTimer()
