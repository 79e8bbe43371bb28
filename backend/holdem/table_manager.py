"""Table manager: serialized lobby and gameplay operations.

Every operation that touches a table runs under that table's registry
lock, so an interactive action and a turn timeout can never both act on
the same turn.  When an action ends the hand, payouts are credited to
Redis balances and the table is torn down inside the same locked section.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from holdem import redis_client
from holdem.engine import GameEngine
from holdem.errors import NoActiveGame
from holdem.models import TableSettings
from holdem.registry import TableRegistry

logger = logging.getLogger(__name__)

registry = TableRegistry(TableSettings.from_env())


def _require_game(table_id: str) -> GameEngine:
    engine = registry.get_game(table_id)
    if engine is None:
        raise NoActiveGame("No active poker game at this table")
    return engine


async def _settle(table_id: str, engine: GameEngine) -> None:
    """Credit payouts once, then remove the table.  Caller holds the table lock.

    The table is removed even when crediting fails, so a finished hand can
    never block its table.
    """
    credits = {pid: chips for pid, chips in engine.payouts.items() if chips > 0}
    try:
        await redis_client.credit_balances(credits)
    except Exception:
        logger.exception(
            "Settlement failed, nothing credited: table=%s uncredited=%s",
            table_id,
            credits,
        )
        raise
    finally:
        registry.end(table_id)
    logger.info("Settled table=%s payouts=%s", table_id, engine.payouts)


async def join_table(table_id: str, player_id: str) -> list[str]:
    async with registry.lock(table_id):
        return registry.join(table_id, player_id)


def get_members(table_id: str) -> list[str]:
    return registry.members(table_id)


async def start_table(table_id: str) -> dict[str, Any]:
    """Deal the hand for a table's lobby.  Returns the public snapshot."""
    async with registry.lock(table_id):
        engine = registry.start(table_id)
        return engine.snapshot()


async def get_player_view(table_id: str, player_id: str) -> dict[str, Any]:
    engine = _require_game(table_id)
    return engine.player_view(player_id)


async def process_action(
    table_id: str, player_id: str, action: str, amount: Optional[int] = None
) -> dict[str, Any]:
    """Apply a player's action; settles and ends the table if the hand finished."""
    async with registry.lock(table_id):
        engine = _require_game(table_id)
        state = engine.process_action(player_id, action, amount)
        if not engine.hand_active:
            await _settle(table_id, engine)
        return state


async def apply_timeout(table_id: str, expected_action_count: int) -> Optional[dict[str, Any]]:
    """Auto-act for the seated player if their turn is still the one that timed out.

    Returns the new state, or None when the timeout is stale (table gone,
    hand over, or someone already acted).
    """
    async with registry.lock(table_id):
        engine = registry.get_game(table_id)
        if engine is None or engine.action_count != expected_action_count:
            return None
        # None once the hand is over
        player = engine.current_player
        if player is None:
            return None

        action = engine.timeout_action()
        logger.info(
            "Auto-%s: table=%s player=%s timed out",
            action.value,
            table_id,
            player.player_id,
        )
        state = engine.process_action(player.player_id, action.value)
        if not engine.hand_active:
            await _settle(table_id, engine)
        return state


async def end_table(table_id: str) -> None:
    async with registry.lock(table_id):
        registry.end(table_id)
