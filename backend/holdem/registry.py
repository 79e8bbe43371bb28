"""Table registry: one lobby or one live game per table.

All methods are synchronous and never await, so each call is atomic on the
event loop.  Sequences that span an await (apply an action, then settle
balances) must hold ``lock(table_id)``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Union

from holdem.cards import RandomSource
from holdem.engine import GameEngine
from holdem.errors import GameInProgress, InsufficientPlayers, TableFull
from holdem.models import TableSettings

logger = logging.getLogger(__name__)


class Lobby:
    """Players waiting at a table, in join order."""

    def __init__(self, table_id: str) -> None:
        self.table_id = table_id
        self._members: list[str] = []

    def add(self, player_id: str) -> None:
        if player_id not in self._members:
            self._members.append(player_id)

    def __contains__(self, player_id: object) -> bool:
        return player_id in self._members

    def __len__(self) -> int:
        return len(self._members)

    @property
    def members(self) -> list[str]:
        return list(self._members)


class TableRegistry:
    """Process-wide map of table id -> Lobby | GameEngine."""

    def __init__(
        self,
        settings: Optional[TableSettings] = None,
        rng: Optional[RandomSource] = None,
    ) -> None:
        self.settings = settings or TableSettings()
        self._rng = rng
        self._tables: dict[str, Union[Lobby, GameEngine]] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def lock(self, table_id: str) -> asyncio.Lock:
        """Per-table lock used to serialize every state change for that table."""
        lock = self._locks.get(table_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[table_id] = lock
        return lock

    def join(self, table_id: str, player_id: str) -> list[str]:
        entry = self._tables.get(table_id)
        if isinstance(entry, GameEngine):
            raise GameInProgress("A game is already in progress, you cannot join now")

        if entry is None:
            entry = Lobby(table_id)
            self._tables[table_id] = entry

        if player_id not in entry and len(entry) >= self.settings.max_players:
            raise TableFull(f"Table is full ({self.settings.max_players} players)")

        entry.add(player_id)
        logger.info("Join: table=%s player=%s members=%d", table_id, player_id, len(entry))
        return entry.members

    def members(self, table_id: str) -> list[str]:
        entry = self._tables.get(table_id)
        if isinstance(entry, Lobby):
            return entry.members
        return []

    def start(self, table_id: str) -> GameEngine:
        """Replace the lobby with a freshly dealt game."""
        entry = self._tables.get(table_id)
        if isinstance(entry, GameEngine):
            raise GameInProgress("A game is already in progress")

        players = entry.members if entry is not None else []
        if len(players) < 2:
            raise InsufficientPlayers("Need at least 2 players to start")

        engine = GameEngine(
            table_id=table_id,
            player_ids=players,
            starting_stack=self.settings.starting_stack,
            small_blind=self.settings.small_blind,
            rng=self._rng,
        )
        engine.start_hand()
        self._tables[table_id] = engine
        return engine

    def get_game(self, table_id: str) -> Optional[GameEngine]:
        entry = self._tables.get(table_id)
        return entry if isinstance(entry, GameEngine) else None

    def end(self, table_id: str) -> None:
        """Drop whatever the table holds.  Idempotent."""
        # The lock is kept: waiters still queued on it must see the same object
        removed = self._tables.pop(table_id, None)
        if removed is not None:
            logger.info("Table ended: table=%s", table_id)

    def table_ids(self) -> list[str]:
        return list(self._tables)
