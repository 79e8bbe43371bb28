"""Pydantic models for table settings and the HTTP surface."""

from __future__ import annotations

import os
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator

from holdem.cards import DECK_SIZE

# Two hole cards each plus five on the board must fit in one deck
MAX_PLAYERS = (DECK_SIZE - 5) // 2


class TableSettings(BaseModel):
    """Stakes and limits applied to every table."""

    starting_stack: int = Field(default=10000, ge=1)
    small_blind: int = Field(default=100, ge=1)
    turn_timeout: int = Field(default=60, ge=0, le=600)  # seconds, 0 = no timer
    max_players: int = Field(default=MAX_PLAYERS, ge=2, le=MAX_PLAYERS)

    @model_validator(mode="after")
    def _stack_covers_big_blind(self) -> TableSettings:
        if self.starting_stack < self.big_blind:
            raise ValueError(
                f"starting_stack ({self.starting_stack}) must cover the big blind ({self.big_blind})"
            )
        return self

    @property
    def big_blind(self) -> int:
        return self.small_blind * 2

    @classmethod
    def from_env(cls) -> TableSettings:
        return cls(
            starting_stack=int(os.getenv("POKER_STARTING_STACK", "10000")),
            small_blind=int(os.getenv("POKER_SMALL_BLIND", "100")),
            turn_timeout=int(os.getenv("POKER_TURN_TIMEOUT", "60")),
            max_players=int(os.getenv("POKER_MAX_PLAYERS", "23")),
        )


# --- Request models ---


class JoinTableRequest(BaseModel):
    player_id: str = Field(..., min_length=1, max_length=64)


class ActionRequest(BaseModel):
    player_id: str = Field(..., min_length=1, max_length=64)
    action: str  # fold, check, call, bet, raise
    amount: Optional[int] = Field(default=None, ge=0)


# --- Response models ---


class MembersResponse(BaseModel):
    table_id: str
    members: list[str]


class BalanceResponse(BaseModel):
    player_id: str
    balance: int


class ActionResponse(BaseModel):
    ok: bool = True
    hand_over: bool = False
    state: dict[str, Any]


class ErrorResponse(BaseModel):
    detail: str
    error: str
