"""Core game engine for a single Texas Hold'em hand at a chat table.

Manages the authoritative hand state: dealing, blinds, the betting state
machine, street progression and showdown.  The engine does no I/O and no
locking; callers serialize ``process_action`` per table and apply the
resulting payouts themselves.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Optional, Sequence

from holdem.cards import Card, Deck, RandomSource, default_random
from holdem.errors import (
    GameInProgress,
    IllegalCall,
    IllegalCheck,
    IllegalRaiseAmount,
    InsufficientChips,
    InsufficientPlayers,
    NoActiveGame,
    NotPlayersTurn,
    PlayerAlreadyFolded,
    UnknownAction,
)
from holdem.evaluator import HandRank, determine_winners, rank_hands, split_pot

logger = logging.getLogger(__name__)

DEFAULT_STACK = 10000
SMALL_BLIND = 100


class Street(str, Enum):
    PREFLOP = "pre-flop"
    FLOP = "flop"
    TURN = "turn"
    RIVER = "river"
    SHOWDOWN = "showdown"


# street -> (next street, cards revealed after one burn)
_NEXT_STREET: dict[Street, tuple[Street, int]] = {
    Street.PREFLOP: (Street.FLOP, 3),
    Street.FLOP: (Street.TURN, 1),
    Street.TURN: (Street.RIVER, 1),
    Street.RIVER: (Street.SHOWDOWN, 0),
}


class PlayerAction(str, Enum):
    FOLD = "fold"
    CHECK = "check"
    CALL = "call"
    BET = "bet"
    RAISE = "raise"


class PlayerState:
    """Per-hand state for a single seat."""

    def __init__(self, player_id: str, stack: int) -> None:
        self.player_id = player_id
        self.stack = stack
        self.hole_cards: list[Card] = []
        self.bet_this_round: int = 0
        self.is_active: bool = True
        self.has_acted: bool = False
        self.last_action: str = ""

    def reset_for_new_round(self) -> None:
        self.bet_this_round = 0
        if self.is_active:
            self.has_acted = False
            self.last_action = ""

    def to_dict(self, reveal_cards: bool = False) -> dict[str, Any]:
        d: dict[str, Any] = {
            "player_id": self.player_id,
            "stack": self.stack,
            "contribution": self.bet_this_round,
            "is_active": self.is_active,
            "has_acted": self.has_acted,
            "last_action": self.last_action,
        }
        if reveal_cards and self.hole_cards:
            d["hole_cards"] = [c.to_dict() for c in self.hole_cards]
        return d


class GameEngine:
    """One hand of Hold'em at one table.

    Seats are fixed for the hand: folded players stay in ``seats`` with
    ``is_active = False`` so turn order and blind positions never shift.
    """

    def __init__(
        self,
        table_id: str,
        player_ids: Sequence[str],
        starting_stack: int = DEFAULT_STACK,
        small_blind: int = SMALL_BLIND,
        rng: Optional[RandomSource] = None,
    ) -> None:
        if len(player_ids) < 2:
            raise InsufficientPlayers("Need at least 2 players to start a poker game")
        if len(set(player_ids)) != len(player_ids):
            raise ValueError("Duplicate player ids")
        if starting_stack < small_blind * 2:
            raise ValueError("Starting stack must cover the big blind")

        self.table_id = table_id
        self.small_blind = small_blind
        self.big_blind = small_blind * 2
        self._rng = rng if rng is not None else default_random()

        self.seats: list[PlayerState] = [
            PlayerState(pid, starting_stack) for pid in player_ids
        ]

        self.dealer_idx: int = 0
        self.deck: Optional[Deck] = None
        self.community_cards: list[Card] = []
        self.street: Street = Street.PREFLOP
        self.pot: int = 0
        self.current_bet: int = 0
        self.action_on_idx: int = 0
        self.hand_active: bool = False
        self.hand_started: bool = False
        # Bumped on every accepted action; lets timers detect stale deadlines
        self.action_count: int = 0

        # Populated only when the hand ends
        self.winners: list[str] = []
        self.payouts: dict[str, int] = {}
        self.hand_ranks: dict[str, HandRank] = {}

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def _active_indices(self) -> list[int]:
        return [i for i, p in enumerate(self.seats) if p.is_active]

    def _next_active_seat(self, idx: int) -> Optional[int]:
        """Next active seat after idx, wrapping; None if no *other* seat is active."""
        n = len(self.seats)
        for offset in range(1, n):
            i = (idx + offset) % n
            if self.seats[i].is_active:
                return i
        return None

    def _find_player_idx(self, player_id: str) -> Optional[int]:
        for i, p in enumerate(self.seats):
            if p.player_id == player_id:
                return i
        return None

    def _find_player(self, player_id: str) -> Optional[PlayerState]:
        idx = self._find_player_idx(player_id)
        return self.seats[idx] if idx is not None else None

    @property
    def current_player(self) -> Optional[PlayerState]:
        if not self.hand_active:
            return None
        return self.seats[self.action_on_idx]

    @property
    def contributions(self) -> dict[str, int]:
        return {p.player_id: p.bet_this_round for p in self.seats}

    @property
    def total_chips(self) -> int:
        """Stacks plus pot; constant between the blinds and the payout."""
        return sum(p.stack for p in self.seats) + self.pot

    # ------------------------------------------------------------------
    # Hand Lifecycle
    # ------------------------------------------------------------------

    def start_hand(self) -> dict[str, Any]:
        """Shuffle, pick a dealer, deal hole cards and post blinds."""
        if self.hand_started:
            raise GameInProgress("This table has already dealt its hand")

        self.deck = Deck(self._rng)
        self.dealer_idx = self._rng.randrange(len(self.seats))

        # Two cards per seat, in seat order
        for p in self.seats:
            p.hole_cards = self.deck.deal(2)

        n = len(self.seats)
        sb_idx = (self.dealer_idx + 1) % n
        bb_idx = (self.dealer_idx + 2) % n
        self._force_bet(sb_idx, self.small_blind, "SB")
        self._force_bet(bb_idx, self.big_blind, "BB")

        self.current_bet = self.big_blind
        self.street = Street.PREFLOP
        self.action_on_idx = (bb_idx + 1) % n  # under the gun
        self.hand_active = True
        self.hand_started = True

        logger.info(
            "Hand started: table=%s players=%d dealer=%s",
            self.table_id,
            n,
            self.seats[self.dealer_idx].player_id,
        )
        return self.snapshot()

    def _force_bet(self, idx: int, amount: int, label: str) -> None:
        """Post a blind."""
        p = self.seats[idx]
        p.stack -= amount
        p.bet_this_round += amount
        self.pot += amount
        p.last_action = f"{label} {amount}"

    # ------------------------------------------------------------------
    # Action Processing
    # ------------------------------------------------------------------

    def get_valid_actions(self, player_id: str) -> list[dict[str, Any]]:
        """Legal actions for player_id; empty unless it is their turn."""
        p = self.current_player
        if p is None or p.player_id != player_id:
            return []

        actions: list[dict[str, Any]] = [{"action": PlayerAction.FOLD.value}]
        to_call = self.current_bet - p.bet_this_round

        if to_call == 0:
            actions.append({"action": PlayerAction.CHECK.value})
        elif p.stack >= to_call:
            actions.append({"action": PlayerAction.CALL.value, "amount": to_call})

        if self.current_bet == 0:
            suggested, name = self.big_blind, PlayerAction.BET
        else:
            suggested, name = self.current_bet * 2, PlayerAction.RAISE
        if p.stack >= suggested - p.bet_this_round:
            actions.append({"action": name.value, "amount": suggested})

        return actions

    def timeout_action(self) -> PlayerAction:
        """Default action for a player whose turn expired."""
        p = self.current_player
        if p is None:
            raise NoActiveGame("No hand in progress")
        if self.current_bet > p.bet_this_round:
            return PlayerAction.FOLD
        return PlayerAction.CHECK

    def process_action(
        self, player_id: str, action: str, amount: Optional[int] = None
    ) -> dict[str, Any]:
        """Apply one action.  Raises before touching state if it is illegal."""
        if not self.hand_active:
            raise NoActiveGame("No hand in progress at this table")

        idx = self._find_player_idx(player_id)
        if idx is None:
            raise NotPlayersTurn("Player is not seated at this table")
        p = self.seats[idx]
        if not p.is_active:
            raise PlayerAlreadyFolded("This player has already folded")
        if idx != self.action_on_idx:
            raise NotPlayersTurn("Not your turn")

        try:
            act = PlayerAction(action)
        except ValueError:
            raise UnknownAction(f"Unknown action: {action}") from None

        to_call = self.current_bet - p.bet_this_round

        if act == PlayerAction.FOLD:
            p.is_active = False
            p.last_action = "Fold"
        elif act == PlayerAction.CHECK:
            if to_call != 0:
                raise IllegalCheck("Cannot check when there is a bet to call")
            p.last_action = "Check"
        elif act == PlayerAction.CALL:
            if to_call <= 0:
                raise IllegalCall("Nothing to call")
            if p.stack < to_call:
                raise InsufficientChips("Not enough chips to call")
            self._pay(p, to_call)
            p.last_action = f"Call {to_call}"
        else:
            self._do_raise(idx, amount)

        p.has_acted = True
        self.action_count += 1
        logger.debug(
            "Action: table=%s player=%s %s street=%s pot=%d",
            self.table_id,
            player_id,
            p.last_action,
            self.street.value,
            self.pot,
        )

        if len(self._active_indices()) <= 1:
            return self._finish_hand()

        if self._is_round_complete():
            self._advance_street()
            if self.street == Street.SHOWDOWN:
                return self._finish_hand()

        next_idx = self._next_active_seat(idx)
        if next_idx is None:
            return self._finish_hand()
        self.action_on_idx = next_idx
        return self.snapshot()

    def _pay(self, p: PlayerState, amount: int) -> None:
        p.stack -= amount
        p.bet_this_round += amount
        self.pot += amount

    def _do_raise(self, idx: int, amount: Optional[int]) -> None:
        """Bet or raise to ``amount`` total for this round."""
        p = self.seats[idx]
        if amount is None:
            raise IllegalRaiseAmount("No bet amount specified")
        if amount <= self.current_bet:
            raise IllegalRaiseAmount(
                f"Raise must be greater than the current bet of {self.current_bet}"
            )
        owed = amount - p.bet_this_round
        if p.stack < owed:
            raise InsufficientChips("Not enough chips to raise")

        label = "Bet" if self.current_bet == 0 else "Raise to"
        self._pay(p, owed)
        self.current_bet = amount
        p.last_action = f"{label} {amount}"

        # Everyone still in must respond to the new bet
        for i, other in enumerate(self.seats):
            if i != idx and other.is_active:
                other.has_acted = False

    # ------------------------------------------------------------------
    # Round / Street Management
    # ------------------------------------------------------------------

    def _is_round_complete(self) -> bool:
        for i in self._active_indices():
            p = self.seats[i]
            if not p.has_acted or p.bet_this_round != self.current_bet:
                return False
        return True

    def _advance_street(self) -> None:
        next_street, reveal = _NEXT_STREET[self.street]
        if reveal:
            if self.deck is None:
                raise NoActiveGame("No hand has been dealt at this table")
            self.deck.burn()
            cards = self.deck.deal(reveal)
            self.community_cards.extend(cards)
            logger.info(
                "Dealt %s: table=%s board=%s",
                next_street.value,
                self.table_id,
                " ".join(str(c) for c in self.community_cards),
            )

        self.street = next_street
        self.current_bet = 0
        for p in self.seats:
            p.reset_for_new_round()

    # ------------------------------------------------------------------
    # Showdown
    # ------------------------------------------------------------------

    def _finish_hand(self) -> dict[str, Any]:
        """Decide winners and payouts.  Stacks are left as-is; payouts go to balances."""
        active = [self.seats[i] for i in self._active_indices()]
        self.street = Street.SHOWDOWN
        self.hand_active = False

        if len(active) == 1:
            # Everyone else folded: no evaluation
            self.winners = [active[0].player_id]
            self.payouts = {active[0].player_id: self.pot}
        else:
            self.hand_ranks = rank_hands(
                {p.player_id: p.hole_cards for p in active}, self.community_cards
            )
            self.winners = determine_winners(self.hand_ranks)
            self.payouts = split_pot(self.winners, self.pot)

        logger.info(
            "Hand finished: table=%s pot=%d payouts=%s",
            self.table_id,
            self.pot,
            self.payouts,
        )
        return self.snapshot()

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def snapshot(self) -> dict[str, Any]:
        """Public table state.  Hole cards appear only after an evaluated showdown."""
        action_on = self.current_player
        revealed = set(self.hand_ranks)

        return {
            "table_id": self.table_id,
            "stage": self.street.value,
            "pot": self.pot,
            "current_bet": self.current_bet,
            "small_blind": self.small_blind,
            "big_blind": self.big_blind,
            "dealer_idx": self.dealer_idx,
            "action_on": action_on.player_id if action_on else None,
            "action_count": self.action_count,
            "hand_active": self.hand_active,
            "community_cards": [c.to_dict() for c in self.community_cards],
            "players": [
                p.to_dict(reveal_cards=p.player_id in revealed) for p in self.seats
            ],
            "winners": list(self.winners),
            "payouts": dict(self.payouts),
            "hands": {pid: rank.name for pid, rank in self.hand_ranks.items()},
        }

    def player_view(self, player_id: str) -> dict[str, Any]:
        """Snapshot plus this player's own hole cards and legal actions."""
        state = self.snapshot()
        player = self._find_player(player_id)
        if player and player.hole_cards:
            state["my_cards"] = [c.to_dict() for c in player.hole_cards]
        else:
            state["my_cards"] = []
        state["valid_actions"] = self.get_valid_actions(player_id)
        return state
