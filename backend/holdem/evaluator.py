"""Texas Hold'em hand evaluator and pot splitting.

``evaluate`` picks the best 5-card hand out of 5-7 cards and returns a
``HandRank`` that compares directly (higher is better).  Suits only matter
for flush detection; ties fall through to kickers in descending rank.
"""

from __future__ import annotations

from collections import Counter
from enum import IntEnum
from itertools import combinations
from typing import Mapping, Optional, Sequence

from holdem.cards import Card, Rank


class HandCategory(IntEnum):
    HIGH_CARD = 0
    ONE_PAIR = 1
    TWO_PAIR = 2
    THREE_OF_A_KIND = 3
    STRAIGHT = 4
    FLUSH = 5
    FULL_HOUSE = 6
    FOUR_OF_A_KIND = 7
    STRAIGHT_FLUSH = 8
    ROYAL_FLUSH = 9


HAND_NAMES = {
    HandCategory.HIGH_CARD: "High Card",
    HandCategory.ONE_PAIR: "One Pair",
    HandCategory.TWO_PAIR: "Two Pair",
    HandCategory.THREE_OF_A_KIND: "Three of a Kind",
    HandCategory.STRAIGHT: "Straight",
    HandCategory.FLUSH: "Flush",
    HandCategory.FULL_HOUSE: "Full House",
    HandCategory.FOUR_OF_A_KIND: "Four of a Kind",
    HandCategory.STRAIGHT_FLUSH: "Straight Flush",
    HandCategory.ROYAL_FLUSH: "Royal Flush",
}

WHEEL = [Rank.ACE, Rank.FIVE, Rank.FOUR, Rank.THREE, Rank.TWO]


class HandRank:
    """Comparable hand ranking: (category, tiebreakers...) plus the five cards used."""

    __slots__ = ("category", "tiebreakers", "cards")

    def __init__(
        self,
        category: HandCategory,
        tiebreakers: tuple[int, ...],
        cards: list[Card],
    ) -> None:
        self.category = category
        self.tiebreakers = tiebreakers
        self.cards = cards

    @property
    def _key(self) -> tuple[int, ...]:
        return (int(self.category),) + tuple(int(t) for t in self.tiebreakers)

    def __lt__(self, other: HandRank) -> bool:
        return self._key < other._key

    def __gt__(self, other: HandRank) -> bool:
        return self._key > other._key

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HandRank):
            return NotImplemented
        return self._key == other._key

    def __le__(self, other: HandRank) -> bool:
        return self._key <= other._key

    def __ge__(self, other: HandRank) -> bool:
        return self._key >= other._key

    def __hash__(self) -> int:
        return hash(self._key)

    @property
    def name(self) -> str:
        return HAND_NAMES[self.category]

    def __repr__(self) -> str:
        return f"HandRank({self.name}, {self.tiebreakers})"


def _straight_high(ranks: list[int]) -> Optional[int]:
    """High card of a 5-card straight, or None.  ``ranks`` sorted descending."""
    unique = sorted(set(ranks), reverse=True)
    if len(unique) != 5:
        return None
    if unique[0] - unique[4] == 4:
        return unique[0]
    if unique == WHEEL:
        return Rank.FIVE
    return None


def _evaluate_five(cards: list[Card]) -> HandRank:
    """Evaluate exactly 5 cards."""
    if len(cards) != 5:
        raise ValueError(f"Expected 5 cards, got {len(cards)}")

    ranks = sorted((c.rank for c in cards), reverse=True)
    is_flush = len({c.suit for c in cards}) == 1
    straight_high = _straight_high(ranks)

    if straight_high is not None and is_flush:
        if straight_high == Rank.ACE:
            return HandRank(HandCategory.ROYAL_FLUSH, (Rank.ACE,), cards)
        return HandRank(HandCategory.STRAIGHT_FLUSH, (straight_high,), cards)

    # (count desc, rank desc): quads/trips/pairs first, then kickers high to low
    groups = sorted(Counter(ranks).items(), key=lambda x: (x[1], x[0]), reverse=True)
    counts = [count for _, count in groups]
    by_group = tuple(rank for rank, _ in groups)

    if counts[0] == 4:
        return HandRank(HandCategory.FOUR_OF_A_KIND, by_group, cards)
    if counts[:2] == [3, 2]:
        return HandRank(HandCategory.FULL_HOUSE, by_group, cards)
    if is_flush:
        return HandRank(HandCategory.FLUSH, tuple(ranks), cards)
    if straight_high is not None:
        return HandRank(HandCategory.STRAIGHT, (straight_high,), cards)
    if counts[0] == 3:
        return HandRank(HandCategory.THREE_OF_A_KIND, by_group, cards)
    if counts[:2] == [2, 2]:
        return HandRank(HandCategory.TWO_PAIR, by_group, cards)
    if counts[0] == 2:
        return HandRank(HandCategory.ONE_PAIR, by_group, cards)
    return HandRank(HandCategory.HIGH_CARD, tuple(ranks), cards)


def evaluate(cards: Sequence[Card]) -> HandRank:
    """Best 5-card hand from 5-7 cards (2 hole + community in Hold'em)."""
    if len(cards) < 5:
        raise ValueError(f"Need at least 5 cards, got {len(cards)}")

    return max(_evaluate_five(list(combo)) for combo in combinations(cards, 5))


def rank_hands(
    hole_cards: Mapping[str, Sequence[Card]],
    community: Sequence[Card],
) -> dict[str, HandRank]:
    """Evaluate each player's hole cards against the board.  Keeps input order."""
    return {
        pid: evaluate(list(cards) + list(community))
        for pid, cards in hole_cards.items()
    }


def determine_winners(
    player_hands: Mapping[str, HandRank],
) -> list[str]:
    """Given {player_id: HandRank}, return every player not beaten by another (ties possible)."""
    if not player_hands:
        return []

    best_rank = max(player_hands.values())
    return [pid for pid, rank in player_hands.items() if rank == best_rank]


def split_pot(winners: Sequence[str], pot: int) -> dict[str, int]:
    """Split ``pot`` evenly; odd chips go one each to winners in the given order."""
    if not winners:
        raise ValueError("Cannot split a pot between zero winners")
    if pot < 0:
        raise ValueError("Pot cannot be negative")

    share, remainder = divmod(pot, len(winners))
    payouts: dict[str, int] = {}
    for j, pid in enumerate(winners):
        payouts[pid] = share + (1 if j < remainder else 0)
    return payouts
