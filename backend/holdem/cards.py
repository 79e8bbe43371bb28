"""Card and Deck representation.

The deck shuffles with a cryptographically secure source by default
(``secrets.SystemRandom``); any object with ``shuffle`` and ``randrange``
can be injected instead, which is how tests get reproducible deals.
"""

from __future__ import annotations

import secrets
from enum import IntEnum, Enum
from typing import Iterable, Optional, Protocol, Sequence

from holdem.errors import DeckExhausted


class RandomSource(Protocol):
    def shuffle(self, x: list) -> None: ...

    def randrange(self, stop: int) -> int: ...


class Suit(str, Enum):
    SPADES = "s"
    HEARTS = "h"
    DIAMONDS = "d"
    CLUBS = "c"


class Rank(IntEnum):
    TWO = 2
    THREE = 3
    FOUR = 4
    FIVE = 5
    SIX = 6
    SEVEN = 7
    EIGHT = 8
    NINE = 9
    TEN = 10
    JACK = 11
    QUEEN = 12
    KING = 13
    ACE = 14


# Single-character codes used by repr/from_str; str() spells ten as "10"
RANK_SYMBOLS: dict[Rank, str] = dict(zip(Rank, "23456789TJQKA"))

SUIT_SYMBOLS = {
    Suit.SPADES: "♠",
    Suit.HEARTS: "♥",
    Suit.DIAMONDS: "♦",
    Suit.CLUBS: "♣",
}

DECK_SIZE = 52


def default_random() -> RandomSource:
    return secrets.SystemRandom()


class Card:
    __slots__ = ("rank", "suit")

    def __init__(self, rank: Rank, suit: Suit) -> None:
        object.__setattr__(self, "rank", rank)
        object.__setattr__(self, "suit", suit)

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError("Card is immutable")

    def __repr__(self) -> str:
        return f"{RANK_SYMBOLS[self.rank]}{self.suit.value}"

    def __str__(self) -> str:
        label = "10" if self.rank == Rank.TEN else RANK_SYMBOLS[self.rank]
        return f"{label}{SUIT_SYMBOLS[self.suit]}"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Card):
            return NotImplemented
        return self.rank == other.rank and self.suit == other.suit

    def __hash__(self) -> int:
        return hash((self.rank, self.suit))

    def to_dict(self) -> dict:
        return {"rank": self.rank.value, "suit": self.suit.value, "label": str(self)}

    @classmethod
    def from_str(cls, s: str) -> Card:
        """Parse 'Ah', 'Ts', '10s', '2c' etc."""
        rank_part = s[:-1].upper()
        suit_char = s[-1].lower()
        if rank_part == "10":
            rank_part = "T"
        rank_map = {v: k for k, v in RANK_SYMBOLS.items()}
        return cls(rank_map[rank_part], Suit(suit_char))


def format_cards(cards: Iterable[Card]) -> str:
    """Render cards for display, e.g. ``'A♠ 10♥'``."""
    return " ".join(str(c) for c in cards)


class Deck:
    """Standard 52-card deck, shuffled on creation and dealt from the top."""

    def __init__(self, rng: Optional[RandomSource] = None) -> None:
        self._rng = rng if rng is not None else default_random()
        self._cards: list[Card] = [
            Card(rank, suit) for suit in Suit for rank in Rank
        ]
        self.shuffle()

    def shuffle(self) -> None:
        self._rng.shuffle(self._cards)

    def deal(self, n: int = 1) -> list[Card]:
        if n < 0:
            raise ValueError("Cannot deal a negative number of cards")
        if n > len(self._cards):
            raise DeckExhausted(
                f"Cannot deal {n} card(s), only {len(self._cards)} left"
            )
        dealt = self._cards[:n]
        self._cards = self._cards[n:]
        return dealt

    def deal_one(self) -> Card:
        return self.deal(1)[0]

    def burn(self) -> Card:
        return self.deal_one()

    @property
    def cards(self) -> Sequence[Card]:
        return tuple(self._cards)

    @property
    def remaining(self) -> int:
        return len(self._cards)


def shuffled_deck(rng: Optional[RandomSource] = None) -> Deck:
    return Deck(rng)
