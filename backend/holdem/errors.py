"""Error kinds raised by the table registry and game engine.

Every error is a ``ValueError`` so callers that only care about "the request
was rejected" can catch that, while the API layer maps each kind to its own
HTTP status.
"""

from __future__ import annotations


class PokerError(ValueError):
    """Base class for recoverable, table-local errors."""

    status_code: int = 400

    @property
    def kind(self) -> str:
        return type(self).__name__


# --- Registry / lifecycle ---


class GameInProgress(PokerError):
    status_code = 409


class InsufficientPlayers(PokerError):
    pass


class TableFull(PokerError):
    status_code = 409


class NoActiveGame(PokerError):
    status_code = 404


# --- Turn ownership ---


class NotPlayersTurn(PokerError):
    status_code = 409


class PlayerAlreadyFolded(PokerError):
    status_code = 409


# --- Action legality ---


class UnknownAction(PokerError):
    pass


class IllegalCheck(PokerError):
    pass


class IllegalCall(PokerError):
    pass


class IllegalRaiseAmount(PokerError):
    pass


class InsufficientChips(PokerError):
    pass


# --- Deck ---


class DeckExhausted(PokerError):
    status_code = 500
