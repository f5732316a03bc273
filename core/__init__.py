"""Core blackjack engine - 100% presentation-agnostic."""

from core.cards import Card, Deck, Rank, Suit
from core.hand import Hand, HandStatus

__all__ = [
    "Card",
    "Deck",
    "Rank",
    "Suit",
    "Hand",
    "HandStatus",
]
