"""Cards and draw piles."""

from dataclasses import dataclass
from enum import Enum, auto
from random import Random
from typing import Iterable, Iterator


class Suit(Enum):
    """Card suits."""

    CLUBS = auto()
    DIAMONDS = auto()
    HEARTS = auto()
    SPADES = auto()

    @property
    def letter(self) -> str:
        """ASCII letter used in card codes (``C``, ``D``, ``H``, ``S``)."""
        return self.name[0]

    @property
    def symbol(self) -> str:
        return _SUIT_SYMBOLS[self]

    def __str__(self) -> str:
        return self.symbol


_SUIT_SYMBOLS = {
    Suit.CLUBS: "♣",
    Suit.DIAMONDS: "♦",
    Suit.HEARTS: "♥",
    Suit.SPADES: "♠",
}


class Rank(Enum):
    """Card ranks, Ace high."""

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

    @property
    def label(self) -> str:
        """Short label: the pip count, or the first letter of a face card or Ace."""
        return str(self.value) if self.value <= 10 else self.name[0]

    @property
    def blackjack_value(self) -> int:
        """Point value with an Ace counted high (11); face cards count 10."""
        if self is Rank.ACE:
            return 11
        return min(self.value, 10)

    @property
    def is_ace(self) -> bool:
        return self is Rank.ACE

    def __str__(self) -> str:
        return self.label


# Parse tables for Card.from_string
_RANK_LABELS = {rank.label: rank for rank in Rank} | {"T": Rank.TEN}
_SUIT_LETTERS = {suit.letter: suit for suit in Suit} | {
    symbol: suit for suit, symbol in _SUIT_SYMBOLS.items()
}


@dataclass(frozen=True, slots=True)
class Card:
    """Immutable playing card."""

    rank: Rank
    suit: Suit

    def __str__(self) -> str:
        return f"{self.rank.label}{self.suit.symbol}"

    def __repr__(self) -> str:
        return f"Card({self.rank.name}, {self.suit.name})"

    @property
    def code(self) -> str:
        """ASCII code such as ``10S`` or ``AH``; ``from_string`` reads it back."""
        return f"{self.rank.label}{self.suit.letter}"

    @property
    def value(self) -> int:
        return self.rank.blackjack_value

    @property
    def is_ace(self) -> bool:
        return self.rank.is_ace

    @classmethod
    def from_string(cls, s: str) -> "Card":
        """
        Parse a card code.

        Accepts ASCII codes (``AS``, ``10d``, ``TH``) and suit symbols
        (``K♥``).

        Raises:
            ValueError: If the rank or suit is not recognised
        """
        s = s.strip().upper()
        if len(s) < 2:
            raise ValueError(f"Invalid card string: {s!r}")

        rank = _RANK_LABELS.get(s[:-1])
        suit = _SUIT_LETTERS.get(s[-1])
        if rank is None:
            raise ValueError(f"Invalid rank: {s[:-1]!r}")
        if suit is None:
            raise ValueError(f"Invalid suit: {s[-1]!r}")
        return cls(rank, suit)


class Deck:
    """
    An ordered draw pile built from one or more standard 52-card decks.

    Cards are drawn from the top (front). The pile only shrinks; callers
    build a new Deck when they need a fresh shoe.
    """

    def __init__(
        self,
        num_decks: int = 1,
        rng: Random | None = None,
        cards: Iterable[Card] | None = None,
    ) -> None:
        """
        Initialize a deck.

        Args:
            num_decks: Number of 52-card decks in the pile
            rng: Random number generator for shuffling
            cards: Explicit pile order (top first) instead of a fresh pile
        """
        if num_decks < 1:
            raise ValueError("Deck must have at least 1 deck")

        self._num_decks = num_decks
        self._rng = rng or Random()
        self._cards: list[Card] = (
            list(cards) if cards is not None else self._fresh_cards(num_decks)
        )

    @staticmethod
    def _fresh_cards(num_decks: int) -> list[Card]:
        return [
            Card(rank, suit)
            for _ in range(num_decks)
            for suit in Suit
            for rank in Rank
        ]

    @classmethod
    def shuffled(cls, num_decks: int = 1, rng: Random | None = None) -> "Deck":
        """Build a fresh pile of `num_decks` decks and shuffle it."""
        deck = cls(num_decks=num_decks, rng=rng)
        deck.shuffle()
        return deck

    def shuffle(self) -> None:
        """Shuffle the remaining cards in place."""
        # random.shuffle is an in-place Fisher-Yates pass over every index
        self._rng.shuffle(self._cards)

    def draw(self, n: int = 1) -> list[Card]:
        """
        Remove and return up to `n` cards from the top of the pile.

        When fewer than `n` cards remain, every remaining card is returned
        and the deck is left empty.
        """
        if n < 0:
            raise ValueError("Cannot draw a negative number of cards")
        drawn, self._cards = self._cards[:n], self._cards[n:]
        return drawn

    def draw_one(self) -> Card | None:
        """Draw a single card, or return None when the deck is empty."""
        drawn = self.draw(1)
        return drawn[0] if drawn else None

    @property
    def cards(self) -> list[Card]:
        """Return a copy of the remaining cards, top first."""
        return list(self._cards)

    @property
    def cards_remaining(self) -> int:
        """Return the number of cards remaining."""
        return len(self._cards)

    @property
    def num_decks(self) -> int:
        """Return the number of decks the pile was built from."""
        return self._num_decks

    @property
    def total_cards(self) -> int:
        """Return the number of cards in a full pile."""
        return self._num_decks * 52

    def __len__(self) -> int:
        return len(self._cards)

    def __iter__(self) -> Iterator[Card]:
        return iter(self._cards)
