"""Hand evaluation for blackjack."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Iterator

from core.cards import Card
from core.errors import HandFinishedError


class HandStatus(Enum):
    """Lifecycle of a hand."""

    ACTIVE = "active"
    STOOD = "stood"
    BUST = "bust"

    def __str__(self) -> str:
        return self.value


def calculate_score(cards: Iterable[Card]) -> int:
    """
    Calculate the best score for a set of cards.

    Every Ace starts at 11 and is downgraded to 1, one at a time, while
    the total is over 21.
    """
    total = 0
    aces = 0

    for card in cards:
        if card.is_ace:
            aces += 1
        total += card.value

    # Reduce aces from 11 to 1 as needed
    while total > 21 and aces > 0:
        total -= 10
        aces -= 1

    return total


def is_blackjack(cards: list[Card]) -> bool:
    """Two cards totalling 21."""
    return len(cards) == 2 and calculate_score(cards) == 21


def is_bust(cards: list[Card]) -> bool:
    return calculate_score(cards) > 21


def can_split(cards: list[Card]) -> bool:
    """Exactly two cards of equal rank."""
    return len(cards) == 2 and cards[0].rank == cards[1].rank


@dataclass
class Hand:
    """
    A participant's blackjack hand.

    ``hand_id`` is the identity used in turn order: the participant's own
    id for their first hand, a synthetic id for a split hand. ``owner_id``
    is always the participant who plays (and is paid for) the hand.
    """

    hand_id: str = ""
    owner_id: str = ""
    cards: list[Card] = field(default_factory=list)
    status: HandStatus = HandStatus.ACTIVE
    score: int = 0
    bet: int = 0
    is_doubled_down: bool = False
    double_down_bet: int = 0
    is_split: bool = False
    split_sibling_id: str | None = None
    parent_hand_id: str | None = None
    has_insurance: bool = False
    insurance_bet: int = 0

    def __post_init__(self) -> None:
        self.score = calculate_score(self.cards)

    def add_card(self, card: Card) -> None:
        """Add a card to the hand; a hand over 21 goes bust."""
        if not self.is_active:
            raise HandFinishedError(f"Hand {self.hand_id} is {self.status}")
        self.cards.append(card)
        self.score = calculate_score(self.cards)
        if self.score > 21:
            self.status = HandStatus.BUST

    def take_second_card(self) -> Card:
        """Remove and return the second card (used when splitting a pair)."""
        card = self.cards.pop(1)
        self.score = calculate_score(self.cards)
        return card

    def stand(self) -> None:
        """Mark the hand as stood."""
        if not self.is_active:
            raise HandFinishedError(f"Hand {self.hand_id} is {self.status}")
        self.status = HandStatus.STOOD

    @property
    def is_active(self) -> bool:
        return self.status is HandStatus.ACTIVE

    @property
    def is_finished(self) -> bool:
        """Check if the hand has stood or busted."""
        return self.status is not HandStatus.ACTIVE

    @property
    def is_soft(self) -> bool:
        """
        Check if the hand is soft (has an ace counted as 11).

        A hand is soft if it contains an ace that can be counted as 11
        without busting.
        """
        if not any(card.is_ace for card in self.cards):
            return False

        total_hard = sum(1 if card.is_ace else card.value for card in self.cards)
        return total_hard + 10 <= 21

    @property
    def is_blackjack(self) -> bool:
        """Check if the hand is two cards totalling 21."""
        return is_blackjack(self.cards)

    @property
    def is_natural(self) -> bool:
        """A blackjack dealt as the first two cards, not the result of a split."""
        return self.is_blackjack and not self.is_split

    @property
    def is_busted(self) -> bool:
        """Check if the hand has busted (score > 21)."""
        return self.score > 21

    @property
    def can_split(self) -> bool:
        """Check if the hand is a pair."""
        return can_split(self.cards)

    @property
    def can_double_down(self) -> bool:
        """Check if the hand can be doubled down."""
        return len(self.cards) == 2 and not self.is_doubled_down

    @property
    def total_stake(self) -> int:
        """Main bet plus any double-down stake."""
        return self.bet + self.double_down_bet

    def __len__(self) -> int:
        return len(self.cards)

    def __iter__(self) -> Iterator[Card]:
        return iter(self.cards)

    def __str__(self) -> str:
        cards_str = " ".join(str(card) for card in self.cards)
        value_str = f"({self.score})"
        if self.is_soft:
            value_str = f"(soft {self.score})"
        if self.is_natural:
            value_str = "(BLACKJACK)"
        if self.is_busted:
            value_str = "(BUST)"
        return f"{cards_str} {value_str}"

    def __repr__(self) -> str:
        return f"Hand({self.hand_id!r}, {self.cards!r}, score={self.score})"
