"""Table rules the engine delegates house decisions to."""

from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal
from typing import Literal, TYPE_CHECKING

from core.hand import Hand, calculate_score

if TYPE_CHECKING:
    from config import GameConfig


@dataclass(frozen=True)
class RuleSet:
    """
    Table rules configuration.

    ``variant`` tags the rule family; the engine only asks the rule set
    questions (how to score, when the dealer draws, what a win credits)
    so another variant can change the answers without another engine.
    """

    variant: Literal["blackjack", "single_deck"] = "blackjack"

    # Shoe configuration
    num_decks: int = 6
    reshuffle_threshold: int = 75

    # Table limits
    min_bet: int = 1
    max_bet: int = 10000
    max_players: int = 7

    # Dealer rules: draw while below this score, soft totals included
    dealer_stands_on: int = 17

    # Payouts (3:2 = 1.5; insurance 2:1 = 2)
    blackjack_payout: float = 1.5
    insurance_payout: int = 2

    # Fixed loan issued when a debit cannot be covered
    loan_increment: int = 100

    def __post_init__(self) -> None:
        """Validate rule combinations."""
        if self.num_decks < 1 or self.num_decks > 8:
            raise ValueError("num_decks must be between 1 and 8")
        if self.blackjack_payout < 1.0:
            raise ValueError("blackjack_payout must be at least 1.0")
        if self.min_bet < 1 or self.max_bet < self.min_bet:
            raise ValueError("bet limits must satisfy 1 <= min_bet <= max_bet")
        if self.max_players < 1:
            raise ValueError("max_players must be at least 1")
        if self.loan_increment < 1:
            raise ValueError("loan_increment must be positive")

    @classmethod
    def from_config(cls, game_config: "GameConfig") -> "RuleSet":
        """Build rules from application configuration."""
        return cls(
            num_decks=game_config.num_decks,
            reshuffle_threshold=game_config.reshuffle_threshold,
            min_bet=game_config.min_bet,
            max_bet=game_config.max_bet,
            max_players=game_config.max_players,
            dealer_stands_on=game_config.dealer_stands_on,
            blackjack_payout=game_config.blackjack_payout,
            insurance_payout=game_config.insurance_payout,
            loan_increment=game_config.loan_increment,
        )

    @classmethod
    def single_deck(cls) -> "RuleSet":
        """Single deck table, reshuffled before every deal below half a deck."""
        return cls(variant="single_deck", num_decks=1, reshuffle_threshold=26, max_players=4)

    def score(self, hand: Hand) -> int:
        return calculate_score(hand.cards)

    def dealer_should_hit(self, dealer_hand: Hand) -> bool:
        """Dealer draws while strictly below the stand score."""
        return self.score(dealer_hand) < self.dealer_stands_on

    def blackjack_credit(self, stake: int) -> int:
        """Stake returned plus the blackjack bonus, rounded down."""
        bonus = (Decimal(stake) * Decimal(str(self.blackjack_payout))).to_integral_value(
            rounding=ROUND_FLOOR
        )
        return stake + int(bonus)

    def win_credit(self, stake: int) -> int:
        return stake * 2

    def insurance_credit(self, insurance_stake: int) -> int:
        """Insurance stake returned plus winnings at the insurance odds."""
        return insurance_stake * (self.insurance_payout + 1)
