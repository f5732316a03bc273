"""Payout resolution and settlement."""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from core.cards import Card
from core.errors import WrongPhaseError
from core.hand import Hand
from core.game.events import EventType
from core.game.rules import RuleSet
from core.game.state import GamePhase
from core.wallet import TransactionType

if TYPE_CHECKING:
    from core.game.engine import BlackjackGame
    from core.wallet import WalletService

logger = logging.getLogger(__name__)


class Outcome(Enum):
    """Result of one hand against the dealer."""

    WIN = "win"
    LOSE = "lose"
    PUSH = "push"
    BLACKJACK = "blackjack"


@dataclass(frozen=True)
class HandResult:
    """Settlement of a single hand."""

    owner_id: str
    hand_id: str
    cards: list[Card]
    score: int
    bet: int
    outcome: Outcome
    payout: int
    parent_hand_id: str | None = None
    double_down_bet: int = 0
    insurance_bet: int = 0
    insurance_payout: int = 0

    @property
    def total_credit(self) -> int:
        return self.payout + self.insurance_payout

    @property
    def total_staked(self) -> int:
        return self.bet + self.double_down_bet + self.insurance_bet

    @property
    def net(self) -> int:
        """Profit (or loss, negative) over everything staked on the hand."""
        return self.total_credit - self.total_staked


@dataclass(frozen=True)
class GameResult:
    """Settlement record of a completed game."""

    game_id: str
    channel_id: str
    dealer_cards: list[Card]
    dealer_score: int
    hands: list[HandResult]
    completed_at: datetime = field(default_factory=datetime.now)

    def for_player(self, player_id: str) -> list[HandResult]:
        return [hand for hand in self.hands if hand.owner_id == player_id]

    def credits_by_player(self) -> dict[str, int]:
        """Total credit per participant, split hands included, in seat order."""
        credits: dict[str, int] = defaultdict(int)
        for hand in self.hands:
            credits[hand.owner_id] += hand.total_credit
        return dict(credits)


def resolve_hand(hand: Hand, dealer_hand: Hand, rules: RuleSet) -> tuple[Outcome, int]:
    """
    Compare one hand against the dealer.

    Returns:
        The outcome and the credit owed on the main stake (stake returned
        plus winnings; 0 on a loss)
    """
    stake = hand.total_stake
    dealer_natural = dealer_hand.is_natural

    if hand.is_busted:
        return Outcome.LOSE, 0
    if hand.is_natural:
        if dealer_natural:
            return Outcome.PUSH, stake
        return Outcome.BLACKJACK, rules.blackjack_credit(stake)
    if dealer_natural:
        # Dealer blackjack beats every other hand, three-card 21 included
        return Outcome.LOSE, 0
    if dealer_hand.is_busted:
        return Outcome.WIN, rules.win_credit(stake)

    score = rules.score(hand)
    dealer_score = rules.score(dealer_hand)
    if score > dealer_score:
        return Outcome.WIN, rules.win_credit(stake)
    if score == dealer_score:
        return Outcome.PUSH, stake
    return Outcome.LOSE, 0


def resolve_insurance(hand: Hand, dealer_hand: Hand, rules: RuleSet) -> int:
    """Insurance credit: paid only when the dealer holds a natural."""
    if hand.has_insurance and dealer_hand.is_natural:
        return rules.insurance_credit(hand.insurance_bet)
    return 0


def resolve_game(game: "BlackjackGame") -> GameResult:
    """Build the settlement record of a completed game without paying it."""
    if game.phase is not GamePhase.COMPLETE:
        raise WrongPhaseError("resolve payouts", game.phase)

    results = []
    for hand_id in game.player_order:
        hand = game.hands[hand_id]
        outcome, payout = resolve_hand(hand, game.dealer_hand, game.rules)
        results.append(
            HandResult(
                owner_id=hand.owner_id,
                hand_id=hand.hand_id,
                cards=list(hand.cards),
                score=hand.score,
                bet=hand.bet,
                outcome=outcome,
                payout=payout,
                parent_hand_id=hand.parent_hand_id,
                double_down_bet=hand.double_down_bet,
                insurance_bet=hand.insurance_bet,
                insurance_payout=resolve_insurance(hand, game.dealer_hand, game.rules),
            )
        )

    return GameResult(
        game_id=game.game_id,
        channel_id=game.channel_id,
        dealer_cards=list(game.dealer_hand.cards),
        dealer_score=game.dealer_hand.score,
        hands=results,
    )


def settle_payouts(game: "BlackjackGame", wallet: "WalletService") -> GameResult | None:
    """
    Credit every participant's winnings for a completed game, exactly once.

    Credits for a participant's hands (split hands included) and insurance
    are summed into one wallet credit. The game is marked settled before
    any credit is issued.

    Returns:
        The settlement record, or None if the game was already settled
    """
    if game.payouts_processed:
        logger.debug("Game %s already settled; skipping payouts", game.game_id)
        return None

    result = resolve_game(game)
    game.payouts_processed = True

    for player_id, amount in result.credits_by_player().items():
        if amount <= 0:
            continue
        wallet.add_funds(
            player_id,
            amount,
            f"Blackjack payout for game {game.game_id}",
            transaction_type=TransactionType.WIN,
            reference_id=game.game_id,
        )
        game.events.emit_new(EventType.PAYOUT_CREDITED, player_id=player_id, amount=amount)

    logger.info(
        "Game %s settled: %s",
        game.game_id,
        ", ".join(f"{hand.hand_id}={hand.outcome.value}" for hand in result.hands),
    )
    return result
