"""Special bets: double down, split and insurance.

Each special bet needs an extra stake from the acting participant's wallet.
The stake is taken with ``remove_funds_with_loan``: when the wallet cannot
cover the debit, one fixed-size loan is issued and the debit is retried
once. The acting entry gets one special-bet decision, then the turn moves on.
"""

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Callable, Iterator

from core.cards import Card
from core.errors import (
    IllegalTransitionError,
    InsufficientFundsError,
    NotEligibleError,
)
from core.hand import Hand
from core.game.events import EventType
from core.game.state import GamePhase
from core.wallet import TransactionType

if TYPE_CHECKING:
    from core.wallet import Wallet, WalletService

logger = logging.getLogger(__name__)

DOUBLE_DOWN = "double down"
SPLIT = "split"
INSURANCE = "insurance"

SPLIT_SUFFIX = "_split"


def remove_funds_with_loan(
    wallet: "WalletService",
    user_id: str,
    amount: int,
    description: str,
    loan_increment: int,
    transaction_type: TransactionType = TransactionType.BET,
    reference_id: str | None = None,
) -> "Wallet":
    """
    Debit a wallet, lending a fixed increment if the balance falls short.

    The whole sequence (debit, balance read, loan, retried debit) runs
    under the user's wallet lock. Only ``InsufficientFundsError`` triggers
    the loan; any other error, or a second failed debit, propagates.

    Args:
        wallet: Wallet ledger
        user_id: Participant to debit
        amount: Amount to remove
        description: Transaction description
        loan_increment: Fixed loan issued on an insufficient balance
        transaction_type: Ledger type for the debit
        reference_id: Game the debit belongs to

    Returns:
        The wallet after the debit
    """
    with wallet.locked(user_id):
        try:
            return wallet.remove_funds(
                user_id,
                amount,
                description,
                transaction_type=transaction_type,
                reference_id=reference_id,
            )
        except InsufficientFundsError:
            balance = wallet.get_balance(user_id)
            logger.info(
                "%s cannot cover %s with balance %s; issuing loan of %s",
                user_id,
                amount,
                balance,
                loan_increment,
            )
            wallet.add_loan(user_id, loan_increment)
            return wallet.remove_funds(
                user_id,
                amount,
                description,
                transaction_type=transaction_type,
                reference_id=reference_id,
            )


@contextmanager
def refund_on_error(
    wallet: "WalletService", user_id: str, amount: int, reference_id: str
) -> Iterator[None]:
    """Credit a debit back to the wallet if the block raises."""
    try:
        yield
    except Exception as exc:
        logger.warning("Refunding %s to %s after failed special bet: %s", amount, user_id, exc)
        wallet.add_funds(
            user_id,
            amount,
            "Refund of failed special bet",
            transaction_type=TransactionType.REFUND,
            reference_id=reference_id,
        )
        raise


def _can_double_down(hand: Hand) -> bool:
    return hand.is_active and hand.can_double_down and not hand.is_split


def _can_split(hand: Hand) -> bool:
    return hand.is_active and hand.can_split and not hand.is_split and not hand.is_doubled_down


def _can_insure(hand: Hand, dealer_up_card: Card | None) -> bool:
    return (
        dealer_up_card is not None
        and dealer_up_card.is_ace
        and hand.parent_hand_id is None
        and not hand.has_insurance
        and hand.bet // 2 >= 1
    )


class SpecialBetsMixin:
    """Special-bet eligibility and actions for ``BlackjackGame``."""

    # ------------------------------------------------------------------
    # Eligibility

    def _special_bets_hand(self, hand_id: str) -> Hand | None:
        if self.phase is not GamePhase.SPECIAL_BETS:
            return None
        return self.hands.get(hand_id)

    def is_eligible_for_double_down(self, hand_id: str) -> bool:
        """Two cards, not doubled, not a split hand, still in play."""
        hand = self._special_bets_hand(hand_id)
        return hand is not None and _can_double_down(hand)

    def is_eligible_for_split(self, hand_id: str) -> bool:
        """A pair that has not been split or doubled, still in play."""
        hand = self._special_bets_hand(hand_id)
        return hand is not None and _can_split(hand)

    def is_eligible_for_insurance(self, hand_id: str) -> bool:
        """
        Dealer shows an Ace and the hand is the participant's original hand.

        Insurance is taken once per participant and needs a stake of at
        least one unit (half the bet, rounded down). A stood natural may
        still insure.
        """
        hand = self._special_bets_hand(hand_id)
        return hand is not None and _can_insure(hand, self.dealer_up_card)

    def _has_special_bet(self, hand: Hand) -> bool:
        return bool(self.available_special_bets(hand.hand_id))

    def any_special_bet_available(self) -> bool:
        """
        Check whether any hand could take a special bet.

        Phase is not consulted: dealing asks this to decide whether to
        enter the special-bets phase at all.
        """
        up_card = self.dealer_up_card
        return any(
            _can_double_down(hand) or _can_split(hand) or _can_insure(hand, up_card)
            for hand in (self.hands[hand_id] for hand_id in self.player_order)
        )

    def available_special_bets(self, hand_id: str) -> list[str]:
        """Names of the special bets the hand may take right now."""
        checks = (
            (DOUBLE_DOWN, self.is_eligible_for_double_down),
            (SPLIT, self.is_eligible_for_split),
            (INSURANCE, self.is_eligible_for_insurance),
        )
        return [name for name, check in checks if check(hand_id)]

    # ------------------------------------------------------------------
    # Turn handling

    def advance_special_bets_turn(self) -> None:
        """
        Move the special-bets turn to the next entry that has an offer.

        Past the last entry the phase moves on to play, at the first hand
        still in play, or straight to the dealer when none is.
        """
        if self.phase is not GamePhase.SPECIAL_BETS:
            logger.debug("Refused close_special_bets from %s", self.phase)
            raise IllegalTransitionError("close_special_bets", self.phase)

        with self._rollback():
            self._advance_special_bets_turn()

    def _advance_special_bets_turn(self) -> None:
        self.current_turn = self._first_index_from(self.current_turn + 1, self._has_special_bet)
        if self.current_turn < len(self.player_order):
            self.events.emit_new(
                EventType.SPECIAL_BETS_OFFERED, hand=self.player_order[self.current_turn]
            )
            return

        self._fire("close_special_bets")
        self._settle_play_turn(0)

    def _special_bet_hand(
        self, bet: str, player_id: str, eligible: Callable[[str], bool]
    ) -> Hand:
        self._require_phase(bet, GamePhase.SPECIAL_BETS)
        hand = self._current_hand_for(bet, player_id)
        if not eligible(hand.hand_id):
            logger.debug("Rejected %s on %s", bet, hand.hand_id)
            raise NotEligibleError(bet, hand.hand_id)
        return hand

    # ------------------------------------------------------------------
    # Actions

    def double_down(self, player_id: str, wallet: "WalletService") -> Card:
        """
        Double the bet, take exactly one card and stand.

        Returns:
            The card dealt
        """
        hand = self._special_bet_hand(DOUBLE_DOWN, player_id, self.is_eligible_for_double_down)
        self._require_cards(1)
        amount = hand.bet

        remove_funds_with_loan(
            wallet,
            player_id,
            amount,
            f"Double down in game {self.game_id}",
            self.rules.loan_increment,
            reference_id=self.game_id,
        )
        with refund_on_error(wallet, player_id, amount, self.game_id):
            with self._rollback():
                hand.is_doubled_down = True
                hand.double_down_bet = amount
                card = self._deal_card_to_hand(hand)
                if hand.is_active:
                    hand.stand()
                else:
                    self.events.emit_new(EventType.PLAYER_BUSTS, hand=hand.hand_id)
                self.events.emit_new(
                    EventType.DOUBLE_DOWN,
                    hand=hand.hand_id,
                    amount=amount,
                    hand_value=hand.score,
                )
                self._advance_special_bets_turn()
        return card

    def split(self, player_id: str, wallet: "WalletService") -> Hand:
        """
        Split a pair into two hands, each dealt one fresh card.

        The new hand takes the turn slot right after its parent, so it is
        played before the next participant.

        Returns:
            The new (second) hand
        """
        hand = self._special_bet_hand(SPLIT, player_id, self.is_eligible_for_split)
        self._require_cards(2)
        amount = hand.bet
        new_id = self._split_hand_id(hand.hand_id)

        remove_funds_with_loan(
            wallet,
            player_id,
            amount,
            f"Split in game {self.game_id}",
            self.rules.loan_increment,
            reference_id=self.game_id,
        )
        with refund_on_error(wallet, player_id, amount, self.game_id):
            with self._rollback():
                new_hand = Hand(
                    hand_id=new_id,
                    owner_id=hand.owner_id,
                    cards=[hand.take_second_card()],
                    bet=amount,
                    is_split=True,
                    split_sibling_id=hand.hand_id,
                    parent_hand_id=hand.hand_id,
                )
                hand.is_split = True
                hand.split_sibling_id = new_id

                self._deal_card_to_hand(hand)
                self._deal_card_to_hand(new_hand)

                self.hands[new_id] = new_hand
                self.bets[new_id] = amount
                position = self.current_turn + 1
                # Rebuilt, never spliced in place
                self.player_order = (
                    *self.player_order[:position],
                    new_id,
                    *self.player_order[position:],
                )
                self.events.emit_new(
                    EventType.SPLIT,
                    hand=hand.hand_id,
                    new_hand=new_id,
                    amount=amount,
                    hand_values=[hand.score, new_hand.score],
                )
                self._advance_special_bets_turn()
        return new_hand

    def _split_hand_id(self, hand_id: str) -> str:
        """Turn-order identity for the hand split off ``hand_id``, unused by any seat."""
        new_id = f"{hand_id}{SPLIT_SUFFIX}"
        counter = 2
        while new_id in self.hands:
            new_id = f"{hand_id}{SPLIT_SUFFIX}{counter}"
            counter += 1
        return new_id

    def place_insurance(self, player_id: str, wallet: "WalletService") -> int:
        """
        Insure against a dealer blackjack for half the bet.

        No card is dealt and the hand stays in play.

        Returns:
            The insurance stake
        """
        hand = self._special_bet_hand(INSURANCE, player_id, self.is_eligible_for_insurance)
        amount = hand.bet // 2

        remove_funds_with_loan(
            wallet,
            player_id,
            amount,
            f"Insurance in game {self.game_id}",
            self.rules.loan_increment,
            reference_id=self.game_id,
        )
        with refund_on_error(wallet, player_id, amount, self.game_id):
            with self._rollback():
                hand.has_insurance = True
                hand.insurance_bet = amount
                self.events.emit_new(EventType.INSURANCE_TAKEN, hand=hand.hand_id, amount=amount)
                self._advance_special_bets_turn()
        return amount

    def decline_special_bet(self, player_id: str) -> None:
        """Pass on the special-bet offer for the current turn."""
        self._require_phase("decline", GamePhase.SPECIAL_BETS)
        hand = self._current_hand_for("decline", player_id)
        with self._rollback():
            self.events.emit_new(EventType.SPECIAL_BET_DECLINED, hand=hand.hand_id)
            self._advance_special_bets_turn()
