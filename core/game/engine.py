"""Blackjack game engine with state machine."""

import logging
from contextlib import contextmanager
from copy import deepcopy
from datetime import datetime
from random import Random
from typing import TYPE_CHECKING, Callable, Iterator
from uuid import uuid4

from transitions import Machine, MachineError

from core.cards import Card, Deck
from core.errors import (
    AlreadyBetError,
    AlreadyJoinedError,
    DeckExhaustedError,
    HandFinishedError,
    IllegalTransitionError,
    InvalidBetError,
    InvariantError,
    MaxPlayersReachedError,
    NoPlayersError,
    NotAllBetsPlacedError,
    NotPlayerTurnError,
    PlayerNotFoundError,
    WrongPhaseError,
)
from core.hand import Hand
from core.game.events import EventEmitter, EventType, GameEvent
from core.game.payout import GameResult, settle_payouts
from core.game.rules import RuleSet
from core.game.special_bets import SpecialBetsMixin
from core.game.state import TRANSITIONS, GamePhase

if TYPE_CHECKING:
    from core.wallet import WalletService

logger = logging.getLogger(__name__)

DEALER_ID = "dealer"


class BlackjackGame(SpecialBetsMixin):
    """
    Blackjack game engine using a state machine.

    One instance is one game at one table (channel). The engine owns the
    authoritative state: turn order, hands, bets, the shoe and the phase.
    Observers read it through properties and events; they never write it.

    Every public mutating operation either completes or raises with the
    game left exactly as it was before the call.
    """

    # State machine states
    STATES = [phase.value for phase in GamePhase]

    # State machine transitions, built from the fixed transition table
    TRANSITIONS = [
        {
            "trigger": trigger,
            "source": [phase.value for phase in sources],
            "dest": dest.value,
        }
        for trigger, (sources, dest) in TRANSITIONS.items()
    ]

    def __init__(
        self,
        channel_id: str = "",
        rules: RuleSet | None = None,
        deck: Deck | None = None,
        rng: Random | None = None,
        game_id: str | None = None,
    ) -> None:
        """
        Initialize a new blackjack game.

        Args:
            channel_id: Table (channel) this game runs in
            rules: Game rules (uses defaults if not provided)
            deck: Shoe carried over from a previous game, or a stacked deck
            rng: Random number generator for reproducible games
            game_id: Identity to restore; a new one is generated otherwise
        """
        self.game_id = game_id or str(uuid4())
        self.channel_id = channel_id
        self.rules = rules or RuleSet()
        self._rng = rng or Random()
        self.deck = deck if deck is not None else Deck.shuffled(self.rules.num_decks, self._rng)

        self.player_order: tuple[str, ...] = ()
        self.hands: dict[str, Hand] = {}
        self.dealer_hand = Hand(hand_id=DEALER_ID, owner_id=DEALER_ID)
        self.bets: dict[str, int] = {}
        self.current_turn = 0
        self.current_betting_turn = 0
        self.payouts_processed = False
        self.was_shuffled = False
        self.created_at = datetime.now()
        self.events = EventEmitter()

        # Initialize state machine
        self.machine = Machine(
            model=self,
            states=self.STATES,
            transitions=self.TRANSITIONS,
            initial=GamePhase.WAITING.value,
            auto_transitions=False,
            model_attribute="_machine_state",
        )

    @property
    def phase(self) -> GamePhase:
        """Get current game phase as enum."""
        return GamePhase(self._machine_state)  # type: ignore[attr-defined]

    def subscribe(
        self,
        handler: Callable[[GameEvent], None],
        event_type: EventType | None = None,
    ) -> None:
        """Subscribe to game events."""
        self.events.subscribe(handler, event_type)

    # ------------------------------------------------------------------
    # Internal helpers

    def _fire(self, trigger: str) -> None:
        """Run a state machine trigger, translating refusals into engine errors."""
        before = self.phase
        try:
            getattr(self, trigger)()
        except MachineError as exc:
            logger.debug("Refused transition %s from %s", trigger, before)
            raise IllegalTransitionError(trigger, before) from exc
        logger.info("Game %s: %s -> %s", self.game_id, before.value, self.phase.value)

    def _require_phase(self, action: str, *phases: GamePhase) -> None:
        if self.phase not in phases:
            logger.debug("Rejected %s during %s", action, self.phase)
            raise WrongPhaseError(action, self.phase)

    @contextmanager
    def _rollback(self) -> Iterator[None]:
        """
        Restore the pre-call game state if the block raises.

        Events emitted inside the block reach subscribers only once it has
        completed, so a rolled-back action is never observed. A subscriber
        that raises while they are delivered rolls the action back too.
        """
        hands = deepcopy(self.hands)
        dealer_hand = deepcopy(self.dealer_hand)
        player_order = self.player_order
        bets = dict(self.bets)
        current_turn = self.current_turn
        current_betting_turn = self.current_betting_turn
        deck = self.deck
        deck_cards = deck.cards
        machine_state = self._machine_state  # type: ignore[attr-defined]
        was_shuffled = self.was_shuffled
        try:
            with self.events.deferred():
                yield
        except Exception:
            self.hands = hands
            self.dealer_hand = dealer_hand
            self.player_order = player_order
            self.bets = bets
            self.current_turn = current_turn
            self.current_betting_turn = current_betting_turn
            self.deck = Deck(num_decks=deck.num_decks, rng=self._rng, cards=deck_cards)
            self.machine.set_state(machine_state)
            self.was_shuffled = was_shuffled
            raise

    def _draw_card(self) -> Card:
        card = self.deck.draw_one()
        if card is None:
            logger.warning("Game %s: shoe exhausted", self.game_id)
            raise DeckExhaustedError(needed=1, remaining=0)
        return card

    def _require_cards(self, needed: int) -> None:
        if self.deck.cards_remaining < needed:
            raise DeckExhaustedError(needed=needed, remaining=self.deck.cards_remaining)

    def _deal_card_to_hand(self, hand: Hand) -> Card:
        """Deal a card to a hand."""
        card = self._draw_card()
        hand.add_card(card)
        self.events.emit_new(
            EventType.CARD_DEALT,
            card=str(card),
            hand=hand.hand_id,
            hand_value=hand.score,
        )
        return card

    def _hand_at(self, index: int) -> Hand:
        if not 0 <= index < len(self.player_order):
            logger.error(
                "Game %s: turn index %d outside order of %d entries",
                self.game_id,
                index,
                len(self.player_order),
            )
            raise InvariantError(f"Turn index {index} outside player order")
        return self.hands[self.player_order[index]]

    def _current_hand_for(self, action: str, player_id: str) -> Hand:
        """The hand holding the turn, checked against the acting participant."""
        hand = self._hand_at(self.current_turn)
        if hand.owner_id != player_id:
            logger.debug("Rejected %s by %s: turn belongs to %s", action, player_id, hand.owner_id)
            raise NotPlayerTurnError(player_id)
        return hand

    def _first_index_from(self, start: int, predicate: Callable[[Hand], bool]) -> int:
        """First turn index at or after ``start`` whose hand satisfies ``predicate``."""
        for index in range(start, len(self.player_order)):
            if predicate(self.hands[self.player_order[index]]):
                return index
        return len(self.player_order)

    # ------------------------------------------------------------------
    # Lobby and betting

    @property
    def participants(self) -> list[str]:
        """Participant ids in join order (split hands excluded)."""
        return [
            hand_id for hand_id in self.player_order if self.hands[hand_id].parent_hand_id is None
        ]

    def add_player(self, player_id: str) -> Hand:
        """
        Seat a participant at the table.

        Raises:
            WrongPhaseError: If the game has moved past joining
            AlreadyJoinedError: If the participant is already seated
            MaxPlayersReachedError: If the table is full
        """
        self._require_phase("join", GamePhase.WAITING)
        if player_id in self.hands:
            raise AlreadyJoinedError(f"{player_id} has already joined")
        if len(self.player_order) >= self.rules.max_players:
            raise MaxPlayersReachedError(
                f"Table is full ({self.rules.max_players} players)"
            )

        hand = Hand(hand_id=player_id, owner_id=player_id)
        self.hands[player_id] = hand
        self.player_order = (*self.player_order, player_id)
        self.events.emit_new(EventType.PLAYER_JOINED, player_id=player_id)
        logger.info("Game %s: %s joined", self.game_id, player_id)
        return hand

    def start_betting(self) -> None:
        """Close the lobby and open betting in join order."""
        self._require_phase("start betting", GamePhase.WAITING)
        if not self.player_order:
            raise NoPlayersError("Cannot start betting without players")
        self._fire("open_betting")
        self.current_betting_turn = 0
        self.events.emit_new(EventType.BETTING_OPENED, players=list(self.player_order))

    @property
    def current_bettor(self) -> str | None:
        """Participant expected to bet next, or None once everyone has."""
        if self.phase is not GamePhase.BETTING:
            return None
        if self.current_betting_turn >= len(self.player_order):
            return None
        return self.player_order[self.current_betting_turn]

    def validate_bet(self, player_id: str, amount: int) -> None:
        """Raise unless ``player_id`` may bet ``amount`` right now."""
        self._require_phase("bet", GamePhase.BETTING)
        if player_id not in self.hands:
            raise PlayerNotFoundError(f"{player_id} is not in this game")
        if player_id in self.bets:
            raise AlreadyBetError(f"{player_id} has already bet")
        if player_id != self.current_bettor:
            raise NotPlayerTurnError(player_id)
        if amount < self.rules.min_bet or amount > self.rules.max_bet:
            raise InvalidBetError(
                f"Bet must be between {self.rules.min_bet} and {self.rules.max_bet}"
            )

    def place_bet(self, player_id: str, amount: int) -> None:
        """
        Record a participant's bet.

        The wallet debit happens outside the engine, before this call.
        """
        self.validate_bet(player_id, amount)
        with self._rollback():
            self.bets[player_id] = amount
            self.hands[player_id].bet = amount
            self.current_betting_turn += 1
            self.events.emit_new(EventType.BET_PLACED, player_id=player_id, amount=amount)

    def all_bets_placed(self) -> bool:
        return bool(self.player_order) and all(pid in self.bets for pid in self.participants)

    # ------------------------------------------------------------------
    # Dealing

    def _refresh_shoe(self) -> None:
        """Swap in a fresh shuffled shoe when the current one runs low."""
        if self.deck.cards_remaining >= self.rules.reshuffle_threshold:
            return
        logger.info(
            "Game %s: reshuffling (%d cards left, threshold %d)",
            self.game_id,
            self.deck.cards_remaining,
            self.rules.reshuffle_threshold,
        )
        self.deck = Deck.shuffled(self.rules.num_decks, self._rng)
        self.was_shuffled = True
        self.events.emit_new(EventType.SHOE_SHUFFLED, cards=self.deck.cards_remaining)

    def consume_shuffle_flag(self) -> bool:
        """Return whether the shoe was reshuffled, clearing the flag."""
        shuffled, self.was_shuffled = self.was_shuffled, False
        return shuffled

    def start_dealing(self) -> None:
        """
        Deal the opening cards and move on to special bets or play.

        Two rounds of one card to each participant in join order, then the
        dealer. Naturals stand immediately.
        """
        self._require_phase("deal", GamePhase.BETTING)
        if not self.all_bets_placed():
            raise NotAllBetsPlacedError("Every player must bet before dealing")

        with self._rollback():
            self._fire("begin_dealing")
            self._refresh_shoe()
            self._require_cards(2 * (len(self.player_order) + 1))

            for _ in range(2):
                for player_id in self.player_order:
                    self._deal_card_to_hand(self.hands[player_id])
                self._deal_card_to_hand(self.dealer_hand)

            for hand in self.hands.values():
                if hand.is_natural:
                    hand.stand()
                    self.events.emit_new(EventType.PLAYER_STAND, hand=hand.hand_id, natural=True)

            self.current_turn = 0
            if self.any_special_bet_available():
                self._fire("offer_special_bets")
                self.current_turn = self._first_index_from(0, self._has_special_bet)
                self.events.emit_new(
                    EventType.SPECIAL_BETS_OFFERED, hand=self.player_order[self.current_turn]
                )
            else:
                self._fire("begin_play")
                self._settle_play_turn(0)

    @property
    def dealer_up_card(self) -> Card | None:
        return self.dealer_hand.cards[0] if self.dealer_hand.cards else None

    # ------------------------------------------------------------------
    # Play

    @property
    def current_turn_id(self) -> str | None:
        """Hand id holding the turn, or None outside turn-based phases."""
        if self.phase not in (GamePhase.SPECIAL_BETS, GamePhase.PLAYING):
            return None
        if self.current_turn >= len(self.player_order):
            return None
        return self.player_order[self.current_turn]

    def _settle_play_turn(self, start: int) -> None:
        """Point the turn at the next active hand, or hand over to the dealer."""
        self.current_turn = self._first_index_from(start, lambda hand: hand.is_active)
        if self.current_turn < len(self.player_order):
            self.events.emit_new(
                EventType.TURN_ADVANCED, hand=self.player_order[self.current_turn]
            )
            return
        self._fire("begin_dealer_turn")
        self._play_dealer()

    def next_player(self) -> None:
        """Advance the play turn past the current entry."""
        self._require_phase("advance turn", GamePhase.PLAYING)
        with self._rollback():
            self._settle_play_turn(self.current_turn + 1)

    def hit(self, player_id: str) -> Card:
        """
        Deal one card to the hand holding the turn.

        A bust ends the hand and advances the turn.
        """
        self._require_phase("hit", GamePhase.PLAYING)
        hand = self._current_hand_for("hit", player_id)
        if not hand.is_active:
            raise HandFinishedError(f"Hand {hand.hand_id} is {hand.status}")

        with self._rollback():
            card = self._deal_card_to_hand(hand)
            self.events.emit_new(EventType.PLAYER_HIT, hand=hand.hand_id, hand_value=hand.score)
            if hand.is_busted:
                self.events.emit_new(EventType.PLAYER_BUSTS, hand=hand.hand_id)
                self._settle_play_turn(self.current_turn + 1)
        return card

    def stand(self, player_id: str) -> None:
        """Stand on the hand holding the turn and advance."""
        self._require_phase("stand", GamePhase.PLAYING)
        hand = self._current_hand_for("stand", player_id)

        with self._rollback():
            hand.stand()
            self.events.emit_new(EventType.PLAYER_STAND, hand=hand.hand_id, hand_value=hand.score)
            self._settle_play_turn(self.current_turn + 1)

    def all_hands_finished(self) -> bool:
        return all(hand.is_finished for hand in self.hands.values())

    # ------------------------------------------------------------------
    # Dealer and completion

    def _play_dealer(self) -> None:
        """Dealer draws to the stand score, then the game completes."""
        if self.phase is not GamePhase.DEALER:
            logger.error("Game %s: dealer play requested during %s", self.game_id, self.phase)
            raise InvariantError(f"Dealer cannot play during {self.phase}")

        while self.rules.dealer_should_hit(self.dealer_hand):
            self._deal_card_to_hand(self.dealer_hand)
            self.events.emit_new(EventType.DEALER_HITS, hand_value=self.dealer_hand.score)

        if self.dealer_hand.is_busted:
            self.events.emit_new(EventType.DEALER_BUSTS, hand_value=self.dealer_hand.score)
        else:
            self.dealer_hand.stand()
            self.events.emit_new(EventType.DEALER_STANDS, hand_value=self.dealer_hand.score)

        logger.info(
            "Game %s: dealer finished on %d with %d card(s)",
            self.game_id,
            self.dealer_hand.score,
            len(self.dealer_hand),
        )
        self._fire("settle")
        self.events.emit_new(EventType.GAME_COMPLETED, dealer_score=self.dealer_hand.score)

    def force_complete(self) -> None:
        """
        Stand every open hand and play the dealer out.

        A game that is already complete is left alone.
        """
        if self.phase is GamePhase.COMPLETE:
            return

        with self._rollback():
            if self.phase in (GamePhase.SPECIAL_BETS, GamePhase.PLAYING):
                for hand in self.hands.values():
                    if hand.is_active:
                        hand.stand()
                self._fire("force_dealer_turn")
            elif self.phase is not GamePhase.DEALER:
                raise IllegalTransitionError("force_dealer_turn", self.phase)
            logger.info("Game %s: forcing completion", self.game_id)
            self._play_dealer()

    def process_payouts(self, wallet: "WalletService") -> GameResult | None:
        """Settle a completed game against the wallet ledger, at most once."""
        return settle_payouts(self, wallet)

    def __repr__(self) -> str:
        return (
            f"BlackjackGame({self.game_id!r}, channel={self.channel_id!r}, "
            f"phase={self.phase.value}, players={list(self.player_order)!r})"
        )
