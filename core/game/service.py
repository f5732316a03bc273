"""Game orchestration: registry, persistence checkpoints and wallet debits."""

import logging
from dataclasses import dataclass
from random import Random

from core.cards import Card
from core.errors import (
    GameInProgressError,
    GameNotFoundError,
    PlayerNotFoundError,
    WrongPhaseError,
)
from core.hand import Hand
from core.game.engine import BlackjackGame
from core.game.payout import GameResult
from core.game.registry import GameRegistry
from core.game.rules import RuleSet
from core.game.special_bets import refund_on_error, remove_funds_with_loan
from core.game.state import GamePhase
from core.repository import GameRepository
from core.wallet import TransactionType, WalletService

logger = logging.getLogger(__name__)


@dataclass
class GameUpdate:
    """A game after an action, with whatever the action produced."""

    game: BlackjackGame
    result: GameResult | None = None
    was_shuffled: bool = False
    card: Card | None = None
    hand: Hand | None = None
    amount: int | None = None

    @property
    def completed(self) -> bool:
        return self.game.phase is GamePhase.COMPLETE


class GameService:
    """
    Runs games for many channels.

    Every mutating operation is applied to the in-process game, then
    checkpointed to the repository. When a game completes it is settled
    against the wallet once, its result is recorded, its shoe is kept for
    the channel's next game and the game itself is discarded.
    """

    def __init__(
        self,
        repository: GameRepository,
        wallet: WalletService,
        registry: GameRegistry | None = None,
        rules: RuleSet | None = None,
        rng: Random | None = None,
    ) -> None:
        self.repository = repository
        self.wallet = wallet
        self.registry = registry or GameRegistry()
        self.rules = rules or RuleSet()
        self._rng = rng or Random()

    async def _load(self, channel_id: str) -> BlackjackGame:
        game = self.registry.get(channel_id)
        if game is not None:
            return game

        game = await self.repository.get_active_game(channel_id)
        if game is None:
            raise GameNotFoundError(f"No active game in channel {channel_id}")
        self.registry.put(game)
        return game

    async def _load_seated(self, channel_id: str, player_id: str) -> BlackjackGame:
        """The channel's game, provided ``player_id`` is seated at it."""
        game = await self._load(channel_id)
        if player_id not in game.participants:
            logger.debug("Rejected table action by %s: not seated in %s", player_id, channel_id)
            raise PlayerNotFoundError(f"{player_id} is not seated in channel {channel_id}")
        return game

    async def _checkpoint(self, game: BlackjackGame, **extra) -> GameUpdate:
        was_shuffled = game.consume_shuffle_flag()
        if game.phase is GamePhase.COMPLETE:
            result = await self._finish(game)
            return GameUpdate(game, result=result, was_shuffled=was_shuffled, **extra)

        await self.repository.update_game(game)
        return GameUpdate(game, was_shuffled=was_shuffled, **extra)

    async def _finish(self, game: BlackjackGame) -> GameResult | None:
        result = game.process_payouts(self.wallet)
        if result is not None:
            await self.repository.save_result(result)
        await self.repository.save_shoe(game.channel_id, game.deck)
        self.registry.remove(game.channel_id, game.game_id)
        await self.repository.delete_game(game.game_id)
        logger.info("Game %s in channel %s finished", game.game_id, game.channel_id)
        return result

    # ------------------------------------------------------------------
    # Lobby

    async def create_game(self, channel_id: str, player_id: str) -> GameUpdate:
        """
        Open a game in a channel with its first participant seated.

        Raises:
            GameInProgressError: If the channel already has an active game
        """
        if self.registry.get(channel_id) is not None or (
            await self.repository.get_active_game(channel_id) is not None
        ):
            raise GameInProgressError(f"Channel {channel_id} already has an active game")

        deck = await self.repository.get_shoe(channel_id)
        game, created = self.registry.create_if_absent(
            channel_id,
            lambda: BlackjackGame(channel_id=channel_id, rules=self.rules, deck=deck, rng=self._rng),
        )
        if not created:
            raise GameInProgressError(f"Channel {channel_id} already has an active game")

        try:
            game.add_player(player_id)
            self.wallet.get_or_create_wallet(player_id)
            await self.repository.create_game(game)
        except Exception:
            self.registry.remove(channel_id, game.game_id)
            raise

        logger.info("Game %s created in channel %s by %s", game.game_id, channel_id, player_id)
        return GameUpdate(game)

    async def join(self, channel_id: str, player_id: str) -> GameUpdate:
        game = await self._load(channel_id)
        game.add_player(player_id)
        self.wallet.get_or_create_wallet(player_id)
        return await self._checkpoint(game)

    async def start_betting(self, channel_id: str, player_id: str) -> GameUpdate:
        game = await self._load_seated(channel_id, player_id)
        game.start_betting()
        return await self._checkpoint(game)

    async def place_bet(self, channel_id: str, player_id: str, amount: int) -> GameUpdate:
        """
        Debit the bet (borrowing if needed) and record it in the game.

        A debit taken for a bet the game then refuses is refunded.
        """
        game = await self._load(channel_id)
        game.validate_bet(player_id, amount)

        remove_funds_with_loan(
            self.wallet,
            player_id,
            amount,
            f"Bet in game {game.game_id}",
            self.rules.loan_increment,
            transaction_type=TransactionType.BET,
            reference_id=game.game_id,
        )
        with refund_on_error(self.wallet, player_id, amount, game.game_id):
            game.place_bet(player_id, amount)
        return await self._checkpoint(game, amount=amount)

    async def cancel(self, channel_id: str, player_id: str) -> GameUpdate:
        """
        Abandon a game that has not been dealt, refunding placed bets.

        Raises:
            PlayerNotFoundError: If ``player_id`` is not seated at the game
            WrongPhaseError: If cards have already been dealt
        """
        game = await self._load_seated(channel_id, player_id)
        if game.phase not in (GamePhase.WAITING, GamePhase.BETTING):
            raise WrongPhaseError("cancel", game.phase)

        for player_id, amount in game.bets.items():
            self.wallet.add_funds(
                player_id,
                amount,
                f"Refund for cancelled game {game.game_id}",
                transaction_type=TransactionType.REFUND,
                reference_id=game.game_id,
            )

        self.registry.remove(channel_id, game.game_id)
        await self.repository.delete_game(game.game_id)
        logger.info("Game %s in channel %s cancelled", game.game_id, channel_id)
        return GameUpdate(game)

    # ------------------------------------------------------------------
    # Play

    async def start_dealing(self, channel_id: str, player_id: str) -> GameUpdate:
        game = await self._load_seated(channel_id, player_id)
        game.start_dealing()
        return await self._checkpoint(game)

    async def hit(self, channel_id: str, player_id: str) -> GameUpdate:
        game = await self._load(channel_id)
        card = game.hit(player_id)
        return await self._checkpoint(game, card=card)

    async def stand(self, channel_id: str, player_id: str) -> GameUpdate:
        game = await self._load(channel_id)
        game.stand(player_id)
        return await self._checkpoint(game)

    async def double_down(self, channel_id: str, player_id: str) -> GameUpdate:
        game = await self._load(channel_id)
        card = game.double_down(player_id, self.wallet)
        return await self._checkpoint(game, card=card)

    async def split(self, channel_id: str, player_id: str) -> GameUpdate:
        game = await self._load(channel_id)
        hand = game.split(player_id, self.wallet)
        return await self._checkpoint(game, hand=hand)

    async def place_insurance(self, channel_id: str, player_id: str) -> GameUpdate:
        game = await self._load(channel_id)
        amount = game.place_insurance(player_id, self.wallet)
        return await self._checkpoint(game, amount=amount)

    async def decline_special_bet(self, channel_id: str, player_id: str) -> GameUpdate:
        game = await self._load(channel_id)
        game.decline_special_bet(player_id)
        return await self._checkpoint(game)

    async def force_complete(self, channel_id: str, player_id: str) -> GameUpdate:
        """Stand every open hand, play the dealer and settle."""
        game = await self._load_seated(channel_id, player_id)
        game.force_complete()
        return await self._checkpoint(game)

    # ------------------------------------------------------------------
    # Queries

    async def get_game(self, channel_id: str) -> BlackjackGame:
        return await self._load(channel_id)

    async def get_player_history(self, player_id: str, limit: int = 20) -> list[GameResult]:
        return await self.repository.get_player_results(player_id, limit)

    async def get_channel_history(self, channel_id: str, limit: int = 20) -> list[GameResult]:
        return await self.repository.get_channel_results(channel_id, limit)
