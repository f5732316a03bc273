"""Game persistence interface and in-memory implementation."""

from abc import ABC, abstractmethod

from core.cards import Deck
from core.game.engine import BlackjackGame
from core.game.payout import GameResult
from core.game.serialization import (
    cards_from_list,
    cards_to_list,
    game_from_dict,
    game_to_dict,
)


class GameRepository(ABC):
    """
    Abstract game storage.

    The service calls these at its checkpoints and lets every error
    propagate; implementations do not retry.
    """

    @abstractmethod
    async def create_game(self, game: BlackjackGame) -> None:
        """Store a new game."""
        ...

    @abstractmethod
    async def get_game(self, game_id: str) -> BlackjackGame | None:
        """Load a game by id."""
        ...

    @abstractmethod
    async def update_game(self, game: BlackjackGame) -> None:
        """Overwrite a stored game."""
        ...

    @abstractmethod
    async def delete_game(self, game_id: str) -> None:
        """Delete a game; unknown ids are ignored."""
        ...

    @abstractmethod
    async def get_active_game(self, channel_id: str) -> BlackjackGame | None:
        """Load the game currently stored for a channel."""
        ...

    @abstractmethod
    async def save_result(self, result: GameResult) -> None:
        """Append a completed-game result."""
        ...

    @abstractmethod
    async def get_player_results(self, player_id: str, limit: int) -> list[GameResult]:
        """Most recent results a player took part in, newest first."""
        ...

    @abstractmethod
    async def get_channel_results(self, channel_id: str, limit: int) -> list[GameResult]:
        """Most recent results in a channel, newest first."""
        ...

    @abstractmethod
    async def save_shoe(self, channel_id: str, deck: Deck) -> None:
        """Keep a channel's shoe for its next game."""
        ...

    @abstractmethod
    async def get_shoe(self, channel_id: str) -> Deck | None:
        """Load a channel's shoe, or None if it has none."""
        ...


class InMemoryGameRepository(GameRepository):
    """In-memory game storage for local development and tests."""

    def __init__(self) -> None:
        self._games: dict[str, dict] = {}
        self._channels: dict[str, str] = {}
        self._results: list[GameResult] = []
        self._shoes: dict[str, tuple[int, list[str]]] = {}

    async def create_game(self, game: BlackjackGame) -> None:
        self._games[game.game_id] = game_to_dict(game)
        self._channels[game.channel_id] = game.game_id

    async def get_game(self, game_id: str) -> BlackjackGame | None:
        data = self._games.get(game_id)
        return game_from_dict(data) if data is not None else None

    async def update_game(self, game: BlackjackGame) -> None:
        await self.create_game(game)

    async def delete_game(self, game_id: str) -> None:
        data = self._games.pop(game_id, None)
        if data is not None and self._channels.get(data["channel_id"]) == game_id:
            del self._channels[data["channel_id"]]

    async def get_active_game(self, channel_id: str) -> BlackjackGame | None:
        game_id = self._channels.get(channel_id)
        if game_id is None:
            return None
        return await self.get_game(game_id)

    async def save_result(self, result: GameResult) -> None:
        self._results.append(result)

    async def get_player_results(self, player_id: str, limit: int) -> list[GameResult]:
        matching = [r for r in reversed(self._results) if r.for_player(player_id)]
        return matching[:limit]

    async def get_channel_results(self, channel_id: str, limit: int) -> list[GameResult]:
        matching = [r for r in reversed(self._results) if r.channel_id == channel_id]
        return matching[:limit]

    async def save_shoe(self, channel_id: str, deck: Deck) -> None:
        self._shoes[channel_id] = (deck.num_decks, cards_to_list(deck.cards))

    async def get_shoe(self, channel_id: str) -> Deck | None:
        stored = self._shoes.get(channel_id)
        if stored is None:
            return None
        num_decks, codes = stored
        return Deck(num_decks=num_decks, cards=cards_from_list(codes))
