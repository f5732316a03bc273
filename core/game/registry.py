"""Registry of active games, one per channel."""

import logging
import threading
from typing import Callable

from core.game.engine import BlackjackGame

logger = logging.getLogger(__name__)


class GameRegistry:
    """
    Active games keyed by channel.

    All access goes through one lock, so "create if absent" and "remove"
    are atomic with respect to each other.
    """

    def __init__(self) -> None:
        self._games: dict[str, BlackjackGame] = {}
        self._lock = threading.Lock()

    def create_if_absent(
        self, channel_id: str, factory: Callable[[], BlackjackGame]
    ) -> tuple[BlackjackGame, bool]:
        """
        Get the channel's game, creating it with ``factory`` if there is none.

        Returns:
            The game and whether it was just created
        """
        with self._lock:
            existing = self._games.get(channel_id)
            if existing is not None:
                return existing, False
            game = factory()
            self._games[channel_id] = game
            logger.info("Registered game %s for channel %s", game.game_id, channel_id)
            return game, True

    def get(self, channel_id: str) -> BlackjackGame | None:
        with self._lock:
            return self._games.get(channel_id)

    def put(self, game: BlackjackGame) -> None:
        """Register a game restored from storage, replacing any stale entry."""
        with self._lock:
            self._games[game.channel_id] = game

    def remove(self, channel_id: str, game_id: str | None = None) -> BlackjackGame | None:
        """
        Remove the channel's game.

        When ``game_id`` is given, only that game is removed; a newer game
        in the same channel is left alone.
        """
        with self._lock:
            game = self._games.get(channel_id)
            if game is None or (game_id is not None and game.game_id != game_id):
                return None
            del self._games[channel_id]
            logger.info("Removed game %s from channel %s", game.game_id, channel_id)
            return game

    def active_channels(self) -> list[str]:
        with self._lock:
            return list(self._games)

    def __len__(self) -> int:
        with self._lock:
            return len(self._games)

    def __contains__(self, channel_id: str) -> bool:
        with self._lock:
            return channel_id in self._games
