"""Game storage with Redis backend and in-memory fallback."""

import json
import logging

import redis.asyncio as redis

from config import config
from core.cards import Deck
from core.game.engine import BlackjackGame
from core.game.payout import GameResult
from core.game.rules import RuleSet
from core.game.serialization import (
    cards_from_list,
    cards_to_list,
    game_from_dict,
    game_to_dict,
    result_from_dict,
    result_to_dict,
)
from core.game.service import GameService
from core.repository import GameRepository, InMemoryGameRepository
from core.wallet import InMemoryWalletRepository, WalletService

logger = logging.getLogger(__name__)


class RedisGameRepository(GameRepository):
    """Redis-backed game storage; values are JSON documents."""

    def __init__(self, redis_client: "redis.Redis", prefix: str = "blackjack:") -> None:
        self._redis = redis_client
        self._prefix = prefix

    def _key(self, *parts: str) -> str:
        """Get Redis key for the given parts."""
        return self._prefix + ":".join(parts)

    async def create_game(self, game: BlackjackGame) -> None:
        await self._redis.set(self._key("game", game.game_id), json.dumps(game_to_dict(game)))
        await self._redis.set(self._key("channel", game.channel_id), game.game_id)

    async def get_game(self, game_id: str) -> BlackjackGame | None:
        data = await self._redis.get(self._key("game", game_id))
        if data is None:
            return None
        return game_from_dict(json.loads(data))

    async def update_game(self, game: BlackjackGame) -> None:
        await self.create_game(game)

    async def delete_game(self, game_id: str) -> None:
        data = await self._redis.get(self._key("game", game_id))
        if data is None:
            return
        channel_key = self._key("channel", json.loads(data)["channel_id"])
        current = await self._redis.get(channel_key)
        if current is not None and _text(current) == game_id:
            await self._redis.delete(channel_key)
        await self._redis.delete(self._key("game", game_id))

    async def get_active_game(self, channel_id: str) -> BlackjackGame | None:
        game_id = await self._redis.get(self._key("channel", channel_id))
        if game_id is None:
            return None
        return await self.get_game(_text(game_id))

    async def save_result(self, result: GameResult) -> None:
        payload = json.dumps(result_to_dict(result))
        await self._redis.lpush(self._key("results", "channel", result.channel_id), payload)
        for player_id in dict.fromkeys(hand.owner_id for hand in result.hands):
            await self._redis.lpush(self._key("results", "player", player_id), payload)

    async def _results(self, key: str, limit: int) -> list[GameResult]:
        if limit <= 0:
            return []
        rows = await self._redis.lrange(key, 0, limit - 1)
        return [result_from_dict(json.loads(row)) for row in rows]

    async def get_player_results(self, player_id: str, limit: int) -> list[GameResult]:
        return await self._results(self._key("results", "player", player_id), limit)

    async def get_channel_results(self, channel_id: str, limit: int) -> list[GameResult]:
        return await self._results(self._key("results", "channel", channel_id), limit)

    async def save_shoe(self, channel_id: str, deck: Deck) -> None:
        payload = {"num_decks": deck.num_decks, "cards": cards_to_list(deck.cards)}
        await self._redis.set(self._key("shoe", channel_id), json.dumps(payload))

    async def get_shoe(self, channel_id: str) -> Deck | None:
        data = await self._redis.get(self._key("shoe", channel_id))
        if data is None:
            return None
        payload = json.loads(data)
        return Deck(num_decks=payload["num_decks"], cards=cards_from_list(payload["cards"]))


def _text(value: bytes | str) -> str:
    return value.decode() if isinstance(value, bytes) else value


# Global service instance
_game_service: GameService | None = None


async def get_game_repository() -> GameRepository:
    """Connect to Redis, or fall back to in-memory storage."""
    if config.redis.enabled:
        try:
            redis_client = redis.from_url(config.redis.url)
            await redis_client.ping()
            logger.info("Using Redis game storage at %s:%s", config.redis.host, config.redis.port)
            return RedisGameRepository(redis_client)
        except (redis.RedisError, OSError) as exc:
            logger.warning("Redis unavailable (%s); falling back to in-memory storage", exc)

    return InMemoryGameRepository()


async def get_game_service() -> GameService:
    """Get or create the game service."""
    global _game_service

    if _game_service is not None:
        return _game_service

    repository = await get_game_repository()
    wallet = WalletService(
        InMemoryWalletRepository(),
        starting_balance=config.game.starting_balance,
        loan_increment=config.game.loan_increment,
    )
    _game_service = GameService(repository, wallet, rules=RuleSet.from_config(config.game))
    return _game_service


def reset_game_service(service: GameService | None = None) -> None:
    """Replace (or clear) the global service."""
    global _game_service
    _game_service = service
