"""Tests for environment-driven settings and what is built from them."""

import os
from dataclasses import FrozenInstanceError
from unittest.mock import patch

import pytest

from api.store import get_game_service, reset_game_service
from config import (
    AppConfig,
    GameConfig,
    LoggingConfig,
    RateLimitConfig,
    RedisConfig,
    SecurityConfig,
)
from core.errors import InvalidBetError
from core.game import BlackjackGame, RuleSet
from core.repository import InMemoryGameRepository


class TestTableConfig:
    """Tests for table limits, shoe and loan settings."""

    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            table = GameConfig()

        assert (table.min_bet, table.max_bet) == (1, 10000)
        assert table.num_decks == 6
        assert table.reshuffle_threshold == 75
        assert table.loan_increment == 100
        assert table.starting_balance == 100

    def test_read_from_environment(self):
        env = {
            "MIN_BET": "5",
            "MAX_BET": "200",
            "NUM_DECKS": "2",
            "RESHUFFLE_THRESHOLD": "20",
            "LOAN_INCREMENT": "50",
            "STARTING_BALANCE": "500",
        }
        with patch.dict(os.environ, env):
            table = GameConfig()

        assert (table.min_bet, table.max_bet) == (5, 200)
        assert table.num_decks == 2
        assert table.reshuffle_threshold == 20
        assert table.loan_increment == 50
        assert table.starting_balance == 500

    def test_settings_cannot_change_at_runtime(self):
        with pytest.raises(FrozenInstanceError):
            GameConfig().max_bet = 1


class TestRulesFromConfig:
    """Tests for the ruleset a configured table plays by."""

    def test_limits_and_loan_carried_over(self):
        rules = RuleSet.from_config(
            GameConfig(min_bet=5, max_bet=50, loan_increment=25, reshuffle_threshold=10)
        )

        assert (rules.min_bet, rules.max_bet) == (5, 50)
        assert rules.loan_increment == 25
        assert rules.reshuffle_threshold == 10

    def test_configured_limits_enforced(self):
        game = BlackjackGame("table", rules=RuleSet.from_config(GameConfig(min_bet=5, max_bet=50)))
        game.add_player("alice")
        game.start_betting()

        with pytest.raises(InvalidBetError):
            game.place_bet("alice", 4)
        with pytest.raises(InvalidBetError):
            game.place_bet("alice", 51)
        game.place_bet("alice", 50)


class TestServiceFromConfig:
    """Tests for assembling the shared game service."""

    @pytest.mark.asyncio
    async def test_uses_table_settings_without_redis(self):
        settings = AppConfig(
            redis=RedisConfig(enabled=False),
            game=GameConfig(starting_balance=500, loan_increment=50, max_bet=300),
        )
        reset_game_service()
        try:
            with patch("api.store.config", settings):
                service = await get_game_service()

            assert isinstance(service.repository, InMemoryGameRepository)
            assert service.wallet.get_balance("alice") == 500
            assert service.rules.loan_increment == 50
            assert service.rules.max_bet == 300
            assert await get_game_service() is service
        finally:
            reset_game_service()


class TestRedisConfig:
    """Tests for the Redis switch and connection URL."""

    def test_enabled_unless_switched_off(self):
        with patch.dict(os.environ, {}, clear=True):
            assert RedisConfig().enabled is True
        with patch.dict(os.environ, {"REDIS_ENABLED": "False"}):
            assert RedisConfig().enabled is False

    @pytest.mark.parametrize(
        "env, url",
        [
            ({}, "redis://localhost:6379/0"),
            ({"REDIS_HOST": "cache", "REDIS_DB": "2"}, "redis://cache:6379/2"),
            ({"REDIS_PASSWORD": "hunter2"}, "redis://:hunter2@localhost:6379/0"),
        ],
    )
    def test_url(self, env, url):
        with patch.dict(os.environ, env, clear=True):
            assert RedisConfig().url == url


class TestPlayerTokenConfig:
    """Tests for token signing settings."""

    def test_lifetime(self):
        with patch.dict(os.environ, {}, clear=True):
            assert SecurityConfig().token_max_age == 86400
        with patch.dict(os.environ, {"PLAYER_TOKEN_MAX_AGE": "60"}):
            assert SecurityConfig().token_max_age == 60

    def test_signing_key_from_environment(self):
        with patch.dict(os.environ, {"SECRET_KEY": "table-key"}):
            assert SecurityConfig().secret_key == "table-key"

    def test_signing_key_generated_when_unset(self):
        with patch.dict(os.environ, {}, clear=True):
            assert len(SecurityConfig().secret_key) >= 32


class TestOperationalConfig:
    """Tests for request limits and logging."""

    def test_request_limit(self):
        with patch.dict(os.environ, {}, clear=True):
            assert RateLimitConfig().requests_per_minute == 120
        with patch.dict(os.environ, {"RATE_LIMIT_RPM": "30"}):
            assert RateLimitConfig().requests_per_minute == 30

    def test_log_level(self):
        with patch.dict(os.environ, {}, clear=True):
            assert LoggingConfig().level == "INFO"
        with patch.dict(os.environ, {"LOG_LEVEL": "debug"}):
            assert LoggingConfig().level == "DEBUG"

    def test_history_page_size(self):
        assert AppConfig().history_limit == 20
