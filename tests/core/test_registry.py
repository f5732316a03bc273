"""Tests for the active-game registry."""

import threading

from core.game import BlackjackGame
from core.game.registry import GameRegistry


class TestGameRegistry:
    """Tests for GameRegistry."""

    def test_create_if_absent(self):
        registry = GameRegistry()
        game, created = registry.create_if_absent("table", lambda: BlackjackGame("table"))
        assert created
        assert registry.get("table") is game
        assert "table" in registry
        assert len(registry) == 1

    def test_existing_game_is_returned(self):
        registry = GameRegistry()
        first, _ = registry.create_if_absent("table", lambda: BlackjackGame("table"))
        second, created = registry.create_if_absent("table", lambda: BlackjackGame("table"))
        assert not created
        assert second is first

    def test_remove_checks_game_id(self):
        registry = GameRegistry()
        game, _ = registry.create_if_absent("table", lambda: BlackjackGame("table"))

        assert registry.remove("table", game_id="stale") is None
        assert "table" in registry
        assert registry.remove("table", game_id=game.game_id) is game
        assert registry.get("table") is None
        assert registry.remove("table") is None

    def test_put_replaces(self):
        registry = GameRegistry()
        registry.create_if_absent("table", lambda: BlackjackGame("table"))
        restored = BlackjackGame("table")
        registry.put(restored)
        assert registry.get("table") is restored
        assert registry.active_channels() == ["table"]

    def test_one_game_per_channel_under_contention(self):
        registry = GameRegistry()
        results = []
        barrier = threading.Barrier(8)

        def create():
            barrier.wait()
            results.append(registry.create_if_absent("table", lambda: BlackjackGame("table")))

        threads = [threading.Thread(target=create) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sum(created for _, created in results) == 1
        assert len({game.game_id for game, _ in results}) == 1
