"""Tests for game orchestration across channels."""

import pytest
import pytest_asyncio

from core.errors import (
    GameInProgressError,
    GameNotFoundError,
    InvalidBetError,
    PlayerNotFoundError,
    WrongPhaseError,
)
from core.game import EventType, GamePhase, Outcome, RuleSet
from core.game.service import GameService
from core.repository import InMemoryGameRepository
from core.wallet import TransactionType, WalletService
from tests.helpers import cards, stacked_deck


@pytest_asyncio.fixture
async def repository():
    return InMemoryGameRepository()


@pytest_asyncio.fixture
async def service(repository, rng):
    """Service whose tables never reshuffle a stacked shoe."""
    return GameService(
        repository,
        WalletService(),
        rules=RuleSet(reshuffle_threshold=0),
        rng=rng,
    )


async def stack_shoe(repository, *codes, channel_id="table"):
    await repository.save_shoe(channel_id, stacked_deck(*codes))


async def seat_and_bet(service, bets, channel_id="table"):
    players = list(bets)
    await service.create_game(channel_id, players[0])
    for player_id in players[1:]:
        await service.join(channel_id, player_id)
    await service.start_betting(channel_id, players[0])
    for player_id, amount in bets.items():
        await service.place_bet(channel_id, player_id, amount)


class TestLobby:
    """Tests for creating and joining games."""

    @pytest.mark.asyncio
    async def test_create_seats_creator(self, service):
        update = await service.create_game("table", "alice")

        assert update.game.phase is GamePhase.WAITING
        assert update.game.player_order == ("alice",)
        assert service.wallet.get_balance("alice") == 100
        assert "table" in service.registry

    @pytest.mark.asyncio
    async def test_one_game_per_channel(self, service):
        await service.create_game("table", "alice")
        with pytest.raises(GameInProgressError):
            await service.create_game("table", "bob")
        await service.create_game("other", "bob")
        assert sorted(service.registry.active_channels()) == ["other", "table"]

    @pytest.mark.asyncio
    async def test_unknown_channel(self, service):
        with pytest.raises(GameNotFoundError):
            await service.join("nowhere", "alice")

    @pytest.mark.asyncio
    async def test_checkpoints_survive_a_restart(self, service, repository):
        await service.create_game("table", "alice")
        await service.join("table", "bob")

        restarted = GameService(repository, service.wallet, rules=service.rules)
        game = await restarted.get_game("table")

        assert game.player_order == ("alice", "bob")
        assert "table" in restarted.registry

    @pytest.mark.asyncio
    async def test_bet_is_debited(self, service):
        await service.create_game("table", "alice")
        await service.start_betting("table", "alice")

        update = await service.place_bet("table", "alice", 30)

        assert update.amount == 30
        assert service.wallet.get_balance("alice") == 70
        [debit] = service.wallet.get_transactions("alice")
        assert debit.transaction_type is TransactionType.BET
        assert debit.reference_id == update.game.game_id

    @pytest.mark.asyncio
    async def test_bet_borrows_when_short(self, service):
        await service.create_game("table", "alice")
        await service.start_betting("table", "alice")

        await service.place_bet("table", "alice", 150)

        account, _ = service.wallet.get_or_create_wallet("alice")
        assert account.balance == 50
        assert account.loan_amount == 100

    @pytest.mark.asyncio
    async def test_refused_bet_is_not_debited(self, service):
        await service.create_game("table", "alice")
        await service.start_betting("table", "alice")

        with pytest.raises(InvalidBetError):
            await service.place_bet("table", "alice", 10**6)
        assert service.wallet.get_transactions("alice") == []

    @pytest.mark.asyncio
    async def test_bet_refunded_when_an_observer_fails(self, service):
        await service.create_game("table", "alice")
        await service.start_betting("table", "alice")
        game = await service.get_game("table")

        def explode(event):
            raise RuntimeError("observer failed")

        game.subscribe(explode, EventType.BET_PLACED)

        with pytest.raises(RuntimeError):
            await service.place_bet("table", "alice", 30)

        assert service.wallet.get_balance("alice") == 100
        assert game.bets == {}
        assert game.current_bettor == "alice"


class TestCancel:
    """Tests for abandoning undealt games."""

    @pytest.mark.asyncio
    async def test_cancel_refunds_bets(self, service, repository):
        await service.create_game("table", "alice")
        await service.join("table", "bob")
        await service.start_betting("table", "alice")
        await service.place_bet("table", "alice", 10)

        await service.cancel("table", "alice")

        assert service.wallet.get_balance("alice") == 100
        assert service.wallet.get_transactions("alice")[0].transaction_type is (
            TransactionType.REFUND
        )
        assert await repository.get_active_game("table") is None
        assert "table" not in service.registry
        await service.create_game("table", "carol")

    @pytest.mark.asyncio
    async def test_only_seated_players_cancel(self, service, repository):
        await service.create_game("table", "alice")

        with pytest.raises(PlayerNotFoundError):
            await service.cancel("table", "mallory")

        assert await repository.get_active_game("table") is not None
        assert "table" in service.registry

    @pytest.mark.asyncio
    async def test_cannot_cancel_after_deal(self, service, repository):
        await stack_shoe(repository, "10S", "10D", "7H", "9C")
        await seat_and_bet(service, {"alice": 10})
        await service.start_dealing("table", "alice")

        with pytest.raises(WrongPhaseError):
            await service.cancel("table", "alice")


class TestPlay:
    """Tests for whole games through the service."""

    @pytest.mark.asyncio
    async def test_losing_game(self, service, repository):
        await stack_shoe(repository, "10S", "10D", "7H", "9C")
        await seat_and_bet(service, {"alice": 10})

        update = await service.start_dealing("table", "alice")
        assert update.game.phase is GamePhase.SPECIAL_BETS
        await service.decline_special_bet("table", "alice")
        update = await service.stand("table", "alice")

        assert update.completed
        assert update.result.hands[0].outcome is Outcome.LOSE
        assert service.wallet.get_balance("alice") == 90
        assert await repository.get_active_game("table") is None
        assert "table" not in service.registry

    @pytest.mark.asyncio
    async def test_blackjack_on_the_deal(self, service):
        await service.repository.save_shoe("table", stacked_deck("AS", "10D", "KH", "9C"))
        await seat_and_bet(service, {"alice": 100})

        update = await service.start_dealing("table", "alice")

        assert update.completed
        assert update.result.hands[0].payout == 250
        assert service.wallet.get_balance("alice") == 250

    @pytest.mark.asyncio
    async def test_hit_reports_card(self, service, repository):
        await stack_shoe(repository, "10S", "10D", "2H", "9C", "5C")
        await seat_and_bet(service, {"alice": 10})
        await service.start_dealing("table", "alice")
        await service.decline_special_bet("table", "alice")

        update = await service.hit("table", "alice")

        assert update.card == cards("5C")[0]
        assert not update.completed
        stored = await repository.get_active_game("table")
        assert stored.hands["alice"].score == 17

    @pytest.mark.asyncio
    async def test_double_down_through_service(self, service, repository):
        await stack_shoe(repository, "5S", "10D", "6H", "7C", "10C")
        await seat_and_bet(service, {"alice": 20})
        await service.start_dealing("table", "alice")

        update = await service.double_down("table", "alice")

        assert update.card == cards("10C")[0]
        assert update.completed
        assert update.result.hands[0].outcome is Outcome.WIN
        # 100 - 20 bet - 20 double + 80 credit
        assert service.wallet.get_balance("alice") == 140

    @pytest.mark.asyncio
    async def test_split_through_service(self, service, repository):
        await stack_shoe(repository, "8S", "10D", "8H", "9C", "3C", "2D")
        await seat_and_bet(service, {"alice": 10})
        await service.start_dealing("table", "alice")

        update = await service.split("table", "alice")

        assert update.hand.hand_id == "alice_split"
        assert update.game.player_order == ("alice", "alice_split")

    @pytest.mark.asyncio
    async def test_insurance_through_service(self, service, repository):
        await stack_shoe(repository, "10S", "AD", "9H", "KC")
        await seat_and_bet(service, {"alice": 100})
        await service.start_dealing("table", "alice")

        update = await service.place_insurance("table", "alice")
        assert update.amount == 50

        update = await service.stand("table", "alice")
        assert update.completed
        # 100 - 100 bet + 100 loan - 50 insurance + 150 insurance credit
        assert service.wallet.get_balance("alice") == 200

    @pytest.mark.asyncio
    async def test_force_complete_settles(self, service, repository):
        await stack_shoe(repository, "10S", "10D", "9H", "7C")
        await seat_and_bet(service, {"alice": 10})
        await service.start_dealing("table", "alice")

        update = await service.force_complete("table", "alice")

        assert update.completed
        assert update.result.hands[0].outcome is Outcome.WIN
        assert service.wallet.get_balance("alice") == 110

    @pytest.mark.asyncio
    async def test_reshuffle_reported_once(self, repository, rng):
        service = GameService(repository, WalletService(), rng=rng)
        await stack_shoe(repository, "10S", "10D", "7H", "9C")
        await seat_and_bet(service, {"alice": 10})

        update = await service.start_dealing("table", "alice")
        assert update.was_shuffled
        assert update.game.deck.cards_remaining == 312 - 4

        game = await service.get_game("table")
        assert game.was_shuffled is False

    @pytest.mark.asyncio
    async def test_table_actions_need_a_seat(self, service, repository):
        await stack_shoe(repository, "10S", "10D", "9H", "7C")
        await service.create_game("table", "alice")

        with pytest.raises(PlayerNotFoundError):
            await service.start_betting("table", "mallory")
        await service.start_betting("table", "alice")
        await service.place_bet("table", "alice", 10)

        with pytest.raises(PlayerNotFoundError):
            await service.start_dealing("table", "mallory")
        await service.start_dealing("table", "alice")

        with pytest.raises(PlayerNotFoundError):
            await service.force_complete("table", "mallory")
        game = await service.get_game("table")
        assert game.phase is GamePhase.SPECIAL_BETS


class TestShoeAndHistory:
    """Tests for what a finished game leaves behind."""

    @pytest.mark.asyncio
    async def test_next_game_continues_the_shoe(self, service, repository):
        await stack_shoe(repository, "AS", "10D", "KH", "9C", "2S", "3S", "4S", "5S")
        await seat_and_bet(service, {"alice": 10})
        await service.start_dealing("table", "alice")

        update = await service.create_game("table", "alice")

        assert update.game.deck.cards == cards("2S", "3S", "4S", "5S")

    @pytest.mark.asyncio
    async def test_history(self, service, repository):
        for channel in ("one", "two"):
            await stack_shoe(repository, "AS", "10D", "KH", "9C", channel_id=channel)
            await seat_and_bet(service, {"alice": 10}, channel_id=channel)
            await service.start_dealing(channel, "alice")

        player = await service.get_player_history("alice")
        assert [r.channel_id for r in player] == ["two", "one"]

        channel = await service.get_channel_history("one")
        assert len(channel) == 1
        assert channel[0].for_player("alice")[0].outcome is Outcome.BLACKJACK
        assert await service.get_player_history("alice", limit=1) == player[:1]
