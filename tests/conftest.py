"""Pytest fixtures for blackjack table tests."""

import pytest
from random import Random

from core.cards import Deck
from core.hand import Hand
from core.game import BlackjackGame, RuleSet
from core.wallet import WalletService
from tests.helpers import hand_of, stacked_deck


@pytest.fixture
def rng():
    """Seeded random number generator for reproducible tests."""
    return Random(42)


@pytest.fixture
def deck(rng):
    """A shuffled single deck."""
    return Deck.shuffled(num_decks=1, rng=rng)


@pytest.fixture
def rules():
    """Default ruleset."""
    return RuleSet()


@pytest.fixture
def stacked_rules():
    """Rules that never swap out a stacked deck for a fresh shoe."""
    return RuleSet(reshuffle_threshold=0)


@pytest.fixture
def stacked_game(stacked_rules, rng):
    """Factory: a game in channel ``table`` dealing the given cards in order."""

    def _make(*codes: str) -> BlackjackGame:
        return BlackjackGame(
            channel_id="table",
            rules=stacked_rules,
            deck=stacked_deck(*codes),
            rng=rng,
        )

    return _make


@pytest.fixture
def game(rng):
    """A new game instance with a shuffled shoe."""
    return BlackjackGame(channel_id="table", rng=rng)


@pytest.fixture
def wallet():
    """In-memory wallet service with the default starting balance."""
    return WalletService()


@pytest.fixture
def empty_hand():
    """An empty player hand."""
    return Hand()


@pytest.fixture
def blackjack_hand():
    """A natural blackjack hand."""
    return hand_of("AS", "KH")


@pytest.fixture
def soft_17_hand():
    """A soft 17 hand (A-6)."""
    return hand_of("AS", "6H")


@pytest.fixture
def hard_16_hand():
    """A hard 16 hand (10-6)."""
    return hand_of("10S", "6H")


@pytest.fixture
def pair_8s_hand():
    """A pair of 8s hand."""
    return hand_of("8S", "8H")

