"""Tests for Card and Deck classes."""

from collections import Counter
from random import Random

import pytest
from hypothesis import given, settings, strategies as st

from core.cards import Card, Deck, Rank, Suit
from tests.helpers import cards


class TestCard:
    """Tests for the Card class."""

    def test_card_creation(self):
        """Test creating a card."""
        card = Card(Rank.ACE, Suit.SPADES)
        assert card.rank == Rank.ACE
        assert card.suit == Suit.SPADES

    def test_card_immutability(self):
        """Test that cards are immutable."""
        card = Card(Rank.ACE, Suit.SPADES)
        with pytest.raises(AttributeError):
            card.rank = Rank.KING

    def test_card_value(self):
        """Test card blackjack values."""
        assert Card(Rank.TWO, Suit.HEARTS).value == 2
        assert Card(Rank.TEN, Suit.HEARTS).value == 10
        assert Card(Rank.JACK, Suit.HEARTS).value == 10
        assert Card(Rank.QUEEN, Suit.HEARTS).value == 10
        assert Card(Rank.KING, Suit.HEARTS).value == 10
        assert Card(Rank.ACE, Suit.HEARTS).value == 11

    def test_card_is_ace(self):
        """Test ace detection."""
        assert Card(Rank.ACE, Suit.SPADES).is_ace
        assert not Card(Rank.KING, Suit.SPADES).is_ace

    def test_card_from_string(self):
        """Test creating cards from strings."""
        assert Card.from_string("AS") == Card(Rank.ACE, Suit.SPADES)
        assert Card.from_string("2H") == Card(Rank.TWO, Suit.HEARTS)
        assert Card.from_string("10D") == Card(Rank.TEN, Suit.DIAMONDS)
        assert Card.from_string("KC") == Card(Rank.KING, Suit.CLUBS)

    def test_card_from_string_with_symbols(self):
        """Test creating cards from strings with suit symbols."""
        assert Card.from_string("A♠") == Card(Rank.ACE, Suit.SPADES)
        assert Card.from_string("K♥") == Card(Rank.KING, Suit.HEARTS)

    def test_card_from_invalid_string(self):
        with pytest.raises(ValueError):
            Card.from_string("1X")
        with pytest.raises(ValueError):
            Card.from_string("Z")

    def test_card_str(self):
        """Test string representation."""
        assert str(Card(Rank.ACE, Suit.SPADES)) == "A♠"
        assert str(Card(Rank.TEN, Suit.HEARTS)) == "10♥"


class TestDeck:
    """Tests for the Deck class."""

    def test_new_deck_has_52_cards_per_deck(self):
        assert len(Deck()) == 52
        assert len(Deck(num_decks=6)) == 312

    def test_new_deck_is_unshuffled_and_deterministic(self):
        """Fresh decks are built in the same order every time."""
        first = Deck(num_decks=2).cards
        second = Deck(num_decks=2).cards
        assert first == second
        assert first[0] == Card(Rank.TWO, Suit.CLUBS)
        assert first[12] == Card(Rank.ACE, Suit.CLUBS)

    def test_each_deck_holds_every_card_once(self):
        counts = Counter(Deck(num_decks=3).cards)
        assert len(counts) == 52
        assert set(counts.values()) == {3}

    def test_zero_decks_rejected(self):
        with pytest.raises(ValueError):
            Deck(num_decks=0)

    def test_shuffle_is_reproducible_with_seed(self):
        first = Deck.shuffled(num_decks=1, rng=Random(7))
        second = Deck.shuffled(num_decks=1, rng=Random(7))
        assert first.cards == second.cards
        assert first.cards != Deck().cards

    def test_draw_takes_from_the_front(self):
        deck = Deck(cards=cards("AS", "KH", "2C"))
        assert deck.draw(2) == cards("AS", "KH")
        assert deck.cards == cards("2C")
        assert deck.cards_remaining == 1

    def test_draw_more_than_remaining_returns_the_rest(self):
        deck = Deck(cards=cards("AS", "KH"))
        assert deck.draw(5) == cards("AS", "KH")
        assert deck.cards_remaining == 0
        assert deck.draw(1) == []

    def test_draw_negative_rejected(self):
        with pytest.raises(ValueError):
            Deck().draw(-1)

    def test_draw_one(self):
        deck = Deck(cards=cards("QD"))
        assert deck.draw_one() == Card(Rank.QUEEN, Suit.DIAMONDS)
        assert deck.draw_one() is None

    def test_count_decreases_monotonically(self, deck):
        previous = deck.cards_remaining
        while deck.cards_remaining:
            deck.draw(3)
            assert deck.cards_remaining < previous
            previous = deck.cards_remaining

    def test_cards_property_is_a_copy(self, deck):
        snapshot = deck.cards
        snapshot.clear()
        assert deck.cards_remaining == 52

    @settings(max_examples=25, deadline=None)
    @given(num_decks=st.integers(min_value=1, max_value=8), seed=st.integers())
    def test_shuffle_is_a_permutation(self, num_decks, seed):
        """Shuffling keeps the same multiset of cards and the same size."""
        deck = Deck(num_decks=num_decks, rng=Random(seed))
        before = Counter(deck.cards)
        deck.shuffle()
        assert len(deck) == 52 * num_decks
        assert Counter(deck.cards) == before

    def test_code_reads_back(self):
        for card in Deck().cards:
            assert Card.from_string(card.code) == card
        assert Card(Rank.TEN, Suit.SPADES).code == "10S"
        assert Card.from_string("th") == Card(Rank.TEN, Suit.HEARTS)
