"""Builders shared by the test suite."""

from hypothesis import strategies as st

from core.cards import Card, Deck, Rank, Suit
from core.hand import Hand
from core.game import BlackjackGame


def cards(*codes: str) -> list[Card]:
    """Cards from codes such as ``"AS"``, ``"10H"``."""
    return [Card.from_string(code) for code in codes]


def stacked_deck(*codes: str) -> Deck:
    """A deck that deals ``codes`` in order."""
    return Deck(cards=cards(*codes))


def hand_of(*codes: str, **fields) -> Hand:
    """A hand holding the given cards."""
    return Hand(cards=cards(*codes), **fields)


def seat_and_bet(game: BlackjackGame, bets: dict[str, int]) -> BlackjackGame:
    """Seat players and take their bets in order."""
    for player_id in bets:
        game.add_player(player_id)
    game.start_betting()
    for player_id, amount in bets.items():
        game.place_bet(player_id, amount)
    return game


def play_to_dealing(game: BlackjackGame, bets: dict[str, int]) -> BlackjackGame:
    """Seat players, take their bets and deal."""
    seat_and_bet(game, bets)
    game.start_dealing()
    return game


@st.composite
def card_strategy(draw):
    """Generate a random card."""
    rank = draw(st.sampled_from(list(Rank)))
    suit = draw(st.sampled_from(list(Suit)))
    return Card(rank, suit)
