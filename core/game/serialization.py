"""JSON-safe dict forms of cards, hands, games and results."""

from dataclasses import asdict
from datetime import datetime
from typing import Any

from core.cards import Card, Deck
from core.hand import Hand, HandStatus
from core.game.engine import BlackjackGame
from core.game.payout import GameResult, HandResult, Outcome
from core.game.rules import RuleSet
from core.game.state import GamePhase


def card_to_str(card: Card) -> str:
    return card.code


def cards_to_list(cards: list[Card]) -> list[str]:
    return [card_to_str(card) for card in cards]


def cards_from_list(codes: list[str]) -> list[Card]:
    return [Card.from_string(code) for code in codes]


def hand_to_dict(hand: Hand) -> dict[str, Any]:
    return {
        "hand_id": hand.hand_id,
        "owner_id": hand.owner_id,
        "cards": cards_to_list(hand.cards),
        "status": hand.status.value,
        "score": hand.score,
        "bet": hand.bet,
        "is_doubled_down": hand.is_doubled_down,
        "double_down_bet": hand.double_down_bet,
        "is_split": hand.is_split,
        "split_sibling_id": hand.split_sibling_id,
        "parent_hand_id": hand.parent_hand_id,
        "has_insurance": hand.has_insurance,
        "insurance_bet": hand.insurance_bet,
    }


def hand_from_dict(data: dict[str, Any]) -> Hand:
    return Hand(
        hand_id=data["hand_id"],
        owner_id=data["owner_id"],
        cards=cards_from_list(data["cards"]),
        status=HandStatus(data["status"]),
        bet=data.get("bet", 0),
        is_doubled_down=data.get("is_doubled_down", False),
        double_down_bet=data.get("double_down_bet", 0),
        is_split=data.get("is_split", False),
        split_sibling_id=data.get("split_sibling_id"),
        parent_hand_id=data.get("parent_hand_id"),
        has_insurance=data.get("has_insurance", False),
        insurance_bet=data.get("insurance_bet", 0),
    )


def game_to_dict(game: BlackjackGame) -> dict[str, Any]:
    """Full engine state, shoe included."""
    return {
        "game_id": game.game_id,
        "channel_id": game.channel_id,
        "phase": game.phase.value,
        "rules": asdict(game.rules),
        "player_order": list(game.player_order),
        "hands": {hand_id: hand_to_dict(hand) for hand_id, hand in game.hands.items()},
        "dealer_hand": hand_to_dict(game.dealer_hand),
        "bets": dict(game.bets),
        "current_turn": game.current_turn,
        "current_betting_turn": game.current_betting_turn,
        "payouts_processed": game.payouts_processed,
        "was_shuffled": game.was_shuffled,
        "created_at": game.created_at.isoformat(),
        "deck": {"num_decks": game.deck.num_decks, "cards": cards_to_list(game.deck.cards)},
    }


def game_from_dict(data: dict[str, Any]) -> BlackjackGame:
    """Rebuild an engine from ``game_to_dict`` output."""
    rules = RuleSet(**data["rules"])
    deck = Deck(
        num_decks=data["deck"]["num_decks"],
        cards=cards_from_list(data["deck"]["cards"]),
    )
    game = BlackjackGame(
        channel_id=data["channel_id"],
        rules=rules,
        deck=deck,
        game_id=data["game_id"],
    )
    game.player_order = tuple(data["player_order"])
    game.hands = {hand_id: hand_from_dict(hand) for hand_id, hand in data["hands"].items()}
    game.dealer_hand = hand_from_dict(data["dealer_hand"])
    game.bets = dict(data["bets"])
    game.current_turn = data["current_turn"]
    game.current_betting_turn = data["current_betting_turn"]
    game.payouts_processed = data["payouts_processed"]
    game.was_shuffled = data.get("was_shuffled", False)
    game.created_at = datetime.fromisoformat(data["created_at"])
    game.machine.set_state(GamePhase(data["phase"]).value)
    return game


def game_view(game: BlackjackGame, reveal_dealer: bool | None = None) -> dict[str, Any]:
    """
    Public table view for presentation.

    The dealer's hole card stays hidden until the dealer plays, unless
    ``reveal_dealer`` says otherwise. The shoe is never included.
    """
    if reveal_dealer is None:
        reveal_dealer = game.phase in (GamePhase.DEALER, GamePhase.COMPLETE)

    dealer = hand_to_dict(game.dealer_hand)
    if not reveal_dealer and game.dealer_hand.cards:
        dealer["cards"] = dealer["cards"][:1]
        dealer["score"] = game.dealer_hand.cards[0].value
        dealer["hidden_cards"] = len(game.dealer_hand) - 1

    turn_id = game.current_turn_id
    return {
        "game_id": game.game_id,
        "channel_id": game.channel_id,
        "phase": game.phase.value,
        "player_order": list(game.player_order),
        "hands": [hand_to_dict(game.hands[hand_id]) for hand_id in game.player_order],
        "dealer_hand": dealer,
        "bets": dict(game.bets),
        "current_turn": turn_id,
        "current_bettor": game.current_bettor,
        "special_bets": game.available_special_bets(turn_id) if turn_id else [],
        "payouts_processed": game.payouts_processed,
        "cards_remaining": game.deck.cards_remaining,
    }


def hand_result_to_dict(result: HandResult) -> dict[str, Any]:
    return {
        "owner_id": result.owner_id,
        "hand_id": result.hand_id,
        "parent_hand_id": result.parent_hand_id,
        "cards": cards_to_list(result.cards),
        "score": result.score,
        "bet": result.bet,
        "double_down_bet": result.double_down_bet,
        "insurance_bet": result.insurance_bet,
        "outcome": result.outcome.value,
        "payout": result.payout,
        "insurance_payout": result.insurance_payout,
    }


def hand_result_from_dict(data: dict[str, Any]) -> HandResult:
    return HandResult(
        owner_id=data["owner_id"],
        hand_id=data["hand_id"],
        parent_hand_id=data.get("parent_hand_id"),
        cards=cards_from_list(data["cards"]),
        score=data["score"],
        bet=data["bet"],
        double_down_bet=data.get("double_down_bet", 0),
        insurance_bet=data.get("insurance_bet", 0),
        outcome=Outcome(data["outcome"]),
        payout=data["payout"],
        insurance_payout=data.get("insurance_payout", 0),
    )


def result_to_dict(result: GameResult) -> dict[str, Any]:
    return {
        "game_id": result.game_id,
        "channel_id": result.channel_id,
        "dealer_cards": cards_to_list(result.dealer_cards),
        "dealer_score": result.dealer_score,
        "hands": [hand_result_to_dict(hand) for hand in result.hands],
        "completed_at": result.completed_at.isoformat(),
    }


def result_from_dict(data: dict[str, Any]) -> GameResult:
    return GameResult(
        game_id=data["game_id"],
        channel_id=data["channel_id"],
        dealer_cards=cards_from_list(data["dealer_cards"]),
        dealer_score=data["dealer_score"],
        hands=[hand_result_from_dict(hand) for hand in data["hands"]],
        completed_at=datetime.fromisoformat(data["completed_at"]),
    )
