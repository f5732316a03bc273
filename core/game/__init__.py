"""Game engine and state management."""

from core.game.events import GameEvent, EventType
from core.game.state import GamePhase
from core.game.rules import RuleSet
from core.game.engine import BlackjackGame
from core.game.payout import GameResult, HandResult, Outcome

__all__ = [
    "GameEvent",
    "EventType",
    "GamePhase",
    "RuleSet",
    "BlackjackGame",
    "GameResult",
    "HandResult",
    "Outcome",
]
