"""Game phase enumeration."""

from enum import Enum


class GamePhase(Enum):
    """
    Game state machine phases.

    Flow: WAITING → BETTING → DEALING → [SPECIAL_BETS →] PLAYING → DEALER → COMPLETE
    """

    # Participants joining
    WAITING = "waiting"

    # Participants placing their bets in join order
    BETTING = "betting"

    # Initial cards being dealt
    DEALING = "dealing"

    # Double down / split / insurance offers, one entry of turn order at a time
    SPECIAL_BETS = "special_bets"

    # Hit / stand, one entry of turn order at a time
    PLAYING = "playing"

    # Dealer draws to 17
    DEALER = "dealer"

    # Hands compared, ready for settlement
    COMPLETE = "complete"

    def __str__(self) -> str:
        return self.name.replace("_", " ").title()


# Trigger name -> (source phases, destination phase)
TRANSITIONS: dict[str, tuple[tuple[GamePhase, ...], GamePhase]] = {
    "open_betting": ((GamePhase.WAITING,), GamePhase.BETTING),
    "begin_dealing": ((GamePhase.BETTING,), GamePhase.DEALING),
    "offer_special_bets": ((GamePhase.DEALING,), GamePhase.SPECIAL_BETS),
    "begin_play": ((GamePhase.DEALING,), GamePhase.PLAYING),
    "close_special_bets": ((GamePhase.SPECIAL_BETS,), GamePhase.PLAYING),
    "begin_dealer_turn": ((GamePhase.PLAYING,), GamePhase.DEALER),
    "force_dealer_turn": ((GamePhase.SPECIAL_BETS, GamePhase.PLAYING), GamePhase.DEALER),
    "settle": ((GamePhase.DEALER,), GamePhase.COMPLETE),
}


def is_valid_transition(from_phase: GamePhase, to_phase: GamePhase) -> bool:
    """
    Check if a phase transition appears in the transition table.

    Args:
        from_phase: Current phase
        to_phase: Desired phase

    Returns:
        True if some trigger moves from ``from_phase`` to ``to_phase``
    """
    return any(
        from_phase in sources and dest is to_phase
        for sources, dest in TRANSITIONS.values()
    )
