"""Error taxonomy for the game engine and wallet ledger.

Validation errors (``InvalidActionError``) are rejections of a user action;
the game is left exactly as it was. Resource errors (``ResourceError``)
mean an action could not be carried out for lack of cards or funds; they
also leave no partial effect behind. ``InvariantError`` signals a bug.
"""


class GameError(Exception):
    """Base class for all engine errors."""


class InvalidActionError(GameError):
    """A user action that is not allowed right now."""


class WrongPhaseError(InvalidActionError):
    """The action is not valid in the game's current phase."""

    def __init__(self, action: str, phase: object) -> None:
        self.action = action
        self.phase = phase
        super().__init__(f"Cannot {action} during {phase}")


class IllegalTransitionError(InvalidActionError):
    """A phase transition outside the transition table was requested."""

    def __init__(self, trigger: str, phase: object) -> None:
        self.trigger = trigger
        self.phase = phase
        super().__init__(f"Transition '{trigger}' is not allowed from {phase}")


class NotPlayerTurnError(InvalidActionError):
    """The acting participant does not hold the current turn."""

    def __init__(self, player_id: str) -> None:
        self.player_id = player_id
        super().__init__(f"It is not {player_id}'s turn")


class HandFinishedError(InvalidActionError):
    """The hand has already stood or busted."""


class NotEligibleError(InvalidActionError):
    """The hand does not qualify for the requested special bet."""

    def __init__(self, bet: str, hand_id: str) -> None:
        self.bet = bet
        self.hand_id = hand_id
        super().__init__(f"Hand {hand_id} is not eligible for {bet}")


class PlayerNotFoundError(InvalidActionError):
    """The participant is not part of this game."""


class AlreadyJoinedError(InvalidActionError):
    """The participant has already joined this game."""


class MaxPlayersReachedError(InvalidActionError):
    """The table is full."""


class NoPlayersError(InvalidActionError):
    """The game has no participants."""


class InvalidBetError(InvalidActionError):
    """The bet amount is outside the table limits."""


class AlreadyBetError(InvalidActionError):
    """The participant has already placed a bet this game."""


class NotAllBetsPlacedError(InvalidActionError):
    """Dealing requires every participant to have placed a bet."""


class GameInProgressError(InvalidActionError):
    """A game is already running in this channel or has moved past joining."""


class GameNotFoundError(InvalidActionError):
    """No active game exists for the channel."""


class ResourceError(GameError):
    """An action could not be completed for lack of a resource."""


class DeckExhaustedError(ResourceError):
    """The deck ran out of cards while a card was mandatory."""

    def __init__(self, needed: int, remaining: int) -> None:
        self.needed = needed
        self.remaining = remaining
        super().__init__(f"Deck exhausted: needed {needed} card(s), {remaining} left")


class InsufficientFundsError(ResourceError):
    """The wallet balance cannot cover a debit."""

    def __init__(self, user_id: str, required: int, available: int) -> None:
        self.user_id = user_id
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient funds for {user_id}: required {required}, available {available}"
        )


class WalletError(Exception):
    """Base class for wallet ledger errors other than insufficient funds."""


class NegativeAmountError(WalletError):
    """Wallet amounts must be positive."""


class InvalidRepaymentError(WalletError):
    """The loan repayment is not allowed."""


class InvariantError(RuntimeError):
    """Engine state is impossible; this is a programming error."""
