"""Game events for the event system."""

from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from typing import Any, Callable, Iterator


class EventType(Enum):
    """Types of game events."""

    # Lobby events
    PLAYER_JOINED = auto()
    BETTING_OPENED = auto()
    BET_PLACED = auto()

    # Card events
    SHOE_SHUFFLED = auto()
    CARD_DEALT = auto()

    # Special bet events
    SPECIAL_BETS_OFFERED = auto()
    DOUBLE_DOWN = auto()
    SPLIT = auto()
    INSURANCE_TAKEN = auto()
    SPECIAL_BET_DECLINED = auto()

    # Player action events
    PLAYER_HIT = auto()
    PLAYER_STAND = auto()
    PLAYER_BUSTS = auto()
    TURN_ADVANCED = auto()

    # Dealer events
    DEALER_HITS = auto()
    DEALER_STANDS = auto()
    DEALER_BUSTS = auto()

    # Settlement events
    GAME_COMPLETED = auto()
    PAYOUT_CREDITED = auto()


@dataclass(frozen=True)
class GameEvent:
    """
    Immutable game event.

    Events let the presentation layer observe the engine; they carry no
    authority over game state.
    """

    event_type: EventType
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)

    def __str__(self) -> str:
        return f"{self.event_type.name}: {self.data}"


# Type alias for event handlers
EventHandler = Callable[[GameEvent], None]


class EventEmitter:
    """
    Simple event emitter for game events.

    Allows subscribing to specific event types or all events.
    """

    def __init__(self) -> None:
        """Initialize the event emitter."""
        self._handlers: dict[EventType | None, list[EventHandler]] = {}
        self._event_history: list[GameEvent] = []
        self._pending: list[GameEvent] | None = None

    def subscribe(
        self,
        handler: EventHandler,
        event_type: EventType | None = None,
    ) -> None:
        """
        Subscribe to events.

        Args:
            handler: Function to call when event occurs
            event_type: Specific event type to subscribe to, or None for all events
        """
        self._handlers.setdefault(event_type, []).append(handler)

    def unsubscribe(
        self,
        handler: EventHandler,
        event_type: EventType | None = None,
    ) -> None:
        """Remove a handler; unknown handlers are ignored."""
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event: GameEvent) -> None:
        """
        Emit an event to all subscribers.

        Inside a ``deferred`` block the event is held until the block completes.

        Args:
            event: The event to emit
        """
        if self._pending is not None:
            self._pending.append(event)
            return
        self._dispatch(event)

    def _dispatch(self, event: GameEvent) -> None:
        self._event_history.append(event)

        for handler in self._handlers.get(event.event_type, []):
            handler(event)

        # Catch-all handlers
        for handler in self._handlers.get(None, []):
            handler(event)

    def emit_new(
        self,
        event_type: EventType,
        **data: Any,
    ) -> GameEvent:
        """
        Create and emit a new event.

        Args:
            event_type: Type of event
            **data: Event data

        Returns:
            The created event
        """
        event = GameEvent(event_type=event_type, data=data)
        self.emit(event)
        return event

    @contextmanager
    def deferred(self) -> Iterator[None]:
        """
        Hold events emitted inside the block until it completes.

        Held events are delivered in order when the block exits cleanly and
        dropped when it raises. A nested block shares the outermost buffer,
        so nothing is delivered before the outermost block completes. If a
        handler raises during delivery, the events are removed from history
        and the error propagates.
        """
        if self._pending is not None:
            mark = len(self._pending)
            try:
                yield
            except Exception:
                del self._pending[mark:]
                raise
            return

        self._pending = []
        try:
            yield
            pending = self._pending
        finally:
            self._pending = None

        mark = len(self._event_history)
        try:
            for event in pending:
                self._dispatch(event)
        except Exception:
            del self._event_history[mark:]
            raise

    @property
    def history(self) -> list[GameEvent]:
        """Return the event history."""
        return self._event_history.copy()

    def clear_history(self) -> None:
        """Clear the event history."""
        self._event_history.clear()
