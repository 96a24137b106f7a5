"""
Event Bus System for the Fractal Trend Trader

This module provides the publish/subscribe backbone of the trading system:
event type definitions, the Event record, and the async EventBus that
delivers events to subscribed handlers.

Ticks enter the system as TICK events; the outcome of each tick (signal,
orders, failures) leaves it as events other components can observe.
"""

from enum import Enum
from typing import Any, Callable, Dict, List, Optional
from dataclasses import dataclass
from datetime import datetime, timezone
import asyncio
from loguru import logger


class EventType(Enum):
    """
    Enumeration of all event types in the trading system.

    Event values are string literals to keep logs readable. Components use
    these members rather than raw strings.

    Examples:
        >>> EventType.TICK
        <EventType.TICK: 'tick'>
        >>> EventType.TICK.value
        'tick'
    """

    TICK = "tick"
    """
    Emitted by the Ticker on every scheduling interval.

    Payload: sequence (int), symbol.
    Use case: drives one evaluation cycle of the TradeScheduler.
    """

    TICK_SKIPPED = "tick_skipped"
    """
    Emitted when a tick is dropped because the previous one is still running,
    or skipped because a position is already open.

    Payload: sequence, reason ('busy' | 'position_open' | 'insufficient_data').
    """

    ENTRY_SIGNAL = "entry_signal"
    """
    Emitted when a direction's condition state becomes ready.

    Payload: direction, trade_price, profit_stop_price, loss_stop_price.
    """

    ORDER_PLACED = "order_placed"
    """
    Emitted when the exchange acknowledges an entry order.

    Payload: order_id, symbol, direction, quantity, status.
    """

    BRACKET_PLACED = "bracket_placed"
    """
    Emitted when both bracket legs are acknowledged.

    Payload: symbol, direction, take_profit_order_id, stop_loss_order_id.
    """

    POSITION_UNPROTECTED = "position_unprotected"
    """
    High-severity event: the entry is open but at least one bracket leg
    failed, so the position has no stop-loss and/or take-profit.

    Payload: symbol, direction, take_profit_order_id, stop_loss_order_id
             (None for a failed leg), failures (list of messages).
    """

    ERROR = "error"
    """
    Emitted when a tick aborts on an error.

    Payload: error_type, error_message, component.
    """

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"<EventType.{self.name}: '{self.value}'>"


@dataclass
class Event:
    """
    Event data structure for the event bus system.

    Attributes:
        event_type (EventType): The type of event being emitted
        data (Dict[str, Any]): Event payload specific to the event type
        source (str): Component that emitted the event
        timestamp (datetime): When the event was created (UTC)

    Examples:
        >>> event = Event(
        ...     event_type=EventType.TICK,
        ...     data={'sequence': 1, 'symbol': 'XRPUSDT'},
        ...     source='Ticker'
        ... )
        >>> event.event_type
        <EventType.TICK: 'tick'>
    """

    event_type: EventType
    data: Dict[str, Any]
    source: str
    timestamp: datetime = None

    def __post_init__(self):
        """
        Validate event data and set timestamp if not provided.

        Raises:
            TypeError: If event_type is not EventType or data is not dict
        """
        if not isinstance(self.event_type, EventType):
            raise TypeError(
                f"event_type must be EventType enum, got {type(self.event_type).__name__}"
            )

        if not isinstance(self.data, dict):
            raise TypeError(
                f"data must be dict, got {type(self.data).__name__}"
            )

        if self.timestamp is None:
            self.timestamp = datetime.now(timezone.utc)

    def __str__(self) -> str:
        return f"Event({self.event_type.name} from {self.source} at {self.timestamp})"


class EventBus:
    """
    Central event bus for publish-subscribe event handling.

    Events published with publish() are queued and delivered in order by a
    background task started with start().
    Handlers must be coroutine functions.

    Args:
        handler_timeout (float, optional): Per-handler timeout in seconds.
            None (default) lets handlers run to completion, which is what the
            trading handlers need: an exchange call is never cut short by
            the bus.

    Examples:
        >>> bus = EventBus()
        >>> await bus.start()
        >>> bus.subscribe(EventType.ENTRY_SIGNAL, on_signal)
        >>> await bus.publish(Event(EventType.ENTRY_SIGNAL, {...}, 'TradeScheduler'))
        >>> await bus.stop()
    """

    def __init__(self, handler_timeout: Optional[float] = None):
        self._subscribers: Dict[EventType, List[Callable[[Event], Any]]] = {
            event_type: [] for event_type in EventType
        }
        self._handler_timeout = handler_timeout
        self._queue: asyncio.Queue = None  # Created in start() to use correct event loop
        self._running: bool = False
        self._task: asyncio.Task = None

    def subscribe(self, event_type: EventType, callback: Callable[[Event], Any]) -> None:
        """
        Subscribe to a specific event type.

        Raises:
            TypeError: If event_type is not an EventType enum member
        """
        if not isinstance(event_type, EventType):
            raise TypeError(f"event_type must be EventType enum, got {type(event_type)}")

        if callback not in self._subscribers[event_type]:
            self._subscribers[event_type].append(callback)

    def unsubscribe(self, event_type: EventType, callback: Callable[[Event], Any]) -> None:
        if callback in self._subscribers[event_type]:
            self._subscribers[event_type].remove(callback)

    def subscriber_count(self, event_type: EventType) -> int:
        return len(self._subscribers[event_type])

    async def publish(self, event: Event) -> None:
        """
        Queue an event for asynchronous delivery.

        Raises:
            TypeError: If event is not an Event instance
            RuntimeError: If event bus is not started
        """
        if not isinstance(event, Event):
            raise TypeError(f"event must be Event instance, got {type(event)}")

        if self._queue is None:
            raise RuntimeError("Event bus not started. Call start() first.")

        self._queue.put_nowait(event)

    async def start(self) -> None:
        """Start the background delivery task. Idempotent."""
        if self._running:
            return

        # Create queue in the current event loop to avoid "different loop" errors
        self._queue = asyncio.Queue()
        self._running = True
        self._task = asyncio.create_task(self._process_events())

    async def _process_events(self) -> None:
        """Deliver queued events until stopped and drained."""
        while True:
            event = None
            try:
                event = await asyncio.wait_for(self._queue.get(), timeout=0.1)
                await self._dispatch(event)

            except asyncio.TimeoutError:
                if not self._running and self._queue.empty():
                    break
                continue
            except Exception as e:
                logger.error(f"Error processing event: {e}")
            finally:
                if event is not None:
                    self._queue.task_done()

    async def _dispatch(self, event: Event) -> None:
        """
        Deliver one event to every subscriber.

        Handlers are coroutines and are awaited in subscription order.
        When handler_timeout is set, each handler is bounded by it.
        """
        handlers = list(self._subscribers[event.event_type])

        logger.debug(
            f"Dispatching event {event.event_type.value} to {len(handlers)} handler(s)"
        )

        for callback in handlers:
            try:
                call = callback(event)

                if self._handler_timeout is None:
                    await call
                else:
                    await asyncio.wait_for(call, timeout=self._handler_timeout)
            except asyncio.TimeoutError:
                logger.warning(
                    f"Handler {callback.__name__} for event {event.event_type.value} "
                    f"exceeded {self._handler_timeout}s timeout"
                )
            except Exception as e:
                logger.error(
                    f"Error in event subscriber {callback.__name__} "
                    f"for {event.event_type.value}: {e}"
                )

    async def stop(self) -> None:
        """Stop delivery after draining the queue (up to 5 seconds)."""
        if not self._running:
            return

        self._running = False

        try:
            await asyncio.wait_for(self._queue.join(), timeout=5.0)
        except asyncio.TimeoutError:
            logger.warning("Event queue did not drain within 5s timeout")

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass  # Expected when cancelling

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def queue_size(self) -> int:
        if self._queue is None:
            return 0
        return self._queue.qsize()
