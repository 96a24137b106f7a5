"""
Event Processor Infrastructure

- EventProcessor: base class for components that react to bus events
- EventOrchestrator: starts and stops a set of processors together

The Ticker and the TradeScheduler are both processors sharing one bus.
"""

from abc import ABC, abstractmethod
from typing import List
from loguru import logger
from .event_bus import EventBus


class EventProcessor(ABC):
    """
    Base class for event processors.

    Lifecycle:
    1. Construction with the EventBus injected
    2. start() - runs _on_start(), then registers handlers
    3. Handlers react to events
    4. stop() - unregisters handlers, then runs _on_stop()

    Examples:
        >>> class TickLogger(EventProcessor):
        ...     def _register_handlers(self):
        ...         self.event_bus.subscribe(EventType.TICK, self._on_tick)
        ...
        ...     def _unregister_handlers(self):
        ...         self.event_bus.unsubscribe(EventType.TICK, self._on_tick)
        ...
        ...     async def _on_tick(self, event: Event):
        ...         logger.info(f"tick {event.data['sequence']}")
    """

    def __init__(self, event_bus: EventBus):
        self.event_bus = event_bus
        self._is_started = False

    async def start(self) -> None:
        """
        Start the processor. Idempotent.

        Raises:
            Exception: Whatever _on_start() or handler registration raised
        """
        if self._is_started:
            logger.debug(f"{self.__class__.__name__} already started")
            return

        logger.info(f"Starting {self.__class__.__name__}")

        try:
            await self._on_start()
            self._register_handlers()
            self._is_started = True
            logger.info(f"{self.__class__.__name__} started successfully")
        except Exception as e:
            logger.error(f"Failed to start {self.__class__.__name__}: {e}")
            raise

    async def stop(self) -> None:
        """Stop the processor. Idempotent; errors during cleanup are logged."""
        if not self._is_started:
            logger.debug(f"{self.__class__.__name__} already stopped")
            return

        logger.info(f"Stopping {self.__class__.__name__}")

        try:
            self._unregister_handlers()
            await self._on_stop()
            logger.info(f"{self.__class__.__name__} stopped successfully")
        except Exception as e:
            logger.error(f"Error during {self.__class__.__name__} shutdown: {e}")
        finally:
            self._is_started = False

    @abstractmethod
    def _register_handlers(self) -> None:
        """Subscribe handlers to the bus. Called by start() after _on_start()."""
        pass

    @abstractmethod
    def _unregister_handlers(self) -> None:
        """Unsubscribe the handlers registered in _register_handlers()."""
        pass

    async def _on_start(self) -> None:
        """Startup hook, runs before handlers are registered."""
        pass

    async def _on_stop(self) -> None:
        """Shutdown hook, runs after handlers are unregistered."""
        pass

    @property
    def is_running(self) -> bool:
        return self._is_started


class EventOrchestrator:
    """
    Starts processors in registration order and stops them in reverse.

    A processor that fails to start is logged and the others still start;
    only when every processor fails does start_all() raise.

    Examples:
        >>> orchestrator = EventOrchestrator(bus)
        >>> orchestrator.register(TradeScheduler(bus, gateway, evaluator, executor, config))
        >>> orchestrator.register(Ticker(bus, interval_seconds=60))
        >>> await orchestrator.start_all()
        >>> await orchestrator.stop_all()
    """

    def __init__(self, event_bus: EventBus):
        self.event_bus = event_bus
        self._processors: List[EventProcessor] = []

    def register(self, processor: EventProcessor) -> None:
        self._processors.append(processor)
        logger.info(
            f"Registered {processor.__class__.__name__} "
            f"({len(self._processors)} total processors)"
        )

    async def start_all(self) -> None:
        """
        Start all registered processors in order.

        Raises:
            RuntimeError: If every processor failed to start
        """
        logger.info(f"Starting {len(self._processors)} processor(s)")

        failed_count = 0
        for processor in self._processors:
            try:
                await processor.start()
            except Exception as e:
                logger.error(
                    f"Failed to start {processor.__class__.__name__}: {e}"
                )
                failed_count += 1

        if self._processors and failed_count == len(self._processors):
            raise RuntimeError("All processors failed to start")
        elif failed_count > 0:
            logger.warning(
                f"{failed_count} of {len(self._processors)} processors failed to start"
            )
        else:
            logger.info("All processors started successfully")

    async def stop_all(self) -> None:
        """Stop all registered processors in reverse order."""
        logger.info(f"Stopping {len(self._processors)} processor(s)")

        failed_count = 0
        for processor in reversed(self._processors):
            try:
                await processor.stop()
            except Exception as e:
                logger.error(
                    f"Failed to stop {processor.__class__.__name__}: {e}"
                )
                failed_count += 1

        if failed_count > 0:
            logger.warning(
                f"{failed_count} of {len(self._processors)} processors "
                f"failed to stop cleanly"
            )
        else:
            logger.info("All processors stopped successfully")

    @property
    def processor_count(self) -> int:
        return len(self._processors)

    @property
    def running_count(self) -> int:
        return sum(1 for p in self._processors if p.is_running)
