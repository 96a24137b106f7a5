"""
Periodic tick source.

Publishes a TICK event on a fixed interval. The ticker only fires; whether
a tick runs or is dropped is decided by its subscriber.
"""

import asyncio
from typing import Optional

from loguru import logger

from .event_bus import Event, EventBus, EventType
from .event_processor import EventProcessor


class Ticker(EventProcessor):
    """
    Publishes TICK events every interval_seconds while running.

    The first tick fires immediately after start().

    Args:
        event_bus: Bus to publish on; must be started
        interval_seconds: Seconds between ticks
        symbol: Symbol carried in the tick payload

    Examples:
        >>> ticker = Ticker(bus, interval_seconds=60, symbol="XRPUSDT")
        >>> await ticker.start()
        >>> # ... TICK events flow ...
        >>> await ticker.stop()
    """

    def __init__(self, event_bus: EventBus, interval_seconds: float, symbol: str = ""):
        super().__init__(event_bus)
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")

        self.interval_seconds = interval_seconds
        self.symbol = symbol
        self.sequence = 0
        self._task: Optional[asyncio.Task] = None

    def _register_handlers(self) -> None:
        # Publisher only
        pass

    def _unregister_handlers(self) -> None:
        pass

    async def _on_start(self) -> None:
        self._task = asyncio.create_task(self._run())
        logger.info(f"Ticker started ({self.interval_seconds}s interval)")

    async def _on_stop(self) -> None:
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                logger.debug("Ticker task cancelled")
        self._task = None

    async def _run(self) -> None:
        while True:
            self.sequence += 1
            await self.event_bus.publish(Event(
                EventType.TICK,
                {"sequence": self.sequence, "symbol": self.symbol},
                source="Ticker"
            ))
            await asyncio.sleep(self.interval_seconds)
