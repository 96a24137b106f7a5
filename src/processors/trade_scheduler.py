"""
Trade Scheduler

The periodic driver of the trading core. On every TICK event it:
1. Checks for an open position on the symbol (skips the tick if any)
2. Fetches closed candles with fractal markers
3. Advances the LONG and SHORT condition states
4. On a ready signal, enters the position and attaches the bracket

Ticks never overlap. A tick arriving while the previous one is still running
is dropped, not queued, because the condition states must not be mutated by
two ticks at once.
"""

import asyncio
from typing import Any, Dict, Optional

from loguru import logger

from ..core.config import TraderConfig
from ..core.event_bus import Event, EventBus, EventType
from ..core.event_processor import EventProcessor
from ..core.errors import (
    InsufficientData,
    OrderRejected,
    UnprotectedPositionError,
    UpstreamError,
)
from ..core.models import Direction, TradeSignal
from ..data.binance_gateway import BinanceGateway
from ..execution.order_executor import OrderExecutor
from ..strategy.evaluator import SignalEvaluator


class TradeScheduler(EventProcessor):
    """
    Runs one evaluation cycle per TICK event.

    Error handling per tick:
        - InsufficientData: tick skipped, condition states untouched
        - UpstreamError before evaluation: tick aborted, states untouched,
          next tick re-evaluates from the same states
        - Entry OrderRejected/UpstreamError: ERROR published; the ready
          state is kept so the next tick can retry the entry
        - Bracket leg failure: CRITICAL log and POSITION_UNPROTECTED

    Args:
        event_bus: Bus delivering TICK events and receiving outcome events
        gateway: Connected exchange gateway
        evaluator: Signal evaluator owning both condition states
        executor: Order execution pipeline
        config: Trading configuration (symbol, interval, quantity, ...)

    Examples:
        >>> scheduler = TradeScheduler(bus, gateway, SignalEvaluator(2),
        ...                            OrderExecutor(gateway), config)
        >>> await scheduler.start()
        >>> await bus.publish(Event(EventType.TICK, {"sequence": 1}, "Ticker"))
    """

    def __init__(
        self,
        event_bus: EventBus,
        gateway: BinanceGateway,
        evaluator: SignalEvaluator,
        executor: OrderExecutor,
        config: TraderConfig
    ):
        super().__init__(event_bus)
        self.gateway = gateway
        self.evaluator = evaluator
        self.executor = executor
        self.config = config
        self._tick_task: Optional[asyncio.Task] = None
        self.ticks_run = 0
        self.ticks_dropped = 0

    def _register_handlers(self) -> None:
        self.event_bus.subscribe(EventType.TICK, self._on_tick)
        logger.debug("TradeScheduler registered for TICK events")

    def _unregister_handlers(self) -> None:
        self.event_bus.unsubscribe(EventType.TICK, self._on_tick)
        logger.debug("TradeScheduler unregistered from TICK events")

    async def _on_stop(self) -> None:
        # Let an in-flight tick finish; cancelling could strand an entry
        # without its bracket.
        if self._tick_task and not self._tick_task.done():
            logger.info("Waiting for in-flight tick to complete")
            await asyncio.gather(self._tick_task, return_exceptions=True)
        self._tick_task = None

    @property
    def is_busy(self) -> bool:
        return self._tick_task is not None and not self._tick_task.done()

    async def _on_tick(self, event: Event) -> None:
        """Start a tick in the background, or drop it if one is running."""
        sequence = event.data.get("sequence", 0)

        if self.is_busy:
            self.ticks_dropped += 1
            logger.warning(f"Tick {sequence} dropped: previous tick still running")
            await self._publish(EventType.TICK_SKIPPED, {"sequence": sequence, "reason": "busy"})
            return

        self._tick_task = asyncio.create_task(self._run_guarded(sequence))

    async def _run_guarded(self, sequence: int) -> None:
        try:
            await self.run_tick(sequence)
        except Exception as e:
            logger.exception(f"Tick {sequence} aborted: {e}")
            await self._publish(EventType.ERROR, {
                "error_type": type(e).__name__,
                "error_message": str(e),
                "component": "TradeScheduler",
            })

    async def run_tick(self, sequence: int = 0) -> Optional[TradeSignal]:
        """
        Run one evaluation cycle to completion.

        Returns:
            The TradeSignal that was acted on, or None when nothing traded
        """
        symbol = self.config.symbol
        self.ticks_run += 1
        logger.debug(f"Tick {sequence} started for {symbol}")

        try:
            position = await self.gateway.fetch_position_risk(symbol)
            if position is not None:
                logger.info(
                    f"Tick {sequence}: {position.position_side} position open on {symbol} "
                    f"(amount={position.position_amt}, entry={position.entry_price}), skipping"
                )
                await self._publish(
                    EventType.TICK_SKIPPED,
                    {"sequence": sequence, "reason": "position_open"}
                )
                return None

            candles = await self.gateway.fetch_candles(
                symbol, self.config.interval, self.config.candle_limit
            )
        except InsufficientData as e:
            logger.warning(f"Tick {sequence} skipped: {e}")
            await self._publish(
                EventType.TICK_SKIPPED,
                {"sequence": sequence, "reason": "insufficient_data"}
            )
            return None
        except UpstreamError as e:
            logger.error(f"Tick {sequence} aborted on upstream error: {e}")
            await self._publish(EventType.ERROR, {
                "error_type": "UpstreamError",
                "error_message": str(e),
                "component": "BinanceGateway",
            })
            return None

        signals = [self.evaluator.evaluate(direction, candles) for direction in Direction]
        ready = [signal for signal in signals if signal.ready]
        if not ready:
            return None

        # Single position per symbol: LONG wins if both are ready.
        signal = ready[0]
        if len(ready) > 1:
            logger.warning(f"Tick {sequence}: both directions ready, trading {signal.direction.value}")

        await self._publish(EventType.ENTRY_SIGNAL, {
            "symbol": symbol,
            "direction": signal.direction.value,
            "trade_price": signal.trade_price,
            "profit_stop_price": signal.profit_stop_price,
            "loss_stop_price": signal.loss_stop_price,
        })

        await self._execute(signal)
        return signal

    async def _execute(self, signal: TradeSignal) -> None:
        symbol = self.config.symbol
        direction = signal.direction
        quantity = self.config.order_quantity

        try:
            entry = await self.executor.enter_position(
                direction,
                symbol,
                quantity,
                price=signal.trade_price,
                order_type=self.config.entry_type,
            )
        except (OrderRejected, UpstreamError) as e:
            logger.error(f"{direction.value} entry on {symbol} failed: {e}")
            await self._publish(EventType.ERROR, {
                "error_type": type(e).__name__,
                "error_message": str(e),
                "component": "OrderExecutor",
            })
            return

        await self._publish(EventType.ORDER_PLACED, {
            "order_id": entry.order_id,
            "symbol": symbol,
            "direction": direction.value,
            "quantity": quantity,
            "status": entry.status,
        })

        try:
            take_profit, stop_loss = await self.executor.attach_bracket(
                symbol,
                direction,
                quantity,
                signal.profit_stop_price,
                signal.loss_stop_price,
            )
        except UnprotectedPositionError as e:
            logger.critical(f"UNPROTECTED {direction.value} position on {symbol}: {e}")
            await self._publish(EventType.POSITION_UNPROTECTED, {
                "symbol": symbol,
                "direction": direction.value,
                "take_profit_order_id": e.take_profit.order_id if e.take_profit else None,
                "stop_loss_order_id": e.stop_loss.order_id if e.stop_loss else None,
                "failures": [str(f) for f in e.failures],
            })
            return
        finally:
            # The setup is consumed once the entry is on the exchange.
            self.evaluator.reset(direction)

        await self._publish(EventType.BRACKET_PLACED, {
            "symbol": symbol,
            "direction": direction.value,
            "take_profit_order_id": take_profit.order_id,
            "stop_loss_order_id": stop_loss.order_id,
        })

    async def _publish(self, event_type: EventType, data: Dict[str, Any]) -> None:
        if not self.event_bus.is_running:
            return
        await self.event_bus.publish(Event(event_type, data, source="TradeScheduler"))
