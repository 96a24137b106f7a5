"""
Event Processors for the Fractal Trend Trader

- TradeScheduler: runs one evaluation cycle per TICK and places orders

Examples:
    >>> from src.core.event_bus import EventBus
    >>> from src.core.event_processor import EventOrchestrator
    >>> from src.core.ticker import Ticker
    >>> from src.processors import TradeScheduler
    >>>
    >>> bus = EventBus()
    >>> await bus.start()
    >>> orchestrator = EventOrchestrator(bus)
    >>> orchestrator.register(TradeScheduler(bus, gateway, evaluator, executor, config))
    >>> orchestrator.register(Ticker(bus, config.tick_interval_seconds, config.symbol))
    >>> await orchestrator.start_all()
"""

from .trade_scheduler import TradeScheduler

__all__ = [
    "TradeScheduler",
]
