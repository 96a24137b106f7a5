"""
Fractal Trend Trader - EMA and Fractal Trend Following for Binance USDT-M Futures

Each tick the trader fetches closed candles, checks an EMA trend filter, a
price break, a reversal fractal and a cross back, and when all gates pass it
enters a position and attaches a take-profit/stop-loss bracket.

Modules:
    core: Configuration, models, errors, event bus and ticker
    data: Exchange gateway and request signing
    strategy: Indicators, condition state machine and signal evaluation
    execution: Entry and bracket order placement
    processors: Tick-driven trade scheduler
"""

__version__ = "0.1.0"
__author__ = "Fractal Trend Trader Team"
