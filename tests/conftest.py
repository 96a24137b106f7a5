"""
Pytest configuration and shared fixtures for Fractal Trend Trader tests.

This module provides:
- Common fixtures for EventBus and TraderConfig
- Candle series fixtures
"""

import pytest
import pytest_asyncio
from typing import List

from src.core.config import TraderConfig
from src.core.event_bus import EventBus


@pytest.fixture
def rising_closes() -> List[float]:
    """120 closes rising one unit per candle: EMA20 > EMA50 > EMA100."""
    return [100.0 + i for i in range(120)]


@pytest.fixture
def trader_config() -> TraderConfig:
    return TraderConfig(symbol="XRPUSDT", interval="1m", order_quantity=5)


@pytest_asyncio.fixture
async def running_bus():
    """Started EventBus, stopped after the test."""
    bus = EventBus()
    await bus.start()
    yield bus
    await bus.stop()
