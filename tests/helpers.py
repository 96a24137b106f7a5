"""
Test data builders and fakes shared across the test suite.
"""

from typing import List, Sequence

from src.core.models import Candle


def make_candle(close: float, index: int = 0, high: float = None, low: float = None) -> Candle:
    """Build a one-minute candle around a close; high/low default to close +/- 0.5."""
    open_time = 1700000000000 + index * 60000
    return Candle(
        open_time=open_time,
        open=close,
        high=close + 0.5 if high is None else high,
        low=close - 0.5 if low is None else low,
        close=close,
        volume=100.0,
        close_time=open_time + 59999,
    )


def make_candles(closes: Sequence[float]) -> List[Candle]:
    return [make_candle(close, i) for i, close in enumerate(closes)]


def make_kline_row(close: float, index: int = 0) -> list:
    """Raw exchange kline row, as strings the way the API returns them."""
    open_time = 1700000000000 + index * 60000
    return [
        open_time, str(close), str(close + 0.5), str(close - 0.5), str(close),
        "100.0", open_time + 59999, "1000.0", 10, "50.0", "500.0",
    ]


def position_row(symbol: str = "XRPUSDT", amount: str = "0", side: str = "LONG") -> dict:
    return {
        "symbol": symbol,
        "positionSide": side,
        "positionAmt": amount,
        "entryPrice": "0.6",
        "markPrice": "0.61",
        "unRealizedProfit": "0.0",
        "liquidationPrice": "0",
        "leverage": "10",
        "updateTime": 1700000000000,
    }


def order_payload(order_id: int, order_type: str = "MARKET", side: str = "BUY") -> dict:
    return {
        "orderId": order_id,
        "symbol": "XRPUSDT",
        "status": "NEW",
        "side": side,
        "positionSide": "LONG",
        "type": order_type,
        "clientOrderId": f"client-{order_id}",
    }


class FakeResponse:
    """Minimal stand-in for aiohttp.ClientResponse used as an async context manager."""

    def __init__(self, status: int = 200, payload=None, error: Exception = None):
        self.status = status
        self._payload = payload
        self._error = error

    async def json(self, content_type=None):
        if self._error is not None:
            raise self._error
        return self._payload

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """Records requests and replays queued responses in order."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []
        self.closed = False

    def request(self, method, url, headers=None):
        self.calls.append({"method": method, "url": url, "headers": headers})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def close(self):
        self.closed = True
