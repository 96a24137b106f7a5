"""
Exception hierarchy for the Fractal Trend Trader.

Every failure the trading core can surface derives from TraderError so the
scheduler can tell trading failures apart from programming errors:

- InvalidInput: bad arguments to the indicator engine
- InsufficientData: candle series too short for the fractal window
- UpstreamError: transport or HTTP failure reaching the exchange
- OrderRejected: the exchange declined a signed order
- SymbolNotFound: the symbol is not listed by the exchange
- UnprotectedPositionError: entry filled but a bracket leg failed
- ConfigError / CredentialError: start-up configuration problems
"""

from typing import Any, List, Optional


class TraderError(Exception):
    """Base class for all trading core errors."""
    pass


class InvalidInput(TraderError, ValueError):
    """
    Raised when the indicator engine receives unusable arguments.

    Fatal to the call and never retried.
    """
    pass


class InsufficientData(TraderError):
    """
    Raised when a candle series is too short for the requested window.

    The scheduler skips the tick for the affected direction without
    touching its ConditionState.
    """

    def __init__(self, required: int, available: int):
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient data: at least {required} candles are required, "
            f"got {available}"
        )


class UpstreamError(TraderError):
    """
    Raised when the exchange cannot be reached or answers with an HTTP error.

    Attributes:
        status: HTTP status code when the exchange answered, else None
        payload: Decoded response body when available
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        payload: Any = None
    ):
        self.status = status
        self.payload = payload
        super().__init__(message)


class OrderRejected(TraderError):
    """
    Raised when the exchange declines a signed order.

    Attributes:
        payload: Raw exchange response, e.g. {"code": -2019, "msg": "Margin is insufficient."}
        status: HTTP status code of the rejection
    """

    def __init__(self, payload: Any, status: Optional[int] = None):
        self.payload = payload
        self.status = status
        super().__init__(f"Order rejected by exchange (HTTP {status}): {payload}")

    @property
    def code(self) -> Optional[int]:
        """Exchange error code, if the payload carries one."""
        if isinstance(self.payload, dict):
            return self.payload.get("code")
        return None

    @property
    def msg(self) -> Optional[str]:
        """Exchange error message, if the payload carries one."""
        if isinstance(self.payload, dict):
            return self.payload.get("msg")
        return None


class SymbolNotFound(TraderError):
    """Raised when the exchange instrument list omits the configured symbol."""

    def __init__(self, symbol: str):
        self.symbol = symbol
        super().__init__(f"Symbol {symbol} not found in exchange info")


class UnprotectedPositionError(TraderError):
    """
    Raised when an entry is open but at least one bracket leg failed.

    The legs are placed independently, so one of them may have succeeded.

    Attributes:
        take_profit: OrderAck of the take-profit leg, or None if it failed
        stop_loss: OrderAck of the stop-loss leg, or None if it failed
        failures: Exceptions raised by the failed legs
    """

    def __init__(self, symbol: str, take_profit, stop_loss, failures: List[Exception]):
        self.symbol = symbol
        self.take_profit = take_profit
        self.stop_loss = stop_loss
        self.failures = failures
        failed = ", ".join(f"{type(f).__name__}: {f}" for f in failures)
        super().__init__(f"Position on {symbol} is unprotected: {failed}")


class ConfigError(TraderError):
    """Raised when config.yaml is missing or invalid."""
    pass


class CredentialError(TraderError):
    """Raised when API credentials are missing or look like placeholders."""
    pass
