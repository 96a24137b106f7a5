"""
Indicator engine: Exponential Moving Averages and Williams Fractals.

Pure functions over closed-candle series. No state, no I/O. Callers remove
the trailing, still-forming candle before calling into this module.
"""

from typing import Dict, List, Sequence

from ..core.errors import InsufficientData, InvalidInput
from ..core.models import Candle, Fractal, FractalType

DEFAULT_FRACTAL_PERIOD = 2
EMA_PERIODS = (20, 50, 100)


def compute_ema(closes: Sequence[float], period: int) -> List[float]:
    """
    Calculate the Exponential Moving Average of a close-price series.

    The series is seeded with the first close (not a simple moving average)
    and recurses forward with k = 2 / (period + 1):

        ema[i] = close[i] * k + ema[i - 1] * (1 - k)

    Args:
        closes: Close prices, oldest first
        period: EMA period, at least 1

    Returns:
        EMA values aligned index-for-index with closes

    Raises:
        InvalidInput: If closes is empty or period < 1

    Examples:
        >>> compute_ema([10.0, 20.0], 1)
        [10.0, 20.0]
        >>> compute_ema([10.0, 20.0, 30.0], 3)
        [10.0, 15.0, 22.5]
    """
    if len(closes) == 0:
        raise InvalidInput("closes must not be empty")
    if period < 1:
        raise InvalidInput(f"period must be >= 1, got {period}")

    k = 2 / (period + 1)
    ema = [float(closes[0])]
    for close in closes[1:]:
        ema.append(close * k + ema[-1] * (1 - k))
    return ema


def compute_ema_series(
    closes: Sequence[float],
    periods: Sequence[int] = EMA_PERIODS
) -> Dict[int, List[float]]:
    """Compute one EMA series per period, keyed by period."""
    return {period: compute_ema(closes, period) for period in periods}


def _is_unique_extremum(values: Sequence[float], center: int, extremum: float) -> bool:
    """True when values[center] is the only value in the window equal to extremum."""
    return values[center] == extremum and values.count(extremum) == 1


def detect_fractals(
    candles: Sequence[Candle],
    period: int = DEFAULT_FRACTAL_PERIOD
) -> List[Fractal]:
    """
    Detect Williams Fractals in a closed-candle series.

    Scans indices period .. len(candles) - period - 1. Each index is the
    center of a window of 2 * period + 1 candles. The center is an "up"
    fractal when its high is the window maximum and no other candle in the
    window shares that high; "down" is the same test on lows. Ties void
    the marker. A candle can carry both markers.

    Args:
        candles: Closed candles, oldest first
        period: Candles on each side of the center

    Returns:
        Fractals ordered by index (up before down at the same index)

    Raises:
        InvalidInput: If period < 1
        InsufficientData: If len(candles) < 2 * period + 1
    """
    if period < 1:
        raise InvalidInput(f"period must be >= 1, got {period}")

    required = 2 * period + 1
    if len(candles) < required:
        raise InsufficientData(required=required, available=len(candles))

    highs = [candle.high for candle in candles]
    lows = [candle.low for candle in candles]
    fractals: List[Fractal] = []

    for i in range(period, len(candles) - period):
        window_highs = highs[i - period:i + period + 1]
        window_lows = lows[i - period:i + period + 1]

        if _is_unique_extremum(window_highs, period, max(window_highs)):
            fractals.append(Fractal(index=i, type=FractalType.UP, value=highs[i]))

        if _is_unique_extremum(window_lows, period, min(window_lows)):
            fractals.append(Fractal(index=i, type=FractalType.DOWN, value=lows[i]))

    return fractals


def attach_fractals(
    candles: Sequence[Candle],
    period: int = DEFAULT_FRACTAL_PERIOD
) -> List[Candle]:
    """
    Return copies of the candles with their fractal markers attached.

    Raises:
        InsufficientData: If the series is too short for the fractal window
    """
    markers: Dict[int, List[FractalType]] = {}
    for fractal in detect_fractals(candles, period):
        markers.setdefault(fractal.index, []).append(fractal.type)

    return [
        candle.with_fractals(markers[i]) if i in markers else candle
        for i, candle in enumerate(candles)
    ]
