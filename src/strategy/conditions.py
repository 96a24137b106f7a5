"""
Condition state machine for trend-pullback entries.

One ConditionState per trade direction records six sticky gates:

1. ema_ordered        EMA20/50/100 in trend order for the direction
2. price_broke_fast   price broke through EMA20 against the trend
2'. price_broke_slow  price broke through EMA50 against the trend
3. fractal_confirmed  reversal fractal at the lookback index
4. crossed_fast_back  price re-crossed EMA20 in the trade direction
4'. crossed_slow_back price re-crossed EMA50 in the trade direction

Once set, a gate stays set until the whole state is reset. The only reset
trigger is the pre-check (close vs EMA100 for LONG, close vs EMA20 for
SHORT); when it fails every gate is cleared in one step and no gate is
evaluated on that tick.

Gate outcomes are booleans. Nothing in this module raises to signal a
gate result.
"""

from dataclasses import dataclass, fields
from enum import Enum
from typing import Sequence

from loguru import logger

from ..core.models import Candle, Direction, FractalType


class BreakDepth(Enum):
    """Which moving average the pullback broke and re-crossed."""

    FAST = "ema20"
    SLOW = "ema50"


@dataclass
class ConditionState:
    """
    Mutable gate flags for one direction.

    Created once per direction at start-up and mutated every tick by
    advance(). Process-lifetime state, never persisted.

    Examples:
        >>> state = ConditionState()
        >>> state.is_ready
        False
        >>> state.ema_ordered = True
        >>> state.reset()
        >>> state.ema_ordered
        False
    """

    ema_ordered: bool = False
    price_broke_fast: bool = False
    price_broke_slow: bool = False
    fractal_confirmed: bool = False
    crossed_fast_back: bool = False
    crossed_slow_back: bool = False

    @property
    def price_broke(self) -> bool:
        return self.price_broke_fast or self.price_broke_slow

    @property
    def crossed_back(self) -> bool:
        return self.crossed_fast_back or self.crossed_slow_back

    @property
    def is_ready(self) -> bool:
        """All gates satisfied: ordered, broke, confirmed and crossed back."""
        return (
            self.ema_ordered
            and self.price_broke
            and self.fractal_confirmed
            and self.crossed_back
        )

    @property
    def triggering_depth(self) -> BreakDepth:
        """
        Depth whose re-cross completed the setup.

        The fast path takes precedence; the slow path only triggers when
        price never re-crossed EMA20.
        """
        if self.crossed_fast_back:
            return BreakDepth.FAST
        if self.crossed_slow_back:
            return BreakDepth.SLOW
        return BreakDepth.FAST if self.price_broke_fast else BreakDepth.SLOW

    def reset(self) -> None:
        """Clear every gate."""
        for field in fields(self):
            setattr(self, field.name, False)

    def snapshot(self) -> dict:
        return {field.name: getattr(self, field.name) for field in fields(self)}


@dataclass(frozen=True)
class IndicatorSnapshot:
    """
    Latest indicator values for one tick.

    Attributes:
        close: Close of the latest closed candle
        ema20, ema50, ema100: Latest EMA values
        fractal_long: A "down" fractal sits at the lookback index
        fractal_short: An "up" fractal sits at the lookback index
    """

    close: float
    ema20: float
    ema50: float
    ema100: float
    fractal_long: bool = False
    fractal_short: bool = False

    @classmethod
    def from_candles(
        cls,
        candles: Sequence[Candle],
        ema20: Sequence[float],
        ema50: Sequence[float],
        ema100: Sequence[float],
        fractal_period: int
    ) -> "IndicatorSnapshot":
        """
        Build a snapshot from closed candles with fractals attached.

        The fractal is read at index len(candles) - 1 - fractal_period, the
        most recent candle that has a full window on its right.
        """
        lookback = len(candles) - 1 - fractal_period
        fractal_candle = candles[lookback] if lookback >= 0 else None
        return cls(
            close=candles[-1].close,
            ema20=ema20[-1],
            ema50=ema50[-1],
            ema100=ema100[-1],
            fractal_long=bool(
                fractal_candle and fractal_candle.has_fractal(FractalType.DOWN)
            ),
            fractal_short=bool(
                fractal_candle and fractal_candle.has_fractal(FractalType.UP)
            ),
        )


# Per-direction gate predicates. Each takes the tick snapshot and returns
# whether the gate's condition holds right now.

def passes_precheck(direction: Direction, s: IndicatorSnapshot) -> bool:
    """Reset trigger: LONG needs close > EMA100, SHORT needs close < EMA20."""
    if direction is Direction.LONG:
        return s.close > s.ema100
    return s.close < s.ema20


def is_ema_ordered(direction: Direction, s: IndicatorSnapshot) -> bool:
    if direction is Direction.LONG:
        return s.ema20 > s.ema50 > s.ema100
    return s.ema20 < s.ema50 < s.ema100


def has_broken_fast(direction: Direction, s: IndicatorSnapshot) -> bool:
    if direction is Direction.LONG:
        return s.close < s.ema20
    return s.close > s.ema20


def has_broken_slow(direction: Direction, s: IndicatorSnapshot) -> bool:
    # Both directions test close < EMA50.
    return s.close < s.ema50


def has_reversal_fractal(direction: Direction, s: IndicatorSnapshot) -> bool:
    if direction is Direction.LONG:
        return s.fractal_long
    return s.fractal_short


def has_crossed_back(direction: Direction, depth: BreakDepth, s: IndicatorSnapshot) -> bool:
    level = s.ema20 if depth is BreakDepth.FAST else s.ema50
    if direction is Direction.LONG:
        return s.close > level
    return s.close < level


def advance(direction: Direction, state: ConditionState, s: IndicatorSnapshot) -> bool:
    """
    Advance the gates of one direction by one tick.

    Gates are evaluated in order and a gate is only evaluated once its
    predecessor is set, so a later gate can never be set while an earlier
    one is clear.

    Args:
        direction: Direction the state belongs to
        state: The direction's ConditionState, mutated in place
        s: Indicator values of the current tick

    Returns:
        True when the state is ready to trade after this tick
    """
    if not passes_precheck(direction, s):
        if any(state.snapshot().values()):
            logger.debug(f"{direction.value} pre-check failed, resetting gates")
        state.reset()
        return False

    if not state.ema_ordered and is_ema_ordered(direction, s):
        state.ema_ordered = True
        logger.debug(f"{direction.value} gate 1: EMAs ordered")

    if state.ema_ordered:
        if not state.price_broke_fast and has_broken_fast(direction, s):
            state.price_broke_fast = True
            logger.debug(f"{direction.value} gate 2: price broke EMA20")
        if not state.price_broke_slow and has_broken_slow(direction, s):
            state.price_broke_slow = True
            logger.debug(f"{direction.value} gate 2': price broke EMA50")

    if state.price_broke and not state.fractal_confirmed:
        if has_reversal_fractal(direction, s):
            state.fractal_confirmed = True
            logger.debug(f"{direction.value} gate 3: reversal fractal confirmed")

    if state.fractal_confirmed and not state.crossed_back:
        if state.price_broke_fast:
            if has_crossed_back(direction, BreakDepth.FAST, s):
                state.crossed_fast_back = True
                logger.debug(f"{direction.value} gate 4: re-crossed EMA20")
        elif state.price_broke_slow:
            if has_crossed_back(direction, BreakDepth.SLOW, s):
                state.crossed_slow_back = True
                logger.debug(f"{direction.value} gate 4': re-crossed EMA50")

    return state.is_ready


class ConditionStateMachine:
    """
    Owns one ConditionState per direction and advances them tick by tick.

    Examples:
        >>> machine = ConditionStateMachine()
        >>> snapshot = IndicatorSnapshot(close=90.0, ema20=100.0,
        ...                              ema50=95.0, ema100=92.0)
        >>> machine.advance(Direction.LONG, snapshot)
        False
        >>> machine.state(Direction.LONG).ema_ordered
        False
    """

    def __init__(self):
        self._states = {direction: ConditionState() for direction in Direction}

    def state(self, direction: Direction) -> ConditionState:
        return self._states[direction]

    def advance(self, direction: Direction, snapshot: IndicatorSnapshot) -> bool:
        return advance(direction, self._states[direction], snapshot)

    def reset(self, direction: Direction) -> None:
        """Consume a direction's setup, e.g. after its trade was placed."""
        self._states[direction].reset()
        logger.info(f"{direction.value} condition state reset")
