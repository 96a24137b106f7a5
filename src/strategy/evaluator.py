"""
Signal evaluator.

Feeds indicator output for the latest closed candles into the condition
state machine and turns a ready state into trade, take-profit and
stop-loss prices.
"""

from typing import Dict, Optional, Sequence, Tuple

from loguru import logger

from ..core.models import Candle, Direction, TradeSignal
from .conditions import BreakDepth, ConditionStateMachine, IndicatorSnapshot
from .indicators import DEFAULT_FRACTAL_PERIOD, compute_ema

# (take-profit, stop-loss) multipliers applied to the triggering EMA.
# SHORT take-profit sits 5% away, LONG only 1%.
EXIT_MULTIPLIERS: Dict[Direction, Tuple[float, float]] = {
    Direction.LONG: (1.01, 0.98),
    Direction.SHORT: (0.95, 1.01),
}


class SignalEvaluator:
    """
    Evaluates entry conditions for both directions.

    Holds the process-lifetime ConditionStateMachine; every call to
    evaluate() advances the state of one direction by one tick.

    Args:
        fractal_period: Fractal lookback used to pick the confirmation candle
        machine: State machine to drive; a fresh one by default

    Examples:
        >>> evaluator = SignalEvaluator(fractal_period=2)
        >>> signal = evaluator.evaluate(Direction.LONG, candles)
        >>> if signal.ready:
        ...     print(signal.trade_price, signal.profit_stop_price)
    """

    def __init__(
        self,
        fractal_period: int = DEFAULT_FRACTAL_PERIOD,
        machine: Optional[ConditionStateMachine] = None
    ):
        self.fractal_period = fractal_period
        self.machine = machine or ConditionStateMachine()

    def snapshot(self, candles: Sequence[Candle]) -> IndicatorSnapshot:
        """Compute EMA20/50/100 over the closed candles and read the lookback fractal."""
        closes = [candle.close for candle in candles]
        return IndicatorSnapshot.from_candles(
            candles,
            ema20=compute_ema(closes, 20),
            ema50=compute_ema(closes, 50),
            ema100=compute_ema(closes, 100),
            fractal_period=self.fractal_period,
        )

    def evaluate(self, direction: Direction, candles: Sequence[Candle]) -> TradeSignal:
        """
        Advance one direction with the latest closed candles.

        Args:
            direction: Direction to evaluate
            candles: Closed candles with fractal markers attached

        Returns:
            TradeSignal; prices are filled in only when ready
        """
        snapshot = self.snapshot(candles)
        ready = self.machine.advance(direction, snapshot)
        state = self.machine.state(direction)

        logger.debug(
            f"{direction.value} close={snapshot.close:.6f} "
            f"ema20={snapshot.ema20:.6f} ema50={snapshot.ema50:.6f} "
            f"ema100={snapshot.ema100:.6f} gates={state.snapshot()}"
        )

        if not ready:
            return TradeSignal(direction=direction)

        profit_stop, loss_stop = exit_prices(direction, state.triggering_depth, snapshot)
        signal = TradeSignal(
            direction=direction,
            ready=True,
            trade_price=snapshot.close,
            profit_stop_price=profit_stop,
            loss_stop_price=loss_stop,
        )
        logger.info(
            f"{direction.value} entry ready via {state.triggering_depth.value}: "
            f"price={signal.trade_price} take_profit={profit_stop} stop_loss={loss_stop}"
        )
        return signal

    def reset(self, direction: Direction) -> None:
        self.machine.reset(direction)


def exit_prices(
    direction: Direction,
    depth: BreakDepth,
    snapshot: IndicatorSnapshot
) -> Tuple[float, float]:
    """
    Take-profit and stop-loss levels for a ready setup.

    The multipliers apply to EMA50 when the deep break triggered the setup
    and to EMA20 otherwise.

    Returns:
        (profit_stop_price, loss_stop_price)

    Examples:
        >>> s = IndicatorSnapshot(close=101.0, ema20=100.0, ema50=90.0, ema100=80.0)
        >>> exit_prices(Direction.LONG, BreakDepth.FAST, s)
        (101.0, 98.0)
    """
    base = snapshot.ema50 if depth is BreakDepth.SLOW else snapshot.ema20
    profit_multiplier, loss_multiplier = EXIT_MULTIPLIERS[direction]
    return base * profit_multiplier, base * loss_multiplier
