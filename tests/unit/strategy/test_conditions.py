"""
Unit tests for the condition state machine.

Tests cover:
- Pre-check reset for each direction
- Gate ordering and stickiness
- Fast and slow break paths
- Fractal lookback index
- Gate ordering over randomized tick sequences
"""

import random

import pytest

from src.core.models import Direction, FractalType
from src.strategy.conditions import (
    BreakDepth,
    ConditionState,
    ConditionStateMachine,
    IndicatorSnapshot,
    advance,
    has_broken_slow,
    passes_precheck,
)
from tests.helpers import make_candles


def snap(close, ema20=100.0, ema50=95.0, ema100=90.0, fractal_long=False, fractal_short=False):
    """Snapshot with LONG-ordered EMAs by default."""
    return IndicatorSnapshot(
        close=close,
        ema20=ema20,
        ema50=ema50,
        ema100=ema100,
        fractal_long=fractal_long,
        fractal_short=fractal_short,
    )


def short_snap(close, fractal_short=False):
    """Snapshot with SHORT-ordered EMAs."""
    return snap(close, ema20=90.0, ema50=95.0, ema100=100.0, fractal_short=fractal_short)


class TestConditionState:
    """Test gate flag container."""

    def test_initially_not_ready(self):
        state = ConditionState()
        assert state.is_ready is False
        assert not any(state.snapshot().values())

    def test_ready_requires_all_gate_groups(self):
        state = ConditionState(
            ema_ordered=True,
            price_broke_slow=True,
            fractal_confirmed=True,
            crossed_slow_back=True,
        )
        assert state.is_ready is True
        assert state.triggering_depth is BreakDepth.SLOW

    def test_fast_path_takes_precedence(self):
        state = ConditionState(
            ema_ordered=True,
            price_broke_fast=True,
            price_broke_slow=True,
            fractal_confirmed=True,
            crossed_fast_back=True,
        )
        assert state.triggering_depth is BreakDepth.FAST

    def test_reset_clears_everything(self):
        state = ConditionState(ema_ordered=True, price_broke_fast=True, fractal_confirmed=True)
        state.reset()
        assert state == ConditionState()


class TestPredicates:
    """Test per-direction predicates."""

    def test_precheck_long_uses_ema100(self):
        assert passes_precheck(Direction.LONG, snap(91.0))
        assert not passes_precheck(Direction.LONG, snap(89.0))

    def test_precheck_short_uses_ema20(self):
        assert passes_precheck(Direction.SHORT, short_snap(89.0))
        assert not passes_precheck(Direction.SHORT, short_snap(91.0))

    def test_slow_break_is_close_below_ema50_for_both(self):
        assert has_broken_slow(Direction.LONG, snap(94.0))
        assert has_broken_slow(Direction.SHORT, short_snap(89.0))
        assert not has_broken_slow(Direction.SHORT, snap(96.0))


class TestAdvanceLong:
    """Test LONG gate progression."""

    def test_full_fast_path(self):
        state = ConditionState()

        assert advance(Direction.LONG, state, snap(105.0)) is False
        assert state.ema_ordered

        assert advance(Direction.LONG, state, snap(98.0)) is False
        assert state.price_broke_fast and not state.price_broke_slow

        assert advance(Direction.LONG, state, snap(99.0, fractal_long=True)) is False
        assert state.fractal_confirmed

        assert advance(Direction.LONG, state, snap(101.0)) is True
        assert state.triggering_depth is BreakDepth.FAST

    def test_slow_path(self):
        state = ConditionState(ema_ordered=True)

        advance(Direction.LONG, state, snap(94.0, ema20=100.0, ema50=95.0, ema100=90.0))
        assert state.price_broke_fast and state.price_broke_slow

    def test_slow_only_break_triggers_on_ema50_cross(self):
        state = ConditionState(ema_ordered=True, price_broke_slow=True, fractal_confirmed=True)

        assert advance(Direction.LONG, state, snap(101.0)) is True
        assert state.crossed_slow_back
        assert state.price_broke_fast is False
        assert state.triggering_depth is BreakDepth.SLOW

    def test_gates_are_sticky(self):
        state = ConditionState()
        advance(Direction.LONG, state, snap(105.0))

        # EMAs lose their order but the pre-check still passes
        advance(Direction.LONG, state, snap(98.0, ema20=92.0, ema50=95.0, ema100=90.0))

        assert state.ema_ordered is True

    def test_precheck_failure_resets_all_gates(self):
        state = ConditionState(ema_ordered=True, price_broke_fast=True, fractal_confirmed=True)

        assert advance(Direction.LONG, state, snap(89.0, fractal_long=True)) is False
        assert state == ConditionState()

    def test_fractal_ignored_before_price_break(self):
        state = ConditionState()
        advance(Direction.LONG, state, snap(105.0, fractal_long=True))

        assert state.ema_ordered
        assert state.fractal_confirmed is False

    def test_break_not_evaluated_before_ordering(self):
        state = ConditionState()
        advance(Direction.LONG, state, snap(95.0, ema20=96.0, ema50=97.0, ema100=90.0))

        assert state.ema_ordered is False
        assert state.price_broke is False

    def test_wrong_fractal_type_ignored(self):
        state = ConditionState(ema_ordered=True, price_broke_fast=True)
        advance(Direction.LONG, state, snap(98.0, fractal_short=True))

        assert state.fractal_confirmed is False


class TestAdvanceShort:
    """Test SHORT gate progression."""

    def test_slow_path_completes_with_fractal(self):
        state = ConditionState()

        advance(Direction.SHORT, state, short_snap(85.0))
        assert state.ema_ordered
        # close < EMA50 always holds for SHORT once the pre-check passes
        assert state.price_broke_slow is True
        assert state.price_broke_fast is False

        # The slow re-cross (close < EMA50) holds as soon as the fractal confirms
        assert advance(Direction.SHORT, state, short_snap(85.0, fractal_short=True)) is True
        assert state.fractal_confirmed
        assert state.crossed_slow_back
        assert state.triggering_depth is BreakDepth.SLOW

    def test_precheck_failure_resets(self):
        state = ConditionState(ema_ordered=True, price_broke_slow=True)

        advance(Direction.SHORT, state, short_snap(92.0))

        assert state == ConditionState()


class TestIndicatorSnapshot:
    """Test snapshot construction from candles."""

    def test_reads_fractal_at_lookback_index(self):
        candles = make_candles([10.0] * 8)
        candles[5] = candles[5].with_fractals([FractalType.DOWN])

        snapshot = IndicatorSnapshot.from_candles(
            candles, [1.0], [2.0], [3.0], fractal_period=2
        )

        assert snapshot.fractal_long is True
        assert snapshot.fractal_short is False
        assert snapshot.close == 10.0
        assert (snapshot.ema20, snapshot.ema50, snapshot.ema100) == (1.0, 2.0, 3.0)

    def test_other_indices_ignored(self):
        candles = make_candles([10.0] * 8)
        candles[6] = candles[6].with_fractals([FractalType.UP])

        snapshot = IndicatorSnapshot.from_candles(
            candles, [1.0], [2.0], [3.0], fractal_period=2
        )

        assert snapshot.fractal_short is False


class TestConditionStateMachine:
    """Test per-direction state ownership."""

    def test_directions_are_independent(self):
        machine = ConditionStateMachine()

        machine.advance(Direction.LONG, snap(105.0))

        assert machine.state(Direction.LONG).ema_ordered is True
        assert machine.state(Direction.SHORT).ema_ordered is False

    def test_reset_one_direction(self):
        machine = ConditionStateMachine()
        machine.state(Direction.LONG).ema_ordered = True
        machine.state(Direction.SHORT).ema_ordered = True

        machine.reset(Direction.LONG)

        assert machine.state(Direction.LONG).ema_ordered is False
        assert machine.state(Direction.SHORT).ema_ordered is True


class TestGateChain:
    """Test that gates never skip states over arbitrary tick sequences."""

    LEVELS = [88.0, 92.0, 95.0, 98.0, 100.0, 102.0, 105.0, 108.0, 112.0]

    def random_snapshot(self, rng):
        return snap(
            rng.choice(self.LEVELS),
            ema20=rng.choice(self.LEVELS[2:7]),
            ema50=rng.choice(self.LEVELS[2:7]),
            ema100=rng.choice(self.LEVELS[2:7]),
            fractal_long=rng.random() < 0.3,
            fractal_short=rng.random() < 0.3,
        )

    @pytest.mark.parametrize("direction", list(Direction))
    @pytest.mark.parametrize("seed", [1, 7, 42, 2024])
    def test_later_gate_implies_earlier_gates(self, direction, seed):
        rng = random.Random(seed)
        state = ConditionState()
        reached_ready = False

        for _ in range(2000):
            advance(direction, state, self.random_snapshot(rng))

            if state.crossed_back:
                assert state.fractal_confirmed
            if state.fractal_confirmed:
                assert state.price_broke
            if state.price_broke:
                assert state.ema_ordered
            reached_ready = reached_ready or state.is_ready
            if state.is_ready:
                state.reset()

        assert reached_ready
