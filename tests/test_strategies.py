"""
Tests for the regime-conditioned and percentile-threshold strategies.
"""

import pytest

from synthrex.forecast_stats import (
    DriftStats,
    MarketRegime,
    MergedPercentiles,
    RegimeClassification,
    RollingStats,
    VolatilityTier
)
from synthrex.signal_engine import (
    PercentileThresholdStrategy,
    RegimeConditionedStrategy,
    SignalDirection,
    SignalType
)

from factories import BASE_TIME, LADDER_100, create_flat


def create_regime(regime: MarketRegime, confidence: float = 0.8) -> RegimeClassification:
    return RegimeClassification(regime=regime, confidence=confidence, vol_norm=0.5)


def create_ladder(values=None) -> MergedPercentiles:
    return MergedPercentiles(
        target_time=BASE_TIME,
        anchor_time=BASE_TIME,
        values=dict(values or LADDER_100),
        snapshots_used=7
    )


@pytest.fixture
def stats():
    return RollingStats(drift=DriftStats(mean=0.01, std=0.005), bias=0.0)


class TestContrarian:
    """Test contrarian policy in trending regimes."""

    def test_short_on_positive_tilt(self):
        strategy = RegimeConditionedStrategy()
        signal = strategy.contrarian(MarketRegime.TREND_DOWN, 100.0, 102.0, 0.0)

        assert signal.direction == SignalDirection.SHORT
        assert signal.signal_type == SignalType.CONTRARIAN
        assert signal.tilt == pytest.approx(0.02)
        assert signal.strength == pytest.approx(0.02 / 0.03)

    def test_long_on_negative_tilt(self):
        strategy = RegimeConditionedStrategy()
        signal = strategy.contrarian(MarketRegime.TREND_UP, 100.0, 98.0, 0.0)

        assert signal.direction == SignalDirection.LONG
        assert signal.strength == pytest.approx(0.02 / 0.03)

    def test_counter_trend_cases_noted(self):
        strategy = RegimeConditionedStrategy()
        short_in_uptrend = strategy.contrarian(MarketRegime.TREND_UP, 100.0, 102.0, 0.0)
        long_in_downtrend = strategy.contrarian(MarketRegime.TREND_DOWN, 100.0, 98.0, 0.0)

        assert short_in_uptrend.direction == SignalDirection.SHORT
        assert "counter-trend" in short_in_uptrend.reason
        assert long_in_downtrend.direction == SignalDirection.LONG
        assert "counter-trend" in long_in_downtrend.reason

    def test_strength_saturates(self):
        strategy = RegimeConditionedStrategy()
        signal = strategy.contrarian(MarketRegime.TREND_UP, 100.0, 110.0, 0.0)
        assert signal.strength == 1.0

    def test_bias_correction(self):
        strategy = RegimeConditionedStrategy()
        # Forecast historically 1% too high → tilt shrinks below TAU
        signal = strategy.contrarian(MarketRegime.TREND_UP, 100.0, 102.0, 0.01)
        assert signal.direction == SignalDirection.NEUTRAL
        assert signal.tilt == pytest.approx(0.01)

    def test_inside_threshold(self):
        strategy = RegimeConditionedStrategy()
        signal = strategy.contrarian(MarketRegime.TREND_UP, 100.0, 101.0, 0.0)
        assert signal.direction == SignalDirection.NEUTRAL
        assert signal.strength == 0.0


class TestRangeBand:
    """Test band breakout policy in RANGE regime."""

    def test_long_below_band(self):
        signal = RegimeConditionedStrategy().range_band(100.0, 100.5, 103.0)
        assert signal.direction == SignalDirection.LONG
        assert signal.signal_type == SignalType.RANGE_BAND
        assert signal.strength == pytest.approx(100 * 0.005 / 2)

    def test_short_above_band(self):
        signal = RegimeConditionedStrategy().range_band(100.0, 95.0, 99.0)
        assert signal.direction == SignalDirection.SHORT
        assert signal.strength == pytest.approx(0.5)

    def test_inside_band(self):
        signal = RegimeConditionedStrategy().range_band(100.0, 99.0, 101.0)
        assert signal.direction == SignalDirection.NEUTRAL

    def test_edge_within_eps(self):
        # q10 above price but inside EPS
        signal = RegimeConditionedStrategy().range_band(100.0, 100.04, 101.0)
        assert signal.direction == SignalDirection.NEUTRAL


class TestRegimeConditionedGenerate:
    """Test regime dispatch."""

    def test_choppy_neutral(self, stats):
        snap = create_flat(BASE_TIME, 100.0, 110.0)
        signal = RegimeConditionedStrategy().generate(
            create_regime(MarketRegime.CHOPPY), 100.0, snap, stats
        )
        assert signal.direction == SignalDirection.NEUTRAL
        assert "CHOPPY" in signal.reason

    def test_no_regime_neutral(self, stats):
        snap = create_flat(BASE_TIME, 100.0, 110.0)
        signal = RegimeConditionedStrategy().generate(None, 100.0, snap, None)
        assert signal.direction == SignalDirection.NEUTRAL
        assert "Insufficient history" in signal.reason

    def test_no_snapshot_neutral(self, stats):
        signal = RegimeConditionedStrategy().generate(
            create_regime(MarketRegime.TREND_UP), 100.0, None, stats
        )
        assert signal.direction == SignalDirection.NEUTRAL

    def test_trend_uses_contrarian(self, stats):
        snap = create_flat(BASE_TIME, 100.0, 103.0)
        signal = RegimeConditionedStrategy().generate(
            create_regime(MarketRegime.TREND_UP), 100.0, snap, stats
        )
        assert signal.signal_type == SignalType.CONTRARIAN
        assert signal.direction == SignalDirection.SHORT

    def test_range_uses_band(self, stats):
        snap = create_flat(BASE_TIME, 100.0, 100.0, q10=97.0, q90=99.0)
        signal = RegimeConditionedStrategy().generate(
            create_regime(MarketRegime.RANGE), 100.0, snap, stats
        )
        assert signal.signal_type == SignalType.RANGE_BAND
        assert signal.direction == SignalDirection.SHORT


class TestPercentileThresholdStrategy:
    """Test volatility-tiered percentile triggers."""

    def test_very_low_long_scenario(self):
        # P20=95, P50=100, P80=105, P15=94.5
        signal = PercentileThresholdStrategy().generate(94.0, 15.0, create_ladder())

        assert signal.direction == SignalDirection.LONG
        assert signal.tier == VolatilityTier.VERY_LOW
        assert signal.stop_loss <= 94.0 * 0.995
        assert signal.stop_loss == pytest.approx(93.53)
        assert signal.take_profit == 100.0
        assert signal.risk_reward == pytest.approx(6.0 / 0.47)
        assert 0.5 <= signal.strength <= 1.0

    def test_short_uses_percentile_stop_when_wider(self):
        # LOW tier: SHORT >= P85 (106), stop max(P90=108, 107*1.01=108.07)
        signal = PercentileThresholdStrategy().generate(107.0, 30.0, create_ladder())

        assert signal.direction == SignalDirection.SHORT
        assert signal.tier == VolatilityTier.LOW
        assert signal.stop_loss == pytest.approx(108.07)
        assert signal.stop_loss > 107.0
        assert signal.take_profit == 100.0

    def test_long_stop_below_entry(self):
        # HIGH tier: LONG <= P5 (90), stop min(P1=88, 89*0.98=87.22)
        signal = PercentileThresholdStrategy().generate(89.0, 80.0, create_ladder())

        assert signal.direction == SignalDirection.LONG
        assert signal.tier == VolatilityTier.HIGH
        assert signal.stop_loss == pytest.approx(87.22)
        assert signal.stop_loss < 89.0

    @pytest.mark.parametrize("volatility", [5.0, 25.0, 50.0, 90.0])
    @pytest.mark.parametrize("price", [87.99, 112.01, 50.0, 500.0])
    def test_outside_bounds_always_wait(self, volatility, price):
        signal = PercentileThresholdStrategy().generate(price, volatility, create_ladder())
        assert signal.direction == SignalDirection.WAIT
        assert "outside forecast bounds" in signal.reason

    def test_no_trigger(self):
        signal = PercentileThresholdStrategy().generate(100.0, 15.0, create_ladder())
        assert signal.direction == SignalDirection.WAIT
        assert signal.stop_loss is None

    def test_tier_changes_trigger(self):
        strategy = PercentileThresholdStrategy()
        # 93 is <= P20 (VERY_LOW fires) but > P10 (MEDIUM does not)
        assert strategy.generate(93.0, 10.0, create_ladder()).direction == SignalDirection.LONG
        assert strategy.generate(93.0, 50.0, create_ladder()).direction == SignalDirection.WAIT

    def test_missing_inputs_wait(self):
        strategy = PercentileThresholdStrategy()
        assert strategy.generate(94.0, 15.0, None).direction == SignalDirection.WAIT
        assert strategy.generate(94.0, None, create_ladder()).direction == SignalDirection.WAIT

    def test_strength_grows_with_depth(self):
        strategy = PercentileThresholdStrategy()
        shallow = strategy.generate(94.9, 15.0, create_ladder())
        deep = strategy.generate(89.0, 15.0, create_ladder())
        assert shallow.strength < deep.strength
