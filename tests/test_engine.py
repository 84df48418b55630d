"""
End-to-end tests for the Forecast Signal Engine.
"""

import json
import math
from datetime import timedelta

import pytest

from synthrex.forecast_stats import MarketRegime
from synthrex.signal_engine import (
    ForecastSignalEngine,
    SignalDirection,
    SignalType,
    StrategyName
)
from synthrex.snapshot_store import SnapshotWriter

from factories import BASE_TIME, create_record, five_minute_times, write_snapshot_file


class MutableClock:
    """Test clock that can be advanced"""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


def create_engine(config, snapshot_count=301, price=100.0):
    """Engine over `snapshot_count` flat 5-minute snapshots; clock at the latest"""
    times = five_minute_times(snapshot_count)
    if times:
        write_snapshot_file(
            config.store.snapshot_file,
            {'BTC': [create_record(t, price) for t in times]}
        )
    clock = MutableClock(times[-1] if times else BASE_TIME)
    return ForecastSignalEngine(config, clock=clock), clock


class TestRegimeStrategy:
    """Test regime-conditioned analysis."""

    def test_range_short_tracked(self, engine_config):
        engine, _ = create_engine(engine_config)

        result = engine.evaluate("BTC", 115.0)

        assert result.regime.regime == MarketRegime.RANGE
        assert result.regime.confidence == 1.0
        assert result.direction == SignalDirection.SHORT
        assert result.regime_signal.signal_type == SignalType.RANGE_BAND
        assert result.stats.sample_size == 8
        assert result.volatility == 0.0
        assert result.volatility_estimated
        assert result.current_percentile == 99.0
        assert result.tracked_entry is not None

        log = engine.get_tracking_log()
        assert len(log) == 1
        assert log[0].entry_price == 115.0
        assert log[0].predicted_price == 100.0

    def test_report(self, engine_config):
        engine, _ = create_engine(engine_config)

        report = engine.analyze("BTC", 115.0)
        lines = report.splitlines()

        assert lines[0] == "SIGNAL: SHORT (regime)"
        assert lines[1] == "CURRENT_PRICE: 115.00"
        assert lines[2] == "CURRENT_PRICE_PERCENTILE: P99"
        assert lines[3].startswith("VOLATILITY: 0.00% (VERY_LOW) (estimated)")
        assert lines[4] == "REGIME: RANGE"
        assert lines[5] == "CONFIDENCE: 1.00"
        assert lines[6].startswith("DRIFT: ")
        assert lines[7].startswith("BIAS: ")
        assert lines[8] == "SIGNAL_STRENGTH: 1.00"
        assert lines[9].startswith("REASON: RANGE")
        assert lines[10].startswith("PERCENTILE_LADDER (merged 7 snapshots")
        assert "  P50: 100.00" in lines
        assert lines[-1] == "  P99: 112.00"

    def test_duplicate_suppressed(self, engine_config):
        engine, clock = create_engine(engine_config)

        engine.analyze("BTC", 115.0)
        clock.advance(minutes=5)
        second = engine.evaluate("BTC", 116.0)

        assert second.direction == SignalDirection.SHORT
        assert second.tracked_entry is None
        assert len(engine.get_tracking_log()) == 1
        assert engine.get_health().signals_suppressed == 1

    def test_outcome_resolved_after_horizon(self, engine_config):
        engine, clock = create_engine(engine_config)
        engine.analyze("BTC", 115.0)

        clock.advance(hours=24)
        SnapshotWriter(engine_config.store).append("BTC", create_record(clock.now, 104.0))
        engine.analyze("BTC", 110.0)

        entry = engine.get_tracking_log()[0]
        assert entry.completed
        assert entry.exit_price == 104.0
        assert entry.realized_return == pytest.approx(104.0 / 115.0 - 1.0)
        assert entry.predicted_return == pytest.approx(100.0 / 115.0 - 1.0)
        assert engine.get_health().outcomes_resolved == 1

    def test_regime_logged(self, engine_config):
        engine, _ = create_engine(engine_config)
        engine.analyze("BTC", 100.0)

        current = engine.get_regime("BTC")
        assert current.regime == MarketRegime.RANGE
        assert engine.get_regime("ETH") is None

    def test_insufficient_history(self, engine_config):
        engine, _ = create_engine(engine_config, snapshot_count=1)

        result = engine.evaluate("BTC", 100.0)
        report = engine.analyze("BTC", 100.0)

        assert result.stats is None
        assert result.regime is None
        assert result.direction == SignalDirection.NEUTRAL
        assert report.startswith("SIGNAL: NEUTRAL (regime)")
        assert "REGIME: UNKNOWN" in report
        assert "Insufficient history" in report
        assert engine.get_tracking_log() == []

    def test_missing_snapshot_file(self, engine_config):
        engine, _ = create_engine(engine_config, snapshot_count=0)

        report = engine.analyze("BTC", 100.0)

        assert report.startswith("SIGNAL: NEUTRAL (regime)")
        assert "No forecast snapshot buffered" in report
        assert "PERCENTILE_LADDER: N/A" in report

    @pytest.mark.parametrize("content", [
        b'{"BTC": [\xff\xfe]}',
        json.dumps({'BTC': [dict(create_record(BASE_TIME), timestamp=1e20)]}).encode(),
        json.dumps({'BTC': [{'timestamp': 1, 'bounds': 5}]}).encode(),
    ])
    def test_malformed_snapshot_file(self, engine_config, content):
        engine, _ = create_engine(engine_config, snapshot_count=0)
        engine_config.store.snapshot_file.write_bytes(content)

        regime_report = engine.analyze("BTC", 100.0)
        percentile_report = engine.analyze("BTC", 100.0, 15.0, "percentile")

        assert regime_report.startswith("SIGNAL: NEUTRAL (regime)")
        assert percentile_report.startswith("SIGNAL: WAIT (percentile)")
        assert engine.buffer_depth().get("BTC", 0) == 0


class TestPercentileStrategy:
    """Test percentile-threshold analysis."""

    def test_very_low_long(self, engine_config):
        engine, _ = create_engine(engine_config)

        result = engine.evaluate("BTC", 94.0, 15.0, strategy="percentile")
        report = engine.analyze("BTC", 94.0, 15.0, strategy=StrategyName.PERCENTILE)

        assert result.direction == SignalDirection.LONG
        assert result.percentile_signal.stop_loss == pytest.approx(93.53)
        assert result.percentile_signal.take_profit == 100.0
        assert result.regime is None
        assert result.stats is not None
        assert "SIGNAL: LONG (percentile)" in report
        assert "STOP_LOSS: 93.53" in report
        assert "TAKE_PROFIT: 100.00" in report
        assert "REGIME:" not in report
        # Percentile signals are not tracked
        assert engine.get_tracking_log() == []

    def test_outside_bounds_wait(self, engine_config):
        engine, _ = create_engine(engine_config)
        for volatility in (10.0, 30.0, 50.0, 70.0):
            result = engine.evaluate("BTC", 80.0, volatility, strategy="percentile")
            assert result.direction == SignalDirection.WAIT

    def test_no_distribution_24h_ago(self, engine_config):
        engine, _ = create_engine(engine_config, snapshot_count=12)
        result = engine.evaluate("BTC", 94.0, 15.0, strategy="percentile")
        assert result.direction == SignalDirection.WAIT
        assert "24h-ago" in result.reason


class TestEngineBehaviour:
    """Test input validation, buffering and isolation."""

    @pytest.mark.parametrize("price", [0.0, -1.0, math.nan, math.inf])
    def test_invalid_price(self, engine_config, price):
        engine, _ = create_engine(engine_config, snapshot_count=0)
        with pytest.raises(ValueError):
            engine.analyze("BTC", price)

    def test_invalid_strategy(self, engine_config):
        engine, _ = create_engine(engine_config, snapshot_count=0)
        with pytest.raises(ValueError):
            engine.analyze("BTC", 100.0, strategy="momentum")

    def test_invalid_volatility(self, engine_config):
        engine, _ = create_engine(engine_config, snapshot_count=0)
        with pytest.raises(ValueError):
            engine.analyze("BTC", 100.0, current_volatility=-5.0)

    def test_refresh_is_incremental(self, engine_config):
        engine, _ = create_engine(engine_config, snapshot_count=10)

        engine.refresh("BTC")
        engine.refresh("BTC")
        assert engine.buffer_depth() == {"BTC": 10}

        SnapshotWriter(engine_config.store).append(
            "BTC", create_record(BASE_TIME + timedelta(hours=1))
        )
        engine.refresh("BTC")
        assert engine.buffer_depth() == {"BTC": 11}

    def test_engines_do_not_share_state(self, engine_config):
        first, _ = create_engine(engine_config, snapshot_count=10)
        second = ForecastSignalEngine(engine_config)

        first.refresh("BTC")
        assert first.buffer_depth() == {"BTC": 10}
        assert second.buffer_depth() == {}

    def test_persistence_failure_reported(self, engine_config, tmp_path):
        blocker = tmp_path / "blocked"
        blocker.write_text("", encoding='utf-8')
        engine_config.tracker.tracking_file = blocker / "signal-tracking.json"
        engine, _ = create_engine(engine_config)

        result = engine.evaluate("BTC", 115.0)
        report = engine.analyze("BTC", 115.0)

        assert result.direction == SignalDirection.SHORT
        assert result.tracked_entry is not None
        assert any("not persisted" in w for w in result.warnings)
        assert "SIGNAL: SHORT (regime)" in report
        assert engine.get_health().persistence_failures == 1

    def test_health_counters(self, engine_config):
        engine, _ = create_engine(engine_config)
        engine.analyze("BTC", 115.0)
        engine.analyze("BTC", 100.0, 15.0, strategy="percentile")

        health = engine.get_health()
        assert health.analyses_run == 2
        assert health.signals_emitted == 1
        assert health.signals_tracked == 1
        assert health.snapshots_buffered == 301
        assert health.last_analysis_time == BASE_TIME + timedelta(minutes=5 * 300)
