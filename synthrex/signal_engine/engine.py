"""
Forecast Signal Engine

Core engine that orchestrates one analysis cycle per call:
1. Resolve tracked signals whose 24h horizon elapsed
2. Refresh the asset's ring buffer from the snapshot store
3. Rolling drift / bias (signal outcomes preferred, snapshot pairs fallback)
4. Regime classification
5. Strategy evaluation ("regime" or "percentile")
6. Signal tracking and report rendering

Design Principles:
    - No opinion is reported as NEUTRAL / WAIT with a reason, never raised
    - All per-asset state lives on the engine instance
    - Tracking log and regime log share one lock
"""

import math
import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Union

from synthrex.config import EngineConfig
from synthrex.forecast_stats.quantiles import (
    MergedPercentiles,
    QuantileExtractionError,
    merge_percentiles,
    percentile_rank
)
from synthrex.forecast_stats.regime import RegimeClassifier
from synthrex.forecast_stats.ring_buffer import BufferRegistry, FlatSnap, SnapshotRingBuffer
from synthrex.forecast_stats.rolling import RollingStatsCalculator
from synthrex.forecast_stats.schemas import RegimeTransition
from synthrex.forecast_stats.volatility import classify_volatility_tier, realized_volatility
from synthrex.signal_engine.report import format_report
from synthrex.signal_engine.schemas import (
    AnalysisResult,
    EngineHealth,
    RegimeSignal,
    SignalTrackingEntry,
    StrategyName
)
from synthrex.signal_engine.strategies import (
    PercentileThresholdStrategy,
    RegimeConditionedStrategy
)
from synthrex.signal_engine.tracker import SignalTracker, TrackingPersistenceError
from synthrex.snapshot_store import Snapshot, SnapshotStore

LOG = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ForecastSignalEngine:
    """
    Forecast Signal Engine

    Converts persisted probabilistic forecasts into regime-aware trade
    signals. Construct one instance per process (or per test); instances
    share no state.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """
        Initialize engine.

        Args:
            config: Engine configuration (uses defaults if None)
            clock: Returns the current UTC time (injectable for tests)
        """
        self.config = config or EngineConfig()
        self.config_hash = self.config.compute_hash()
        self._clock = clock or _utc_now
        self._lock = threading.RLock()

        self.store = SnapshotStore(self.config.store)
        self.buffers = BufferRegistry(self.config.buffer.capacity)
        self.rolling = RollingStatsCalculator(self.config.rolling)
        self.regime_classifier = RegimeClassifier(self.config.regime, lock=self._lock)
        self.tracker = SignalTracker(self.config.tracker, lock=self._lock)

        self.regime_strategy = RegimeConditionedStrategy(
            self.config.signal.contrarian,
            self.config.signal.range_band
        )
        self.percentile_strategy = PercentileThresholdStrategy(self.config.signal.percentile)

        self.health = EngineHealth()
        self.horizon = timedelta(hours=self.config.rolling.horizon_hours)

        LOG.info(
            f"ForecastSignalEngine initialized (config_hash={self.config_hash}, "
            f"snapshots={self.store.path}, tracking={self.tracker.path})"
        )

    # ------------------------------------------------------------------
    # Buffer maintenance
    # ------------------------------------------------------------------

    def refresh(self, asset: str) -> List[Snapshot]:
        """
        Load the asset's snapshots and buffer those not yet seen.

        Args:
            asset: Asset identifier

        Returns:
            All validated snapshots for the asset, oldest first
        """
        skipped_before = self.store.skipped_records
        snapshots = self.store.load(asset)
        skipped = self.store.skipped_records - skipped_before

        with self._lock:
            buffer = self.buffers.get(asset)
            last = buffer.latest()
            pushed = 0

            for snapshot in snapshots:
                if last is not None and snapshot.timestamp <= last.t:
                    continue
                try:
                    buffer.push(FlatSnap.from_snapshot(snapshot))
                    pushed += 1
                except QuantileExtractionError as e:
                    skipped += 1
                    LOG.warning(f"Skipping unusable {asset} snapshot: {e}")

            self.health.snapshots_skipped += skipped
            self.health.snapshots_buffered = sum(self.buffers.depth().values())

        if pushed:
            LOG.debug(f"{asset}: buffered {pushed} new snapshots (depth={len(buffer)})")
        return snapshots

    def _estimate_volatility(self, buffer: SnapshotRingBuffer, now: datetime) -> Optional[float]:
        """Annualised volatility from the last 24h of buffered prices"""
        cutoff = now - self.horizon
        prices = [s.price for s in buffer if s.t >= cutoff]
        return realized_volatility(prices, self.config.signal.percentile.periods_per_year)

    # ------------------------------------------------------------------
    # Tracking
    # ------------------------------------------------------------------

    def _resolve_due(self, now: datetime, warnings: List[str]):
        """Close due entries at the latest buffered price; assets with no buffer stay open"""
        try:
            resolved = self.tracker.resolve_due(now, self.buffers.latest_price)
        except TrackingPersistenceError as e:
            resolved = e.entries
            self._persistence_failed(e, warnings)

        if resolved:
            with self._lock:
                self.health.outcomes_resolved += len(resolved)

    def _track(
        self,
        asset: str,
        signal: RegimeSignal,
        current_price: float,
        predicted_price: float,
        now: datetime,
        warnings: List[str]
    ) -> Optional[SignalTrackingEntry]:
        try:
            entry = self.tracker.record(
                asset, signal.signal_type, signal.direction,
                current_price, predicted_price, now
            )
        except TrackingPersistenceError as e:
            entry = e.entries[0] if e.entries else None
            self._persistence_failed(e, warnings)

        with self._lock:
            if entry is None:
                self.health.signals_suppressed += 1
            else:
                self.health.signals_tracked += 1
        return entry

    def _persistence_failed(self, error: TrackingPersistenceError, warnings: List[str]):
        LOG.warning(f"Tracking log write failed, continuing with in-memory state: {error}")
        warnings.append(f"Tracking log not persisted: {error}")
        with self._lock:
            self.health.persistence_failures += 1

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    @staticmethod
    def _resolve_strategy(strategy: Union[str, StrategyName]) -> StrategyName:
        try:
            return StrategyName(strategy)
        except ValueError:
            valid = ", ".join(s.value for s in StrategyName)
            raise ValueError(f"Unknown strategy {strategy!r} (expected one of: {valid})")

    @staticmethod
    def _validate_inputs(current_price: float, current_volatility: Optional[float]):
        if current_price is None or not math.isfinite(current_price) or current_price <= 0:
            raise ValueError(f"current_price must be a positive finite number, got {current_price!r}")
        if current_volatility is not None and (
            not math.isfinite(current_volatility) or current_volatility < 0
        ):
            raise ValueError(
                f"current_volatility must be a non-negative finite number, got {current_volatility!r}"
            )

    def evaluate(
        self,
        asset: str,
        current_price: float,
        current_volatility: Optional[float] = None,
        strategy: Union[str, StrategyName] = StrategyName.REGIME
    ) -> AnalysisResult:
        """
        Run one analysis cycle.

        Args:
            asset: Asset identifier (e.g. "BTC")
            current_price: Current spot price
            current_volatility: Annualised volatility in percent; estimated
                from buffered prices when None
            strategy: "regime" or "percentile"

        Returns:
            AnalysisResult (NEUTRAL / WAIT with reason when data is insufficient)

        Raises:
            ValueError: invalid price, volatility or strategy name
        """
        strategy = self._resolve_strategy(strategy)
        self._validate_inputs(current_price, current_volatility)
        current_price = float(current_price)

        now = self._clock()
        warnings: List[str] = []

        snapshots = self.refresh(asset)
        self._resolve_due(now, warnings)
        buffer = self.buffers.get(asset)
        latest = buffer.latest()

        result = AnalysisResult(
            symbol=asset,
            timestamp=now,
            strategy=strategy,
            current_price=current_price,
            buffered_snapshots=len(buffer),
            warnings=warnings
        )

        # Volatility
        volatility = current_volatility
        if volatility is None:
            volatility = self._estimate_volatility(buffer, now)
            result.volatility_estimated = volatility is not None
        if volatility is not None:
            pct_cfg = self.config.signal.percentile
            result.volatility = float(volatility)
            result.volatility_tier = classify_volatility_tier(
                volatility, pct_cfg.very_low_max, pct_cfg.low_max, pct_cfg.medium_max
            )

        # Rolling statistics
        result.stats = self.rolling.calculate(buffer, self.tracker.completed_for(asset))

        # 24h-ago merged distribution
        merged = self._merged_ladder(snapshots, now)

        if strategy == StrategyName.REGIME:
            result.regime = self.regime_classifier.classify(asset, result.stats, now)
            signal = self.regime_strategy.generate(result.regime, current_price, latest, result.stats)
            result.regime_signal = signal

            if signal.direction.is_directional and latest is not None:
                result.tracked_entry = self._track(
                    asset, signal, current_price, latest.q50, now, warnings
                )
        else:
            result.percentile_signal = self.percentile_strategy.generate(
                current_price, result.volatility, merged
            )

        # Ladder shown in the report and used for the current percentile
        if merged is not None:
            result.ladder = dict(merged.values)
            result.ladder_source = (
                f"merged {merged.snapshots_used} snapshots around {merged.anchor_time.isoformat()}"
            )
        elif latest is not None:
            result.ladder = dict(latest.quantiles)
            result.ladder_source = f"latest snapshot {latest.t.isoformat()}"
        if result.ladder:
            result.current_percentile = percentile_rank(result.ladder, current_price)

        with self._lock:
            self.health.analyses_run += 1
            self.health.last_analysis_time = now
            if result.direction.is_directional:
                self.health.signals_emitted += 1
                self.health.last_signal_time = now

        LOG.info(
            f"{asset} {strategy.value}: {result.direction.value} "
            f"(strength={result.strength:.2f}) - {result.reason}"
        )
        return result

    def _merged_ladder(self, snapshots: List[Snapshot], now: datetime) -> Optional[MergedPercentiles]:
        cfg = self.config.signal.percentile
        return merge_percentiles(
            snapshots,
            now - self.horizon,
            window=cfg.merge_window,
            max_offset=timedelta(minutes=cfg.merge_max_offset_minutes)
        )

    def analyze(
        self,
        asset: str,
        current_price: float,
        current_volatility: Optional[float] = None,
        strategy: Union[str, StrategyName] = StrategyName.REGIME
    ) -> str:
        """
        Analyze an asset and render the text report.

        This is the integration point for the downstream agent layer.

        Raises:
            ValueError: invalid price, volatility or strategy name
        """
        return format_report(self.evaluate(asset, current_price, current_volatility, strategy))

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_health(self) -> EngineHealth:
        """Get engine health metrics"""
        with self._lock:
            self.health.snapshots_buffered = sum(self.buffers.depth().values())
            return self.health

    def get_regime(self, asset: str) -> Optional[RegimeTransition]:
        """Last logged regime for an asset"""
        return self.regime_classifier.current(asset)

    def get_regime_history(self, asset: Optional[str] = None) -> List[RegimeTransition]:
        return self.regime_classifier.transitions(asset)

    def get_tracking_log(self) -> List[SignalTrackingEntry]:
        """Copy of the signal tracking log, oldest first"""
        return self.tracker.entries()

    def buffer_depth(self) -> Dict[str, int]:
        return self.buffers.depth()
