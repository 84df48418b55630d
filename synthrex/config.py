"""
Engine Configuration

Defines storage locations, buffer sizes, statistical windows and all
signal thresholds used by the forecast regime engine.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional
import hashlib
import json
import os


DEFAULT_DATA_DIR = Path(__file__).resolve().parent.parent / "data"


@dataclass
class SnapshotStoreConfig:
    """Snapshot store (read side) configuration"""

    snapshot_file: Path = DEFAULT_DATA_DIR / "lp-bounds-snapshots.json"

    # Transient read failures
    max_read_attempts: int = 3
    retry_backoff_seconds: float = 0.1

    # Writer retention (7 days of 5-minute snapshots)
    max_snapshots_per_asset: int = 2016


@dataclass
class BufferConfig:
    """Per-asset ring buffer configuration"""
    capacity: int = 500


@dataclass
class RollingStatsConfig:
    """Rolling drift / bias estimation"""

    # Forward horizon the forecasts are made for
    horizon_hours: float = 24.0

    # Tolerance when pairing a snapshot with the one 24h earlier
    pairing_tolerance_minutes: float = 2.0

    # Sample sizes
    max_observations: int = 8
    min_observations: int = 3
    min_completed_outcomes: int = 3
    min_buffered_snapshots: int = 2


@dataclass
class RegimeConfig:
    """Regime classification thresholds"""
    epsilon: float = 0.001  # Guards vol_norm against zero drift
    choppy_vol_norm: float = 2.0
    range_drift_ratio: float = 0.4
    transition_history_size: int = 500


@dataclass
class ContrarianConfig:
    """Contrarian policy used in trending regimes"""
    tau: float = 0.015  # Tilt trigger; 2*tau saturates strength


@dataclass
class RangeBandConfig:
    """Band breakout policy used in RANGE regime"""
    eps: float = 0.0005
    strength_scale: float = 100.0
    strength_divisor: float = 2.0


@dataclass
class PercentileTierConfig:
    """Percentile thresholds for a single volatility tier"""
    long_trigger: int
    short_trigger: int
    long_stop: int
    short_stop: int
    min_stop_buffer: float


def _default_tiers() -> Dict[str, PercentileTierConfig]:
    return {
        "VERY_LOW": PercentileTierConfig(20, 80, 15, 85, 0.005),
        "LOW": PercentileTierConfig(15, 85, 10, 90, 0.01),
        "MEDIUM": PercentileTierConfig(10, 90, 5, 95, 0.01),
        "HIGH": PercentileTierConfig(5, 95, 1, 99, 0.02),
    }


@dataclass
class PercentileStrategyConfig:
    """Volatility-tiered percentile policy"""

    tiers: Dict[str, PercentileTierConfig] = field(default_factory=_default_tiers)

    # Tier boundaries on annualised volatility (%)
    very_low_max: float = 20.0
    low_max: float = 40.0
    medium_max: float = 60.0

    # Merged 24h-ago distribution
    merge_window: int = 7
    merge_max_offset_minutes: float = 30.0
    lower_bound_percentile: int = 1
    upper_bound_percentile: int = 99
    target_percentile: int = 50

    # Fallback volatility estimate from buffered 5-minute prices
    periods_per_year: int = 12 * 24 * 365


@dataclass
class SignalConfig:
    """Signal generation configuration"""
    contrarian: ContrarianConfig = field(default_factory=ContrarianConfig)
    range_band: RangeBandConfig = field(default_factory=RangeBandConfig)
    percentile: PercentileStrategyConfig = field(default_factory=PercentileStrategyConfig)


@dataclass
class TrackerConfig:
    """Signal outcome tracking"""
    tracking_file: Path = DEFAULT_DATA_DIR / "signal-tracking.json"
    max_entries: int = 100
    horizon_hours: float = 24.0


@dataclass
class EngineConfig:
    """
    Complete engine configuration.

    Aggregates every stage so that one hash identifies the full
    decision surface of an engine instance.
    """

    store: SnapshotStoreConfig = field(default_factory=SnapshotStoreConfig)
    buffer: BufferConfig = field(default_factory=BufferConfig)
    rolling: RollingStatsConfig = field(default_factory=RollingStatsConfig)
    regime: RegimeConfig = field(default_factory=RegimeConfig)
    signal: SignalConfig = field(default_factory=SignalConfig)
    tracker: TrackerConfig = field(default_factory=TrackerConfig)

    config_version: str = "1.0.0"

    def to_dict(self) -> dict:
        """Convert to dictionary"""
        return {
            'store': {
                'snapshot_file': str(self.store.snapshot_file),
                'max_read_attempts': self.store.max_read_attempts,
                'retry_backoff_seconds': self.store.retry_backoff_seconds,
                'max_snapshots_per_asset': self.store.max_snapshots_per_asset,
            },
            'buffer': {
                'capacity': self.buffer.capacity,
            },
            'rolling': {
                'horizon_hours': self.rolling.horizon_hours,
                'pairing_tolerance_minutes': self.rolling.pairing_tolerance_minutes,
                'max_observations': self.rolling.max_observations,
                'min_observations': self.rolling.min_observations,
                'min_completed_outcomes': self.rolling.min_completed_outcomes,
                'min_buffered_snapshots': self.rolling.min_buffered_snapshots,
            },
            'regime': {
                'epsilon': self.regime.epsilon,
                'choppy_vol_norm': self.regime.choppy_vol_norm,
                'range_drift_ratio': self.regime.range_drift_ratio,
            },
            'signal': {
                'contrarian_tau': self.signal.contrarian.tau,
                'range_band_eps': self.signal.range_band.eps,
                'percentile_tiers': {
                    name: {
                        'long_trigger': tier.long_trigger,
                        'short_trigger': tier.short_trigger,
                        'long_stop': tier.long_stop,
                        'short_stop': tier.short_stop,
                        'min_stop_buffer': tier.min_stop_buffer,
                    }
                    for name, tier in self.signal.percentile.tiers.items()
                },
                'merge_window': self.signal.percentile.merge_window,
                'merge_max_offset_minutes': self.signal.percentile.merge_max_offset_minutes,
            },
            'tracker': {
                'tracking_file': str(self.tracker.tracking_file),
                'max_entries': self.tracker.max_entries,
                'horizon_hours': self.tracker.horizon_hours,
            },
            'config_version': self.config_version,
        }

    def compute_hash(self) -> str:
        """
        Compute deterministic hash of configuration.

        File locations are excluded so that the same thresholds hash
        identically across deployments.
        """
        config_dict = self.to_dict()
        config_dict['store'].pop('snapshot_file')
        config_dict['tracker'].pop('tracking_file')
        config_json = json.dumps(config_dict, sort_keys=True)
        return hashlib.sha256(config_json.encode()).hexdigest()[:12]

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> 'EngineConfig':
        """
        Build configuration from environment variables.

        SYNTHREX_SNAPSHOT_FILE, SYNTHREX_TRACKING_FILE and
        SYNTHREX_BUFFER_CAPACITY override the defaults when set.
        """
        env = os.environ if environ is None else environ
        config = cls()

        if env.get('SYNTHREX_SNAPSHOT_FILE'):
            config.store.snapshot_file = Path(env['SYNTHREX_SNAPSHOT_FILE'])
        if env.get('SYNTHREX_TRACKING_FILE'):
            config.tracker.tracking_file = Path(env['SYNTHREX_TRACKING_FILE'])
        if env.get('SYNTHREX_BUFFER_CAPACITY'):
            config.buffer.capacity = int(env['SYNTHREX_BUFFER_CAPACITY'])

        return config
