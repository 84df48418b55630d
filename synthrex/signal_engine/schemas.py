"""
Signal Engine Schemas

Defines signal outputs for both strategies, the signal tracking record,
the structured analysis result and engine health metrics.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from synthrex.forecast_stats.schemas import RegimeClassification, RollingStats
from synthrex.forecast_stats.volatility import VolatilityTier


class SignalDirection(str, Enum):
    """Recommended direction"""
    LONG = "LONG"
    SHORT = "SHORT"
    NEUTRAL = "NEUTRAL"  # Regime strategy: no edge
    WAIT = "WAIT"        # Percentile strategy: no trigger / untrusted forecast

    @property
    def is_directional(self) -> bool:
        return self in (SignalDirection.LONG, SignalDirection.SHORT)


class SignalType(str, Enum):
    """Regime-conditioned policy that produced a signal"""
    CONTRARIAN = "CONTRARIAN"
    RANGE_BAND = "RANGE_BAND"


class StrategyName(str, Enum):
    """Independently selectable strategies"""
    REGIME = "regime"
    PERCENTILE = "percentile"


@dataclass
class RegimeSignal:
    """Output of the regime-conditioned strategy"""

    direction: SignalDirection = SignalDirection.NEUTRAL
    signal_type: Optional[SignalType] = None
    strength: float = 0.0
    tilt: Optional[float] = None
    reason: str = ""

    def to_dict(self) -> dict:
        """Convert to dictionary"""
        return {
            'direction': self.direction.value,
            'signal_type': self.signal_type.value if self.signal_type else None,
            'strength': float(self.strength),
            'tilt': float(self.tilt) if self.tilt is not None else None,
            'reason': self.reason,
        }


@dataclass
class PercentileSignal:
    """Output of the volatility-tiered percentile strategy"""

    direction: SignalDirection = SignalDirection.WAIT
    tier: Optional[VolatilityTier] = None
    strength: float = 0.0
    entry_price: Optional[float] = None
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None
    risk_reward: Optional[float] = None
    long_trigger: Optional[int] = None
    short_trigger: Optional[int] = None
    reason: str = ""

    def to_dict(self) -> dict:
        """Convert to dictionary"""
        return {
            'direction': self.direction.value,
            'tier': self.tier.value if self.tier else None,
            'strength': float(self.strength),
            'entry_price': self.entry_price,
            'stop_loss': self.stop_loss,
            'take_profit': self.take_profit,
            'risk_reward': self.risk_reward,
            'long_trigger': self.long_trigger,
            'short_trigger': self.short_trigger,
            'reason': self.reason,
        }


@dataclass
class SignalTrackingEntry:
    """
    Emitted signal awaiting (or carrying) its 24h outcome.

    Created open; mutated exactly once when the exit fields are filled
    and `completed` is set.
    """

    timestamp: datetime
    symbol: str
    signal_type: SignalType
    direction: SignalDirection
    entry_price: float
    predicted_price: float

    exit_timestamp: Optional[datetime] = None
    exit_price: Optional[float] = None
    realized_return: Optional[float] = None
    predicted_return: Optional[float] = None
    bias_error: Optional[float] = None
    completed: bool = False

    def key(self) -> tuple:
        """Duplicate-suppression key"""
        return (self.symbol, self.signal_type, self.direction)

    def to_dict(self) -> dict:
        """Convert to JSON-compatible dictionary"""
        return {
            'timestamp': self.timestamp.isoformat(),
            'symbol': self.symbol,
            'signal_type': self.signal_type.value,
            'direction': self.direction.value,
            'entry_price': float(self.entry_price),
            'predicted_price': float(self.predicted_price),
            'exit_timestamp': self.exit_timestamp.isoformat() if self.exit_timestamp else None,
            'exit_price': self.exit_price,
            'realized_return': self.realized_return,
            'predicted_return': self.predicted_return,
            'bias_error': self.bias_error,
            'completed': bool(self.completed),
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'SignalTrackingEntry':
        """Create entry from dictionary (raises KeyError / ValueError when malformed)"""
        exit_ts = data.get('exit_timestamp')
        return cls(
            timestamp=datetime.fromisoformat(data['timestamp']),
            symbol=str(data['symbol']),
            signal_type=SignalType(data['signal_type']),
            direction=SignalDirection(data['direction']),
            entry_price=float(data['entry_price']),
            predicted_price=float(data['predicted_price']),
            exit_timestamp=datetime.fromisoformat(exit_ts) if exit_ts else None,
            exit_price=data.get('exit_price'),
            realized_return=data.get('realized_return'),
            predicted_return=data.get('predicted_return'),
            bias_error=data.get('bias_error'),
            completed=bool(data.get('completed', False)),
        )


@dataclass
class AnalysisResult:
    """
    Complete result of one analysis cycle for an asset.

    Provides the audit trail the text report is rendered from.
    """

    symbol: str
    timestamp: datetime
    strategy: StrategyName
    current_price: float

    current_percentile: Optional[float] = None
    volatility: Optional[float] = None
    volatility_tier: Optional[VolatilityTier] = None
    volatility_estimated: bool = False

    stats: Optional[RollingStats] = None
    regime: Optional[RegimeClassification] = None
    regime_signal: Optional[RegimeSignal] = None
    percentile_signal: Optional[PercentileSignal] = None

    ladder: Dict[int, float] = field(default_factory=dict)
    ladder_source: str = ""
    buffered_snapshots: int = 0

    tracked_entry: Optional[SignalTrackingEntry] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def signal(self):
        if self.strategy == StrategyName.REGIME:
            return self.regime_signal
        return self.percentile_signal

    @property
    def direction(self) -> SignalDirection:
        signal = self.signal
        if signal is not None:
            return signal.direction
        return SignalDirection.NEUTRAL if self.strategy == StrategyName.REGIME else SignalDirection.WAIT

    @property
    def strength(self) -> float:
        signal = self.signal
        return signal.strength if signal is not None else 0.0

    @property
    def reason(self) -> str:
        signal = self.signal
        return signal.reason if signal is not None else ""

    def to_dict(self) -> dict:
        """Convert to dictionary"""
        return {
            'symbol': self.symbol,
            'timestamp': self.timestamp.isoformat(),
            'strategy': self.strategy.value,
            'current_price': float(self.current_price),
            'current_percentile': self.current_percentile,
            'volatility': self.volatility,
            'volatility_tier': self.volatility_tier.value if self.volatility_tier else None,
            'volatility_estimated': self.volatility_estimated,
            'stats': self.stats.to_dict() if self.stats else None,
            'regime': self.regime.to_dict() if self.regime else None,
            'signal': self.signal.to_dict() if self.signal else None,
            'direction': self.direction.value,
            'strength': float(self.strength),
            'ladder': {f"P{p}": float(v) for p, v in self.ladder.items()},
            'ladder_source': self.ladder_source,
            'buffered_snapshots': self.buffered_snapshots,
            'tracked_entry': self.tracked_entry.to_dict() if self.tracked_entry else None,
            'warnings': list(self.warnings),
        }


@dataclass
class EngineHealth:
    """Health metrics for engine monitoring"""

    analyses_run: int = 0
    signals_emitted: int = 0
    signals_tracked: int = 0
    signals_suppressed: int = 0
    outcomes_resolved: int = 0

    snapshots_buffered: int = 0
    snapshots_skipped: int = 0
    persistence_failures: int = 0

    last_analysis_time: Optional[datetime] = None
    last_signal_time: Optional[datetime] = None

    def to_dict(self) -> dict:
        """Convert to dictionary"""
        return {
            'analyses_run': self.analyses_run,
            'signals_emitted': self.signals_emitted,
            'signals_tracked': self.signals_tracked,
            'signals_suppressed': self.signals_suppressed,
            'outcomes_resolved': self.outcomes_resolved,
            'snapshots_buffered': self.snapshots_buffered,
            'snapshots_skipped': self.snapshots_skipped,
            'persistence_failures': self.persistence_failures,
            'last_analysis_time': self.last_analysis_time.isoformat() if self.last_analysis_time else None,
            'last_signal_time': self.last_signal_time.isoformat() if self.last_signal_time else None,
        }
