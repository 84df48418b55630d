"""
Forecast Statistics Schemas

Structured outputs for rolling drift/bias estimation and regime
classification.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class MarketRegime(str, Enum):
    """Market regime classification"""
    TREND_UP = "TREND_UP"
    TREND_DOWN = "TREND_DOWN"
    RANGE = "RANGE"
    CHOPPY = "CHOPPY"


class StatsSource(str, Enum):
    """Where a rolling statistics sample came from"""
    SIGNAL_OUTCOMES = "signal_outcomes"
    SNAPSHOT_PAIRS = "snapshot_pairs"


@dataclass
class DriftStats:
    """Mean / population std of realized 24h forward returns"""
    mean: float
    std: float


@dataclass
class RollingStats:
    """
    Rolling drift and forecast bias for one asset.

    Recomputed on each analysis request, never persisted.
    """

    drift: DriftStats
    bias: float
    realized_returns: List[float] = field(default_factory=list)
    bias_errors: List[float] = field(default_factory=list)
    source: StatsSource = StatsSource.SNAPSHOT_PAIRS

    @property
    def sample_size(self) -> int:
        return len(self.realized_returns)

    def to_dict(self) -> dict:
        """Convert to dictionary"""
        return {
            'drift': {'mean': float(self.drift.mean), 'std': float(self.drift.std)},
            'bias': float(self.bias),
            'realized_returns': [float(r) for r in self.realized_returns],
            'bias_errors': [float(e) for e in self.bias_errors],
            'source': self.source.value,
            'sample_size': self.sample_size,
        }


@dataclass
class RegimeClassification:
    """Regime label with confidence"""

    regime: MarketRegime
    confidence: float
    vol_norm: float

    def to_dict(self) -> dict:
        """Convert to dictionary"""
        return {
            'regime': self.regime.value,
            'confidence': float(self.confidence),
            'vol_norm': float(self.vol_norm),
        }


@dataclass
class RegimeTransition:
    """Side-channel record of a regime change for one asset"""

    asset: str
    regime: MarketRegime
    since: datetime
    previous_regime: Optional[MarketRegime] = None
    previous_duration_seconds: Optional[float] = None

    def to_dict(self) -> dict:
        """Convert to dictionary"""
        return {
            'asset': self.asset,
            'regime': self.regime.value,
            'since': self.since.isoformat(),
            'previous_regime': self.previous_regime.value if self.previous_regime else None,
            'previous_duration_seconds': self.previous_duration_seconds,
        }
