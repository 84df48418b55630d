"""
Forecast Statistics

Turns raw forecast snapshots into the statistical view the signal layer
consumes:
    - Quantile extraction over irregular probability grids
    - Per-asset ring buffers of flattened snapshots
    - Rolling 24h drift and forecast bias
    - Volatility tiers
    - Regime classification

Flow:
    Snapshot Store → Quantiles → Ring Buffer → Rolling Stats → Regime
"""

from synthrex.forecast_stats.quantiles import (
    TARGET_PERCENTILES,
    MergedPercentiles,
    QuantileExtractionError,
    extract_quantiles,
    interpolate_price,
    merge_percentiles,
    percentile_rank,
    sorted_pairs
)
from synthrex.forecast_stats.ring_buffer import BufferRegistry, FlatSnap, SnapshotRingBuffer
from synthrex.forecast_stats.rolling import RollingStatsCalculator
from synthrex.forecast_stats.regime import RegimeClassifier, classify_regime
from synthrex.forecast_stats.schemas import (
    DriftStats,
    MarketRegime,
    RegimeClassification,
    RegimeTransition,
    RollingStats,
    StatsSource
)
from synthrex.forecast_stats.volatility import (
    VolatilityTier,
    classify_volatility_tier,
    realized_volatility
)

__all__ = [
    'TARGET_PERCENTILES',
    'MergedPercentiles',
    'QuantileExtractionError',
    'extract_quantiles',
    'interpolate_price',
    'merge_percentiles',
    'percentile_rank',
    'sorted_pairs',
    'BufferRegistry',
    'FlatSnap',
    'SnapshotRingBuffer',
    'RollingStatsCalculator',
    'RegimeClassifier',
    'classify_regime',
    'DriftStats',
    'MarketRegime',
    'RegimeClassification',
    'RegimeTransition',
    'RollingStats',
    'StatsSource',
    'VolatilityTier',
    'classify_volatility_tier',
    'realized_volatility',
]
