"""
Signal Engine

Regime-aware decision layer on top of the forecast statistics.

Flow:
    Snapshot Store → Ring Buffer → Rolling Stats ⇄ Signal Tracker
                   → Regime → Strategy → Report

Strategies:
    - "regime": contrarian in trends, band breakout in range, NEUTRAL when choppy
    - "percentile": volatility-tiered percentile triggers with stops and P50 target

Usage:
    engine = ForecastSignalEngine()
    print(engine.analyze("BTC", 94250.5, 35.0, strategy="percentile"))
"""

from synthrex.signal_engine.engine import ForecastSignalEngine
from synthrex.signal_engine.report import format_report
from synthrex.signal_engine.schemas import (
    AnalysisResult,
    EngineHealth,
    PercentileSignal,
    RegimeSignal,
    SignalDirection,
    SignalTrackingEntry,
    SignalType,
    StrategyName
)
from synthrex.signal_engine.strategies import (
    PercentileThresholdStrategy,
    RegimeConditionedStrategy
)
from synthrex.signal_engine.tracker import (
    SignalTracker,
    TrackingPersistenceError,
    compute_outcome
)

__version__ = "1.0.0"

__all__ = [
    'ForecastSignalEngine',
    'format_report',
    'AnalysisResult',
    'EngineHealth',
    'PercentileSignal',
    'RegimeSignal',
    'SignalDirection',
    'SignalTrackingEntry',
    'SignalType',
    'StrategyName',
    'PercentileThresholdStrategy',
    'RegimeConditionedStrategy',
    'SignalTracker',
    'TrackingPersistenceError',
    'compute_outcome',
]
