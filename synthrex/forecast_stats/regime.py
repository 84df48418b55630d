"""
Regime Classification

Maps rolling drift statistics to a market regime using
volatility-normalised drift:

    vol_norm = std / (|mean| + epsilon)

    CHOPPY      vol_norm > 2                 confidence min(vol_norm / 3, 1)
    RANGE       |mean| <= 0.4 * std          confidence 1 - |mean| / (0.4 * std)
    TREND_UP    mean > 0                     confidence min(|mean| / std, 1)
    TREND_DOWN  mean <= 0                    confidence min(|mean| / std, 1)

The classification is a pure function of its inputs. Transitions are
recorded in a side-channel log for duration observability only; the log
never feeds back into the decision.
"""

import logging
import threading
from collections import deque
from datetime import datetime
from typing import Dict, List, Optional

from synthrex.config import RegimeConfig
from synthrex.forecast_stats.schemas import (
    MarketRegime,
    RegimeClassification,
    RegimeTransition,
    RollingStats
)

LOG = logging.getLogger(__name__)


def classify_regime(
    stats: Optional[RollingStats],
    config: Optional[RegimeConfig] = None
) -> Optional[RegimeClassification]:
    """
    Classify regime from rolling statistics.

    Args:
        stats: Rolling statistics (None = insufficient history)
        config: Thresholds (uses defaults if None)

    Returns:
        RegimeClassification, or None when stats is None
    """
    if stats is None:
        return None

    config = config or RegimeConfig()
    m = stats.drift.mean
    s = stats.drift.std
    abs_m = abs(m)

    vol_norm = s / (abs_m + config.epsilon)

    if vol_norm > config.choppy_vol_norm:
        return RegimeClassification(
            regime=MarketRegime.CHOPPY,
            confidence=min(vol_norm / 3.0, 1.0),
            vol_norm=vol_norm
        )

    band = config.range_drift_ratio * s
    if abs_m <= band:
        confidence = 1.0 - abs_m / band if band > 0 else 1.0
        return RegimeClassification(
            regime=MarketRegime.RANGE,
            confidence=confidence,
            vol_norm=vol_norm
        )

    regime = MarketRegime.TREND_UP if m > 0 else MarketRegime.TREND_DOWN
    confidence = min(abs_m / s, 1.0) if s > 0 else 1.0
    return RegimeClassification(regime=regime, confidence=confidence, vol_norm=vol_norm)


class RegimeClassifier:
    """
    Regime classifier with per-asset transition log.

    The transition log is shared mutable state across assets; pass the
    engine's lock so that concurrent analyses serialize their updates.
    """

    def __init__(
        self,
        config: Optional[RegimeConfig] = None,
        lock: Optional[threading.RLock] = None
    ):
        self.config = config or RegimeConfig()
        self._lock = lock or threading.RLock()
        self._current: Dict[str, RegimeTransition] = {}
        self._history: deque = deque(maxlen=self.config.transition_history_size)

    def classify(
        self,
        asset: str,
        stats: Optional[RollingStats],
        now: datetime
    ) -> Optional[RegimeClassification]:
        """
        Classify regime and record a transition if it changed.

        Args:
            asset: Asset identifier
            stats: Rolling statistics (None = no opinion)
            now: Classification time

        Returns:
            RegimeClassification or None
        """
        result = classify_regime(stats, self.config)
        if result is not None:
            self._record(asset, result.regime, now)
        return result

    def _record(self, asset: str, regime: MarketRegime, now: datetime):
        with self._lock:
            previous = self._current.get(asset)
            if previous is not None and previous.regime == regime:
                return

            transition = RegimeTransition(asset=asset, regime=regime, since=now)
            if previous is not None:
                duration = (now - previous.since).total_seconds()
                transition.previous_regime = previous.regime
                transition.previous_duration_seconds = duration
                LOG.info(
                    f"{asset} regime {previous.regime.value} -> {regime.value} "
                    f"after {duration / 60.0:.1f} min"
                )
            else:
                LOG.info(f"{asset} regime initialised as {regime.value}")

            self._current[asset] = transition
            self._history.append(transition)

    def current(self, asset: str) -> Optional[RegimeTransition]:
        """Last logged regime for an asset"""
        with self._lock:
            return self._current.get(asset)

    def transitions(self, asset: Optional[str] = None) -> List[RegimeTransition]:
        """Logged transitions, oldest first"""
        with self._lock:
            if asset is None:
                return list(self._history)
            return [t for t in self._history if t.asset == asset]

    def reset(self):
        with self._lock:
            self._current.clear()
            self._history.clear()
