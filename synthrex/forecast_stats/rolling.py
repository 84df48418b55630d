"""
Rolling Statistics Calculator

Estimates realized 24h drift and forecast bias for one asset.

Two data pathways, tried in order:
    1. Signal outcomes: completed tracked signals carry realized prices
       measured exactly 24h after emission.
    2. Snapshot pairing: each buffered snapshot is matched with the one
       taken 24h earlier (within a tolerance) and the earlier forecast's
       median is compared against the realized move.

Returns None, never a zeroed result, when the sample is insufficient:
downstream must read that as "no opinion", not as a flat market.
"""

import bisect
import logging
from datetime import timedelta
from typing import List, Optional, Sequence, Tuple

import numpy as np

from synthrex.config import RollingStatsConfig
from synthrex.forecast_stats.ring_buffer import FlatSnap, SnapshotRingBuffer
from synthrex.forecast_stats.schemas import DriftStats, RollingStats, StatsSource

LOG = logging.getLogger(__name__)


class RollingStatsCalculator:
    """
    Rolling drift / bias estimator.

    Stateless apart from configuration; safe to share across assets.
    """

    def __init__(self, config: Optional[RollingStatsConfig] = None):
        self.config = config or RollingStatsConfig()
        self.horizon = timedelta(hours=self.config.horizon_hours)
        self.tolerance = timedelta(minutes=self.config.pairing_tolerance_minutes)

    def pair_snapshots(self, snaps: Sequence[FlatSnap]) -> List[Tuple[float, float]]:
        """
        Match snapshots with their 24h-earlier counterparts.

        Args:
            snaps: Buffered snapshots, oldest first

        Returns:
            (realized_return, bias_error) pairs in chronological order
        """
        times = [s.t for s in snaps]
        pairs = []

        for i, snap in enumerate(snaps):
            target = snap.t - self.horizon
            lo = bisect.bisect_left(times, target - self.tolerance, 0, i)
            hi = bisect.bisect_right(times, target + self.tolerance, 0, i)
            if lo >= hi:
                continue

            match = min(snaps[lo:hi], key=lambda m: abs(m.t - target))
            if match.price <= 0:
                continue

            realized = snap.price / match.price - 1.0
            predicted = match.q50 / match.price - 1.0
            pairs.append((realized, realized - predicted))

        return pairs

    def calculate(
        self,
        buffer: SnapshotRingBuffer,
        completed_outcomes: Sequence[Tuple[float, float]] = ()
    ) -> Optional[RollingStats]:
        """
        Compute rolling statistics for an asset.

        Args:
            buffer: Asset ring buffer
            completed_outcomes: (realized_return, bias_error) of completed
                tracked signals, oldest first

        Returns:
            RollingStats or None when history is insufficient
        """
        if len(buffer) < self.config.min_buffered_snapshots:
            LOG.debug(f"{buffer.symbol}: {len(buffer)} buffered snapshots, need {self.config.min_buffered_snapshots}")
            return None

        if len(completed_outcomes) >= self.config.min_completed_outcomes:
            observations = list(completed_outcomes)[-self.config.max_observations:]
            source = StatsSource.SIGNAL_OUTCOMES
        else:
            observations = self.pair_snapshots(buffer.snapshots())[-self.config.max_observations:]
            source = StatsSource.SNAPSHOT_PAIRS

        if len(observations) < self.config.min_observations:
            LOG.debug(
                f"{buffer.symbol}: {len(observations)} {source.value} observations, "
                f"need {self.config.min_observations}"
            )
            return None

        realized = np.array([r for r, _ in observations], dtype=float)
        errors = np.array([e for _, e in observations], dtype=float)

        return RollingStats(
            drift=DriftStats(mean=float(np.mean(realized)), std=float(np.std(realized))),
            bias=float(np.mean(errors)),
            realized_returns=realized.tolist(),
            bias_errors=errors.tolist(),
            source=source
        )
