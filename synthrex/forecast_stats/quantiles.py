"""
Quantile Extraction

Converts a snapshot's irregular probability -> price grid into values at
fixed target percentiles.

Interpolation is linear in probability space between the two observed
grid points that bracket the target. Targets outside the observed
probability range are clamped to the extreme observed price. Regime
classification downstream reacts to quantile moves of a few basis
points, so observed grid points are returned exactly.
"""

import math
import bisect
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from synthrex.snapshot_store.schemas import Snapshot

LOG = logging.getLogger(__name__)


# Shared by the producer of merged distributions and every consumer
TARGET_PERCENTILES: Tuple[int, ...] = (1, 5, 10, 15, 20, 30, 40, 50, 60, 70, 80, 85, 90, 95, 99)


class QuantileExtractionError(Exception):
    """Raised when a distribution cannot produce a quantile"""
    pass


@dataclass
class MergedPercentiles:
    """Percentile ladder averaged over consecutive snapshots"""

    target_time: datetime
    anchor_time: datetime
    values: Dict[int, float] = field(default_factory=dict)
    snapshots_used: int = 0

    def __getitem__(self, percentile: int) -> float:
        return self.values[percentile]

    def to_dict(self) -> dict:
        """Convert to dictionary"""
        return {
            'target_time': self.target_time.isoformat(),
            'anchor_time': self.anchor_time.isoformat(),
            'values': {f"P{p}": float(v) for p, v in self.values.items()},
            'snapshots_used': self.snapshots_used,
        }


def sorted_pairs(probability_below: Mapping[float, float]) -> List[Tuple[float, float]]:
    """
    Order a probability map as (probability, price) pairs.

    Pairs are sorted by probability ascending, ties broken by price.
    Non-finite entries are dropped.
    """
    pairs = []
    for price, prob in probability_below.items():
        price = float(price)
        prob = float(prob)
        if math.isfinite(price) and math.isfinite(prob):
            pairs.append((prob, price))
    pairs.sort()
    return pairs


def interpolate_price(pairs: Sequence[Tuple[float, float]], p: float) -> float:
    """
    Price at cumulative probability `p`.

    Args:
        pairs: (probability, price) pairs sorted by probability ascending
        p: Target cumulative probability in (0, 1)

    Returns:
        Interpolated price

    Raises:
        QuantileExtractionError: empty grid or non-finite target
    """
    if not pairs:
        raise QuantileExtractionError("empty probability distribution")
    if not math.isfinite(p):
        raise QuantileExtractionError(f"target probability {p!r} is not finite")

    min_prob, min_price = pairs[0]
    max_prob, max_price = pairs[-1]

    if p <= min_prob:
        return min_price
    if p >= max_prob:
        return max_price

    for (prob_lo, price_lo), (prob_hi, price_hi) in zip(pairs, pairs[1:]):
        if prob_lo <= p <= prob_hi:
            if p == prob_lo or p == prob_hi:
                # Grid hit; several prices sharing the probability → midpoint
                tied = [price for prob, price in pairs if prob == p]
                return tied[0] if len(tied) == 1 else (tied[0] + tied[-1]) / 2.0
            return price_lo + (p - prob_lo) / (prob_hi - prob_lo) * (price_hi - price_lo)

    raise QuantileExtractionError(f"no bracketing pair for target probability {p}")


def extract_quantiles(
    snapshot: Snapshot,
    percentiles: Sequence[int] = TARGET_PERCENTILES
) -> Dict[int, float]:
    """
    Interpolate a snapshot at each target percentile.

    Args:
        snapshot: Forecast snapshot
        percentiles: Target percentiles (0-100)

    Returns:
        Dict percentile -> price
    """
    pairs = sorted_pairs(snapshot.probability_below)
    if not pairs:
        raise QuantileExtractionError(
            f"{snapshot.asset} snapshot at {snapshot.timestamp.isoformat()} has no usable distribution"
        )
    return {pct: interpolate_price(pairs, pct / 100.0) for pct in percentiles}


def _nearest_index(timestamps: Sequence[datetime], target: datetime) -> int:
    idx = bisect.bisect_left(timestamps, target)
    if idx == 0:
        return 0
    if idx >= len(timestamps):
        return len(timestamps) - 1
    before = target - timestamps[idx - 1]
    after = timestamps[idx] - target
    return idx - 1 if before <= after else idx


def merge_percentiles(
    snapshots: Sequence[Snapshot],
    target_time: datetime,
    window: int = 7,
    max_offset: timedelta = timedelta(minutes=30),
    percentiles: Sequence[int] = TARGET_PERCENTILES
) -> Optional[MergedPercentiles]:
    """
    Average the percentile ladder of consecutive snapshots around `target_time`.

    The window of `window` consecutive snapshots is centred on the
    snapshot nearest the target and shifted inward at either end of the
    history. Unusable snapshots inside the window are skipped.

    Args:
        snapshots: Snapshots in timestamp order
        target_time: Usually now - 24h
        window: Number of consecutive snapshots to merge
        max_offset: Maximum distance between target and nearest snapshot
        percentiles: Target percentiles

    Returns:
        MergedPercentiles, or None when no snapshot is close enough
    """
    if not snapshots:
        return None

    timestamps = [s.timestamp for s in snapshots]
    anchor = _nearest_index(timestamps, target_time)
    if abs(timestamps[anchor] - target_time) > max_offset:
        LOG.debug(
            f"No snapshot within {max_offset} of {target_time.isoformat()} "
            f"(nearest {timestamps[anchor].isoformat()})"
        )
        return None

    start = max(0, anchor - window // 2)
    end = min(len(snapshots), start + window)
    start = max(0, end - window)

    ladders = []
    for snapshot in snapshots[start:end]:
        try:
            ladders.append(extract_quantiles(snapshot, percentiles))
        except QuantileExtractionError as e:
            LOG.warning(f"Skipping unusable snapshot in merge window: {e}")

    if not ladders:
        return None

    values = {
        pct: float(np.mean([ladder[pct] for ladder in ladders]))
        for pct in percentiles
    }

    return MergedPercentiles(
        target_time=target_time,
        anchor_time=timestamps[anchor],
        values=values,
        snapshots_used=len(ladders)
    )


def percentile_rank(ladder: Mapping[int, float], price: float) -> float:
    """
    Position of `price` inside a percentile ladder (0-100).

    Linear between adjacent rungs, clamped to the ladder's extreme
    percentiles outside it.
    """
    rungs = sorted(ladder.items(), key=lambda item: (item[1], item[0]))
    if not rungs:
        return 50.0

    if price <= rungs[0][1]:
        return float(rungs[0][0])
    if price >= rungs[-1][1]:
        return float(rungs[-1][0])

    for (pct_lo, price_lo), (pct_hi, price_hi) in zip(rungs, rungs[1:]):
        if price_lo <= price <= price_hi:
            if price_hi == price_lo:
                return float(pct_lo + pct_hi) / 2.0
            return pct_lo + (price - price_lo) / (price_hi - price_lo) * (pct_hi - pct_lo)

    return 50.0
