"""
Per-Asset Snapshot Ring Buffer

Fixed-capacity rolling window of flattened snapshots. Eviction is FIFO and
insertion order is chronological order; the buffer never re-sorts.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterator, List, Optional

from synthrex.forecast_stats.quantiles import TARGET_PERCENTILES, extract_quantiles
from synthrex.snapshot_store.schemas import Snapshot

LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class FlatSnap:
    """Snapshot reduced to price, target quantiles and timestamp"""

    t: datetime
    symbol: str
    price: float
    quantiles: Dict[int, float] = field(default_factory=dict)

    @property
    def q10(self) -> float:
        return self.quantiles[10]

    @property
    def q50(self) -> float:
        return self.quantiles[50]

    @property
    def q90(self) -> float:
        return self.quantiles[90]

    @classmethod
    def from_snapshot(cls, snapshot: Snapshot) -> 'FlatSnap':
        """
        Flatten a snapshot.

        Raises:
            QuantileExtractionError: distribution unusable
        """
        return cls(
            t=snapshot.timestamp,
            symbol=snapshot.asset,
            price=snapshot.current_price,
            quantiles=extract_quantiles(snapshot, TARGET_PERCENTILES)
        )

    def to_dict(self) -> dict:
        """Convert to dictionary"""
        return {
            't': self.t.isoformat(),
            'symbol': self.symbol,
            'price': float(self.price),
            'quantiles': {f"q{p}": float(v) for p, v in self.quantiles.items()},
        }


class SnapshotRingBuffer:
    """
    Bounded FIFO window of FlatSnaps for one asset.

    len(buffer) <= capacity after every push; the retained elements are
    the most recent `capacity` pushes in push order.
    """

    def __init__(self, symbol: str, capacity: int = 500):
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.symbol = symbol
        self.capacity = capacity
        self._items: deque = deque(maxlen=capacity)

    def push(self, snap: FlatSnap):
        """Append a snapshot, evicting the oldest when full"""
        self._items.append(snap)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[FlatSnap]:
        return iter(self._items)

    def snapshots(self) -> List[FlatSnap]:
        """Copy of buffered snapshots, oldest first"""
        return list(self._items)

    def latest(self) -> Optional[FlatSnap]:
        return self._items[-1] if self._items else None

    def latest_price(self) -> Optional[float]:
        snap = self.latest()
        return snap.price if snap else None

    def clear(self):
        self._items.clear()


class BufferRegistry:
    """Ring buffers keyed by asset, owned by one engine instance"""

    def __init__(self, capacity: int = 500):
        self.capacity = capacity
        self._buffers: Dict[str, SnapshotRingBuffer] = {}

    def get(self, symbol: str) -> SnapshotRingBuffer:
        """Get buffer for symbol, creating it on first use"""
        if symbol not in self._buffers:
            self._buffers[symbol] = SnapshotRingBuffer(symbol, self.capacity)
            LOG.debug(f"Created ring buffer for {symbol} (capacity={self.capacity})")
        return self._buffers[symbol]

    def latest_price(self, symbol: str) -> Optional[float]:
        """Most recent buffered price, None if the asset was never buffered"""
        buffer = self._buffers.get(symbol)
        return buffer.latest_price() if buffer else None

    def symbols(self) -> List[str]:
        return sorted(self._buffers.keys())

    def depth(self) -> Dict[str, int]:
        return {symbol: len(buffer) for symbol, buffer in self._buffers.items()}
