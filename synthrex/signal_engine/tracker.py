"""
Signal Tracker

Records every emitted regime signal, resolves it against the then-current
price once the forecast horizon has elapsed, and persists the outcome log.
Completed outcomes feed the rolling bias estimate of later analyses.

Guarantees:
- At most one open entry per (symbol, signal type, direction)
- Log trimmed to the most recent `max_entries` on each append
- Log rewritten atomically on every mutation
- Entries without an available exit price stay open
- All read-modify-write sequences run under one lock
"""

import json
import logging
import threading
from datetime import datetime, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from synthrex.config import TrackerConfig
from synthrex.persistence import atomic_write_json
from synthrex.signal_engine.schemas import (
    SignalDirection,
    SignalTrackingEntry,
    SignalType
)

LOG = logging.getLogger(__name__)


class TrackingPersistenceError(Exception):
    """Raised when the tracking log could not be written; in-memory state is kept"""

    def __init__(self, message: str, entries: Optional[List[SignalTrackingEntry]] = None):
        super().__init__(message)
        self.entries = entries or []


def compute_outcome(
    entry_price: float,
    predicted_price: float,
    exit_price: float
) -> Tuple[float, float, float]:
    """
    Realized return, predicted return and bias error of a signal.

    Computed in decimal arithmetic on the prices' shortest representation
    so that e.g. entry 100 / predicted 105 / exit 102 yields exactly
    0.02 / 0.05 / -0.03.

    Returns:
        (realized_return, predicted_return, bias_error)
    """
    entry = Decimal(repr(float(entry_price)))
    predicted = Decimal(repr(float(predicted_price)))
    exit_ = Decimal(repr(float(exit_price)))

    realized_return = (exit_ - entry) / entry
    predicted_return = (predicted - entry) / entry
    bias_error = realized_return - predicted_return

    return float(realized_return), float(predicted_return), float(bias_error)


class SignalTracker:
    """
    Persistent signal outcome log.

    Pass the engine's lock so that tracker and regime log updates from
    concurrent analyses are serialized by the same mutex.
    """

    def __init__(
        self,
        config: Optional[TrackerConfig] = None,
        lock: Optional[threading.RLock] = None
    ):
        self.config = config or TrackerConfig()
        self.horizon = timedelta(hours=self.config.horizon_hours)
        self._lock = lock or threading.RLock()
        self._entries: List[SignalTrackingEntry] = self._load()

        LOG.info(
            f"SignalTracker loaded {len(self._entries)} entries from {self.path} "
            f"({len(self.open_entries())} open)"
        )

    @property
    def path(self) -> Path:
        return Path(self.config.tracking_file)

    def _load(self) -> List[SignalTrackingEntry]:
        """Load persisted log; missing or corrupt log → empty"""
        path = self.path
        if not path.exists():
            return []

        try:
            with open(path, 'r', encoding='utf-8') as f:
                raw = json.load(f)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            LOG.warning(f"Could not read tracking log {path}: {e}; starting empty")
            return []

        if not isinstance(raw, list):
            LOG.warning(f"Tracking log {path} is not a list; starting empty")
            return []

        entries = []
        for item in raw:
            try:
                entries.append(SignalTrackingEntry.from_dict(item))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                LOG.warning(f"Skipping malformed tracking entry: {e}")

        return entries[-self.config.max_entries:]

    def _persist(self, changed: List[SignalTrackingEntry]):
        """Rewrite the whole log atomically (caller holds the lock)"""
        try:
            atomic_write_json(self.path, [e.to_dict() for e in self._entries])
        except (OSError, TypeError) as e:
            LOG.error(f"Failed to persist tracking log {self.path}: {e}")
            raise TrackingPersistenceError(f"tracking log not persisted: {e}", changed) from e

    def find_open(
        self,
        symbol: str,
        signal_type: SignalType,
        direction: SignalDirection
    ) -> Optional[SignalTrackingEntry]:
        """Open entry for (symbol, type, direction), if any"""
        with self._lock:
            for entry in self._entries:
                if not entry.completed and entry.key() == (symbol, signal_type, direction):
                    return entry
            return None

    def record(
        self,
        symbol: str,
        signal_type: SignalType,
        direction: SignalDirection,
        entry_price: float,
        predicted_price: float,
        timestamp: datetime
    ) -> Optional[SignalTrackingEntry]:
        """
        Track a newly emitted signal.

        Args:
            symbol: Asset identifier
            signal_type: Policy that produced the signal
            direction: LONG or SHORT
            entry_price: Price at emission
            predicted_price: Forecast median (q50) at emission
            timestamp: Emission time

        Returns:
            New entry, or None when an open duplicate suppressed it

        Raises:
            TrackingPersistenceError: entry kept in memory but not persisted
        """
        if not direction.is_directional:
            raise ValueError(f"Only LONG/SHORT signals are tracked, got {direction.value}")

        with self._lock:
            existing = self.find_open(symbol, signal_type, direction)
            if existing is not None:
                LOG.debug(
                    f"Suppressed duplicate {symbol} {signal_type.value} {direction.value} "
                    f"(open since {existing.timestamp.isoformat()})"
                )
                return None

            entry = SignalTrackingEntry(
                timestamp=timestamp,
                symbol=symbol,
                signal_type=signal_type,
                direction=direction,
                entry_price=float(entry_price),
                predicted_price=float(predicted_price)
            )
            self._entries.append(entry)

            overflow = len(self._entries) - self.config.max_entries
            if overflow > 0:
                del self._entries[:overflow]

            LOG.info(
                f"Tracking {symbol} {signal_type.value} {direction.value} "
                f"entry={entry_price:.4f} predicted={predicted_price:.4f}"
            )
            self._persist([entry])
            return entry

    def resolve_due(
        self,
        now: datetime,
        price_lookup: Callable[[str], Optional[float]]
    ) -> List[SignalTrackingEntry]:
        """
        Complete open entries whose horizon has elapsed.

        Args:
            now: Current time
            price_lookup: symbol → most recent price (None if unavailable)

        Returns:
            Entries completed by this call

        Raises:
            TrackingPersistenceError: outcomes kept in memory but not persisted
        """
        with self._lock:
            resolved = []
            for entry in self._entries:
                if entry.completed or now - entry.timestamp < self.horizon:
                    continue

                exit_price = price_lookup(entry.symbol)
                if exit_price is None:
                    LOG.debug(f"No current price for {entry.symbol}; entry stays open")
                    continue

                realized, predicted, bias_error = compute_outcome(
                    entry.entry_price, entry.predicted_price, exit_price
                )
                entry.exit_timestamp = now
                entry.exit_price = float(exit_price)
                entry.realized_return = realized
                entry.predicted_return = predicted
                entry.bias_error = bias_error
                entry.completed = True
                resolved.append(entry)

                LOG.info(
                    f"Resolved {entry.symbol} {entry.signal_type.value} {entry.direction.value}: "
                    f"realized={realized:+.4%} predicted={predicted:+.4%} bias_error={bias_error:+.4%}"
                )

            if resolved:
                self._persist(resolved)
            return resolved

    def completed_for(self, symbol: str) -> List[Tuple[float, float]]:
        """(realized_return, bias_error) of completed entries for symbol, oldest first"""
        with self._lock:
            return [
                (e.realized_return, e.bias_error)
                for e in self._entries
                if e.completed and e.symbol == symbol
                and e.realized_return is not None and e.bias_error is not None
            ]

    def open_entries(self, symbol: Optional[str] = None) -> List[SignalTrackingEntry]:
        with self._lock:
            return [
                e for e in self._entries
                if not e.completed and (symbol is None or e.symbol == symbol)
            ]

    def entries(self) -> List[SignalTrackingEntry]:
        """Copy of the log, oldest first"""
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
