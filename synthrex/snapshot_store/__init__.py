"""
Snapshot Store

Durable record of periodic probabilistic forecast snapshots per asset.

The log is produced by an external ingester at a fixed cadence (5-minute
intervals); this package validates records at the boundary and exposes
them read-only to the forecast statistics layer.
"""

from synthrex.snapshot_store.schemas import Snapshot, SnapshotRecord
from synthrex.snapshot_store.store import SnapshotStore
from synthrex.snapshot_store.writer import SnapshotWriter

__all__ = [
    'Snapshot',
    'SnapshotRecord',
    'SnapshotStore',
    'SnapshotWriter',
]
