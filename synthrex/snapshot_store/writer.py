"""Append-side helper for the snapshot log.

The engine never writes snapshots itself; this writer is the contract an
ingestion process uses so that records are validated before they are
persisted and the per-asset history stays bounded.
"""

from __future__ import annotations
import logging
from typing import Optional, Union

from synthrex.config import SnapshotStoreConfig
from synthrex.persistence import atomic_write_json
from synthrex.snapshot_store.schemas import SnapshotRecord
from synthrex.snapshot_store.store import SnapshotStore


LOG = logging.getLogger(__name__)

STORE_VERSION = "1.0"


class SnapshotWriter:
    """Validate, append and trim snapshot records per asset."""

    def __init__(self, config: Optional[SnapshotStoreConfig] = None):
        self.config = config or SnapshotStoreConfig()
        self._reader = SnapshotStore(self.config)

    def append(self, asset: str, record: Union[dict, SnapshotRecord]) -> int:
        """Append one record for `asset` and persist the whole document.

        Raises pydantic.ValidationError for malformed records, OSError when
        the document cannot be written. Returns the asset's history length.
        """
        if not isinstance(record, SnapshotRecord):
            record = SnapshotRecord.model_validate(record)

        document = self._reader.read_document() or {}
        snapshots = dict(SnapshotStore._asset_section(document))

        history = list(snapshots.get(asset) or [])
        history.append(record.model_dump())

        limit = self.config.max_snapshots_per_asset
        if len(history) > limit:
            history = history[-limit:]
        snapshots[asset] = history

        atomic_write_json(
            self.config.snapshot_file,
            {'version': document.get('version', STORE_VERSION), 'snapshots': snapshots}
        )
        LOG.debug("Stored %s snapshot (%d retained)", asset, len(history))
        return len(history)
