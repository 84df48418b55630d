"""
Snapshot Store (read side)

Reads the persisted forecast snapshot collection produced by the external
ingester. The store never raises for missing, unreadable or malformed
data: every such condition degrades to an empty history.

Accepted document layouts:
    {"version": "1.0", "snapshots": {"BTC": [record, ...], ...}}
    {"BTC": [record, ...], ...}
"""

import json
import time
import logging
from pathlib import Path
from typing import Callable, List, Optional

from pydantic import ValidationError

from synthrex.config import SnapshotStoreConfig
from synthrex.snapshot_store.schemas import Snapshot, SnapshotRecord

LOG = logging.getLogger(__name__)


class SnapshotStore:
    """
    Read-only access to the snapshot log.

    Transient I/O errors are retried a fixed number of times with a fixed
    backoff; afterwards the caller receives "no data".
    """

    def __init__(
        self,
        config: Optional[SnapshotStoreConfig] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Initialize snapshot store.

        Args:
            config: Store configuration (uses defaults if None)
            sleep: Backoff function (injectable for tests)
        """
        self.config = config or SnapshotStoreConfig()
        self._sleep = sleep

        # Data quality counters
        self.skipped_records = 0
        self.failed_reads = 0

    @property
    def path(self) -> Path:
        return Path(self.config.snapshot_file)

    def _read_text(self, path: Path) -> str:
        with open(path, 'r', encoding='utf-8') as f:
            return f.read()

    def read_document(self) -> Optional[dict]:
        """
        Read and decode the whole snapshot document.

        Returns:
            Decoded document, or None when no usable data is available
        """
        path = self.path
        attempts = max(1, self.config.max_read_attempts)

        for attempt in range(1, attempts + 1):
            try:
                text = self._read_text(path)
            except FileNotFoundError:
                LOG.debug(f"Snapshot store {path} does not exist yet")
                return None
            except UnicodeDecodeError as e:
                LOG.warning(f"Snapshot store {path} is not valid UTF-8: {e}")
                return None
            except OSError as e:
                LOG.warning(f"Snapshot store read failed (attempt {attempt}/{attempts}): {e}")
                if attempt < attempts:
                    self._sleep(self.config.retry_backoff_seconds)
                continue

            try:
                document = json.loads(text)
            except json.JSONDecodeError as e:
                LOG.warning(f"Malformed snapshot store {path}: {e}")
                return None

            if not isinstance(document, dict):
                LOG.warning(f"Unexpected snapshot store layout in {path}: {type(document).__name__}")
                return None
            return document

        self.failed_reads += 1
        LOG.error(f"Snapshot store {path} unreadable after {attempts} attempts, returning no data")
        return None

    @staticmethod
    def _asset_section(document: dict) -> dict:
        snapshots = document.get('snapshots')
        if isinstance(snapshots, dict):
            return snapshots
        return {k: v for k, v in document.items() if isinstance(v, list)}

    def assets(self) -> List[str]:
        """List assets present in the store"""
        document = self.read_document()
        if document is None:
            return []
        return sorted(self._asset_section(document).keys())

    def load(self, asset: str) -> List[Snapshot]:
        """
        Load validated snapshots for an asset in timestamp order.

        Args:
            asset: Asset identifier (e.g. "BTC")

        Returns:
            List of snapshots (empty on any data problem)
        """
        document = self.read_document()
        if document is None:
            return []

        raw_records = self._asset_section(document).get(asset)
        if not isinstance(raw_records, list):
            return []

        snapshots = []
        skipped = 0
        for raw in raw_records:
            try:
                record = SnapshotRecord.model_validate(raw)
            except ValidationError as e:
                skipped += 1
                LOG.debug(f"Rejected {asset} snapshot record: {e.error_count()} validation errors")
                continue

            try:
                snapshots.append(record.to_snapshot(asset))
            except (ValueError, OverflowError, OSError) as e:
                skipped += 1
                LOG.debug(f"Rejected {asset} snapshot record at {record.timestamp}: {e}")

        if skipped:
            self.skipped_records += skipped
            LOG.warning(f"Skipped {skipped} malformed {asset} snapshot records")

        snapshots.sort(key=lambda s: s.timestamp)
        return snapshots
