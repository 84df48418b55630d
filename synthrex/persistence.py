"""Atomic JSON persistence shared by the snapshot writer and signal tracker.

Files are never written in place: content goes to a temporary file in
the destination directory which is then moved over the target with
os.replace, so readers observe either the old or the new document.
"""

from __future__ import annotations
import os
import json
import tempfile
from pathlib import Path
from typing import Any, Union
import logging


LOG = logging.getLogger(__name__)


def atomic_write_json(final_path: Union[str, Path], payload: Any, indent: int = 2) -> Path:
    """Atomically replace `final_path` with the JSON encoding of `payload`.

    Raises OSError (or TypeError for unserialisable payloads) after
    removing the temporary file.
    """
    final_path = Path(final_path)
    final_path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(prefix='.tmp_', suffix='.json', dir=str(final_path.parent), text=True)
    os.close(fd)
    try:
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(payload, f, indent=indent)
            f.flush()
            try:
                os.fsync(f.fileno())
            except OSError:
                pass
        os.replace(tmp_path, final_path)
        return final_path
    finally:
        if os.path.exists(tmp_path):
            try:
                os.remove(tmp_path)
            except OSError:
                LOG.debug("Could not remove temporary file %s", tmp_path)
