"""
Shared fixtures for synthrex tests.
"""

import pytest

from synthrex.config import EngineConfig


@pytest.fixture
def engine_config(tmp_path):
    """Engine configuration writing to a temporary directory"""
    config = EngineConfig()
    config.store.snapshot_file = tmp_path / "lp-bounds-snapshots.json"
    config.store.retry_backoff_seconds = 0.0
    config.tracker.tracking_file = tmp_path / "signal-tracking.json"
    return config
