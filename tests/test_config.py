"""
Tests for engine configuration and atomic persistence.
"""

import json
from pathlib import Path

import pytest

from synthrex.config import EngineConfig
from synthrex.persistence import atomic_write_json


class TestEngineConfig:
    """Test configuration hashing and environment overrides."""

    def test_hash_is_deterministic(self):
        assert EngineConfig().compute_hash() == EngineConfig().compute_hash()
        assert len(EngineConfig().compute_hash()) == 12

    def test_hash_ignores_file_locations(self):
        config = EngineConfig()
        config.store.snapshot_file = Path("/elsewhere/snapshots.json")
        config.tracker.tracking_file = Path("/elsewhere/tracking.json")
        assert config.compute_hash() == EngineConfig().compute_hash()

    def test_hash_tracks_thresholds(self):
        config = EngineConfig()
        config.signal.contrarian.tau = 0.02
        assert config.compute_hash() != EngineConfig().compute_hash()

    def test_from_env(self):
        config = EngineConfig.from_env({
            'SYNTHREX_SNAPSHOT_FILE': '/data/snaps.json',
            'SYNTHREX_TRACKING_FILE': '/data/track.json',
            'SYNTHREX_BUFFER_CAPACITY': '250',
        })
        assert config.store.snapshot_file == Path('/data/snaps.json')
        assert config.tracker.tracking_file == Path('/data/track.json')
        assert config.buffer.capacity == 250

    def test_from_env_defaults(self):
        config = EngineConfig.from_env({})
        assert config.buffer.capacity == 500
        assert config.tracker.max_entries == 100


class TestAtomicWrite:
    """Test temp-file-then-replace persistence."""

    def test_replaces_content(self, tmp_path):
        target = tmp_path / "nested" / "log.json"
        atomic_write_json(target, [1, 2])
        atomic_write_json(target, {'a': 1})

        assert json.loads(target.read_text(encoding='utf-8')) == {'a': 1}
        assert [p.name for p in target.parent.iterdir()] == ["log.json"]

    def test_failed_write_keeps_old_content(self, tmp_path):
        target = tmp_path / "log.json"
        atomic_write_json(target, [1])

        with pytest.raises(TypeError):
            atomic_write_json(target, {'bad': object()})

        assert json.loads(target.read_text(encoding='utf-8')) == [1]
        assert [p.name for p in tmp_path.iterdir()] == ["log.json"]
