"""Test JSON state file persistence."""

import json

import pytest

from mirror.core.errors import PersistenceFailed
from mirror.gateway.store import ConfigStore


class TestConfigStore:
    def test_missing_file_is_created_empty(self, tmp_path):
        # Arrange
        path = tmp_path / "data" / "mirror_config.json"
        store = ConfigStore(path)

        # Act
        data = store.load()

        # Assert
        assert data == {}
        assert path.exists()
        assert json.loads(path.read_text()) == {}

    def test_empty_file_means_no_relays(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("   \n")
        assert ConfigStore(path).load() == {}

    def test_invalid_json_means_no_relays(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("{not json")
        assert ConfigStore(path).load() == {}

    def test_non_object_document_means_no_relays(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("[1, 2, 3]")
        assert ConfigStore(path).load() == {}

    def test_save_then_load(self, tmp_path):
        store = ConfigStore(tmp_path / "state.json")
        records = {"S1": {"sourceId": "S1", "targetId": "D1", "mode": "direct", "webhook": None, "startTime": "t"}}
        store.save(records)
        assert store.load() == records

    def test_save_is_indented_json(self, tmp_path):
        path = tmp_path / "state.json"
        ConfigStore(path).save({"S1": {"sourceId": "S1"}})
        assert '\n    "S1"' in path.read_text()

    def test_save_replaces_whole_document(self, tmp_path):
        store = ConfigStore(tmp_path / "state.json")
        store.save({"S1": {}, "S2": {}})
        store.save({"S2": {}})
        assert store.load() == {"S2": {}}

    def test_save_leaves_no_temp_files(self, tmp_path):
        store = ConfigStore(tmp_path / "state.json")
        store.save({"S1": {}})
        assert [p.name for p in tmp_path.iterdir()] == ["state.json"]

    def test_unwritable_path_raises_persistence_failed(self, tmp_path):
        # A directory where the file should be
        path = tmp_path / "state.json"
        path.mkdir()
        with pytest.raises(PersistenceFailed):
            ConfigStore(path).save({})

    def test_unreadable_path_means_no_relays(self, tmp_path):
        path = tmp_path / "state.json"
        path.mkdir()
        assert ConfigStore(path).load() == {}
