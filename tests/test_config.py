"""Test config loading and parsing."""

import tempfile
from pathlib import Path

import pytest
import yaml

from mirror.config import Config, _deep_update, load_config
from mirror.core.errors import MirrorConfigurationError


class TestDeepUpdate:
    def test_deep_update_nested(self):
        base = {"a": {"x": 1, "y": 2}, "b": 3}
        override = {"a": {"y": 99, "z": 100}}
        assert _deep_update(base, override) == {"a": {"x": 1, "y": 99, "z": 100}, "b": 3}

    def test_deep_update_preserves_base(self):
        base = {"a": 1}
        _deep_update(base, {"b": 2})
        assert base == {"a": 1}


class TestLoadConfig:
    def test_load_config_from_yaml(self):
        # Arrange
        with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
            f.write("state_file: /tmp/mirrors.json\n")
            f.write("content_filter_regex:\n")
            f.write("  - '^!'\n")
            path = f.name

        try:
            # Act
            data = load_config(path)

            # Assert
            assert data["state_file"] == "/tmp/mirrors.json"
            assert data["content_filter_regex"] == ["^!"]
        finally:
            Path(path).unlink()

    def test_missing_file_returns_empty(self, tmp_path):
        assert load_config(tmp_path / "nope.yaml") == {}

    def test_non_dict_returns_empty(self, tmp_path):
        path = tmp_path / "c.yaml"
        path.write_text("- a\n- b\n")
        assert load_config(path) == {}

    def test_invalid_yaml_raises(self, tmp_path):
        path = tmp_path / "c.yaml"
        path.write_text("key: [unclosed\n")
        with pytest.raises(yaml.YAMLError):
            load_config(path)


class TestConfig:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("MIRROR_STATE_FILE", raising=False)
        config = Config({})
        assert config.state_file == Path("data/mirror_config.json")
        assert config.endpoint_name == "Mirror Bot"
        assert config.endpoint_reason == "Mirror System"
        assert config.asset_url_pattern == r"https://cdn\.discordapp\.com/\S+"
        assert config.attachment_max_bytes == 8 * 1024 * 1024
        assert config.channel_cache_ttl_seconds == 300
        assert config.content_filter_regex == []

    def test_values_from_data(self, monkeypatch):
        monkeypatch.delenv("MIRROR_STATE_FILE", raising=False)
        config = Config({"state_file": "x.json", "endpoint_name": "Relay", "attachment_max_bytes": "10"})
        assert config.state_file == Path("x.json")
        assert config.endpoint_name == "Relay"
        assert config.attachment_max_bytes == 10

    def test_state_file_env_override(self, monkeypatch):
        monkeypatch.setenv("MIRROR_STATE_FILE", "/var/lib/mirror.json")
        config = Config({"state_file": "x.json"})
        assert config.state_file == Path("/var/lib/mirror.json")

    def test_get_dotted(self):
        config = Config({"a": {"b": 1}})
        assert config.get("a.b") == 1
        assert config.get("a.c", "d") == "d"

    @pytest.mark.parametrize(
        "data",
        [
            {"content_filter_regex": "^!"},
            {"asset_url_pattern": "(unclosed"},
            {"attachment_max_bytes": "lots"},
        ],
    )
    def test_reload_validates(self, data):
        with pytest.raises(MirrorConfigurationError):
            Config().reload(data)
