"""Tests for configuration schema and loading."""

import json

import pytest
from pydantic import ValidationError

from condenser.config.loader import (
    camel_to_snake,
    convert_keys,
    convert_to_camel,
    load_config,
    save_config,
    snake_to_camel,
)
from condenser.config.schema import CompressionConfig, Config, FilterConfig


class TestDefaults:
    def test_compression_defaults(self):
        c = CompressionConfig()
        assert c.enabled is True
        assert c.preserve_recent_count == 10
        assert c.compression_model_id == "gemini/gemini-2.5-flash-lite"
        assert c.compression_threshold == 0.7
        assert c.timeout_seconds == 300
        assert c.early_exit_reduction == 0.75

    def test_filter_defaults(self):
        f = FilterConfig()
        assert f.read_tool == "readFile"
        assert f.exploratory_tools == ["glob", "listFiles", "codeSearch"]
        assert f.singleton_tools == ["todoWrite", "exitPlanMode"]
        assert f.protection_window == 20
        assert f.keep_narration is False

    def test_threshold_bounds(self):
        with pytest.raises(ValidationError):
            CompressionConfig(compression_threshold=0)
        with pytest.raises(ValidationError):
            CompressionConfig(compression_threshold=1.5)

    def test_negative_preserve_rejected(self):
        with pytest.raises(ValidationError):
            CompressionConfig(preserve_recent_count=-1)


class TestEnvironment:
    def test_nested_env_override(self, monkeypatch):
        monkeypatch.setenv("CONDENSER_COMPRESSION__PRESERVE_RECENT_COUNT", "3")
        monkeypatch.setenv("CONDENSER_MODEL", "openai/gpt-4o")
        config = Config()
        assert config.compression.preserve_recent_count == 3
        assert config.model == "openai/gpt-4o"


class TestKeyConversion:
    def test_camel_to_snake(self):
        assert camel_to_snake("preserveRecentCount") == "preserve_recent_count"
        assert camel_to_snake("enabled") == "enabled"

    def test_snake_to_camel(self):
        assert snake_to_camel("compression_model_id") == "compressionModelId"

    def test_context_length_keys_untouched(self):
        data = {"contextLengths": {"openai/myModel": 1000}}
        assert convert_keys(data) == {"context_lengths": {"openai/myModel": 1000}}
        assert convert_to_camel({"context_lengths": {"acme/my_model": 5}}) == {
            "contextLengths": {"acme/my_model": 5},
        }


class TestLoadSave:
    def test_missing_file_gives_defaults(self, tmp_path):
        config = load_config(tmp_path / "missing.json")
        assert config.compression.preserve_recent_count == 10

    def test_camel_case_file(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({
            "compression": {"preserveRecentCount": 4, "compressionThreshold": 0.5},
            "filter": {"protectionWindow": 8, "keepNarration": True},
            "contextLengths": {"acme/model": 32000},
        }))
        config = load_config(path)
        assert config.compression.preserve_recent_count == 4
        assert config.compression.compression_threshold == 0.5
        assert config.filter.protection_window == 8
        assert config.filter.keep_narration is True
        assert config.context_lengths == {"acme/model": 32000}

    def test_invalid_json_falls_back(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json")
        assert load_config(path).compression.enabled is True

    def test_invalid_values_fall_back(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"compression": {"compressionThreshold": 7}}))
        assert load_config(path).compression.compression_threshold == 0.7

    def test_save_then_load(self, tmp_path):
        path = tmp_path / "nested" / "config.json"
        config = Config(compression=CompressionConfig(preserve_recent_count=6))
        save_config(config, path)

        data = json.loads(path.read_text())
        assert data["compression"]["preserveRecentCount"] == 6
        assert load_config(path).compression.preserve_recent_count == 6
