"""Tests for settings loading."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from searchbridge.config.settings import ElasticsearchSettings, Settings


class TestElasticsearchSettings:
    def test_defaults(self) -> None:
        s = ElasticsearchSettings()
        assert s.hosts == ["http://localhost:9200"]
        assert s.index == "fortune"
        assert s.log == "error"
        assert s.api_version == "2.4"
        assert s.primary_key == "id"
        assert s.discriminator == "record_type"
        assert s.refresh is False

    def test_hosts_from_json_string(self) -> None:
        s = ElasticsearchSettings(hosts='["http://es1:9200", "http://es2:9200"]')
        assert s.hosts == ["http://es1:9200", "http://es2:9200"]

    def test_single_host_string(self) -> None:
        assert ElasticsearchSettings(hosts="http://es1:9200").hosts == ["http://es1:9200"]

    def test_api_version_must_be_numeric(self) -> None:
        with pytest.raises(ValidationError):
            ElasticsearchSettings(api_version="latest")

    def test_unknown_log_level_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ElasticsearchSettings(log="verbose")


class TestSettings:
    def test_env_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SEARCHBRIDGE_ELASTICSEARCH__INDEX", "records")
        monkeypatch.setenv("SEARCHBRIDGE_ELASTICSEARCH__API_VERSION", "7.10")
        monkeypatch.setenv("SEARCHBRIDGE_OBSERVABILITY__LOG_FORMAT", "console")
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.elasticsearch.index == "records"
        assert s.elasticsearch.api_version == "7.10"
        assert s.observability.log_format == "console"

    def test_from_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("elasticsearch:\n  index: app\n  api_version: '6.8'\n  refresh: true\n")
        s = Settings.from_yaml(path)
        assert s.elasticsearch.index == "app"
        assert s.elasticsearch.api_version == "6.8"
        assert s.elasticsearch.refresh is True

    def test_from_yaml_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            Settings.from_yaml(tmp_path / "absent.yaml")
