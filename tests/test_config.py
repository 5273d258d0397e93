"""Tests for configuration loading and settings resolution."""

import json
from pathlib import Path

import pytest

from sdkscope.exceptions import InputError
from sdkscope.utils import config
from sdkscope.utils.config import (
    COMPETITORS_ENV_VAR,
    LIBRARY_DB_ENV_VAR,
    packaged_data_file,
    resolve_settings,
)


@pytest.fixture(autouse=True)
def config_file(tmp_path, monkeypatch):
    path = tmp_path / "config.json"
    monkeypatch.setattr(config, "CONFIG_FILE", path)
    monkeypatch.delenv(LIBRARY_DB_ENV_VAR, raising=False)
    monkeypatch.delenv(COMPETITORS_ENV_VAR, raising=False)
    config.reload_config()
    yield path
    config.reload_config()


def _write_config(path, data):
    path.write_text(json.dumps(data))
    config.reload_config()


class TestLoadConfig:
    """Tests for the cached config file loader."""

    def test_missing_file(self):
        assert config.load_config() == {}

    def test_invalid_json(self, config_file):
        config_file.write_text("{not json")
        config.reload_config()
        assert config.load_config() == {}

    def test_non_object(self, config_file):
        _write_config(config_file, ["a", "b"])
        assert config.load_config() == {}

    def test_get_value(self, config_file):
        _write_config(config_file, {"code_scan_limit": 10})

        assert config.get_config_value("code_scan_limit") == 10
        assert config.get_config_value("missing", "fallback") == "fallback"


class TestResolveSettings:
    """Tests for CLI, environment, config and default precedence."""

    def test_defaults(self):
        settings = resolve_settings()

        assert settings.library_db == packaged_data_file("libraries.txt")
        assert settings.competitor_list == packaged_data_file("competitors.txt")
        assert settings.code_scan_limit == 50
        assert not settings.keep_workdir

    def test_packaged_files_exist(self):
        assert packaged_data_file("libraries.txt").is_file()
        assert packaged_data_file("competitors.txt").is_file()

    def test_config_file_values(self, config_file, tmp_path):
        _write_config(
            config_file,
            {
                "library_db": str(tmp_path / "cfg-db.txt"),
                "code_scan_limit": 5,
                "keep_workdir": True,
            },
        )
        settings = resolve_settings()

        assert settings.library_db == tmp_path / "cfg-db.txt"
        assert settings.code_scan_limit == 5
        assert settings.keep_workdir

    def test_environment_overrides_config(self, config_file, tmp_path, monkeypatch):
        _write_config(config_file, {"library_db": str(tmp_path / "cfg-db.txt")})
        monkeypatch.setenv(LIBRARY_DB_ENV_VAR, str(tmp_path / "env-db.txt"))
        monkeypatch.setenv(COMPETITORS_ENV_VAR, str(tmp_path / "env-rivals.txt"))

        settings = resolve_settings()

        assert settings.library_db == tmp_path / "env-db.txt"
        assert settings.competitor_list == tmp_path / "env-rivals.txt"

    def test_explicit_values_win(self, tmp_path, monkeypatch):
        monkeypatch.setenv(LIBRARY_DB_ENV_VAR, str(tmp_path / "env-db.txt"))

        settings = resolve_settings(
            library_db=Path("cli-db.txt"), code_scan_limit=0, keep_workdir=True
        )

        assert settings.library_db == Path("cli-db.txt")
        assert settings.code_scan_limit == 0
        assert settings.keep_workdir

    def test_negative_scan_limit_rejected(self):
        with pytest.raises(InputError, match="code_scan_limit"):
            resolve_settings(code_scan_limit=-1)

    def test_negative_scan_limit_in_config_rejected(self, config_file):
        _write_config(config_file, {"code_scan_limit": -5})

        with pytest.raises(InputError, match="-5"):
            resolve_settings()

    def test_non_integer_scan_limit_in_config_ignored(self, config_file):
        _write_config(config_file, {"code_scan_limit": True})
        assert resolve_settings().code_scan_limit == 50
