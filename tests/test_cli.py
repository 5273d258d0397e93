"""Tests for the command line interface."""

import json

import pytest
from conftest import make_zip, zip_bytes
from typer.testing import CliRunner

from sdkscope import __version__
from sdkscope.cli.main import app
from sdkscope.utils import config

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "CONFIG_FILE", tmp_path / "config.json")
    config.reload_config()
    yield
    config.reload_config()


@pytest.fixture
def container(tmp_path):
    return make_zip(
        tmp_path / "app.apks",
        {
            "base.apk": zip_bytes({"AndroidManifest.xml": "m", "classes.dex": "d"}),
            "split_config.arm64_v8a.apk": zip_bytes(
                {"lib/arm64-v8a/libfoo.so": "elf"}
            ),
        },
    )


def test_version():
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_merge_json(container, tmp_path):
    output = tmp_path / "out.apk"
    result = runner.invoke(
        app, ["apk", "merge", str(container), "-o", str(output), "--json"]
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["base_apk"] == "base.apk"
    assert payload["arch_splits"] == ["split_config.arm64_v8a.apk"]
    assert payload["files_written"] == 3
    assert output.is_file()


def test_merge_without_base_fails(tmp_path):
    container = make_zip(
        tmp_path / "nobase.apks", {"split_config.en.apk": zip_bytes({"a": "b"})}
    )
    result = runner.invoke(app, ["apk", "merge", str(container)])

    assert result.exit_code == 1
    assert "No base APK found" in result.output


def test_detect_requires_keyword(sample_apk):
    result = runner.invoke(app, ["analyze", "detect", str(sample_apk)])
    assert result.exit_code != 0


def test_analyze_rejects_unsupported_input(tmp_path):
    path = tmp_path / "notes.txt"
    path.write_text("text", encoding="utf-8")

    result = runner.invoke(app, ["analyze", "inventory", str(path)])

    assert result.exit_code == 1
    assert "Unsupported input" in result.output


def test_negative_scan_limit_in_config_fails_cleanly(sample_apk, tmp_path):
    (tmp_path / "config.json").write_text('{"code_scan_limit": -1}')
    config.reload_config()

    result = runner.invoke(app, ["analyze", "inventory", str(sample_apk)])

    assert result.exit_code == 1
    assert "code_scan_limit" in result.output
    assert "Traceback" not in result.output
