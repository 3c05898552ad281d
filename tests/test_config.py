from __future__ import annotations

import os
from datetime import datetime, timezone

import pytest

from ddftools import config as config_module
from ddftools.config import ConfigError, load_settings, settings_from_mapping


@pytest.fixture(autouse=True)
def _no_dotenv(monkeypatch):
    monkeypatch.setattr(config_module, "_load_dotenv", lambda: None)
    monkeypatch.delenv(config_module.URL_ENV, raising=False)
    monkeypatch.delenv(config_module.TOKEN_ENV, raising=False)


def test_defaults_and_relative_paths(tmp_path) -> None:
    settings = settings_from_mapping({"source": {"devices": "devices"}}, str(tmp_path))

    assert settings.source.devices == str(tmp_path / "devices")
    assert settings.source.generic == str(tmp_path / "devices" / "generic")
    assert settings.source.search == "**/*.{json,js}"
    assert settings.bundler.modified_method == "gitlog"
    assert settings.bundler.directory_format == "source-tree"
    assert settings.validation.warn_unused_files is True
    assert settings.upload.enabled is False
    assert settings.upload.batch_size == 10


def test_full_mapping(tmp_path) -> None:
    settings = settings_from_mapping(
        {
            "source": {"devices": "d", "generic": "g", "ignore": "*.tmp, drafts/"},
            "bundler": {
                "output": "out",
                "directory-format": "flat",
                "file-format": "hash",
                "modified-method": "diff",
                "changes": "changes.json",
                "dedup": "yes",
            },
            "validation": {"schemas": "schema", "strict": True, "enforce-uuid": "true"},
        },
        str(tmp_path),
    )

    assert settings.source.generic == str(tmp_path / "g")
    assert settings.source.ignore == ["*.tmp", "drafts/"]
    assert settings.bundler.output == str(tmp_path / "out")
    assert settings.bundler.changes == str(tmp_path / "changes.json")
    assert settings.bundler.dedup is True
    assert settings.validation.enforce_uuid is True


@pytest.mark.parametrize(
    "data, message",
    [
        ({}, "source.devices"),
        ({"source": {"devices": "d"}, "bundler": {"file-format": "zip"}}, "output file format"),
        (
            {"source": {"devices": "d"}, "bundler": {"directory-format": "flat"}},
            "not compatible",
        ),
        ({"source": {"devices": "d"}, "bundler": {"modified-method": "diff"}}, "changes"),
        ({"source": {"devices": "d"}, "upload": {"enabled": True}}, "url and token"),
        ({"source": {"devices": "d"}, "upload": {"batch-size": 0}}, "positive"),
        ({"source": {"devices": "d"}, "validation": {"strict": "maybe"}}, "boolean"),
        ({"source": "d"}, "mapping"),
    ],
)
def test_invalid_settings(tmp_path, data, message) -> None:
    with pytest.raises(ConfigError, match=message):
        settings_from_mapping(data, str(tmp_path))


def test_upload_secrets_come_from_environment(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv(config_module.URL_ENV, "https://store.example")
    monkeypatch.setenv(config_module.TOKEN_ENV, "secret")

    settings = settings_from_mapping(
        {"source": {"devices": "d"}, "upload": {"enabled": True}}, str(tmp_path)
    )

    assert settings.upload.url == "https://store.example"
    assert settings.redacted()["upload"]["token"] == "***"
    assert settings.upload.token == "secret"


def test_load_settings_reads_yaml_and_applies_overrides(tmp_path) -> None:
    path = tmp_path / "ddf-tools.yml"
    path.write_text("source:\n  devices: devices\nbundler:\n  file-format: name-hash\n")

    settings = load_settings(
        str(path),
        {"bundler.directory-format": "flat", "bundler.dedup": True, "source.generic": None},
    )

    assert settings.source.devices == os.path.join(str(tmp_path), "devices")
    assert settings.bundler.directory_format == "flat"
    assert settings.bundler.file_format == "name-hash"
    assert settings.bundler.dedup is True


def test_load_settings_uses_default_file_in_cwd(monkeypatch, tmp_path) -> None:
    (tmp_path / "ddf-tools.yml").write_text("source:\n  devices: devs\n")
    monkeypatch.chdir(tmp_path)

    assert load_settings().source.devices == str(tmp_path / "devs")


def test_load_settings_rejects_bad_yaml(tmp_path) -> None:
    path = tmp_path / "bad.yml"
    path.write_text("source: [unclosed\n")

    with pytest.raises(ConfigError, match="Invalid YAML"):
        load_settings(str(path))


def test_since_accepts_iso_timestamps(tmp_path) -> None:
    settings = settings_from_mapping(
        {"source": {"devices": "d"}, "bundler": {"modified-method": "mtime", "since": "2024-03-01T12:00:00"}},
        str(tmp_path),
    )

    assert settings.bundler.since == datetime(2024, 3, 1, 12, tzinfo=timezone.utc)
    assert settings.redacted()["bundler"]["since"] == "2024-03-01T12:00:00+00:00"
    assert settings.base_dir == str(tmp_path)

    with pytest.raises(ConfigError, match="ISO 8601"):
        settings_from_mapping(
            {"source": {"devices": "d"}, "bundler": {"since": "last tuesday"}}, str(tmp_path)
        )
