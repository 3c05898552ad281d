from __future__ import annotations

import copy
import os
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

import yaml

from .build.export import DIRECTORY_FORMATS, FILE_FORMATS
from .sources.status import MODIFIED_METHODS

DEFAULT_CONFIG_NAME = "ddf-tools.yml"
URL_ENV = "DDF_TOOLS_UPLOAD_URL"
TOKEN_ENV = "DDF_TOOLS_UPLOAD_TOKEN"


class ConfigError(ValueError):
    pass


@dataclass
class SourceSettings:
    devices: str
    generic: str
    search: str = "**/*.{json,js}"
    ignore: list[str] = field(default_factory=list)


@dataclass
class ValidationSettings:
    enabled: bool = True
    schemas: str | None = None
    strict: bool = False
    enforce_uuid: bool = False
    warn_unused_files: bool = True


@dataclass
class BundlerSettings:
    enabled: bool = True
    output: str | None = None
    directory_format: str = "source-tree"
    file_format: str = "name"
    modified_method: str = "gitlog"
    changes: str | None = None
    base_rev: str | None = None
    since: datetime | None = None
    dedup: bool = False


@dataclass
class UploadSettings:
    enabled: bool = False
    url: str | None = None
    token: str | None = None
    input: str | None = None
    batch_size: int = 10


@dataclass
class Settings:
    source: SourceSettings
    bundler: BundlerSettings = field(default_factory=BundlerSettings)
    validation: ValidationSettings = field(default_factory=ValidationSettings)
    upload: UploadSettings = field(default_factory=UploadSettings)
    base_dir: str = field(default_factory=os.getcwd)

    def redacted(self) -> dict[str, Any]:
        data = copy.deepcopy(asdict(self))
        if self.bundler.since is not None:
            data["bundler"]["since"] = self.bundler.since.isoformat()
        for key in ("url", "token"):
            if data["upload"].get(key):
                data["upload"][key] = "***"
        return data


def _load_dotenv() -> None:
    from dotenv import find_dotenv, load_dotenv

    env_path = find_dotenv(usecwd=True)
    if env_path:
        load_dotenv(env_path, override=False)


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{name}' must be a mapping")
    return section


def _as_bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in {"1", "true", "yes", "on"}:
        return True
    if isinstance(value, str) and value.strip().lower() in {"0", "false", "no", "off"}:
        return False
    raise ConfigError(f"'{name}' must be a boolean")


def _as_list(value: Any, name: str) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return list(value)
    raise ConfigError(f"'{name}' must be a string or a list of strings")


def _as_datetime(value: Any, name: str) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        when = value
    else:
        try:
            when = datetime.fromisoformat(str(value).strip())
        except ValueError as exc:
            raise ConfigError(f"'{name}' must be an ISO 8601 timestamp") from exc
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return when


def _choice(value: Any, choices: tuple[str, ...], name: str) -> str:
    if value not in choices:
        raise ConfigError(
            f"Unknown {name}: {value!r} (expected one of {', '.join(choices)})"
        )
    return value


def settings_from_mapping(data: dict[str, Any], base_dir: str | None = None) -> Settings:
    """Build validated settings from a parsed config mapping.

    Relative paths are resolved against ``base_dir``; upload secrets fall back
    to the environment (and a ``.env`` file).
    """
    if not isinstance(data, dict):
        raise ConfigError("Config must be a mapping")
    base = os.path.abspath(base_dir or os.getcwd())

    def resolve(path: str | None) -> str | None:
        if not path:
            return None
        return os.path.normpath(os.path.join(base, os.path.expanduser(path)))

    src = _section(data, "source")
    devices = resolve(src.get("devices"))
    if devices is None:
        raise ConfigError("'source.devices' must be defined")
    source = SourceSettings(
        devices=devices,
        generic=resolve(src.get("generic")) or os.path.join(devices, "generic"),
        search=str(src.get("search") or "**/*.{json,js}"),
        ignore=_as_list(src.get("ignore"), "source.ignore"),
    )

    bnd = _section(data, "bundler")
    bundler = BundlerSettings(
        enabled=_as_bool(bnd.get("enabled", True), "bundler.enabled"),
        output=resolve(bnd.get("output")),
        directory_format=_choice(
            bnd.get("directory-format", "source-tree"),
            DIRECTORY_FORMATS,
            "output directory format",
        ),
        file_format=_choice(
            bnd.get("file-format", "name"), FILE_FORMATS, "output file format"
        ),
        modified_method=_choice(
            bnd.get("modified-method", "gitlog"), MODIFIED_METHODS, "file modified method"
        ),
        changes=resolve(bnd.get("changes")),
        base_rev=bnd.get("base-rev"),
        since=_as_datetime(bnd.get("since"), "bundler.since"),
        dedup=_as_bool(bnd.get("dedup", False), "bundler.dedup"),
    )
    if bundler.file_format == "name" and bundler.directory_format == "flat":
        raise ConfigError(
            'Output file format "name" is not compatible with output directory '
            'format "flat" because multiple files can have the same path.'
        )
    if bundler.modified_method == "diff" and bundler.changes is None:
        raise ConfigError("'bundler.changes' is required with modified-method 'diff'")

    val = _section(data, "validation")
    validation = ValidationSettings(
        enabled=_as_bool(val.get("enabled", True), "validation.enabled"),
        schemas=resolve(val.get("schemas")),
        strict=_as_bool(val.get("strict", False), "validation.strict"),
        enforce_uuid=_as_bool(val.get("enforce-uuid", False), "validation.enforce-uuid"),
        warn_unused_files=_as_bool(
            val.get("warn-unused-files", True), "validation.warn-unused-files"
        ),
    )

    up = _section(data, "upload")
    _load_dotenv()
    try:
        batch_size = int(up.get("batch-size", 10))
    except (TypeError, ValueError) as exc:
        raise ConfigError("'upload.batch-size' must be an integer") from exc
    if batch_size <= 0:
        raise ConfigError("'upload.batch-size' must be positive")
    upload = UploadSettings(
        enabled=_as_bool(up.get("enabled", False), "upload.enabled"),
        url=up.get("url") or os.environ.get(URL_ENV) or None,
        token=up.get("token") or os.environ.get(TOKEN_ENV) or None,
        input=resolve(up.get("input")),
        batch_size=batch_size,
    )
    if upload.enabled and (not upload.url or not upload.token):
        raise ConfigError("Both url and token must be provided for upload")

    return Settings(
        source=source,
        bundler=bundler,
        validation=validation,
        upload=upload,
        base_dir=base,
    )


def load_settings(
    path: str | None = None, overrides: dict[str, Any] | None = None
) -> Settings:
    """Read settings from ``path`` (or ``ddf-tools.yml`` in the cwd when present)."""
    data: dict[str, Any] = {}
    base_dir = os.getcwd()
    if path is None and os.path.isfile(DEFAULT_CONFIG_NAME):
        path = DEFAULT_CONFIG_NAME
    if path is not None:
        try:
            with open(path, "r", encoding="utf-8") as f:
                loaded = yaml.safe_load(f)
        except OSError as exc:
            raise ConfigError(f"Cannot read config {path}: {exc}") from exc
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
        if loaded is not None and not isinstance(loaded, dict):
            raise ConfigError("Config must be a mapping")
        data = loaded or {}
        base_dir = os.path.dirname(os.path.abspath(path))

    for dotted, value in (overrides or {}).items():
        if value is None:
            continue
        section, _, key = dotted.partition(".")
        target = data.setdefault(section, {})
        if not isinstance(target, dict):
            raise ConfigError(f"'{section}' must be a mapping")
        target[key] = value
    return settings_from_mapping(data, base_dir=base_dir)
