"""Helpers for loading the user configuration file (~/.sdkscope/config.json)."""

from __future__ import annotations

import json
import os
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any, Final

from pydantic import BaseModel, Field

from sdkscope.exceptions import InputError

CONFIG_DIR = Path.home() / ".sdkscope"
CONFIG_FILE = CONFIG_DIR / "config.json"

LIBRARY_DB_ENV_VAR: Final[str] = "SDKSCOPE_LIBRARY_DB"
COMPETITORS_ENV_VAR: Final[str] = "SDKSCOPE_COMPETITORS"

DEFAULT_CODE_SCAN_LIMIT: Final[int] = 50


@lru_cache(maxsize=1)
def load_config() -> dict[str, Any]:
    """Load configuration data from disk (cached)."""

    if not CONFIG_FILE.exists():
        return {}

    try:
        raw = CONFIG_FILE.read_text()
    except OSError:
        return {}

    try:
        data = json.loads(raw)
    except ValueError:
        return {}

    if isinstance(data, dict):
        return data

    return {}


def get_config_value(key: str, default: Any | None = None) -> Any | None:
    """Fetch a configuration value by key."""

    return load_config().get(key, default)


def reload_config() -> None:
    """Force the cached configuration to be reloaded on next access."""

    load_config.cache_clear()


def packaged_data_file(name: str) -> Path:
    """Return the path of a reference file shipped inside the package."""

    return Path(str(resources.files("sdkscope").joinpath("data", name)))


class Settings(BaseModel):
    """Resolved settings for one analysis run."""

    library_db: Path | None = None
    """Pipe-delimited library reference database."""

    competitor_list: Path | None = None
    """Competitor display-name list."""

    code_scan_limit: int = Field(default=DEFAULT_CODE_SCAN_LIMIT, ge=0)
    """Maximum number of code files whose contents are searched per keyword."""

    keep_workdir: bool = False
    """Keep the run workspace (merged APK, decoded and raw trees) after the run."""


def _resolve_path(
    explicit: Path | None, env_var: str, config_key: str, default_name: str
) -> Path:
    if explicit is not None:
        return explicit.expanduser()

    env_value = os.environ.get(env_var)
    if env_value:
        return Path(env_value).expanduser()

    cfg_value = get_config_value(config_key)
    if isinstance(cfg_value, str) and cfg_value:
        return Path(cfg_value).expanduser()

    return packaged_data_file(default_name)


def resolve_settings(
    *,
    library_db: Path | None = None,
    competitor_list: Path | None = None,
    code_scan_limit: int | None = None,
    keep_workdir: bool | None = None,
) -> Settings:
    """Build run settings: CLI value, then environment, then config, then default."""

    if code_scan_limit is None:
        cfg_limit = get_config_value("code_scan_limit")
        code_scan_limit = (
            cfg_limit
            if isinstance(cfg_limit, int) and not isinstance(cfg_limit, bool)
            else DEFAULT_CODE_SCAN_LIMIT
        )
    if code_scan_limit < 0:
        raise InputError(
            f"code_scan_limit must be zero or greater, got {code_scan_limit}"
        )

    if keep_workdir is None:
        keep_workdir = bool(get_config_value("keep_workdir", False))

    return Settings(
        library_db=_resolve_path(
            library_db, LIBRARY_DB_ENV_VAR, "library_db", "libraries.txt"
        ),
        competitor_list=_resolve_path(
            competitor_list, COMPETITORS_ENV_VAR, "competitor_list", "competitors.txt"
        ),
        code_scan_limit=code_scan_limit,
        keep_workdir=keep_workdir,
    )
