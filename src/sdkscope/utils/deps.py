"""External tool dependency checker."""

from __future__ import annotations

import os
import shutil
from pathlib import Path
from typing import Final

from sdkscope.exceptions import ToolNotFoundError
from sdkscope.utils.config import get_config_value

# Install hints for required tools
TOOL_INSTALL_HINTS: dict[str, str] = {
    "apktool": (
        "https://apktool.ibotpeaches.com/ (add it to PATH, set SDKSCOPE_APKTOOL, "
        "or configure apktool_path in ~/.sdkscope/config.json)"
    ),
    "java": "Install a Java runtime (JRE 8+) and ensure `java` is on PATH",
}

APKTOOL_ENV_VAR: Final[str] = "SDKSCOPE_APKTOOL"
APKTOOL_CONFIG_KEY: Final[str] = "apktool_path"


def check_tool(tool: str) -> bool:
    """Check if a tool is available on PATH or via configuration."""

    if tool == "apktool":
        return get_apktool_command() is not None

    return shutil.which(tool) is not None


def require(*tools: str) -> None:
    """Require that all specified tools are available.

    Args:
        *tools: Names of tools that must be available.

    Raises:
        ToolNotFoundError: If any tool is not found.
    """
    for tool in tools:
        if not check_tool(tool):
            raise ToolNotFoundError(tool, TOOL_INSTALL_HINTS.get(tool))


def _resolve_apktool(raw_value: str | None) -> list[str] | None:
    if not raw_value:
        return None

    candidate = Path(raw_value).expanduser()
    if candidate.is_file():
        if candidate.suffix.lower() == ".jar":
            return ["java", "-jar", str(candidate)]
        return [str(candidate)]

    return None


def get_apktool_command() -> list[str] | None:
    """Resolve the apktool command via env/config/PATH."""

    command = _resolve_apktool(os.environ.get(APKTOOL_ENV_VAR))
    if command is None:
        cfg_value = get_config_value(APKTOOL_CONFIG_KEY)
        command = _resolve_apktool(cfg_value if isinstance(cfg_value, str) else None)

    if command is not None:
        return command

    wrapper = shutil.which("apktool")
    if wrapper:
        return [wrapper]

    return None
