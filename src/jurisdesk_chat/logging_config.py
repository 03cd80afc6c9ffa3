"""Loguru sinks for the chat CLI.

``LogConsumers`` in config.json is a list of sink entries such as
``{"type": "file", "path": "...", "level": "DEBUG"}``. Two sink types exist:
``console`` (stderr) and ``file`` (rotating, UTF-8).
"""

import sys
from pathlib import Path
from typing import Any

from loguru import logger

DEFAULT_LOG_PATH = ".jurisdesk/logs/jurisdesk.log"

_CONSOLE_FORMAT = "<level>{level:<8}</level> | <level>{message}</level>"
_CONSOLE_VERBOSE_FORMAT = (
    "<level>{level:<8}</level> | <cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | {name}:{function}:{line} - {message}"

_DEFAULT_SINKS: list[dict[str, Any]] = [
    {"type": "console", "level": "WARNING"},
    {"type": "file", "path": DEFAULT_LOG_PATH},
]


def _add_console_sink(entry: dict[str, Any], level: str) -> str:
    # stderr keeps log lines out of the chat transcript on stdout
    fmt = _CONSOLE_VERBOSE_FORMAT if entry.get("verbose") else _CONSOLE_FORMAT
    logger.add(sys.stderr, level=level, format=fmt, diagnose=False)
    return f"console (stderr, {level})"


def _add_file_sink(entry: dict[str, Any], level: str) -> str:
    path = Path(entry.get("path", DEFAULT_LOG_PATH))
    rotation = entry.get("rotation", "10 MB")
    path.parent.mkdir(parents=True, exist_ok=True)
    # database calls log from worker threads
    logger.add(
        str(path),
        level=level,
        format=_FILE_FORMAT,
        rotation=rotation,
        retention=entry.get("retention", 5),
        encoding="utf-8",
        enqueue=True,
        diagnose=False,
    )
    return f"file ({path}, {level}, rotation {rotation})"


_SINK_BUILDERS = {
    "console": _add_console_sink,
    "file": _add_file_sink,
}


def setup_logging(level: str = "INFO", consumers: list[dict[str, Any]] | None = None) -> list[str]:
    """Replace every loguru sink with the configured ones and describe them."""
    logger.remove()

    descriptions: list[str] = []
    for entry in consumers if consumers is not None else _DEFAULT_SINKS:
        sink_type = entry.get("type", "")
        builder = _SINK_BUILDERS.get(sink_type)
        if builder is None:
            logger.warning(f"Unknown log consumer type: {sink_type!r}")
            continue
        sink_level = str(entry.get("level", level)).upper()
        descriptions.append(builder(entry, sink_level))
    return descriptions
