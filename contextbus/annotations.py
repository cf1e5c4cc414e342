"""Parsing of message templates with ``${lib.key}`` placeholders."""

from __future__ import annotations

import re

from contextbus.events import Path, PathType

_PLACEHOLDER = re.compile(r"\$\{([^}]*)\}")
_APPLICATION_PREFIX = "_"


def parse_path(text: str) -> Path:
    """Turn ``lib.key`` into a library path and ``_.key`` into an application path."""
    parts = text.split(".")
    if parts[0] == _APPLICATION_PREFIX:
        return Path(PathType.APPLICATION, parts[1:])
    return Path(PathType.LIBRARY, parts)


def parse_message(message: str) -> tuple[str, list[Path]]:
    """Replace each placeholder with ``%s`` and return the template and the paths in order."""
    paths: list[Path] = []

    def _replace(match: re.Match[str]) -> str:
        paths.append(parse_path(match.group(1)))
        return "%s"

    return _PLACEHOLDER.sub(_replace, message), paths