"""Load header sets supplied by an operator.

Headers reach the cache from outside the fetch pipeline: a scraper dumps
them to a JSON or YAML file, or an operator passes ``-H 'Name: value'``
pairs on the command line. Both forms are normalised here into a
``dict[str, str]`` ready for :meth:`~credcache.cache.HeaderCache.set`.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import yaml

from credcache.exceptions import InvalidUsageError


def load_header_file(path: str) -> dict[str, str]:
    """Load a header mapping from a JSON/YAML file, or stdin when *path* is ``-``.

    Raises:
        InvalidUsageError: If the file cannot be read or does not contain
            a flat mapping.
    """
    if path == "-":
        content = sys.stdin.read()
        hint = ""
    else:
        file_path = Path(path)
        if not file_path.is_file():
            raise InvalidUsageError(f"Header file not found: {path}")
        try:
            content = file_path.read_text(encoding="utf-8")
        except OSError as exc:
            raise InvalidUsageError(f"Failed to read header file {path}: {exc}") from exc

        suffix = file_path.suffix.lower()
        hint = ""
        if suffix == ".json":
            hint = "json"
        elif suffix in (".yaml", ".yml"):
            hint = "yaml"

    if not content.strip():
        raise InvalidUsageError(f"Header file is empty: {path}")

    return _normalise(_parse_content(content, hint=hint))


def parse_header_args(values: list[str]) -> dict[str, str]:
    """Parse ``Name: value`` strings into a mapping.

    Later duplicates override earlier ones. Values may themselves contain
    colons (``Cookie: a=1; b=2:3``).

    Raises:
        InvalidUsageError: If an entry has no colon or an empty name.
    """
    headers: dict[str, str] = {}
    for raw in values:
        name, sep, value = raw.partition(":")
        name = name.strip()
        if not sep or not name:
            raise InvalidUsageError(f"Invalid header {raw!r}; expected 'Name: value'")
        headers[name] = value.strip()
    return headers


def _parse_content(content: str, hint: str = "") -> Any:
    """Parse content as JSON or YAML.

    Tries JSON first (unless hint is 'yaml'), then falls back to YAML.
    """
    if hint != "yaml":
        try:
            return json.loads(content)
        except json.JSONDecodeError as exc:
            if hint == "json":
                raise InvalidUsageError(f"Invalid JSON: {exc}") from exc

    try:
        return yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise InvalidUsageError(f"Failed to parse headers as JSON or YAML: {exc}") from exc


def _normalise(data: Any) -> dict[str, str]:
    """Check the parsed document is a flat mapping and stringify scalar values."""
    if not isinstance(data, dict):
        kind = type(data).__name__ if data is not None else "empty document"
        raise InvalidUsageError(f"Headers must be a JSON/YAML object (got {kind})")

    headers: dict[str, str] = {}
    for key, value in data.items():
        if isinstance(value, (dict, list)) or value is None:
            raise InvalidUsageError(f"Header {key!r} must have a scalar value")
        # YAML turns `on`/`yes` into booleans.
        if isinstance(value, bool):
            value = "true" if value else "false"
        headers[str(key)] = str(value)
    return headers
