"""Resolves ``path.json`` and ``package.module:attribute`` source references."""

from __future__ import annotations

import importlib
import json
from pathlib import Path
from typing import Any

from domain.exceptions import ConfigurationError


def resolve_source(source: str) -> Any:
    """Return the object a source reference points to.

    ``*.json`` paths are parsed and returned as plain data; anything of the
    form ``module:attribute`` is imported and the attribute returned as is.
    """
    if source.endswith(".json") or Path(source).is_file():
        return _read_json(Path(source))
    if ":" in source:
        return _import_attribute(source)
    raise ConfigurationError(
        f"unrecognised source {source!r}: expected a .json file or 'module:attribute'"
    )


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ConfigurationError(f"file not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"{path} is not valid JSON: {exc}") from exc


def _import_attribute(source: str) -> Any:
    module_name, _, attribute = source.partition(":")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigurationError(f"cannot import {module_name!r}: {exc}") from exc
    try:
        return getattr(module, attribute)
    except AttributeError as exc:
        raise ConfigurationError(f"{module_name!r} has no attribute {attribute!r}") from exc
