from __future__ import annotations

from pathlib import Path
from typing import Any

import tomlkit

from grenpkg._compat import tomllib


class TomlError(Exception):
    def __init__(self, message: str, lineno: int = 0, colno: int = 0):
        super().__init__(message)
        self.lineno = lineno
        self.colno = colno


def load_toml_from_path_if_exists(path: Path) -> dict[str, Any] | None:
    """Load TOML from a file path, or return None when the file does not exist.

    Raises:
        TomlError: If the file exists but is not valid TOML.
    """
    if not path.is_file():
        return None
    try:
        with path.open("rb") as file:
            return tomllib.load(file)
    except tomllib.TOMLDecodeError as exc:
        msg = f"TOML parsing error in file '{path}': {getattr(exc, 'msg', str(exc))}"
        raise TomlError(
            message=msg,
            lineno=int(getattr(exc, "lineno", 0)),
            colno=int(getattr(exc, "colno", 0)),
        ) from exc


def load_toml_document(path: Path) -> tomlkit.TOMLDocument:
    """Load TOML using tomlkit to preserve formatting and comments.

    Returns an empty document when the file does not exist.
    """
    if not path.is_file():
        return tomlkit.document()
    with path.open(encoding="utf-8") as file:
        return tomlkit.load(file)


def save_toml_document(document: tomlkit.TOMLDocument, path: Path) -> None:
    """Write a tomlkit document back to disk."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as file:
        tomlkit.dump(document, file)
