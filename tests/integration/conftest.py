import json
from collections.abc import Callable
from pathlib import Path

import pytest


def _package_outline(name: str, version: str, dependencies: dict[str, str]) -> dict[str, object]:
    return {
        "type": "package",
        "platform": "common",
        "name": name,
        "summary": f"The {name} package",
        "license": "BSD-3-Clause",
        "version": version,
        "exposed-modules": [],
        "gren-version": "0.4.0 <= v < 0.5.0",
        "dependencies": dependencies,
    }


@pytest.fixture
def write_package() -> Callable[..., Path]:
    """Write a package gren.json into ``directory`` and return the directory."""

    def _write(directory: Path, name: str, version: str, dependencies: dict[str, str] | None = None) -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        outline = _package_outline(name, version, dependencies or {})
        (directory / "gren.json").write_text(json.dumps(outline, indent=4), encoding="utf-8")
        return directory

    return _write


@pytest.fixture
def write_application() -> Callable[..., Path]:
    """Write an application gren.json pinning ``direct`` and ``indirect`` dependencies."""

    def _write(directory: Path, direct: dict[str, str], indirect: dict[str, str] | None = None) -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        outline = {
            "type": "application",
            "platform": "browser",
            "source-directories": ["src"],
            "gren-version": "0.4.5",
            "dependencies": {"direct": direct, "indirect": indirect or {}},
        }
        (directory / "gren.json").write_text(json.dumps(outline, indent=4), encoding="utf-8")
        return directory

    return _write


@pytest.fixture
def cache_root(tmp_path: Path, write_package: Callable[..., Path]) -> Path:
    """A package cache holding gren-lang/core 5.0.0 and 5.1.0 and gren-lang/url 3.1.0."""
    root = tmp_path / "cache"
    write_package(root / "gren-lang" / "core" / "5.0.0", "gren-lang/core", "5.0.0")
    write_package(root / "gren-lang" / "core" / "5.1.0", "gren-lang/core", "5.1.0")
    write_package(
        root / "gren-lang" / "url" / "3.1.0",
        "gren-lang/url",
        "3.1.0",
        {"gren-lang/core": "5.0.0 <= v < 6.0.0"},
    )
    return root
