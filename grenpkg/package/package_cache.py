"""Local package cache shared by every grenpkg process on the machine.

Cache layout: ``{cache_root}/{author}/{name}/{version}/``
(e.g. ``~/.grenpkg/packages/gren-lang/core/5.0.0/``).

Writes go through a staging directory + atomic rename. Callers that mutate
the cache hold the cache lock on ``cache_root`` (see ``grenpkg.cache_lock``).
"""

import logging
import shutil
from pathlib import Path

from semantic_version import Version  # type: ignore[import-untyped]

from grenpkg.package.discovery import load_outline
from grenpkg.package.exceptions import OutlineError, PackageCacheError
from grenpkg.package.outline import OUTLINE_FILENAME, PackageOutline, SimplifiedOutline
from grenpkg.package.package_name import PackageName
from grenpkg.package.semver import parse_version

logger = logging.getLogger(__name__)

STAGING_SUFFIX = ".staging"


def get_default_cache_root() -> Path:
    """Return the default cache root directory.

    Returns:
        ``~/.grenpkg/packages``
    """
    return Path.home() / ".grenpkg" / "packages"


def get_cached_package_path(
    package_name: str,
    version: str,
    cache_root: Path | None = None,
) -> Path:
    """Compute the cache path for a package version.

    Args:
        package_name: Package name, e.g. ``gren-lang/core``.
        version: Version string, e.g. ``5.0.0``.
        cache_root: Override for the cache root directory.

    Returns:
        The directory path where this package version would be cached.

    Raises:
        PackageCacheError: If the resulting path escapes the cache root.
    """
    root = (cache_root or get_default_cache_root()).resolve()
    pkg_path = (root / package_name / version).resolve()
    if not pkg_path.is_relative_to(root):
        msg = f"Path traversal detected: '{package_name}@{version}' resolves outside the cache root"
        raise PackageCacheError(msg)
    return pkg_path


def is_cached(
    package_name: str,
    version: str,
    cache_root: Path | None = None,
) -> bool:
    """Check whether a package version exists in the cache.

    A directory is considered cached if it exists and is non-empty.
    """
    pkg_path = get_cached_package_path(package_name, version, cache_root)
    if not pkg_path.is_dir():
        return False
    return any(pkg_path.iterdir())


def store_in_cache(
    source_dir: Path,
    package_name: str,
    version: str,
    cache_root: Path | None = None,
) -> Path:
    """Copy a package directory into the cache.

    Uses a staging directory (``{path}.staging``) and an atomic rename for
    safe writes. Removes the ``.git/`` subdirectory from the cached copy.

    Args:
        source_dir: The directory to copy from.
        package_name: Package name.
        version: Version string.
        cache_root: Override for the cache root directory.

    Returns:
        The final cache path.

    Raises:
        PackageCacheError: If copying or renaming fails.
    """
    final_path = get_cached_package_path(package_name, version, cache_root)
    staging_path = final_path.parent / f"{final_path.name}{STAGING_SUFFIX}"

    try:
        # Clean up any leftover staging dir
        if staging_path.exists():
            shutil.rmtree(staging_path)

        shutil.copytree(source_dir, staging_path)

        git_dir = staging_path / ".git"
        if git_dir.exists():
            shutil.rmtree(git_dir)

        final_path.parent.mkdir(parents=True, exist_ok=True)
        if final_path.exists():
            shutil.rmtree(final_path)
        staging_path.rename(final_path)

    except OSError as exc:
        if staging_path.exists():
            shutil.rmtree(staging_path, ignore_errors=True)
        msg = f"Failed to store package '{package_name}@{version}' in cache: {exc}"
        raise PackageCacheError(msg) from exc

    logger.debug("Stored '%s@%s' in cache at %s", package_name, version, final_path)
    return final_path


def remove_cached_package(
    package_name: str,
    version: str,
    cache_root: Path | None = None,
) -> bool:
    """Remove a cached package version.

    Returns:
        True if the directory existed and was removed, False otherwise.

    Raises:
        PackageCacheError: If the directory exists but could not be removed.
    """
    pkg_path = get_cached_package_path(package_name, version, cache_root)
    if not pkg_path.exists():
        return False
    try:
        shutil.rmtree(pkg_path)
    except OSError as exc:
        msg = f"Failed to remove '{package_name}@{version}' from cache: {exc}"
        raise PackageCacheError(msg) from exc
    return True


def list_cached_packages(cache_root: Path | None = None) -> dict[str, list[Version]]:
    """List cached versions per package, ascending.

    Directories that are not ``author/name/version`` with a valid package
    name and version (staging leftovers, the lock marker) are skipped.
    """
    root = cache_root or get_default_cache_root()
    result: dict[str, list[Version]] = {}
    if not root.is_dir():
        return result

    for author_dir in sorted(root.iterdir()):
        if not author_dir.is_dir():
            continue
        for name_dir in sorted(author_dir.iterdir()):
            package_name = f"{author_dir.name}/{name_dir.name}"
            if not name_dir.is_dir() or not PackageName.is_valid(package_name):
                continue
            versions: list[Version] = []
            for version_dir in name_dir.iterdir():
                version = parse_version(version_dir.name)
                if version is not None and version_dir.is_dir():
                    versions.append(version)
            if versions:
                result[package_name] = sorted(versions)
    return result


def load_cached_outlines(cache_root: Path | None = None) -> dict[str, SimplifiedOutline]:
    """Load the newest cached version of every package as solver input.

    Packages whose gren.json is absent, unparseable or not a package outline
    are skipped with a warning.
    """
    outlines: dict[str, SimplifiedOutline] = {}
    for package_name, versions in list_cached_packages(cache_root).items():
        newest = str(versions[-1])
        outline_path = get_cached_package_path(package_name, newest, cache_root) / OUTLINE_FILENAME
        if not outline_path.is_file():
            logger.warning("Cached package '%s@%s' has no %s", package_name, newest, OUTLINE_FILENAME)
            continue
        try:
            outline = load_outline(outline_path)
        except OutlineError as exc:
            logger.warning("Could not parse %s for cached package '%s@%s': %s", OUTLINE_FILENAME, package_name, newest, exc)
            continue
        if not isinstance(outline, PackageOutline):
            logger.warning("Cached package '%s@%s' is not a package outline", package_name, newest)
            continue
        outlines[package_name] = outline.to_simplified()
    return outlines
