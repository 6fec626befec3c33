"""Settings for the grenpkg CLI.

Reads and writes ``~/.grenpkg/config.toml`` (a flat table of ``key = value``
entries). The file is edited with tomlkit so user comments survive updates.

Resolution order: environment variables > config file > defaults.
"""

from __future__ import annotations

import os
from enum import unique
from pathlib import Path
from typing import NamedTuple

from grenpkg._compat import StrEnum
from grenpkg._utils.toml_utils import TomlError, load_toml_document, load_toml_from_path_if_exists, save_toml_document
from grenpkg.cache_lock.state import RetryPolicy

# ── Types ───────────────────────────────────────────────────────────


@unique
class SettingSource(StrEnum):
    ENV = "env"
    FILE = "file"
    DEFAULT = "default"


class SettingEntry(NamedTuple):
    key: str
    cli_key: str
    value: str
    source: SettingSource


class SettingsError(ValueError):
    """Raised when a setting value cannot be interpreted."""


# ── Paths ───────────────────────────────────────────────────────────

CONFIG_DIR = Path.home() / ".grenpkg"
CONFIG_PATH = CONFIG_DIR / "config.toml"

# ── Setting keys ───────────────────────────────────────────────────

# Map from internal key to environment variable name
_ENV_KEYS: dict[str, str] = {
    "cache_root": "GRENPKG_CACHE_ROOT",
    "lock_attempts": "GRENPKG_LOCK_ATTEMPTS",
    "lock_retry_ms": "GRENPKG_LOCK_RETRY_MS",
}

_DEFAULTS: dict[str, str] = {
    "cache_root": str(CONFIG_DIR / "packages"),
    "lock_attempts": "10",
    "lock_retry_ms": "500",
}

# Map from CLI names (kebab-case, also used as config file keys) to internal keys
_KEY_ALIASES: dict[str, str] = {
    "cache-root": "cache_root",
    "lock-attempts": "lock_attempts",
    "lock-retry-ms": "lock_retry_ms",
}

_INTEGER_KEYS = frozenset({"lock_attempts", "lock_retry_ms"})

VALID_KEYS: list[str] = list(_KEY_ALIASES.keys())


def resolve_key(cli_key: str) -> str | None:
    """Resolve a CLI key name to an internal setting key."""
    return _KEY_ALIASES.get(cli_key)


def _cli_key_for(internal_key: str) -> str:
    return next(cli_k for cli_k, int_k in _KEY_ALIASES.items() if int_k == internal_key)


# ── File I/O ───────────────────────────────────────────────────────


def _read_config_file() -> dict[str, str]:
    try:
        raw = load_toml_from_path_if_exists(CONFIG_PATH)
    except TomlError as exc:
        msg = f"Could not read {CONFIG_PATH}: {exc}"
        raise SettingsError(msg) from exc
    if raw is None:
        return {}
    return {str(key): str(value) for key, value in raw.items()}


# ── Public API ─────────────────────────────────────────────────────


def validate_value(key: str, value: str) -> str:
    """Check a value for an internal key, returning it stripped.

    Raises:
        SettingsError: If an integer setting is not a non-negative integer.
    """
    stripped = value.strip()
    if key in _INTEGER_KEYS and not (stripped.isascii() and stripped.isdigit()):
        msg = f"'{_cli_key_for(key)}' must be a non-negative integer, got '{value}'"
        raise SettingsError(msg)
    if not stripped:
        msg = f"'{_cli_key_for(key)}' must not be empty"
        raise SettingsError(msg)
    return stripped


def get_setting_value(key: str) -> SettingEntry:
    """Get a single setting value with its source.

    Args:
        key: Internal key (e.g. "cache_root", "lock_attempts").

    Returns:
        A SettingEntry with the value and its source.
    """
    cli_key = _cli_key_for(key)

    env_val = os.environ.get(_ENV_KEYS[key])
    if env_val is not None:
        return SettingEntry(key=key, cli_key=cli_key, value=env_val, source=SettingSource.ENV)

    file_entries = _read_config_file()
    if cli_key in file_entries:
        return SettingEntry(key=key, cli_key=cli_key, value=file_entries[cli_key], source=SettingSource.FILE)

    return SettingEntry(key=key, cli_key=cli_key, value=_DEFAULTS[key], source=SettingSource.DEFAULT)


def set_setting_value(key: str, value: str) -> None:
    """Persist a setting in the config file, keeping existing comments.

    Args:
        key: Internal key (e.g. "cache_root").
        value: The value to set.

    Raises:
        SettingsError: If the value is invalid for the key.
    """
    cleaned = validate_value(key, value)
    document = load_toml_document(CONFIG_PATH)
    cli_key = _cli_key_for(key)
    document[cli_key] = int(cleaned) if key in _INTEGER_KEYS else cleaned
    save_toml_document(document, CONFIG_PATH)


def list_settings() -> list[SettingEntry]:
    """List all setting values with their sources."""
    return [get_setting_value(internal_key) for internal_key in _KEY_ALIASES.values()]


def get_cache_root() -> Path:
    return Path(get_setting_value("cache_root").value).expanduser()


def get_retry_policy() -> RetryPolicy | None:
    """Build the cache lock retry policy; ``lock-attempts = 0`` disables retries.

    Raises:
        SettingsError: If either lock setting is not a non-negative integer.
    """
    attempts = int(validate_value("lock_attempts", get_setting_value("lock_attempts").value))
    retry_ms = int(validate_value("lock_retry_ms", get_setting_value("lock_retry_ms").value))
    if attempts == 0:
        return None
    return RetryPolicy(attempts=attempts, milliseconds_between=retry_ms)
