from pathlib import Path

from grenpkg.package.exceptions import OutlineParseError
from grenpkg.package.outline import OUTLINE_FILENAME, ApplicationOutline, PackageOutline, parse_outline


def find_outline_path(start: Path) -> Path | None:
    """Walk up from ``start`` to find the nearest gren.json.

    Stops at the first gren.json found, or when a .git/ directory is
    encountered, or at the filesystem root.

    Args:
        start: Directory to start searching from

    Returns:
        Path to the gren.json, or None if no outline is found
    """
    current = start.resolve()

    while True:
        outline_path = current / OUTLINE_FILENAME
        if outline_path.is_file():
            return outline_path

        # Stop at .git boundary
        if (current / ".git").exists():
            return None

        parent = current.parent
        if parent == current:
            return None

        current = parent


def load_outline(outline_path: Path) -> PackageOutline | ApplicationOutline:
    """Read and parse a gren.json file.

    Raises:
        OutlineParseError: If the file cannot be read or has invalid JSON syntax
        OutlineValidationError: If the outline fails validation
    """
    try:
        content = outline_path.read_text(encoding="utf-8")
    except OSError as exc:
        msg = f"Could not read '{outline_path}': {exc}"
        raise OutlineParseError(msg) from exc
    except UnicodeDecodeError as exc:
        msg = f"'{outline_path}' is not valid UTF-8: {exc}"
        raise OutlineParseError(msg) from exc
    return parse_outline(content)
