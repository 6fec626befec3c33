import re

_AUTHOR_PATTERN = re.compile(r"[a-zA-Z0-9]+(?:-[a-zA-Z0-9]+)*")
_NAME_PATTERN = re.compile(r"[a-z][a-z0-9]*(?:-[a-z0-9]+)*")


def is_dashed_alphanumeric(word: str) -> bool:
    """Alphanumeric runs joined by single dashes, no leading or trailing dash."""
    return _AUTHOR_PATTERN.fullmatch(word) is not None


def is_lower_dashed_name(word: str) -> bool:
    """Like `is_dashed_alphanumeric`, but lowercase only and starting with a letter."""
    return _NAME_PATTERN.fullmatch(word) is not None
