# pyright: reportUnknownMemberType=false, reportUnknownVariableType=false, reportUnknownParameterType=false, reportUnknownArgumentType=false
"""Version and version-range algebra for Gren packages.

Gren versions are plain ``MAJOR.MINOR.PATCH`` triples and constraints are
closed-open intervals written ``"1.0.0 <= v < 2.0.0"``. Versions are
represented with ``semantic_version.Version`` restricted to release versions
(no pre-release or build metadata).

Parsing never raises: malformed text yields ``None``.

Note: semantic_version has no type stubs, so Pyright unknown-type checks are
disabled at file level for this wrapper module.
"""

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, field_serializer, field_validator, model_validator
from semantic_version import Version  # type: ignore[import-untyped]

from grenpkg._compat import Self

_RANGE_PATTERN = re.compile(r"^([^<]+)<=v<([^<]+)$")


def _release(major: int, minor: int, patch: int) -> Version:
    return Version(major=major, minor=minor, patch=patch)


def is_release_version(version: Version) -> bool:
    """True when the version carries neither pre-release nor build metadata."""
    return not version.prerelease and not version.build


def parse_version(version_str: str) -> Version | None:
    """Parse a strict ``MAJOR.MINOR.PATCH`` string.

    Args:
        version_str: The version text, e.g. ``"1.2.3"``.

    Returns:
        The parsed Version, or None if the text is not a plain release version.
    """
    try:
        version = Version(version_str.strip())
    except ValueError:
        return None
    if not is_release_version(version):
        return None
    return version


def format_version(version: Version) -> str:
    return f"{version.major}.{version.minor}.{version.patch}"


class SemanticVersionRange(BaseModel):
    """A closed-open interval of versions: ``lower <= v < upper``.

    Construction fails (pydantic ``ValidationError``) when ``lower > upper``;
    use :func:`make_range` for a non-raising variant.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    lower: Version
    upper: Version

    @field_validator("lower", "upper", mode="before")
    @classmethod
    def coerce_version(cls, value: Any) -> Any:
        if isinstance(value, str):
            parsed = parse_version(value)
            if parsed is None:
                msg = f"Invalid version '{value}'. Must be MAJOR.MINOR.PATCH (e.g. '1.0.0')."
                raise ValueError(msg)
            return parsed
        return value

    @model_validator(mode="after")
    def validate_bounds(self) -> Self:
        for bound in (self.lower, self.upper):
            if not is_release_version(bound):
                msg = f"Range bounds must be release versions, got '{bound}'."
                raise ValueError(msg)
        if self.lower > self.upper:
            msg = f"Lower bound {format_version(self.lower)} is greater than upper bound {format_version(self.upper)}."
            raise ValueError(msg)
        return self

    @field_serializer("lower", "upper")
    def serialize_version(self, version: Version) -> str:
        return format_version(version)

    def contains(self, version: Version) -> bool:
        return self.lower <= version < self.upper

    def intersect(self, other: "SemanticVersionRange") -> "SemanticVersionRange | None":
        return intersect(self, other)

    def __str__(self) -> str:
        return format_range(self)


def make_range(lower: Version, upper: Version) -> SemanticVersionRange | None:
    """Build a range, or return None when ``lower > upper``."""
    if lower > upper:
        return None
    return SemanticVersionRange(lower=lower, upper=upper)


def compatible_range(version: Version) -> SemanticVersionRange:
    """Derive the range of versions API-compatible with ``version``.

    For ``0.x`` versions every minor bump may break, so the range stops at the
    next minor: ``0.4.2`` gives ``[0.4.0, 0.5.0)``. Otherwise it stops at the
    next major: ``1.2.4`` gives ``[1.2.0, 2.0.0)``.

    Args:
        version: The version to derive the range from.

    Returns:
        The compatible range.
    """
    lower = _release(version.major, version.minor, 0)
    if version.major == 0:
        upper = _release(0, version.minor + 1, 0)
    else:
        upper = _release(version.major + 1, 0, 0)
    return SemanticVersionRange(lower=lower, upper=upper)


def exact_range(version: Version) -> SemanticVersionRange:
    """The range containing only ``version``: ``[M.m.p, M.m.(p+1))``."""
    upper = _release(version.major, version.minor, version.patch + 1)
    return SemanticVersionRange(lower=version, upper=upper)


def intersect(first: SemanticVersionRange, second: SemanticVersionRange) -> SemanticVersionRange | None:
    """Tightest range contained in both ranges.

    Args:
        first: A range.
        second: Another range.

    Returns:
        The intersection, or None when the ranges are disjoint.
    """
    lower = max(first.lower, second.lower)
    upper = min(first.upper, second.upper)
    if lower >= upper:
        return None
    return SemanticVersionRange(lower=lower, upper=upper)


def parse_range(range_str: str) -> SemanticVersionRange | None:
    """Parse ``"<lower> <= v < <upper>"``, ignoring all whitespace.

    Args:
        range_str: The range text.

    Returns:
        The parsed range, or None if the text is malformed or ``lower > upper``.
    """
    collapsed = "".join(range_str.split())
    match = _RANGE_PATTERN.match(collapsed)
    if match is None:
        return None
    lower = parse_version(match.group(1))
    upper = parse_version(match.group(2))
    if lower is None or upper is None:
        return None
    return make_range(lower, upper)


def format_range(version_range: SemanticVersionRange) -> str:
    return f"{format_version(version_range.lower)} <= v < {format_version(version_range.upper)}"


def parse_constraint(constraint_str: str) -> SemanticVersionRange | None:
    """Parse a dependency constraint: either a range or a single exact version.

    Application manifests pin exact versions (``"1.2.3"``) while package
    manifests declare ranges; both are normalised to a range.

    Args:
        constraint_str: The constraint text.

    Returns:
        The constraint as a range, or None if it is neither form.
    """
    version = parse_version(constraint_str)
    if version is not None:
        return exact_range(version)
    return parse_range(constraint_str)
