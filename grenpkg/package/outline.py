# pyright: reportUnknownMemberType=false, reportUnknownVariableType=false
"""Models for ``gren.json`` project outlines and the simplified solver input.

A ``gren.json`` is either a *package* outline (published library, declares
version ranges for its dependencies) or an *application* outline (pins exact
versions, split into direct and indirect dependencies). Both reduce to the
:class:`SimplifiedOutline` / :class:`Requirement` shapes the solver consumes.
"""

import json
from enum import unique
from typing import Annotated, Any, Literal, cast

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_serializer, field_validator
from semantic_version import Version  # type: ignore[import-untyped]

from grenpkg._compat import StrEnum
from grenpkg._utils.pydantic_utils import empty_dict_factory_of, empty_list_factory_of
from grenpkg.package.exceptions import OutlineParseError, OutlineValidationError
from grenpkg.package.package_name import PackageName, PackageNameError
from grenpkg.package.semver import SemanticVersionRange, exact_range, parse_constraint, parse_version

OUTLINE_FILENAME = "gren.json"
LOCAL_DEPENDENCY_PREFIX = "local:"


@unique
class Platform(StrEnum):
    COMMON = "common"
    BROWSER = "browser"
    NODE = "node"


def is_local_constraint(constraint: str) -> bool:
    return constraint.startswith(LOCAL_DEPENDENCY_PREFIX)


def _validate_dependency_map(dependencies: dict[str, str]) -> dict[str, str]:
    for dep_name, constraint in dependencies.items():
        if not PackageName.is_valid(dep_name):
            msg = f"Invalid dependency name '{dep_name}'. Must have the form 'author/name'."
            raise ValueError(msg)
        if is_local_constraint(constraint):
            if not constraint.removeprefix(LOCAL_DEPENDENCY_PREFIX).strip():
                msg = f"Local dependency '{dep_name}' must name a path after '{LOCAL_DEPENDENCY_PREFIX}'."
                raise ValueError(msg)
            continue
        if parse_constraint(constraint) is None:
            msg = f"Invalid constraint '{constraint}' for '{dep_name}'. Use an exact version ('1.2.3'), a range ('1.0.0 <= v < 2.0.0') or 'local:<path>'."
            raise ValueError(msg)
    return dependencies


def _ranges_of(dependencies: dict[str, str]) -> dict[str, SemanticVersionRange]:
    ranges: dict[str, SemanticVersionRange] = {}
    for dep_name, constraint in dependencies.items():
        if is_local_constraint(constraint):
            continue
        parsed = parse_constraint(constraint)
        if parsed is not None:
            ranges[dep_name] = parsed
    return ranges


def _locals_of(dependencies: dict[str, str]) -> dict[str, str]:
    return {
        dep_name: constraint.removeprefix(LOCAL_DEPENDENCY_PREFIX).strip()
        for dep_name, constraint in dependencies.items()
        if is_local_constraint(constraint)
    }


class Requirement(BaseModel):
    """A single ``{name, range}`` requirement fed to the solver."""

    model_config = ConfigDict(frozen=True)

    name: str
    version: SemanticVersionRange


class SimplifiedOutline(BaseModel):
    """The part of a package outline the solver needs. Never mutated."""

    model_config = ConfigDict(frozen=True)

    name: PackageName
    version: SemanticVersionRange
    dependencies: dict[str, SemanticVersionRange] = Field(default_factory=empty_dict_factory_of(SemanticVersionRange))


class PackageOutline(BaseModel):
    """A ``gren.json`` with ``"type": "package"``."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    type: Literal["package"] = "package"
    platform: Platform = Platform.COMMON
    name: PackageName
    summary: str
    license: str
    version: str
    exposed_modules: list[str] | dict[str, list[str]] = Field(default_factory=empty_list_factory_of(str), alias="exposed-modules")
    gren_version: str = Field(alias="gren-version")
    dependencies: dict[str, str] = Field(default_factory=empty_dict_factory_of(str))

    @field_validator("name", mode="before")
    @classmethod
    def validate_name(cls, name: Any) -> Any:
        if isinstance(name, str):
            try:
                return PackageName.parse(name)
            except PackageNameError as exc:
                raise ValueError(str(exc)) from exc
        return name

    @field_validator("version")
    @classmethod
    def validate_version(cls, version: str) -> str:
        if parse_version(version) is None:
            msg = f"Invalid version '{version}'. Must be MAJOR.MINOR.PATCH (e.g. '1.0.0')."
            raise ValueError(msg)
        return version

    @field_validator("gren_version")
    @classmethod
    def validate_gren_version(cls, gren_version: str) -> str:
        if parse_constraint(gren_version) is None:
            msg = f"Invalid gren-version constraint '{gren_version}'."
            raise ValueError(msg)
        return gren_version

    @field_validator("dependencies")
    @classmethod
    def validate_dependencies(cls, dependencies: dict[str, str]) -> dict[str, str]:
        return _validate_dependency_map(dependencies)

    @field_serializer("name")
    def serialize_name(self, name: PackageName) -> str:
        return name.full_name

    @property
    def semantic_version(self) -> Version:
        parsed = parse_version(self.version)
        if parsed is None:
            msg = f"Invalid version '{self.version}'"
            raise OutlineValidationError(msg)
        return parsed

    def to_simplified(self) -> SimplifiedOutline:
        """Reduce to solver input: the package pinned at its own version, local deps dropped."""
        return SimplifiedOutline(
            name=self.name,
            version=exact_range(self.semantic_version),
            dependencies=_ranges_of(self.dependencies),
        )

    def root_requirements(self) -> list[Requirement]:
        return [Requirement(name=dep_name, version=dep_range) for dep_name, dep_range in _ranges_of(self.dependencies).items()]

    def local_dependencies(self) -> dict[str, str]:
        return _locals_of(self.dependencies)


class ApplicationDependencies(BaseModel):
    model_config = ConfigDict(extra="forbid")

    direct: dict[str, str] = Field(default_factory=empty_dict_factory_of(str))
    indirect: dict[str, str] = Field(default_factory=empty_dict_factory_of(str))

    @field_validator("direct", "indirect")
    @classmethod
    def validate_dependencies(cls, dependencies: dict[str, str]) -> dict[str, str]:
        return _validate_dependency_map(dependencies)


class ApplicationOutline(BaseModel):
    """A ``gren.json`` with ``"type": "application"``."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    type: Literal["application"] = "application"
    platform: Platform
    source_directories: list[str] = Field(default_factory=empty_list_factory_of(str), alias="source-directories")
    gren_version: str = Field(alias="gren-version")
    dependencies: ApplicationDependencies = Field(default_factory=ApplicationDependencies)

    @field_validator("gren_version")
    @classmethod
    def validate_gren_version(cls, gren_version: str) -> str:
        if parse_version(gren_version) is None:
            msg = f"Invalid gren-version '{gren_version}'. Applications pin an exact compiler version."
            raise ValueError(msg)
        return gren_version

    def root_requirements(self) -> list[Requirement]:
        """Direct dependencies first, then indirect ones, each pinned to its exact version."""
        requirements: list[Requirement] = []
        for group in (self.dependencies.direct, self.dependencies.indirect):
            requirements.extend(Requirement(name=dep_name, version=dep_range) for dep_name, dep_range in _ranges_of(group).items())
        return requirements

    def local_dependencies(self) -> dict[str, str]:
        return {**_locals_of(self.dependencies.direct), **_locals_of(self.dependencies.indirect)}


ProjectOutline = Annotated[PackageOutline | ApplicationOutline, Field(discriminator="type")]

_project_outline_adapter: TypeAdapter[PackageOutline | ApplicationOutline] = TypeAdapter(ProjectOutline)


def parse_outline(content: str) -> PackageOutline | ApplicationOutline:
    """Parse ``gren.json`` content into a package or application outline.

    Args:
        content: The raw JSON string

    Returns:
        A validated PackageOutline or ApplicationOutline

    Raises:
        OutlineParseError: If the JSON syntax is invalid
        OutlineValidationError: If the parsed data fails model validation
    """
    try:
        raw: Any = json.loads(content)
    except json.JSONDecodeError as exc:
        msg = f"Invalid JSON syntax in {OUTLINE_FILENAME}: {exc}"
        raise OutlineParseError(msg) from exc

    if not isinstance(raw, dict):
        msg = f"{OUTLINE_FILENAME} must contain a JSON object"
        raise OutlineValidationError(msg)
    raw_dict = cast("dict[str, Any]", raw)
    if raw_dict.get("type") not in {"package", "application"}:
        msg = f"{OUTLINE_FILENAME} must declare \"type\" as \"package\" or \"application\""
        raise OutlineValidationError(msg)

    try:
        return _project_outline_adapter.validate_python(raw_dict)
    except ValidationError as exc:
        msg = f"{OUTLINE_FILENAME} validation failed: {exc}"
        raise OutlineValidationError(msg) from exc


def dump_outline(outline: PackageOutline | ApplicationOutline) -> dict[str, Any]:
    """Encode an outline back to its ``gren.json`` form.

    Only fields present when the outline was parsed are written, so parsing a
    file and dumping it yields the same JSON document.
    """
    return {"type": outline.type, **outline.model_dump(mode="json", by_alias=True, exclude_unset=True)}
