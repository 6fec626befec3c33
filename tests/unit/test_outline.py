import json
import textwrap

import pytest
from semantic_version import Version  # type: ignore[import-untyped]

from grenpkg.package.exceptions import OutlineParseError, OutlineValidationError
from grenpkg.package.outline import ApplicationOutline, PackageOutline, Platform, Requirement, dump_outline, parse_outline
from grenpkg.package.semver import SemanticVersionRange, exact_range

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

PACKAGE_JSON = textwrap.dedent("""\
    {
        "type": "package",
        "platform": "common",
        "name": "gren-lang/url",
        "summary": "Parse and build URLs",
        "license": "BSD-3-Clause",
        "version": "3.1.0",
        "exposed-modules": ["Url", "Url.Builder"],
        "gren-version": "0.4.0 <= v < 0.5.0",
        "dependencies": {
            "gren-lang/core": "5.0.0 <= v < 6.0.0",
            "my/helpers": "local:../helpers"
        }
    }
""")

APPLICATION_JSON = textwrap.dedent("""\
    {
        "type": "application",
        "platform": "browser",
        "source-directories": ["src"],
        "gren-version": "0.4.5",
        "dependencies": {
            "direct": {
                "gren-lang/browser": "4.1.0",
                "gren-lang/core": "5.1.1"
            },
            "indirect": {
                "gren-lang/url": "3.1.0",
                "my/widgets": "local:../widgets"
            }
        }
    }
""")


def _range(lower: str, upper: str) -> SemanticVersionRange:
    return SemanticVersionRange(lower=Version(lower), upper=Version(upper))


def _package(**overrides: object) -> str:
    data = json.loads(PACKAGE_JSON)
    data.update(overrides)
    return json.dumps(data)


# ===========================================================================
# Package outlines
# ===========================================================================


class TestPackageOutline:
    def test_parse(self):
        outline = parse_outline(PACKAGE_JSON)
        assert isinstance(outline, PackageOutline)
        assert outline.name.full_name == "gren-lang/url"
        assert outline.platform == Platform.COMMON
        assert outline.version == "3.1.0"
        assert outline.semantic_version == Version("3.1.0")
        assert outline.exposed_modules == ["Url", "Url.Builder"]
        assert outline.gren_version == "0.4.0 <= v < 0.5.0"

    def test_grouped_exposed_modules(self):
        outline = parse_outline(_package(**{"exposed-modules": {"Parsing": ["Url", "Url.Parser"]}}))
        assert isinstance(outline, PackageOutline)
        assert outline.exposed_modules == {"Parsing": ["Url", "Url.Parser"]}

    def test_root_requirements_skip_local(self):
        outline = parse_outline(PACKAGE_JSON)
        assert outline.root_requirements() == [Requirement(name="gren-lang/core", version=_range("5.0.0", "6.0.0"))]

    def test_local_dependencies(self):
        outline = parse_outline(PACKAGE_JSON)
        assert outline.local_dependencies() == {"my/helpers": "../helpers"}

    def test_to_simplified(self):
        outline = parse_outline(PACKAGE_JSON)
        assert isinstance(outline, PackageOutline)
        simplified = outline.to_simplified()
        assert simplified.name.full_name == "gren-lang/url"
        assert simplified.version == exact_range(Version("3.1.0"))
        assert simplified.dependencies == {"gren-lang/core": _range("5.0.0", "6.0.0")}

    def test_exact_dependency_is_pinned(self):
        outline = parse_outline(_package(dependencies={"gren-lang/core": "5.0.2"}))
        assert outline.root_requirements() == [Requirement(name="gren-lang/core", version=_range("5.0.2", "5.0.3"))]

    def test_invalid_version(self):
        with pytest.raises(OutlineValidationError, match="Invalid version"):
            parse_outline(_package(version="3.1"))

    def test_invalid_name(self):
        with pytest.raises(OutlineValidationError, match="author/name"):
            parse_outline(_package(name="url"))

    def test_invalid_dependency_name(self):
        with pytest.raises(OutlineValidationError, match="Invalid dependency name"):
            parse_outline(_package(dependencies={"Core": "5.0.0 <= v < 6.0.0"}))

    def test_invalid_constraint(self):
        with pytest.raises(OutlineValidationError, match="Invalid constraint"):
            parse_outline(_package(dependencies={"gren-lang/core": "^5.0.0"}))

    def test_empty_local_path(self):
        with pytest.raises(OutlineValidationError, match="must name a path"):
            parse_outline(_package(dependencies={"my/helpers": "local: "}))

    def test_unknown_field_rejected(self):
        with pytest.raises(OutlineValidationError):
            parse_outline(_package(homepage="https://example.com"))

    def test_unknown_platform_rejected(self):
        with pytest.raises(OutlineValidationError):
            parse_outline(_package(platform="desktop"))


# ===========================================================================
# Application outlines
# ===========================================================================


class TestApplicationOutline:
    def test_parse(self):
        outline = parse_outline(APPLICATION_JSON)
        assert isinstance(outline, ApplicationOutline)
        assert outline.platform == Platform.BROWSER
        assert outline.source_directories == ["src"]
        assert outline.gren_version == "0.4.5"

    def test_root_requirements_direct_then_indirect(self):
        outline = parse_outline(APPLICATION_JSON)
        requirements = outline.root_requirements()
        assert [requirement.name for requirement in requirements] == [
            "gren-lang/browser",
            "gren-lang/core",
            "gren-lang/url",
        ]
        assert requirements[1].version == _range("5.1.1", "5.1.2")

    def test_local_dependencies(self):
        outline = parse_outline(APPLICATION_JSON)
        assert outline.local_dependencies() == {"my/widgets": "../widgets"}

    def test_gren_version_must_be_exact(self):
        data = json.loads(APPLICATION_JSON)
        data["gren-version"] = "0.4.0 <= v < 0.5.0"
        with pytest.raises(OutlineValidationError, match="exact compiler version"):
            parse_outline(json.dumps(data))

    def test_dependencies_default_empty(self):
        outline = parse_outline('{"type": "application", "platform": "node", "gren-version": "0.4.5"}')
        assert outline.root_requirements() == []
        assert outline.local_dependencies() == {}


# ===========================================================================
# Error paths
# ===========================================================================


class TestParseOutlineErrors:
    def test_invalid_json(self):
        with pytest.raises(OutlineParseError, match="Invalid JSON syntax"):
            parse_outline("{not json")

    def test_not_an_object(self):
        with pytest.raises(OutlineValidationError, match="JSON object"):
            parse_outline("[1, 2, 3]")

    @pytest.mark.parametrize("content", ['{"platform": "common"}', '{"type": "library"}'])
    def test_missing_or_unknown_type(self, content: str):
        with pytest.raises(OutlineValidationError, match='"type"'):
            parse_outline(content)

    def test_missing_required_field(self):
        data = json.loads(PACKAGE_JSON)
        del data["summary"]
        with pytest.raises(OutlineValidationError, match="validation failed"):
            parse_outline(json.dumps(data))


# ===========================================================================
# Encoding back to gren.json
# ===========================================================================


class TestDumpOutline:
    @pytest.mark.parametrize("content", [PACKAGE_JSON, APPLICATION_JSON])
    def test_dump_matches_parsed_file(self, content: str):
        assert dump_outline(parse_outline(content)) == json.loads(content)

    def test_grouped_exposed_modules_are_kept(self):
        content = _package(**{"exposed-modules": {"Parsing": ["Url"], "Building": ["Url.Builder"]}})
        assert dump_outline(parse_outline(content)) == json.loads(content)

    def test_omitted_optional_fields_stay_omitted(self):
        dumped = dump_outline(parse_outline('{"type": "application", "platform": "node", "gren-version": "0.4.5"}'))
        assert dumped == {"type": "application", "platform": "node", "gren-version": "0.4.5"}

    def test_name_is_written_as_author_slash_name(self):
        dumped = dump_outline(parse_outline(PACKAGE_JSON))
        assert dumped["name"] == "gren-lang/url"
