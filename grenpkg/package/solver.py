"""Transitive dependency solver.

Propagates version requirements through the dependency graph with a FIFO
worklist. Each package is accepted at its loaded outline's own version range
the first time it is seen; later sightings only narrow that range. The first
missing package or empty intersection ends the run.

The requirement that first brings a package in is not checked against the
outline's version; only later sightings are.

The outcome depends on the order of the root requirements and of each
outline's dependencies: reordering may change which failure is reported
first, never whether one exists.
"""

import logging
from collections import deque
from collections.abc import Mapping, Sequence
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

from grenpkg.package.outline import Requirement, SimplifiedOutline
from grenpkg.package.semver import SemanticVersionRange, intersect

logger = logging.getLogger(__name__)


class SolutionComplete(BaseModel):
    """Every requirement was satisfied; ``packages`` maps name to accepted range, in acceptance order."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["complete"] = "complete"
    packages: dict[str, SemanticVersionRange] = Field(default_factory=dict)


class SolutionMissing(BaseModel):
    """A required package has no loaded outline."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["missing"] = "missing"
    name: str
    version: SemanticVersionRange


class SolutionConflict(BaseModel):
    """Two requirements on the same package do not overlap.

    ``version1`` is the range accepted so far, ``version2`` the incoming one.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["conflict"] = "conflict"
    name: str
    version1: SemanticVersionRange
    version2: SemanticVersionRange


Solution = Annotated[SolutionComplete | SolutionMissing | SolutionConflict, Field(discriminator="kind")]


class _Accepted(BaseModel):
    outline: SimplifiedOutline
    version: SemanticVersionRange


def solve(root_requirements: Sequence[Requirement], loaded: Mapping[str, SimplifiedOutline]) -> Solution:
    """Compute a consistent range for every package reachable from the root requirements.

    Args:
        root_requirements: The project's own requirements, in declaration order.
        loaded: Outlines available locally, keyed by ``author/name``.

    Returns:
        ``SolutionComplete`` with the accepted ranges, ``SolutionMissing`` for the
        first package that is not loaded, or ``SolutionConflict`` for the first
        package whose requirements do not intersect.
    """
    pending: deque[Requirement] = deque(root_requirements)
    solved: dict[str, _Accepted] = {}

    while pending:
        requirement = pending.popleft()
        name = requirement.name

        accepted = solved.get(name)
        if accepted is not None:
            narrowed = intersect(accepted.version, requirement.version)
            if narrowed is None:
                logger.debug("Conflict on '%s': %s vs %s", name, accepted.version, requirement.version)
                return SolutionConflict(name=name, version1=accepted.version, version2=requirement.version)
            accepted.version = narrowed
            continue

        outline = loaded.get(name)
        if outline is None:
            logger.debug("Missing outline for '%s' (%s)", name, requirement.version)
            return SolutionMissing(name=name, version=requirement.version)

        solved[name] = _Accepted(outline=outline, version=outline.version)
        logger.debug("Accepted '%s' at %s, queueing %d dependencies", name, outline.version, len(outline.dependencies))
        pending.extend(Requirement(name=dep_name, version=dep_range) for dep_name, dep_range in outline.dependencies.items())

    return SolutionComplete(packages={name: accepted.version for name, accepted in solved.items()})
