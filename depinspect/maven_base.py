"""Maven coordinates, dependency trees and the errors shared by Maven lookups."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from .semerr import SemErr

_WHITESPACE = re.compile(r"[\t\n\f\r ]")
_UNRESOLVED_PREFIXES = ("${",)
_RANGE_PREFIXES = ("${", "[", "(")


class InvalidCoordinateError(ValueError):
    """The coordinate lacks a group, artifact or concrete version."""

    def __init__(self, message: str = "invalid coordinate") -> None:
        super().__init__(message)


class ArtifactNotFoundError(LookupError):
    """The repository holds no pom for the coordinate."""

    def __init__(self, message: str = "artifact not found") -> None:
        super().__init__(message)


PARSE_POM_FAILED = SemErr("Parse pom failed.")


@dataclass(frozen=True)
class Coordinate:
    group_id: str = ""
    artifact_id: str = ""
    version: str = ""

    def normalize(self) -> Coordinate:
        """The same coordinate with every whitespace character removed."""
        return Coordinate(
            _WHITESPACE.sub("", self.group_id),
            _WHITESPACE.sub("", self.artifact_id),
            _WHITESPACE.sub("", self.version),
        )

    def has_version(self) -> bool:
        return self.normalize().version != ""

    def name(self) -> str:
        c = self.normalize()
        return f"{c.group_id}:{c.artifact_id}"

    def __str__(self) -> str:
        c = self.normalize()
        if not c.version:
            return f"{c.group_id}:{c.artifact_id}"
        return f"{c.group_id}:{c.artifact_id}:{c.version}"

    def is_bad(self) -> bool:
        """True for unresolved placeholders and version ranges."""
        c = self.normalize()
        return (
            c.group_id.startswith(_UNRESOLVED_PREFIXES)
            or c.artifact_id.startswith(_UNRESOLVED_PREFIXES)
            or c.version.startswith(_RANGE_PREFIXES)
        )

    def complete(self) -> bool:
        """True when group, artifact and a concrete version are all present."""
        c = self.normalize()
        return bool(c.group_id and c.artifact_id and c.version) and not c.is_bad()

    def to_dict(self) -> dict[str, str]:
        return {
            "group_id": self.group_id,
            "artifact_id": self.artifact_id,
            "version": self.version,
        }


@dataclass
class MavenDependency:
    coordinate: Coordinate
    children: list[MavenDependency] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = self.coordinate.to_dict()
        if self.children:
            result["children"] = [c.to_dict() for c in self.children]
        return result

    def __str__(self) -> str:
        return f"{self.coordinate}: [{', '.join(str(c) for c in self.children)}]"