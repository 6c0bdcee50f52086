"""Reading pom.xml files and building resolved pom descriptions from them."""

from __future__ import annotations

import logging
import os
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field, replace

from .maven_base import Coordinate

logger = logging.getLogger(__name__)

_PARAMETER = re.compile(r"\$\{([^{}]+)\}")


@dataclass
class PomParent:
    group_id: str = ""
    artifact_id: str = ""
    version: str = ""
    relative_path: str = ""


@dataclass
class PomDependency:
    group_id: str = ""
    artifact_id: str = ""
    version: str = ""
    scope: str = ""
    optional: str = ""


@dataclass
class PomProject:
    group_id: str = ""
    artifact_id: str = ""
    version: str = ""
    parent: PomParent = field(default_factory=PomParent)
    properties: dict[str, str] = field(default_factory=dict)
    dependency_management: list[PomDependency] = field(default_factory=list)
    dependencies: list[PomDependency] = field(default_factory=list)
    modules: list[str] = field(default_factory=list)


def _local(tag) -> str:
    return tag.rsplit("}", 1)[-1] if isinstance(tag, str) else ""


def _child(element, name: str):
    if element is None:
        return None
    return next((c for c in element if _local(c.tag) == name), None)


def _children(element, name: str) -> list:
    if element is None:
        return []
    return [c for c in element if _local(c.tag) == name]


def _text(element, name: str) -> str:
    child = _child(element, name)
    return "".join(child.itertext()) if child is not None else ""


def _dependency(element) -> PomDependency:
    return PomDependency(
        group_id=_text(element, "groupId"),
        artifact_id=_text(element, "artifactId"),
        version=_text(element, "version"),
        scope=_text(element, "scope"),
        optional=_text(element, "optional"),
    )


def parse_pom(data) -> PomProject:
    """Parse the text of a pom.xml."""
    try:
        root = ET.fromstring(data)
    except ET.ParseError as e:
        raise ValueError(f"parse pom failed: {e}") from e
    if _local(root.tag) != "project":
        raise ValueError(f"expected element <project>, got <{_local(root.tag)}>")
    parent = _child(root, "parent")
    properties = _child(root, "properties")
    management = _child(_child(root, "dependencyManagement"), "dependencies")
    return PomProject(
        group_id=_text(root, "groupId"),
        artifact_id=_text(root, "artifactId"),
        version=_text(root, "version"),
        parent=PomParent(
            group_id=_text(parent, "groupId"),
            artifact_id=_text(parent, "artifactId"),
            version=_text(parent, "version"),
            relative_path=_text(parent, "relativePath"),
        ),
        properties={
            _local(p.tag): "".join(p.itertext())
            for p in (properties if properties is not None else [])
            if _local(p.tag)
        },
        dependency_management=[
            _dependency(d) for d in _children(management, "dependency")
        ],
        dependencies=[
            _dependency(d)
            for d in _children(_child(root, "dependencies"), "dependency")
        ],
        modules=["".join(m.itertext()) for m in _children(_child(root, "modules"), "module")],
    )


def read_pom(path) -> PomProject:
    with open(path, "rb") as f:
        return parse_pom(f.read())


def _resolve(properties: dict[str, str], path: set[str], key: str) -> str:
    if key in path or key not in properties:
        return "${%s}" % key
    path.add(key)
    try:
        return _PARAMETER.sub(lambda m: _resolve(properties, path, m.group(1)), properties[key])
    finally:
        path.discard(key)


def resolve_property(properties: dict[str, str], key: str) -> str:
    """Value of ``key`` with nested ``${...}`` references expanded; cycles and unknowns stay."""
    return _resolve(properties, set(), key)


@dataclass
class PomDependencyItem:
    coordinate: Coordinate
    scope: str = ""


@dataclass(eq=False)
class PomFile:
    pom: PomProject | None = None
    parent_pom: PomFile | None = None
    path: str = ""
    property_map: dict[str, str] = field(default_factory=dict)
    dependency_management: dict[Coordinate, str] = field(default_factory=dict)
    dependencies: list[PomDependencyItem] = field(default_factory=list)
    coordinate: Coordinate = field(default_factory=Coordinate)

    def property(self, value: str) -> str:
        """Substitute known ``${...}`` properties in ``value``."""
        return _PARAMETER.sub(
            lambda m: self.property_map.get(m.group(1), m.group(0)), value
        )


@dataclass
class PomBuilder:
    project: PomProject
    path: str = ""
    parent_pom: PomFile | None = None

    def __post_init__(self) -> None:
        if self.project is None:
            raise TypeError("project must not be None")

    def build(self) -> PomFile:
        """Combine the project with its resolved parent into a :class:`PomFile`."""
        p = self.project
        parent = self.parent_pom
        pf = PomFile(pom=p, parent_pom=parent, path=self.path)

        merged = dict(parent.property_map) if parent is not None else {}
        merged.update(p.properties)
        pf.property_map = {k: resolve_property(merged, k) for k in merged}

        c = Coordinate(
            pf.property(p.group_id), pf.property(p.artifact_id), pf.property(p.version)
        ).normalize()
        if not c.group_id:
            c = replace(c, group_id=pf.property(p.parent.group_id).strip())
        if not c.version:
            c = replace(c, version=pf.property(p.parent.version).strip())
        pf.coordinate = c.normalize()

        if parent is not None:
            for key, version in parent.dependency_management.items():
                if key.has_version():
                    raise ValueError(f"managed coordinate carries a version: {key}")
                pf.dependency_management[key] = version
        for dep in p.dependency_management:
            coor = Coordinate(pf.property(dep.group_id), pf.property(dep.artifact_id))
            if coor.is_bad():
                continue
            pf.dependency_management[coor.normalize()] = pf.property(dep.version).strip()

        items: dict[tuple[str, str], PomDependencyItem] = {}
        if parent is not None:
            for item in parent.dependencies:
                if item.coordinate.is_bad():
                    continue
                key = (item.coordinate.group_id.strip(), item.coordinate.artifact_id.strip())
                items[key] = item
        for dep in p.dependencies:
            if dep.scope and dep.scope.strip() != "compile":
                continue
            if dep.optional.strip() == "true":
                continue
            group_id = pf.property(dep.group_id).strip()
            artifact_id = pf.property(dep.artifact_id).strip()
            if not group_id or not artifact_id:
                continue
            version = pf.property(dep.version).strip()
            coor = Coordinate(group_id, artifact_id)
            if coor.is_bad():
                continue
            if not version:
                version = pf.dependency_management.get(coor, "")
            item = PomDependencyItem(
                Coordinate(group_id, artifact_id, version).normalize(), dep.scope.strip()
            )
            if not item.coordinate.complete():
                continue
            items[(group_id, artifact_id)] = item
        pf.dependencies = list(items.values())
        return pf


def _inspect(directory: str, base: str, visited: set[str], result: dict[str, PomBuilder]) -> None:
    try:
        rel = os.path.relpath(directory, base)
    except ValueError:
        return
    if rel.startswith(os.pardir + os.sep):
        return
    if directory in visited:
        return
    visited.add(directory)
    try:
        try:
            project = read_pom(os.path.join(directory, "pom.xml"))
        except (OSError, ValueError) as e:
            logger.warning("parse local pom failed %s %s", e, directory)
            return
        result[directory] = PomBuilder(project, path=directory)
        for module in project.modules:
            child = os.path.normpath(os.path.join(directory, module.strip()))
            _inspect(child, base, visited, result)
    finally:
        visited.discard(directory)


def inspect_module(directory) -> dict[str, PomBuilder]:
    """Builders for the pom in ``directory`` and every module it declares, keyed by path."""
    root = os.fspath(directory)
    result: dict[str, PomBuilder] = {}
    _inspect(root, root, set(), result)
    return result