"""Parsers for Gradle output and build scripts."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from .base import Dependency, Module

_INDENT_CHARS = "|+-\\/ "

_COORDINATE_PATTERN = re.compile(
    r"^([A-Za-z0-9.-]+):([A-Za-z0-9.-]+)(?::([A-Za-z0-9.-]+))?(?: *-> *([A-Za-z0-9.-]+))?"
)
_PROJECT_REF_PATTERN = re.compile(r"^project ([A-Za-z0-9_.:-]+)")

_TASK_PATTERN = re.compile(r"^\w+$|^\w+\s-", re.ASCII)
_PROJECT_NAME_PATTERN = re.compile(r"(?:Root project|project) '([A-Za-z0-9._-]+)'")

_KTS_IMPL_PATTERN = re.compile(
    r"(?:implementation|runtimeOnly)\(\"([\w.-]+):([\w.-]+):(\$\w+|[\w.-]+)\"\)", re.ASCII
)
_GROOVY_IMPL_PATTERN = re.compile(
    r"(?:implementation|runtimeOnly|compile)['\"]([\w.-]+):([\w.-]+):([\w.-]+)['\"]", re.ASCII
)
_KTS_VARIABLE_PATTERN = re.compile(r"va[lr]\s+(\w)\s*=\s\"(.+?)\"", re.ASCII)
_WHITESPACE_PATTERN = re.compile(r"[\r\s]+")
_COMMENT_PATTERN = re.compile(r"//.+\Z")

_GRADLE_VERSION_PATTERN = re.compile(r"Gradle\s*([0-9A-Za-z_.-]+)")
_REVISION_PREFIX = "Revision: "


@dataclass
class DepElement:
    group_id: str = ""
    artifact_id: str = ""
    version: str = ""
    children: list[DepElement] = field(default_factory=list)

    def comp_name(self) -> str:
        return f"{self.group_id}:{self.artifact_id}"

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "group_id": self.group_id,
            "artifact_id": self.artifact_id,
            "version": self.version,
        }
        if self.children:
            result["children"] = [c.to_dict() for c in self.children]
        return result


def _convert(elements: list[DepElement]) -> list[Dependency]:
    return [
        Dependency(e.comp_name(), e.version, _convert(e.children)) for e in elements
    ]


@dataclass
class GradleDependencyInfo:
    project_name: str = ""
    dependencies: list[DepElement] = field(default_factory=list)

    def to_module(self, path) -> Module:
        return Module(
            package_manager="gradle",
            language="Java",
            name=self.project_name,
            dependencies=_convert(self.dependencies),
            file_path=str(path),
        )


def parse_dep_element(line: str) -> DepElement | None:
    """A dependency from one line of a Gradle dependency tree, or None."""
    s = line.lstrip("+- |\\/")
    m = _COORDINATE_PATTERN.match(s)
    if m:
        version = m.group(4) or m.group(3) or ""
        return DepElement(m.group(1), m.group(2), version)
    m = _PROJECT_REF_PATTERN.match(s)
    if m:
        return DepElement(artifact_id=m.group(1))
    return None


def _indent(line: str) -> int:
    return len(line) - len(line.lstrip(_INDENT_CHARS))


class _BlockParser:
    def __init__(self, lines: list[str]) -> None:
        self._lines = lines
        self._pos = 0

    def _eof(self) -> bool:
        return self._pos >= len(self._lines)

    def parse(self) -> list[DepElement]:
        result: list[DepElement] = []
        if self._eof():
            return result
        last_indent = _indent(self._lines[self._pos])
        while not self._eof():
            line = self._lines[self._pos]
            current = _indent(line)
            if current == last_indent:
                item = parse_dep_element(line) or DepElement(artifact_id=line)
                result.append(item)
                self._pos += 1
            elif current < last_indent:
                return result
            else:
                children = self.parse()
                if result:
                    result[-1].children = children
        return result


def parse_dependency_block(lines: list[str]) -> list[DepElement]:
    """Nested dependencies from the indented tree lines of one configuration."""
    return _BlockParser(list(lines)).parse()


def parse_gradle_dependencies(lines: list[str]) -> GradleDependencyInfo:
    """Project name and runtimeClasspath tree from ``gradle dependencies`` output."""
    info = GradleDependencyInfo()
    tasks: list[tuple[str, list[str]]] = []
    task_name = ""
    task_lines: list[str] = []

    def flush() -> None:
        nonlocal task_name, task_lines
        if task_name:
            tasks.append((task_name, task_lines))
            task_name = ""
            task_lines = []

    for line in lines:
        m = _PROJECT_NAME_PATTERN.search(line)
        if m and not info.project_name:
            name = m.group(1)
            if name.startswith("Project"):
                name = name[len("Project"):]
            info.project_name = name.strip()
            continue
        if line == "":
            flush()
            continue
        m = _TASK_PATTERN.search(line)
        if m and m.group(0):
            flush()
            task_name = m.group(0).strip().rstrip("-").strip()
            continue
        if not task_name:
            continue
        task_lines.append(line)

    for name, block in tasks:
        if name == "runtimeClasspath":
            info.dependencies = parse_dependency_block(block)
    return info


def parse_gradle_groovy(text: str) -> list[DepElement]:
    """Dependencies declared with literal coordinates in a build.gradle."""
    result: list[DepElement] = []
    for line in text.split("\n"):
        line = _COMMENT_PATTERN.sub("", _WHITESPACE_PATTERN.sub("", line))
        m = _GROOVY_IMPL_PATTERN.search(line)
        if m:
            result.append(DepElement(m.group(1), m.group(2), m.group(3)))
    return result


def parse_gradle_kts(text: str) -> list[DepElement]:
    """Dependencies declared in a build.gradle.kts."""
    result: list[DepElement] = []
    variables: dict[str, str] = {}
    for line in text.split("\n"):
        vm = _KTS_VARIABLE_PATTERN.search(line)
        if vm:
            variables[vm.group(1)] = vm.group(2)
            continue
        line = _COMMENT_PATTERN.sub("", _WHITESPACE_PATTERN.sub("", line))
        m = _KTS_IMPL_PATTERN.search(line)
        if m is None:
            continue
        version = m.group(3)
        if version.startswith("$"):
            if not variables.get(version):
                continue
            version = variables[version]
        result.append(DepElement(m.group(1), m.group(2), version))
    return result


def parse_gradle_version(text: str) -> tuple[str, str]:
    """The ``(version, revision)`` reported by ``gradle --version``."""
    version = ""
    revision = ""
    for line in (raw.strip() for raw in text.split("\n")):
        m = _GRADLE_VERSION_PATTERN.search(line)
        if m:
            version = m.group(1)
        if text.startswith(_REVISION_PREFIX):
            if line.startswith(_REVISION_PREFIX):
                line = line[len(_REVISION_PREFIX):]
            revision = line.strip()
    return version, revision