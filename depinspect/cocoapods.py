"""CocoaPods support: parses Podfile.lock into a dependency tree."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any

from .base import Dependency, Inspector, Module, PackageManagerType, ScanTask
from .fsutil import is_file


class _Marker(Enum):
    ENTER = auto()
    EXIT = auto()


_CONFLICT_PREFIXES = ("<<<<", ">>>>", "====")
_NAME_PATTERN = re.compile(r"[\w\\/.-]+", re.ASCII)
_NAME_VERSION_PATTERN = re.compile(r"([\w.\\/-]+)\s*\(([\w.\\/-]+)", re.ASCII)


def tokenize_pod_lock(text: str) -> list:
    """Split a lock file into stripped lines and indentation enter/exit markers."""
    tokens: list = []
    stack = [0]
    for line in text.split("\n"):
        stripped = line.strip()
        if not stripped or stripped.startswith(_CONFLICT_PREFIXES):
            continue
        indent = len(line) - len(line.lstrip(" "))
        while True:
            if not stack:
                raise ValueError("Bad indent")
            if indent > stack[-1]:
                tokens.append(_Marker.ENTER)
                stack.append(indent)
            elif indent < stack[-1]:
                tokens.append(_Marker.EXIT)
                stack.pop()
            else:
                break
        tokens.append(stripped)
    return tokens


@dataclass
class PodNode:
    text: str = ""
    children: list[PodNode] = field(default_factory=list)

    def get(self, *args: str) -> PodNode | None:
        """Follow a path of child texts; None if any step is missing."""
        current = self
        for step in args:
            current = next((c for c in current.children if c.text == step), None)
            if current is None:
                return None
        return current

    def to_dict(self) -> dict[str, Any]:
        return {child.text: child.to_dict() for child in self.children}


def parse_pod_lock(text: str) -> PodNode:
    """Build the indentation tree of a Podfile.lock."""
    root = PodNode()
    stack = [root]
    for token in tokenize_pod_lock(text):
        if not stack:
            raise ValueError("stack is empty")
        top = stack[-1]
        if isinstance(token, str):
            top.children.append(PodNode(token))
        elif token is _Marker.ENTER:
            if not top.children:
                raise ValueError("unexpected indentation")
            stack.append(top.children[-1])
        else:
            stack.pop()
    return root


def _build_tree(
    graph: dict[str, list[str]], versions: dict[str, str], visited: set[str], target: str
) -> Dependency | None:
    if target in visited:
        return None
    visited.add(target)
    try:
        children = (_build_tree(graph, versions, visited, c) for c in graph.get(target, []))
        return Dependency(
            target, versions.get(target, ""), [c for c in children if c is not None]
        )
    finally:
        visited.discard(target)


def dependencies_from_pod_lock(text: str) -> list[Dependency]:
    """Dependency trees rooted at the direct dependencies of a Podfile.lock."""
    tree = parse_pod_lock(text)

    direct: list[str] = []
    if (node := tree.get("DEPENDENCIES:")) is not None:
        for child in node.children:
            m = _NAME_PATTERN.search(child.text.strip(" \t-"))
            if m:
                direct.append(m.group(0))

    versions: dict[str, str] = {}
    graph: dict[str, list[str]] = {}
    if (node := tree.get("PODS:")) is not None:
        for left in node.children:
            m = _NAME_VERSION_PATTERN.search(left.text.lstrip(' -"'))
            if m is None:
                continue
            left_name, left_version = m.group(1), m.group(2)
            versions[left_name] = left_version
            for right in left.children:
                rm = _NAME_PATTERN.search(right.text.lstrip(' -"'))
                if rm:
                    graph.setdefault(left_name, []).append(rm.group(0))

    result = (_build_tree(graph, versions, set(), name) for name in direct)
    return [d for d in result if d is not None]


class PodInspector(Inspector):
    name = "PodInspector"
    package_manager_type = PackageManagerType.COCOAPODS

    def check_dir(self, directory) -> bool:
        return is_file(os.path.join(directory, "Podfile.lock"))

    def inspect(self, task: ScanTask) -> list[Module]:
        path = os.path.join(task.project_dir, "Podfile.lock")
        with open(path, encoding="utf-8", errors="replace") as f:
            deps = dependencies_from_pod_lock(f.read())
        if not deps:
            raise ValueError("no dependencies found in Podfile.lock")
        return [
            Module(
                package_manager="cocoapods",
                language="Objective-C",
                package_file="Podfile.lock",
                name=deps[0].name,
                dependencies=deps,
            )
        ]