"""Bundler support: parses Gemfile.lock into a dependency tree."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from enum import Enum, auto

from .base import Dependency, Inspector, Module, PackageManagerType, ScanTask
from .fsutil import is_file


class _Marker(Enum):
    ENTER = auto()
    EXIT = auto()


class GemLockError(ValueError):
    """Raised when a Gemfile.lock cannot be parsed."""


_SPEC_PATTERN = re.compile(r"([\w.-]+)\s*\(([\w.-]+)\)", re.ASCII)
_NAME_PATTERN = re.compile(r"[\w.-]+", re.ASCII)


def _indent(line: str) -> int:
    return len(line) - len(line.lstrip(" \t"))


def lex_gem_lock(text: str) -> list:
    """Split a lock file into stripped lines and indentation enter/exit markers."""
    tokens: list = []
    stack = [0]
    for line_num, line in enumerate(text.split("\n")):
        indent = _indent(line)
        if indent > stack[-1]:
            stack.append(indent)
            tokens.append(_Marker.ENTER)
        elif indent < stack[-1]:
            while True:
                if not stack:
                    raise GemLockError(f"Bad indent in gemfile.lock: Line {line_num}")
                top = stack[-1]
                if indent == top:
                    break
                if indent > top:
                    raise GemLockError(f"Bad indent in gemfile.lock: Line {line_num}")
                tokens.append(_Marker.EXIT)
                stack.pop()
        tokens.append(line.strip())
    return tokens


@dataclass
class GemNode:
    line: str = ""
    children: list[GemNode] = field(default_factory=list)

    def get(self, *args: str) -> GemNode | None:
        """Follow a path of child lines; None if any step is missing."""
        current = self
        for step in args:
            current = next((c for c in current.children if c.line == step), None)
            if current is None:
                return None
        return current


def parse_gem_lock(text: str) -> GemNode:
    """Build the indentation tree of a Gemfile.lock."""
    root = GemNode()
    stack = [root]
    for token in lex_gem_lock(text):
        if not stack:
            raise GemLockError("ParseFail: stack is empty")
        top = stack[-1]
        if isinstance(token, str):
            top.children.append(GemNode(token))
        elif token is _Marker.ENTER:
            if not top.children:
                raise GemLockError("ParseFail: unexpected indentation")
            stack.append(top.children[-1])
        else:
            stack.pop()
    return root


def _build_tree(
    graph: dict[str, list[str]], versions: dict[str, str], target: str, visited: set[str]
) -> Dependency | None:
    if target in visited:
        return None
    visited.add(target)
    try:
        children = (_build_tree(graph, versions, c, visited) for c in graph.get(target, []))
        return Dependency(
            target, versions.get(target, ""), [c for c in children if c is not None]
        )
    finally:
        visited.discard(target)


def dependency_graph(text: str) -> list[Dependency]:
    """Dependency trees rooted at the gems nothing else in the lock file depends on."""
    tree = parse_gem_lock(text)
    specs = tree.get("GEM", "specs:")
    if specs is None:
        raise GemLockError("No graph")

    graph: dict[str, list[str]] = {}
    versions: dict[str, str] = {}
    for left in specs.children:
        m = _SPEC_PATTERN.search(left.line)
        if m is None:
            continue
        name, version = m.group(1), m.group(2)
        versions[name] = version
        for right in left.children:
            rm = _NAME_PATTERN.match(right.line)
            if rm is None:
                continue
            graph.setdefault(name, []).append(rm.group(0))

    referenced = {right for rights in graph.values() for right in rights}
    roots = [left for left in graph if left not in referenced]

    result = (_build_tree(graph, versions, root, set()) for root in roots)
    return [d for d in result if d is not None]


class BundlerInspector(Inspector):
    name = "BundlerInspector"
    package_manager_type = PackageManagerType.BUNDLER

    def check_dir(self, directory) -> bool:
        return is_file(os.path.join(directory, "Gemfile")) and is_file(
            os.path.join(directory, "Gemfile.lock")
        )

    def inspect(self, task: ScanTask) -> list[Module]:
        path = os.path.join(task.project_dir, "Gemfile.lock")
        with open(path, encoding="utf-8", errors="replace") as f:
            text = f.read()
        tree = dependency_graph(text)
        if not tree:
            raise GemLockError("no dependencies found in Gemfile.lock")
        return [
            Module(
                package_manager="bundler",
                language="Ruby",
                package_file="Gemfile.lock",
                name=tree[0].name,
                dependencies=tree,
            )
        ]