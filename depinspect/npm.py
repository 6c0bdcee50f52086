"""npm support: reads package-lock.json into a dependency tree."""

from __future__ import annotations

import json
import logging
import os
from typing import Any

from .base import Dependency, Inspector, Module, PackageManagerType, ScanTask
from .fsutil import is_file

logger = logging.getLogger(__name__)

_MAX_DEPTH = 5


def _field(obj: Any, key: str) -> Any:
    """Look up ``key`` exactly, falling back to a case-insensitive match."""
    if not isinstance(obj, dict):
        return None
    if key in obj:
        return obj[key]
    lowered = key.lower()
    for k, v in obj.items():
        if isinstance(k, str) and k.lower() == lowered:
            return v
    return None


def _str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _requires(entry: Any) -> list[str]:
    requires = _field(entry, "requires")
    return list(requires) if isinstance(requires, dict) else []


def _convert(
    name: str, deps: dict[str, Any], visited: set[str], depth: int
) -> Dependency | None:
    if depth > _MAX_DEPTH or name in visited or name not in deps:
        return None
    visited.add(name)
    try:
        entry = deps[name]
        children = (_convert(child, deps, visited, depth + 1) for child in _requires(entry))
        return Dependency(
            name, _str(_field(entry, "version")), [c for c in children if c is not None]
        )
    finally:
        visited.discard(name)


def parse_package_lock(data, directory) -> Module:
    """Module described by the package-lock.json content ``data``."""
    doc = json.loads(data)
    if not isinstance(doc, dict):
        raise ValueError("package-lock.json is not an object")
    lockfile_version = _field(doc, "lockfileVersion")
    if lockfile_version is None:
        lockfile_version = 0
    if isinstance(lockfile_version, bool) or not isinstance(lockfile_version, int):
        raise ValueError(f"bad lockfileVersion: {lockfile_version!r}")
    logger.debug("lockfileVersion: %d", lockfile_version)
    if lockfile_version > 2:
        raise ValueError(f"unsupported lockfileVersion: {lockfile_version}")

    raw_deps = _field(doc, "dependencies")
    deps = {
        name: entry
        for name, entry in (raw_deps.items() if isinstance(raw_deps, dict) else ())
        if not name.startswith("node_modules/")
    }

    indegree = dict.fromkeys(deps, 0)
    for entry in deps.values():
        for required in _requires(entry):
            indegree[required] = indegree.get(required, 0) + 1
    roots = [name for name, degree in indegree.items() if degree == 0]

    converted = (_convert(root, deps, set(), 1) for root in roots)
    return Module(
        package_manager="npm",
        language="JavaScript",
        package_file="package-lock.json",
        name=_str(_field(doc, "name")),
        version=_str(_field(doc, "version")),
        file_path=os.path.join(directory, "package.json"),
        dependencies=[d for d in converted if d is not None],
    )


def scan_npm_project(directory) -> list[Module]:
    logger.info("Scan dir, npm. %s", directory)
    path = os.path.join(directory, "package-lock.json")
    with open(path, "rb") as f:
        data = f.read()
    return [parse_package_lock(data, directory)]


class NpmInspector(Inspector):
    name = "NpmInspector"
    package_manager_type = PackageManagerType.NPM

    def check_dir(self, directory) -> bool:
        return is_file(os.path.join(directory, "package.json")) and is_file(
            os.path.join(directory, "package-lock.json")
        )

    def inspect(self, task: ScanTask) -> list[Module]:
        return scan_npm_project(task.project_dir)