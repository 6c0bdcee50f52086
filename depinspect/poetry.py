"""Poetry support: reads direct dependencies from pyproject.toml."""

from __future__ import annotations

import os
import tomllib
import uuid
from dataclasses import dataclass, field
from typing import Any

from .base import Dependency, Inspector, Module, PackageManagerType, ScanTask
from .fsutil import is_file, read_file_limited

_MAX_READ = 4 * 1024 * 1024


class PoetryError(ValueError):
    """The pyproject.toml is not a usable Poetry manifest."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"{detail}: Bad manifest")
        self.detail = detail


@dataclass
class PoetryManifest:
    name: str
    dependencies: list[Dependency] = field(default_factory=list)


def _lookup(doc: Any, *path: str) -> Any:
    current = doc
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def parse_poetry(data) -> PoetryManifest:
    """Name and direct dependencies from the ``tool.poetry`` table."""
    text = data.decode("utf-8") if isinstance(data, (bytes, bytearray)) else data
    try:
        doc = tomllib.loads(text)
    except (tomllib.TOMLDecodeError, UnicodeDecodeError) as e:
        raise PoetryError("Parse toml failed") from e
    table = _lookup(doc, "tool", "poetry", "dependencies")
    if not isinstance(table, dict):
        raise PoetryError("bad toml")
    deps = []
    for name, spec in table.items():
        if not isinstance(spec, str):
            continue
        version = spec.strip("~^* ")
        if version:
            deps.append(Dependency(name, version))
    name = _lookup(doc, "tool", "poetry", "name")
    return PoetryManifest(name if isinstance(name, str) else "<noname>", deps)


class PoetryInspector(Inspector):
    name = "PoetryInspector"
    package_manager_type = PackageManagerType.PYTHON

    def check_dir(self, directory) -> bool:
        return is_file(os.path.join(directory, "pyproject.toml"))

    def inspect(self, task: ScanTask) -> list[Module]:
        data = read_file_limited(os.path.join(task.project_dir, "pyproject.toml"), _MAX_READ)
        manifest = parse_poetry(data)
        return [
            Module(
                package_manager="poetry",
                language="Python",
                package_file="pyproject.toml",
                name=manifest.name,
                dependencies=manifest.dependencies,
                uuid=uuid.uuid4(),
            )
        ]