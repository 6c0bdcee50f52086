"""Core data model shared by all package-manager inspectors."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, ClassVar
from uuid import UUID

logger = logging.getLogger(__name__)


@dataclass
class Dependency:
    name: str
    version: str = ""
    dependencies: list[Dependency] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"name": self.name, "version": self.version}
        if self.dependencies:
            result["dependencies"] = [d.to_dict() for d in self.dependencies]
        return result


@dataclass
class Module:
    package_manager: str = ""
    language: str = ""
    package_file: str = ""
    name: str = ""
    version: str = ""
    file_path: str = ""
    dependencies: list[Dependency] = field(default_factory=list)
    runtime_info: Any = None
    uuid: UUID = field(default_factory=lambda: UUID(int=0))

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "package_manager": self.package_manager,
            "language": self.language,
            "package_file": self.package_file,
            "name": self.name,
            "version": self.version,
            "relative_path": self.file_path,
        }
        if self.dependencies:
            result["dependencies"] = [d.to_dict() for d in self.dependencies]
        if self.runtime_info is not None:
            result["runtime_info"] = self.runtime_info
        result["uuid"] = str(self.uuid)
        return result


class PackageManagerType(StrEnum):
    MAVEN = "maven"
    GO_MOD = "gomod"
    NPM = "npm"
    GRADLE = "gradle"
    YARN = "yarn"
    PYTHON = "python"
    COMPOSER = "composer"
    BUNDLER = "bundler"
    COCOAPODS = "cocoapods"


class InspectorError(Exception):
    """An inspection failure attributed to a language ecosystem."""

    def __init__(self, language: str, message: str) -> None:
        super().__init__(message)
        self.language = language
        self.message = message

    def __str__(self) -> str:
        return f"[{self.language}]{self.message}"


def unwrap_to_inspector_error(error: BaseException | None) -> InspectorError | None:
    """The first :class:`InspectorError` in the cause chain of ``error``."""
    seen: set[int] = set()
    while error is not None and id(error) not in seen:
        if isinstance(error, InspectorError):
            return error
        seen.add(id(error))
        error = error.__cause__
    return None


@dataclass
class ScanTask:
    project_dir: str
    warnings: list[str] = field(default_factory=list)

    def warn(self, message: str) -> None:
        """Record a user-facing warning about this scan."""
        self.warnings.append(message)
        logger.warning(message)


class Inspector(ABC):
    """Detects one package manager in a directory and extracts its modules."""

    name: ClassVar[str] = ""
    package_manager_type: ClassVar[PackageManagerType]

    def __str__(self) -> str:
        return self.name

    @abstractmethod
    def check_dir(self, directory) -> bool:
        """Whether ``directory`` looks like a project of this package manager."""

    @abstractmethod
    def inspect(self, task: ScanTask) -> list[Module]:
        """Extract the modules of the project in ``task.project_dir``."""