"""A Maven repository laid out on the local filesystem."""

from __future__ import annotations

import os

from .maven_base import (
    PARSE_POM_FAILED,
    ArtifactNotFoundError,
    Coordinate,
    InvalidCoordinateError,
)
from .pom import PomProject, parse_pom


class LocalRepo:
    """Looks poms up under a directory such as ``~/.m2/repository``."""

    def __init__(self, base_dir) -> None:
        self.base_dir = os.fspath(base_dir)

    def __str__(self) -> str:
        return f"LocalRepo[{self.base_dir}]"

    def _pom_path(self, coordinate: Coordinate) -> str:
        return os.path.join(
            self.base_dir,
            *coordinate.group_id.split("."),
            coordinate.artifact_id,
            coordinate.version,
            f"{coordinate.artifact_id}-{coordinate.version}.pom",
        )

    def fetch(self, coordinate: Coordinate) -> PomProject:
        """The pom of ``coordinate``."""
        if not coordinate.complete():
            raise InvalidCoordinateError()
        path = self._pom_path(coordinate)
        if not os.path.exists(path):
            raise ArtifactNotFoundError()
        if os.path.isdir(path):
            raise IsADirectoryError(f"it's a directory: {path}")
        with open(path, "rb") as f:
            data = f.read()
        try:
            return parse_pom(data)
        except ValueError as e:
            raise PARSE_POM_FAILED.decorate(e) from e