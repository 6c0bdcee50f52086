"""Resolving poms through their parents and repositories into dependency graphs."""

from __future__ import annotations

import logging
import os
import threading

from .maven_base import ArtifactNotFoundError, Coordinate, MavenDependency
from .maven_remote import HttpRepo, read_mvn_option
from .maven_repo import LocalRepo
from .pom import PomBuilder, PomFile, PomProject, read_pom

logger = logging.getLogger(__name__)

_MAX_DEPTH = 5


class _CouldNotResolve(LookupError):
    pass


class Resolver:
    """Resolves poms from local checkouts and a list of repositories, with caching."""

    def __init__(self, repos=None) -> None:
        if repos is None:
            option = read_mvn_option()
            repos = [LocalRepo(option.local_repo_path), *(HttpRepo(u) for u in option.remote)]
        self.repos = list(repos)
        self._lock = threading.Lock()
        self._pom_cache: dict[Coordinate, PomProject] = {}
        self._resolved_cache: dict[Coordinate, PomFile] = {}

    def _fetch_local_pom(self, coordinate: Coordinate, directory: str) -> PomProject | None:
        if not coordinate.complete():
            return None
        try:
            pom = read_pom(os.path.join(directory, "pom.xml"))
        except (OSError, ValueError):
            return None
        if Coordinate(pom.group_id, pom.artifact_id, pom.version) != coordinate:
            return None
        return pom

    def _fetch_pom(self, coordinate: Coordinate) -> PomProject:
        with self._lock:
            cached = self._pom_cache.get(coordinate)
        if cached is not None:
            logger.debug("%s from cache", coordinate)
            return cached
        for repo in self.repos:
            logger.debug("fetch %s from %s", coordinate, repo)
            try:
                pom = repo.fetch(coordinate)
            except ArtifactNotFoundError:
                logger.info("not found %s from %s", coordinate, repo)
                continue
            with self._lock:
                self._pom_cache[coordinate] = pom
            return pom
        logger.info("couldn't resolve pom %s", coordinate)
        raise _CouldNotResolve(str(coordinate))

    def resolve_by_coordinate(self, coordinate: Coordinate) -> PomFile | None:
        """The resolved pom of ``coordinate``, or None when it cannot be fetched."""
        coordinate = coordinate.normalize()
        cached = self._resolved_cache.get(coordinate)
        if cached is not None:
            return cached
        try:
            project = self._fetch_pom(coordinate)
        except Exception as e:  # any repository failure means the artifact is unresolvable
            logger.info("fetch pom failed %s %s", coordinate, e)
            return None
        pf = self.resolve(PomBuilder(project), None)
        if pf is None:
            return None
        self._resolved_cache[coordinate] = pf
        return pf

    def _build_with_parent(
        self, builder: PomBuilder | None, visited: set[Coordinate] | None, remote: bool
    ) -> PomFile | None:
        if builder is None:
            return None
        parent = builder.project.parent
        parent_coor = Coordinate(parent.group_id, parent.artifact_id, parent.version).normalize()
        if visited is None:
            visited = set()
        if parent_coor in visited:
            logger.warning("circular inheritance pom")
            return None
        visited.add(parent_coor)
        try:
            if parent_coor.complete():
                parent_path = ""
                if builder.path:
                    relative = parent.relative_path.strip() or os.pardir
                    parent_path = os.path.normpath(os.path.join(builder.path, relative))
                parent_pom = self._fetch_local_pom(parent_coor, parent_path) if parent_path else None
                if parent_pom is None and remote:
                    try:
                        parent_pom = self._fetch_pom(parent_coor)
                    except Exception as e:  # a missing parent leaves the pom unresolved, not fatal
                        logger.info("resolve parent failed, parent: %s %s", parent_coor, e)
                if parent_pom is not None:
                    builder.parent_pom = self.resolve(
                        PomBuilder(parent_pom, path=parent_path), visited
                    )
            return builder.build()
        finally:
            visited.discard(parent_coor)

    def resolve_locally(self, builder: PomBuilder | None, visited=None) -> PomFile | None:
        """Build the pom using only a parent found next to it on disk."""
        return self._build_with_parent(builder, visited, remote=False)

    def resolve(self, builder: PomBuilder | None, visited=None) -> PomFile | None:
        """Build the pom, looking its parent up on disk first and then in the repositories."""
        pf = self._build_with_parent(builder, visited, remote=True)
        if pf is not None:
            self._resolved_cache[pf.coordinate] = pf
        return pf


class DepGraph(dict):
    """Maps each coordinate to the ordered set of coordinates it depends on."""

    def add_edge(self, source: Coordinate, target: Coordinate) -> None:
        self.setdefault(source, {})[target] = None

    def dot(self) -> str:
        edges = sorted(
            f'  "{source}" -> "{target}"' for source, targets in self.items() for target in targets
        )
        return "\n".join(["digraph dep {", *edges, "}"])

    def _tree(self, node: Coordinate, visited: set[Coordinate]) -> list[MavenDependency]:
        if node in visited:
            return []
        visited.add(node)
        try:
            return [
                MavenDependency(child, self._tree(child, visited))
                for child in self.get(node, {})
            ]
        finally:
            visited.discard(node)

    def tree(self, root: Coordinate) -> list[MavenDependency]:
        """Dependency tree below ``root``; a node seen on the current path gets no children."""
        return self._tree(root, set())


class DepTreeAnalyzer:
    """Walks the dependencies of a pom, resolving each through a :class:`Resolver`."""

    def __init__(self, resolver: Resolver) -> None:
        self.graph = DepGraph()
        self.resolver = resolver

    def resolve(self, pom_file: PomFile) -> DepGraph:
        self._resolve(pom_file, set(), _MAX_DEPTH)
        return self.graph

    def _resolve(self, pf: PomFile | None, visited: set[Coordinate], depth: int) -> None:
        if pf is None or not pf.coordinate.complete() or depth < 0:
            return
        if pf.coordinate in visited:
            return
        visited.add(pf.coordinate)
        try:
            for dep in pf.dependencies:
                self.graph.add_edge(pf.coordinate, dep.coordinate)
                child = self.resolver.resolve_by_coordinate(dep.coordinate)
                if child is None:
                    continue
                self.graph.add_edge(pf.coordinate, child.coordinate)
                self._resolve(child, visited, depth - 1)
        finally:
            visited.discard(pf.coordinate)