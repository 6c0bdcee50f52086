"""Maven support: combines ``mvn`` output with local pom analysis."""

from __future__ import annotations

import logging
import os

from .base import Dependency, Inspector, InspectorError, Module, PackageManagerType, ScanTask
from .fsutil import is_file
from .maven_base import Coordinate, MavenDependency
from .maven_cli import check_mvn_env, scan_mvn_dependency
from .maven_resolver import DepTreeAnalyzer, Resolver
from .pom import inspect_module

logger = logging.getLogger(__name__)

_SKIPPED_MESSAGE = "Mvn inspect is skipped, please check you maven environment."


def _convert(dep: MavenDependency) -> Dependency | None:
    c = dep.coordinate
    if not c.group_id or not c.artifact_id or not c.version:
        return None
    converted = (_convert(child) for child in dep.children)
    return Dependency(c.name(), c.version, [d for d in converted if d is not None])


def convert_dependencies(deps: list[MavenDependency]) -> list[Dependency]:
    """Generic dependencies for every entry that carries a full coordinate."""
    converted = (_convert(dep) for dep in deps)
    return [d for d in converted if d is not None]


def scan_maven_project(directory, task) -> list[Module]:
    """Modules of the Maven project in ``directory``."""
    directory = os.fspath(directory)
    deps: dict[Coordinate, list[MavenDependency]] = {}
    module_paths: dict[Coordinate, str] = {}

    do_mvn_scan, mvn_ver = check_mvn_env()
    if do_mvn_scan:
        try:
            deps = scan_mvn_dependency(directory)
        except OSError as e:
            task.warn(
                f"[{directory}] collecting dependencies through Maven failed; "
                "results may be incomplete"
            )
            logger.error("mvn scan failed: %s", e)
    else:
        task.warn(
            f"[{directory}] Maven does not run in this environment; results may be incomplete"
        )

    builders = sorted(inspect_module(directory).values(), key=lambda b: b.path)
    logger.info("scanned pom modules: %d", len(builders))
    resolver = Resolver()
    for builder in builders:
        local = resolver.resolve_locally(builder, None)
        if local is None:
            continue
        module_paths[local.coordinate] = local.path
        if deps.get(local.coordinate):
            continue
        pf = resolver.resolve(builder, None)
        if pf is None:
            continue
        if not pf.coordinate.complete():
            logger.info("local pom coordinate can't be resolve %s", pf.coordinate)
            continue
        graph = DepTreeAnalyzer(resolver).resolve(pf)
        logger.info("dep graph\n%s", graph.dot())
        deps[pf.coordinate] = graph.tree(pf.coordinate)

    runtime_info = mvn_ver.to_dict() if mvn_ver is not None else None
    modules = [
        Module(
            package_manager="maven",
            language="Java",
            package_file="pom.xml",
            name=coordinate.name(),
            version=coordinate.version,
            file_path=os.path.join(module_paths.get(coordinate, ""), "pom.xml"),
            dependencies=convert_dependencies(dependencies),
            runtime_info=runtime_info,
        )
        for coordinate, dependencies in deps.items()
    ]
    if not modules and not do_mvn_scan:
        raise InspectorError(language="java", message=_SKIPPED_MESSAGE)
    return modules


class MavenInspector(Inspector):
    name = "MavenInspector"
    package_manager_type = PackageManagerType.MAVEN

    def check_dir(self, directory) -> bool:
        return is_file(os.path.join(directory, "pom.xml"))

    def inspect(self, task: ScanTask) -> list[Module]:
        return scan_maven_project(task.project_dir, task)