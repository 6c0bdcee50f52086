"""Running the ``mvn`` command and reading the dependency graphs it produces."""

from __future__ import annotations

import json
import logging
import os
import re
import subprocess
from dataclasses import dataclass, field
from typing import Any

from .maven_base import Coordinate, MavenDependency
from .pom import parse_pom
from .textio import SuffixBuffer

logger = logging.getLogger(__name__)

_ERR_OUTPUT_SUFFIX_LEN = 2 * 2048
_MAVEN_VERSION = re.compile(r"Apache Maven (\d+(?:\.[0-9A-Za-z_-]+)+)", re.ASCII)
_JAVA_VERSION = re.compile(r"Java version: (\d+(?:\.[0-9A-Za-z_-]+)*)", re.ASCII)
_GRAPH_COMMAND = (
    "mvn",
    "com.github.ferstl:depgraph-maven-plugin:4.0.1:graph",
    "-DgraphFormat=json",
    "--batch-mode",
)
_GRAPH_FILE = "dependency-graph.json"


@dataclass
class MvnVersionInfo:
    maven_ver: str = ""
    java_ver: str = ""
    raw_output: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"maven_ver": self.maven_ver, "java_ver": self.java_ver, "rawOutput": self.raw_output}


class MvnCommandError(Exception):
    """The Maven command exited with an error."""

    def __init__(self, code: int, cause: BaseException | None, output: SuffixBuffer) -> None:
        self.code = code
        self.cause = cause
        self.output = output
        super().__init__(str(self))
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        truncated = str(self.output.truncated()).lower()
        if self.cause is not None:
            return (
                f"Mvn command error[{self.code}]: {self.cause}. "
                f"Output[truncated={truncated}]: {self.output}"
            )
        return f"Mvn command error[{self.code}], Output[truncated={truncated}]: {self.output}"


def parse_mvn_version(output: str) -> MvnVersionInfo:
    """Maven and Java versions from the output of ``mvn --version``."""
    info = MvnVersionInfo(raw_output=output)
    for raw in output.split("\n"):
        line = raw.strip()
        if not info.maven_ver and (m := _MAVEN_VERSION.search(line)):
            info.maven_ver = m.group(1)
            continue
        if not info.java_ver and (m := _JAVA_VERSION.search(line)):
            info.java_ver = m.group(1)
    return info


def check_mvn_version() -> MvnVersionInfo:
    cmd = ["mvn", "--version"]
    proc = subprocess.run(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
    if proc.returncode != 0:
        raise subprocess.CalledProcessError(proc.returncode, cmd, proc.stdout, proc.stderr)
    return parse_mvn_version((proc.stdout or b"").decode("utf-8", errors="replace"))


def check_mvn_env() -> tuple[bool, MvnVersionInfo | None]:
    """Whether Maven can be used, with its version info when it can."""
    if os.environ.get("NO_MVN"):
        logger.error("NO_MVN environment found. Skip maven scan")
        return False, None
    try:
        info = check_mvn_version()
    except (OSError, subprocess.SubprocessError):
        logger.error("Get mvn command version failed, skip maven scan.")
        return False, None
    logger.info("Mvn command version: %s", info.maven_ver)
    return True, info


@dataclass
class _Artifact:
    group_id: str = ""
    artifact_id: str = ""
    version: str = ""
    optional: bool = False
    scopes: list[str] = field(default_factory=list)


@dataclass
class DependencyGraph:
    graph_name: str = ""
    artifacts: list[_Artifact] = field(default_factory=list)
    edges: list[tuple[int, int]] = field(default_factory=list)

    def _tree(
        self, node: int, visited: set[int], out_edges: dict[int, list[int]]
    ) -> MavenDependency | None:
        if node in visited:
            return None
        artifact = self.artifacts[node]
        if "compile" not in artifact.scopes and "runtime" not in artifact.scopes:
            return None
        visited.add(node)
        try:
            children = (self._tree(t, visited, out_edges) for t in out_edges.get(node, []))
            return MavenDependency(
                Coordinate(artifact.group_id, artifact.artifact_id, artifact.version),
                [c for c in children if c is not None],
            )
        finally:
            visited.discard(node)

    def tree(self) -> list[MavenDependency]:
        """Trees started from every artifact that is the target of an edge."""
        starts = sorted({to for _, to in self.edges})
        out_edges: dict[int, list[int]] = {}
        for src, dst in self.edges:
            out_edges.setdefault(src, []).append(dst)
        visited: set[int] = set()
        result = (self._tree(n, visited, out_edges) for n in starts)
        return [d for d in result if d is not None]


def _str(obj: dict, key: str) -> str:
    value = obj.get(key)
    return value if isinstance(value, str) else ""


def parse_dependency_graph(data) -> DependencyGraph:
    """Read a depgraph plugin ``dependency-graph.json`` document."""
    doc: Any = json.loads(data)
    if not isinstance(doc, dict):
        raise ValueError("dependency graph is not an object")
    artifacts = []
    for item in doc.get("artifacts") or []:
        if not isinstance(item, dict):
            raise ValueError("artifact entry is not an object")
        scopes = item.get("scopes") or []
        artifacts.append(
            _Artifact(
                group_id=_str(item, "groupId"),
                artifact_id=_str(item, "artifactId"),
                version=_str(item, "version"),
                optional=bool(item.get("optional", False)),
                scopes=[s for s in scopes if isinstance(s, str)],
            )
        )
    edges = []
    for item in doc.get("dependencies") or []:
        if not isinstance(item, dict):
            raise ValueError("dependency entry is not an object")
        src, dst = item.get("numericFrom", 0), item.get("numericTo", 0)
        for index in (src, dst):
            if not isinstance(index, int) or not 0 <= index < len(artifacts):
                raise ValueError(f"artifact index out of range: {index!r}")
        edges.append((src, dst))
    return DependencyGraph(_str(doc, "graphName"), artifacts, edges)


def read_coordinate(directory) -> Coordinate | None:
    """Coordinate of the pom.xml in ``directory``, filling gaps from its parent."""
    try:
        with open(os.path.join(directory, "pom.xml"), "rb") as f:
            project = parse_pom(f.read())
    except (OSError, ValueError):
        return None
    return Coordinate(
        project.group_id or project.parent.group_id,
        project.artifact_id or project.parent.artifact_id,
        project.version or project.parent.version,
    )


def _graph_files(project_dir) -> list[str]:
    found = []
    for root, dirnames, filenames in os.walk(project_dir):
        dirnames.sort()
        found += [os.path.join(root, n) for n in sorted(filenames) if n == _GRAPH_FILE]
    return found


def scan_mvn_dependency(project_dir) -> dict[Coordinate, list[MavenDependency]]:
    """Run the depgraph plugin and collect the graph of every module it wrote."""
    logger.info("Command: %s", " ".join(_GRAPH_COMMAND))
    output = SuffixBuffer(_ERR_OUTPUT_SUFFIX_LEN)
    try:
        proc = subprocess.run(
            list(_GRAPH_COMMAND),
            cwd=project_dir,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
        )
    except OSError as e:
        logger.error("mvn exit with error: %s", MvnCommandError(-1, e, output))
    else:
        output.write(proc.stderr or b"")
        if proc.returncode != 0:
            cause = subprocess.CalledProcessError(proc.returncode, list(_GRAPH_COMMAND))
            logger.error("mvn exit with error: %s", MvnCommandError(proc.returncode, cause, output))

    paths = _graph_files(project_dir)
    logger.info("Total %d graphs", len(paths))
    result: dict[Coordinate, list[MavenDependency]] = {}
    for path in paths:
        coordinate = read_coordinate(os.path.dirname(os.path.dirname(path)))
        if coordinate is None:
            continue
        try:
            with open(path, "rb") as f:
                graph = parse_dependency_graph(f.read())
        except OSError as e:
            logger.warning("Read graph failed. %s %s", path, e)
            continue
        except ValueError as e:
            logger.warning("Parse graph failed. %s %s", path, e)
            continue
        result[coordinate] = graph.tree()
    return result