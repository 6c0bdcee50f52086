"""Gradle support: runs Gradle to list dependencies, with a build-script fallback."""

from __future__ import annotations

import logging
import os
import re
import subprocess
import time
from collections.abc import Iterator
from dataclasses import dataclass

from .base import Inspector, Module, PackageManagerType, ScanTask
from .fsutil import is_file
from .gradle_parse import (
    DepElement,
    GradleDependencyInfo,
    parse_gradle_dependencies,
    parse_gradle_groovy,
    parse_gradle_kts,
    parse_gradle_version,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 600.0
GRADLE_BUILD_FILES = ("build.gradle", "build.gradle.kts", "settings.gradle", "settings.gradle.kts")
_PROJECT_PATTERN = re.compile(r"Project\s+'(:.+?)'")
_MAX_ERROR_OUTPUT = 64


@dataclass
class GradleInfo:
    executable: str
    version: str = ""
    revision: str = ""
    use_shell: bool = False

    def command(self, *args: str) -> list[str]:
        """The argument vector that runs Gradle with ``args``."""
        if self.use_shell:
            return ["sh", "-c", " ".join([self.executable, *args])]
        return [self.executable, *args]

    def __str__(self) -> str:
        return f"Gradle[{self.version}]: {self.executable} , revision: {self.revision}"


def _run(cmd: list[str], cwd, timeout: float | None) -> str:
    logger.debug("Execute: %s", " ".join(cmd))
    proc = subprocess.run(
        cmd, cwd=cwd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, timeout=timeout
    )
    if proc.returncode != 0:
        raise subprocess.CalledProcessError(
            proc.returncode, cmd, output=proc.stdout, stderr=proc.stderr
        )
    return proc.stdout.decode("utf-8", errors="replace")


def _query_version(cmd: list[str], cwd, timeout: float | None) -> tuple[str, str]:
    try:
        output = _run(cmd, cwd, timeout)
    except subprocess.CalledProcessError as e:
        text = (e.output or b"").decode("utf-8", errors="replace").strip()
        raise RuntimeError(f"Get version failed: {text[:_MAX_ERROR_OUTPUT]}: {e}") from e
    except (OSError, subprocess.SubprocessError) as e:
        raise RuntimeError(f"Get version failed: {e}") from e
    return parse_gradle_version(output)


def _wrapper_info(directory, timeout: float | None) -> GradleInfo:
    if os.name == "nt":
        wrapper = os.path.join(directory, "gradlew.bat")
        use_shell = False
    else:
        wrapper = os.path.join(directory, "gradlew")
        use_shell = True
        try:
            os.chmod(wrapper, 0o755)
        except OSError as e:
            logger.warning("Chmod wrapper 0755 failed. %s %s", e, wrapper)
    version, revision = _query_version([wrapper, "--version"], directory, timeout)
    return GradleInfo(wrapper, version, revision, use_shell)


def _raw_info(directory, timeout: float | None) -> GradleInfo:
    version, revision = _query_version(["gradle", "--version"], directory, timeout)
    return GradleInfo("gradle", version, revision)


def eval_gradle_info(directory, timeout=None) -> GradleInfo:
    """Find a working Gradle: the project's wrapper first, then ``gradle`` on PATH."""
    try:
        return _wrapper_info(directory, timeout)
    except RuntimeError as e:
        logger.debug("check gradle wrapper failed. %s", e)
    try:
        return _raw_info(directory, timeout)
    except RuntimeError as e:
        logger.debug("check raw gradle failed. %s", e)
        raise


def fetch_gradle_projects(project_dir, info: GradleInfo, timeout=None) -> list[str]:
    """Sub-project identifiers reported by ``gradle projects``."""
    output = _run(info.command("--console", "plain", "-q", "projects"), project_dir, timeout)
    found = (m.group(1) for m in _PROJECT_PATTERN.finditer(output))
    return list(dict.fromkeys(name for name in found if name))


def eval_gradle_dependencies(
    project_dir, project_name: str, info: GradleInfo, timeout=None
) -> GradleDependencyInfo:
    """Runtime classpath of one project as reported by Gradle."""
    cmd = info.command(
        f"{project_name}:dependencies",
        "--console",
        "plain",
        "-q",
        "--configuration=runtimeClasspath",
    )
    try:
        output = _run(cmd, project_dir, timeout)
    except subprocess.CalledProcessError as e:
        logger.debug("Gradle output %s", (e.stderr or b"").decode("utf-8", errors="replace"))
        raise
    logger.debug("GradleOutput: %s", output)
    return parse_gradle_dependencies([line.strip() for line in output.split("\n")])


def _walk_files(path: str) -> Iterator[tuple[str, str]]:
    try:
        with os.scandir(path) as it:
            entries = sorted(it, key=lambda e: e.name)
    except OSError:
        return
    for entry in entries:
        if entry.is_dir(follow_symlinks=False):
            yield from _walk_files(entry.path)
        elif entry.is_file(follow_symlinks=False):
            yield entry.path, entry.name


def backup_parser(directory) -> GradleDependencyInfo | None:
    """Dependencies read straight from build scripts, without running Gradle."""
    deps: list[DepElement] = []
    for path, name in _walk_files(os.fspath(directory)):
        if name not in ("build.gradle", "build.gradle.kts"):
            continue
        try:
            with open(path, encoding="utf-8", errors="replace") as f:
                text = f.read()
        except OSError as e:
            logger.error("Read gradle file failed. %s", e)
            continue
        if name == "build.gradle.kts":
            deps += parse_gradle_kts(text)
        else:
            deps += parse_gradle_groovy(text)
    if not deps:
        return None
    base = os.path.basename(os.path.normpath(os.fspath(directory)))
    return GradleDependencyInfo(f"GradleProject-{base}", deps)


class GradleInspector(Inspector):
    name = "GradleInspector"
    package_manager_type = PackageManagerType.GRADLE

    def __init__(self, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.timeout = timeout

    def check_dir(self, directory) -> bool:
        return any(is_file(os.path.join(directory, name)) for name in GRADLE_BUILD_FILES)

    def inspect(self, task: ScanTask) -> list[Module]:
        directory = task.project_dir
        build_file = os.path.join(directory, "build.gradle")
        deadline = time.monotonic() + self.timeout

        def remaining() -> float:
            return max(deadline - time.monotonic(), 0.0)

        modules: list[Module] = []
        try:
            info = eval_gradle_info(directory, remaining())
        except RuntimeError as e:
            task.warn(
                f"[{directory}] no gradlew found in the directory or Gradle does not run "
                "in this environment; results may be incomplete"
            )
            logger.info("check gradle failed %s", e)
            info = None

        if info is not None:
            logger.info("%s", info)
            try:
                projects = fetch_gradle_projects(directory, info, remaining())
            except (OSError, subprocess.SubprocessError) as e:
                logger.info("fetch gradle projects failed. %s", e)
                projects = []
            logger.debug("Gradle projects: %s", ", ".join(projects))
            try:
                modules.append(
                    eval_gradle_dependencies(directory, "", info, remaining()).to_module(
                        build_file
                    )
                )
            except (OSError, subprocess.SubprocessError) as e:
                logger.info("evalGradleDependencies failed. <root> %s", e)
            for project in projects:
                try:
                    dep_info = eval_gradle_dependencies(directory, project, info, remaining())
                except (OSError, subprocess.SubprocessError) as e:
                    task.warn(
                        f"[{directory}] collecting dependencies through Gradle failed; "
                        "results may be incomplete"
                    )
                    logger.info("evalGradleDependencies failed. %s %s", project, e)
                else:
                    modules.append(dep_info.to_module(build_file))

        if not modules:
            fallback = backup_parser(directory)
            if fallback is not None:
                modules.append(fallback.to_module(directory))
        return modules