"""PHP Composer support: reads composer.json, composer.lock and vendor manifests."""

from __future__ import annotations

import json
import logging
import os
import re
import subprocess
from dataclasses import dataclass, field
from typing import Any

from .base import Dependency, Inspector, Module, PackageManagerType, ScanTask
from .fsutil import is_file, is_path_exist, read_file_limited

logger = logging.getLogger(__name__)

_MAX_READ = 4 * 1024 * 1024
_MAX_STDERR_PREFIX = 1024
_MAX_VISITED = 3
_VERSION_PATTERN = re.compile(r"Composer version ([^ ]+)")
_INSTALL_COMMAND = (
    "composer",
    "--ignore-platform-reqs",
    "--no-progress",
    "--no-dev",
    "--no-autoloader",
    "--no-scripts",
    "--no-interaction",
    "--quiet",
)


class ComposerResolveError(Exception):
    """Composer could not resolve the project requirements."""

    def __init__(self, message: str = "PHP composer resolve failed") -> None:
        super().__init__(message)


class ComposerInstallError(ComposerResolveError):
    """Running composer to generate the lock file failed."""

    def __init__(self, code: int, stderr_prefix: bytes, cause: BaseException | None) -> None:
        self.code = code
        self.stderr_prefix = stderr_prefix
        self.cause = cause
        super().__init__(self._describe())
        if cause is not None:
            self.__cause__ = cause

    def requirements_could_not_be_resolved(self) -> bool:
        return b"Your requirements could not be resolved" in self.stderr_prefix

    def _describe(self) -> str:
        if self.requirements_could_not_be_resolved():
            return "PHP composer resolve failed"
        quoted = json.dumps(self.stderr_prefix.decode("utf-8", errors="replace"))
        if self.cause is None:
            return f"Composer exit with error: {quoted}"
        return f"Composer: {self.cause} {quoted}"

    def __str__(self) -> str:
        return self._describe()


class ComposerVersionCheckError(Exception):
    """``composer --version`` did not run or did not report a version."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason

    def __str__(self) -> str:
        return f"ComposerVersionCheckFail: {self.reason}"


@dataclass
class ComposerPackage:
    name: str
    version: str
    require: list[str] = field(default_factory=list)


@dataclass
class ComposerManifest:
    name: str = ""
    version: str = ""
    require: dict[str, str] = field(default_factory=dict)


def _get_str(obj: Any, key: str) -> str:
    if isinstance(obj, dict):
        value = obj.get(key)
        if isinstance(value, str):
            return value
    return ""


def _get_map(obj: Any, key: str) -> dict[str, Any]:
    if isinstance(obj, dict):
        value = obj.get(key)
        if isinstance(value, dict):
            return value
    return {}


def parse_composer_lock(data) -> list[ComposerPackage]:
    """Packages listed in a composer.lock document that carry a name and a version."""
    try:
        doc = json.loads(data)
    except ValueError as e:
        raise ValueError(f"ParseComposerLock: {e}") from e
    packages = doc.get("packages") if isinstance(doc, dict) else None
    result: list[ComposerPackage] = []
    for pkg in packages if isinstance(packages, list) else []:
        name = _get_str(pkg, "name")
        version = _get_str(pkg, "version")
        if not name or not version:
            continue
        result.append(ComposerPackage(name, version, list(_get_map(pkg, "require"))))
    return result


def parse_composer_manifest(data) -> ComposerManifest:
    """Name, version and requirements of a composer.json document."""
    try:
        doc = json.loads(data)
    except ValueError as e:
        raise ValueError(f"ParseComposeManifest: {e}") from e
    return ComposerManifest(
        name=_get_str(doc, "name"),
        version=_get_str(doc, "version"),
        require={
            name: constraint if isinstance(constraint, str) else ""
            for name, constraint in _get_map(doc, "require").items()
        },
    )


def read_composer_lock(path) -> list[ComposerPackage]:
    return parse_composer_lock(read_file_limited(path, _MAX_READ))


def read_manifest(path) -> ComposerManifest:
    return parse_composer_manifest(read_file_limited(path, _MAX_READ))


def vendor_scan(directory) -> list[ComposerPackage]:
    """Packages described by every composer.json below ``directory``."""
    result: list[ComposerPackage] = []
    for root, dirnames, filenames in os.walk(directory):
        dirnames.sort()
        for name in sorted(filenames):
            if name != "composer.json":
                continue
            try:
                manifest = read_manifest(os.path.join(root, name))
            except (OSError, ValueError):
                continue
            result.append(
                ComposerPackage(manifest.name, manifest.version, list(manifest.require))
            )
    return result


def _build(
    lockfile: dict[str, ComposerPackage], visited: set[str], name: str, constraint: str
) -> Dependency | None:
    if name in visited or len(visited) > _MAX_VISITED:
        return None
    visited.add(name)
    try:
        pkg = lockfile.get(name)
        locked_version = pkg.version if pkg else ""
        if name == "php" or (
            name.startswith("ext-")
            and (locked_version in ("*", "") or constraint == "*")
        ):
            return None
        if not locked_version:
            return Dependency(name, constraint)
        children = (_build(lockfile, visited, child, "") for child in pkg.require)
        return Dependency(name, locked_version, [c for c in children if c is not None])
    finally:
        visited.discard(name)


def build_dep_tree(
    lockfile: dict[str, ComposerPackage], target_name: str, version_constraint: str
) -> Dependency | None:
    """Dependency tree of ``target_name``, or None for platform requirements."""
    return _build(lockfile, set(), target_name, version_constraint)


def composer_install(project_dir) -> None:
    """Run composer in ``project_dir`` so that a composer.lock gets generated."""
    logger.info("Command: %s", " ".join(_INSTALL_COMMAND))
    try:
        proc = subprocess.run(
            list(_INSTALL_COMMAND),
            cwd=project_dir,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
        )
    except OSError as e:
        raise ComposerInstallError(-1, b"", e) from e
    if proc.returncode == 0:
        return
    if proc.returncode == 2:
        raise ComposerResolveError()
    stderr = proc.stderr or b""
    cause = subprocess.CalledProcessError(proc.returncode, list(_INSTALL_COMMAND))
    raise ComposerInstallError(proc.returncode, stderr[:_MAX_STDERR_PREFIX], cause)


def check_composer_version() -> str:
    """The version reported by ``composer --version``."""
    try:
        proc = subprocess.run(
            ["composer", "--version"], stdout=subprocess.PIPE, stderr=subprocess.PIPE
        )
    except OSError as e:
        raise ComposerVersionCheckError(str(e)) from e
    if proc.returncode != 0:
        raise ComposerVersionCheckError(f"exit status {proc.returncode}")
    output = (proc.stdout or b"").decode("utf-8", errors="replace")
    m = _VERSION_PATTERN.search(output)
    if m is None:
        raise ComposerVersionCheckError("Version pattern not match")
    return m.group(1)


class ComposerInspector(Inspector):
    name = "ComposerInspector"
    package_manager_type = PackageManagerType.COMPOSER

    def check_dir(self, directory) -> bool:
        return is_file(os.path.join(directory, "composer.json"))

    def inspect(self, task: ScanTask) -> list[Module]:
        directory = task.project_dir
        manifest_path = os.path.join(directory, "composer.json")
        manifest = read_manifest(manifest_path)
        module = Module(
            package_manager="composer",
            language="PHP",
            package_file="composer.json",
            name=manifest.name,
            version=manifest.version,
            file_path=manifest_path,
        )

        lock_path = os.path.join(directory, "composer.lock")
        if not is_path_exist(lock_path):
            logger.info("composer.lock doesn't exists. Try generate it")
            try:
                composer_install(directory)
            except ComposerResolveError as e:
                logger.error("Do composer install fail. %s", e)
            else:
                logger.info("Do composer install succeeded")
        try:
            packages = read_composer_lock(lock_path)
        except (OSError, ValueError) as e:
            logger.info("Composer: %s", e)
            packages = []
        packages += vendor_scan(os.path.join(directory, "vendor"))
        lockfile = {pkg.name: pkg for pkg in packages}

        for name, constraint in manifest.require.items():
            node = build_dep_tree(lockfile, name, constraint)
            if node is not None:
                module.dependencies.append(node)
        return [module]