"""Remote Maven repositories over HTTP and the user's Maven settings."""

from __future__ import annotations

import logging
import os
import posixpath
import threading
import urllib.error
import urllib.request
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from urllib.parse import urlsplit, urlunsplit

from .maven_base import ArtifactNotFoundError, Coordinate, InvalidCoordinateError
from .pom import PomProject, parse_pom

logger = logging.getLogger(__name__)

CENTRAL = "https://repo1.maven.org/maven2/"
_FETCH_TIMEOUT = 60.0
_USER_HOME_PLACEHOLDER = "${user.home}"


def fetch_pom(url) -> PomProject:
    """Download and parse the pom at ``url``."""
    try:
        with urllib.request.urlopen(str(url), timeout=_FETCH_TIMEOUT) as resp:
            status = resp.status
            reason = resp.reason
            data = resp.read()
    except urllib.error.HTTPError as e:
        if e.code == 404:
            raise ArtifactNotFoundError() from e
        raise RuntimeError(f"http {e.code} - {e.reason}") from e
    if status != 200:
        raise RuntimeError(f"http {status} - {reason}")
    return parse_pom(data)


class HttpRepo:
    """A Maven repository reached over HTTP; each coordinate is fetched at most once."""

    def __init__(self, base_url) -> None:
        self.base_url = str(base_url)
        self._lock = threading.Lock()
        self._inflight: dict[Coordinate, threading.Event] = {}
        self._results: dict[Coordinate, tuple[PomProject | None, BaseException | None]] = {}

    def __str__(self) -> str:
        return f"HttpRepo[{self.base_url}]"

    def pom_url(self, coordinate: Coordinate) -> str:
        """URL of the pom of ``coordinate`` in this repository."""
        parts = urlsplit(self.base_url)
        path = posixpath.normpath(
            posixpath.join(
                parts.path or "/",
                *coordinate.group_id.split("."),
                coordinate.artifact_id,
                coordinate.version,
                f"{coordinate.artifact_id}-{coordinate.version}.pom",
            )
        )
        return urlunsplit((parts.scheme, parts.netloc, path, parts.query, parts.fragment))

    def fetch(self, coordinate: Coordinate) -> PomProject:
        if not coordinate.complete():
            raise InvalidCoordinateError()
        with self._lock:
            event = self._inflight.get(coordinate)
            owner = event is None
            if owner:
                event = threading.Event()
                self._inflight[coordinate] = event
        if not owner:
            event.wait()
            with self._lock:
                pom, error = self._results[coordinate]
            if error is not None:
                raise error
            return pom

        pom: PomProject | None = None
        error: BaseException | None = None
        try:
            url = self.pom_url(coordinate)
            logger.info("Request pom: %s", url)
            pom = fetch_pom(url)
        except Exception as e:  # recorded so that concurrent and later callers see it too
            error = e
        finally:
            with self._lock:
                self._results[coordinate] = (pom, error)
            event.set()
        if error is not None:
            raise error
        return pom


@dataclass
class MvnOption:
    local_repo_path: str
    remote: list[str] = field(default_factory=list)

    def __str__(self) -> str:
        return f"LocalRepo: {self.local_repo_path}, remotes: {','.join(self.remote)}"


def _home() -> str:
    return os.path.expanduser("~")


def default_mvn_option() -> MvnOption:
    return MvnOption(os.path.join(_home(), ".m2", "repository"), [CENTRAL])


def _local(tag) -> str:
    return tag.rsplit("}", 1)[-1] if isinstance(tag, str) else ""


def _children(element, name: str) -> list:
    return [c for c in element if _local(c.tag) == name]


def parse_mvn_settings(data) -> MvnOption:
    """Mirrors and local repository from a Maven settings.xml document."""
    try:
        root = ET.fromstring(data)
    except ET.ParseError as e:
        logger.info("Parse m2 settings failed. %s", e)
        return default_mvn_option()
    option = default_mvn_option()
    option.remote = []
    if _local(root.tag) == "settings":
        for mirrors in _children(root, "mirrors"):
            for mirror in _children(mirrors, "mirror"):
                urls = _children(mirror, "url")
                if urls:
                    option.remote.append("".join(urls[0].itertext()))
        local = _children(root, "localRepository")
        if local:
            text = "".join(local[0].itertext())
            option.local_repo_path = text.replace(_USER_HOME_PLACEHOLDER, _home())
    option.remote.append(CENTRAL)
    return option


def _locate_mvn() -> str:
    for entry in os.environ.get("PATH", "").split(os.pathsep):
        if not entry:
            continue
        candidate = os.path.join(entry, "mvn")
        if os.path.exists(candidate):
            return os.path.realpath(candidate)
    return ""


def _read_user_settings() -> bytes:
    with open(os.path.join(_home(), ".m2", "settings.xml"), "rb") as f:
        return f.read()


def _read_install_settings() -> bytes:
    mvn = _locate_mvn()
    if not mvn:
        raise FileNotFoundError("mvn binary not found")
    path = os.path.join(os.path.dirname(os.path.dirname(mvn)), "conf", "settings.xml")
    with open(path, "rb") as f:
        return f.read()


def read_mvn_option() -> MvnOption:
    """Maven options from the user's settings.xml, else from the Maven installation."""
    try:
        data = _read_user_settings()
    except OSError as e:
        logger.info("Read user home maven settings.xml failed. %s", e)
        try:
            data = _read_install_settings()
        except OSError as e2:
            logger.info("Read maven install settings.xml failed. %s", e2)
            data = b""
    option = parse_mvn_settings(data)
    logger.info("maven option %s", option)
    return option