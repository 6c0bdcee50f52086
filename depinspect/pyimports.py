"""Python support: collects imported packages and pinned requirements."""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Iterator

from .base import Dependency, Inspector, Module, PackageManagerType, ScanTask

logger = logging.getLogger(__name__)

_MAX_READ = 4 * 1024 * 1024
_MAX_LINE = 16 * 1024

_REQUIREMENT_PATTERN = re.compile(r"^([A-Za-z0-9_-]+) *== *([^= \n\r]+)\Z")
_IMPORT_PATTERN = re.compile(
    r"import\s+(?:[A-Za-z_-][A-Za-z_0-9.-]*)(?:\s*,\s*(?:[A-Za-z_-][A-Za-z_0-9.-]*))"
)
_FROM_PATTERN = re.compile(r"from\s+([A-Za-z_-][A-Za-z_0-9-]*)")

_STDLIB_NAMES = frozenset(
    """
    string re difflib textwrap unicodedata stringprep readline rlcompleter struct codecs
    datetime zoneinfo calendar collections heapq bisect array weakref types copy pprint
    reprlib enum graphlib numbers math cmath decimal fractions random statistics itertools
    functools operator pathlib fileinput stat filecmp tempfile glob fnmatch linecache shutil
    pickle copyreg shelve marshal dbm sqlite3 zlib gzip bz2 lzma zipfile tarfile csv
    configparser netrc xdrlib plistlib hashlib hmac secrets os io time argparse getopt
    logging getpass curses platform errno ctypes threading multiprocessing concurrent
    subprocess sched queue contextvars _thread asyncio socket ssl select selectors asyncore
    asynchat signal mmap email json mailcap mailbox mimetypes base64 binhex binascii quopri
    uu html xml webbrowser cgi cgitb wsgiref urllib http ftplib poplib imaplib nntplib
    smtplib smtpd telnetlib uuid socketserver xmlrpc ipaddress audioop aifc sunau wave
    chunk colorsys imghdr sndhdr ossaudiodev gettext locale turtle cmd shlex tkinter typing
    pydoc doctest unittest 2to3 test bdb faulthandler pdb timeit trace tracemalloc
    distutils ensurepip venv zipapp sys sysconfig builtins __main__ warnings dataclasses
    contextlib abc atexit traceback __future__ gc inspect site code codeop zipimport
    pkgutil modulefinder runpy importlib ast symtable token keyword tokenize tabnanny
    pyclbr py_compile compileall dis pickletools msilib msvcrt winreg winsound posix pwd
    spwd grp crypt termios tty pty fcntl pipes resource nis optparse imp
    """.split()
)


def _ext(name: str) -> str:
    idx = name.rfind(".")
    return name[idx:] if idx >= 0 else ""


def parse_py_import(line: str) -> list[str]:
    """Top-level package names named by an import statement."""
    result: list[str] = []
    line = line.strip()
    if line.startswith("import "):
        m = _IMPORT_PATTERN.search(line)
        matched = m.group(0) if m else ""
        if matched.startswith("import"):
            matched = matched[len("import"):]
        for part in matched.split(","):
            head = part.strip().split(".")[0]
            if head:
                result.append(head)
    if line.startswith("from "):
        m = _FROM_PATTERN.search(line)
        if m:
            result.append(m.group(1))
    return result


def _read_lines(path) -> Iterator[str]:
    with open(path, "rb") as f:
        data = f.read(_MAX_READ)
    for raw in data.split(b"\n"):
        if raw.endswith(b"\r"):
            raw = raw[:-1]
        if len(raw) > _MAX_LINE:
            return
        yield raw.decode("utf-8", errors="replace")


def parse_requirements(path) -> dict[str, str]:
    """Exactly pinned ``name==version`` entries of a requirements file."""
    try:
        lines = list(_read_lines(path))
    except OSError as e:
        logger.warning("Open file failed. %s %s", e, path)
        return {}
    result: dict[str, str] = {}
    for line in lines:
        m = _REQUIREMENT_PATTERN.match(line.strip())
        if m:
            result[m.group(1)] = m.group(2)
    return result


def _walk(path: str) -> Iterator[tuple[str, str, bool]]:
    """Lexically ordered depth-first walk yielding (path, name, is_dir)."""
    yield path, os.path.basename(path), os.path.isdir(path)
    if not os.path.isdir(path):
        return
    try:
        with os.scandir(path) as it:
            entries = sorted(it, key=lambda e: e.name)
    except OSError:
        return
    for entry in entries:
        if entry.is_dir(follow_symlinks=False):
            yield from _walk(entry.path)
        else:
            yield entry.path, entry.name, False


class PythonInspector(Inspector):
    name = "PythonInspector"
    package_manager_type = PackageManagerType.PYTHON

    def check_dir(self, directory) -> bool:
        try:
            names = os.listdir(directory)
        except OSError:
            return False
        return any(_ext(n) == ".py" or n.startswith("requirements") for n in names)

    def inspect(self, task: ScanTask) -> list[Module]:
        directory = os.fspath(task.project_dir)
        components: dict[str, str] = {}
        requirement_files: list[str] = []
        ignored: set[str] = set()

        for path, name, is_directory in _walk(directory):
            if is_directory:
                ignored.add(name)
                continue
            ext = _ext(name)
            if ext in (".txt", "") and name.startswith("requirements"):
                if path not in requirement_files:
                    requirement_files.append(path)
                continue
            if ext != ".py":
                continue
            try:
                lines = list(_read_lines(path))
            except OSError:
                break
            for line in lines:
                for pkg in parse_py_import(line):
                    if pkg not in _STDLIB_NAMES:
                        components[pkg] = ""

        for path in requirement_files:
            components.update(parse_requirements(path))
        for name in ignored:
            components.pop(name, None)
        if not components:
            return []
        return [
            Module(
                name="Python",
                package_manager="pip",
                language="Python",
                file_path=os.path.normpath(directory),
                dependencies=[Dependency(k, v) for k, v in components.items()],
            )
        ]