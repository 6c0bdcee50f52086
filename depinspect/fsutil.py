"""Small filesystem and collection helpers."""

from __future__ import annotations

import os
from collections.abc import Iterable
from typing import TypeVar

T = TypeVar("T")


def is_path_exist(path) -> bool:
    """True when ``path`` can be stat'ed."""
    try:
        os.stat(path)
    except (OSError, ValueError):
        return False
    return True


def is_dir(path) -> bool:
    try:
        st = os.stat(path)
    except (OSError, ValueError):
        return False
    return os.path.isdir(path) if st else False


def is_file(path) -> bool:
    """True when ``path`` exists and is not a directory."""
    try:
        os.stat(path)
    except (OSError, ValueError):
        return False
    return not os.path.isdir(path)


def distinct(items: Iterable[T]) -> list[T]:
    """Items in first-seen order with duplicates removed."""
    return list(dict.fromkeys(items))


def read_file_limited(path, max_read: int) -> bytes:
    """Read at most ``max_read`` bytes from the start of the file."""
    with open(path, "rb") as f:
        return f.read(max(max_read, 0))