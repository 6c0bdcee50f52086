"""Semantic error categories that can decorate concrete errors."""

from __future__ import annotations


class SemErr(Exception):
    """A named error category; also usable as a sentinel error itself."""

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return self.name

    def decorate(self, error: BaseException) -> SemErrInstance:
        """Tag ``error`` with this category."""
        if isinstance(error, SemErr):
            raise TypeError("a SemErr cannot be decorated")
        return SemErrInstance(self, error)

    def matches(self, other) -> bool:
        if other is self:
            return True
        if isinstance(other, SemErrInstance):
            return other.sem_err is self or other.wrapped is self
        return False


class SemErrInstance(Exception):
    """A concrete error tagged with a :class:`SemErr` category."""

    def __init__(self, sem_err: SemErr, wrapped: BaseException) -> None:
        super().__init__(f"{sem_err.name}: {wrapped}")
        self.sem_err = sem_err
        self.wrapped = wrapped
        self.__cause__ = wrapped

    def __str__(self) -> str:
        return f"{self.sem_err.name}: {self.wrapped}"

    def matches(self, other) -> bool:
        if other is self or other is self.wrapped or other is self.sem_err:
            return True
        if isinstance(other, SemErrInstance):
            return other.sem_err is self.sem_err
        return False


def _unwrap(error):
    if isinstance(error, SemErrInstance):
        return error.wrapped
    return getattr(error, "__cause__", None)


def error_is(error, target) -> bool:
    """Whether any error in the cause chain of ``error`` is or matches ``target``."""
    seen: set[int] = set()
    current = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if current is target:
            return True
        matches = getattr(current, "matches", None)
        if callable(matches) and matches(target):
            return True
        current = _unwrap(current)
    return False