"""Line-ending converting writers and a buffer that keeps only the tail of its input."""

from __future__ import annotations

from typing import Any

_CR = 0x0D
_LF = 0x0A


class _ConvertingWriter:
    """Common plumbing for writers that forward converted bytes to a sink."""

    def __init__(self, sink: Any) -> None:
        self._sink = sink
        self._last_cr = False

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _close_sink(self) -> None:
        close = getattr(self._sink, "close", None)
        if callable(close):
            close()

    def close(self) -> None:
        self._close_sink()


class Dos2UnixWriter(_ConvertingWriter):
    """Write-through filter that turns CRLF sequences into LF."""

    def write(self, data) -> int:
        chunk = bytes(data)
        out = bytearray()
        for ch in chunk:
            if self._last_cr:
                if ch in (_LF, _CR):
                    out.append(ch)
                else:
                    out += bytes((_CR, ch))
            elif ch != _CR:
                out.append(ch)
            self._last_cr = ch == _CR
        self._sink.write(bytes(out))
        return len(chunk)

    def close(self) -> None:
        """Emit a pending carriage return, then close the sink if it can be closed."""
        if self._last_cr:
            self._last_cr = False
            self._sink.write(b"\r")
        self._close_sink()


class Unix2DosWriter(_ConvertingWriter):
    """Write-through filter that turns bare LF into CRLF."""

    def write(self, data) -> int:
        chunk = bytes(data)
        out = bytearray()
        for ch in chunk:
            if self._last_cr:
                self._last_cr = False
                out.append(ch)
                continue
            if ch == _LF:
                out.append(_CR)
            elif ch == _CR:
                self._last_cr = True
            out.append(ch)
        self._sink.write(bytes(out))
        return len(chunk)

    def close(self) -> None:
        self._close_sink()


class SuffixBuffer:
    """Keeps the last ``size`` bytes written to it."""

    def __init__(self, size: int) -> None:
        if size < 0:
            raise ValueError("size must not be negative")
        self._size = size
        self._data = bytearray()
        self._truncated = False

    def write(self, data) -> int:
        chunk = bytes(data)
        self._data += chunk
        overflow = len(self._data) - self._size
        if overflow > 0:
            del self._data[:overflow]
            self._truncated = True
        return len(chunk)

    def truncated(self) -> bool:
        """True once more bytes were written than the buffer holds."""
        return self._truncated

    def getvalue(self) -> bytes:
        return bytes(self._data)

    def __bytes__(self) -> bytes:
        return self.getvalue()

    def __str__(self) -> str:
        return self.getvalue().decode("utf-8", errors="replace")