# cxxfront/source.py
"""
Source buffer and byte spans.

A :class:`SourceBuffer` owns the raw bytes of one translation unit and a
line-offset table built in a single pass.  Every token and AST node refers
back into the buffer through a :class:`Span` -- a half-open byte range
``[start, end)``.  Spans are pure offsets, so the AST may outlive the buffer
(all lexemes are copied out as ``str``).

Offsets are byte based.  The buffer treats its input as UTF-8 but never
re-encodes it; :meth:`SourceBuffer.slice` decodes with ``surrogateescape``
so that invalid byte sequences survive a round trip.
"""

from __future__ import annotations

import bisect
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple, Union

__all__ = ["Span", "SourceBuffer", "NO_SPAN"]


@dataclass(frozen=True, slots=True)
class Span:
    """Half-open byte range ``[start, end)`` into a :class:`SourceBuffer`."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0 or self.end < self.start:
            raise ValueError(f"invalid span [{self.start}, {self.end})")

    def __len__(self) -> int:
        return self.end - self.start

    def contains(self, other: "Span") -> bool:
        """True when *other* lies entirely inside this span."""
        return self.start <= other.start and other.end <= self.end

    def merge(self, *others: "Span") -> "Span":
        """Smallest span covering this span and every span in *others*."""
        start = min([self.start, *(o.start for o in others)])
        end = max([self.end, *(o.end for o in others)])
        return Span(start, end)

    def empty_at_start(self) -> "Span":
        return Span(self.start, self.start)

    def to_list(self) -> List[int]:
        return [self.start, self.end]

    def __str__(self) -> str:
        return f"[{self.start},{self.end})"


#: Sentinel for nodes synthesised without source text.
NO_SPAN = Span(0, 0)


class SourceBuffer:
    """Immutable input text plus its line-offset index.

    Usage::

        buf = SourceBuffer.from_text("int x;\\nint y;\\n", path="demo.c")
        buf.locate(7)            # -> (2, 1)
        buf.slice(Span(0, 3))    # -> "int"
    """

    __slots__ = ("_data", "_path", "_line_starts")

    def __init__(self, data: bytes, path: Optional[str] = None) -> None:
        if not isinstance(data, (bytes, bytearray)):
            raise TypeError(f"SourceBuffer expects bytes, got {type(data).__name__}")
        self._data = bytes(data)
        self._path = path
        starts = [0]
        find = self._data.find
        pos = find(b"\n")
        while pos != -1:
            starts.append(pos + 1)
            pos = find(b"\n", pos + 1)
        self._line_starts: Tuple[int, ...] = tuple(starts)

    # -- constructors -------------------------------------------------------

    @classmethod
    def from_text(cls, text: str, path: Optional[str] = None) -> "SourceBuffer":
        return cls(text.encode("utf-8", "surrogateescape"), path)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "SourceBuffer":
        """Read *path* as bytes; any OS failure becomes :class:`IoError`."""
        from cxxfront.errors import IoError

        p = Path(path)
        try:
            data = p.read_bytes()
        except OSError as exc:
            raise IoError(f"cannot read {str(p)!r}: {exc.strerror or exc}", path=str(p), cause=exc) from exc
        return cls(data, str(p))

    # -- accessors ------------------------------------------------------------

    @property
    def path(self) -> Optional[str]:
        return self._path

    @property
    def data(self) -> bytes:
        return self._data

    @property
    def length(self) -> int:
        return len(self._data)

    def __len__(self) -> int:
        return len(self._data)

    @property
    def line_count(self) -> int:
        return len(self._line_starts)

    def byte_at(self, offset: int) -> int:
        """Return the byte at *offset*; raises ``IndexError`` past the end."""
        if offset < 0 or offset >= len(self._data):
            raise IndexError(f"offset {offset} outside buffer of length {len(self._data)}")
        return self._data[offset]

    def slice(self, span: Span) -> str:
        """Decoded text covered by *span*."""
        if span.end > len(self._data):
            raise IndexError(f"span {span} outside buffer of length {len(self._data)}")
        return self._data[span.start:span.end].decode("utf-8", "surrogateescape")

    def locate(self, offset: int) -> Tuple[int, int]:
        """Map a byte offset to a 1-based ``(line, column)`` pair.

        The column counts bytes.  ``offset == length`` (end of file) is valid.
        """
        if offset < 0 or offset > len(self._data):
            raise IndexError(f"offset {offset} outside buffer of length {len(self._data)}")
        line = bisect.bisect_right(self._line_starts, offset) - 1
        return line + 1, offset - self._line_starts[line] + 1

    def line_text(self, line: int) -> str:
        """Text of 1-based *line* without its terminator."""
        if line < 1 or line > len(self._line_starts):
            raise IndexError(f"line {line} outside 1..{len(self._line_starts)}")
        start = self._line_starts[line - 1]
        if line < len(self._line_starts):
            end = self._line_starts[line] - 1
        else:
            end = len(self._data)
        raw = self._data[start:end]
        if raw.endswith(b"\r"):
            raw = raw[:-1]
        return raw.decode("utf-8", "surrogateescape")

    def __repr__(self) -> str:
        return f"SourceBuffer(path={self._path!r}, length={len(self._data)}, lines={len(self._line_starts)})"
