# cxxfront/errors.py
"""
Diagnostics and Error Types for the C/C++ front-end

This module provides the error handling infrastructure shared by the lexer,
the directive filter and the parser.  Lexical and syntax problems are raised
as exceptions at the point of detection, caught at a recovery point, and
recorded in a :class:`Diagnostics` collection so that a best-effort tree is
still produced.  Only :class:`IoError` and :class:`InternalError` abort.

Architecture Overview:
─────────────────────
┌─────────────────────────────────────────────────────────────────────────────┐
│                          Error Hierarchy                                     │
├─────────────────────────────────────────────────────────────────────────────┤
│  FrontendError (base)                                                       │
│  ├── IoError              - Input unreadable (aborts)                       │
│  ├── LexError             - Token-level failures (recorded)                 │
│  │   ├── UnterminatedLiteralError                                           │
│  │   ├── UnterminatedCommentError                                           │
│  │   ├── InvalidEscapeError                                                 │
│  │   ├── InvalidNumberError                                                 │
│  │   └── StrayCharacterError                                                │
│  ├── SyntaxError          - Structural failures (recorded)                  │
│  ├── TooManyErrorsError   - Configured error limit exceeded                 │
│  └── InternalError        - Unreachable path reached (aborts)               │
└─────────────────────────────────────────────────────────────────────────────┘

Error Codes:
────────────
Each error has a unique code CXX-NNNN where NNNN falls in:
  - 0001-0999: Lexical errors
  - 1000-1999: Syntax errors
  - 8000-8999: I/O errors
  - 9000-9999: Internal errors

Example Usage:
──────────────
    from cxxfront.errors import Diagnostics, CxxErrorCodes

    diags = Diagnostics()
    diags.error(CxxErrorCodes.MISSING_TOKEN, span, "expected ';'")
    for line in diags.format(buffer, "demo.c"):
        print(line)
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum, unique
from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    Iterator,
    List,
    Optional,
    Sequence,
)

from cxxfront.source import NO_SPAN, Span

if TYPE_CHECKING:
    from cxxfront.source import SourceBuffer


# ═══════════════════════════════════════════════════════════════════════════════
# ERROR SEVERITY AND CLASSIFICATION
# ═══════════════════════════════════════════════════════════════════════════════

@unique
class ErrorSeverity(Enum):
    """Severity levels for front-end diagnostics."""

    # Parsing cannot continue
    FATAL = "fatal"

    # Standard errors; the tree is best-effort
    ERROR = "error"

    # Suspicious but well-formed input
    WARNING = "warning"

    # Attached context, e.g. where an unterminated brace was opened
    NOTE = "note"

    def __lt__(self, other: "ErrorSeverity") -> bool:
        """Allow severity comparison (FATAL > ERROR > WARNING > NOTE)."""
        order = [
            ErrorSeverity.NOTE,
            ErrorSeverity.WARNING,
            ErrorSeverity.ERROR,
            ErrorSeverity.FATAL,
        ]
        return order.index(self) < order.index(other)

    def is_error(self) -> bool:
        """Check if this severity represents an error (not warning/note)."""
        return self in (ErrorSeverity.FATAL, ErrorSeverity.ERROR)


@unique
class ErrorPhase(Enum):
    """Front-end phase where the error occurred."""

    IO = "io"                  # Reading input
    LEXICAL = "lexical"        # Tokenization and directive lines
    SYNTAX = "syntax"          # Parsing
    INTERNAL = "internal"      # Front-end bugs


# ═══════════════════════════════════════════════════════════════════════════════
# ERROR CODES
# ═══════════════════════════════════════════════════════════════════════════════

class ErrorCode:
    """
    Structured error code of the form ``CXX-NNNN``.

    Ranges:
      - 0001-0999: Lexical errors
      - 1000-1999: Syntax errors
      - 8000-8999: I/O errors
      - 9000-9999: Internal errors
    """

    __slots__ = ("prefix", "number", "name", "phase", "default_severity")

    def __init__(
        self,
        number: int,
        name: str,
        phase: ErrorPhase,
        default_severity: ErrorSeverity = ErrorSeverity.ERROR,
        prefix: str = "CXX",
    ) -> None:
        self.prefix = prefix
        self.number = number
        self.name = name
        self.phase = phase
        self.default_severity = default_severity

    @property
    def code(self) -> str:
        """Get the full error code string."""
        return f"{self.prefix}-{self.number:04d}"

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"ErrorCode({self.code!r}, {self.name})"

    def __hash__(self) -> int:
        return hash((self.prefix, self.number))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ErrorCode):
            return self.prefix == other.prefix and self.number == other.number
        if isinstance(other, str):
            return self.code == other
        return False


class CxxErrorCodes:
    """Predefined error codes."""

    # ═══════════════════════════════════════════════════════════════════════════
    # LEXICAL ERRORS (0001-0999)
    # ═══════════════════════════════════════════════════════════════════════════

    STRAY_CHARACTER = ErrorCode(1, "stray-character", ErrorPhase.LEXICAL)
    UNTERMINATED_STRING = ErrorCode(2, "unterminated-string", ErrorPhase.LEXICAL)
    UNTERMINATED_CHAR = ErrorCode(3, "unterminated-char", ErrorPhase.LEXICAL)
    UNTERMINATED_COMMENT = ErrorCode(4, "unterminated-comment", ErrorPhase.LEXICAL)
    INVALID_ESCAPE = ErrorCode(5, "invalid-escape", ErrorPhase.LEXICAL)
    INVALID_NUMBER = ErrorCode(6, "invalid-number", ErrorPhase.LEXICAL)
    EMPTY_CHAR = ErrorCode(7, "empty-char", ErrorPhase.LEXICAL)
    MALFORMED_DIRECTIVE = ErrorCode(
        100, "malformed-directive", ErrorPhase.LEXICAL, ErrorSeverity.WARNING
    )

    # ═══════════════════════════════════════════════════════════════════════════
    # SYNTAX ERRORS (1000-1999)
    # ═══════════════════════════════════════════════════════════════════════════

    UNEXPECTED_TOKEN = ErrorCode(1000, "unexpected-token", ErrorPhase.SYNTAX)
    MISSING_TOKEN = ErrorCode(1001, "missing-token", ErrorPhase.SYNTAX)
    UNEXPECTED_EOF = ErrorCode(1002, "unexpected-eof", ErrorPhase.SYNTAX)
    EXPECTED_EXPRESSION = ErrorCode(1003, "expected-expression", ErrorPhase.SYNTAX)
    EXPECTED_DECLARATION = ErrorCode(1005, "expected-declaration", ErrorPhase.SYNTAX)
    EXPECTED_DECLARATOR = ErrorCode(1006, "expected-declarator", ErrorPhase.SYNTAX)
    EXPECTED_TYPE = ErrorCode(1007, "expected-type", ErrorPhase.SYNTAX)
    OPENED_HERE = ErrorCode(
        1009, "opened-here", ErrorPhase.SYNTAX, ErrorSeverity.NOTE
    )
    ACCESS_LABEL_IN_C = ErrorCode(1010, "access-label-in-c", ErrorPhase.SYNTAX)

    # ═══════════════════════════════════════════════════════════════════════════
    # I/O AND INTERNAL ERRORS
    # ═══════════════════════════════════════════════════════════════════════════

    IO_FAILURE = ErrorCode(8000, "io-failure", ErrorPhase.IO, ErrorSeverity.FATAL)
    TOO_MANY_ERRORS = ErrorCode(
        9001, "too-many-errors", ErrorPhase.INTERNAL, ErrorSeverity.FATAL
    )
    INTERNAL_ERROR = ErrorCode(
        9000, "internal-error", ErrorPhase.INTERNAL, ErrorSeverity.FATAL
    )


# ═══════════════════════════════════════════════════════════════════════════════
# DIAGNOSTIC RECORDS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class Diagnostic:
    """
    A single recorded problem.

    ``cursor`` is the parser's token index at the time of recording and acts
    as the recovery marker; lexer and directive diagnostics use ``-1``.
    """

    code: ErrorCode
    message: str
    span: Span = NO_SPAN
    severity: Optional[ErrorSeverity] = None  # None means use code's default
    hint: str = ""
    notes: List[str] = field(default_factory=list)
    cursor: int = -1

    def __post_init__(self) -> None:
        if self.severity is None:
            self.severity = self.code.default_severity

    @property
    def is_error(self) -> bool:
        return self.severity is not None and self.severity.is_error()

    def to_gcc_format(
        self,
        buffer: Optional["SourceBuffer"] = None,
        filename: str = "",
    ) -> str:
        """Format as a GCC-style message.

        Without a buffer the location is printed as a raw byte offset.
        """
        severity = self.severity.value if self.severity else "error"
        if buffer is not None:
            line, col = buffer.locate(min(self.span.start, buffer.length))
            where = f"{filename or buffer.path or '<input>'}:{line}:{col}"
        else:
            where = f"{filename or '<input>'}:@{self.span.start}"
        lines = [f"{where}: {severity}: {self.message} [{self.code}]"]
        for note in self.notes:
            lines.append(f"note: {note}")
        if self.hint:
            lines.append(f"hint: {self.hint}")
        return "\n".join(lines)

    def to_json(self, buffer: Optional["SourceBuffer"] = None) -> Dict[str, Any]:
        """Convert to a JSON-serializable dict."""
        out: Dict[str, Any] = {
            "code": self.code.code,
            "name": self.code.name,
            "phase": self.code.phase.value,
            "severity": self.severity.value if self.severity else "error",
            "message": self.message,
            "span": self.span.to_list(),
            "hint": self.hint or None,
            "notes": list(self.notes),
        }
        if buffer is not None:
            line, col = buffer.locate(min(self.span.start, buffer.length))
            out["line"] = line
            out["column"] = col
        return out

    def __str__(self) -> str:
        return self.to_gcc_format()


# ═══════════════════════════════════════════════════════════════════════════════
# EXCEPTION CLASSES
# ═══════════════════════════════════════════════════════════════════════════════

class FrontendError(Exception):
    """
    Base exception for all front-end errors.

    Carries a :class:`Diagnostic` so that a caught exception can be recorded
    without losing structure.
    """

    default_code: ErrorCode = CxxErrorCodes.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        span: Optional[Span] = None,
        severity: Optional[ErrorSeverity] = None,
        hint: str = "",
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.diagnostic = Diagnostic(
            code=code or self.default_code,
            message=message,
            span=span or NO_SPAN,
            severity=severity,
            hint=hint,
        )
        self.cause = cause

    @property
    def code(self) -> ErrorCode:
        return self.diagnostic.code

    @property
    def span(self) -> Span:
        return self.diagnostic.span

    @property
    def severity(self) -> ErrorSeverity:
        return self.diagnostic.severity or ErrorSeverity.ERROR

    def __str__(self) -> str:
        return self.diagnostic.to_gcc_format()


class IoError(FrontendError):
    """Input could not be read."""

    default_code = CxxErrorCodes.IO_FAILURE

    def __init__(self, message: str, path: str = "", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.path = path

    def __str__(self) -> str:
        return self.diagnostic.message


class InternalError(FrontendError):
    """An unreachable path was reached."""

    default_code = CxxErrorCodes.INTERNAL_ERROR


class TooManyErrorsError(FrontendError):
    """Raised by :class:`Diagnostics` once its error limit is exceeded."""

    default_code = CxxErrorCodes.TOO_MANY_ERRORS


# ───────────────────────────────────────────────────────────────────────────────
# LEXICAL ERRORS
# ───────────────────────────────────────────────────────────────────────────────

class LexError(FrontendError):
    """Error during tokenization."""

    default_code = CxxErrorCodes.STRAY_CHARACTER


class StrayCharacterError(LexError):
    """Character outside every recognized token pattern."""

    def __init__(self, char: str, span: Optional[Span] = None, **kwargs: Any) -> None:
        if len(char) == 1 and not char.isprintable():
            char_desc = f"U+{ord(char):04X}"
        else:
            char_desc = repr(char)
        super().__init__(
            f"stray {char_desc} in program",
            code=CxxErrorCodes.STRAY_CHARACTER,
            span=span,
            **kwargs,
        )
        self.character = char


class UnterminatedLiteralError(LexError):
    """String or character literal not closed before end of line."""

    def __init__(self, quote: str = '"', span: Optional[Span] = None, **kwargs: Any) -> None:
        what = "string" if quote == '"' else "character"
        super().__init__(
            f"missing terminating {quote} character in {what} literal",
            code=CxxErrorCodes.UNTERMINATED_STRING if quote == '"' else CxxErrorCodes.UNTERMINATED_CHAR,
            span=span,
            hint=f"Add the closing {quote}",
            **kwargs,
        )


class UnterminatedCommentError(LexError):
    """Block comment not closed before end of file."""

    def __init__(self, span: Optional[Span] = None, **kwargs: Any) -> None:
        super().__init__(
            "unterminated comment",
            code=CxxErrorCodes.UNTERMINATED_COMMENT,
            span=span,
            hint="Add */ to close the comment",
            **kwargs,
        )


class InvalidEscapeError(LexError):
    """Unknown backslash escape inside a literal."""

    def __init__(self, sequence: str, span: Optional[Span] = None, **kwargs: Any) -> None:
        super().__init__(
            f"unknown escape sequence '{sequence}'",
            code=CxxErrorCodes.INVALID_ESCAPE,
            span=span,
            **kwargs,
        )


class InvalidNumberError(LexError):
    """Malformed numeric literal, e.g. ``12abc`` or ``0x``."""

    def __init__(self, text: str, span: Optional[Span] = None, **kwargs: Any) -> None:
        super().__init__(
            f"invalid numeric literal {text!r}",
            code=CxxErrorCodes.INVALID_NUMBER,
            span=span,
            **kwargs,
        )


# ───────────────────────────────────────────────────────────────────────────────
# SYNTAX ERRORS
# ───────────────────────────────────────────────────────────────────────────────

class SyntaxError(FrontendError):  # noqa: A001 - mirrors the taxonomy name
    """Structural error found by the parser."""

    default_code = CxxErrorCodes.UNEXPECTED_TOKEN

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        span: Optional[Span] = None,
        expected: Optional[Sequence[str]] = None,
        found: str = "",
        opened_at: Optional[Span] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, code=code, span=span, **kwargs)
        self.expected = list(expected) if expected else []
        self.found = found
        # Opening bracket of an unterminated construct, reported as a note
        self.opened_at = opened_at

        # Auto-generate hint if expected tokens provided
        if self.expected and not self.diagnostic.hint:
            if len(self.expected) == 1:
                self.diagnostic.hint = f"Expected {self.expected[0]}"
            elif len(self.expected) <= 3:
                self.diagnostic.hint = f"Expected one of: {', '.join(self.expected)}"
            else:
                self.diagnostic.hint = f"Expected one of: {', '.join(self.expected[:3])}, ..."


# ═══════════════════════════════════════════════════════════════════════════════
# DIAGNOSTIC COLLECTION
# ═══════════════════════════════════════════════════════════════════════════════

class Diagnostics:
    """
    Ordered, growable list of diagnostics for one translation unit.

    The lexer and parser write; consumers read.  No I/O happens here --
    :meth:`format` returns lines and leaves printing to the caller.
    """

    def __init__(self, max_errors: Optional[int] = None) -> None:
        self._items: List[Diagnostic] = []
        self._error_count = 0
        self._limit_hit = False
        self.max_errors = max_errors

    # -- recording ------------------------------------------------------------

    def add(self, diagnostic: Diagnostic) -> Diagnostic:
        """Append *diagnostic*; raise once the error limit is exceeded."""
        self._items.append(diagnostic)
        if diagnostic.is_error:
            self._error_count += 1
            if (
                self.max_errors is not None
                and not self._limit_hit
                and self._error_count > self.max_errors
            ):
                self._limit_hit = True
                raise TooManyErrorsError(
                    f"too many errors emitted ({self.max_errors} allowed), stopping now",
                    span=diagnostic.span,
                )
        return diagnostic

    def report(self, error: FrontendError, cursor: int = -1) -> Diagnostic:
        """Record a caught exception."""
        diag = error.diagnostic
        diag.cursor = cursor
        return self.add(diag)

    def error(
        self,
        code: ErrorCode,
        span: Span,
        message: str,
        hint: str = "",
        cursor: int = -1,
    ) -> Diagnostic:
        return self.add(Diagnostic(code, message, span, ErrorSeverity.ERROR, hint, cursor=cursor))

    def warning(self, code: ErrorCode, span: Span, message: str, hint: str = "") -> Diagnostic:
        return self.add(Diagnostic(code, message, span, ErrorSeverity.WARNING, hint))

    def note(self, code: ErrorCode, span: Span, message: str, cursor: int = -1) -> Diagnostic:
        return self.add(Diagnostic(code, message, span, ErrorSeverity.NOTE, cursor=cursor))

    def mark(self) -> int:
        return len(self._items)

    def rollback(self, mark: int) -> None:
        """Drop parser diagnostics recorded after *mark*.

        Lexical and directive diagnostics are kept: the tokens that produced
        them have already been buffered and will not be scanned again.
        """
        kept = self._items[:mark] + [
            d for d in self._items[mark:] if d.code.phase is ErrorPhase.LEXICAL
        ]
        self._items = kept
        self._error_count = sum(1 for d in kept if d.is_error)

    # -- queries --------------------------------------------------------------

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __getitem__(self, index: int) -> Diagnostic:
        return self._items[index]

    def __bool__(self) -> bool:
        return bool(self._items)

    @property
    def error_count(self) -> int:
        return self._error_count

    def has_errors(self) -> bool:
        return self._error_count > 0

    def errors(self) -> List[Diagnostic]:
        return [d for d in self._items if d.is_error]

    # -- output ---------------------------------------------------------------

    def format(self, buffer: Optional["SourceBuffer"] = None, filename: str = "") -> List[str]:
        """One GCC-style entry per diagnostic, in detection order."""
        return [d.to_gcc_format(buffer, filename) for d in self._items]

    def to_json(self, buffer: Optional["SourceBuffer"] = None, indent: Optional[int] = 2) -> str:
        return json.dumps([d.to_json(buffer) for d in self._items], indent=indent)

    def __repr__(self) -> str:
        return f"Diagnostics({len(self._items)} entries, {self._error_count} errors)"
