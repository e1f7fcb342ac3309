# cxxfront/lexer.py
"""
C/C++ lexer.

Produces a lazy, finite, restartable sequence of :class:`~cxxfront.tokens.Token`
objects terminated by a single ``EOF`` token.  Each call to
:meth:`Lexer.tokens` starts a fresh scan of the same buffer, so lexing twice
yields identical streams.

Scanning rules
--------------
* Whitespace is skipped; newlines are tracked so that a ``#`` appearing as the
  first non-whitespace character of a line starts a *directive line*.
* ``//`` and ``/* */`` comments are skipped, or emitted as ``COMMENT`` tokens
  when ``keep_comments`` is set.  Block comments do not nest.
* Identifiers are promoted to keywords from the table for the language mode.
* Numeric, character and string literals are decoded into ``Token.value``.
  Adjacent string literals are *not* merged here.
* Punctuators are matched greedily, longest first.
* A directive line runs to the end of the logical line (``\\``-newline joins
  lines) and becomes one ``DIRECTIVE`` token.  No macro expansion happens.

Problems are raised as :class:`~cxxfront.errors.LexError` subclasses, recorded
in the attached :class:`~cxxfront.errors.Diagnostics`, and scanning resumes.
"""

from __future__ import annotations

import logging
import re
from typing import Iterator, List, Optional, Tuple

from cxxfront.errors import (
    Diagnostics,
    InvalidEscapeError,
    InvalidNumberError,
    LexError,
    StrayCharacterError,
    UnterminatedCommentError,
    UnterminatedLiteralError,
    CxxErrorCodes,
)
from cxxfront.source import SourceBuffer, Span
from cxxfront.tokens import (
    LanguageMode,
    Token,
    TokenKind,
    keywords_for,
    punctuators_for,
)

logger = logging.getLogger(__name__)

__all__ = ["Lexer", "detect_mode", "tokenize"]


_IDENT_RE = re.compile(rb"[A-Za-z_][A-Za-z0-9_]*")
_IDENT_TAIL_RE = re.compile(rb"[A-Za-z0-9_.]+")
_HEX_RE = re.compile(rb"0[xX]([0-9A-Fa-f]*)")
_BIN_RE = re.compile(rb"0[bB]([01]*)")
_FLOAT_RE = re.compile(
    rb"(?:[0-9]+\.[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?|[0-9]+[eE][+-]?[0-9]+"
)
_DEC_RE = re.compile(rb"[0-9]+")
_INT_SUFFIX_RE = re.compile(rb"(?:[uU](?:ll|LL|l|L)?|(?:ll|LL|l|L)[uU]?)")
_FLOAT_SUFFIX_RE = re.compile(rb"[fFlL]")
_HEX_DIGITS_RE = re.compile(rb"[0-9A-Fa-f]+")
_OCT_DIGITS_RE = re.compile(rb"[0-7]{1,3}")

_LITERAL_PREFIXES = (b"u8", b"L", b"u", b"U")

_SIMPLE_ESCAPES = {
    ord("n"): "\n",
    ord("t"): "\t",
    ord("r"): "\r",
    ord("\\"): "\\",
    ord("'"): "'",
    ord('"'): '"',
    ord("a"): "\a",
    ord("b"): "\b",
    ord("f"): "\f",
    ord("v"): "\v",
    ord("?"): "?",
}

_NL = 0x0A
_CR = 0x0D
_BACKSLASH = 0x5C
_HORIZONTAL_WS = frozenset(b" \t\r\f\v")


def _utf8_width(lead: int) -> int:
    if lead >= 0xF0:
        return 4
    if lead >= 0xE0:
        return 3
    if lead >= 0xC0:
        return 2
    return 1


class Lexer:
    """Tokenizer over one :class:`SourceBuffer`.

    ``mode`` must be resolved (``C`` or ``CPP``); ``AUTO`` is treated as
    ``CPP`` because its tables are a superset.
    """

    def __init__(
        self,
        buffer: SourceBuffer,
        mode: LanguageMode = LanguageMode.CPP,
        keep_comments: bool = False,
        diagnostics: Optional[Diagnostics] = None,
    ) -> None:
        self.buffer = buffer
        self.mode = LanguageMode.CPP if mode is LanguageMode.AUTO else mode
        self.keep_comments = keep_comments
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics()
        self._keywords = keywords_for(self.mode)
        self._punctuators = tuple(p.encode("ascii") for p in punctuators_for(self.mode))

    def __iter__(self) -> Iterator[Token]:
        return self.tokens()

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    def tokens(self) -> Iterator[Token]:
        """Scan the buffer from the start, yielding tokens up to and including EOF."""
        data = self.buffer.data
        n = len(data)
        pos = 0
        at_line_start = True
        count = 0

        while pos < n:
            c = data[pos]

            if c == _NL:
                at_line_start = True
                pos += 1
                continue
            if c in _HORIZONTAL_WS:
                pos += 1
                continue
            if c == _BACKSLASH and self._splice_length(data, pos):
                pos += self._splice_length(data, pos)
                continue

            if c == 0x2F and pos + 1 < n and data[pos + 1] in (0x2F, 0x2A):  # '/'
                tok, pos = self._scan_comment(data, pos)
                if tok is not None and self.keep_comments:
                    count += 1
                    yield tok
                continue

            if c == 0x23 and at_line_start:  # '#'
                tok, pos = self._scan_directive(data, pos)
                at_line_start = False
                count += 1
                yield tok
                continue

            at_line_start = False
            try:
                tok, pos = self._scan_token(data, pos)
            except StrayCharacterError as err:
                self.diagnostics.report(err)
                pos = err.span.end
                continue
            count += 1
            yield tok

        logger.debug("lexed %d tokens from %s", count, self.buffer.path or "<input>")
        yield Token(TokenKind.EOF, Span(n, n), "")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _splice_length(data: bytes, pos: int) -> int:
        """Length of a backslash-newline at *pos*, or 0."""
        if data.startswith(b"\\\n", pos):
            return 2
        if data.startswith(b"\\\r\n", pos):
            return 3
        return 0

    def _report(self, err: LexError) -> None:
        self.diagnostics.report(err)

    def _text(self, start: int, end: int) -> str:
        return self.buffer.data[start:end].decode("utf-8", "surrogateescape")

    def _scan_comment(self, data: bytes, pos: int) -> Tuple[Optional[Token], int]:
        if data[pos + 1] == 0x2F:  # '//'
            end = data.find(b"\n", pos)
            if end == -1:
                end = len(data)
            if end > pos and data[end - 1] == _CR:
                end -= 1
            return Token(TokenKind.COMMENT, Span(pos, end), self._text(pos, end)), end

        close = data.find(b"*/", pos + 2)
        if close == -1:
            end = len(data)
            self._report(UnterminatedCommentError(span=Span(pos, pos + 2)))
            return Token(TokenKind.COMMENT, Span(pos, end), self._text(pos, end)), end
        end = close + 2
        return Token(TokenKind.COMMENT, Span(pos, end), self._text(pos, end)), end

    def _scan_token(self, data: bytes, pos: int) -> Tuple[Token, int]:
        c = data[pos]

        m = _IDENT_RE.match(data, pos)
        if m:
            word = m.group()
            end = m.end()
            if word in _LITERAL_PREFIXES and end < len(data) and data[end] in (0x22, 0x27):
                return self._scan_quoted(data, pos, end)
            text = word.decode("ascii")
            kind = TokenKind.KEYWORD if text in self._keywords else TokenKind.IDENTIFIER
            return Token(kind, Span(pos, end), text), end

        if 0x30 <= c <= 0x39 or (c == 0x2E and pos + 1 < len(data) and 0x30 <= data[pos + 1] <= 0x39):
            return self._scan_number(data, pos)

        if c in (0x22, 0x27):  # '"' or "'"
            return self._scan_quoted(data, pos, pos)

        for punct in self._punctuators:
            if data.startswith(punct, pos):
                end = pos + len(punct)
                return Token(TokenKind.PUNCTUATOR, Span(pos, end), punct.decode("ascii")), end

        width = _utf8_width(c)
        end = min(pos + width, len(data))
        raise StrayCharacterError(self._text(pos, end), span=Span(pos, end))

    # ------------------------------------------------------------------
    # Numbers
    # ------------------------------------------------------------------

    def _scan_number(self, data: bytes, pos: int) -> Tuple[Token, int]:
        value: object = None
        kind = TokenKind.INTEGER
        valid = True

        hex_m = _HEX_RE.match(data, pos)
        bin_m = _BIN_RE.match(data, pos)
        float_m = _FLOAT_RE.match(data, pos)
        if hex_m:
            end = hex_m.end()
            digits = hex_m.group(1)
            if digits:
                value = int(digits, 16)
            else:
                valid = False
        elif bin_m:
            end = bin_m.end()
            digits = bin_m.group(1)
            if digits:
                value = int(digits, 2)
            else:
                valid = False
        elif float_m:
            kind = TokenKind.FLOATING
            end = float_m.end()
            value = float(float_m.group())
            suffix = _FLOAT_SUFFIX_RE.match(data, end)
            if suffix:
                end = suffix.end()
        else:
            dec_m = _DEC_RE.match(data, pos)
            end = dec_m.end()
            digits = dec_m.group()
            if len(digits) > 1 and digits.startswith(b"0"):
                if all(0x30 <= d <= 0x37 for d in digits):
                    value = int(digits, 8)
                else:
                    valid = False
            else:
                value = int(digits)

        if kind is TokenKind.INTEGER:
            suffix = _INT_SUFFIX_RE.match(data, end)
            if suffix:
                end = suffix.end()

        tail = _IDENT_TAIL_RE.match(data, end)
        if tail:
            end = tail.end()
            valid = False

        text = self._text(pos, end)
        if not valid:
            self._report(InvalidNumberError(text, span=Span(pos, end)))
            value = None
        return Token(kind, Span(pos, end), text, value), end

    # ------------------------------------------------------------------
    # Character and string literals
    # ------------------------------------------------------------------

    def _scan_quoted(self, data: bytes, start: int, quote_pos: int) -> Tuple[Token, int]:
        """Scan a literal whose opening quote is at *quote_pos*.

        ``start`` may precede ``quote_pos`` by an encoding prefix.
        """
        quote = data[quote_pos]
        n = len(data)
        i = quote_pos + 1
        pieces: List[str] = []
        run = i
        terminated = False

        while i < n:
            c = data[i]
            if c == quote:
                pieces.append(data[run:i].decode("utf-8", "surrogateescape"))
                i += 1
                terminated = True
                break
            if c == _NL:
                break
            if c == _BACKSLASH:
                pieces.append(data[run:i].decode("utf-8", "surrogateescape"))
                splice = self._splice_length(data, i)
                if splice:
                    i += splice
                else:
                    decoded, i = self._decode_escape(data, i)
                    pieces.append(decoded)
                run = i
                continue
            i += 1

        end = i
        if not terminated:
            pieces.append(data[run:end].decode("utf-8", "surrogateescape"))
            if end > start and data[end - 1] == _CR:
                end -= 1
            self._report(UnterminatedLiteralError(chr(quote), span=Span(start, end)))

        value = "".join(pieces)
        kind = TokenKind.STRING if quote == 0x22 else TokenKind.CHARACTER
        if kind is TokenKind.CHARACTER and terminated and not value:
            self.diagnostics.error(CxxErrorCodes.EMPTY_CHAR, Span(start, end), "empty character constant")
        return Token(kind, Span(start, end), self._text(start, end), value), end

    def _decode_escape(self, data: bytes, i: int) -> Tuple[str, int]:
        """Decode the escape sequence whose backslash is at *i*."""
        n = len(data)
        if i + 1 >= n:
            self._report(InvalidEscapeError("\\", span=Span(i, i + 1)))
            return "\\", i + 1
        c = data[i + 1]
        if c in _SIMPLE_ESCAPES:
            return _SIMPLE_ESCAPES[c], i + 2
        if 0x30 <= c <= 0x37:
            m = _OCT_DIGITS_RE.match(data, i + 1)
            return chr(int(m.group(), 8)), m.end()
        if c in (ord("x"), ord("u"), ord("U")):
            m = _HEX_DIGITS_RE.match(data, i + 2)
            if c == ord("u"):
                need = 4
            elif c == ord("U"):
                need = 8
            else:
                need = 0
            if m and (need == 0 or len(m.group()) >= need):
                digits = m.group() if need == 0 else m.group()[:need]
                end = i + 2 + len(digits)
                code = int(digits, 16)
                if code > 0x10FFFF:
                    self._report(InvalidEscapeError(self._text(i, end), span=Span(i, end)))
                    return "�", end
                return chr(code), end
        width = _utf8_width(c)
        end = min(i + 1 + width, n)
        seq = self._text(i, end)
        self._report(InvalidEscapeError(seq, span=Span(i, end)))
        return seq[1:], end

    # ------------------------------------------------------------------
    # Directive lines
    # ------------------------------------------------------------------

    def _scan_directive(self, data: bytes, pos: int) -> Tuple[Token, int]:
        """Capture ``#...`` up to the end of the logical line.

        ``Token.text`` is the raw slice; ``Token.value`` is the payload after
        ``#`` with comments removed and continuations joined.
        """
        n = len(data)
        i = pos + 1
        clean = bytearray()

        while i < n:
            c = data[i]
            if c == _NL:
                break
            if c == _BACKSLASH:
                splice = self._splice_length(data, i)
                if splice:
                    clean += b" "
                    i += splice
                    continue
            if c == 0x2F and i + 1 < n and data[i + 1] == 0x2F:
                nl = data.find(b"\n", i)
                i = n if nl == -1 else nl
                break
            if c == 0x2F and i + 1 < n and data[i + 1] == 0x2A:
                close = data.find(b"*/", i + 2)
                if close == -1:
                    self._report(UnterminatedCommentError(span=Span(i, i + 2)))
                    i = n
                    break
                clean += b" "
                i = close + 2
                continue
            if c in (0x22, 0x27):
                j = i + 1
                while j < n and data[j] != c and data[j] != _NL:
                    j += 2 if data[j] == _BACKSLASH else 1
                j = min(j + 1, n) if j < n and data[j] == c else j
                clean += data[i:j]
                i = j
                continue
            clean.append(c)
            i += 1

        end = i
        while end > pos + 1 and data[end - 1] in _HORIZONTAL_WS:
            end -= 1
        payload = bytes(clean).decode("utf-8", "surrogateescape").strip()
        return Token(TokenKind.DIRECTIVE, Span(pos, end), self._text(pos, end), payload), i


def tokenize(
    source: SourceBuffer,
    mode: LanguageMode = LanguageMode.CPP,
    keep_comments: bool = False,
    diagnostics: Optional[Diagnostics] = None,
) -> List[Token]:
    """Convenience wrapper returning the whole stream as a list."""
    return list(Lexer(source, mode, keep_comments, diagnostics).tokens())


def detect_mode(buffer: SourceBuffer, window: int = 1000) -> LanguageMode:
    """Resolve ``AUTO``: CPP if a C++-only marker occurs in the first *window* tokens.

    Markers are the keywords ``class``, ``namespace`` and ``template``, the
    ``::`` punctuator, and ``public`` followed by ``:``.
    """
    previous: Optional[Token] = None
    scratch = Diagnostics()
    for index, tok in enumerate(Lexer(buffer, LanguageMode.CPP, diagnostics=scratch).tokens()):
        if index >= window or tok.is_eof:
            break
        if tok.is_keyword("class", "namespace", "template") or tok.is_punct("::"):
            logger.debug("mode detection: %r at token %d selects CPP", tok.text, index)
            return LanguageMode.CPP
        if previous is not None and previous.is_keyword("public") and tok.is_punct(":"):
            logger.debug("mode detection: 'public:' at token %d selects CPP", index)
            return LanguageMode.CPP
        previous = tok
    logger.debug("mode detection: no C++ marker in first %d tokens, using C", window)
    return LanguageMode.C
