# cxxfront/tokens.py
"""Token kinds, keyword tables and punctuators for the C/C++ lexer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, FrozenSet, Tuple

from cxxfront.source import Span

__all__ = [
    "LanguageMode",
    "TokenKind",
    "Token",
    "C_KEYWORDS",
    "CPP_KEYWORDS",
    "PUNCTUATORS",
    "keywords_for",
    "punctuators_for",
]


class LanguageMode(Enum):
    """Advisory input language."""

    C = "c"
    CPP = "cpp"
    AUTO = "auto"

    @classmethod
    def from_name(cls, name: str) -> "LanguageMode":
        key = name.strip().lower()
        if key in ("c++", "cxx", "cc"):
            key = "cpp"
        try:
            return cls(key)
        except ValueError:
            raise ValueError(f"unknown language mode {name!r} (expected c, cpp or auto)") from None


class TokenKind(Enum):
    IDENTIFIER = "identifier"
    INTEGER = "integer-literal"
    FLOATING = "floating-literal"
    CHARACTER = "character-literal"
    STRING = "string-literal"
    PUNCTUATOR = "punctuator"
    KEYWORD = "keyword"
    DIRECTIVE = "directive"
    COMMENT = "comment"
    EOF = "end-of-file"


@dataclass(frozen=True, slots=True)
class Token:
    """One lexeme.

    ``text`` is the spelling as written.  ``value`` holds the decoded payload:
    ``int`` for integers, ``float`` for floating literals, ``str`` for string
    and character literals, the cleaned directive line (without ``#``) for
    directives, and ``None`` otherwise.
    """

    kind: TokenKind
    span: Span
    text: str
    value: Any = None

    def is_punct(self, *spellings: str) -> bool:
        return self.kind is TokenKind.PUNCTUATOR and self.text in spellings

    def is_keyword(self, *spellings: str) -> bool:
        return self.kind is TokenKind.KEYWORD and self.text in spellings

    @property
    def is_eof(self) -> bool:
        return self.kind is TokenKind.EOF

    def describe(self) -> str:
        """Short human form used in diagnostics."""
        if self.kind is TokenKind.EOF:
            return "end of file"
        if self.kind is TokenKind.IDENTIFIER:
            return f"identifier '{self.text}'"
        return f"'{self.text}'"

    def __repr__(self) -> str:
        return f"Token({self.kind.name}, {self.text!r}, {self.span})"


# ---------------------------------------------------------------------------
# Keyword tables
# ---------------------------------------------------------------------------

C_KEYWORDS: FrozenSet[str] = frozenset({
    "int", "char", "float", "double", "short", "long", "unsigned", "signed",
    "void", "_Bool", "static", "extern", "register", "inline", "const",
    "volatile", "struct", "union", "enum", "typedef", "return", "if", "else",
    "for", "while", "do", "switch", "case", "default", "break", "continue",
    "sizeof",
})

CPP_ONLY_KEYWORDS: FrozenSet[str] = frozenset({
    "class", "namespace", "using", "public", "private", "protected", "virtual",
    "override", "template", "typename", "operator", "this", "new", "delete",
    "true", "false", "nullptr", "bool", "explicit", "friend",
})

CPP_KEYWORDS: FrozenSet[str] = C_KEYWORDS | CPP_ONLY_KEYWORDS

#: Builtin type-specifier keywords (combined into e.g. ``unsigned long long``).
BUILTIN_TYPE_KEYWORDS: FrozenSet[str] = frozenset({
    "int", "char", "float", "double", "short", "long", "unsigned", "signed",
    "void", "_Bool", "bool",
})

STORAGE_KEYWORDS: FrozenSet[str] = frozenset({"static", "extern", "register"})

FUNCTION_SPECIFIERS: FrozenSet[str] = frozenset({"inline", "virtual", "explicit", "friend"})

CV_KEYWORDS: FrozenSet[str] = frozenset({"const", "volatile"})

TAG_KEYWORDS: FrozenSet[str] = frozenset({"struct", "union", "enum", "class"})

ACCESS_KEYWORDS: FrozenSet[str] = frozenset({"public", "private", "protected"})


# ---------------------------------------------------------------------------
# Punctuators, longest first so a linear scan is greedy
# ---------------------------------------------------------------------------

PUNCTUATORS: Tuple[str, ...] = (
    "<<=", ">>=", "...",
    "->", "::", "<=", ">=", "==", "!=", "&&", "||", "+=", "-=", "*=", "/=",
    "%=", "&=", "|=", "^=", "<<", ">>", "++", "--", "##",
    "(", ")", "{", "}", "[", "]", ";", ",", ".", "<", ">", "!", "=", "+",
    "-", "*", "/", "%", "&", "|", "^", "~", "?", ":", "#",
)

_C_PUNCTUATORS: Tuple[str, ...] = tuple(p for p in PUNCTUATORS if p != "::")


def keywords_for(mode: LanguageMode) -> FrozenSet[str]:
    """Keyword table for a resolved language mode.

    C code may use C++ keywords such as ``new`` or ``class`` as ordinary
    names, so they are only reserved in C++ mode.
    """
    if mode is LanguageMode.C:
        return C_KEYWORDS
    return CPP_KEYWORDS


def punctuators_for(mode: LanguageMode) -> Tuple[str, ...]:
    if mode is LanguageMode.C:
        return _C_PUNCTUATORS
    return PUNCTUATORS
