"""cxxfront — lexer and parser front-end for C and C++.

Turns one source file into a typed, span-annotated syntax tree plus a list
of diagnostics.  Preprocessor directives are recorded in place, never
expanded; syntax errors are recovered from so a best-effort tree is always
produced.

Submodules
----------
source
    ``SourceBuffer`` and ``Span`` (half-open byte ranges, 1-based locate).
tokens / lexer
    Token kinds, keyword tables, the ``Lexer`` and language-mode detection.
directives
    Preprocessor-aware token filter; directive payloads are parsed with a
    Parsimonious PEG grammar.
ast / parser
    Frozen dataclass AST and the recursive-descent ``Parser``.
errors
    ``CXX-NNNN`` error codes, ``Diagnostics`` and the exception taxonomy.
visitor / serialize / tags
    Traversal helpers, S-expression/JSON dumps, Vi tags.
main
    CLI entry-point with subcommands ``parse``, ``tokens`` and ``tags``.

Usage
-----
Command-line::

    python -m cxxfront parse hello.c --dump sexp

Programmatic::

    from cxxfront import parse_source

    result = parse_source("int add(int x, int y) { return x + y; }")
    fn = result.unit.items[0]
    assert fn.name == "add" and result.ok
"""

from __future__ import annotations

__version__: str = "0.1.0"

from cxxfront.config import FrontendConfig
from cxxfront.errors import Diagnostic, Diagnostics, FrontendError, IoError
from cxxfront.parser import ParseResult, parse_file, parse_source
from cxxfront.source import SourceBuffer, Span
from cxxfront.tokens import LanguageMode

__all__: list[str] = [
    "__version__",
    "Diagnostic",
    "Diagnostics",
    "FrontendConfig",
    "FrontendError",
    "IoError",
    "LanguageMode",
    "ParseResult",
    "SourceBuffer",
    "Span",
    "parse_file",
    "parse_source",
]
