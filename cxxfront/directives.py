# cxxfront/directives.py
"""
Preprocessor-aware token filter.

Ordinary tokens pass straight through.  Each ``DIRECTIVE`` token is parsed
into a structured item with a small Parsimonious PEG grammar and recorded
together with its *anchor*: the index of the next ordinary token.  The parser
drains pending items whose anchor it has reached into whatever item, member or
statement list it is building, so directives keep their source position.

Nothing is expanded or evaluated; conditionals stay a flat sequence.
"""

from __future__ import annotations

import logging
from typing import Iterable, Iterator, List, Optional, Tuple

from parsimonious.exceptions import ParseError, VisitationError
from parsimonious.grammar import Grammar
from parsimonious.nodes import NodeVisitor

from cxxfront.ast import (
    ConditionalDirective,
    DefineDirective,
    DirectiveItem,
    IncludeDirective,
    OtherDirective,
)
from cxxfront.errors import CxxErrorCodes, Diagnostics
from cxxfront.source import Span
from cxxfront.tokens import Token, TokenKind

logger = logging.getLogger(__name__)

__all__ = ["DIRECTIVE_GRAMMAR", "DirectiveFilter", "parse_directive"]


# ═══════════════════════════════════════════════════════════════════
#  DIRECTIVE GRAMMAR (Parsimonious PEG)
#
#  Input is the cleaned payload after '#': comments removed, line
#  continuations joined, surrounding whitespace stripped.
# ═══════════════════════════════════════════════════════════════════

DIRECTIVE_GRAMMAR = Grammar(r'''
    directive       = include / define / conditional / other

    include         = "include" word_end ws? header_name rest
    header_name     = system_header / quoted_header / macro_header
    system_header   = "<" ~r"[^>]+" ">"
    quoted_header   = '"' ~r'[^"]+' '"'
    macro_header    = identifier

    define          = "define" ws identifier params? rest
    params          = "(" ws? param_list? ws? ")"
    param_list      = param (ws? "," ws? param)*
    param           = "..." / ~r"[A-Za-z_][A-Za-z0-9_]*(\.\.\.)?"

    conditional     = cond_keyword word_end rest
    cond_keyword    = "ifndef" / "ifdef" / "if" / "elif" / "else" / "endif"

    other           = !known identifier rest
    known           = ("include" / "define" / cond_keyword) word_end

    identifier      = ~r"[A-Za-z_][A-Za-z0-9_]*"
    word_end        = !~r"[A-Za-z0-9_]"
    rest            = ~r"[\s\S]*"
    ws              = ~r"[ \t]+"
''')


class _DirectiveBuilder(NodeVisitor):
    """Turns a directive parse tree into an AST item."""

    def __init__(self, span: Span) -> None:
        self.span = span

    def generic_visit(self, node, visited_children):
        return visited_children or node

    def visit_directive(self, node, visited_children):
        return visited_children[0]

    # -- include --------------------------------------------------------

    def visit_include(self, node, visited_children):
        _, _, _, (path, is_system), _ = visited_children
        return IncludeDirective(self.span, path, is_system)

    def visit_header_name(self, node, visited_children):
        return visited_children[0]

    def visit_system_header(self, node, visited_children):
        return node.children[1].text, True

    def visit_quoted_header(self, node, visited_children):
        return node.children[1].text, False

    def visit_macro_header(self, node, visited_children):
        return node.text, False

    # -- define ---------------------------------------------------------

    def visit_define(self, node, visited_children):
        _, _, name, params, replacement = visited_children
        if isinstance(params, list):
            params = params[0]
        else:
            params = None
        return DefineDirective(self.span, name, params, replacement)

    def visit_params(self, node, visited_children):
        inner = node.text[1:-1]
        return tuple(p.strip() for p in inner.split(",") if p.strip())

    # -- conditionals ---------------------------------------------------

    def visit_conditional(self, node, visited_children):
        kind, _, condition = visited_children
        return ConditionalDirective(self.span, kind, condition or None)

    def visit_cond_keyword(self, node, visited_children):
        return node.text

    # -- everything else ------------------------------------------------

    def visit_other(self, node, visited_children):
        _, name, text = visited_children
        return OtherDirective(self.span, name, text)

    def visit_identifier(self, node, visited_children):
        return node.text

    def visit_rest(self, node, visited_children):
        return node.text.strip()


def parse_directive(token: Token, diagnostics: Optional[Diagnostics] = None) -> DirectiveItem:
    """Build the item for one ``DIRECTIVE`` token.

    A payload the grammar rejects (``#include`` without a header, ``#define``
    without a name) is recorded as a warning and kept as :class:`OtherDirective`.
    """
    payload = token.value if token.value is not None else token.text.lstrip("#").strip()
    if not payload:
        return OtherDirective(token.span, "", "")
    try:
        tree = DIRECTIVE_GRAMMAR.parse(payload)
        return _DirectiveBuilder(token.span).visit(tree)
    except (ParseError, VisitationError) as exc:
        name, _, text = payload.partition(" ")
        logger.debug("malformed directive %r: %s", payload, exc)
        if diagnostics is not None:
            diagnostics.warning(
                CxxErrorCodes.MALFORMED_DIRECTIVE,
                token.span,
                f"malformed #{name} directive",
                hint="The line is kept as an uninterpreted directive",
            )
        return OtherDirective(token.span, name, text.strip())


class DirectiveFilter:
    """Token stream minus directives; directives are queued as items.

    Comment tokens (present only when the lexer keeps them) are set aside in
    :attr:`comments` and do not count as ordinary tokens.

    The queue is read through a cursor, so a caller that backtracks can
    :meth:`rewind` to a :meth:`checkpoint` and take the same items again.

    Usage::

        filt = DirectiveFilter(lexer.tokens(), diagnostics)
        for index, tok in enumerate(filt):
            ...
            items = filt.take(index)   # directives appearing before token `index`
    """

    def __init__(self, tokens: Iterable[Token], diagnostics: Optional[Diagnostics] = None) -> None:
        self._source = iter(tokens)
        self.diagnostics = diagnostics
        self._queue: List[Tuple[int, DirectiveItem]] = []
        self._next = 0
        self._emitted = 0
        self.directive_count = 0
        self.comments: List[Token] = []

    def __iter__(self) -> Iterator[Token]:
        for tok in self._source:
            if tok.kind is TokenKind.COMMENT:
                self.comments.append(tok)
                continue
            if tok.kind is TokenKind.DIRECTIVE:
                item = parse_directive(tok, self.diagnostics)
                self._queue.append((self._emitted, item))
                self.directive_count += 1
                continue
            self._emitted += 1
            yield tok

    def take(self, position: int) -> List[DirectiveItem]:
        """Pop every pending item anchored at or before token *position*."""
        start = self._next
        while self._next < len(self._queue) and self._queue[self._next][0] <= position:
            self._next += 1
        return [item for _, item in self._queue[start:self._next]]

    def take_all(self) -> List[DirectiveItem]:
        out = [item for _, item in self._queue[self._next:]]
        self._next = len(self._queue)
        return out

    def checkpoint(self) -> int:
        return self._next

    def rewind(self, checkpoint: int) -> None:
        self._next = checkpoint

    @property
    def has_pending(self) -> bool:
        return self._next < len(self._queue)
