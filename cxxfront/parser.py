"""cxxfront/parser.py – recursive-descent parser for C and C++.

Consumes the directive-filtered token stream and builds the tree defined
in :mod:`cxxfront.ast`.

Design principles
-----------------
* **Recursive descent** for declarations and statements, **precedence
  climbing** for binary expressions.
* **Lazy token buffer** – tokens are pulled from the lexer on demand, so
  lookahead is cheap and bounded.  A failed speculative parse is rolled
  back completely, including any diagnostics and type names it added.
* **Inside-out declarators** – a declarator is parsed into a function that
  wraps the base type, which gives ``void (*f)(char *)`` its proper
  ``Pointer(Function(void, [Pointer(char)]))`` shape.
* **Recover, don't stop** – a ``SyntaxError`` is raised at the offending
  token, caught by the nearest item/member/statement list, recorded, and
  parsing resumes after the next ``;`` or balanced ``}``.  A diagnostic is
  only recorded if the cursor moved past the previous error.
* **Template ``>>``** – inside template arguments a ``>>`` token is split
  into two ``>`` on demand.

Public API
----------
``parse_source(source, path=None, config=None) -> ParseResult``
    Parse text, bytes or a :class:`SourceBuffer`.

``parse_file(path, config=None) -> ParseResult``
    Read and parse a file; raises :class:`IoError` if it cannot be read.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Callable, List, Optional, Set, Tuple, Union

from cxxfront.ast import (
    Access,
    ArrayType,
    AssignExpr,
    AssignOp,
    BaseSpecifier,
    BinaryExpr,
    BinOp,
    BoolLiteral,
    BreakStmt,
    CallExpr,
    CaseStmt,
    CastExpr,
    CharLiteral,
    ClassDecl,
    CompoundStmt,
    ConditionalExpr,
    ContinueStmt,
    DeclStmt,
    DeleteExpr,
    DoWhileStmt,
    EnumDecl,
    Enumerator,
    ExprStmt,
    FieldDecl,
    FloatLiteral,
    ForStmt,
    FunctionDecl,
    FunctionType,
    Identifier,
    IfStmt,
    IndexExpr,
    InitList,
    IntLiteral,
    LinkageDecl,
    MemberExpr,
    MemberInit,
    NamedType,
    NamespaceDecl,
    NewExpr,
    Node,
    NullptrLiteral,
    NullStmt,
    Param,
    ParenExpr,
    PointerType,
    QualifiedType,
    ReferenceType,
    ReturnStmt,
    ScopedType,
    SizeofExpr,
    StorageClass,
    StringLiteral,
    StructDecl,
    SwitchStmt,
    TemplateDecl,
    TemplateParam,
    TemplateType,
    ThisExpr,
    TranslationUnit,
    TypedefDecl,
    TypeNode,
    UnaryExpr,
    UnaryOp,
    UsingDirective,
    VarDecl,
    WhileStmt,
    type_name,
)
from cxxfront.config import FrontendConfig
from cxxfront.consteval import EnumCounter
from cxxfront.directives import DirectiveFilter
from cxxfront.errors import (
    CxxErrorCodes,
    Diagnostics,
    ErrorCode,
    InternalError,
    SyntaxError,
    TooManyErrorsError,
)
from cxxfront.lexer import Lexer, detect_mode
from cxxfront.source import SourceBuffer, Span
from cxxfront.tokens import (
    ACCESS_KEYWORDS,
    BUILTIN_TYPE_KEYWORDS,
    CV_KEYWORDS,
    FUNCTION_SPECIFIERS,
    STORAGE_KEYWORDS,
    TAG_KEYWORDS,
    LanguageMode,
    Token,
    TokenKind,
)

logger = logging.getLogger(__name__)

__all__ = ["Parser", "ParseResult", "parse_source", "parse_file", "resolve_mode"]


# ═══════════════════════════════════════════════════════════════════════
#  Tables
# ═══════════════════════════════════════════════════════════════════════

_DECL_START_KEYWORDS = (
    BUILTIN_TYPE_KEYWORDS | CV_KEYWORDS | STORAGE_KEYWORDS | FUNCTION_SPECIFIERS
    | TAG_KEYWORDS | frozenset({"typedef", "typename"})
)

_TYPE_START_KEYWORDS = BUILTIN_TYPE_KEYWORDS | CV_KEYWORDS | TAG_KEYWORDS | frozenset({"typename"})

_OPENERS = frozenset({"{", "(", "[", "<"})

#: Library typedef names treated as types before any declaration is seen.
_WELL_KNOWN_TYPES = frozenset({
    "size_t", "ssize_t", "ptrdiff_t", "intptr_t", "uintptr_t", "wchar_t",
    "int8_t", "int16_t", "int32_t", "int64_t",
    "uint8_t", "uint16_t", "uint32_t", "uint64_t",
    "FILE", "va_list", "off_t", "time_t", "clock_t",
})

# Binary operators: spelling -> (precedence, operator); higher binds tighter.
_BINARY_OPS = {
    "||": (1, BinOp.OR),
    "&&": (2, BinOp.AND),
    "|": (3, BinOp.BIT_OR),
    "^": (4, BinOp.BIT_XOR),
    "&": (5, BinOp.BIT_AND),
    "==": (6, BinOp.EQ),
    "!=": (6, BinOp.NE),
    "<": (7, BinOp.LT),
    ">": (7, BinOp.GT),
    "<=": (7, BinOp.LE),
    ">=": (7, BinOp.GE),
    "<<": (8, BinOp.SHL),
    ">>": (8, BinOp.SHR),
    "+": (9, BinOp.ADD),
    "-": (9, BinOp.SUB),
    "*": (10, BinOp.MUL),
    "/": (10, BinOp.DIV),
    "%": (10, BinOp.MOD),
}

_ASSIGN_OPS = frozenset(op.value for op in AssignOp)

# Tokens that can follow a leading name in an expression but never in a declaration
_STATEMENT_FOLLOWERS = (".", "->", "++", "--", "[", "<<", ">>") + tuple(sorted(_ASSIGN_OPS))

_PREFIX_OPS = {
    "++": UnaryOp.INC,
    "--": UnaryOp.DEC,
    "+": UnaryOp.PLUS,
    "-": UnaryOp.NEG,
    "!": UnaryOp.NOT,
    "~": UnaryOp.BIT_NOT,
    "*": UnaryOp.DEREF,
    "&": UnaryOp.ADDR,
}


# ═══════════════════════════════════════════════════════════════════════
#  Parser state helpers
# ═══════════════════════════════════════════════════════════════════════


@dataclass
class _Scope:
    """Where a declaration appears: file, namespace, linkage, class, block, param or type."""

    kind: str
    class_name: Optional[str] = None
    access: Optional[Access] = None

    @property
    def allows_special_members(self) -> bool:
        return self.kind in ("file", "namespace", "linkage", "class")


@dataclass
class _DeclSpecs:
    start: int
    item_start: int
    base: Optional[TypeNode] = None
    storage: StorageClass = StorageClass.AUTO
    specifiers: List[str] = field(default_factory=list)
    is_typedef: bool = False
    aggregates: List[Node] = field(default_factory=list)
    forward: Optional[Tuple[str, Optional[str], Optional[TypeNode], bool]] = None


Wrap = Callable[[TypeNode], TypeNode]


def _reanchor(node: Node, span: Span) -> Node:
    """Copy *node* with every span in it replaced by *span*."""
    changes = {"span": span}
    for f in fields(node):
        if f.name == "span":
            continue
        value = getattr(node, f.name)
        if isinstance(value, Node):
            changes[f.name] = _reanchor(value, span)
        elif isinstance(value, tuple) and any(isinstance(v, Node) for v in value):
            changes[f.name] = tuple(_reanchor(v, span) if isinstance(v, Node) else v for v in value)
    return replace(node, **changes)


def _with_end(node: Node, end: int) -> Node:
    return replace(node, span=Span(node.span.start, end))


# ═══════════════════════════════════════════════════════════════════════
#  Parser
# ═══════════════════════════════════════════════════════════════════════


class Parser:
    """Parser for one translation unit.

    ``mode`` must be resolved; ``AUTO`` is treated as ``CPP``.
    """

    def __init__(
        self,
        buffer: SourceBuffer,
        mode: LanguageMode = LanguageMode.CPP,
        diagnostics: Optional[Diagnostics] = None,
        keep_comments: bool = False,
    ) -> None:
        self.buffer = buffer
        self.mode = LanguageMode.CPP if mode is LanguageMode.AUTO else mode
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics()
        lexer = Lexer(buffer, self.mode, keep_comments, self.diagnostics)
        self._filter = DirectiveFilter(lexer.tokens(), self.diagnostics)
        self._stream = iter(self._filter)
        self._toks: List[Token] = []
        self._done = False

        self.pos = 0
        self._split = False  # first '>' of a '>>' at pos already consumed
        self._prev_end = 0
        self._angle_depth = 0
        self._block_depth = 0
        self._last_error_cursor = -1

        self._type_names: Set[str] = set(_WELL_KNOWN_TYPES)
        self._items: List[Node] = []

    @property
    def cpp(self) -> bool:
        return self.mode is LanguageMode.CPP

    @property
    def comments(self) -> List[Token]:
        return self._filter.comments

    # ──────────────────────────────────────────────────────────────────
    #  Token cursor
    # ──────────────────────────────────────────────────────────────────

    def _tok(self, index: int) -> Token:
        while len(self._toks) <= index:
            if self._done:
                return self._toks[-1]
            tok = next(self._stream, None)
            if tok is None:
                end = self.buffer.length
                tok = Token(TokenKind.EOF, Span(end, end), "")
            self._toks.append(tok)
            if tok.is_eof:
                self._done = True
        return self._toks[index]

    def _peek(self, k: int = 0) -> Token:
        if k == 0 and self._split:
            t = self._tok(self.pos)
            return Token(TokenKind.PUNCTUATOR, Span(t.span.start + 1, t.span.end), ">")
        return self._tok(self.pos + k)

    @property
    def _cur(self) -> Token:
        return self._peek(0)

    def _advance(self) -> Token:
        tok = self._peek(0)
        if not tok.is_eof:
            self.pos += 1
            self._split = False
            self._prev_end = tok.span.end
        return tok

    def _check(self, *puncts: str) -> bool:
        return self._cur.is_punct(*puncts)

    def _accept(self, *puncts: str) -> Optional[Token]:
        if self._cur.is_punct(*puncts):
            return self._advance()
        return None

    def _accept_kw(self, *words: str) -> Optional[Token]:
        if self._cur.is_keyword(*words):
            return self._advance()
        return None

    def _mark(self) -> Tuple[int, bool, int, int]:
        return self.pos, self._split, self._prev_end, self._filter.checkpoint()

    def _reset(self, mark: Tuple[int, bool, int, int]) -> None:
        self.pos, self._split, self._prev_end, queued = mark
        self._filter.rewind(queued)

    def _speculate(self, fn: Callable[[], Node]) -> Optional[Node]:
        """Run *fn*; on ``SyntaxError`` rewind and return ``None``.

        A failed attempt is undone completely, including the diagnostics and
        type names it added.
        """
        mark = self._mark()
        recorded = self.diagnostics.mark()
        type_names = set(self._type_names)
        last_error = self._last_error_cursor
        try:
            return fn()
        except SyntaxError:
            self._reset(mark)
            self.diagnostics.rollback(recorded)
            self._type_names = type_names
            self._last_error_cursor = last_error
            return None

    def _span_from(self, start: int) -> Span:
        return Span(start, max(start, self._prev_end))

    # ──────────────────────────────────────────────────────────────────
    #  Errors and recovery
    # ──────────────────────────────────────────────────────────────────

    def _error(
        self,
        code: ErrorCode,
        message: str,
        span: Optional[Span] = None,
        expected: Optional[List[str]] = None,
        opened_at: Optional[Span] = None,
    ) -> SyntaxError:
        tok = self._cur
        if tok.is_eof and code is not CxxErrorCodes.UNEXPECTED_EOF:
            code = CxxErrorCodes.UNEXPECTED_EOF
        return SyntaxError(
            message,
            code=code,
            span=span or tok.span,
            expected=expected,
            found=tok.text,
            opened_at=opened_at,
        )

    def _where(self) -> str:
        tok = self._cur
        return "at end of input" if tok.is_eof else f"before {tok.describe()}"

    def _expect(self, punct: str, opener: Optional[Token] = None) -> Token:
        if self._cur.is_punct(punct):
            return self._advance()
        raise self._error(
            CxxErrorCodes.MISSING_TOKEN,
            f"expected '{punct}' {self._where()}",
            expected=[f"'{punct}'"],
            opened_at=opener.span if opener is not None else None,
        )

    def _expect_end(self, first: Token) -> Token:
        """The ``;`` ending the construct that began at *first*.

        At end of input the error carries a note pointing back at *first*.
        """
        return self._expect(";", first if self._cur.is_eof else None)

    def _expect_identifier(self, what: str = "identifier") -> Token:
        tok = self._cur
        if tok.kind is TokenKind.IDENTIFIER:
            return self._advance()
        raise self._error(
            CxxErrorCodes.UNEXPECTED_TOKEN, f"expected {what} {self._where()}", expected=[what]
        )

    def _record(self, err: SyntaxError) -> None:
        """Record *err* unless the cursor has not moved since the last error."""
        cursor = self.pos
        if cursor <= self._last_error_cursor:
            logger.debug("suppressed error at token %d: %s", cursor, err.diagnostic.message)
            return
        self._last_error_cursor = cursor
        self.diagnostics.report(err, cursor)
        if err.opened_at is not None:
            opener = self.buffer.slice(err.opened_at) if err.opened_at.end <= self.buffer.length else "?"
            if opener in _OPENERS:
                message = f"to match this '{opener}'"
            else:
                message = f"'{opener}' begins here"
            self.diagnostics.note(CxxErrorCodes.OPENED_HERE, err.opened_at, message, cursor)

    def _unterminated(self, opener: Token, closer: str) -> SyntaxError:
        return self._error(
            CxxErrorCodes.UNEXPECTED_EOF,
            f"expected '{closer}' at end of input",
            expected=[f"'{closer}'"],
            opened_at=opener.span,
        )

    def _synchronize(self, nested: bool) -> None:
        """Skip to just after the next ``;`` or balanced ``}`` block.

        In a nested list an unmatched ``}`` is left for the caller to close
        the list with.
        """
        start = self.pos
        depth = 0
        while not self._cur.is_eof:
            tok = self._cur
            if tok.is_punct("{"):
                depth += 1
                self._advance()
                continue
            if tok.is_punct("}"):
                if depth == 0:
                    if not nested:
                        self._advance()
                    break
                depth -= 1
                self._advance()
                if depth == 0:
                    break
                continue
            self._advance()
            if tok.is_punct(";") and depth == 0:
                break
        logger.debug("recovered: skipped tokens %d..%d", start, self.pos)

    def _take_directives(self) -> List[Node]:
        self._peek(0)
        return self._filter.take(self.pos)

    # ──────────────────────────────────────────────────────────────────
    #  Translation unit and item lists
    # ──────────────────────────────────────────────────────────────────

    def parse(self) -> TranslationUnit:
        """Parse to end of input and return the translation unit."""
        scope = _Scope("file")
        queued = self._filter.checkpoint()
        try:
            while True:
                self._items.extend(self._take_directives())
                if self._cur.is_eof:
                    break
                queued = self._filter.checkpoint()
                self._parse_item_into(self._items, scope, nested=False)
        except TooManyErrorsError as exc:
            logger.info("stopping at token %d: %s", self.pos, exc.diagnostic.message)
            self.diagnostics.report(exc, self.pos)
            # The abandoned item may have drained directives
            self._filter.rewind(queued)
        self._items.extend(self._filter.take_all())
        return TranslationUnit(
            Span(0, self.buffer.length), tuple(self._items), self.buffer.path, self.mode.value
        )

    def _parse_item_into(self, items: List[Node], scope: _Scope, nested: bool) -> None:
        queued = self._filter.checkpoint()
        try:
            items.extend(self._parse_declaration(scope))
        except SyntaxError as err:
            self._record(err)
            # Directives drained by the failed item go back to this list
            self._filter.rewind(queued)
            self._synchronize(nested)

    def _parse_braced_items(self, scope: _Scope, opener: Token) -> List[Node]:
        """Items up to and including the ``}`` matching *opener*."""
        items: List[Node] = []
        while True:
            items.extend(self._take_directives())
            tok = self._cur
            if tok.is_punct("}"):
                self._advance()
                return items
            if tok.is_eof:
                self._record(self._unterminated(opener, "}"))
                return items
            self._parse_item_into(items, scope, nested=True)

    def _parse_declaration(self, scope: _Scope) -> List[Node]:
        tok = self._cur
        if tok.is_punct(";"):
            self._advance()
            return []
        if tok.kind is TokenKind.KEYWORD:
            if tok.text == "namespace":
                return [self._parse_namespace()]
            if tok.text == "using":
                return [self._parse_using()]
            if tok.text == "template":
                return self._parse_template(scope)
            if tok.text == "extern" and self._peek(1).kind is TokenKind.STRING:
                return [self._parse_linkage()]
        if scope.kind != "class" and self._looks_like_outer_statement():
            return [self._parse_outer_statement()]
        return self._parse_simple_declaration(scope)

    def _looks_like_outer_statement(self) -> bool:
        """A name followed by an operator no declarator can follow.

        Covers ``obj.insert(x);``, ``std::cin >> val;`` and ``n = 4;`` outside
        any function.
        """
        i = 1 if self._peek(0).is_punct("::") else 0
        if self._peek(i).kind is not TokenKind.IDENTIFIER:
            return False
        i += 1
        while self._peek(i).is_punct("::") and self._peek(i + 1).kind is TokenKind.IDENTIFIER:
            i += 2
        return self._peek(i).is_punct(*_STATEMENT_FOLLOWERS)

    def _parse_outer_statement(self) -> ExprStmt:
        first = self._cur
        expr = self._expression()
        self._expect_end(first)
        return ExprStmt(self._span_from(first.span.start), expr)

    def _parse_namespace(self) -> NamespaceDecl:
        kw = self._advance()
        name = None
        if self._cur.kind is TokenKind.IDENTIFIER:
            name = self._qualified_name_text()
        opener = self._expect("{")
        items = self._parse_braced_items(_Scope("namespace"), opener)
        return NamespaceDecl(self._span_from(kw.span.start), name, tuple(items))

    def _parse_linkage(self) -> LinkageDecl:
        kw = self._advance()
        language = self._advance().value
        scope = _Scope("linkage")
        if self._check("{"):
            opener = self._advance()
            items = self._parse_braced_items(scope, opener)
        else:
            items = self._parse_declaration(scope)
        return LinkageDecl(self._span_from(kw.span.start), language, tuple(items))

    def _parse_using(self) -> Node:
        kw = self._advance()
        if self._accept_kw("namespace"):
            name = self._qualified_name_text()
            self._expect(";")
            return UsingDirective(self._span_from(kw.span.start), name, True)
        if self._cur.kind is TokenKind.IDENTIFIER and self._peek(1).is_punct("="):
            name = self._advance().text
            self._advance()
            aliased = self._parse_type_id()
            self._expect(";")
            self._type_names.add(name)
            return TypedefDecl(self._span_from(kw.span.start), name, aliased)
        self._accept_kw("typename")
        name = self._qualified_name_text()
        self._expect(";")
        return UsingDirective(self._span_from(kw.span.start), name, False)

    def _parse_template(self, scope: _Scope) -> List[Node]:
        kw = self._advance()
        opener = self._expect("<")
        params: List[TemplateParam] = []
        self._angle_depth += 1
        try:
            if not self._check(">", ">>"):
                while True:
                    params.append(self._parse_template_param())
                    if not self._accept(","):
                        break
            self._expect_template_close(opener)
        finally:
            self._angle_depth -= 1
        inner = self._parse_declaration(scope)
        if not inner:
            raise self._error(
                CxxErrorCodes.EXPECTED_DECLARATION, f"expected a declaration {self._where()}"
            )
        head = inner[0]
        wrapped = TemplateDecl(Span(kw.span.start, head.span.end), tuple(params), head)
        return [wrapped, *inner[1:]]

    def _parse_template_param(self) -> TemplateParam:
        start = self._cur.span.start
        if self._cur.is_keyword("typename", "class"):
            self._advance()
            name = None
            if self._cur.kind is TokenKind.IDENTIFIER:
                name = self._advance().text
                self._type_names.add(name)
            default = self._parse_type_id() if self._accept("=") else None
            return TemplateParam(self._span_from(start), name, None, default)
        specs = self._parse_decl_specifiers(_Scope("param"), allow_storage=False)
        if specs.base is None:
            raise self._error(CxxErrorCodes.EXPECTED_TYPE, f"expected template parameter {self._where()}")
        name, _, wrap, _ = self._declarator(abstract=True)
        default = self._conditional() if self._accept("=") else None
        return TemplateParam(self._span_from(start), name, wrap(specs.base), default)

    # ──────────────────────────────────────────────────────────────────
    #  Declaration specifiers
    # ──────────────────────────────────────────────────────────────────

    def _parse_decl_specifiers(self, scope: _Scope, allow_storage: bool = True) -> _DeclSpecs:
        start = self._cur.span.start
        specs = _DeclSpecs(start=start, item_start=start)
        builtin: List[Token] = []
        base: Optional[TypeNode] = None
        const = volatile = False
        cv_spans: List[Span] = []
        inline_end: Optional[int] = None

        while True:
            tok = self._cur
            if tok.kind is TokenKind.KEYWORD:
                word = tok.text
                if word in STORAGE_KEYWORDS and allow_storage:
                    self._advance()
                    specs.storage = StorageClass(word)
                    specs.specifiers.append(word)
                    continue
                if word in FUNCTION_SPECIFIERS and allow_storage:
                    self._advance()
                    specs.specifiers.append(word)
                    continue
                if word == "typedef" and allow_storage:
                    self._advance()
                    specs.is_typedef = True
                    continue
                if word in CV_KEYWORDS:
                    self._advance()
                    const = const or word == "const"
                    volatile = volatile or word == "volatile"
                    cv_spans.append(tok.span)
                    continue
                if word in BUILTIN_TYPE_KEYWORDS and base is None:
                    builtin.append(self._advance())
                    continue
                if word in TAG_KEYWORDS and base is None and not builtin:
                    base, aggregate, forward = self._parse_tag_specifier()
                    if aggregate is not None:
                        specs.aggregates.append(aggregate)
                        inline_end = aggregate.span.end
                    specs.forward = forward
                    continue
                if word == "typename" and base is None and not builtin:
                    self._advance()
                    base = self._parse_named_type()
                    continue
                break
            if (tok.kind is TokenKind.IDENTIFIER or tok.is_punct("::")) and base is None and not builtin:
                if scope.allows_special_members and self._special_member_length(scope):
                    break
                base = self._parse_named_type()
                continue
            break

        if builtin:
            span = builtin[0].span.merge(builtin[-1].span)
            base = NamedType(span, " ".join(t.text for t in builtin))
        if base is not None and (const or volatile):
            if inline_end is not None:
                qspan = Span(inline_end, inline_end)
            else:
                qspan = base.span.merge(*cv_spans)
            base = QualifiedType(qspan, base, const, volatile)
        if inline_end is not None:
            specs.item_start = inline_end
            specs.forward = None
        specs.base = base
        return specs

    def _parse_tag_specifier(self):
        """``struct|union|class|enum [name] [body]`` -> (type, definition, forward info)."""
        tag_tok = self._advance()
        tag = tag_tok.text
        scoped = False
        if tag == "enum" and self._cur.is_keyword("class", "struct"):
            self._advance()
            scoped = True
        name = None
        if self._cur.kind is TokenKind.IDENTIFIER:
            name = self._advance().text
            self._type_names.add(name)

        if tag == "enum":
            underlying = None
            if self._check(":"):
                self._advance()
                underlying = self._parse_type_id()
            if self._check("{"):
                decl = self._parse_enum_body(tag_tok, name, underlying, scoped)
                end = decl.span.end
                return NamedType(Span(end, end), name, tag, decl.span), decl, None
            if name is None:
                raise self._error(CxxErrorCodes.UNEXPECTED_TOKEN, f"expected enum name or '{{' {self._where()}")
            ref = NamedType(self._span_from(tag_tok.span.start), name, tag)
            return ref, None, (tag, name, underlying, scoped)

        bases: Tuple[BaseSpecifier, ...] = ()
        if self.cpp and tag != "union" and self._check(":") and name is not None:
            bases = self._parse_base_list(tag)
        if self._check("{"):
            decl = self._parse_class_body(tag_tok, name, bases)
            end = decl.span.end
            return NamedType(Span(end, end), name, tag, decl.span), decl, None
        if bases:
            raise self._error(CxxErrorCodes.MISSING_TOKEN, f"expected '{{' {self._where()}", expected=["'{'"])
        if name is None:
            raise self._error(CxxErrorCodes.UNEXPECTED_TOKEN, f"expected {tag} name or '{{' {self._where()}")
        ref = NamedType(self._span_from(tag_tok.span.start), name, tag)
        return ref, None, (tag, name, None, False)

    def _parse_base_list(self, tag: str) -> Tuple[BaseSpecifier, ...]:
        self._advance()
        bases: List[BaseSpecifier] = []
        default = Access.PRIVATE if tag == "class" else Access.PUBLIC
        while True:
            start = self._cur.span.start
            virtual = False
            access = None
            while True:
                if self._accept_kw("virtual"):
                    virtual = True
                elif self._cur.kind is TokenKind.KEYWORD and self._cur.text in ACCESS_KEYWORDS:
                    access = Access(self._advance().text)
                else:
                    break
            base = self._parse_named_type()
            bases.append(BaseSpecifier(self._span_from(start), access or default, base, virtual))
            if not self._accept(","):
                return tuple(bases)

    def _parse_class_body(self, tag_tok: Token, name: Optional[str], bases: Tuple[BaseSpecifier, ...]) -> Node:
        tag = tag_tok.text
        opener = self._expect("{")
        if self.cpp:
            default = Access.PRIVATE if tag == "class" else Access.PUBLIC
        else:
            default = None
        scope = _Scope("class", class_name=name, access=default)
        members: List[Node] = []
        saw_label = False

        while True:
            members.extend(self._take_directives())
            tok = self._cur
            if tok.is_punct("}"):
                self._advance()
                break
            if tok.is_eof:
                self._record(self._unterminated(opener, "}"))
                break
            if self._peek(1).is_punct(":") and tok.text in ACCESS_KEYWORDS:
                if tok.kind is TokenKind.KEYWORD:
                    self._advance()
                    self._advance()
                    scope.access = Access(tok.text)
                    saw_label = True
                    continue
                if tok.kind is TokenKind.IDENTIFIER and not self.cpp:
                    self._record(self._error(
                        CxxErrorCodes.ACCESS_LABEL_IN_C,
                        f"access label '{tok.text}:' is not allowed in a C {tag}",
                    ))
                    self._advance()
                    self._advance()
                    continue
            self._parse_item_into(members, scope, nested=True)

        span = self._span_from(tag_tok.span.start)
        has_methods = any(isinstance(m, (FunctionDecl, TemplateDecl)) for m in members)
        if tag == "class" or bases or saw_label or has_methods:
            return ClassDecl(
                span, name, bases, tuple(members), is_struct=tag == "struct", is_union=tag == "union"
            )
        return StructDecl(span, name, tuple(members), is_union=tag == "union")

    def _parse_enum_body(
        self, tag_tok: Token, name: Optional[str], underlying: Optional[TypeNode], scoped: bool
    ) -> EnumDecl:
        opener = self._expect("{")
        counter = EnumCounter()
        entries: List[Node] = []
        while True:
            entries.extend(self._take_directives())
            if self._check("}"):
                break
            if self._cur.is_eof:
                raise self._unterminated(opener, "}")
            name_tok = self._expect_identifier("enumerator name")
            init = self._conditional() if self._accept("=") else None
            value = counter.next(name_tok.text, init)
            entries.append(Enumerator(self._span_from(name_tok.span.start), name_tok.text, value, init))
            if not self._accept(","):
                entries.extend(self._take_directives())
                break
        self._expect("}", opener)
        return EnumDecl(self._span_from(tag_tok.span.start), name, underlying, tuple(entries), scoped)

    def _forward_decl(self, specs: _DeclSpecs) -> Node:
        tag, name, underlying, scoped = specs.forward
        span = self._span_from(specs.start)
        if tag == "enum":
            return EnumDecl(span, name, underlying, None, scoped)
        if tag == "class":
            return ClassDecl(span, name, (), None)
        return StructDecl(span, name, None, is_union=tag == "union")

    # ──────────────────────────────────────────────────────────────────
    #  Types and names
    # ──────────────────────────────────────────────────────────────────

    def _qualified_name_text(self) -> str:
        parts: List[str] = []
        if self.cpp and self._accept("::"):
            parts.append("")
        parts.append(self._expect_identifier("name").text)
        while self._check("::") and self._peek(1).kind is TokenKind.IDENTIFIER:
            self._advance()
            parts.append(self._advance().text)
        return "::".join(parts)

    def _parse_named_type(self) -> TypeNode:
        """``[::] name [<args>] (:: name [<args>])*``."""
        start = self._cur.span.start
        scopes: List[str] = []
        if self.cpp and self._accept("::"):
            scopes.append("")
        while True:
            tok = self._expect_identifier("type name")
            comp: TypeNode = NamedType(tok.span, tok.text)
            if self.cpp and self._check("<"):
                comp = self._parse_template_args(comp)
            if self._check("::") and self._peek(1).kind is TokenKind.IDENTIFIER:
                self._advance()
                scopes.append(type_name(comp))
                continue
            break
        if scopes:
            return ScopedType(self._span_from(start), "::".join(scopes), comp)
        return comp

    def _parse_template_args(self, base: TypeNode) -> TemplateType:
        opener = self._advance()
        args: List[Node] = []
        self._angle_depth += 1
        try:
            if not self._check(">", ">>"):
                while True:
                    args.append(self._parse_template_arg())
                    if not self._accept(","):
                        break
            self._expect_template_close(opener)
        finally:
            self._angle_depth -= 1
        return TemplateType(self._span_from(base.span.start), base, tuple(args))

    def _parse_template_arg(self) -> Node:
        tok = self._cur
        if tok.kind is TokenKind.KEYWORD and tok.text in _TYPE_START_KEYWORDS:
            return self._parse_type_id()
        if tok.kind is TokenKind.IDENTIFIER or tok.is_punct("::"):
            nxt = self._peek(1)
            if tok.text in self._type_names or nxt.is_punct(">", ">>", ",", "<", "::", "*", "&"):
                return self._parse_type_id()
        return self._conditional()

    def _expect_template_close(self, opener: Token) -> None:
        tok = self._cur
        if tok.is_punct(">"):
            self._advance()
            return
        if tok.is_punct(">>"):
            self._split = True
            self._prev_end = tok.span.start + 1
            return
        raise self._error(
            CxxErrorCodes.MISSING_TOKEN,
            f"expected '>' {self._where()}",
            expected=["'>'"],
            opened_at=opener.span if tok.is_eof else None,
        )

    def _parse_type_id(self) -> TypeNode:
        """A type with an optional abstract declarator, e.g. ``const char *``."""
        specs = self._parse_decl_specifiers(_Scope("type"), allow_storage=False)
        if specs.base is None:
            raise self._error(CxxErrorCodes.EXPECTED_TYPE, f"expected a type {self._where()}", expected=["type"])
        _, _, wrap, _ = self._declarator(abstract=True, allow_name=False)
        return wrap(specs.base)

    def _is_known_type(self, ty: TypeNode) -> bool:
        if isinstance(ty, NamedType):
            return ty.name in self._type_names
        return isinstance(ty, (TemplateType, ScopedType))

    # ──────────────────────────────────────────────────────────────────
    #  Declarators
    # ──────────────────────────────────────────────────────────────────

    def _cv_qualifiers(self) -> Tuple[bool, bool]:
        const = volatile = False
        while self._cur.is_keyword("const", "volatile"):
            word = self._advance().text
            const = const or word == "const"
            volatile = volatile or word == "volatile"
        return const, volatile

    def _declarator(self, abstract: bool = False, allow_name: bool = True):
        """Parse a declarator -> ``(name, name_span, wrap, nested)``.

        ``wrap`` applies the declarator's modifiers to a base type.
        ``nested`` is true when the name sat inside parentheses, as in
        ``(*f)(...)``; such a declarator never declares a function.
        """
        tok = self._cur
        if tok.is_punct("*"):
            self._advance()
            const, volatile = self._cv_qualifiers()
            star = Span(tok.span.start, self._prev_end)
            name, nspan, inner, nested = self._declarator(abstract, allow_name)
            return name, nspan, (lambda t: inner(PointerType(t.span.merge(star), t, const, volatile))), nested
        if self.cpp and tok.is_punct("&", "&&"):
            self._advance()
            rvalue = tok.text == "&&"
            name, nspan, inner, nested = self._declarator(abstract, allow_name)
            return name, nspan, (lambda t: inner(ReferenceType(t.span.merge(tok.span), t, rvalue))), nested
        if tok.is_punct("(") and self._peek(1).is_punct("*", "&", "&&"):
            self._advance()
            name, nspan, inner, _ = self._declarator(abstract, allow_name)
            self._expect(")", tok)
            suffix = self._declarator_suffixes()
            return name, nspan, (lambda t: inner(suffix(t))), True

        name = nspan = None
        if allow_name and (not abstract or self._at_declarator_id()):
            name, nspan = self._declarator_id()
        return name, nspan, self._declarator_suffixes(), False

    def _at_declarator_id(self) -> bool:
        tok = self._cur
        if tok.kind is TokenKind.IDENTIFIER or tok.is_keyword("operator"):
            return True
        return tok.is_punct("~", "::") and self._peek(1).kind is TokenKind.IDENTIFIER

    def _declarator_id(self) -> Tuple[str, Span]:
        start = self._cur.span.start
        parts: List[str] = []
        if self.cpp and self._check("::") and self._peek(1).kind is TokenKind.IDENTIFIER:
            self._advance()
            parts.append("")
        while True:
            tok = self._cur
            if tok.is_punct("~") and self._peek(1).kind is TokenKind.IDENTIFIER:
                self._advance()
                parts.append("~" + self._advance().text)
            elif tok.is_keyword("operator"):
                parts.append(self._operator_name())
            elif tok.kind is TokenKind.IDENTIFIER:
                parts.append(self._advance().text)
            else:
                raise self._error(
                    CxxErrorCodes.EXPECTED_DECLARATOR,
                    f"expected declarator {self._where()}",
                    expected=["identifier"],
                )
            nxt = self._peek(1)
            if self._check("::") and (
                nxt.kind is TokenKind.IDENTIFIER or nxt.is_punct("~") or nxt.is_keyword("operator")
            ):
                self._advance()
                continue
            return "::".join(parts), self._span_from(start)

    def _operator_name(self) -> str:
        self._advance()
        tok = self._cur
        if tok.is_punct("(") and self._peek(1).is_punct(")"):
            self._advance()
            self._advance()
            return "operator()"
        if tok.is_punct("[") and self._peek(1).is_punct("]"):
            self._advance()
            self._advance()
            return "operator[]"
        if tok.is_keyword("new", "delete"):
            self._advance()
            if self._check("[") and self._peek(1).is_punct("]"):
                self._advance()
                self._advance()
                return f"operator {tok.text}[]"
            return f"operator {tok.text}"
        if tok.kind is TokenKind.PUNCTUATOR:
            self._advance()
            return "operator" + tok.text
        if tok.kind is TokenKind.KEYWORD or tok.kind is TokenKind.IDENTIFIER:
            specs = self._parse_decl_specifiers(_Scope("type"), allow_storage=False)
            target = type_name(specs.base)
            while self._check("*", "&"):
                target += " " + self._advance().text
            return "operator " + target
        raise self._error(CxxErrorCodes.EXPECTED_DECLARATOR, f"expected operator symbol {self._where()}")

    def _declarator_suffixes(self) -> Wrap:
        mods: List[Tuple] = []
        while True:
            tok = self._cur
            if tok.is_punct("["):
                self._advance()
                size = None
                if not self._check("]"):
                    with_depth = self._angle_depth
                    self._angle_depth = 0
                    try:
                        size = self._assignment()
                    finally:
                        self._angle_depth = with_depth
                self._expect("]", tok)
                mods.append(("array", self._span_from(tok.span.start), size))
            elif tok.is_punct("(") and self._looks_like_param_list():
                self._advance()
                params, variadic = self._parse_param_list(tok)
                quals = self._function_qualifiers()
                mods.append(("function", self._span_from(tok.span.start), params, variadic, quals))
            else:
                break

        def wrap(t: TypeNode) -> TypeNode:
            for mod in reversed(mods):
                span = t.span.merge(mod[1])
                if mod[0] == "array":
                    t = ArrayType(span, t, mod[2])
                elif mod[0] == "function":
                    t = FunctionType(span, t, mod[2], mod[3], mod[4])
                else:
                    raise InternalError(f"unknown declarator modifier {mod[0]!r}")
            return t

        return wrap

    def _looks_like_param_list(self) -> bool:
        """At ``(``: parameters follow, rather than constructor arguments."""
        tok = self._peek(1)
        if tok.is_punct(")", "..."):
            return True
        if tok.kind is TokenKind.KEYWORD:
            return tok.text in _DECL_START_KEYWORDS
        if tok.is_punct("::"):
            return True
        if tok.kind is not TokenKind.IDENTIFIER:
            return False
        if tok.text in self._type_names:
            return True
        nxt = self._peek(2)
        if nxt.kind is TokenKind.IDENTIFIER or nxt.is_punct("::", "<"):
            return True
        if nxt.is_punct("*", "&"):
            after = self._peek(3)
            return after.kind is TokenKind.IDENTIFIER or after.is_punct(")", ",", "*")
        if nxt.is_punct(")", ","):
            return self._block_depth == 0
        return False

    def _parse_param_list(self, opener: Token) -> Tuple[Tuple[Node, ...], bool]:
        """Parameters up to ``)``; directive lines between them stay in the list."""
        params: List[Node] = self._take_directives()
        variadic = False
        if not self._check(")"):
            while True:
                if self._accept("..."):
                    variadic = True
                    break
                params.append(self._parse_param())
                if not self._accept(","):
                    break
                params.extend(self._take_directives())
        params.extend(self._take_directives())
        self._expect(")", opener)
        real = [p for p in params if isinstance(p, Param)]
        if (
            len(real) == 1 and not variadic and real[0].name is None
            and isinstance(real[0].type, NamedType) and real[0].type.name == "void"
        ):
            return tuple(p for p in params if not isinstance(p, Param)), False
        return tuple(params), variadic

    def _parse_param(self) -> Param:
        start = self._cur.span.start
        specs = self._parse_decl_specifiers(_Scope("param"))
        if specs.base is None:
            raise self._error(CxxErrorCodes.EXPECTED_TYPE, f"expected parameter type {self._where()}", expected=["type"])
        name, _, wrap, _ = self._declarator(abstract=True)
        default = None
        if self._accept("="):
            default = self._initializer()
        return Param(self._span_from(start), name, wrap(specs.base), default)

    def _function_qualifiers(self) -> Tuple[str, ...]:
        quals: List[str] = []
        while True:
            tok = self._cur
            if tok.is_keyword("const", "volatile", "override"):
                quals.append(self._advance().text)
            elif tok.kind is TokenKind.IDENTIFIER and tok.text in ("final", "noexcept") and self.cpp:
                self._advance()
                quals.append(tok.text)
                if tok.text == "noexcept" and self._check("("):
                    opener = self._advance()
                    self._expression()
                    self._expect(")", opener)
            else:
                return tuple(quals)

    def _special_member_length(self, scope: _Scope) -> int:
        """Token count of a constructor/destructor name at the cursor, else 0."""
        t0 = self._peek(0)
        if scope.kind == "class":
            if t0.kind is TokenKind.IDENTIFIER and t0.text == scope.class_name and self._peek(1).is_punct("("):
                return 1
            if t0.is_keyword("operator") and self._peek(1).kind is not TokenKind.PUNCTUATOR:
                return 1
            if t0.is_punct("~") and self._peek(1).kind is TokenKind.IDENTIFIER and self._peek(2).is_punct("("):
                return 2
        if not self.cpp or t0.kind is not TokenKind.IDENTIFIER:
            return 0
        names = [t0.text]
        i = 1
        while self._peek(i).is_punct("::"):
            nxt = self._peek(i + 1)
            if nxt.is_punct("~") and self._peek(i + 2).kind is TokenKind.IDENTIFIER and self._peek(i + 3).is_punct("("):
                return i + 3
            if nxt.kind is not TokenKind.IDENTIFIER:
                break
            names.append(nxt.text)
            i += 2
        if len(names) >= 2 and names[-1] == names[-2] and self._peek(i).is_punct("("):
            return i
        return 0

    # ──────────────────────────────────────────────────────────────────
    #  Simple declarations
    # ──────────────────────────────────────────────────────────────────

    def _parse_simple_declaration(self, scope: _Scope) -> List[Node]:
        head = self._cur
        specs = self._parse_decl_specifiers(scope)
        items: List[Node] = list(specs.aggregates)

        if specs.base is None:
            if scope.allows_special_members and self._special_member_length(scope):
                fn, has_body = self._parse_special_member(specs, scope)
                if not has_body:
                    self._expect_end(head)
                    fn = _with_end(fn, self._prev_end)
                items.append(fn)
                return items
            code = CxxErrorCodes.EXPECTED_TYPE if specs.specifiers else CxxErrorCodes.EXPECTED_DECLARATION
            raise self._error(code, f"expected a declaration {self._where()}", expected=["type name"])

        if self._check(";"):
            self._advance()
            if specs.forward is not None and not specs.is_typedef:
                items.append(self._forward_decl(specs))
            return items

        first = True
        while True:
            if first:
                decl_start = specs.item_start
                base = specs.base
            else:
                decl_start = self._cur.span.start
                base = _reanchor(specs.base, Span(decl_start, decl_start))
            if scope.kind == "class" and self._check(":"):
                # unnamed bit-field
                name, nspan, wrap, nested = None, self._cur.span.empty_at_start(), (lambda t: t), False
            else:
                name, nspan, wrap, nested = self._declarator()
            ty = wrap(base)
            if isinstance(ty, FunctionType) and not nested and not specs.is_typedef:
                fn, has_body = self._finish_function(
                    decl_start, name, ty.ret, ty.params, ty.variadic, ty.qualifiers, specs, scope
                )
                items.append(fn)
                if has_body:
                    return items
            else:
                items.append(self._finish_object(decl_start, name, nspan, ty, specs, scope))
            if self._accept(","):
                first = False
                continue
            self._expect_end(head)
            items[-1] = _with_end(items[-1], self._prev_end)
            return items

    def _finish_object(
        self, start: int, name: Optional[str], nspan: Span, ty: TypeNode, specs: _DeclSpecs, scope: _Scope
    ) -> Node:
        bit_width = None
        init = None
        if scope.kind == "class" and self._check(":"):
            self._advance()
            bit_width = self._conditional()
        if self._accept("="):
            init = self._initializer()
        elif self.cpp and self._check("{"):
            init = self._init_list()
        elif self._check("("):
            opener = self._advance()
            args = self._call_args(opener)
            init = CallExpr(self._span_from(nspan.start), Identifier(nspan, name), args)

        span = self._span_from(start)
        if specs.is_typedef:
            self._type_names.add(name)
            return TypedefDecl(span, name, ty)
        if scope.kind == "class":
            return FieldDecl(span, name, ty, bit_width, init, scope.access, specs.storage)
        return VarDecl(span, name, ty, init, specs.storage)

    def _finish_function(
        self,
        start: int,
        name: str,
        ret: Optional[TypeNode],
        params: Tuple[Node, ...],
        variadic: bool,
        quals: Tuple[str, ...],
        specs: _DeclSpecs,
        scope: _Scope,
    ) -> Tuple[FunctionDecl, bool]:
        qualifiers = list(quals)
        initializers: Tuple[Node, ...] = ()
        body = None
        if self._accept("="):
            tok = self._cur
            if tok.kind is TokenKind.INTEGER and tok.value == 0:
                self._advance()
                qualifiers.append("pure")
            elif tok.is_keyword("default", "delete"):
                self._advance()
                qualifiers.append(tok.text)
            else:
                raise self._error(
                    CxxErrorCodes.UNEXPECTED_TOKEN,
                    f"expected '0', 'default' or 'delete' {self._where()}",
                    expected=["'0'", "'default'", "'delete'"],
                )
        if self.cpp and self._check(":"):
            initializers = self._parse_member_inits()
        # Directives between the declarator and the body
        pending = tuple(self._take_directives())
        if initializers:
            initializers += pending
        else:
            params += pending
        if self._check("{"):
            body = self._parse_compound()
        fn = FunctionDecl(
            self._span_from(start),
            name,
            ret,
            params,
            initializers=initializers,
            body=body,
            qualifiers=tuple(qualifiers),
            specifiers=tuple(specs.specifiers),
            variadic=variadic,
            access=scope.access if scope.kind == "class" else None,
        )
        return fn, body is not None

    def _parse_special_member(self, specs: _DeclSpecs, scope: _Scope) -> Tuple[FunctionDecl, bool]:
        name, _ = self._declarator_id()
        opener = self._expect("(")
        params, variadic = self._parse_param_list(opener)
        quals = self._function_qualifiers()
        return self._finish_function(specs.start, name, None, params, variadic, quals, specs, scope)

    def _parse_member_inits(self) -> Tuple[MemberInit, ...]:
        self._advance()
        inits: List[MemberInit] = []
        while True:
            start = self._cur.span.start
            name = self._qualified_name_text()
            if self._check("("):
                opener = self._advance()
                args = self._call_args(opener)
            elif self._check("{"):
                args = self._init_list().items
            else:
                raise self._error(CxxErrorCodes.MISSING_TOKEN, f"expected '(' {self._where()}", expected=["'('"])
            inits.append(MemberInit(self._span_from(start), name, args))
            if not self._accept(","):
                return tuple(inits)

    # ──────────────────────────────────────────────────────────────────
    #  Statements
    # ──────────────────────────────────────────────────────────────────

    def _parse_compound(self) -> CompoundStmt:
        opener = self._expect("{")
        items: List[Node] = []
        self._block_depth += 1
        try:
            while True:
                items.extend(self._take_directives())
                tok = self._cur
                if tok.is_punct("}"):
                    self._advance()
                    break
                if tok.is_eof:
                    self._record(self._unterminated(opener, "}"))
                    break
                queued = self._filter.checkpoint()
                try:
                    items.append(self._parse_statement())
                except SyntaxError as err:
                    self._record(err)
                    self._filter.rewind(queued)
                    self._synchronize(nested=True)
        finally:
            self._block_depth -= 1
        return CompoundStmt(self._span_from(opener.span.start), tuple(items))

    def _parse_statement(self) -> Node:
        tok = self._cur
        start = tok.span.start
        if tok.is_punct("{"):
            return self._parse_compound()
        if tok.is_punct(";"):
            self._advance()
            return NullStmt(tok.span)

        if tok.kind is TokenKind.KEYWORD:
            word = tok.text
            if word == "if":
                self._advance()
                cond = self._paren_condition()
                then = self._parse_statement()
                else_ = self._parse_statement() if self._accept_kw("else") else None
                return IfStmt(self._span_from(start), cond, then, else_)
            if word == "while":
                self._advance()
                cond = self._paren_condition()
                body = self._parse_statement()
                return WhileStmt(self._span_from(start), cond, body)
            if word == "do":
                self._advance()
                body = self._parse_statement()
                if not self._accept_kw("while"):
                    raise self._error(CxxErrorCodes.MISSING_TOKEN, f"expected 'while' {self._where()}", expected=["'while'"])
                cond = self._paren_condition()
                self._expect(";")
                return DoWhileStmt(self._span_from(start), body, cond)
            if word == "for":
                return self._parse_for()
            if word == "switch":
                self._advance()
                cond = self._paren_condition()
                body = self._parse_statement()
                return SwitchStmt(self._span_from(start), cond, body)
            if word == "case":
                self._advance()
                value = self._conditional()
                self._expect(":")
                return CaseStmt(self._span_from(start), value)
            if word == "default":
                self._advance()
                self._expect(":")
                return CaseStmt(self._span_from(start), None)
            if word in ("break", "continue"):
                self._advance()
                self._expect_end(tok)
                cls = BreakStmt if word == "break" else ContinueStmt
                return cls(self._span_from(start))
            if word == "return":
                self._advance()
                value = None
                if not self._check(";"):
                    value = self._initializer()
                self._expect_end(tok)
                return ReturnStmt(self._span_from(start), value)
            if word in ("using", "namespace", "template"):
                decls = self._parse_declaration(_Scope("block"))
                return DeclStmt(self._span_from(start), tuple(decls))

        if self._looks_like_declaration():
            return self._parse_block_declaration()

        expr = self._expression()
        self._expect_end(tok)
        return ExprStmt(self._span_from(expr.span.start), expr)

    def _paren_condition(self) -> Node:
        opener = self._expect("(")
        cond = self._expression()
        self._expect(")", opener)
        return cond

    def _parse_for(self) -> ForStmt:
        kw = self._advance()
        opener = self._expect("(")
        init: Optional[Node] = None
        if self._accept(";"):
            pass
        elif self._looks_like_declaration():
            init = self._parse_block_declaration()
        else:
            init = self._expression()
            self._expect(";")
        cond = None if self._check(";") else self._expression()
        self._expect(";")
        step = None if self._check(")") else self._expression()
        self._expect(")", opener)
        body = self._parse_statement()
        return ForStmt(self._span_from(kw.span.start), init, cond, step, body)

    def _parse_block_declaration(self) -> DeclStmt:
        start = self._cur.span.start
        decls = self._parse_simple_declaration(_Scope("block"))
        return DeclStmt(self._span_from(start), tuple(decls))

    def _looks_like_declaration(self) -> bool:
        """Declaration-vs-expression decision at the start of a statement."""
        tok = self._cur
        if tok.kind is TokenKind.KEYWORD:
            return tok.text in _DECL_START_KEYWORDS
        if not (tok.kind is TokenKind.IDENTIFIER or tok.is_punct("::")):
            return False
        mark = self._mark()
        try:
            ty = self._parse_named_type()
            after, after2, after3 = self._cur, self._peek(1), self._peek(2)
        except SyntaxError:
            return False
        finally:
            self._reset(mark)
        if after.kind is TokenKind.IDENTIFIER or after.is_keyword("const", "volatile"):
            return True
        if after.is_punct("*", "&", "&&"):
            if self._is_known_type(ty):
                return True
            return after2.kind is TokenKind.IDENTIFIER and after3.is_punct(";", "=", ",", "[", ")")
        if after.is_punct("(") and after2.is_punct("*") and self._is_known_type(ty):
            return True
        return False

    # ──────────────────────────────────────────────────────────────────
    #  Expressions
    # ──────────────────────────────────────────────────────────────────

    def _expression(self) -> Node:
        expr = self._assignment()
        while self._check(","):
            self._advance()
            rhs = self._assignment()
            expr = BinaryExpr(expr.span.merge(rhs.span), BinOp.COMMA, expr, rhs)
        return expr

    def _assignment(self) -> Node:
        lhs = self._conditional()
        tok = self._cur
        if tok.kind is TokenKind.PUNCTUATOR and tok.text in _ASSIGN_OPS:
            if self._angle_depth and tok.text == ">>=":
                return lhs
            self._advance()
            rhs = self._init_list() if self.cpp and self._check("{") else self._assignment()
            return AssignExpr(lhs.span.merge(rhs.span), AssignOp(tok.text), lhs, rhs)
        return lhs

    def _conditional(self) -> Node:
        cond = self._binary(1)
        if not self._check("?"):
            return cond
        self._advance()
        then = self._expression()
        self._expect(":")
        else_ = self._conditional()
        return ConditionalExpr(cond.span.merge(else_.span), cond, then, else_)

    def _binary(self, min_prec: int) -> Node:
        lhs = self._unary()
        while True:
            tok = self._cur
            if tok.kind is not TokenKind.PUNCTUATOR:
                return lhs
            info = _BINARY_OPS.get(tok.text)
            if info is None:
                return lhs
            if self._angle_depth and tok.text in (">", ">>"):
                return lhs
            prec, op = info
            if prec < min_prec:
                return lhs
            self._advance()
            rhs = self._binary(prec + 1)
            lhs = BinaryExpr(lhs.span.merge(rhs.span), op, lhs, rhs)

    def _unary(self) -> Node:
        tok = self._cur
        start = tok.span.start
        if tok.kind is TokenKind.PUNCTUATOR and tok.text in _PREFIX_OPS:
            self._advance()
            operand = self._unary()
            return UnaryExpr(self._span_from(start), _PREFIX_OPS[tok.text], operand)
        if tok.is_keyword("sizeof"):
            self._advance()
            if self._check("(") and self._type_in_parens():
                ty = self._speculate(self._parenthesized_type)
                if ty is not None:
                    return SizeofExpr(self._span_from(start), type=ty)
            operand = self._unary()
            return SizeofExpr(self._span_from(start), expr=operand)
        if tok.is_punct("(") and self._type_in_parens():
            cast = self._speculate(self._cast_expression)
            if cast is not None:
                return cast
        if tok.is_keyword("new"):
            return self._new_expression()
        if tok.is_keyword("delete"):
            self._advance()
            array = False
            if self._check("[") and self._peek(1).is_punct("]"):
                self._advance()
                self._advance()
                array = True
            operand = self._unary()
            return DeleteExpr(self._span_from(start), operand, array)
        return self._postfix(self._primary())

    def _type_in_parens(self) -> bool:
        tok = self._peek(1)
        if tok.kind is TokenKind.KEYWORD:
            return tok.text in _TYPE_START_KEYWORDS
        return tok.kind is TokenKind.IDENTIFIER and tok.text in self._type_names

    def _parenthesized_type(self) -> TypeNode:
        opener = self._advance()
        ty = self._parse_type_id()
        self._expect(")", opener)
        return ty

    def _cast_expression(self) -> Node:
        start = self._cur.span.start
        ty = self._parenthesized_type()
        operand = self._init_list() if self._check("{") else self._unary()
        return CastExpr(self._span_from(start), ty, operand)

    def _new_expression(self) -> NewExpr:
        kw = self._advance()
        specs = self._parse_decl_specifiers(_Scope("type"), allow_storage=False)
        if specs.base is None:
            raise self._error(CxxErrorCodes.EXPECTED_TYPE, f"expected a type {self._where()}", expected=["type"])
        ty = specs.base
        while self._check("*"):
            star = self._advance()
            ty = PointerType(ty.span.merge(star.span), ty)
        array_size = None
        args = None
        if self._check("["):
            opener = self._advance()
            array_size = self._expression()
            self._expect("]", opener)
        if self._check("("):
            opener = self._advance()
            args = self._call_args(opener)
        elif self._check("{"):
            args = self._init_list().items
        return NewExpr(self._span_from(kw.span.start), ty, array_size, args)

    def _postfix(self, expr: Node) -> Node:
        while True:
            tok = self._cur
            if tok.is_punct("("):
                self._advance()
                args = self._call_args(tok)
                expr = CallExpr(self._span_from(expr.span.start), expr, args)
            elif tok.is_punct("["):
                self._advance()
                index = self._nested(self._expression)
                self._expect("]", tok)
                expr = IndexExpr(self._span_from(expr.span.start), expr, index)
            elif tok.is_punct(".", "->"):
                self._advance()
                if self._check("~") and self._peek(1).kind is TokenKind.IDENTIFIER:
                    self._advance()
                    name = "~" + self._advance().text
                elif self._cur.is_keyword("operator"):
                    name = self._operator_name()
                else:
                    name = self._expect_identifier("member name").text
                expr = MemberExpr(self._span_from(expr.span.start), expr, name, tok.text == "->")
            elif tok.is_punct("++", "--"):
                self._advance()
                expr = UnaryExpr(self._span_from(expr.span.start), _PREFIX_OPS[tok.text], expr, True)
            else:
                return expr

    def _nested(self, fn: Callable[[], Node]) -> Node:
        """Run *fn* outside any template-argument context."""
        depth = self._angle_depth
        self._angle_depth = 0
        try:
            return fn()
        finally:
            self._angle_depth = depth

    def _call_args(self, opener: Token) -> Tuple[Node, ...]:
        args: List[Node] = []
        depth = self._angle_depth
        self._angle_depth = 0
        try:
            if not self._check(")"):
                while True:
                    args.append(self._initializer())
                    if not self._accept(","):
                        break
            self._expect(")", opener)
        finally:
            self._angle_depth = depth
        return tuple(args)

    def _initializer(self) -> Node:
        if self._check("{"):
            return self._init_list()
        return self._assignment()

    def _init_list(self) -> InitList:
        opener = self._expect("{")
        items: List[Node] = []
        depth = self._angle_depth
        self._angle_depth = 0
        try:
            while not self._check("}"):
                if self._cur.is_eof:
                    raise self._unterminated(opener, "}")
                items.append(self._initializer())
                if not self._accept(","):
                    break
            self._expect("}", opener)
        finally:
            self._angle_depth = depth
        return InitList(self._span_from(opener.span.start), tuple(items))

    def _primary(self) -> Node:
        tok = self._cur
        kind = tok.kind
        if kind is TokenKind.INTEGER:
            self._advance()
            return IntLiteral(tok.span, tok.value, tok.text)
        if kind is TokenKind.FLOATING:
            self._advance()
            return FloatLiteral(tok.span, tok.value, tok.text)
        if kind is TokenKind.CHARACTER:
            self._advance()
            return CharLiteral(tok.span, tok.value, tok.text)
        if kind is TokenKind.STRING:
            pieces = [self._advance()]
            while self._cur.kind is TokenKind.STRING:
                pieces.append(self._advance())
            span = pieces[0].span.merge(pieces[-1].span)
            return StringLiteral(
                span, "".join(p.value or "" for p in pieces), " ".join(p.text for p in pieces)
            )
        if kind is TokenKind.IDENTIFIER or (tok.is_punct("::") and self.cpp):
            return self._id_expression()
        if kind is TokenKind.KEYWORD:
            if tok.text in ("true", "false"):
                self._advance()
                return BoolLiteral(tok.span, tok.text == "true")
            if tok.text == "nullptr":
                self._advance()
                return NullptrLiteral(tok.span)
            if tok.text == "this":
                self._advance()
                return ThisExpr(tok.span)
        if tok.is_punct("("):
            self._advance()
            inner = self._nested(self._expression)
            self._expect(")", tok)
            return ParenExpr(self._span_from(tok.span.start), inner)
        if tok.is_punct("{") and self.cpp:
            return self._init_list()
        raise self._error(
            CxxErrorCodes.EXPECTED_EXPRESSION,
            f"expected expression {self._where()}",
            expected=["expression"],
        )

    def _id_expression(self) -> Identifier:
        start = self._cur.span.start
        parts: List[str] = []
        if self._accept("::"):
            parts.append("")
        parts.append(self._expect_identifier().text)
        while self._check("::"):
            nxt = self._peek(1)
            if nxt.kind is TokenKind.IDENTIFIER:
                self._advance()
                parts.append(self._advance().text)
            elif nxt.is_punct("~") and self._peek(2).kind is TokenKind.IDENTIFIER:
                self._advance()
                self._advance()
                parts.append("~" + self._advance().text)
            elif nxt.is_keyword("operator"):
                self._advance()
                parts.append(self._operator_name())
            else:
                break
        return Identifier(self._span_from(start), "::".join(parts))


# ═══════════════════════════════════════════════════════════════════════
#  Front door
# ═══════════════════════════════════════════════════════════════════════


@dataclass
class ParseResult:
    """Tree, diagnostics and the buffer they point into."""

    unit: TranslationUnit
    diagnostics: Diagnostics
    buffer: SourceBuffer
    mode: LanguageMode
    comments: Tuple[Token, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.diagnostics.has_errors()


def resolve_mode(buffer: SourceBuffer, config: FrontendConfig) -> LanguageMode:
    if config.mode is LanguageMode.AUTO:
        return detect_mode(buffer, config.auto_detect_window)
    return config.mode


def parse_source(
    source: Union[str, bytes, SourceBuffer],
    path: Optional[str] = None,
    config: Optional[FrontendConfig] = None,
) -> ParseResult:
    """Parse one translation unit held in memory."""
    config = config or FrontendConfig()
    problems = config.validate()
    if problems:
        raise ValueError("invalid configuration: " + "; ".join(problems))
    if isinstance(source, SourceBuffer):
        buffer = source
    elif isinstance(source, str):
        buffer = SourceBuffer.from_text(source, path)
    else:
        buffer = SourceBuffer(bytes(source), path)

    mode = resolve_mode(buffer, config)
    diagnostics = Diagnostics(config.max_errors)
    parser = Parser(buffer, mode, diagnostics, keep_comments=config.keep_comments)
    unit = parser.parse()
    logger.info(
        "parsed %s as %s: %d items, %d diagnostics (%d errors)",
        buffer.path or "<input>",
        mode.value,
        len(unit.items),
        len(diagnostics),
        diagnostics.error_count,
    )
    return ParseResult(unit, diagnostics, buffer, mode, tuple(parser.comments))


def parse_file(path: Union[str, Path], config: Optional[FrontendConfig] = None) -> ParseResult:
    """Read *path* and parse it; unreadable input raises :class:`IoError`."""
    buffer = SourceBuffer.from_file(path)
    return parse_source(buffer, config=config)
