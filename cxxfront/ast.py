"""cxxfront/ast.py – AST definitions for the C/C++ front-end.

The parser produces a tree of frozen dataclasses rooted at a
``TranslationUnit``.  Consumers treat the tree as read-only.

Design invariants
-----------------
* Every node is a frozen dataclass whose first field is its ``span``
  (a half-open byte range into the source buffer).
* A parent's span contains the span of every child; siblings appear in
  source order.
* Nodes that carry children use tuples, never lists.
* Names and literal payloads are owned ``str`` copies, so a tree may
  outlive the buffer it was parsed from.
* Types reference other declarations by name only (``NamedType``), never
  by object identity; ``struct Node { struct Node *next; }`` is acyclic.

Module layout
-------------
§1  Node base and enums
§2  Types
§3  Directive items
§4  Declarations
§5  Statements
§6  Expressions
"""

from __future__ import annotations

import functools
import re
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Iterator, Optional, Tuple, Union

from cxxfront.source import Span

# ════════════════════════════════════════════════════════════════════════
# §1  Node base and enums
# ════════════════════════════════════════════════════════════════════════


@functools.lru_cache(maxsize=None)
def _visit_name(kind: str) -> str:
    return "visit_" + re.sub(r"(?<!^)(?=[A-Z])", "_", kind).lower()


@dataclass(frozen=True, slots=True)
class Node:
    """Base for every AST node."""

    span: Span

    @property
    def kind(self) -> str:
        return type(self).__name__

    def children(self) -> Iterator["Node"]:
        """Direct child nodes in field order (which is source order)."""
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, Node):
                yield value
            elif isinstance(value, tuple):
                for item in value:
                    if isinstance(item, Node):
                        yield item

    def accept(self, visitor: Any) -> Any:
        """Dispatch to ``visitor.visit_<snake_kind>`` or ``generic_visit``."""
        method = getattr(visitor, _visit_name(self.kind), None)
        if method is None:
            return visitor.generic_visit(self)
        return method(self)


class StorageClass(Enum):
    AUTO = "auto"
    STATIC = "static"
    EXTERN = "extern"
    REGISTER = "register"


class Access(Enum):
    PUBLIC = "public"
    PROTECTED = "protected"
    PRIVATE = "private"


class BinOp(Enum):
    MUL = "*"
    DIV = "/"
    MOD = "%"
    ADD = "+"
    SUB = "-"
    SHL = "<<"
    SHR = ">>"
    LT = "<"
    GT = ">"
    LE = "<="
    GE = ">="
    EQ = "=="
    NE = "!="
    BIT_AND = "&"
    BIT_XOR = "^"
    BIT_OR = "|"
    AND = "&&"
    OR = "||"
    COMMA = ","


class UnaryOp(Enum):
    PLUS = "+"
    NEG = "-"
    NOT = "!"
    BIT_NOT = "~"
    DEREF = "*"
    ADDR = "&"
    INC = "++"
    DEC = "--"


class AssignOp(Enum):
    ASSIGN = "="
    ADD = "+="
    SUB = "-="
    MUL = "*="
    DIV = "/="
    MOD = "%="
    AND = "&="
    OR = "|="
    XOR = "^="
    SHL = "<<="
    SHR = ">>="


# ════════════════════════════════════════════════════════════════════════
# §2  Types
# ════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class NamedType(Node):
    """A builtin (``unsigned long long``) or user type name.

    ``tag`` is ``struct``/``union``/``enum``/``class`` when written with a
    tag keyword.  ``name`` is ``None`` for an anonymous aggregate, in which
    case ``definition`` is the span of that aggregate's declaration.
    """

    name: Optional[str]
    tag: Optional[str] = None
    definition: Optional[Span] = None


@dataclass(frozen=True, slots=True)
class PointerType(Node):
    inner: "TypeNode"
    const: bool = False
    volatile: bool = False


@dataclass(frozen=True, slots=True)
class ReferenceType(Node):
    inner: "TypeNode"
    rvalue: bool = False


@dataclass(frozen=True, slots=True)
class ArrayType(Node):
    inner: "TypeNode"
    size: Optional["Expr"] = None


@dataclass(frozen=True, slots=True)
class FunctionType(Node):
    """``params`` holds ``Param`` nodes and any directive lines between them."""

    ret: "TypeNode"
    params: Tuple[Node, ...] = ()
    variadic: bool = False
    qualifiers: Tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class QualifiedType(Node):
    inner: "TypeNode"
    const: bool = False
    volatile: bool = False


@dataclass(frozen=True, slots=True)
class TemplateType(Node):
    """``base<args>``; arguments are types or constant expressions."""

    base: "TypeNode"
    args: Tuple[Node, ...] = ()


@dataclass(frozen=True, slots=True)
class ScopedType(Node):
    """``scope::inner``, e.g. ``std::vector<int>``."""

    scope: str
    inner: "TypeNode"


TypeNode = Union[
    NamedType, PointerType, ReferenceType, ArrayType, FunctionType,
    QualifiedType, TemplateType, ScopedType,
]


def type_name(t: Optional[Node]) -> str:
    """Readable C-ish spelling of a type, for tags and messages."""
    if t is None:
        return ""
    if isinstance(t, NamedType):
        base = t.name or "<anonymous>"
        return f"{t.tag} {base}" if t.tag else base
    if isinstance(t, PointerType):
        cv = "".join(q for q, on in ((" const", t.const), (" volatile", t.volatile)) if on)
        return f"{type_name(t.inner)} *{cv}"
    if isinstance(t, ReferenceType):
        return f"{type_name(t.inner)} {'&&' if t.rvalue else '&'}"
    if isinstance(t, ArrayType):
        return f"{type_name(t.inner)}[]"
    if isinstance(t, FunctionType):
        params = ", ".join(type_name(p.type) for p in t.params if isinstance(p, Param))
        return f"{type_name(t.ret)} ({params})"
    if isinstance(t, QualifiedType):
        cv = " ".join(q for q, on in (("const", t.const), ("volatile", t.volatile)) if on)
        return f"{cv} {type_name(t.inner)}"
    if isinstance(t, TemplateType):
        args = ", ".join(type_name(a) if not _is_expr(a) else "..." for a in t.args)
        return f"{type_name(t.base)}<{args}>"
    if isinstance(t, ScopedType):
        return f"{t.scope}::{type_name(t.inner)}"
    return t.kind


# ════════════════════════════════════════════════════════════════════════
# §3  Directive items
# ════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class IncludeDirective(Node):
    path: str
    is_system: bool = False


@dataclass(frozen=True, slots=True)
class DefineDirective(Node):
    """``params`` is ``None`` for an object-like macro."""

    name: str
    params: Optional[Tuple[str, ...]] = None
    replacement: str = ""


@dataclass(frozen=True, slots=True)
class ConditionalDirective(Node):
    directive: str  # ifndef, ifdef, if, elif, else, endif
    condition: Optional[str] = None


@dataclass(frozen=True, slots=True)
class OtherDirective(Node):
    name: str
    text: str = ""


DirectiveItem = Union[IncludeDirective, DefineDirective, ConditionalDirective, OtherDirective]


# ════════════════════════════════════════════════════════════════════════
# §4  Declarations
# ════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Enumerator(Node):
    """``value`` is the folded constant, or ``None`` when it cannot be folded."""

    name: str
    value: Optional[int] = None
    init: Optional["Expr"] = None


@dataclass(frozen=True, slots=True)
class EnumDecl(Node):
    """``entries`` is ``None`` for a forward declaration; directive lines
    inside the braces appear among the enumerators."""

    name: Optional[str]
    underlying: Optional[TypeNode] = None
    entries: Optional[Tuple[Node, ...]] = None
    scoped: bool = False

    @property
    def is_forward(self) -> bool:
        return self.entries is None


@dataclass(frozen=True, slots=True)
class FieldDecl(Node):
    name: Optional[str]
    type: TypeNode
    bit_width: Optional["Expr"] = None
    default: Optional["Expr"] = None
    access: Optional[Access] = None
    storage_class: StorageClass = StorageClass.AUTO


@dataclass(frozen=True, slots=True)
class StructDecl(Node):
    """A C aggregate.  ``fields is None`` marks a forward declaration."""

    name: Optional[str]
    fields: Optional[Tuple[Node, ...]] = None
    is_union: bool = False

    @property
    def is_forward(self) -> bool:
        return self.fields is None


@dataclass(frozen=True, slots=True)
class BaseSpecifier(Node):
    access: Access
    base: TypeNode
    virtual: bool = False


@dataclass(frozen=True, slots=True)
class ClassDecl(Node):
    """A C++ class, or a struct/union with a base list, access labels or methods."""

    name: Optional[str]
    bases: Tuple[BaseSpecifier, ...] = ()
    members: Optional[Tuple[Node, ...]] = None
    is_struct: bool = False
    is_union: bool = False

    @property
    def is_forward(self) -> bool:
        return self.members is None


@dataclass(frozen=True, slots=True)
class TypedefDecl(Node):
    name: str
    aliased_type: TypeNode


@dataclass(frozen=True, slots=True)
class Param(Node):
    name: Optional[str]
    type: TypeNode
    default: Optional["Expr"] = None


@dataclass(frozen=True, slots=True)
class MemberInit(Node):
    """One ``name(args)`` entry of a constructor initializer list."""

    name: str
    args: Tuple["Expr", ...] = ()


@dataclass(frozen=True, slots=True)
class FunctionDecl(Node):
    """A function declaration, or a definition when ``body`` is present.

    ``return_type`` is ``None`` for constructors, destructors and
    conversion operators.  ``qualifiers`` holds trailing qualifiers in
    source order (``const``, ``override``, ``final``, ``noexcept``,
    ``pure``, ``default``, ``delete``); ``specifiers`` holds leading ones
    (``static``, ``extern``, ``inline``, ``virtual``, ``explicit``,
    ``friend``).  Directive lines inside the parameter list, or between
    the declarator and the body, are kept in ``params`` (or in
    ``initializers`` when there is a member initializer list).
    """

    name: str
    return_type: Optional[TypeNode]
    params: Tuple[Node, ...] = ()
    initializers: Tuple[Node, ...] = ()
    body: Optional["CompoundStmt"] = None
    qualifiers: Tuple[str, ...] = ()
    specifiers: Tuple[str, ...] = ()
    variadic: bool = False
    access: Optional[Access] = None

    @property
    def is_definition(self) -> bool:
        return self.body is not None


@dataclass(frozen=True, slots=True)
class VarDecl(Node):
    name: str
    type: TypeNode
    init: Optional["Expr"] = None
    storage_class: StorageClass = StorageClass.AUTO


@dataclass(frozen=True, slots=True)
class NamespaceDecl(Node):
    name: Optional[str]
    items: Tuple[Node, ...] = ()


@dataclass(frozen=True, slots=True)
class TemplateParam(Node):
    """``typename T``/``class T`` (``type is None``) or a value parameter."""

    name: Optional[str]
    type: Optional[TypeNode] = None
    default: Optional[Node] = None


@dataclass(frozen=True, slots=True)
class TemplateDecl(Node):
    params: Tuple[TemplateParam, ...]
    inner: Node


@dataclass(frozen=True, slots=True)
class UsingDirective(Node):
    """``using namespace X;`` (``is_namespace``) or ``using X::y;``."""

    name: str
    is_namespace: bool = True


@dataclass(frozen=True, slots=True)
class LinkageDecl(Node):
    """``extern "C" { ... }`` or ``extern "C" decl``."""

    language: str
    items: Tuple[Node, ...] = ()


@dataclass(frozen=True, slots=True)
class TranslationUnit(Node):
    items: Tuple[Node, ...] = ()
    path: Optional[str] = None
    mode: str = "cpp"


# ════════════════════════════════════════════════════════════════════════
# §5  Statements
# ════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CompoundStmt(Node):
    items: Tuple[Node, ...] = ()


@dataclass(frozen=True, slots=True)
class ExprStmt(Node):
    expr: "Expr"


@dataclass(frozen=True, slots=True)
class ReturnStmt(Node):
    value: Optional["Expr"] = None


@dataclass(frozen=True, slots=True)
class IfStmt(Node):
    cond: "Expr"
    then: Node
    else_: Optional[Node] = None


@dataclass(frozen=True, slots=True)
class ForStmt(Node):
    """``init`` is a ``DeclStmt`` or an expression."""

    init: Optional[Node]
    cond: Optional["Expr"]
    step: Optional["Expr"]
    body: Node


@dataclass(frozen=True, slots=True)
class WhileStmt(Node):
    cond: "Expr"
    body: Node


@dataclass(frozen=True, slots=True)
class DoWhileStmt(Node):
    body: Node
    cond: "Expr"


@dataclass(frozen=True, slots=True)
class SwitchStmt(Node):
    cond: "Expr"
    body: Node


@dataclass(frozen=True, slots=True)
class CaseStmt(Node):
    """A ``case value:`` label, or ``default:`` when ``value is None``."""

    value: Optional["Expr"] = None


@dataclass(frozen=True, slots=True)
class BreakStmt(Node):
    pass


@dataclass(frozen=True, slots=True)
class ContinueStmt(Node):
    pass


@dataclass(frozen=True, slots=True)
class NullStmt(Node):
    pass


@dataclass(frozen=True, slots=True)
class DeclStmt(Node):
    decls: Tuple[Node, ...] = ()


Stmt = Union[
    CompoundStmt, ExprStmt, ReturnStmt, IfStmt, ForStmt, WhileStmt,
    DoWhileStmt, SwitchStmt, CaseStmt, BreakStmt, ContinueStmt, NullStmt,
    DeclStmt,
]


# ════════════════════════════════════════════════════════════════════════
# §6  Expressions
# ════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class IntLiteral(Node):
    value: Optional[int]
    text: str = ""


@dataclass(frozen=True, slots=True)
class FloatLiteral(Node):
    value: Optional[float]
    text: str = ""


@dataclass(frozen=True, slots=True)
class StringLiteral(Node):
    """Adjacent literals are merged; ``value`` is the decoded concatenation."""

    value: str
    text: str = ""


@dataclass(frozen=True, slots=True)
class CharLiteral(Node):
    value: str
    text: str = ""


@dataclass(frozen=True, slots=True)
class BoolLiteral(Node):
    value: bool


@dataclass(frozen=True, slots=True)
class NullptrLiteral(Node):
    pass


@dataclass(frozen=True, slots=True)
class ThisExpr(Node):
    pass


@dataclass(frozen=True, slots=True)
class Identifier(Node):
    """A possibly qualified name, e.g. ``x`` or ``std::cout``."""

    name: str


@dataclass(frozen=True, slots=True)
class UnaryExpr(Node):
    op: UnaryOp
    operand: "Expr"
    postfix: bool = False


@dataclass(frozen=True, slots=True)
class BinaryExpr(Node):
    op: BinOp
    lhs: "Expr"
    rhs: "Expr"


@dataclass(frozen=True, slots=True)
class AssignExpr(Node):
    op: AssignOp
    target: "Expr"
    value: "Expr"


@dataclass(frozen=True, slots=True)
class ConditionalExpr(Node):
    cond: "Expr"
    then: "Expr"
    else_: "Expr"


@dataclass(frozen=True, slots=True)
class CallExpr(Node):
    callee: "Expr"
    args: Tuple["Expr", ...] = ()


@dataclass(frozen=True, slots=True)
class IndexExpr(Node):
    base: "Expr"
    index: "Expr"


@dataclass(frozen=True, slots=True)
class MemberExpr(Node):
    base: "Expr"
    name: str
    arrow: bool = False


@dataclass(frozen=True, slots=True)
class CastExpr(Node):
    type: TypeNode
    expr: "Expr"


@dataclass(frozen=True, slots=True)
class SizeofExpr(Node):
    """``sizeof(type)`` sets ``type``; ``sizeof expr`` sets ``expr``."""

    type: Optional[TypeNode] = None
    expr: Optional["Expr"] = None


@dataclass(frozen=True, slots=True)
class ParenExpr(Node):
    expr: "Expr"


@dataclass(frozen=True, slots=True)
class InitList(Node):
    items: Tuple["Expr", ...] = ()


@dataclass(frozen=True, slots=True)
class NewExpr(Node):
    type: TypeNode
    array_size: Optional["Expr"] = None
    args: Optional[Tuple["Expr", ...]] = None


@dataclass(frozen=True, slots=True)
class DeleteExpr(Node):
    operand: "Expr"
    array: bool = False


Expr = Union[
    IntLiteral, FloatLiteral, StringLiteral, CharLiteral, BoolLiteral,
    NullptrLiteral, ThisExpr, Identifier, UnaryExpr, BinaryExpr, AssignExpr,
    ConditionalExpr, CallExpr, IndexExpr, MemberExpr, CastExpr, SizeofExpr,
    ParenExpr, InitList, NewExpr, DeleteExpr,
]

_EXPR_TYPES = (
    IntLiteral, FloatLiteral, StringLiteral, CharLiteral, BoolLiteral,
    NullptrLiteral, ThisExpr, Identifier, UnaryExpr, BinaryExpr, AssignExpr,
    ConditionalExpr, CallExpr, IndexExpr, MemberExpr, CastExpr, SizeofExpr,
    ParenExpr, InitList, NewExpr, DeleteExpr,
)


def _is_expr(node: Any) -> bool:
    return isinstance(node, _EXPR_TYPES)


def is_expression(node: Any) -> bool:
    return _is_expr(node)
