# cxxfront/consteval.py
"""Integer constant folding for enumerator initializers.

Only what appears in enum bodies is handled: integer and character
literals, parentheses, casts, unary and binary arithmetic, comparisons,
the conditional operator, and references to enumerators folded earlier.
Anything else (macros, ``sizeof``, calls) folds to ``None``.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Mapping, Optional

from cxxfront.ast import (
    BinaryExpr,
    BinOp,
    BoolLiteral,
    CastExpr,
    CharLiteral,
    ConditionalExpr,
    Identifier,
    IntLiteral,
    Node,
    ParenExpr,
    UnaryExpr,
    UnaryOp,
)

logger = logging.getLogger(__name__)

__all__ = ["fold", "EnumCounter"]


def _c_div(a: int, b: int) -> Optional[int]:
    if b == 0:
        return None
    q = abs(a) // abs(b)
    return q if (a < 0) == (b < 0) else -q


def _c_mod(a: int, b: int) -> Optional[int]:
    q = _c_div(a, b)
    return None if q is None else a - b * q


_BINARY: Dict[BinOp, Callable[[int, int], Optional[int]]] = {
    BinOp.MUL: lambda a, b: a * b,
    BinOp.DIV: _c_div,
    BinOp.MOD: _c_mod,
    BinOp.ADD: lambda a, b: a + b,
    BinOp.SUB: lambda a, b: a - b,
    BinOp.SHL: lambda a, b: a << b if b >= 0 else None,
    BinOp.SHR: lambda a, b: a >> b if b >= 0 else None,
    BinOp.LT: lambda a, b: int(a < b),
    BinOp.GT: lambda a, b: int(a > b),
    BinOp.LE: lambda a, b: int(a <= b),
    BinOp.GE: lambda a, b: int(a >= b),
    BinOp.EQ: lambda a, b: int(a == b),
    BinOp.NE: lambda a, b: int(a != b),
    BinOp.BIT_AND: lambda a, b: a & b,
    BinOp.BIT_XOR: lambda a, b: a ^ b,
    BinOp.BIT_OR: lambda a, b: a | b,
    BinOp.AND: lambda a, b: int(bool(a) and bool(b)),
    BinOp.OR: lambda a, b: int(bool(a) or bool(b)),
    BinOp.COMMA: lambda a, b: b,
}


def fold(expr: Optional[Node], env: Optional[Mapping[str, Optional[int]]] = None) -> Optional[int]:
    """Evaluate *expr* as an integer constant, or return ``None``.

    *env* maps names (earlier enumerators) to their values.
    """
    if expr is None:
        return None
    env = env or {}

    if isinstance(expr, IntLiteral):
        return expr.value
    if isinstance(expr, CharLiteral):
        return ord(expr.value) if len(expr.value) == 1 else None
    if isinstance(expr, BoolLiteral):
        return int(expr.value)
    if isinstance(expr, ParenExpr):
        return fold(expr.expr, env)
    if isinstance(expr, CastExpr):
        return fold(expr.expr, env)
    if isinstance(expr, Identifier):
        return env.get(expr.name)

    if isinstance(expr, UnaryExpr):
        value = fold(expr.operand, env)
        if value is None:
            return None
        if expr.op is UnaryOp.PLUS:
            return value
        if expr.op is UnaryOp.NEG:
            return -value
        if expr.op is UnaryOp.NOT:
            return int(not value)
        if expr.op is UnaryOp.BIT_NOT:
            return ~value
        return None

    if isinstance(expr, BinaryExpr):
        lhs = fold(expr.lhs, env)
        rhs = fold(expr.rhs, env)
        if lhs is None or rhs is None:
            return None
        return _BINARY[expr.op](lhs, rhs)

    if isinstance(expr, ConditionalExpr):
        cond = fold(expr.cond, env)
        if cond is None:
            return None
        return fold(expr.then if cond else expr.else_, env)

    return None


class EnumCounter:
    """Assigns enumerator values in declaration order.

    An explicit initializer resets the counter to its folded value; an
    implicit entry takes predecessor + 1, starting from 0.  Once a value
    cannot be folded, later implicit entries are ``None`` until the next
    foldable initializer.
    """

    def __init__(self) -> None:
        self._last: Optional[int] = -1
        self.env: Dict[str, Optional[int]] = {}

    def next(self, name: str, init: Optional[Node]) -> Optional[int]:
        if init is not None:
            value = fold(init, self.env)
            if value is None:
                logger.debug("enumerator %s: initializer is not a constant", name)
        elif self._last is None:
            value = None
        else:
            value = self._last + 1
        self._last = value
        self.env[name] = value
        return value
