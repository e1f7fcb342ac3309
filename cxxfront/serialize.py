# cxxfront/serialize.py
"""
Stable textual dumps of the AST for golden-file testing.

Every node becomes ``{kind, span: [start, end], <fields>}``:

* JSON — a dict with ``"kind"`` and ``"span"`` first, then fields in
  declaration order.
* S-expression — ``(Kind :span (0 10) :name "x" ...)`` written with
  ``sexpdata``; ``None`` is ``nil``, booleans are ``true``/``false``.

Enum fields are written as their spelling (``"static"``, ``"+"``), spans as
two-element lists and child tuples as lists.
"""

from __future__ import annotations

import json
from dataclasses import fields
from enum import Enum
from typing import Any, Dict, List, Optional

import sexpdata
from sexpdata import Symbol

from cxxfront.ast import Node
from cxxfront.source import Span

__all__ = ["to_dict", "to_json", "to_sexp", "dump", "DUMP_FORMATS"]

DUMP_FORMATS = ("sexp", "json", "none")


def _plain(value: Any) -> Any:
    if isinstance(value, Node):
        return to_dict(value)
    if isinstance(value, Span):
        return value.to_list()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (tuple, list)):
        return [_plain(v) for v in value]
    return value


def to_dict(node: Node) -> Dict[str, Any]:
    """Convert *node* and its subtree to plain dicts, lists and scalars."""
    out: Dict[str, Any] = {"kind": node.kind, "span": node.span.to_list()}
    for f in fields(node):
        if f.name == "span":
            continue
        out[f.name] = _plain(getattr(node, f.name))
    return out


def to_json(node: Node, indent: Optional[int] = 2) -> str:
    return json.dumps(to_dict(node), indent=indent)


def _sexp_value(value: Any) -> Any:
    if isinstance(value, Node):
        return _sexp_node(value)
    if isinstance(value, Span):
        return value.to_list()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (tuple, list)):
        return [_sexp_value(v) for v in value]
    return value


def _sexp_node(node: Node) -> List[Any]:
    form: List[Any] = [Symbol(node.kind), Symbol(":span"), node.span.to_list()]
    for f in fields(node):
        if f.name == "span":
            continue
        form.append(Symbol(":" + f.name))
        form.append(_sexp_value(getattr(node, f.name)))
    return form


def to_sexp(node: Node) -> str:
    """Render *node* as a single S-expression."""
    return sexpdata.dumps(_sexp_node(node), true_as="true", false_as="false", none_as="nil")


def dump(node: Node, fmt: str) -> str:
    """Dump in one of :data:`DUMP_FORMATS`; ``none`` gives an empty string."""
    if fmt == "sexp":
        return to_sexp(node)
    if fmt == "json":
        return to_json(node)
    if fmt == "none":
        return ""
    raise ValueError(f"unknown dump format {fmt!r} (expected one of {', '.join(DUMP_FORMATS)})")
