#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
cxxfront/visitor.py
===================

Visitor infrastructure for traversing the C/C++ AST.

Provides:
- ``ASTVisitor`` — base with ``visit_<kind>`` dispatch and a no-op fallback
- ``DepthFirstVisitor`` — visits every node, with ``enter``/``leave`` hooks
- ``walk`` / ``find_all`` — generator helpers for ad-hoc queries
"""

from __future__ import annotations

from typing import Any, Iterator, List, Type, TypeVar

from cxxfront.ast import Node

__all__ = ["ASTVisitor", "DepthFirstVisitor", "walk", "find_all"]

N = TypeVar("N", bound=Node)


class ASTVisitor:
    """Base class for AST visitors.

    ``visit`` dispatches on the node's class: ``FunctionDecl`` goes to
    ``visit_function_decl``, ``IfStmt`` to ``visit_if_stmt`` and so on.
    Node kinds without a method fall through to ``generic_visit``, which
    does nothing.  Subclasses define only the methods they care about.
    """

    def visit(self, node: Node) -> Any:
        """Dispatch to the appropriate visit method."""
        return node.accept(self)

    def generic_visit(self, node: Node) -> Any:
        """Called when no specific visitor method exists.

        Default: return None.  Override for catch-all behavior.
        """
        return None

    def visit_children(self, node: Node) -> List[Any]:
        return [self.visit(child) for child in node.children()]


class DepthFirstVisitor(ASTVisitor):
    """Visitor that traverses all children in depth-first, source order.

    Override ``enter`` / ``leave`` for pre/post-order processing.  A
    ``visit_X`` override replaces traversal below that node kind; call
    ``generic_visit`` from it to keep descending.
    """

    def visit(self, node: Node) -> Any:
        self.enter(node)
        result = node.accept(self)
        self.leave(node)
        return result

    def generic_visit(self, node: Node) -> Any:
        """Visit all children."""
        for child in node.children():
            self.visit(child)
        return None

    # Hook methods for subclasses

    def enter(self, node: Node) -> None:
        """Called before visiting children."""
        pass

    def leave(self, node: Node) -> None:
        """Called after visiting children."""
        pass


def walk(node: Node) -> Iterator[Node]:
    """Yield *node* and all its descendants in pre-order."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(list(current.children())))


def find_all(node: Node, *kinds: Type[N]) -> List[N]:
    """Every descendant of *node* (inclusive) that is an instance of *kinds*."""
    return [n for n in walk(node) if isinstance(n, kinds)]
