# tests/test_directives.py
"""
Tests for directive payload parsing and the directive-aware token filter.
"""

import pytest

from cxxfront.ast import ConditionalDirective, DefineDirective, IncludeDirective, OtherDirective
from cxxfront.directives import DIRECTIVE_GRAMMAR, DirectiveFilter, parse_directive
from cxxfront.errors import CxxErrorCodes, Diagnostics
from cxxfront.lexer import Lexer
from cxxfront.source import SourceBuffer, Span
from cxxfront.tokens import Token, TokenKind


def _directive(payload):
    text = "#" + payload
    return Token(TokenKind.DIRECTIVE, Span(0, len(text)), text, payload)


class TestDirectiveGrammar:

    @pytest.mark.parametrize("payload", [
        "include <stdio.h>",
        'include "a/b.h"',
        "define X 1",
        "define F(a, b) a + b",
        "ifdef X",
        "endif",
        "pragma once",
    ])
    def test_accepts(self, payload):
        assert DIRECTIVE_GRAMMAR.parse(payload) is not None


class TestParseDirective:

    def test_system_include(self):
        item = parse_directive(_directive("include <stdlib.h>"))
        assert isinstance(item, IncludeDirective)
        assert item.path == "stdlib.h"
        assert item.is_system

    def test_quoted_include(self):
        item = parse_directive(_directive('include "../my_lib/my_lib_header.h"'))
        assert isinstance(item, IncludeDirective)
        assert item.path == "../my_lib/my_lib_header.h"
        assert not item.is_system

    def test_object_like_define(self):
        item = parse_directive(_directive("define DAYS_IN_YEAR 365"))
        assert isinstance(item, DefineDirective)
        assert item.name == "DAYS_IN_YEAR"
        assert item.params is None
        assert item.replacement == "365"

    def test_function_like_define(self):
        item = parse_directive(_directive("define ADD(a, b) ((a) + (b))"))
        assert item.name == "ADD"
        assert item.params == ("a", "b")
        assert item.replacement == "((a) + (b))"

    def test_define_without_replacement(self):
        item = parse_directive(_directive("define EXAMPLE_H"))
        assert item.name == "EXAMPLE_H"
        assert item.replacement == ""

    def test_variadic_define(self):
        item = parse_directive(_directive("define LOG(fmt, ...) printf(fmt)"))
        assert item.params == ("fmt", "...")

    @pytest.mark.parametrize("payload,directive,condition", [
        ("ifndef EXAMPLE_H", "ifndef", "EXAMPLE_H"),
        ("ifdef DEBUG", "ifdef", "DEBUG"),
        ("if X > 2", "if", "X > 2"),
        ("elif defined(Y)", "elif", "defined(Y)"),
        ("else", "else", None),
        ("endif", "endif", None),
    ])
    def test_conditionals(self, payload, directive, condition):
        item = parse_directive(_directive(payload))
        assert isinstance(item, ConditionalDirective)
        assert item.directive == directive
        assert item.condition == condition

    def test_other(self):
        item = parse_directive(_directive("pragma once"))
        assert isinstance(item, OtherDirective)
        assert item.name == "pragma"
        assert item.text == "once"

    def test_keyword_prefix_is_other(self):
        item = parse_directive(_directive("ifdefined X"))
        assert isinstance(item, OtherDirective)
        assert item.name == "ifdefined"

    def test_null_directive(self):
        item = parse_directive(Token(TokenKind.DIRECTIVE, Span(0, 1), "#", ""))
        assert isinstance(item, OtherDirective)
        assert item.name == ""

    def test_malformed_include_warns(self):
        diags = Diagnostics()
        item = parse_directive(_directive("include"), diags)
        assert isinstance(item, OtherDirective)
        assert item.name == "include"
        assert diags[0].code == CxxErrorCodes.MALFORMED_DIRECTIVE
        assert not diags.has_errors()

    def test_span_is_token_span(self):
        tok = _directive("define X 1")
        assert parse_directive(tok).span == tok.span


class TestDirectiveFilter:

    def _filter(self, text, keep_comments=False):
        buf = SourceBuffer.from_text(text)
        return DirectiveFilter(Lexer(buf, keep_comments=keep_comments).tokens())

    def test_directives_removed_from_stream(self):
        filt = self._filter("#define X 1\nint y;\n")
        assert [t.text for t in filt] == ["int", "y", ";", ""]
        assert filt.directive_count == 1

    def test_anchor_is_next_token_index(self):
        filt = self._filter("int a;\n#define X 1\nint b;\n")
        toks = list(filt)
        assert filt.take(2) == []
        items = filt.take(3)
        assert len(items) == 1
        assert items[0].name == "X"
        assert toks[3].text == "int"

    def test_take_all(self):
        filt = self._filter("int a;\n#endif\n")
        list(filt)
        assert [i.directive for i in filt.take_all()] == ["endif"]
        assert not filt.has_pending

    def test_comments_collected(self):
        filt = self._filter("/* c */ int a; // d\n", keep_comments=True)
        assert [t.text for t in filt] == ["int", "a", ";", ""]
        assert [c.text for c in filt.comments] == ["/* c */", "// d"]

    def test_rewind_returns_items(self):
        filt = self._filter("#if A\nint a;\n#endif\nint b;\n")
        list(filt)
        saved = filt.checkpoint()
        assert [i.directive for i in filt.take(3)] == ["if", "endif"]
        assert not filt.has_pending
        filt.rewind(saved)
        assert filt.has_pending
        assert [i.directive for i in filt.take(0)] == ["if"]
        assert [i.directive for i in filt.take_all()] == ["endif"]
