# tests/test_serialize.py
"""
Tests for the JSON and S-expression tree dumps.
"""

import json

import pytest

from cxxfront.serialize import DUMP_FORMATS, dump, to_dict, to_json, to_sexp
from tests.conftest import ADD_FUNCTION_C, parse_c


class TestToDict:

    def test_kind_and_span_first(self):
        unit = parse_c("int x;").unit
        d = to_dict(unit)
        assert list(d)[:2] == ["kind", "span"]
        assert d["kind"] == "TranslationUnit"
        assert d["span"] == [0, 6]
        assert d["path"] == "test.c"
        assert d["mode"] == "c"

    def test_fields(self):
        (var,) = to_dict(parse_c("static int x = 1;").unit)["items"]
        assert var["kind"] == "VarDecl"
        assert var["name"] == "x"
        assert var["storage_class"] == "static"
        assert var["type"] == {"kind": "NamedType", "span": [7, 10], "name": "int", "tag": None, "definition": None}
        assert var["init"]["value"] == 1

    def test_operators_as_spelling(self):
        fn = to_dict(parse_c(ADD_FUNCTION_C).unit)["items"][0]
        ret = fn["body"]["items"][0]
        assert ret["value"]["kind"] == "BinaryExpr"
        assert ret["value"]["op"] == "+"

    def test_anonymous_definition_is_span(self):
        struct, alias = to_dict(parse_c("typedef struct { int a; } T;").unit)["items"]
        assert alias["aliased_type"]["definition"] == struct["span"]


class TestToJson:

    def test_loads_back_to_dict(self):
        unit = parse_c(ADD_FUNCTION_C).unit
        assert json.loads(to_json(unit)) == to_dict(unit)

    def test_compact(self):
        text = to_json(parse_c("int x;").unit, indent=None)
        assert "\n" not in text
        assert text.startswith('{"kind": "TranslationUnit", "span": [0, 6]')


class TestToSexp:

    def test_shape(self):
        text = to_sexp(parse_c("int x;").unit)
        assert text.startswith("(TranslationUnit :span (0 6) :items ((VarDecl :span (0 6)")
        assert ':name "x"' in text
        assert text.endswith(':path "test.c" :mode "c")')

    def test_nil(self):
        text = to_sexp(parse_c("int x;").unit)
        assert ":tag nil" in text
        assert ":init nil" in text

    def test_booleans(self):
        text = to_sexp(parse_c("union U { int i; };").unit)
        assert ":is_union true" in text
        text = to_sexp(parse_c("struct S { int i; };").unit)
        assert ":is_union false" in text

    def test_string_quoted(self):
        text = to_sexp(parse_c('char *s = "hi";').unit)
        assert ':value "hi"' in text


class TestDump:

    def test_formats(self):
        assert DUMP_FORMATS == ("sexp", "json", "none")

    @pytest.mark.parametrize("fmt,prefix", [("sexp", "(TranslationUnit"), ("json", "{")])
    def test_dispatch(self, fmt, prefix):
        assert dump(parse_c("int x;").unit, fmt).startswith(prefix)

    def test_none_is_empty(self):
        assert dump(parse_c("int x;").unit, "none") == ""

    def test_unknown_format(self):
        with pytest.raises(ValueError, match="unknown dump format"):
            dump(parse_c("int x;").unit, "xml")
