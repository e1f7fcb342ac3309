# tests/test_tags.py
"""
Tests for Vi-compatible tag generation.
"""

import os

import pytest

from cxxfront.tags import (
    Tag,
    TagExtras,
    collect_tags,
    escape_address,
    find_sources,
    format_tags,
    is_excluded,
    merge_tags,
    parse_tag_line,
    read_tags,
)
from tests.conftest import parse_c, parse_cpp

C_SAMPLE = """\
#include <stdio.h>
#define N 4
enum color { RED, GREEN };
struct point {
  int x;
  int y;
};
typedef struct point point_t;
int count;
extern int total;
int area(int w);
int area(int w)
{
  int r = w;
  return r;
}
"""

CPP_SAMPLE = """\
namespace Baz {
void foo() {}
}
class Dog {
  int weight;
public:
  void bark();
};
void Dog::bark()
{
}
"""


def _tags(result):
    return {(t.name, t.kind): t for t in collect_tags(result.unit, result.buffer)}


class TestEscapeAddress:

    def test_plain(self):
        assert escape_address("int x;") == "int x;"

    def test_specials(self):
        assert escape_address("a/b^c$d\\e") == "a\\/b\\^c\\$d\\\\e"


class TestTag:

    def test_to_line(self):
        tag = Tag("main", "x.c", 3, "int main(void)", "f", (("end", "5"),))
        assert tag.to_line() == 'main\tx.c\t/^int main(void)$/;"\tf\tline:3\tend:5'

    def test_address_is_escaped(self):
        tag = Tag("p", "x.c", 1, "char *p = \"/\";", "v")
        assert tag.address == '/^char *p = "\\/";$/;"'

    def test_field_lookup(self):
        tag = Tag("x", "x.c", 5, "  int x;", "m", (("struct", "point"),))
        assert tag.field("struct") == "point"
        assert tag.field("access") is None


class TestCollectC:

    @pytest.fixture(scope="class")
    def tags(self):
        return _tags(parse_c(C_SAMPLE))

    @pytest.mark.parametrize("name,kind,line", [
        ("stdio.h", "h", 1),
        ("N", "d", 2),
        ("color", "g", 3),
        ("RED", "e", 3),
        ("point", "s", 4),
        ("x", "m", 5),
        ("point_t", "t", 8),
        ("count", "v", 9),
        ("total", "x", 10),
        ("area", "p", 11),
        ("area", "f", 12),
        ("r", "l", 14),
    ])
    def test_kinds_and_lines(self, tags, name, kind, line):
        assert tags[(name, kind)].line == line

    def test_filename_from_buffer(self, tags):
        assert tags[("count", "v")].file == "test.c"

    def test_scopes(self, tags):
        assert tags[("GREEN", "e")].fields == (("enum", "color"),)
        assert tags[("y", "m")].fields == (("struct", "point"),)

    def test_end_line(self, tags):
        assert tags[("point", "s")].field("end") == "7"
        assert tags[("area", "f")].field("end") == "16"
        assert tags[("color", "g")].field("end") is None
        assert tags[("area", "p")].field("end") is None

    def test_parameters_not_tagged(self, tags):
        assert ("w", "l") not in tags
        assert ("w", "v") not in tags

    def test_source_line_text(self, tags):
        assert tags[("count", "v")].text == "int count;"

    def test_anonymous_aggregate_named_by_typedef(self):
        tags = _tags(parse_c("typedef struct {\n  int w;\n} rect;\n"))
        assert tags[("w", "m")].fields == (("struct", "rect"),)
        assert ("rect", "t") in tags
        assert not any(kind == "s" for _, kind in tags)

    def test_macro_in_parameter_list(self):
        tags = _tags(parse_c("int f(int a,\n#define WIDTH 2\n      int b);\n"))
        assert tags[("WIDTH", "d")].line == 2
        assert ("f", "p") in tags

    def test_forward_declarations_skipped(self):
        assert _tags(parse_c("struct S;\nenum E;\n")) == {}


class TestCollectCpp:

    @pytest.fixture(scope="class")
    def tags(self):
        return _tags(parse_cpp(CPP_SAMPLE))

    def test_namespace(self, tags):
        ns = tags[("Baz", "n")]
        assert ns.line == 1
        assert ns.field("end") == "3"
        assert tags[("foo", "f")].fields == (("namespace", "Baz"),)

    def test_class_members(self, tags):
        assert tags[("Dog", "c")].field("end") == "8"
        assert tags[("weight", "m")].fields == (("class", "Dog"), ("access", "private"))
        assert tags[("bark", "p")].fields == (("class", "Dog"), ("access", "public"))

    def test_qualified_definition(self, tags):
        bark = tags[("bark", "f")]
        assert bark.line == 9
        assert bark.fields == (("class", "Dog"), ("end", "11"))

    def test_nested_scope_joined(self):
        tags = _tags(parse_cpp("namespace A {\nstruct S { int v; };\n}\n"))
        assert tags[("S", "s")].field("namespace") == "A"
        assert tags[("v", "m")].fields == (("struct", "A::S"), ("access", "public"))


class TestFixtureTags:

    def test_c_fixture(self, c_result):
        tags = _tags(c_result)
        assert tags[("SUN", "e")].field("enum") == "days"
        assert tags[("DAYS_IN_YEAR", "d")].line == 3
        assert tags[("stdlib.h", "h")].line == 7
        assert tags[("main", "f")].field("end") == "50"
        assert tags[("i", "x")].line == 66
        assert tags[("f", "l")].line == 126
        assert tags[("my_fnp_type", "t")].line == 131
        assert tags[("anonymous_struct_var", "v")].line == 84

    def test_cpp_fixture(self, cpp_result):
        tags = _tags(cpp_result)
        assert tags[("Baz", "n")].line == 17
        assert tags[("Dog", "c")].line == 44
        assert tags[("setName", "p")].fields == (("class", "Dog"), ("access", "public"))
        assert tags[("setName", "f")].line == 93
        assert tags[("OwnedDog", "c")].line == 113


class TestFormatTags:

    def test_sorted_and_terminated(self):
        tags = [
            Tag("b", "x.c", 2, "int b;", "v"),
            Tag("a", "y.c", 1, "int a;", "v"),
            Tag("a", "x.c", 9, "int a;", "v"),
        ]
        lines = format_tags(tags).split("\n")
        assert lines[-1] == ""
        assert [ln.split("\t")[:2] for ln in lines[:-1]] == [["a", "x.c"], ["a", "y.c"], ["b", "x.c"]]

    def test_empty(self):
        assert format_tags([]) == ""

    def test_unsorted_keeps_order(self):
        tags = [Tag("zeta", "x.c", 1, "int zeta;", "v"), Tag("alpha", "x.c", 2, "int alpha;", "v")]
        assert [ln.split("\t")[0] for ln in format_tags(tags, sort=False).splitlines()] == ["zeta", "alpha"]


class TestQualifiedTags:

    @pytest.fixture(scope="class")
    def tags(self):
        result = parse_cpp(CPP_SAMPLE)
        return {(t.name, t.kind): t for t in collect_tags(result.unit, result.buffer, qualified=True)}

    def test_scoped_names(self, tags):
        assert tags[("Baz::foo", "f")].line == 2
        assert tags[("Dog::weight", "m")].fields == (("class", "Dog"), ("access", "private"))
        assert ("Dog::bark", "p") in tags
        assert tags[("Dog::bark", "f")].line == 9

    def test_plain_names_kept(self, tags):
        assert ("foo", "f") in tags
        assert ("bark", "f") in tags

    def test_top_level_not_doubled(self, tags):
        assert not any(name.startswith("::") for name, _ in tags)
        assert ("Dog", "c") in tags

    def test_off_by_default(self):
        result = parse_cpp(CPP_SAMPLE)
        assert not any("::" in t.name for t in collect_tags(result.unit, result.buffer))


class TestTagExtras:

    @pytest.mark.parametrize("raw,qualified", [
        ("+q", True),
        ("q", True),
        ("+qualified", True),
        ("-q", False),
        ("+q,-q", False),
        ("", False),
    ])
    def test_from_string(self, raw, qualified):
        assert TagExtras.from_string(raw).qualified is qualified

    def test_unknown_extra_ignored(self, caplog):
        assert not TagExtras.from_string("+f").qualified
        assert "unknown extra" in caplog.text


class TestReadTags:

    def test_line_round_trip(self):
        tag = Tag("p", "x.c", 4, 'char *p = "/$";\tint q;', "v", (("struct", "point"),))
        assert parse_tag_line(tag.to_line()) == tag

    @pytest.mark.parametrize("line", [
        "!_TAG_FILE_SORTED\t1\t/0=unsorted, 1=sorted/",
        "",
        "just some text",
        "name\tfile\t42;\"\tv",
        'name\tfile\t/^int x;$/;"',
    ])
    def test_skipped_lines(self, line):
        assert parse_tag_line(line) is None

    def test_read_tags(self):
        text = "!_TAG_FILE_FORMAT\t2\n" + format_tags([Tag("a", "x.c", 1, "int a;", "v")])
        (tag,) = read_tags(text)
        assert (tag.name, tag.file, tag.line, tag.kind) == ("a", "x.c", 1, "v")

    def test_merge_replaces_retagged_files(self):
        old = [Tag("a", "a.c", 1, "int a;", "v"), Tag("b", "b.c", 1, "int b;", "v")]
        new = [Tag("a2", "a.c", 1, "int a2;", "v")]
        merged = merge_tags(old, new, ["a.c"])
        assert [t.name for t in merged] == ["b", "a2"]


class TestFindSources:

    @pytest.fixture
    def tree(self, tmp_path):
        src = tmp_path / "src"
        for rel in ("a.c", "build/gen.c", "sub/b.h", "notes.txt", "sub/c.CPP"):
            path = src / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text("int x;\n", encoding="utf-8")
        return src

    def _rel(self, root, found):
        return [os.path.relpath(p, root).replace(os.sep, "/") for p in found]

    def test_recursive_with_suffix_filter(self, tree):
        assert self._rel(tree, find_sources([str(tree)])) == ["a.c", "build/gen.c", "sub/b.h", "sub/c.CPP"]

    def test_excluded_directory_not_entered(self, tree):
        assert self._rel(tree, find_sources([str(tree)], ["build"])) == ["a.c", "sub/b.h", "sub/c.CPP"]

    def test_excluded_file_pattern(self, tree):
        assert self._rel(tree, find_sources([str(tree)], ["*.h"])) == ["a.c", "build/gen.c", "sub/c.CPP"]

    def test_plain_files_passed_through(self, tree):
        missing = str(tree / "gone.c")
        assert find_sources([missing, str(tree / "notes.txt")]) == [missing, str(tree / "notes.txt")]
        assert find_sources([missing], ["gone.*"]) == []

    def test_is_excluded_checks_components(self):
        assert is_excluded("lib/third_party/x.c", ["third_party"])
        assert not is_excluded("lib/x.c", ["third_party"])
        assert not is_excluded("lib/x.c", [])
