# tests/conftest.py
"""
Shared fixtures and sample sources for the cxxfront test suite.
"""

from pathlib import Path

import pytest

from cxxfront.ast import Node
from cxxfront.config import FrontendConfig
from cxxfront.parser import ParseResult, parse_file, parse_source
from cxxfront.tokens import LanguageMode
from cxxfront.visitor import walk

FIXTURES_DIR = Path(__file__).parent / "fixtures"
C_FIXTURE = FIXTURES_DIR / "source.c"
CPP_FIXTURE = FIXTURES_DIR / "source.cpp"


# ═══════════════════════════════════════════════════════════════════
#  SAMPLE SOURCES
# ═══════════════════════════════════════════════════════════════════

ADD_FUNCTION_C = "int add(int x, int y) { return x + y; }\n"

FUNCTION_POINTER_C = "void (*f)(char *);\n"

ANONYMOUS_TYPEDEF_C = """\
typedef struct {
  int width;
  int height;
} rect;
"""

ENUM_C = "enum days {SUN = 1, MON, TUE, WED = 99, THU, FRI, SAT};\n"

DOG_CLASS_CPP = """\
class Dog {
    std::string name;
public:
    Dog();
    void bark() const;
    virtual ~Dog();
};
"""

NESTED_TEMPLATE_CPP = "Box<Box<int>> boxOfBox;\n"

POINTER_DECLS_C = "int *px, not_a_pointer;\n"

ENUM_WITH_DIRECTIVES_C = """\
enum E { A,
#ifdef X
  B,
#endif
  C };
"""

PARAMS_WITH_DIRECTIVES_C = """\
int f(int a,
#ifdef X
      int b
#endif
) { return 0; }
"""

GUARDED_HEADER_C = """\
#ifndef EXAMPLE_H
#define EXAMPLE_H
#include <string.h>
#define ADD(a, b) ((a) + (b))
int twice(int v);
#endif
"""

MISSING_SEMICOLON_C = """\
int a = 1
int b = 2;
int c = 3;
"""


# ═══════════════════════════════════════════════════════════════════
#  HELPERS
# ═══════════════════════════════════════════════════════════════════

def parse_c(text: str, **options) -> ParseResult:
    return parse_source(text, path="test.c", config=FrontendConfig(mode=LanguageMode.C, **options))


def parse_cpp(text: str, **options) -> ParseResult:
    return parse_source(text, path="test.cpp", config=FrontendConfig(mode=LanguageMode.CPP, **options))


_NESTED_TYPE_KINDS = frozenset({"ArrayType", "FunctionType"})


def span_violations(root: Node) -> list:
    """Every (parent, child) pair breaking containment, sibling order or
    sibling disjointness."""
    bad = []
    for node in walk(root):
        previous = None
        for child in node.children():
            if not node.span.contains(child.span):
                bad.append((node.kind, child.kind, "outside"))
            if previous is not None and child.span.start < previous.span.start:
                bad.append((node.kind, child.kind, "order"))
            # The element type of int a[2][3] reaches past the outer size.
            if (previous is not None and node.kind not in _NESTED_TYPE_KINDS
                    and previous.span.end > child.span.start):
                bad.append((node.kind, child.kind, "overlap"))
            previous = child
    return bad


# ═══════════════════════════════════════════════════════════════════
#  FIXTURES
# ═══════════════════════════════════════════════════════════════════

@pytest.fixture(scope="session")
def c_result() -> ParseResult:
    return parse_file(C_FIXTURE, FrontendConfig(mode=LanguageMode.C))


@pytest.fixture(scope="session")
def cpp_result() -> ParseResult:
    return parse_file(CPP_FIXTURE, FrontendConfig(mode=LanguageMode.CPP))
