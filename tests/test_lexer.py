# tests/test_lexer.py
"""
Tests for the C/C++ lexer: source bytes → tokens.
"""

import pytest

from cxxfront.errors import CxxErrorCodes, Diagnostics
from cxxfront.lexer import Lexer, detect_mode, tokenize
from cxxfront.source import SourceBuffer
from cxxfront.tokens import C_KEYWORDS, CPP_ONLY_KEYWORDS, LanguageMode, TokenKind, keywords_for


def _lex(text, mode=LanguageMode.CPP, keep_comments=False):
    diags = Diagnostics()
    toks = tokenize(SourceBuffer.from_text(text), mode, keep_comments, diags)
    return toks, diags


def _kinds(text, mode=LanguageMode.CPP):
    toks, _ = _lex(text, mode)
    return [t.kind for t in toks]


def _texts(text, mode=LanguageMode.CPP):
    toks, _ = _lex(text, mode)
    return [t.text for t in toks if not t.is_eof]


class TestLexBasics:

    def test_empty_input(self):
        toks, diags = _lex("")
        assert len(toks) == 1
        assert toks[0].is_eof
        assert len(diags) == 0

    def test_single_eof_at_end(self):
        toks, _ = _lex("int x;")
        assert toks[-1].kind is TokenKind.EOF
        assert sum(1 for t in toks if t.is_eof) == 1
        assert toks[-1].span.start == 6

    def test_declaration(self):
        assert _kinds("int x;") == [
            TokenKind.KEYWORD, TokenKind.IDENTIFIER, TokenKind.PUNCTUATOR, TokenKind.EOF,
        ]

    def test_spans_match_text(self):
        text = "unsigned long  counter = 0x1F;"
        buf = SourceBuffer.from_text(text)
        for tok in Lexer(buf).tokens():
            assert buf.slice(tok.span) == tok.text

    def test_restartable(self):
        buf = SourceBuffer.from_text("a + b * 3;")
        lexer = Lexer(buf)
        first = [(t.kind, t.text, t.span) for t in lexer.tokens()]
        second = [(t.kind, t.text, t.span) for t in lexer.tokens()]
        assert first == second

    def test_punctuators_longest_first(self):
        assert _texts("a<<=b->c...") == ["a", "<<=", "b", "->", "c", "..."]


class TestLexModes:

    def test_class_is_identifier_in_c(self):
        toks, _ = _lex("class", LanguageMode.C)
        assert toks[0].kind is TokenKind.IDENTIFIER

    def test_class_is_keyword_in_cpp(self):
        toks, _ = _lex("class", LanguageMode.CPP)
        assert toks[0].kind is TokenKind.KEYWORD

    @pytest.mark.parametrize("word", sorted(CPP_ONLY_KEYWORDS))
    def test_cpp_words_are_identifiers_in_c(self, word):
        toks, _ = _lex(word, LanguageMode.C)
        assert toks[0].kind is TokenKind.IDENTIFIER

    def test_cpp_table_extends_c_table(self):
        assert keywords_for(LanguageMode.C) == C_KEYWORDS
        assert keywords_for(LanguageMode.CPP) == C_KEYWORDS | CPP_ONLY_KEYWORDS

    def test_scope_operator_split_in_c(self):
        assert _texts("a::b", LanguageMode.C) == ["a", ":", ":", "b"]

    def test_scope_operator_in_cpp(self):
        assert _texts("a::b", LanguageMode.CPP) == ["a", "::", "b"]

    def test_detect_c(self):
        assert detect_mode(SourceBuffer.from_text("int main(void) { return 0; }")) is LanguageMode.C

    @pytest.mark.parametrize("text", [
        "class A {};",
        "namespace n {}",
        "template <class T> void f();",
        "int x = std::max;",
        "struct S { public: int x; };",
    ])
    def test_detect_cpp(self, text):
        assert detect_mode(SourceBuffer.from_text(text)) is LanguageMode.CPP

    def test_detect_window(self):
        text = "int a; " * 10 + "class B {};"
        assert detect_mode(SourceBuffer.from_text(text), window=5) is LanguageMode.C

    def test_mode_from_name(self):
        assert LanguageMode.from_name("C++") is LanguageMode.CPP
        with pytest.raises(ValueError):
            LanguageMode.from_name("fortran")


class TestLexNumbers:

    @pytest.mark.parametrize("text,value", [
        ("42", 42),
        ("0x1F", 31),
        ("017", 15),
        ("0b101", 5),
        ("10UL", 10),
        ("0", 0),
    ])
    def test_integers(self, text, value):
        toks, diags = _lex(text)
        assert toks[0].kind is TokenKind.INTEGER
        assert toks[0].value == value
        assert toks[0].text == text
        assert len(diags) == 0

    @pytest.mark.parametrize("text,value", [
        ("1.5", 1.5),
        (".5", 0.5),
        ("1e3", 1000.0),
        ("2.0f", 2.0),
    ])
    def test_floats(self, text, value):
        toks, _ = _lex(text)
        assert toks[0].kind is TokenKind.FLOATING
        assert toks[0].value == value

    def test_invalid_suffix(self):
        toks, diags = _lex("12abc;")
        assert toks[0].text == "12abc"
        assert toks[0].value is None
        assert diags[0].code == CxxErrorCodes.INVALID_NUMBER
        assert toks[1].text == ";"

    def test_bad_octal(self):
        _, diags = _lex("09")
        assert diags[0].code == CxxErrorCodes.INVALID_NUMBER

    def test_empty_hex(self):
        _, diags = _lex("0x;")
        assert diags[0].code == CxxErrorCodes.INVALID_NUMBER


class TestLexLiterals:

    def test_string_escapes(self):
        toks, diags = _lex(r'"a\tb\n\x41\101"')
        assert toks[0].kind is TokenKind.STRING
        assert toks[0].value == "a\tb\nAA"
        assert len(diags) == 0

    def test_char_literal(self):
        toks, _ = _lex(r"'\n'")
        assert toks[0].kind is TokenKind.CHARACTER
        assert toks[0].value == "\n"

    def test_prefixed_string(self):
        toks, _ = _lex('L"wide"')
        assert toks[0].kind is TokenKind.STRING
        assert toks[0].text == 'L"wide"'
        assert toks[0].value == "wide"

    def test_adjacent_strings_not_merged(self):
        toks, _ = _lex('"a" "b"')
        assert [t.kind for t in toks[:2]] == [TokenKind.STRING, TokenKind.STRING]

    def test_unterminated_string(self):
        toks, diags = _lex('"abc\nint x;')
        assert diags[0].code == CxxErrorCodes.UNTERMINATED_STRING
        assert toks[0].text == '"abc'
        assert [t.text for t in toks[1:4]] == ["int", "x", ";"]

    def test_unterminated_char(self):
        _, diags = _lex("'a\n")
        assert diags[0].code == CxxErrorCodes.UNTERMINATED_CHAR

    def test_empty_char(self):
        _, diags = _lex("''")
        assert diags[0].code == CxxErrorCodes.EMPTY_CHAR

    def test_unknown_escape(self):
        toks, diags = _lex(r'"\q"')
        assert diags[0].code == CxxErrorCodes.INVALID_ESCAPE
        assert toks[0].value == "q"

    def test_string_line_continuation(self):
        toks, _ = _lex('"ab\\\ncd"')
        assert toks[0].value == "abcd"


class TestLexComments:

    def test_comments_dropped(self):
        assert _texts("a // line\n/* block */ b") == ["a", "b"]

    def test_comments_kept(self):
        toks, _ = _lex("a // line\nb", keep_comments=True)
        assert [t.kind for t in toks] == [
            TokenKind.IDENTIFIER, TokenKind.COMMENT, TokenKind.IDENTIFIER, TokenKind.EOF,
        ]
        assert toks[1].text == "// line"

    def test_block_comments_do_not_nest(self):
        assert _texts("/* a /* b */ c */") == ["c", "*", "/"]

    def test_unterminated_block_comment(self):
        toks, diags = _lex("int /* never closed")
        assert diags[0].code == CxxErrorCodes.UNTERMINATED_COMMENT
        assert [t.text for t in toks] == ["int", ""]


class TestLexDirectives:

    def test_directive_token(self):
        toks, _ = _lex("#include <stdio.h>\nint x;")
        assert toks[0].kind is TokenKind.DIRECTIVE
        assert toks[0].text == "#include <stdio.h>"
        assert toks[0].value == "include <stdio.h>"
        assert toks[1].text == "int"

    def test_hash_mid_line_is_punctuator(self):
        toks, _ = _lex("a # b")
        assert toks[1].kind is TokenKind.PUNCTUATOR
        assert toks[1].text == "#"

    def test_indented_directive(self):
        toks, _ = _lex("   #  define X 1\n")
        assert toks[0].kind is TokenKind.DIRECTIVE
        assert toks[0].value == "define X 1"

    def test_continuation_joined(self):
        toks, _ = _lex("#define TWO \\\n  2\nint")
        assert toks[0].kind is TokenKind.DIRECTIVE
        assert toks[0].value.split() == ["define", "TWO", "2"]
        assert toks[1].text == "int"

    def test_comment_stripped_from_payload(self):
        toks, _ = _lex("#endif // EXAMPLE_H\n")
        assert toks[0].value == "endif"


class TestLexErrors:

    def test_stray_character(self):
        toks, diags = _lex("int @ x;")
        assert diags[0].code == CxxErrorCodes.STRAY_CHARACTER
        assert _texts("int @ x;") == ["int", "x", ";"]

    def test_stray_non_ascii(self):
        toks, diags = _lex("int é;")
        assert diags[0].code == CxxErrorCodes.STRAY_CHARACTER
        assert diags[0].span.end - diags[0].span.start == 2
        assert [t.text for t in toks] == ["int", ";", ""]
