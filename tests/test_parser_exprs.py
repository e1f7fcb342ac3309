# tests/test_parser_exprs.py
"""
Tests for statements and expressions inside function bodies.
"""

import pytest

from cxxfront.ast import (
    AssignExpr,
    AssignOp,
    BinaryExpr,
    BinOp,
    BoolLiteral,
    BreakStmt,
    CallExpr,
    CaseStmt,
    CastExpr,
    CharLiteral,
    CompoundStmt,
    ConditionalExpr,
    ContinueStmt,
    DeclStmt,
    DeleteExpr,
    DoWhileStmt,
    ExprStmt,
    FloatLiteral,
    ForStmt,
    Identifier,
    IfStmt,
    IndexExpr,
    IntLiteral,
    MemberExpr,
    NewExpr,
    NullptrLiteral,
    NullStmt,
    ParenExpr,
    PointerType,
    ReturnStmt,
    SizeofExpr,
    StringLiteral,
    SwitchStmt,
    ThisExpr,
    UnaryExpr,
    UnaryOp,
    WhileStmt,
    is_expression,
)
from tests.conftest import parse_c, parse_cpp, span_violations


def _body(stmts, parse=parse_c):
    result = parse("void f(void) {\n" + stmts + "\n}\n")
    assert result.ok, result.diagnostics.format(result.buffer)
    return result.unit.items[0].body.items


def _expr(text, parse=parse_c):
    (stmt,) = _body(text + ";", parse)
    assert isinstance(stmt, ExprStmt)
    return stmt.expr


class TestParseStatements:

    def test_return(self):
        (stmt,) = _body("return 0;")
        assert isinstance(stmt, ReturnStmt)
        assert stmt.value.value == 0

    def test_bare_return(self):
        (stmt,) = _body("return;")
        assert stmt.value is None

    def test_if_else(self):
        (stmt,) = _body("if (a) b(); else c();")
        assert isinstance(stmt, IfStmt)
        assert isinstance(stmt.then, ExprStmt)
        assert isinstance(stmt.else_, ExprStmt)

    def test_dangling_else_binds_inner(self):
        (stmt,) = _body("if (a) if (b) x(); else y();")
        assert stmt.else_ is None
        assert stmt.then.else_ is not None

    def test_while(self):
        (stmt,) = _body("while (i < 10) i++;")
        assert isinstance(stmt, WhileStmt)
        assert stmt.cond.op is BinOp.LT

    def test_do_while(self):
        (stmt,) = _body("do { i--; } while (i);")
        assert isinstance(stmt, DoWhileStmt)
        assert isinstance(stmt.body, CompoundStmt)

    def test_for_with_declaration(self):
        (stmt,) = _body("for (int i = 0; i < 3; i++) { continue; }")
        assert isinstance(stmt, ForStmt)
        assert isinstance(stmt.init, DeclStmt)
        assert stmt.init.decls[0].name == "i"
        assert isinstance(stmt.step, UnaryExpr)
        assert stmt.step.postfix
        assert isinstance(stmt.body.items[0], ContinueStmt)

    def test_for_empty_clauses(self):
        (stmt,) = _body("for (;;) break;")
        assert stmt.init is None
        assert stmt.cond is None
        assert stmt.step is None
        assert isinstance(stmt.body, BreakStmt)

    def test_switch(self):
        (stmt,) = _body("switch (x) { case 1: y(); break; default: z(); }")
        assert isinstance(stmt, SwitchStmt)
        kinds = [type(s) for s in stmt.body.items]
        assert kinds == [CaseStmt, ExprStmt, BreakStmt, CaseStmt, ExprStmt]
        assert stmt.body.items[0].value.value == 1
        assert stmt.body.items[3].value is None

    def test_null_statement(self):
        (stmt,) = _body(";")
        assert isinstance(stmt, NullStmt)

    def test_nested_block(self):
        (stmt,) = _body("{ int x; }")
        assert isinstance(stmt, CompoundStmt)
        assert isinstance(stmt.items[0], DeclStmt)

    def test_local_declarations(self):
        stmts = _body("int i1 = 1, i2 = 2;\nfloat f1 = 1.0, f2 = 2.0;")
        assert [d.name for d in stmts[0].decls] == ["i1", "i2"]
        assert [d.init.value for d in stmts[1].decls] == [1.0, 2.0]

    def test_struct_local(self):
        (stmt,) = _body("struct rectangle my_rec = { 1, 2 };")
        (var,) = stmt.decls
        assert var.type.tag == "struct"


class TestDeclarationOrExpression:

    def test_typedef_pointer_is_declaration(self):
        result = parse_c("typedef int T;\nvoid f(void) { T * p; }")
        (stmt,) = result.unit.items[1].body.items
        assert isinstance(stmt, DeclStmt)
        assert isinstance(stmt.decls[0].type, PointerType)

    def test_unknown_name_multiplication_is_expression(self):
        (stmt,) = _body("a * b + c;")
        assert isinstance(stmt, ExprStmt)
        assert stmt.expr.op is BinOp.ADD
        assert stmt.expr.lhs.op is BinOp.MUL

    def test_unknown_name_star_name_is_declaration(self):
        (stmt,) = _body("a * b;")
        assert isinstance(stmt, DeclStmt)

    def test_unknown_pointer_declaration(self):
        (stmt,) = _body("widget *w = 0;")
        assert isinstance(stmt, DeclStmt)

    def test_call_is_expression(self):
        (stmt,) = _body('printf("%d\\n", 0);')
        assert isinstance(stmt.expr, CallExpr)
        assert stmt.expr.callee.name == "printf"


class TestParseExpressions:

    def test_precedence(self):
        e = _expr("x = 1 + 2 * 3")
        assert isinstance(e, AssignExpr)
        assert e.value.op is BinOp.ADD
        assert e.value.rhs.op is BinOp.MUL

    def test_left_associative(self):
        e = _expr("a - b - c")
        assert e.op is BinOp.SUB
        assert e.lhs.op is BinOp.SUB
        assert e.rhs.name == "c"

    def test_assignment_right_associative(self):
        e = _expr("b = c = 0")
        assert isinstance(e.value, AssignExpr)

    def test_compound_assignment(self):
        e = _expr("x <<= 2")
        assert e.op is AssignOp.SHL

    def test_logical(self):
        e = _expr("a || b && c")
        assert e.op is BinOp.OR
        assert e.rhs.op is BinOp.AND

    def test_conditional(self):
        e = _expr("x = a ? b : c ? d : e")
        assert isinstance(e.value, ConditionalExpr)
        assert isinstance(e.value.else_, ConditionalExpr)

    def test_comma(self):
        e = _expr("a = 1, b = 2")
        assert e.op is BinOp.COMMA

    def test_unary_prefix(self):
        e = _expr("-*p")
        assert e.op is UnaryOp.NEG
        assert e.operand.op is UnaryOp.DEREF

    def test_address_of(self):
        e = _expr('scanf("%d", &input)')
        assert e.args[1].op is UnaryOp.ADDR

    def test_member_access(self):
        e = _expr("my_rec_ptr->height = 10")
        assert isinstance(e.target, MemberExpr)
        assert e.target.arrow
        assert e.target.name == "height"

    def test_paren_member(self):
        e = _expr("(*my_rec_ptr).width = 30")
        assert isinstance(e.target.base, ParenExpr)
        assert not e.target.arrow

    def test_index(self):
        e = _expr("my_array[1]")
        assert isinstance(e, IndexExpr)
        assert e.index.value == 1

    def test_call_through_pointer(self):
        e = _expr("(*f)(str_in)")
        assert isinstance(e, CallExpr)
        assert isinstance(e.callee, ParenExpr)

    def test_cast(self):
        e = _expr("(void *)px")
        assert isinstance(e, CastExpr)
        assert isinstance(e.type, PointerType)
        assert e.expr.name == "px"

    def test_paren_is_not_cast(self):
        e = _expr("(a) + b")
        assert isinstance(e, BinaryExpr)
        assert isinstance(e.lhs, ParenExpr)

    def test_sizeof_type_and_expression(self):
        e = _expr("sizeof(int) + sizeof x")
        assert isinstance(e.lhs, SizeofExpr)
        assert e.lhs.type.name == "int"
        assert e.rhs.expr.name == "x"

    def test_sizeof_parenthesized_variable(self):
        e = _expr("sizeof(px)")
        assert e.type is None
        assert isinstance(e.expr, ParenExpr)

    def test_literals(self):
        e = _expr("f(1, 2.5, 'c', \"s\")")
        kinds = [type(a) for a in e.args]
        assert kinds == [IntLiteral, FloatLiteral, CharLiteral, StringLiteral]

    def test_adjacent_strings_merged(self):
        e = _expr('puts("ab" "cd")')
        (arg,) = e.args
        assert isinstance(arg, StringLiteral)
        assert arg.value == "abcd"

    def test_postfix_increment(self):
        e = _expr("i++")
        assert e.postfix
        assert e.op is UnaryOp.INC

    def test_every_node_is_expression(self):
        e = _expr("a[i] + f(x)->y * -z")
        assert is_expression(e)


class TestParseCppExpressions:

    def test_bool_and_nullptr(self):
        e = _expr("f(true, false, nullptr)", parse_cpp)
        assert [type(a) for a in e.args] == [BoolLiteral, BoolLiteral, NullptrLiteral]

    def test_this(self):
        (stmt,) = _body("return *this;", parse_cpp)
        assert isinstance(stmt.value.operand, ThisExpr)

    def test_qualified_names(self):
        e = _expr("std::cout << x", parse_cpp)
        assert e.op is BinOp.SHL
        assert isinstance(e.lhs, Identifier)
        assert e.lhs.name == "std::cout"

    def test_new_and_delete(self):
        stmts = _body("int *p = new int[4];\ndelete[] p;\nWidget *w = new Widget(1, 2);", parse_cpp)
        array_new = stmts[0].decls[0].init
        assert isinstance(array_new, NewExpr)
        assert array_new.array_size.value == 4
        assert isinstance(stmts[1].expr, DeleteExpr)
        assert stmts[1].expr.array
        obj_new = stmts[2].decls[0].init
        assert [a.value for a in obj_new.args] == [1, 2]

    def test_scoped_enumerator(self):
        (stmt,) = _body("return ECarTypes::Hatchback;", parse_cpp)
        assert stmt.value.name == "ECarTypes::Hatchback"

    def test_method_call(self):
        e = _expr("Dog::print()", parse_cpp)
        assert isinstance(e, CallExpr)
        assert e.callee.name == "Dog::print"


class TestExpressionSpans:

    @pytest.mark.parametrize("stmts", [
        "x = a ? b : c;",
        "y = (int)z + sizeof(long) * -w[3];",
        "for (i = 0; i < n; i++) { s += a[i]; }",
        "switch (k) { case 1: break; default: ; }",
        "do p = p->next; while (p);",
    ])
    def test_children_inside_parent(self, stmts):
        result = parse_c("void f(void) {\n" + stmts + "\n}\n")
        assert result.ok
        assert span_violations(result.unit) == []
