# =============================================================================
# test_parser.py - Assembler Parser Unit Tests
# =============================================================================
# Tests for the recursive-descent parser.
#
# Test coverage includes:
#   - Statements: instructions, conditional instructions, directives, labels
#   - Operand forms: register, expression, reference, IX-indexed reference
#   - Expression precedence and unary operators
#   - Label declaration vs label reference disambiguation
#   - Error conditions and line numbers
# =============================================================================

import pytest

from basm.assembler.ast import Expr, ExprKind
from basm.assembler.isa import AssemblerDirective, Condition, Opcode, Register
from basm.assembler.lexer import tokenize
from basm.assembler.parser import Parser, parse_source
from basm.errors import AssemblySyntaxError


# =============================================================================
# Helper Functions
# =============================================================================

def parse(source: str) -> list[Expr]:
    return parse_source(source, "<test>")


def parse_one(source: str) -> Expr:
    statements = parse(source)
    assert len(statements) == 1
    return statements[0]


def operands(source: str) -> list[Expr]:
    """Operands of a single instruction."""
    return parse_one(source).op.children


def leaf(expression: Expr) -> Expr:
    """INTEGER or LABEL leaf of a single-value expression."""
    assert expression.kind == ExprKind.EXPRESSION
    node = expression
    while node.children:
        assert len(node.children) == 1
        node = node.children[0]
    return node


# =============================================================================
# Instructions
# =============================================================================

class TestInstructions:
    """Test instruction statements."""

    def test_no_operands(self):
        statement = parse_one("ret")
        assert statement.kind == ExprKind.INSTRUCTION
        assert statement.condition is None
        assert statement.op.value is Opcode.RET
        assert statement.op.children == []

    def test_one_operand(self):
        (operand,) = operands("inc ac")
        assert operand.kind == ExprKind.REGISTER
        assert operand.value is Register.AC

    def test_two_operands(self):
        first, second = operands("mov ac, 1")
        assert first.value is Register.AC
        assert leaf(second) == Expr(ExprKind.INTEGER, 1, [], 1)

    def test_conditional(self):
        statement = parse_one("-nz jmp loop")
        assert statement.condition is Condition.NZ
        assert statement.op.value is Opcode.JMP

    def test_sequence_without_newlines(self):
        """Statements need no separators."""
        statements = parse("clc ret hlt")
        assert [s.op.value for s in statements] == [Opcode.CLC, Opcode.RET, Opcode.HLT]

    def test_conditional_after_expression(self):
        """'-' before a condition code starts a new instruction."""
        statements = parse("mov ac, 1\n-z jmp done")
        assert len(statements) == 2
        assert leaf(statements[0].op.children[1]).value == 1
        assert statements[1].condition is Condition.Z

    def test_conditional_after_directive(self):
        statements = parse(".db 1 2\n-c ret")
        assert len(statements[0].children) == 2
        assert statements[1].condition is Condition.C

    def test_str(self):
        """str() renders the compact tree form."""
        assert str(parse_one("mov ac, 1")) == (
            "Instruction [ Op(mov) [ Register(ac) Expression [ Term [ Factor "
            "[ Unary [ Primary [ Integer(1) ] ] ] ] ] ] ]"
        )


# =============================================================================
# Addressing Modes
# =============================================================================

class TestReferences:
    """Test parenthesised references and IX indexing."""

    def test_plain_reference(self):
        (reference,) = operands("jmp (ac)")
        assert reference.kind == ExprKind.REFERENCE
        assert reference.indexed is False
        assert reference.children[0].kind == ExprKind.REGISTER

    def test_indexed_inside(self):
        """(AC+IX) is an indexed reference wrapping a register."""
        (reference,) = operands("mov (AC+IX)")
        assert reference.kind == ExprKind.REFERENCE
        assert reference.indexed is True
        assert reference.children[0].value is Register.AC

    def test_indexed_outside(self):
        (reference,) = operands("mov (0x10)+IX")
        assert reference.indexed is True
        assert leaf(reference.children[0]).value == 0x10

    def test_expression_before_ix(self):
        """'+IX' is not swallowed as arithmetic."""
        (reference,) = operands("mov (base + 2 + IX)")
        assert reference.indexed is True
        term = reference.children[0].children[0]
        assert len(term.children) == 3

    def test_reference_is_not_grouping(self):
        """(expr) is always a reference, never arithmetic grouping."""
        first, second = operands("mov ac, (1+2)")
        assert second.kind == ExprKind.REFERENCE
        assert second.indexed is False
        assert second.children[0].kind == ExprKind.EXPRESSION

    def test_nested_reference(self):
        (outer,) = operands("mov ((ac))")
        assert outer.children[0].kind == ExprKind.REFERENCE

    def test_reference_str(self):
        (reference,) = operands("mov (ac+IX)")
        assert str(reference) == "Reference(+IX) [ Register(ac) ]"

    def test_indexed_twice(self):
        with pytest.raises(AssemblySyntaxError, match="already indexed"):
            parse("mov (ac+IX)+IX")

    def test_bad_suffix(self):
        with pytest.raises(AssemblySyntaxError, match=r"expected '\)' or '\+IX', found '\+'"):
            parse("mov (ac+1)")

    def test_unclosed(self):
        with pytest.raises(AssemblySyntaxError, match="found 'end of input'"):
            parse("mov (ac")

    def test_empty(self):
        with pytest.raises(AssemblySyntaxError, match=r"expected register or expression after '\('"):
            parse("mov ()")


# =============================================================================
# Expressions
# =============================================================================

class TestExpressions:
    """Test the precedence chain."""

    def test_precedence(self):
        """In 2 + 3 * 4 the second term operand is the factor 3 * 4."""
        _, expression = operands("mov ac, 2 + 3 * 4")
        term = expression.children[0]

        assert term.kind == ExprKind.TERM
        assert [c.kind for c in term.children] == [
            ExprKind.FACTOR, ExprKind.OPERATOR, ExprKind.FACTOR,
        ]
        assert term.children[1].value == "+"

        product = term.children[2]
        assert len(product.children) == 3
        assert product.children[1].value == "*"
        assert str(product.children[0]) == "Unary [ Primary [ Integer(3) ] ]"
        assert str(product.children[2]) == "Unary [ Primary [ Integer(4) ] ]"

    def test_left_to_right(self):
        _, expression = operands("mov ac, 8 - 2 - 1")
        term = expression.children[0]
        assert [c.value for c in term.children if c.kind == ExprKind.OPERATOR] == ["-", "-"]

    def test_division(self):
        _, expression = operands("mov ac, 8 / 2")
        factor = expression.children[0].children[0]
        assert factor.children[1].value == "/"

    def test_unary_minus(self):
        _, expression = operands("mov ac, -1")
        unary = expression.children[0].children[0].children[0]
        assert unary.kind == ExprKind.UNARY
        assert unary.children[0] == Expr(ExprKind.OPERATOR, "-", [], 1)
        assert unary.children[1].kind == ExprKind.UNARY

    def test_double_unary(self):
        _, expression = operands("mov ac, - +5")
        outer = expression.children[0].children[0].children[0]
        inner = outer.children[1]
        assert inner.children[0].value == "+"

    def test_char_literal_value(self):
        _, expression = operands("mov ac, 'A'")
        assert leaf(expression).value == 65

    def test_missing_right_operand(self):
        with pytest.raises(AssemblySyntaxError, match="expected value after '\\*'"):
            parse("mov ac, 2 *")

    def test_missing_after_plus(self):
        with pytest.raises(AssemblySyntaxError, match="expected value after '\\+'"):
            parse("mov ac, 2 + ,")


# =============================================================================
# Labels
# =============================================================================

class TestLabels:
    """Test label declarations and references."""

    def test_declaration_then_instruction(self):
        """'loop:' is its own statement, before the instruction."""
        label, instruction = parse("loop: mov ac, 1")
        assert label.kind == ExprKind.LABEL_DEF
        assert label.value == "loop"
        assert instruction.kind == ExprKind.INSTRUCTION

    def test_reference(self):
        """A label operand is a reference, not a declaration."""
        _, operand = operands("mov ac, loop")
        assert leaf(operand).kind == ExprKind.LABEL
        assert leaf(operand).value == "loop"

    def test_operand_followed_by_declaration(self):
        """A trailing 'name:' is not taken as an operand."""
        statements = parse("jmp\nnext: ret")
        assert statements[0].op.children == []
        assert statements[1].kind == ExprKind.LABEL_DEF

    def test_reference_then_declaration(self):
        statements = parse("jmp next next: ret")
        assert leaf(statements[0].op.children[0]).value == "next"
        assert statements[1].value == "next"

    def test_missing_colon(self):
        with pytest.raises(AssemblySyntaxError, match="expected ':' after label 'loop'"):
            parse("loop")


# =============================================================================
# Directives
# =============================================================================

class TestDirectives:
    """Test .org and .db."""

    def test_org(self):
        directive = parse_one(".org 0x100")
        assert directive.kind == ExprKind.DIRECTIVE
        assert directive.value is AssemblerDirective.ORG
        assert leaf(directive.children[0]).value == 0x100

    def test_db_mixed(self):
        directive = parse_one('.db "hi", 0, \'!\'')
        assert [c.kind for c in directive.children] == [
            ExprKind.STRING, ExprKind.EXPRESSION, ExprKind.EXPRESSION,
        ]
        assert directive.children[0].value == "hi"

    def test_db_without_commas(self):
        directive = parse_one('.db "a" 1 "b"')
        assert len(directive.children) == 3

    def test_db_empty(self):
        assert parse_one(".db").children == []

    def test_db_trailing_comma(self):
        with pytest.raises(AssemblySyntaxError, match="after ','"):
            parse(".db 1,")

    @pytest.mark.parametrize("source", [".org", ".org 1 2", '.org "x"', ".org 1, 2"])
    def test_org_arity(self, source):
        with pytest.raises(AssemblySyntaxError, match=".org expects exactly one expression"):
            parse(source)


# =============================================================================
# Errors and Positions
# =============================================================================

class TestErrors:
    """Test error reporting."""

    def test_unexpected_token(self):
        with pytest.raises(AssemblySyntaxError, match="unexpected token ','"):
            parse("ret ,")

    def test_missing_second_operand(self):
        with pytest.raises(AssemblySyntaxError, match="expected second operand after ','"):
            parse("mov ac,")

    def test_bad_condition(self):
        with pytest.raises(AssemblySyntaxError, match="expected condition code after '-', found 'x'"):
            parse("-x jmp loop")

    def test_condition_without_opcode(self):
        with pytest.raises(AssemblySyntaxError, match="expected opcode after condition '-z'"):
            parse("-z loop:")

    def test_error_line(self):
        """Errors carry the output line of the offending token."""
        with pytest.raises(AssemblySyntaxError) as exc_info:
            parse("ret\nret\n\n)")
        assert exc_info.value.line == 4
        assert exc_info.value.location.filename == "<test>"

    @pytest.mark.parametrize("source, line", [
        ("ret\nmov ac,\n\n,", 2),          # second operand
        ("ret\n\ndone\n\n\n", 3),          # ':' after a label
        ("mov ac, 1 +\n\n", 1),            # value after '+'
        ("mov ac, 2 *\n\n", 1),            # value after '*'
        ("mov ac, -\n\n", 1),              # value after unary '-'
        ("ret\n-z\n\n", 2),                # opcode after a condition
        ("jmp (\n\n", 1),                  # contents of a reference
        ("jmp (ac\n\n", 1),                # ')' closing a reference
        (".db 1,\n\n", 1),                 # operand after a directive ','
    ])
    def test_missing_part_line(self, source, line):
        """A missing part is reported on the line of the token it should follow."""
        with pytest.raises(AssemblySyntaxError) as exc_info:
            parse(source)
        assert exc_info.value.line == line

    def test_label_error_names_label_line(self):
        with pytest.raises(AssemblySyntaxError) as exc_info:
            parse("mov ac, br\ndone\n\n\n")
        assert exc_info.value.line == 2
        assert "expected ':' after label 'done', found 'end of input'" in str(exc_info.value)

    def test_node_lines(self):
        """Every node records the line of its leading token."""
        statements = parse("ret\n\nloop:\nmov ac,\n  5")
        assert [s.line for s in statements] == [1, 3, 4]
        _, expression = statements[2].op.children
        assert all(node.line == 5 for node in expression.walk())

    def test_dump(self):
        dump = parse_one("mov ac, 1").dump()
        lines = dump.splitlines()
        assert lines[0] == "Instruction  @1"
        assert lines[1] == "  Op(mov)  @1"
        assert lines[-1].strip() == "Integer(1)  @1"

    def test_parser_class(self):
        """Parser accepts a token list and parses all statements."""
        parser = Parser(tokenize("ret hlt"), "<test>")
        assert len(parser.parse()) == 2
