"""
Assembly Language Parser
========================

Recursive-descent parser turning assembler tokens into a list of
statement nodes (see ``basm.assembler.ast``).

Grammar
-------
::

    statement   = instruction | directive | label
    instruction = ["-" CONDITION] op
    op          = OPCODE [operand ["," operand]]
    operand     = hardware
    hardware    = REGISTER | expression | reference
    reference   = "(" operand ["+" IX] ")" ["+" IX]
    expression  = term
    term        = factor (("+" | "-") factor)*
    factor      = unary (("*" | "/") unary)*
    unary       = ("+" | "-") unary | primary
    primary     = INTEGER | LABEL
    directive   = DIRECTIVE [dir_operand ([","] dir_operand)*]
    dir_operand = expression | STRING
    label       = LABEL ":"

Each rule either returns a node or returns None without consuming
anything, letting the caller try the next alternative.

Disambiguation
--------------
- ``hardware`` tries register, then bare expression, then the
  parenthesised form, so ``(expr)`` is always a memory reference. There
  is no parenthesised grouping in arithmetic.
- ``term`` never consumes a ``+`` or ``-`` that is followed by ``IX``;
  the enclosing reference claims it as the ``+IX`` suffix.
- A ``-`` followed by a condition code is never arithmetic (neither in
  ``term`` nor in ``unary``); it starts the next, conditional,
  instruction. Statements are not newline-terminated, so this is what
  lets ``mov ac, 1`` be followed by ``-z jmp done``.
- A LABEL followed by ``:`` is never an expression; ``label`` claims it
  as a declaration.

Example
-------
>>> from basm.assembler.parser import parse_source
>>> for statement in parse_source("loop: -nz jmp (loop+IX)"):
...     print(statement.describe())
LabelDef(loop)
Instruction(nz)
"""

from typing import Callable, Optional

from basm.assembler.ast import Expr, ExprKind
from basm.assembler.isa import AssemblerDirective, Register
from basm.assembler.lexer import Lexer, Token, TokenType
from basm.errors import AssemblySyntaxError, SourceLocation


class Parser:
    """
    Parses assembler tokens into statement nodes.

    Usage:
        tokens = list(Lexer(text, filename).tokenize())
        statements = Parser(tokens, filename).parse()

    Errors are raised as AssemblySyntaxError whose location holds the
    flattened-output line of the offending token, or of the last token
    read when something is missing.
    """

    def __init__(self, tokens: list[Token], filename: str = "<input>"):
        self._tokens = tokens
        self._filename = filename
        self._pos = 0

    def parse(self) -> list[Expr]:
        """
        Parse all tokens into statements.

        Raises:
            AssemblySyntaxError: If a token starts no statement or a rule
                is left incomplete
        """
        statements: list[Expr] = []

        while True:
            statement = self.parse_statement()
            if statement is None:
                break
            statements.append(statement)

        return statements

    def parse_statement(self) -> Optional[Expr]:
        """Parse one statement; None at end of input."""
        if self._check(TokenType.EOF):
            return None

        rules: tuple[Callable[[], Optional[Expr]], ...] = (
            self._instruction,
            self._directive,
            self._label,
        )
        for rule in rules:
            node = rule()
            if node is not None:
                return node

        raise self._error(f"unexpected token '{self._current()}'")

    # =========================================================================
    # Token Navigation
    # =========================================================================

    def _current(self) -> Token:
        return self._peek(0)

    def _peek(self, offset: int = 1) -> Token:
        pos = self._pos + offset
        if pos >= len(self._tokens):
            line = self._tokens[-1].line if self._tokens else 1
            return Token(TokenType.EOF, None, 0, line)
        return self._tokens[pos]

    def _advance(self) -> Token:
        token = self._current()
        if token.type != TokenType.EOF:
            self._pos += 1
        return token

    def _check(self, *types: TokenType) -> bool:
        return self._current().type in types

    def _match(self, *types: TokenType) -> Optional[Token]:
        if self._check(*types):
            return self._advance()
        return None

    def _previous(self) -> Token:
        """The last consumed token (the current one if none was consumed)."""
        if self._pos == 0:
            return self._current()
        return self._tokens[self._pos - 1]

    def _error(self, message: str, token: Optional[Token] = None) -> AssemblySyntaxError:
        """
        Create an AssemblySyntaxError on ``token``'s line.

        Errors about something missing after a token pass that token, so
        the line is the one the incomplete construct sits on even when
        the next token is end of input or came from another file.
        """
        token = token or self._current()
        return AssemblySyntaxError(message, SourceLocation(self._filename, token.line))

    def _index_suffix_follows(self) -> bool:
        """True if the next two tokens are '+' IX."""
        following = self._peek(1)
        return (
            self._check(TokenType.PLUS)
            and following.type == TokenType.REGISTER
            and following.value is Register.IX
        )

    def _condition_prefix_follows(self) -> bool:
        """True if the next two tokens are '-' CONDITION."""
        return self._check(TokenType.MINUS) and self._peek(1).type == TokenType.CONDITION

    # =========================================================================
    # Statements
    # =========================================================================

    def _instruction(self) -> Optional[Expr]:
        """instruction = ["-" CONDITION] op"""
        start = self._current()
        condition = None

        if self._check(TokenType.MINUS):
            if self._peek(1).type != TokenType.CONDITION:
                raise self._error(
                    f"expected condition code after '-', found '{self._peek(1)}'",
                    self._peek(1),
                )
            self._advance()
            condition = self._advance().value

        op = self._op()
        if op is None:
            if condition is not None:
                raise self._error(
                    f"expected opcode after condition '-{condition.value}', "
                    f"found '{self._current()}'",
                    self._previous(),
                )
            return None

        return Expr(ExprKind.INSTRUCTION, condition, [op], start.line)

    def _op(self) -> Optional[Expr]:
        """op = OPCODE [operand ["," operand]]"""
        token = self._match(TokenType.OPCODE)
        if token is None:
            return None

        op = Expr(ExprKind.OP, token.value, [], token.line)

        first = self._operand()
        if first is None:
            return op
        op.children.append(first)

        comma = self._match(TokenType.COMMA)
        if comma is None:
            return op

        second = self._operand()
        if second is None:
            raise self._error(
                f"expected second operand after ',', found '{self._current()}'",
                comma,
            )
        op.children.append(second)

        return op

    def _directive(self) -> Optional[Expr]:
        """directive = DIRECTIVE [dir_operand ([","] dir_operand)*]"""
        token = self._match(TokenType.DIRECTIVE)
        if token is None:
            return None

        directive = Expr(ExprKind.DIRECTIVE, token.value, [], token.line)

        operand = self._directive_operand()
        while operand is not None:
            directive.children.append(operand)
            comma = self._match(TokenType.COMMA)
            if comma is not None:
                operand = self._directive_operand()
                if operand is None:
                    raise self._error(
                        f"expected expression or string after ',', found '{self._current()}'",
                        comma,
                    )
            else:
                operand = self._directive_operand()

        if token.value is AssemblerDirective.ORG:
            if len(directive.children) != 1 or directive.children[0].kind != ExprKind.EXPRESSION:
                raise self._error(".org expects exactly one expression", token)

        return directive

    def _directive_operand(self) -> Optional[Expr]:
        expression = self._expression()
        if expression is not None:
            return expression

        token = self._match(TokenType.STRING)
        if token is not None:
            return Expr(ExprKind.STRING, token.value, [], token.line)

        return None

    def _label(self) -> Optional[Expr]:
        """label = LABEL ":\""""
        token = self._match(TokenType.LABEL)
        if token is None:
            return None

        if not self._match(TokenType.COLON):
            raise self._error(
                f"expected ':' after label '{token.value}', found '{self._current()}'",
                token,
            )

        return Expr(ExprKind.LABEL_DEF, token.value, [], token.line)

    # =========================================================================
    # Operands
    # =========================================================================

    def _operand(self) -> Optional[Expr]:
        """operand = hardware = REGISTER | expression | reference"""
        node = self._register()
        if node is not None:
            return node

        node = self._expression()
        if node is not None:
            return node

        return self._reference()

    def _register(self) -> Optional[Expr]:
        token = self._match(TokenType.REGISTER)
        if token is None:
            return None
        return Expr(ExprKind.REGISTER, token.value, [], token.line)

    def _reference(self) -> Optional[Expr]:
        """reference = "(" operand ["+" IX] ")" ["+" IX]"""
        open_paren = self._match(TokenType.LPAREN)
        if open_paren is None:
            return None

        contents = self._operand()
        if contents is None:
            raise self._error(
                f"expected register or expression after '(', found '{self._current()}'",
                open_paren,
            )

        indexed = False
        if self._index_suffix_follows():
            self._advance()
            self._advance()
            indexed = True

        if not self._match(TokenType.RPAREN):
            expected = "')'" if indexed else "')' or '+IX'"
            raise self._error(f"expected {expected}, found '{self._current()}'", self._previous())

        if self._index_suffix_follows():
            if indexed:
                raise self._error("reference is already indexed by IX")
            self._advance()
            self._advance()
            indexed = True

        return Expr(ExprKind.REFERENCE, indexed, [contents], open_paren.line)

    # =========================================================================
    # Expressions
    # =========================================================================

    def _expression(self) -> Optional[Expr]:
        """expression = term"""
        line = self._current().line
        term = self._term()
        if term is None:
            return None
        return Expr(ExprKind.EXPRESSION, None, [term], line)

    def _term(self) -> Optional[Expr]:
        """term = factor (("+" | "-") factor)*"""
        line = self._current().line
        first = self._factor()
        if first is None:
            return None

        term = Expr(ExprKind.TERM, None, [first], line)

        while self._check(TokenType.PLUS, TokenType.MINUS):
            # '+IX' closes a reference and '-' CONDITION opens the next
            # instruction; neither is arithmetic
            following = self._peek(1)
            if following.type == TokenType.REGISTER and following.value is Register.IX:
                break
            if self._condition_prefix_follows():
                break

            operator = self._advance()
            operand = self._factor()
            if operand is None:
                raise self._error(
                    f"expected value after '{operator}', found '{self._current()}'",
                    operator,
                )
            term.children.append(self._operator(operator))
            term.children.append(operand)

        return term

    def _factor(self) -> Optional[Expr]:
        """factor = unary (("*" | "/") unary)*"""
        line = self._current().line
        first = self._unary()
        if first is None:
            return None

        factor = Expr(ExprKind.FACTOR, None, [first], line)

        while self._check(TokenType.STAR, TokenType.SLASH):
            operator = self._advance()
            operand = self._unary()
            if operand is None:
                raise self._error(
                    f"expected value after '{operator}', found '{self._current()}'",
                    operator,
                )
            factor.children.append(self._operator(operator))
            factor.children.append(operand)

        return factor

    def _unary(self) -> Optional[Expr]:
        """unary = ("+" | "-") unary | primary"""
        token = self._current()

        if self._check(TokenType.PLUS, TokenType.MINUS):
            if self._condition_prefix_follows():
                return None

            self._advance()
            operand = self._unary()
            if operand is None:
                raise self._error(
                    f"expected value after unary '{token}', found '{self._current()}'",
                    token,
                )
            return Expr(ExprKind.UNARY, None, [self._operator(token), operand], token.line)

        primary = self._primary()
        if primary is None:
            return None
        return Expr(ExprKind.UNARY, None, [primary], token.line)

    def _primary(self) -> Optional[Expr]:
        """primary = INTEGER | LABEL"""
        token = self._current()

        if token.type == TokenType.INTEGER:
            self._advance()
            leaf = Expr(ExprKind.INTEGER, token.value, [], token.line)
        elif token.type == TokenType.LABEL:
            # 'name:' declares a label; leave it for the label rule
            if self._peek(1).type == TokenType.COLON:
                return None
            self._advance()
            leaf = Expr(ExprKind.LABEL, token.value, [], token.line)
        else:
            return None

        return Expr(ExprKind.PRIMARY, None, [leaf], token.line)

    @staticmethod
    def _operator(token: Token) -> Expr:
        return Expr(ExprKind.OPERATOR, str(token), [], token.line)


# =============================================================================
# Convenience Function
# =============================================================================

def parse_source(source: str, filename: str = "<input>") -> list[Expr]:
    """
    Tokenize and parse flattened assembly text.

    Raises:
        LexError: If the text fails to tokenize
        AssemblySyntaxError: If the tokens fail to parse
    """
    tokens = list(Lexer(source, filename).tokenize())
    return Parser(tokens, filename).parse()
