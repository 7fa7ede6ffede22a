"""
Preprocessor Lexer
==================

This module splits one file's raw text into the flat token sequence the
preprocessor parser consumes. The preprocessor does not understand
instruction syntax: anything that is not a directive, a string, a
newline or whitespace is passed through as an opaque CODE token.

Token Types
-----------
- CODE: identifier-shaped words (``mov``, ``loop``, ``0x1F``), runs of
  punctuation (``(``, ``,``, ``+``), and single-quoted character literals
- WHITESPACE: a run of spaces/tabs (never a newline)
- NEWLINE: one ``\\n``
- STRING: double-quoted string; value is the decoded text
- INCLUDE / DEFINE / UNDEF: ``#include``, ``#define``, ``#undef``
  (case-insensitive)
- EOF: end of input

Comments (``;`` to end of line) are dropped.

String Escapes
--------------
| Escape | Meaning   |
|--------|-----------|
| ``\\n``  | newline   |
| ``\\0``  | null      |
| ``\\\\``  | backslash |
| ``\\"``  | quote     |

Any other escape is a LexError, as is a string left open at the end of a
line or of the input.

Example
-------
>>> from basm.preprocessor.lexer import Lexer
>>> for token in Lexer('#include "lib.asm" ; utilities').tokenize():
...     print(token)
Token(INCLUDE, '#include', 1)
Token(WHITESPACE, 1)
Token(STRING, 'lib.asm', 1)
Token(WHITESPACE, 1)
Token(EOF, 1)
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator, Optional

from basm.errors import LexError, SourceLocation


# =============================================================================
# Token Type Enumeration
# =============================================================================

class TokenType(Enum):
    """Categories of preprocessor tokens."""

    CODE = auto()        # Opaque code fragment, passed through verbatim
    WHITESPACE = auto()  # Spaces/tabs
    NEWLINE = auto()     # \n
    STRING = auto()      # "..."

    # Directives
    INCLUDE = auto()     # #include
    DEFINE = auto()      # #define
    UNDEF = auto()       # #undef

    EOF = auto()         # End of input


DIRECTIVE_TOKENS = frozenset({TokenType.INCLUDE, TokenType.DEFINE, TokenType.UNDEF})


# =============================================================================
# Token Data Class
# =============================================================================

@dataclass(frozen=True)
class Token:
    """
    A single preprocessor token.

    Attributes:
        type: The TokenType classification
        value: Decoded value (string contents for STRING, the text itself
            for CODE, None for structural tokens)
        text: The exact source text the token was scanned from
        span: Number of source bytes consumed
        line: Source line the token ends on (1-indexed)
    """
    type: TokenType
    value: Optional[str]
    text: str
    span: int
    line: int

    def __repr__(self) -> str:
        if self.value is not None:
            return f"Token({self.type.name}, {self.value!r}, {self.line})"
        return f"Token({self.type.name}, {self.line})"

    def render(self) -> str:
        """Text the token contributes to preprocessor output."""
        if self.type == TokenType.WHITESPACE:
            return " "
        return self.text

    @property
    def is_word(self) -> bool:
        """True for identifier-shaped CODE tokens (candidate macro names)."""
        return (
            self.type == TokenType.CODE
            and (self.text[0].isalpha() or self.text[0] == "_")
            and all(c.isalnum() or c == "_" for c in self.text)
        )


# =============================================================================
# Lexer Implementation
# =============================================================================

class Lexer:
    """
    Tokenizes one file for the preprocessor.

    Usage:
        lexer = Lexer(source_text, filename)
        tokens = list(lexer.tokenize())

    The lexer holds no state shared with other files.
    """

    DIRECTIVES = {
        "#include": TokenType.INCLUDE,
        "#define": TokenType.DEFINE,
        "#undef": TokenType.UNDEF,
    }

    ESCAPE_SEQUENCES = {
        "n": "\n",
        "0": "\0",
        "\\": "\\",
        '"': '"',
    }

    # Characters that end a run of punctuation
    PUNCT_STOP = "\"';#"

    def __init__(self, source: str, filename: str = "<input>"):
        self.source = source
        self.filename = filename

        self._pos = 0
        self._line = 1
        self._line_start_pos = 0

    def tokenize(self) -> Iterator[Token]:
        """
        Generate tokens from the source.

        Yields:
            Token objects, ending with an EOF token

        Raises:
            LexError: If a string, character literal or directive is malformed
        """
        while not self._at_end():
            char = self._peek()

            if char == ";":
                self._skip_comment()
                continue

            yield self._scan_token()

        yield Token(TokenType.EOF, None, "", 0, self._line)

    # =========================================================================
    # Character Access
    # =========================================================================

    def _at_end(self) -> bool:
        return self._pos >= len(self.source)

    def _peek(self, offset: int = 0) -> str:
        pos = self._pos + offset
        if pos >= len(self.source):
            return ""
        return self.source[pos]

    def _advance(self) -> str:
        char = self.source[self._pos]
        self._pos += 1
        return char

    def _make_token(self, token_type: TokenType, start: int, value: Optional[str] = None) -> Token:
        text = self.source[start:self._pos]
        return Token(
            type=token_type,
            value=value,
            text=text,
            span=len(text.encode("utf-8")),
            line=self._line,
        )

    def _error(self, message: str) -> LexError:
        """Create a LexError pointing at the current position."""
        location = SourceLocation(
            self.filename, self._line, self._pos - self._line_start_pos + 1
        )
        line_end = self.source.find("\n", self._line_start_pos)
        if line_end == -1:
            line_end = len(self.source)
        source_line = self.source[self._line_start_pos:line_end]
        return LexError(message, location, source_line=source_line)

    # =========================================================================
    # Scanning
    # =========================================================================

    def _skip_comment(self) -> None:
        while not self._at_end() and self._peek() != "\n":
            self._advance()

    def _scan_token(self) -> Token:
        start = self._pos
        char = self._peek()

        if char == "\n":
            self._advance()
            token = self._make_token(TokenType.NEWLINE, start)
            self._line += 1
            self._line_start_pos = self._pos
            return token

        if char.isspace():
            while self._peek() and self._peek().isspace() and self._peek() != "\n":
                self._advance()
            return self._make_token(TokenType.WHITESPACE, start)

        if char == "#":
            return self._scan_directive(start)

        if char == '"':
            return self._scan_string(start)

        if char == "'":
            return self._scan_char(start)

        # Words, including dot-prefixed assembler directives such as .org
        if char.isalnum() or char == "_" or (char == "." and self._peek(1).isalpha()):
            self._advance()
            while self._peek() and (self._peek().isalnum() or self._peek() == "_"):
                self._advance()
            return self._make_token(TokenType.CODE, start, self.source[start:self._pos])

        # Punctuation run: stops at whitespace, words and anything with
        # its own scanning rule
        self._advance()
        while (
            self._peek()
            and not self._peek().isspace()
            and not self._peek().isalnum()
            and self._peek() != "_"
            and self._peek() not in self.PUNCT_STOP
        ):
            self._advance()
        return self._make_token(TokenType.CODE, start, self.source[start:self._pos])

    def _scan_directive(self, start: int) -> Token:
        self._advance()  # consume #
        while self._peek() and (self._peek().isalnum() or self._peek() == "_"):
            self._advance()

        name = self.source[start:self._pos].lower()
        token_type = self.DIRECTIVES.get(name)
        if token_type is None:
            self._pos = start
            raise self._error(f"unknown preprocessor directive '{name}'")

        return self._make_token(token_type, start, name)

    def _scan_string(self, start: int) -> Token:
        self._advance()  # consume opening "

        chars = []
        while not self._at_end():
            char = self._peek()

            if char == '"':
                self._advance()
                return self._make_token(TokenType.STRING, start, "".join(chars))

            if char == "\n":
                break

            self._advance()
            if char == "\\":
                if self._at_end() or self._peek() == "\n":
                    break
                escape = self._advance()
                if escape not in self.ESCAPE_SEQUENCES:
                    raise self._error(f"'\\{escape}' is not a valid escape sequence")
                chars.append(self.ESCAPE_SEQUENCES[escape])
            else:
                chars.append(char)

        raise self._error("unterminated string literal")

    def _scan_char(self, start: int) -> Token:
        """
        Scan a single-quoted character literal as one opaque CODE token.

        The assembler decodes it; the preprocessor only needs to keep a
        quoted ';' or '"' from being read as a comment or string.
        """
        self._advance()  # consume opening '

        while not self._at_end():
            char = self._peek()

            if char == "'":
                self._advance()
                text = self.source[start:self._pos]
                return self._make_token(TokenType.CODE, start, text)

            if char == "\n":
                break

            self._advance()
            if char == "\\" and self._peek() and self._peek() != "\n":
                self._advance()

        raise self._error("unterminated character literal")


def tokenize(source: str, filename: str = "<input>") -> list[Token]:
    """Tokenize ``source`` and return the tokens as a list."""
    return list(Lexer(source, filename).tokenize())
