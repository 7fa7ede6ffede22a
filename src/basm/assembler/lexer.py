"""
Assembly Language Lexer
=======================

This module converts flattened (preprocessed) assembly text into typed
tokens for the parser. Unlike the preprocessor lexer it has no opaque
fallback: every character must belong to a known token.

Token Types
-----------
- REGISTER, OPCODE, CONDITION: keywords (value is the isa enum member)
- DIRECTIVE: ``.org`` / ``.db`` (value is an AssemblerDirective)
- LABEL: any other identifier (value is the lower-cased name)
- INTEGER: numeric or character literal (value is a 16-bit int)
- STRING: double-quoted string (value is the decoded text)
- Punctuation: , ( ) + - * / :
- EOF: End of input

Newlines are not tokens. The lexer counts them and stamps every token
with the line it appears on, which the SourceMap can translate back to
an original file and line.

Number Formats
--------------
| Format      | Prefix | Example  | Value |
|-------------|--------|----------|-------|
| Decimal     | (none) | 42       | 42    |
| Hexadecimal | 0x     | 0x1F     | 31    |
| Binary      | 0b     | 0b101    | 5     |
| Octal       | 0o     | 0o17     | 15    |
| Character   | '      | 'A'      | 65    |

Values above 0xFFFF are rejected.

Character Escapes
-----------------
``\\n`` (0x0A), ``\\c`` (0x0B), ``\\z`` (0x0C), ``\\0``, ``\\\\``, and the
closing quote (``\\'`` in characters, ``\\"`` in strings).

Example
-------
>>> from basm.assembler.lexer import Lexer
>>> for token in Lexer("loop: mov ac, 0x10").tokenize():
...     print(token)
Token(LABEL, 'loop', 1)
Token(COLON, 1)
Token(OPCODE, 'mov', 1)
Token(REGISTER, 'ac', 1)
Token(COMMA, 1)
Token(INTEGER, 16, 1)
Token(EOF, 1)
"""

import string
from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator, Optional, Union

from basm.assembler.isa import (
    DIRECTIVES,
    AssemblerDirective,
    Condition,
    Opcode,
    Register,
    lookup_keyword,
)
from basm.errors import LexError, SourceLocation

# Largest value an integer literal may hold
MAX_INTEGER = 0xFFFF


# =============================================================================
# Token Type Enumeration
# =============================================================================

class TokenType(Enum):
    """Token types of the assembly language."""

    # Values
    STRING = auto()      # "..."
    LABEL = auto()       # Identifier that is not a keyword
    INTEGER = auto()     # Numeric or character literal

    # Keywords
    REGISTER = auto()
    OPCODE = auto()
    CONDITION = auto()
    DIRECTIVE = auto()   # .org, .db

    # Punctuation
    COMMA = auto()       # ,
    LPAREN = auto()      # (
    RPAREN = auto()      # )
    PLUS = auto()        # +
    MINUS = auto()       # -
    STAR = auto()        # *
    SLASH = auto()       # /
    COLON = auto()       # :

    EOF = auto()         # End of input


TokenValue = Union[str, int, Register, Opcode, Condition, AssemblerDirective, None]


# =============================================================================
# Token Data Class
# =============================================================================

@dataclass(frozen=True)
class Token:
    """
    A single assembly token.

    Attributes:
        type: The TokenType classification
        value: Payload (name, integer, string or keyword enum member)
        span: Number of source bytes consumed
        line: Line of the flattened text the token ends on (1-indexed)
    """
    type: TokenType
    value: TokenValue
    span: int
    line: int

    def __repr__(self) -> str:
        if self.value is None:
            return f"Token({self.type.name}, {self.line})"
        if isinstance(self.value, Enum):
            return f"Token({self.type.name}, {self.value.value!r}, {self.line})"
        return f"Token({self.type.name}, {self.value!r}, {self.line})"

    def __str__(self) -> str:
        """Source-like spelling, used in error messages."""
        if self.type in Lexer.PUNCTUATION_TEXT:
            return Lexer.PUNCTUATION_TEXT[self.type]
        if self.type == TokenType.EOF:
            return "end of input"
        if self.type == TokenType.STRING:
            return f'"{self.value}"'
        if isinstance(self.value, Enum):
            return self.value.value
        return str(self.value)


# =============================================================================
# Lexer Implementation
# =============================================================================

class Lexer:
    """
    Tokenizes flattened assembly text.

    Usage:
        lexer = Lexer(text, filename)
        tokens = list(lexer.tokenize())

    Attributes:
        source: The text being tokenized
        filename: Name used in error locations
    """

    # Token type for each kind of keyword lookup_keyword() can return
    KEYWORD_TOKENS = {
        Register: TokenType.REGISTER,
        Opcode: TokenType.OPCODE,
        Condition: TokenType.CONDITION,
    }

    SINGLE_CHAR_TOKENS = {
        ",": TokenType.COMMA,
        "(": TokenType.LPAREN,
        ")": TokenType.RPAREN,
        "+": TokenType.PLUS,
        "-": TokenType.MINUS,
        "*": TokenType.STAR,
        "/": TokenType.SLASH,
        ":": TokenType.COLON,
    }

    PUNCTUATION_TEXT = {token_type: char for char, token_type in SINGLE_CHAR_TOKENS.items()}

    # Shared by character and string literals
    ESCAPE_SEQUENCES = {
        "n": "\x0a",
        "c": "\x0b",
        "z": "\x0c",
        "0": "\0",
        "\\": "\\",
    }

    # Prefix -> (base, valid digits)
    RADIX_PREFIXES = {
        "0x": (16, string.hexdigits),
        "0b": (2, "01"),
        "0o": (8, string.octdigits),
    }

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
            LexError: If invalid syntax is encountered
        """
        while not self._at_end():
            char = self._peek()

            if char.isspace():
                self._advance()
                continue

            if char == ";":
                while not self._at_end() and self._peek() != "\n":
                    self._advance()
                continue

            yield self._scan_token()

        yield Token(TokenType.EOF, None, 0, self._line)

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
        if char == "\n":
            self._line += 1
            self._line_start_pos = self._pos
        return char

    def _take_while(self, chars: str) -> str:
        """Consume and return the longest run of characters from ``chars``."""
        start = self._pos
        # Note: '' in chars is True, so check for end of input first
        while self._peek() and self._peek() in chars:
            self._advance()
        return self.source[start:self._pos]

    def _take_identifier(self) -> str:
        """Consume a run of letters, digits and underscores (any script)."""
        start = self._pos
        while self._is_identifier_char(self._peek()):
            self._advance()
        return self.source[start:self._pos]

    @staticmethod
    def _is_identifier_start(char: str) -> bool:
        return char.isalpha() or char == "_"

    @staticmethod
    def _is_identifier_char(char: str) -> bool:
        return char.isalnum() or char == "_"

    def _make_token(self, token_type: TokenType, value: TokenValue, start: int) -> Token:
        span = len(self.source[start:self._pos].encode("utf-8"))
        return Token(token_type, value, span, self._line)

    def _error(self, message: str, start: Optional[int] = None) -> LexError:
        """Create a LexError at ``start`` (default: current position)."""
        pos = self._pos if start is None else start
        location = SourceLocation(self.filename, self._line, pos - self._line_start_pos + 1)

        line_end = self.source.find("\n", self._line_start_pos)
        if line_end == -1:
            line_end = len(self.source)
        source_line = self.source[self._line_start_pos:line_end]

        return LexError(message, location, source_line=source_line)

    # =========================================================================
    # Token Scanning
    # =========================================================================

    def _scan_token(self) -> Token:
        start = self._pos
        char = self._peek()

        if char in self.SINGLE_CHAR_TOKENS:
            self._advance()
            return self._make_token(self.SINGLE_CHAR_TOKENS[char], None, start)

        if self._is_identifier_start(char):
            return self._scan_identifier(start)

        if char.isdigit():
            return self._scan_number(start)

        if char == ".":
            return self._scan_directive(start)

        if char == "'":
            return self._scan_char(start)

        if char == '"':
            return self._scan_string(start)

        raise self._error(f"unexpected character '{char}'")

    def _scan_identifier(self, start: int) -> Token:
        name = self._take_identifier().lower()

        keyword = lookup_keyword(name)
        if keyword is not None:
            return self._make_token(self.KEYWORD_TOKENS[type(keyword)], keyword, start)

        return self._make_token(TokenType.LABEL, name, start)

    def _scan_directive(self, start: int) -> Token:
        self._advance()  # consume .
        name = "." + self._take_identifier().lower()

        directive = DIRECTIVES.get(name)
        if directive is None:
            raise self._error(f"unknown assembler directive '{name}'", start)

        return self._make_token(TokenType.DIRECTIVE, directive, start)

    def _scan_number(self, start: int) -> Token:
        """
        Scan a decimal, 0x hex, 0b binary or 0o octal literal.

        The whole alphanumeric run is consumed first so that "12ab" is
        reported as one bad literal rather than a number and a label.
        """
        text = self._take_while(string.ascii_letters + string.digits)
        prefix = text[:2].lower()

        if prefix in self.RADIX_PREFIXES:
            base, digits = self.RADIX_PREFIXES[prefix]
            body = text[2:]
        else:
            base, digits = 10, string.digits
            body = text

        if not body:
            raise self._error(f"expected digits after '{text}'", start)
        if any(c not in digits for c in body):
            raise self._error(f"could not parse number '{text}'", start)

        value = int(body, base)
        if value > MAX_INTEGER:
            raise self._error(f"integer literal '{text}' does not fit in 16 bits", start)

        return self._make_token(TokenType.INTEGER, value, start)

    def _scan_escape(self, quote: str) -> str:
        """Scan the character after a backslash."""
        if self._at_end() or self._peek() == "\n":
            raise self._error("unterminated escape sequence")

        char = self._advance()
        if char == quote:
            return char
        if char in self.ESCAPE_SEQUENCES:
            return self.ESCAPE_SEQUENCES[char]

        raise self._error(f"'\\{char}' is not a valid escape sequence")

    def _scan_char(self, start: int) -> Token:
        """Scan a character literal; its value is the character's code point."""
        self._advance()  # consume opening '

        if self._at_end() or self._peek() == "\n":
            raise self._error("unterminated character literal", start)
        if self._peek() == "'":
            raise self._error("empty character literal", start)

        if self._peek() == "\\":
            self._advance()
            char = self._scan_escape("'")
        else:
            char = self._advance()

        if self._peek() != "'":
            if self._at_end() or self._peek() == "\n":
                raise self._error("unterminated character literal", start)
            raise self._error("character literal holds more than one character", start)
        self._advance()  # consume closing '

        value = ord(char)
        if value > MAX_INTEGER:
            raise self._error(f"character '{char}' does not fit in 16 bits", start)

        return self._make_token(TokenType.INTEGER, value, start)

    def _scan_string(self, start: int) -> Token:
        self._advance()  # consume opening "

        chars = []
        while not self._at_end() and self._peek() != "\n":
            char = self._advance()
            if char == '"':
                return self._make_token(TokenType.STRING, "".join(chars), start)
            if char == "\\":
                chars.append(self._scan_escape('"'))
            else:
                chars.append(char)

        raise self._error("unterminated string literal", start)


def tokenize(source: str, filename: str = "<input>") -> list[Token]:
    """Tokenize ``source`` and return the tokens as a list."""
    return list(Lexer(source, filename).tokenize())
