"""
Preprocessor Parser
===================

This module walks a preprocessor token sequence and produces one
flattened source text plus a SourceMap describing where every output
line came from.

Processing Rules
----------------
- NEWLINE: emit ``\\n``, start a new SourceMap entry, and drop one
  following WHITESPACE token (indentation at line start)
- WHITESPACE: emit a single space
- CODE: emit verbatim, unless it names a defined macro (see below)
- STRING: emit the original quoted text
- Directives: consume the directive and every token up to the next
  newline as its parameters, then execute it

Supported Directives
--------------------
#include "file"          - splice the flattened text and map of ``file``
#define NAME [tokens...]  - define (or redefine, with a warning) a macro
#undef NAME               - remove a macro (unknown names only warn)

Macros
------
Macros are plain name substitution: a code word equal to a defined name
is replaced by the macro body, itself expanded, skipping any macro that
is already being expanded. The macro table belongs to one Parser. An
included file starts from a copy of the includer's table at the point
of inclusion, and definitions made inside it stay inside it.

Example
-------
>>> from basm.preprocessor import preprocess
>>> result = preprocess("#define ONE 1\\nmov ac, ONE\\n", "main.asm")
>>> result.text
'\\nmov ac, 1\\n'
>>> result.source_map.resolve(2)
('main.asm', 2)
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Mapping, Optional, Sequence, Union

from basm.errors import (
    DirectiveError,
    IncludeError,
    SourceError,
    SourceLocation,
)
from basm.fileio import SourceLoader
from basm.preprocessor.lexer import DIRECTIVE_TOKENS, Token, TokenType, tokenize
from basm.sourcemap import SourceMap

logger = logging.getLogger(__name__)

# Maximum depth of nested #include directives
MAX_INCLUDE_DEPTH = 32


# =============================================================================
# Macro Table
# =============================================================================

@dataclass(frozen=True)
class Macro:
    """
    A preprocessor macro.

    Attributes:
        name: Macro name
        body: Replacement tokens, owned by the macro
        location: Where the macro was defined (None for predefined macros)
    """
    name: str
    body: tuple[Token, ...] = ()
    location: Optional[SourceLocation] = None

    @property
    def text(self) -> str:
        """The body as it reads in source."""
        return "".join(token.render() for token in self.body)


class MacroTable:
    """Mapping from macro name to Macro, owned by a single Parser."""

    def __init__(self, macros: Optional[Mapping[str, Macro]] = None):
        self._macros: dict[str, Macro] = dict(macros or {})

    def define(
        self,
        name: str,
        body: Sequence[Token] = (),
        location: Optional[SourceLocation] = None,
    ) -> Optional[Macro]:
        """
        Define ``name``, returning the definition it replaced, if any.
        """
        previous = self._macros.get(name)
        self._macros[name] = Macro(name, tuple(body), location)
        return previous

    def define_text(self, name: str, text: str = "") -> Optional[Macro]:
        """Define ``name`` from replacement text, e.g. from the command line."""
        body = [
            token for token in tokenize(text, "<define>")
            if token.type not in (TokenType.EOF, TokenType.NEWLINE)
        ]
        return self.define(name, _strip_whitespace(body))

    def undefine(self, name: str) -> bool:
        """Remove ``name``; return False if it was not defined."""
        return self._macros.pop(name, None) is not None

    def get(self, name: str) -> Optional[Macro]:
        return self._macros.get(name)

    def copy(self) -> "MacroTable":
        return MacroTable(self._macros)

    def __contains__(self, name: str) -> bool:
        return name in self._macros

    def __len__(self) -> int:
        return len(self._macros)


# =============================================================================
# Result
# =============================================================================

@dataclass
class PreprocessResult:
    """
    Output of one preprocessor run.

    Attributes:
        text: Flattened source with includes spliced and macros expanded
        source_map: Origin of every line of ``text``
        warnings: Non-fatal diagnostics (macro redefinition, unknown #undef)
    """
    text: str
    source_map: SourceMap
    warnings: list[str] = field(default_factory=list)


# =============================================================================
# Parser Implementation
# =============================================================================

class Parser:
    """
    Executes directives and flattens one file's tokens.

    Usage:
        tokens = tokenize(source, filename)
        result = Parser(tokens, filename).parse()
        print(result.text)

    Attributes:
        filename: Name of the file being processed
        macros: This parser's macro table
        source_map: Map built while parsing
        warnings: Warnings raised while parsing
    """

    def __init__(
        self,
        tokens: list[Token],
        filename: str = "<input>",
        loader: Optional[SourceLoader] = None,
        macros: Optional[MacroTable] = None,
        include_stack: Optional[tuple[str, ...]] = None,
        depth: int = 0,
    ):
        """
        Initialize the parser.

        Args:
            tokens: Tokens produced by the preprocessor Lexer
            filename: Name of the file the tokens came from
            loader: Locates and reads included files
            macros: Starting macro table (copied, never shared)
            include_stack: Identities of the files currently being
                included, outermost first; used to detect cycles
            depth: Include nesting depth of this file
        """
        self._tokens = tokens
        self.filename = filename
        self._loader = loader or SourceLoader()
        self.macros = macros.copy() if macros is not None else MacroTable()
        self._depth = depth

        if include_stack is None:
            include_stack = (self._loader.identity(filename),)
        self._include_stack = include_stack

        self._pos = 0
        self._line = 1
        self._output: list[str] = []
        self.source_map = SourceMap()
        self.warnings: list[str] = []

    @property
    def output(self) -> str:
        """Text emitted so far."""
        return "".join(self._output)

    def parse(self) -> PreprocessResult:
        """
        Process every token.

        Returns:
            PreprocessResult with the flattened text and its SourceMap

        Raises:
            LexError: If an included file fails to tokenize
            DirectiveError: If a directive is malformed
            IncludeError: If an included file cannot be found or read,
                or the include graph is cyclic or too deep

        An error raised inside an included file lists every #include
        site that led to it in ``included_from``.
        """
        self.source_map.add_filename(self.filename)
        self.source_map.add_entry(0, self._line)

        try:
            while self._parse_statement():
                pass
        except SourceError as e:
            if e.location is None:
                raise e.relocated(SourceLocation(self.filename, self._line)) from e
            raise

        return PreprocessResult(self.output, self.source_map, self.warnings)

    # =========================================================================
    # Token Navigation
    # =========================================================================

    def _current(self) -> Token:
        if self._pos >= len(self._tokens):
            return Token(TokenType.EOF, None, "", 0, self._line)
        return self._tokens[self._pos]

    def _advance(self) -> Token:
        token = self._current()
        self._pos += 1
        return token

    def _check(self, *types: TokenType) -> bool:
        return self._current().type in types

    def _location(self) -> SourceLocation:
        return SourceLocation(self.filename, self._line)

    # =========================================================================
    # Statements
    # =========================================================================

    def _parse_statement(self) -> bool:
        """Handle one token (or one directive line); False at end of input."""
        token = self._current()

        if token.type == TokenType.EOF:
            return False

        if token.type == TokenType.NEWLINE:
            self._advance()
            self._output.append("\n")
            self._line += 1
            self.source_map.add_entry(0, self._line)
            if self._check(TokenType.WHITESPACE):
                self._advance()

        elif token.type == TokenType.WHITESPACE:
            self._advance()
            self._output.append(" ")

        elif token.type == TokenType.CODE:
            self._advance()
            self._emit_code(token)

        elif token.type == TokenType.STRING:
            self._advance()
            self._output.append(token.text)

        elif token.type in DIRECTIVE_TOKENS:
            self._parse_directive()

        return True

    def _emit_code(self, token: Token) -> None:
        if token.is_word and token.value in self.macros:
            self._output.append(self._expand(token.value, frozenset()))
        else:
            self._output.append(token.text)

    def _expand(self, name: str, active: frozenset[str]) -> str:
        """Expand macro ``name``; names in ``active`` are left as written."""
        macro = self.macros.get(name)
        active = active | {name}
        parts = []
        for token in macro.body:
            if token.is_word and token.value in self.macros and token.value not in active:
                parts.append(self._expand(token.value, active))
            else:
                parts.append(token.render())
        return "".join(parts)

    # =========================================================================
    # Directives
    # =========================================================================

    def _parse_directive(self) -> None:
        directive = self._advance()
        location = self._location()

        params: list[Token] = []
        while not self._check(TokenType.NEWLINE, TokenType.EOF):
            params.append(self._advance())

        if directive.type == TokenType.INCLUDE:
            self._include(_strip_all_whitespace(params), location)
        elif directive.type == TokenType.DEFINE:
            self._define(_strip_whitespace(params), location)
        elif directive.type == TokenType.UNDEF:
            self._undef(_strip_all_whitespace(params), location)

    def _include(self, args: list[Token], location: SourceLocation) -> None:
        """Process #include: flatten the named file and splice it in."""
        if len(args) != 1 or args[0].type != TokenType.STRING:
            raise DirectiveError(
                "#include expects exactly one string parameter",
                location,
                hint='write #include "file.asm"',
            )

        name = args[0].value

        if self._depth >= MAX_INCLUDE_DEPTH:
            raise IncludeError(
                name,
                f"includes nested deeper than {MAX_INCLUDE_DEPTH} levels",
                location,
            )

        path = self._loader.find(name, self.filename)
        if path is None:
            raise IncludeError(
                name,
                "file not found",
                location,
                search_paths=[str(p) for p in self._loader.search_paths(self.filename)],
            )

        identity = self._loader.identity(path)
        if identity in self._include_stack:
            raise IncludeError(name, "circular include detected", location)

        try:
            source = self._loader.read(path)
        except OSError as e:
            raise IncludeError(name, str(e), location) from e

        logger.debug(f"Including {path} at {location}")

        try:
            child = Parser(
                tokenize(source, path),
                path,
                loader=self._loader,
                macros=self.macros,
                include_stack=self._include_stack + (identity,),
                depth=self._depth + 1,
            )
            result = child.parse()
        except SourceError as e:
            e.add_include_site(location)
            raise

        self._output.append(result.text)
        self.source_map.splice(result.source_map)
        self.warnings.extend(result.warnings)

    def _define(self, params: list[Token], location: SourceLocation) -> None:
        """Process #define NAME [tokens...]."""
        if not params:
            raise DirectiveError("#define expects a macro name", location)

        name_token, body = params[0], _strip_whitespace(params[1:])
        if not name_token.is_word:
            raise DirectiveError(
                f"macro name must be an identifier, found '{name_token.text}'",
                location,
            )

        for token in body:
            if token.type in DIRECTIVE_TOKENS:
                raise DirectiveError(
                    f"'{token.text}' cannot appear in a #define body",
                    location,
                )

        previous = self.macros.define(name_token.value, body, location)
        macro = self.macros.get(name_token.value)
        logger.debug(f"Defined {macro.name} = '{macro.text}' at {location}")
        if previous is not None:
            where = f" (previously defined at {previous.location})" if previous.location else ""
            self._warn(f"macro '{name_token.value}' redefined{where}", location)

    def _undef(self, args: list[Token], location: SourceLocation) -> None:
        """Process #undef NAME."""
        if len(args) != 1 or not args[0].is_word:
            raise DirectiveError("#undef expects exactly one macro name", location)

        name = args[0].value
        if not self.macros.undefine(name):
            self._warn(f"#undef of unknown macro '{name}'", location)

    def _warn(self, message: str, location: SourceLocation) -> None:
        text = f"{location}: warning: {message}"
        logger.warning(text)
        self.warnings.append(text)


# =============================================================================
# Helpers
# =============================================================================

def _strip_whitespace(tokens: Sequence[Token]) -> list[Token]:
    """Drop leading and trailing WHITESPACE tokens."""
    tokens = list(tokens)
    while tokens and tokens[0].type == TokenType.WHITESPACE:
        tokens.pop(0)
    while tokens and tokens[-1].type == TokenType.WHITESPACE:
        tokens.pop()
    return tokens


def _strip_all_whitespace(tokens: Sequence[Token]) -> list[Token]:
    return [token for token in tokens if token.type != TokenType.WHITESPACE]


def _iter_defines(defines: Optional[Mapping[str, str]]) -> Iterator[tuple[str, str]]:
    for name, value in (defines or {}).items():
        yield name, "" if value is None else str(value)


# =============================================================================
# Convenience Functions
# =============================================================================

def preprocess(
    source: str,
    filename: str = "<input>",
    loader: Optional[SourceLoader] = None,
    defines: Optional[Mapping[str, str]] = None,
) -> PreprocessResult:
    """
    Preprocess source text.

    Args:
        source: Text of the top-level file
        filename: Name recorded in the SourceMap and in errors
        loader: Locates and reads included files
        defines: Macros defined before the first line (name -> body text)

    Returns:
        PreprocessResult with flattened text and SourceMap
    """
    macros = MacroTable()
    for name, value in _iter_defines(defines):
        macros.define_text(name, value)

    parser = Parser(tokenize(source, filename), filename, loader=loader, macros=macros)
    return parser.parse()


def preprocess_file(
    path: Union[str, Path],
    include_paths: Optional[Sequence[Union[str, Path]]] = None,
    defines: Optional[Mapping[str, str]] = None,
) -> PreprocessResult:
    """
    Preprocess a file from disk.

    Raises:
        OSError: If the top-level file cannot be read
    """
    loader = SourceLoader(include_paths)
    filename = str(path)
    return preprocess(loader.read(filename), filename, loader=loader, defines=defines)
