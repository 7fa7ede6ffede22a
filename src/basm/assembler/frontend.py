"""
Assembler Front-End Driver
==========================

The Assembler class ties the assembler lexer and parser together and
owns the SourceMap written by the preprocessor. Errors raised while
lexing or parsing name a line of the flattened text; when a map is
available the driver translates that line back to the original file
and line before the error reaches the user.

Example
-------
>>> from basm.assembler import Assembler
>>> asm = Assembler()
>>> statements = asm.parse_file("main.pp.asm")   # loads main.pp.asm.map
>>> len(statements)
12
"""

import logging
from pathlib import Path
from typing import Optional, Union

from basm.assembler.ast import Expr, ExprKind
from basm.assembler.lexer import Lexer
from basm.assembler.parser import Parser
from basm.errors import SourceError, SourceLocation, SourceMapError
from basm.sourcemap import SourceMap

logger = logging.getLogger(__name__)

# Suffix appended to a flattened file's name to find its map
MAP_SUFFIX = ".map"


def default_map_path(path: Union[str, Path]) -> Path:
    """``main.pp.asm`` -> ``main.pp.asm.map``"""
    path = Path(path)
    return path.with_name(path.name + MAP_SUFFIX)


class Assembler:
    """
    Lexes and parses flattened assembly, reporting errors against the
    original sources when a SourceMap is known.

    Attributes:
        source_map: Map of the text being parsed, or None
        statements: Statements produced by the last successful parse
    """

    def __init__(self, source_map: Optional[SourceMap] = None):
        self.source_map = source_map
        self.statements: list[Expr] = []

    # =========================================================================
    # Source Map
    # =========================================================================

    def load_source_map(self, path: Union[str, Path]) -> Optional[SourceMap]:
        """
        Load a map artifact if it exists.

        A missing file is not an error: the map is cleared and errors are
        then reported against output lines.

        Raises:
            SourceMapError: If the file exists but is not a valid map
        """
        path = Path(path)
        if not path.is_file():
            logger.debug(f"No source map at {path}")
            self.source_map = None
            return None

        self.source_map = SourceMap.read(path)
        logger.debug(
            f"Loaded source map {path}: {len(self.source_map)} lines from "
            f"{self.source_map.filename_count} files"
        )
        return self.source_map

    def locate(self, output_line: int) -> Optional[SourceLocation]:
        """Original location of a flattened line, or None if unknown."""
        if self.source_map is None:
            return None
        try:
            return self.source_map.locate(output_line)
        except SourceMapError as e:
            logger.warning(f"Cannot map line {output_line}: {e}")
            return None

    # =========================================================================
    # Parsing
    # =========================================================================

    def parse_string(self, text: str, filename: str = "<input>") -> list[Expr]:
        """
        Lex and parse flattened assembly text.

        Args:
            text: Flattened assembly
            filename: Name used for errors when no map is loaded

        Returns:
            List of statement nodes

        Raises:
            LexError: On a malformed token
            AssemblySyntaxError: On a grammar error
        """
        try:
            tokens = list(Lexer(text, filename).tokenize())
            logger.debug(f"{filename}: {len(tokens)} tokens")
            statements = Parser(tokens, filename).parse()
        except SourceError as e:
            raise self._relocate(e) from e

        logger.debug(f"{filename}: {len(statements)} statements")
        self.statements = statements
        return statements

    def parse_file(
        self,
        path: Union[str, Path],
        map_path: Optional[Union[str, Path]] = None,
    ) -> list[Expr]:
        """
        Parse a flattened file, loading its map first.

        Args:
            path: Flattened assembly file
            map_path: Map artifact (default: ``<path>.map``)

        Raises:
            OSError: If ``path`` cannot be read
            SourceMapError: If the map exists but is malformed
        """
        path = Path(path)
        self.load_source_map(map_path if map_path is not None else default_map_path(path))

        text = path.read_text(encoding="utf-8")
        return self.parse_string(text, str(path))

    def _relocate(self, error: SourceError) -> SourceError:
        if error.line is None:
            return error

        location = self.locate(error.line)
        if location is None:
            return error

        logger.debug(f"Mapped output line {error.line} to {location}")
        return error.relocated(location)

    # =========================================================================
    # Results
    # =========================================================================

    def summary(self) -> dict[str, int]:
        """Count the statements of the last parse by kind."""
        counts = {"instructions": 0, "directives": 0, "labels": 0}
        for statement in self.statements:
            if statement.kind == ExprKind.INSTRUCTION:
                counts["instructions"] += 1
            elif statement.kind == ExprKind.DIRECTIVE:
                counts["directives"] += 1
            elif statement.kind == ExprKind.LABEL_DEF:
                counts["labels"] += 1
        return counts

    def dump(self) -> str:
        """Indented tree of every statement of the last parse."""
        return "\n".join(statement.dump() for statement in self.statements)


def parse_file(path: Union[str, Path], map_path: Optional[Union[str, Path]] = None) -> list[Expr]:
    """Parse a flattened file with a fresh Assembler."""
    return Assembler().parse_file(path, map_path)
