"""
BASM Preprocessor
=================

Stage one of the toolchain. Resolves ``#include``, ``#define`` and
``#undef`` and flattens a tree of source files into one text stream plus
a SourceMap that records the origin of every output line.

Main Components
---------------
- **Lexer**: Splits one file into code, whitespace, newline, string and
  directive tokens
- **Parser**: Re-emits code, executes directives, builds the SourceMap
- **preprocess / preprocess_file**: One-call entry points

Example Usage
-------------
>>> from basm.preprocessor import preprocess_file
>>> result = preprocess_file("main.asm", include_paths=["lib"])
>>> result.source_map.write("main.pp.asm.map")
"""

from basm.preprocessor.lexer import Lexer, Token, TokenType, tokenize
from basm.preprocessor.parser import (
    MAX_INCLUDE_DEPTH,
    Macro,
    MacroTable,
    Parser,
    PreprocessResult,
    preprocess,
    preprocess_file,
)

__all__ = [
    "Lexer",
    "Token",
    "TokenType",
    "tokenize",
    "MAX_INCLUDE_DEPTH",
    "Macro",
    "MacroTable",
    "Parser",
    "PreprocessResult",
    "preprocess",
    "preprocess_file",
]
