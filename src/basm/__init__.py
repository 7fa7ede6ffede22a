"""
BASM - Two-Stage Assembly Toolchain
===================================

This package turns textual assembly source for a small custom instruction
set into an abstract syntax tree, while keeping the ability to report
errors against the original, pre-expansion source files.

Main Components
---------------
- **preprocessor**: Stage one (basmpp)
    Resolves ``#include``, ``#define`` and ``#undef`` and writes one
    flattened source file plus a SourceMap artifact

- **assembler**: Stage two (basm)
    Lexes and parses the flattened source into statement nodes, mapping
    error lines back through the SourceMap

- **sourcemap**: The structure linking the two stages

Quick Start
-----------
Flatten a program:
    >>> from basm.preprocessor import preprocess_file
    >>> result = preprocess_file("main.asm", include_paths=["lib"])
    >>> Path("main.pp.asm").write_text(result.text)
    >>> result.source_map.write("main.pp.asm.map")

Parse the flattened output:
    >>> from basm.assembler import Assembler
    >>> statements = Assembler().parse_file("main.pp.asm")

Or use the command-line tools:
    $ basmpp main.asm -I lib
    $ basm main.pp.asm --dump
"""

__version__ = "1.0.0"

# =============================================================================
# Public API Exports
# =============================================================================

from basm.assembler import Assembler, Expr, ExprKind, parse_source
from basm.errors import (
    BasmError,
    SourceLocation,
    SourceError,
    LexError,
    DirectiveError,
    IncludeError,
    AssemblySyntaxError,
    SourceMapError,
)
from basm.preprocessor import PreprocessResult, preprocess, preprocess_file
from basm.sourcemap import LineEntry, SourceMap

__all__ = [
    "__version__",
    # Stages
    "preprocess",
    "preprocess_file",
    "PreprocessResult",
    "Assembler",
    "parse_source",
    "Expr",
    "ExprKind",
    # Source map
    "SourceMap",
    "LineEntry",
    # Errors
    "BasmError",
    "SourceLocation",
    "SourceError",
    "LexError",
    "DirectiveError",
    "IncludeError",
    "AssemblySyntaxError",
    "SourceMapError",
]
