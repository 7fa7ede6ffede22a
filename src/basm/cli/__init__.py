"""
BASM Command-Line Interface
===========================

- **basmpp**: Preprocessor, writes flattened source and a SourceMap
- **basm**: Assembler front-end, parses flattened source

Each tool is a Click application sharing the exit codes and error
reporting of ``basm.cli.errors``.
"""

__all__ = ["basmpp", "basm"]
