"""
BASM Assembler Front-End
========================

Stage two of the toolchain. Lexes flattened assembly into instruction-set
tokens and parses them into an AST of instructions, directives and label
declarations.

Main Components
---------------
- **Lexer**: Registers, opcodes, condition codes, literals, punctuation
- **Parser**: Recursive descent with an operator-precedence expression
  sub-grammar and an addressing-mode sub-grammar
- **Expr**: AST node (see ``basm.assembler.ast``)
- **Assembler**: Driver that loads the SourceMap and reports errors
  against the original files

Example Usage
-------------
>>> from basm.assembler import parse_source
>>> [s.describe() for s in parse_source("start: .org 0x100")]
['LabelDef(start)', 'Directive(.org)']
"""

from basm.assembler.ast import Expr, ExprKind
from basm.assembler.frontend import Assembler, default_map_path, parse_file
from basm.assembler.isa import (
    AssemblerDirective,
    Condition,
    Opcode,
    Register,
    lookup_keyword,
)
from basm.assembler.lexer import MAX_INTEGER, Lexer, Token, TokenType, tokenize
from basm.assembler.parser import Parser, parse_source

__all__ = [
    "Assembler",
    "default_map_path",
    "parse_file",
    "parse_source",
    "Expr",
    "ExprKind",
    "Lexer",
    "Token",
    "TokenType",
    "tokenize",
    "MAX_INTEGER",
    "Parser",
    "AssemblerDirective",
    "Condition",
    "Opcode",
    "Register",
    "lookup_keyword",
]
