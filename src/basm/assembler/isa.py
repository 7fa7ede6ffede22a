"""
Instruction Set Vocabulary
==========================

Keyword tables shared by the assembler lexer and parser: registers,
opcodes, condition codes and assembler directives. Every keyword is
matched case-insensitively; enum values hold the lower-case spelling.

Registers
---------
| Name  | Meaning                 |
|-------|-------------------------|
| AC    | Accumulator             |
| BR    | B register              |
| IX    | Index register          |
| SP    | Stack pointer           |
| IMM   | Immediate operand slot  |
| STACK | Top of stack            |

Condition Codes
---------------
An instruction may be prefixed by ``-`` and a condition, e.g.
``-nz jmp loop``: C (carry), Z (zero), NC, NZ, CZ (carry or zero),
NCZ (neither).
"""

from enum import Enum
from typing import Optional


class Register(Enum):
    """Hardware registers."""
    AC = "ac"
    BR = "br"
    IX = "ix"
    SP = "sp"
    IMM = "imm"
    STACK = "stack"


class Opcode(Enum):
    """Instruction mnemonics."""
    # Data movement
    MOV = "mov"

    # Arithmetic
    ADD = "add"
    ADC = "adc"
    SUB = "sub"
    SBB = "sbb"
    SBW = "sbw"
    SWB = "swb"
    INC = "inc"
    DEC = "dec"
    CMP = "cmp"

    # Logic
    NND = "nnd"
    AND = "and"
    AIB = "aib"
    ANB = "anb"
    BIA = "bia"
    BNA = "bna"
    ORA = "ora"
    NOR = "nor"
    XOR = "xor"
    XNR = "xnr"

    # Control flow
    JMP = "jmp"
    JSR = "jsr"
    RET = "ret"
    HLT = "hlt"

    # Flags
    CLC = "clc"
    CLZ = "clz"
    SEC = "sec"
    SEZ = "sez"


class Condition(Enum):
    """Flag tests usable as an instruction prefix."""
    C = "c"
    Z = "z"
    NC = "nc"
    NZ = "nz"
    CZ = "cz"
    NCZ = "ncz"


class AssemblerDirective(Enum):
    """Dot-prefixed assembler directives."""
    ORG = ".org"
    DB = ".db"


REGISTERS = {r.value: r for r in Register}
OPCODES = {o.value: o for o in Opcode}
CONDITIONS = {c.value: c for c in Condition}
DIRECTIVES = {d.value: d for d in AssemblerDirective}


def lookup_keyword(word: str) -> Optional[Enum]:
    """
    Classify an identifier as a register, opcode or condition code.

    Returns:
        The matching enum member, or None for an ordinary label
    """
    word = word.lower()
    return REGISTERS.get(word) or OPCODES.get(word) or CONDITIONS.get(word)
