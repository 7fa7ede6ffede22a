"""
Assembly AST
============

The parser produces a list of statement nodes. Every node is an ``Expr``
with a kind, an optional payload, ordered children and the line of the
token that starts it.

Node Kinds
----------
| Kind        | Payload                  | Children                         |
|-------------|--------------------------|----------------------------------|
| INSTRUCTION | Condition or None        | exactly one OP                   |
| OP          | Opcode                   | zero, one or two operands        |
| REGISTER    | Register                 | none                             |
| REFERENCE   | indexed flag (bool)      | one operand                      |
| EXPRESSION  | None                     | one TERM                         |
| TERM        | None                     | FACTOR (OPERATOR FACTOR)*        |
| FACTOR      | None                     | UNARY (OPERATOR UNARY)*          |
| UNARY       | None                     | OPERATOR UNARY, or PRIMARY       |
| PRIMARY     | None                     | one INTEGER or LABEL             |
| INTEGER     | int                      | none                             |
| LABEL       | name (label reference)   | none                             |
| OPERATOR    | "+", "-", "*" or "/"     | none                             |
| STRING      | text                     | none                             |
| DIRECTIVE   | AssemblerDirective       | EXPRESSION / STRING operands     |
| LABEL_DEF   | name (declaration)       | none                             |

Example
-------
>>> from basm.assembler import parse_source
>>> print(parse_source("mov ac, 1")[0])
Instruction [ Op(mov) [ Register(ac) Expression [ Term [ Factor [ Unary [ Primary [ Integer(1) ] ] ] ] ] ] ]
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Iterator, Optional, Union

from basm.assembler.isa import AssemblerDirective, Condition, Opcode, Register


class ExprKind(Enum):
    """Kinds of AST node."""

    # Statements
    INSTRUCTION = auto()
    DIRECTIVE = auto()
    LABEL_DEF = auto()

    # Instruction parts
    OP = auto()
    REGISTER = auto()
    REFERENCE = auto()

    # Expression precedence chain
    EXPRESSION = auto()
    TERM = auto()
    FACTOR = auto()
    UNARY = auto()
    PRIMARY = auto()

    # Leaves
    INTEGER = auto()
    LABEL = auto()
    OPERATOR = auto()
    STRING = auto()


ExprValue = Union[int, str, bool, Condition, Opcode, Register, AssemblerDirective, None]


@dataclass
class Expr:
    """
    A node of the assembly AST.

    Attributes:
        kind: What the node represents
        value: Kind-specific payload (see module docstring)
        children: Ordered child nodes, owned by this node
        line: Flattened-output line of the node's leading token
    """
    kind: ExprKind
    value: ExprValue = None
    children: list["Expr"] = field(default_factory=list)
    line: int = 1

    # =========================================================================
    # Convenience Accessors
    # =========================================================================

    @property
    def condition(self) -> Optional[Condition]:
        """Condition code of an INSTRUCTION node."""
        if self.kind != ExprKind.INSTRUCTION:
            raise AttributeError(f"{self.kind.name} node has no condition")
        return self.value

    @property
    def op(self) -> "Expr":
        """The OP child of an INSTRUCTION node."""
        if self.kind != ExprKind.INSTRUCTION:
            raise AttributeError(f"{self.kind.name} node has no op")
        return self.children[0]

    @property
    def indexed(self) -> bool:
        """Whether a REFERENCE node is IX-relative."""
        if self.kind != ExprKind.REFERENCE:
            raise AttributeError(f"{self.kind.name} node has no indexed flag")
        return bool(self.value)

    def walk(self) -> Iterator["Expr"]:
        """Yield this node and all its descendants, depth first."""
        yield self
        for child in self.children:
            yield from child.walk()

    # =========================================================================
    # Display
    # =========================================================================

    def describe(self) -> str:
        """Node kind with its payload, e.g. ``Op(mov)`` or ``Reference(+IX)``."""
        name = self.kind.name.title().replace("_", "")
        if self.kind == ExprKind.REFERENCE:
            return f"{name}(+IX)" if self.value else name
        if self.value is None:
            return name
        if isinstance(self.value, Enum):
            return f"{name}({self.value.value})"
        if self.kind == ExprKind.STRING:
            return f"{name}({self.value!r})"
        return f"{name}({self.value})"

    def __str__(self) -> str:
        if not self.children:
            return self.describe()
        inner = " ".join(str(child) for child in self.children)
        return f"{self.describe()} [ {inner} ]"

    def dump(self, indent: int = 0) -> str:
        """Render the subtree one node per line, children indented."""
        lines = [f"{'  ' * indent}{self.describe()}  @{self.line}"]
        for child in self.children:
            lines.append(child.dump(indent + 1))
        return "\n".join(lines)
