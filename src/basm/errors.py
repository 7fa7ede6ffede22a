"""
BASM Error Hierarchy
====================

This module defines the exception hierarchy for the whole toolchain.
All exceptions inherit from BasmError, allowing callers to catch every
toolchain error with a single except clause if desired.

Exception Hierarchy
-------------------
BasmError (base)
├── SourceError (errors tied to a place in a source file)
│   ├── LexError - malformed literal, bad escape, unknown directive
│   ├── DirectiveError - wrong use of #include / #define / #undef
│   │   └── IncludeError - include target missing, unreadable or circular
│   └── AssemblySyntaxError - grammar error in the assembler parser
└── SourceMapError - malformed map artifact or unresolvable output line

Error messages follow this format:
    filename:line: error: description
        source_line_text
    hint: suggestion for fixing (when available)
    note: included from includer:line (one per enclosing #include)
"""

from dataclasses import dataclass
from typing import Optional


# =============================================================================
# Base Exception Class
# =============================================================================

class BasmError(Exception):
    """
    Base exception for all toolchain errors.

        try:
            preprocess_file("program.asm")
        except BasmError as e:
            print(f"Error: {e}")
    """
    pass


# =============================================================================
# Source Location Tracking
# =============================================================================

@dataclass(frozen=True)
class SourceLocation:
    """
    A location in source code for error reporting.

    Attributes:
        filename: Name of the source file ("stdin" for standard input)
        line: Line number (1-indexed)
        column: Column number (1-indexed), 0 when unknown
    """
    filename: str
    line: int
    column: int = 0

    def __str__(self) -> str:
        if self.column > 0:
            return f"{self.filename}:{self.line}:{self.column}"
        return f"{self.filename}:{self.line}"


# =============================================================================
# Source Errors
# =============================================================================

class SourceError(BasmError):
    """
    Base exception for errors that point into a source file.

    Attributes:
        message: The error description
        location: Where in the source the error occurred (optional)
        hint: A suggestion for fixing the error (optional)
        source_line: The source text at the error location (optional)
        included_from: #include sites that led to the error's file,
            innermost first
    """

    def __init__(
        self,
        message: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
        source_line: Optional[str] = None,
    ):
        self.message = message
        self.location = location
        self.hint = hint
        self.source_line = source_line
        self.included_from: list[SourceLocation] = []
        super().__init__(self._format_message())

    @property
    def line(self) -> Optional[int]:
        """Line number of the error, or None when unlocated."""
        return self.location.line if self.location else None

    def _format_message(self) -> str:
        """
        Format the error message with location, source context, and hint.

        Example output:
            lib.asm:2:6: error: unterminated string literal
                "open
            note: included from main.asm:3
        """
        parts = []

        if self.location:
            parts.append(f"{self.location}: error: {self.message}")
        else:
            parts.append(f"error: {self.message}")

        if self.source_line is not None:
            parts.append(f"    {self.source_line}")

        if self.hint:
            parts.append(f"hint: {self.hint}")

        for site in self.included_from:
            parts.append(f"note: included from {site}")

        return "\n".join(parts)

    def add_include_site(self, location: SourceLocation) -> None:
        """Record the #include at ``location`` as the next outer includer."""
        self.included_from.append(location)
        self.args = (self._format_message(),)

    def relocated(
        self,
        location: SourceLocation,
        source_line: Optional[str] = None,
    ) -> "SourceError":
        """
        Return a copy of this error pointing at another location.

        Used to translate a line of flattened output back to the file and
        line it came from. The copy keeps the concrete exception class.
        """
        clone = self.__class__.__new__(self.__class__)
        clone.__dict__.update(self.__dict__)
        clone.location = location
        clone.included_from = list(self.included_from)
        if source_line is not None:
            clone.source_line = source_line
        clone.args = (clone._format_message(),)
        return clone

    def __str__(self) -> str:
        return self._format_message()


class LexError(SourceError):
    """
    Lexical error in preprocessor or assembler input.

    Examples:
        - Unterminated string or character literal
        - Invalid escape sequence
        - Integer literal that does not fit in 16 bits
        - Unknown '#' directive
        - Unexpected character
    """
    pass


class DirectiveError(SourceError):
    """
    Wrong use of a preprocessor directive.

    Examples:
        - #include without exactly one string parameter
        - #define without a macro name
        - #undef with more than one parameter
    """
    pass


class IncludeError(DirectiveError):
    """
    Error including a file.

    Raised when:
    - Include file not found
    - Include file cannot be read
    - Circular include detected
    - Includes nested too deeply
    """

    def __init__(
        self,
        filename: str,
        reason: str,
        location: Optional[SourceLocation] = None,
        search_paths: Optional[list[str]] = None,
    ):
        self.included_filename = filename
        self.reason = reason
        self.search_paths = search_paths or []

        hint = None
        if self.search_paths:
            paths_str = ", ".join(self.search_paths)
            hint = f"searched in: {paths_str}"

        super().__init__(
            f"cannot include '{filename}': {reason}",
            location=location,
            hint=hint,
        )


class AssemblySyntaxError(SourceError):
    """
    Grammar error in flattened assembly.

    The location line is a line of the flattened output until the driver
    maps it back through the SourceMap.

    Examples:
        - Unexpected token at the start of a statement
        - Missing operand after an operator or ','
        - Malformed '+IX' suffix on a reference
    """
    pass


# =============================================================================
# Source Map Exceptions
# =============================================================================

class SourceMapError(BasmError):
    """
    Source map is malformed or cannot resolve a line.

    Raised when a map artifact fails to decode, or when an output line is
    resolved that the map has no entry for.
    """
    pass
