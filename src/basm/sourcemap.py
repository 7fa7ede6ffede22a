"""
Source Map
==========

A SourceMap records, for every line of flattened preprocessor output,
which file and which line of that file it came from. The preprocessor
builds one while it expands includes, and the assembler loads it to
report errors against the original, pre-expansion sources.

Structure
---------
- ``filenames``: file names in first-seen order (duplicates allowed)
- ``line_entries``: one ``LineEntry(filename_index, line)`` per output
  line; entry ``i`` describes output line ``i + 1``

Wire Format
-----------
The map is stored as JSON next to the flattened output::

    {
      "filenames": ["main.asm", "lib.asm"],
      "line_entries": [
        {"filename_index": 0, "line": 1},
        {"filename_index": 1, "line": 1}
      ]
    }

Example
-------
>>> from basm.sourcemap import SourceMap
>>> lib = SourceMap(["lib.asm"])
>>> lib.add_entry(0, 1)
>>> main = SourceMap(["main.asm"])
>>> main.add_entry(0, 1)
>>> main.push(lib)
>>> main.resolve(2)
('lib.asm', 1)
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional, Union

from basm.errors import SourceLocation, SourceMapError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LineEntry:
    """Origin of one output line: index into the filenames, and source line."""
    filename_index: int
    line: int


@dataclass
class SourceMap:
    """
    Maps flattened output lines back to (filename, source line).

    Entries are only ever appended; existing entries are never edited.
    """
    filenames: list[str] = field(default_factory=list)
    line_entries: list[LineEntry] = field(default_factory=list)

    def __len__(self) -> int:
        """Number of output lines described by the map."""
        return len(self.line_entries)

    @property
    def filename_count(self) -> int:
        return len(self.filenames)

    # =========================================================================
    # Building
    # =========================================================================

    def add_filename(self, filename: str) -> int:
        """Append a filename and return its index."""
        self.filenames.append(filename)
        return len(self.filenames) - 1

    def add_entry(self, filename_index: int, line: int) -> None:
        """Append the origin of the next output line."""
        self.line_entries.append(LineEntry(filename_index, line))

    def push(self, other: "SourceMap") -> None:
        """
        Append another map's filenames and line entries.

        The other map's filename indices are shifted by the number of
        filenames this map held *before* the call, so every appended entry
        still names the same file it named in ``other``.
        """
        offset = len(self.filenames)

        for entry in other.line_entries:
            self.line_entries.append(
                LineEntry(entry.filename_index + offset, entry.line)
            )

        self.filenames.extend(other.filenames)

    def splice(self, other: "SourceMap") -> None:
        """
        Merge the map of an included file at the current output line.

        Included text starts on the output line that is currently open, so
        that line is described by the included map's first entry rather
        than by this map's last one. The merged map keeps one entry per
        output line.
        """
        if self.line_entries and other.line_entries:
            self.line_entries.pop()
        self.push(other)

    # =========================================================================
    # Lookup
    # =========================================================================

    def resolve(self, output_line: int) -> tuple[str, int]:
        """
        Return (filename, source line) for a 1-based output line.

        Raises:
            SourceMapError: If the map holds no entry for ``output_line``
        """
        if not 1 <= output_line <= len(self.line_entries):
            raise SourceMapError(
                f"output line {output_line} is outside the source map "
                f"(1..{len(self.line_entries)})"
            )

        entry = self.line_entries[output_line - 1]
        return self.filenames[entry.filename_index], entry.line

    def locate(self, output_line: int) -> SourceLocation:
        """Like resolve(), packaged as a SourceLocation."""
        filename, line = self.resolve(output_line)
        return SourceLocation(filename, line)

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_dict(self) -> dict:
        return {
            "filenames": list(self.filenames),
            "line_entries": [
                {"filename_index": e.filename_index, "line": e.line}
                for e in self.line_entries
            ],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SourceMap":
        """
        Build a map from its decoded JSON form, validating every field.

        Raises:
            SourceMapError: If the data does not describe a valid map
        """
        if not isinstance(data, dict):
            raise SourceMapError("source map must be a JSON object")

        filenames = data.get("filenames")
        raw_entries = data.get("line_entries")

        if not isinstance(filenames, list) or not all(
            isinstance(name, str) for name in filenames
        ):
            raise SourceMapError("'filenames' must be a list of strings")
        if not isinstance(raw_entries, list):
            raise SourceMapError("'line_entries' must be a list")

        entries = []
        for position, raw in enumerate(raw_entries):
            try:
                index = raw["filename_index"]
                line = raw["line"]
            except (KeyError, TypeError):
                raise SourceMapError(
                    f"line entry {position} needs 'filename_index' and 'line'"
                ) from None

            if not _is_count(index) or not _is_count(line):
                raise SourceMapError(
                    f"line entry {position} must hold non-negative integers"
                )
            if index >= len(filenames):
                raise SourceMapError(
                    f"line entry {position} names file {index}, "
                    f"but the map only has {len(filenames)} filenames"
                )
            entries.append(LineEntry(index, line))

        return cls(list(filenames), entries)

    def to_json(self, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, text: str) -> "SourceMap":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise SourceMapError(f"source map is not valid JSON: {e}") from e
        return cls.from_dict(data)

    def write(self, path: Union[str, Path]) -> None:
        """Write the map artifact to ``path``."""
        Path(path).write_text(self.to_json(), encoding="utf-8")
        logger.debug(
            f"Wrote source map {path} ({len(self.line_entries)} lines, "
            f"{len(self.filenames)} files)"
        )

    @classmethod
    def read(cls, path: Union[str, Path]) -> "SourceMap":
        """Read a map artifact written by write()."""
        try:
            text = Path(path).read_text(encoding="utf-8")
        except OSError as e:
            raise SourceMapError(f"cannot read source map '{path}': {e}") from e
        logger.debug(f"Read source map {path}")
        return cls.from_json(text)

    # =========================================================================
    # Display
    # =========================================================================

    def format_lines(self) -> Iterable[str]:
        """Yield a human-readable listing of the map."""
        yield "Filenames:"
        for name in self.filenames:
            yield f"  {name}"
        yield "Lines:"
        for output_line, entry in enumerate(self.line_entries, start=1):
            yield f"  {output_line}: {self.filenames[entry.filename_index]}:{entry.line}"

    def __str__(self) -> str:
        return "\n".join(self.format_lines())


def _is_count(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0
