"""
Source File Access
==================

The preprocessor does not touch the filesystem directly; it asks a
SourceLoader to find and read included files. The default loader reads
from disk. Tests and embedders can subclass it and override
``find()`` and ``read()`` to serve sources from memory.

Include Search Order
--------------------
For ``#include "name"`` seen in file ``dir/file.asm``:

1. ``dir/name`` (directory of the including file)
2. ``<path>/name`` for each configured include path, in order
3. ``name`` as given (relative to the working directory)

Standard input is read as a single virtual file named ``"stdin"``, whose
includes are resolved against the working directory.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Sequence, Union

logger = logging.getLogger(__name__)

# Virtual filename given to source read from standard input
STDIN_FILENAME = "stdin"


class SourceLoader:
    """
    Locates and reads source files for the preprocessor.

    Attributes:
        include_paths: Extra directories searched for included files
    """

    def __init__(self, include_paths: Optional[Sequence[Union[str, Path]]] = None):
        self.include_paths = [Path(p) for p in include_paths or []]

    def search_paths(self, including_file: str) -> list[Path]:
        """Directories searched for a file included from ``including_file``."""
        if including_file == STDIN_FILENAME:
            base = Path(".")
        else:
            base = Path(including_file).parent
        return [base] + self.include_paths

    def find(self, name: str, including_file: str) -> Optional[str]:
        """
        Resolve an include name to a path string, or None if not found.
        """
        for directory in self.search_paths(including_file):
            candidate = directory / name
            if candidate.is_file():
                logger.debug(f"Resolved include '{name}' to {candidate}")
                return str(candidate)

        if Path(name).is_file():
            return name

        return None

    def read(self, path: str) -> str:
        """
        Read an entire source file.

        Raises:
            OSError: If the file cannot be read
        """
        logger.debug(f"Reading {path}")
        return Path(path).read_text(encoding="utf-8")

    def identity(self, path: str) -> str:
        """Key used to recognise the same file reached by different paths."""
        if path == STDIN_FILENAME:
            return path
        return str(Path(path).resolve())


def read_stdin() -> str:
    """Read all of standard input."""
    data = sys.stdin.read()
    logger.debug(f"{len(data)} bytes read from stdin")
    return data
