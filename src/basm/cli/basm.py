"""
basm - BASM Assembler Front-End Command-Line Interface
======================================================

Parses flattened assembly (the output of basmpp) into an AST. When a
``<file>.map`` artifact sits next to the input, errors are reported
against the original source files and lines.

Usage Examples
--------------
Parse and summarise:
    $ basm main.pp.asm

Print the syntax tree:
    $ basm main.pp.asm --dump

Read from standard input (no source map):
    $ basm -s < main.pp.asm
"""

from pathlib import Path
from typing import Optional

import click

from basm import __version__
from basm.assembler import Assembler
from basm.cli.errors import handle_cli_exception, setup_logging
from basm.fileio import STDIN_FILENAME, read_stdin


# =============================================================================
# CLI Definition
# =============================================================================

@click.command()
@click.argument(
    "input_file",
    required=False,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "-s", "--stdin", "from_stdin",
    is_flag=True,
    help="Read flattened assembly from standard input",
)
@click.option(
    "-m", "--map", "map_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Source map file (default: input.map, if present)",
)
@click.option(
    "--dump",
    is_flag=True,
    help="Print the syntax tree",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.version_option(version=__version__, prog_name="basm")
def main(
    input_file: Optional[Path],
    from_stdin: bool,
    map_file: Optional[Path],
    dump: bool,
    verbose: bool,
) -> None:
    """
    Parse flattened BASM assembly.

    INPUT_FILE is a file written by basmpp. Pass -s instead to read the
    text from standard input.

    \b
    Examples:
        basm main.pp.asm             # Uses main.pp.asm.map if present
        basm main.pp.asm --dump      # Print the syntax tree
        basm -s -m main.pp.asm.map   # stdin with an explicit map
    """
    setup_logging(verbose)

    if from_stdin == (input_file is not None):
        raise click.UsageError("expected exactly one of INPUT_FILE or -s")

    asm = Assembler()

    try:
        if from_stdin:
            if map_file is not None:
                asm.load_source_map(map_file)
            asm.parse_string(read_stdin(), STDIN_FILENAME)
        else:
            if verbose:
                click.echo(f"Parsing {input_file}...")
            asm.parse_file(input_file, map_file)

        if dump:
            click.echo(asm.dump())

        counts = asm.summary()
        click.echo(
            f"Parsed {len(asm.statements)} statements: "
            f"{counts['instructions']} instructions, "
            f"{counts['directives']} directives, "
            f"{counts['labels']} labels"
        )

    except Exception as e:
        handle_cli_exception(e, verbose=verbose, error_type="Assembly")


if __name__ == "__main__":
    main()
