"""
basmpp - BASM Preprocessor Command-Line Interface
=================================================

Flattens an assembly program and its includes into one file and writes
the SourceMap that the assembler uses to report errors against the
original files.

Usage Examples
--------------
Basic preprocessing (writes main.pp.asm and main.pp.asm.map):
    $ basmpp main.asm

Read from standard input:
    $ cat main.asm | basmpp -s -o main.pp.asm

With include path and defines:
    $ basmpp -I ./lib -D STACK_TOP=0xFF00 main.asm
"""

from pathlib import Path
from typing import Optional

import click

from basm import __version__
from basm.assembler.frontend import default_map_path
from basm.cli.errors import handle_cli_exception, setup_logging
from basm.fileio import STDIN_FILENAME, SourceLoader, read_stdin
from basm.preprocessor import preprocess, preprocess_file

# Body given to a -D NAME without '=VALUE'
DEFAULT_DEFINE_VALUE = "1"

# Inserted before the input's suffix to name the flattened output
OUTPUT_INFIX = ".pp"


def parse_defines(defines: tuple[str, ...]) -> dict[str, str]:
    """
    Turn ``-D NAME[=VALUE]`` options into a macro dictionary.

    Raises:
        click.BadParameter: If a name is empty
    """
    macros = {}
    for definition in defines:
        name, sep, value = definition.partition("=")
        name = name.strip()
        if not name:
            raise click.BadParameter(f"missing macro name in '{definition}'", param_hint="-D")
        macros[name] = value.strip() if sep else DEFAULT_DEFINE_VALUE
    return macros


def default_output_path(input_file: Optional[Path]) -> Path:
    """``dir/main.asm`` -> ``dir/main.pp.asm``; stdin -> ``stdin.pp.asm``"""
    if input_file is None:
        return Path(f"{STDIN_FILENAME}{OUTPUT_INFIX}.asm")
    suffix = input_file.suffix or ".asm"
    return input_file.with_name(f"{input_file.stem}{OUTPUT_INFIX}{suffix}")


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
    help="Read the program from standard input (file name 'stdin')",
)
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Flattened output file (default: input.pp.asm)",
)
@click.option(
    "-m", "--map", "map_file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Source map file (default: output.map)",
)
@click.option(
    "-I", "--include",
    multiple=True,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Add include search path (can be repeated)",
)
@click.option(
    "-D", "--define",
    multiple=True,
    help="Define macro (format: NAME or NAME=VALUE)",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.version_option(version=__version__, prog_name="basmpp")
def main(
    input_file: Optional[Path],
    from_stdin: bool,
    output: Optional[Path],
    map_file: Optional[Path],
    include: tuple[Path, ...],
    define: tuple[str, ...],
    verbose: bool,
) -> None:
    """
    Preprocess a BASM assembly program.

    INPUT_FILE is the top-level source file. Pass -s instead to read the
    program from standard input.

    \b
    Examples:
        basmpp main.asm              # Outputs main.pp.asm + main.pp.asm.map
        basmpp main.asm -o out.asm   # Specify output file
        basmpp -I lib/ main.asm      # Add include path
        basmpp -D DEBUG main.asm     # Define macro DEBUG as 1
    """
    setup_logging(verbose)

    if from_stdin == (input_file is not None):
        raise click.UsageError("expected exactly one of INPUT_FILE or -s")

    output_file = output if output is not None else default_output_path(input_file)
    map_path = map_file if map_file is not None else default_map_path(output_file)

    try:
        macros = parse_defines(define)

        if from_stdin:
            loader = SourceLoader(include)
            result = preprocess(read_stdin(), STDIN_FILENAME, loader=loader, defines=macros)
        else:
            if verbose:
                click.echo(f"Preprocessing {input_file}...")
            result = preprocess_file(input_file, include_paths=include, defines=macros)

        output_file.write_text(result.text, encoding="utf-8")
        result.source_map.write(map_path)

        if result.warnings:
            count = len(result.warnings)
            click.echo(f"{count} warning{'s' if count != 1 else ''}", err=True)

        if verbose:
            source_map = result.source_map
            click.echo(f"Wrote {len(source_map)} lines to {output_file}")
            click.echo(f"Wrote source map for {source_map.filename_count} file(s) to {map_path}")

    except Exception as e:
        handle_cli_exception(e, verbose=verbose, error_type="Preprocessing")


if __name__ == "__main__":
    main()
