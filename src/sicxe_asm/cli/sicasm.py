"""
sicasm - SIC/XE Assembler Command-Line Interface
================================================

Usage Examples
--------------
Basic assembly (writes copy.obj):
    $ sicasm copy.asm

With output file and table dumps:
    $ sicasm copy.asm -o copy.obj -s copy.sym -L copy.lit

Custom instruction specification:
    $ sicasm -c inst_table.txt copy.asm

Refuse undefined symbols and out-of-range displacements:
    $ sicasm --strict copy.asm
"""

from pathlib import Path
from typing import Optional
import logging

import click

from sicxe_asm import __version__
from sicxe_asm.assembler import Assembler
from sicxe_asm.cli.errors import handle_cli_exception
from sicxe_asm.config import AssemblerConfig


# =============================================================================
# CLI Definition
# =============================================================================

@click.command()
@click.argument(
    "input_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Output object program (default: input.obj)",
)
@click.option(
    "-s", "--symbols",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write the symbol tables to this file",
)
@click.option(
    "-L", "--literals",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write the literal tables to this file",
)
@click.option(
    "-c", "--catalog",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Instruction specification file (default: built-in SIC/XE table)",
)
@click.option(
    "--strict/--lenient",
    default=None,
    help="Treat undefined symbols, duplicate labels and unreachable "
         "displacements as errors. Default: lenient, or SICXE_STRICT.",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.version_option(version=__version__, prog_name="sicasm")
def main(
    input_file: Path,
    output: Optional[Path],
    symbols: Optional[Path],
    literals: Optional[Path],
    catalog: Optional[Path],
    strict: Optional[bool],
    verbose: bool,
) -> None:
    """
    Assemble SIC/XE source into an object program.

    INPUT_FILE is the assembly source file to assemble.

    \b
    Examples:
        sicasm copy.asm                  # Outputs copy.obj
        sicasm copy.asm -o out.obj       # Specify output file
        sicasm copy.asm -s copy.sym      # Also dump the symbol tables
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )

    config = AssemblerConfig.from_env()
    if strict is not None:
        config.strict = strict
    if catalog is not None:
        config.catalog_path = catalog

    output_file = output if output is not None else input_file.with_suffix(".obj")

    try:
        asm = Assembler(config)

        if verbose:
            click.echo(f"Assembling {input_file}...")

        program = asm.assemble_file(input_file)

        asm.write_object_program(output_file)
        if verbose:
            click.echo(f"Wrote {len(program.sections)} sections to {output_file}")

        if symbols:
            asm.write_symbols(symbols)
            if verbose:
                click.echo(f"Wrote symbols to {symbols}")

        if literals:
            asm.write_literals(literals)
            if verbose:
                click.echo(f"Wrote literals to {literals}")

        warnings = asm.diagnostics.warning_count()
        if warnings:
            click.echo(asm.get_error_report(), err=True)

        if verbose:
            for section in asm.get_sections():
                click.echo(
                    f"Section {section.name}: start {section.start_address:06X}, "
                    f"length {section.length:06X}, {len(section.symbols)} symbols"
                )

    except Exception as e:
        handle_cli_exception(e, verbose=verbose, error_type="Assembly")


if __name__ == "__main__":
    main()
