"""
SIC/XE Assembler - Two-Pass Assembler for the SIC/XE Machine
============================================================

This package assembles source for the SIC/XE educational machine into a
textual object program: Header, Define, Refer, Text, Modification and End
records, one block per control section.

Main Components
---------------
- **assembler**: Tokenizer, Pass 1, Pass 2 and the object record types
- **cpu**: Instruction catalog, instruction formats and register numbers
- **config**: Assembly options (strict mode, catalog path, limits)
- **cli**: The `sicasm` command-line tool

Quick Start
-----------
    >>> from sicxe_asm import Assembler
    >>> asm = Assembler()
    >>> program = asm.assemble_file("copy.asm")
    >>> print(program.to_text())

Or use the command-line tool:
    $ sicasm copy.asm -o copy.obj -s copy.sym -L copy.lit
"""

__version__ = "1.0.0"

# =============================================================================
# Public API Exports
# =============================================================================

from sicxe_asm.assembler import Assembler, ObjectProgram, assemble, assemble_file
from sicxe_asm.config import AssemblerConfig
from sicxe_asm.cpu import InstructionCatalog
from sicxe_asm.errors import (
    SicXeError,
    AssemblerError,
    AssemblySyntaxError,
    CatalogError,
    UndefinedSymbolError,
    DuplicateSymbolError,
    DisplacementRangeError,
    ExpressionError,
    DirectiveError,
    Diagnostics,
    SourceLocation,
)

__all__ = [
    "__version__",
    # Assembler
    "Assembler",
    "AssemblerConfig",
    "InstructionCatalog",
    "ObjectProgram",
    "assemble",
    "assemble_file",
    # Exception hierarchy
    "SicXeError",
    "AssemblerError",
    "AssemblySyntaxError",
    "CatalogError",
    "UndefinedSymbolError",
    "DuplicateSymbolError",
    "DisplacementRangeError",
    "ExpressionError",
    "DirectiveError",
    "Diagnostics",
    "SourceLocation",
]
