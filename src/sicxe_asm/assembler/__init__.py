"""
SIC/XE Two-Pass Assembler
=========================

This package assembles SIC/XE source into H/D/R/T/M/E object records.

Main Components
---------------
- **Assembler**: Main class that orchestrates the assembly process
- **Lexer**: Splits source lines into label, operator, operands and comment
- **LocationAssigner**: Pass 1, location counters and symbol/literal tables
- **CodeGenerator**: Pass 2, object code and object records
- **records**: Object record types and the Text record packer

Assembly Process
----------------
1. **Tokenizing (Lexer)**:
   - Drop blank and comment lines
   - Classify the first word as label or operator via the instruction catalog

2. **Pass 1 (LocationAssigner)**:
   - Split the program into control sections (START, CSECT)
   - Assign a location to every statement
   - Fill symbol tables, register literals, flush literal pools (LTORG, END)
   - Resolve EQU statements once the walk is done

3. **Pass 2 (CodeGenerator)**:
   - Encode format 1/2/3/4 instructions, BYTE and WORD
   - Pack object bytes into Text records of at most 30 bytes
   - Emit Modification records for external references

Example Usage
-------------
>>> from sicxe_asm.assembler import Assembler
>>> asm = Assembler()
>>> program = asm.assemble_file("copy.asm")
>>> asm.write_object_program("copy.obj")

Supported Features
------------------
- Full SIC/XE instruction set (formats 1, 2, 3 and 4)
- Immediate (#), indirect (@), indexed (,X) and extended (+) operands
- PC-relative and base-relative (BASE/NOBASE) displacements
- Literals (=C'...', =X'...', =n) with LTORG pools
- Control sections with EXTDEF/EXTREF and Modification records
- EQU with *, constants, symbols and symbol differences
"""

from sicxe_asm.assembler.assembler import Assembler, assemble, assemble_file, load_catalog
from sicxe_asm.assembler.lexer import CONTROL_DIRECTIVES, Directive, Lexer, Token, split_operands
from sicxe_asm.assembler.tables import (
    Literal,
    LiteralTable,
    Section,
    SectionRegistry,
    SymbolTable,
)
from sicxe_asm.assembler.pass1 import AssemblerState, LocationAssigner
from sicxe_asm.assembler.codegen import (
    AddressingMode,
    AddressResolution,
    CodeGenerator,
    resolve_displacement,
)
from sicxe_asm.assembler.records import (
    DefineRecord,
    EndRecord,
    HeaderRecord,
    ModificationRecord,
    ObjectProgram,
    ReferRecord,
    SectionObject,
    TextRecord,
    TextRecordBuilder,
    parse_record,
)

__all__ = [
    # Main class and functions
    "Assembler",
    "assemble",
    "assemble_file",
    "load_catalog",
    # Lexer
    "CONTROL_DIRECTIVES",
    "Directive",
    "Lexer",
    "Token",
    "split_operands",
    # Tables
    "Literal",
    "LiteralTable",
    "Section",
    "SectionRegistry",
    "SymbolTable",
    # Pass 1
    "AssemblerState",
    "LocationAssigner",
    # Pass 2
    "AddressingMode",
    "AddressResolution",
    "CodeGenerator",
    "resolve_displacement",
    # Records
    "DefineRecord",
    "EndRecord",
    "HeaderRecord",
    "ModificationRecord",
    "ObjectProgram",
    "ReferRecord",
    "SectionObject",
    "TextRecord",
    "TextRecordBuilder",
    "parse_record",
]
