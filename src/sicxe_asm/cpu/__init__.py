"""
SIC/XE CPU Package
==================

Machine definitions shared by the tokenizer and both assembler passes:
instruction formats, the instruction catalog and register numbers.

Usage:
    from sicxe_asm.cpu import InstructionCatalog, register_number
"""

from sicxe_asm.cpu.catalog import (
    EXTENDED_MARKER,
    REGISTERS,
    InstructionCatalog,
    InstructionFormat,
    InstructionInfo,
    parse_instruction_line,
    register_number,
    split_extended,
)

__all__ = [
    "EXTENDED_MARKER",
    "REGISTERS",
    "InstructionCatalog",
    "InstructionFormat",
    "InstructionInfo",
    "parse_instruction_line",
    "register_number",
    "split_extended",
]
