"""
SIC/XE Instruction Catalog
==========================

This module holds the static instruction specification for the SIC/XE
machine: for every mnemonic its format, opcode and operand count. The
catalog is loaded once from a text specification and queried read-only
by the tokenizer and both assembler passes.

Specification Format
--------------------
One instruction per line, whitespace-separated:

    MNEMONIC FORMAT OPCODE_HEX [OPERAND_COUNT]

OPERAND_COUNT defaults to 0. Blank lines and lines starting with '#' are
ignored. A line with fewer than three fields is a load-time error.

    LDA     3   00  1
    CLEAR   2   B4  1
    FIX     1   C4

Instruction Formats
-------------------
| Format | Size | Layout                                  |
|--------|------|-----------------------------------------|
| 1      | 1    | op(8)                                   |
| 2      | 2    | op(8) r1(4) r2(4)                       |
| 3      | 3    | op(6) n i x b p e disp(12)              |
| 4      | 4    | op(6) n i x b p e address(20)           |

Format 4 is selected in source by prefixing a format 3 mnemonic with '+'.
"""

from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path
from typing import Iterator, Optional

from sicxe_asm.errors import CatalogError, SourceLocation


# Prefix selecting the extended (format 4) form of an instruction
EXTENDED_MARKER = "+"


# =============================================================================
# Instruction Format Enumeration
# =============================================================================

class InstructionFormat(IntEnum):
    """SIC/XE instruction formats; the value is the size in bytes."""
    ONE = 1
    TWO = 2
    THREE = 3
    FOUR = 4


# =============================================================================
# Register Numbers (format 2 operands)
# =============================================================================

REGISTERS: dict[str, int] = {
    "A": 0,
    "X": 1,
    "L": 2,
    "B": 3,
    "S": 4,
    "T": 5,
    "F": 6,
}


def register_number(name: str) -> int:
    """
    Return the register number for a format 2 operand.

    Unrecognized and empty names encode as 0.
    """
    return REGISTERS.get(name.strip().upper(), 0)


def split_extended(operator: str) -> tuple[bool, str]:
    """
    Split an operator into (is_extended, mnemonic).

    >>> split_extended("+JSUB")
    (True, 'JSUB')
    >>> split_extended("LDA")
    (False, 'LDA')
    """
    if operator.startswith(EXTENDED_MARKER):
        return True, operator[len(EXTENDED_MARKER):]
    return False, operator


# =============================================================================
# Instruction Information
# =============================================================================

@dataclass(frozen=True)
class InstructionInfo:
    """
    One catalog entry.

    Attributes:
        mnemonic: Upper-case mnemonic
        format: Base instruction format (1, 2 or 3)
        opcode: Opcode byte
        operand_count: Number of operands the instruction takes
    """
    mnemonic: str
    format: InstructionFormat
    opcode: int
    operand_count: int = 0

    def __repr__(self) -> str:
        return (
            f"InstructionInfo({self.mnemonic}, format={int(self.format)}, "
            f"opcode=${self.opcode:02X}, operands={self.operand_count})"
        )


def parse_instruction_line(
    line: str,
    line_number: int = 0,
    filename: str = "<catalog>",
) -> InstructionInfo:
    """
    Parse one specification line into an InstructionInfo.

    Raises:
        CatalogError: If the line has fewer than three fields or a field
                      cannot be parsed
    """
    location = SourceLocation(filename, line_number)
    parts = line.split()
    if len(parts) < 3:
        raise CatalogError(
            f"malformed instruction specification: expected at least 3 fields, got {len(parts)}",
            location=location,
            source_line=line.strip(),
            hint="format is MNEMONIC FORMAT OPCODE_HEX [OPERAND_COUNT]",
        )

    mnemonic = parts[0].upper()
    try:
        fmt = InstructionFormat(int(parts[1]))
        opcode = int(parts[2], 16)
        operand_count = int(parts[3]) if len(parts) >= 4 else 0
    except ValueError as e:
        raise CatalogError(
            f"malformed instruction specification for '{mnemonic}': {e}",
            location=location,
            source_line=line.strip(),
        ) from e

    if not 0 <= opcode <= 0xFF:
        raise CatalogError(
            f"opcode for '{mnemonic}' does not fit in one byte",
            location=location,
            source_line=line.strip(),
        )

    return InstructionInfo(mnemonic, fmt, opcode, operand_count)


# =============================================================================
# Instruction Catalog
# =============================================================================

class InstructionCatalog:
    """
    Read-only mapping from mnemonic to InstructionInfo.

    Lookups are case-insensitive and accept an extended-format marker:

        catalog = InstructionCatalog.from_file("inst_table.txt")
        catalog.lookup("+JSUB").opcode      # 0x48
        catalog.instruction_length("+JSUB") # 4
    """

    def __init__(self, instructions: Optional[dict[str, InstructionInfo]] = None):
        self._instructions: dict[str, InstructionInfo] = dict(instructions or {})

    @classmethod
    def from_text(cls, text: str, filename: str = "<catalog>") -> "InstructionCatalog":
        """
        Build a catalog from specification text.

        Raises:
            CatalogError: On the first malformed line
        """
        instructions: dict[str, InstructionInfo] = {}
        for line_number, line in enumerate(text.splitlines(), start=1):
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            info = parse_instruction_line(stripped, line_number, filename)
            instructions[info.mnemonic] = info
        if not instructions:
            raise CatalogError(f"instruction specification '{filename}' is empty")
        return cls(instructions)

    @classmethod
    def from_file(cls, filepath: str | Path) -> "InstructionCatalog":
        """
        Load a catalog from a specification file.

        Raises:
            CatalogError: If the file is missing, unreadable or malformed
        """
        filepath = Path(filepath)
        try:
            text = filepath.read_text(encoding="utf-8")
        except OSError as e:
            raise CatalogError(
                f"cannot read instruction specification '{filepath}': {e.strerror or e}"
            ) from e
        return cls.from_text(text, str(filepath))

    def lookup(self, operator: str) -> Optional[InstructionInfo]:
        """Return the entry for an operator (extended marker allowed), or None."""
        _, mnemonic = split_extended(operator.strip())
        return self._instructions.get(mnemonic.upper())

    def instruction_length(self, operator: str) -> int:
        """
        Return the encoded size of an instruction in bytes.

        The extended marker forces 4 regardless of the base format;
        unknown operators have length 0.
        """
        info = self.lookup(operator)
        if info is None:
            return 0
        extended, _ = split_extended(operator.strip())
        return int(InstructionFormat.FOUR) if extended else int(info.format)

    @property
    def mnemonics(self) -> list[str]:
        """All mnemonics in the catalog, in load order."""
        return list(self._instructions)

    def __contains__(self, operator: object) -> bool:
        return isinstance(operator, str) and self.lookup(operator) is not None

    def __iter__(self) -> Iterator[InstructionInfo]:
        return iter(self._instructions.values())

    def __len__(self) -> int:
        return len(self._instructions)
