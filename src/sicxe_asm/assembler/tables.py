"""
Symbol, Literal and Section Tables
==================================

Every control section owns its own symbol table and literal table. Pass 1
fills them; Pass 2 and the listing writers only read them.

Symbol Table
------------
Maps a case-sensitive name to an address. The first definition of a name
wins; a later put() of the same name is rejected and the caller decides
how to report it. An address can be rewritten once with modify().

Literal Table
-------------
Literals are kept in first-seen order. Each starts unresolved and gets its
address when a literal pool is flushed (LTORG, CSECT or END). Every flush
opens a new pool number, even if it resolves nothing, so Pass 2 can match
the k-th LTORG of a section to pool k.

Dump Formats
------------
    Symbols:  "FIRST      0"          name padded to 10, hex address
    Literals: "=C'EOF'    2D"         literal text padded to 10, hex address
"""

from dataclasses import dataclass, field
from difflib import get_close_matches
from typing import Iterator, Optional

from sicxe_asm.assembler.expressions import constant_size, encode_constant
from sicxe_asm.assembler.lexer import Token
from sicxe_asm.errors import UndefinedSymbolError


# Column width of names in table dumps
DUMP_NAME_WIDTH = 10


def _dump_line(name: str, address: Optional[int]) -> str:
    value = f"{address:X}" if address is not None else "?"
    return f"{name:<{DUMP_NAME_WIDTH}} {value}"


# =============================================================================
# Symbol Table
# =============================================================================

class SymbolTable:
    """Per-section map of symbol name to address."""

    def __init__(self):
        self._symbols: dict[str, int] = {}
        self._modified: set[str] = set()

    def put(self, name: str, address: int) -> bool:
        """
        Define a symbol.

        Returns:
            True if the symbol was added, False if it already existed
            (the existing address is kept)
        """
        if name in self._symbols:
            return False
        self._symbols[name] = address
        return True

    def modify(self, name: str, address: int) -> None:
        """
        Rewrite the address of an existing symbol.

        Raises:
            UndefinedSymbolError: If the symbol is not defined
            RuntimeError: If the symbol was already rewritten once
        """
        if name not in self._symbols:
            raise UndefinedSymbolError(name, similar_symbols=self.similar(name))
        if name in self._modified:
            raise RuntimeError(f"symbol '{name}' was already modified")
        self._symbols[name] = address
        self._modified.add(name)

    def lookup(self, name: str) -> Optional[int]:
        """Return the address of a symbol, or None if undefined."""
        return self._symbols.get(name)

    def similar(self, name: str) -> list[str]:
        """Defined names that look like `name` (for hints)."""
        return get_close_matches(name, list(self._symbols), n=3, cutoff=0.75)

    def items(self) -> list[tuple[str, int]]:
        """(name, address) pairs in definition order."""
        return list(self._symbols.items())

    def dump(self) -> str:
        """One line per symbol in definition order."""
        return "\n".join(_dump_line(name, addr) for name, addr in self._symbols.items())

    def __contains__(self, name: object) -> bool:
        return name in self._symbols

    def __len__(self) -> int:
        return len(self._symbols)

    def __iter__(self) -> Iterator[str]:
        return iter(self._symbols)


# =============================================================================
# Literal Table
# =============================================================================

@dataclass
class Literal:
    """
    One literal constant.

    Attributes:
        text: Literal text as written, including '=' (e.g. "=C'EOF'")
        address: Assigned address, None until its pool is flushed
        pool: Number of the pool that resolved it
    """
    text: str
    address: Optional[int] = None
    pool: Optional[int] = None

    @property
    def size(self) -> int:
        return constant_size(self.text)

    @property
    def data(self) -> bytes:
        return encode_constant(self.text)

    @property
    def is_resolved(self) -> bool:
        return self.address is not None


class LiteralTable:
    """Per-section literal pool in first-seen order."""

    def __init__(self):
        self._literals: dict[str, Literal] = {}
        self._pool_count = 0

    def put(self, text: str) -> bool:
        """
        Register a literal.

        Returns:
            True if it is new, False if the same text was already present
        """
        if text in self._literals:
            return False
        self._literals[text] = Literal(text)
        return True

    def lookup(self, text: str) -> Optional[Literal]:
        return self._literals.get(text)

    def address_of(self, text: str) -> Optional[int]:
        """Return the address of a literal, or None if unknown or unresolved."""
        literal = self._literals.get(text)
        return literal.address if literal is not None else None

    def pending(self) -> list[Literal]:
        """Literals still waiting for a pool flush."""
        return [lit for lit in self._literals.values() if not lit.is_resolved]

    def flush(self, locctr: int) -> int:
        """
        Assign addresses to every pending literal, starting at locctr.

        Opens a new pool even when nothing is pending.

        Returns:
            The location counter after the pool
        """
        pool = self._pool_count
        self._pool_count += 1
        for literal in self.pending():
            literal.address = locctr
            literal.pool = pool
            locctr += literal.size
        return locctr

    def in_pool(self, pool: int) -> list[Literal]:
        """Literals resolved by pool number `pool`, in address order."""
        return [lit for lit in self._literals.values() if lit.pool == pool]

    @property
    def pool_count(self) -> int:
        return self._pool_count

    def dump(self) -> str:
        """One line per literal in first-seen order."""
        return "\n".join(_dump_line(lit.text, lit.address) for lit in self._literals.values())

    def __contains__(self, text: object) -> bool:
        return text in self._literals

    def __len__(self) -> int:
        return len(self._literals)

    def __iter__(self) -> Iterator[Literal]:
        return iter(self._literals.values())


# =============================================================================
# Control Sections
# =============================================================================

@dataclass
class Section:
    """
    One control section.

    Attributes:
        index: Position in source order (0 for the first section)
        name: Section name (label of its START or CSECT)
        start_address: Address the section starts at
        length: Size in bytes, set when the section is closed
        symbols: Section symbol table
        literals: Section literal table
        tokens: Statements of the section in source order
    """
    index: int
    name: str
    start_address: int = 0
    length: int = 0
    symbols: SymbolTable = field(default_factory=SymbolTable)
    literals: LiteralTable = field(default_factory=LiteralTable)
    tokens: list[Token] = field(default_factory=list)

    def close(self, locctr: int) -> None:
        """Record the section length from the final location counter."""
        self.length = locctr - self.start_address

    def __repr__(self) -> str:
        return (
            f"Section({self.index} {self.name!r} start={self.start_address:06X} "
            f"length={self.length:06X} tokens={len(self.tokens)})"
        )


class SectionRegistry:
    """Ordered collection of control sections."""

    def __init__(self):
        self._sections: list[Section] = []
        self.entry_symbol: str = ""

    def open(self, name: str, start_address: int = 0) -> Section:
        """Append a new section and return it."""
        section = Section(len(self._sections), name, start_address)
        self._sections.append(section)
        return section

    @property
    def current(self) -> Optional[Section]:
        return self._sections[-1] if self._sections else None

    def find(self, name: str) -> Optional[Section]:
        for section in self._sections:
            if section.name == name:
                return section
        return None

    def __getitem__(self, index: int) -> Section:
        return self._sections[index]

    def __iter__(self) -> Iterator[Section]:
        return iter(self._sections)

    def __len__(self) -> int:
        return len(self._sections)
