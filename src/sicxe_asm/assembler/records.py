"""
SIC/XE Object Program Records
=============================

The object program is a sequence of fixed-layout text records, one block
per control section. Sections are separated by a blank line.

Record Layouts
--------------
| Record       | Layout                                                   |
|--------------|----------------------------------------------------------|
| Header       | H name(6, space padded) start(6 hex) length(6 hex)       |
| Define       | D { name(6, padded) address(6 hex) } ...                 |
| Refer        | R { name(6, padded) } ...                                |
| Text         | T start(6 hex) length(2 hex) object bytes (hex)          |
| Modification | M address(6 hex) half-bytes(2 hex) sign symbol            |
| End          | E [entry address(6 hex)]                                 |

All hexadecimal fields are upper-case.

Example
-------
    HCOPY  000000001077
    DBUFFER000033BUFEND001033LENGTH00002D
    RRDREC WRREC
    T0000001D1720274B1000000320232900003320074B1000003F2FEC0320160F2016
    M00000405+RDREC
    E000000
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union


# Width of names in H, D and R records
NAME_WIDTH = 6

# Half-byte counts for modification records
MODIFY_ADDRESS_FIELD = 5
MODIFY_WORD = 6


class RecordType(str, Enum):
    """First character of each object record."""
    HEADER = "H"
    DEFINE = "D"
    REFER = "R"
    TEXT = "T"
    MODIFICATION = "M"
    END = "E"


def _name(name: str) -> str:
    return f"{name:<{NAME_WIDTH}}"


def _hex(value: int, digits: int = 6) -> str:
    return f"{value & ((1 << (4 * digits)) - 1):0{digits}X}"


def _expect(line: str, kind: RecordType, min_length: int) -> None:
    if not line.startswith(kind.value) or len(line) < min_length:
        raise ValueError(f"not a {kind.name.lower()} record: {line!r}")


# =============================================================================
# Record Types
# =============================================================================

@dataclass(frozen=True)
class HeaderRecord:
    name: str
    start: int
    length: int

    def to_line(self) -> str:
        return f"H{_name(self.name)}{_hex(self.start)}{_hex(self.length)}"

    @classmethod
    def from_line(cls, line: str) -> "HeaderRecord":
        _expect(line, RecordType.HEADER, 19)
        return cls(line[1:7].rstrip(), int(line[7:13], 16), int(line[13:19], 16))


@dataclass(frozen=True)
class DefineRecord:
    """External definitions: (name, address) pairs in EXTDEF order."""
    entries: tuple[tuple[str, int], ...]

    def to_line(self) -> str:
        return "D" + "".join(f"{_name(name)}{_hex(addr)}" for name, addr in self.entries)

    @classmethod
    def from_line(cls, line: str) -> "DefineRecord":
        _expect(line, RecordType.DEFINE, 1)
        body = line[1:]
        entries = []
        for i in range(0, len(body) - 11, 12):
            entries.append((body[i:i + 6].rstrip(), int(body[i + 6:i + 12], 16)))
        return cls(tuple(entries))


@dataclass(frozen=True)
class ReferRecord:
    """External references in EXTREF order."""
    names: tuple[str, ...]

    def to_line(self) -> str:
        return "R" + "".join(_name(name) for name in self.names)

    @classmethod
    def from_line(cls, line: str) -> "ReferRecord":
        _expect(line, RecordType.REFER, 1)
        body = line[1:]
        names = [body[i:i + 6].rstrip() for i in range(0, len(body), 6)]
        return cls(tuple(name for name in names if name))


@dataclass(frozen=True)
class TextRecord:
    start: int
    data: bytes

    @property
    def end(self) -> int:
        return self.start + len(self.data)

    def to_line(self) -> str:
        return f"T{_hex(self.start)}{len(self.data):02X}{self.data.hex().upper()}"

    @classmethod
    def from_line(cls, line: str) -> "TextRecord":
        _expect(line, RecordType.TEXT, 9)
        length = int(line[7:9], 16)
        data = bytes.fromhex(line[9:9 + 2 * length])
        if len(data) != length:
            raise ValueError(f"text record is shorter than its length field: {line!r}")
        return cls(int(line[1:7], 16), data)


@dataclass(frozen=True)
class ModificationRecord:
    """
    Relocation request for a field of the object code.

    Attributes:
        address: Offset of the first byte to modify
        half_bytes: Length of the field in half-bytes (5 or 6)
        sign: '+' or '-'
        symbol: Symbol whose address is added or subtracted
    """
    address: int
    half_bytes: int
    sign: str
    symbol: str

    def to_line(self) -> str:
        return f"M{_hex(self.address)}{self.half_bytes:02X}{self.sign}{self.symbol}"

    @classmethod
    def from_line(cls, line: str) -> "ModificationRecord":
        _expect(line, RecordType.MODIFICATION, 10)
        return cls(int(line[1:7], 16), int(line[7:9], 16), line[9], line[10:])


@dataclass(frozen=True)
class EndRecord:
    entry: Optional[int] = None

    def to_line(self) -> str:
        return "E" if self.entry is None else f"E{_hex(self.entry)}"

    @classmethod
    def from_line(cls, line: str) -> "EndRecord":
        _expect(line, RecordType.END, 1)
        return cls(int(line[1:7], 16) if len(line) >= 7 else None)


Record = Union[HeaderRecord, DefineRecord, ReferRecord, TextRecord, ModificationRecord, EndRecord]

_PARSERS = {
    RecordType.HEADER: HeaderRecord.from_line,
    RecordType.DEFINE: DefineRecord.from_line,
    RecordType.REFER: ReferRecord.from_line,
    RecordType.TEXT: TextRecord.from_line,
    RecordType.MODIFICATION: ModificationRecord.from_line,
    RecordType.END: EndRecord.from_line,
}


def parse_record(line: str) -> Record:
    """
    Parse one object program line.

    Raises:
        ValueError: If the line is not a valid record
    """
    line = line.rstrip("\n")
    if not line:
        raise ValueError("empty record")
    try:
        kind = RecordType(line[0])
    except ValueError:
        raise ValueError(f"unknown record type {line[0]!r}") from None
    return _PARSERS[kind](line)


# =============================================================================
# Text Record Accumulation
# =============================================================================

class TextRecordBuilder:
    """
    Packs object bytes into Text records.

    A record is closed when the next bytes would push it past
    max_length, or when they do not follow the buffer contiguously.

    Usage:
        builder = TextRecordBuilder(30)
        builder.append(0x0000, b"\\x17\\x20\\x27")
        records = builder.finish()
    """

    def __init__(self, max_length: int = 30):
        if max_length <= 0:
            raise ValueError("text records must hold at least one byte")
        self.max_length = max_length
        self.records: list[TextRecord] = []
        self._start = 0
        self._buffer = bytearray()

    def append(self, offset: int, data: bytes) -> None:
        """Add object bytes located at offset."""
        if self._buffer and offset != self._start + len(self._buffer):
            self.flush()
        while data:
            if not self._buffer:
                self._start = offset
            room = self.max_length - len(self._buffer)
            if len(data) > room and self._buffer and len(data) <= self.max_length:
                self.flush()
                continue
            chunk, data = data[:room], data[room:]
            self._buffer.extend(chunk)
            offset += len(chunk)
            if len(self._buffer) == self.max_length:
                self.flush()

    def flush(self) -> None:
        """Close the current record, if any."""
        if self._buffer:
            self.records.append(TextRecord(self._start, bytes(self._buffer)))
            self._buffer.clear()

    def finish(self) -> list[TextRecord]:
        self.flush()
        return self.records


# =============================================================================
# Object Program
# =============================================================================

@dataclass
class SectionObject:
    """Object records of one control section."""
    header: HeaderRecord
    define: Optional[DefineRecord] = None
    refer: Optional[ReferRecord] = None
    texts: list[TextRecord] = field(default_factory=list)
    modifications: list[ModificationRecord] = field(default_factory=list)
    end: EndRecord = field(default_factory=EndRecord)

    def records(self) -> list[Record]:
        """All records in output order: H, D, R, T..., M..., E."""
        out: list[Record] = [self.header]
        if self.define is not None:
            out.append(self.define)
        if self.refer is not None:
            out.append(self.refer)
        out.extend(self.texts)
        out.extend(self.modifications)
        out.append(self.end)
        return out

    def lines(self) -> list[str]:
        return [record.to_line() for record in self.records()]


@dataclass
class ObjectProgram:
    sections: list[SectionObject] = field(default_factory=list)

    def lines(self) -> list[str]:
        """Output lines, with an empty line after each section block."""
        out = []
        for section in self.sections:
            out.extend(section.lines())
            out.append("")
        return out

    def to_text(self) -> str:
        return "\n".join(self.lines())

    @classmethod
    def from_text(cls, text: str) -> "ObjectProgram":
        """
        Parse an object program back into records.

        Raises:
            ValueError: On malformed records or a block without a Header
        """
        program = cls()
        current: Optional[SectionObject] = None
        for line in text.splitlines():
            if not line.strip():
                continue
            record = parse_record(line)
            if isinstance(record, HeaderRecord):
                current = SectionObject(record)
                program.sections.append(current)
                continue
            if current is None:
                raise ValueError(f"record before the first header: {line!r}")
            if isinstance(record, DefineRecord):
                current.define = record
            elif isinstance(record, ReferRecord):
                current.refer = record
            elif isinstance(record, TextRecord):
                current.texts.append(record)
            elif isinstance(record, ModificationRecord):
                current.modifications.append(record)
            else:
                current.end = record
        return program
