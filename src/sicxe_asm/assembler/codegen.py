"""
Pass 2 - Object Code Generation
===============================

Pass 2 turns the finished sections from Pass 1 into object records. It
reads the symbol and literal tables but never changes them.

Format 3/4 Addressing
---------------------
The first two bytes carry six flag bits after the 6-bit opcode:

    n i   addressing mode     #value: n=0 i=1   @value: n=1 i=0   plain: n=1 i=1
    x     indexed (,X)
    b p   base- or PC-relative displacement
    e     extended format (+)

Displacement choice for format 3, in order:

1. PC-relative:   target - (location + 3) in -2048..2047      p=1
2. Base-relative: target - BASE in 0..4095 (when BASE is set)  b=1
3. Neither fits:  displacement 0, reported as DisplacementRangeError

Format 4 carries the 20-bit absolute target with b=p=0, e=1.

Modification Records
--------------------
(a) a literal operand that is an external reference      05 at the instruction
(b) an extended instruction naming an external reference 05 at instruction + 1
(c) a WORD expression: one 06 record per external/defined symbol, with its sign
(d) an EQU subtraction: same walk as WORD, at the EQU's location
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional
import logging

from sicxe_asm.assembler.expressions import (
    constant_size,
    encode_constant,
    encode_word,
    evaluate_terms,
    is_decimal,
    split_terms,
)
from sicxe_asm.assembler.lexer import (
    CONTROL_DIRECTIVES,
    IMMEDIATE_MARKER,
    INDIRECT_MARKER,
    LITERAL_MARKER,
    Directive,
    Token,
)
from sicxe_asm.assembler.records import (
    MODIFY_ADDRESS_FIELD,
    MODIFY_WORD,
    DefineRecord,
    EndRecord,
    HeaderRecord,
    ModificationRecord,
    ObjectProgram,
    ReferRecord,
    SectionObject,
    TextRecordBuilder,
)
from sicxe_asm.assembler.tables import Section, SectionRegistry
from sicxe_asm.cpu import InstructionCatalog, InstructionFormat, register_number
from sicxe_asm.errors import (
    AssemblerError,
    AssemblySyntaxError,
    Diagnostics,
    DirectiveError,
    DisplacementRangeError,
    UndefinedSymbolError,
)

logger = logging.getLogger(__name__)


PC_MIN, PC_MAX = -2048, 2047
BASE_MIN, BASE_MAX = 0, 4095
DISP_MASK = 0xFFF
ADDRESS_MASK = 0xFFFFF

RSUB = "RSUB"
INDEX_REGISTER = "X"


# =============================================================================
# Displacement Resolution
# =============================================================================

class AddressingMode(Enum):
    EXTENDED = "extended"
    PC_RELATIVE = "pc"
    BASE_RELATIVE = "base"
    OUT_OF_RANGE = "out-of-range"


@dataclass(frozen=True)
class AddressResolution:
    """
    Outcome of choosing a displacement for a format 3/4 instruction.

    Attributes:
        mode: How the target is reached
        value: Field value (12-bit displacement or 20-bit address)
        b: Base-relative flag
        p: PC-relative flag
        e: Extended flag
        error: Set when the target is out of range for every mode
    """
    mode: AddressingMode
    value: int
    b: int = 0
    p: int = 0
    e: int = 0
    error: Optional[DisplacementRangeError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def resolve_displacement(
    target: int,
    location: int,
    base: Optional[int] = None,
    extended: bool = False,
) -> AddressResolution:
    """
    Choose the displacement for an instruction at `location` reaching `target`.

    >>> resolve_displacement(0x2047 + 3, 0).mode
    <AddressingMode.OUT_OF_RANGE: 'out-of-range'>
    >>> resolve_displacement(0x0033, 0x0000).value
    48
    """
    if extended:
        return AddressResolution(AddressingMode.EXTENDED, target & ADDRESS_MASK, e=1)

    pc = location + int(InstructionFormat.THREE)
    offset = target - pc
    if PC_MIN <= offset <= PC_MAX:
        return AddressResolution(AddressingMode.PC_RELATIVE, offset & DISP_MASK, p=1)

    if base is not None and BASE_MIN <= target - base <= BASE_MAX:
        return AddressResolution(AddressingMode.BASE_RELATIVE, target - base, b=1)

    return AddressResolution(
        AddressingMode.OUT_OF_RANGE, 0,
        error=DisplacementRangeError(target, pc, base),
    )


# =============================================================================
# Per-section Context
# =============================================================================

@dataclass
class SectionContext:
    """What Pass 2 knows about the section being generated."""
    section: Section
    extdefs: list[str]
    extrefs: list[str]
    base: Optional[int] = None

    def offset(self, token: Token) -> int:
        return token.location - self.section.start_address

    @property
    def external(self) -> set[str]:
        return set(self.extdefs) | set(self.extrefs)


def _operand_names(section: Section, directive: Directive) -> list[str]:
    names = []
    for token in section.tokens:
        if token.directive is directive:
            names.extend(name for name in token.operands if name and name not in names)
    return names


# =============================================================================
# Code Generator
# =============================================================================

class CodeGenerator:
    """
    Pass 2 driver.

    Usage:
        generator = CodeGenerator(catalog, diagnostics)
        program = generator.generate(sections)
        print(program.to_text())
    """

    def __init__(
        self,
        catalog: InstructionCatalog,
        diagnostics: Optional[Diagnostics] = None,
        max_text_record_length: int = 30,
    ):
        self.catalog = catalog
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics()
        self.max_text_record_length = max_text_record_length

    def generate(self, sections: SectionRegistry) -> ObjectProgram:
        """Generate the object program for every section with content."""
        program = ObjectProgram()
        for section in sections:
            obj = self.generate_section(section, sections)
            if obj is not None:
                program.sections.append(obj)
        return program

    def generate_section(self, section: Section, sections: SectionRegistry) -> Optional[SectionObject]:
        """
        Build the records of one section.

        Returns None for a section with no text-recordable statements and
        no EXTDEF/EXTREF.
        """
        ctx = SectionContext(
            section,
            _operand_names(section, Directive.EXTDEF),
            _operand_names(section, Directive.EXTREF),
        )
        if not (ctx.extdefs or ctx.extrefs or any(self._emits_text(t) for t in section.tokens)):
            logger.debug("section %s has no content, skipped", section.name)
            return None

        ctx.base = self._base(ctx)

        obj = SectionObject(HeaderRecord(self._section_name(section), section.start_address, section.length))
        if ctx.extdefs:
            obj.define = DefineRecord(tuple((name, self._defined_address(ctx, name)) for name in ctx.extdefs))
        if ctx.extrefs:
            obj.refer = ReferRecord(tuple(ctx.extrefs))

        builder = TextRecordBuilder(self.max_text_record_length)
        pools_emitted = 0

        for token in section.tokens:
            directive = token.directive
            try:
                if directive is Directive.LTORG:
                    builder.flush()
                    self._emit_literals(ctx, builder, section.literals.in_pool(pools_emitted))
                    builder.flush()
                    pools_emitted += 1
                elif directive is Directive.EQU:
                    obj.modifications.extend(self._expression_modifications(ctx, token))
                elif self._emits_text(token):
                    code = self.object_code(ctx, token)
                    if code:
                        builder.append(ctx.offset(token), code)
                        obj.modifications.extend(self.modification_records(ctx, token))
            except AssemblerError as e:
                self.diagnostics.add(e)

        # END or the section close resolved every remaining pool
        for pool in range(pools_emitted, section.literals.pool_count):
            self._emit_literals(ctx, builder, section.literals.in_pool(pool))

        obj.texts = builder.finish()
        obj.end = self._end_record(section, sections)
        logger.debug(
            "section %s: %d text, %d modification records",
            section.name, len(obj.texts), len(obj.modifications),
        )
        return obj

    # =========================================================================
    # Section Helpers
    # =========================================================================

    @staticmethod
    def _emits_text(token: Token) -> bool:
        directive = token.directive
        if directive in CONTROL_DIRECTIVES:
            return False
        return bool(token.operator)

    @staticmethod
    def _section_name(section: Section) -> str:
        opening = section.tokens[0] if section.tokens else None
        if opening is not None and opening.label and opening.directive in (Directive.START, Directive.CSECT):
            return opening.label
        return section.name

    def _problem(self, problem: AssemblerError) -> None:
        logger.warning("%s", problem.message if problem.location is None
                       else f"{problem.location}: {problem.message}")
        self.diagnostics.report_problem(problem)

    def _undefined(self, ctx: SectionContext, name: str, token: Optional[Token]) -> None:
        self._problem(UndefinedSymbolError(
            name,
            location=token.source_location if token else None,
            source_line=token.source if token else None,
            similar_symbols=ctx.section.symbols.similar(name),
        ))

    def _base(self, ctx: SectionContext) -> Optional[int]:
        for token in ctx.section.tokens:
            if token.directive is Directive.BASE:
                name = token.operand(0)
                address = ctx.section.symbols.lookup(name)
                if address is None:
                    self._problem(DirectiveError(
                        f"BASE names undefined symbol '{name}'",
                        location=token.source_location,
                        source_line=token.source,
                    ))
                return address
        return None

    def _defined_address(self, ctx: SectionContext, name: str) -> int:
        address = ctx.section.symbols.lookup(name)
        if address is None:
            self._undefined(ctx, name, None)
            return 0
        return address

    def _end_record(self, section: Section, sections: SectionRegistry) -> EndRecord:
        if section.index != 0 or not sections.entry_symbol:
            return EndRecord()
        entry = section.symbols.lookup(sections.entry_symbol)
        if entry is None:
            self._undefined(SectionContext(section, [], []), sections.entry_symbol, None)
            entry = section.start_address
        return EndRecord(entry)

    def _emit_literals(self, ctx: SectionContext, builder: TextRecordBuilder, literals) -> None:
        for literal in literals:
            builder.append(literal.address - ctx.section.start_address, literal.data)

    # =========================================================================
    # Object Code
    # =========================================================================

    def _symbol_value(self, ctx: SectionContext, name: str, token: Token) -> int:
        """Address of a symbol; external references and undefined names are 0."""
        address = ctx.section.symbols.lookup(name)
        if address is not None:
            return address
        if name not in ctx.extrefs:
            self._undefined(ctx, name, token)
        return 0

    def object_code(self, ctx: SectionContext, token: Token) -> bytes:
        """Encode one text-recordable statement."""
        directive = token.directive

        if directive is Directive.WORD:
            value = evaluate_terms(
                token.operand(0),
                lambda name: self._symbol_value(ctx, name, token),
            )
            return encode_word(value)

        if directive is Directive.BYTE:
            if constant_size(token.operand(0)) == 0:
                return b""
            return encode_constant(token.operand(0))

        info = self.catalog.lookup(token.operator)
        if info is None:
            return b""

        if token.is_extended and info.format in (InstructionFormat.ONE, InstructionFormat.TWO):
            raise AssemblySyntaxError(
                f"{token.mnemonic} is format {int(info.format)} and cannot be extended",
                location=token.source_location,
                source_line=token.source,
                hint="remove the '+' prefix",
            )

        if info.format is InstructionFormat.ONE:
            return bytes([info.opcode])

        if info.format is InstructionFormat.TWO:
            r1 = register_number(token.operand(0))
            r2 = register_number(token.operand(1))
            return bytes([info.opcode, (r1 << 4) | r2])

        return self._format34(ctx, token, info.opcode)

    def _format34(self, ctx: SectionContext, token: Token, opcode: int) -> bytes:
        extended = token.is_extended
        size = 4 if extended else 3

        if token.mnemonic == RSUB and not extended:
            return bytes([(opcode & 0xFC) | 0b11, 0, 0])

        operand = token.operand(0)
        n, i = 1, 1
        x = 1 if token.operand(1).upper() == INDEX_REGISTER else 0

        if operand.startswith(LITERAL_MARKER):
            target = ctx.section.literals.address_of(operand)
            if target is None:
                self._undefined(ctx, operand, token)
                target = 0
        elif operand.startswith(IMMEDIATE_MARKER):
            n, i = 0, 1
            value = operand[len(IMMEDIATE_MARKER):]
            if is_decimal(value):
                return self._pack(opcode, n, i, 0, 0, 0, int(extended), int(value), size)
            target = self._symbol_value(ctx, value, token)
        elif operand.startswith(INDIRECT_MARKER):
            n, i = 1, 0
            target = self._symbol_value(ctx, operand[len(INDIRECT_MARKER):], token)
        elif operand:
            target = self._symbol_value(ctx, operand, token)
        else:
            target = 0

        resolution = resolve_displacement(target, token.location, ctx.base, extended)
        if not resolution.ok:
            self._problem(DisplacementRangeError(
                target,
                resolution.error.pc,
                ctx.base,
                location=token.source_location,
                source_line=token.source,
            ))

        return self._pack(opcode, n, i, x, resolution.b, resolution.p, resolution.e, resolution.value, size)

    @staticmethod
    def _pack(opcode: int, n: int, i: int, x: int, b: int, p: int, e: int, value: int, size: int) -> bytes:
        first = (opcode & 0xFC) | (n << 1) | i
        flags = (x << 3) | (b << 2) | (p << 1) | e
        if size == 4:
            rest = (flags << 20) | (value & ADDRESS_MASK)
            return bytes([first]) + rest.to_bytes(3, "big")
        rest = (flags << 12) | (value & DISP_MASK)
        return bytes([first]) + rest.to_bytes(2, "big")

    # =========================================================================
    # Modification Records
    # =========================================================================

    def modification_records(self, ctx: SectionContext, token: Token) -> list[ModificationRecord]:
        """Modification records required by one text-recordable statement."""
        offset = ctx.offset(token)
        operand = token.operand(0)
        records = []

        if operand.startswith(LITERAL_MARKER):
            if operand in ctx.extrefs:
                records.append(ModificationRecord(offset, MODIFY_ADDRESS_FIELD, "+", operand))
        elif token.is_extended:
            name = operand.lstrip(IMMEDIATE_MARKER + INDIRECT_MARKER)
            if name in ctx.extrefs:
                records.append(ModificationRecord(offset + 1, MODIFY_ADDRESS_FIELD, "+", name))

        if token.directive is Directive.WORD:
            records.extend(self._term_modifications(ctx, operand, offset))

        return records

    def _expression_modifications(self, ctx: SectionContext, token: Token) -> list[ModificationRecord]:
        operand = token.operand(0)
        if "-" not in operand:
            return []
        return self._term_modifications(ctx, operand, ctx.offset(token))

    @staticmethod
    def _term_modifications(ctx: SectionContext, expression: str, offset: int) -> list[ModificationRecord]:
        external = ctx.external
        return [
            ModificationRecord(offset, MODIFY_WORD, term.sign, term.name)
            for term in split_terms(expression)
            if term.name in external
        ]


def generate(
    sections: SectionRegistry,
    catalog: InstructionCatalog,
    diagnostics: Optional[Diagnostics] = None,
) -> ObjectProgram:
    """Convenience wrapper around CodeGenerator.generate()."""
    return CodeGenerator(catalog, diagnostics).generate(sections)
