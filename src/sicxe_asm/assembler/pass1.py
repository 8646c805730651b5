"""
Pass 1 - Location Assignment
============================

Pass 1 walks the token stream once, splitting it into control sections and
giving every statement its location counter value. Along the way it fills
each section's symbol table and literal table.

Per-statement Rules
-------------------
1. The statement gets the current location counter.
2. START sets the counter (hexadecimal operand) and names section 0.
   CSECT closes the current section (flushing its literals and recording
   its length) and opens a new one at 0.
3. Every operand starting with '=' is registered as a literal.
4. A label is defined at the current counter. EQU labels are deferred.
5. EQU statements are queued for resolution after the walk.
6. The counter advances by the statement size:
       WORD +3, RESW +3n, RESB +n, BYTE +constant size,
       instructions +format size (+4 when extended).
   LTORG flushes the literal pool.
7. END flushes the literal pool, closes the section and stops the walk.

Deferred EQU Resolution
-----------------------
After the walk, EQUs are resolved in source order against their own
section's symbol table:

    LABEL EQU *            current location
    LABEL EQU 4096         decimal constant
    LABEL EQU OTHER        address of OTHER
    LABEL EQU BUFEND-BUFFER  difference of two symbols

An EQU naming an undefined symbol is reported and leaves its label undefined.
"""

from dataclasses import dataclass, field
from typing import Optional
import logging

from sicxe_asm.assembler.expressions import WORD_SIZE, constant_size, is_decimal
from sicxe_asm.assembler.lexer import LITERAL_MARKER, Directive, Token
from sicxe_asm.assembler.tables import Section, SectionRegistry
from sicxe_asm.cpu import InstructionCatalog
from sicxe_asm.errors import (
    AssemblerError,
    AssemblySyntaxError,
    Diagnostics,
    DirectiveError,
    DuplicateSymbolError,
    ExpressionError,
    UndefinedSymbolError,
)

logger = logging.getLogger(__name__)


# Name given to section 0 when the source has no START
DEFAULT_SECTION_NAME = "NONAME"

# Operand that makes EQU take the current location
CURRENT_LOCATION = "*"


@dataclass
class AssemblerState:
    """
    Mutable state threaded through Pass 1.

    Attributes:
        sections: Sections opened so far
        locctr: Current location counter
        equates: EQU statements waiting for resolution, with their section
        ended: True once END has been processed
    """
    sections: SectionRegistry = field(default_factory=SectionRegistry)
    locctr: int = 0
    equates: list[tuple[Section, Token]] = field(default_factory=list)
    ended: bool = False

    @property
    def section(self) -> Optional[Section]:
        return self.sections.current


class LocationAssigner:
    """
    Pass 1 driver.

    Usage:
        assigner = LocationAssigner(catalog, diagnostics)
        sections = assigner.run(tokens)
    """

    def __init__(self, catalog: InstructionCatalog, diagnostics: Optional[Diagnostics] = None):
        self.catalog = catalog
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics()

    def run(self, tokens: list[Token]) -> SectionRegistry:
        """
        Assign locations to all tokens and build the section tables.

        Problems are recorded in self.diagnostics; the walk never stops
        early except at END.
        """
        state = AssemblerState()

        for token in tokens:
            if state.ended:
                logger.debug("ignoring statement after END at line %d", token.line)
                break
            try:
                self.process(state, token)
            except AssemblerError as e:
                self.diagnostics.add(e)

        # No END: close the last section as END would
        if not state.ended and state.section is not None:
            self._close_section(state)

        self.resolve_equates(state)

        for section in state.sections:
            logger.debug(
                "section %s: start %06X length %06X, %d symbols, %d literals",
                section.name, section.start_address, section.length,
                len(section.symbols), len(section.literals),
            )
        return state.sections

    # =========================================================================
    # Statement Processing
    # =========================================================================

    def process(self, state: AssemblerState, token: Token) -> None:
        """Apply the Pass 1 rules to one statement."""
        directive = token.directive

        if directive is Directive.START:
            self._start(state, token)
            return
        if directive is Directive.CSECT:
            self._csect(state, token)
            return

        if state.section is None:
            state.sections.open(DEFAULT_SECTION_NAME, 0)
            state.locctr = 0

        section = state.section
        section.tokens.append(token)
        token.assign_location(state.locctr)

        for operand in token.operands:
            if operand.startswith(LITERAL_MARKER):
                section.literals.put(operand)

        if directive is Directive.EQU:
            state.equates.append((section, token))
        elif token.label:
            self._define(section, token.label, state.locctr, token)

        size = self._advance(state, token)
        state.locctr += size

    def _start(self, state: AssemblerState, token: Token) -> None:
        operand = token.operand(0) or "0"
        try:
            start = int(operand, 16)
        except ValueError:
            raise AssemblySyntaxError(
                f"START address '{operand}' is not hexadecimal",
                location=token.source_location,
                source_line=token.source,
            ) from None

        section = state.section
        if section is None:
            section = state.sections.open(token.label or DEFAULT_SECTION_NAME, start)
        elif section.tokens:
            raise DirectiveError(
                "START must be the first statement of the program",
                location=token.source_location,
                source_line=token.source,
                hint="move START above the statements before it",
            )

        state.locctr = start
        section.tokens.append(token)
        token.assign_location(start)
        if token.label:
            self._define(section, token.label, start, token)
        logger.debug("START %s at %06X", section.name, start)

    def _csect(self, state: AssemblerState, token: Token) -> None:
        if state.section is not None:
            self._close_section(state)

        name = token.label or f"{DEFAULT_SECTION_NAME}{len(state.sections)}"
        section = state.sections.open(name, 0)
        state.locctr = 0
        section.tokens.append(token)
        token.assign_location(0)
        if token.label:
            self._define(section, token.label, 0, token)
        logger.debug("CSECT %s opened as section %d", name, section.index)

    def _close_section(self, state: AssemblerState) -> None:
        section = state.section
        state.locctr = section.literals.flush(state.locctr)
        section.close(state.locctr)

    def _define(self, section: Section, name: str, address: int, token: Token) -> None:
        if not section.symbols.put(name, address):
            logger.warning("line %d: duplicate symbol %s ignored", token.line, name)
            self.diagnostics.report_problem(DuplicateSymbolError(
                name,
                section.symbols.lookup(name),
                location=token.source_location,
                source_line=token.source,
            ))

    def _advance(self, state: AssemblerState, token: Token) -> int:
        """Return the number of bytes the statement occupies."""
        directive = token.directive

        if directive is None:
            if not token.operator:
                self.diagnostics.add_warning(AssemblySyntaxError(
                    "statement has no recognized operator and is ignored",
                    location=token.source_location,
                    source_line=token.source,
                ))
                return 0
            return self.catalog.instruction_length(token.operator)

        if directive is Directive.WORD:
            return WORD_SIZE
        if directive is Directive.RESW:
            return WORD_SIZE * self._count(token)
        if directive is Directive.RESB:
            return self._count(token)
        if directive is Directive.BYTE:
            size = constant_size(token.operand(0))
            if size == 0:
                raise AssemblySyntaxError(
                    f"invalid BYTE constant '{token.operand(0)}'",
                    location=token.source_location,
                    source_line=token.source,
                    hint="expected C'...', X'...' or a decimal number",
                )
            return size
        if directive is Directive.LTORG:
            state.locctr = state.section.literals.flush(state.locctr)
            return 0
        if directive is Directive.END:
            state.sections.entry_symbol = token.operand(0)
            self._close_section(state)
            state.ended = True
            return 0

        # EXTDEF, EXTREF, EQU, BASE, NOBASE
        return 0

    def _count(self, token: Token) -> int:
        operand = token.operand(0)
        if not operand.isdigit():
            raise AssemblySyntaxError(
                f"{token.mnemonic} count '{operand}' is not a decimal number",
                location=token.source_location,
                source_line=token.source,
            )
        return int(operand)

    # =========================================================================
    # EQU Resolution
    # =========================================================================

    def resolve_equates(self, state: AssemblerState) -> None:
        """Resolve queued EQU statements in source order."""
        for section, token in state.equates:
            try:
                value = self._equate_value(section, token)
            except AssemblerError as e:
                logger.warning("line %d: EQU %s skipped: %s", token.line, token.label, e.message)
                self.diagnostics.report_problem(e)
                continue

            if not token.label:
                self.diagnostics.report_problem(DirectiveError(
                    "EQU requires a label",
                    location=token.source_location,
                    source_line=token.source,
                ))
                continue

            logger.debug("EQU %s = %06X", token.label, value)
            self._define(section, token.label, value, token)

    def _equate_value(self, section: Section, token: Token) -> int:
        expression = token.operand(0)

        if expression == CURRENT_LOCATION:
            return token.location
        if is_decimal(expression):
            return int(expression)
        if "-" in expression:
            names = [part.strip() for part in expression.split("-")]
            if len(names) != 2 or not all(names):
                raise ExpressionError(
                    f"cannot evaluate EQU expression '{expression}'",
                    location=token.source_location,
                    source_line=token.source,
                    hint="expected SYMBOL-SYMBOL",
                )
            return self._symbol(section, names[0], token) - self._symbol(section, names[1], token)
        if not expression:
            raise ExpressionError(
                "EQU requires an operand",
                location=token.source_location,
                source_line=token.source,
            )
        return self._symbol(section, expression, token)

    def _symbol(self, section: Section, name: str, token: Token) -> int:
        address = section.symbols.lookup(name)
        if address is None:
            raise UndefinedSymbolError(
                name,
                location=token.source_location,
                source_line=token.source,
                similar_symbols=section.symbols.similar(name),
            )
        return address
