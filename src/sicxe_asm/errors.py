"""
SIC/XE Assembler Error Hierarchy
================================

This module defines the exception hierarchy for the assembler. All
exceptions inherit from SicXeError, allowing callers to catch every
assembler-related error with a single except clause if desired.

Exception Hierarchy
-------------------
SicXeError (base)
└── AssemblerError (assembler-related)
    ├── AssemblySyntaxError - malformed source line
    ├── CatalogError - missing or malformed instruction specification
    ├── UndefinedSymbolError - reference to undefined symbol
    ├── DuplicateSymbolError - symbol defined twice in one section
    ├── DisplacementRangeError - target unreachable PC- and base-relative
    ├── ExpressionError - error evaluating an EQU/WORD expression
    ├── DirectiveError - error in an assembler directive
    └── TooManyErrors - error limit reached

Lenient and Strict Resolution
-----------------------------
Resolution problems (undefined symbols, unreachable displacements,
redefinitions) do not abort assembly by default. They are recorded as
warnings on a Diagnostics collector and the offending construct degrades
(the EQU is skipped, the address becomes 0, the displacement is zero-filled).
In strict mode the same conditions are recorded as errors and the assembler
raises once the pass that found them has finished.

Error messages follow this format:
    filename:line:column: error: description
    source_line_text
        ^ (pointer to error location)
    hint: suggestion for fixing (when available)
"""

from dataclasses import dataclass
from typing import Optional


# =============================================================================
# Base Exception Class
# =============================================================================

class SicXeError(Exception):
    """
    Base exception for all assembler errors.

        try:
            assembler.assemble_file("copy.asm")
        except SicXeError as e:
            print(f"Error: {e}")
    """
    pass


# =============================================================================
# Source Location Tracking
# =============================================================================

@dataclass(frozen=True)
class SourceLocation:
    """
    Represents a location in source code for error reporting.

    Attributes:
        filename: Name of the source file (or "<input>" for string input)
        line: Line number (1-indexed)
        column: Column number (1-indexed, 0 when unknown)
    """
    filename: str
    line: int
    column: int = 0

    def __str__(self) -> str:
        """Format as 'filename:line' or 'filename:line:column'."""
        if self.column > 0:
            return f"{self.filename}:{self.line}:{self.column}"
        return f"{self.filename}:{self.line}"


# =============================================================================
# Assembler Exceptions
# =============================================================================

class AssemblerError(SicXeError):
    """
    Base exception for all assembler-related errors.

    Attributes:
        message: The error description
        location: Where in the source the error occurred (optional)
        hint: A suggestion for fixing the error (optional)
        source_line: The actual source text at the error location (optional)
    """

    def __init__(
        self,
        message: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
        source_line: Optional[str] = None,
    ):
        self.message = message
        self.location = location
        self.hint = hint
        self.source_line = source_line
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """
        Format the error message with location, source context, and hint.

        Example output:
            copy.asm:4: error: undefined symbol 'RETADDR'
                FIRST   STL     RETADDR
            hint: did you mean 'RETADR'?
        """
        parts = []

        if self.location:
            parts.append(f"{self.location}: error: {self.message}")
        else:
            parts.append(f"error: {self.message}")

        if self.source_line is not None:
            parts.append(f"    {self.source_line}")
            if self.location is not None and self.location.column > 0:
                padding = " " * (4 + self.location.column - 1)
                parts.append(f"{padding}^")

        if self.hint:
            parts.append(f"hint: {self.hint}")

        return "\n".join(parts)


class AssemblySyntaxError(AssemblerError):
    """
    Syntax error in assembly source code.

    Examples:
        - RESW/RESB with a non-numeric count
        - BYTE constant with an unterminated quote
        - Non-hexadecimal START operand
    """
    pass


class CatalogError(AssemblerError):
    """
    Instruction specification could not be loaded.

    Raised at load time, before any pass runs, when the specification file
    is missing or one of its lines has fewer than three fields or an
    unparsable format/opcode/operand count.
    """
    pass


class UndefinedSymbolError(AssemblerError):
    """
    Reference to an undefined symbol.

    Raised (or recorded as a warning in lenient mode) when an EQU
    expression, a WORD expression, or an instruction operand names a
    symbol that is not in the section's symbol table and is not an
    external reference.
    """

    def __init__(
        self,
        symbol: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
        source_line: Optional[str] = None,
        similar_symbols: Optional[list[str]] = None,
    ):
        self.symbol = symbol
        self.similar_symbols = similar_symbols or []

        if not hint and self.similar_symbols:
            suggestions = ", ".join(f"'{s}'" for s in self.similar_symbols[:3])
            hint = f"did you mean {suggestions}?"

        super().__init__(
            f"undefined symbol '{symbol}'",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class DuplicateSymbolError(AssemblerError):
    """
    Symbol defined more than once in the same control section.

    The first definition always wins; this error is only surfaced so that
    strict mode can refuse sources that redefine a label.
    """

    def __init__(
        self,
        symbol: str,
        address: int,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.symbol = symbol
        self.address = address

        super().__init__(
            f"duplicate symbol '{symbol}'",
            location=location,
            hint=f"'{symbol}' is already defined at {address:06X}",
            source_line=source_line,
        )


class DisplacementRangeError(AssemblerError):
    """
    Format 3 target is out of range for both PC- and base-relative modes.

    PC-relative displacements must lie in -2048..2047 from the next
    instruction and base-relative ones in 0..4095 from the BASE value.
    When neither fits, the instruction has to be written in extended
    format (+) or a BASE directive has to be added.
    """

    def __init__(
        self,
        target: int,
        pc: int,
        base: Optional[int],
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.target = target
        self.pc = pc
        self.base = base

        if base is None:
            hint = "no BASE is in effect; use extended format (+) or add a BASE directive"
        else:
            hint = f"base-relative offset is {target - base}, range is 0 to 4095"

        super().__init__(
            f"target {target:06X} is out of range (pc-relative offset: {target - pc})",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class ExpressionError(AssemblerError):
    """
    Error evaluating an EQU or WORD expression.

    Only decimal constants, '*', a single symbol, and signed symbol
    sums/differences are understood; anything else raises this error.
    """
    pass


class DirectiveError(AssemblerError):
    """
    Error in an assembler directive.

    Examples:
        - EQU without a label
        - BASE naming an undefined symbol
    """
    pass


# =============================================================================
# Error Collection for Multiple Error Reporting
# =============================================================================

class Diagnostics:
    """
    Collects errors and warnings for batch reporting.

    Pass 1 and Pass 2 keep going after a resolution problem; they record
    it here instead. In lenient mode problems are warnings, in strict mode
    they are errors and the assembler raises once the pass finishes.

    Example:
        diagnostics = Diagnostics(strict=False)
        diagnostics.report_problem(UndefinedSymbolError("LENGTH"))
        if diagnostics.has_errors():
            print(diagnostics.report())
    """

    def __init__(self, strict: bool = False, max_errors: int = 100):
        """
        Initialize the collector.

        Args:
            strict: Record resolution problems as errors instead of warnings
            max_errors: Maximum errors to collect before raising TooManyErrors
        """
        self.strict = strict
        self.errors: list[AssemblerError] = []
        self.warnings: list[AssemblerError] = []
        self.max_errors = max_errors

    def add(self, error: AssemblerError) -> None:
        """
        Add an error to the collection.

        Raises:
            TooManyErrors: If max_errors has been reached
        """
        self.errors.append(error)
        if len(self.errors) >= self.max_errors:
            raise TooManyErrors(f"too many errors ({self.max_errors}), stopping")

    def add_warning(self, warning: AssemblerError) -> None:
        """Add a warning."""
        self.warnings.append(warning)

    def report_problem(self, problem: AssemblerError) -> None:
        """Record a resolution problem as an error (strict) or warning (lenient)."""
        if self.strict:
            self.add(problem)
        else:
            self.add_warning(problem)

    def has_errors(self) -> bool:
        """Return True if any errors have been collected."""
        return len(self.errors) > 0

    def error_count(self) -> int:
        """Return the number of collected errors."""
        return len(self.errors)

    def warning_count(self) -> int:
        """Return the number of collected warnings."""
        return len(self.warnings)

    def report(self) -> str:
        """
        Format all errors and warnings for display.

        Returns:
            Formatted string with all errors and warnings
        """
        lines = []

        for error in self.errors:
            lines.append(str(error))
            lines.append("")

        if self.warnings:
            lines.append("Warnings:")
            for warning in self.warnings:
                lines.append(f"  {warning.message}" if warning.location is None
                             else f"  {warning.location}: {warning.message}")

        error_word = "error" if len(self.errors) == 1 else "errors"
        warning_word = "warning" if len(self.warnings) == 1 else "warnings"
        lines.append(
            f"\n{len(self.errors)} {error_word}, {len(self.warnings)} {warning_word}"
        )

        return "\n".join(lines)

    def clear(self) -> None:
        """Clear all collected errors and warnings."""
        self.errors.clear()
        self.warnings.clear()


class TooManyErrors(AssemblerError):
    """
    Raised when too many errors have been encountered.
    """

    def __init__(self, message: str = "too many errors"):
        super().__init__(message)
