"""
SIC/XE Assembler - Main Interface
=================================

This module provides the Assembler class, the primary interface for
assembling SIC/XE source. It coordinates the tokenizer, Pass 1 (location
assignment and EQU resolution) and Pass 2 (object code generation).

Example Usage
-------------
>>> from sicxe_asm import Assembler
>>>
>>> asm = Assembler()
>>> asm.assemble_string('''
... COPY    START   0
... FIRST   STL     RETADR
... RETADR  RESW    1
...         END     FIRST
... ''')
>>> print(asm.get_object_program().to_text())
HCOPY  000000000006
T00000003172000
E000000

>>> asm.write_symbols("copy.sym")
>>> asm.write_object_program("copy.obj")

Command-Line Usage
------------------
    $ sicasm copy.asm -o copy.obj -s copy.sym -L copy.lit

Strict Mode
-----------
By default undefined symbols, unreachable displacements and redefined
labels are warnings: the construct degrades and assembly continues. With
AssemblerConfig(strict=True) they become errors and assembly raises
AssemblerError after the pass that found them.
"""

from pathlib import Path
from typing import Optional
import logging

from sicxe_asm.assembler.codegen import CodeGenerator
from sicxe_asm.assembler.lexer import Lexer, Token
from sicxe_asm.assembler.pass1 import LocationAssigner
from sicxe_asm.assembler.records import ObjectProgram
from sicxe_asm.assembler.tables import Section, SectionRegistry
from sicxe_asm.config import AssemblerConfig
from sicxe_asm.cpu import InstructionCatalog
from sicxe_asm.errors import AssemblerError, CatalogError, Diagnostics

logger = logging.getLogger(__name__)


def load_catalog(config: AssemblerConfig) -> InstructionCatalog:
    """
    Load the instruction catalog named by a configuration.

    Raises:
        CatalogError: If the specification is missing or malformed
    """
    if config.catalog_path is not None:
        return InstructionCatalog.from_file(config.catalog_path)
    try:
        text = config.read_catalog_text()
    except OSError as e:
        raise CatalogError(f"cannot read packaged instruction specification: {e}") from e
    return InstructionCatalog.from_text(text, "<default catalog>")


class Assembler:
    """
    Main SIC/XE assembler class.

    One instance can assemble several programs in turn; each call to
    assemble_string() or assemble_file() replaces the previous results.

    Attributes:
        config: Assembly options
        catalog: Instruction catalog shared by all passes
        diagnostics: Errors and warnings of the last assembly
    """

    def __init__(
        self,
        config: Optional[AssemblerConfig] = None,
        catalog: Optional[InstructionCatalog] = None,
    ):
        """
        Initialize the assembler.

        Args:
            config: Assembly options (defaults to AssemblerConfig())
            catalog: Instruction catalog; loaded from config when omitted

        Raises:
            CatalogError: If the instruction specification cannot be loaded
        """
        self.config = config or AssemblerConfig()
        self.catalog = catalog if catalog is not None else load_catalog(self.config)
        self.diagnostics = Diagnostics(strict=self.config.strict, max_errors=self.config.max_errors)
        self._tokens: list[Token] = []
        self._sections = SectionRegistry()
        self._program = ObjectProgram()

    # =========================================================================
    # Assembly Methods
    # =========================================================================

    def assemble_string(self, source: str, filename: str = "<input>") -> ObjectProgram:
        """
        Assemble source code from a string.

        The pipeline is:
        1. Tokenize source lines
        2. Pass 1: assign locations, fill symbol/literal tables, resolve EQU
        3. Pass 2: generate H/D/R/T/M/E records

        Raises:
            AssemblerError: If assembly fails (syntax errors, or resolution
                            problems in strict mode)
        """
        self.diagnostics.clear()
        self._sections = SectionRegistry()
        self._program = ObjectProgram()

        self._tokens = Lexer(self.catalog, filename).tokenize(source)
        logger.debug("%s: %d statements", filename, len(self._tokens))

        self._sections = LocationAssigner(self.catalog, self.diagnostics).run(self._tokens)
        self._raise_on_errors()

        generator = CodeGenerator(
            self.catalog,
            self.diagnostics,
            max_text_record_length=self.config.max_text_record_length,
        )
        self._program = generator.generate(self._sections)
        self._raise_on_errors()

        logger.debug(
            "%s: %d sections, %d warnings",
            filename, len(self._program.sections), self.diagnostics.warning_count(),
        )
        return self._program

    def assemble_file(self, filepath: str | Path) -> ObjectProgram:
        """
        Assemble source code from a file.

        Raises:
            AssemblerError: If assembly fails
            OSError: If the source file cannot be read
        """
        filepath = Path(filepath)
        source = filepath.read_text(encoding="utf-8")
        return self.assemble_string(source, str(filepath))

    def _raise_on_errors(self) -> None:
        if self.diagnostics.has_errors():
            raise AssemblerError(
                f"Assembly failed with {self.diagnostics.error_count()} errors:\n\n"
                f"{self.diagnostics.report()}"
            )

    # =========================================================================
    # Results
    # =========================================================================

    def get_tokens(self) -> list[Token]:
        return list(self._tokens)

    def get_sections(self) -> list[Section]:
        return list(self._sections)

    def get_symbols(self) -> dict[str, dict[str, int]]:
        """Symbol tables by section name."""
        return {section.name: dict(section.symbols.items()) for section in self._sections}

    def get_object_program(self) -> ObjectProgram:
        return self._program

    def object_code_lines(self) -> list[str]:
        """Object program lines, with an empty line after each section."""
        return self._program.lines()

    def symbol_table_dump(self) -> str:
        """Symbol tables of all sections, each followed by an empty line."""
        return "".join(section.symbols.dump() + "\n\n" for section in self._sections)

    def literal_table_dump(self) -> str:
        """Literal tables of all sections, one literal per line."""
        lines = [section.literals.dump() for section in self._sections if len(section.literals)]
        return "".join(line + "\n" for line in lines)

    def has_errors(self) -> bool:
        return self.diagnostics.has_errors()

    @property
    def warnings(self) -> list[AssemblerError]:
        return list(self.diagnostics.warnings)

    def get_error_report(self) -> str:
        return self.diagnostics.report()

    # =========================================================================
    # Output Methods
    # =========================================================================

    def write_object_program(self, filepath: str | Path) -> None:
        """Write the object program text."""
        Path(filepath).write_text(self._program.to_text(), encoding="utf-8")

    def write_symbols(self, filepath: str | Path) -> None:
        """Write the symbol table dump."""
        Path(filepath).write_text(self.symbol_table_dump(), encoding="utf-8")

    def write_literals(self, filepath: str | Path) -> None:
        """Write the literal table dump."""
        Path(filepath).write_text(self.literal_table_dump(), encoding="utf-8")


# =============================================================================
# Convenience Functions
# =============================================================================

def assemble(source: str, filename: str = "<input>", strict: bool = False) -> str:
    """
    Assemble source text and return the object program text.

    Raises:
        AssemblerError: If assembly fails
    """
    asm = Assembler(AssemblerConfig(strict=strict))
    return asm.assemble_string(source, filename).to_text()


def assemble_file(filepath: str | Path, strict: bool = False) -> str:
    """
    Assemble a source file and return the object program text.

    Raises:
        AssemblerError: If assembly fails
        OSError: If the file cannot be read
    """
    asm = Assembler(AssemblerConfig(strict=strict))
    return asm.assemble_file(filepath).to_text()
