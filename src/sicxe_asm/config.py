"""
Assembler Configuration
=======================

Assembly options for the SIC/XE assembler. Configuration can come from:
- Default values (defined here)
- Environment variables (AssemblerConfig.from_env)
- Command-line flags (applied on top by sicasm)

Environment variables (all optional):
    SICXE_STRICT: "1"/"true"/"yes" promotes resolution warnings to errors
    SICXE_CATALOG: Path to an instruction specification file
    SICXE_MAX_ERRORS: Error limit before assembly stops (integer)
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional
import os


# Instruction specification shipped inside the package
DEFAULT_CATALOG_PATH = Path(__file__).parent / "data" / "inst_table.txt"

_TRUE_VALUES = ("1", "true", "yes", "on")


@dataclass
class AssemblerConfig:
    """
    Configuration for an assembly run.

    Attributes:
        strict: Treat resolution problems (undefined symbols, unreachable
                displacements, redefined labels) as errors instead of warnings
        max_text_record_length: Maximum object bytes carried by one Text record
        catalog_path: Instruction specification file (None: packaged table)
        max_errors: Errors collected before assembly stops
    """

    strict: bool = False
    max_text_record_length: int = 30
    catalog_path: Optional[Path] = None
    max_errors: int = 100

    @classmethod
    def from_env(cls) -> "AssemblerConfig":
        """
        Create AssemblerConfig from environment variables.

        Invalid numeric values are ignored and the default is kept.
        """
        config = cls()

        if strict := os.environ.get("SICXE_STRICT"):
            config.strict = strict.strip().lower() in _TRUE_VALUES

        if catalog := os.environ.get("SICXE_CATALOG"):
            config.catalog_path = Path(catalog)

        if max_errors := os.environ.get("SICXE_MAX_ERRORS"):
            try:
                config.max_errors = int(max_errors)
            except ValueError:
                pass

        return config

    def read_catalog_text(self) -> str:
        """
        Read the instruction specification text.

        Returns the configured file's contents, or the packaged default
        table when no catalog_path is set.

        Raises:
            OSError: If the configured file cannot be read
        """
        path = Path(self.catalog_path) if self.catalog_path is not None else DEFAULT_CATALOG_PATH
        return path.read_text(encoding="utf-8")
