# =============================================================================
# conftest.py - Shared Fixtures
# =============================================================================
# Fixtures used across the SIC/XE assembler test modules:
#   - catalog: the packaged SIC/XE instruction catalog (loaded once)
#   - lexer: a Lexer bound to that catalog
#   - write_source: writes a source file under tmp_path and returns its path
# =============================================================================

import textwrap

import pytest

from sicxe_asm.assembler import Lexer
from sicxe_asm.assembler.assembler import load_catalog
from sicxe_asm.config import AssemblerConfig


@pytest.fixture(scope="session")
def catalog():
    """The packaged instruction catalog."""
    return load_catalog(AssemblerConfig())


@pytest.fixture
def lexer(catalog):
    return Lexer(catalog, "test.asm")


@pytest.fixture
def write_source(tmp_path):
    """Write dedented source text to tmp_path/name and return the path."""
    def _write(source: str, name: str = "prog.asm"):
        path = tmp_path / name
        path.write_text(textwrap.dedent(source).lstrip("\n"))
        return path
    return _write
