# =============================================================================
# test_cli.py - sicasm Command-Line Tests
# =============================================================================

from click.testing import CliRunner

from sicxe_asm.cli.errors import ExitCode
from sicxe_asm.cli.sicasm import main


COPY_SOURCE = """
COPY    START   0
FIRST   STL     RETADR
RETADR  RESW    1
        END     FIRST
"""

UNDEFINED_SOURCE = """
P       START   0
        LDA     GHOST
        END
"""


class TestSicasmCLI:
    """Tests for the sicasm CLI tool."""

    def test_cli_help(self):
        runner = CliRunner()
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "Assemble SIC/XE source" in result.output

    def test_cli_version(self):
        runner = CliRunner()
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "1.0.0" in result.output

    def test_default_output_file(self, write_source):
        source = write_source(COPY_SOURCE, "copy.asm")
        result = CliRunner().invoke(main, [str(source)])
        assert result.exit_code == 0
        obj = source.with_suffix(".obj")
        assert obj.read_text() == "HCOPY  000000000006\nT00000003172000\nE000000\n"

    def test_all_outputs(self, write_source, tmp_path):
        source = write_source(COPY_SOURCE, "copy.asm")
        out = tmp_path / "out.obj"
        sym = tmp_path / "out.sym"
        lit = tmp_path / "out.lit"
        result = CliRunner().invoke(main, [
            str(source), "-o", str(out), "-s", str(sym), "-L", str(lit),
        ])
        assert result.exit_code == 0
        assert out.read_text().startswith("HCOPY  ")
        assert sym.read_text() == "COPY       0\nFIRST      0\nRETADR     3\n\n"
        assert lit.read_text() == ""

    def test_verbose(self, write_source):
        source = write_source(COPY_SOURCE, "copy.asm")
        result = CliRunner().invoke(main, [str(source), "-v"])
        assert result.exit_code == 0
        assert "Section COPY" in result.output

    def test_missing_input(self, tmp_path):
        result = CliRunner().invoke(main, [str(tmp_path / "missing.asm")])
        assert result.exit_code == ExitCode.INVALID_ARGS

    def test_lenient_warnings_still_succeed(self, write_source):
        source = write_source(UNDEFINED_SOURCE)
        result = CliRunner().invoke(main, [str(source)])
        assert result.exit_code == 0
        assert source.with_suffix(".obj").exists()

    def test_strict_fails(self, write_source):
        source = write_source(UNDEFINED_SOURCE)
        result = CliRunner().invoke(main, [str(source), "--strict"])
        assert result.exit_code == ExitCode.BUILD_ERROR
        assert not source.with_suffix(".obj").exists()

    def test_strict_from_environment(self, write_source, monkeypatch):
        monkeypatch.setenv("SICXE_STRICT", "1")
        source = write_source(UNDEFINED_SOURCE)
        result = CliRunner().invoke(main, [str(source)])
        assert result.exit_code == ExitCode.BUILD_ERROR

    def test_lenient_flag_overrides_environment(self, write_source, monkeypatch):
        monkeypatch.setenv("SICXE_STRICT", "1")
        source = write_source(UNDEFINED_SOURCE)
        result = CliRunner().invoke(main, [str(source), "--lenient"])
        assert result.exit_code == 0

    def test_custom_catalog(self, write_source, tmp_path):
        table = tmp_path / "tiny.txt"
        table.write_text("RSUB 3 4C 0\n")
        source = write_source("P START 0\n RSUB\n END\n")
        result = CliRunner().invoke(main, [str(source), "-c", str(table)])
        assert result.exit_code == 0
        assert "T000000034F0000" in source.with_suffix(".obj").read_text()

    def test_malformed_catalog(self, write_source, tmp_path):
        table = tmp_path / "bad.txt"
        table.write_text("RSUB 3\n")
        source = write_source("P START 0\n RSUB\n END\n")
        result = CliRunner().invoke(main, [str(source), "-c", str(table)])
        assert result.exit_code == ExitCode.BUILD_ERROR
