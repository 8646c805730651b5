# =============================================================================
# test_codegen.py - Pass 2 (Object Code Generation) Tests
# =============================================================================
# Tests for displacement resolution, instruction encoding, Text record
# packing and Modification records.
#
# Test coverage includes:
#   - PC-relative and base-relative range boundaries
#   - nixbpe flags for simple, immediate, indirect, indexed and extended
#   - Format 1 and format 2 encodings, RSUB
#   - BYTE, WORD and literal pools
#   - 30-byte Text record limit and address gaps
#   - Modification record triggers
# =============================================================================

import textwrap

import pytest

from sicxe_asm.assembler import Assembler
from sicxe_asm.assembler.codegen import AddressingMode, resolve_displacement
from sicxe_asm.config import AssemblerConfig
from sicxe_asm.errors import AssemblerError, DisplacementRangeError, UndefinedSymbolError


def assemble(catalog, source, strict=False):
    asm = Assembler(AssemblerConfig(strict=strict), catalog=catalog)
    program = asm.assemble_string(textwrap.dedent(source))
    return asm, program


def text_bytes(program, section=0):
    """All Text record bytes of a section, concatenated in record order."""
    return b"".join(record.data for record in program.sections[section].texts)


# =============================================================================
# Displacement Resolution Tests
# =============================================================================

class TestResolveDisplacement:
    """Test the PC-relative / base-relative / out-of-range decision."""

    def test_pc_relative_upper_bound(self):
        res = resolve_displacement(target=2047 + 3, location=0)
        assert res.mode is AddressingMode.PC_RELATIVE
        assert res.value == 0x7FF
        assert (res.b, res.p, res.e) == (0, 1, 0)

    def test_pc_relative_just_out_of_range(self):
        res = resolve_displacement(target=2048 + 3, location=0)
        assert res.mode is AddressingMode.OUT_OF_RANGE
        assert not res.ok
        assert isinstance(res.error, DisplacementRangeError)
        assert res.value == 0

    def test_pc_relative_lower_bound(self):
        res = resolve_displacement(target=0, location=2045)
        assert res.mode is AddressingMode.PC_RELATIVE
        assert res.value == 0x800

    def test_pc_relative_below_lower_bound(self):
        res = resolve_displacement(target=0, location=2046)
        assert res.mode is AddressingMode.OUT_OF_RANGE

    def test_negative_displacement_is_twelve_bits(self):
        res = resolve_displacement(target=0, location=3)
        assert res.value == 0xFFA

    def test_base_relative(self):
        res = resolve_displacement(target=5000, location=0, base=4000)
        assert res.mode is AddressingMode.BASE_RELATIVE
        assert res.value == 1000
        assert (res.b, res.p) == (1, 0)

    def test_base_relative_upper_bound(self):
        assert resolve_displacement(target=4000 + 4095, location=0, base=4000).ok
        assert not resolve_displacement(target=4000 + 4096, location=0, base=4000).ok

    def test_target_below_base(self):
        assert not resolve_displacement(target=3000, location=9000, base=4000).ok

    def test_pc_relative_preferred_over_base(self):
        res = resolve_displacement(target=0x30, location=0, base=0x30)
        assert res.mode is AddressingMode.PC_RELATIVE

    def test_extended(self):
        res = resolve_displacement(target=0x1036, location=0, extended=True)
        assert res.mode is AddressingMode.EXTENDED
        assert res.value == 0x1036
        assert (res.b, res.p, res.e) == (0, 0, 1)


# =============================================================================
# Instruction Encoding Tests
# =============================================================================

class TestFormat3:
    """Test format 3 encodings and addressing flags."""

    def test_simple_pc_relative(self, catalog):
        _, program = assemble(catalog, """
            COPY    START   0
            FIRST   STL     RETADR
                    LDB     #LENGTH
                    RESB    42
            RETADR  RESW    1
            LENGTH  RESW    1
                    END     FIRST
        """)
        assert text_bytes(program) == bytes.fromhex("17202D69202D")

    def test_immediate_constant(self, catalog):
        _, program = assemble(catalog, """
            P       START   0
                    LDA     #3
                    END
        """)
        assert text_bytes(program) == bytes.fromhex("010003")

    def test_immediate_constant_truncated_to_twelve_bits(self, catalog):
        _, program = assemble(catalog, """
            P       START   0
                    LDA     #4097
                    END
        """)
        assert text_bytes(program) == bytes.fromhex("010001")

    def test_immediate_constant_ignores_index(self, catalog):
        _, program = assemble(catalog, """
            P       START   0
                    LDA     #5,X
                    END
        """)
        assert text_bytes(program) == bytes.fromhex("010005")

    def test_indirect(self, catalog):
        _, program = assemble(catalog, """
            P       START   0
                    J       @PTR
                    RESB    3
            PTR     RESW    1
                    END
        """)
        assert text_bytes(program) == bytes.fromhex("3E2003")

    def test_base_relative_indexed(self, catalog):
        _, program = assemble(catalog, """
            P       START   0
                    LDB     #LEN
                    BASE    LEN
                    STCH    BUF,X
                    RESB    4096
            LEN     RESW    1
            BUF     RESB    1
                    END
        """)
        assert text_bytes(program) == bytes.fromhex("69400057C003")

    def test_rsub(self, catalog):
        _, program = assemble(catalog, """
            P       START   0
                    RSUB
                    END
        """)
        assert text_bytes(program) == bytes.fromhex("4F0000")

    def test_literal_operand(self, catalog):
        _, program = assemble(catalog, """
            P       START   0
                    LDA     =C'EOF'
                    LTORG
                    END
        """)
        assert text_bytes(program) == bytes.fromhex("032000") + b"EOF"

    def test_out_of_range_is_zero_filled_in_lenient_mode(self, catalog):
        asm, program = assemble(catalog, """
            P       START   0
                    LDA     FAR
                    RESB    5000
            FAR     RESW    1
                    END
        """)
        assert text_bytes(program) == bytes.fromhex("030000")
        assert isinstance(asm.warnings[0], DisplacementRangeError)

    def test_out_of_range_raises_in_strict_mode(self, catalog):
        with pytest.raises(AssemblerError, match="out of range"):
            assemble(catalog, """
                P       START   0
                        LDA     FAR
                        RESB    5000
                FAR     RESW    1
                        END
            """, strict=True)

    def test_undefined_symbol_is_zero_with_warning(self, catalog):
        asm, _ = assemble(catalog, """
            P       START   0
                    LDA     GHOST
                    END
        """)
        assert isinstance(asm.warnings[0], UndefinedSymbolError)
        assert asm.warnings[0].symbol == "GHOST"


class TestFormat4:
    """Test extended (format 4) encodings."""

    def test_extended_absolute(self, catalog):
        _, program = assemble(catalog, """
            P       START   0
                    +JSUB   SUBR1
                    RESB    4000
            SUBR1   RSUB
                    END
        """)
        # SUBR1 at 4 + 4000 = 0xFA4
        assert text_bytes(program)[:4] == bytes.fromhex("4B100FA4")

    def test_extended_immediate_constant(self, catalog):
        _, program = assemble(catalog, """
            P       START   0
                    +LDT    #4096
                    END
        """)
        assert text_bytes(program) == bytes.fromhex("75101000")

    def test_extended_indexed(self, catalog):
        _, program = assemble(catalog, """
            P       START   0
                    +STCH   BUF,X
            BUF     RESB    1
                    END
        """)
        assert text_bytes(program) == bytes.fromhex("57900004")


class TestFormats1And2:
    """Test one- and two-byte instructions."""

    def test_format1(self, catalog):
        _, program = assemble(catalog, """
            P       START   0
                    FIX
                    END
        """)
        assert text_bytes(program) == bytes([0xC4])

    def test_format2_two_registers(self, catalog):
        _, program = assemble(catalog, """
            P       START   0
                    COMPR   A,S
                    END
        """)
        assert text_bytes(program) == bytes([0xA0, 0x04])

    def test_format2_single_register(self, catalog):
        _, program = assemble(catalog, """
            P       START   0
                    CLEAR   X
                    TIXR    T
                    END
        """)
        assert text_bytes(program) == bytes([0xB4, 0x10, 0xB8, 0x50])

    def test_extended_format2_is_rejected(self, catalog):
        with pytest.raises(AssemblerError, match="cannot be extended"):
            assemble(catalog, """
                P       START   0
                        +CLEAR  X
                        END
            """)


# =============================================================================
# Data Directive Tests
# =============================================================================

class TestDataDirectives:
    """Test BYTE and WORD encodings."""

    def test_byte_constants(self, catalog):
        _, program = assemble(catalog, """
            P       START   0
            EOF     BYTE    C'EOF'
            OUTDEV  BYTE    X'05'
                    END
        """)
        assert text_bytes(program) == b"EOF\x05"

    def test_word_decimal(self, catalog):
        _, program = assemble(catalog, """
            P       START   0
            THREE   WORD    3
                    END
        """)
        assert text_bytes(program) == bytes.fromhex("000003")

    def test_word_difference(self, catalog):
        _, program = assemble(catalog, """
            P       START   0
            BUF     RESB    16
            BUFEND  EQU     *
            MAXLEN  WORD    BUFEND-BUF
                    END
        """)
        assert text_bytes(program) == bytes.fromhex("000010")


# =============================================================================
# Text Record Packing Tests
# =============================================================================

class TestTextRecords:
    """Test Text record limits."""

    def test_thirty_byte_limit(self, catalog):
        source = "P START 0\n" + "  WORD 1\n" * 11 + "  END\n"
        _, program = assemble(catalog, source)
        texts = program.sections[0].texts
        assert [len(t.data) for t in texts] == [30, 3]
        assert texts[1].start == 30

    def test_custom_limit(self, catalog):
        asm = Assembler(AssemblerConfig(max_text_record_length=6), catalog=catalog)
        program = asm.assemble_string("P START 0\n  WORD 1\n  WORD 2\n  WORD 3\n  END\n")
        assert [len(t.data) for t in program.sections[0].texts] == [6, 3]

    def test_gap_starts_new_record(self, catalog):
        _, program = assemble(catalog, """
            P       START   0
                    WORD    1
                    RESB    5
                    WORD    2
                    END
        """)
        texts = program.sections[0].texts
        assert [t.start for t in texts] == [0, 8]

    def test_ltorg_literals_follow_code(self, catalog):
        _, program = assemble(catalog, """
            P       START   0
                    LDA     =X'05'
                    LTORG
                    RESB    2
                    RSUB
                    END
        """)
        texts = program.sections[0].texts
        assert [(t.start, t.data.hex().upper()) for t in texts] == [
            (0, "032000"),
            (3, "05"),
            (6, "4F0000"),
        ]

    def test_code_after_ltorg_follows_pool(self, catalog):
        _, program = assemble(catalog, """
            P       START   0
                    LDA     =C'EOF'
                    LTORG
            AFTER   RSUB
                    END
        """)
        texts = program.sections[0].texts
        assert [(t.start, t.data.hex().upper()) for t in texts] == [
            (0, "032000"),
            (3, "454F46"),
            (6, "4F0000"),
        ]
        assert program.sections[0].header.length == 9

    def test_end_pool_emitted(self, catalog):
        _, program = assemble(catalog, """
            P       START   0
                    LDA     =C'EOF'
                    END
        """)
        assert text_bytes(program) == bytes.fromhex("032000") + b"EOF"

    def test_offsets_are_relative_to_section_start(self, catalog):
        _, program = assemble(catalog, """
            P       START   1000
                    RSUB
                    END
        """)
        assert program.sections[0].texts[0].start == 0


# =============================================================================
# Modification Record Tests
# =============================================================================

class TestModificationRecords:
    """Test each Modification record trigger."""

    def test_extended_external_reference(self, catalog):
        _, program = assemble(catalog, """
            P       START   0
                    EXTREF  RDREC
                    LDA     #0
                    +JSUB   RDREC
                    END
        """)
        mods = [m.to_line() for m in program.sections[0].modifications]
        assert mods == ["M00000405+RDREC"]
        assert text_bytes(program)[3:] == bytes.fromhex("4B100000")

    def test_word_expression_records(self, catalog):
        _, program = assemble(catalog, """
            P       START   0
                    EXTREF  BUFEND,BUFFER
            MAXLEN  WORD    BUFEND-BUFFER
                    END
        """)
        mods = [m.to_line() for m in program.sections[0].modifications]
        assert mods == ["M00000006+BUFEND", "M00000006-BUFFER"]
        assert text_bytes(program) == bytes(3)

    def test_word_with_defined_symbol(self, catalog):
        _, program = assemble(catalog, """
            P       START   0
                    EXTDEF  BUF
                    EXTREF  OTHER
            BUF     RESB    3
            PTR     WORD    OTHER-BUF
                    END
        """)
        mods = [m.to_line() for m in program.sections[0].modifications]
        assert mods == ["M00000306+OTHER", "M00000306-BUF"]

    def test_equ_difference_records(self, catalog):
        _, program = assemble(catalog, """
            P       START   0
                    EXTREF  A1,B1
                    RSUB
            DIFF    EQU     A1-B1
                    END
        """)
        mods = [m.to_line() for m in program.sections[0].modifications]
        assert mods == ["M00000306+A1", "M00000306-B1"]

    def test_local_symbols_need_no_records(self, catalog):
        _, program = assemble(catalog, """
            P       START   0
            A1      RESW    1
            B1      RESW    1
            DIFF    WORD    B1-A1
                    END
        """)
        assert program.sections[0].modifications == []
