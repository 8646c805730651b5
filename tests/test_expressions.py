# =============================================================================
# test_expressions.py - Constant and Expression Helper Tests
# =============================================================================
# Tests for BYTE/literal constant sizing and encoding and for the signed
# term walk used by WORD, EQU and Modification records.
# =============================================================================

import pytest

from sicxe_asm.assembler.expressions import (
    Term,
    constant_size,
    encode_constant,
    encode_word,
    evaluate_terms,
    is_decimal,
    split_terms,
    strip_literal,
)
from sicxe_asm.errors import AssemblySyntaxError, ExpressionError


# =============================================================================
# Constant Sizing Tests
# =============================================================================

class TestConstantSize:
    """Test sizes of BYTE operands and literals."""

    def test_character_constant(self):
        assert constant_size("C'EOF'") == 3

    def test_hex_constant(self):
        assert constant_size("X'F1'") == 1
        assert constant_size("X'05'") == 1
        assert constant_size("X'0102'") == 2

    def test_odd_hex_digits_round_up(self):
        assert constant_size("X'ABC'") == 2

    def test_literal_prefix(self):
        assert constant_size("=C'EOF'") == 3
        assert constant_size("=X'05'") == 1

    def test_decimal_is_one_word(self):
        assert constant_size("=10") == 3
        assert constant_size("4096") == 3

    def test_not_a_constant(self):
        assert constant_size("BUFFER") == 0
        assert constant_size("") == 0


# =============================================================================
# Constant Encoding Tests
# =============================================================================

class TestEncodeConstant:
    """Test encoding of BYTE operands and literals."""

    def test_character_constant(self):
        assert encode_constant("C'EOF'") == b"EOF"

    def test_hex_constant(self):
        assert encode_constant("X'F1'") == bytes([0xF1])
        assert encode_constant("=X'05'") == bytes([0x05])

    def test_odd_hex_digit_is_own_byte(self):
        assert encode_constant("X'ABC'") == bytes([0xAB, 0x0C])

    def test_decimal(self):
        assert encode_constant("=10") == bytes([0x00, 0x00, 0x0A])

    def test_negative_decimal_is_twos_complement(self):
        assert encode_constant("-1") == bytes([0xFF, 0xFF, 0xFF])

    def test_invalid_hex(self):
        with pytest.raises(AssemblySyntaxError):
            encode_constant("X'GG'")

    def test_invalid_form(self):
        with pytest.raises(AssemblySyntaxError):
            encode_constant("BUFFER")

    def test_encode_word_truncates(self):
        assert encode_word(0x1234567) == bytes([0x23, 0x45, 0x67])


class TestHelpers:
    def test_is_decimal(self):
        assert is_decimal("42")
        assert is_decimal("-7")
        assert not is_decimal("4A")
        assert not is_decimal("")

    def test_strip_literal(self):
        assert strip_literal("=C'EOF'") == "C'EOF'"
        assert strip_literal("C'EOF'") == "C'EOF'"


# =============================================================================
# Term Walk Tests
# =============================================================================

class TestSplitTerms:
    """Test the signed term walk."""

    def test_difference(self):
        assert split_terms("BUFEND-BUFFER") == [Term("+", "BUFEND"), Term("-", "BUFFER")]

    def test_sign_resets_after_each_term(self):
        assert split_terms("A-B+C") == [Term("+", "A"), Term("-", "B"), Term("+", "C")]

    def test_leading_minus(self):
        assert split_terms("-A") == [Term("-", "A")]

    def test_single_name(self):
        assert split_terms("LENGTH") == [Term("+", "LENGTH")]

    def test_stops_at_unknown_character(self):
        assert split_terms("A*B") == [Term("+", "A")]

    def test_numbers_are_terms(self):
        terms = split_terms("A+4")
        assert terms[1].is_number


class TestEvaluateTerms:
    """Test evaluation of WORD expressions."""

    def test_decimal(self):
        assert evaluate_terms("4096", lambda name: 0) == 4096

    def test_symbol_difference(self):
        table = {"BUFEND": 0x1036, "BUFFER": 0x36}
        assert evaluate_terms("BUFEND-BUFFER", table.__getitem__) == 0x1000

    def test_mixed_terms(self):
        assert evaluate_terms("A+3", {"A": 10}.__getitem__) == 13

    def test_malformed(self):
        with pytest.raises(ExpressionError):
            evaluate_terms("A*B", lambda name: 0)

    def test_empty(self):
        with pytest.raises(ExpressionError):
            evaluate_terms("", lambda name: 0)
