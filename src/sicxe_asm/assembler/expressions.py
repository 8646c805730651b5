"""
Constant and Expression Helpers
===============================

SIC/XE source only needs a very small expression language:

- BYTE constants and literals: C'EOF', X'F1', and decimal values
- EQU operands: '*', a decimal constant, a symbol, or SYMBOL-SYMBOL
- WORD operands: a decimal constant or a signed sum of terms (BUFEND-BUFFER)

Constant Encoding
-----------------
| Form     | Size                    | Encoding                           |
|----------|-------------------------|------------------------------------|
| C'text'  | one byte per character  | ASCII                              |
| X'hex'   | ceil(digits / 2)        | each digit pair is one byte        |
| 123      | 3 bytes                 | big-endian, truncated to 24 bits   |

Literals use the same forms prefixed with '=' (=C'EOF', =X'05', =10).

Example
-------
>>> constant_size("=C'EOF'")
3
>>> encode_constant("X'F1'")
b'\\xf1'
>>> split_terms("BUFEND-BUFFER")
[Term(sign='+', name='BUFEND'), Term(sign='-', name='BUFFER')]
"""

from dataclasses import dataclass
from typing import Callable, Optional
import re

from sicxe_asm.errors import AssemblySyntaxError, ExpressionError


LITERAL_PREFIX = "="

# One SIC/XE word
WORD_SIZE = 3
WORD_MASK = 0xFFFFFF

_DECIMAL = re.compile(r"[+-]?\d+")
_HEX_DIGITS = re.compile(r"[0-9A-Fa-f]*")
_SIGNED_SUM = re.compile(r"[+-]?\s*\w+(\s*[+-]\s*\w+)*")


def is_decimal(text: str) -> bool:
    """True if text is a (signed) decimal integer."""
    return _DECIMAL.fullmatch(text.strip()) is not None


def strip_literal(text: str) -> str:
    """Remove the literal prefix from a literal operand."""
    text = text.strip()
    return text[len(LITERAL_PREFIX):] if text.startswith(LITERAL_PREFIX) else text


def _quoted_body(constant: str, kind: str) -> Optional[str]:
    """Return the body of KIND'...' or None if constant has another form."""
    upper = constant.upper()
    if upper.startswith(f"{kind}'") and constant.endswith("'") and len(constant) >= 3:
        return constant[2:-1]
    return None


# =============================================================================
# Constant Sizing and Encoding
# =============================================================================

def constant_size(constant: str) -> int:
    """
    Size in bytes of a BYTE operand or literal.

    Returns 0 for forms that are not constants.
    """
    constant = strip_literal(constant)

    chars = _quoted_body(constant, "C")
    if chars is not None:
        return len(chars)

    digits = _quoted_body(constant, "X")
    if digits is not None:
        return (len(digits) + 1) // 2

    if is_decimal(constant):
        return WORD_SIZE

    return 0


def encode_constant(constant: str) -> bytes:
    """
    Encode a BYTE operand or literal into object bytes.

    Raises:
        AssemblySyntaxError: If the constant is malformed
    """
    constant = strip_literal(constant)

    chars = _quoted_body(constant, "C")
    if chars is not None:
        try:
            return chars.encode("ascii")
        except UnicodeEncodeError as e:
            raise AssemblySyntaxError(
                f"character constant {constant} is not ASCII"
            ) from e

    digits = _quoted_body(constant, "X")
    if digits is not None:
        if not _HEX_DIGITS.fullmatch(digits):
            raise AssemblySyntaxError(f"invalid hexadecimal constant {constant}")
        return bytes(int(digits[i:i + 2], 16) for i in range(0, len(digits), 2))

    if is_decimal(constant):
        return encode_word(int(constant))

    raise AssemblySyntaxError(
        f"invalid constant '{constant}'",
        hint="expected C'...', X'...' or a decimal number",
    )


def encode_word(value: int) -> bytes:
    """Encode a signed value as one 3-byte big-endian word."""
    return (value & WORD_MASK).to_bytes(WORD_SIZE, "big")


# =============================================================================
# Signed Term Expressions
# =============================================================================

@dataclass(frozen=True)
class Term:
    """One term of a signed sum: its sign ('+' or '-') and its text."""
    sign: str
    name: str

    @property
    def is_number(self) -> bool:
        return self.name.isdigit()


def split_terms(expression: str) -> list[Term]:
    """
    Walk a signed sum of names, e.g. 'BUFEND-BUFFER' or 'A+B-C'.

    The first term defaults to '+'. Each term's sign is the operator that
    precedes it; the walk stops at the first character that is neither a
    sign nor part of a name.
    """
    terms = []
    sign = "+"
    pos = 0
    text = expression.strip()
    while pos < len(text):
        char = text[pos]
        if char in "+-":
            sign = char
            pos += 1
            continue
        start = pos
        while pos < len(text) and (text[pos].isalnum() or text[pos] == "_"):
            pos += 1
        if start == pos:
            break
        terms.append(Term(sign, text[start:pos]))
        sign = "+"
    return terms


def evaluate_terms(
    expression: str,
    resolve: Callable[[str], int],
) -> int:
    """
    Evaluate a signed sum of decimal constants and symbols.

    Args:
        expression: Expression text
        resolve: Returns the value of a symbol name

    Raises:
        ExpressionError: If the expression has no terms or trailing garbage
    """
    if not _SIGNED_SUM.fullmatch(expression.strip()):
        raise ExpressionError(f"cannot evaluate expression '{expression}'")
    terms = split_terms(expression)

    value = 0
    for term in terms:
        term_value = int(term.name) if term.is_number else resolve(term.name)
        value += term_value if term.sign == "+" else -term_value
    return value
