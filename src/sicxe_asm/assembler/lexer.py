"""
SIC/XE Line Tokenizer
=====================

This module converts SIC/XE source lines into Token records. SIC/XE
source is column-free but positional: every statement has the shape

    [LABEL] OPERATOR [OPERAND[,OPERAND[,OPERAND]]] [. comment]

The tokenizer decides whether the first word is the label or the operator
by looking it up in the instruction catalog and the directive set. A
leading '+' (extended format marker) is ignored for that lookup.

Comments
--------
- A line whose first non-blank character is '.' is a comment line.
- Anything from a '.' outside a quoted constant to end of line is the
  comment of that statement.
- Free text after the operand field is kept as comment text too.

Operands
--------
The operand field is split on commas into at most three trimmed operands.
Quoted constants (C'A,B', X'F1') are never split.

Example
-------
>>> lexer = Lexer(InstructionCatalog.from_file("inst_table.txt"))
>>> tok = lexer.tokenize_line("CLOOP  +JSUB  RDREC")
>>> tok.label, tok.operator, tok.operands
('CLOOP', '+JSUB', ('RDREC',))
>>> lexer.tokenize_line("STCH BUFFER,X").operand(1)
'X'
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from sicxe_asm.cpu import InstructionCatalog, split_extended
from sicxe_asm.errors import SourceLocation


COMMENT_MARKER = "."
LITERAL_MARKER = "="
IMMEDIATE_MARKER = "#"
INDIRECT_MARKER = "@"
MAX_OPERANDS = 3


# =============================================================================
# Directive Enumeration
# =============================================================================

class Directive(str, Enum):
    """
    Assembler directives recognized by the tokenizer.

    BASE and NOBASE manage the base register used by Pass 2; all other
    directives take part in location-counter assignment.
    """
    START = "START"
    END = "END"
    BYTE = "BYTE"
    WORD = "WORD"
    RESW = "RESW"
    RESB = "RESB"
    LTORG = "LTORG"
    CSECT = "CSECT"
    EXTDEF = "EXTDEF"
    EXTREF = "EXTREF"
    EQU = "EQU"
    BASE = "BASE"
    NOBASE = "NOBASE"

    @classmethod
    def from_operator(cls, operator: str) -> Optional["Directive"]:
        """Return the directive named by an operator, or None."""
        _, name = split_extended(operator.strip())
        try:
            return cls(name.upper())
        except ValueError:
            return None


# Directives that never produce Text record bytes
CONTROL_DIRECTIVES = frozenset({
    Directive.START,
    Directive.END,
    Directive.CSECT,
    Directive.EXTDEF,
    Directive.EXTREF,
    Directive.EQU,
    Directive.RESW,
    Directive.RESB,
    Directive.LTORG,
    Directive.BASE,
    Directive.NOBASE,
})


# =============================================================================
# Token Data Class
# =============================================================================

@dataclass
class Token:
    """
    One tokenized source statement.

    Attributes:
        label: Label text ("" when absent)
        operator: Operator as written, including a '+' marker ("" when none)
        operands: Up to three trimmed operand strings
        comment: Comment text ("" when absent)
        line: Source line number (1-indexed, 0 when unknown)
        source: The original source line
        filename: Name of the source file
        location: Location counter value, written once by Pass 1
    """
    label: str = ""
    operator: str = ""
    operands: tuple[str, ...] = ()
    comment: str = ""
    line: int = 0
    source: str = ""
    filename: str = "<input>"
    location: Optional[int] = None

    def __repr__(self) -> str:
        loc = f"{self.location:04X}" if self.location is not None else "----"
        return (
            f"Token({loc} {self.label!r} {self.operator!r} "
            f"{','.join(self.operands)!r}, line {self.line})"
        )

    def operand(self, index: int) -> str:
        """Return operand `index`, or "" when the slot is unused."""
        if 0 <= index < len(self.operands):
            return self.operands[index]
        return ""

    def assign_location(self, value: int) -> None:
        """
        Record the location counter for this token.

        Raises:
            RuntimeError: If the location was already assigned
        """
        if self.location is not None:
            raise RuntimeError(f"location of {self!r} is already assigned")
        self.location = value

    @property
    def is_extended(self) -> bool:
        """True when the operator carries the extended-format marker."""
        return split_extended(self.operator)[0]

    @property
    def mnemonic(self) -> str:
        """Upper-case operator without the extended-format marker."""
        return split_extended(self.operator)[1].upper()

    @property
    def directive(self) -> Optional[Directive]:
        """The Directive this token names, or None for instructions."""
        if not self.operator:
            return None
        return Directive.from_operator(self.operator)

    @property
    def is_comment(self) -> bool:
        """True for comment-only lines."""
        return not self.label and not self.operator and bool(self.comment)

    @property
    def source_location(self) -> SourceLocation:
        """Return a SourceLocation for error reporting."""
        return SourceLocation(self.filename, self.line)


# =============================================================================
# Scanning Helpers
# =============================================================================

def _split_comment(text: str) -> tuple[str, str]:
    """Split text at the first comment marker outside a quoted constant."""
    in_quote = False
    for i, char in enumerate(text):
        if char == "'":
            in_quote = not in_quote
        elif char == COMMENT_MARKER and not in_quote:
            return text[:i].rstrip(), text[i:].strip()
    return text.rstrip(), ""


def _next_word(text: str) -> tuple[str, str]:
    """Return (first whitespace-delimited word, remaining text)."""
    text = text.lstrip()
    for i, char in enumerate(text):
        if char.isspace():
            return text[:i], text[i:].lstrip()
    return text, ""


def _scan_operand_field(text: str) -> tuple[str, str]:
    """
    Return (operand field, trailing text).

    The field ends at whitespace outside quotes unless the whitespace sits
    next to a comma, so "BUFFER, X" is one field.
    """
    text = text.lstrip()
    in_quote = False
    i = 0
    while i < len(text):
        char = text[i]
        if char == "'":
            in_quote = not in_quote
        elif char.isspace() and not in_quote:
            rest = text[i:].lstrip()
            if text[:i].rstrip().endswith(",") or rest.startswith(","):
                i = len(text) - len(rest)
                continue
            return text[:i], rest
        i += 1
    return text, ""


def split_operands(field: str) -> tuple[str, ...]:
    """
    Split an operand field on commas outside quotes.

    At most MAX_OPERANDS operands are returned; each is trimmed.
    """
    if not field.strip():
        return ()
    operands = []
    current = []
    in_quote = False
    for char in field:
        if char == "'":
            in_quote = not in_quote
        if char == "," and not in_quote:
            operands.append("".join(current).strip())
            current = []
        else:
            current.append(char)
    operands.append("".join(current).strip())
    return tuple(operands[:MAX_OPERANDS])


# =============================================================================
# Lexer Implementation
# =============================================================================

class Lexer:
    """
    Tokenizes SIC/XE source lines.

    Usage:
        lexer = Lexer(catalog, "copy.asm")
        tokens = lexer.tokenize(source_text)

    A line whose first word is not an operator and whose second word is
    not one either becomes a token with an empty operator. Pass 1 treats
    such a line as a no-op and reports it.
    """

    def __init__(self, catalog: InstructionCatalog, filename: str = "<input>"):
        self.catalog = catalog
        self.filename = filename

    def is_operator(self, word: str) -> bool:
        """True if word names an instruction or a directive."""
        if not word:
            return False
        return word in self.catalog or Directive.from_operator(word) is not None

    def tokenize_line(self, line: str, line_number: int = 0) -> Token:
        """
        Tokenize one source line.

        Args:
            line: Raw source line
            line_number: Line number for diagnostics

        Returns:
            The Token for this line (comment-only lines included)
        """
        trimmed = line.strip()
        token = Token(line=line_number, source=trimmed, filename=self.filename)

        if not trimmed:
            return token
        if trimmed.startswith(COMMENT_MARKER):
            token.comment = trimmed
            return token

        body, token.comment = _split_comment(trimmed)

        first, rest = _next_word(body)
        if self.is_operator(first):
            token.operator = first
        else:
            token.label = first
            second, rest = _next_word(rest)
            if self.is_operator(second):
                token.operator = second
            elif second:
                # Unknown operator: keep its text for diagnostics only
                rest = f"{second} {rest}".strip()
                token.comment = " ".join(filter(None, [rest, token.comment]))
                return token

        field, trailing = _scan_operand_field(rest)
        token.operands = split_operands(field)
        if trailing:
            token.comment = " ".join(filter(None, [trailing, token.comment]))

        return token

    def tokenize(self, source: str) -> list[Token]:
        """
        Tokenize a whole source text.

        Blank lines and comment lines are discarded; line numbers of the
        remaining tokens refer to the original text.
        """
        tokens = []
        for line_number, line in enumerate(source.splitlines(), start=1):
            stripped = line.strip()
            if not stripped or stripped.startswith(COMMENT_MARKER):
                continue
            tokens.append(self.tokenize_line(line, line_number))
        return tokens
