"""Instruction decoding: tokenizer, opcode set and operand classifier.

Grammar:
    OPCODE [ARG1] [ARG2] [ARG3]   # optional comment

Tokens are separated by whitespace or commas, the opcode is case
insensitive, and everything from the first token starting with '#' is
ignored.

Operand classification rules apply in order, first match wins:

    0) empty                        -> None
    1) starts with '#'              -> None (comment)
    2) only alphabetic characters   -> Register
    3) '0x' + hex digits            -> MemAddr
    4) decimal digits               -> Immediate
    5) '.' + alphabetic characters  -> Symbol
    6) anything else                -> Error (malformed)
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from .word import Word


COMMENT_MARKER = "#"
LABEL_MARKER = "."
HEX_PREFIX = "0x"
MAX_OPERANDS = 3

_TOKEN_SPLIT = re.compile(r"[\s,]+")
_HEX_DIGITS = re.compile(r"[0-9A-Fa-f]+")
_DEC_DIGITS = re.compile(r"[0-9]+")


class Opcode(Enum):
    """The Rize-1 instruction set. NONE marks an unrecognized keyword."""
    NONE = ""
    LD = "LD"
    ST = "ST"
    SWP = "SWP"
    MOV = "MOV"
    ADD = "ADD"
    SUB = "SUB"
    MUL = "MUL"
    DIV = "DIV"
    NOT = "NOT"
    AND = "AND"
    OR = "OR"
    XOR = "XOR"
    SHL = "SHL"
    SHR = "SHR"
    WDM = "WDM"
    JMP = "JMP"
    JIZ = "JIZ"
    JIN = "JIN"
    HALT = "HALT"
    NOP = "NOP"

    @classmethod
    def parse(cls, keyword: str) -> "Opcode":
        """Map a keyword (any case) to an opcode, or NONE if unknown."""
        upper = keyword.upper()
        if not upper:
            return cls.NONE
        for opcode in cls:
            if opcode.value == upper:
                return opcode
        return cls.NONE


class OperandKind(Enum):
    NONE = "none"
    REGISTER = "register"
    IMMEDIATE = "immediate"
    MEMADDR = "memaddr"
    SYMBOL = "symbol"
    ERROR = "error"


VALUE_KINDS = (OperandKind.REGISTER, OperandKind.IMMEDIATE, OperandKind.MEMADDR)


@dataclass
class Operand:
    """One classified operand slot.

    Attributes:
        kind: Classification tag
        token: Raw token text
        name: Register or symbol name (without the label marker)
        literal: Address (MemAddr) or number (Immediate)
        value: Resolved Word, set during Decode for value kinds
    """
    kind: OperandKind = OperandKind.NONE
    token: str = ""
    name: Optional[str] = None
    literal: Optional[int] = None
    value: Optional[Word] = None

    @property
    def is_value(self) -> bool:
        return self.kind in VALUE_KINDS

    @property
    def is_present(self) -> bool:
        return self.kind is not OperandKind.NONE

    def describe(self) -> str:
        if self.kind is OperandKind.NONE:
            return "nothing"
        return f"{self.kind.value} '{self.token}'"


def classify(token: str) -> Operand:
    """Classify one raw operand token. Never raises."""
    if not token or token.startswith(COMMENT_MARKER):
        return Operand(OperandKind.NONE, token)

    if token.isalpha():
        return Operand(OperandKind.REGISTER, token, name=token.lower())

    if token.startswith(HEX_PREFIX):
        digits = token[len(HEX_PREFIX):]
        if _HEX_DIGITS.fullmatch(digits):
            return Operand(OperandKind.MEMADDR, token, literal=int(digits, 16))

    if _DEC_DIGITS.fullmatch(token):
        return Operand(OperandKind.IMMEDIATE, token, literal=int(token))

    if token.startswith(LABEL_MARKER):
        symbol = token[len(LABEL_MARKER):]
        if symbol and symbol.isalpha():
            return Operand(OperandKind.SYMBOL, token, name=symbol.lower())

    return Operand(OperandKind.ERROR, token)


def tokenize(line: str) -> List[str]:
    """Split an instruction line into tokens, dropping any trailing comment."""
    tokens = []
    for token in _TOKEN_SPLIT.split(line.strip()):
        if not token:
            continue
        if token.startswith(COMMENT_MARKER):
            break
        tokens.append(token)
    return tokens


def is_instruction_line(line: str) -> bool:
    """True for lines Fetch captures: not blank, not a comment, not a label."""
    stripped = line.strip()
    return bool(stripped) and not stripped.startswith((COMMENT_MARKER, LABEL_MARKER))
