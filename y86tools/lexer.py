"""Tokenizer for Y86-64 assembly source lines."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .isa import INSTRUCTION_SET, Register, reg_name

_MASK = (1 << 64) - 1


class TokenKind(Enum):
    IDENT = "I"
    NUM = "N"
    REG = "R"
    INSTR = "X"
    PUNCT = "P"
    ERR = "E"


@dataclass(frozen=True)
class Token:
    """One lexical token of an assembly line."""

    kind: TokenKind
    text: Optional[str] = None
    value: int = 0
    char: str = " "

    def __str__(self) -> str:
        if self.kind is TokenKind.NUM:
            return f"[N {self.value}]"
        if self.kind is TokenKind.PUNCT:
            return f"[P {self.char}]"
        if self.kind is TokenKind.ERR:
            return "[E ERR]"
        return f"[{self.kind.value} {self.text}]"


ERR_TOKEN = Token(TokenKind.ERR)


class LexError(ValueError):
    """A line holds a character that starts no token."""

    def __init__(self, message: str, column: int) -> None:
        super().__init__(message)
        self.column = column


def _wrap(value: int) -> int:
    value &= _MASK
    return value - (1 << 64) if value >> 63 else value


_HEX_PREFIX = re.compile(r"\s*([+-]?)(?:0[xX])?([0-9a-fA-F]*)")


def atollh(text: str) -> int:
    """Parse a hexadecimal number the way strtoull does with base 16."""
    match = _HEX_PREFIX.match(text)
    digits = match.group(2) if match else ""
    if not digits:
        return 0
    value = min(int(digits, 16), _MASK)
    if match.group(1) == "-":
        value = (-value) & _MASK
    return value


_INSTR_NAMES = [i.name for i in INSTRUCTION_SET if i.name != "pop2"] + [".pos", ".align"]
_REG_NAMES = [reg_name(r) for r in Register if r < Register.NONE]


def _alternation(words: list[str]) -> str:
    return "|".join(re.escape(w) for w in sorted(words, key=len, reverse=True))


# Candidates in priority order; the longest match wins, earlier on a tie.
_PATTERNS = (
    (TokenKind.INSTR, re.compile(_alternation(_INSTR_NAMES))),
    (TokenKind.REG, re.compile(_alternation(_REG_NAMES))),
    (TokenKind.NUM, re.compile(r"-?[0-9]+")),
    ("hex", re.compile(r"0[xX][0-9a-fA-F]+")),
    (TokenKind.PUNCT, re.compile(r"[():,]")),
    (TokenKind.IDENT, re.compile(r"[a-zA-Z][a-zA-Z0-9_]*")),
)

_BLANKS = " \t\r\n"


def tokenize_line(line: str) -> list[Token]:
    """Split one source line into tokens, dropping blanks, '$' and comments."""
    tokens: list[Token] = []
    pos = 0
    while pos < len(line):
        ch = line[pos]
        if ch in _BLANKS or ch == "$":
            pos += 1
            continue
        if ch == "#" or line.startswith("//", pos) or line.startswith("/*", pos):
            break
        best = None
        for kind, pattern in _PATTERNS:
            match = pattern.match(line, pos)
            if match and (best is None or len(match.group()) > len(best[1])):
                best = (kind, match.group())
        if best is None:
            raise LexError("Invalid line", pos)
        kind, text = best
        if kind == "hex":
            tokens.append(Token(TokenKind.NUM, value=_wrap(atollh(text))))
        elif kind is TokenKind.NUM:
            tokens.append(Token(TokenKind.NUM, value=_wrap(int(text))))
        elif kind is TokenKind.PUNCT:
            tokens.append(Token(TokenKind.PUNCT, char=text))
        else:
            tokens.append(Token(kind, text=text))
        pos += len(text)
    return tokens