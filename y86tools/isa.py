"""Y86-64 instruction set: registers, encodings, memory, ALU and condition codes."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, Optional, TextIO

BPL = 32
"""Bytes per line: memory is allocated and dumped in blocks of this size."""

MEM_SIZE = 1 << 13
BIG_MEM_SIZE = 1 << 16
REG_FILE_SIZE = 128

_WORD_BITS = 64
_MASK = (1 << _WORD_BITS) - 1
_SIGN_BIT = 1 << (_WORD_BITS - 1)

_SPACE = frozenset(" \t\n\v\f\r")
_HEX = frozenset("0123456789abcdefABCDEF")


def _to_word(value: int) -> int:
    """Wrap an integer to a signed 64-bit word."""
    value &= _MASK
    return value - (1 << _WORD_BITS) if value & _SIGN_BIT else value


def _hex64(value: int) -> str:
    return f"{value & _MASK:016x}"


class Register(IntEnum):
    RAX = 0
    RCX = 1
    RDX = 2
    RBX = 3
    RSP = 4
    RBP = 5
    RSI = 6
    RDI = 7
    R8 = 8
    R9 = 9
    R10 = 10
    R11 = 11
    R12 = 12
    R13 = 13
    R14 = 14
    NONE = 0xF
    ERR = 0x10


_REG_NAMES = (
    "%rax", "%rcx", "%rdx", "%rbx", "%rsp", "%rbp", "%rsi", "%rdi",
    "%r8", "%r9", "%r10", "%r11", "%r12", "%r13", "%r14", "----", "----",
)


class ArgType(IntEnum):
    R_ARG = 0
    M_ARG = 1
    I_ARG = 2
    NO_ARG = 3


class IType(IntEnum):
    HALT = 0
    NOP = 1
    RRMOVQ = 2
    IRMOVQ = 3
    RMMOVQ = 4
    MRMOVQ = 5
    ALU = 6
    JMP = 7
    CALL = 8
    RET = 9
    PUSHQ = 10
    POPQ = 11
    IADDQ = 12
    POP2 = 13


class AluOp(IntEnum):
    ADD = 0
    SUB = 1
    AND = 2
    XOR = 3
    NONE = 4


class Cond(IntEnum):
    YES = 0
    LE = 1
    L = 2
    E = 3
    NE = 4
    GE = 5
    G = 6


class Stat(IntEnum):
    BUB = 0
    AOK = 1
    HLT = 2
    ADR = 3
    INS = 4
    PIP = 5


F_NONE = 0


class AddressError(LookupError):
    """An access fell outside the bounds of a memory."""


class LoadError(ValueError):
    """An object-code file could not be loaded."""

    def __init__(self, message: str, lineno: int) -> None:
        super().__init__(message)
        self.lineno = lineno


def find_register(name: str) -> Register:
    """Return the register with the given name, or Register.ERR."""
    for reg in Register:
        if reg >= Register.NONE:
            break
        if _REG_NAMES[reg] == name:
            return reg
    return Register.ERR


def reg_name(reg_id: int) -> str:
    """Return the name of a register, or '----' for anything invalid."""
    if 0 <= reg_id < Register.NONE:
        return _REG_NAMES[reg_id]
    return _REG_NAMES[Register.NONE]


def reg_valid(reg_id: int) -> bool:
    """Is the given ID that of a program register?"""
    return 0 <= reg_id < Register.NONE


def hpack(hi: int, lo: int) -> int:
    """Pack two 4-bit fields into one byte."""
    return ((hi & 0xF) << 4) | (lo & 0xF)


def hi4(byte: int) -> int:
    return (byte >> 4) & 0xF


def lo4(byte: int) -> int:
    return byte & 0xF


@dataclass(frozen=True)
class Instr:
    """Encoding description of one instruction or data directive."""

    name: str
    code: int
    size: int
    arg1: ArgType
    arg1pos: int
    arg1hi: int
    arg2: ArgType
    arg2pos: int
    arg2hi: int


_R, _M, _I, _N = ArgType.R_ARG, ArgType.M_ARG, ArgType.I_ARG, ArgType.NO_ARG

INSTRUCTION_SET: tuple[Instr, ...] = (
    Instr("nop", hpack(IType.NOP, F_NONE), 1, _N, 0, 0, _N, 0, 0),
    Instr("halt", hpack(IType.HALT, F_NONE), 1, _N, 0, 0, _N, 0, 0),
    Instr("rrmovq", hpack(IType.RRMOVQ, F_NONE), 2, _R, 1, 1, _R, 1, 0),
    Instr("cmovle", hpack(IType.RRMOVQ, Cond.LE), 2, _R, 1, 1, _R, 1, 0),
    Instr("cmovl", hpack(IType.RRMOVQ, Cond.L), 2, _R, 1, 1, _R, 1, 0),
    Instr("cmove", hpack(IType.RRMOVQ, Cond.E), 2, _R, 1, 1, _R, 1, 0),
    Instr("cmovne", hpack(IType.RRMOVQ, Cond.NE), 2, _R, 1, 1, _R, 1, 0),
    Instr("cmovge", hpack(IType.RRMOVQ, Cond.GE), 2, _R, 1, 1, _R, 1, 0),
    Instr("cmovg", hpack(IType.RRMOVQ, Cond.G), 2, _R, 1, 1, _R, 1, 0),
    Instr("irmovq", hpack(IType.IRMOVQ, F_NONE), 10, _I, 2, 8, _R, 1, 0),
    Instr("rmmovq", hpack(IType.RMMOVQ, F_NONE), 10, _R, 1, 1, _M, 1, 0),
    Instr("mrmovq", hpack(IType.MRMOVQ, F_NONE), 10, _M, 1, 0, _R, 1, 1),
    Instr("addq", hpack(IType.ALU, AluOp.ADD), 2, _R, 1, 1, _R, 1, 0),
    Instr("subq", hpack(IType.ALU, AluOp.SUB), 2, _R, 1, 1, _R, 1, 0),
    Instr("andq", hpack(IType.ALU, AluOp.AND), 2, _R, 1, 1, _R, 1, 0),
    Instr("xorq", hpack(IType.ALU, AluOp.XOR), 2, _R, 1, 1, _R, 1, 0),
    Instr("jmp", hpack(IType.JMP, Cond.YES), 9, _I, 1, 8, _N, 0, 0),
    Instr("jle", hpack(IType.JMP, Cond.LE), 9, _I, 1, 8, _N, 0, 0),
    Instr("jl", hpack(IType.JMP, Cond.L), 9, _I, 1, 8, _N, 0, 0),
    Instr("je", hpack(IType.JMP, Cond.E), 9, _I, 1, 8, _N, 0, 0),
    Instr("jne", hpack(IType.JMP, Cond.NE), 9, _I, 1, 8, _N, 0, 0),
    Instr("jge", hpack(IType.JMP, Cond.GE), 9, _I, 1, 8, _N, 0, 0),
    Instr("jg", hpack(IType.JMP, Cond.G), 9, _I, 1, 8, _N, 0, 0),
    Instr("call", hpack(IType.CALL, F_NONE), 9, _I, 1, 8, _N, 0, 0),
    Instr("ret", hpack(IType.RET, F_NONE), 1, _N, 0, 0, _N, 0, 0),
    Instr("pushq", hpack(IType.PUSHQ, F_NONE), 2, _R, 1, 1, _N, 0, 0),
    Instr("popq", hpack(IType.POPQ, F_NONE), 2, _R, 1, 1, _N, 0, 0),
    Instr("iaddq", hpack(IType.IADDQ, F_NONE), 10, _I, 2, 8, _R, 1, 0),
    Instr("caddg", hpack(IType.IADDQ, Cond.G), 10, _I, 2, 8, _R, 1, 0),
    Instr("pop2", hpack(IType.POP2, F_NONE), 0, _N, 0, 0, _N, 0, 0),
    Instr(".byte", 0x00, 1, _I, 0, 1, _N, 0, 0),
    Instr(".word", 0x00, 2, _I, 0, 2, _N, 0, 0),
    Instr(".long", 0x00, 4, _I, 0, 4, _N, 0, 0),
    Instr(".quad", 0x00, 8, _I, 0, 8, _N, 0, 0),
)

INVALID_INSTR = Instr("XXX", 0, 0, _N, 0, 0, _N, 0, 0)


def find_instr(name: str) -> Optional[Instr]:
    """Return the instruction with the given mnemonic, or None."""
    return next((instr for instr in INSTRUCTION_SET if instr.name == name), None)


def iname(code: int) -> str:
    """Return the mnemonic for an instruction byte, or '<bad>'."""
    return next(
        (instr.name for instr in INSTRUCTION_SET if instr.code == code), "<bad>"
    )


def bad_instr() -> Instr:
    """Return the placeholder used for unknown instructions."""
    return INVALID_INSTR


_ALU_SYMBOLS = {AluOp.ADD: "+", AluOp.SUB: "-", AluOp.AND: "&", AluOp.XOR: "^"}


def op_name(op: int) -> str:
    """Return the symbol of an ALU operation, or '?'."""
    if 0 <= op < AluOp.NONE:
        return _ALU_SYMBOLS[AluOp(op)]
    return "?"


def compute_alu(op: int, arg_a: int, arg_b: int) -> int:
    """Apply an ALU operation; subtraction computes arg_b - arg_a."""
    if op == AluOp.ADD:
        return _to_word(arg_a + arg_b)
    if op == AluOp.SUB:
        return _to_word(arg_b - arg_a)
    if op == AluOp.AND:
        return _to_word(arg_a & arg_b)
    if op == AluOp.XOR:
        return _to_word(arg_a ^ arg_b)
    return 0


def pack_cc(zero: int, sign: int, overflow: int) -> int:
    """Pack the zero, sign and overflow flags into a condition code."""
    return (int(zero) << 2) | (int(sign) << 1) | int(overflow)


def _zf(cc: int) -> int:
    return (cc >> 2) & 1


def _sf(cc: int) -> int:
    return (cc >> 1) & 1


def _of(cc: int) -> int:
    return cc & 1


DEFAULT_CC = pack_cc(1, 0, 0)


def compute_cc(op: int, arg_a: int, arg_b: int) -> int:
    """Return the condition code an ALU operation would set."""
    arg_a = _to_word(arg_a)
    arg_b = _to_word(arg_b)
    val = compute_alu(op, arg_a, arg_b)
    zero = val == 0
    sign = val < 0
    if op == AluOp.ADD:
        ovf = ((arg_a < 0) == (arg_b < 0)) and ((val < 0) != (arg_a < 0))
    elif op == AluOp.SUB:
        ovf = ((arg_a > 0) == (arg_b < 0)) and ((val < 0) != (arg_b < 0))
    else:
        ovf = False
    return pack_cc(zero, sign, ovf)


_CC_NAMES = (
    "Z=0 S=0 O=0",
    "Z=0 S=0 O=1",
    "Z=0 S=1 O=0",
    "Z=0 S=1 O=1",
    "Z=1 S=0 O=0",
    "Z=1 S=0 O=1",
    "Z=1 S=1 O=0",
    "Z=1 S=1 O=1",
)


def cc_name(cc: int) -> str:
    """Return the printed form of a condition code."""
    if 0 <= cc <= 7:
        return _CC_NAMES[cc]
    return "???????????"


_STAT_NAMES = ("BUB", "AOK", "HLT", "ADR", "INS", "PIP")


def stat_name(stat: int) -> str:
    """Describe a status value."""
    if 0 <= stat <= Stat.PIP:
        return _STAT_NAMES[stat]
    return "Invalid Status"


def cond_holds(cc: int, cond: int) -> bool:
    """Decide whether a branch or move condition holds under a condition code."""
    zf, sf, of = _zf(cc), _sf(cc), _of(cc)
    if cond == Cond.YES:
        return True
    if cond == Cond.LE:
        return bool((sf ^ of) | zf)
    if cond == Cond.L:
        return bool(sf ^ of)
    if cond == Cond.E:
        return bool(zf)
    if cond == Cond.NE:
        return not zf
    if cond == Cond.GE:
        return not (sf ^ of)
    if cond == Cond.G:
        return not (sf ^ of) and not zf
    return False


def _char(line: str, pos: int) -> str:
    return line[pos] if 0 <= pos < len(line) else ""


def _skip_space(line: str, pos: int) -> int:
    while _char(line, pos) in _SPACE:
        pos += 1
    return pos


class Memory:
    """A byte-addressed memory whose size is a multiple of BPL."""

    def __init__(self, length: int) -> None:
        length = max(length, 0)
        self.contents = bytearray(((length + BPL - 1) // BPL) * BPL)

    def __len__(self) -> int:
        return len(self.contents)

    def clear(self) -> None:
        """Set every byte to zero."""
        self.contents[:] = bytes(len(self.contents))

    def copy(self) -> "Memory":
        result = Memory(len(self))
        result.contents[:] = self.contents
        return result

    def _word_or_zero(self, pos: int) -> int:
        try:
            return self.get_word(pos)
        except AddressError:
            return 0

    def diff(self, other: "Memory", out: Optional[TextIO] = None) -> bool:
        """Report words that differ; print each one to out when given."""
        length = min(len(self), len(other))
        differs = False
        for pos in range(0, length, 8):
            if differs and out is None:
                break
            old = self._word_or_zero(pos)
            new = other._word_or_zero(pos)
            if old != new:
                differs = True
                if out is not None:
                    out.write(f"0x{pos:04x}:\t0x{_hex64(old)}\t0x{_hex64(new)}\n")
        return differs

    def load(self, lines: Iterable[str], report_error: bool = True) -> int:
        """Load object code in .yo form; return the number of bytes read."""
        count = 0
        for lineno, line in enumerate(lines, start=1):
            pos = _skip_space(line, 0)
            if _char(line, pos) != "0" or _char(line, pos + 1) not in ("x", "X"):
                continue
            pos += 2
            address = 0
            while _char(line, pos) in _HEX:
                address = address * 16 + int(line[pos], 16)
                pos += 1
            pos = _skip_space(line, pos)
            if _char(line, pos) != ":":
                pos += 1
                self._fail(
                    "Error reading file. Expected colon",
                    f"Line {lineno}:{line.rstrip(chr(10))}\n"
                    f"Reading '{_char(line, pos)}' at position {pos}",
                    lineno,
                    report_error,
                )
            pos = _skip_space(line, pos + 1)
            while _char(line, pos) in _HEX and _char(line, pos + 1) in _HEX:
                if address >= len(self):
                    self._fail(
                        f"Error reading file. Invalid address. 0x{address:x}",
                        f"Line {lineno}:{line.rstrip(chr(10))}",
                        lineno,
                        report_error,
                    )
                self.contents[address] = int(line[pos:pos + 2], 16)
                address += 1
                count += 1
                pos += 2
        return count

    @staticmethod
    def _fail(message: str, detail: str, lineno: int, report_error: bool) -> None:
        if report_error:
            sys.stderr.write(f"{message}\n{detail}\n")
        raise LoadError(message, lineno)

    def get_byte(self, pos: int) -> int:
        if pos < 0 or pos >= len(self):
            raise AddressError(f"byte address 0x{pos & _MASK:x} out of range")
        return self.contents[pos]

    def get_word(self, pos: int) -> int:
        """Read a little-endian signed 64-bit word."""
        if pos < 0 or pos + 8 > len(self):
            raise AddressError(f"word address 0x{pos & _MASK:x} out of range")
        return int.from_bytes(self.contents[pos:pos + 8], "little", signed=True)

    def set_byte(self, pos: int, value: int) -> None:
        if pos < 0 or pos >= len(self):
            raise AddressError(f"byte address 0x{pos & _MASK:x} out of range")
        self.contents[pos] = value & 0xFF

    def set_word(self, pos: int, value: int) -> None:
        """Write a 64-bit word in little-endian order."""
        if pos < 0 or pos + 8 > len(self):
            raise AddressError(f"word address 0x{pos & _MASK:x} out of range")
        self.contents[pos:pos + 8] = (value & _MASK).to_bytes(8, "little")

    def dump(self, out: TextIO, pos: int, length: int) -> None:
        """Print memory in rows of BPL bytes covering the given range."""
        pad = pos % BPL
        pos -= pad
        length += pad
        length = ((length + BPL - 1) // BPL) * BPL
        if pos + length > len(self):
            length = len(self) - pos
        for row in range(pos, pos + max(length, 0), BPL):
            val = 0
            out.write(f"0x{row:04x}:")
            for offset in range(0, BPL, 8):
                try:
                    val = self.get_word(row + offset)
                except AddressError:
                    pass
                out.write(f" {_hex64(val)}")


class RegisterFile:
    """The program registers, stored as 64-bit words."""

    def __init__(self) -> None:
        self._mem = Memory(REG_FILE_SIZE)

    def get(self, reg_id: int) -> int:
        """Return a register's value; 0 for IDs that name no register."""
        if not 0 <= reg_id < Register.NONE:
            return 0
        return self._mem.get_word(reg_id * 8)

    def set(self, reg_id: int, value: int) -> None:
        """Set a register; writes to IDs that name no register are ignored."""
        if 0 <= reg_id < Register.NONE:
            self._mem.set_word(reg_id * 8, value)

    def copy(self) -> "RegisterFile":
        result = RegisterFile()
        result._mem = self._mem.copy()
        return result

    def diff(self, other: "RegisterFile", out: Optional[TextIO] = None) -> bool:
        """Report registers that differ; print each one to out when given."""
        length = min(len(self._mem), len(other._mem))
        differs = False
        for pos in range(0, length, 8):
            if differs and out is None:
                break
            old = self._mem._word_or_zero(pos)
            new = other._mem._word_or_zero(pos)
            if old != new:
                differs = True
                if out is not None:
                    out.write(
                        f"{_REG_NAMES[pos // 8]}:\t0x{_hex64(old)}\t0x{_hex64(new)}\n"
                    )
        return differs

    def dump(self, out: TextIO) -> None:
        """Print register names followed by their values in hex."""
        valid = [reg for reg in Register if reg_valid(reg)]
        out.write("".join(f"   {_REG_NAMES[reg]}  " for reg in valid) + "\n")
        out.write("".join(f" {self.get(reg) & _MASK:x}" for reg in valid) + "\n")