"""Instruction-level model of a Y86-64 processor."""

from __future__ import annotations

from typing import Optional, TextIO

from .isa import (
    DEFAULT_CC,
    MEM_SIZE,
    AddressError,
    AluOp,
    IType,
    Memory,
    Register,
    RegisterFile,
    Stat,
    cc_name,
    compute_alu,
    compute_cc,
    cond_holds,
    hi4,
    lo4,
    reg_valid,
)

_MASK = (1 << 64) - 1

_NEEDS_REGIDS = frozenset(
    {
        IType.RRMOVQ,
        IType.ALU,
        IType.PUSHQ,
        IType.POPQ,
        IType.IRMOVQ,
        IType.RMMOVQ,
        IType.MRMOVQ,
        IType.IADDQ,
    }
)

_NEEDS_IMM = frozenset(
    {
        IType.IRMOVQ,
        IType.RMMOVQ,
        IType.MRMOVQ,
        IType.JMP,
        IType.CALL,
        IType.IADDQ,
    }
)


def _wrap(value: int) -> int:
    """Wrap an integer to a signed 64-bit word."""
    value &= _MASK
    return value - (1 << 64) if value >> 63 else value


class State:
    """Program counter, registers, memory and condition code of one machine."""

    def __init__(self, memlen: int = MEM_SIZE) -> None:
        self.pc = 0
        self.r = RegisterFile()
        self.m = Memory(memlen)
        self.cc = DEFAULT_CC

    def copy(self) -> "State":
        result = State(0)
        result.pc = self.pc
        result.r = self.r.copy()
        result.m = self.m.copy()
        result.cc = self.cc
        return result

    def diff(self, other: "State", out: Optional[TextIO] = None) -> bool:
        """Report whether two states differ, printing the differences to out."""
        differs = False
        if self.pc != other.pc:
            differs = True
            if out is not None:
                out.write(
                    f"pc:\t0x{self.pc & _MASK:016x}\t0x{other.pc & _MASK:016x}\n"
                )
        if self.cc != other.cc:
            differs = True
            if out is not None:
                out.write(f"cc:\t{cc_name(self.cc)}\t{cc_name(other.cc)}\n")
        if self.r.diff(other.r, out):
            differs = True
        if self.m.diff(other.m, out):
            differs = True
        return differs

    def step(self, error_file: Optional[TextIO] = None) -> Stat:
        """Execute a single instruction and return the resulting status."""
        pc = self.pc

        def report(message: str) -> None:
            if error_file is not None:
                error_file.write(f"PC = 0x{pc & _MASK:x}, {message}")

        try:
            byte0 = self.m.get_byte(pc)
        except AddressError:
            report("Invalid instruction address\n")
            return Stat.ADR
        ftpc = pc + 1
        icode, ifun = hi4(byte0), lo4(byte0)

        ok1 = True
        hi1 = lo1 = int(Register.NONE)
        if icode in _NEEDS_REGIDS:
            try:
                byte1 = self.m.get_byte(ftpc)
            except AddressError:
                ok1 = False
                byte1 = 0
            ftpc += 1
            hi1, lo1 = hi4(byte1), lo4(byte1)

        okc = True
        cval = 0
        if icode in _NEEDS_IMM:
            try:
                cval = self.m.get_word(ftpc)
            except AddressError:
                okc = False
            ftpc += 8
        ftpc = _wrap(ftpc)

        if icode in _NEEDS_REGIDS and not ok1:
            report("Invalid instruction address\n")
            return Stat.ADR

        if icode == IType.NOP:
            self.pc = ftpc
        elif icode == IType.HALT:
            return Stat.HLT
        elif icode == IType.RRMOVQ:
            for reg in (hi1, lo1):
                if not reg_valid(reg):
                    report(f"Invalid register ID 0x{reg:x}\n")
                    return Stat.INS
            val = self.r.get(hi1)
            if cond_holds(self.cc, ifun):
                self.r.set(lo1, val)
            self.pc = ftpc
        elif icode == IType.IRMOVQ:
            if not okc:
                report("Invalid instruction address")
                return Stat.INS
            if not reg_valid(lo1):
                report(f"Invalid register ID 0x{lo1:x}\n")
                return Stat.INS
            self.r.set(lo1, cval)
            self.pc = ftpc
        elif icode == IType.RMMOVQ:
            if not okc:
                report("Invalid instruction address\n")
                return Stat.INS
            if not reg_valid(hi1):
                report(f"Invalid register ID 0x{hi1:x}\n")
                return Stat.INS
            if reg_valid(lo1):
                cval = _wrap(cval + self.r.get(lo1))
            val = self.r.get(hi1)
            try:
                self.m.set_word(cval, val)
            except AddressError:
                report(f"Invalid data address 0x{cval & _MASK:x}\n")
                return Stat.ADR
            self.pc = ftpc
        elif icode == IType.MRMOVQ:
            if not okc:
                report("Invalid instruction addres\n")
                return Stat.INS
            if not reg_valid(hi1):
                report(f"Invalid register ID 0x{hi1:x}\n")
                return Stat.INS
            if reg_valid(lo1):
                cval = _wrap(cval + self.r.get(lo1))
            try:
                val = self.m.get_word(cval)
            except AddressError:
                return Stat.ADR
            self.r.set(hi1, val)
            self.pc = ftpc
        elif icode == IType.ALU:
            arg_a = self.r.get(hi1)
            arg_b = self.r.get(lo1)
            self.r.set(lo1, compute_alu(ifun, arg_a, arg_b))
            self.cc = compute_cc(ifun, arg_a, arg_b)
            self.pc = ftpc
        elif icode == IType.JMP:
            if not okc:
                report("Invalid instruction address\n")
                return Stat.ADR
            self.pc = cval if cond_holds(self.cc, ifun) else ftpc
        elif icode == IType.CALL:
            if not okc:
                report("Invalid instruction address\n")
                return Stat.ADR
            val = _wrap(self.r.get(Register.RSP) - 8)
            self.r.set(Register.RSP, val)
            try:
                self.m.set_word(val, ftpc)
            except AddressError:
                report(f"Invalid stack address 0x{val & _MASK:x}\n")
                return Stat.ADR
            self.pc = cval
        elif icode == IType.RET:
            dval = self.r.get(Register.RSP)
            try:
                val = self.m.get_word(dval)
            except AddressError:
                report(f"Invalid stack address 0x{dval & _MASK:x}\n")
                return Stat.ADR
            self.r.set(Register.RSP, _wrap(dval + 8))
            self.pc = val
        elif icode == IType.PUSHQ:
            if not reg_valid(hi1):
                report(f"Invalid register ID 0x{hi1:x}\n")
                return Stat.INS
            val = self.r.get(hi1)
            dval = _wrap(self.r.get(Register.RSP) - 8)
            self.r.set(Register.RSP, dval)
            try:
                self.m.set_word(dval, val)
            except AddressError:
                report(f"Invalid stack address 0x{dval & _MASK:x}\n")
                return Stat.ADR
            self.pc = ftpc
        elif icode == IType.POPQ:
            if not reg_valid(hi1):
                report(f"Invalid register ID 0x{hi1:x}\n")
                return Stat.INS
            dval = self.r.get(Register.RSP)
            self.r.set(Register.RSP, _wrap(dval + 8))
            try:
                val = self.m.get_word(dval)
            except AddressError:
                report(f"Invalid stack address 0x{dval & _MASK:x}\n")
                return Stat.ADR
            self.r.set(hi1, val)
            self.pc = ftpc
        elif icode == IType.IADDQ:
            if not okc:
                report("Invalid instruction address")
                return Stat.INS
            if not reg_valid(lo1):
                report(f"Invalid register ID 0x{lo1:x}\n")
                return Stat.INS
            arg_b = self.r.get(lo1)
            val = _wrap(arg_b + cval)
            if cond_holds(self.cc, ifun):
                self.r.set(lo1, val)
            self.cc = compute_cc(AluOp.ADD, cval, arg_b)
            self.pc = ftpc
        else:
            report(f"Invalid instruction {byte0:02x}\n")
            return Stat.INS
        return Stat.AOK