"""Two-pass assembler turning Y86-64 assembly into .yo object listings."""

from __future__ import annotations

import re
import sys
from typing import Optional, Sequence

from .isa import ArgType, Instr, Register, bad_instr, find_instr, find_register, hpack
from .lexer import ERR_TOKEN, LexError, Token, TokenKind, tokenize_line

TOK_PER_LINE = 12


class AssemblyError(Exception):
    """Assembly failed; holds the error reports and any output produced."""

    def __init__(self, errors: list[str], output: Optional[str] = None) -> None:
        super().__init__("\n".join(errors))
        self.errors = list(errors)
        self.output = output


class Assembler:
    """Assembles Y86-64 source text in two passes."""

    def __init__(self, vcode: bool = False, block_factor: int = 0) -> None:
        self.vcode = vcode
        self.block_factor = block_factor
        self.symbols: list[tuple[str, int]] = []
        self.errors: list[str] = []
        self._reset_pass(1)

    def _reset_pass(self, pass_no: int) -> None:
        self.pass_no = pass_no
        self.lineno = 1
        self.bytepos = 0
        self.error_mode = False
        self._input_line = ""
        self._out: list[str] = []
        self._tokens: list[Token] = []
        self._tpos = 0
        self._code = bytearray(10)

    def _fail(self, message: str) -> None:
        if not self.error_mode:
            self.errors.append(
                f"Error on line {self.lineno}: {message}\n"
                f"Line {self.lineno}, Byte 0x{self.bytepos & 0xFFFFFFFF:04x}: "
                f"{self._input_line}"
            )
        self.error_mode = True

    def _tok(self, index: int) -> Token:
        return self._tokens[index] if index < len(self._tokens) else ERR_TOKEN

    def _find_symbol(self, name: str) -> int:
        for sym, pos in self.symbols:
            if sym == name:
                return pos
        self._fail("Can't find label")
        return -1

    def assemble(self, text: str) -> str:
        """Assemble source text and return the object listing."""
        self.symbols = []
        self.errors = []
        lines = text.split("\n")
        remainder = lines.pop()
        for pass_no in (1, 2):
            self._reset_pass(pass_no)
            for line in lines:
                self._process_line(line)
            self._finish_input(remainder)
            if self.errors:
                output = "".join(self._out) if pass_no == 2 else None
                raise AssemblyError(self.errors, output)
        return "".join(self._out)

    def _finish_input(self, remainder: str) -> None:
        try:
            pending = tokenize_line(remainder)
        except LexError:
            pending = [ERR_TOKEN]
        if pending:
            self.error_mode = False
            self._fail("Missing end-of-line on final line\n")

    def _process_line(self, line: str) -> None:
        self._input_line = line.rstrip("\r\n")
        self.error_mode = False
        try:
            tokens = tokenize_line(line)
        except LexError:
            self._fail("Invalid line")
        else:
            if len(tokens) > TOK_PER_LINE:
                self._fail("Line too long")
            else:
                self._finish_line(tokens)
        self.lineno += 1

    def _finish_line(self, tokens: list[Token]) -> None:
        self._tokens = tokens
        self._tpos = 0
        save = self.bytepos
        second = self.pass_no > 1
        if not tokens:
            if second:
                self._print_code(save, False, 0)
            return
        first = self._tok(0)
        if first.kind is TokenKind.IDENT:
            colon = self._tok(1)
            if colon.kind is not TokenKind.PUNCT or colon.char != ":":
                self._fail("Missing Colon")
                return
            if not second:
                self.symbols.append((first.text or "", self.bytepos))
            self._tpos = 2
            if len(tokens) == 2:
                if second:
                    self._print_code(save, True, 0)
                return
        head = self._tok(self._tpos)
        if head.kind is not TokenKind.INSTR:
            self._fail("Bad Instruction")
            return
        if head.text in (".pos", ".align"):
            self._tpos += 1
            arg = self._tok(self._tpos)
            if head.text == ".pos":
                if arg.kind is not TokenKind.NUM:
                    self._fail("Invalid Address")
                    return
                self.bytepos = arg.value
            else:
                if arg.kind is not TokenKind.NUM or arg.value <= 0:
                    self._fail("Invalid Alignment")
                    return
                a = arg.value
                self.bytepos = ((self.bytepos + a - 1) // a) * a
            if second:
                self._print_code(self.bytepos, True, 0)
            return
        instr = find_instr(head.text or "")
        self._tpos += 1
        if instr is None:
            self._fail("Invalid Instruction")
            instr = bad_instr()
        self.bytepos += instr.size
        if not second:
            return
        self._code = bytearray(10)
        self._code[0] = instr.code
        self._code[1] = hpack(Register.NONE, Register.NONE)
        self._get_arg(instr.arg1, instr.arg1pos, instr.arg1hi)
        if instr.arg2 is not ArgType.NO_ARG:
            comma = self._tok(self._tpos)
            if comma.kind is not TokenKind.PUNCT or comma.char != ",":
                self._fail("Expecting Comma")
                return
            self._tpos += 1
            self._get_arg(instr.arg2, instr.arg2pos, instr.arg2hi)
        self._print_code(save, True, instr.size)

    def _get_arg(self, kind: ArgType, codepos: int, hi: int) -> None:
        if kind is ArgType.R_ARG:
            self._get_reg(codepos, hi)
        elif kind is ArgType.M_ARG:
            self._get_mem(codepos)
        elif kind is ArgType.I_ARG:
            self._get_num(codepos, hi)

    def _get_reg(self, codepos: int, hi: int) -> None:
        tok = self._tok(self._tpos)
        if tok.kind is not TokenKind.REG:
            self._fail("Expecting Register ID")
            return
        rval = find_register(tok.text or "")
        c = self._code[codepos]
        c = ((c & 0x0F) | (rval << 4)) if hi else ((c & 0xF0) | rval)
        self._code[codepos] = c & 0xFF
        self._tpos += 1

    def _put_value(self, codepos: int, nbytes: int, val: int) -> None:
        for i in range(nbytes):
            self._code[codepos + i] = (val >> (i * 8)) & 0xFF

    def _get_num(self, codepos: int, nbytes: int) -> None:
        tok = self._tok(self._tpos)
        if tok.kind is TokenKind.NUM:
            val = tok.value
        elif tok.kind is TokenKind.IDENT:
            val = self._find_symbol(tok.text or "")
        else:
            self._fail("Number Expected")
            return
        self._put_value(codepos, nbytes, val)
        self._tpos += 1

    def _get_mem(self, codepos: int) -> None:
        rval = int(Register.NONE)
        val = 0
        tok = self._tok(self._tpos)
        if tok.kind is TokenKind.NUM:
            val = tok.value
            self._tpos += 1
        elif tok.kind is TokenKind.IDENT:
            val = self._find_symbol(tok.text or "")
            self._tpos += 1
        tok = self._tok(self._tpos)
        if tok.kind is TokenKind.PUNCT and tok.char == "(":
            self._tpos += 1
            reg = self._tok(self._tpos)
            if reg.kind is not TokenKind.REG:
                self._fail("Expecting Register Id")
                return
            rval = find_register(reg.text or "")
            self._tpos += 1
            close = self._tok(self._tpos)
            self._tpos += 1
            if close.kind is not TokenKind.PUNCT or close.char != ")":
                self._fail("Expecting ')'")
                return
        self._code[codepos] = (self._code[codepos] & 0xF0) | (rval & 0xF)
        self._put_value(codepos + 1, 8, val)

    def _print_code(self, pos: int, has_tokens: bool, bcount: int) -> None:
        hexcode = "".join(f"{b:02x}" for b in self._code[:bcount])
        if pos > 0xFFF:
            if has_tokens:
                if pos > 0xFFFF:
                    self._fail("Code address limit exceeded")
                    raise AssemblyError(self.errors)
                prefix = f"0x{pos:04x}:{hexcode.ljust(20)}  | "
            else:
                prefix = " " * 29 + "| "
        elif has_tokens:
            prefix = f"0x{pos & 0xFFF:03x}: {hexcode.ljust(20)} | "
        else:
            prefix = " " * 28 + "| "
        if not self.vcode:
            self._out.append(f"{prefix}{self._input_line}\n")
            return
        self._out.append(f"//{prefix}{self._input_line}\n")
        if has_tokens:
            for i, byte in enumerate(self._code[:bcount]):
                addr = pos + i
                if self.block_factor:
                    self._out.append(
                        f"    bank{addr % self.block_factor}"
                        f"[{addr // self.block_factor}] = 8'h{byte:02x};\n"
                    )
                else:
                    self._out.append(f"    mem[{addr}] = 8'h{byte:02x};\n")


def assemble(text: str, vcode: bool = False, block_factor: int = 0) -> str:
    """Assemble source text and return the listing."""
    return Assembler(vcode, block_factor).assemble(text)


def _usage() -> int:
    sys.stdout.write(
        "Usage: yas [-V[n]] file.ys\n"
        "   -V[n]  Generate memory initialization in Verilog format (n-way blocking)\n"
    )
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        return _usage()
    vcode = False
    block_factor = 0
    if args[0].startswith("-"):
        flag = args.pop(0)
        if flag[1:2] != "V":
            return _usage()
        vcode = True
        if flag[2:]:
            match = re.match(r"\s*([+-]?\d+)", flag[2:])
            block_factor = int(match.group(1)) if match else 0
            if block_factor != 8:
                sys.stderr.write(f"Unknown blocking factor {block_factor}\n")
                return 1
    if not args or not args[0].endswith(".ys"):
        return _usage()
    root = args[0][:-3]
    if len(root) > 500:
        sys.stderr.write("File name too long\n")
        return 1
    infname = root + ".ys"
    try:
        with open(infname) as infile:
            text = infile.read()
    except OSError:
        sys.stderr.write(f"Can't open input file '{infname}'\n")
        return 1
    outfname = root + ".yo"
    try:
        outfile = sys.stdout if vcode else open(outfname, "w")
    except OSError:
        sys.stderr.write(f"Can't open output file '{outfname}'\n")
        return 1
    try:
        try:
            outfile.write(assemble(text, vcode, block_factor))
        except AssemblyError as err:
            sys.stderr.write("".join(e + "\n" for e in err.errors))
            if err.output:
                outfile.write(err.output)
            return 1
    finally:
        if outfile is not sys.stdout:
            outfile.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())