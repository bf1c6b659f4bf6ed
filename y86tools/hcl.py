"""Parse-tree nodes for HCL and code generation to C, Verilog or UCLID."""

from __future__ import annotations

import re
import sys
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Iterator, Optional, TextIO, Union

from .outgen import OutputGenerator

SYM_LIM = 100
MAXERRLEN = 80

_INT_PREFIX = re.compile(r"\s*([+-]?\d+)")


class NodeType(IntEnum):
    QUOTE = 0
    VAR = 1
    NUM = 2
    AND = 3
    OR = 4
    NOT = 5
    COMP = 6
    ELE = 7
    CASE = 8


class Target(Enum):
    C = "c"
    VERILOG = "verilog"
    UCLID = "uclid"


class HclError(ValueError):
    """An HCL description is inconsistent."""


@dataclass(eq=False)
class Node:
    """One node of an HCL expression tree; nodes may be chained through next."""

    type: NodeType
    isbool: bool
    sval: str
    arg1: Optional[Node] = None
    arg2: Optional[Node] = None
    ref: int = 0
    next: Optional[Node] = None

    def __iter__(self) -> Iterator[Node]:
        node: Optional[Node] = self
        while node is not None:
            yield node
            node = node.next


def concat(first: Optional[Node], second: Optional[Node]) -> Optional[Node]:
    """Append the list second to the end of the list first."""
    if first is None:
        return second
    tail = first
    while tail.next is not None:
        tail = tail.next
    tail.next = second
    return first


def _atoll(text: str) -> int:
    match = _INT_PREFIX.match(text)
    return int(match.group(1)) if match else 0


def _is_arg(name: str) -> bool:
    """Names written entirely in upper case are not treated as arguments."""
    return not all(c.isupper() for c in name)


class _Buffer:
    def __init__(self) -> None:
        self.parts: list[str] = []
        self.length = 0

    def write(self, text: str) -> None:
        self.parts.append(text)
        self.length += len(text)

    def __str__(self) -> str:
        return "".join(self.parts)


class HclGenerator:
    """Builds HCL expression trees and emits code for them."""

    def __init__(
        self,
        out: Optional[TextIO] = None,
        target: Target = Target.C,
        simname: str = "",
        annotate: bool = False,
    ) -> None:
        self.out = out if out is not None else sys.stdout
        self.target = target
        self.simname = simname
        self.annotate = annotate
        self.symbols: list[tuple[Node, Node]] = []
        self.arg_names: list[str] = []
        self.gen = OutputGenerator(self.out, 75, 4, 2)

    def start(self) -> None:
        """Emit the preamble; for C this defines the simulator name."""
        if self.target is Target.C:
            if self.simname:
                self.out.write(
                    f'char simname[] = "Y86-64 Processor: {self.simname}";\n'
                )
            else:
                self.out.write('char simname[] = "Y86-64 Processor";\n')

    def finish(self, check_ref: bool = True) -> list[str]:
        """Warn about declared arguments never referenced; return their names."""
        if not check_ref:
            return []
        unused = [name.sval for name, _ in self.symbols if not name.ref]
        for name in unused:
            sys.stderr.write(f"Warning, argument '{name}' not referenced\n")
        return unused

    def _add_symbol(self, name: Node, val: Node) -> None:
        if len(self.symbols) >= SYM_LIM:
            raise HclError("Symbol table limit exceeded")
        self.symbols.append((name, val))

    def _find_symbol(self, name: str) -> Node:
        for sym, val in self.symbols:
            if sym.sval == name:
                sym.ref += 1
                return val
        raise HclError(f"Symbol {name} not found")

    def make_quote(self, qstring: str) -> Node:
        """Make a node from a quoted string, dropping the quotes."""
        return Node(NodeType.QUOTE, False, qstring[1:-1])

    def make_var(self, name: str) -> Node:
        return Node(NodeType.VAR, False, name)

    def make_num(self, name: str) -> Node:
        return Node(NodeType.NUM, False, name)

    def set_bool(self, node: Optional[Node]) -> None:
        if node is None:
            raise HclError("Null node encountered")
        node.isbool = True

    def _check_arg(self, arg: Optional[Node], wantbool: bool) -> None:
        if arg is None:
            raise HclError("Null node encountered")
        if arg.type is NodeType.VAR:
            qval = self._find_symbol(arg.sval)
            if wantbool != qval.isbool:
                kind = "Boolean" if wantbool else "integer"
                raise HclError(f"Variable '{arg.sval}' not {kind}")
            return
        if arg.type is NodeType.NUM:
            if wantbool and arg.sval not in ("0", "1"):
                raise HclError(f"Value '{arg.sval}' not Boolean")
            return
        if wantbool and not arg.isbool:
            raise HclError(f"Non Boolean argument '{self.show_expr(arg)}'")
        if not wantbool and arg.isbool:
            raise HclError(f"Non integer argument '{self.show_expr(arg)}'")

    def make_not(self, arg: Node) -> Node:
        self._check_arg(arg, True)
        return Node(NodeType.NOT, True, "!", arg)

    def make_and(self, arg1: Node, arg2: Node) -> Node:
        self._check_arg(arg1, True)
        self._check_arg(arg2, True)
        return Node(NodeType.AND, True, "&", arg1, arg2)

    def make_or(self, arg1: Node, arg2: Node) -> Node:
        self._check_arg(arg1, True)
        self._check_arg(arg2, True)
        return Node(NodeType.OR, True, "|", arg1, arg2)

    def make_comp(self, op: Union[Node, str], arg1: Node, arg2: Node) -> Node:
        self._check_arg(arg1, False)
        self._check_arg(arg2, False)
        opname = op.sval if isinstance(op, Node) else op
        return Node(NodeType.COMP, True, opname, arg1, arg2)

    def make_ele(self, arg1: Node, arg2: Node) -> Node:
        self._check_arg(arg1, False)
        for ele in arg1:
            self._check_arg(ele, False)
        return Node(NodeType.ELE, True, "in", arg1, arg2)

    def make_case(self, arg1: Node, arg2: Node) -> Node:
        self._check_arg(arg1, True)
        self._check_arg(arg2, False)
        return Node(NodeType.CASE, False, ":", arg1, arg2)

    def insert_code(self, qstring: Optional[Node]) -> None:
        """Copy a quoted code fragment to the output (C target only)."""
        if qstring is None:
            raise HclError("Null node")
        if self.target is Target.C:
            self.out.write(qstring.sval + "\n")

    def add_arg(self, var: Optional[Node], qstring: Optional[Node], isbool: bool) -> None:
        """Declare a signal and the quoted text it stands for."""
        if var is None or qstring is None:
            raise HclError("Null node")
        self._add_symbol(var, qstring)
        if isbool:
            self.set_bool(var)
            self.set_bool(qstring)

    def show_expr(self, expr: Node) -> str:
        """Render an expression for error messages, cut short after about 80 chars."""
        buf = _Buffer()
        self._show(expr, buf)
        text = str(buf)
        if buf.length >= MAXERRLEN:
            text += "..."
        return text

    def _show(self, expr: Node, buf: _Buffer) -> None:
        t = expr.type
        if t is NodeType.QUOTE:
            if len(expr.sval) + 2 + buf.length < MAXERRLEN:
                buf.write(f"'{expr.sval}'")
        elif t in (NodeType.VAR, NodeType.NUM):
            if len(expr.sval) + buf.length < MAXERRLEN:
                buf.write(expr.sval)
        elif t in (NodeType.AND, NodeType.OR, NodeType.COMP):
            middle = {NodeType.AND: " & ", NodeType.OR: " | "}.get(t, f" {expr.sval} ")
            if buf.length < MAXERRLEN:
                buf.write("(")
                self._show(expr.arg1, buf)
                buf.write(middle)
            if buf.length < MAXERRLEN:
                self._show(expr.arg2, buf)
                buf.write(")")
        elif t is NodeType.NOT:
            if buf.length < MAXERRLEN:
                buf.write("!")
                self._show(expr.arg1, buf)
        elif t is NodeType.ELE:
            if buf.length < MAXERRLEN:
                buf.write("(")
                self._show(expr.arg1, buf)
                buf.write(" in {")
            if expr.arg2 is not None:
                for ele in expr.arg2:
                    if buf.length < MAXERRLEN:
                        self._show(ele, buf)
                        if ele.next is not None:
                            buf.write(", ")
            if buf.length < MAXERRLEN:
                buf.write("})")
        elif t is NodeType.CASE:
            if buf.length < MAXERRLEN:
                buf.write("[ ")
            for ele in expr:
                if buf.length >= MAXERRLEN:
                    break
                self._show(ele.arg1, buf)
                buf.write(" : ")
                self._show(ele.arg2, buf)
            if buf.length < MAXERRLEN:
                buf.write(" ]")
        elif buf.length < MAXERRLEN:
            buf.write("??")

    def _check_for_arg(self, name: str) -> None:
        if _is_arg(name) and name not in self.arg_names:
            self.arg_names.append(name)

    def _gen_expr(self, expr: Node) -> None:
        gen = self.gen
        hdl = self.target is not Target.C
        uclid = self.target is Target.UCLID
        t = expr.type
        if t is NodeType.QUOTE:
            raise HclError(f"Unexpected quoted string '{expr.sval}'")
        if t is NodeType.VAR:
            qstring = self._find_symbol(expr.sval)
            gen.print(expr.sval if hdl else f"({qstring.sval})")
            if uclid:
                self._check_for_arg(expr.sval)
        elif t is NodeType.NUM:
            if uclid:
                val = _atoll(expr.sval)
                if val < -1:
                    gen.print(f"pred^{-val}(CZERO)")
                elif val == -1:
                    gen.print("pred(CZERO)")
                elif val == 0:
                    gen.print("CZERO")
                elif val == 1:
                    gen.print("succ(CZERO)")
                else:
                    gen.print(f"succ^{val}(CZERO)")
            else:
                self.out.write(expr.sval)
        elif t in (NodeType.AND, NodeType.OR):
            gen.print("(")
            gen.upindent()
            self._gen_expr(expr.arg1)
            gen.print(" & " if t is NodeType.AND else " | ")
            self._gen_expr(expr.arg2)
            gen.print(")")
            gen.downindent()
        elif t is NodeType.NOT:
            gen.print("~" if hdl else "!")
            self._gen_expr(expr.arg1)
        elif t is NodeType.COMP:
            gen.print("(")
            gen.upindent()
            self._gen_expr(expr.arg1)
            op = "=" if uclid and expr.sval == "==" else expr.sval
            gen.print(f" {op} ")
            self._gen_expr(expr.arg2)
            gen.print(")")
            gen.downindent()
        elif t is NodeType.ELE:
            gen.print("(")
            gen.upindent()
            if expr.arg2 is not None:
                for ele in expr.arg2:
                    self._gen_expr(expr.arg1)
                    gen.print(" = " if uclid else " == ")
                    self._gen_expr(ele)
                    if ele.next is not None:
                        gen.print(" | " if hdl else " || ")
            gen.print(")")
            gen.downindent()
        elif t is NodeType.CASE:
            if uclid:
                self._gen_uclid_case(expr)
            else:
                self._gen_case(expr)
        else:
            raise HclError("Unknown node type")

    @staticmethod
    def _is_default(ele: Node) -> bool:
        return ele.arg1.type is NodeType.NUM and _atoll(ele.arg1.sval) == 1

    def _gen_case(self, expr: Node) -> None:
        gen = self.gen
        gen.print("(")
        gen.upindent()
        done = False
        for ele in expr:
            if self._is_default(ele):
                self._gen_expr(ele.arg2)
                done = True
                break
            self._gen_expr(ele.arg1)
            gen.print(" ? ")
            self._gen_expr(ele.arg2)
            gen.print(" : ")
        if not done:
            gen.print("0")
        gen.print(")")
        gen.downindent()

    def _gen_uclid_case(self, expr: Node) -> None:
        gen = self.gen
        gen.print("case")
        gen.terminate()
        last_arg2: Optional[Node] = None
        for ele in expr:
            gen.print("      ")
            if self._is_default(ele):
                gen.print("default")
                last_arg2 = None
            else:
                self._gen_expr(ele.arg1)
                last_arg2 = ele.arg2
            gen.print(" : ")
            self._gen_expr(ele.arg2)
            gen.print(";")
            gen.terminate()
        if last_arg2 is not None:
            gen.print("      default : ")
            self._gen_expr(last_arg2)
            gen.print(";")
            gen.terminate()
        gen.print("    esac")

    def gen_funct(self, var: Optional[Node], expr: Optional[Node], isbool: bool) -> None:
        """Emit the definition of signal var as expression expr."""
        if var is None or expr is None:
            raise HclError("Null node")
        self._check_arg(expr, isbool)
        gen = self.gen
        if self.target is Target.VERILOG:
            gen.print(f"assign {var.sval} = ")
            gen.terminate()
            gen.print("    ")
            self._gen_expr(expr)
            gen.print(";")
            gen.terminate()
            gen.terminate()
        elif self.target is Target.UCLID:
            if self.annotate:
                gen.print(f"(* $define {var.sval} *)")
                gen.terminate()
            gen.print(f"{var.sval} := ")
            gen.terminate()
            gen.print("    ")
            if isbool and expr.type is NodeType.NUM:
                gen.print(str(_atoll(var.sval)))
            else:
                self._gen_expr(expr)
            gen.print(";")
            gen.terminate()
            if self.annotate:
                gen.print("(* $args")
                for i, name in enumerate(self.arg_names):
                    gen.print(f"{' ' if i == 0 else ':'}{name}")
                gen.print(" *)")
                gen.terminate()
                self.arg_names = []
            gen.terminate()
        else:
            gen.print(f"long long gen_{var.sval}()")
            gen.terminate()
            gen.print("{")
            gen.terminate()
            gen.print("    return ")
            self._gen_expr(expr)
            gen.print(";")
            gen.terminate()
            gen.print("}")
            gen.terminate()
            gen.terminate()