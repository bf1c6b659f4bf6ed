"""Command-line instruction set simulator for Y86-64 object code."""

from __future__ import annotations

import re
import sys
from typing import Optional, Sequence, TextIO

from .isa import MEM_SIZE, LoadError, Stat, cc_name, stat_name
from .machine import State

DEFAULT_MAX_STEPS = 10000

_MASK = (1 << 64) - 1
_INT_PREFIX = re.compile(r"\s*([+-]?\d+)")


def run(
    state: State, max_steps: int = DEFAULT_MAX_STEPS, out: Optional[TextIO] = None
) -> tuple[int, Stat]:
    """Step the machine until it stops or max_steps is reached.

    Returns the number of steps taken and the final status.
    """
    stat = Stat.AOK
    steps = 0
    while steps < max_steps and stat == Stat.AOK:
        stat = state.step(out)
        steps += 1
    return steps, stat


def _atoi(text: str) -> int:
    match = _INT_PREFIX.match(text)
    return int(match.group(1)) if match else 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    out = sys.stdout
    if not 1 <= len(args) <= 2:
        out.write("Usage: yis code_file [max_steps]\n")
        return 0

    state = State(MEM_SIZE)
    saved_regs = state.r.copy()
    try:
        with open(args[0]) as code_file:
            try:
                loaded = state.m.load(code_file, True)
            except LoadError:
                loaded = 0
    except OSError:
        sys.stderr.write(f"Can't open code file '{args[0]}'\n")
        return 1
    if not loaded:
        out.write("Exiting\n")
        return 1

    saved_mem = state.m.copy()
    max_steps = _atoi(args[1]) if len(args) > 1 else DEFAULT_MAX_STEPS

    steps, stat = run(state, max_steps, out)
    out.write(
        f"Stopped in {steps} steps at PC = 0x{state.pc & _MASK:x}.  "
        f"Status '{stat_name(stat)}', CC {cc_name(state.cc)}\n"
    )
    out.write("Changes to registers:\n")
    saved_regs.diff(state.r, out)
    out.write("\nChanges to memory:\n")
    saved_mem.diff(state.m, out)
    return 0


if __name__ == "__main__":
    sys.exit(main())