# y86tools

Tools for the Y86-64 teaching architecture:

- `yas`, an assembler that turns `.ys` assembly source into `.yo` object
  listings,
- `yis`, an instruction-set simulator that runs `.yo` files and reports what
  changed,
- a library for building HCL (hardware control language) expression trees and
  writing them out as C, Verilog or UCLID text.

## Installing

```
pip install .
```

## Assembling

```
yas sum.ys
```

writes `sum.yo` next to the source. With `-V` the listing is written to
standard output as Verilog memory initialisation; `-V8` uses eight-way
banked memory (no other blocking factor is accepted). Errors are reported on
standard error with their line numbers, and the command exits with status 1.

From Python:

```python
from y86tools.assembler import AssemblyError, assemble

try:
    listing = assemble("    irmovq $1, %rax\n    halt\n")
except AssemblyError as err:
    print(err.errors)
else:
    print(listing)
```

`assemble(text, vcode=False, block_factor=0)` runs both passes of an
`Assembler` and returns the listing. On failure `AssemblyError.errors` holds
the error reports and `AssemblyError.output` whatever listing the second pass
produced. The line tokenizer is available on its own as
`y86tools.lexer.tokenize_line`.

## Simulating

```
yis sum.yo
yis sum.yo 500
```

The optional second argument limits the number of steps (default 10000).
The simulator prints the final PC, status and condition codes, then the
registers and memory words that changed.

From Python:

```python
import io
from y86tools.machine import State
from y86tools.yis import run

state = State(1 << 13)
with open("sum.yo") as f:
    state.m.load(f, True)
steps, stat = run(state, 10000, io.StringIO())
```

`State` holds the program counter (`pc`), the `RegisterFile` (`r`), the
`Memory` (`m`) and the condition code (`cc`); `State.step` executes one
instruction and returns a `Stat`. `Memory.load` raises `LoadError` for a
malformed `.yo` file, and memory accessors raise `AddressError` for
out-of-range addresses. Encodings, the ALU and condition-code helpers live in
`y86tools.isa`.

`y86tools.examples` has Python reference versions of the Part A routines:
`sum_list`, `rsum_list` (over `ListNode` chains) and `copy_block`.

## HCL generation

`y86tools.hcl.HclGenerator` builds expression trees for HCL declarations
(`make_var`, `make_num`, `make_and`, `make_or`, `make_not`, `make_comp`,
`make_ele`, `make_case`), declares signals with `add_arg`, and writes the
generated definitions through `gen_funct`. The output language is chosen
with `Target.C`, `Target.VERILOG` or `Target.UCLID`. Inconsistent
descriptions raise `HclError`. Long lines are wrapped by
`y86tools.outgen.OutputGenerator`.

## What is not included

There is no reader for HCL source files and no command for HCL generation:
the expression trees have to be built by calling `HclGenerator` methods
from Python.

## Running the tests

```
pip install .[test]
pytest
```