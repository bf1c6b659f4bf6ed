import pytest

from y86tools.assembler import AssemblyError, assemble, main
from y86tools.isa import Register, Stat
from y86tools.machine import State

PROGRAM = """\
    irmovq $10, %rax
    irmovq $32, %rbx
    addq %rbx, %rax
    jmp end
    irmovq $1, %rcx
end:
    halt
"""


def _run(listing):
    state = State()
    state.m.load(listing.splitlines(True), False)
    stat = Stat.AOK
    for _ in range(100):
        stat = state.step(None)
        if stat != Stat.AOK:
            break
    return state, stat


def test_halt_listing_format():
    out = assemble("halt\n")
    assert out == "0x000: 00" + " " * 18 + " | halt\n"


def test_round_trip_through_machine():
    state, stat = _run(assemble(PROGRAM))
    assert stat == Stat.HLT
    assert state.r.get(Register.RAX) == 10 + 32
    assert state.r.get(Register.RCX) == 0


def test_every_source_line_listed():
    out = assemble(PROGRAM)
    assert len(out.splitlines()) == len(PROGRAM.splitlines())


def test_pos_and_quad():
    out = assemble(".pos 0x100\n.quad 0x1122\n")
    lines = out.splitlines()
    assert lines[0].startswith("0x100:")
    assert lines[1].startswith("0x100: 2211000000000000")


def test_align():
    out = assemble(".byte 1\n.align 8\n.byte 2\n")
    assert out.splitlines()[2].startswith("0x008:")


def test_memory_operand():
    src = "irmovq $64, %rsp\nirmovq $5, %rdx\nrmmovq %rdx, 8(%rsp)\nmrmovq 8(%rsp), %rsi\nhalt\n"
    state, stat = _run(assemble(src))
    assert stat == Stat.HLT
    assert state.r.get(Register.RSI) == 5
    assert state.m.get_word(64 + 8) == 5


def test_undefined_label():
    with pytest.raises(AssemblyError) as info:
        assemble("jmp nowhere\n")
    assert "Can't find label" in str(info.value)
    assert info.value.output is not None


def test_missing_colon():
    with pytest.raises(AssemblyError, match="Missing Colon"):
        assemble("label halt\n")


def test_missing_final_newline():
    with pytest.raises(AssemblyError, match="Missing end-of-line"):
        assemble("halt")


def test_missing_comma():
    with pytest.raises(AssemblyError, match="Expecting Comma"):
        assemble("addq %rax %rbx\n")


def test_vcode_output():
    out = assemble("halt\n", vcode=True)
    assert "    mem[0] = 8'h00;\n" in out
    banked = assemble("nop\n", vcode=True, block_factor=8)
    assert "bank0[0] = 8'h10;" in banked


def test_main_writes_object_file(tmp_path):
    src = tmp_path / "prog.ys"
    src.write_text(PROGRAM)
    assert main([str(src)]) == 0
    assert (tmp_path / "prog.yo").read_text() == assemble(PROGRAM)


def test_main_bad_blocking_factor(tmp_path):
    src = tmp_path / "prog.ys"
    src.write_text("halt\n")
    assert main(["-V4", str(src)]) == 1