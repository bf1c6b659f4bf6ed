import io

import pytest

from y86tools.isa import (
    BPL,
    DEFAULT_CC,
    AddressError,
    AluOp,
    Cond,
    IType,
    LoadError,
    Memory,
    Register,
    RegisterFile,
    Stat,
    bad_instr,
    cc_name,
    compute_alu,
    compute_cc,
    cond_holds,
    find_instr,
    find_register,
    hi4,
    hpack,
    iname,
    lo4,
    op_name,
    pack_cc,
    reg_name,
    reg_valid,
    stat_name,
)

INT64_MAX = 2**63 - 1
INT64_MIN = -(2**63)


def test_find_register_known_and_unknown():
    assert find_register("%rsp") == Register.RSP
    assert find_register("%r14") == Register.R14
    assert find_register("%eax") == Register.ERR
    assert find_register("----") == Register.ERR


@pytest.mark.parametrize("reg", [r for r in Register if r < Register.NONE])
def test_register_name_round_trip(reg):
    assert find_register(reg_name(reg)) == reg
    assert reg_valid(reg)


def test_reg_name_invalid():
    assert reg_name(Register.NONE) == "----"
    assert reg_name(-1) == "----"
    assert not reg_valid(Register.NONE)
    assert not reg_valid(Register.ERR)


@pytest.mark.parametrize("hi,lo", [(0, 0), (3, 15), (15, 7), (12, 1)])
def test_hpack_round_trip(hi, lo):
    byte = hpack(hi, lo)
    assert hi4(byte) == hi
    assert lo4(byte) == lo


def test_find_instr():
    irmovq = find_instr("irmovq")
    assert irmovq.code == hpack(IType.IRMOVQ, 0)
    assert irmovq.size == 10
    assert find_instr("jge").code == hpack(IType.JMP, Cond.GE)
    assert find_instr("bogus") is None


def test_iname():
    assert iname(hpack(IType.NOP, 0)) == "nop"
    assert iname(hpack(IType.HALT, 0)) == "halt"
    assert iname(hpack(IType.ALU, AluOp.XOR)) == "xorq"
    assert iname(0xFF) == "<bad>"


def test_bad_instr():
    assert bad_instr().name == "XXX"
    assert bad_instr().size == 0


def test_op_name():
    assert op_name(AluOp.ADD) == "+"
    assert op_name(AluOp.XOR) == "^"
    assert op_name(AluOp.NONE) == "?"


@pytest.mark.parametrize("a,b", [(3, 10), (-5, 7), (INT64_MAX, -1)])
def test_compute_alu_sub_is_b_minus_a(a, b):
    assert compute_alu(AluOp.SUB, a, b) + a == b
    assert compute_alu(AluOp.ADD, a, b) == compute_alu(AluOp.ADD, b, a)


def test_compute_alu_wraps():
    assert compute_alu(AluOp.ADD, INT64_MAX, 1) == INT64_MIN
    assert compute_alu(AluOp.NONE, 5, 6) == 0
    assert compute_alu(AluOp.XOR, 6, 6) == 0


def test_compute_cc():
    assert compute_cc(AluOp.SUB, 5, 5) == pack_cc(1, 0, 0)
    assert compute_cc(AluOp.ADD, INT64_MAX, 1) == pack_cc(0, 1, 1)
    assert compute_cc(AluOp.SUB, 1, 0) == pack_cc(0, 1, 0)
    assert compute_cc(AluOp.AND, -1, -1) == pack_cc(0, 1, 0)
    assert DEFAULT_CC == pack_cc(1, 0, 0)


def test_cc_and_stat_names():
    assert cc_name(DEFAULT_CC) == "Z=1 S=0 O=0"
    assert cc_name(8) == "???????????"
    assert stat_name(Stat.AOK) == "AOK"
    assert stat_name(Stat.HLT) == "HLT"
    assert stat_name(99) == "Invalid Status"


def test_cond_holds():
    zero = pack_cc(1, 0, 0)
    negative = pack_cc(0, 1, 0)
    positive = pack_cc(0, 0, 0)
    assert cond_holds(positive, Cond.YES)
    assert cond_holds(zero, Cond.E) and not cond_holds(zero, Cond.NE)
    assert cond_holds(zero, Cond.LE) and cond_holds(zero, Cond.GE)
    assert not cond_holds(zero, Cond.G) and not cond_holds(zero, Cond.L)
    assert cond_holds(negative, Cond.L) and not cond_holds(negative, Cond.GE)
    assert cond_holds(positive, Cond.G) and not cond_holds(positive, Cond.LE)
    assert cond_holds(pack_cc(0, 1, 1), Cond.G)
    assert not cond_holds(positive, 9)


def test_memory_size_rounds_to_block():
    assert len(Memory(1)) == BPL
    assert len(Memory(BPL)) == BPL
    assert len(Memory(BPL + 1)) == 2 * BPL


@pytest.mark.parametrize("value", [0, 1, -1, INT64_MAX, INT64_MIN, 0x0102030405060708])
def test_word_round_trip(value):
    mem = Memory(64)
    mem.set_word(8, value)
    assert mem.get_word(8) == value


def test_word_is_little_endian():
    mem = Memory(32)
    mem.set_word(0, 0x0102030405060708)
    assert mem.get_byte(0) == 0x08
    assert mem.get_byte(7) == 0x01


def test_memory_bounds():
    mem = Memory(32)
    with pytest.raises(AddressError):
        mem.get_word(25)
    with pytest.raises(AddressError):
        mem.set_word(-1, 0)
    with pytest.raises(AddressError):
        mem.get_byte(32)
    with pytest.raises(AddressError):
        mem.set_byte(-1, 0)


def test_memory_clear_and_copy():
    mem = Memory(32)
    mem.set_byte(3, 0x1FF)
    assert mem.get_byte(3) == 0xFF
    dup = mem.copy()
    mem.clear()
    assert mem.get_byte(3) == 0
    assert dup.get_byte(3) == 0xFF


def test_memory_diff():
    old = Memory(32)
    new = old.copy()
    assert not old.diff(new)
    new.set_word(8, 0xFF)
    out = io.StringIO()
    assert old.diff(new, out)
    assert out.getvalue() == "0x0008:\t0x0000000000000000\t0x00000000000000ff\n"


def test_memory_diff_reports_all_when_printing():
    old = Memory(64)
    new = old.copy()
    new.set_word(0, 1)
    new.set_word(40, 2)
    out = io.StringIO()
    assert old.diff(new, out)
    assert len(out.getvalue().splitlines()) == 2


def test_load():
    lines = [
        "                            | # comment\n",
        "0x000: 30f40001000000000000 |   irmovq stack, %rsp\n",
        "0x00a: 00                   |   halt\n",
        "garbage line\n",
    ]
    mem = Memory(64)
    assert mem.load(lines) == 11
    assert mem.get_byte(0) == 0x30
    assert mem.get_byte(1) == 0xF4
    assert mem.get_byte(3) == 0x01
    assert mem.get_byte(10) == 0x00


def test_load_odd_digits_stop():
    mem = Memory(32)
    assert mem.load(["0x004: 301\n"]) == 1
    assert mem.get_byte(4) == 0x30


def test_load_missing_colon():
    mem = Memory(32)
    with pytest.raises(LoadError) as info:
        mem.load(["0x000 3000\n"], report_error=False)
    assert info.value.lineno == 1


def test_load_invalid_address():
    mem = Memory(32)
    with pytest.raises(LoadError):
        mem.load(["0x020: 00\n"], report_error=False)


def test_dump_rows():
    mem = Memory(64)
    mem.set_word(32, -1)
    out = io.StringIO()
    mem.dump(out, 40, 1)
    text = out.getvalue()
    assert text.startswith("0x0020:")
    assert text.count(" ") == 4
    assert "ffffffffffffffff" in text


def test_register_file_round_trip():
    regs = RegisterFile()
    regs.set(Register.RBX, -7)
    assert regs.get(Register.RBX) == -7
    regs.set(Register.NONE, 5)
    assert regs.get(Register.NONE) == 0
    dup = regs.copy()
    regs.set(Register.RBX, 1)
    assert dup.get(Register.RBX) == -7


def test_register_file_diff():
    old = RegisterFile()
    new = old.copy()
    assert not old.diff(new)
    new.set(Register.RAX, 1)
    new.set(Register.R14, 2)
    out = io.StringIO()
    assert old.diff(new, out)
    lines = out.getvalue().splitlines()
    assert lines[0].startswith("%rax:\t")
    assert lines[1].startswith("%r14:\t")


def test_register_file_dump():
    regs = RegisterFile()
    regs.set(Register.RCX, -1)
    out = io.StringIO()
    regs.dump(out)
    header, values = out.getvalue().splitlines()
    assert "%rax" in header and "%r14" in header
    assert values.split()[1] == "ffffffffffffffff"
    assert len(values.split()) == 15