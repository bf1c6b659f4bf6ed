import pytest

from y86tools.lexer import LexError, TokenKind, atollh, tokenize_line


def test_labeled_instruction_tokens():
    toks = tokenize_line("loop: irmovq $10, %rax # comment\n")
    assert [t.kind for t in toks] == [
        TokenKind.IDENT,
        TokenKind.PUNCT,
        TokenKind.INSTR,
        TokenKind.NUM,
        TokenKind.PUNCT,
        TokenKind.REG,
    ]
    assert toks[0].text == "loop"
    assert toks[3].value == 10
    assert toks[5].text == "%rax"


def test_hex_number_matches_atollh():
    toks = tokenize_line("0xff")
    assert len(toks) == 1
    assert toks[0].value == atollh("ff")


def test_negative_decimal():
    toks = tokenize_line("-5")
    assert toks[0].kind is TokenKind.NUM and toks[0].value == -5


def test_longest_match_prefers_identifier():
    assert tokenize_line("nopx")[0].kind is TokenKind.IDENT
    assert tokenize_line("nop")[0].kind is TokenKind.INSTR


def test_comments_are_dropped():
    assert tokenize_line("/* nothing here") == []
    assert tokenize_line("   // x") == []
    assert tokenize_line("halt # hi")[0].text == "halt"


def test_directives_are_instructions():
    toks = tokenize_line(".pos 0x100")
    assert toks[0].kind is TokenKind.INSTR and toks[0].text == ".pos"
    assert toks[1].value == atollh("0x100")


def test_invalid_character():
    with pytest.raises(LexError):
        tokenize_line("halt @")


def test_atollh_prefix_and_garbage():
    assert atollh("0x1F") == atollh("1f")
    assert atollh("zz") == 0