"""Decoder and disassembler tests."""

from __future__ import annotations

import pytest

from chip8emu.cpu.instructions import Opcode, decode, decode_bytes, disassemble, nibbles


def test_every_word_decodes_to_exactly_one_instruction() -> None:
    seen = set()
    for word in range(0x10000):
        instruction = decode(word)
        assert instruction.word == word
        assert isinstance(instruction.opcode, Opcode)
        seen.add(instruction.opcode)
    assert seen == set(Opcode)


@pytest.mark.parametrize(
    "word, opcode",
    [
        (0x00E0, Opcode.CLS),
        (0x00EE, Opcode.RET),
        (0x0123, Opcode.SYS),
        (0x1ABC, Opcode.JP),
        (0x2ABC, Opcode.CALL),
        (0x3A12, Opcode.SE),
        (0x4A12, Opcode.SNE),
        (0x5AB0, Opcode.SE_VY),
        (0x6A12, Opcode.LD),
        (0x7A12, Opcode.ADD),
        (0x8AB0, Opcode.LD_VY),
        (0x8AB1, Opcode.OR),
        (0x8AB2, Opcode.AND),
        (0x8AB3, Opcode.XOR),
        (0x8AB4, Opcode.ADD_VY),
        (0x8AB5, Opcode.SUB),
        (0x8AB6, Opcode.SHR),
        (0x8AB7, Opcode.SUBN),
        (0x8ABE, Opcode.SHL),
        (0x9AB0, Opcode.SNE_VY),
        (0xA123, Opcode.LD_I),
        (0xB123, Opcode.JP_V0),
        (0xCA12, Opcode.RND),
        (0xDAB5, Opcode.DRW),
        (0xEA9E, Opcode.SKP),
        (0xEAA1, Opcode.SKNP),
        (0xFA07, Opcode.LD_VX_DT),
        (0xFA0A, Opcode.LD_VX_K),
        (0xFA15, Opcode.LD_DT_VX),
        (0xFA18, Opcode.LD_ST_VX),
        (0xFA1E, Opcode.ADD_I),
        (0xFA29, Opcode.LD_F),
        (0xFA33, Opcode.LD_B),
        (0xFA55, Opcode.LD_MEM_VX),
        (0xFA65, Opcode.LD_VX_MEM),
    ],
)
def test_decode_official_opcodes(word: int, opcode: Opcode) -> None:
    assert decode(word).opcode is opcode


@pytest.mark.parametrize("word", [0x5AB1, 0x8AB8, 0x8ABF, 0x9AB1, 0xE000, 0xEA9F, 0xF000, 0xFAFF])
def test_unmatched_words_decode_to_sys(word: int) -> None:
    instruction = decode(word)
    assert instruction.opcode is Opcode.SYS
    assert instruction.nnn == word & 0xFFF


def test_fields_are_extracted_from_nibbles() -> None:
    instruction = decode(0xD12F)
    assert (instruction.x, instruction.y, instruction.n) == (0x1, 0x2, 0xF)
    assert instruction.kk == 0x2F
    assert instruction.nnn == 0x12F
    assert nibbles(0xD12F) == (0xD, 0x1, 0x2, 0xF)


def test_decode_bytes_is_big_endian() -> None:
    assert decode_bytes(0x60, 0x05).word == 0x6005


@pytest.mark.parametrize("word", [-1, 0x10000])
def test_decode_rejects_out_of_range_words(word: int) -> None:
    with pytest.raises(ValueError):
        decode(word)


@pytest.mark.parametrize(
    "word, text",
    [
        (0x00E0, "CLS"),
        (0x00EE, "RET"),
        (0x0123, "SYS 0x123"),
        (0x12AB, "JP 0x2AB"),
        (0x2206, "CALL 0x206"),
        (0x642A, "LD V4, 0x2A"),
        (0x5120, "SE V1, V2"),
        (0x8126, "SHR V1, V2"),
        (0xA300, "LD I, 0x300"),
        (0xB300, "JP V0, 0x300"),
        (0xD015, "DRW V0, V1, 5"),
        (0xE19E, "SKP V1"),
        (0xE1A1, "SKNP V1"),
        (0xF10A, "LD V1, K"),
        (0xF107, "LD V1, DT"),
        (0xF115, "LD DT, V1"),
        (0xF118, "LD ST, V1"),
        (0xF11E, "ADD I, V1"),
        (0xF129, "LD F, V1"),
        (0xF133, "LD B, V1"),
        (0xF355, "LD [I], V3"),
        (0xF365, "LD V3, [I]"),
    ],
)
def test_disassemble(word: int, text: str) -> None:
    assert disassemble(word) == text
    assert str(decode(word)) == text
