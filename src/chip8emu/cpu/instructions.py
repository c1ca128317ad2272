"""CHIP-8 instruction decoding and disassembly.

Every 16-bit word decodes to exactly one :class:`Instruction`. Words that do
not match an official opcode shape decode to ``SYS nnn`` with the low twelve
bits.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple


class Opcode(Enum):
    SYS = "0nnn"
    CLS = "00E0"
    RET = "00EE"
    JP = "1nnn"
    CALL = "2nnn"
    SE = "3xkk"
    SNE = "4xkk"
    SE_VY = "5xy0"
    LD = "6xkk"
    ADD = "7xkk"
    LD_VY = "8xy0"
    OR = "8xy1"
    AND = "8xy2"
    XOR = "8xy3"
    ADD_VY = "8xy4"
    SUB = "8xy5"
    SHR = "8xy6"
    SUBN = "8xy7"
    SHL = "8xyE"
    SNE_VY = "9xy0"
    LD_I = "Annn"
    JP_V0 = "Bnnn"
    RND = "Cxkk"
    DRW = "Dxyn"
    SKP = "Ex9E"
    SKNP = "ExA1"
    LD_VX_DT = "Fx07"
    LD_VX_K = "Fx0A"
    LD_DT_VX = "Fx15"
    LD_ST_VX = "Fx18"
    ADD_I = "Fx1E"
    LD_F = "Fx29"
    LD_B = "Fx33"
    LD_MEM_VX = "Fx55"
    LD_VX_MEM = "Fx65"

    @property
    def pattern(self) -> str:
        return self.value


@dataclass(frozen=True)
class Instruction:
    """A decoded instruction word with its nibble fields."""

    opcode: Opcode
    word: int

    @property
    def x(self) -> int:
        return (self.word >> 8) & 0xF

    @property
    def y(self) -> int:
        return (self.word >> 4) & 0xF

    @property
    def n(self) -> int:
        return self.word & 0xF

    @property
    def kk(self) -> int:
        return self.word & 0xFF

    @property
    def nnn(self) -> int:
        return self.word & 0xFFF

    def mnemonic(self) -> str:
        return _format_instruction(self)

    def __str__(self) -> str:
        return self.mnemonic()


def nibbles(word: int) -> Tuple[int, int, int, int]:
    return (word >> 12) & 0xF, (word >> 8) & 0xF, (word >> 4) & 0xF, word & 0xF


# Opcodes selected by the leading nibble alone.
_BY_HIGH_NIBBLE: Dict[int, Opcode] = {
    0x1: Opcode.JP,
    0x2: Opcode.CALL,
    0x3: Opcode.SE,
    0x4: Opcode.SNE,
    0x6: Opcode.LD,
    0x7: Opcode.ADD,
    0xA: Opcode.LD_I,
    0xB: Opcode.JP_V0,
    0xC: Opcode.RND,
    0xD: Opcode.DRW,
}

_ARITHMETIC: Dict[int, Opcode] = {
    0x0: Opcode.LD_VY,
    0x1: Opcode.OR,
    0x2: Opcode.AND,
    0x3: Opcode.XOR,
    0x4: Opcode.ADD_VY,
    0x5: Opcode.SUB,
    0x6: Opcode.SHR,
    0x7: Opcode.SUBN,
    0xE: Opcode.SHL,
}

_KEY_QUERIES: Dict[int, Opcode] = {
    0x9E: Opcode.SKP,
    0xA1: Opcode.SKNP,
}

_MISC: Dict[int, Opcode] = {
    0x07: Opcode.LD_VX_DT,
    0x0A: Opcode.LD_VX_K,
    0x15: Opcode.LD_DT_VX,
    0x18: Opcode.LD_ST_VX,
    0x1E: Opcode.ADD_I,
    0x29: Opcode.LD_F,
    0x33: Opcode.LD_B,
    0x55: Opcode.LD_MEM_VX,
    0x65: Opcode.LD_VX_MEM,
}


def _decode_opcode(word: int) -> Opcode:
    high, _x, _y, low = nibbles(word)
    kk = word & 0xFF

    opcode = _BY_HIGH_NIBBLE.get(high)
    if opcode is not None:
        return opcode
    if high == 0x0:
        if word == 0x00E0:
            return Opcode.CLS
        if word == 0x00EE:
            return Opcode.RET
        return Opcode.SYS
    if high == 0x5 and low == 0x0:
        return Opcode.SE_VY
    if high == 0x8:
        return _ARITHMETIC.get(low, Opcode.SYS)
    if high == 0x9 and low == 0x0:
        return Opcode.SNE_VY
    if high == 0xE:
        return _KEY_QUERIES.get(kk, Opcode.SYS)
    if high == 0xF:
        return _MISC.get(kk, Opcode.SYS)
    return Opcode.SYS


def decode(word: int) -> Instruction:
    """Decode a 16-bit instruction word."""

    if not (0 <= word <= 0xFFFF):
        raise ValueError(f"instruction word out of range: {word!r}")
    return Instruction(_decode_opcode(word), word)


def decode_bytes(high: int, low: int) -> Instruction:
    """Decode a big-endian byte pair as stored in program memory."""

    return decode(((high & 0xFF) << 8) | (low & 0xFF))


# ----------------------------------------------------------------------
# Disassembly
# ----------------------------------------------------------------------
_ADDRESS_FORMS = {
    Opcode.SYS: "SYS 0x{nnn:03X}",
    Opcode.JP: "JP 0x{nnn:03X}",
    Opcode.CALL: "CALL 0x{nnn:03X}",
    Opcode.LD_I: "LD I, 0x{nnn:03X}",
    Opcode.JP_V0: "JP V0, 0x{nnn:03X}",
}

_IMMEDIATE_FORMS = {
    Opcode.SE: "SE V{x:X}, 0x{kk:02X}",
    Opcode.SNE: "SNE V{x:X}, 0x{kk:02X}",
    Opcode.LD: "LD V{x:X}, 0x{kk:02X}",
    Opcode.ADD: "ADD V{x:X}, 0x{kk:02X}",
    Opcode.RND: "RND V{x:X}, 0x{kk:02X}",
}

_REGISTER_PAIR_FORMS = {
    Opcode.SE_VY: "SE V{x:X}, V{y:X}",
    Opcode.SNE_VY: "SNE V{x:X}, V{y:X}",
    Opcode.LD_VY: "LD V{x:X}, V{y:X}",
    Opcode.OR: "OR V{x:X}, V{y:X}",
    Opcode.AND: "AND V{x:X}, V{y:X}",
    Opcode.XOR: "XOR V{x:X}, V{y:X}",
    Opcode.ADD_VY: "ADD V{x:X}, V{y:X}",
    Opcode.SUB: "SUB V{x:X}, V{y:X}",
    Opcode.SHR: "SHR V{x:X}, V{y:X}",
    Opcode.SUBN: "SUBN V{x:X}, V{y:X}",
    Opcode.SHL: "SHL V{x:X}, V{y:X}",
}

_SINGLE_REGISTER_FORMS = {
    Opcode.SKP: "SKP V{x:X}",
    Opcode.SKNP: "SKNP V{x:X}",
    Opcode.LD_VX_DT: "LD V{x:X}, DT",
    Opcode.LD_VX_K: "LD V{x:X}, K",
    Opcode.LD_DT_VX: "LD DT, V{x:X}",
    Opcode.LD_ST_VX: "LD ST, V{x:X}",
    Opcode.ADD_I: "ADD I, V{x:X}",
    Opcode.LD_F: "LD F, V{x:X}",
    Opcode.LD_B: "LD B, V{x:X}",
    Opcode.LD_MEM_VX: "LD [I], V{x:X}",
    Opcode.LD_VX_MEM: "LD V{x:X}, [I]",
}


def _format_instruction(instruction: Instruction) -> str:
    opcode = instruction.opcode
    fields = dict(
        x=instruction.x,
        y=instruction.y,
        n=instruction.n,
        kk=instruction.kk,
        nnn=instruction.nnn,
    )
    if opcode is Opcode.CLS:
        return "CLS"
    if opcode is Opcode.RET:
        return "RET"
    if opcode is Opcode.DRW:
        return "DRW V{x:X}, V{y:X}, {n}".format(**fields)
    for table in (_ADDRESS_FORMS, _IMMEDIATE_FORMS, _REGISTER_PAIR_FORMS, _SINGLE_REGISTER_FORMS):
        template = table.get(opcode)
        if template is not None:
            return template.format(**fields)
    raise ValueError(f"no disassembly form for {opcode}")  # pragma: no cover - table is exhaustive


def disassemble(word: int) -> str:
    return decode(word).mnemonic()


__all__ = [
    "Instruction",
    "Opcode",
    "decode",
    "decode_bytes",
    "disassemble",
    "nibbles",
]
