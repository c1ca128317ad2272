"""CHIP-8 main memory with the built-in hexadecimal glyph table."""

from __future__ import annotations

from typing import Iterable

from chip8emu.memory import ADDRESS_SPACE, RAM

FONT_START_ADDRESS = 0x000
FONT_BYTES_PER_GLYPH = 5
PROGRAM_START_ADDRESS = 0x200
MAX_PROGRAM_SIZE = ADDRESS_SPACE - PROGRAM_START_ADDRESS

# 4x5 sprites for the digits 0-F, one byte per row, high nibble used.
FONT_SET = bytes(
    [
        0xF0, 0x90, 0x90, 0x90, 0xF0,  # 0
        0x20, 0x60, 0x20, 0x20, 0x70,  # 1
        0xF0, 0x10, 0xF0, 0x80, 0xF0,  # 2
        0xF0, 0x10, 0xF0, 0x10, 0xF0,  # 3
        0x90, 0x90, 0xF0, 0x10, 0x10,  # 4
        0xF0, 0x80, 0xF0, 0x10, 0xF0,  # 5
        0xF0, 0x80, 0xF0, 0x90, 0xF0,  # 6
        0xF0, 0x10, 0x20, 0x40, 0x40,  # 7
        0xF0, 0x90, 0xF0, 0x90, 0xF0,  # 8
        0xF0, 0x90, 0xF0, 0x10, 0xF0,  # 9
        0xF0, 0x90, 0xF0, 0x90, 0x90,  # A
        0xE0, 0x90, 0xE0, 0x90, 0xE0,  # B
        0xF0, 0x80, 0x80, 0x80, 0xF0,  # C
        0xE0, 0x90, 0x90, 0x90, 0xE0,  # D
        0xF0, 0x80, 0xF0, 0x80, 0xF0,  # E
        0xF0, 0x80, 0xF0, 0x80, 0x80,  # F
    ]
)


def glyph_address(digit: int) -> int:
    return FONT_START_ADDRESS + digit * FONT_BYTES_PER_GLYPH


class MainRam(RAM):
    """The full 4 KiB address space, glyphs preloaded at 0x000."""

    def __init__(self) -> None:
        super().__init__(0x000, ADDRESS_SPACE)
        self.load_fonts()

    def load_fonts(self) -> None:
        self.store_block(FONT_START_ADDRESS, FONT_SET)

    def reset(self) -> None:
        self.clear()
        self.load_fonts()

    def load_program(self, image: Iterable[int]) -> int:
        """Copy ``image`` to the program area and return its length."""

        payload = bytes(image)
        if len(payload) > MAX_PROGRAM_SIZE:
            raise ValueError(
                f"program image is {len(payload)} bytes; at most {MAX_PROGRAM_SIZE} fit"
            )
        self.store_block(PROGRAM_START_ADDRESS, payload)
        return len(payload)
