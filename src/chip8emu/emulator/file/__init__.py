"""File loading helpers for the CHIP-8 emulator."""

from chip8emu.emulator.file.program import (
    AddressRegion,
    ProgramInfo,
    ProgramLoadError,
    check_image,
    load_image,
    read_program,
)

__all__ = [
    "AddressRegion",
    "ProgramInfo",
    "ProgramLoadError",
    "check_image",
    "load_image",
    "read_program",
]
