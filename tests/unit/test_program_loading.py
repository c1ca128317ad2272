from __future__ import annotations

from pathlib import Path

import pytest

from chip8emu.chip8.computer import Chip8Computer
from chip8emu.chip8.memory import MAX_PROGRAM_SIZE, MainRam
from chip8emu.emulator.file import ProgramLoadError, load_image, read_program


def test_load_program_from_file(tmp_path: Path) -> None:
    path = tmp_path / "pong.ch8"
    path.write_bytes(b"\x60\x05\x70\x03")
    computer = Chip8Computer(clock=lambda: 0)
    memory = computer.memory

    info = computer.load_user_program(path)

    assert info.name == "PONG"
    assert info.size == 4
    assert info.path == path
    assert memory.load_block(0x200, 4) == b"\x60\x05\x70\x03"
    region = info.address_regions[0]
    assert (region.start, region.end, region.comment) == (0x200, 0x203, "program")


def test_load_image_keeps_payload() -> None:
    memory = MainRam()
    info = load_image(memory, b"\x00\xE0", name="CLS")
    assert info.image == b"\x00\xE0"
    assert info.name == "CLS"


def test_empty_and_oversized_images_are_rejected(tmp_path: Path) -> None:
    memory = MainRam()
    with pytest.raises(ProgramLoadError):
        load_image(memory, b"")
    with pytest.raises(ProgramLoadError):
        load_image(memory, bytes(MAX_PROGRAM_SIZE + 1))

    big = tmp_path / "big.ch8"
    big.write_bytes(bytes(MAX_PROGRAM_SIZE + 1))
    with pytest.raises(ProgramLoadError):
        read_program(big)


def test_unsupported_suffix_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "notes.txt"
    path.write_bytes(b"\x00\xE0")
    with pytest.raises(ProgramLoadError):
        read_program(path)


def test_missing_file_raises_os_error(tmp_path: Path) -> None:
    with pytest.raises(OSError):
        read_program(tmp_path / "missing.ch8")
