"""Program loaders for CHIP-8 images."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from chip8emu.chip8.memory import MAX_PROGRAM_SIZE, PROGRAM_START_ADDRESS, MainRam

PROGRAM_SUFFIXES = {".ch8", ".c8", ".rom", ".bin"}


class ProgramLoadError(RuntimeError):
    """Raised when a program image cannot be read or does not fit."""


@dataclass
class AddressRegion:
    start: int
    end: int
    comment: str = ""


@dataclass
class ProgramInfo:
    name: str = ""
    size: int = 0
    image: bytes = b""
    address_regions: List[AddressRegion] = field(default_factory=list)
    path: Optional[Path] = None

    def add_region(self, start: int, end: int, comment: str = "") -> None:
        self.address_regions.append(AddressRegion(start, end, comment))


def check_image(image: bytes) -> None:
    if not image:
        raise ProgramLoadError("program image is empty")
    if len(image) > MAX_PROGRAM_SIZE:
        raise ProgramLoadError(
            f"program image is {len(image)} bytes; at most {MAX_PROGRAM_SIZE} fit above 0x{PROGRAM_START_ADDRESS:03X}"
        )


def load_image(memory: MainRam, image: bytes, *, name: str = "") -> ProgramInfo:
    """Copy a raw image to the program area and describe it."""

    payload = bytes(image)
    check_image(payload)
    size = memory.load_program(payload)
    info = ProgramInfo(name=name, size=size, image=payload)
    info.add_region(PROGRAM_START_ADDRESS, PROGRAM_START_ADDRESS + size - 1, "program")
    return info


def read_program(path: str | Path) -> bytes:
    file_path = Path(path)
    if file_path.suffix and file_path.suffix.lower() not in PROGRAM_SUFFIXES:
        raise ProgramLoadError(f"unsupported program format: {file_path.suffix}")
    image = file_path.read_bytes()
    check_image(image)
    return image

