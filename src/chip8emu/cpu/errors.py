"""Fatal fault types raised by the CHIP-8 CPU and its memory."""

from __future__ import annotations

from typing import Optional


class CPUError(Exception):
    """Base error for CPU faults.

    ``pc`` and ``opcode`` are filled in by :meth:`Chip8CPU.step` once the
    faulting instruction is known.
    """

    def __init__(self, message: str, *, pc: Optional[int] = None, opcode: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.pc = pc
        self.opcode = opcode

    def attach(self, pc: int, opcode: Optional[int]) -> None:
        if self.pc is None:
            self.pc = pc & 0xFFFF
        if self.opcode is None and opcode is not None:
            self.opcode = opcode & 0xFFFF

    def __str__(self) -> str:
        if self.pc is None:
            return self.message
        if self.opcode is None:
            return f"{self.message} (pc=0x{self.pc:04X})"
        return f"{self.message} (pc=0x{self.pc:04X} opcode=0x{self.opcode:04X})"


class StackOverflowError(CPUError):
    """CALL issued with every stack slot in use."""


class StackUnderflowError(CPUError):
    """RET issued with an empty stack."""


class InvalidGlyphError(CPUError):
    """Glyph address requested for a value above 0xF."""


class MemoryAccessError(CPUError):
    """Read or write outside the addressable memory."""


class CPUHaltedError(CPUError):
    """Step requested after a fault stopped the CPU."""


__all__ = [
    "CPUError",
    "CPUHaltedError",
    "InvalidGlyphError",
    "MemoryAccessError",
    "StackOverflowError",
    "StackUnderflowError",
]
