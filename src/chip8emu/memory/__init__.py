"""Bounds-checked memory primitives for the CHIP-8 address space."""

from __future__ import annotations

from typing import Iterable, List, Protocol

from chip8emu.cpu.errors import MemoryAccessError

ADDRESS_SPACE = 0x1000


class Addressable(Protocol):
    """Protocol describing byte-addressable storage seen by the CPU."""

    def get_start_address(self) -> int:
        ...

    def get_end_address(self) -> int:
        ...

    def load8(self, address: int) -> int:
        ...

    def store8(self, address: int, value: int) -> None:
        ...

    def load16(self, address: int) -> int:
        ...

    def store16(self, address: int, value: int) -> None:
        ...


class Memory(Addressable):
    """Generic memory block supporting 8/16-bit and block accesses.

    Accesses outside ``[start, start + length)`` raise
    :class:`MemoryAccessError`; nothing wraps.
    """

    start: int
    length: int
    data: bytearray

    def __init__(self, start: int, length: int) -> None:
        if start < 0 or length <= 0 or start + length > 0x10000:
            raise ValueError("invalid memory range")
        self.start = start
        self.length = length
        self.data = bytearray(length)

    def get_start_address(self) -> int:
        return self.start

    def get_end_address(self) -> int:
        return self.start + self.length - 1

    def _index(self, address: int, size: int = 1) -> int:
        index = address - self.start
        if index < 0 or index + size > self.length:
            if size == 1:
                raise MemoryAccessError(f"memory access out of range: 0x{address:04X}")
            raise MemoryAccessError(
                f"memory access out of range: 0x{address:04X}..0x{address + size - 1:04X}"
            )
        return index

    def load8(self, address: int) -> int:
        return self.data[self._index(address)]

    def store8(self, address: int, value: int) -> None:
        self.data[self._index(address)] = value & 0xFF

    def load16(self, address: int) -> int:
        index = self._index(address, 2)
        return (self.data[index] << 8) | self.data[index + 1]

    def store16(self, address: int, value: int) -> None:
        index = self._index(address, 2)
        self.data[index] = (value >> 8) & 0xFF
        self.data[index + 1] = value & 0xFF

    def load_block(self, address: int, size: int) -> bytes:
        if size < 0:
            raise ValueError("block size must not be negative")
        if size == 0:
            return b""
        index = self._index(address, size)
        return bytes(self.data[index:index + size])

    def store_block(self, address: int, values: Iterable[int]) -> None:
        payload = bytes(value & 0xFF for value in values)
        if not payload:
            return
        index = self._index(address, len(payload))
        self.data[index:index + len(payload)] = payload

    def clear(self) -> None:
        self.data[:] = bytes(self.length)

    def dump(self) -> List[int]:
        return list(self.data)


class RAM(Memory):
    """Readable and writable memory block."""


__all__ = [
    "ADDRESS_SPACE",
    "Addressable",
    "Memory",
    "RAM",
]
