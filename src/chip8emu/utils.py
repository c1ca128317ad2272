"""Environment-gated diagnostics shared by the emulator and its tools."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
import logging
import os
from typing import Deque, List, Set

ENV_DEBUG = "CHIP8EMU_DEBUG"
LOGGER_NAME = "chip8emu"

_configured = False


def _configure_logging() -> None:
    global _configured
    if _configured:
        return
    _configured = True
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    if not logging.getLogger().handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
        logger.addHandler(handler)


def _enabled_categories() -> Set[str]:
    raw = os.getenv(ENV_DEBUG, "")
    return {item.strip().lower() for item in raw.split(",") if item.strip()}


def debug_enabled(category: str) -> bool:
    """Return True when ``category`` (or ``all``) is listed in CHIP8EMU_DEBUG."""

    categories = _enabled_categories()
    return "all" in categories or category.lower() in categories


def debug_log(category: str, message: str, *args: object) -> None:
    """Emit a printf-style debug line on the ``chip8emu.<category>`` logger."""

    _configure_logging()
    logging.getLogger(f"{LOGGER_NAME}.{category}").debug(message, *args)


@dataclass(frozen=True)
class TraceEntry:
    pc: int
    opcode: int
    mnemonic: str

    def format(self) -> str:
        return f"{self.pc:04X}: {self.opcode:04X}  {self.mnemonic}"


class TraceRecorder:
    """Bounded history of executed instructions."""

    def __init__(self, capacity: int = 64) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._entries: Deque[TraceEntry] = deque(maxlen=capacity)

    def record(self, pc: int, opcode: int, mnemonic: str) -> None:
        self._entries.append(TraceEntry(pc & 0xFFFF, opcode & 0xFFFF, mnemonic))

    def entries(self) -> List[TraceEntry]:
        return list(self._entries)

    def format_lines(self) -> List[str]:
        return [entry.format() for entry in self._entries]

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


__all__ = [
    "ENV_DEBUG",
    "TraceEntry",
    "TraceRecorder",
    "debug_enabled",
    "debug_log",
]
