"""CHIP-8 hardware bundle shared by the CPU driver and the frontends."""

from __future__ import annotations

from dataclasses import dataclass

from chip8emu.chip8.display import Chip8Display
from chip8emu.chip8.keyboard import Chip8Keypad
from chip8emu.chip8.memory import MainRam
from chip8emu.chip8.sound import Chip8Beeper


@dataclass
class Chip8Hardware:
    memory: MainRam
    display: Chip8Display
    keyboard: Chip8Keypad
    beeper: Chip8Beeper
