"""CHIP-8 hexadecimal keypad.

Logical layout::

    1 2 3 C
    4 5 6 D
    7 8 9 E
    A 0 B F
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from chip8emu.utils import debug_enabled, debug_log

KEY_COUNT = 16

KEYPAD_LAYOUT = (
    (0x1, 0x2, 0x3, 0xC),
    (0x4, 0x5, 0x6, 0xD),
    (0x7, 0x8, 0x9, 0xE),
    (0xA, 0x0, 0xB, 0xF),
)


@dataclass
class Chip8Keypad:
    _keys: List[bool] = field(default_factory=lambda: [False] * KEY_COUNT)

    @staticmethod
    def _check(key: int) -> None:
        if not (0 <= key < KEY_COUNT):
            raise ValueError(f"key out of range: {key}")

    def press(self, key: int) -> None:
        self._check(key)
        self._keys[key] = True

    def release(self, key: int) -> None:
        self._check(key)
        self._keys[key] = False

    def is_pressed(self, key: int) -> bool:
        self._check(key)
        if debug_enabled("input"):
            debug_log("input", "query key=%X pressed=%s", key, self._keys[key])
        return self._keys[key]

    def first_pressed(self) -> Optional[int]:
        for key, pressed in enumerate(self._keys):
            if pressed:
                return key
        return None

    def pressed_keys(self) -> List[int]:
        return [key for key, pressed in enumerate(self._keys) if pressed]

    def clear(self) -> None:
        self._keys = [False] * KEY_COUNT
