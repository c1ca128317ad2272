"""CHIP-8 display model."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

WIDTH = 64
HEIGHT = 32
MAX_INTENSITY = 0xFF


@dataclass
class Chip8Display:
    """64x32 monochrome framebuffer.

    Each pixel keeps a logical bit, used for XOR drawing and collision, and an
    intensity byte that only the renderer looks at. Lit pixels sit at full
    intensity; erased pixels fade out over successive :meth:`refresh` calls
    when ``fade_step`` is non-zero.
    """

    WIDTH: int = WIDTH
    HEIGHT: int = HEIGHT

    foreground: int = 0xFFFFFF
    background: int = 0x333333
    fade_step: int = 0
    _bits: List[List[int]] = field(default_factory=lambda: [[0] * WIDTH for _ in range(HEIGHT)])
    _intensity: List[List[int]] = field(default_factory=lambda: [[0] * WIDTH for _ in range(HEIGHT)])

    def _check(self, x: int, y: int) -> None:
        if not (0 <= x < self.WIDTH and 0 <= y < self.HEIGHT):
            raise ValueError(f"pixel ({x}, {y}) out of range")

    def get(self, x: int, y: int) -> int:
        self._check(x, y)
        return self._bits[y][x]

    def set(self, x: int, y: int, bit: int) -> None:
        self._check(x, y)
        value = 1 if bit else 0
        self._bits[y][x] = value
        if value:
            self._intensity[y][x] = MAX_INTENSITY
        elif not self.fade_step:
            self._intensity[y][x] = 0

    def intensity(self, x: int, y: int) -> int:
        self._check(x, y)
        return self._intensity[y][x]

    def clear(self) -> None:
        for row in self._bits:
            row[:] = [0] * self.WIDTH
        if not self.fade_step:
            for row in self._intensity:
                row[:] = [0] * self.WIDTH

    def refresh(self) -> None:
        """Advance the fade of erased pixels by one frame."""

        if not self.fade_step:
            return
        for bits, levels in zip(self._bits, self._intensity):
            for x in range(self.WIDTH):
                if not bits[x] and levels[x]:
                    levels[x] = max(0, levels[x] - self.fade_step)

    def lit_pixels(self) -> int:
        return sum(sum(row) for row in self._bits)

    # ------------------------------------------------------------------
    # State persistence
    # ------------------------------------------------------------------
    def get_bits(self) -> List[List[int]]:
        return [list(row) for row in self._bits]

    def check_bits(self, rows: List[List[int]]) -> None:
        if len(rows) != self.HEIGHT or any(len(row) != self.WIDTH for row in rows):
            raise ValueError("framebuffer must be 64x32")

    def load_bits(self, rows: List[List[int]]) -> None:
        self.check_bits(rows)
        for y, row in enumerate(rows):
            for x, bit in enumerate(row):
                self.set(x, y, bit)

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------
    def dump(self) -> str:
        """Text rendering, one line of 0/1 per row."""

        return "\n".join("".join("1" if bit else "0" for bit in row) for row in self._bits) + "\n"

    def _blend(self, level: int) -> int:
        if level >= MAX_INTENSITY:
            return self.foreground
        if level <= 0:
            return self.background
        result = 0
        for shift in (16, 8, 0):
            fg = (self.foreground >> shift) & 0xFF
            bg = (self.background >> shift) & 0xFF
            channel = bg + ((fg - bg) * level) // MAX_INTENSITY
            result |= (channel & 0xFF) << shift
        return result

    def render_pixels(self) -> List[List[int]]:
        return [[self._blend(level) for level in row] for row in self._intensity]

    def render_pygame_surface(self, scaling: int = 1):
        """Render the framebuffer into a pygame Surface.

        Parameters
        ----------
        scaling:
            Integer scale factor applied to both axes.

        Returns
        -------
        pygame.Surface
            RGB surface representing the current screen.

        Raises
        ------
        RuntimeError
            If pygame is not available.
        """

        if scaling <= 0:
            raise ValueError("scaling factor must be positive")

        try:
            import pygame  # type: ignore
        except Exception as exc:  # pragma: no cover - optional dependency
            raise RuntimeError("pygame is required for render_pygame_surface") from exc

        surface = pygame.Surface((self.WIDTH * scaling, self.HEIGHT * scaling))
        surface.fill(self.background)
        for y, row in enumerate(self.render_pixels()):
            for x, color in enumerate(row):
                if color != self.background:
                    surface.fill(color, (x * scaling, y * scaling, scaling, scaling))
        return surface
