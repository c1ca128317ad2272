"""CHIP-8 beeper driven by the sound timer."""

from __future__ import annotations

from array import array
from dataclasses import dataclass, field
from typing import List, Tuple

from chip8emu.utils import debug_enabled, debug_log


@dataclass
class Chip8Beeper:
    """Square-wave tone that plays while the sound timer is non-zero.

    Without audio the beeper only records tone transitions in ``history``,
    which is what the headless tools and tests look at.
    """

    history: List[Tuple[str, int]] = field(default_factory=list)
    frequency: float = 440.0
    sample_rate: int = 44100
    volume: float = 0.3
    enable_audio: bool = False

    def __post_init__(self) -> None:
        self._active: bool = False
        self._audio_initialized: bool = False
        self._channel = None
        self._sound = None

    @property
    def active(self) -> bool:
        return self._active

    def update(self, sound_timer: int) -> None:
        """Follow the sound timer: tone on while it is above zero."""

        if sound_timer > 0 and not self._active:
            self._active = True
            self.history.append(("tone_on", sound_timer))
            self._start_tone()
        elif sound_timer <= 0 and self._active:
            self._active = False
            self.history.append(("tone_off", 0))
            self._stop_tone()

    def stop(self) -> None:
        if self._active:
            self.update(0)

    # ------------------------------------------------------------------
    # Audio control helpers
    # ------------------------------------------------------------------
    def _ensure_mixer(self) -> bool:
        if not self.enable_audio:
            return False
        if self._audio_initialized:
            return True
        try:
            import pygame  # type: ignore

            if not pygame.mixer.get_init():
                pygame.mixer.init(frequency=self.sample_rate, size=-16, channels=1)
            self._channel = pygame.mixer.Channel(0)
            self._sound = pygame.mixer.Sound(buffer=self._render_period())
            self._audio_initialized = True
        except Exception as exc:
            if debug_enabled("audio"):
                debug_log("audio", "mixer_init_failed=%s", exc)
            self.enable_audio = False
            self._channel = None
            self._sound = None
            self._audio_initialized = False
        return self._audio_initialized

    def _render_period(self) -> array:
        """One period of the square wave as signed 16-bit samples."""

        samples = max(2, int(self.sample_rate / self.frequency))
        amplitude = int(self.volume * 32767)
        half = samples // 2
        buffer = array("h", [amplitude] * half + [-amplitude] * (samples - half))
        return buffer

    def _start_tone(self) -> None:
        if not self._ensure_mixer() or self._channel is None:
            return
        self._channel.set_volume(self.volume)
        self._channel.play(self._sound, loops=-1)

    def _stop_tone(self) -> None:
        if self._audio_initialized and self._channel is not None:
            self._channel.stop()
