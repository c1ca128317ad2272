"""CHIP-8 system wiring: memory, display, keypad, beeper and CPU."""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path
import random
import time
from typing import Callable, Dict, Optional

from chip8emu.chip8.display import MAX_INTENSITY, Chip8Display
from chip8emu.chip8.hardware import Chip8Hardware
from chip8emu.chip8.keyboard import Chip8Keypad
from chip8emu.chip8.memory import MainRam
from chip8emu.chip8.sound import Chip8Beeper
from chip8emu.cpu.cpu import Chip8CPU, Chip8State
from chip8emu.cpu.errors import CPUError
from chip8emu.emulator.file import ProgramInfo, check_image, load_image, read_program
from chip8emu.system.computer import DEFAULT_INSTRUCTIONS_PER_SECOND, Computer
from chip8emu.utils import TraceRecorder, debug_enabled, debug_log


@dataclass
class Chip8Computer(Computer):
    """Concrete CHIP-8 machine."""

    hardware: Chip8Hardware
    cpu_core: Chip8CPU
    program_info: Optional[ProgramInfo] = None

    ENV_PROGRAM_PATH = "CHIP8EMU_ROM"
    SNAPSHOT_VERSION = 1

    def __init__(
        self,
        *,
        instructions_per_second: float = DEFAULT_INSTRUCTIONS_PER_SECOND,
        seed: Optional[int] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], int] = time.perf_counter_ns,
        enable_audio: bool = False,
        trace_capacity: int = 64,
        fade_step: int = 0,
    ) -> None:
        if not (0 <= fade_step <= MAX_INTENSITY):
            raise ValueError(f"fade step must be within 0..{MAX_INTENSITY}")
        memory = MainRam()
        hardware = Chip8Hardware(
            memory=memory,
            display=Chip8Display(fade_step=fade_step),
            keyboard=Chip8Keypad(),
            beeper=Chip8Beeper(enable_audio=enable_audio),
        )
        super().__init__(hardware=hardware, instructions_per_second=instructions_per_second)

        if rng is None:
            rng = random.Random(seed)
        self.trace = TraceRecorder(trace_capacity)
        self.cpu_core = Chip8CPU(Chip8State(memory=memory), clock=clock, rng=rng, trace=self.trace)
        self.set_cpu(self.cpu_core)
        self.program_info = None
        self.last_fault: Optional[CPUError] = None

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    @property
    def memory(self) -> MainRam:
        return self.hardware.memory

    @property
    def display(self) -> Chip8Display:
        return self.hardware.display

    @property
    def keypad(self) -> Chip8Keypad:
        return self.hardware.keyboard

    @property
    def beeper(self) -> Chip8Beeper:
        return self.hardware.beeper

    # ------------------------------------------------------------------
    # Program loading
    # ------------------------------------------------------------------
    def load_user_program(self, path: str | os.PathLike[str]) -> ProgramInfo:
        """Load a program image from disk, resetting the machine once it has been read."""

        file_path = Path(path)
        image = read_program(file_path)
        self._reset_machine()
        self.program_info = load_image(self.memory, image, name=file_path.stem.upper())
        self.program_info.path = file_path
        return self.program_info

    def load_program_bytes(self, data: bytes, name: str = "") -> ProgramInfo:
        image = bytes(data)
        check_image(image)
        self._reset_machine()
        self.program_info = load_image(self.memory, image, name=name)
        return self.program_info

    @classmethod
    def resolve_program_path(cls, path: str | os.PathLike[str] | None) -> Optional[Path]:
        """Return the explicit path, else ``$CHIP8EMU_ROM``, if it exists."""

        candidates: list[Path] = []
        if path is not None and str(path):
            candidates.append(Path(path))
        env_value = os.getenv(cls.ENV_PROGRAM_PATH)
        if env_value:
            candidates.append(Path(env_value))
        for candidate in candidates:
            if candidate.exists():
                return candidate
        return None

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------
    def tick(self, steps: int) -> int:
        try:
            executed = super().tick(steps)
        except CPUError as exc:
            self.last_fault = exc
            self._running_status = self.STATUS_PAUSED
            self._stop_periodic_tasks()
            self.beeper.stop()
            if debug_enabled("cpu"):
                debug_log("cpu", "fault: %s", exc)
            raise
        self.beeper.update(self.cpu_core.state.sound_timer)
        return executed

    def step_once(self) -> None:
        """Execute a single instruction regardless of the running status."""

        try:
            self._execute_step()
        except CPUError as exc:
            self.last_fault = exc
            self.beeper.stop()
            raise
        self.clock_count += 1
        self.beeper.update(self.cpu_core.state.sound_timer)

    def _reset_machine(self) -> None:
        self.cpu_core.reset()
        self.display.clear()
        self.keypad.clear()
        self.beeper.stop()
        self.last_fault = None

    def _run_reset(self) -> None:
        super()._run_reset()
        self.display.clear()
        self.keypad.clear()
        self.beeper.stop()
        self.last_fault = None
        if self.program_info is not None:
            self.memory.load_program(self.program_info.image)

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------
    def save_state(self, out: Dict[str, object]) -> None:
        super().save_state(out)
        self.cpu_core.state.save_state(out)
        out["display.bits"] = self.display.get_bits()
        out["program.name"] = self.program_info.name if self.program_info is not None else ""

    def load_state(self, data: Dict[str, object]) -> None:
        # Validate every section before touching the machine.
        checked = self.cpu_core.state.check_state(data)
        bits = data.get("display.bits", [])
        self.display.check_bits(bits)  # type: ignore[arg-type]
        super().check_state(data)

        self.cpu_core.state.apply_state(checked)
        self.display.load_bits(bits)  # type: ignore[arg-type]
        self.cpu_core.fault = None
        self.last_fault = None
        super().load_state(data)

    def snapshot(self) -> Dict[str, object]:
        data: Dict[str, object] = {"version": self.SNAPSHOT_VERSION}
        self.save_state(data)
        return data

    def restore(self, data: Dict[str, object]) -> None:
        if data.get("version") != self.SNAPSHOT_VERSION:
            raise ValueError("unsupported snapshot version")
        self.load_state(data)
