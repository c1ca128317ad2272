from __future__ import annotations

import json
from pathlib import Path

import pytest

from chip8emu.chip8.computer import Chip8Computer
from chip8emu.chip8.display import MAX_INTENSITY
from chip8emu.chip8.memory import MAX_PROGRAM_SIZE
from chip8emu.cpu.errors import StackUnderflowError
from chip8emu.emulator.file import ProgramLoadError


def assemble(*words: int) -> bytes:
    return b"".join(bytes([(word >> 8) & 0xFF, word & 0xFF]) for word in words)


class FakeClock:
    def __init__(self) -> None:
        self.now = 0

    def __call__(self) -> int:
        return self.now


def make_computer(*words: int) -> Chip8Computer:
    computer = Chip8Computer(seed=1, clock=FakeClock())
    computer.load_program_bytes(assemble(*words), name="TEST")
    computer.power_on()
    return computer


def test_runs_loaded_program() -> None:
    computer = make_computer(0x6005, 0x7003, 0x1204)
    assert computer.tick(3) == 3
    state = computer.cpu_core.state
    assert state.registers[0] == 8
    assert state.program_counter == 0x204
    assert computer.program_info is not None
    assert computer.program_info.name == "TEST"


def test_reset_reloads_program_image() -> None:
    # I = 0x200; V0 = 0x77; [I] = V0 overwrites the first byte of the program.
    computer = make_computer(0xA200, 0x6077, 0xF055, 0xD005, 0x1208)
    computer.tick(5)
    assert computer.memory.load8(0x200) == 0x77
    assert computer.display.lit_pixels() > 0

    computer.reset()

    state = computer.cpu_core.state
    assert computer.memory.load8(0x200) == 0xA2
    assert state.program_counter == 0x200
    assert state.registers[0] == 0
    assert computer.display.lit_pixels() == 0
    assert computer.clock_count == 0


def test_fault_pauses_machine_and_is_recorded() -> None:
    computer = make_computer(0x6001, 0x00EE)
    with pytest.raises(StackUnderflowError):
        computer.tick(10)
    assert isinstance(computer.last_fault, StackUnderflowError)
    assert computer.last_fault.pc == 0x202
    assert computer.get_running_status() == computer.STATUS_PAUSED
    assert computer.tick(1) == 0
    assert computer.trace.format_lines()[-1] == "0202: 00EE  RET"


def test_sound_timer_drives_beeper() -> None:
    computer = make_computer(0x6005, 0xF018, 0x1204)
    computer.tick(3)
    assert computer.beeper.active
    assert computer.beeper.history == [("tone_on", 5)]


def test_step_once_ignores_pause() -> None:
    computer = make_computer(0x6005, 0x6106)
    computer.pause()
    computer.step_once()
    assert computer.cpu_core.state.registers[0] == 5
    assert computer.clock_count == 1


def test_snapshot_round_trip_through_json() -> None:
    computer = make_computer(0x6005, 0xA000, 0xD015, 0x1206)
    computer.tick(4)
    data = json.loads(json.dumps(computer.snapshot()))

    computer.reset()
    computer.tick(1)
    computer.restore(data)

    state = computer.cpu_core.state
    assert state.registers[0] == 5
    assert state.program_counter == 0x206
    assert computer.display.get(5, 0) == 1
    assert computer.clock_count == 4


def test_restore_rejects_unknown_version() -> None:
    computer = make_computer(0x1200)
    data = computer.snapshot()
    data["version"] = 99
    with pytest.raises(ValueError):
        computer.restore(data)


def test_load_user_program_from_disk(tmp_path: Path) -> None:
    path = tmp_path / "loop.ch8"
    path.write_bytes(assemble(0x1200))
    computer = Chip8Computer(clock=FakeClock())
    info = computer.load_user_program(path)
    assert info.name == "LOOP"
    assert computer.memory.load16(0x200) == 0x1200


def test_resolve_program_path_prefers_argument(tmp_path: Path, monkeypatch) -> None:
    explicit = tmp_path / "a.ch8"
    explicit.write_bytes(b"\x12\x00")
    from_env = tmp_path / "b.ch8"
    from_env.write_bytes(b"\x12\x00")
    monkeypatch.setenv(Chip8Computer.ENV_PROGRAM_PATH, str(from_env))

    assert Chip8Computer.resolve_program_path(explicit) == explicit
    assert Chip8Computer.resolve_program_path(None) == from_env
    assert Chip8Computer.resolve_program_path(tmp_path / "missing.ch8") == from_env

    monkeypatch.delenv(Chip8Computer.ENV_PROGRAM_PATH)
    assert Chip8Computer.resolve_program_path(None) is None


def test_rejected_restore_leaves_machine_untouched() -> None:
    computer = make_computer(0x6007, 0x1202)
    computer.tick(2)
    data = computer.snapshot()
    data["cpu.registers"] = [0x42] * 16
    data["cpu.memory"] = [0xAA] * len(data["cpu.memory"])  # type: ignore[arg-type]
    data["display.bits"] = [[1] * 64]

    with pytest.raises(ValueError):
        computer.restore(data)

    state = computer.cpu_core.state
    assert state.registers[0] == 7
    assert state.registers[1] == 0
    assert computer.memory.load16(0x200) == 0x6007
    assert computer.display.lit_pixels() == 0
    assert computer.clock_count == 2


def test_restore_with_bad_status_changes_nothing() -> None:
    computer = make_computer(0x6007, 0x1202)
    computer.tick(2)
    data = computer.snapshot()
    data["cpu.registers"] = [0x42] * 16
    data["computer.runningStatus"] = 99

    with pytest.raises(ValueError):
        computer.restore(data)

    assert computer.cpu_core.state.registers[0] == 7
    assert computer.get_running_status() == computer.STATUS_RUNNING


def test_failed_load_keeps_previous_program(tmp_path: Path) -> None:
    good = tmp_path / "good.ch8"
    good.write_bytes(assemble(0x6001, 0x1202))
    computer = Chip8Computer(clock=FakeClock())
    computer.load_user_program(good)

    with pytest.raises(OSError):
        computer.load_user_program(tmp_path / "missing.ch8")
    with pytest.raises(ProgramLoadError):
        computer.load_program_bytes(bytes(MAX_PROGRAM_SIZE + 1))

    assert computer.program_info is not None
    assert computer.program_info.name == "GOOD"
    assert computer.memory.load16(0x200) == 0x6001


def test_fade_dims_erased_pixel_while_running() -> None:
    # Draw glyph 0 at (5, 0), erase it, then spin; refresh runs every 9 steps at 540 Hz.
    computer = Chip8Computer(seed=1, clock=FakeClock(), fade_step=0x40)
    computer.load_program_bytes(assemble(0x6005, 0xA000, 0xD015, 0xD015, 0x1208))
    computer.power_on()
    display = computer.display

    computer.tick(4)
    assert display.get(5, 0) == 0
    assert display.intensity(5, 0) == MAX_INTENSITY

    computer.tick(5)
    assert display.intensity(5, 0) == MAX_INTENSITY - 0x40

    computer.tick(36)
    assert display.intensity(5, 0) == 0


def test_fade_step_is_range_checked() -> None:
    with pytest.raises(ValueError):
        Chip8Computer(fade_step=-1)
    with pytest.raises(ValueError):
        Chip8Computer(fade_step=MAX_INTENSITY + 1)
