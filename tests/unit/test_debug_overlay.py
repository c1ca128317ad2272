"""Tests for the pygame debug overlay."""

from __future__ import annotations

import pytest

from chip8emu.chip8.computer import Chip8Computer
from chip8emu.cpu.errors import StackUnderflowError
from chip8emu.frontend.debug_overlay import DebugOverlay


@pytest.fixture(autouse=True)
def _set_dummy_video(monkeypatch):
    monkeypatch.setenv("SDL_VIDEODRIVER", "dummy")


def _make_computer(*words: int) -> Chip8Computer:
    image = b"".join(bytes([(word >> 8) & 0xFF, word & 0xFF]) for word in words)
    computer = Chip8Computer(clock=lambda: 0)
    computer.load_program_bytes(image, name="DEMO")
    computer.power_on()
    return computer


def test_capture_state_describes_cpu_stack_and_trace() -> None:
    computer = _make_computer(0x6A2B, 0x2206, 0x0000, 0x1206)
    computer.keypad.press(0xE)
    computer.tick(3)

    overlay = DebugOverlay(computer)
    overlay.capture_state()
    sections = overlay.lines()

    assert sections["CPU"][0].startswith("PC:0206")
    assert "VA:2B" in sections["CPU"][3]
    assert sections["Stack"] == ["0:0204"]
    assert sections["Program"][0] == "Name: DEMO"
    assert sections["Keypad"] == ["E"]
    assert sections["Trace"][-1] == "0206: 1206  JP 0x206"


def test_status_header_reports_fault() -> None:
    computer = _make_computer(0x00EE)
    overlay = DebugOverlay(computer)
    overlay.set_status("Debug paused")
    assert overlay.status_header() == "Debug paused"

    with pytest.raises(StackUnderflowError):
        computer.tick(1)
    overlay.set_snapshot_available(True)
    overlay.capture_state()
    assert overlay.status_header().startswith("FAULT: return with empty call stack")
    assert overlay.status_header().endswith("[snapshot]")
    assert "STATUS:HALTED" in overlay.lines()["CPU"]


def test_debug_overlay_renders_surface() -> None:
    pygame = pytest.importorskip("pygame")

    computer = _make_computer(0x1200)
    computer.tick(1)
    overlay = DebugOverlay(computer)

    pygame.display.init()
    try:
        screen = pygame.Surface((640, 320))
        overlay.render(screen)
        assert screen.get_size() == (640, 320)
    finally:
        pygame.display.quit()
