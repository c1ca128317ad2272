"""CHIP-8 emulator pygame application."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional

from chip8emu.chip8.computer import Chip8Computer
from chip8emu.chip8.display import MAX_INTENSITY
from chip8emu.chip8.keyboard import Chip8Keypad
from chip8emu.cpu.errors import CPUError
from chip8emu.emulator.file import ProgramInfo, ProgramLoadError
from chip8emu.frontend.debug_overlay import DebugOverlay

BASE_CAPTION = "CHIP-8 Emulator"

# Mapping from pygame key constants (lowercase ASCII) to keypad keys.
#   1 2 3 4      1 2 3 C
#   Q W E R  ->  4 5 6 D
#   A S D F      7 8 9 E
#   Z X C V      A 0 B F
KEYPAD_MAP: Dict[int, int] = {
    ord("1"): 0x1,
    ord("2"): 0x2,
    ord("3"): 0x3,
    ord("4"): 0xC,
    ord("q"): 0x4,
    ord("w"): 0x5,
    ord("e"): 0x6,
    ord("r"): 0xD,
    ord("a"): 0x7,
    ord("s"): 0x8,
    ord("d"): 0x9,
    ord("f"): 0xE,
    ord("z"): 0xA,
    ord("x"): 0x0,
    ord("c"): 0xB,
    ord("v"): 0xF,
}

DEFAULT_SPEED = 540
SNAPSHOT_DIR = Path("snapshots")
SNAPSHOT_FILE = "chip8emu.json"


def _steps_per_frame(speed: int, fps: int) -> int:
    return max(1, speed // fps)


def _handle_key_event(
    keypad: Chip8Keypad,
    key: int,
    pressed: bool,
    keymap: Mapping[int, int] = KEYPAD_MAP,
    *,
    paused: bool = False,
) -> None:
    """Forward a host key to the keypad. Presses are ignored while paused; releases never are."""

    mapped = keymap.get(key)
    if mapped is None or (pressed and paused):
        return
    if pressed:
        keypad.press(mapped)
    else:
        keypad.release(mapped)


def _load_keymap(path: Path) -> Dict[int, int]:
    """Read a ``{"host key": keypad key}`` JSON mapping.

    Host keys are single characters; keypad keys are ints or hex strings.
    """

    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("keymap must be a JSON object")
    keymap: Dict[int, int] = {}
    for host, value in data.items():
        if not isinstance(host, str) or len(host) != 1:
            raise ValueError(f"invalid host key: {host!r}")
        key = int(value, 16) if isinstance(value, str) else int(value)
        if not (0 <= key <= 0xF):
            raise ValueError(f"keypad key out of range for {host!r}: {value!r}")
        keymap[ord(host.lower())] = key
    return keymap


def _write_keymap_template(path: Path) -> None:
    template = {chr(host): f"{key:X}" for host, key in KEYPAD_MAP.items()}
    path.write_text(json.dumps(template, indent=2), encoding="utf-8")


def _save_snapshot(computer: Chip8Computer, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(computer.snapshot()))


def _load_snapshot(computer: Chip8Computer, path: Path) -> bool:
    if not path.exists():
        return False
    try:
        data = json.loads(path.read_text())
    except json.JSONDecodeError:
        return False
    computer.restore(data)
    return True


def _build_caption(info: Optional[ProgramInfo]) -> str:
    if info is None:
        return BASE_CAPTION
    return f"{BASE_CAPTION} | Program: {info.name}"


def _pygame_loop(
    program_path: Path,
    scale: int,
    fps: int,
    *,
    speed: int = DEFAULT_SPEED,
    enable_audio: bool = True,
    keymap: Mapping[int, int] = KEYPAD_MAP,
    seed: Optional[int] = None,
    fade: int = 0,
) -> None:
    import pygame  # type: ignore

    computer = Chip8Computer(
        instructions_per_second=speed,
        seed=seed,
        enable_audio=enable_audio,
        fade_step=fade,
    )
    try:
        program_info = computer.load_user_program(program_path)
    except (ProgramLoadError, OSError) as exc:
        raise RuntimeError(f"Failed to load program: {exc}") from exc
    computer.power_on()

    display = computer.display
    keypad = computer.keypad
    overlay = DebugOverlay(computer)
    snapshot_path = SNAPSHOT_DIR / SNAPSHOT_FILE
    overlay.set_snapshot_available(snapshot_path.exists())

    pygame.init()
    screen = pygame.display.set_mode((display.WIDTH * scale, display.HEIGHT * scale))
    base_caption = _build_caption(program_info)
    pygame.display.set_caption(base_caption)
    clock = pygame.time.Clock()

    steps_per_frame = _steps_per_frame(speed, fps)
    running = True
    debug_mode = False

    while running:
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                running = False
                continue

            if event.type == pygame.KEYDOWN:
                if event.key == pygame.K_ESCAPE:
                    debug_mode = not debug_mode
                    if debug_mode:
                        computer.pause()
                        overlay.capture_state()
                        overlay.set_status("Debug paused")
                    else:
                        computer.resume()
                        overlay.set_status("")
                    continue
                if event.key == pygame.K_F5:
                    _save_snapshot(computer, snapshot_path)
                    overlay.set_snapshot_available(True)
                    overlay.set_status("Snapshot saved")
                    continue
                if event.key == pygame.K_F9:
                    try:
                        restored = _load_snapshot(computer, snapshot_path)
                    except ValueError as exc:
                        overlay.set_status(f"Snapshot rejected: {exc}")
                    else:
                        overlay.set_status("Snapshot restored" if restored else "No snapshot")
                        if restored and not debug_mode:
                            computer.resume()
                    overlay.capture_state()
                    continue
                if debug_mode:
                    if event.key == pygame.K_q:
                        running = False
                    elif event.key == pygame.K_SPACE:
                        debug_mode = False
                        computer.resume()
                        overlay.set_status("Resumed")
                    elif event.key == pygame.K_n:
                        if computer.cpu_core.halted:
                            overlay.set_status("CPU halted")
                        else:
                            try:
                                computer.step_once()
                            except CPUError as exc:
                                overlay.set_status(f"Fault: {exc}")
                            else:
                                overlay.set_status("Stepped")
                        overlay.capture_state()
                    continue
                _handle_key_event(keypad, event.key, True, keymap)
            elif event.type == pygame.KEYUP:
                _handle_key_event(keypad, event.key, False, keymap, paused=debug_mode)

        if not debug_mode:
            try:
                computer.tick(steps_per_frame)
            except CPUError:
                debug_mode = True
                overlay.capture_state()

        surface = display.render_pygame_surface(scale)
        screen.blit(surface, (0, 0))
        if debug_mode:
            overlay.render(screen)
            pygame.display.set_caption(f"{base_caption} | Paused")
        else:
            pygame.display.set_caption(base_caption)

        pygame.display.flip()
        clock.tick(fps)

    computer.beeper.stop()
    pygame.quit()


def main(argv: Iterable[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="CHIP-8 emulator")
    parser.add_argument(
        "program",
        nargs="?",
        default=None,
        help=f"CHIP-8 program image (.ch8). Defaults to ${Chip8Computer.ENV_PROGRAM_PATH}",
    )
    parser.add_argument(
        "--write-keymap-template",
        metavar="PATH",
        help="Write a JSON keymap template to the given path and exit",
    )
    parser.add_argument("--scale", type=int, default=10, help="Integer scaling factor for display (default: 10)")
    parser.add_argument("--fps", type=int, default=60, help="Target frames per second")
    parser.add_argument(
        "--speed",
        type=int,
        default=DEFAULT_SPEED,
        help=f"Instructions executed per second (default: {DEFAULT_SPEED})",
    )
    parser.add_argument("--audio", dest="audio", action="store_true", help="Enable the beeper (requires pygame mixer)")
    parser.add_argument("--no-audio", dest="audio", action="store_false", help="Disable the beeper")
    parser.set_defaults(audio=True)
    parser.add_argument("--keymap", type=str, default=None, help="Path to JSON file mapping host keys to keypad keys")
    parser.add_argument("--seed", type=int, default=None, help="Seed for the RND instruction")
    parser.add_argument(
        "--fade",
        type=int,
        default=0,
        metavar="STEP",
        help="Intensity lost per frame by erased pixels, 0-255 (default: 0, no fade)",
    )
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.write_keymap_template:
        _write_keymap_template(Path(args.write_keymap_template))
        return

    if args.scale <= 0:
        raise SystemExit("scale must be positive")
    if args.fps <= 0:
        raise SystemExit("fps must be positive")
    if args.speed <= 0:
        raise SystemExit("speed must be positive")
    if not (0 <= args.fade <= MAX_INTENSITY):
        raise SystemExit(f"fade must be within 0..{MAX_INTENSITY}")

    keymap: Mapping[int, int] = KEYPAD_MAP
    if args.keymap:
        try:
            keymap = _load_keymap(Path(args.keymap))
        except (OSError, ValueError) as exc:
            raise SystemExit(f"Failed to load keymap: {exc}")

    program_path = Chip8Computer.resolve_program_path(args.program)
    if program_path is None:
        raise SystemExit(f"no program found; pass a path or set ${Chip8Computer.ENV_PROGRAM_PATH}")

    try:
        _pygame_loop(
            program_path,
            args.scale,
            args.fps,
            speed=args.speed,
            enable_audio=args.audio,
            keymap=keymap,
            seed=args.seed,
            fade=args.fade,
        )
    except RuntimeError as exc:
        raise SystemExit(str(exc))


if __name__ == "__main__":
    main()
