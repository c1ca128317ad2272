"""Headless runner for CHIP-8 program debugging workflows."""

from __future__ import annotations

import argparse
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Sequence, Tuple

from chip8emu.chip8.computer import Chip8Computer
from chip8emu.cpu.errors import CPUError
from chip8emu.emulator.file import ProgramLoadError
from chip8emu.memory import ADDRESS_SPACE

DEFAULT_MAX_STEPS = 100_000
EXECUTION_CHUNK = 64
ADDRESS_MASK = ADDRESS_SPACE - 1


@dataclass(frozen=True)
class DumpRange:
    """Inclusive memory range used for dumping."""

    start: int
    end: int

    def iter_addresses(self) -> Iterable[int]:
        for address in range(self.start, self.end + 1):
            yield address & ADDRESS_MASK


def _parse_hex(value: str) -> int:
    text = value.strip().lower()
    if text.startswith("0x"):
        text = text[2:]
    if not text:
        raise ValueError("empty hexadecimal value")
    result = int(text, 16)
    if not (0 <= result <= ADDRESS_MASK):
        raise ValueError("hex value out of range")
    return result


def _parse_key(value: str) -> int:
    text = value.strip().lower()
    if text.startswith("0x"):
        text = text[2:]
    if len(text) != 1:
        raise ValueError("key must be a single hex digit")
    return int(text, 16)


def _parse_range(spec: str) -> DumpRange:
    start_str, sep, end_str = spec.partition(":")
    if not sep:
        raise ValueError("range specification must contain ':'")
    start = _parse_hex(start_str)
    end = _parse_hex(end_str)
    if end < start:
        raise ValueError("range end must be >= start")
    return DumpRange(start, end)


def _merge_ranges(ranges: Sequence[DumpRange]) -> List[DumpRange]:
    if not ranges:
        return [DumpRange(0x000, ADDRESS_MASK)]
    ordered = sorted(ranges, key=lambda r: (r.start, r.end))
    merged: List[DumpRange] = []
    for current in ordered:
        if not merged:
            merged.append(current)
            continue
        last = merged[-1]
        if current.start <= last.end + 1:
            merged[-1] = DumpRange(last.start, max(last.end, current.end))
        else:
            merged.append(current)
    return merged


def _format_hex_dump(memory, dump_ranges: Sequence[DumpRange]) -> str:
    lines: List[str] = []
    header = "ADDR " + " ".join(f"+{offset:X}" for offset in range(16))
    for index, dump_range in enumerate(dump_ranges):
        if index:
            lines.append("")
        lines.append(header)
        start_line = dump_range.start & ~0x0F
        end_line = dump_range.end | 0x0F
        for base in range(start_line, end_line + 1, 16):
            row = [f"{base & ADDRESS_MASK:04X}"]
            for offset in range(16):
                address = (base + offset) & ADDRESS_MASK
                value = memory.load8(address) & 0xFF
                row.append(f"{value:02X}")
            lines.append(" ".join(row))
    return "\n".join(lines)


def _write_dump(memory, dump_ranges: Sequence[DumpRange], *, target: Path | None, fmt: str) -> None:
    ranges = _merge_ranges(dump_ranges)
    if fmt == "bin":
        data = bytearray()
        for dump_range in ranges:
            for address in dump_range.iter_addresses():
                data.append(memory.load8(address) & 0xFF)
        if target is None:
            sys.stdout.buffer.write(bytes(data))
            return
        target.write_bytes(bytes(data))
        return

    text = _format_hex_dump(memory, ranges)
    if target is None:
        print(text)
    else:
        target.write_text(text + "\n")


def _execute_program(
    computer: Chip8Computer,
    *,
    max_steps: int | None,
    breakpoints: Sequence[int],
    max_seconds: float | None,
) -> Tuple[int, bool, bool, bool]:
    state = computer.cpu_core.state
    remaining = max_steps
    break_set = {value & ADDRESS_MASK for value in breakpoints}
    break_hit = False
    timeout_hit = False
    step_hit = False
    deadline: float | None = None
    if max_seconds is not None and max_seconds >= 0:
        deadline = time.monotonic() + max_seconds
    executed_total = 0

    while remaining is None or remaining > 0:
        # Breakpoints are checked per instruction, so run one at a time while any are set.
        chunk = 1 if break_set else EXECUTION_CHUNK
        step = chunk if remaining is None else min(chunk, remaining)
        executed = computer.tick(step)
        if executed <= 0:
            break
        executed_total += executed
        if remaining is not None:
            remaining -= executed
        if break_set and state.program_counter in break_set:
            break_hit = True
            break
        if deadline is not None and time.monotonic() >= deadline:
            timeout_hit = True
            break
        if remaining is not None and remaining <= 0:
            step_hit = True
            break

    return executed_total, break_hit, timeout_hit, step_hit


def _report_fault(computer: Chip8Computer, fault: CPUError) -> None:
    pc = f"0x{fault.pc:04X}" if fault.pc is not None else "?"
    opcode = f"0x{fault.opcode:04X}" if fault.opcode is not None else "?"
    print(f"CPU fault: {fault}", file=sys.stderr)
    print(f"  pc={pc} opcode={opcode}", file=sys.stderr)
    lines = computer.trace.format_lines()
    if lines:
        print("Recent instructions:", file=sys.stderr)
        for line in lines:
            print(f"  {line}", file=sys.stderr)


def _build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chip8emu-debug-runner",
        description="Headless CHIP-8 runner for program diagnostics.",
    )
    parser.add_argument("--program", type=str, required=True, help="CHIP-8 program image (.ch8)")
    parser.add_argument(
        "--steps",
        type=int,
        default=DEFAULT_MAX_STEPS,
        help="Maximum instructions to execute (0 or negative disables the limit)",
    )
    parser.add_argument(
        "--break-pc",
        action="append",
        default=[],
        help="Break when PC reaches the given hex address (repeatable)",
    )
    parser.add_argument(
        "--seconds",
        type=float,
        default=None,
        help="Maximum wall-clock seconds to run before dumping memory",
    )
    parser.add_argument(
        "--dump",
        type=str,
        default=None,
        help="File path for memory dump (defaults to stdout)",
    )
    parser.add_argument(
        "--dump-range",
        action="append",
        default=[],
        help="Memory range to dump in START:END hex form (inclusive). Repeat to add multiple ranges.",
    )
    parser.add_argument(
        "--dump-format",
        choices=("hex", "bin"),
        default="hex",
        help="Dump format (hex table or raw binary)",
    )
    parser.add_argument(
        "--press",
        action="append",
        default=[],
        help="Hold the given keypad key (hex digit) for the whole run (repeatable)",
    )
    parser.add_argument("--screen", action="store_true", help="Print the framebuffer after the run")
    parser.add_argument("--seed", type=int, default=None, help="Seed for the RND instruction")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_argument_parser()
    args = parser.parse_args(argv)

    breakpoints: List[int] = []
    for spec in args.break_pc:
        try:
            breakpoints.append(_parse_hex(spec))
        except ValueError as exc:
            parser.error(f"invalid breakpoint address '{spec}': {exc}")

    dump_ranges: List[DumpRange] = []
    for spec in args.dump_range:
        try:
            dump_ranges.append(_parse_range(spec))
        except ValueError as exc:
            parser.error(f"invalid dump range '{spec}': {exc}")

    keys: List[int] = []
    for spec in args.press:
        try:
            keys.append(_parse_key(spec))
        except ValueError as exc:
            parser.error(f"invalid key '{spec}': {exc}")

    computer = Chip8Computer(seed=args.seed, enable_audio=False)

    try:
        computer.load_user_program(args.program)
    except (OSError, ProgramLoadError) as exc:
        print(f"Failed to load program: {exc}", file=sys.stderr)
        return 1

    computer.power_on()
    for key in keys:
        computer.keypad.press(key)

    step_limit = args.steps if args.steps > 0 else None

    fault: CPUError | None = None
    break_hit = timeout_hit = step_hit = False
    try:
        _, break_hit, timeout_hit, step_hit = _execute_program(
            computer,
            max_steps=step_limit,
            breakpoints=breakpoints,
            max_seconds=args.seconds,
        )
    except CPUError as exc:
        fault = exc

    dump_target = Path(args.dump) if args.dump is not None else None
    if args.dump is not None or dump_ranges:
        _write_dump(computer.memory, dump_ranges, target=dump_target, fmt=args.dump_format)
    if args.screen:
        sys.stdout.write(computer.display.dump())

    if fault is not None:
        _report_fault(computer, fault)
        return 4
    if break_hit:
        return 0
    if timeout_hit:
        print("Execution stopped: time limit reached", file=sys.stderr)
        return 3
    if step_hit:
        print("Execution stopped: step limit reached", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
