"""Debug overlay rendering for the pygame app."""

from __future__ import annotations

from typing import Iterable, Optional


class DebugOverlay:
    """Collects and renders debug information for the CHIP-8 app."""

    TRACE_LINES = 12
    INSTRUCTIONS = [
        "ESC: toggle debug",
        "SPACE: resume",
        "N: step",
        "F5: save snapshot",
        "F9: load snapshot",
        "Q: quit",
    ]

    def __init__(self, computer) -> None:
        self._computer = computer
        self._font = None
        self._line_height = 0
        self._cached_cpu_lines: list[str] = []
        self._cached_stack_lines: list[str] = []
        self._cached_program: list[str] = []
        self._cached_keypad: list[str] = []
        self._status_message: str = ""
        self._snapshot_available: bool = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def capture_state(self) -> None:
        """Snapshot CPU, stack and program state for later rendering."""

        cpu = getattr(self._computer, "cpu_core", None)
        program_info = getattr(self._computer, "program_info", None)
        keypad = getattr(self._computer, "keypad", None)

        self._cached_cpu_lines = self._snapshot_cpu(cpu)
        self._cached_stack_lines = self._snapshot_stack(cpu)
        self._cached_program = self._snapshot_program(program_info)
        self._cached_keypad = self._snapshot_keypad(keypad)

    def lines(self) -> dict[str, list[str]]:
        """Sections as plain text, in render order."""

        return {
            "CPU": list(self._cached_cpu_lines),
            "Stack": list(self._cached_stack_lines),
            "Program": list(self._cached_program),
            "Keypad": list(self._cached_keypad),
            "Trace": self._format_trace_lines(),
        }

    def render(self, screen) -> None:
        """Render the overlay onto the given pygame surface."""

        import pygame  # type: ignore

        self._ensure_font()
        self.capture_state()

        overlay = pygame.Surface(screen.get_size(), pygame.SRCALPHA)
        overlay.fill((0, 0, 0, 196))

        x_cursor = 12
        y_cursor = 12
        column_gap = max(8, self._line_height // 2)

        left_sections = [
            ("CPU", self._cached_cpu_lines),
            ("Stack", self._cached_stack_lines),
            ("Program", self._cached_program),
        ]
        left_width = self._measure_sections(left_sections) + 24

        if self._font is not None:
            status_surface = self._font.render(self.status_header(), True, (173, 216, 230))
            overlay.blit(status_surface, (x_cursor, y_cursor))
            y_cursor += self._line_height + 4

        top = y_cursor
        y_cursor = self._render_section(overlay, x_cursor, y_cursor, "CPU", self._cached_cpu_lines)
        y_cursor = self._render_section(overlay, x_cursor, y_cursor + column_gap, "Stack", self._cached_stack_lines)
        self._render_section(overlay, x_cursor, y_cursor + column_gap, "Program", self._cached_program)

        right_x = x_cursor + left_width
        right_y = self._render_section(overlay, right_x, top, "Trace", self._format_trace_lines())
        right_y = self._render_section(overlay, right_x, right_y + column_gap, "Keypad", self._cached_keypad)
        self._render_section(overlay, right_x, right_y + column_gap, "Controls", self.INSTRUCTIONS)

        screen.blit(overlay, (0, 0))

    def set_status(self, message: str) -> None:
        self._status_message = message

    def set_snapshot_available(self, available: bool) -> None:
        self._snapshot_available = available

    def status_header(self) -> str:
        fault = getattr(self._computer, "last_fault", None)
        base = self._status_message or "Debug menu"
        if fault is not None:
            base = f"FAULT: {fault}"
        suffix = " [snapshot]" if self._snapshot_available else ""
        return base + suffix

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _ensure_font(self) -> None:
        if self._font is not None:
            return
        import pygame  # type: ignore

        pygame.font.init()
        self._font = pygame.font.SysFont("Courier", 12)
        self._line_height = self._font.get_linesize()

    def _render_section(self, surface, x: int, y: int, title: str, lines: Iterable[str]) -> int:
        if self._font is None:
            return y
        title_surface = self._font.render(title, True, (255, 215, 0))
        surface.blit(title_surface, (x, y))
        cursor_y = y + self._line_height
        for line in lines:
            rendered = self._font.render(line, True, (230, 230, 230))
            surface.blit(rendered, (x, cursor_y))
            cursor_y += self._line_height
        return cursor_y

    def _measure_sections(self, sections: Iterable[tuple[str, Iterable[str]]]) -> int:
        if self._font is None:
            return 0
        max_width = 0
        for title, lines in sections:
            max_width = max(max_width, self._font.size(title)[0])
            for line in lines:
                max_width = max(max_width, self._font.size(line)[0])
        return max_width

    def _snapshot_cpu(self, cpu) -> list[str]:
        if cpu is None:
            return ["CPU not attached"]
        state = cpu.state
        regs = state.registers
        lines = [
            f"PC:{state.program_counter:04X}  I:{state.register_i:04X}  SP:{state.stack_pointer:X}",
            f"DT:{state.delay_timer:02X}  ST:{state.sound_timer:02X}",
            " ".join(f"V{index:X}:{regs[index]:02X}" for index in range(0, 8)),
            " ".join(f"V{index:X}:{regs[index]:02X}" for index in range(8, 16)),
        ]
        if cpu.halted:
            lines.append("STATUS:HALTED")
        return lines

    def _snapshot_stack(self, cpu) -> list[str]:
        if cpu is None:
            return ["Stack unavailable"]
        state = cpu.state
        if state.stack_pointer == 0:
            return ["<empty>"]
        return [f"{depth:X}:{state.stack[depth]:04X}" for depth in reversed(range(state.stack_pointer))]

    def _snapshot_program(self, info) -> list[str]:
        if info is None:
            return ["No program loaded"]
        lines = [f"Name: {info.name or '-'}", f"Size: {info.size} bytes"]
        if info.path is not None:
            lines.append(f"File: {info.path.name}")
        for region in info.address_regions[:4]:
            comment = f" ({region.comment})" if region.comment else ""
            lines.append(f"  {region.start:03X}-{region.end:03X}{comment}")
        return lines

    def _snapshot_keypad(self, keypad) -> list[str]:
        if keypad is None:
            return ["Keypad unavailable"]
        pressed = keypad.pressed_keys()
        if not pressed:
            return ["-"]
        return [" ".join(f"{key:X}" for key in pressed)]

    def _format_trace_lines(self) -> list[str]:
        trace = getattr(self._computer, "trace", None)
        entries: Optional[list[str]] = trace.format_lines() if trace is not None else None
        if not entries:
            return ["<empty>"]
        return entries[-self.TRACE_LINES:]
