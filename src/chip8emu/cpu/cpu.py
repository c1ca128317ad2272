"""CHIP-8 CPU: execution state and the fetch/decode/execute step."""

from __future__ import annotations

from dataclasses import dataclass, field
import random
import time
from typing import Callable, Dict, List, Optional, Protocol

from chip8emu.chip8.memory import PROGRAM_START_ADDRESS, MainRam, glyph_address
from chip8emu.cpu.errors import (
    CPUError,
    CPUHaltedError,
    InvalidGlyphError,
    MemoryAccessError,
    StackOverflowError,
    StackUnderflowError,
)
from chip8emu.cpu.instructions import Instruction, Opcode, decode
from chip8emu.utils import TraceRecorder, debug_enabled, debug_log

REGISTER_COUNT = 16
FLAG_REGISTER = 0xF
STACK_DEPTH = 16
SCREEN_WIDTH = 64
SCREEN_HEIGHT = 32
TIMER_PERIOD_NS = 16_666_000  # 60 Hz


class Keypad(Protocol):
    def is_pressed(self, key: int) -> bool:
        ...

    def first_pressed(self) -> Optional[int]:
        ...


class Framebuffer(Protocol):
    def get(self, x: int, y: int) -> int:
        ...

    def set(self, x: int, y: int, bit: int) -> None:
        ...

    def clear(self) -> None:
        ...


@dataclass
class Chip8State:
    """Everything a running program can observe or change."""

    memory: MainRam = field(default_factory=MainRam)
    registers: List[int] = field(default_factory=lambda: [0] * REGISTER_COUNT)
    register_i: int = 0
    delay_timer: int = 0
    sound_timer: int = 0
    program_counter: int = PROGRAM_START_ADDRESS
    stack: List[int] = field(default_factory=lambda: [0] * STACK_DEPTH)
    stack_pointer: int = 0
    last_tick: int = 0

    def reset(self, now: int) -> None:
        self.memory.reset()
        self.registers = [0] * REGISTER_COUNT
        self.register_i = 0
        self.delay_timer = 0
        self.sound_timer = 0
        self.program_counter = PROGRAM_START_ADDRESS
        self.stack = [0] * STACK_DEPTH
        self.stack_pointer = 0
        self.last_tick = now

    # ------------------------------------------------------------------
    # State persistence helpers
    # ------------------------------------------------------------------
    def save_state(self, out: Dict[str, object]) -> None:
        out["cpu.memory"] = self.memory.dump()
        out["cpu.registers"] = list(self.registers)
        out["cpu.registerI"] = int(self.register_i)
        out["cpu.delayTimer"] = int(self.delay_timer)
        out["cpu.soundTimer"] = int(self.sound_timer)
        out["cpu.programCounter"] = int(self.program_counter)
        out["cpu.stack"] = list(self.stack)
        out["cpu.stackPointer"] = int(self.stack_pointer)

    def check_state(self, data: Dict[str, object]) -> Dict[str, object]:
        """Validate snapshot fields and return them normalised, without applying."""

        memory = [int(value) & 0xFF for value in data.get("cpu.memory", [])]  # type: ignore[union-attr]
        if len(memory) != self.memory.length:
            raise ValueError("snapshot memory size does not match")
        registers = [int(value) & 0xFF for value in data.get("cpu.registers", [])]  # type: ignore[union-attr]
        if len(registers) != REGISTER_COUNT:
            raise ValueError("snapshot must hold 16 registers")
        stack = [int(value) & 0xFFFF for value in data.get("cpu.stack", [])]  # type: ignore[union-attr]
        if len(stack) != STACK_DEPTH:
            raise ValueError("snapshot must hold 16 stack entries")
        stack_pointer = int(data.get("cpu.stackPointer", 0))  # type: ignore[arg-type]
        if not (0 <= stack_pointer <= STACK_DEPTH):
            raise ValueError("snapshot stack pointer out of range")
        return {
            "memory": memory,
            "registers": registers,
            "register_i": int(data.get("cpu.registerI", 0)) & 0xFFFF,  # type: ignore[arg-type]
            "delay_timer": int(data.get("cpu.delayTimer", 0)) & 0xFF,  # type: ignore[arg-type]
            "sound_timer": int(data.get("cpu.soundTimer", 0)) & 0xFF,  # type: ignore[arg-type]
            "program_counter": int(data.get("cpu.programCounter", PROGRAM_START_ADDRESS)) & 0xFFFF,  # type: ignore[arg-type]
            "stack": stack,
            "stack_pointer": stack_pointer,
        }

    def load_state(self, data: Dict[str, object]) -> None:
        self.apply_state(self.check_state(data))

    def apply_state(self, checked: Dict[str, object]) -> None:
        self.memory.store_block(0, checked["memory"])  # type: ignore[arg-type]
        self.registers = list(checked["registers"])  # type: ignore[call-overload]
        self.register_i = checked["register_i"]  # type: ignore[assignment]
        self.delay_timer = checked["delay_timer"]  # type: ignore[assignment]
        self.sound_timer = checked["sound_timer"]  # type: ignore[assignment]
        self.program_counter = checked["program_counter"]  # type: ignore[assignment]
        self.stack = list(checked["stack"])  # type: ignore[call-overload]
        self.stack_pointer = checked["stack_pointer"]  # type: ignore[assignment]


class Chip8CPU:
    """Interpreter for the 35 CHIP-8 opcodes.

    ``step`` executes exactly one instruction against the keypad and display
    handed in by the driver. Timers count down at 60 Hz of wall-clock time
    measured with ``clock`` (nanoseconds), independent of the step rate.
    """

    def __init__(
        self,
        state: Optional[Chip8State] = None,
        *,
        clock: Callable[[], int] = time.perf_counter_ns,
        rng: Optional[random.Random] = None,
        trace: Optional[TraceRecorder] = None,
    ) -> None:
        self.state = state if state is not None else Chip8State()
        self._clock = clock
        self._rng = rng if rng is not None else random.Random()
        self.trace = trace
        self.fault: Optional[CPUError] = None
        self.state.last_tick = self._clock()
        self._debug_cpu = debug_enabled("cpu")
        self._keypad: Optional[Keypad] = None
        self._display: Optional[Framebuffer] = None
        self._opcode_table: Dict[Opcode, Callable[[Instruction], None]] = {}
        self._init_opcode_table()

    @property
    def halted(self) -> bool:
        return self.fault is not None

    def reset(self) -> None:
        self.state.reset(self._clock())
        self.fault = None

    def load(self, image: bytes) -> None:
        self.state.memory.load_program(image)

    # ------------------------------------------------------------------
    # Step
    # ------------------------------------------------------------------
    def step(self, keypad: Keypad, display: Framebuffer) -> Instruction:
        """Fetch, decode and execute one instruction, then service timers."""

        if self.fault is not None:
            raise CPUHaltedError(f"CPU halted after fault: {self.fault}")

        state = self.state
        pc = state.program_counter
        word: Optional[int] = None
        try:
            word = state.memory.load16(pc)
            state.program_counter = (pc + 2) & 0xFFFF
            instruction = decode(word)
            if self.trace is not None:
                self.trace.record(pc, word, instruction.mnemonic())
            if self._debug_cpu:
                debug_log("cpu", "pc=%04x op=%04x %s", pc, word, instruction.mnemonic())
            self._keypad = keypad
            self._display = display
            self._opcode_table[instruction.opcode](instruction)
        except CPUError as exc:
            exc.attach(pc, word)
            self.fault = exc
            raise
        finally:
            self._keypad = None
            self._display = None

        self._tick_timers()
        return instruction

    def _tick_timers(self) -> None:
        state = self.state
        now = self._clock()
        if now - state.last_tick < TIMER_PERIOD_NS:
            return
        if state.delay_timer > 0:
            state.delay_timer -= 1
        if state.sound_timer > 0:
            state.sound_timer -= 1
        state.last_tick = now
        if debug_enabled("timer"):
            debug_log("timer", "dt=%d st=%d", state.delay_timer, state.sound_timer)

    # ------------------------------------------------------------------
    # Dispatch table
    # ------------------------------------------------------------------
    def _init_opcode_table(self) -> None:
        self._opcode_table.clear()
        self._register_opcode(Opcode.SYS, self._opcode_jp)
        self._register_opcode(Opcode.CLS, self._opcode_cls)
        self._register_opcode(Opcode.RET, self._opcode_ret)
        self._register_opcode(Opcode.JP, self._opcode_jp)
        self._register_opcode(Opcode.CALL, self._opcode_call)
        self._register_opcode(Opcode.SE, self._opcode_se)
        self._register_opcode(Opcode.SNE, self._opcode_sne)
        self._register_opcode(Opcode.SE_VY, self._opcode_se_vy)
        self._register_opcode(Opcode.LD, self._opcode_ld)
        self._register_opcode(Opcode.ADD, self._opcode_add)
        self._register_opcode(Opcode.LD_VY, self._opcode_ld_vy)
        self._register_opcode(Opcode.OR, self._opcode_or)
        self._register_opcode(Opcode.AND, self._opcode_and)
        self._register_opcode(Opcode.XOR, self._opcode_xor)
        self._register_opcode(Opcode.ADD_VY, self._opcode_add_vy)
        self._register_opcode(Opcode.SUB, self._opcode_sub)
        self._register_opcode(Opcode.SHR, self._opcode_shr)
        self._register_opcode(Opcode.SUBN, self._opcode_subn)
        self._register_opcode(Opcode.SHL, self._opcode_shl)
        self._register_opcode(Opcode.SNE_VY, self._opcode_sne_vy)
        self._register_opcode(Opcode.LD_I, self._opcode_ld_i)
        self._register_opcode(Opcode.JP_V0, self._opcode_jp_v0)
        self._register_opcode(Opcode.RND, self._opcode_rnd)
        self._register_opcode(Opcode.DRW, self._opcode_drw)
        self._register_opcode(Opcode.SKP, self._opcode_skp)
        self._register_opcode(Opcode.SKNP, self._opcode_sknp)
        self._register_opcode(Opcode.LD_VX_DT, self._opcode_ld_vx_dt)
        self._register_opcode(Opcode.LD_VX_K, self._opcode_ld_vx_k)
        self._register_opcode(Opcode.LD_DT_VX, self._opcode_ld_dt_vx)
        self._register_opcode(Opcode.LD_ST_VX, self._opcode_ld_st_vx)
        self._register_opcode(Opcode.ADD_I, self._opcode_add_i)
        self._register_opcode(Opcode.LD_F, self._opcode_ld_f)
        self._register_opcode(Opcode.LD_B, self._opcode_ld_b)
        self._register_opcode(Opcode.LD_MEM_VX, self._opcode_ld_mem_vx)
        self._register_opcode(Opcode.LD_VX_MEM, self._opcode_ld_vx_mem)

    def _register_opcode(self, opcode: Opcode, handler: Callable[[Instruction], None]) -> None:
        self._opcode_table[opcode] = handler

    def _skip_if(self, condition: bool) -> None:
        if condition:
            self.state.program_counter = (self.state.program_counter + 2) & 0xFFFF

    def _set_flag(self, value: int) -> None:
        self.state.registers[FLAG_REGISTER] = value & 0x01

    # ------------------------------------------------------------------
    # Control transfer
    # ------------------------------------------------------------------
    def _opcode_jp(self, ins: Instruction) -> None:
        self.state.program_counter = ins.nnn

    def _opcode_call(self, ins: Instruction) -> None:
        state = self.state
        if state.stack_pointer >= STACK_DEPTH:
            raise StackOverflowError(f"call stack overflow (depth {STACK_DEPTH})")
        state.stack[state.stack_pointer] = state.program_counter
        state.stack_pointer += 1
        state.program_counter = ins.nnn

    def _opcode_ret(self, ins: Instruction) -> None:
        state = self.state
        if state.stack_pointer <= 0:
            raise StackUnderflowError("return with empty call stack")
        state.stack_pointer -= 1
        state.program_counter = state.stack[state.stack_pointer]

    def _opcode_jp_v0(self, ins: Instruction) -> None:
        self.state.program_counter = ins.nnn + self.state.registers[0]

    # ------------------------------------------------------------------
    # Conditional skips
    # ------------------------------------------------------------------
    def _opcode_se(self, ins: Instruction) -> None:
        self._skip_if(self.state.registers[ins.x] == ins.kk)

    def _opcode_sne(self, ins: Instruction) -> None:
        self._skip_if(self.state.registers[ins.x] != ins.kk)

    def _opcode_se_vy(self, ins: Instruction) -> None:
        regs = self.state.registers
        self._skip_if(regs[ins.x] == regs[ins.y])

    def _opcode_sne_vy(self, ins: Instruction) -> None:
        regs = self.state.registers
        self._skip_if(regs[ins.x] != regs[ins.y])

    # ------------------------------------------------------------------
    # Loads and arithmetic
    # ------------------------------------------------------------------
    def _opcode_ld(self, ins: Instruction) -> None:
        self.state.registers[ins.x] = ins.kk

    def _opcode_add(self, ins: Instruction) -> None:
        regs = self.state.registers
        regs[ins.x] = (regs[ins.x] + ins.kk) & 0xFF

    def _opcode_ld_vy(self, ins: Instruction) -> None:
        regs = self.state.registers
        regs[ins.x] = regs[ins.y]

    def _opcode_or(self, ins: Instruction) -> None:
        regs = self.state.registers
        regs[ins.x] |= regs[ins.y]

    def _opcode_and(self, ins: Instruction) -> None:
        regs = self.state.registers
        regs[ins.x] &= regs[ins.y]

    def _opcode_xor(self, ins: Instruction) -> None:
        regs = self.state.registers
        regs[ins.x] ^= regs[ins.y]

    # Flag-producing ops write VF before the result, so Vx wins when x == F.
    def _opcode_add_vy(self, ins: Instruction) -> None:
        regs = self.state.registers
        total = regs[ins.x] + regs[ins.y]
        self._set_flag(1 if total > 0xFF else 0)
        regs[ins.x] = total & 0xFF

    def _opcode_sub(self, ins: Instruction) -> None:
        regs = self.state.registers
        vx, vy = regs[ins.x], regs[ins.y]
        self._set_flag(1 if vx >= vy else 0)
        regs[ins.x] = (vx - vy) & 0xFF

    def _opcode_subn(self, ins: Instruction) -> None:
        regs = self.state.registers
        vx, vy = regs[ins.x], regs[ins.y]
        self._set_flag(1 if vy >= vx else 0)
        regs[ins.x] = (vy - vx) & 0xFF

    def _opcode_shr(self, ins: Instruction) -> None:
        # Vy is ignored; Vx is shifted in place.
        regs = self.state.registers
        value = regs[ins.x]
        self._set_flag(value & 0x01)
        regs[ins.x] = value >> 1

    def _opcode_shl(self, ins: Instruction) -> None:
        regs = self.state.registers
        value = regs[ins.x]
        self._set_flag((value >> 7) & 0x01)
        regs[ins.x] = (value << 1) & 0xFF

    def _opcode_rnd(self, ins: Instruction) -> None:
        self.state.registers[ins.x] = self._rng.randrange(0x100) & ins.kk

    # ------------------------------------------------------------------
    # Address register and memory transfers
    # ------------------------------------------------------------------
    def _opcode_ld_i(self, ins: Instruction) -> None:
        self.state.register_i = ins.nnn

    def _opcode_add_i(self, ins: Instruction) -> None:
        state = self.state
        state.register_i = (state.register_i + state.registers[ins.x]) & 0xFFFF

    def _opcode_ld_f(self, ins: Instruction) -> None:
        digit = self.state.registers[ins.x]
        if digit > 0xF:
            raise InvalidGlyphError(f"no glyph for value 0x{digit:02X}")
        self.state.register_i = glyph_address(digit)

    def _opcode_ld_b(self, ins: Instruction) -> None:
        state = self.state
        value = state.registers[ins.x]
        state.memory.store_block(state.register_i, (value // 100, (value // 10) % 10, value % 10))

    def _opcode_ld_mem_vx(self, ins: Instruction) -> None:
        state = self.state
        state.memory.store_block(state.register_i, state.registers[: ins.x + 1])

    def _opcode_ld_vx_mem(self, ins: Instruction) -> None:
        state = self.state
        values = state.memory.load_block(state.register_i, ins.x + 1)
        state.registers[: ins.x + 1] = list(values)

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------
    def _opcode_cls(self, ins: Instruction) -> None:
        self._require_display().clear()

    def _opcode_drw(self, ins: Instruction) -> None:
        state = self.state
        display = self._require_display()
        regs = state.registers
        base_x = regs[ins.x]
        base_y = regs[ins.y]
        sprite = state.memory.load_block(state.register_i, ins.n)

        collision = 0
        regs[FLAG_REGISTER] = 0
        for row, byte in enumerate(sprite):
            y = (base_y + row) % SCREEN_HEIGHT
            for column in range(8):
                bit = (byte >> (7 - column)) & 0x01
                if not bit:
                    continue
                x = (base_x + column) % SCREEN_WIDTH
                old = display.get(x, y)
                collision |= old
                display.set(x, y, old ^ bit)
        regs[FLAG_REGISTER] |= collision

    # ------------------------------------------------------------------
    # Keypad
    # ------------------------------------------------------------------
    def _opcode_skp(self, ins: Instruction) -> None:
        key = self.state.registers[ins.x] & 0x0F
        self._skip_if(self._require_keypad().is_pressed(key))

    def _opcode_sknp(self, ins: Instruction) -> None:
        key = self.state.registers[ins.x] & 0x0F
        self._skip_if(not self._require_keypad().is_pressed(key))

    def _opcode_ld_vx_k(self, ins: Instruction) -> None:
        key = self._require_keypad().first_pressed()
        if key is None:
            # Re-fetch this instruction on the next step.
            self.state.program_counter = (self.state.program_counter - 2) & 0xFFFF
            return
        self.state.registers[ins.x] = key & 0xFF

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------
    def _opcode_ld_vx_dt(self, ins: Instruction) -> None:
        self.state.registers[ins.x] = self.state.delay_timer

    def _opcode_ld_dt_vx(self, ins: Instruction) -> None:
        self.state.delay_timer = self.state.registers[ins.x]

    def _opcode_ld_st_vx(self, ins: Instruction) -> None:
        self.state.sound_timer = self.state.registers[ins.x]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _require_display(self) -> Framebuffer:
        if self._display is None:
            raise RuntimeError("display is only available during step")
        return self._display

    def _require_keypad(self) -> Keypad:
        if self._keypad is None:
            raise RuntimeError("keypad is only available during step")
        return self._keypad


__all__ = [
    "CPUError",
    "CPUHaltedError",
    "Chip8CPU",
    "Chip8State",
    "FLAG_REGISTER",
    "InvalidGlyphError",
    "MemoryAccessError",
    "STACK_DEPTH",
    "StackOverflowError",
    "StackUnderflowError",
    "TIMER_PERIOD_NS",
]
