"""Computer scaffold providing step scheduling and run control."""

from __future__ import annotations

from dataclasses import dataclass, field
import heapq
from typing import Callable, Iterable, List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from chip8emu.chip8.hardware import Chip8Hardware
else:  # pragma: no cover - used for runtime only
    Chip8Hardware = object

DEFAULT_INSTRUCTIONS_PER_SECOND = 540.0


@dataclass(order=True)
class _ComputerEvent:
    clock: int
    order: int
    handler: Callable[["Computer"], None] = field(compare=False)
    name: str = field(default="", compare=False)

    def apply(self, computer: "Computer") -> None:
        self.handler(computer)


class EventQueue:
    """Priority queue of events keyed by executed-instruction count."""

    def __init__(self) -> None:
        self._heap: List[_ComputerEvent] = []

    def add(self, event: _ComputerEvent) -> None:
        heapq.heappush(self._heap, event)

    def pop_ready(self, clock: int) -> List[_ComputerEvent]:
        ready: List[_ComputerEvent] = []
        while self._heap and self._heap[0].clock <= clock:
            ready.append(heapq.heappop(self._heap))
        return ready

    def names(self) -> List[str]:
        return [event.name for event in sorted(self._heap)]

    def clear(self) -> None:
        self._heap.clear()

    def __len__(self) -> int:
        return len(self._heap)


class Computer:
    """Host machine tying together hardware, CPU and attached devices.

    ``clock_count`` counts executed instructions. The display refresh runs
    every ``refresh_interval_steps`` instructions, i.e. at ``refresh_rate``
    of emulated time for the configured instruction rate.
    """

    STATUS_RUNNING = 0
    STATUS_PAUSED = 1
    STATUS_STOPPED = 2

    def __init__(
        self,
        hardware: Chip8Hardware,
        *,
        instructions_per_second: float = DEFAULT_INSTRUCTIONS_PER_SECOND,
    ) -> None:
        if instructions_per_second <= 0:
            raise ValueError("instruction rate must be positive")
        self.hardware = hardware
        self.instructions_per_second = instructions_per_second
        self.clock_count: int = 0
        self._devices: list[object] = []
        self._cpu: Optional[object] = None
        self._running_status: int = self.STATUS_STOPPED
        self._event_queue = EventQueue()
        self._event_counter = 0
        self.refresh_rate: float = 1.0 / 60.0
        self._refresh_interval_steps: int = self._compute_refresh_interval()
        self._display_refresh_active: bool = False
        self._refresh_generation: int = 0

    def _compute_refresh_interval(self) -> int:
        return max(1, round(self.refresh_rate * self.instructions_per_second))

    # ------------------------------------------------------------------
    # CPU integration
    # ------------------------------------------------------------------
    @property
    def cpu(self) -> Optional[object]:
        return self._cpu

    def set_cpu(self, cpu: object) -> None:
        self._cpu = cpu

    def tick(self, steps: int) -> int:
        """Run up to ``steps`` instructions; return how many were executed."""

        if steps <= 0:
            return 0
        self._process_events()
        executed = 0
        while executed < steps and self._running_status == self.STATUS_RUNNING:
            self._execute_step()
            self.clock_count += 1
            executed += 1
            self._process_events()
        if executed:
            self._execute_devices()
        return executed

    def _execute_step(self) -> None:
        cpu = self._cpu
        if cpu is None:
            return
        cpu.step(self.hardware.keyboard, self.hardware.display)  # type: ignore[attr-defined]

    # ------------------------------------------------------------------
    # Device management
    # ------------------------------------------------------------------
    def add_device(self, device: object) -> None:
        self._devices.append(device)

    def add_devices(self, devices: Iterable[object]) -> None:
        for device in devices:
            self.add_device(device)

    @property
    def devices(self) -> list[object]:
        return self._devices

    def _execute_devices(self) -> None:
        for device in self._devices:
            if hasattr(device, "execute"):
                device.execute()

    # ------------------------------------------------------------------
    # Control lifecycle
    # ------------------------------------------------------------------
    def power_on(self) -> None:
        self._run_reset()
        self._running_status = self.STATUS_RUNNING
        self._start_periodic_tasks()

    def power_off(self) -> None:
        if self._running_status == self.STATUS_STOPPED:
            return
        self._schedule_event(lambda comp: comp._apply_power_off(), name="powerOff")

    def reset(self) -> None:
        self._schedule_event(lambda comp: comp._run_reset(), name="reset")

    def pause(self) -> None:
        if self._running_status != self.STATUS_RUNNING:
            return
        self._schedule_event(lambda comp: comp._apply_pause(), name="pause")

    def resume(self) -> None:
        if self._running_status != self.STATUS_PAUSED:
            return
        self._schedule_event(lambda comp: comp._apply_resume(), name="resume")

    def get_running_status(self) -> int:
        return self._running_status

    @property
    def running(self) -> bool:
        return self._running_status == self.STATUS_RUNNING

    # ------------------------------------------------------------------
    # Event dispatch helpers
    # ------------------------------------------------------------------
    def _process_events(self) -> None:
        for event in self._event_queue.pop_ready(self.clock_count):
            event.apply(self)

    def _schedule_event(self, handler: Callable[["Computer"], None], delay_steps: int = 0, *, name: str = "") -> None:
        event_clock = max(self.clock_count + max(delay_steps, 0), 0)
        event = _ComputerEvent(event_clock, self._event_counter, handler, name)
        self._event_counter += 1
        self._event_queue.add(event)
        if event_clock <= self.clock_count:
            self._process_events()

    def _run_reset(self) -> None:
        active = self._running_status == self.STATUS_RUNNING
        self._stop_periodic_tasks()
        self.clock_count = 0
        self._event_queue.clear()
        cpu = self._cpu
        if cpu is not None and hasattr(cpu, "reset"):
            cpu.reset()
        for device in self._devices:
            if hasattr(device, "reset"):
                device.reset()
        if active:
            self._start_periodic_tasks()

    def _apply_pause(self) -> None:
        if self._running_status != self.STATUS_RUNNING:
            return
        self._running_status = self.STATUS_PAUSED
        self._stop_periodic_tasks()

    def _apply_resume(self) -> None:
        if self._running_status == self.STATUS_RUNNING:
            return
        self._running_status = self.STATUS_RUNNING
        self._start_periodic_tasks()

    def _apply_power_off(self) -> None:
        self._running_status = self.STATUS_STOPPED
        self._stop_periodic_tasks()
        self._event_queue.clear()

    def _start_periodic_tasks(self) -> None:
        if self._running_status != self.STATUS_RUNNING:
            return
        display = getattr(self.hardware, "display", None)
        if not self._display_refresh_active and display is not None and hasattr(display, "refresh"):
            self._display_refresh_active = True
            self._schedule_refresh(self._refresh_generation)

    def _stop_periodic_tasks(self) -> None:
        self._display_refresh_active = False
        self._refresh_generation += 1

    def _schedule_refresh(self, generation: int) -> None:
        self._schedule_event(
            lambda comp: comp._display_refresh_event(generation),
            self._refresh_interval_steps,
            name="display.refresh",
        )

    def _display_refresh_event(self, generation: int) -> None:
        # Chains left over from before a pause or reset are dropped.
        if generation != self._refresh_generation or not self._display_refresh_active:
            return
        if self._running_status != self.STATUS_RUNNING:
            return
        display = getattr(self.hardware, "display", None)
        if display is not None and hasattr(display, "refresh"):
            display.refresh()
        self._schedule_refresh(generation)

    # ------------------------------------------------------------------
    # Rate configuration
    # ------------------------------------------------------------------
    def get_instruction_rate(self) -> float:
        return self.instructions_per_second

    def set_instruction_rate(self, instructions_per_second: float) -> None:
        if instructions_per_second <= 0:
            raise ValueError("instruction rate must be positive")
        self.instructions_per_second = instructions_per_second
        self._refresh_interval_steps = self._compute_refresh_interval()

    # ------------------------------------------------------------------
    # State persistence helpers
    # ------------------------------------------------------------------
    def save_state(self, out: dict[str, object]) -> None:
        out["computer.clockCount"] = int(self.clock_count)
        out["computer.runningStatus"] = int(self._running_status)

    def check_state(self, data: dict[str, object]) -> int:
        """Return the saved running status, raising ``ValueError`` if it is unknown."""

        int(data.get("computer.clockCount", 0))  # type: ignore[arg-type]
        status = int(data.get("computer.runningStatus", self.STATUS_STOPPED))  # type: ignore[arg-type]
        if status not in (self.STATUS_RUNNING, self.STATUS_PAUSED, self.STATUS_STOPPED):
            raise ValueError("invalid status")
        return status

    def load_state(self, data: dict[str, object]) -> None:
        status = self.check_state(data)
        self.clock_count = int(data.get("computer.clockCount", 0))  # type: ignore[arg-type]
        self._event_queue.clear()
        self._stop_periodic_tasks()
        self._running_status = status
        if status == self.STATUS_RUNNING:
            self._start_periodic_tasks()
