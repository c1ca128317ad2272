from __future__ import annotations

import logging

import pytest

from chip8emu import utils
from chip8emu.utils import TraceRecorder, debug_enabled, debug_log


def test_debug_categories_from_environment(monkeypatch) -> None:
    monkeypatch.setenv(utils.ENV_DEBUG, "cpu, Input")
    assert debug_enabled("cpu")
    assert debug_enabled("input")
    assert not debug_enabled("audio")

    monkeypatch.setenv(utils.ENV_DEBUG, "all")
    assert debug_enabled("timer")

    monkeypatch.delenv(utils.ENV_DEBUG)
    assert not debug_enabled("cpu")


def test_debug_log_uses_category_logger(caplog) -> None:
    with caplog.at_level(logging.DEBUG, logger="chip8emu"):
        debug_log("cpu", "pc=%04x", 0x200)
    record = caplog.records[-1]
    assert record.name == "chip8emu.cpu"
    assert record.getMessage() == "pc=0200"


def test_trace_recorder_keeps_most_recent_entries() -> None:
    trace = TraceRecorder(2)
    trace.record(0x200, 0x6005, "LD V0, 0x05")
    trace.record(0x202, 0x7003, "ADD V0, 0x03")
    trace.record(0x204, 0x1204, "JP 0x204")
    assert len(trace) == 2
    assert [entry.pc for entry in trace.entries()] == [0x202, 0x204]
    assert trace.format_lines()[-1] == "0204: 1204  JP 0x204"
    trace.clear()
    assert len(trace) == 0


def test_trace_recorder_requires_positive_capacity() -> None:
    with pytest.raises(ValueError):
        TraceRecorder(0)
