from __future__ import annotations

from pathlib import Path

from chip8emu import debug_runner


class FakeTime:
    def __init__(self) -> None:
        self.current = 0.0

    def monotonic(self) -> float:
        value = self.current
        self.current += 0.6
        return value


def _write_program(path: Path, *words: int) -> Path:
    path.write_bytes(b"".join(bytes([(word >> 8) & 0xFF, word & 0xFF]) for word in words))
    return path


def test_debug_runner_breaks_and_dumps(tmp_path, capsys) -> None:
    prog_path = _write_program(tmp_path / "add.ch8", 0x6005, 0x7003, 0x1204)

    exit_code = debug_runner.main(
        [
            "--program",
            str(prog_path),
            "--steps",
            "512",
            "--break-pc",
            "0x204",
            "--dump-range",
            "200:20F",
        ]
    )

    captured = capsys.readouterr()
    assert exit_code == 0
    output_lines = [line for line in captured.out.strip().splitlines() if line]
    assert output_lines[0].startswith("ADDR")
    assert output_lines[1].startswith("0200 60 05 70 03 12 04")


def test_debug_runner_step_limit(tmp_path, capsys) -> None:
    prog_path = _write_program(tmp_path / "loop.ch8", 0x1200)

    exit_code = debug_runner.main(["--program", str(prog_path), "--steps", "10"])

    captured = capsys.readouterr()
    assert exit_code == 2
    assert "step limit" in captured.err
    assert captured.out == ""


def test_debug_runner_time_limit(tmp_path, capsys, monkeypatch) -> None:
    prog_path = _write_program(tmp_path / "loop.ch8", 0x1200)

    fake_time = FakeTime()
    monkeypatch.setattr(debug_runner, "time", fake_time)

    exit_code = debug_runner.main(
        [
            "--program",
            str(prog_path),
            "--steps",
            "0",
            "--seconds",
            "1",
        ]
    )

    captured = capsys.readouterr()
    assert exit_code == 3
    assert "time limit" in captured.err


def test_debug_runner_reports_faults(tmp_path, capsys) -> None:
    prog_path = _write_program(tmp_path / "ret.ch8", 0x6001, 0x00EE)

    exit_code = debug_runner.main(["--program", str(prog_path)])

    captured = capsys.readouterr()
    assert exit_code == 4
    assert "CPU fault: return with empty call stack" in captured.err
    assert "pc=0x0202 opcode=0x00EE" in captured.err
    assert "0200: 6001  LD V0, 0x01" in captured.err


def test_debug_runner_load_failure(tmp_path, capsys) -> None:
    exit_code = debug_runner.main(["--program", str(tmp_path / "missing.ch8")])

    captured = capsys.readouterr()
    assert exit_code == 1
    assert "Failed to load program" in captured.err


def test_debug_runner_held_key_satisfies_wait(tmp_path) -> None:
    prog_path = _write_program(tmp_path / "wait.ch8", 0xF50A, 0x1202)

    assert debug_runner.main(["--program", str(prog_path), "--steps", "50", "--break-pc", "202"]) == 2
    assert (
        debug_runner.main(
            ["--program", str(prog_path), "--steps", "50", "--break-pc", "202", "--press", "b"]
        )
        == 0
    )


def test_debug_runner_prints_screen(tmp_path, capsys) -> None:
    prog_path = _write_program(tmp_path / "zero.ch8", 0xA000, 0xD005, 0x1204)

    exit_code = debug_runner.main(["--program", str(prog_path), "--steps", "3", "--screen"])

    captured = capsys.readouterr()
    assert exit_code == 2
    rows = captured.out.splitlines()
    assert len(rows) == 32
    assert rows[0].startswith("11110")
    assert rows[1].startswith("10010")


def test_debug_runner_binary_dump(tmp_path) -> None:
    prog_path = _write_program(tmp_path / "loop.ch8", 0x1200)
    dump_path = tmp_path / "dump.bin"

    debug_runner.main(
        [
            "--program",
            str(prog_path),
            "--steps",
            "4",
            "--dump",
            str(dump_path),
            "--dump-format",
            "bin",
            "--dump-range",
            "200:201",
        ]
    )

    assert dump_path.read_bytes() == b"\x12\x00"
