from __future__ import annotations

from pathlib import Path

import pytest

from scrummer.cli import _build_parser, _format_history_row, _format_signal_lines, main
from scrummer.core.config import settings
from scrummer.engine.signals import compute_signals
from scrummer.storage.models import Snapshot, SnapshotMode

pytestmark = pytest.mark.unit


def test_format_history_row_includes_mode_scores_and_overcommit() -> None:
    snapshot = Snapshot(
        sprint_id="SPRINT_2026_02_18_0830",
        timestamp=0,
        risk_score=72.0,
        confidence=41.0,
        overcommit_ratio=1.25,
        avg_velocity=40.0,
        committed_sp=50.0,
        capacity_sp=40.0,
        mode=SnapshotMode.RESCUE,
    )

    row = _format_history_row(snapshot)

    assert row.startswith("1970-01-01 00:00  SPRINT_2026_02_18_0830")
    assert "Rescue" in row
    assert "risk  72" in row
    assert "conf  41%" in row
    assert row.endswith("over +25%")


def test_format_signal_lines_summarizes_metrics(overcommitted_setup) -> None:
    lines = _format_signal_lines(compute_signals(overcommitted_setup))

    assert lines[0] == "Risk: 45/100 (Moderate)"
    assert lines[1] == "Confidence: 67% (Balanced)"
    assert lines[2] == "Capacity health: Critical"
    assert lines[3].startswith("Capacity: 36.0 SP vs committed 50 SP")


def test_build_parser_accepts_setup_set_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(
        ["--state-dir", "/tmp/sprint", "setup", "set", "--sprint-days", "10", "--v1", "40"]
    )

    assert args.state_dir == "/tmp/sprint"
    assert args.command == "setup"
    assert args.setup_command == "set"
    assert args.sprint_days == 10
    assert args.v1 == 40
    assert args.committed_sp is None


def test_build_parser_accepts_snapshot_save_force() -> None:
    args = _build_parser().parse_args(["snapshot", "save", "--force"])

    assert args.command == "snapshot"
    assert args.snapshot_command == "save"
    assert args.force is True


def test_build_parser_accepts_history_show_limit() -> None:
    args = _build_parser().parse_args(["history", "show", "--limit", "5"])

    assert args.history_command == "show"
    assert args.limit == 5


def test_build_parser_rejects_unknown_preset() -> None:
    with pytest.raises(SystemExit):
        _build_parser().parse_args(["setup", "preset", "heroic"])


def test_main_without_command_prints_help(capsys: pytest.CaptureFixture[str]) -> None:
    assert main([]) == 1
    assert "usage: scrummer" in capsys.readouterr().out


def test_main_runs_planning_workflow(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    state_dir = str(tmp_path)

    assert main(["--state-dir", state_dir, "setup", "preset", "risky"]) == 0
    assert main(["--state-dir", state_dir, "signals"]) == 0
    signals_output = capsys.readouterr().out
    assert "Risk: 67/100 (High)" in signals_output
    assert "Capacity health: Critical" in signals_output

    assert main(["--state-dir", state_dir, "snapshot", "save"]) == 0
    assert main(["--state-dir", state_dir, "snapshot", "save"]) == 2
    save_output = capsys.readouterr().out
    assert "Snapshot saved:" in save_output
    assert "Snapshot skipped" in save_output

    assert main(["--state-dir", state_dir, "history", "show"]) == 0
    assert "Watch" in capsys.readouterr().out

    assert main(["--state-dir", state_dir, "health"]) == 0
    health_output = capsys.readouterr().out
    assert "Stability index:" in health_output
    assert "Current sprint posture: Watch with risk 67/100" in health_output

    assert main(["--state-dir", state_dir, "actions"]) == 0
    assert "[P0] De-scope or renegotiate commitment" in capsys.readouterr().out


def test_main_setup_set_updates_saved_setup(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    state_dir = str(tmp_path)

    assert main(["--state-dir", state_dir, "setup", "set", "--committed-sp", "12"]) == 0
    assert main(["--state-dir", state_dir, "setup", "show"]) == 0

    output = capsys.readouterr().out
    assert "committedSP: 12" in output
    assert "sprintDays: 0" in output


def test_main_history_clear_and_new_sprint(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    state_dir = str(tmp_path)

    assert main(["--state-dir", state_dir, "snapshot", "save"]) == 0
    assert main(["--state-dir", state_dir, "history", "clear"]) == 0
    assert main(["--state-dir", state_dir, "sprint", "new"]) == 0
    capsys.readouterr()

    assert main(["--state-dir", state_dir, "history", "show"]) == 0
    assert "No snapshots saved yet." in capsys.readouterr().out


def test_main_defaults_to_configured_state_dir(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(settings, "STATE_DIR", str(tmp_path / "state"))

    assert main(["setup", "preset", "normal"]) == 0

    assert (tmp_path / "state" / f"{settings.SETUP_STORAGE_KEY}.json").exists()
