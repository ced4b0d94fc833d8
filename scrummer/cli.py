"""
Scrummer command-line interface.
"""

from __future__ import annotations

import argparse
from collections.abc import Sequence
from datetime import UTC, datetime

from scrummer.core.config import settings
from scrummer.core.logging_setup import configure_logging
from scrummer.engine.actions import ActionCard, recommend_actions
from scrummer.engine.narrative import build_narrative, format_mode, format_overcommit
from scrummer.engine.signals import Metrics, SignalCalculator
from scrummer.engine.trends import HistoryAnalysis, analyze_history, format_arrow
from scrummer.storage.backend import JsonFileBackend
from scrummer.storage.models import SaveReason, Snapshot
from scrummer.storage.setup_store import SETUP_PRESETS, SetupRepository
from scrummer.storage.snapshot_store import SnapshotStore


def _format_timestamp(timestamp_ms: int) -> str:
    moment = datetime.fromtimestamp(timestamp_ms / 1000, tz=UTC)
    return moment.strftime("%Y-%m-%d %H:%M")


def _format_history_row(snapshot: Snapshot) -> str:
    return (
        f"{_format_timestamp(snapshot.timestamp)}  {snapshot.sprint_id}  "
        f"{format_mode(snapshot.mode):<6}  "
        f"risk {round(snapshot.risk_score):>3}  "
        f"conf {round(snapshot.confidence):>3}%  "
        f"over {format_overcommit(snapshot.overcommit_ratio)}"
    )


def _format_signal_lines(metrics: Metrics) -> list[str]:
    components = metrics.risk_components
    return [
        f"Risk: {metrics.risk_score}/100 ({metrics.risk_band.value})",
        f"Confidence: {metrics.confidence}% ({metrics.confidence_rating.value})",
        f"Capacity health: {metrics.capacity_health.value}",
        f"Capacity: {metrics.capacity_sp:.1f} SP vs committed {metrics.committed_sp:g} SP "
        f"(ratio {metrics.overcommit_ratio:.2f})",
        f"Average velocity: {metrics.avg_velocity:.1f} SP "
        f"(volatility {metrics.volatility * 100:.1f}%)",
        f"Availability: {metrics.availability_ratio * 100:.0f}% "
        f"of {metrics.ideal_person_days:g} person-days",
        "Risk drivers: "
        f"overcommit {components.overcommit:.1f}, "
        f"capacity {components.capacity:.1f}, "
        f"volatility {components.volatility:.1f}, "
        f"missing data {components.missing_data:.1f}",
    ]


def _format_analysis_lines(analysis: HistoryAnalysis) -> list[str]:
    predictability = analysis.predictability
    lines = [
        f"Snapshots: {analysis.snapshot_count}",
        f"Stability index: {analysis.stability.index} ({analysis.stability.label.value})",
        f"Overcommit streak: {analysis.overcommit_streak} ({analysis.streak_hint})",
        f"Predictability: {predictability.score.value} - {predictability.hint}",
    ]
    if analysis.arrows is not None:
        lines.append(
            "Trend: "
            f"risk {format_arrow(analysis.arrows.risk, positive_up=False)} "
            f"capacity {format_arrow(analysis.arrows.capacity)} "
            f"commitment {format_arrow(analysis.arrows.commitment)}"
        )
    return lines


def _format_action_lines(card: ActionCard) -> list[str]:
    lines = [f"[{card.priority.value}] {card.title}", f"  Why: {card.why}"]
    lines.extend(f"  - {step}" for step in card.how)
    return lines


def _open_stores(state_dir: str | None) -> tuple[SetupRepository, SnapshotStore]:
    backend = JsonFileBackend(state_dir or settings.state_path)
    return SetupRepository(backend), SnapshotStore(backend)


def _run_setup_show(*, state_dir: str | None) -> int:
    setup_repo, _ = _open_stores(state_dir)
    setup = setup_repo.load()
    for key, value in setup.to_record().items():
        print(f"{key}: {value:g}")
    return 0


def _run_setup_set(*, state_dir: str | None, changes: dict[str, float | None]) -> int:
    setup_repo, _ = _open_stores(state_dir)
    if all(value is None for value in changes.values()):
        print("No setup fields given.")
        return 1
    setup = setup_repo.update(**changes)
    print(f"Setup saved: {setup.to_record()}")
    return 0


def _run_setup_preset(*, state_dir: str | None, name: str) -> int:
    setup_repo, _ = _open_stores(state_dir)
    setup = setup_repo.apply_preset(name)
    if setup is None:
        print(f"Unknown preset '{name}'. Choose one of: {', '.join(sorted(SETUP_PRESETS))}")
        return 1
    print(f"Preset '{name}' applied: {setup.to_record()}")
    return 0


def _run_signals(*, state_dir: str | None) -> int:
    setup_repo, _ = _open_stores(state_dir)
    metrics = SignalCalculator().compute(setup_repo.load())
    for line in _format_signal_lines(metrics):
        print(line)
    return 0


def _run_snapshot_save(*, state_dir: str | None, force: bool) -> int:
    setup_repo, store = _open_stores(state_dir)
    metrics = SignalCalculator().compute(setup_repo.load())
    result = store.save_snapshot(metrics, force=force)
    if result.ok and result.snapshot is not None:
        print(f"Snapshot saved: {_format_history_row(result.snapshot)}")
        return 0
    if result.reason is SaveReason.DEDUP:
        print("Snapshot skipped: a snapshot was saved less than a minute ago (use --force).")
    else:
        print(f"Snapshot skipped: {result.reason.value}")
    return 2


def _run_history_show(*, state_dir: str | None, limit: int) -> int:
    _, store = _open_stores(state_dir)
    history = store.get_history()
    if not history:
        print("No snapshots saved yet.")
        return 0
    for snapshot in reversed(history[-limit:]):
        print(_format_history_row(snapshot))
    return 0


def _run_history_clear(*, state_dir: str | None) -> int:
    _, store = _open_stores(state_dir)
    store.clear_history()
    print("Snapshot history cleared.")
    return 0


def _run_sprint_new(*, state_dir: str | None) -> int:
    _, store = _open_stores(state_dir)
    sprint_id = store.reset_current_sprint()
    print(f"New sprint: {sprint_id}")
    return 0


def _run_health(*, state_dir: str | None) -> int:
    _, store = _open_stores(state_dir)
    history = store.get_history()
    analysis = analyze_history(history)
    for line in _format_analysis_lines(analysis):
        print(line)
    print("")
    print(build_narrative(history, analysis).text)
    return 0


def _run_actions(*, state_dir: str | None) -> int:
    setup_repo, _ = _open_stores(state_dir)
    for card in recommend_actions(setup_repo.load()):
        for line in _format_action_lines(card):
            print(line)
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="scrummer")
    parser.add_argument(
        "--state-dir",
        default=None,
        help="Directory holding setup, history and sprint id records (defaults to STATE_DIR).",
    )
    subparsers = parser.add_subparsers(dest="command")

    setup_parser = subparsers.add_parser("setup")
    setup_subparsers = setup_parser.add_subparsers(dest="setup_command")

    setup_subparsers.add_parser("show", help="Show the saved sprint setup.")

    setup_set_parser = setup_subparsers.add_parser(
        "set",
        help="Update fields of the saved sprint setup.",
    )
    setup_set_parser.add_argument("--sprint-days", type=float, default=None)
    setup_set_parser.add_argument("--team-members", type=float, default=None)
    setup_set_parser.add_argument("--leave-days", type=float, default=None)
    setup_set_parser.add_argument("--committed-sp", type=float, default=None)
    setup_set_parser.add_argument("--v1", type=float, default=None, help="Last sprint velocity.")
    setup_set_parser.add_argument("--v2", type=float, default=None, help="Velocity two sprints ago.")
    setup_set_parser.add_argument(
        "--v3",
        type=float,
        default=None,
        help="Velocity three sprints ago.",
    )

    setup_preset_parser = setup_subparsers.add_parser(
        "preset",
        help="Replace the setup with a named planning preset.",
    )
    setup_preset_parser.add_argument("name", choices=sorted(SETUP_PRESETS))

    subparsers.add_parser("signals", help="Compute risk, confidence and capacity signals.")

    snapshot_parser = subparsers.add_parser("snapshot")
    snapshot_subparsers = snapshot_parser.add_subparsers(dest="snapshot_command")
    snapshot_save_parser = snapshot_subparsers.add_parser(
        "save",
        help="Compute signals and append a snapshot to the history.",
    )
    snapshot_save_parser.add_argument(
        "--force",
        action="store_true",
        help="Save even when the previous snapshot is inside the dedup window.",
    )

    history_parser = subparsers.add_parser("history")
    history_subparsers = history_parser.add_subparsers(dest="history_command")
    history_show_parser = history_subparsers.add_parser(
        "show",
        help="List saved snapshots, newest first.",
    )
    history_show_parser.add_argument(
        "--limit",
        type=int,
        default=10,
        help="Maximum number of snapshots to display.",
    )
    history_subparsers.add_parser("clear", help="Delete all saved snapshots.")

    sprint_parser = subparsers.add_parser("sprint")
    sprint_subparsers = sprint_parser.add_subparsers(dest="sprint_command")
    sprint_subparsers.add_parser("new", help="Start a new sprint id for future snapshots.")

    subparsers.add_parser("health", help="Show stability, streak, predictability and narrative.")
    subparsers.add_parser("actions", help="Recommend actions for the saved setup.")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_logging()
    state_dir = args.state_dir

    if args.command == "setup" and args.setup_command == "show":
        return _run_setup_show(state_dir=state_dir)
    if args.command == "setup" and args.setup_command == "set":
        return _run_setup_set(
            state_dir=state_dir,
            changes={
                "sprint_days": args.sprint_days,
                "team_members": args.team_members,
                "leave_days": args.leave_days,
                "committed_sp": args.committed_sp,
                "v1": args.v1,
                "v2": args.v2,
                "v3": args.v3,
            },
        )
    if args.command == "setup" and args.setup_command == "preset":
        return _run_setup_preset(state_dir=state_dir, name=args.name)
    if args.command == "signals":
        return _run_signals(state_dir=state_dir)
    if args.command == "snapshot" and args.snapshot_command == "save":
        return _run_snapshot_save(state_dir=state_dir, force=args.force)
    if args.command == "history" and args.history_command == "show":
        return _run_history_show(state_dir=state_dir, limit=max(args.limit, 1))
    if args.command == "history" and args.history_command == "clear":
        return _run_history_clear(state_dir=state_dir)
    if args.command == "sprint" and args.sprint_command == "new":
        return _run_sprint_new(state_dir=state_dir)
    if args.command == "health":
        return _run_health(state_dir=state_dir)
    if args.command == "actions":
        return _run_actions(state_dir=state_dir)

    parser.print_help()
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
