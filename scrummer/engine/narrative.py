"""
Templated explanations of the snapshot history.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from scrummer.core.risk import RESCUE_RISK_THRESHOLD, WATCH_RISK_THRESHOLD
from scrummer.engine.trends import (
    OVERCOMMIT_STREAK_THRESHOLD,
    HistoryAnalysis,
    analyze_history,
    format_arrow,
)
from scrummer.storage.models import Snapshot, SnapshotMode

_EMPTY_HISTORY_LINE = (
    "No sprint history yet. Compute signals and save a snapshot to create the first one."
)


@dataclass(frozen=True, slots=True)
class Narrative:
    lines: tuple[str, ...]
    stance: str | None

    @property
    def text(self) -> str:
        return "\n".join(self.lines)


def format_mode(mode: SnapshotMode | str | None) -> str:
    normalized = str(getattr(mode, "value", mode) or "").lower()
    if normalized == SnapshotMode.RESCUE.value:
        return "Rescue"
    if normalized == SnapshotMode.WATCH.value:
        return "Watch"
    return "Stable"


def format_overcommit(ratio: float) -> str:
    """Compact overcommit cell: "-" without data, "OK" within capacity, else "+N%"."""
    if ratio <= 0:
        return "-"
    if ratio <= 1:
        return "OK"
    return f"+{max(0, round((ratio - 1) * 100))}%"


def recommended_stance(risk_score: float) -> str:
    if risk_score >= RESCUE_RISK_THRESHOLD:
        return "Protect the sprint goal, de-scope early, and run daily unblock checkpoints."
    if risk_score >= WATCH_RISK_THRESHOLD:
        return "Run a Day-3 checkpoint and keep WIP low to protect predictability."
    return "Maintain flow discipline and keep scope changes visible and explicit."


def build_narrative(
    history: Sequence[Snapshot],
    analysis: HistoryAnalysis | None = None,
) -> Narrative:
    """
    Explain the latest snapshot in plain sentences.

    Reads only the history and its analysis; an empty history produces a
    single hint line and no stance.
    """
    if not history:
        return Narrative(lines=(_EMPTY_HISTORY_LINE,), stance=None)

    result = analysis or analyze_history(history)
    latest = history[-1]
    risk = round(latest.risk_score)
    confidence = round(latest.confidence)

    lines = [
        f"Current sprint posture: {format_mode(latest.mode)} with risk {risk}/100 "
        f"and confidence {confidence}%."
    ]

    if latest.overcommit_ratio > OVERCOMMIT_STREAK_THRESHOLD:
        pct_over = round((latest.overcommit_ratio - 1) * 100)
        lines.append(
            f"Commitment is above capacity by approximately {pct_over}%. This is a "
            "system signal (scope vs capacity), not an individual performance issue."
        )
    elif latest.capacity_sp > 0 and latest.committed_sp > 0:
        lines.append(
            "Commitment is broadly aligned with capacity. This supports "
            "predictability and lowers spillover risk."
        )
    else:
        lines.append(
            "Add committed SP and velocities to the setup to strengthen the explanation."
        )

    if result.overcommit_streak >= 2:
        lines.append(
            f"Overcommitted for {result.overcommit_streak} snapshots in a row. {result.streak_hint}"
        )

    if result.arrows is not None:
        lines.append(
            "Trend vs previous snapshot: "
            f"Risk {format_arrow(result.arrows.risk, positive_up=False)}, "
            f"Capacity {format_arrow(result.arrows.capacity)}, "
            f"Commitment {format_arrow(result.arrows.commitment)}."
        )

    stance = recommended_stance(latest.risk_score)
    lines.append(f"Recommended stance: {stance}")
    return Narrative(lines=tuple(lines), stance=stance)
