"""
Trend & Stability Analyzer over snapshot history.

Read-only derivations: overcommit streaks, velocity predictability, a
composite stability index and directional arrows between the two most recent
snapshots. Every function accepts an empty history and returns a defined
sentinel instead of failing.
"""

from __future__ import annotations

import enum
import math
import statistics
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from scrummer.core.config import settings
from scrummer.storage.models import Snapshot, SnapshotMode, resolve_snapshot_field

Direction = Literal["up", "down", "flat"]

# Ratio above which a snapshot counts toward the overcommit streak
OVERCOMMIT_STREAK_THRESHOLD: float = 1.01

# Stability index weights
RISK_WEIGHT: float = 0.45
TREND_WEIGHT: float = 0.25
OVERCOMMIT_WEIGHT: float = 0.20
CONFIDENCE_WEIGHT: float = 0.10


class PredictabilityScore(str, enum.Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"
    INSUFFICIENT_DATA = "insufficient data"


class StabilityLabel(str, enum.Enum):
    STABLE = "Stable"
    WATCH = "Watch"
    FRAGILE = "Fragile"
    NO_DATA = "no data"


@dataclass(frozen=True, slots=True)
class Predictability:
    score: PredictabilityScore
    hint: str
    coefficient_of_variation: float | None
    sample_size: int


@dataclass(frozen=True, slots=True)
class StabilityIndex:
    index: int
    label: StabilityLabel


@dataclass(frozen=True, slots=True)
class TrendArrows:
    """Directions of risk, capacity and commitment versus the prior snapshot."""

    risk: Direction
    capacity: Direction
    commitment: Direction


@dataclass(frozen=True, slots=True)
class HistoryAnalysis:
    """Everything the narrative needs, derived once from the history."""

    snapshot_count: int
    latest_mode: SnapshotMode | None
    overcommit_streak: int
    streak_hint: str
    predictability: Predictability
    stability: StabilityIndex
    arrows: TrendArrows | None


def _clamp01(value: float) -> float:
    if not math.isfinite(value):
        return 0.0
    return max(0.0, min(1.0, value))


def trend_direction(previous: float | None, latest: float | None) -> Direction:
    """
    Direction of change from `previous` to `latest`.

    Missing or non-finite values give "flat".
    """
    if previous is None or latest is None:
        return "flat"
    if not (math.isfinite(previous) and math.isfinite(latest)):
        return "flat"
    if latest > previous:
        return "up"
    if latest < previous:
        return "down"
    return "flat"


def metric_trend(history: Sequence[Snapshot], metric: str) -> Direction:
    """Compare a named numeric field across the two most recent snapshots."""
    if len(history) < 2:
        return "flat"
    attribute = resolve_snapshot_field(metric)
    if attribute is None:
        return "flat"
    previous = getattr(history[-2], attribute)
    latest = getattr(history[-1], attribute)
    if not isinstance(previous, int | float) or not isinstance(latest, int | float):
        return "flat"
    return trend_direction(float(previous), float(latest))


def overcommit_streak(history: Sequence[Snapshot]) -> int:
    """Count consecutive newest snapshots with overcommit ratio above 1.01."""
    streak = 0
    for snapshot in reversed(history):
        if snapshot.overcommit_ratio > OVERCOMMIT_STREAK_THRESHOLD:
            streak += 1
        else:
            break
    return streak


def streak_hint(streak: int) -> str:
    if streak >= 2:
        return "Pattern: commitment > capacity repeatedly."
    if streak == 1:
        return "Overcommit detected in latest sprint."
    return "No overcommit streak."


def predictability(
    history: Sequence[Snapshot],
    *,
    window: int | None = None,
) -> Predictability:
    """
    Velocity predictability from the most recent snapshots.

    Uses the coefficient of variation (population stddev / mean) of the
    positive average velocities in the window.
    """
    size = max(2, window or settings.PREDICTABILITY_WINDOW)
    velocities = [s.avg_velocity for s in history[-size:] if s.avg_velocity > 0]
    if len(velocities) < 2:
        return Predictability(
            score=PredictabilityScore.INSUFFICIENT_DATA,
            hint="Need 2+ velocity snapshots.",
            coefficient_of_variation=None,
            sample_size=len(velocities),
        )

    mean = statistics.fmean(velocities)
    cv = statistics.pstdev(velocities) / mean if mean > 0 else 0.0

    if cv <= 0.10:
        score, hint = PredictabilityScore.HIGH, "Velocity is consistent (low volatility)."
    elif cv <= 0.25:
        score, hint = PredictabilityScore.MEDIUM, "Some volatility. Slicing + WIP control helps."
    else:
        score, hint = PredictabilityScore.LOW, "High volatility. Predictability will suffer."
    return Predictability(
        score=score,
        hint=hint,
        coefficient_of_variation=cv,
        sample_size=len(velocities),
    )


def stability_index(history: Sequence[Snapshot]) -> StabilityIndex:
    """
    Composite 0-100 stability score for the latest snapshot.

    Blends current risk, the risk trend versus the prior snapshot, the
    overcommit state and confidence.
    """
    if not history:
        return StabilityIndex(index=0, label=StabilityLabel.NO_DATA)

    latest = history[-1]
    previous = history[-2] if len(history) >= 2 else None

    risk_component = _clamp01(1.0 - latest.risk_score / 100.0)

    trend_component = 0.5
    if previous is not None:
        direction = trend_direction(previous.risk_score, latest.risk_score)
        if direction == "down":
            trend_component = 0.8
        elif direction == "up":
            trend_component = 0.2

    ratio = latest.overcommit_ratio
    if ratio <= 1.0:
        overcommit_component = 1.0
    elif ratio <= 1.15:
        overcommit_component = 0.6
    else:
        overcommit_component = 0.2

    confidence_component = _clamp01(latest.confidence / 100.0)

    weighted = (
        RISK_WEIGHT * risk_component
        + TREND_WEIGHT * trend_component
        + OVERCOMMIT_WEIGHT * overcommit_component
        + CONFIDENCE_WEIGHT * confidence_component
    )
    index = int(math.floor(weighted * 100.0 + 0.5))

    if index < 45:
        label = StabilityLabel.FRAGILE
    elif index < 70:
        label = StabilityLabel.WATCH
    else:
        label = StabilityLabel.STABLE
    return StabilityIndex(index=index, label=label)


def trend_arrows(history: Sequence[Snapshot]) -> TrendArrows | None:
    """Directions between the last two snapshots, or None with fewer than two."""
    if len(history) < 2:
        return None
    previous, latest = history[-2], history[-1]
    return TrendArrows(
        risk=trend_direction(previous.risk_score, latest.risk_score),
        capacity=trend_direction(previous.capacity_sp, latest.capacity_sp),
        commitment=trend_direction(previous.committed_sp, latest.committed_sp),
    )


def format_arrow(direction: Direction, *, positive_up: bool = True) -> str:
    """
    Render a direction as an arrow.

    With `positive_up=False` (e.g. risk) a rise is drawn as bad, pointing down.
    """
    if direction == "flat":
        return "-"
    if positive_up:
        return "▲" if direction == "up" else "▼"
    return "▼" if direction == "up" else "▲"


def analyze_history(
    history: Sequence[Snapshot],
    *,
    predictability_window: int | None = None,
) -> HistoryAnalysis:
    streak = overcommit_streak(history)
    return HistoryAnalysis(
        snapshot_count=len(history),
        latest_mode=history[-1].mode if history else None,
        overcommit_streak=streak,
        streak_hint=streak_hint(streak) if history else "No data yet",
        predictability=predictability(history, window=predictability_window),
        stability=stability_index(history),
        arrows=trend_arrows(history),
    )
