"""
Recommended team actions derived from sprint signals.
"""

from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from scrummer.core.risk import detect_mode
from scrummer.engine.signals import Metrics, SignalCalculator, SprintSetup

# Overcommit ratio above which de-scoping is recommended first
DESCOPE_OVERCOMMIT_RATIO: float = 1.05
HIGH_VOLATILITY: float = 0.30
LOW_CONFIDENCE: int = 60


class ActionPriority(str, enum.Enum):
    P0 = "P0"
    P1 = "P1"
    P2 = "P2"
    SETUP = "setup"


@dataclass(frozen=True, slots=True)
class ActionCard:
    priority: ActionPriority
    title: str
    why: str
    how: tuple[str, ...]


def has_minimum_setup(setup: SprintSetup | Mapping[str, Any] | None) -> bool:
    """
    Whether the setup carries enough input for meaningful actions.

    Needs sprint days, team size, a commitment and at least one velocity.
    """
    if isinstance(setup, Mapping):
        raw_committed = setup.get("committedSP", setup.get("committed_sp"))
        has_commitment = raw_committed is not None and str(raw_committed).strip() != ""
    else:
        has_commitment = setup is not None
    normalized = SprintSetup.from_record(setup)
    velocity_count = sum(1 for v in (normalized.v1, normalized.v2, normalized.v3) if v > 0)
    return (
        normalized.sprint_days > 0
        and normalized.team_members > 0
        and has_commitment
        and velocity_count >= 1
    )


def recommend_actions(
    setup: SprintSetup | Mapping[str, Any] | None,
    metrics: Metrics | None = None,
    *,
    calculator: SignalCalculator | None = None,
) -> list[ActionCard]:
    """
    Build prioritized action cards for the current setup.

    Metrics are computed with the injected calculator when not supplied.
    """
    if not has_minimum_setup(setup):
        return [
            ActionCard(
                priority=ActionPriority.SETUP,
                title="Setup first",
                why=(
                    "Actions depend on sprint days, team size, committed SP, "
                    "and at least 1 past velocity."
                ),
                how=(
                    "Fill in the setup and save it.",
                    "Compute signals and save a snapshot.",
                    "Come back for refreshed actions.",
                ),
            )
        ]

    signals = metrics or (calculator or SignalCalculator()).compute(setup)
    cards: list[ActionCard] = []

    if signals.overcommit_ratio > DESCOPE_OVERCOMMIT_RATIO:
        pct = round((signals.overcommit_ratio - 1) * 100)
        cards.append(
            ActionCard(
                priority=ActionPriority.P0,
                title="De-scope or renegotiate commitment",
                why=f"Commitment is above capacity by ~{pct}%. This is the #1 spillover driver.",
                how=(
                    "Move 10-20% scope into Stretch.",
                    "Split the biggest story into must-have vs nice-to-have.",
                    "Make scope changes explicit (no silent creep).",
                ),
            )
        )

    if signals.capacity_sp > 0 and signals.committed_sp > signals.capacity_sp:
        cards.append(
            ActionCard(
                priority=ActionPriority.P0,
                title="Fix capacity mismatch",
                why=(
                    f"Committed ({signals.committed_sp:g}) is above capacity "
                    f"(~{round(signals.capacity_sp)})."
                ),
                how=(
                    "Reconfirm leave + interrupts.",
                    "Reserve a buffer lane for support.",
                    "Reduce scope until committed <= capacity.",
                ),
            )
        )

    if signals.volatility >= HIGH_VOLATILITY:
        cards.append(
            ActionCard(
                priority=ActionPriority.P1,
                title="Reduce volatility (slice smaller)",
                why="Recent delivery is volatile. Predictability will suffer.",
                how=(
                    "Slice stories into 1-2 day pieces.",
                    "Finish-first rule.",
                    "Limit WIP (start less, finish more).",
                ),
            )
        )

    if signals.confidence < LOW_CONFIDENCE:
        cards.append(
            ActionCard(
                priority=ActionPriority.P1,
                title="Add a mid-sprint checkpoint",
                why=f"Confidence is below {LOW_CONFIDENCE}%. Run an early reality check.",
                how=(
                    "Day-3 checkpoint:",
                    "If behind, de-scope fast.",
                    "If on track, pull stretch carefully.",
                ),
            )
        )

    if not cards:
        mode = detect_mode(signals.risk_score)
        cards.append(
            ActionCard(
                priority=ActionPriority.P2,
                title="Maintain flow",
                why=f"Signals look stable. Current risk tier: {mode.value}.",
                how=(
                    "Protect focus time.",
                    "Keep WIP low.",
                    "Review scope changes daily.",
                    "Celebrate wins in Review.",
                ),
            )
        )
    return cards
