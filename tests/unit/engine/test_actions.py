from __future__ import annotations

import pytest

from scrummer.engine.actions import ActionPriority, has_minimum_setup, recommend_actions
from scrummer.engine.signals import SprintSetup, compute_signals

pytestmark = pytest.mark.unit


def test_has_minimum_setup_requires_core_inputs() -> None:
    assert has_minimum_setup({}) is False
    assert has_minimum_setup(None) is False
    assert has_minimum_setup({"sprintDays": 10, "teamMembers": 5, "committedSP": 30}) is False
    assert (
        has_minimum_setup({"sprintDays": 10, "teamMembers": 5, "committedSP": "", "v1": 40})
        is False
    )
    assert (
        has_minimum_setup({"sprintDays": 10, "teamMembers": 5, "committedSP": 0, "v1": 40})
        is True
    )


def test_incomplete_setup_gets_single_setup_card() -> None:
    cards = recommend_actions({"sprintDays": 10})

    assert len(cards) == 1
    assert cards[0].priority == ActionPriority.SETUP
    assert cards[0].title == "Setup first"


def test_overcommitted_risky_setup_prioritizes_scope() -> None:
    setup = SprintSetup(
        sprintDays=10,
        teamMembers=7,
        leaveDays=6,
        committedSP=52,
        v1=38,
        v2=30,
        v3=44,
    )

    cards = recommend_actions(setup)

    assert [card.title for card in cards] == [
        "De-scope or renegotiate commitment",
        "Fix capacity mismatch",
        "Add a mid-sprint checkpoint",
    ]
    assert [card.priority for card in cards] == [
        ActionPriority.P0,
        ActionPriority.P0,
        ActionPriority.P1,
    ]
    assert "~52%" in cards[0].why


def test_volatile_velocity_recommends_smaller_slices() -> None:
    setup = SprintSetup(sprintDays=10, teamMembers=5, committedSP=20, v1=10, v2=30, v3=20)

    titles = [card.title for card in recommend_actions(setup)]

    assert titles == ["Reduce volatility (slice smaller)", "Add a mid-sprint checkpoint"]


def test_healthy_setup_maintains_flow(healthy_setup) -> None:
    cards = recommend_actions(healthy_setup)

    assert len(cards) == 1
    assert cards[0].priority == ActionPriority.P2
    assert cards[0].title == "Maintain flow"
    assert "stable" in cards[0].why


def test_precomputed_metrics_are_used(overcommitted_setup, healthy_setup) -> None:
    metrics = compute_signals(overcommitted_setup)

    cards = recommend_actions(healthy_setup, metrics)

    assert cards[0].priority == ActionPriority.P0


def test_injected_calculator_is_used(healthy_setup, overcommitted_setup) -> None:
    class _FixedCalculator:
        def compute(self, setup):
            return compute_signals(overcommitted_setup)

    cards = recommend_actions(healthy_setup, calculator=_FixedCalculator())

    assert cards[0].title == "De-scope or renegotiate commitment"
