from __future__ import annotations

import pytest

from scrummer.core.risk import (
    ConfidenceRating,
    classify_capacity_health,
    detect_mode,
    get_confidence_rating,
    get_risk_band,
)
from scrummer.storage.models import CapacityHealth, RiskBand, SnapshotMode

pytestmark = pytest.mark.unit


def test_detect_mode_thresholds() -> None:
    assert detect_mode(0) == SnapshotMode.STABLE
    assert detect_mode(39.9) == SnapshotMode.STABLE
    assert detect_mode(40) == SnapshotMode.WATCH
    assert detect_mode(69.9) == SnapshotMode.WATCH
    assert detect_mode(70) == SnapshotMode.RESCUE
    assert detect_mode(100) == SnapshotMode.RESCUE


def test_get_risk_band_thresholds() -> None:
    assert get_risk_band(30) == RiskBand.LOW
    assert get_risk_band(31) == RiskBand.MODERATE
    assert get_risk_band(60) == RiskBand.MODERATE
    assert get_risk_band(61) == RiskBand.HIGH


def test_get_confidence_rating_thresholds() -> None:
    assert get_confidence_rating(95) == ConfidenceRating.STRONG
    assert get_confidence_rating(80) == ConfidenceRating.STRONG
    assert get_confidence_rating(79) == ConfidenceRating.BALANCED
    assert get_confidence_rating(60) == ConfidenceRating.BALANCED
    assert get_confidence_rating(59) == ConfidenceRating.FRAGILE


@pytest.mark.parametrize(
    ("ratio", "expected"),
    [
        (0.8, CapacityHealth.HEALTHY),
        (1.0, CapacityHealth.HEALTHY),
        (1.1, CapacityHealth.AT_RISK),
        (1.15, CapacityHealth.AT_RISK),
        (1.16, CapacityHealth.CRITICAL),
    ],
)
def test_classify_capacity_health_from_ratio(ratio: float, expected: CapacityHealth) -> None:
    health = classify_capacity_health(
        overcommit_ratio=ratio,
        committed_sp=40 * ratio,
        capacity_sp=40,
    )

    assert health == expected


def test_classify_capacity_health_is_unknown_without_capacity_or_commitment() -> None:
    assert (
        classify_capacity_health(overcommit_ratio=1.0, committed_sp=20, capacity_sp=0)
        == CapacityHealth.UNKNOWN
    )
    assert (
        classify_capacity_health(overcommit_ratio=0.0, committed_sp=0, capacity_sp=30)
        == CapacityHealth.UNKNOWN
    )
