"""
Risk-band, mode and confidence presentation helpers.
"""

from __future__ import annotations

import enum

from scrummer.storage.models import CapacityHealth, RiskBand, SnapshotMode

# Overcommit ratio above which capacity health turns critical
CRITICAL_OVERCOMMIT_RATIO: float = 1.15

RESCUE_RISK_THRESHOLD: int = 70
WATCH_RISK_THRESHOLD: int = 40


class ConfidenceRating(enum.StrEnum):
    """Confidence rating shown next to the confidence score."""

    STRONG = "Strong Sprint"
    BALANCED = "Balanced"
    FRAGILE = "Fragile"


def detect_mode(risk_score: float) -> SnapshotMode:
    """Map a risk score to the snapshot mode."""
    if risk_score >= RESCUE_RISK_THRESHOLD:
        return SnapshotMode.RESCUE
    if risk_score >= WATCH_RISK_THRESHOLD:
        return SnapshotMode.WATCH
    return SnapshotMode.STABLE


def get_risk_band(risk_score: float) -> RiskBand:
    """Map a risk score to the coarse risk band."""
    if risk_score <= 30:
        return RiskBand.LOW
    if risk_score <= 60:
        return RiskBand.MODERATE
    return RiskBand.HIGH


def get_confidence_rating(confidence: float) -> ConfidenceRating:
    """Classify a 0-100 confidence score."""
    if confidence >= 80:
        return ConfidenceRating.STRONG
    if confidence >= 60:
        return ConfidenceRating.BALANCED
    return ConfidenceRating.FRAGILE


def classify_capacity_health(
    *,
    overcommit_ratio: float,
    committed_sp: float,
    capacity_sp: float,
) -> CapacityHealth:
    """
    Classify capacity health from the overcommit ratio.

    Without a commitment or a positive capacity there is no ratio to judge,
    so the result is unknown rather than healthy. In particular a commitment
    against zero capacity (no velocity history yet) is Unknown, never Healthy.
    """
    if committed_sp <= 0 or capacity_sp <= 0:
        return CapacityHealth.UNKNOWN
    if overcommit_ratio > CRITICAL_OVERCOMMIT_RATIO:
        return CapacityHealth.CRITICAL
    if overcommit_ratio > 1.0:
        return CapacityHealth.AT_RISK
    return CapacityHealth.HEALTHY
