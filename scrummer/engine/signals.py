"""
Signal Calculator: sprint risk, confidence and capacity health.

Turns raw sprint planning inputs into normalized metrics. This is the single
implementation of the risk and confidence formulas; every caller (snapshot
saving, action recommendations, the CLI) goes through it.

Example Usage:
    >>> from scrummer.engine.signals import SprintSetup, compute_signals
    >>>
    >>> setup = SprintSetup(sprintDays=10, teamMembers=5, leaveDays=5,
    ...                     committedSP=50, v1=40, v2=42, v3=38)
    >>> metrics = compute_signals(setup)
    >>> metrics.capacity_health.value
    'Critical'
"""

from __future__ import annotations

import math
import statistics
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from scrummer.core.risk import (
    ConfidenceRating,
    classify_capacity_health,
    get_confidence_rating,
    get_risk_band,
)
from scrummer.storage.models import (
    MAX_RECORD_MAGNITUDE,
    CapacityHealth,
    RiskBand,
    coerce_number,
)

logger = structlog.get_logger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Penalty caps; together with the missing-data penalty they bound the score
OVERCOMMIT_PENALTY_FACTOR: float = 60.0
OVERCOMMIT_PENALTY_CAP: float = 50.0
CAPACITY_PENALTY_FACTOR: float = 50.0
CAPACITY_PENALTY_CAP: float = 35.0
VOLATILITY_PENALTY_FACTOR: float = 50.0
VOLATILITY_PENALTY_CAP: float = 15.0

# Added when there is no commitment or no usable capacity to compare against
MISSING_DATA_PENALTY: float = 30.0


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded up."""
    return int(math.floor(value + 0.5))


# =============================================================================
# Input
# =============================================================================


class SprintSetup(BaseModel):
    """
    Sprint planning inputs.

    Accepts the persisted camelCase keys as well as field names. Invalid,
    missing, non-finite or negative values become 0 instead of failing.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    sprint_days: int = Field(default=0, alias="sprintDays")
    team_members: int = Field(default=0, alias="teamMembers")
    leave_days: float = Field(default=0.0, alias="leaveDays")
    committed_sp: float = Field(default=0.0, alias="committedSP")
    v1: float = 0.0
    v2: float = 0.0
    v3: float = 0.0

    @field_validator("sprint_days", "team_members", mode="before")
    @classmethod
    def coerce_count(cls, value: Any) -> int:
        return int(max(0.0, coerce_number(value)))

    @field_validator("leave_days", "committed_sp", "v1", "v2", "v3", mode="before")
    @classmethod
    def coerce_amount(cls, value: Any) -> float:
        return max(0.0, coerce_number(value))

    @classmethod
    def from_record(cls, record: Any) -> SprintSetup:
        """Build a setup from any persisted record; non-mappings yield zeros."""
        if isinstance(record, SprintSetup):
            return record
        if not isinstance(record, Mapping):
            return cls()
        try:
            return cls.model_validate(dict(record))
        except ValidationError:
            logger.warning("Sprint setup record rejected; using defaults")
            return cls()

    def to_record(self) -> dict[str, Any]:
        """Convert to the persisted camelCase shape."""
        return self.model_dump(by_alias=True)


# =============================================================================
# Output
# =============================================================================


@dataclass(frozen=True, slots=True)
class RiskComponents:
    """
    Breakdown of the penalties summed into the risk score.

    Attributes:
        overcommit: Penalty for commitment above the capacity estimate
        capacity: Penalty for commitment above available capacity
        volatility: Penalty for unstable historical velocity
        missing_data: Penalty when commitment or capacity is absent
    """

    overcommit: float
    capacity: float
    volatility: float
    missing_data: float

    @property
    def total(self) -> float:
        return self.overcommit + self.capacity + self.volatility + self.missing_data

    def to_dict(self) -> dict[str, float]:
        return {
            "overcommit": self.overcommit,
            "capacity": self.capacity,
            "volatility": self.volatility,
            "missingData": self.missing_data,
        }


@dataclass(frozen=True, slots=True)
class Metrics:
    """Derived sprint signals. Immutable once computed."""

    velocities: tuple[float, ...]
    avg_velocity: float
    volatility: float
    ideal_person_days: float
    available_person_days: float
    availability_ratio: float
    capacity_sp: float
    committed_sp: float
    overcommit_ratio: float
    risk_score: int
    risk_band: RiskBand
    confidence: int
    confidence_rating: ConfidenceRating
    capacity_health: CapacityHealth
    risk_components: RiskComponents = field(
        default_factory=lambda: RiskComponents(0.0, 0.0, 0.0, 0.0)
    )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the interoperable camelCase shape."""
        return {
            "velocities": list(self.velocities),
            "avgVelocity": self.avg_velocity,
            "volatility": self.volatility,
            "idealPersonDays": self.ideal_person_days,
            "availablePersonDays": self.available_person_days,
            "availabilityRatio": self.availability_ratio,
            "capacitySP": self.capacity_sp,
            "committedSP": self.committed_sp,
            "overcommitRatio": self.overcommit_ratio,
            "riskScore": self.risk_score,
            "riskBand": self.risk_band.value,
            "confidence": self.confidence,
            "confidenceRating": self.confidence_rating.value,
            "capacityHealth": self.capacity_health.value,
            "components": self.risk_components.to_dict(),
        }


# =============================================================================
# Computation
# =============================================================================


def calculate_volatility(velocities: tuple[float, ...]) -> float:
    """
    Coefficient of variation (sample stddev / mean) of positive velocities.

    Returns 0 with fewer than two samples or a zero mean.
    """
    if len(velocities) < 2:
        return 0.0
    mean = statistics.fmean(velocities)
    if mean <= 0:
        return 0.0
    return statistics.stdev(velocities) / mean


def calculate_overcommit_ratio(committed_sp: float, capacity_sp: float) -> float:
    """
    Commitment over capacity.

    Without capacity the ratio is 0 when nothing is committed and 1 otherwise,
    so a commitment against unknown capacity never reads as underloaded.
    """
    if capacity_sp > 0:
        return min(committed_sp / capacity_sp, MAX_RECORD_MAGNITUDE)
    if committed_sp > 0:
        return 1.0
    return 0.0


def calculate_risk_components(
    *,
    committed_sp: float,
    capacity_sp: float,
    overcommit_ratio: float,
    volatility: float,
) -> RiskComponents:
    overcommit = clamp(
        (overcommit_ratio - 1.0) * OVERCOMMIT_PENALTY_FACTOR,
        0.0,
        OVERCOMMIT_PENALTY_CAP,
    )
    capacity = 0.0
    if capacity_sp > 0:
        capacity = clamp(
            (committed_sp / capacity_sp - 1.0) * CAPACITY_PENALTY_FACTOR,
            0.0,
            CAPACITY_PENALTY_CAP,
        )
    vol = clamp(volatility * VOLATILITY_PENALTY_FACTOR, 0.0, VOLATILITY_PENALTY_CAP)
    missing = MISSING_DATA_PENALTY if committed_sp <= 0 or capacity_sp <= 0 else 0.0
    return RiskComponents(
        overcommit=overcommit,
        capacity=capacity,
        volatility=vol,
        missing_data=missing,
    )


def calculate_confidence(
    *,
    committed_sp: float,
    capacity_sp: float,
    volatility: float,
) -> int:
    if committed_sp <= 0:
        return 0
    base = (capacity_sp / committed_sp) * 100.0
    return round_half_up(clamp(base - volatility * 100.0, 0.0, 100.0))


def compute_signals(setup: SprintSetup | Mapping[str, Any] | None) -> Metrics:
    """
    Compute sprint signals from planning inputs.

    Total function: malformed input degrades to zeros, never raises, and the
    same input always produces the same metrics.

    Args:
        setup: Sprint setup model or a raw persisted record

    Returns:
        Metrics with capacity, overcommit ratio, risk and confidence
    """
    normalized = SprintSetup.from_record(setup)

    velocities = tuple(v for v in (normalized.v1, normalized.v2, normalized.v3) if v > 0)
    avg_velocity = statistics.fmean(velocities) if velocities else 0.0
    volatility = calculate_volatility(velocities)

    ideal_person_days = float(normalized.sprint_days) * max(1, normalized.team_members)
    available_person_days = max(0.0, ideal_person_days - normalized.leave_days)
    availability_ratio = (
        clamp(available_person_days / ideal_person_days, 0.0, 1.0)
        if ideal_person_days > 0
        else 0.0
    )

    capacity_sp = avg_velocity * availability_ratio
    committed_sp = normalized.committed_sp
    overcommit_ratio = calculate_overcommit_ratio(committed_sp, capacity_sp)

    components = calculate_risk_components(
        committed_sp=committed_sp,
        capacity_sp=capacity_sp,
        overcommit_ratio=overcommit_ratio,
        volatility=volatility,
    )
    risk_score = round_half_up(clamp(components.total, 0.0, 100.0))
    confidence = calculate_confidence(
        committed_sp=committed_sp,
        capacity_sp=capacity_sp,
        volatility=volatility,
    )

    metrics = Metrics(
        velocities=velocities,
        avg_velocity=avg_velocity,
        volatility=volatility,
        ideal_person_days=ideal_person_days,
        available_person_days=available_person_days,
        availability_ratio=availability_ratio,
        capacity_sp=capacity_sp,
        committed_sp=committed_sp,
        overcommit_ratio=overcommit_ratio,
        risk_score=risk_score,
        risk_band=get_risk_band(risk_score),
        confidence=confidence,
        confidence_rating=get_confidence_rating(confidence),
        capacity_health=classify_capacity_health(
            overcommit_ratio=overcommit_ratio,
            committed_sp=committed_sp,
            capacity_sp=capacity_sp,
        ),
        risk_components=components,
    )

    logger.debug(
        "Sprint signals computed",
        risk_score=risk_score,
        confidence=confidence,
        capacity_sp=capacity_sp,
        overcommit_ratio=overcommit_ratio,
        components=components.to_dict(),
    )
    return metrics


class SignalCalculator:
    """
    Injectable wrapper around `compute_signals`.

    Callers that need the calculator take one of these instead of reaching
    for a module-level function, so tests can substitute a stub.
    """

    def compute(self, setup: SprintSetup | Mapping[str, Any] | None) -> Metrics:
        return compute_signals(setup)
