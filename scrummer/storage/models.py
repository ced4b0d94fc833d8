"""
Persisted record shapes for the sprint signal engine.

Snapshots are written as JSON objects with camelCase keys so export and sync
collaborators can read the same records without translation.
"""

from __future__ import annotations

import enum
import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

# =============================================================================
# Enums
# =============================================================================


class SnapshotMode(str, enum.Enum):
    """Risk band stamped on a snapshot at write time."""

    STABLE = "stable"
    WATCH = "watch"
    RESCUE = "rescue"


class CapacityHealth(str, enum.Enum):
    """Capacity health from the overcommit ratio."""

    HEALTHY = "Healthy"
    AT_RISK = "AtRisk"
    CRITICAL = "Critical"
    UNKNOWN = "Unknown"


class RiskBand(str, enum.Enum):
    """Coarse risk band shown next to the risk score."""

    LOW = "Low"
    MODERATE = "Moderate"
    HIGH = "High"


class SaveReason(str, enum.Enum):
    """Outcome of a snapshot save attempt."""

    SAVED = "saved"
    DEDUP = "dedup_60s"
    INVALID_DATA = "invalid_data"


# =============================================================================
# Coercion
# =============================================================================


# Largest magnitude accepted from a record; millisecond timestamps fit well below it
MAX_RECORD_MAGNITUDE: float = 1e15


def coerce_number(value: Any) -> float:
    """
    Coerce a loosely typed value to a finite float, defaulting to 0.

    Values that do not fit a float or exceed MAX_RECORD_MAGNITUDE are treated
    as invalid, which keeps every derived quantity finite.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return 0.0
    try:
        numeric = float(value)
    except (TypeError, ValueError, OverflowError):
        return 0.0
    if not math.isfinite(numeric) or abs(numeric) > MAX_RECORD_MAGNITUDE:
        return 0.0
    return numeric


# Snapshot attribute -> persisted key
SNAPSHOT_FIELD_KEYS: dict[str, str] = {
    "sprint_id": "sprintId",
    "timestamp": "timestamp",
    "risk_score": "riskScore",
    "confidence": "confidence",
    "overcommit_ratio": "overcommitRatio",
    "avg_velocity": "avgVelocity",
    "committed_sp": "committedSP",
    "capacity_sp": "capacitySP",
    "mode": "mode",
}


def resolve_snapshot_field(metric: str) -> str | None:
    """Map a snake_case or camelCase metric name to a Snapshot attribute."""
    normalized = metric.strip()
    if normalized in SNAPSHOT_FIELD_KEYS:
        return normalized
    for attribute, key in SNAPSHOT_FIELD_KEYS.items():
        if key == normalized:
            return attribute
    return None


# =============================================================================
# Records
# =============================================================================


@dataclass(frozen=True, slots=True)
class Snapshot:
    """One persisted, timestamped record of computed metrics for a sprint."""

    sprint_id: str
    timestamp: int
    risk_score: float
    confidence: float
    overcommit_ratio: float
    avg_velocity: float
    committed_sp: float
    capacity_sp: float
    mode: SnapshotMode

    def to_dict(self) -> dict[str, Any]:
        """Convert to the persisted camelCase shape."""
        return {
            "sprintId": self.sprint_id,
            "timestamp": self.timestamp,
            "riskScore": self.risk_score,
            "confidence": self.confidence,
            "overcommitRatio": self.overcommit_ratio,
            "avgVelocity": self.avg_velocity,
            "committedSP": self.committed_sp,
            "capacitySP": self.capacity_sp,
            "mode": self.mode.value,
        }

    @classmethod
    def from_dict(cls, row: Mapping[str, Any]) -> Snapshot:
        """Rebuild a snapshot from a persisted row, coercing bad values."""
        raw_mode = str(row.get("mode") or "").strip().lower()
        try:
            mode = SnapshotMode(raw_mode)
        except ValueError:
            # Rows written by older clients may lack a mode; derive it once here.
            from scrummer.core.risk import detect_mode

            mode = detect_mode(coerce_number(row.get("riskScore")))
        return cls(
            sprint_id=str(row.get("sprintId") or ""),
            timestamp=int(coerce_number(row.get("timestamp"))),
            risk_score=coerce_number(row.get("riskScore")),
            confidence=coerce_number(row.get("confidence")),
            overcommit_ratio=coerce_number(row.get("overcommitRatio")),
            avg_velocity=coerce_number(row.get("avgVelocity")),
            committed_sp=coerce_number(row.get("committedSP")),
            capacity_sp=coerce_number(row.get("capacitySP")),
            mode=mode,
        )


@dataclass(frozen=True, slots=True)
class SaveResult:
    """Discriminated result of `SnapshotStore.save_snapshot`."""

    ok: bool
    reason: SaveReason
    snapshot: Snapshot | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "reason": self.reason.value,
            "snapshot": self.snapshot.to_dict() if self.snapshot else None,
        }
