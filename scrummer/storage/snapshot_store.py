"""
Append-only, deduplicated, size-bounded snapshot history.

The store owns the read-append-write cycle for the persisted history record.
Persistence failures are logged and swallowed: callers detect them by a
`get_last()` that does not match what they saved, never by an exception.
"""

from __future__ import annotations

import json
import secrets
import time
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from threading import RLock
from typing import Any, Literal

import structlog

from scrummer.core.config import settings
from scrummer.core.risk import detect_mode
from scrummer.engine.signals import Metrics
from scrummer.engine.trends import metric_trend
from scrummer.storage.backend import KeyValueBackend, PersistenceError
from scrummer.storage.models import (
    SNAPSHOT_FIELD_KEYS,
    SaveReason,
    SaveResult,
    Snapshot,
    coerce_number,
)

logger = structlog.get_logger(__name__)

_NUMERIC_FIELDS = (
    "risk_score",
    "confidence",
    "overcommit_ratio",
    "avg_velocity",
    "committed_sp",
    "capacity_sp",
)


def generate_sprint_id(now: float) -> str:
    """Readable sprint id with minute precision, e.g. SPRINT_2026_02_18_0830."""
    moment = datetime.fromtimestamp(now, tz=UTC)
    return moment.strftime("SPRINT_%Y_%m_%d_%H%M")


class SprintContext:
    """
    Holder of the current sprint identifier.

    The id is created on first use and persisted, survives across snapshots,
    and only changes through `reset()`. `teardown()` drops the cached value so
    the next access re-reads storage.
    """

    def __init__(
        self,
        backend: KeyValueBackend,
        *,
        storage_key: str | None = None,
        wall_time_fn: Callable[[], float] | None = None,
    ) -> None:
        self._backend = backend
        self._storage_key = storage_key or settings.SPRINT_ID_STORAGE_KEY
        self._wall_time_fn = wall_time_fn or time.time
        self._sprint_id: str | None = None
        self._lock = RLock()

    @property
    def sprint_id(self) -> str:
        with self._lock:
            if self._sprint_id is None:
                stored = self._read()
                if stored:
                    self._sprint_id = stored
                else:
                    self._sprint_id = generate_sprint_id(self._wall_time_fn())
                    self._write(self._sprint_id)
                    logger.info("Sprint id created", sprint_id=self._sprint_id)
            return self._sprint_id

    def reset(self) -> str:
        """Start a new sprint and return its id."""
        with self._lock:
            previous = self._sprint_id or self._read()
            base_id = generate_sprint_id(self._wall_time_fn())
            new_id = base_id
            # Every reset within the same minute gets a suffix distinct from the last id
            if previous is not None and (
                previous == base_id or previous.startswith(f"{base_id}_")
            ):
                new_id = f"{base_id}_{secrets.token_hex(2)}"
                while new_id == previous:
                    new_id = f"{base_id}_{secrets.token_hex(2)}"
            self._sprint_id = new_id
            self._write(new_id)
            logger.info("Sprint id reset", previous_sprint_id=previous, sprint_id=new_id)
            return new_id

    def teardown(self) -> None:
        with self._lock:
            self._sprint_id = None

    def _read(self) -> str | None:
        try:
            raw = self._backend.read(self._storage_key)
        except PersistenceError:
            logger.warning("Sprint id read failed", storage_key=self._storage_key)
            return None
        if raw is None:
            return None
        try:
            value = json.loads(raw)
        except json.JSONDecodeError:
            # Older clients stored the bare id string
            value = raw
        if not isinstance(value, str):
            return None
        return value.strip() or None

    def _write(self, sprint_id: str) -> None:
        try:
            self._backend.write(self._storage_key, json.dumps(sprint_id))
        except PersistenceError:
            logger.warning("Sprint id write failed", storage_key=self._storage_key)


class SnapshotStore:
    """Persisted, bounded log of metrics-at-a-time snapshots."""

    def __init__(
        self,
        backend: KeyValueBackend,
        *,
        context: SprintContext | None = None,
        history_key: str | None = None,
        dedup_window_ms: int | None = None,
        max_snapshots: int | None = None,
        wall_time_fn: Callable[[], float] | None = None,
    ) -> None:
        self._backend = backend
        self._wall_time_fn = wall_time_fn or time.time
        self._context = context or SprintContext(backend, wall_time_fn=self._wall_time_fn)
        self._history_key = history_key or settings.HISTORY_STORAGE_KEY
        self._dedup_window_ms = max(
            0,
            settings.SNAPSHOT_DEDUP_WINDOW_MS if dedup_window_ms is None else dedup_window_ms,
        )
        self._max_snapshots = max(
            1,
            settings.HISTORY_MAX_SNAPSHOTS if max_snapshots is None else max_snapshots,
        )
        self._lock = RLock()

    @property
    def context(self) -> SprintContext:
        return self._context

    @property
    def current_sprint_id(self) -> str:
        return self._context.sprint_id

    @property
    def max_snapshots(self) -> int:
        return self._max_snapshots

    def save_snapshot(self, metrics: Metrics | Mapping[str, Any], *, force: bool = False) -> SaveResult:
        """
        Append a snapshot built from computed metrics.

        A save within the dedup window of the previous snapshot is rejected
        unless `force` is set; the previous snapshot is returned unchanged.
        """
        values = self._extract_values(metrics)
        if values is None:
            logger.info("Snapshot rejected", reason=SaveReason.INVALID_DATA.value)
            return SaveResult(ok=False, reason=SaveReason.INVALID_DATA, snapshot=None)

        with self._lock:
            history = self._load_history()
            now_ms = self._now_ms()
            last = history[-1] if history else None

            if (
                not force
                and last is not None
                and abs(last.timestamp - now_ms) < self._dedup_window_ms
            ):
                logger.info(
                    "Snapshot skipped by dedup window",
                    sprint_id=last.sprint_id,
                    last_timestamp=last.timestamp,
                    window_ms=self._dedup_window_ms,
                )
                return SaveResult(ok=False, reason=SaveReason.DEDUP, snapshot=last)

            # A clock step backwards must not break chronological order
            timestamp = now_ms if last is None else max(now_ms, last.timestamp)
            snapshot = Snapshot(
                sprint_id=self._context.sprint_id,
                timestamp=timestamp,
                mode=detect_mode(values["risk_score"]),
                **values,
            )

            history.append(snapshot)
            if len(history) > self._max_snapshots:
                del history[: len(history) - self._max_snapshots]
            self._save_history(history)

        logger.info(
            "Snapshot saved",
            sprint_id=snapshot.sprint_id,
            mode=snapshot.mode.value,
            risk_score=snapshot.risk_score,
            forced=force,
            history_size=len(history),
        )
        return SaveResult(ok=True, reason=SaveReason.SAVED, snapshot=snapshot)

    def get_history(self) -> list[Snapshot]:
        """Full bounded history, oldest first."""
        with self._lock:
            return self._load_history()

    def get_last(self) -> Snapshot | None:
        history = self.get_history()
        return history[-1] if history else None

    def get_trend(self, metric: str) -> Literal["up", "down", "flat"]:
        """Direction of a numeric field between the two most recent snapshots."""
        return metric_trend(self.get_history(), metric)

    def reset_current_sprint(self) -> str:
        """Start a new sprint id. Existing history is kept."""
        return self._context.reset()

    def clear_history(self) -> None:
        """Drop all snapshots. The sprint id is kept."""
        with self._lock:
            try:
                self._backend.delete(self._history_key)
            except PersistenceError:
                logger.warning("Snapshot history clear failed", storage_key=self._history_key)
                return
        logger.info("Snapshot history cleared", storage_key=self._history_key)

    def _now_ms(self) -> int:
        return int(self._wall_time_fn() * 1000)

    @staticmethod
    def _extract_values(metrics: Any) -> dict[str, float] | None:
        if isinstance(metrics, Metrics):
            return {name: coerce_number(getattr(metrics, name)) for name in _NUMERIC_FIELDS}
        if not isinstance(metrics, Mapping):
            return None
        values: dict[str, float] = {}
        for name in _NUMERIC_FIELDS:
            key = SNAPSHOT_FIELD_KEYS[name]
            raw = metrics[key] if key in metrics else metrics.get(name)
            values[name] = coerce_number(raw)
        return values

    def _load_history(self) -> list[Snapshot]:
        try:
            raw = self._backend.read(self._history_key)
        except PersistenceError:
            logger.warning("Snapshot history read failed", storage_key=self._history_key)
            return []
        if not raw:
            return []

        try:
            payload = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Snapshot history is malformed; treating as empty")
            return []
        if not isinstance(payload, list):
            logger.warning("Snapshot history is not a list; treating as empty")
            return []

        history = [Snapshot.from_dict(row) for row in payload if isinstance(row, Mapping)]
        return history[-self._max_snapshots :]

    def _save_history(self, history: list[Snapshot]) -> None:
        rows = [snapshot.to_dict() for snapshot in history]
        try:
            self._backend.write(self._history_key, json.dumps(rows, sort_keys=True))
        except PersistenceError:
            logger.warning(
                "Snapshot history write failed",
                storage_key=self._history_key,
                history_size=len(rows),
            )
