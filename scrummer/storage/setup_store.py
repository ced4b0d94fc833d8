"""
Persisted sprint setup record and planning presets.
"""

from __future__ import annotations

import json
from typing import Any

import structlog

from scrummer.core.config import settings
from scrummer.engine.signals import SprintSetup
from scrummer.storage.backend import KeyValueBackend, PersistenceError

logger = structlog.get_logger(__name__)

SETUP_PRESETS: dict[str, dict[str, float]] = {
    "excellent": {
        "sprintDays": 10,
        "teamMembers": 7,
        "leaveDays": 0,
        "committedSP": 38,
        "v1": 40,
        "v2": 39,
        "v3": 41,
    },
    "normal": {
        "sprintDays": 10,
        "teamMembers": 7,
        "leaveDays": 3,
        "committedSP": 42,
        "v1": 40,
        "v2": 36,
        "v3": 41,
    },
    "risky": {
        "sprintDays": 10,
        "teamMembers": 7,
        "leaveDays": 6,
        "committedSP": 52,
        "v1": 38,
        "v2": 30,
        "v3": 44,
    },
}


class SetupRepository:
    """Last-write-wins storage of the sprint setup record."""

    def __init__(self, backend: KeyValueBackend, *, storage_key: str | None = None) -> None:
        self._backend = backend
        self._storage_key = storage_key or settings.SETUP_STORAGE_KEY

    def load(self) -> SprintSetup:
        """Load the saved setup; missing or unreadable records yield zeros."""
        return SprintSetup.from_record(self.load_raw())

    def load_raw(self) -> dict[str, Any]:
        try:
            raw = self._backend.read(self._storage_key)
        except PersistenceError:
            logger.warning("Sprint setup read failed", storage_key=self._storage_key)
            return {}
        if not raw:
            return {}
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Sprint setup record is malformed; ignoring")
            return {}
        return payload if isinstance(payload, dict) else {}

    def save(self, setup: SprintSetup) -> bool:
        """Persist the setup. Returns False when storage rejected the write."""
        try:
            self._backend.write(
                self._storage_key,
                json.dumps(setup.to_record(), sort_keys=True),
            )
        except PersistenceError:
            logger.warning("Sprint setup write failed", storage_key=self._storage_key)
            return False
        logger.info("Sprint setup saved", storage_key=self._storage_key)
        return True

    def update(self, **changes: Any) -> SprintSetup:
        """Merge field changes (field names or camelCase keys) into the saved setup."""
        current = self.load().to_record()
        aliases = {
            name: info.alias or name for name, info in SprintSetup.model_fields.items()
        }
        for key, value in changes.items():
            if value is None:
                continue
            current[aliases.get(key, key)] = value
        updated = SprintSetup.from_record(current)
        self.save(updated)
        return updated

    def apply_preset(self, name: str) -> SprintSetup | None:
        """Save one of the named presets; unknown names return None."""
        preset = SETUP_PRESETS.get(name.strip().lower())
        if preset is None:
            return None
        setup = SprintSetup.from_record(preset)
        self.save(setup)
        return setup
