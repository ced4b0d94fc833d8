"""
Pytest configuration and shared fixtures.

This module provides:
- A controllable wall clock for snapshot timing
- In-memory and failing storage backends
- A snapshot store factory and sample sprint setups
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from scrummer.engine.signals import SprintSetup
from scrummer.storage.backend import MemoryBackend, PersistenceError
from scrummer.storage.snapshot_store import SnapshotStore

# 2023-11-14 22:13:20 UTC
START_EPOCH_SECONDS = 1_700_000_000.0


# =============================================================================
# Clock Fixtures
# =============================================================================


class FakeClock:
    """Wall clock returning epoch seconds that only moves when told to."""

    def __init__(self, start: float = START_EPOCH_SECONDS) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


# =============================================================================
# Storage Fixtures
# =============================================================================


class FailingBackend:
    """Backend whose every operation fails like an unavailable disk."""

    def read(self, key: str) -> str | None:
        raise PersistenceError(f"read {key}")

    def write(self, key: str, value: str) -> None:
        raise PersistenceError(f"write {key}")

    def delete(self, key: str) -> None:
        raise PersistenceError(f"delete {key}")


@pytest.fixture
def memory_backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def failing_backend() -> FailingBackend:
    return FailingBackend()


@pytest.fixture
def make_store(
    memory_backend: MemoryBackend,
    fake_clock: FakeClock,
) -> Callable[..., SnapshotStore]:
    """Build snapshot stores on the shared memory backend and fake clock."""

    def _factory(**overrides: Any) -> SnapshotStore:
        options: dict[str, Any] = {"wall_time_fn": fake_clock}
        options.update(overrides)
        backend = options.pop("backend", memory_backend)
        return SnapshotStore(backend, **options)

    return _factory


# =============================================================================
# Sample Setups
# =============================================================================


@pytest.fixture
def overcommitted_setup() -> SprintSetup:
    """Ten days, five people, five leave days, 50 SP against ~36 SP capacity."""
    return SprintSetup(
        sprintDays=10,
        teamMembers=5,
        leaveDays=5,
        committedSP=50,
        v1=40,
        v2=42,
        v3=38,
    )


@pytest.fixture
def healthy_setup() -> SprintSetup:
    return SprintSetup(
        sprintDays=10,
        teamMembers=7,
        leaveDays=0,
        committedSP=38,
        v1=40,
        v2=39,
        v3=41,
    )


@pytest.fixture
def empty_setup() -> SprintSetup:
    return SprintSetup()
