"""Shared fixtures for cpumap-top tests."""

import io

import pytest

from cpumap_top.errors import CounterReadError
from cpumap_top.store import SnapshotStore


class FakeCounterSubsystem:
    """In-memory stand-in for the pinned per-CPU maps."""

    def __init__(self, core_count: int = 4) -> None:
        self.core_count = core_count
        self.values: dict[tuple[str, int], list[tuple[int, int]]] = {}
        self.failing: set[tuple[str, int]] = set()
        self.lookups: list[tuple[str, int]] = []

    def set(self, map_name: str, key: int, pairs: list[tuple[int, int]]) -> None:
        self.values[(map_name, key)] = list(pairs)

    def bump(self, map_name: str, key: int, core: int, processed: int, dropped: int = 0) -> None:
        pairs = self.values.setdefault(
            (map_name, key), [(0, 0)] * self.core_count
        )
        old_processed, old_dropped = pairs[core]
        pairs[core] = (old_processed + processed, old_dropped + dropped)

    def lookup(self, map_name: str, key: int) -> list[tuple[int, int]]:
        self.lookups.append((map_name, key))
        if (map_name, key) in self.failing:
            raise CounterReadError(f"lookup failed on {map_name} key {key}")
        return list(self.values.get((map_name, key), [(0, 0)] * self.core_count))

    def logical_core_count(self) -> int:
        return self.core_count


@pytest.fixture
def subsystem() -> FakeCounterSubsystem:
    """A four-core fake counting subsystem with all counters at zero."""
    return FakeCounterSubsystem(core_count=4)


@pytest.fixture
def store(subsystem: FakeCounterSubsystem) -> SnapshotStore:
    """A SnapshotStore over the fake subsystem with three targets."""
    return SnapshotStore(subsystem, target_count=3)


@pytest.fixture
def stream() -> io.StringIO:
    """In-memory report stream."""
    return io.StringIO()
