"""Verification Test: Memory Leak Check.

The snapshot buffers are allocated once at startup and reused every cycle.
Run many collect/swap/render cycles and ensure memory does not grow with
the number of cycles.
"""

import gc
import io
import tracemalloc

import psutil

from cpumap_top.report import Reporter
from cpumap_top.store import SnapshotStore

from conftest import FakeCounterSubsystem


def get_current_memory_mb() -> float:
    """Get current process memory usage in MB."""
    process = psutil.Process()
    return process.memory_info().rss / (1024 * 1024)


def run_cycles(store: SnapshotStore, subsystem: FakeCounterSubsystem, cycles: int) -> None:
    """Advance counters and run full poll cycles without the wait."""
    stream = io.StringIO()
    reporter = Reporter(stream)
    for cycle in range(cycles):
        for target in range(store.target_count):
            subsystem.bump("cpumap_enqueue_cnt", target, cycle % store.core_count, 1000, 1)
        subsystem.bump("rx_cnt", 0, cycle % store.core_count, 5000)
        store.swap()
        store.collect()
        reporter.render(store.current, store.previous)
        # Keep the report stream from growing
        stream.seek(0)
        stream.truncate()
        subsystem.lookups.clear()


class TestMemoryLeakCheck:
    """Memory leak verification suite tests."""

    def test_python_allocations_stable(self):
        """Test traced allocations do not grow between two batches of cycles."""
        subsystem = FakeCounterSubsystem(core_count=16)
        store = SnapshotStore(subsystem, target_count=12)
        store.collect()

        # Warm up caches before measuring
        run_cycles(store, subsystem, 50)
        gc.collect()

        tracemalloc.start()
        try:
            run_cycles(store, subsystem, 200)
            gc.collect()
            first, _ = tracemalloc.get_traced_memory()

            run_cycles(store, subsystem, 2000)
            gc.collect()
            second, _ = tracemalloc.get_traced_memory()
        finally:
            tracemalloc.stop()

        growth = second - first
        assert growth < 64 * 1024, f"Traced memory grew by {growth} bytes"

    def test_rss_delta(self):
        """Test resident memory stays flat over many cycles."""
        gc.collect()
        subsystem = FakeCounterSubsystem(core_count=64)
        store = SnapshotStore(subsystem, target_count=12)
        store.collect()
        run_cycles(store, subsystem, 50)

        initial_memory = get_current_memory_mb()
        run_cycles(store, subsystem, 1000)
        gc.collect()
        final_memory = get_current_memory_mb()

        delta = final_memory - initial_memory
        assert delta < 5.0, f"RSS grew by {delta:.2f} MB"
