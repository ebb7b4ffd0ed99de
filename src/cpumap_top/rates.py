"""Rate calculations over two successive counter samples."""

import logging

from cpumap_top.models import DataPoint, GroupRecord, Rate

logger = logging.getLogger(__name__)

NANOSEC_PER_SEC = 1_000_000_000


def period(current: GroupRecord, previous: GroupRecord) -> float:
    """Seconds between two samples, or 0.0 unless time moved forward."""
    elapsed = current.timestamp - previous.timestamp
    if elapsed <= 0:
        return 0.0
    return elapsed / NANOSEC_PER_SEC


def _per_second(current: int, previous: int, period_seconds: float) -> int:
    if period_seconds <= 0:
        return 0
    delta = current - previous
    if delta < 0:
        # Counters restart from zero when the XDP program is reloaded
        return 0
    return int(delta / period_seconds)


def pps(current: DataPoint, previous: DataPoint, period_seconds: float) -> int:
    """Processed events per second."""
    return _per_second(current.processed, previous.processed, period_seconds)


def drop_pps(current: DataPoint, previous: DataPoint, period_seconds: float) -> int:
    """Dropped events per second."""
    return _per_second(current.dropped, previous.dropped, period_seconds)


def rate(current: DataPoint, previous: DataPoint, period_seconds: float) -> Rate:
    """
    Build a Rate for one DataPoint pair.

    A counter that went backwards yields a clamped zero rate with
    ``counter_reset`` set instead of wrapping around.
    """
    reset = (
        current.processed < previous.processed or current.dropped < previous.dropped
    )
    if reset:
        logger.debug(
            "Counter reset detected (processed %d -> %d, dropped %d -> %d)",
            previous.processed,
            current.processed,
            previous.dropped,
            current.dropped,
        )
    return Rate(
        pps=pps(current, previous, period_seconds),
        drop_pps=drop_pps(current, previous, period_seconds),
        period_seconds=period_seconds,
        counter_reset=reset,
    )


def total_rate(current: GroupRecord, previous: GroupRecord) -> Rate:
    """Aggregate rate of a group across all cores."""
    return rate(current.total, previous.total, period(current, previous))


def core_rates(current: GroupRecord, previous: GroupRecord) -> list[Rate]:
    """Per-core rates of a group, indexed by logical core id."""
    period_seconds = period(current, previous)
    return [
        rate(cur, prev, period_seconds)
        for cur, prev in zip(current.per_core, previous.per_core)
    ]
