"""Data models for cpumap-top."""

from dataclasses import dataclass, field


@dataclass(slots=True)
class DataPoint:
    """Counter pair for one logical CPU in one counter group."""

    processed: int = 0
    dropped: int = 0


@dataclass(slots=True)
class GroupRecord:
    """
    One sample of a counter group across all logical CPUs.

    Records are allocated once and overwritten in place every cycle, so the
    per-core list keeps its length and its DataPoint objects for the lifetime
    of the process.
    """

    timestamp: int = 0  # Nanoseconds, monotonic clock
    total: DataPoint = field(default_factory=DataPoint)
    per_core: list[DataPoint] = field(default_factory=list)

    @classmethod
    def allocate(cls, core_count: int) -> "GroupRecord":
        """Create a zeroed record with one DataPoint per logical core."""
        return cls(per_core=[DataPoint() for _ in range(core_count)])


@dataclass(slots=True)
class Snapshot:
    """All tracked counter groups at one point in time."""

    rx: GroupRecord
    redirect_err: GroupRecord
    kthread: GroupRecord
    enqueue: list[GroupRecord]

    @classmethod
    def allocate(cls, core_count: int, target_count: int) -> "Snapshot":
        """Create a zeroed snapshot sized for the given core and target counts."""
        return cls(
            rx=GroupRecord.allocate(core_count),
            redirect_err=GroupRecord.allocate(core_count),
            kthread=GroupRecord.allocate(core_count),
            enqueue=[GroupRecord.allocate(core_count) for _ in range(target_count)],
        )

    @property
    def core_count(self) -> int:
        """Number of logical cores each record covers."""
        return len(self.rx.per_core)

    @property
    def target_count(self) -> int:
        """Number of redirect targets tracked."""
        return len(self.enqueue)


@dataclass(slots=True, frozen=True)
class Rate:
    """Per-second rates derived from two successive samples."""

    pps: int
    drop_pps: int
    period_seconds: float
    # A counter went backwards and was clamped. Diagnostics only: it is
    # logged at DEBUG and the report prints the clamped zero unmarked.
    counter_reset: bool = False
