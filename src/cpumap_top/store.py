"""Double-buffered snapshot storage for the tracked counter groups."""

import logging
from dataclasses import dataclass

from cpumap_top.errors import AllocationError
from cpumap_top.models import GroupRecord, Snapshot
from cpumap_top.source import CounterSource, CounterSubsystem

logger = logging.getLogger(__name__)

DEFAULT_TARGET_COUNT = 12  # Must match the XDP program's MAX_CPUS

RX_MAP = "rx_cnt"
REDIRECT_ERR_MAP = "redirect_err_cnt"
ENQUEUE_MAP = "cpumap_enqueue_cnt"
KTHREAD_MAP = "cpumap_kthread_cnt"

COUNTER_MAPS = (RX_MAP, REDIRECT_ERR_MAP, ENQUEUE_MAP, KTHREAD_MAP)


@dataclass(slots=True, frozen=True)
class CounterGroup:
    """Where one counter group lives in the counting subsystem."""

    name: str
    map_name: str
    key: int


def tracked_groups(target_count: int) -> list[CounterGroup]:
    """List the counter groups in collection order."""
    groups = [
        CounterGroup("rx", RX_MAP, 0),
        CounterGroup("redirect_err", REDIRECT_ERR_MAP, 1),
    ]
    groups.extend(
        CounterGroup(f"enqueue[{target}]", ENQUEUE_MAP, target)
        for target in range(target_count)
    )
    groups.append(CounterGroup("kthread", KTHREAD_MAP, 0))
    return groups


def group_record(snapshot: Snapshot, group: CounterGroup) -> GroupRecord:
    """Return the record in ``snapshot`` that holds ``group``."""
    if group.map_name == ENQUEUE_MAP:
        return snapshot.enqueue[group.key]
    return getattr(snapshot, group.name)


class SnapshotStore:
    """
    Owns the current and previous snapshots.

    Both snapshots are allocated once. Each cycle swaps their roles and
    overwrites the new current one, so nothing is allocated after startup.
    """

    def __init__(
        self,
        subsystem: CounterSubsystem,
        core_count: int | None = None,
        target_count: int = DEFAULT_TARGET_COUNT,
    ) -> None:
        """
        Initialize the SnapshotStore.

        Args:
            subsystem: Counting subsystem to read from.
            core_count: Logical cores per record. Queried from the subsystem
                when not given.
            target_count: Number of redirect targets tracked.
        """
        if core_count is None:
            core_count = subsystem.logical_core_count()
        self._core_count = core_count
        self._target_count = target_count
        self._groups = tracked_groups(target_count)
        self._sources = {
            map_name: CounterSource(subsystem, map_name, core_count)
            for map_name in COUNTER_MAPS
        }
        try:
            self._current = Snapshot.allocate(core_count, target_count)
            self._previous = Snapshot.allocate(core_count, target_count)
        except MemoryError as exc:
            raise AllocationError(
                f"cannot allocate snapshots (cores:{core_count} targets:{target_count})"
            ) from exc
        logger.debug(
            "Allocated snapshots for %d cores and %d targets", core_count, target_count
        )

    @property
    def current(self) -> Snapshot:
        """Snapshot holding the newest sample."""
        return self._current

    @property
    def previous(self) -> Snapshot:
        """Snapshot holding the sample before the newest."""
        return self._previous

    @property
    def core_count(self) -> int:
        """Number of logical cores per record."""
        return self._core_count

    @property
    def target_count(self) -> int:
        """Number of redirect targets tracked."""
        return self._target_count

    @property
    def groups(self) -> list[CounterGroup]:
        """Tracked counter groups in collection order."""
        return list(self._groups)

    def collect_into(self, target: Snapshot) -> int:
        """
        Read every tracked group into ``target``.

        Groups whose read fails keep their previous contents. Returns the
        number of groups that failed.
        """
        failed = 0
        for group in self._groups:
            record = group_record(target, group)
            if self._sources[group.map_name].read(group.key, record) is None:
                failed += 1
        return failed

    def collect(self) -> int:
        """Read every tracked group into the current snapshot."""
        return self.collect_into(self._current)

    def swap(self) -> None:
        """Exchange the current and previous snapshots."""
        self._current, self._previous = self._previous, self._current
