"""Per-CPU counter reads from the external counting subsystem."""

import json
import logging
import struct
import subprocess
import time
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

import psutil

from cpumap_top.errors import ClockError, CounterReadError, SubsystemError
from cpumap_top.models import GroupRecord

logger = logging.getLogger(__name__)

POSSIBLE_CPUS_PATH = Path("/sys/devices/system/cpu/possible")

# struct datarec { __u64 processed; __u64 dropped; }
DATAREC = struct.Struct("=QQ")
MAP_KEY = struct.Struct("=I")


class CounterSubsystem(Protocol):
    """Read-only view of the per-CPU counter maps."""

    def lookup(self, map_name: str, key: int) -> Sequence[tuple[int, int]]:
        """Return one (processed, dropped) pair per logical CPU.

        Raises CounterReadError if the key is absent or the read fails.
        """
        ...

    def logical_core_count(self) -> int:
        """Return the number of per-CPU slots every lookup returns."""
        ...


def possible_cpu_count(path: Path = POSSIBLE_CPUS_PATH) -> int:
    """
    Count possible CPUs the way per-CPU BPF maps are sized.

    The kernel lists possible CPUs as ranges such as ``0-7`` or ``0,2-3``;
    per-CPU maps hold one slot per index up to the highest one. Falls back to
    the logical CPU count from psutil when the file is unavailable or
    unreadable.
    """
    try:
        text = path.read_text().strip()
    except OSError:
        return psutil.cpu_count(logical=True) or 1

    highest = -1
    for chunk in text.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        end = chunk.split("-")[-1]
        try:
            highest = max(highest, int(end))
        except ValueError:
            logger.warning("Cannot parse %s: %r", path, text)
            return psutil.cpu_count(logical=True) or 1
    return highest + 1 if highest >= 0 else psutil.cpu_count(logical=True) or 1


def decode_percpu_values(document: dict) -> list[tuple[int, int]]:
    """
    Decode the ``values`` of a bpftool JSON lookup on a per-CPU map.

    Each entry looks like ``{"cpu": 0, "value": ["0x01", "0x00", ...]}``
    with the raw bytes of one ``struct datarec``.
    """
    try:
        entries = sorted(document["values"], key=lambda entry: entry["cpu"])
        pairs = []
        for entry in entries:
            raw = bytes(int(byte, 16) for byte in entry["value"])
            pairs.append(DATAREC.unpack(raw[: DATAREC.size]))
    except (KeyError, TypeError, ValueError, struct.error) as exc:
        raise CounterReadError(f"malformed bpftool output: {exc}") from exc
    return pairs


class BpftoolCounterSubsystem:
    """
    Counting subsystem backed by BPF maps pinned under one directory.

    Every lookup runs ``bpftool --json map lookup pinned``. Reads are not
    bounded by a timeout unless one is given.
    """

    def __init__(
        self,
        map_dir: str | Path,
        bpftool: str = "bpftool",
        timeout: float | None = None,
    ) -> None:
        """
        Initialize the subsystem.

        Args:
            map_dir: Directory holding the pinned counter maps.
            bpftool: Path or name of the bpftool binary.
            timeout: Optional per-lookup timeout in seconds.
        """
        self._map_dir = Path(map_dir)
        self._bpftool = bpftool
        self._timeout = timeout

    @property
    def map_dir(self) -> Path:
        """Directory holding the pinned counter maps."""
        return self._map_dir

    def check(self, map_names: Sequence[str]) -> None:
        """Verify every map is pinned; raise SubsystemError otherwise."""
        if not self._map_dir.is_dir():
            raise SubsystemError(f"map directory not found: {self._map_dir}")
        missing = [name for name in map_names if not (self._map_dir / name).exists()]
        if missing:
            raise SubsystemError(
                f"maps not pinned under {self._map_dir}: {', '.join(missing)}"
            )

    def command(self, map_name: str, key: int) -> list[str]:
        """Build the bpftool command line for one lookup."""
        key_bytes = [str(byte) for byte in MAP_KEY.pack(key)]
        return [
            self._bpftool,
            "--json",
            "map",
            "lookup",
            "pinned",
            str(self._map_dir / map_name),
            "key",
            *key_bytes,
        ]

    def lookup(self, map_name: str, key: int) -> list[tuple[int, int]]:
        """Look up one key and return its per-CPU counter pairs."""
        try:
            result = subprocess.run(
                self.command(map_name, key),
                capture_output=True,
                check=True,
                timeout=self._timeout,
            )
        except subprocess.TimeoutExpired as exc:
            raise CounterReadError(
                f"bpftool timed out on {map_name} key:0x{key:X}"
            ) from exc
        except subprocess.CalledProcessError as exc:
            detail = (exc.stderr or b"").decode(errors="replace").strip()
            raise CounterReadError(
                f"bpftool lookup failed on {map_name} key:0x{key:X}: {detail}"
            ) from exc
        except OSError as exc:
            # Missing or non-executable binary
            raise CounterReadError(f"cannot run {self._bpftool}: {exc}") from exc

        try:
            document = json.loads(result.stdout.decode(errors="replace"))
        except json.JSONDecodeError as exc:
            raise CounterReadError(f"bpftool returned invalid JSON: {exc}") from exc
        return decode_percpu_values(document)

    def logical_core_count(self) -> int:
        """Number of per-CPU slots in each map value."""
        return possible_cpu_count()


def monotonic_ns() -> int:
    """Read the monotonic clock in nanoseconds."""
    try:
        return time.monotonic_ns()
    except OSError as exc:
        raise ClockError(f"monotonic clock unavailable: {exc}") from exc


class CounterSource:
    """Reads one named counter group, for one key at a time, across all cores."""

    def __init__(
        self,
        subsystem: CounterSubsystem,
        map_name: str,
        core_count: int,
    ) -> None:
        self._subsystem = subsystem
        self._map_name = map_name
        self._core_count = core_count

    @property
    def map_name(self) -> str:
        """Name of the map this source reads."""
        return self._map_name

    def read(self, key: int, into: GroupRecord) -> GroupRecord | None:
        """
        Read ``key`` and overwrite ``into`` with the result.

        Returns the updated record, or None when the read failed. A failed
        read leaves ``into`` exactly as it was.
        """
        try:
            values = self._subsystem.lookup(self._map_name, key)
            if len(values) != self._core_count:
                raise CounterReadError(
                    f"expected {self._core_count} per-CPU values, got {len(values)}"
                )
        except CounterReadError as exc:
            logger.warning(
                "Counter read failed map:%s key:0x%X: %s", self._map_name, key, exc
            )
            return None

        # Stamp as close as possible to the read
        into.timestamp = monotonic_ns()

        sum_processed = 0
        sum_dropped = 0
        for point, (processed, dropped) in zip(into.per_core, values):
            point.processed = processed
            point.dropped = dropped
            sum_processed += processed
            sum_dropped += dropped
        into.total.processed = sum_processed
        into.total.dropped = sum_dropped
        return into
