"""Polling engine for cpumap-top."""

import logging
import threading
from enum import Enum
from typing import Protocol

from cpumap_top.errors import CpumapTopError
from cpumap_top.models import Snapshot
from cpumap_top.store import SnapshotStore

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 2.0


class PollState(Enum):
    """Run state of the poll loop."""

    RUNNING = "running"
    STOPPED = "stopped"


class ReportSink(Protocol):
    """Anything that can render the current snapshot against the previous one."""

    def render(self, current: Snapshot, previous: Snapshot) -> None: ...


class PollLoop:
    """
    Periodic collect, swap and render loop over a SnapshotStore.

    Cancellation is cooperative: ``cancel()`` only sets an event, which the
    loop checks at the top of every cycle and while waiting between cycles.
    It is safe to call from a signal handler or another thread. The event is
    cleared when a run ends, so a stopped loop can be started again.
    """

    def __init__(
        self,
        store: SnapshotStore,
        reporter: ReportSink,
        interval: float = DEFAULT_INTERVAL,
    ) -> None:
        """
        Initialize the PollLoop.

        Args:
            store: Snapshot buffers to collect into.
            reporter: Renders each interval's report.
            interval: Seconds to wait between cycles. Default 2.0s.
        """
        self._store = store
        self._reporter = reporter
        self._interval = self._check_interval(interval)
        self._cancel_event = threading.Event()
        self._state = PollState.STOPPED
        self._cycles = 0
        self._thread: threading.Thread | None = None
        self._error: CpumapTopError | None = None

    @staticmethod
    def _check_interval(value: float) -> float:
        if value <= 0:
            raise ValueError(f"interval must be positive, got {value}")
        return value

    @property
    def interval(self) -> float:
        """Seconds between cycles."""
        return self._interval

    @property
    def state(self) -> PollState:
        """Current run state."""
        return self._state

    @property
    def cycles(self) -> int:
        """Number of reports rendered so far."""
        return self._cycles

    @property
    def cancelled(self) -> bool:
        """Whether a stop has been requested for the current run."""
        return self._cancel_event.is_set()

    @property
    def error(self) -> CpumapTopError | None:
        """Fatal error that ended the last background run, if any."""
        return self._error

    @property
    def is_running(self) -> bool:
        """Check if the background thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def start(self, interval_seconds: float | None = None) -> None:
        """
        Run the poll loop in the calling thread until cancelled.

        Args:
            interval_seconds: Overrides the interval given at construction.
        """
        if interval_seconds is not None:
            self._interval = self._check_interval(interval_seconds)
        if self._cancel_event.is_set():
            # A cancel issued before start applies to this run only
            self._cancel_event.clear()
            return

        self._state = PollState.RUNNING
        logger.info("Polling every %s seconds", self._interval)
        try:
            self._run()
        finally:
            self._cancel_event.clear()
            self._state = PollState.STOPPED
            logger.info("Polling stopped after %d reports", self._cycles)

    def _run(self) -> None:
        store = self._store
        # Prime the current snapshot so the first report has a baseline
        store.collect()

        while not self._cancel_event.is_set():
            store.swap()
            failed = store.collect()
            if failed:
                logger.debug("%d counter groups kept stale data this cycle", failed)

            if self._cancel_event.is_set():
                break
            self._reporter.render(store.current, store.previous)
            self._cycles += 1

            # Wait for the interval or until a stop is requested
            if self._cancel_event.wait(timeout=self._interval):
                break

    def cancel(self) -> None:
        """Request the loop to stop. Idempotent."""
        self._cancel_event.set()

    def start_background(self) -> None:
        """Run the poll loop in a daemon thread."""
        if self.is_running:
            return

        self._error = None
        self._thread = threading.Thread(
            target=self._run_background,
            daemon=True,
            name="PollLoop",
        )
        self._thread.start()

    def _run_background(self) -> None:
        try:
            self.start()
        except CpumapTopError as exc:
            logger.exception("Poll loop failed")
            self._error = exc

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Cancel the loop and wait for the background thread to finish.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self.cancel()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                return
            self._thread = None
        self._cancel_event.clear()
