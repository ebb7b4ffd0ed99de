"""cpumap-top - Live Textual view of the cpumap report."""

from queue import Empty, Queue

from textual.app import App, ComposeResult
from textual.containers import Container
from textual.widgets import DataTable, Footer, Static

from cpumap_top.models import Snapshot
from cpumap_top.poller import DEFAULT_INTERVAL, PollLoop
from cpumap_top.report import COLUMNS, NOT_APPLICABLE, ReportRow, build_rows
from cpumap_top.store import SnapshotStore


class QueueReporter:
    """Report sink that hands each interval's rows to the UI thread."""

    def __init__(self, update_queue: Queue[list[ReportRow]]) -> None:
        self._queue = update_queue

    def render(self, current: Snapshot, previous: Snapshot) -> None:
        """Queue the rows for ``current`` against ``previous``."""
        self._queue.put(build_rows(current, previous))


class StatusLine(Static):
    """One-line summary of the last interval."""

    DEFAULT_CSS = """
    StatusLine {
        height: 1;
        padding: 0 1;
        background: $surface;
    }
    """

    summary = ""

    def show_rows(self, rows: list[ReportRow]) -> None:
        """Summarize the latest report."""
        period = rows[-1].period if rows else 0.0
        self.summary = f"{len(rows)} rows, period {period:f}s"
        self.update(self.summary)


class ReportTable(Container):
    """Container for the report data table."""

    DEFAULT_CSS = """
    ReportTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def compose(self) -> ComposeResult:
        """Compose the report table."""
        yield DataTable(id="report-table")

    def on_mount(self) -> None:
        """Add the report columns when mounted."""
        table = self.query_one("#report-table", DataTable)
        table.cursor_type = "row"
        for column in COLUMNS:
            table.add_column(column, key=column)

    def update_rows(self, rows: list[ReportRow]) -> None:
        """Replace the table contents with a new report."""
        table = self.query_one("#report-table", DataTable)
        table.clear()
        for row in rows:
            drop = NOT_APPLICABLE if row.drop_pps is None else f"{row.drop_pps:,}"
            table.add_row(
                row.label,
                row.ident.strip(),
                str(row.pps),
                f"{row.pps:,}",
                drop,
                f"{row.period:f}",
            )


class CpumapApp(App):
    """Live cpumap statistics viewer."""

    TITLE = "cpumap-top"
    SUB_TITLE = "XDP cpumap redirect statistics"

    CSS = """
    Screen {
        layout: vertical;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
    ]

    def __init__(self, store: SnapshotStore, interval: float = DEFAULT_INTERVAL) -> None:
        """Initialize the CpumapApp."""
        super().__init__()
        self._update_queue: Queue[list[ReportRow]] = Queue()
        self._poll_loop = PollLoop(store, QueueReporter(self._update_queue), interval=interval)

    @property
    def poll_loop(self) -> PollLoop:
        """The poll loop feeding this view."""
        return self._poll_loop

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield StatusLine("Waiting for first report...", id="status")
        yield ReportTable()
        yield Footer()

    def on_mount(self) -> None:
        """Start polling when the app is mounted."""
        self._poll_loop.start_background()
        self._update_timer = self.set_interval(0.5, self._check_for_updates)

    def _check_for_updates(self) -> None:
        """Show the most recent report from the queue, if any."""
        error = self._poll_loop.error
        if error is not None:
            self._update_timer.stop()
            self.exit(return_code=error.exit_code, message=f"ERR: {error}")
            return

        rows = None
        while True:
            try:
                rows = self._update_queue.get_nowait()
            except Empty:
                break

        if rows is not None:
            self.query_one(StatusLine).show_rows(rows)
            self.query_one(ReportTable).update_rows(rows)

    def action_quit(self) -> None:
        """Stop polling and exit."""
        self._poll_loop.stop()
        self.exit()

    def on_unmount(self) -> None:
        """Make sure the poll thread is gone when the app closes."""
        self._poll_loop.stop()
