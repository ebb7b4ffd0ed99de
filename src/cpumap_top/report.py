"""Tabular rendering of per-interval cpumap statistics."""

import sys
from dataclasses import dataclass
from typing import TextIO

from cpumap_top.models import GroupRecord, Snapshot
from cpumap_top.rates import core_rates, total_rate

RX_LABEL = "XDP-RX"
ENQUEUE_LABEL = "cpumap-enqueue"
KTHREAD_LABEL = "cpumap_kthread"
REDIRECT_ERR_LABEL = "redirect_err"

NOT_APPLICABLE = "(n/a)"

COLUMNS = ("XDP-cpumap", "CPU:to", "pps", "pps-human-readable", "drop-pps", "period")


@dataclass(slots=True, frozen=True)
class ReportRow:
    """One rendered line of the report."""

    label: str
    ident: str  # Core id, "total", or "<core>:<target>" for enqueue rows
    pps: int
    drop_pps: int | None  # None where drops are not counted
    period: float


def format_header() -> str:
    """Format the column header line."""
    return "{:<15} {:<7} {:<10} {:<18} {:<12} {:<9}".format(*COLUMNS)


def format_row(row: ReportRow) -> str:
    """Format one report row, grouping thousands in the readable columns."""
    if row.drop_pps is None:
        drop = f"{NOT_APPLICABLE:<12}"
    else:
        drop = f"{row.drop_pps:<12,}"
    return (
        f"{row.label:<15} {row.ident:<7} {row.pps:<10} {row.pps:<18,} "
        f"{drop} {row.period:f}"
    )


def enqueue_ident(core: int | str, target: int) -> str:
    """Identifier for an enqueue row, e.g. ``  3:7  `` or ``sum:7  ``."""
    return f"{core:>3}:{target:<3}"


def _group_rows(
    label: str,
    current: GroupRecord,
    previous: GroupRecord,
    with_drops: bool = True,
) -> list[ReportRow]:
    rows = []
    for core, core_rate in enumerate(core_rates(current, previous)):
        if core_rate.pps > 0:
            rows.append(
                ReportRow(
                    label=label,
                    ident=str(core),
                    pps=core_rate.pps,
                    drop_pps=core_rate.drop_pps if with_drops else None,
                    period=core_rate.period_seconds,
                )
            )
    total = total_rate(current, previous)
    rows.append(
        ReportRow(
            label=label,
            ident="total",
            pps=total.pps,
            drop_pps=total.drop_pps if with_drops else None,
            period=total.period_seconds,
        )
    )
    return rows


def _enqueue_rows(target: int, current: GroupRecord, previous: GroupRecord) -> list[ReportRow]:
    total = total_rate(current, previous)
    if total.pps == 0:
        return []

    rows = [
        ReportRow(
            label=ENQUEUE_LABEL,
            ident=enqueue_ident(core, target),
            pps=core_rate.pps,
            drop_pps=core_rate.drop_pps,
            period=core_rate.period_seconds,
        )
        for core, core_rate in enumerate(core_rates(current, previous))
        if core_rate.pps > 0
    ]
    rows.append(
        ReportRow(
            label=ENQUEUE_LABEL,
            ident=enqueue_ident("sum", target),
            pps=total.pps,
            drop_pps=total.drop_pps,
            period=total.period_seconds,
        )
    )
    return rows


def build_rows(current: Snapshot, previous: Snapshot) -> list[ReportRow]:
    """
    Compute the report rows for one interval.

    Per-core rows only appear when their pps is non-zero. The RX, kthread
    and redirect_err totals are always present; a redirect target with no
    traffic is left out entirely.
    """
    rows = _group_rows(RX_LABEL, current.rx, previous.rx, with_drops=False)
    for target, (cur, prev) in enumerate(zip(current.enqueue, previous.enqueue)):
        rows.extend(_enqueue_rows(target, cur, prev))
    rows.extend(_group_rows(KTHREAD_LABEL, current.kthread, previous.kthread))
    rows.extend(
        _group_rows(REDIRECT_ERR_LABEL, current.redirect_err, previous.redirect_err)
    )
    return rows


def render_lines(current: Snapshot, previous: Snapshot) -> list[str]:
    """Render one report block, including its terminating blank line."""
    lines = [format_header()]
    lines.extend(format_row(row) for row in build_rows(current, previous))
    lines.append("")
    return lines


class Reporter:
    """Writes one report block per interval to a text stream."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    @property
    def stream(self) -> TextIO:
        """Stream the report is written to (stdout by default)."""
        return self._stream if self._stream is not None else sys.stdout

    def render(self, current: Snapshot, previous: Snapshot) -> None:
        """Write the report block for ``current`` against ``previous`` and flush."""
        stream = self.stream
        for line in render_lines(current, previous):
            stream.write(line + "\n")
        stream.flush()
