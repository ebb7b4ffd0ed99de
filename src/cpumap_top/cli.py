"""Command line entry point for cpumap-top."""

import argparse
import logging
import signal
import sys
from dataclasses import dataclass
from pathlib import Path

from cpumap_top.errors import EXIT_OK, ConfigError, CpumapTopError
from cpumap_top.poller import PollLoop
from cpumap_top.report import Reporter
from cpumap_top.source import BpftoolCounterSubsystem
from cpumap_top.store import COUNTER_MAPS, DEFAULT_TARGET_COUNT, SnapshotStore

logger = logging.getLogger(__name__)

DEFAULT_MAP_DIR = "/sys/fs/bpf/xdp_redirect_cpu"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass(slots=True, frozen=True)
class MonitorConfig:
    """Settings for one cpumap-top run."""

    map_dir: Path = Path(DEFAULT_MAP_DIR)
    interval: int = 2
    targets: int = DEFAULT_TARGET_COUNT
    bpftool: str = "bpftool"
    read_timeout: float | None = None
    tui: bool = False
    debug: bool = False

    def validate(self) -> "MonitorConfig":
        """Raise ConfigError on values the poller cannot use."""
        if self.interval <= 0:
            raise ConfigError(f"--sec must be a positive integer, got {self.interval}")
        if self.targets <= 0:
            raise ConfigError(f"--targets must be positive, got {self.targets}")
        if self.read_timeout is not None and self.read_timeout <= 0:
            raise ConfigError(
                f"--read-timeout must be positive, got {self.read_timeout}"
            )
        return self


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="cpumap-top",
        description="Per-CPU statistics for an XDP redirect pipeline using a cpumap",
    )
    parser.add_argument(
        "--map-dir",
        type=Path,
        default=Path(DEFAULT_MAP_DIR),
        help=f"Directory with the pinned counter maps (default: {DEFAULT_MAP_DIR})",
    )
    parser.add_argument(
        "-s", "--sec", dest="interval", type=int, default=2,
        help="Seconds between reports (default: 2)",
    )
    parser.add_argument(
        "--targets", type=int, default=DEFAULT_TARGET_COUNT,
        help=f"Redirect targets configured in the XDP program (default: {DEFAULT_TARGET_COUNT})",
    )
    parser.add_argument(
        "--bpftool", default="bpftool",
        help="bpftool binary used to read the maps",
    )
    parser.add_argument(
        "--read-timeout", type=float, default=None,
        help="Timeout in seconds for each map read (default: none)",
    )
    parser.add_argument(
        "--tui", action="store_true",
        help="Show a live table instead of printing reports",
    )
    parser.add_argument(
        "-D", "--debug", action="store_true",
        help="Enable debug logging",
    )
    return parser


def parse_args(argv: list[str] | None = None) -> MonitorConfig:
    """Parse the command line into a validated MonitorConfig."""
    args = build_parser().parse_args(argv)
    return MonitorConfig(
        map_dir=args.map_dir,
        interval=args.interval,
        targets=args.targets,
        bpftool=args.bpftool,
        read_timeout=args.read_timeout,
        tui=args.tui,
        debug=args.debug,
    ).validate()


def setup_logging(debug: bool = False) -> None:
    """Send log records to stderr so stdout carries only the report."""
    root = logging.getLogger()
    root.handlers.clear()
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if debug else logging.WARNING)


def build_store(config: MonitorConfig) -> SnapshotStore:
    """Check the pinned maps and allocate the snapshot buffers."""
    subsystem = BpftoolCounterSubsystem(
        config.map_dir, bpftool=config.bpftool, timeout=config.read_timeout
    )
    subsystem.check(COUNTER_MAPS)
    return SnapshotStore(subsystem, target_count=config.targets)


def run(config: MonitorConfig) -> int:
    """Run the monitor until interrupted and return the exit status."""
    store = build_store(config)

    if config.tui:
        from cpumap_top.app import CpumapApp

        app = CpumapApp(store, interval=config.interval)
        app.run()
        return app.return_code or EXIT_OK

    loop = PollLoop(store, Reporter(sys.stdout), interval=config.interval)

    def handle_interrupt(signum, frame) -> None:
        loop.cancel()

    previous_handler = signal.signal(signal.SIGINT, handle_interrupt)
    try:
        loop.start()
    finally:
        signal.signal(signal.SIGINT, previous_handler)
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    """Entry point for cpumap-top."""
    try:
        config = parse_args(argv)
    except ConfigError as exc:
        print(f"ERR: {exc}", file=sys.stderr)
        return exc.exit_code

    setup_logging(config.debug)
    try:
        return run(config)
    except CpumapTopError as exc:
        logger.error("%s", exc)
        return exc.exit_code


if __name__ == "__main__":
    sys.exit(main())
