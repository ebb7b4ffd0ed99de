"""Error types and process exit statuses for cpumap-top."""

EXIT_OK = 0
EXIT_FAIL = 1
EXIT_FAIL_OPTION = 2
EXIT_FAIL_BPF = 4
EXIT_FAIL_MEM = 5


class CpumapTopError(Exception):
    """Base class for all cpumap-top errors."""

    exit_code = EXIT_FAIL


class CounterReadError(CpumapTopError):
    """A counter group could not be read from the counting subsystem.

    Non-fatal: the caller keeps the previous sample for that group.
    """


class ClockError(CpumapTopError):
    """The monotonic clock could not be read."""

    exit_code = EXIT_FAIL


class ConfigError(CpumapTopError):
    """Invalid command line or monitor configuration."""

    exit_code = EXIT_FAIL_OPTION


class SubsystemError(CpumapTopError):
    """The counting subsystem is not usable at startup."""

    exit_code = EXIT_FAIL_BPF


class AllocationError(CpumapTopError):
    """Snapshot buffers could not be allocated at startup."""

    exit_code = EXIT_FAIL_MEM
