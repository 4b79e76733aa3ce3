class LedgerRPCException(Exception):
    """Raised when a ledger RPC request cannot be completed or decoded."""


class ConfigError(Exception):
    """Raised when the run configuration cannot be loaded or is invalid."""


class WorkerError(Exception):
    """Base class for worker process control failures."""


class LaunchError(WorkerError):
    """Raised when the worker executable cannot be started."""


class TerminationError(WorkerError):
    """Raised when the OS refuses to terminate the worker process."""
