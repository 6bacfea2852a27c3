"""Exception hierarchy for untwine.

Components that promise never to raise (build validation, rollback)
convert these into result fields; everything else lets them
propagate to the orchestrator.
"""

from __future__ import annotations


class UntwineError(Exception):
    """Base exception for untwine errors."""

    pass


class CommandTimeoutError(UntwineError):
    """Raised when an external command exceeds its timeout."""

    def __init__(self, command: str, timeout: float, output: str = ""):
        super().__init__(
            f"Command timed out after {timeout}s: {command}"
        )
        self.command = command
        self.timeout = timeout
        self.output = output


class CommandCancelledError(UntwineError):
    """Raised when an external command is cancelled by the caller."""

    def __init__(self, command: str, output: str = ""):
        super().__init__(f"Command cancelled: {command}")
        self.command = command
        self.output = output


class OperationCancelled(UntwineError):
    """Raised when a batch operation observes a cancellation request."""

    pass


class BackupError(UntwineError):
    """Raised when a backup session cannot be created."""

    pass


class CatalogError(BackupError):
    """Raised when the backup catalog cannot be read or written."""

    pass


class FinalValidationError(UntwineError):
    """Raised when the final build validation itself fails to run."""

    pass


__all__ = [
    "UntwineError",
    "CommandTimeoutError",
    "CommandCancelledError",
    "OperationCancelled",
    "BackupError",
    "CatalogError",
    "FinalValidationError",
]
