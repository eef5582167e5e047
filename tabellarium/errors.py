"""Exception hierarchy for tabellarium."""

from __future__ import annotations

from dataclasses import dataclass


class TaskExecutorError(Exception):
    """Base class for every error raised by the task executor."""


class ConfigurationError(TaskExecutorError, ValueError):
    """Invalid executor settings or a target folder that does not exist."""


class MailboxConnectionError(TaskExecutorError):
    """Authentication or transport failure while connecting."""


class ScanError(TaskExecutorError):
    """Failure while searching or iterating the folder.

    Raising one of these out of a task body suppresses expunge for the
    invocation.
    """


class RetrievalError(ScanError):
    """Failure while retrieving detached copies."""


@dataclass
class ProcessingFailure:
    """A handler failure for a single message."""

    uid: int
    cause: BaseException

    def __str__(self) -> str:
        return f"UID {self.uid}: {type(self.cause).__name__}: {self.cause}"


class RollbackError(ScanError):
    """Restoring flags after a handler failure did not complete.

    Carries the per-message failures recorded up to and including the
    message whose rollback failed.
    """

    def __init__(self, message: str, failures: list[ProcessingFailure]):
        super().__init__(message)
        self.failures = list(failures)


class AggregateFailure(TaskExecutorError):
    """One or more handlers failed during a for-each run.

    Args:
        message: Summary message
        failures: Per-message failures, in processing order (may be empty)
        cause: Optional top-level cause
    """

    def __init__(
        self,
        message: str,
        failures: list[ProcessingFailure] | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.failures = list(failures or [])
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        base = super().__str__()
        if not self.failures:
            return base
        return f"{base} ({len(self.failures)} failed)"
