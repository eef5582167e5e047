"""Bounded, resumable batch tasks against a single IMAP folder."""

from .config import ExecutorConfig, load_config
from .errors import (
    AggregateFailure,
    ConfigurationError,
    MailboxConnectionError,
    ProcessingFailure,
    RetrievalError,
    RollbackError,
    ScanError,
    TaskExecutorError,
)
from .executor import ImapFolderTaskExecutor
from .handlers import (
    ChangeMessageFlagEmailHandler,
    EmailHandler,
    PrintingEmailHandler,
    PrintInFileEmailHandler,
)
from .message import DetachedMessage

__all__ = [
    "AggregateFailure",
    "ChangeMessageFlagEmailHandler",
    "ConfigurationError",
    "DetachedMessage",
    "EmailHandler",
    "ExecutorConfig",
    "ImapFolderTaskExecutor",
    "MailboxConnectionError",
    "PrintInFileEmailHandler",
    "PrintingEmailHandler",
    "ProcessingFailure",
    "RetrievalError",
    "RollbackError",
    "ScanError",
    "TaskExecutorError",
    "load_config",
]
