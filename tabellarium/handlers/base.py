"""Base protocol for email handlers."""

from typing import Protocol, runtime_checkable

from tabellarium.message import DetachedMessage


@runtime_checkable
class EmailHandler(Protocol):
    """Protocol for per-message handlers used by execute_for_each_email().

    Handlers only ever receive detached copies. Any exception a handler
    raises is recorded as a failure for that message; the batch continues.
    """

    def handle_email(self, message: DetachedMessage) -> None:
        """Handle a single message."""
        ...
