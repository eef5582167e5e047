"""Handlers that print messages to a stream or a file."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import TextIO

from tabellarium.message import DetachedMessage

MESSAGE_START_DELIMITER = "=== Message Start ==="
MESSAGE_HEADERS_DELIMITER = "=== Message Headers ==="
MESSAGE_CONTENT_DELIMITER = "=== Message Content ==="
MESSAGE_CONTENT_PART_DELIMITER = "=== Message Content Part ==="
MESSAGE_END_DELIMITER = "=== Message End ==="


class PrintingEmailHandler:
    """Prints headers and every content part of each message."""

    def __init__(self, stream: TextIO | None = None, headers_only: bool = False):
        self.stream = stream if stream is not None else sys.stdout
        self.headers_only = headers_only

    def handle_email(self, message: DetachedMessage) -> None:
        self._print(MESSAGE_START_DELIMITER)
        self._print(MESSAGE_HEADERS_DELIMITER)
        for name, value in message.headers:
            self._print(f"{name}:{value}")
        if not self.headers_only:
            self._print(MESSAGE_CONTENT_DELIMITER)
            for part in message.content_parts():
                self._print(MESSAGE_CONTENT_PART_DELIMITER)
                self._print(part)
        self._print(MESSAGE_END_DELIMITER)

    def _print(self, text: str) -> None:
        print(text, file=self.stream)


class PrintInFileEmailHandler:
    """Writes messages to a file.

    The file is opened (and truncated) on the first message and stays open
    until finish() is called. Can be used as a context manager:

        with PrintInFileEmailHandler("out.txt") as handler:
            executor.execute_for_each_email(handler)
    """

    def __init__(self, path: str | Path, headers_only: bool = False):
        self.path = Path(path)
        self.headers_only = headers_only
        self._stream: TextIO | None = None
        self._printer: PrintingEmailHandler | None = None

    def handle_email(self, message: DetachedMessage) -> None:
        if self._printer is None:
            self._stream = self.path.open("w", encoding="utf-8")
            self._printer = PrintingEmailHandler(self._stream, headers_only=self.headers_only)
        self._printer.handle_email(message)

    def finish(self) -> None:
        """Flush and close the output file."""
        if self._stream is not None:
            self._stream.close()
            self._stream = None
        self._printer = None

    def __enter__(self) -> PrintInFileEmailHandler:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.finish()
