"""Thin wrapper around IMAPClient for single-folder work."""

import logging

from imapclient import IMAPClient, SocketTimeout

from .config import ExecutorConfig

logger = logging.getLogger("tabellarium")

PEEK_BODY = "BODY.PEEK[]"
BODY = b"BODY[]"
FLAGS = b"FLAGS"


class ImapMailbox:
    def __init__(self, config: ExecutorConfig):
        self.config = config
        self._client: IMAPClient | None = None

    def connect(self) -> None:
        """Connect and log in to the IMAP server.

        The configured timeout applies to establishing the connection only;
        later commands block without a timeout.
        """
        timeout = None
        if self.config.connect_timeout_seconds is not None:
            timeout = SocketTimeout(connect=self.config.connect_timeout_seconds, read=None)
        client = IMAPClient(
            self.config.host,
            port=self.config.effective_port,
            ssl=self.config.use_ssl,
            timeout=timeout,
        )
        self._client = client
        client.login(self.config.username, self.config.password)

    def disconnect(self) -> None:
        """Log out and drop the connection."""
        if self._client:
            client, self._client = self._client, None
            client.logout()

    @property
    def connected(self) -> bool:
        return self._client is not None

    @property
    def client(self) -> IMAPClient:
        if self._client is None:
            raise RuntimeError("Not connected to IMAP server")
        return self._client

    def folder_exists(self, folder: str) -> bool:
        """Check if a folder exists on the server."""
        return self.client.folder_exists(folder)

    def select_folder(self, folder: str, readonly: bool = False) -> dict:
        """Select a folder for operations (read-write unless readonly)."""
        return self.client.select_folder(folder, readonly=readonly)

    def search(self, criteria: list[str]) -> list[int]:
        """Search the selected folder, returning UIDs in server order."""
        return list(self.client.search(criteria))

    def get_flags(self, uid: int) -> frozenset[bytes] | None:
        """Current flags of a message, or None if it no longer exists."""
        response = self.client.get_flags([uid])
        if uid not in response:
            return None
        return frozenset(response[uid])

    def add_flags(self, uid: int, flags: list[bytes]) -> None:
        self.client.add_flags([uid], flags)

    def remove_flags(self, uid: int, flags: list[bytes]) -> None:
        self.client.remove_flags([uid], flags)

    def fetch_message(self, uid: int) -> tuple[bytes, frozenset[bytes]] | None:
        """Fetch raw message bytes and flags by UID.

        Uses BODY.PEEK[] so fetching does not mark the message as seen.

        Returns:
            (raw RFC822 bytes, flags), or None if not found
        """
        messages = self.client.fetch([uid], [PEEK_BODY, "FLAGS"])
        if uid not in messages:
            return None
        data = messages[uid]
        return data[BODY], frozenset(data.get(FLAGS, ()))

    def close_folder(self, expunge: bool) -> None:
        """Close the selected folder.

        CLOSE removes every message flagged deleted. Without expunge the
        folder is released with UNSELECT, or, on servers without it, by
        re-selecting it read-only first since CLOSE never expunges a
        read-only selection.
        """
        if expunge:
            self.client.close_folder()
        elif self.client.has_capability("UNSELECT"):
            self.client.unselect_folder()
        else:
            self.client.select_folder(self.config.folder, readonly=True)
            self.client.close_folder()
