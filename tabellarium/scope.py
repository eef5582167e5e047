"""Connection scope: one session, one read-write folder, one task."""

from __future__ import annotations

import logging
from enum import Enum

from imapclient import DELETED, SEEN
from imapclient.exceptions import IMAPClientError

from .config import ExecutorConfig
from .errors import ConfigurationError, MailboxConnectionError
from .imap_client import ImapMailbox
from .message import DetachedMessage

logger = logging.getLogger("tabellarium.scope")


class SessionState(Enum):
    UNCONNECTED = "unconnected"
    CONNECTED = "connected"
    FOLDER_OPEN = "folder_open"
    CLOSED = "closed"


class MessageHandle:
    """Live reference to one message in the open folder.

    Reads and writes go to the server. A handle is only valid while the
    session that created it is open and must not be kept afterwards.
    """

    def __init__(self, session: FolderSession, uid: int):
        self._session = session
        self.uid = uid

    def __repr__(self) -> str:
        return f"MessageHandle(uid={self.uid})"

    @property
    def _mailbox(self) -> ImapMailbox:
        return self._session.require_open()

    def flags(self) -> frozenset[bytes] | None:
        """Current flags, or None if the message has been expunged."""
        return self._mailbox.get_flags(self.uid)

    def is_set(self, flag: bytes) -> bool:
        flags = self.flags()
        return flags is not None and flag in flags

    def set_flag(self, flag: bytes, value: bool = True) -> None:
        if value:
            self._mailbox.add_flags(self.uid, [flag])
        else:
            self._mailbox.remove_flags(self.uid, [flag])

    def mark_deleted(self) -> None:
        self.set_flag(DELETED, True)

    def clear_seen(self) -> None:
        self.set_flag(SEEN, False)

    def clear_deleted(self) -> None:
        self.set_flag(DELETED, False)

    def detach(self) -> DetachedMessage:
        """Copy the message out of the session."""
        fetched = self._mailbox.fetch_message(self.uid)
        if fetched is None:
            raise LookupError(f"Message UID {self.uid} is no longer in {self._session.folder}")
        raw, flags = fetched
        return DetachedMessage(uid=self.uid, folder=self._session.folder, raw=raw, flags=flags)


class FolderSession:
    """Owns the lifecycle of one connection to one folder.

    Usage:
        with FolderSession(config) as session:
            uids = session.search(criteria)
            ...
        # folder closed (with expunge unless session.expunge was cleared)
        # and logged out

    The folder is always closed and the session logged out on exit. An
    exception escaping the with-block turns expunge off for this session,
    so a scan that could not complete never commits deletions. Failures
    while closing are logged and kept in close_errors; they never replace
    the outcome of the block.
    """

    def __init__(self, config: ExecutorConfig):
        self.config = config
        self.folder = config.folder
        self.mailbox = ImapMailbox(config)
        self.state = SessionState.UNCONNECTED
        self.expunge = True
        self.close_errors: list[Exception] = []

    def open(self) -> None:
        """Connect, log in and open the folder read-write.

        Raises:
            MailboxConnectionError: If connecting or logging in fails
            ConfigurationError: If the folder does not exist
        """
        logger.info(f"Connecting to {self.config.host}:{self.config.effective_port}")
        try:
            self.mailbox.connect()
        except (IMAPClientError, OSError) as e:
            raise MailboxConnectionError(
                f"Could not connect to {self.config.host}: {e}"
            ) from e
        self.state = SessionState.CONNECTED

        if not self.mailbox.folder_exists(self.folder):
            raise ConfigurationError(f"Folder does not exist: {self.folder}")
        self.mailbox.select_folder(self.folder, readonly=False)
        self.state = SessionState.FOLDER_OPEN
        logger.debug(f"Opened {self.folder} read-write")

    def require_open(self) -> ImapMailbox:
        if self.state is not SessionState.FOLDER_OPEN:
            raise RuntimeError(f"Folder {self.folder} is not open")
        return self.mailbox

    def search(self, criteria: list[str]) -> list[int]:
        return self.require_open().search(criteria)

    def message(self, uid: int) -> MessageHandle:
        self.require_open()
        return MessageHandle(self, uid)

    def close(self) -> list[Exception]:
        """Close the folder and log out, recording rather than raising failures."""
        if self.state is SessionState.FOLDER_OPEN:
            try:
                self.mailbox.close_folder(expunge=self.expunge)
            except Exception as e:
                logger.warning(f"Error closing folder {self.folder}: {e}")
                self.close_errors.append(e)
        if self.mailbox.connected:
            try:
                self.mailbox.disconnect()
            except Exception as e:
                logger.warning(f"Error logging out from {self.config.host}: {e}")
                self.close_errors.append(e)
        self.state = SessionState.CLOSED
        return self.close_errors

    def __enter__(self) -> FolderSession:
        try:
            self.open()
        except BaseException:
            self.close()
            raise
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is not None and self.state is SessionState.FOLDER_OPEN:
            self.expunge = False
            logger.warning(f"Task in {self.folder} failed; closing without expunge")
        self.close()
