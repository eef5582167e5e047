"""Batch task executor for a single IMAP folder."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import replace

from imapclient import DELETED, SEEN

from .config import ExecutorConfig
from .errors import (
    AggregateFailure,
    ProcessingFailure,
    RetrievalError,
    RollbackError,
    ScanError,
    TaskExecutorError,
)
from .handlers.base import EmailHandler
from .message import DetachedMessage
from .scope import FolderSession, MessageHandle
from .selection import batch_count, build_filter

logger = logging.getLogger("tabellarium")


class ImapFolderTaskExecutor:
    """Runs batch tasks against one folder of an IMAP mailbox.

    Every operation opens its own connection, works on the messages that
    match the current settings (unseen only, or all when
    retrieve_seen_messages is set), processes at most batch_size of them
    and closes the folder again, expunging messages flagged deleted.
    Processing a large folder in chunks means calling an operation
    repeatedly; each call searches again.

    Settings are read once at the start of an operation. An executor is
    not safe for concurrent use: starting an operation or changing a
    setting while another operation is running raises RuntimeError.
    """

    def __init__(
        self,
        host: str,
        username: str,
        password: str,
        folder: str,
        port: int | None = None,
        use_ssl: bool = True,
    ):
        self._config = ExecutorConfig(
            host=host,
            username=username,
            password=password,
            folder=folder,
            port=port,
            use_ssl=use_ssl,
        )
        self._busy = threading.Lock()
        self.last_close_errors: list[Exception] = []

    @classmethod
    def from_config(cls, config: ExecutorConfig) -> ImapFolderTaskExecutor:
        executor = cls(config.host, config.username, config.password, config.folder)
        executor._config = config
        return executor

    @property
    def config(self) -> ExecutorConfig:
        return self._config

    def _update(self, **changes) -> None:
        if self._busy.locked():
            raise RuntimeError("Cannot change settings while an operation is running")
        self._config = replace(self._config, **changes)

    @property
    def batch_size(self) -> int:
        return self._config.batch_size

    @batch_size.setter
    def batch_size(self, value: int) -> None:
        self._update(batch_size=value)

    @property
    def connection_timeout(self) -> int:
        """Connect timeout in milliseconds, -1 for none."""
        return self._config.connection_timeout_ms

    @connection_timeout.setter
    def connection_timeout(self, value: int) -> None:
        self._update(connection_timeout_ms=value)

    @property
    def retrieve_seen_messages(self) -> bool:
        return self._config.retrieve_seen_messages

    @retrieve_seen_messages.setter
    def retrieve_seen_messages(self, value: bool) -> None:
        self._update(retrieve_seen_messages=value)

    @property
    def delete_after_processing(self) -> bool:
        return self._config.delete_after_processing

    @delete_after_processing.setter
    def delete_after_processing(self, value: bool) -> None:
        self._update(delete_after_processing=value)

    @contextmanager
    def _task(self, name: str, error_type: type[ScanError]) -> Iterator[tuple[FolderSession, ExecutorConfig]]:
        """Run one task body inside a fresh connection scope.

        Configuration and connection errors pass through; anything else
        escaping the body is wrapped in error_type.
        """
        if not self._busy.acquire(blocking=False):
            raise RuntimeError("Another operation is already running on this executor")
        try:
            config = self._config
            session = FolderSession(config)
            try:
                with session:
                    yield session, config
            except TaskExecutorError:
                raise
            except Exception as e:
                raise error_type(f"Error while running {name} in {config.folder}: {e}") from e
            finally:
                self.last_close_errors = list(session.close_errors)
        finally:
            self._busy.release()

    def _candidates(self, session: FolderSession, config: ExecutorConfig) -> list[int]:
        selection = build_filter(config.retrieve_seen_messages)
        uids = session.search(selection.criteria)
        limit = batch_count(len(uids), config.batch_size)
        logger.info(f"{len(uids)} matching messages in {config.folder}, processing {limit}")
        return uids[:limit]

    def _eligible(self, handle: MessageHandle, config: ExecutorConfig) -> bool:
        # Flags may have changed since the search ran
        flags = handle.flags()
        if flags is None:
            logger.warning(f"UID {handle.uid} disappeared from {config.folder}, skipping")
            return False
        return build_filter(config.retrieve_seen_messages).admits(flags)

    def retrieve_emails(self) -> list[DetachedMessage]:
        """Retrieve detached copies of the selected messages.

        Copies stay usable after the connection is closed. With
        delete_after_processing set, each retrieved message is flagged
        deleted in the folder and removed when the folder closes. If the
        retrieval fails part way, those deleted flags are cleared again.

        Returns:
            Detached messages in search order (may be empty)

        Raises:
            ConfigurationError: If the folder does not exist
            MailboxConnectionError: If connecting fails
            RetrievalError: For any other failure
        """
        retrieved: list[DetachedMessage] = []
        marked: list[MessageHandle] = []
        with self._task("retrieve", RetrievalError) as (session, config):
            try:
                for uid in self._candidates(session, config):
                    handle = session.message(uid)
                    if not self._eligible(handle, config):
                        continue
                    retrieved.append(handle.detach())
                    if config.delete_after_processing:
                        marked.append(handle)
                        handle.mark_deleted()
            except Exception:
                # A failed retrieval returns nothing, so nothing stays flagged deleted
                self._unmark_deleted(marked, config)
                raise
        logger.info(f"Retrieved {len(retrieved)} messages from {config.folder}")
        return retrieved

    def _unmark_deleted(self, handles: list[MessageHandle], config: ExecutorConfig) -> None:
        for handle in handles:
            try:
                handle.clear_deleted()
            except Exception as e:
                logger.warning(f"Could not clear deleted flag on UID {handle.uid} in {config.folder}: {e}")

    def are_there_remaining_emails(self) -> bool:
        """Whether any messages match the current selection.

        Ignores batch_size and delete_after_processing.
        """
        with self._task("remaining count", ScanError) as (session, config):
            selection = build_filter(config.retrieve_seen_messages)
            return len(session.search(selection.criteria)) > 0

    def execute_for_each_email(
        self,
        handler: EmailHandler | Callable[[DetachedMessage], object],
    ) -> None:
        """Invoke a handler on a detached copy of each selected message.

        A failing handler does not stop the batch. Flag changes on that
        message are rolled back: seen is cleared again (unless seen messages
        are being retrieved) and deleted is cleared. Once the batch is done,
        all handler failures are raised together.

        Args:
            handler: An EmailHandler or a callable taking a DetachedMessage

        Raises:
            AggregateFailure: If one or more handlers failed
            RollbackError: If flags of a failed message could not be restored
            ScanError: If searching or iterating the folder failed
        """
        handle_email = handler.handle_email if isinstance(handler, EmailHandler) else handler
        failures: list[ProcessingFailure] = []
        processed = 0

        with self._task("for-each", ScanError) as (session, config):
            for uid in self._candidates(session, config):
                handle = session.message(uid)
                if not self._eligible(handle, config):
                    continue
                try:
                    handle_email(handle.detach())
                    if config.delete_after_processing:
                        handle.mark_deleted()
                    processed += 1
                except Exception as e:
                    logger.warning(f"Handler failed for UID {uid} in {config.folder}: {e}")
                    failures.append(ProcessingFailure(uid=uid, cause=e))
                    self._roll_back(handle, config, failures)

        logger.info(f"Handled {processed} messages in {config.folder}, {len(failures)} failed")
        if failures:
            raise AggregateFailure("Error(s) happened while handling e-mails", failures)

    def _roll_back(
        self,
        handle: MessageHandle,
        config: ExecutorConfig,
        failures: list[ProcessingFailure],
    ) -> None:
        """Undo seen/deleted flags left on a message whose handler failed."""
        try:
            flags = handle.flags() or frozenset()
            if not config.retrieve_seen_messages and SEEN in flags:
                handle.clear_seen()
            if DELETED in flags:
                handle.clear_deleted()
        except Exception as e:
            raise RollbackError(
                f"Could not restore flags of UID {handle.uid} in {config.folder}: {e}",
                failures,
            ) from e
