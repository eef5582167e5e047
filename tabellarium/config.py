"""Configuration management for tabellarium."""

import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

IMAP_PORT = 143
IMAPS_PORT = 993

# -1 means no timeout, no batch limit
DEFAULT_CONNECTION_TIMEOUT_MS = -1
DEFAULT_BATCH_SIZE = 0


@dataclass(frozen=True)
class ExecutorConfig:
    """Settings for one folder task executor.

    Values are validated on construction, so an invalid batch size or
    timeout fails where it is set rather than when an operation runs.
    Credentials can be supplied through environment variables when the
    config is loaded from a file, see load_config().
    """
    host: str
    username: str
    password: str = field(repr=False)
    folder: str
    port: int | None = None  # None picks the standard port for use_ssl
    use_ssl: bool = True
    connection_timeout_ms: int = DEFAULT_CONNECTION_TIMEOUT_MS
    batch_size: int = DEFAULT_BATCH_SIZE
    retrieve_seen_messages: bool = False
    delete_after_processing: bool = False

    def __post_init__(self):
        if self.batch_size < 0:
            raise ConfigurationError(
                f"Batch size must be zero or positive, got {self.batch_size}"
            )
        if self.connection_timeout_ms < -1:
            raise ConfigurationError(
                f"Connection timeout must be -1 (infinite) or greater, got {self.connection_timeout_ms}"
            )
        if self.port is not None and not 0 < self.port < 65536:
            raise ConfigurationError(f"Invalid port: {self.port}")

    @property
    def effective_port(self) -> int:
        if self.port is not None:
            return self.port
        return IMAPS_PORT if self.use_ssl else IMAP_PORT

    @property
    def connect_timeout_seconds(self) -> float | None:
        """Connect timeout in seconds, or None for no timeout."""
        if self.connection_timeout_ms <= 0:
            return None
        return self.connection_timeout_ms / 1000


def load_config(path: str | Path) -> ExecutorConfig:
    """Load executor configuration from a TOML file.

    The file has an [imap] section for the connection and folder and an
    optional [task] section for the toggles. TABELLARIUM_IMAP_USERNAME and
    TABELLARIUM_IMAP_PASSWORD override the credentials in the file.

    Raises:
        FileNotFoundError: If the file does not exist
        ConfigurationError: If the file is not valid TOML or settings are
            missing or invalid
    """
    path = Path(path)
    with path.open("rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Invalid configuration file {path}: {e}") from e

    imap_data = data.get("imap", {})
    task_data = data.get("task", {})

    username = os.environ.get("TABELLARIUM_IMAP_USERNAME") or imap_data.get("username", "")
    password = os.environ.get("TABELLARIUM_IMAP_PASSWORD") or imap_data.get("password", "")

    host = imap_data.get("host", "")
    if not host:
        raise ConfigurationError(f"No IMAP host configured in {path}")
    if not password:
        logger.warning("No IMAP password configured; set TABELLARIUM_IMAP_PASSWORD")

    return ExecutorConfig(
        host=host,
        username=username,
        password=password,
        folder=imap_data.get("folder", "INBOX"),
        port=imap_data.get("port"),
        use_ssl=imap_data.get("use_ssl", True),
        connection_timeout_ms=imap_data.get(
            "connection_timeout_ms", DEFAULT_CONNECTION_TIMEOUT_MS
        ),
        batch_size=task_data.get("batch_size", DEFAULT_BATCH_SIZE),
        retrieve_seen_messages=task_data.get("retrieve_seen_messages", False),
        delete_after_processing=task_data.get("delete_after_processing", False),
    )
