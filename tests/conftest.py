"""Shared test fixtures."""

import tempfile
from email.mime.text import MIMEText
from pathlib import Path

import pytest
from imapclient import DELETED, SEEN
from imapclient.exceptions import LoginError

from tabellarium.executor import ImapFolderTaskExecutor


def make_raw(subject: str, body: str = "Body text", sender: str = "sender@example.com") -> bytes:
    msg = MIMEText(body, "plain", "utf-8")
    msg["From"] = sender
    msg["Subject"] = subject
    msg["Message-ID"] = f"<{subject.replace(' ', '-')}@example.com>"
    return msg.as_bytes()


def _as_bytes(flag) -> bytes:
    return flag if isinstance(flag, bytes) else flag.encode("utf-8")


class FakeMessage:
    def __init__(self, uid: int, raw: bytes, flags=()):
        self.uid = uid
        self.raw = raw
        self.flags = {_as_bytes(f) for f in flags}


class FakeImapServer:
    """In-memory IMAP server standing in for IMAPClient.

    Calling the server creates a client, so it can be patched in place of
    the IMAPClient class. hooks maps a client method name to a callable
    invoked with the method's arguments before it runs; raise from a hook
    to simulate a failure.
    """

    def __init__(self):
        self.folders: dict[str, list[FakeMessage]] = {"INBOX": []}
        self.password = "testpass"
        self.capabilities = {"UNSELECT"}
        self.hooks: dict = {}
        self.connections: list[dict] = []
        self.closes: list[tuple] = []
        self.logouts = 0
        self._next_uid = 1

    def __call__(self, host, port=None, ssl=True, timeout=None):
        self.connections.append({"host": host, "port": port, "ssl": ssl, "timeout": timeout})
        self._hook("connect", host)
        return FakeIMAPClient(self)

    def _hook(self, name, *args):
        hook = self.hooks.get(name)
        if hook is not None:
            hook(*args)

    def add(self, subject: str, flags=(), folder: str = "INBOX") -> int:
        uid = self._next_uid
        self._next_uid += 1
        self.folders.setdefault(folder, []).append(FakeMessage(uid, make_raw(subject), flags))
        return uid

    def message(self, uid: int, folder: str = "INBOX") -> FakeMessage | None:
        for msg in self.folders[folder]:
            if msg.uid == uid:
                return msg
        return None

    def flags(self, uid: int, folder: str = "INBOX") -> set[bytes]:
        return self.message(uid, folder).flags

    def uids(self, folder: str = "INBOX") -> list[int]:
        return [msg.uid for msg in self.folders[folder]]


class FakeIMAPClient:
    def __init__(self, server: FakeImapServer):
        self.server = server
        self.selected: str | None = None
        self.readonly = False

    def _messages(self) -> list[FakeMessage]:
        assert self.selected is not None, "no folder selected"
        return self.server.folders[self.selected]

    def _find(self, uid: int) -> FakeMessage | None:
        for msg in self._messages():
            if msg.uid == uid:
                return msg
        return None

    def login(self, username, password):
        self.server._hook("login", username, password)
        if password != self.server.password:
            raise LoginError("[AUTHENTICATIONFAILED] Invalid credentials")
        return b"Logged in"

    def logout(self):
        self.server._hook("logout")
        self.server.logouts += 1
        return b"Logging out"

    def folder_exists(self, folder):
        return folder in self.server.folders

    def select_folder(self, folder, readonly=False):
        self.server._hook("select_folder", folder, readonly)
        self.selected = folder
        self.readonly = readonly
        return {b"EXISTS": len(self.server.folders[folder])}

    def has_capability(self, name):
        return name in self.server.capabilities

    def search(self, criteria="ALL"):
        self.server._hook("search", criteria)
        if criteria == ["UNSEEN"]:
            return [m.uid for m in self._messages() if SEEN not in m.flags]
        if criteria == ["OR", "SEEN", "UNSEEN"]:
            return [m.uid for m in self._messages()]
        raise AssertionError(f"unexpected criteria {criteria!r}")

    def get_flags(self, messages):
        self.server._hook("get_flags", messages)
        result = {}
        for uid in messages:
            msg = self._find(uid)
            if msg is not None:
                result[uid] = tuple(sorted(msg.flags))
        return result

    def add_flags(self, messages, flags, silent=False):
        self.server._hook("add_flags", messages, flags)
        for uid in messages:
            msg = self._find(uid)
            if msg is not None:
                msg.flags.update(_as_bytes(f) for f in flags)

    def remove_flags(self, messages, flags, silent=False):
        self.server._hook("remove_flags", messages, flags)
        for uid in messages:
            msg = self._find(uid)
            if msg is not None:
                msg.flags.difference_update(_as_bytes(f) for f in flags)

    def fetch(self, messages, data):
        self.server._hook("fetch", messages, data)
        result = {}
        for uid in messages:
            msg = self._find(uid)
            if msg is None:
                continue
            if "BODY[]" in data or "RFC822" in data:
                msg.flags.add(SEEN)
            result[uid] = {b"BODY[]": msg.raw, b"FLAGS": tuple(sorted(msg.flags)), b"SEQ": uid}
        return result

    def close_folder(self):
        self.server._hook("close_folder")
        self.server.closes.append(("close", self.readonly))
        if not self.readonly:
            folder = self.server.folders[self.selected]
            folder[:] = [m for m in folder if DELETED not in m.flags]
        self.selected = None

    def unselect_folder(self):
        self.server._hook("unselect_folder")
        self.server.closes.append(("unselect",))
        self.selected = None


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def imap_server(monkeypatch):
    """Fake IMAP server patched in place of IMAPClient."""
    server = FakeImapServer()
    monkeypatch.setattr("tabellarium.imap_client.IMAPClient", server)
    return server


@pytest.fixture
def executor(imap_server):
    return ImapFolderTaskExecutor(
        "imap.example.com",
        "test@example.com",
        "testpass",
        "INBOX",
    )


@pytest.fixture
def sample_config_toml(temp_dir, monkeypatch):
    """Create a sample TOML config file."""
    monkeypatch.delenv("TABELLARIUM_IMAP_USERNAME", raising=False)
    # Password must come from environment variable
    monkeypatch.setenv("TABELLARIUM_IMAP_PASSWORD", "secret")

    config_path = temp_dir / "config.toml"
    config_path.write_text('''
[imap]
host = "imap.test.com"
username = "user@test.com"
use_ssl = true
folder = "Receipts"
connection_timeout_ms = 5000

[task]
batch_size = 25
retrieve_seen_messages = true
delete_after_processing = true
''')
    return config_path
