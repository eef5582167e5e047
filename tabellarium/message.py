"""Connection-independent copies of messages."""

import email
import email.message
from dataclasses import dataclass, field
from email.header import decode_header
from functools import cached_property

from imapclient import DELETED, SEEN


def decode_mime_header(header: str | None) -> str:
    """Decode a MIME-encoded email header."""
    if header is None:
        return ""
    decoded_parts = decode_header(header)
    result = []
    for part, charset in decoded_parts:
        if isinstance(part, bytes):
            result.append(part.decode(charset or "utf-8", errors="replace"))
        else:
            result.append(part)
    return "".join(result)


def decode_part(part: email.message.Message) -> str:
    """Decode the payload of a single (non-multipart) part to text."""
    payload = part.get_payload(decode=True)
    if isinstance(payload, bytes):
        charset = part.get_content_charset() or "utf-8"
        return payload.decode(charset, errors="replace")
    return ""


def extract_body(msg: email.message.Message) -> str:
    """Extract plain text body from email message."""
    if not msg.is_multipart():
        return decode_part(msg)
    for wanted in ("text/plain", "text/html"):
        for part in msg.walk():
            if part.get_content_type() != wanted:
                continue
            # Skip attachments - only get inline body text
            if "attachment" in part.get("Content-Disposition", ""):
                continue
            return decode_part(part)
    return ""


@dataclass(frozen=True)
class DetachedMessage:
    """A fully materialized copy of one message.

    Holds the raw RFC822 bytes and the flags as they were when the copy was
    taken. It does not reference the connection it came from, so it stays
    valid after the folder is closed, and nothing done to it reaches the
    server.
    """
    uid: int
    folder: str
    raw: bytes = field(repr=False)
    flags: frozenset[bytes] = frozenset()

    @cached_property
    def message(self) -> email.message.Message:
        return email.message_from_bytes(self.raw)

    @property
    def message_id(self) -> str:
        return self.message.get("Message-ID", f"<uid-{self.uid}@local>")

    @property
    def subject(self) -> str:
        return decode_mime_header(self.message.get("Subject"))

    @property
    def from_addr(self) -> str:
        return decode_mime_header(self.message.get("From"))

    @property
    def headers(self) -> list[tuple[str, str]]:
        return [(name, decode_mime_header(value)) for name, value in self.message.items()]

    @property
    def body_text(self) -> str:
        return extract_body(self.message)

    def content_parts(self) -> list[str]:
        """Decoded text of every leaf part, in document order."""
        return [decode_part(part) for part in self.message.walk() if not part.is_multipart()]

    def has_flag(self, flag: bytes) -> bool:
        return flag in self.flags

    @property
    def seen(self) -> bool:
        return SEEN in self.flags

    @property
    def deleted(self) -> bool:
        return DELETED in self.flags
