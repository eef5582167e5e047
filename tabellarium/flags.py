"""Translation of flag names to IMAP flags."""

from collections.abc import Iterable

from imapclient import ANSWERED, DELETED, DRAFT, FLAGGED, RECENT, SEEN

# "user" maps to the PERMANENTFLAGS wildcard that marks user-defined
# keyword support on a folder.
USER = rb"\*"

SYSTEM_FLAGS: dict[str, bytes] = {
    "answered": ANSWERED,
    "deleted": DELETED,
    "draft": DRAFT,
    "flagged": FLAGGED,
    "recent": RECENT,
    "seen": SEEN,
    "user": USER,
}


def resolve(name: str) -> bytes:
    """Return the IMAP flag for a flag name.

    Names that are not one of the system flags are returned verbatim as a
    keyword, so server-specific flags such as "$Junk" pass through.
    """
    flag = SYSTEM_FLAGS.get(name)
    if flag is not None:
        return flag
    return name.encode("utf-8")


def resolve_all(names: Iterable[str]) -> frozenset[bytes]:
    return frozenset(resolve(name) for name in names)
