"""Handler that changes message flags on the server."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Protocol

from tabellarium.errors import ConfigurationError
from tabellarium.flags import USER, resolve, resolve_all
from tabellarium.message import DetachedMessage

logger = logging.getLogger("tabellarium.handlers")


class FlagStore(Protocol):
    """Anything that can set flags by UID, e.g. a connected ImapMailbox."""

    def add_flags(self, uid: int, flags: list[bytes]) -> None: ...

    def remove_flags(self, uid: int, flags: list[bytes]) -> None: ...


class ChangeMessageFlagEmailHandler:
    """Sets or clears one flag on each handled message.

    Detached copies never write back, so the change goes through a
    separate flag store that has the same folder selected.

    Args:
        flag_store: Connection used to apply the change
        new_flag: Flag name, see tabellarium.flags.resolve()
        value: True to set the flag, False to clear it
        only_if: If given, only change messages carrying all of these flags

    Raises:
        ConfigurationError: If new_flag is "user", which is not a storable flag
    """

    def __init__(
        self,
        flag_store: FlagStore,
        new_flag: str,
        value: bool = True,
        only_if: Iterable[str] = (),
    ):
        self.flag_store = flag_store
        self.new_flag = resolve(new_flag)
        if self.new_flag == USER:
            raise ConfigurationError(
                f"{new_flag!r} only marks user-flag support and cannot be stored on a message"
            )
        self.value = value
        self.only_if = resolve_all(only_if)

    def handle_email(self, message: DetachedMessage) -> None:
        if not all(message.has_flag(flag) for flag in self.only_if):
            return
        if self.value:
            self.flag_store.add_flags(message.uid, [self.new_flag])
        else:
            self.flag_store.remove_flags(message.uid, [self.new_flag])
        logger.debug(f"{'Set' if self.value else 'Cleared'} {self.new_flag!r} on UID {message.uid}")
