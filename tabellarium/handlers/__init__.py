"""Ready-made email handlers.

Each handler implements the EmailHandler protocol and receives detached
message copies from ImapFolderTaskExecutor.execute_for_each_email().
"""

from .base import EmailHandler
from .flags import ChangeMessageFlagEmailHandler, FlagStore
from .printing import PrintingEmailHandler, PrintInFileEmailHandler

__all__ = [
    "ChangeMessageFlagEmailHandler",
    "EmailHandler",
    "FlagStore",
    "PrintInFileEmailHandler",
    "PrintingEmailHandler",
]
