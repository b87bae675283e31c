"""Notification sink for user-visible messages."""

import logging
from enum import StrEnum
from typing import Final

from PySide6.QtCore import QObject, Signal

logger = logging.getLogger(__name__)


class Severity(StrEnum):
    """How a notification should be presented."""

    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


#: Logging level used for each severity.
LOG_LEVELS: Final[dict[Severity, int]] = {
    Severity.SUCCESS: logging.INFO,
    Severity.INFO: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
}


class Notifier(QObject):
    """
    Emits user-visible messages.

    Whatever presents notifications (a status bar, a toast, a terminal)
    connects to :attr:`message`.
    """

    #: Emits (text, severity) for every notification.
    message = Signal(str, str)

    def notify(self, text: str, severity: Severity = Severity.SUCCESS) -> None:
        """
        Log and emit a notification.

        Args:
            text: The message

        Keyword Args:
            severity: How the message should be presented

        """
        logger.log(LOG_LEVELS[severity], text)
        self.message.emit(text, str(severity))
