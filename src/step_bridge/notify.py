"""User-facing notifications."""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from .logs import NdjsonLogger

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """Fire-and-forget success/error messages for the user."""

    def success(self, message: str) -> None:
        ...

    def error(self, message: str) -> None:
        ...


class LogNotifier(Notifier):
    """Shows notifications on the console log and records them in the event log."""

    def __init__(self, event_log: Optional[NdjsonLogger] = None) -> None:
        self.event_log = event_log

    def success(self, message: str) -> None:
        logger.info(message)
        if self.event_log:
            self.event_log.notify(message, "success")

    def error(self, message: str) -> None:
        logger.error(message)
        if self.event_log:
            self.event_log.notify(message, "error")
