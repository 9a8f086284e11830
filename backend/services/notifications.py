"""Transient notification channel for user-visible messages."""
import logging
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, List

logger = logging.getLogger(__name__)

INFO = "info"
ERROR = "error"

INFO_DURATION_MS = 3000
ERROR_DURATION_MS = 5000


@dataclass(frozen=True)
class Notification:
    level: str
    message: str
    duration_ms: int
    prompt_credential: bool = False


class Notifier:
    """
    Single channel for every user-visible notice.

    Subscribers are called synchronously; the most recent notifications are
    also buffered so a polling UI can drain them.
    """

    def __init__(self, max_pending: int = 20):
        self._pending: Deque[Notification] = deque(maxlen=max_pending)
        self._subscribers: List[Callable[[Notification], None]] = []

    def subscribe(self, callback: Callable[[Notification], None]) -> None:
        self._subscribers.append(callback)

    def info(self, message: str, duration_ms: int = INFO_DURATION_MS) -> Notification:
        return self._publish(Notification(INFO, message, duration_ms))

    def error(self, message: str, prompt_credential: bool = False) -> Notification:
        if not message.startswith("Error:"):
            message = f"Error: {message}"
        logger.error(message)
        return self._publish(Notification(ERROR, message, ERROR_DURATION_MS, prompt_credential))

    def drain(self) -> List[Notification]:
        """Return and clear the buffered notifications."""
        pending = list(self._pending)
        self._pending.clear()
        return pending

    def _publish(self, notification: Notification) -> Notification:
        self._pending.append(notification)
        for callback in list(self._subscribers):
            try:
                callback(notification)
            except Exception as e:
                logger.warning(f"Notification subscriber failed: {e}")
        return notification
