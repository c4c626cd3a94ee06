from typing import Protocol

from toggle_analysis.common.logging import get_logger

logger = get_logger(__name__)

OPERATION_FAILED_MESSAGE = "Operation failed, please try again later."


class Notifier(Protocol):
    """Fire-and-forget, user-visible error surface."""

    def error(self, message: str) -> None:
        ...


class NotificationLog:
    """Notifier that queues messages until the presentation layer drains them."""

    def __init__(self) -> None:
        self._pending: list[str] = []

    def error(self, message: str) -> None:
        logger.warning("User notified of error", {"message": message})
        self._pending.append(message)

    def peek(self) -> list[str]:
        return list(self._pending)

    def drain(self) -> list[str]:
        """Return and clear every queued message."""
        messages, self._pending = self._pending, []
        return messages
