import logging
from typing import Protocol

from app.fieldledger.core.logging import log_json

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def notify(self, user_id: str, title: str, body: str, link: str | None = None) -> None: ...


class ApprovalGate(Protocol):
    def send_code(self, purpose: str) -> bool: ...

    def verify_code(self, code: str) -> bool: ...


class LoggingNotifier:
    def notify(self, user_id: str, title: str, body: str, link: str | None = None) -> None:
        log_json(
            logger,
            {"event": "notification", "user_id": user_id, "title": title, "body": body, "link": link},
        )


def notify_safely(notifier: Notifier | None, *, user_id: str, title: str, body: str, link: str | None = None) -> None:
    """Fire-and-forget dispatch; a failing notifier never breaks the save flow."""
    if notifier is None:
        return
    try:
        notifier.notify(user_id, title, body, link)
    except Exception:
        logger.exception("Failed to dispatch notification", extra={"user_id": user_id, "title": title})
