"""
golbucks.services.notifications — After-Commit Notification Dispatch
=====================================================================

Services queue notifications on the session while the unit of work is
open.  The unit of work hands them to their notifier only after a
successful commit; a rollback discards them.  A failing notifier is logged
and skipped — it can never undo or fail the committed mutation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

_PENDING_KEY = "golbucks.pending_notifications"


@dataclass(frozen=True, slots=True)
class Notification:
    """One user-facing message about a committed change."""

    topic: str
    account_id: int
    payload: dict[str, Any] = field(default_factory=dict)


class Notifier(Protocol):
    def send(self, notification: Notification) -> None: ...


class LoggingNotifier:
    """Default notifier: writes each notification to the log."""

    def send(self, notification: Notification) -> None:
        logger.info(
            "notify %s → account %d %s",
            notification.topic, notification.account_id, notification.payload,
        )


def notify_after_commit(
    session: Session,
    notifier: Notifier | None,
    topic: str,
    account_id: int,
    **payload: Any,
) -> None:
    """Queue a notification for delivery once *session* commits."""
    if notifier is None:
        return
    pending = session.info.setdefault(_PENDING_KEY, [])
    pending.append((notifier, Notification(topic, account_id, payload)))


def deliver_pending(session: Session) -> int:
    """Send every queued notification.  Returns how many were delivered."""
    pending = session.info.pop(_PENDING_KEY, [])
    delivered = 0
    for notifier, notification in pending:
        try:
            notifier.send(notification)
            delivered += 1
        except Exception:
            logger.exception(
                "Notification %s for account %d failed",
                notification.topic, notification.account_id,
            )
    return delivered


def discard_pending(session: Session) -> None:
    session.info.pop(_PENDING_KEY, None)
