# Grievance status state machine and the status-update operation

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional

from .models import Grievance, GrievanceStatus
from .notifier import Notifier, StatusNotification
from .store import GrievanceStore

logger = logging.getLogger(__name__)

# submitted -> viewed -> cleared, plus submitted -> cleared; nothing leaves cleared
TRANSITIONS: Dict[GrievanceStatus, FrozenSet[GrievanceStatus]] = {
    GrievanceStatus.SUBMITTED: frozenset({GrievanceStatus.VIEWED, GrievanceStatus.CLEARED}),
    GrievanceStatus.VIEWED: frozenset({GrievanceStatus.CLEARED}),
    GrievanceStatus.CLEARED: frozenset(),
}


class InvalidTransition(Exception):
    def __init__(self, current: GrievanceStatus, target: GrievanceStatus):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move grievance from '{current.value}' to '{target.value}'")


def can_transition(current: GrievanceStatus, target: GrievanceStatus) -> bool:
    return target in TRANSITIONS[current]


def check_transition(current: GrievanceStatus, target: GrievanceStatus) -> None:
    if not can_transition(current, target):
        raise InvalidTransition(current, target)


@dataclass
class StatusUpdate:
    grievance: Grievance
    notification_sent: bool


async def send_notification(notifier: Notifier, notification: StatusNotification,
                            timeout: float) -> bool:
    """Best-effort delivery; never raises."""
    try:
        return bool(await asyncio.wait_for(notifier.notify(notification), timeout=timeout))
    except asyncio.TimeoutError:
        logger.warning("Notification for grievance %s timed out after %.1fs",
                       notification.grievance_id, timeout)
    except Exception as e:
        logger.error("Notification for grievance %s failed: %s", notification.grievance_id, e)
    return False


async def update_status(store: GrievanceStore, notifier: Notifier, grievance_id: str,
                        target: GrievanceStatus, message: Optional[str] = None,
                        notify_timeout: float = 10.0) -> Optional[StatusUpdate]:
    """Apply a status transition, then notify the student.

    Returns None when no grievance has ``grievance_id``. Raises InvalidTransition
    when ``target`` is not reachable from the current status. The status change
    is committed before the notifier runs and is kept whatever the notifier does.
    """
    current = await store.get(grievance_id)
    if current is None:
        return None
    check_transition(current.status, target)

    updated = await store.update_status(grievance_id, current.status, target)
    if updated is None:
        # Changed or deleted between the read and the conditional write
        latest = await store.get(grievance_id)
        if latest is None:
            return None
        raise InvalidTransition(latest.status, target)

    notification = StatusNotification(
        to=updated.student_email, student_name=updated.student_name,
        grievance_id=updated.id, status=target,
        category=updated.category.value, urgency=updated.urgency.value, message=message)
    sent = await send_notification(notifier, notification, notify_timeout)
    return StatusUpdate(grievance=updated, notification_sent=sent)
