"""Notification seam for agents who received an assignment."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssignmentNotice:
    recipient_id: str
    shift_id: str
    site_name: str
    start_time: str
    end_time: str
    type: str = "SHIFT_ASSIGNMENT"
    title: str = "New Shift Assignment"
    channels: tuple = ("PUSH", "EMAIL")
    priority: str = "HIGH"

    @property
    def message(self) -> str:
        return f"You have been assigned to a shift at {self.site_name}"


class NotificationDispatcher(ABC):
    """Delivers assignment notices to agents."""

    @abstractmethod
    def send(self, notice: AssignmentNotice) -> None:
        """Deliver one notice; may raise on delivery failure."""


class LoggingDispatcher(NotificationDispatcher):
    """Default dispatcher: records the notice in the log only."""

    def send(self, notice: AssignmentNotice) -> None:
        logger.info("Notify agent %s: %s (shift %s)", notice.recipient_id, notice.message, notice.shift_id)


@dataclass
class RecordingDispatcher(NotificationDispatcher):
    """Keeps every notice in memory; handy for dry runs and tests."""

    sent: List[AssignmentNotice] = field(default_factory=list)

    def send(self, notice: AssignmentNotice) -> None:
        self.sent.append(notice)


def dispatch_all(dispatcher: NotificationDispatcher, notices: List[AssignmentNotice]) -> Dict[str, int]:
    """
    Fire-and-forget delivery. A failing notice is logged and skipped so that
    an accepted plan is never rolled back because of delivery problems.
    """
    delivered = 0
    failed = 0
    for notice in notices:
        try:
            dispatcher.send(notice)
            delivered += 1
        except Exception:
            failed += 1
            logger.exception("Failed to notify agent %s of shift %s", notice.recipient_id, notice.shift_id)
    return {"delivered": delivered, "failed": failed}
