"""
Save Feedback - Transient Notifications Tied to a Control

Each save produces exactly one notification attached to the control
that triggered it. While the notification is visible the control is
disabled; it is dismissed automatically after ``duration`` seconds.

Events:
    shown: Notification displayed (data: Notification)
    dismissed: Notification removed (data: Notification)
"""

from dataclasses import dataclass
from typing import Dict, List, Optional
from enum import Enum
import asyncio
import logging

from .events import EventEmitter

logger = logging.getLogger(__name__)


class NotificationLevel(Enum):
    SUCCESS = "success"
    DANGER = "danger"


@dataclass
class Notification:
    control_id: str
    message: str
    level: NotificationLevel


class FeedbackCenter(EventEmitter):
    """
    One live notification per control, auto-dismissed on the running loop.

    A new notification for a control replaces the previous one and
    restarts its timer.
    """

    DEFAULT_DURATION = 2.0

    def __init__(self, duration: float = DEFAULT_DURATION):
        super().__init__()
        self.duration = duration
        self._active: Dict[str, Notification] = {}
        self._timers: Dict[str, asyncio.TimerHandle] = {}

    def notify(
        self,
        control_id: str,
        message: str,
        level: NotificationLevel = NotificationLevel.SUCCESS
    ) -> Notification:
        """
        Show a notification on a control and disable the control.

        Must be called from a running event loop.
        """
        self._cancel_timer(control_id)
        notification = Notification(control_id, message, level)
        self._active[control_id] = notification

        loop = asyncio.get_running_loop()
        self._timers[control_id] = loop.call_later(self.duration, self.dismiss, control_id)

        logger.debug(f"[{control_id}] {level.value}: {message}")
        self._emit("shown", notification)
        return notification

    def dismiss(self, control_id: str) -> Optional[Notification]:
        """Remove the notification of a control and re-enable it."""
        self._cancel_timer(control_id)
        notification = self._active.pop(control_id, None)
        if notification is not None:
            self._emit("dismissed", notification)
        return notification

    def dismiss_all(self) -> None:
        for control_id in list(self._active):
            self.dismiss(control_id)

    def is_disabled(self, control_id: str) -> bool:
        return control_id in self._active

    def get(self, control_id: str) -> Optional[Notification]:
        return self._active.get(control_id)

    def active(self) -> List[Notification]:
        return list(self._active.values())

    def _cancel_timer(self, control_id: str) -> None:
        timer = self._timers.pop(control_id, None)
        if timer is not None:
            timer.cancel()
