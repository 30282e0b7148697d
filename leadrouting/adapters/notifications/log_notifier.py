"""Notification adapter that records intents in the application log.

Delivery (email, push, in-app) lives outside the routing engine; this adapter
keeps the intents observable and, optionally, in memory for inspection.
"""

from __future__ import annotations

import logging
from collections import deque

from leadrouting.application.ports.notification_port import (
    NotificationIntent,
    NotificationPort,
)

logger = logging.getLogger(__name__)


class LogNotifier(NotificationPort):
    def __init__(self, keep_last: int = 0):
        self._recent: deque[NotificationIntent] = deque(maxlen=keep_last or None)
        self._keep = keep_last > 0

    async def publish(self, intent: NotificationIntent) -> None:
        logger.info(
            "Notify %s: lead=%s recipients=%s payload=%s",
            intent.kind,
            intent.lead_id,
            ",".join(intent.recipients) or "-",
            intent.payload,
        )
        if self._keep:
            self._recent.append(intent)

    @property
    def recent(self) -> list[NotificationIntent]:
        return list(self._recent)
