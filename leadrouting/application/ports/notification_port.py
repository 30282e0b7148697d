"""Port interface for notification intents (delivery happens elsewhere)."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass
class NotificationIntent:
    kind: str  # "lead_assigned" | "lead_reassigned" | "sla_escalation" | rule action type
    lead_id: str
    recipients: list[str] = field(default_factory=list)
    payload: dict = field(default_factory=dict)


class NotificationPort(ABC):
    @abstractmethod
    async def publish(self, intent: NotificationIntent) -> None:
        ...
