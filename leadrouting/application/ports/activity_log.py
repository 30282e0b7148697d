"""Port interface for the audit/activity collaborator."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime

from leadrouting.domain.value_objects.enums import ActivityType


@dataclass
class ActivityEntry:
    lead_id: str
    type: ActivityType
    actor: str
    at: datetime
    details: dict = field(default_factory=dict)


class ActivityLog(ABC):
    @abstractmethod
    async def record(self, entry: ActivityEntry) -> None:
        """Fire-and-forget from the caller's side; failures are logged, not raised."""
        ...
