"""Lead entity — a prospect awaiting qualification and ownership."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from leadrouting.domain.value_objects.enums import LeadStatus

# Sentinel for attribute paths that do not resolve
MISSING = object()


@dataclass
class LeadAssignment:
    """The only part of a lead the routing core writes."""

    assigned_to: str
    assigned_at: datetime
    assignment_reason: str


@dataclass
class Lead:
    id: str
    status: LeadStatus
    attributes: dict[str, Any] = field(default_factory=dict)
    assignment: LeadAssignment | None = None
    created_at: datetime | None = None

    def get_field(self, path: str) -> Any:
        """Resolve a dotted attribute path such as "score.value".

        Returns MISSING when any segment is absent or resolves to None.
        "status" and "id" resolve to the lead's own fields.
        """
        if path == "status":
            return self.status.value
        if path == "id":
            return self.id

        current: Any = self.attributes
        for key in path.split("."):
            if not isinstance(current, dict) or key not in current:
                return MISSING
            current = current[key]
        return MISSING if current is None else current

    @property
    def is_closed(self) -> bool:
        return self.status.is_terminal

    @property
    def assigned_to(self) -> str | None:
        return self.assignment.assigned_to if self.assignment else None
