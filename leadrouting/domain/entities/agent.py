"""Agent entity — a user who can own leads."""

from dataclasses import dataclass

from leadrouting.domain.value_objects.enums import LEAD_OWNER_ROLES, UserRole


@dataclass
class Agent:
    id: str
    name: str
    role: UserRole
    is_active: bool = True
    team: str | None = None
    territory: str | None = None
    working_hours_id: str | None = None
    is_senior: bool = False

    def can_own_leads(self) -> bool:
        return self.is_active and self.role in LEAD_OWNER_ROLES
