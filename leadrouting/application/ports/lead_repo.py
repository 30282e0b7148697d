"""Port interface for lead persistence."""

from abc import ABC, abstractmethod
from collections.abc import Iterable

from leadrouting.domain.entities.lead import Lead, LeadAssignment


class LeadRepository(ABC):
    @abstractmethod
    async def get_by_id(self, lead_id: str) -> Lead | None:
        ...

    @abstractmethod
    async def list_unassigned(self) -> list[Lead]:
        """Open leads with no assignee, oldest first."""
        ...

    @abstractmethod
    async def list_open_assigned(self, assigned_to: str | None = None) -> list[Lead]:
        """Non-terminal leads that have an assignee, optionally for one agent."""
        ...

    @abstractmethod
    async def list_assigned(self) -> list[Lead]:
        """Every lead that has an assignee, open or closed."""
        ...

    @abstractmethod
    async def claim_assignment(self, lead_id: str, assignment: LeadAssignment) -> bool:
        """Write the assignment only if the lead is open and still unassigned.

        Must be a single atomic compare-and-set. Returns False when another
        caller got there first (or the lead closed meanwhile).
        """
        ...

    @abstractmethod
    async def write_assignment(self, lead_id: str, assignment: LeadAssignment) -> None:
        """Unconditionally overwrite the assignment (manual reassignment)."""
        ...

    @abstractmethod
    async def count_active_by_assignees(self, agent_ids: Iterable[str]) -> dict[str, int]:
        """Open-lead counts per agent; agents with no open leads may be omitted."""
        ...
