"""Port interface for assignment rule persistence."""

from abc import ABC, abstractmethod
from datetime import datetime

from leadrouting.domain.entities.assignment_rule import AssignmentRule


class AssignmentRuleRepository(ABC):
    @abstractmethod
    async def list_active_by_priority(self) -> list[AssignmentRule]:
        ...

    @abstractmethod
    async def get_all(self) -> list[AssignmentRule]:
        ...

    @abstractmethod
    async def get_by_id(self, rule_id: str) -> AssignmentRule | None:
        ...

    @abstractmethod
    async def add(self, rule: AssignmentRule) -> None:
        ...

    @abstractmethod
    async def save(self, rule: AssignmentRule) -> None:
        """Overwrite every stored field of an existing rule."""
        ...

    @abstractmethod
    async def delete(self, rule_id: str) -> bool:
        """Returns False when no such rule existed."""
        ...

    @abstractmethod
    async def set_priorities(self, priorities: dict[str, int], updated_at: datetime) -> None:
        ...
