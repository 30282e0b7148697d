"""Port interface for the user/agent directory."""

from abc import ABC, abstractmethod

from leadrouting.domain.entities.agent import Agent


class AgentRepository(ABC):
    @abstractmethod
    async def get_by_id(self, agent_id: str) -> Agent | None:
        ...

    @abstractmethod
    async def list_lead_owners(self) -> list[Agent]:
        """Active agents whose role permits lead ownership."""
        ...

    @abstractmethod
    async def list_team_managers(self, team: str) -> list[Agent]:
        """Active managers of a team, the escalation targets for its members."""
        ...
