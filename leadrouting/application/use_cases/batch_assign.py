"""BatchAssignUseCase — assign every open, unassigned lead."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from leadrouting.application.ports.lead_repo import LeadRepository
from leadrouting.application.ports.unit_of_work import UnitOfWork
from leadrouting.application.use_cases.assignment_coordinator import AssignmentCoordinator
from leadrouting.domain.errors import RoutingError

logger = logging.getLogger(__name__)


@dataclass
class BatchAssignResult:
    """Outcome for one lead of a batch run."""

    lead_id: str
    assigned_to: str | None = None
    assignment_reason: str | None = None
    error: str | None = None


class BatchAssignUseCase:
    """Run the coordinator over the unassigned backlog, oldest lead first.

    Every lead is its own transaction: it is committed (or rolled back on a
    routing failure) before the next one starts. A claim leaves the pool's
    round-robin row locked until commit, so the batch must never hold that
    lock while it waits for the pool again. A routing failure on one lead is
    recorded in its result and does not stop the batch.
    """

    def __init__(
        self,
        coordinator: AssignmentCoordinator,
        lead_repo: LeadRepository,
        uow: UnitOfWork,
    ):
        self._coordinator = coordinator
        self._leads = lead_repo
        self._uow = uow

    async def execute(self, ignore_working_hours: bool = False) -> list[BatchAssignResult]:
        leads = await self._leads.list_unassigned()
        logger.info("Batch assigning %d unassigned leads", len(leads))

        results = []
        for lead in leads:
            try:
                assignment = await self._coordinator.assign_lead(
                    lead.id, ignore_working_hours=ignore_working_hours
                )
            except RoutingError as exc:
                await self._uow.rollback()
                logger.warning("Lead %s not assigned: %s", lead.id, exc)
                results.append(BatchAssignResult(lead_id=lead.id, error=str(exc)))
                continue
            await self._uow.commit()
            results.append(
                BatchAssignResult(
                    lead_id=lead.id,
                    assigned_to=assignment.assigned_to,
                    assignment_reason=assignment.assignment_reason,
                )
            )

        successful = sum(1 for r in results if r.error is None)
        logger.info("Batch complete: %d/%d assigned", successful, len(results))
        return results
