"""Routing endpoints — assign, reassign, SLA, workloads, statistics."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from leadrouting.adapters.persistence.database import get_session
from leadrouting.application.use_cases.assignment_coordinator import (
    AssignmentCoordinator,
    AssignmentResult,
    OverdueFilter,
    SLAStatus,
)
from leadrouting.application.use_cases.batch_assign import BatchAssignUseCase
from leadrouting.domain.errors import RoutingError
from leadrouting.domain.policies.workload_balancer import WorkloadInfo
from leadrouting.infrastructure.api.dependencies import get_batch_assign_uc, get_coordinator
from leadrouting.infrastructure.api.errors import http_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/routing", tags=["routing"])

# ── Request schemas ─────────────────────────────────────────────────


class AssignRequest(BaseModel):
    ignore_working_hours: bool = False
    actor_id: str = "system"


class ReassignRequest(BaseModel):
    new_assignee_id: str = Field(min_length=1)
    reason: str = Field(min_length=1)
    actor_id: str = Field(min_length=1)


class BatchRequest(BaseModel):
    ignore_working_hours: bool = False


# ── Serializers ─────────────────────────────────────────────────────


def _assignment_to_dict(r: AssignmentResult) -> dict:
    return {
        "lead_id": r.lead_id,
        "assigned_to": r.assigned_to,
        "assignment_reason": r.assignment_reason,
        "assigned_at": r.assigned_at.isoformat(),
        "rule_id": r.rule_id,
        "previous_assignee": r.previous_assignee,
    }


def _sla_to_dict(s: SLAStatus) -> dict:
    return {
        "lead_id": s.lead_id,
        "assigned_to": s.assigned_to,
        "assigned_at": s.assigned_at.isoformat(),
        "sla_hours": s.sla_hours,
        "sla_deadline": s.sla_deadline.isoformat(),
        "hours_remaining": round(s.hours_remaining, 2),
        "is_overdue": s.is_overdue,
        "escalation_level": s.escalation_level,
    }


def _workload_to_dict(w: WorkloadInfo) -> dict:
    return {
        "user_id": w.user_id,
        "active_leads": w.active_leads,
        "overdue_leads": w.overdue_leads,
        "workload_score": w.workload_score,
    }


# ── Assignment ──────────────────────────────────────────────────────


@router.post("/leads/{lead_id}/assign")
async def assign_lead(
    lead_id: str,
    body: AssignRequest | None = None,
    coordinator: AssignmentCoordinator = Depends(get_coordinator),
    session: AsyncSession = Depends(get_session),
):
    """Assign a lead by rules, falling back to least-loaded balancing."""
    body = body or AssignRequest()
    try:
        result = await coordinator.assign_lead(
            lead_id,
            ignore_working_hours=body.ignore_working_hours,
            actor_id=body.actor_id,
        )
    except RoutingError as e:
        raise http_error(e) from e
    await session.commit()
    return {"status": "ok", **_assignment_to_dict(result)}


@router.post("/leads/{lead_id}/reassign")
async def reassign_lead(
    lead_id: str,
    body: ReassignRequest,
    coordinator: AssignmentCoordinator = Depends(get_coordinator),
    session: AsyncSession = Depends(get_session),
):
    """Manually move a lead to another agent."""
    try:
        result = await coordinator.reassign_lead(
            lead_id, body.new_assignee_id, body.reason, body.actor_id
        )
    except RoutingError as e:
        raise http_error(e) from e
    await session.commit()
    return {"status": "ok", **_assignment_to_dict(result)}


@router.post("/process")
async def process_unassigned(
    body: BatchRequest | None = None,
    batch_uc: BatchAssignUseCase = Depends(get_batch_assign_uc),
):
    """Assign every open, unassigned lead; each lead commits on its own."""
    body = body or BatchRequest()
    results = await batch_uc.execute(ignore_working_hours=body.ignore_working_hours)

    successful = [r for r in results if r.error is None]
    return {
        "status": "ok",
        "total_processed": len(results),
        "successful": len(successful),
        "failed": len(results) - len(successful),
        "results": [
            {
                "lead_id": r.lead_id,
                "assigned_to": r.assigned_to,
                "assignment_reason": r.assignment_reason,
                "error": r.error,
            }
            for r in results
        ],
    }


# ── SLA ─────────────────────────────────────────────────────────────


@router.get("/leads/{lead_id}/sla")
async def lead_sla(
    lead_id: str,
    coordinator: AssignmentCoordinator = Depends(get_coordinator),
):
    try:
        status = await coordinator.check_sla_compliance(lead_id)
    except RoutingError as e:
        raise http_error(e) from e
    return _sla_to_dict(status)


@router.get("/sla/overdue")
async def overdue_leads(
    assigned_to: str | None = None,
    min_escalation_level: int = Query(default=0, ge=0),
    coordinator: AssignmentCoordinator = Depends(get_coordinator),
):
    try:
        statuses = await coordinator.get_overdue_leads(
            OverdueFilter(assigned_to=assigned_to, min_escalation_level=min_escalation_level)
        )
    except RoutingError as e:
        raise http_error(e) from e
    return {"total": len(statuses), "leads": [_sla_to_dict(s) for s in statuses]}


@router.post("/sla/escalate")
async def escalate_overdue(
    coordinator: AssignmentCoordinator = Depends(get_coordinator),
    session: AsyncSession = Depends(get_session),
):
    """Emit escalation intents for every overdue lead."""
    try:
        statuses = await coordinator.escalate_overdue_leads()
    except RoutingError as e:
        raise http_error(e) from e
    await session.commit()
    return {"status": "ok", "escalated": len(statuses), "leads": [_sla_to_dict(s) for s in statuses]}


# ── Workload & statistics ───────────────────────────────────────────


@router.get("/workloads")
async def all_workloads(coordinator: AssignmentCoordinator = Depends(get_coordinator)):
    try:
        workloads = await coordinator.get_all_user_workloads()
    except RoutingError as e:
        raise http_error(e) from e
    return [_workload_to_dict(w) for w in workloads]


@router.get("/workloads/{user_id}")
async def user_workload(
    user_id: str,
    coordinator: AssignmentCoordinator = Depends(get_coordinator),
):
    try:
        workload = await coordinator.get_user_workload(user_id)
    except RoutingError as e:
        raise http_error(e) from e
    return _workload_to_dict(workload)


@router.get("/statistics")
async def assignment_statistics(coordinator: AssignmentCoordinator = Depends(get_coordinator)):
    try:
        stats = await coordinator.get_assignment_statistics()
    except RoutingError as e:
        raise http_error(e) from e
    return {
        "total_assignments": stats.total_assignments,
        "assignments_by_reason": stats.assignments_by_reason,
        "assignments_by_user": stats.assignments_by_user,
        "average_assignment_hours": stats.average_assignment_hours,
        "sla_compliance_rate": stats.sla_compliance_rate,
    }
