"""Assignment rule endpoints — listing, statistics and administration."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from leadrouting.adapters.persistence.database import get_session
from leadrouting.application.use_cases.manage_rules import ManageRulesUseCase
from leadrouting.domain.entities.assignment_rule import AssignmentRule
from leadrouting.domain.errors import RoutingError
from leadrouting.infrastructure.api.dependencies import get_rule_admin_uc
from leadrouting.infrastructure.api.errors import http_error

router = APIRouter(prefix="/routing/rules", tags=["rules"])

# ── Request schemas ─────────────────────────────────────────────────


class RuleCreateRequest(BaseModel):
    name: str = Field(min_length=1)
    priority: int | None = Field(default=None, ge=0)
    conditions: list[dict[str, Any]] = []
    actions: list[dict[str, Any]] = Field(min_length=1)
    territories: list[dict[str, Any]] = []
    working_hours_id: str | None = None
    is_active: bool = True
    created_by: str = "system"


class RuleUpdateRequest(BaseModel):
    name: str | None = None
    priority: int | None = None
    conditions: list[dict[str, Any]] | None = None
    actions: list[dict[str, Any]] | None = None
    territories: list[dict[str, Any]] | None = None
    working_hours_id: str | None = None
    is_active: bool | None = None


class ReorderRequest(BaseModel):
    rule_ids: list[str] = Field(min_length=1)


def _rule_to_dict(rule: AssignmentRule) -> dict:
    return {
        "id": rule.id,
        "name": rule.name,
        "priority": rule.priority,
        "is_active": rule.is_active,
        "working_hours_id": rule.working_hours_id,
        "conditions": [c.to_dict() for c in rule.conditions],
        "actions": [a.to_dict() for a in rule.actions],
        "territories": [t.to_dict() for t in rule.territories],
        "created_by": rule.created_by,
        "created_at": rule.created_at.isoformat() if rule.created_at else None,
        "updated_at": rule.updated_at.isoformat() if rule.updated_at else None,
    }


# ── Reads ───────────────────────────────────────────────────────────


@router.get("")
async def list_rules(
    active: bool = Query(default=False),
    rules: ManageRulesUseCase = Depends(get_rule_admin_uc),
):
    """Every rule in evaluation order, or only the active ones."""
    return [_rule_to_dict(r) for r in await rules.list_rules(active_only=active)]


@router.get("/statistics")
async def rules_statistics(rules: ManageRulesUseCase = Depends(get_rule_admin_uc)):
    stats = await rules.statistics()
    return {
        "total_rules": stats.total_rules,
        "active_rules": stats.active_rules,
        "inactive_rules": stats.inactive_rules,
        "rules_by_priority": stats.rules_by_priority,
    }


@router.get("/{rule_id}")
async def get_rule(rule_id: str, rules: ManageRulesUseCase = Depends(get_rule_admin_uc)):
    try:
        return _rule_to_dict(await rules.get_rule(rule_id))
    except RoutingError as e:
        raise http_error(e) from e


# ── Writes ──────────────────────────────────────────────────────────


@router.post("", status_code=201)
async def create_rule(
    body: RuleCreateRequest,
    rules: ManageRulesUseCase = Depends(get_rule_admin_uc),
    session: AsyncSession = Depends(get_session),
):
    data = body.model_dump(exclude={"created_by"})
    if data["priority"] is None:
        del data["priority"]
    try:
        rule = await rules.create_rule(data, created_by=body.created_by)
    except RoutingError as e:
        raise http_error(e) from e
    await session.commit()
    return _rule_to_dict(rule)


@router.post("/reorder")
async def reorder_rules(
    body: ReorderRequest,
    rules: ManageRulesUseCase = Depends(get_rule_admin_uc),
    session: AsyncSession = Depends(get_session),
):
    """Renumber the listed rules 1..n in the order given."""
    try:
        ordered = await rules.reorder_rules(body.rule_ids)
    except RoutingError as e:
        raise http_error(e) from e
    await session.commit()
    return [_rule_to_dict(r) for r in ordered]


@router.put("/{rule_id}")
async def update_rule(
    rule_id: str,
    body: RuleUpdateRequest,
    rules: ManageRulesUseCase = Depends(get_rule_admin_uc),
    session: AsyncSession = Depends(get_session),
):
    try:
        rule = await rules.update_rule(rule_id, body.model_dump(exclude_unset=True))
    except RoutingError as e:
        raise http_error(e) from e
    await session.commit()
    return _rule_to_dict(rule)


@router.delete("/{rule_id}")
async def delete_rule(
    rule_id: str,
    rules: ManageRulesUseCase = Depends(get_rule_admin_uc),
    session: AsyncSession = Depends(get_session),
):
    try:
        await rules.delete_rule(rule_id)
    except RoutingError as e:
        raise http_error(e) from e
    await session.commit()
    return {"status": "ok", "deleted": rule_id}


@router.post("/{rule_id}/activate")
async def activate_rule(
    rule_id: str,
    rules: ManageRulesUseCase = Depends(get_rule_admin_uc),
    session: AsyncSession = Depends(get_session),
):
    return await _toggle(rules, session, rule_id, True)


@router.post("/{rule_id}/deactivate")
async def deactivate_rule(
    rule_id: str,
    rules: ManageRulesUseCase = Depends(get_rule_admin_uc),
    session: AsyncSession = Depends(get_session),
):
    return await _toggle(rules, session, rule_id, False)


async def _toggle(
    rules: ManageRulesUseCase, session: AsyncSession, rule_id: str, active: bool
) -> dict:
    try:
        rule = await rules.set_active(rule_id, active)
    except RoutingError as e:
        raise http_error(e) from e
    await session.commit()
    return _rule_to_dict(rule)
