"""SQLAlchemy repository implementations."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date, datetime

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from leadrouting.adapters.persistence.models import (
    ActivityModel,
    AssignmentRuleModel,
    HolidayModel,
    LeadModel,
    RoundRobinStateModel,
    UserModel,
    WorkingHoursConfigModel,
)
from leadrouting.application.ports.activity_log import ActivityEntry, ActivityLog
from leadrouting.application.ports.agent_repo import AgentRepository
from leadrouting.application.ports.calendar_repo import CalendarRepository
from leadrouting.application.ports.lead_repo import LeadRepository
from leadrouting.application.ports.round_robin_repo import RoundRobinRepository
from leadrouting.application.ports.rule_repo import AssignmentRuleRepository
from leadrouting.application.ports.unit_of_work import UnitOfWork
from leadrouting.domain.entities.agent import Agent
from leadrouting.domain.entities.assignment_rule import (
    AssignmentRule,
    parse_actions,
    parse_conditions,
    parse_territories,
)
from leadrouting.domain.entities.lead import Lead, LeadAssignment
from leadrouting.domain.errors import ValidationError
from leadrouting.domain.policies.working_hours_calendar import to_utc
from leadrouting.domain.value_objects.enums import (
    LEAD_OWNER_ROLES,
    TERMINAL_STATUSES,
    HolidayType,
    LeadStatus,
    UserRole,
)
from leadrouting.domain.value_objects.working_hours import Holiday, WorkingHoursConfig

logger = logging.getLogger(__name__)

_TERMINAL = [s.value for s in TERMINAL_STATUSES]
_OWNER_ROLES = [r.value for r in LEAD_OWNER_ROLES]

# ─── Mappers ─────────────────────────────────────────────────────────


def _lead_to_domain(m: LeadModel) -> Lead:
    assignment = None
    if m.assigned_to is not None and m.assigned_at is not None:
        assignment = LeadAssignment(
            assigned_to=m.assigned_to,
            assigned_at=to_utc(m.assigned_at),
            assignment_reason=m.assignment_reason or "",
        )
    return Lead(
        id=m.id,
        status=LeadStatus(m.status),
        attributes=dict(m.attributes or {}),
        assignment=assignment,
        created_at=to_utc(m.created_at) if m.created_at else None,
    )


def _user_to_domain(m: UserModel) -> Agent:
    return Agent(
        id=m.id,
        name=m.name,
        role=UserRole(m.role),
        is_active=m.is_active,
        team=m.team,
        territory=m.territory,
        working_hours_id=m.working_hours_id,
        is_senior=m.is_senior,
    )


def _rule_to_domain(m: AssignmentRuleModel) -> AssignmentRule:
    return AssignmentRule(
        id=m.id,
        name=m.name,
        priority=m.priority,
        conditions=parse_conditions(m.conditions),
        actions=parse_actions(m.actions),
        is_active=m.is_active,
        working_hours_id=m.working_hours_id,
        territories=parse_territories(m.territories),
        created_by=m.created_by,
        created_at=to_utc(m.created_at) if m.created_at else None,
        updated_at=to_utc(m.updated_at) if m.updated_at else None,
    )


def _rule_to_row(rule: AssignmentRule) -> dict:
    row = {
        "name": rule.name,
        "priority": rule.priority,
        "conditions": [c.to_dict() for c in rule.conditions],
        "actions": [a.to_dict() for a in rule.actions],
        "territories": [t.to_dict() for t in rule.territories],
        "working_hours_id": rule.working_hours_id,
        "is_active": rule.is_active,
        "created_by": rule.created_by,
    }
    # Unset timestamps fall back to the server defaults
    if rule.created_at is not None:
        row["created_at"] = rule.created_at
    if rule.updated_at is not None:
        row["updated_at"] = rule.updated_at
    return row


def _rules_to_domain(models: Iterable[AssignmentRuleModel]) -> list[AssignmentRule]:
    """Map stored rules, skipping (and logging) the ones that no longer parse."""
    rules = []
    for m in models:
        try:
            rules.append(_rule_to_domain(m))
        except ValidationError as e:
            logger.error("Skipping malformed assignment rule %s: %s", m.id, e)
    return rules


def _calendar_to_domain(m: WorkingHoursConfigModel) -> WorkingHoursConfig:
    return WorkingHoursConfig.from_schedule(
        id=m.id,
        name=m.name,
        timezone=m.timezone,
        schedule=m.schedule or {},
        holiday_types=m.holiday_types,
        is_default=m.is_default,
    )


def _holiday_to_domain(m: HolidayModel) -> Holiday:
    return Holiday(
        date=m.holiday_date,
        type=HolidayType(m.type),
        name=m.name,
        is_active=m.is_active,
    )


# ─── Repositories ────────────────────────────────────────────────────


class SqlLeadRepository(LeadRepository):
    def __init__(self, session: AsyncSession):
        self._s = session

    async def get_by_id(self, lead_id: str) -> Lead | None:
        result = await self._s.execute(
            select(LeadModel)
            .where(LeadModel.id == lead_id)
            .execution_options(populate_existing=True)
        )
        m = result.scalar_one_or_none()
        return _lead_to_domain(m) if m else None

    async def list_unassigned(self) -> list[Lead]:
        result = await self._s.execute(
            select(LeadModel)
            .where(LeadModel.assigned_to.is_(None), LeadModel.status.not_in(_TERMINAL))
            .order_by(LeadModel.created_at, LeadModel.id)
            .execution_options(populate_existing=True)
        )
        return [_lead_to_domain(m) for m in result.scalars()]

    async def list_open_assigned(self, assigned_to: str | None = None) -> list[Lead]:
        stmt = select(LeadModel).where(
            LeadModel.assigned_to.is_not(None), LeadModel.status.not_in(_TERMINAL)
        )
        if assigned_to is not None:
            stmt = stmt.where(LeadModel.assigned_to == assigned_to)
        result = await self._s.execute(
            stmt.order_by(LeadModel.assigned_at, LeadModel.id).execution_options(
                populate_existing=True
            )
        )
        return [_lead_to_domain(m) for m in result.scalars()]

    async def list_assigned(self) -> list[Lead]:
        result = await self._s.execute(
            select(LeadModel)
            .where(LeadModel.assigned_to.is_not(None))
            .order_by(LeadModel.assigned_at, LeadModel.id)
            .execution_options(populate_existing=True)
        )
        return [_lead_to_domain(m) for m in result.scalars()]

    async def claim_assignment(self, lead_id: str, assignment: LeadAssignment) -> bool:
        result = await self._s.execute(
            update(LeadModel)
            .where(
                LeadModel.id == lead_id,
                LeadModel.assigned_to.is_(None),
                LeadModel.status.not_in(_TERMINAL),
            )
            .values(
                assigned_to=assignment.assigned_to,
                assigned_at=assignment.assigned_at,
                assignment_reason=assignment.assignment_reason,
            )
            .execution_options(synchronize_session=False)
        )
        await self._s.flush()
        return result.rowcount == 1

    async def write_assignment(self, lead_id: str, assignment: LeadAssignment) -> None:
        await self._s.execute(
            update(LeadModel)
            .where(LeadModel.id == lead_id)
            .values(
                assigned_to=assignment.assigned_to,
                assigned_at=assignment.assigned_at,
                assignment_reason=assignment.assignment_reason,
            )
            .execution_options(synchronize_session=False)
        )
        await self._s.flush()

    async def count_active_by_assignees(self, agent_ids: Iterable[str]) -> dict[str, int]:
        ids = list(agent_ids)
        if not ids:
            return {}
        result = await self._s.execute(
            select(LeadModel.assigned_to, func.count(LeadModel.id))
            .where(LeadModel.assigned_to.in_(ids), LeadModel.status.not_in(_TERMINAL))
            .group_by(LeadModel.assigned_to)
        )
        return {agent_id: count for agent_id, count in result.all()}


class SqlAgentRepository(AgentRepository):
    def __init__(self, session: AsyncSession):
        self._s = session

    async def get_by_id(self, agent_id: str) -> Agent | None:
        m = await self._s.get(UserModel, agent_id)
        return _user_to_domain(m) if m else None

    async def list_lead_owners(self) -> list[Agent]:
        result = await self._s.execute(
            select(UserModel)
            .where(UserModel.is_active.is_(True), UserModel.role.in_(_OWNER_ROLES))
            .order_by(UserModel.id)
        )
        return [_user_to_domain(m) for m in result.scalars()]

    async def list_team_managers(self, team: str) -> list[Agent]:
        result = await self._s.execute(
            select(UserModel)
            .where(
                UserModel.is_active.is_(True),
                UserModel.role == UserRole.MANAGER.value,
                UserModel.team == team,
            )
            .order_by(UserModel.id)
        )
        return [_user_to_domain(m) for m in result.scalars()]


class SqlAssignmentRuleRepository(AssignmentRuleRepository):
    def __init__(self, session: AsyncSession):
        self._s = session

    async def list_active_by_priority(self) -> list[AssignmentRule]:
        result = await self._s.execute(
            select(AssignmentRuleModel)
            .where(AssignmentRuleModel.is_active.is_(True))
            .order_by(AssignmentRuleModel.priority, AssignmentRuleModel.id)
            .execution_options(populate_existing=True)
        )
        return _rules_to_domain(result.scalars())

    async def get_all(self) -> list[AssignmentRule]:
        result = await self._s.execute(
            select(AssignmentRuleModel)
            .order_by(AssignmentRuleModel.priority, AssignmentRuleModel.id)
            .execution_options(populate_existing=True)
        )
        return _rules_to_domain(result.scalars())

    async def get_by_id(self, rule_id: str) -> AssignmentRule | None:
        result = await self._s.execute(
            select(AssignmentRuleModel)
            .where(AssignmentRuleModel.id == rule_id)
            .execution_options(populate_existing=True)
        )
        m = result.scalar_one_or_none()
        return _rule_to_domain(m) if m else None

    async def add(self, rule: AssignmentRule) -> None:
        self._s.add(AssignmentRuleModel(id=rule.id, **_rule_to_row(rule)))
        await self._s.flush()

    async def save(self, rule: AssignmentRule) -> None:
        await self._s.execute(
            update(AssignmentRuleModel)
            .where(AssignmentRuleModel.id == rule.id)
            .values(**_rule_to_row(rule))
            .execution_options(synchronize_session=False)
        )
        await self._s.flush()

    async def delete(self, rule_id: str) -> bool:
        result = await self._s.execute(
            delete(AssignmentRuleModel)
            .where(AssignmentRuleModel.id == rule_id)
            .execution_options(synchronize_session=False)
        )
        await self._s.flush()
        return result.rowcount == 1

    async def set_priorities(self, priorities: dict[str, int], updated_at: datetime) -> None:
        for rule_id, priority in priorities.items():
            await self._s.execute(
                update(AssignmentRuleModel)
                .where(AssignmentRuleModel.id == rule_id)
                .values(priority=priority, updated_at=updated_at)
                .execution_options(synchronize_session=False)
            )
        await self._s.flush()


class SqlCalendarRepository(CalendarRepository):
    def __init__(self, session: AsyncSession, default_calendar_id: str = "default"):
        self._s = session
        self._default_id = default_calendar_id

    async def get_calendar(self, calendar_id: str) -> WorkingHoursConfig | None:
        m = await self._s.get(WorkingHoursConfigModel, calendar_id)
        if m is None and calendar_id == self._default_id:
            result = await self._s.execute(
                select(WorkingHoursConfigModel)
                .where(WorkingHoursConfigModel.is_default.is_(True))
                .order_by(WorkingHoursConfigModel.id)
                .limit(1)
            )
            m = result.scalar_one_or_none()
        return _calendar_to_domain(m) if m else None

    async def list_holidays(self, start: date, end: date) -> list[Holiday]:
        result = await self._s.execute(
            select(HolidayModel)
            .where(
                HolidayModel.is_active.is_(True),
                HolidayModel.holiday_date >= start,
                HolidayModel.holiday_date <= end,
            )
            .order_by(HolidayModel.holiday_date)
        )
        return [_holiday_to_domain(m) for m in result.scalars()]


class SqlRoundRobinRepository(RoundRobinRepository):
    def __init__(self, session: AsyncSession):
        self._s = session

    async def increment_counter(self, pool_key: str) -> int:
        # Row lock is held until the caller's transaction ends
        result = await self._s.execute(
            select(RoundRobinStateModel)
            .where(RoundRobinStateModel.rr_key == pool_key)
            .with_for_update()
        )
        m = result.scalar_one_or_none()
        if m is None:
            m = RoundRobinStateModel(rr_key=pool_key, counter=1)
            self._s.add(m)
            await self._s.flush()
            return 0
        old_value = m.counter
        m.counter = old_value + 1
        await self._s.flush()
        return old_value


class SqlActivityLog(ActivityLog):
    """Writes audit rows inside a SAVEPOINT so a failure cannot poison the request transaction."""

    def __init__(self, session: AsyncSession):
        self._s = session

    async def record(self, entry: ActivityEntry) -> None:
        async with self._s.begin_nested():
            self._s.add(
                ActivityModel(
                    lead_id=entry.lead_id,
                    type=entry.type.value,
                    actor=entry.actor,
                    details=entry.details,
                    created_at=entry.at,
                )
            )


class SqlUnitOfWork(UnitOfWork):
    def __init__(self, session: AsyncSession):
        self._s = session

    async def commit(self) -> None:
        await self._s.commit()

    async def rollback(self) -> None:
        await self._s.rollback()
