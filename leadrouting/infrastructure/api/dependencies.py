"""FastAPI dependency injection — wires adapters into use cases."""

from __future__ import annotations

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from leadrouting.adapters.notifications.log_notifier import LogNotifier
from leadrouting.adapters.persistence.database import get_session
from leadrouting.adapters.persistence.repositories import (
    SqlActivityLog,
    SqlAgentRepository,
    SqlAssignmentRuleRepository,
    SqlCalendarRepository,
    SqlLeadRepository,
    SqlRoundRobinRepository,
    SqlUnitOfWork,
)
from leadrouting.application.use_cases.assignment_coordinator import (
    AssignmentCoordinator,
    PoolLocks,
)
from leadrouting.application.use_cases.batch_assign import BatchAssignUseCase
from leadrouting.application.use_cases.manage_rules import ManageRulesUseCase
from leadrouting.config import settings
from leadrouting.domain.policies.sla_clock import EscalationPolicy

# Re-export session dependency
get_db_session = get_session

# Process-wide singletons: the notifier is stateless, the pool locks must be
# shared by every request of this process to serialize picks per pool.
_notifier = LogNotifier()
_pool_locks = PoolLocks()
_escalation_policy = EscalationPolicy(
    warning_fraction=settings.sla_warning_fraction,
    breach_tiers_hours=tuple(settings.sla_breach_tiers_hours),
)


def get_rule_admin_uc(session: AsyncSession = Depends(get_session)) -> ManageRulesUseCase:
    return ManageRulesUseCase(
        rule_repo=SqlAssignmentRuleRepository(session),
        calendar_repo=SqlCalendarRepository(session, settings.default_calendar_id),
    )


def get_coordinator(session: AsyncSession = Depends(get_session)) -> AssignmentCoordinator:
    return AssignmentCoordinator(
        lead_repo=SqlLeadRepository(session),
        agent_repo=SqlAgentRepository(session),
        rule_repo=SqlAssignmentRuleRepository(session),
        calendar_repo=SqlCalendarRepository(session, settings.default_calendar_id),
        rr_repo=SqlRoundRobinRepository(session),
        activity_log=SqlActivityLog(session),
        notifier=_notifier,
        sla_hours=settings.default_sla_hours,
        escalation_policy=_escalation_policy,
        default_calendar_id=settings.default_calendar_id,
        max_day_steps=settings.calendar_max_day_steps,
        respect_working_hours=settings.respect_working_hours,
        locks=_pool_locks,
    )


def get_batch_assign_uc(
    session: AsyncSession = Depends(get_session),
    coordinator: AssignmentCoordinator = Depends(get_coordinator),
) -> BatchAssignUseCase:
    return BatchAssignUseCase(
        coordinator=coordinator,
        lead_repo=SqlLeadRepository(session),
        uow=SqlUnitOfWork(session),
    )
