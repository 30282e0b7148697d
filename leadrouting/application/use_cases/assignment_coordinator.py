"""AssignmentCoordinator — rule match first, balancer fallback, SLA read side."""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from collections.abc import Callable, Iterable, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from leadrouting.application.ports.activity_log import ActivityEntry, ActivityLog
from leadrouting.application.ports.agent_repo import AgentRepository
from leadrouting.application.ports.calendar_repo import CalendarRepository
from leadrouting.application.ports.lead_repo import LeadRepository
from leadrouting.application.ports.notification_port import (
    NotificationIntent,
    NotificationPort,
)
from leadrouting.application.ports.round_robin_repo import RoundRobinRepository
from leadrouting.application.ports.rule_repo import AssignmentRuleRepository
from leadrouting.domain.entities.agent import Agent
from leadrouting.domain.entities.assignment_rule import AssignmentRule
from leadrouting.domain.entities.lead import Lead, LeadAssignment
from leadrouting.domain.errors import (
    AgentNotEligible,
    AgentNotFound,
    AlreadyAssigned,
    CalendarNotFound,
    LeadAlreadyClosed,
    LeadNotAssigned,
    LeadNotFound,
    NoEligibleAgent,
    ValidationError,
)
from leadrouting.domain.policies.eligibility import agent_calendar, is_eligible_owner
from leadrouting.domain.policies.rule_engine import evaluate
from leadrouting.domain.policies.sla_clock import EscalationPolicy, compute_status
from leadrouting.domain.policies.working_hours_calendar import (
    DEFAULT_MAX_DAY_STEPS,
    WorkingHoursCalendar,
    to_utc,
)
from leadrouting.domain.policies.workload_balancer import (
    WorkloadInfo,
    pick_least_loaded,
    pool_key,
)
from leadrouting.domain.value_objects.enums import ActivityType

logger = logging.getLogger(__name__)

ROUND_ROBIN_REASON = "round_robin"
MANUAL_REASON_PREFIX = "manual:"
SYSTEM_ACTOR = "system"


@dataclass
class AssignmentResult:
    lead_id: str
    assigned_to: str
    assignment_reason: str
    assigned_at: datetime
    rule_id: str | None = None
    previous_assignee: str | None = None


@dataclass
class SLAStatus:
    lead_id: str
    assigned_to: str
    assigned_at: datetime
    sla_hours: float
    sla_deadline: datetime
    hours_remaining: float
    is_overdue: bool
    escalation_level: int


@dataclass
class OverdueFilter:
    assigned_to: str | None = None
    min_escalation_level: int = 0


@dataclass
class AssignmentStatistics:
    total_assignments: int
    assignments_by_reason: dict[str, int] = field(default_factory=dict)
    assignments_by_user: dict[str, int] = field(default_factory=dict)
    average_assignment_hours: float = 0.0
    sla_compliance_rate: float = 1.0


class PoolLocks:
    """In-process locks keyed by eligible-pool key.

    Serializes coroutines of one process; the round-robin row lock taken by
    the repository serializes across processes. A key's lock is dropped once
    nobody holds or waits for it.
    """

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: Counter[str] = Counter()

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, key: str):
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] += 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]


def _reason_kind(reason: str) -> str:
    if reason.startswith(MANUAL_REASON_PREFIX):
        return "manual"
    return reason


class AssignmentCoordinator:
    """Decides lead ownership and answers SLA and workload queries."""

    def __init__(
        self,
        lead_repo: LeadRepository,
        agent_repo: AgentRepository,
        rule_repo: AssignmentRuleRepository,
        calendar_repo: CalendarRepository,
        rr_repo: RoundRobinRepository,
        activity_log: ActivityLog,
        notifier: NotificationPort,
        *,
        sla_hours: float = 24.0,
        escalation_policy: EscalationPolicy | None = None,
        default_calendar_id: str = "default",
        max_day_steps: int = DEFAULT_MAX_DAY_STEPS,
        respect_working_hours: bool = True,
        locks: PoolLocks | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self._leads = lead_repo
        self._agents = agent_repo
        self._rules = rule_repo
        self._calendars = calendar_repo
        self._rr = rr_repo
        self._activity = activity_log
        self._notifier = notifier
        self._sla_hours = sla_hours
        self._escalation = escalation_policy or EscalationPolicy()
        self._default_calendar_id = default_calendar_id
        self._max_day_steps = max_day_steps
        self._respect_working_hours = respect_working_hours
        self._locks = locks if locks is not None else PoolLocks()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    # ─── Assignment ──────────────────────────────────────────────────

    async def assign_lead(
        self,
        lead_id: str,
        *,
        ignore_working_hours: bool = False,
        actor_id: str = SYSTEM_ACTOR,
    ) -> AssignmentResult:
        """Assign an open, unassigned lead.

        1. First active rule (by priority) whose conditions hold and whose
           ownership action has an eligible agent wins.
        2. Otherwise every eligible lead owner forms the fallback pool.
        3. The least-loaded agent of the pool is picked under the pool lock
           and the lead is claimed with a compare-and-set write.

        Raises:
            LeadNotFound, LeadAlreadyClosed, AlreadyAssigned, NoEligibleAgent.
        """
        now = self._now()
        lead = await self._get_open_lead(lead_id)
        if lead.assigned_to:
            raise AlreadyAssigned(f"Lead {lead_id} is already assigned to {lead.assigned_to}")

        check_hours = self._respect_working_hours and not ignore_working_hours
        agents = await self._agents.list_lead_owners()
        rules = await self._rules.list_active_by_priority()
        calendars = await self._availability_calendars(agents, rules, now)

        match = evaluate(lead, rules, agents, now, calendars, check_working_hours=check_hours)
        if match:
            pool = match.candidate_ids
            scope = f"rule-{match.rule.id}"
            reason = match.reason
            rule_id = match.rule.id
        else:
            pool = tuple(
                a.id
                for a in agents
                if is_eligible_owner(
                    a,
                    lead,
                    now,
                    calendar=agent_calendar(a, calendars),
                    check_working_hours=check_hours,
                )
            )
            scope, reason, rule_id = "fallback", ROUND_ROBIN_REASON, None
            if not pool:
                raise NoEligibleAgent(f"No rule matched and no eligible agent for lead {lead_id}")
            logger.info("Lead %s: no rule matched, balancing over %d agents", lead_id, len(pool))

        assigned_to = await self._claim(lead.id, pool, scope, reason, now)
        logger.info("Lead %s → %s (%s)", lead_id, assigned_to, reason)

        await self._record_activity(
            ActivityEntry(
                lead_id=lead.id,
                type=ActivityType.LEAD_ASSIGNED,
                actor=actor_id,
                at=now,
                details={"assigned_to": assigned_to, "reason": reason, "rule_id": rule_id},
            )
        )
        await self._publish(
            NotificationIntent(
                kind="lead_assigned",
                lead_id=lead.id,
                recipients=[assigned_to],
                payload={"reason": reason},
            )
        )
        if match:
            for action in match.side_effects:
                await self._publish(
                    NotificationIntent(
                        kind=action.type.value,
                        lead_id=lead.id,
                        recipients=[assigned_to],
                        payload={"rule_id": match.rule.id, **action.parameters},
                    )
                )

        return AssignmentResult(
            lead_id=lead.id,
            assigned_to=assigned_to,
            assignment_reason=reason,
            assigned_at=now,
            rule_id=rule_id,
        )

    async def reassign_lead(
        self,
        lead_id: str,
        new_assignee_id: str,
        reason: str,
        actor_id: str,
    ) -> AssignmentResult:
        """Manually move an open lead to another agent, whatever its current state.

        The returned result carries the previous assignee for the audit trail.
        """
        if not reason or not reason.strip():
            raise ValidationError("A reassignment reason is required")

        now = self._now()
        lead = await self._get_open_lead(lead_id)
        agent = await self._agents.get_by_id(new_assignee_id)
        if agent is None:
            raise AgentNotFound(f"Agent {new_assignee_id} not found")
        if not agent.can_own_leads():
            raise AgentNotEligible(f"Agent {new_assignee_id} is inactive or cannot own leads")

        previous = lead.assigned_to
        assignment_reason = f"{MANUAL_REASON_PREFIX}{reason.strip()}"
        async with self._locks.hold(f"lead:{lead.id}"):
            await self._leads.write_assignment(
                lead.id, LeadAssignment(agent.id, now, assignment_reason)
            )
        logger.info("Lead %s reassigned %s → %s by %s", lead_id, previous, agent.id, actor_id)

        await self._record_activity(
            ActivityEntry(
                lead_id=lead.id,
                type=ActivityType.LEAD_REASSIGNED,
                actor=actor_id,
                at=now,
                details={
                    "assigned_to": agent.id,
                    "previous_assignee": previous,
                    "reason": reason.strip(),
                },
            )
        )
        await self._publish(
            NotificationIntent(
                kind="lead_reassigned",
                lead_id=lead.id,
                recipients=[r for r in (agent.id, previous) if r],
                payload={"previous_assignee": previous, "reason": reason.strip()},
            )
        )

        return AssignmentResult(
            lead_id=lead.id,
            assigned_to=agent.id,
            assignment_reason=assignment_reason,
            assigned_at=now,
            previous_assignee=previous,
        )

    # ─── SLA ─────────────────────────────────────────────────────────

    async def check_sla_compliance(self, lead_id: str) -> SLAStatus:
        lead = await self._leads.get_by_id(lead_id)
        if lead is None:
            raise LeadNotFound(f"Lead {lead_id} not found")
        if lead.assignment is None:
            raise LeadNotAssigned(f"Lead {lead_id} has not been assigned yet")

        statuses = await self._sla_statuses([lead], self._now())
        return statuses[0]

    async def get_overdue_leads(self, overdue_filter: OverdueFilter | None = None) -> list[SLAStatus]:
        """Overdue open assignments, most overdue first."""
        f = overdue_filter or OverdueFilter()
        leads = await self._leads.list_open_assigned(f.assigned_to)
        statuses = await self._sla_statuses(leads, self._now())
        overdue = [
            s for s in statuses if s.is_overdue and s.escalation_level >= f.min_escalation_level
        ]
        return sorted(overdue, key=lambda s: (s.hours_remaining, s.lead_id))

    async def escalate_overdue_leads(self) -> list[SLAStatus]:
        """Escalate every overdue lead to its assignee and the managers of the assignee's team.

        Each lead gets one notification intent and one audit entry, both best effort.
        """
        overdue = await self.get_overdue_leads()
        now = self._now()
        managers_by_team: dict[str, list[str]] = {}
        for status in overdue:
            hours_overdue = round(-status.hours_remaining, 2)
            escalated_to = await self._escalation_targets(status.assigned_to, managers_by_team)
            await self._publish(
                NotificationIntent(
                    kind="sla_escalation",
                    lead_id=status.lead_id,
                    recipients=[status.assigned_to, *escalated_to],
                    payload={
                        "escalation_level": status.escalation_level,
                        "hours_overdue": hours_overdue,
                        "escalated_to": escalated_to,
                    },
                )
            )
            await self._record_activity(
                ActivityEntry(
                    lead_id=status.lead_id,
                    type=ActivityType.LEAD_ESCALATED,
                    actor=SYSTEM_ACTOR,
                    at=now,
                    details={
                        "escalation_level": status.escalation_level,
                        "hours_overdue": hours_overdue,
                        "assigned_to": status.assigned_to,
                        "escalated_to": escalated_to,
                    },
                )
            )
        if overdue:
            logger.info("Escalated %d overdue leads", len(overdue))
        return overdue

    # ─── Workload & statistics ───────────────────────────────────────

    async def get_user_workload(self, user_id: str) -> WorkloadInfo:
        agent = await self._agents.get_by_id(user_id)
        if agent is None:
            raise AgentNotFound(f"Agent {user_id} not found")
        leads = await self._leads.list_open_assigned(user_id)
        statuses = await self._sla_statuses(leads, self._now())
        return WorkloadInfo(
            user_id=user_id,
            active_leads=len(leads),
            overdue_leads=sum(1 for s in statuses if s.is_overdue),
        )

    async def get_all_user_workloads(self) -> list[WorkloadInfo]:
        """Workload of every lead owner, most loaded first."""
        agents = await self._agents.list_lead_owners()
        leads = await self._leads.list_open_assigned()
        statuses = await self._sla_statuses(leads, self._now())

        active = Counter(lead.assigned_to for lead in leads)
        overdue = Counter(s.assigned_to for s in statuses if s.is_overdue)
        workloads = [
            WorkloadInfo(user_id=a.id, active_leads=active[a.id], overdue_leads=overdue[a.id])
            for a in agents
        ]
        return sorted(workloads, key=lambda w: (-w.workload_score, w.user_id))

    async def get_assignment_statistics(self) -> AssignmentStatistics:
        leads = await self._leads.list_assigned()
        if not leads:
            return AssignmentStatistics(total_assignments=0)

        by_reason = Counter(_reason_kind(lead.assignment.assignment_reason) for lead in leads)
        by_user = Counter(lead.assigned_to for lead in leads)

        waits = [
            (to_utc(lead.assignment.assigned_at) - to_utc(lead.created_at)).total_seconds() / 3600
            for lead in leads
            if lead.created_at is not None
        ]
        open_leads = [lead for lead in leads if not lead.is_closed]
        statuses = await self._sla_statuses(open_leads, self._now())
        compliant = sum(1 for s in statuses if not s.is_overdue)

        return AssignmentStatistics(
            total_assignments=len(leads),
            assignments_by_reason=dict(by_reason),
            assignments_by_user=dict(by_user),
            average_assignment_hours=round(sum(waits) / len(waits), 2) if waits else 0.0,
            sla_compliance_rate=round(compliant / len(statuses), 4) if statuses else 1.0,
        )

    # ─── Internals ───────────────────────────────────────────────────

    def _now(self) -> datetime:
        return to_utc(self._clock())

    async def _get_open_lead(self, lead_id: str) -> Lead:
        lead = await self._leads.get_by_id(lead_id)
        if lead is None:
            raise LeadNotFound(f"Lead {lead_id} not found")
        if lead.is_closed:
            raise LeadAlreadyClosed(f"Lead {lead_id} is {lead.status.value}")
        return lead

    async def _claim(
        self,
        lead_id: str,
        pool: Sequence[str],
        scope: str,
        reason: str,
        now: datetime,
    ) -> str:
        """Read loads, pick and write as one serialized step per pool."""
        key = pool_key(pool, scope)
        async with self._locks.hold(key):
            counter = await self._rr.increment_counter(key)
            loads = await self._leads.count_active_by_assignees(pool)
            chosen, _ = pick_least_loaded(pool, loads, counter)
            claimed = await self._leads.claim_assignment(
                lead_id, LeadAssignment(chosen, now, reason)
            )
        if not claimed:
            # Lost the compare-and-set: report what the lead turned into
            current = await self._get_open_lead(lead_id)
            raise AlreadyAssigned(
                f"Lead {lead_id} was assigned to {current.assigned_to} by a concurrent request"
            )
        return chosen

    async def _build_calendars(
        self,
        calendar_ids: Iterable[str],
        start: datetime,
        end: datetime,
    ) -> dict[str, WorkingHoursCalendar]:
        """Load calendars with the holidays covering [start, end] plus the walk bound."""
        ids = set(calendar_ids)
        if not ids:
            return {}
        holidays = await self._calendars.list_holidays(
            (start - timedelta(days=2)).date(),
            (end + timedelta(days=self._max_day_steps + 2)).date(),
        )
        default = None
        result: dict[str, WorkingHoursCalendar] = {}
        for calendar_id in sorted(ids):
            config = await self._calendars.get_calendar(calendar_id)
            if config is None:
                if default is None:
                    default = await self._calendars.get_calendar(self._default_calendar_id)
                if default is None:
                    raise CalendarNotFound(
                        f"Calendar {calendar_id!r} not found and no default calendar configured"
                    )
                logger.warning("Calendar %s not found, using default", calendar_id)
                config = default
            result[calendar_id] = WorkingHoursCalendar(config, holidays, self._max_day_steps)
        return result

    async def _availability_calendars(
        self,
        agents: Iterable[Agent],
        rules: Iterable[AssignmentRule],
        now: datetime,
    ) -> dict[str, WorkingHoursCalendar]:
        ids = {r.working_hours_id for r in rules if r.working_hours_id}
        ids |= {a.working_hours_id for a in agents if a.working_hours_id}
        return await self._build_calendars(ids, now, now)

    async def _sla_statuses(self, leads: Sequence[Lead], now: datetime) -> list[SLAStatus]:
        """Fold the SLA clock over assigned leads. Never takes assignment locks."""
        assigned = [lead for lead in leads if lead.assignment is not None]
        if not assigned:
            return []

        owners = {a.id: a for a in await self._agents.list_lead_owners()}
        calendar_of: dict[str, str] = {}
        for lead in assigned:
            owner = owners.get(lead.assigned_to)
            calendar_of[lead.id] = (
                owner.working_hours_id
                if owner and owner.working_hours_id
                else self._default_calendar_id
            )

        earliest = min(to_utc(lead.assignment.assigned_at) for lead in assigned)
        calendars = await self._build_calendars(
            calendar_of.values(), min(earliest, now), max(earliest, now)
        )

        statuses = []
        for lead in assigned:
            reading = compute_status(
                lead.assignment.assigned_at,
                self._sla_hours,
                calendars[calendar_of[lead.id]],
                now,
                self._escalation,
            )
            statuses.append(
                SLAStatus(
                    lead_id=lead.id,
                    assigned_to=lead.assignment.assigned_to,
                    assigned_at=to_utc(lead.assignment.assigned_at),
                    sla_hours=self._sla_hours,
                    sla_deadline=reading.sla_deadline,
                    hours_remaining=reading.hours_remaining,
                    is_overdue=reading.is_overdue,
                    escalation_level=reading.escalation_level,
                )
            )
        return statuses

    async def _escalation_targets(
        self, assignee_id: str, managers_by_team: dict[str, list[str]]
    ) -> list[str]:
        """Active managers of the assignee's team, excluding the assignee."""
        assignee = await self._agents.get_by_id(assignee_id)
        if assignee is None or not assignee.team:
            return []
        if assignee.team not in managers_by_team:
            managers = await self._agents.list_team_managers(assignee.team)
            managers_by_team[assignee.team] = [m.id for m in managers]
        return [m for m in managers_by_team[assignee.team] if m != assignee_id]

    async def _record_activity(self, entry: ActivityEntry) -> None:
        try:
            await self._activity.record(entry)
        except Exception:
            logger.exception(
                "Failed to record %s activity for lead %s", entry.type.value, entry.lead_id
            )

    async def _publish(self, intent: NotificationIntent) -> None:
        try:
            await self._notifier.publish(intent)
        except Exception:
            logger.exception("Failed to publish %s intent for lead %s", intent.kind, intent.lead_id)
