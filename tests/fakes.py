"""In-memory fakes of every port, shared by the application and API tests."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime

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
from leadrouting.application.ports.unit_of_work import UnitOfWork
from leadrouting.application.use_cases.assignment_coordinator import (
    AssignmentCoordinator,
    PoolLocks,
)
from leadrouting.domain.entities.agent import Agent
from leadrouting.domain.entities.assignment_rule import AssignmentRule
from leadrouting.domain.entities.lead import Lead, LeadAssignment
from leadrouting.domain.value_objects.enums import UserRole
from leadrouting.domain.value_objects.working_hours import (
    Holiday,
    WorkingHoursConfig,
    default_schedule,
)


class FakeLeadRepo(LeadRepository):
    def __init__(self, leads: list[Lead] | None = None):
        self.leads: dict[str, Lead] = {lead.id: lead for lead in leads or []}

    def add(self, lead: Lead) -> Lead:
        self.leads[lead.id] = lead
        return lead

    async def get_by_id(self, lead_id):
        return self.leads.get(lead_id)

    async def list_unassigned(self):
        return [l for l in self.leads.values() if l.assignment is None and not l.is_closed]

    async def list_open_assigned(self, assigned_to=None):
        return [
            l
            for l in self.leads.values()
            if l.assignment is not None
            and not l.is_closed
            and (assigned_to is None or l.assigned_to == assigned_to)
        ]

    async def list_assigned(self):
        return [l for l in self.leads.values() if l.assignment is not None]

    async def claim_assignment(self, lead_id, assignment: LeadAssignment):
        lead = self.leads.get(lead_id)
        if lead is None or lead.assignment is not None or lead.is_closed:
            return False
        lead.assignment = assignment
        return True

    async def write_assignment(self, lead_id, assignment: LeadAssignment):
        self.leads[lead_id].assignment = assignment

    async def count_active_by_assignees(self, agent_ids):
        # Yield so that unsynchronized callers would interleave here
        await asyncio.sleep(0)
        ids = set(agent_ids)
        counts: dict[str, int] = {}
        for lead in self.leads.values():
            if lead.assigned_to in ids and not lead.is_closed:
                counts[lead.assigned_to] = counts.get(lead.assigned_to, 0) + 1
        return counts


class FakeAgentRepo(AgentRepository):
    def __init__(self, agents: list[Agent] | None = None):
        self.agents: dict[str, Agent] = {a.id: a for a in agents or []}

    async def get_by_id(self, agent_id):
        return self.agents.get(agent_id)

    async def list_lead_owners(self):
        return sorted(
            (a for a in self.agents.values() if a.can_own_leads()), key=lambda a: a.id
        )

    async def list_team_managers(self, team):
        return sorted(
            (
                a
                for a in self.agents.values()
                if a.is_active and a.role is UserRole.MANAGER and a.team == team
            ),
            key=lambda a: a.id,
        )


class FakeRuleRepo(AssignmentRuleRepository):
    def __init__(self, rules: list[AssignmentRule] | None = None):
        self.rules = list(rules or [])

    async def list_active_by_priority(self):
        return sorted((r for r in self.rules if r.is_active), key=lambda r: (r.priority, r.id))

    async def get_all(self):
        return sorted(self.rules, key=lambda r: (r.priority, r.id))

    async def get_by_id(self, rule_id):
        return next((r for r in self.rules if r.id == rule_id), None)

    async def add(self, rule):
        self.rules.append(rule)

    async def save(self, rule):
        self.rules = [rule if r.id == rule.id else r for r in self.rules]

    async def delete(self, rule_id):
        kept = [r for r in self.rules if r.id != rule_id]
        deleted = len(kept) != len(self.rules)
        self.rules = kept
        return deleted

    async def set_priorities(self, priorities, updated_at):
        self.rules = [
            replace(r, priority=priorities[r.id], updated_at=updated_at)
            if r.id in priorities
            else r
            for r in self.rules
        ]


class FakeCalendarRepo(CalendarRepository):
    def __init__(
        self,
        calendars: list[WorkingHoursConfig] | None = None,
        holidays: list[Holiday] | None = None,
    ):
        self.calendars = {c.id: c for c in calendars or []}
        self.holidays = list(holidays or [])

    async def get_calendar(self, calendar_id):
        return self.calendars.get(calendar_id)

    async def list_holidays(self, start, end):
        return [h for h in self.holidays if h.is_active and start <= h.date <= end]


class FakeRoundRobinRepo(RoundRobinRepository):
    def __init__(self):
        self.counters: dict[str, int] = {}

    async def increment_counter(self, pool_key):
        old = self.counters.get(pool_key, 0)
        self.counters[pool_key] = old + 1
        return old


class FakeUnitOfWork(UnitOfWork):
    def __init__(self):
        self.commits = 0
        self.rollbacks = 0

    async def commit(self):
        self.commits += 1

    async def rollback(self):
        self.rollbacks += 1


class FakeActivityLog(ActivityLog):
    def __init__(self, fail: bool = False):
        self.entries: list[ActivityEntry] = []
        self.fail = fail

    async def record(self, entry):
        if self.fail:
            raise RuntimeError("activity store unavailable")
        self.entries.append(entry)


class FakeNotifier(NotificationPort):
    def __init__(self, fail: bool = False):
        self.intents: list[NotificationIntent] = []
        self.fail = fail

    async def publish(self, intent):
        if self.fail:
            raise RuntimeError("notification bus unavailable")
        self.intents.append(intent)

    def kinds(self) -> list[str]:
        return [i.kind for i in self.intents]


def business_hours(calendar_id: str = "default", timezone: str = "UTC") -> WorkingHoursConfig:
    """Mon–Fri 09:00–17:00."""
    return WorkingHoursConfig.from_schedule(
        id=calendar_id,
        name="Business hours",
        timezone=timezone,
        schedule=default_schedule(),
        is_default=calendar_id == "default",
    )


class Clock:
    """Settable clock for the coordinator."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class Harness:
    """A coordinator wired to fakes, with the fakes kept at hand."""

    def __init__(
        self,
        *,
        leads: list[Lead] | None = None,
        agents: list[Agent] | None = None,
        rules: list[AssignmentRule] | None = None,
        calendars: list[WorkingHoursConfig] | None = None,
        holidays: list[Holiday] | None = None,
        now: datetime,
        sla_hours: float = 24.0,
        activity_fails: bool = False,
        notifier_fails: bool = False,
        locks: PoolLocks | None = None,
    ):
        self.leads = FakeLeadRepo(leads)
        self.agents = FakeAgentRepo(agents)
        self.rules = FakeRuleRepo(rules)
        self.calendars = FakeCalendarRepo(
            calendars if calendars is not None else [business_hours()], holidays
        )
        self.rr = FakeRoundRobinRepo()
        self.activity = FakeActivityLog(fail=activity_fails)
        self.notifier = FakeNotifier(fail=notifier_fails)
        self.clock = Clock(now)
        self.coordinator = AssignmentCoordinator(
            lead_repo=self.leads,
            agent_repo=self.agents,
            rule_repo=self.rules,
            calendar_repo=self.calendars,
            rr_repo=self.rr,
            activity_log=self.activity,
            notifier=self.notifier,
            sla_hours=sla_hours,
            locks=locks,
            clock=self.clock,
        )
