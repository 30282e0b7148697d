"""Tests for BatchAssignUseCase."""

import asyncio
from datetime import datetime, timezone

import pytest

from leadrouting.application.ports.round_robin_repo import RoundRobinRepository
from leadrouting.application.ports.unit_of_work import UnitOfWork
from leadrouting.application.use_cases.assignment_coordinator import (
    AssignmentCoordinator,
    PoolLocks,
)
from leadrouting.application.use_cases.batch_assign import BatchAssignUseCase
from leadrouting.domain.entities.agent import Agent
from leadrouting.domain.entities.lead import Lead
from leadrouting.domain.value_objects.enums import LeadStatus, UserRole
from tests.fakes import FakeUnitOfWork, Harness

NOW = datetime(2024, 3, 8, 10, 0, tzinfo=timezone.utc)


class RowLocks:
    """Database row locks shared by every transaction, one per counter key."""

    def __init__(self):
        self.locks: dict[str, asyncio.Lock] = {}
        self.counters: dict[str, int] = {}


class LockingRoundRobinRepo(RoundRobinRepository):
    """One transaction's view of the counters; increments lock the row until commit."""

    def __init__(self, rows: RowLocks):
        self.rows = rows
        self.held: set[str] = set()

    async def increment_counter(self, pool_key):
        if pool_key not in self.held:
            await self.rows.locks.setdefault(pool_key, asyncio.Lock()).acquire()
            self.held.add(pool_key)
        old = self.rows.counters.get(pool_key, 0)
        self.rows.counters[pool_key] = old + 1
        return old

    def release(self):
        for key in self.held:
            self.rows.locks[key].release()
        self.held.clear()


class LockingUnitOfWork(UnitOfWork):
    def __init__(self, rr: LockingRoundRobinRepo):
        self.rr = rr
        self.commits = 0

    async def commit(self):
        self.commits += 1
        self.rr.release()

    async def rollback(self):
        self.rr.release()


def _coordinator(h: Harness, rr: RoundRobinRepository, locks: PoolLocks) -> AssignmentCoordinator:
    return AssignmentCoordinator(
        lead_repo=h.leads,
        agent_repo=h.agents,
        rule_repo=h.rules,
        calendar_repo=h.calendars,
        rr_repo=rr,
        activity_log=h.activity,
        notifier=h.notifier,
        locks=locks,
        clock=h.clock,
    )


@pytest.mark.asyncio
async def test_batch_assigns_backlog_and_reports_failures():
    h = Harness(
        leads=[
            Lead(id="L1", status=LeadStatus.NEW, attributes={"territory": "emea"}),
            Lead(id="L2", status=LeadStatus.NEW, attributes={"territory": "apac"}),
            Lead(id="L3", status=LeadStatus.CONTACTED),
            Lead(id="L4", status=LeadStatus.LOST),
        ],
        agents=[Agent(id="eu", name="EU", role=UserRole.SALES, territory="emea")],
        now=NOW,
    )
    uow = FakeUnitOfWork()
    uc = BatchAssignUseCase(coordinator=h.coordinator, lead_repo=h.leads, uow=uow)
    results = {r.lead_id: r for r in await uc.execute()}

    assert set(results) == {"L1", "L2", "L3"}
    assert results["L1"].assigned_to == "eu"
    assert results["L1"].assignment_reason == "round_robin"
    assert results["L3"].assigned_to == "eu"
    assert results["L2"].assigned_to is None
    assert "No rule matched" in results["L2"].error
    assert h.leads.leads["L4"].assignment is None
    # One transaction per lead
    assert (uow.commits, uow.rollbacks) == (2, 1)


@pytest.mark.asyncio
async def test_batch_with_empty_backlog():
    h = Harness(agents=[Agent(id="a", name="A", role=UserRole.SALES)], now=NOW)
    uow = FakeUnitOfWork()
    uc = BatchAssignUseCase(coordinator=h.coordinator, lead_repo=h.leads, uow=uow)
    assert await uc.execute() == []
    assert uow.commits == 0


@pytest.mark.asyncio
async def test_batch_and_single_assignment_share_a_pool_without_deadlock():
    h = Harness(
        leads=[Lead(id="L1", status=LeadStatus.NEW), Lead(id="L2", status=LeadStatus.NEW)],
        agents=[
            Agent(id="a", name="A", role=UserRole.SALES),
            Agent(id="b", name="B", role=UserRole.SALES),
        ],
        now=NOW,
    )
    rows = RowLocks()
    locks = PoolLocks()
    batch_rr, single_rr = LockingRoundRobinRepo(rows), LockingRoundRobinRepo(rows)
    batch_uow, single_uow = LockingUnitOfWork(batch_rr), LockingUnitOfWork(single_rr)
    batch = BatchAssignUseCase(_coordinator(h, batch_rr, locks), h.leads, batch_uow)
    single = _coordinator(h, single_rr, locks)

    async def assign_single():
        # Arrives while the batch is inside its first claim
        h.leads.add(Lead(id="S", status=LeadStatus.NEW))
        result = await single.assign_lead("S")
        await single_uow.commit()
        return result

    results, single_result = await asyncio.wait_for(
        asyncio.gather(batch.execute(), assign_single()), timeout=1
    )

    assert [r.lead_id for r in results] == ["L1", "L2"]
    assert all(r.error is None for r in results)
    assert single_result.lead_id == "S"
    assert all(lead.assigned_to for lead in h.leads.leads.values())
    assert list(rows.counters.values()) == [3]
    assert not batch_rr.held and not single_rr.held
