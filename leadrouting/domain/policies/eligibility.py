"""EligibilityPolicy — can this agent take this lead right now?"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime

from leadrouting.domain.entities.agent import Agent
from leadrouting.domain.entities.assignment_rule import AssignmentRule, Territory
from leadrouting.domain.entities.lead import MISSING, Lead
from leadrouting.domain.policies.working_hours_calendar import WorkingHoursCalendar


def lead_location(lead: Lead) -> tuple:
    """(territory, region, country) of a lead; missing parts are None."""
    parts = []
    for path in ("territory", "region", "country"):
        value = lead.get_field(path)
        parts.append(None if value is MISSING else value)
    return tuple(parts)


def matching_territories(territories: Iterable[Territory], lead: Lead) -> list[Territory]:
    territory, region, country = lead_location(lead)
    return [t for t in territories if t.covers(territory, region, country)]


def territory_compatible(
    agent: Agent,
    lead: Lead,
    allowed_territory_ids: frozenset[str] | None = None,
) -> bool:
    """Territory check.

    With a rule-supplied territory set the agent must belong to one of them.
    Otherwise an agent and a lead that both name a territory must agree;
    agents without a territory cover every lead.
    """
    if allowed_territory_ids is not None:
        return agent.territory in allowed_territory_ids

    lead_territory = lead.get_field("territory")
    if lead_territory is MISSING or agent.territory is None:
        return True
    return agent.territory == lead_territory


def is_eligible_owner(
    agent: Agent,
    lead: Lead,
    now: datetime,
    calendar: WorkingHoursCalendar | None = None,
    allowed_territory_ids: frozenset[str] | None = None,
    check_working_hours: bool = True,
) -> bool:
    """Active, role permits ownership, territory compatible and (optionally) on shift."""
    if not agent.can_own_leads():
        return False
    if not territory_compatible(agent, lead, allowed_territory_ids):
        return False
    if check_working_hours and calendar is not None:
        return calendar.is_working_time(now)
    return True


def agent_calendar(
    agent: Agent,
    calendars: Mapping[str, WorkingHoursCalendar],
    rule: AssignmentRule | None = None,
) -> WorkingHoursCalendar | None:
    """The calendar that gates an agent's availability: the rule's, else the agent's own.

    No calendar means the agent is treated as always available.
    """
    if rule is not None and rule.working_hours_id:
        return calendars.get(rule.working_hours_id)
    if agent.working_hours_id:
        return calendars.get(agent.working_hours_id)
    return None
