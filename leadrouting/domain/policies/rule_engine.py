"""RuleEngine — first-match-wins evaluation of assignment rules.

Pure functions: no I/O, no clock. Everything the engine needs (lead snapshot,
rules, candidate agents, calendars, "now") is passed in by the caller.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from numbers import Real
from typing import Any

from leadrouting.domain.entities.agent import Agent
from leadrouting.domain.entities.assignment_rule import (
    AssignmentRule,
    RuleAction,
    RuleCondition,
)
from leadrouting.domain.entities.lead import MISSING, Lead
from leadrouting.domain.policies.eligibility import (
    agent_calendar,
    is_eligible_owner,
    matching_territories,
)
from leadrouting.domain.policies.working_hours_calendar import WorkingHoursCalendar
from leadrouting.domain.value_objects.enums import ActionType, ConditionOperator


@dataclass(frozen=True)
class RuleMatch:
    """The winning rule and the agents its ownership action may assign to."""

    rule: AssignmentRule
    action: RuleAction
    candidate_ids: tuple[str, ...]
    side_effects: tuple[RuleAction, ...] = field(default=())

    @property
    def reason(self) -> str:
        return f"rule:{self.rule.name}"


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, Real):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def evaluate_condition(condition: RuleCondition, lead: Lead) -> bool:
    """Evaluate one condition. A missing field is a non-match for every operator."""
    actual = lead.get_field(condition.field)
    if actual is MISSING:
        return False

    op = condition.operator
    expected = condition.value

    if op is ConditionOperator.EQUALS:
        return actual == expected
    if op is ConditionOperator.NOT_EQUALS:
        return actual != expected
    if op in (ConditionOperator.CONTAINS, ConditionOperator.NOT_CONTAINS):
        if isinstance(actual, str) and isinstance(expected, str):
            found = expected in actual
        elif isinstance(actual, (list, tuple, set, frozenset)):
            found = expected in actual
        else:
            return False
        return found if op is ConditionOperator.CONTAINS else not found
    if op in (ConditionOperator.GREATER_THAN, ConditionOperator.LESS_THAN):
        left, right = _as_number(actual), _as_number(expected)
        if left is None or right is None:
            return False
        return left > right if op is ConditionOperator.GREATER_THAN else left < right
    if op in (ConditionOperator.IN, ConditionOperator.NOT_IN):
        if not isinstance(expected, (list, tuple, set, frozenset)):
            return False
        found = actual in expected
        return found if op is ConditionOperator.IN else not found

    raise AssertionError(f"Unhandled operator {op!r}")


def conditions_match(rule: AssignmentRule, lead: Lead) -> bool:
    """AND of all conditions; an empty condition list always matches."""
    return all(evaluate_condition(c, lead) for c in rule.conditions)


def _action_pool(action: RuleAction, agents: Iterable[Agent]) -> list[Agent]:
    if action.type is ActionType.ASSIGN_TO_USER:
        return [a for a in agents if a.id == str(action.parameters["user_id"])]
    if action.type is ActionType.ASSIGN_TO_TEAM:
        return [a for a in agents if a.team == str(action.parameters["team_id"])]
    if action.type is ActionType.ASSIGN_TO_SENIOR:
        team = action.parameters.get("team_id")
        return [a for a in agents if a.is_senior and (team is None or a.team == str(team))]
    return []


def eligible_candidates(
    rule: AssignmentRule,
    action: RuleAction,
    lead: Lead,
    agents: Sequence[Agent],
    now: datetime,
    calendars: Mapping[str, WorkingHoursCalendar],
    check_working_hours: bool = True,
) -> tuple[str, ...]:
    """Agents an ownership action can assign to, honouring rule territories and hours."""
    allowed: frozenset[str] | None = None
    if rule.territories:
        covering = matching_territories(rule.territories, lead)
        if not covering:
            return ()
        allowed = frozenset(t.id for t in covering)

    return tuple(
        sorted(
            a.id
            for a in _action_pool(action, agents)
            if is_eligible_owner(
                a,
                lead,
                now,
                calendar=agent_calendar(a, calendars, rule),
                allowed_territory_ids=allowed,
                check_working_hours=check_working_hours,
            )
        )
    )


def evaluate(
    lead: Lead,
    rules: Iterable[AssignmentRule],
    agents: Sequence[Agent],
    now: datetime,
    calendars: Mapping[str, WorkingHoursCalendar] | None = None,
    check_working_hours: bool = True,
) -> RuleMatch | None:
    """Return the first active rule (ascending priority) that matches and can assign.

    A rule whose conditions hold but whose ownership actions find no eligible
    agent is skipped, and evaluation continues with the next rule. None tells
    the caller to fall back to the workload balancer.
    """
    calendars = calendars or {}
    ordered = sorted((r for r in rules if r.is_active), key=lambda r: (r.priority, r.id))

    for rule in ordered:
        if not conditions_match(rule, lead):
            continue
        for action in rule.ownership_actions:
            candidates = eligible_candidates(
                rule, action, lead, agents, now, calendars, check_working_hours
            )
            if candidates:
                return RuleMatch(
                    rule=rule,
                    action=action,
                    candidate_ids=candidates,
                    side_effects=tuple(rule.side_effect_actions),
                )
    return None


@dataclass(frozen=True)
class RuleStatistics:
    total_rules: int
    active_rules: int
    inactive_rules: int
    rules_by_priority: dict[int, int]


def rule_statistics(rules: Iterable[AssignmentRule]) -> RuleStatistics:
    rules = list(rules)
    by_priority: dict[int, int] = {}
    for rule in rules:
        by_priority[rule.priority] = by_priority.get(rule.priority, 0) + 1
    active = sum(1 for r in rules if r.is_active)
    return RuleStatistics(
        total_rules=len(rules),
        active_rules=active,
        inactive_rules=len(rules) - active,
        rules_by_priority=dict(sorted(by_priority.items())),
    )
