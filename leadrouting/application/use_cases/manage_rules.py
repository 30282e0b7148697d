"""ManageRulesUseCase — administration of assignment rules."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any

from leadrouting.application.ports.calendar_repo import CalendarRepository
from leadrouting.application.ports.rule_repo import AssignmentRuleRepository
from leadrouting.domain.entities.assignment_rule import (
    AssignmentRule,
    parse_actions,
    parse_conditions,
    parse_territories,
)
from leadrouting.domain.errors import CalendarNotFound, RuleNotFound, ValidationError
from leadrouting.domain.policies.rule_engine import RuleStatistics, rule_statistics

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "name",
    "priority",
    "conditions",
    "actions",
    "territories",
    "working_hours_id",
    "is_active",
)


def _new_rule_id() -> str:
    return f"rule-{uuid.uuid4().hex[:12]}"


def parse_rule_fields(data: dict[str, Any]) -> dict[str, Any]:
    """Validate the editable fields present in ``data`` and convert them to domain values.

    Raises:
        ValidationError: on unknown fields or malformed values.
    """
    unknown = set(data) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown rule fields: {sorted(unknown)}")

    fields: dict[str, Any] = {}
    if "name" in data:
        name = data["name"]
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Rule name must be a non-empty string")
        fields["name"] = name.strip()
    if "priority" in data:
        priority = data["priority"]
        if isinstance(priority, bool) or not isinstance(priority, int) or priority < 0:
            raise ValidationError(f"Rule priority must be a non-negative integer, got {priority!r}")
        fields["priority"] = priority
    if "conditions" in data:
        fields["conditions"] = parse_conditions(data["conditions"])
    if "actions" in data:
        actions = parse_actions(data["actions"])
        if not actions:
            raise ValidationError("A rule needs at least one action")
        fields["actions"] = actions
    if "territories" in data:
        fields["territories"] = parse_territories(data["territories"])
    if "working_hours_id" in data:
        calendar_id = data["working_hours_id"]
        if calendar_id is not None and (not isinstance(calendar_id, str) or not calendar_id):
            raise ValidationError(f"Invalid working_hours_id {calendar_id!r}")
        fields["working_hours_id"] = calendar_id
    if "is_active" in data:
        if not isinstance(data["is_active"], bool):
            raise ValidationError("is_active must be a boolean")
        fields["is_active"] = data["is_active"]
    return fields


class ManageRulesUseCase:
    """Create, edit, toggle, reorder and delete assignment rules.

    Rules are read-only to the routing engine; every change goes through here.
    """

    def __init__(
        self,
        rule_repo: AssignmentRuleRepository,
        calendar_repo: CalendarRepository,
        *,
        clock: Callable[[], datetime] | None = None,
        id_factory: Callable[[], str] = _new_rule_id,
    ):
        self._rules = rule_repo
        self._calendars = calendar_repo
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._new_id = id_factory

    async def list_rules(self, active_only: bool = False) -> list[AssignmentRule]:
        if active_only:
            return await self._rules.list_active_by_priority()
        return await self._rules.get_all()

    async def get_rule(self, rule_id: str) -> AssignmentRule:
        rule = await self._rules.get_by_id(rule_id)
        if rule is None:
            raise RuleNotFound(f"Assignment rule {rule_id} not found")
        return rule

    async def statistics(self) -> RuleStatistics:
        return rule_statistics(await self._rules.get_all())

    async def create_rule(self, data: dict[str, Any], created_by: str) -> AssignmentRule:
        fields = parse_rule_fields(data)
        for required in ("name", "actions"):
            if required not in fields:
                raise ValidationError(f"Rule {required} is required")
        await self._check_calendar(fields.get("working_hours_id"))

        if "priority" not in fields:
            # New rules go last
            existing = await self._rules.get_all()
            fields["priority"] = max((r.priority for r in existing), default=0) + 1

        now = self._clock()
        rule = AssignmentRule(
            id=self._new_id(),
            created_by=created_by,
            created_at=now,
            updated_at=now,
            **fields,
        )
        await self._rules.add(rule)
        logger.info("Rule %s (%s) created by %s", rule.id, rule.name, created_by)
        return rule

    async def update_rule(self, rule_id: str, changes: dict[str, Any]) -> AssignmentRule:
        fields = parse_rule_fields(changes)
        rule = await self.get_rule(rule_id)
        if "working_hours_id" in fields:
            await self._check_calendar(fields["working_hours_id"])

        updated = replace(rule, **fields, updated_at=self._clock())
        await self._rules.save(updated)
        logger.info("Rule %s updated: %s", rule_id, ", ".join(sorted(fields)) or "no changes")
        return updated

    async def set_active(self, rule_id: str, active: bool) -> AssignmentRule:
        return await self.update_rule(rule_id, {"is_active": active})

    async def delete_rule(self, rule_id: str) -> None:
        if not await self._rules.delete(rule_id):
            raise RuleNotFound(f"Assignment rule {rule_id} not found")
        logger.info("Rule %s deleted", rule_id)

    async def reorder_rules(self, rule_ids: list[str]) -> list[AssignmentRule]:
        """Give the listed rules priorities 1..n in the order given."""
        if not rule_ids:
            raise ValidationError("At least one rule id is required")
        if len(set(rule_ids)) != len(rule_ids):
            raise ValidationError("Rule ids must not repeat")
        for rule_id in rule_ids:
            await self.get_rule(rule_id)

        await self._rules.set_priorities(
            {rule_id: index for index, rule_id in enumerate(rule_ids, start=1)},
            self._clock(),
        )
        logger.info("Reordered %d rules", len(rule_ids))
        return await self._rules.get_all()

    async def _check_calendar(self, calendar_id: str | None) -> None:
        if calendar_id is not None and await self._calendars.get_calendar(calendar_id) is None:
            raise CalendarNotFound(f"Calendar {calendar_id} not found")
