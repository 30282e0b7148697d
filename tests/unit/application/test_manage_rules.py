"""Tests for ManageRulesUseCase."""

from datetime import datetime, timedelta, timezone

import pytest

from leadrouting.application.use_cases.manage_rules import ManageRulesUseCase, parse_rule_fields
from leadrouting.domain.entities.assignment_rule import AssignmentRule, RuleAction
from leadrouting.domain.errors import CalendarNotFound, RuleNotFound, ValidationError
from leadrouting.domain.value_objects.enums import ActionType
from tests.fakes import Clock, FakeCalendarRepo, FakeRuleRepo, business_hours

NOW = datetime(2024, 3, 8, 10, 0, tzinfo=timezone.utc)

TO_REP_A = {"type": "assign_to_user", "parameters": {"userId": "repA"}}


def _rule(rid: str, priority: int, **kwargs) -> AssignmentRule:
    return AssignmentRule(
        id=rid,
        name=kwargs.pop("name", rid),
        priority=priority,
        actions=[RuleAction(ActionType.ASSIGN_TO_USER, {"user_id": "repA"})],
        **kwargs,
    )


def _use_case(*rules: AssignmentRule) -> tuple[ManageRulesUseCase, FakeRuleRepo, Clock]:
    repo = FakeRuleRepo(list(rules))
    clock = Clock(NOW)
    ids = iter(f"r-{n}" for n in range(1, 100))
    uc = ManageRulesUseCase(
        repo,
        FakeCalendarRepo([business_hours("biz")]),
        clock=clock,
        id_factory=lambda: next(ids),
    )
    return uc, repo, clock


@pytest.mark.asyncio
async def test_create_rule_goes_last_by_default():
    uc, repo, _ = _use_case(_rule("a", 1), _rule("b", 7, is_active=False))
    rule = await uc.create_rule(
        {
            "name": "  Enterprise ",
            "conditions": [{"field": "company_size", "operator": "greater_than", "value": 500}],
            "actions": [TO_REP_A, {"type": "add_tag", "parameters": {"tag": "big"}}],
            "working_hours_id": "biz",
        },
        created_by="admin",
    )

    assert rule.id == "r-1"
    assert rule.name == "Enterprise"
    assert rule.priority == 8
    assert rule.actions[0].parameters == {"user_id": "repA"}
    assert (rule.created_by, rule.created_at, rule.updated_at) == ("admin", NOW, NOW)
    assert await repo.get_by_id("r-1") == rule


@pytest.mark.asyncio
async def test_first_rule_gets_priority_one():
    uc, _, _ = _use_case()
    rule = await uc.create_rule({"name": "Only", "actions": [TO_REP_A]}, created_by="admin")
    assert rule.priority == 1


@pytest.mark.parametrize(
    "data, message",
    [
        ({"actions": [TO_REP_A]}, "name is required"),
        ({"name": "No actions"}, "actions is required"),
        ({"name": "Empty", "actions": []}, "at least one action"),
        ({"name": "", "actions": [TO_REP_A]}, "non-empty"),
        ({"name": "X", "actions": [TO_REP_A], "priority": -1}, "non-negative"),
        ({"name": "X", "actions": [TO_REP_A], "priority": True}, "non-negative"),
        ({"name": "X", "actions": [TO_REP_A], "colour": "red"}, "Unknown rule fields"),
        ({"name": "X", "actions": [TO_REP_A], "is_active": "yes"}, "boolean"),
        ({"name": "X", "actions": [{"type": "teleport"}]}, "Unknown action type"),
        ({"name": "X", "actions": TO_REP_A}, "must be a list"),
        (
            {"name": "X", "actions": [TO_REP_A], "conditions": [{"field": "a", "operator": "near"}]},
            "operator",
        ),
    ],
)
@pytest.mark.asyncio
async def test_create_rule_validation(data, message):
    uc, repo, _ = _use_case()
    with pytest.raises(ValidationError, match=message):
        await uc.create_rule(data, created_by="admin")
    assert repo.rules == []


@pytest.mark.asyncio
async def test_create_rule_with_unknown_calendar():
    uc, repo, _ = _use_case()
    with pytest.raises(CalendarNotFound):
        await uc.create_rule(
            {"name": "X", "actions": [TO_REP_A], "working_hours_id": "night-shift"},
            created_by="admin",
        )
    assert repo.rules == []


@pytest.mark.asyncio
async def test_update_rule_changes_only_given_fields():
    uc, repo, clock = _use_case(_rule("a", 1, created_at=NOW, updated_at=NOW))
    clock.now = NOW + timedelta(hours=1)

    updated = await uc.update_rule("a", {"name": "Renamed", "territories": [{"id": "emea"}]})

    assert updated.name == "Renamed"
    assert updated.territories[0].id == "emea"
    assert updated.priority == 1
    assert updated.created_at == NOW
    assert updated.updated_at == clock.now
    assert await repo.get_by_id("a") == updated


@pytest.mark.asyncio
async def test_update_unknown_rule():
    uc, _, _ = _use_case()
    with pytest.raises(RuleNotFound):
        await uc.update_rule("ghost", {"name": "x"})


@pytest.mark.asyncio
async def test_update_rejects_invalid_changes_before_writing():
    uc, repo, _ = _use_case(_rule("a", 1))
    with pytest.raises(ValidationError):
        await uc.update_rule("a", {"actions": [{"type": "assign_to_team", "parameters": {}}]})
    with pytest.raises(CalendarNotFound):
        await uc.update_rule("a", {"working_hours_id": "nope"})
    assert (await repo.get_by_id("a")).working_hours_id is None


@pytest.mark.asyncio
async def test_activate_and_deactivate():
    uc, _, _ = _use_case(_rule("a", 1))
    assert (await uc.set_active("a", False)).is_active is False
    assert [r.id for r in await uc.list_rules(active_only=True)] == []
    assert (await uc.set_active("a", True)).is_active is True
    assert [r.id for r in await uc.list_rules(active_only=True)] == ["a"]


@pytest.mark.asyncio
async def test_delete_rule():
    uc, repo, _ = _use_case(_rule("a", 1), _rule("b", 2))
    await uc.delete_rule("a")
    assert [r.id for r in repo.rules] == ["b"]
    with pytest.raises(RuleNotFound):
        await uc.delete_rule("a")


@pytest.mark.asyncio
async def test_reorder_numbers_from_one():
    uc, _, clock = _use_case(_rule("a", 1), _rule("b", 5), _rule("c", 9))
    clock.now = NOW + timedelta(minutes=5)

    ordered = await uc.reorder_rules(["c", "a"])

    assert [(r.id, r.priority) for r in ordered] == [("c", 1), ("a", 2), ("b", 5)]
    assert ordered[0].updated_at == clock.now
    assert ordered[2].updated_at is None


@pytest.mark.parametrize(
    "rule_ids, error",
    [([], ValidationError), (["a", "a"], ValidationError), (["a", "ghost"], RuleNotFound)],
)
@pytest.mark.asyncio
async def test_reorder_validation(rule_ids, error):
    uc, repo, _ = _use_case(_rule("a", 3))
    with pytest.raises(error):
        await uc.reorder_rules(rule_ids)
    assert repo.rules[0].priority == 3


@pytest.mark.asyncio
async def test_get_rule_and_statistics():
    uc, _, _ = _use_case(_rule("a", 1), _rule("b", 1, is_active=False))
    assert (await uc.get_rule("a")).id == "a"
    with pytest.raises(RuleNotFound):
        await uc.get_rule("ghost")

    stats = await uc.statistics()
    assert (stats.total_rules, stats.active_rules, stats.inactive_rules) == (2, 1, 1)
    assert stats.rules_by_priority == {1: 2}


def test_parse_rule_fields_allows_clearing_calendar():
    assert parse_rule_fields({"working_hours_id": None}) == {"working_hours_id": None}
    with pytest.raises(ValidationError):
        parse_rule_fields({"working_hours_id": ""})
