"""Tests for parsing stored rules and calendars."""

from datetime import time

import pytest

from leadrouting.domain.entities.assignment_rule import (
    RuleAction,
    RuleCondition,
    Territory,
    parse_actions,
    parse_conditions,
    parse_territories,
)
from leadrouting.domain.errors import ValidationError
from leadrouting.domain.value_objects.enums import ActionType, ConditionOperator
from leadrouting.domain.value_objects.working_hours import (
    DaySchedule,
    WorkingHoursConfig,
    default_schedule,
    parse_clock,
)


def test_condition_from_dict():
    c = RuleCondition.from_dict({"field": "country", "operator": "in", "value": ["DE", "FR"]})
    assert c.operator is ConditionOperator.IN
    assert c.value == ("DE", "FR")
    assert c.to_dict() == {"field": "country", "operator": "in", "value": ["DE", "FR"]}


@pytest.mark.parametrize(
    "data",
    [
        {"operator": "equals", "value": 1},
        {"field": "score", "value": 1},
        {"field": "score", "operator": "approximately", "value": 1},
        {"field": "country", "operator": "in", "value": "DE"},
        {"field": "", "operator": "equals", "value": 1},
    ],
)
def test_malformed_condition_rejected(data):
    with pytest.raises(ValidationError):
        RuleCondition.from_dict(data)


def test_action_aliases_and_required_parameters():
    action = RuleAction.from_dict({"type": "assign_to_user", "parameters": {"userId": "u1"}})
    assert action.type is ActionType.ASSIGN_TO_USER
    assert action.parameters == {"user_id": "u1"}
    with pytest.raises(ValidationError):
        RuleAction.from_dict({"type": "assign_to_team", "parameters": {}})
    with pytest.raises(ValidationError):
        RuleAction.from_dict({"type": "teleport"})


def test_territory_covers_case_insensitively():
    t = Territory.from_dict({"id": "emea", "regions": ["Europe"], "countries": ["DE"]})
    assert t.name == "emea"
    assert t.covers(None, "europe", None)
    assert t.covers(None, None, "de")
    assert t.covers("emea", None, None)
    assert not t.covers("apac", "asia", "JP")


def test_parse_clock():
    assert parse_clock("09:30") == time(9, 30)
    assert parse_clock("24:00") is None
    with pytest.raises(ValidationError):
        parse_clock("nine")


def test_day_schedule_accepts_camel_case():
    day = DaySchedule.from_dict({"isWorkingDay": True, "startTime": "08:00", "endTime": "12:00"})
    assert day.window.start == time(8)
    assert day.window.end == time(12)


def test_schedule_round_trips_through_dict():
    config = WorkingHoursConfig.from_schedule("c", "C", "UTC", default_schedule())
    again = WorkingHoursConfig.from_schedule("c", "C", "UTC", config.schedule_dict())
    assert again.days == config.days


def test_unknown_holiday_type_rejected():
    with pytest.raises(ValidationError):
        WorkingHoursConfig.from_schedule("c", "C", "UTC", default_schedule(), ["lunar"])


@pytest.mark.parametrize(
    "parse, raw",
    [
        (parse_conditions, ["oops"]),
        (parse_conditions, {"field": "score"}),
        (parse_actions, [{"type": "add_tag", "parameters": ["hot"]}]),
        (parse_actions, [42]),
        (parse_territories, [{"id": "emea", "countries": "DE"}]),
        (parse_territories, ["emea"]),
    ],
)
def test_wrongly_shaped_rule_parts_rejected(parse, raw):
    with pytest.raises(ValidationError):
        parse(raw)


def test_missing_rule_parts_parse_as_empty():
    assert parse_conditions(None) == []
    assert parse_actions(None) == []
    assert parse_territories(None) == []


@pytest.mark.parametrize(
    "day",
    [
        {"is_working_day": True, "breaks": [{"start": "12:00"}]},
        {"is_working_day": True, "breaks": [{"end": "13:00"}]},
        {"is_working_day": True, "breaks": ["12:00-13:00"]},
        {"is_working_day": True, "breaks": {"start": "12:00", "end": "13:00"}},
        "closed",
    ],
)
def test_malformed_day_schedule_rejected(day):
    with pytest.raises(ValidationError):
        DaySchedule.from_dict(day)


def test_malformed_schedule_rejected():
    with pytest.raises(ValidationError):
        WorkingHoursConfig.from_schedule("c", "C", "UTC", ["monday"])
    schedule = default_schedule()
    schedule["monday"] = None
    with pytest.raises(ValidationError):
        WorkingHoursConfig.from_schedule("c", "C", "UTC", schedule)
