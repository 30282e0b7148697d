"""Tests for the SLA clock and escalation levels."""

from datetime import date, datetime, timedelta, timezone

import pytest

from leadrouting.domain.errors import ValidationError
from leadrouting.domain.policies.sla_clock import EscalationPolicy, compute_status
from leadrouting.domain.policies.working_hours_calendar import WorkingHoursCalendar
from leadrouting.domain.value_objects.working_hours import WorkingHoursConfig, default_schedule

UTC = timezone.utc
ASSIGNED = datetime(2024, 3, 8, 15, 30, tzinfo=UTC)  # Friday


def _at(day: int, hour: int, minute: int = 0) -> datetime:
    return datetime(2024, 3, day, hour, minute, tzinfo=UTC)


def test_deadline_and_remaining_over_weekend(business_calendar):
    reading = compute_status(ASSIGNED, 4, business_calendar, _at(8, 16))
    assert reading.sla_deadline == _at(11, 11, 30)
    assert reading.hours_remaining == pytest.approx(3.5)
    assert not reading.is_overdue
    assert reading.escalation_level == 0


def test_weekend_time_does_not_count(business_calendar):
    reading = compute_status(ASSIGNED, 4, business_calendar, _at(10, 12))
    assert reading.hours_remaining == pytest.approx(2.5)
    assert reading.escalation_level == 0


def test_warning_level_after_three_quarters(business_calendar):
    reading = compute_status(ASSIGNED, 4, business_calendar, _at(11, 10, 30))
    assert reading.elapsed_fraction == pytest.approx(0.75)
    assert reading.escalation_level == 1


def test_at_deadline_is_not_overdue(business_calendar):
    reading = compute_status(ASSIGNED, 4, business_calendar, _at(11, 11, 30))
    assert reading.hours_remaining == 0
    assert not reading.is_overdue
    assert reading.escalation_level == 1


def test_overdue_after_deadline(business_calendar):
    reading = compute_status(ASSIGNED, 4, business_calendar, _at(11, 12, 30))
    assert reading.is_overdue
    assert reading.hours_remaining == pytest.approx(-1.0)
    assert reading.escalation_level == 2


def test_breach_tier_raises_level(business_calendar):
    # 24 working hours past Monday 11:30 is Thursday 11:30
    reading = compute_status(ASSIGNED, 4, business_calendar, _at(14, 11, 30))
    assert reading.hours_remaining == pytest.approx(-24.0)
    assert reading.escalation_level == 3


def test_overdue_outside_working_hours_keeps_remaining_fixed(business_calendar):
    evening = compute_status(ASSIGNED, 4, business_calendar, _at(11, 17, 0))
    night = compute_status(ASSIGNED, 4, business_calendar, _at(11, 23, 0))
    assert evening.hours_remaining == night.hours_remaining == pytest.approx(-5.5)


def test_zero_hour_sla_is_due_at_assignment(business_calendar):
    reading = compute_status(ASSIGNED, 0, business_calendar, _at(8, 16))
    assert reading.sla_deadline == ASSIGNED
    assert reading.is_overdue
    assert reading.elapsed_fraction == 1.0


def test_negative_sla_rejected(business_calendar):
    with pytest.raises(ValidationError):
        compute_status(ASSIGNED, -1, business_calendar, _at(8, 16))


def test_custom_policy_tiers():
    policy = EscalationPolicy(warning_fraction=0.5, breach_tiers_hours=(1.0, 8.0))
    assert policy.level_for(0.4, False, 0) == 0
    assert policy.level_for(0.5, False, 0) == 1
    assert policy.level_for(1.2, True, 0.5) == 2
    assert policy.level_for(1.2, True, 1.0) == 3
    assert policy.level_for(3.0, True, 9.0) == 4


def test_policy_validation():
    with pytest.raises(ValidationError):
        EscalationPolicy(warning_fraction=1.5)
    with pytest.raises(ValidationError):
        EscalationPolicy(breach_tiers_hours=(24.0, 8.0))


def test_holiday_extends_deadline():
    from leadrouting.domain.value_objects.working_hours import Holiday

    cal = WorkingHoursCalendar(
        WorkingHoursConfig.from_schedule("default", "Business", "UTC", default_schedule()),
        [Holiday(date=date(2024, 3, 11))],
    )
    reading = compute_status(ASSIGNED, 4, cal, _at(8, 16))
    assert reading.sla_deadline == _at(12, 11, 30)


@pytest.mark.parametrize("sla_hours", [0, 0.5, 4, 30])
@pytest.mark.parametrize(
    "policy",
    [EscalationPolicy(), EscalationPolicy(warning_fraction=0.5, breach_tiers_hours=(1.0, 8.0, 24.0))],
)
def test_escalation_never_steps_back_as_time_passes(business_calendar, sla_hours, policy):
    """Sweep two weeks in 15-minute steps, across nights and a weekend."""
    levels, remaining = [], []
    for step in range(14 * 24 * 4):
        now = ASSIGNED + timedelta(minutes=15 * step)
        reading = compute_status(ASSIGNED, sla_hours, business_calendar, now, policy)
        levels.append(reading.escalation_level)
        remaining.append(reading.hours_remaining)

    assert levels == sorted(levels)
    assert remaining == sorted(remaining, reverse=True)
    assert levels[-1] == 2 + len(policy.breach_tiers_hours)
