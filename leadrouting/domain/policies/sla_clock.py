"""SLAClock — deadline, remaining working time and escalation level."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from leadrouting.domain.errors import ValidationError
from leadrouting.domain.policies.working_hours_calendar import WorkingHoursCalendar, to_utc


def _hours(delta: timedelta) -> float:
    return delta.total_seconds() / 3600


@dataclass(frozen=True)
class EscalationPolicy:
    """Escalation thresholds.

    Level 0 below `warning_fraction` of the SLA consumed, 1 from there until
    the deadline, 2 once overdue, plus one level per breach tier (in working
    hours past the deadline) reached.
    """

    warning_fraction: float = 0.75
    breach_tiers_hours: tuple[float, ...] = (24.0,)

    def __post_init__(self):
        if not 0 <= self.warning_fraction <= 1:
            raise ValidationError("warning_fraction must be within [0, 1]")
        if list(self.breach_tiers_hours) != sorted(self.breach_tiers_hours):
            raise ValidationError("breach_tiers_hours must be ascending")

    def level_for(self, elapsed_fraction: float, is_overdue: bool, hours_overdue: float) -> int:
        if is_overdue:
            return 2 + sum(1 for tier in self.breach_tiers_hours if hours_overdue >= tier)
        if elapsed_fraction >= self.warning_fraction:
            return 1
        return 0


@dataclass(frozen=True)
class SLAReading:
    sla_deadline: datetime
    hours_remaining: float  # negative once overdue
    is_overdue: bool
    escalation_level: int
    elapsed_fraction: float


def compute_status(
    assigned_at: datetime,
    sla_hours: float,
    calendar: WorkingHoursCalendar,
    now: datetime,
    policy: EscalationPolicy | None = None,
) -> SLAReading:
    """Pure read of an assignment's SLA position at `now`.

    Every duration is measured in working time on `calendar`, never wall clock.
    """
    if sla_hours < 0:
        raise ValidationError("SLA hours must not be negative")
    policy = policy or EscalationPolicy()
    assigned_at, now = to_utc(assigned_at), to_utc(now)

    deadline = calendar.add_working_duration(assigned_at, timedelta(hours=sla_hours))
    remaining = _hours(calendar.working_duration_between(now, deadline))
    is_overdue = now > deadline

    elapsed = max(0.0, _hours(calendar.working_duration_between(assigned_at, now)))
    if sla_hours > 0:
        fraction = elapsed / sla_hours
    else:
        fraction = 1.0 if now >= assigned_at else 0.0

    hours_overdue = -remaining if is_overdue else 0.0
    return SLAReading(
        sla_deadline=deadline,
        hours_remaining=remaining,
        is_overdue=is_overdue,
        escalation_level=policy.level_for(fraction, is_overdue, hours_overdue),
        elapsed_fraction=fraction,
    )
