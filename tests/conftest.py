"""Pytest configuration and shared fixtures."""

import pytest

from leadrouting.domain.policies.working_hours_calendar import WorkingHoursCalendar
from leadrouting.domain.value_objects.working_hours import WorkingHoursConfig, default_schedule


@pytest.fixture
def business_calendar() -> WorkingHoursCalendar:
    """Mon–Fri 09:00–17:00 UTC, no holidays."""
    return WorkingHoursCalendar(
        WorkingHoursConfig.from_schedule("default", "Business", "UTC", default_schedule())
    )
