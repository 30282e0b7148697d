"""Port interface for working-hours calendars and holidays (read-only)."""

from abc import ABC, abstractmethod
from datetime import date

from leadrouting.domain.value_objects.working_hours import Holiday, WorkingHoursConfig


class CalendarRepository(ABC):
    @abstractmethod
    async def get_calendar(self, calendar_id: str) -> WorkingHoursConfig | None:
        """Look up a calendar by id; "default" resolves to the default calendar."""
        ...

    @abstractmethod
    async def list_holidays(self, start: date, end: date) -> list[Holiday]:
        """Active holidays with start <= date <= end."""
        ...
