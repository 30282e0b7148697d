"""WorkingHoursCalendar — working-time arithmetic over a schedule and holidays.

All instants are handled as timezone-aware UTC datetimes. Naive inputs are
taken to be UTC. Working windows are half-open: [start, end).
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime, time, timedelta, timezone

from leadrouting.domain.errors import CalendarExhausted, ValidationError
from leadrouting.domain.value_objects.working_hours import Holiday, WorkingHoursConfig

DEFAULT_MAX_DAY_STEPS = 366

Window = tuple[datetime, datetime]


def to_utc(instant: datetime) -> datetime:
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


class WorkingHoursCalendar:
    """Answers "is T working time?" and "advance T by N working hours"."""

    def __init__(
        self,
        config: WorkingHoursConfig,
        holidays: Iterable[Holiday] = (),
        max_day_steps: int = DEFAULT_MAX_DAY_STEPS,
    ):
        if not any(d.is_working_day for d in config.days):
            raise CalendarExhausted(f"Calendar {config.id!r} has no working days")
        if max_day_steps < 1:
            raise ValidationError("max_day_steps must be positive")

        self.config = config
        self._zone = config.zone
        self._max_day_steps = max_day_steps
        self._holidays = frozenset(
            h.date
            for h in holidays
            if h.is_active and (config.holiday_types is None or h.type in config.holiday_types)
        )

    @property
    def calendar_id(self) -> str:
        return self.config.id

    def is_holiday(self, day: date) -> bool:
        return day in self._holidays

    def working_windows(self, day: date) -> list[Window]:
        """UTC [start, end) windows for a local calendar day, breaks removed."""
        schedule = self.config.day(day.weekday())
        if not schedule.is_working_day or self.is_holiday(day):
            return []

        opening = schedule.window
        start = self._local(day, opening.start)
        end = self._local(day, opening.end)

        windows: list[Window] = [(start, end)]
        for brk in sorted(schedule.breaks, key=lambda b: b.start):
            b_start = self._local(day, brk.start)
            b_end = self._local(day, brk.end)
            clipped: list[Window] = []
            for w_start, w_end in windows:
                if b_end <= w_start or b_start >= w_end:
                    clipped.append((w_start, w_end))
                    continue
                if w_start < b_start:
                    clipped.append((w_start, b_start))
                if b_end < w_end:
                    clipped.append((b_end, w_end))
            windows = clipped
        return windows

    def is_working_time(self, instant: datetime) -> bool:
        t = to_utc(instant)
        return any(start <= t < end for start, end in self.working_windows(self._local_date(t)))

    def next_working_instant(self, instant: datetime) -> datetime:
        """The earliest working instant at or after `instant`."""
        cursor = to_utc(instant)
        day = self._local_date(cursor)
        for _ in range(self._max_day_steps):
            for start, end in self.working_windows(day):
                if end > cursor:
                    return max(start, cursor)
            day += timedelta(days=1)
        raise CalendarExhausted(
            f"No working time within {self._max_day_steps} days of {cursor.isoformat()} "
            f"in calendar {self.config.id!r}"
        )

    def add_working_duration(self, instant: datetime, duration: timedelta) -> datetime:
        """Advance `instant` by `duration` of working time, skipping non-working spans."""
        if duration < timedelta(0):
            raise ValidationError("Working duration must not be negative")
        cursor = to_utc(instant)
        if duration == timedelta(0):
            return cursor

        remaining = duration
        day = self._local_date(cursor)
        for _ in range(self._max_day_steps):
            for start, end in self.working_windows(day):
                if end <= cursor:
                    continue
                segment_start = max(start, cursor)
                available = end - segment_start
                if remaining <= available:
                    return segment_start + remaining
                remaining -= available
                cursor = end
            day += timedelta(days=1)
        raise CalendarExhausted(
            f"Could not place {duration} of working time within {self._max_day_steps} days "
            f"in calendar {self.config.id!r}"
        )

    def working_duration_between(self, start: datetime, end: datetime) -> timedelta:
        """Working time in [start, end); negative when end precedes start."""
        a, b = to_utc(start), to_utc(end)
        if b < a:
            return -self.working_duration_between(b, a)

        total = timedelta(0)
        day = self._local_date(a)
        last = self._local_date(b)
        while day <= last:
            for w_start, w_end in self.working_windows(day):
                overlap_start = max(w_start, a)
                overlap_end = min(w_end, b)
                if overlap_end > overlap_start:
                    total += overlap_end - overlap_start
            day += timedelta(days=1)
        return total

    def _local_date(self, instant: datetime) -> date:
        return instant.astimezone(self._zone).date()

    def _local(self, day: date, clock: time | None) -> datetime:
        # clock=None is the midnight that ends `day`
        if clock is None:
            day, clock = day + timedelta(days=1), time(0)
        return datetime.combine(day, clock, tzinfo=self._zone).astimezone(timezone.utc)
