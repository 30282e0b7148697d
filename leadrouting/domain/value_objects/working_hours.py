"""Working-hours schedule and holiday value objects."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, time
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from leadrouting.domain.errors import ValidationError
from leadrouting.domain.value_objects.enums import HolidayType

# Monday == 0, matching date.weekday()
WEEKDAY_NAMES = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


def parse_clock(raw: str | None) -> time | None:
    """Parse an "HH:MM" string. "24:00" and None both mean end of day (None)."""
    if raw is None or raw == "24:00":
        return None
    try:
        hours, minutes = raw.strip().split(":")
        return time(int(hours), int(minutes))
    except (AttributeError, ValueError) as e:
        raise ValidationError(f"Invalid time of day: {raw!r}") from e


def format_clock(value: time | None) -> str:
    return "24:00" if value is None else value.strftime("%H:%M")


@dataclass(frozen=True)
class TimeWindow:
    """A [start, end) span inside one day; end=None means midnight."""

    start: time
    end: time | None

    def __post_init__(self):
        if self.end is not None and self.end <= self.start:
            raise ValidationError(
                f"Window end {format_clock(self.end)} must be after start {format_clock(self.start)}"
            )


@dataclass(frozen=True)
class DaySchedule:
    is_working_day: bool
    start_time: time | None = None
    end_time: time | None = None
    breaks: tuple[TimeWindow, ...] = ()

    @property
    def window(self) -> TimeWindow:
        """Opening window; a working day without explicit hours is open all day."""
        return TimeWindow(start=self.start_time or time(0), end=self.end_time)

    def __post_init__(self):
        if self.is_working_day:
            # Triggers TimeWindow validation
            _ = self.window

    @classmethod
    def from_dict(cls, data: dict) -> DaySchedule:
        if not isinstance(data, dict):
            raise ValidationError(f"Day schedule must be an object, got {data!r}")
        is_working = bool(data.get("is_working_day", data.get("isWorkingDay", False)))
        if not is_working:
            return cls(is_working_day=False)

        raw_breaks = data.get("breaks") or []
        if not isinstance(raw_breaks, list):
            raise ValidationError(f"Breaks must be a list, got {raw_breaks!r}")
        breaks = []
        for b in raw_breaks:
            if not isinstance(b, dict) or "start" not in b or "end" not in b:
                raise ValidationError(f"Break needs both 'start' and 'end': {b!r}")
            breaks.append(
                TimeWindow(start=parse_clock(b["start"]) or time(0), end=parse_clock(b["end"]))
            )
        return cls(
            is_working_day=True,
            start_time=parse_clock(data.get("start_time", data.get("startTime"))),
            end_time=parse_clock(data.get("end_time", data.get("endTime"))),
            breaks=tuple(breaks),
        )

    def to_dict(self) -> dict:
        if not self.is_working_day:
            return {"is_working_day": False}
        return {
            "is_working_day": True,
            "start_time": format_clock(self.start_time or time(0)),
            "end_time": format_clock(self.end_time),
            "breaks": [
                {"start": format_clock(b.start), "end": format_clock(b.end)}
                for b in self.breaks
            ],
        }


@dataclass(frozen=True)
class WorkingHoursConfig:
    """Per-weekday schedule in a fixed timezone. Immutable at evaluation time."""

    id: str
    name: str
    timezone: str
    days: tuple[DaySchedule, ...]
    holiday_types: frozenset[HolidayType] | None = None  # None = every holiday type applies
    is_default: bool = False

    def __post_init__(self):
        if len(self.days) != 7:
            raise ValidationError(f"Calendar {self.id!r} must define 7 weekdays, got {len(self.days)}")
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValidationError(f"Unknown timezone {self.timezone!r}") from e

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def day(self, weekday: int) -> DaySchedule:
        return self.days[weekday]

    @classmethod
    def from_schedule(
        cls,
        id: str,
        name: str,
        timezone: str,
        schedule: dict,
        holiday_types: list[str] | None = None,
        is_default: bool = False,
    ) -> WorkingHoursConfig:
        """Build from the stored JSON shape: {"monday": {...}, ..., "sunday": {...}}."""
        if not isinstance(schedule, dict):
            raise ValidationError(f"Calendar {id!r} schedule must be an object, got {schedule!r}")
        days = tuple(
            DaySchedule.from_dict(schedule.get(name, {})) for name in WEEKDAY_NAMES
        )
        try:
            types = (
                frozenset(HolidayType(t) for t in holiday_types)
                if holiday_types is not None
                else None
            )
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Unknown holiday type in {holiday_types!r}") from e
        return cls(
            id=id,
            name=name,
            timezone=timezone,
            days=days,
            holiday_types=types,
            is_default=is_default,
        )

    def schedule_dict(self) -> dict:
        return {name: self.days[i].to_dict() for i, name in enumerate(WEEKDAY_NAMES)}


@dataclass(frozen=True)
class Holiday:
    date: date
    type: HolidayType = HolidayType.NATIONAL
    name: str = ""
    is_active: bool = True


def default_schedule() -> dict:
    """Mon–Fri 09:00–17:00, weekends off."""
    workday = {"is_working_day": True, "start_time": "09:00", "end_time": "17:00"}
    weekend = {"is_working_day": False}
    return {
        "monday": workday,
        "tuesday": workday,
        "wednesday": workday,
        "thursday": workday,
        "friday": workday,
        "saturday": weekend,
        "sunday": weekend,
    }

