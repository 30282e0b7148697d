"""Seed the database with a default calendar, agents and sample rules.

Usage:
    python -m leadrouting.tools.seed_db
    python -m leadrouting.tools.seed_db --leads 20
    python -m leadrouting.tools.seed_db --drop  # drop existing data first
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import random
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from leadrouting.adapters.persistence.database import async_session_factory
from leadrouting.adapters.persistence.models import (
    ActivityModel,
    AssignmentRuleModel,
    HolidayModel,
    LeadModel,
    RoundRobinStateModel,
    UserModel,
    WorkingHoursConfigModel,
)
from leadrouting.domain.value_objects.working_hours import default_schedule

logging.basicConfig(level=logging.INFO, format="%(levelname)s | %(message)s")
logger = logging.getLogger(__name__)

DEFAULT_CALENDAR = {
    "id": "default",
    "name": "Business hours (Mon–Fri 09:00–17:00)",
    "timezone": "UTC",
    "schedule": default_schedule(),
    "holiday_types": None,
    "is_default": True,
}

AGENTS = [
    {"id": "u-alice", "name": "Alice Moreau", "role": "sales", "team": "enterprise",
     "territory": "emea", "is_senior": True},
    {"id": "u-bob", "name": "Bob Schmidt", "role": "sales", "team": "enterprise",
     "territory": "emea"},
    {"id": "u-carol", "name": "Carol Diaz", "role": "sales", "team": "smb",
     "territory": "americas"},
    {"id": "u-dan", "name": "Dan Okafor", "role": "sales", "team": "smb",
     "territory": "americas"},
    {"id": "u-erin", "name": "Erin Walsh", "role": "manager", "team": "enterprise",
     "is_senior": True},
    {"id": "u-frank", "name": "Frank Ito", "role": "marketing"},
]

RULES = [
    {
        "id": "r-hot",
        "name": "Hot leads to seniors",
        "priority": 1,
        "conditions": [{"field": "score", "operator": "greater_than", "value": 80}],
        "actions": [
            {"type": "assign_to_senior"},
            {"type": "set_priority", "parameters": {"priority": "high"}},
        ],
    },
    {
        "id": "r-emea",
        "name": "EMEA enterprise",
        "priority": 10,
        "conditions": [{"field": "company.size", "operator": "in",
                        "value": ["enterprise", "large"]}],
        "actions": [{"type": "assign_to_team", "parameters": {"team_id": "enterprise"}}],
        "territories": [{"id": "emea", "name": "EMEA",
                         "regions": ["europe", "middle east", "africa"],
                         "countries": ["DE", "FR", "GB", "AE"]}],
    },
    {
        "id": "r-referral",
        "name": "Referrals",
        "priority": 20,
        "conditions": [{"field": "source", "operator": "equals", "value": "referral"}],
        "actions": [
            {"type": "assign_to_team", "parameters": {"team_id": "smb"}},
            {"type": "add_tag", "parameters": {"tag": "referral"}},
        ],
    },
]

_SOURCES = ["website", "referral", "event", "cold_call"]
_COUNTRIES = [("DE", "europe"), ("FR", "europe"), ("US", "north america"), ("BR", "south america")]
_SIZES = ["small", "medium", "large", "enterprise"]


async def _drop_data(session: AsyncSession) -> None:
    """Delete all data in correct order (respecting FK constraints)."""
    for model in [
        ActivityModel,
        RoundRobinStateModel,
        LeadModel,
        AssignmentRuleModel,
        UserModel,
        HolidayModel,
        WorkingHoursConfigModel,
    ]:
        await session.execute(delete(model))
    await session.flush()
    logger.info("Existing data dropped")


def _holidays(year: int) -> list[HolidayModel]:
    return [
        HolidayModel(name="New Year's Day", holiday_date=date(year, 1, 1), type="national"),
        HolidayModel(name="Christmas Day", holiday_date=date(year, 12, 25), type="national"),
        HolidayModel(name="Company offsite", holiday_date=date(year, 7, 1), type="company"),
    ]


def _sample_lead(index: int, rng: random.Random, now: datetime) -> LeadModel:
    country, region = rng.choice(_COUNTRIES)
    return LeadModel(
        id=f"lead-{index:04d}",
        status="new",
        attributes={
            "source": rng.choice(_SOURCES),
            "score": rng.randint(0, 100),
            "country": country,
            "region": region,
            "company": {"size": rng.choice(_SIZES)},
        },
        created_at=now - timedelta(minutes=rng.randint(0, 600)),
    )


async def seed_into(session: AsyncSession, drop: bool = False, leads: int = 0) -> dict[str, int]:
    """Insert the sample data into an open session. Returns counts of seeded records."""
    counts = {"calendars": 0, "holidays": 0, "agents": 0, "rules": 0, "leads": 0}
    if drop:
        await _drop_data(session)

    if await session.get(WorkingHoursConfigModel, DEFAULT_CALENDAR["id"]) is None:
        session.add(WorkingHoursConfigModel(**DEFAULT_CALENDAR))
        counts["calendars"] += 1

    year = datetime.now(timezone.utc).year
    existing_holidays = (await session.execute(select(func.count(HolidayModel.id)))).scalar_one()
    if not existing_holidays:
        for y in (year, year + 1):
            for h in _holidays(y):
                session.add(h)
                counts["holidays"] += 1

    for data in AGENTS:
        if await session.get(UserModel, data["id"]) is not None:
            logger.debug("Agent '%s' already exists, skipping", data["id"])
            continue
        session.add(UserModel(working_hours_id=DEFAULT_CALENDAR["id"], **data))
        counts["agents"] += 1

    for data in RULES:
        if await session.get(AssignmentRuleModel, data["id"]) is not None:
            logger.debug("Rule '%s' already exists, skipping", data["id"])
            continue
        session.add(AssignmentRuleModel(created_by="seed", **data))
        counts["rules"] += 1

    rng = random.Random(42)
    now = datetime.now(timezone.utc)
    start = (await session.execute(select(func.count(LeadModel.id)))).scalar_one()
    for i in range(start + 1, start + leads + 1):
        session.add(_sample_lead(i, rng, now))
        counts["leads"] += 1

    await session.flush()
    return counts


async def seed(drop: bool = False, leads: int = 0) -> dict[str, int]:
    async with async_session_factory() as session:
        counts = await seed_into(session, drop=drop, leads=leads)
        await session.commit()
    logger.info("Seed complete: %s", counts)
    return counts


def main():
    parser = argparse.ArgumentParser(description="Seed the lead routing database")
    parser.add_argument(
        "--drop", action="store_true",
        help="Drop existing data before seeding",
    )
    parser.add_argument(
        "--leads", type=int, default=0,
        help="Number of unassigned sample leads to create (default: 0)",
    )
    args = parser.parse_args()
    if args.leads < 0:
        parser.error("--leads must not be negative")

    asyncio.run(seed(drop=args.drop, leads=args.leads))


if __name__ == "__main__":
    main()
