"""Tests for lead and agent entities."""

from datetime import datetime, timezone

from leadrouting.domain.entities.agent import Agent
from leadrouting.domain.entities.lead import MISSING, Lead, LeadAssignment
from leadrouting.domain.value_objects.enums import LeadStatus, UserRole


def test_get_field_follows_dotted_path():
    lead = Lead(id="L1", status=LeadStatus.NEW, attributes={"company": {"size": "large"}})
    assert lead.get_field("company.size") == "large"


def test_get_field_missing_segments():
    lead = Lead(id="L1", status=LeadStatus.NEW, attributes={"company": None, "score": 3})
    assert lead.get_field("company.size") is MISSING
    assert lead.get_field("company") is MISSING
    assert lead.get_field("score.value") is MISSING
    assert lead.get_field("nope") is MISSING


def test_get_field_own_fields():
    lead = Lead(id="L9", status=LeadStatus.QUALIFIED)
    assert lead.get_field("status") == "qualified"
    assert lead.get_field("id") == "L9"


def test_closed_and_assigned_to():
    lead = Lead(id="L1", status=LeadStatus.WON)
    assert lead.is_closed
    assert lead.assigned_to is None
    lead.assignment = LeadAssignment("u1", datetime(2024, 1, 1, tzinfo=timezone.utc), "round_robin")
    assert lead.assigned_to == "u1"


def test_agent_can_own_leads():
    assert Agent(id="a", name="A", role=UserRole.SALES).can_own_leads()
    assert not Agent(id="a", name="A", role=UserRole.ADMIN).can_own_leads()
    assert not Agent(id="a", name="A", role=UserRole.SALES, is_active=False).can_own_leads()
