"""Domain enums — pure Python, no external dependencies."""

from enum import Enum


class LeadStatus(str, Enum):
    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    PROPOSAL = "proposal"
    NEGOTIATION = "negotiation"
    WON = "won"
    LOST = "lost"
    DISQUALIFIED = "disqualified"
    NURTURE = "nurture"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({LeadStatus.WON, LeadStatus.LOST, LeadStatus.DISQUALIFIED})


class UserRole(str, Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    SALES = "sales"
    MARKETING = "marketing"
    READ_ONLY = "read_only"
    GUEST = "guest"


# Roles allowed to own leads
LEAD_OWNER_ROLES = frozenset({UserRole.SALES, UserRole.MANAGER})


class ConditionOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    IN = "in"
    NOT_IN = "not_in"


class ActionType(str, Enum):
    ASSIGN_TO_USER = "assign_to_user"
    ASSIGN_TO_TEAM = "assign_to_team"
    ASSIGN_TO_SENIOR = "assign_to_senior"
    SET_PRIORITY = "set_priority"
    ADD_TAG = "add_tag"
    SEND_NOTIFICATION = "send_notification"

    @property
    def is_ownership(self) -> bool:
        return self in (
            ActionType.ASSIGN_TO_USER,
            ActionType.ASSIGN_TO_TEAM,
            ActionType.ASSIGN_TO_SENIOR,
        )


class HolidayType(str, Enum):
    NATIONAL = "national"
    REGIONAL = "regional"
    COMPANY = "company"


class ActivityType(str, Enum):
    LEAD_ASSIGNED = "lead_assigned"
    LEAD_REASSIGNED = "lead_reassigned"
    LEAD_ESCALATED = "lead_escalated"
