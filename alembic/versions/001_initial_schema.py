"""Initial schema — calendars, users, leads, rules, cursors, activities.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Working-hours calendars
    op.create_table(
        "working_hours_configs",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("timezone", sa.String(64), nullable=False, server_default="UTC"),
        sa.Column("schedule", sa.JSON, nullable=False),
        sa.Column("holiday_types", sa.JSON, nullable=True),
        sa.Column("is_default", sa.Boolean, nullable=False, server_default=sa.false()),
    )
    op.create_index("idx_working_hours_default", "working_hours_configs", ["is_default"])

    # Holidays
    op.create_table(
        "holidays",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("date", sa.Date, nullable=False),
        sa.Column("type", sa.String(20), nullable=False, server_default="national"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
    )
    op.create_index("idx_holidays_date", "holidays", ["date"])

    # Users (agents)
    op.create_table(
        "users",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("team", sa.String(100), nullable=True),
        sa.Column("territory", sa.String(100), nullable=True),
        sa.Column(
            "working_hours_id",
            sa.String(64),
            sa.ForeignKey("working_hours_configs.id"),
            nullable=True,
        ),
        sa.Column("is_senior", sa.Boolean, nullable=False, server_default=sa.false()),
    )
    op.create_index("idx_users_team", "users", ["team"])

    # Leads
    op.create_table(
        "leads",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="new"),
        sa.Column("attributes", sa.JSON, nullable=False),
        sa.Column("assigned_to", sa.String(64), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("assignment_reason", sa.Text, nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
    )
    op.create_index("idx_leads_assigned_to", "leads", ["assigned_to"])
    op.create_index("idx_leads_status", "leads", ["status"])

    # Assignment rules
    op.create_table(
        "assignment_rules",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("priority", sa.Integer, nullable=False),
        sa.Column("conditions", sa.JSON, nullable=False),
        sa.Column("actions", sa.JSON, nullable=False),
        sa.Column("territories", sa.JSON, nullable=False),
        sa.Column(
            "working_hours_id",
            sa.String(64),
            sa.ForeignKey("working_hours_configs.id"),
            nullable=True,
        ),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_by", sa.String(64), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
    )
    op.create_index("idx_rules_active_priority", "assignment_rules", ["is_active", "priority"])

    # Round-robin cursors
    op.create_table(
        "round_robin_state",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("rr_key", sa.Text, unique=True, nullable=False),
        sa.Column("counter", sa.Integer, nullable=False, server_default="0"),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
    )

    # Audit trail
    op.create_table(
        "activities",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "lead_id", sa.String(64), sa.ForeignKey("leads.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("type", sa.String(40), nullable=False),
        sa.Column("actor", sa.String(64), nullable=False),
        sa.Column("details", sa.JSON, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("idx_activities_lead", "activities", ["lead_id"])


def downgrade() -> None:
    op.drop_table("activities")
    op.drop_table("round_robin_state")
    op.drop_table("assignment_rules")
    op.drop_table("leads")
    op.drop_table("users")
    op.drop_table("holidays")
    op.drop_table("working_hours_configs")
