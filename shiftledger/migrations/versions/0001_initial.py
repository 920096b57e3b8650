"""Initial shift ledger schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18 00:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

shift_group = postgresql.ENUM("A", "B", "C", "D", name="shift_group", create_type=False)
shift_type = postgresql.ENUM(
    "Day",
    "Night",
    "Off",
    "Leave",
    "Public",
    "Overtime",
    "InLieu",
    name="shift_type",
    create_type=False,
)
leave_type = postgresql.ENUM("ANNUAL", "SICK", "UNPAID", "EMERGENCY", name="leave_type", create_type=False)
leave_status = postgresql.ENUM("APPROVED", "PENDING", "REJECTED", name="leave_status", create_type=False)
record_source = postgresql.ENUM("SCHEDULE", "MANUAL", name="record_source", create_type=False)
audit_actor_type = postgresql.ENUM("EMPLOYEE", "ADMIN", "SYSTEM", name="audit_actor_type", create_type=False)

_ENUMS = (shift_group, shift_type, leave_type, leave_status, record_source, audit_actor_type)


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    )


def _source() -> sa.Column:
    return sa.Column("source", record_source, nullable=False, server_default=sa.text("'MANUAL'"))


def upgrade() -> None:
    bind = op.get_bind()
    for enum_type in _ENUMS:
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        "employees",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("base_group", shift_group, nullable=False),
        sa.Column("years_of_service", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("annual_leave_balance", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("schedule_revision", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("schedule_updated_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "group_changes",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("old_group", shift_group, nullable=False),
        sa.Column("new_group", shift_group, nullable=False),
        sa.Column("effective_date", sa.Date(), nullable=False),
        sa.Column(
            "requested_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_group_changes_employee_id", "group_changes", ["employee_id"], unique=False)
    op.create_index("ix_group_changes_effective_date", "group_changes", ["effective_date"], unique=False)

    op.create_table(
        "shift_overrides",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("day_date", sa.Date(), nullable=False),
        sa.Column("shift_type", shift_type, nullable=False),
        sa.Column("notes", sa.String(length=1000), nullable=True),
        sa.Column("source", record_source, nullable=False, server_default=sa.text("'SCHEDULE'")),
        _created_at(),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("employee_id", "day_date", name="uq_shift_overrides_employee_day"),
    )
    op.create_index("ix_shift_overrides_employee_id", "shift_overrides", ["employee_id"], unique=False)
    op.create_index("ix_shift_overrides_day_date", "shift_overrides", ["day_date"], unique=False)

    op.create_table(
        "leaves",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("days_taken", sa.Float(), nullable=False, server_default=sa.text("1")),
        sa.Column("type", leave_type, nullable=False),
        sa.Column("status", leave_status, nullable=False, server_default=sa.text("'APPROVED'")),
        sa.Column("note", sa.String(length=1000), nullable=True),
        _source(),
        _created_at(),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_leaves_employee_id", "leaves", ["employee_id"], unique=False)
    op.create_index("ix_leaves_employee_range", "leaves", ["employee_id", "start_date", "end_date"], unique=False)

    op.create_table(
        "holidays",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("day_date", sa.Date(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("is_official", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _created_at(),
    )
    op.create_index("ix_holidays_day_date", "holidays", ["day_date"], unique=True)

    op.create_table(
        "in_lieu_records",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("days_count", sa.Integer(), nullable=False),
        sa.Column("leave_days_added", sa.Float(), nullable=False),
        _source(),
        _created_at(),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_in_lieu_records_employee_id", "in_lieu_records", ["employee_id"], unique=False)

    op.create_table(
        "overtime_records",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("day_date", sa.Date(), nullable=False),
        sa.Column("hours", sa.Float(), nullable=False),
        _source(),
        _created_at(),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("employee_id", "day_date", name="uq_overtime_records_employee_day"),
    )
    op.create_index("ix_overtime_records_employee_id", "overtime_records", ["employee_id"], unique=False)
    op.create_index("ix_overtime_records_day_date", "overtime_records", ["day_date"], unique=False)

    op.create_table(
        "monthly_overtime_totals",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("month_start", sa.Date(), nullable=False),
        sa.Column("total_hours", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("employee_id", "month_start", name="uq_monthly_overtime_totals_employee_month"),
    )
    op.create_index(
        "ix_monthly_overtime_totals_employee_id",
        "monthly_overtime_totals",
        ["employee_id"],
        unique=False,
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column(
            "ts_utc",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column("actor_type", audit_actor_type, nullable=False),
        sa.Column("actor_id", sa.String(length=255), nullable=False),
        sa.Column("action", sa.String(length=255), nullable=False),
        sa.Column("entity_type", sa.String(length=255), nullable=True),
        sa.Column("entity_id", sa.String(length=255), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column(
            "details",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
    )
    op.create_index("ix_audit_logs_ts_utc", "audit_logs", ["ts_utc"], unique=False)
    op.create_index("ix_audit_logs_entity", "audit_logs", ["entity_type", "actor_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_audit_logs_entity", table_name="audit_logs")
    op.drop_index("ix_audit_logs_ts_utc", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("ix_monthly_overtime_totals_employee_id", table_name="monthly_overtime_totals")
    op.drop_table("monthly_overtime_totals")
    op.drop_index("ix_overtime_records_day_date", table_name="overtime_records")
    op.drop_index("ix_overtime_records_employee_id", table_name="overtime_records")
    op.drop_table("overtime_records")
    op.drop_index("ix_in_lieu_records_employee_id", table_name="in_lieu_records")
    op.drop_table("in_lieu_records")
    op.drop_index("ix_holidays_day_date", table_name="holidays")
    op.drop_table("holidays")
    op.drop_index("ix_leaves_employee_range", table_name="leaves")
    op.drop_index("ix_leaves_employee_id", table_name="leaves")
    op.drop_table("leaves")
    op.drop_index("ix_shift_overrides_day_date", table_name="shift_overrides")
    op.drop_index("ix_shift_overrides_employee_id", table_name="shift_overrides")
    op.drop_table("shift_overrides")
    op.drop_index("ix_group_changes_effective_date", table_name="group_changes")
    op.drop_index("ix_group_changes_employee_id", table_name="group_changes")
    op.drop_table("group_changes")
    op.drop_table("employees")

    bind = op.get_bind()
    for enum_type in reversed(_ENUMS):
        enum_type.drop(bind, checkfirst=True)
