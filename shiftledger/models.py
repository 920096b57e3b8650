from __future__ import annotations

import enum
from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shiftledger.db import Base


class ShiftGroup(str, enum.Enum):
    A = "A"
    B = "B"
    C = "C"
    D = "D"


class ShiftType(str, enum.Enum):
    DAY = "Day"
    NIGHT = "Night"
    OFF = "Off"
    LEAVE = "Leave"
    PUBLIC = "Public"
    OVERTIME = "Overtime"
    IN_LIEU = "InLieu"


class LeaveType(str, enum.Enum):
    ANNUAL = "ANNUAL"
    SICK = "SICK"
    UNPAID = "UNPAID"
    EMERGENCY = "EMERGENCY"


class LeaveStatus(str, enum.Enum):
    APPROVED = "APPROVED"
    PENDING = "PENDING"
    REJECTED = "REJECTED"


class RecordSource(str, enum.Enum):
    SCHEDULE = "SCHEDULE"
    MANUAL = "MANUAL"


class AuditActorType(str, enum.Enum):
    EMPLOYEE = "EMPLOYEE"
    ADMIN = "ADMIN"
    SYSTEM = "SYSTEM"


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    return [str(member.value) for member in enum_cls]


_JSON_DOCUMENT = JSON().with_variant(JSONB, "postgresql")


class Employee(Base):
    __tablename__ = "employees"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    base_group: Mapped[ShiftGroup] = mapped_column(
        Enum(ShiftGroup, name="shift_group"),
        nullable=False,
    )
    years_of_service: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    # Cached in-lieu credit; the in_lieu_records sum is authoritative.
    annual_leave_balance: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=0.0,
        server_default=text("0"),
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    schedule_revision: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("1"))
    schedule_updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __mapper_args__ = {"version_id_col": schedule_revision}

    group_changes: Mapped[list[GroupChange]] = relationship(back_populates="employee")
    shift_overrides: Mapped[list[ShiftOverride]] = relationship(back_populates="employee")
    leaves: Mapped[list[Leave]] = relationship(back_populates="employee")
    in_lieu_records: Mapped[list[InLieuRecord]] = relationship(back_populates="employee")
    overtime_records: Mapped[list[OvertimeRecord]] = relationship(back_populates="employee")


class GroupChange(Base):
    __tablename__ = "group_changes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    old_group: Mapped[ShiftGroup] = mapped_column(Enum(ShiftGroup, name="shift_group"), nullable=False)
    new_group: Mapped[ShiftGroup] = mapped_column(Enum(ShiftGroup, name="shift_group"), nullable=False)
    effective_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    requested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    employee: Mapped[Employee] = relationship(back_populates="group_changes")


class ShiftOverride(Base):
    __tablename__ = "shift_overrides"
    __table_args__ = (UniqueConstraint("employee_id", "day_date", name="uq_shift_overrides_employee_day"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    day_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    shift_type: Mapped[ShiftType] = mapped_column(
        Enum(ShiftType, name="shift_type", values_callable=_enum_values),
        nullable=False,
    )
    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    source: Mapped[RecordSource] = mapped_column(
        Enum(RecordSource, name="record_source"),
        nullable=False,
        default=RecordSource.SCHEDULE,
        server_default=text("'SCHEDULE'"),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    employee: Mapped[Employee] = relationship(back_populates="shift_overrides")


class Leave(Base):
    __tablename__ = "leaves"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    days_taken: Mapped[float] = mapped_column(Float, nullable=False, default=1.0, server_default=text("1"))
    type: Mapped[LeaveType] = mapped_column(
        Enum(LeaveType, name="leave_type"),
        nullable=False,
    )
    status: Mapped[LeaveStatus] = mapped_column(
        Enum(LeaveStatus, name="leave_status"),
        nullable=False,
        default=LeaveStatus.APPROVED,
        server_default=text("'APPROVED'"),
    )
    note: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    source: Mapped[RecordSource] = mapped_column(
        Enum(RecordSource, name="record_source"),
        nullable=False,
        default=RecordSource.MANUAL,
        server_default=text("'MANUAL'"),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    employee: Mapped[Employee] = relationship(back_populates="leaves")


class Holiday(Base):
    __tablename__ = "holidays"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    day_date: Mapped[date] = mapped_column(Date, nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_official: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )


class InLieuRecord(Base):
    __tablename__ = "in_lieu_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    days_count: Mapped[int] = mapped_column(Integer, nullable=False)
    leave_days_added: Mapped[float] = mapped_column(Float, nullable=False)
    source: Mapped[RecordSource] = mapped_column(
        Enum(RecordSource, name="record_source"),
        nullable=False,
        default=RecordSource.MANUAL,
        server_default=text("'MANUAL'"),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    employee: Mapped[Employee] = relationship(back_populates="in_lieu_records")


class OvertimeRecord(Base):
    __tablename__ = "overtime_records"
    __table_args__ = (UniqueConstraint("employee_id", "day_date", name="uq_overtime_records_employee_day"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    day_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    hours: Mapped[float] = mapped_column(Float, nullable=False)
    source: Mapped[RecordSource] = mapped_column(
        Enum(RecordSource, name="record_source"),
        nullable=False,
        default=RecordSource.SCHEDULE,
        server_default=text("'SCHEDULE'"),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    employee: Mapped[Employee] = relationship(back_populates="overtime_records")


class MonthlyOvertimeTotal(Base):
    __tablename__ = "monthly_overtime_totals"
    __table_args__ = (UniqueConstraint("employee_id", "month_start", name="uq_monthly_overtime_totals_employee_month"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    month_start: Mapped[date] = mapped_column(Date, nullable=False)
    total_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=lambda: datetime.now(timezone.utc),
    )


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ts_utc: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        index=True,
    )
    actor_type: Mapped[AuditActorType] = mapped_column(
        Enum(AuditActorType, name="audit_actor_type"),
        nullable=False,
    )
    actor_id: Mapped[str] = mapped_column(String(255), nullable=False)
    action: Mapped[str] = mapped_column(String(255), nullable=False)
    entity_type: Mapped[str | None] = mapped_column(String(255), nullable=True)
    entity_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    details: Mapped[dict[str, Any]] = mapped_column(
        _JSON_DOCUMENT,
        nullable=False,
        default=dict,
    )
