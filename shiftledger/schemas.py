from datetime import date, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from shiftledger.models import (
    AuditActorType,
    LeaveStatus,
    LeaveType,
    RecordSource,
    ShiftGroup,
    ShiftType,
)


class EmployeeCreate(BaseModel):
    full_name: str = Field(min_length=1, max_length=255)
    base_group: ShiftGroup
    years_of_service: int = Field(default=0, ge=0)
    is_active: bool = True


class EmployeeRead(BaseModel):
    id: int
    full_name: str
    base_group: ShiftGroup
    years_of_service: int
    annual_leave_balance: float
    is_active: bool
    schedule_revision: int

    model_config = ConfigDict(from_attributes=True)


# Per-day inputs of the calendar resolver. Keys may be camelCase or snake_case;
# unknown keys are rejected so the date degrades instead of resolving wrong.

_ENTRY_CONFIG = ConfigDict(frozen=True, extra="forbid", alias_generator=to_camel, populate_by_name=True)


class HolidayEntry(BaseModel):
    name: str
    is_official: bool = True

    model_config = _ENTRY_CONFIG


class LeaveDayEntry(BaseModel):
    type: str
    notes: str | None = None

    model_config = _ENTRY_CONFIG


class OverrideEntry(BaseModel):
    type: ShiftType
    notes: str | None = None

    model_config = _ENTRY_CONFIG


class GroupChangeEntry(BaseModel):
    effective_date: date
    new_group: ShiftGroup
    old_group: ShiftGroup | None = None
    requested_at: datetime | None = None
    employee_id: int | None = None

    model_config = _ENTRY_CONFIG


# Calendar output.


class ResolvedShift(BaseModel):
    type: ShiftType
    is_overridden: bool = False
    original_type: ShiftType | None = None
    shift_number: Literal["1st", "2nd"] | None = None
    notes: str | None = None


class GroupSlot(BaseModel):
    group: ShiftGroup
    is_first: bool


class GroupAssignments(BaseModel):
    day_shift: list[GroupSlot]
    night_shift: list[GroupSlot]
    off: list[ShiftGroup]


class HolidayInfo(BaseModel):
    date: date
    name: str
    is_official: bool


class CalendarDay(BaseModel):
    date: date
    day_of_month: int
    day_of_week: int
    is_current_month: bool
    is_today: bool
    is_weekend: bool
    resolved_shift: ResolvedShift
    holiday: HolidayInfo | None = None
    group_assignments: GroupAssignments
    effective_group: ShiftGroup
    has_group_change: bool = False
    warnings: list[str] = Field(default_factory=list)


class MonthData(BaseModel):
    year: int
    month: int
    name: str
    days: list[CalendarDay]
    warnings: list[str] = Field(default_factory=list)


class EmployeeCalendarResponse(BaseModel):
    employee_id: int
    base_group: ShiftGroup
    schedule_revision: int
    month: MonthData


# Shift mutation.


class ShiftUpdateRequest(BaseModel):
    date: date
    shift_type: ShiftType
    notes: str | None = Field(default=None, max_length=1000)
    expected_revision: int | None = Field(default=None, ge=1)


class SyncIssue(BaseModel):
    code: str
    step: str
    message: str
    retryable: bool = True
    details: dict[str, Any] = Field(default_factory=dict)


class ShiftUpdateResult(BaseModel):
    success: bool
    action: Literal["created", "updated", "deleted"]
    partial: bool = False
    employee_id: int
    date: date
    previous_type: ShiftType | None = None
    shift_type: ShiftType | None = None
    warnings: list[str] = Field(default_factory=list)
    issues: list[SyncIssue] = Field(default_factory=list)
    invalidate: list[str] = Field(default_factory=list)
    revision: int


# Group changes.


class GroupChangeCreateRequest(BaseModel):
    new_group: ShiftGroup
    effective_date: date


class GroupChangeRead(BaseModel):
    id: int
    employee_id: int
    old_group: ShiftGroup
    new_group: ShiftGroup
    effective_date: date
    requested_at: datetime

    model_config = ConfigDict(from_attributes=True)


# Ledgers.


class LeaveCreateRequest(BaseModel):
    start_date: date
    end_date: date
    type: LeaveType = LeaveType.ANNUAL
    status: LeaveStatus = LeaveStatus.APPROVED
    days_taken: float | None = Field(default=None, gt=0)
    note: str | None = None

    @model_validator(mode="after")
    def validate_range(self) -> "LeaveCreateRequest":
        if self.end_date < self.start_date:
            raise ValueError("end_date must be greater than or equal to start_date")
        return self


class LeaveRead(BaseModel):
    id: int
    employee_id: int
    start_date: date
    end_date: date
    days_taken: float
    type: LeaveType
    status: LeaveStatus
    note: str | None
    source: RecordSource
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class LeaveBalanceRead(BaseModel):
    employee_id: int
    year: int
    base_entitlement: float
    in_lieu_days: float
    leave_taken: float
    remaining: float
    cached_in_lieu_balance: float
    cache_drift: float


class LeaveBalanceReconcileResponse(BaseModel):
    employee_id: int
    previous_cached_balance: float
    cached_balance: float
    adjusted: bool


class InLieuCreateRequest(BaseModel):
    start_date: date
    end_date: date

    @model_validator(mode="after")
    def validate_range(self) -> "InLieuCreateRequest":
        if self.end_date < self.start_date:
            raise ValueError("end_date must be greater than or equal to start_date")
        return self


class InLieuRead(BaseModel):
    id: int
    employee_id: int
    start_date: date
    end_date: date
    days_count: int
    leave_days_added: float
    source: RecordSource
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class InLieuSummaryRead(BaseModel):
    employee_id: int
    record_count: int
    total_days: int
    total_leave_days_added: float
    records: list[InLieuRead]


class OvertimeRecordRead(BaseModel):
    id: int
    employee_id: int
    day_date: date
    hours: float
    source: RecordSource

    model_config = ConfigDict(from_attributes=True)


class OvertimeSummaryRead(BaseModel):
    employee_id: int
    year: int
    month: int
    total_hours: float
    persisted_total_hours: float | None
    records: list[OvertimeRecordRead]


class HolidayCreateRequest(BaseModel):
    day_date: date
    name: str = Field(min_length=1, max_length=255)
    is_official: bool = True

    model_config = ConfigDict(str_strip_whitespace=True)


class HolidayRead(BaseModel):
    id: int
    day_date: date
    name: str
    is_official: bool

    model_config = ConfigDict(from_attributes=True)


class AuditLogRead(BaseModel):
    id: int
    ts_utc: datetime
    actor_type: AuditActorType
    actor_id: str
    action: str
    entity_type: str | None
    entity_id: str | None
    success: bool
    details: dict[str, Any]

    model_config = ConfigDict(from_attributes=True)
