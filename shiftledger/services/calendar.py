from __future__ import annotations

from calendar import month_name, monthrange
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from functools import lru_cache
from typing import Any, TypeVar
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session

from shiftledger.errors import InputError, NotFoundError
from shiftledger.models import Employee, Holiday, Leave, LeaveStatus, ShiftOverride, ShiftType
from shiftledger.schemas import (
    CalendarDay,
    EmployeeCalendarResponse,
    GroupAssignments,
    GroupChangeEntry,
    HolidayEntry,
    HolidayInfo,
    LeaveDayEntry,
    MonthData,
    OverrideEntry,
    ResolvedShift,
)
from shiftledger.services import rotation
from shiftledger.services.group_assignments import GroupAssignmentResolver, list_group_changes
from shiftledger.settings import get_settings

logger = logging.getLogger("shiftledger.calendar")

EntryT = TypeVar("EntryT", bound=BaseModel)


@lru_cache
def _schedule_timezone() -> ZoneInfo:
    raw_name = (get_settings().schedule_timezone or "").strip() or "UTC"
    try:
        return ZoneInfo(raw_name)
    except ZoneInfoNotFoundError:
        logger.warning("schedule_timezone_invalid", extra={"timezone": raw_name})
        return ZoneInfo("UTC")


def local_today() -> date:
    return datetime.now(_schedule_timezone()).date()


@dataclass(frozen=True, slots=True)
class DayInputs:
    override: OverrideEntry | None = None
    leave: LeaveDayEntry | None = None
    holiday: HolidayEntry | None = None


@dataclass(frozen=True, slots=True)
class LayerHit:
    layer: str
    shift_type: ShiftType
    notes: str | None = None


def _override_layer(inputs: DayInputs) -> LayerHit | None:
    if inputs.override is None:
        return None
    return LayerHit("override", inputs.override.type, inputs.override.notes)


def _leave_layer(inputs: DayInputs) -> LayerHit | None:
    if inputs.leave is None:
        return None
    return LayerHit("leave", ShiftType.LEAVE, inputs.leave.notes or inputs.leave.type)


def _holiday_layer(inputs: DayInputs) -> LayerHit | None:
    if inputs.holiday is None or not inputs.holiday.is_official:
        return None
    return LayerHit("holiday", ShiftType.PUBLIC, inputs.holiday.name)


# Highest priority first. A new layer only needs a slot in this list.
RESOLUTION_LAYERS: tuple[tuple[str, Callable[[DayInputs], LayerHit | None]], ...] = (
    ("override", _override_layer),
    ("leave", _leave_layer),
    ("holiday", _holiday_layer),
)


def resolve_day_shift(
    base_type: ShiftType,
    shift_number: str | None,
    inputs: DayInputs,
    layers: tuple[tuple[str, Callable[[DayInputs], LayerHit | None]], ...] = RESOLUTION_LAYERS,
) -> ResolvedShift:
    hits: list[LayerHit] = []
    for _name, rule in layers:
        hit = rule(inputs)
        if hit is not None:
            hits.append(hit)

    if not hits:
        number = shift_number if base_type in (ShiftType.DAY, ShiftType.NIGHT) else None
        return ResolvedShift(type=base_type, shift_number=number)

    winner = hits[0]
    # What the day would be if the winning layer were absent.
    original_type = hits[1].shift_type if len(hits) > 1 else base_type
    return ResolvedShift(
        type=winner.shift_type,
        is_overridden=True,
        original_type=original_type,
        notes=winner.notes,
    )


def month_grid(year: int, month: int) -> list[date]:
    """Sunday-to-Saturday weeks covering the whole month."""
    if isinstance(year, bool) or not isinstance(year, int) or isinstance(month, bool) or not isinstance(month, int):
        raise InputError("year and month must be integers", {"year": repr(year), "month": repr(month)})
    if not 1 <= month <= 12:
        raise InputError("month must be between 1 and 12", {"month": month})
    try:
        first = date(year, month, 1)
        last = date(year, month, monthrange(year, month)[1])
        start = first - timedelta(days=(first.weekday() + 1) % 7)
        end = last + timedelta(days=6 - (last.weekday() + 1) % 7)
    except (ValueError, OverflowError) as exc:
        raise InputError("year is outside the supported calendar range", {"year": year}) from exc
    return [start + timedelta(days=offset) for offset in range((end - start).days + 1)]


def _normalize_day_map(
    raw: Mapping[Any, Any] | None,
    model: type[EntryT],
    label: str,
    month_warnings: list[str],
) -> tuple[dict[date, EntryT], dict[date, list[str]]]:
    if raw is None:
        raise InputError(f"{label} map is required", {"input": label})
    if not isinstance(raw, Mapping):
        raise InputError(f"{label} must be a mapping of ISO dates", {"input": label})

    entries: dict[date, EntryT] = {}
    malformed: dict[date, list[str]] = {}
    for key, value in raw.items():
        try:
            day = rotation.coerce_day(key)
        except InputError:
            month_warnings.append(f"{label}: ignored entry with invalid date key {key!r}")
            continue
        try:
            entries[day] = value if isinstance(value, model) else model.model_validate(value)
        except ValidationError as exc:
            malformed.setdefault(day, []).append(
                f"{label}: malformed entry ignored ({exc.error_count()} validation errors)"
            )
    return entries, malformed


def _normalize_group_changes(
    raw: Iterable[Any] | None,
    month_warnings: list[str],
) -> list[GroupChangeEntry]:
    if raw is None:
        raise InputError("group_changes list is required", {"input": "group_changes"})
    changes: list[GroupChangeEntry] = []
    for index, item in enumerate(raw):
        try:
            changes.append(item if isinstance(item, GroupChangeEntry) else GroupChangeEntry.model_validate(item))
        except ValidationError:
            month_warnings.append(f"group_changes: ignored malformed change at position {index}")
    return changes


def generate_month_calendar(
    year: int,
    month: int,
    base_group: Any,
    holidays: Mapping[Any, Any] | None,
    leaves: Mapping[Any, Any] | None,
    overrides: Mapping[Any, Any] | None,
    group_changes: Iterable[Any] | None,
    *,
    today: date | None = None,
    log: logging.Logger | None = None,
) -> MonthData:
    """Resolve every day of a week-padded month grid for one employee.

    Pure apart from ``today``, which defaults to the current date in the
    configured schedule timezone. Per-day resolution order is override, leave,
    official holiday, then the rotation. Padding days outside the month only get
    the rotation.
    """
    log = log or logger
    days = month_grid(year, month)
    group = rotation.coerce_group(base_group)
    current_day = today or local_today()

    month_warnings: list[str] = []
    holiday_map, bad_holidays = _normalize_day_map(holidays, HolidayEntry, "holidays", month_warnings)
    leave_map, bad_leaves = _normalize_day_map(leaves, LeaveDayEntry, "leaves", month_warnings)
    override_map, bad_overrides = _normalize_day_map(overrides, OverrideEntry, "overrides", month_warnings)
    resolver = GroupAssignmentResolver(group, _normalize_group_changes(group_changes, month_warnings))

    calendar_days: list[CalendarDay] = []
    in_lieu_days = 0
    for day in days:
        effective_group = resolver.effective_group(day)
        base_type = rotation.shift_type(day, effective_group)
        number = rotation.shift_number(day, effective_group)
        is_current_month = day.month == month

        day_warnings = bad_overrides.get(day, []) + bad_leaves.get(day, []) + bad_holidays.get(day, [])
        if is_current_month and not day_warnings:
            inputs = DayInputs(
                override=override_map.get(day),
                leave=leave_map.get(day),
                holiday=holiday_map.get(day),
            )
        else:
            inputs = DayInputs()
        resolved = resolve_day_shift(base_type, number, inputs)
        if is_current_month and resolved.type == ShiftType.IN_LIEU:
            in_lieu_days += 1

        holiday = holiday_map.get(day) if is_current_month else None
        calendar_days.append(
            CalendarDay(
                date=day,
                day_of_month=day.day,
                day_of_week=(day.weekday() + 1) % 7,
                is_current_month=is_current_month,
                is_today=day == current_day,
                is_weekend=day.weekday() >= 5,
                resolved_shift=resolved,
                holiday=(
                    HolidayInfo(date=day, name=holiday.name, is_official=holiday.is_official)
                    if holiday is not None
                    else None
                ),
                group_assignments=GroupAssignments.model_validate(rotation.group_assignments(day)),
                effective_group=effective_group,
                has_group_change=resolver.has_change_on_or_before(day),
                warnings=day_warnings,
            )
        )

    in_lieu_overrides = sum(
        1 for day, entry in override_map.items() if entry.type == ShiftType.IN_LIEU and day.year == year and day.month == month
    )
    if in_lieu_overrides != in_lieu_days:
        month_warnings.append(
            f"{in_lieu_overrides - in_lieu_days} InLieu overrides in this month were not applied"
        )
    log.debug(
        "calendar_generated",
        extra={
            "year": year,
            "month": month,
            "base_group": group.value,
            "grid_days": len(calendar_days),
            "overrides": len(override_map),
            "leaves": len(leave_map),
            "holidays": len(holiday_map),
            "group_changes": len(resolver.changes),
            "in_lieu_days": in_lieu_days,
            "warning_count": len(month_warnings) + sum(len(item.warnings) for item in calendar_days),
        },
    )

    return MonthData(
        year=year,
        month=month,
        name=month_name[month],
        days=calendar_days,
        warnings=month_warnings,
    )


@dataclass(slots=True)
class MonthInputs:
    holidays: dict[str, HolidayEntry] = field(default_factory=dict)
    leaves: dict[str, LeaveDayEntry] = field(default_factory=dict)
    overrides: dict[str, OverrideEntry] = field(default_factory=dict)
    group_changes: list[GroupChangeEntry] = field(default_factory=list)


def load_month_inputs(db: Session, *, employee: Employee, year: int, month: int) -> MonthInputs:
    grid = month_grid(year, month)
    start, end = grid[0], grid[-1]
    inputs = MonthInputs()

    for holiday in db.scalars(
        select(Holiday).where(Holiday.day_date >= start, Holiday.day_date <= end).order_by(Holiday.day_date.asc())
    ).all():
        inputs.holidays[holiday.day_date.isoformat()] = HolidayEntry(
            name=holiday.name,
            is_official=holiday.is_official,
        )

    leaves = db.scalars(
        select(Leave)
        .where(
            Leave.employee_id == employee.id,
            Leave.status == LeaveStatus.APPROVED,
            Leave.start_date <= end,
            Leave.end_date >= start,
        )
        .order_by(Leave.start_date.asc(), Leave.id.asc())
    ).all()
    for leave in leaves:
        day = max(leave.start_date, start)
        last = min(leave.end_date, end)
        while day <= last:
            inputs.leaves.setdefault(day.isoformat(), LeaveDayEntry(type=leave.type.value, notes=leave.note))
            day += timedelta(days=1)

    for override in db.scalars(
        select(ShiftOverride)
        .where(
            ShiftOverride.employee_id == employee.id,
            ShiftOverride.day_date >= start,
            ShiftOverride.day_date <= end,
        )
        .order_by(ShiftOverride.day_date.asc())
    ).all():
        inputs.overrides[override.day_date.isoformat()] = OverrideEntry(type=override.shift_type, notes=override.notes)

    inputs.group_changes = [
        GroupChangeEntry(
            effective_date=change.effective_date,
            old_group=change.old_group,
            new_group=change.new_group,
            requested_at=change.requested_at,
        )
        for change in list_group_changes(db, employee_id=employee.id)
    ]
    return inputs


def build_employee_calendar(
    db: Session,
    *,
    employee_id: int,
    year: int,
    month: int,
    today: date | None = None,
) -> EmployeeCalendarResponse:
    employee = db.get(Employee, employee_id)
    if employee is None:
        raise NotFoundError("employee", "Employee not found", {"employee_id": employee_id})

    inputs = load_month_inputs(db, employee=employee, year=year, month=month)
    month_data = generate_month_calendar(
        year,
        month,
        employee.base_group,
        inputs.holidays,
        inputs.leaves,
        inputs.overrides,
        inputs.group_changes,
        today=today,
    )
    return EmployeeCalendarResponse(
        employee_id=employee.id,
        base_group=employee.base_group,
        schedule_revision=employee.schedule_revision,
        month=month_data,
    )
