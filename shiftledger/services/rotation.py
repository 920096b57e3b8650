"""Fixed 8-day rotation shared by the four shift groups.

Each group works two day shifts, then two night shifts, then has four days off.
The table is anchored on 2025-01-01 and every calculation is done on calendar
dates, so results are stable across DST changes, leap years and month ends.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Literal, NamedTuple

from shiftledger.errors import InputError
from shiftledger.models import ShiftGroup, ShiftType

REFERENCE_DATE = date(2025, 1, 1)
CYCLE_LENGTH = 8


class PatternRow(NamedTuple):
    day_group: ShiftGroup
    day_ordinal: int
    night_group: ShiftGroup
    night_ordinal: int


ROTATION_PATTERN: tuple[PatternRow, ...] = (
    PatternRow(ShiftGroup.D, 2, ShiftGroup.C, 2),  # 2025-01-01
    PatternRow(ShiftGroup.B, 1, ShiftGroup.D, 1),
    PatternRow(ShiftGroup.B, 2, ShiftGroup.D, 2),
    PatternRow(ShiftGroup.A, 1, ShiftGroup.B, 1),
    PatternRow(ShiftGroup.A, 2, ShiftGroup.B, 2),
    PatternRow(ShiftGroup.C, 1, ShiftGroup.A, 1),
    PatternRow(ShiftGroup.C, 2, ShiftGroup.A, 2),
    PatternRow(ShiftGroup.D, 1, ShiftGroup.C, 1),
)

_SHIFT_HOURS: dict[ShiftType, tuple[time, time]] = {
    ShiftType.DAY: (time(7, 0), time(19, 0)),
    ShiftType.NIGHT: (time(19, 0), time(7, 0)),
}


@dataclass(frozen=True, slots=True)
class ShiftSlot:
    group: ShiftGroup
    is_first: bool


@dataclass(frozen=True, slots=True)
class ShiftGroups:
    day_shift: ShiftSlot
    night_shift: ShiftSlot

    @property
    def off(self) -> list[ShiftGroup]:
        return [
            group
            for group in ShiftGroup
            if group not in (self.day_shift.group, self.night_shift.group)
        ]


def validate_pattern(pattern: tuple[PatternRow, ...] = ROTATION_PATTERN) -> None:
    if len(pattern) != CYCLE_LENGTH:
        raise ValueError(f"Rotation pattern must have {CYCLE_LENGTH} rows, got {len(pattern)}")
    for index, row in enumerate(pattern):
        if row.day_group == row.night_group:
            raise ValueError(f"Rotation row {index} puts group {row.day_group.value} on both day and night shift")
        if row.day_ordinal not in (1, 2) or row.night_ordinal not in (1, 2):
            raise ValueError(f"Rotation row {index} has an ordinal outside 1..2")


validate_pattern()


def coerce_day(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError as exc:
            raise InputError(f"Invalid ISO date: {value!r}", {"value": value}) from exc
    raise InputError(f"Expected a date, got {type(value).__name__}", {"value": repr(value)})


def coerce_group(value: Any) -> ShiftGroup:
    if isinstance(value, ShiftGroup):
        return value
    try:
        return ShiftGroup(str(value).strip().upper())
    except ValueError as exc:
        raise InputError(f"Unknown shift group: {value!r}", {"value": repr(value)}) from exc


def cycle_day(day: date | str) -> int:
    offset = (coerce_day(day) - REFERENCE_DATE).days
    return offset % CYCLE_LENGTH


def shift_groups(day: date | str) -> ShiftGroups:
    row = ROTATION_PATTERN[cycle_day(day)]
    return ShiftGroups(
        day_shift=ShiftSlot(group=row.day_group, is_first=row.day_ordinal == 1),
        night_shift=ShiftSlot(group=row.night_group, is_first=row.night_ordinal == 1),
    )


def shift_type(day: date | str, group: ShiftGroup | str) -> ShiftType:
    resolved_group = coerce_group(group)
    groups = shift_groups(day)
    if groups.day_shift.group == resolved_group:
        return ShiftType.DAY
    if groups.night_shift.group == resolved_group:
        return ShiftType.NIGHT
    return ShiftType.OFF


def shift_number(day: date | str, group: ShiftGroup | str) -> Literal["1st", "2nd"] | None:
    resolved_group = coerce_group(group)
    groups = shift_groups(day)
    for slot in (groups.day_shift, groups.night_shift):
        if slot.group == resolved_group:
            return "1st" if slot.is_first else "2nd"
    return None


def group_assignments(day: date | str) -> dict[str, Any]:
    """Public view of who covers the date, independent of any employee override."""
    groups = shift_groups(day)
    return {
        "day_shift": [{"group": groups.day_shift.group, "is_first": groups.day_shift.is_first}],
        "night_shift": [{"group": groups.night_shift.group, "is_first": groups.night_shift.is_first}],
        "off": groups.off,
    }


def shift_work_hours(value: ShiftType) -> tuple[time, time] | None:
    return _SHIFT_HOURS.get(value)
