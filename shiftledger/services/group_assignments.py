from __future__ import annotations

from bisect import bisect_right
from collections.abc import Iterable
from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from shiftledger.errors import InputError, NotFoundError
from shiftledger.models import Employee, GroupChange, ShiftGroup
from shiftledger.schemas import GroupChangeCreateRequest, GroupChangeEntry
from shiftledger.services.rotation import coerce_day, coerce_group


def _change_sort_key(change: GroupChangeEntry) -> tuple[int, float]:
    return (
        change.effective_date.toordinal(),
        change.requested_at.timestamp() if change.requested_at else 0.0,
    )


class GroupAssignmentResolver:
    """Group in effect for a date, from effective-dated group changes.

    Changes are sorted once by (effective_date, requested_at); the latest change
    effective on or before a date wins, so same-day ties go to the most recent
    request. Lookups bisect the sorted effective dates.
    """

    def __init__(self, base_group: ShiftGroup | str, changes: Iterable[GroupChangeEntry] = ()) -> None:
        self.base_group = coerce_group(base_group)
        self._changes = sorted(changes, key=_change_sort_key)
        self._effective_dates = [change.effective_date for change in self._changes]

    @property
    def changes(self) -> list[GroupChangeEntry]:
        return list(self._changes)

    def _latest_change(self, day: date) -> GroupChangeEntry | None:
        index = bisect_right(self._effective_dates, day)
        if index == 0:
            return None
        return self._changes[index - 1]

    def effective_group(self, day: date | str) -> ShiftGroup:
        change = self._latest_change(coerce_day(day))
        if change is None:
            return self.base_group
        return change.new_group

    def has_change_on_or_before(self, day: date | str) -> bool:
        return self._latest_change(coerce_day(day)) is not None


def _to_entry(change: GroupChange) -> GroupChangeEntry:
    return GroupChangeEntry(
        effective_date=change.effective_date,
        old_group=change.old_group,
        new_group=change.new_group,
        requested_at=change.requested_at,
    )


def list_group_changes(db: Session, *, employee_id: int) -> list[GroupChange]:
    return list(
        db.scalars(
            select(GroupChange)
            .where(GroupChange.employee_id == employee_id)
            .order_by(GroupChange.effective_date.asc(), GroupChange.requested_at.asc(), GroupChange.id.asc())
        ).all()
    )


def build_group_resolver(db: Session, *, employee: Employee) -> GroupAssignmentResolver:
    changes = list_group_changes(db, employee_id=employee.id)
    return GroupAssignmentResolver(employee.base_group, [_to_entry(change) for change in changes])


def record_group_change(
    db: Session,
    *,
    employee_id: int,
    payload: GroupChangeCreateRequest,
) -> GroupChange:
    employee = db.get(Employee, employee_id)
    if employee is None:
        raise NotFoundError("employee", "Employee not found", {"employee_id": employee_id})

    resolver = build_group_resolver(db, employee=employee)
    old_group = resolver.effective_group(payload.effective_date)
    if old_group == payload.new_group:
        raise InputError(
            "Employee is already in that group on the effective date",
            {"group": payload.new_group.value, "effective_date": payload.effective_date.isoformat()},
        )

    change = GroupChange(
        employee_id=employee_id,
        old_group=old_group,
        new_group=payload.new_group,
        effective_date=payload.effective_date,
    )
    db.add(change)
    db.commit()
    db.refresh(change)
    return change
