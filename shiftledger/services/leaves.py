from __future__ import annotations

import logging
from calendar import monthrange
from datetime import date

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from shiftledger.errors import InputError, NotFoundError
from shiftledger.models import Employee, InLieuRecord, Leave, LeaveStatus, LeaveType, RecordSource
from shiftledger.schemas import LeaveBalanceRead, LeaveBalanceReconcileResponse, LeaveCreateRequest
from shiftledger.settings import base_leave_entitlement

logger = logging.getLogger("shiftledger.leaves")


def _ensure_employee_exists(db: Session, employee_id: int) -> Employee:
    employee = db.get(Employee, employee_id)
    if employee is None:
        raise NotFoundError("employee", "Employee not found", {"employee_id": employee_id})
    return employee


def find_covering_leave(db: Session, *, employee_id: int, day: date) -> Leave | None:
    return db.scalar(
        select(Leave)
        .where(
            Leave.employee_id == employee_id,
            Leave.status == LeaveStatus.APPROVED,
            Leave.start_date <= day,
            Leave.end_date >= day,
        )
        .order_by(Leave.start_date.asc(), Leave.id.asc())
        .limit(1)
    )


def add_schedule_leave(db: Session, *, employee_id: int, day: date, note: str | None) -> Leave:
    leave = Leave(
        employee_id=employee_id,
        start_date=day,
        end_date=day,
        days_taken=1.0,
        type=LeaveType.ANNUAL,
        status=LeaveStatus.APPROVED,
        note=note,
        source=RecordSource.SCHEDULE,
    )
    db.add(leave)
    db.flush()
    return leave


def create_leave(db: Session, *, employee_id: int, payload: LeaveCreateRequest) -> Leave:
    _ensure_employee_exists(db, employee_id)

    if payload.end_date < payload.start_date:
        raise InputError("end_date must be greater than or equal to start_date")

    days_taken = payload.days_taken
    if days_taken is None:
        days_taken = float((payload.end_date - payload.start_date).days + 1)

    leave = Leave(
        employee_id=employee_id,
        start_date=payload.start_date,
        end_date=payload.end_date,
        days_taken=days_taken,
        type=payload.type,
        status=payload.status,
        note=payload.note,
        source=RecordSource.MANUAL,
    )
    db.add(leave)
    db.commit()
    db.refresh(leave)
    return leave


def list_leaves(
    db: Session,
    *,
    employee_id: int,
    year: int | None,
    month: int | None,
) -> list[Leave]:
    if month is not None and year is None:
        raise InputError("month requires year")

    stmt = select(Leave).where(Leave.employee_id == employee_id).order_by(Leave.start_date.asc(), Leave.id.asc())

    if year is not None:
        if month is not None:
            start = date(year, month, 1)
            end = date(year, month, monthrange(year, month)[1])
        else:
            start = date(year, 1, 1)
            end = date(year, 12, 31)
        stmt = stmt.where(
            Leave.start_date <= end,
            Leave.end_date >= start,
        )

    return list(db.scalars(stmt).all())


def delete_leave(db: Session, leave_id: int) -> None:
    leave = db.get(Leave, leave_id)
    if leave is None:
        raise NotFoundError("leave", "Leave not found", {"leave_id": leave_id})

    db.delete(leave)
    db.commit()


def in_lieu_ledger_total(db: Session, *, employee_id: int) -> float:
    total = db.scalar(
        select(func.coalesce(func.sum(InLieuRecord.leave_days_added), 0.0)).where(
            InLieuRecord.employee_id == employee_id
        )
    )
    return round(float(total or 0.0), 3)


def annual_leave_taken(db: Session, *, employee_id: int, year: int) -> float:
    total = db.scalar(
        select(func.coalesce(func.sum(Leave.days_taken), 0.0)).where(
            Leave.employee_id == employee_id,
            Leave.status == LeaveStatus.APPROVED,
            Leave.type == LeaveType.ANNUAL,
            Leave.start_date >= date(year, 1, 1),
            Leave.start_date <= date(year, 12, 31),
        )
    )
    return round(float(total or 0.0), 3)


def compute_leave_balance(db: Session, *, employee_id: int, year: int) -> LeaveBalanceRead:
    """Remaining leave = base entitlement + in-lieu credit - annual leave taken this year."""
    employee = _ensure_employee_exists(db, employee_id)

    base = base_leave_entitlement(employee.years_of_service)
    in_lieu = in_lieu_ledger_total(db, employee_id=employee_id)
    taken = annual_leave_taken(db, employee_id=employee_id, year=year)
    cached = float(employee.annual_leave_balance or 0.0)

    return LeaveBalanceRead(
        employee_id=employee_id,
        year=year,
        base_entitlement=base,
        in_lieu_days=in_lieu,
        leave_taken=taken,
        remaining=round(base + in_lieu - taken, 2),
        cached_in_lieu_balance=round(cached, 3),
        cache_drift=round(cached - in_lieu, 3),
    )


def reconcile_cached_balance(db: Session, *, employee_id: int) -> LeaveBalanceReconcileResponse:
    """Rewrite the cached in-lieu balance from the in-lieu ledger sum."""
    employee = _ensure_employee_exists(db, employee_id)
    previous = round(float(employee.annual_leave_balance or 0.0), 3)
    ledger_total = in_lieu_ledger_total(db, employee_id=employee_id)

    adjusted = abs(previous - ledger_total) >= 0.001
    if adjusted:
        employee.annual_leave_balance = ledger_total
        db.commit()
        logger.warning(
            "leave_balance_reconciled",
            extra={
                "employee_id": employee_id,
                "previous_cached_balance": previous,
                "ledger_total": ledger_total,
            },
        )

    return LeaveBalanceReconcileResponse(
        employee_id=employee_id,
        previous_cached_balance=previous,
        cached_balance=ledger_total if adjusted else previous,
        adjusted=adjusted,
    )
