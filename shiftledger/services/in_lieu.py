from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from shiftledger.errors import InputError, NotFoundError
from shiftledger.models import Employee, InLieuRecord, RecordSource
from shiftledger.schemas import InLieuCreateRequest, InLieuRead, InLieuSummaryRead
from shiftledger.settings import get_settings

logger = logging.getLogger("shiftledger.in_lieu")


def in_lieu_credit(days_count: int) -> float:
    return round(days_count * get_settings().in_lieu_rate_per_day, 3)


def credit_cached_balance(employee: Employee, amount: float) -> float:
    employee.annual_leave_balance = round(float(employee.annual_leave_balance or 0.0) + amount, 3)
    return employee.annual_leave_balance


def debit_cached_balance(employee: Employee, amount: float) -> float:
    employee.annual_leave_balance = max(0.0, round(float(employee.annual_leave_balance or 0.0) - amount, 3))
    return employee.annual_leave_balance


def find_covering_in_lieu(db: Session, *, employee_id: int, day: date) -> InLieuRecord | None:
    return db.scalar(
        select(InLieuRecord)
        .where(
            InLieuRecord.employee_id == employee_id,
            InLieuRecord.start_date <= day,
            InLieuRecord.end_date >= day,
        )
        .order_by(InLieuRecord.start_date.asc(), InLieuRecord.id.asc())
        .limit(1)
    )


def find_overlapping_in_lieu(db: Session, *, employee_id: int, start_date: date, end_date: date) -> InLieuRecord | None:
    return db.scalar(
        select(InLieuRecord)
        .where(
            InLieuRecord.employee_id == employee_id,
            InLieuRecord.start_date <= end_date,
            InLieuRecord.end_date >= start_date,
        )
        .limit(1)
    )


def add_in_lieu_record(
    db: Session,
    *,
    employee: Employee,
    start_date: date,
    end_date: date,
    source: RecordSource,
) -> InLieuRecord:
    """Write the ledger row first, then credit the cached balance. Flushes, never commits."""
    days_count = (end_date - start_date).days + 1
    record = InLieuRecord(
        employee_id=employee.id,
        start_date=start_date,
        end_date=end_date,
        days_count=days_count,
        leave_days_added=in_lieu_credit(days_count),
        source=source,
    )
    db.add(record)
    db.flush()
    credit_cached_balance(employee, record.leave_days_added)
    db.flush()
    return record


def remove_in_lieu_record(db: Session, *, employee: Employee, record: InLieuRecord) -> float:
    """Delete the ledger row before debiting, so an interruption leaves the balance high."""
    amount = float(record.leave_days_added)
    db.delete(record)
    db.flush()
    debit_cached_balance(employee, amount)
    db.flush()
    return amount


def create_in_lieu_record(db: Session, *, employee_id: int, payload: InLieuCreateRequest) -> InLieuRecord:
    employee = db.get(Employee, employee_id)
    if employee is None:
        raise NotFoundError("employee", "Employee not found", {"employee_id": employee_id})
    if payload.end_date < payload.start_date:
        raise InputError("end_date must be greater than or equal to start_date")

    overlapping = find_overlapping_in_lieu(
        db,
        employee_id=employee_id,
        start_date=payload.start_date,
        end_date=payload.end_date,
    )
    if overlapping is not None:
        raise InputError(
            "In-lieu period overlaps an existing record",
            {"record_id": overlapping.id},
        )

    record = add_in_lieu_record(
        db,
        employee=employee,
        start_date=payload.start_date,
        end_date=payload.end_date,
        source=RecordSource.MANUAL,
    )
    db.commit()
    db.refresh(record)
    logger.info(
        "in_lieu_record_created",
        extra={
            "employee_id": employee_id,
            "record_id": record.id,
            "days_count": record.days_count,
            "leave_days_added": record.leave_days_added,
        },
    )
    return record


def delete_in_lieu_record(db: Session, record_id: int) -> float:
    record = db.get(InLieuRecord, record_id)
    if record is None:
        raise NotFoundError("in_lieu_record", "In-lieu record not found", {"record_id": record_id})
    employee = db.get(Employee, record.employee_id)
    if employee is None:
        raise NotFoundError("employee", "Employee not found", {"employee_id": record.employee_id})

    removed = remove_in_lieu_record(db, employee=employee, record=record)
    db.commit()
    logger.info(
        "in_lieu_record_deleted",
        extra={"employee_id": employee.id, "record_id": record_id, "leave_days_removed": removed},
    )
    return removed


def list_in_lieu_records(db: Session, *, employee_id: int) -> list[InLieuRecord]:
    return list(
        db.scalars(
            select(InLieuRecord)
            .where(InLieuRecord.employee_id == employee_id)
            .order_by(InLieuRecord.start_date.asc(), InLieuRecord.id.asc())
        ).all()
    )


def summarize_in_lieu(db: Session, *, employee_id: int) -> InLieuSummaryRead:
    records = list_in_lieu_records(db, employee_id=employee_id)
    return InLieuSummaryRead(
        employee_id=employee_id,
        record_count=len(records),
        total_days=sum(record.days_count for record in records),
        total_leave_days_added=round(sum(record.leave_days_added for record in records), 3),
        records=[InLieuRead.model_validate(record) for record in records],
    )
