from __future__ import annotations

from calendar import monthrange
from datetime import date

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from shiftledger.models import MonthlyOvertimeTotal, OvertimeRecord, RecordSource
from shiftledger.schemas import OvertimeRecordRead, OvertimeSummaryRead
from shiftledger.settings import get_settings


def _month_bounds(year: int, month: int) -> tuple[date, date]:
    return date(year, month, 1), date(year, month, monthrange(year, month)[1])


def find_overtime_record(db: Session, *, employee_id: int, day: date) -> OvertimeRecord | None:
    return db.scalar(
        select(OvertimeRecord).where(
            OvertimeRecord.employee_id == employee_id,
            OvertimeRecord.day_date == day,
        )
    )


def upsert_overtime_record(db: Session, *, employee_id: int, day: date) -> OvertimeRecord:
    hours = get_settings().overtime_hours_per_day
    record = find_overtime_record(db, employee_id=employee_id, day=day)
    if record is None:
        record = OvertimeRecord(
            employee_id=employee_id,
            day_date=day,
            hours=hours,
            source=RecordSource.SCHEDULE,
        )
        db.add(record)
    else:
        record.hours = hours
    db.flush()
    return record


def recompute_monthly_overtime(db: Session, *, employee_id: int, year: int, month: int) -> float:
    """Persist the month's total as the sum of its per-date overtime hours. Flushes, never commits."""
    start, end = _month_bounds(year, month)
    total = db.scalar(
        select(func.coalesce(func.sum(OvertimeRecord.hours), 0.0)).where(
            OvertimeRecord.employee_id == employee_id,
            OvertimeRecord.day_date >= start,
            OvertimeRecord.day_date <= end,
        )
    )
    total_hours = round(float(total or 0.0), 2)

    row = db.scalar(
        select(MonthlyOvertimeTotal).where(
            MonthlyOvertimeTotal.employee_id == employee_id,
            MonthlyOvertimeTotal.month_start == start,
        )
    )
    if row is None:
        row = MonthlyOvertimeTotal(employee_id=employee_id, month_start=start, total_hours=total_hours)
        db.add(row)
    else:
        row.total_hours = total_hours
    db.flush()
    return total_hours


def get_overtime_summary(db: Session, *, employee_id: int, year: int, month: int) -> OvertimeSummaryRead:
    start, end = _month_bounds(year, month)
    records = list(
        db.scalars(
            select(OvertimeRecord)
            .where(
                OvertimeRecord.employee_id == employee_id,
                OvertimeRecord.day_date >= start,
                OvertimeRecord.day_date <= end,
            )
            .order_by(OvertimeRecord.day_date.asc())
        ).all()
    )
    persisted = db.scalar(
        select(MonthlyOvertimeTotal.total_hours).where(
            MonthlyOvertimeTotal.employee_id == employee_id,
            MonthlyOvertimeTotal.month_start == start,
        )
    )
    return OvertimeSummaryRead(
        employee_id=employee_id,
        year=year,
        month=month,
        total_hours=round(sum(record.hours for record in records), 2),
        persisted_total_hours=persisted,
        records=[OvertimeRecordRead.model_validate(record) for record in records],
    )
