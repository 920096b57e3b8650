from __future__ import annotations

from datetime import date

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shiftledger.errors import InputError, NotFoundError
from shiftledger.models import Holiday
from shiftledger.schemas import HolidayCreateRequest


def create_holiday(db: Session, payload: HolidayCreateRequest) -> Holiday:
    holiday = Holiday(
        day_date=payload.day_date,
        name=payload.name,
        is_official=payload.is_official,
    )
    db.add(holiday)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise InputError(
            "A holiday already exists on that date",
            {"day_date": payload.day_date.isoformat()},
        ) from exc
    db.refresh(holiday)
    return holiday


def list_holidays(db: Session, *, start_date: date, end_date: date) -> list[Holiday]:
    if end_date < start_date:
        raise InputError("end_date must be greater than or equal to start_date")
    return list(
        db.scalars(
            select(Holiday)
            .where(Holiday.day_date >= start_date, Holiday.day_date <= end_date)
            .order_by(Holiday.day_date.asc())
        ).all()
    )


def delete_holiday(db: Session, holiday_id: int) -> None:
    holiday = db.get(Holiday, holiday_id)
    if holiday is None:
        raise NotFoundError("holiday", "Holiday not found", {"holiday_id": holiday_id})
    db.delete(holiday)
    db.commit()
