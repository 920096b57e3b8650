"""Apply a shift override and keep the dependent ledgers in step with it.

Every call runs in one transaction: the employee row is locked, the override row
is upserted, then each ledger effect of the (previous, target) transition runs in
its own SAVEPOINT. A failed ledger step is rolled back alone and reported as a
partial success; a failed override write fails the whole call.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from shiftledger.errors import ApiError, ConcurrencyError, ConsistencyError, NotFoundError
from shiftledger.models import Employee, RecordSource, ShiftOverride, ShiftType
from shiftledger.schemas import ShiftUpdateRequest, ShiftUpdateResult, SyncIssue
from shiftledger.services.in_lieu import add_in_lieu_record, find_covering_in_lieu, remove_in_lieu_record
from shiftledger.services.leaves import add_schedule_leave, find_covering_leave
from shiftledger.services.overtime import find_overtime_record, recompute_monthly_overtime, upsert_overtime_record
from shiftledger.services.rotation import coerce_day

logger = logging.getLogger("shiftledger.shift_sync")


class LedgerEffect(str, enum.Enum):
    DEBIT_IN_LIEU = "debit_in_lieu"
    RELEASE_LEAVE = "release_leave"
    RELEASE_OVERTIME = "release_overtime"
    CREDIT_IN_LIEU = "credit_in_lieu"
    BOOK_LEAVE = "book_leave"
    BOOK_OVERTIME = "book_overtime"


def _effects_for(previous: ShiftType | None, target: ShiftType | None) -> tuple[LedgerEffect, ...]:
    effects: list[LedgerEffect] = []
    # Exits run before entries.
    if previous == ShiftType.IN_LIEU and target != ShiftType.IN_LIEU:
        effects.append(LedgerEffect.DEBIT_IN_LIEU)
    if previous == ShiftType.LEAVE and target != ShiftType.LEAVE:
        effects.append(LedgerEffect.RELEASE_LEAVE)
    if previous == ShiftType.OVERTIME and target != ShiftType.OVERTIME:
        effects.append(LedgerEffect.RELEASE_OVERTIME)
    if target == ShiftType.IN_LIEU and previous != ShiftType.IN_LIEU:
        effects.append(LedgerEffect.CREDIT_IN_LIEU)
    if target == ShiftType.LEAVE and previous != ShiftType.LEAVE:
        effects.append(LedgerEffect.BOOK_LEAVE)
    if target == ShiftType.OVERTIME:
        effects.append(LedgerEffect.BOOK_OVERTIME)
    return tuple(effects)


# None stands for "no override row".
OVERRIDE_STATES: tuple[ShiftType | None, ...] = (None, *ShiftType)

TRANSITIONS: dict[tuple[ShiftType | None, ShiftType | None], tuple[LedgerEffect, ...]] = {
    (previous, target): _effects_for(previous, target)
    for previous in OVERRIDE_STATES
    for target in OVERRIDE_STATES
}

_EFFECT_QUERY_KEYS: dict[LedgerEffect, tuple[str, ...]] = {
    LedgerEffect.DEBIT_IN_LIEU: ("in-lieu", "leave-balance"),
    LedgerEffect.CREDIT_IN_LIEU: ("in-lieu", "leave-balance"),
    LedgerEffect.RELEASE_LEAVE: ("leaves", "leave-balance"),
    LedgerEffect.BOOK_LEAVE: ("leaves", "leave-balance"),
    LedgerEffect.RELEASE_OVERTIME: ("overtime",),
    LedgerEffect.BOOK_OVERTIME: ("overtime",),
}


def query_keys_for(employee_id: int, day: date, effects: tuple[LedgerEffect, ...]) -> list[str]:
    month_key = f"{day:%Y-%m}"
    keys = [f"shift-overrides:{employee_id}:{month_key}"]
    for effect in effects:
        for name in _EFFECT_QUERY_KEYS[effect]:
            key = f"{name}:{employee_id}:{month_key}" if name == "overtime" else f"{name}:{employee_id}"
            if key not in keys:
                keys.append(key)
    return keys


@dataclass
class _SyncContext:
    employee: Employee
    day: date
    previous: ShiftType | None
    target: ShiftType | None
    notes: str | None
    log: logging.Logger
    warnings: list[str] = field(default_factory=list)
    issues: list[SyncIssue] = field(default_factory=list)

    def log_extra(self, **values: object) -> dict[str, object]:
        return {
            "employee_id": self.employee.id,
            "day_date": self.day.isoformat(),
            "previous_type": self.previous.value if self.previous else None,
            "target_type": self.target.value if self.target else None,
            **values,
        }


def _credit_in_lieu(db: Session, ctx: _SyncContext) -> None:
    existing = find_covering_in_lieu(db, employee_id=ctx.employee.id, day=ctx.day)
    if existing is not None:
        ctx.log.info("in_lieu_already_recorded", extra=ctx.log_extra(record_id=existing.id))
        return
    add_in_lieu_record(
        db,
        employee=ctx.employee,
        start_date=ctx.day,
        end_date=ctx.day,
        source=RecordSource.SCHEDULE,
    )


def _debit_in_lieu(db: Session, ctx: _SyncContext) -> None:
    record = find_covering_in_lieu(db, employee_id=ctx.employee.id, day=ctx.day)
    if record is None:
        raise NotFoundError("in_lieu_record", f"No in-lieu record covers {ctx.day.isoformat()}")
    remove_in_lieu_record(db, employee=ctx.employee, record=record)


def _book_leave(db: Session, ctx: _SyncContext) -> None:
    if find_covering_leave(db, employee_id=ctx.employee.id, day=ctx.day) is not None:
        return
    add_schedule_leave(db, employee_id=ctx.employee.id, day=ctx.day, note=ctx.notes)


def _release_leave(db: Session, ctx: _SyncContext) -> None:
    leave = find_covering_leave(db, employee_id=ctx.employee.id, day=ctx.day)
    if leave is None:
        raise NotFoundError("leave", f"No approved leave covers {ctx.day.isoformat()}")
    if leave.source != RecordSource.SCHEDULE or leave.start_date != leave.end_date:
        ctx.warnings.append(
            f"release_leave: leave {leave.id} ({leave.start_date.isoformat()}..{leave.end_date.isoformat()}) "
            "was not booked from the schedule and was left in place"
        )
        return
    db.delete(leave)
    db.flush()


def _book_overtime(db: Session, ctx: _SyncContext) -> None:
    upsert_overtime_record(db, employee_id=ctx.employee.id, day=ctx.day)
    recompute_monthly_overtime(db, employee_id=ctx.employee.id, year=ctx.day.year, month=ctx.day.month)


def _release_overtime(db: Session, ctx: _SyncContext) -> None:
    record = find_overtime_record(db, employee_id=ctx.employee.id, day=ctx.day)
    if record is None:
        ctx.warnings.append(f"release_overtime: no overtime record on {ctx.day.isoformat()}; total recomputed")
        ctx.log.warning("shift_sync_ledger_row_missing", extra=ctx.log_extra(effect="release_overtime"))
    else:
        db.delete(record)
        db.flush()
    recompute_monthly_overtime(db, employee_id=ctx.employee.id, year=ctx.day.year, month=ctx.day.month)


_EFFECT_HANDLERS: dict[LedgerEffect, Callable[[Session, _SyncContext], None]] = {
    LedgerEffect.DEBIT_IN_LIEU: _debit_in_lieu,
    LedgerEffect.RELEASE_LEAVE: _release_leave,
    LedgerEffect.RELEASE_OVERTIME: _release_overtime,
    LedgerEffect.CREDIT_IN_LIEU: _credit_in_lieu,
    LedgerEffect.BOOK_LEAVE: _book_leave,
    LedgerEffect.BOOK_OVERTIME: _book_overtime,
}


def _run_effect(db: Session, ctx: _SyncContext, effect: LedgerEffect) -> None:
    savepoint = db.begin_nested()
    try:
        _EFFECT_HANDLERS[effect](db, ctx)
        savepoint.commit()
    except NotFoundError as exc:
        savepoint.rollback()
        ctx.warnings.append(f"{effect.value}: {exc.message}; step skipped")
        ctx.log.warning(
            "shift_sync_ledger_row_missing",
            extra=ctx.log_extra(effect=effect.value, entity=exc.entity),
        )
    except StaleDataError:
        savepoint.rollback()
        raise
    except SQLAlchemyError as exc:
        savepoint.rollback()
        error = ConsistencyError(
            effect.value,
            f"{effect.value} failed after the shift override was saved",
            {
                "employee_id": ctx.employee.id,
                "date": ctx.day.isoformat(),
                "previous_type": ctx.previous.value if ctx.previous else None,
                "target_type": ctx.target.value if ctx.target else None,
                "error": exc.__class__.__name__,
            },
        )
        ctx.issues.append(SyncIssue.model_validate(error.to_issue()))
        ctx.log.error(
            "shift_sync_ledger_step_failed",
            extra=ctx.log_extra(effect=effect.value, error=exc.__class__.__name__),
            exc_info=True,
        )


def _lock_employee(db: Session, employee_id: int) -> Employee:
    employee = db.scalar(
        select(Employee)
        .where(Employee.id == employee_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    if employee is None:
        raise NotFoundError("employee", "Employee not found", {"employee_id": employee_id})
    return employee


def _write_override(
    db: Session,
    *,
    employee_id: int,
    override: ShiftOverride | None,
    day: date,
    target: ShiftType | None,
    notes: str | None,
) -> str:
    if target is None:
        if override is None:
            raise NotFoundError("shift_override", "No shift override exists for that date", {"date": day.isoformat()})
        db.delete(override)
        db.flush()
        return "deleted"
    if override is None:
        db.add(
            ShiftOverride(
                employee_id=employee_id,
                day_date=day,
                shift_type=target,
                notes=notes,
                source=RecordSource.SCHEDULE,
            )
        )
        db.flush()
        return "created"
    override.shift_type = target
    override.notes = notes
    override.source = RecordSource.SCHEDULE
    db.flush()
    return "updated"


def _synchronize(
    db: Session,
    *,
    employee_id: int,
    day: date,
    target: ShiftType | None,
    notes: str | None,
    expected_revision: int | None,
    log: logging.Logger,
) -> ShiftUpdateResult:
    try:
        employee = _lock_employee(db, employee_id)
        if expected_revision is not None and employee.schedule_revision != expected_revision:
            raise ConcurrencyError(
                "Schedule changed since it was read; reload and retry",
                {"expected_revision": expected_revision, "current_revision": employee.schedule_revision},
            )

        override = db.scalar(
            select(ShiftOverride)
            .where(ShiftOverride.employee_id == employee_id, ShiftOverride.day_date == day)
            .with_for_update()
        )
        if target is None and override is None:
            raise NotFoundError("shift_override", "No shift override exists for that date", {"date": day.isoformat()})
        previous = override.shift_type if override is not None else None

        action = _write_override(
            db,
            employee_id=employee_id,
            override=override,
            day=day,
            target=target,
            notes=notes,
        )

        effects = TRANSITIONS[(previous, target)]
        ctx = _SyncContext(
            employee=employee,
            day=day,
            previous=previous,
            target=target,
            notes=notes,
            log=log,
        )
        for effect in effects:
            _run_effect(db, ctx, effect)

        employee.schedule_updated_at = datetime.now(timezone.utc)
        db.commit()
    except (IntegrityError, StaleDataError) as exc:
        db.rollback()
        log.warning(
            "shift_sync_conflict",
            extra={"employee_id": employee_id, "day_date": day.isoformat(), "error": exc.__class__.__name__},
        )
        raise ConcurrencyError(
            "Another change to this schedule was saved first; reload and retry",
            {"employee_id": employee_id, "date": day.isoformat()},
        ) from exc
    except ApiError:
        db.rollback()
        raise
    except SQLAlchemyError:
        db.rollback()
        log.exception("shift_sync_failed", extra={"employee_id": employee_id, "day_date": day.isoformat()})
        raise

    result = ShiftUpdateResult(
        success=True,
        action=action,
        partial=bool(ctx.issues),
        employee_id=employee_id,
        date=day,
        previous_type=previous,
        shift_type=target,
        warnings=ctx.warnings,
        issues=ctx.issues,
        invalidate=query_keys_for(employee_id, day, effects),
        revision=employee.schedule_revision,
    )
    log.info(
        "shift_sync_applied",
        extra=ctx.log_extra(
            action=action,
            effects=[effect.value for effect in effects],
            partial=result.partial,
            warning_count=len(result.warnings),
            revision=result.revision,
        ),
    )
    return result


def apply_shift_change(
    db: Session,
    *,
    employee_id: int,
    payload: ShiftUpdateRequest,
    log: logging.Logger | None = None,
) -> ShiftUpdateResult:
    return _synchronize(
        db,
        employee_id=employee_id,
        day=coerce_day(payload.date),
        target=payload.shift_type,
        notes=payload.notes,
        expected_revision=payload.expected_revision,
        log=log or logger,
    )


def revert_shift_override(
    db: Session,
    *,
    employee_id: int,
    day: date | str,
    expected_revision: int | None = None,
    log: logging.Logger | None = None,
) -> ShiftUpdateResult:
    """Remove the override for a date, reversing whatever ledger entries it carried."""
    return _synchronize(
        db,
        employee_id=employee_id,
        day=coerce_day(day),
        target=None,
        notes=None,
        expected_revision=expected_revision,
        log=log or logger,
    )
