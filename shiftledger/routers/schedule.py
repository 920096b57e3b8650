from datetime import date

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from shiftledger.audit import list_employee_audit_logs, log_audit
from shiftledger.db import get_db
from shiftledger.errors import NotFoundError
from shiftledger.models import AuditActorType, Employee
from shiftledger.schemas import (
    AuditLogRead,
    EmployeeCalendarResponse,
    EmployeeCreate,
    EmployeeRead,
    GroupChangeCreateRequest,
    GroupChangeRead,
    HolidayCreateRequest,
    HolidayRead,
    InLieuCreateRequest,
    InLieuRead,
    InLieuSummaryRead,
    LeaveBalanceRead,
    LeaveBalanceReconcileResponse,
    LeaveCreateRequest,
    LeaveRead,
    OvertimeSummaryRead,
    ShiftUpdateRequest,
    ShiftUpdateResult,
)
from shiftledger.services.calendar import build_employee_calendar, local_today
from shiftledger.services.group_assignments import list_group_changes, record_group_change
from shiftledger.services.holidays import create_holiday, delete_holiday, list_holidays
from shiftledger.services.in_lieu import create_in_lieu_record, delete_in_lieu_record, summarize_in_lieu
from shiftledger.services.leaves import (
    compute_leave_balance,
    create_leave,
    delete_leave,
    list_leaves,
    reconcile_cached_balance,
)
from shiftledger.services.overtime import get_overtime_summary
from shiftledger.services.shift_sync import apply_shift_change, revert_shift_override

router = APIRouter(tags=["schedule"])


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def _audit_shift_change(
    db: Session,
    request: Request,
    *,
    employee_id: int,
    action: str,
    result: ShiftUpdateResult,
) -> None:
    log_audit(
        db,
        actor_type=AuditActorType.EMPLOYEE,
        actor_id=str(employee_id),
        action=action,
        success=True,
        entity_type="shift_override",
        entity_id=f"{employee_id}:{result.date.isoformat()}",
        details={
            "day_date": result.date.isoformat(),
            "action": result.action,
            "previous_type": result.previous_type.value if result.previous_type else None,
            "shift_type": result.shift_type.value if result.shift_type else None,
            "partial": result.partial,
            "warnings": result.warnings,
            "issues": [issue.model_dump() for issue in result.issues],
        },
        request_id=_request_id(request),
    )


@router.post("/api/employees", response_model=EmployeeRead, status_code=status.HTTP_201_CREATED)
def create_employee_endpoint(payload: EmployeeCreate, db: Session = Depends(get_db)) -> Employee:
    employee = Employee(
        full_name=payload.full_name.strip(),
        base_group=payload.base_group,
        years_of_service=payload.years_of_service,
        is_active=payload.is_active,
    )
    db.add(employee)
    db.commit()
    db.refresh(employee)
    return employee


@router.get("/api/employees/{employee_id}", response_model=EmployeeRead)
def get_employee_endpoint(employee_id: int, db: Session = Depends(get_db)) -> Employee:
    employee = db.get(Employee, employee_id)
    if employee is None:
        raise NotFoundError("employee", "Employee not found", {"employee_id": employee_id})
    return employee


@router.get("/api/employees/{employee_id}/calendar", response_model=EmployeeCalendarResponse)
def get_calendar_endpoint(
    employee_id: int,
    year: int = Query(..., ge=1970, le=9999),
    month: int = Query(..., ge=1, le=12),
    db: Session = Depends(get_db),
) -> EmployeeCalendarResponse:
    return build_employee_calendar(
        db,
        employee_id=employee_id,
        year=year,
        month=month,
        today=local_today(),
    )


@router.put("/api/employees/{employee_id}/shifts/{day}", response_model=ShiftUpdateResult)
def update_shift_endpoint(
    employee_id: int,
    day: date,
    payload: ShiftUpdateRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> ShiftUpdateResult:
    if payload.date != day:
        payload = payload.model_copy(update={"date": day})
    result = apply_shift_change(db, employee_id=employee_id, payload=payload)
    _audit_shift_change(db, request, employee_id=employee_id, action="SHIFT_OVERRIDE_UPSERT", result=result)
    return result


@router.delete("/api/employees/{employee_id}/shifts/{day}", response_model=ShiftUpdateResult)
def revert_shift_endpoint(
    employee_id: int,
    day: date,
    request: Request,
    expected_revision: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
) -> ShiftUpdateResult:
    result = revert_shift_override(
        db,
        employee_id=employee_id,
        day=day,
        expected_revision=expected_revision,
    )
    _audit_shift_change(db, request, employee_id=employee_id, action="SHIFT_OVERRIDE_REVERT", result=result)
    return result


@router.get("/api/employees/{employee_id}/audit-logs", response_model=list[AuditLogRead])
def list_audit_logs_endpoint(
    employee_id: int,
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
) -> list[AuditLogRead]:
    return list_employee_audit_logs(db, employee_id=employee_id, limit=limit)


@router.post(
    "/api/employees/{employee_id}/group-changes",
    response_model=GroupChangeRead,
    status_code=status.HTTP_201_CREATED,
)
def create_group_change_endpoint(
    employee_id: int,
    payload: GroupChangeCreateRequest,
    db: Session = Depends(get_db),
) -> GroupChangeRead:
    return record_group_change(db, employee_id=employee_id, payload=payload)


@router.get("/api/employees/{employee_id}/group-changes", response_model=list[GroupChangeRead])
def list_group_changes_endpoint(employee_id: int, db: Session = Depends(get_db)) -> list[GroupChangeRead]:
    return list_group_changes(db, employee_id=employee_id)


@router.get("/api/employees/{employee_id}/leave-balance", response_model=LeaveBalanceRead)
def get_leave_balance_endpoint(
    employee_id: int,
    year: int | None = Query(default=None, ge=1970, le=9999),
    db: Session = Depends(get_db),
) -> LeaveBalanceRead:
    return compute_leave_balance(db, employee_id=employee_id, year=year or local_today().year)


@router.post("/api/employees/{employee_id}/leave-balance/reconcile", response_model=LeaveBalanceReconcileResponse)
def reconcile_leave_balance_endpoint(employee_id: int, db: Session = Depends(get_db)) -> LeaveBalanceReconcileResponse:
    return reconcile_cached_balance(db, employee_id=employee_id)


@router.post(
    "/api/employees/{employee_id}/leaves",
    response_model=LeaveRead,
    status_code=status.HTTP_201_CREATED,
)
def create_leave_endpoint(
    employee_id: int,
    payload: LeaveCreateRequest,
    db: Session = Depends(get_db),
) -> LeaveRead:
    return create_leave(db, employee_id=employee_id, payload=payload)


@router.get("/api/employees/{employee_id}/leaves", response_model=list[LeaveRead])
def list_leaves_endpoint(
    employee_id: int,
    year: int | None = Query(default=None, ge=1970, le=9999),
    month: int | None = Query(default=None, ge=1, le=12),
    db: Session = Depends(get_db),
) -> list[LeaveRead]:
    return list_leaves(db, employee_id=employee_id, year=year, month=month)


@router.delete("/api/leaves/{leave_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_leave_endpoint(leave_id: int, db: Session = Depends(get_db)) -> None:
    delete_leave(db, leave_id)


@router.post(
    "/api/employees/{employee_id}/in-lieu",
    response_model=InLieuRead,
    status_code=status.HTTP_201_CREATED,
)
def create_in_lieu_endpoint(
    employee_id: int,
    payload: InLieuCreateRequest,
    db: Session = Depends(get_db),
) -> InLieuRead:
    return create_in_lieu_record(db, employee_id=employee_id, payload=payload)


@router.get("/api/employees/{employee_id}/in-lieu", response_model=InLieuSummaryRead)
def get_in_lieu_summary_endpoint(employee_id: int, db: Session = Depends(get_db)) -> InLieuSummaryRead:
    return summarize_in_lieu(db, employee_id=employee_id)


@router.delete("/api/in-lieu/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_in_lieu_endpoint(record_id: int, db: Session = Depends(get_db)) -> None:
    delete_in_lieu_record(db, record_id)


@router.get("/api/employees/{employee_id}/overtime", response_model=OvertimeSummaryRead)
def get_overtime_endpoint(
    employee_id: int,
    year: int = Query(..., ge=1970, le=9999),
    month: int = Query(..., ge=1, le=12),
    db: Session = Depends(get_db),
) -> OvertimeSummaryRead:
    return get_overtime_summary(db, employee_id=employee_id, year=year, month=month)


@router.post("/api/holidays", response_model=HolidayRead, status_code=status.HTTP_201_CREATED)
def create_holiday_endpoint(payload: HolidayCreateRequest, db: Session = Depends(get_db)) -> HolidayRead:
    return create_holiday(db, payload)


@router.get("/api/holidays", response_model=list[HolidayRead])
def list_holidays_endpoint(
    start_date: date = Query(...),
    end_date: date = Query(...),
    db: Session = Depends(get_db),
) -> list[HolidayRead]:
    return list_holidays(db, start_date=start_date, end_date=end_date)


@router.delete("/api/holidays/{holiday_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_holiday_endpoint(holiday_id: int, db: Session = Depends(get_db)) -> None:
    delete_holiday(db, holiday_id)
