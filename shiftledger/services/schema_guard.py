from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from shiftledger.models import RecordSource, ShiftGroup, ShiftType


@dataclass(frozen=True, slots=True)
class SchemaGuardResult:
    ok: bool
    checked_at_utc: datetime
    issues: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "checked_at_utc": self.checked_at_utc.isoformat(),
            "issues": list(self.issues),
            "warnings": list(self.warnings),
            "issue_count": len(self.issues),
            "warning_count": len(self.warnings),
        }


REQUIRED_TABLE_COLUMNS: dict[str, set[str]] = {
    "employees": {"id", "base_group", "annual_leave_balance", "schedule_revision"},
    "group_changes": {"id", "employee_id", "new_group", "effective_date", "requested_at"},
    "shift_overrides": {"id", "employee_id", "day_date", "shift_type", "source"},
    "leaves": {"id", "employee_id", "start_date", "end_date", "source"},
    "in_lieu_records": {"id", "employee_id", "start_date", "end_date", "leave_days_added"},
    "overtime_records": {"id", "employee_id", "day_date", "hours"},
    "monthly_overtime_totals": {"id", "employee_id", "month_start", "total_hours"},
    "holidays": {"id", "day_date", "is_official"},
    "alembic_version": {"version_num"},
}

# shift_type is stored by value, the other enums by name.
REQUIRED_ENUM_VALUES: dict[str, set[str]] = {
    "shift_type": {item.value for item in ShiftType},
    "shift_group": {item.name for item in ShiftGroup},
    "record_source": {item.name for item in RecordSource},
}


def verify_runtime_schema(engine: Engine) -> SchemaGuardResult:
    issues: list[str] = []
    warnings: list[str] = []
    checked_at_utc = datetime.now(timezone.utc)
    inspector = inspect(engine)

    for table_name, required_columns in REQUIRED_TABLE_COLUMNS.items():
        try:
            column_names = {str(item.get("name")) for item in inspector.get_columns(table_name)}
        except SQLAlchemyError as exc:
            issues.append(f"TABLE_UNREADABLE:{table_name}:{exc.__class__.__name__}")
            continue

        missing_columns = sorted(item for item in required_columns if item not in column_names)
        if missing_columns:
            issues.append(f"MISSING_COLUMNS:{table_name}:{','.join(missing_columns)}")

    get_enums = getattr(inspector, "get_enums", None)
    if get_enums is None:
        # Only the PostgreSQL inspector exposes named enum types.
        enums: list[dict[str, Any]] = []
        warnings.append("ENUM_INSPECTION_UNSUPPORTED")
    else:
        try:
            enums = get_enums() or []
        except SQLAlchemyError as exc:
            warnings.append(f"ENUM_INSPECTION_FAILED:{exc.__class__.__name__}")
            enums = []

    enum_values_by_name: dict[str, set[str]] = {}
    for enum_item in enums:
        name = str(enum_item.get("name") or "").strip()
        if not name:
            continue
        labels = enum_item.get("labels")
        if isinstance(labels, list):
            enum_values_by_name[name] = {str(label) for label in labels}

    if get_enums is not None:
        for enum_name, required_values in REQUIRED_ENUM_VALUES.items():
            if enum_name not in enum_values_by_name:
                warnings.append(f"ENUM_NOT_FOUND:{enum_name}")
                continue
            missing_values = sorted(item for item in required_values if item not in enum_values_by_name[enum_name])
            if missing_values:
                issues.append(f"MISSING_ENUM_VALUES:{enum_name}:{','.join(missing_values)}")

    try:
        with engine.connect() as connection:
            row = connection.execute(text("SELECT version_num FROM alembic_version LIMIT 1")).scalar()
            version = str(row).strip() if row is not None else ""
            if not version:
                issues.append("ALEMBIC_VERSION_EMPTY")
    except SQLAlchemyError as exc:
        issues.append(f"ALEMBIC_VERSION_CHECK_FAILED:{exc.__class__.__name__}")

    return SchemaGuardResult(
        ok=len(issues) == 0,
        checked_at_utc=checked_at_utc,
        issues=issues,
        warnings=warnings,
    )
