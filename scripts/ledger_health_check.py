#!/usr/bin/env python
from __future__ import annotations

import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from shiftledger.services.schema_guard import verify_runtime_schema
from shiftledger.settings import get_settings

SAMPLE_LIMIT = 20

# Each check lists rows where a shift override and its ledger disagree.
LEDGER_CHECKS: dict[str, str] = {
    "in_lieu_override_without_record": """
        select o.employee_id, o.day_date
        from shift_overrides o
        where o.shift_type = 'InLieu'
          and not exists (
            select 1 from in_lieu_records r
            where r.employee_id = o.employee_id
              and r.start_date <= o.day_date
              and r.end_date >= o.day_date
          )
        limit :limit
    """,
    "leave_override_without_leave": """
        select o.employee_id, o.day_date
        from shift_overrides o
        where o.shift_type = 'Leave'
          and not exists (
            select 1 from leaves l
            where l.employee_id = o.employee_id
              and l.status = 'APPROVED'
              and l.start_date <= o.day_date
              and l.end_date >= o.day_date
          )
        limit :limit
    """,
    "overtime_override_without_record": """
        select o.employee_id, o.day_date
        from shift_overrides o
        where o.shift_type = 'Overtime'
          and not exists (
            select 1 from overtime_records r
            where r.employee_id = o.employee_id and r.day_date = o.day_date
          )
        limit :limit
    """,
    "cached_balance_drift": """
        select e.id, e.annual_leave_balance, coalesce(sum(r.leave_days_added), 0) as ledger_total
        from employees e
        left join in_lieu_records r on r.employee_id = e.id
        group by e.id, e.annual_leave_balance
        having abs(e.annual_leave_balance - coalesce(sum(r.leave_days_added), 0)) >= 0.001
        limit :limit
    """,
}


def _run_check(conn: Connection, sql: str) -> list[list[Any]]:
    rows = conn.execute(text(sql), {"limit": SAMPLE_LIMIT}).fetchall()
    return [[value.isoformat() if hasattr(value, "isoformat") else value for value in row] for row in rows]


def run(engine: Engine | None = None) -> dict[str, Any]:
    engine = engine or create_engine(get_settings().database_url)
    report: dict[str, Any] = {
        "generated_at_utc": datetime.now(timezone.utc).isoformat(),
        "checks": [],
    }

    def add(name: str, status: str, details: dict[str, Any]) -> None:
        report["checks"].append(
            {
                "name": name,
                "status": status,
                "details": details,
            }
        )

    guard = verify_runtime_schema(engine)
    add("schema_guard", "ok" if guard.ok else "fail", guard.to_dict())
    if not guard.ok:
        return report

    with engine.connect() as conn:
        for name, sql in LEDGER_CHECKS.items():
            rows = _run_check(conn, sql)
            add(name, "warn" if rows else "ok", {"sample_rows": rows})

    return report


if __name__ == "__main__":
    print(json.dumps(run(), ensure_ascii=False, indent=2))
