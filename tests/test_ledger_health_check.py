from __future__ import annotations

from datetime import date
import importlib.util
from pathlib import Path
import unittest

from sqlalchemy import text

from shiftledger.models import Employee, ShiftGroup, ShiftOverride, ShiftType
from tests.sqlite_session import make_engine, make_session_factory

SCRIPT_PATH = Path(__file__).resolve().parents[1] / "scripts" / "ledger_health_check.py"


def _load_script():  # type: ignore[no-untyped-def]
    module_spec = importlib.util.spec_from_file_location("ledger_health_check", SCRIPT_PATH)
    module = importlib.util.module_from_spec(module_spec)
    assert module_spec.loader is not None
    module_spec.loader.exec_module(module)
    return module


class LedgerHealthCheckTests(unittest.TestCase):
    def setUp(self) -> None:
        self.script = _load_script()
        self.engine = make_engine()
        with self.engine.begin() as conn:
            conn.execute(text("CREATE TABLE alembic_version (version_num VARCHAR(32) NOT NULL)"))
            conn.execute(text("INSERT INTO alembic_version (version_num) VALUES ('0001_initial')"))

    def _statuses(self, report) -> dict[str, str]:  # type: ignore[no-untyped-def]
        return {check["name"]: check["status"] for check in report["checks"]}

    def test_clean_database_reports_ok(self) -> None:
        statuses = self._statuses(self.script.run(self.engine))

        self.assertEqual(statuses["schema_guard"], "ok")
        self.assertEqual(set(statuses.values()), {"ok"})

    def test_reports_orphan_override_and_cache_drift(self) -> None:
        db = make_session_factory(self.engine)()
        employee = Employee(full_name="Test Employee", base_group=ShiftGroup.C, annual_leave_balance=1.5)
        db.add(employee)
        db.flush()
        db.add(ShiftOverride(employee_id=employee.id, day_date=date(2025, 2, 10), shift_type=ShiftType.IN_LIEU))
        db.commit()
        db.close()

        report = self.script.run(self.engine)
        statuses = self._statuses(report)

        self.assertEqual(statuses["in_lieu_override_without_record"], "warn")
        self.assertEqual(statuses["cached_balance_drift"], "warn")
        self.assertEqual(statuses["overtime_override_without_record"], "ok")
        orphan = next(check for check in report["checks"] if check["name"] == "in_lieu_override_without_record")
        self.assertEqual(orphan["details"]["sample_rows"], [[employee.id, "2025-02-10"]])

    def test_failed_schema_guard_skips_ledger_checks(self) -> None:
        report = self.script.run(make_engine())
        self.assertEqual([check["name"] for check in report["checks"]], ["schema_guard"])
        self.assertEqual(report["checks"][0]["status"], "fail")


if __name__ == "__main__":
    unittest.main()
