from __future__ import annotations

import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient
from sqlalchemy.exc import SQLAlchemyError

from shiftledger.db import get_db
from shiftledger.main import app
from tests.sqlite_session import make_session_factory


def _override_get_db(session_factory):  # type: ignore[no-untyped-def]
    def _get_db():  # type: ignore[no-untyped-def]
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    return _get_db


class ScheduleApiTests(unittest.TestCase):
    def setUp(self) -> None:
        app.dependency_overrides[get_db] = _override_get_db(make_session_factory())
        self.client = TestClient(app)
        response = self.client.post(
            "/api/employees",
            json={"full_name": "Test Employee", "base_group": "D", "years_of_service": 4},
        )
        self.assertEqual(response.status_code, 201)
        self.employee = response.json()

    def tearDown(self) -> None:
        app.dependency_overrides.clear()

    def _put_shift(self, day: str, shift_type: str, **extra):  # type: ignore[no-untyped-def]
        return self.client.put(
            f"/api/employees/{self.employee['id']}/shifts/{day}",
            json={"date": day, "shift_type": shift_type, **extra},
        )

    def test_update_shift_then_read_calendar(self) -> None:
        response = self._put_shift("2025-02-10", "Overtime", notes="cover")
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["action"], "created")
        self.assertFalse(body["partial"])
        self.assertEqual(body["shift_type"], "Overtime")

        calendar = self.client.get(f"/api/employees/{self.employee['id']}/calendar?year=2025&month=2")
        self.assertEqual(calendar.status_code, 200)
        payload = calendar.json()
        self.assertEqual(payload["schedule_revision"], body["revision"])
        day = next(item for item in payload["month"]["days"] if item["date"] == "2025-02-10")
        self.assertEqual(day["resolved_shift"]["type"], "Overtime")
        self.assertEqual(day["resolved_shift"]["original_type"], "Day")

        overtime = self.client.get(f"/api/employees/{self.employee['id']}/overtime?year=2025&month=2")
        self.assertEqual(overtime.json()["persisted_total_hours"], 24.0)

    def test_shift_changes_are_audited(self) -> None:
        self._put_shift("2025-02-10", "InLieu")
        self.client.delete(f"/api/employees/{self.employee['id']}/shifts/2025-02-10")

        response = self.client.get(f"/api/employees/{self.employee['id']}/audit-logs")
        self.assertEqual(response.status_code, 200)
        actions = [item["action"] for item in response.json()]
        self.assertEqual(actions, ["SHIFT_OVERRIDE_REVERT", "SHIFT_OVERRIDE_UPSERT"])

    def test_stale_revision_returns_conflict_envelope(self) -> None:
        self._put_shift("2025-02-10", "Leave", expected_revision=1)
        response = self._put_shift("2025-02-10", "Off", expected_revision=1)

        self.assertEqual(response.status_code, 409)
        error = response.json()["error"]
        self.assertEqual(error["code"], "CONCURRENCY_CONFLICT")
        self.assertIn("current_revision", error["details"])
        self.assertTrue(response.headers.get("X-Request-Id"))

    def test_partial_success_is_reported_in_body(self) -> None:
        with patch(
            "shiftledger.services.shift_sync.recompute_monthly_overtime",
            side_effect=SQLAlchemyError("unavailable"),
        ):
            response = self._put_shift("2025-02-10", "Overtime")

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body["partial"])
        self.assertEqual(body["issues"][0]["step"], "book_overtime")

    def test_revert_without_override_is_not_found(self) -> None:
        response = self.client.delete(f"/api/employees/{self.employee['id']}/shifts/2025-02-10")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"]["code"], "NOT_FOUND")

    def test_unknown_shift_type_is_a_validation_error(self) -> None:
        response = self._put_shift("2025-02-10", "Holiday")
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["error"]["code"], "VALIDATION_ERROR")

    def test_leave_balance_includes_in_lieu_credit(self) -> None:
        self._put_shift("2025-02-10", "InLieu")
        response = self.client.get(f"/api/employees/{self.employee['id']}/leave-balance?year=2025")

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["base_entitlement"], 18.67)
        self.assertAlmostEqual(body["in_lieu_days"], 0.667, places=3)
        self.assertAlmostEqual(body["remaining"], 19.34, places=2)

    def test_group_change_endpoints(self) -> None:
        created = self.client.post(
            f"/api/employees/{self.employee['id']}/group-changes",
            json={"new_group": "A", "effective_date": "2025-02-13"},
        )
        self.assertEqual(created.status_code, 201)
        self.assertEqual(created.json()["old_group"], "D")

        listed = self.client.get(f"/api/employees/{self.employee['id']}/group-changes")
        self.assertEqual(len(listed.json()), 1)

    def test_holiday_endpoints(self) -> None:
        created = self.client.post("/api/holidays", json={"day_date": "2025-12-02", "name": "National Day"})
        self.assertEqual(created.status_code, 201)

        duplicate = self.client.post("/api/holidays", json={"day_date": "2025-12-02", "name": "Again"})
        self.assertEqual(duplicate.status_code, 422)
        self.assertEqual(duplicate.json()["error"]["code"], "INPUT_ERROR")

        listed = self.client.get("/api/holidays?start_date=2025-12-01&end_date=2025-12-31")
        self.assertEqual([item["name"] for item in listed.json()], ["National Day"])

        deleted = self.client.delete(f"/api/holidays/{created.json()['id']}")
        self.assertEqual(deleted.status_code, 204)

    def test_holiday_name_is_stripped_and_must_not_be_blank(self) -> None:
        blank = self.client.post("/api/holidays", json={"day_date": "2025-12-03", "name": "   "})
        self.assertEqual(blank.status_code, 422)
        self.assertEqual(blank.json()["error"]["code"], "VALIDATION_ERROR")

        padded = self.client.post("/api/holidays", json={"day_date": "2025-12-03", "name": "  Commemoration Day "})
        self.assertEqual(padded.status_code, 201)
        self.assertEqual(padded.json()["name"], "Commemoration Day")

    def test_in_lieu_endpoints(self) -> None:
        created = self.client.post(
            f"/api/employees/{self.employee['id']}/in-lieu",
            json={"start_date": "2025-03-01", "end_date": "2025-03-03"},
        )
        self.assertEqual(created.status_code, 201)
        self.assertEqual(created.json()["days_count"], 3)

        summary = self.client.get(f"/api/employees/{self.employee['id']}/in-lieu")
        self.assertEqual(summary.json()["record_count"], 1)

        deleted = self.client.delete(f"/api/in-lieu/{created.json()['id']}")
        self.assertEqual(deleted.status_code, 204)

    def test_unknown_employee(self) -> None:
        response = self.client.get("/api/employees/999/calendar?year=2025&month=2")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"]["details"]["entity"], "employee")


if __name__ == "__main__":
    unittest.main()
