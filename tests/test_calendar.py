from __future__ import annotations

from copy import deepcopy
from datetime import date
import logging
import unittest

from shiftledger.errors import InputError, NotFoundError
from shiftledger.models import (
    Employee,
    Holiday,
    Leave,
    LeaveStatus,
    LeaveType,
    ShiftGroup,
    ShiftOverride,
    ShiftType,
)
from shiftledger.services.calendar import build_employee_calendar, generate_month_calendar, month_grid
from tests.sqlite_session import make_session_factory


def _day(month_data, iso_date: str):  # type: ignore[no-untyped-def]
    target = date.fromisoformat(iso_date)
    return next(item for item in month_data.days if item.date == target)


def _generate(**overrides):  # type: ignore[no-untyped-def]
    kwargs = {
        "holidays": {},
        "leaves": {},
        "overrides": {},
        "group_changes": [],
        "today": date(2025, 2, 14),
    }
    kwargs.update(overrides)
    return generate_month_calendar(
        2025,
        2,
        "D",
        kwargs.pop("holidays"),
        kwargs.pop("leaves"),
        kwargs.pop("overrides"),
        kwargs.pop("group_changes"),
        **kwargs,
    )


class MonthGridTests(unittest.TestCase):
    def test_grid_is_padded_to_whole_sunday_weeks(self) -> None:
        grid = month_grid(2025, 2)
        self.assertEqual(grid[0], date(2025, 1, 26))
        self.assertEqual(grid[-1], date(2025, 3, 1))
        self.assertEqual(len(grid), 35)

    def test_month_starting_on_sunday_has_no_leading_padding(self) -> None:
        grid = month_grid(2025, 6)
        self.assertEqual(grid[0], date(2025, 6, 1))
        self.assertEqual(len(grid) % 7, 0)

    def test_invalid_month_raises_input_error(self) -> None:
        with self.assertRaises(InputError):
            month_grid(2025, 13)
        with self.assertRaises(InputError):
            month_grid("2025", 1)  # type: ignore[arg-type]
        with self.assertRaises(InputError):
            month_grid(9999, 12)


class GenerateMonthCalendarTests(unittest.TestCase):
    def test_days_without_inputs_follow_the_rotation(self) -> None:
        month_data = _generate()

        self.assertEqual(month_data.name, "February")
        self.assertEqual(sum(1 for item in month_data.days if item.is_current_month), 28)
        self.assertEqual(month_data.days[0].day_of_week, 0)

        day = _day(month_data, "2025-02-10")
        self.assertEqual(day.resolved_shift.type, ShiftType.DAY)
        self.assertEqual(day.resolved_shift.shift_number, "2nd")
        self.assertFalse(day.resolved_shift.is_overridden)
        self.assertIsNone(day.resolved_shift.original_type)
        self.assertEqual(day.effective_group, ShiftGroup.D)
        self.assertEqual(day.group_assignments.off, [ShiftGroup.A, ShiftGroup.B])

        off_day = _day(month_data, "2025-02-13")
        self.assertEqual(off_day.resolved_shift.type, ShiftType.OFF)
        self.assertIsNone(off_day.resolved_shift.shift_number)

    def test_override_beats_official_holiday_and_reports_it_as_original(self) -> None:
        month_data = _generate(
            holidays={"2025-02-10": {"name": "Founders Day", "is_official": True}},
            overrides={"2025-02-10": {"type": "Off", "notes": "swap"}},
        )
        day = _day(month_data, "2025-02-10")

        self.assertEqual(day.resolved_shift.type, ShiftType.OFF)
        self.assertTrue(day.resolved_shift.is_overridden)
        self.assertEqual(day.resolved_shift.original_type, ShiftType.PUBLIC)
        self.assertEqual(day.resolved_shift.notes, "swap")
        self.assertIsNone(day.resolved_shift.shift_number)
        self.assertIsNotNone(day.holiday)
        self.assertEqual(day.holiday.name, "Founders Day")

    def test_leave_beats_unofficial_holiday(self) -> None:
        month_data = _generate(
            holidays={"2025-02-10": {"name": "Company Picnic", "is_official": False}},
            leaves={"2025-02-10": {"type": "ANNUAL"}},
        )
        day = _day(month_data, "2025-02-10")

        self.assertEqual(day.resolved_shift.type, ShiftType.LEAVE)
        self.assertTrue(day.resolved_shift.is_overridden)
        self.assertEqual(day.resolved_shift.original_type, ShiftType.DAY)
        self.assertEqual(day.resolved_shift.notes, "ANNUAL")
        self.assertFalse(day.holiday.is_official)

    def test_official_holiday_replaces_rotation(self) -> None:
        month_data = _generate(holidays={"2025-02-11": {"name": "National Day"}})
        day = _day(month_data, "2025-02-11")

        self.assertEqual(day.resolved_shift.type, ShiftType.PUBLIC)
        self.assertEqual(day.resolved_shift.original_type, ShiftType.NIGHT)
        self.assertEqual(day.resolved_shift.notes, "National Day")
        self.assertIsNone(day.resolved_shift.shift_number)

    def test_padding_days_ignore_overrides(self) -> None:
        month_data = _generate(overrides={"2025-01-31": {"type": "InLieu"}})
        day = _day(month_data, "2025-01-31")

        self.assertFalse(day.is_current_month)
        self.assertFalse(day.resolved_shift.is_overridden)
        self.assertEqual(month_data.warnings, [])

    def test_malformed_entry_degrades_only_its_own_date(self) -> None:
        month_data = _generate(
            overrides={
                "2025-02-10": {"type": "Bogus"},
                "2025-02-11": {"type": "Leave"},
            },
            leaves={"2025-02-10": {"type": "ANNUAL"}},
        )
        broken = _day(month_data, "2025-02-10")
        healthy = _day(month_data, "2025-02-11")

        self.assertEqual(broken.resolved_shift.type, ShiftType.DAY)
        self.assertFalse(broken.resolved_shift.is_overridden)
        self.assertEqual(len(broken.warnings), 1)
        self.assertEqual(healthy.resolved_shift.type, ShiftType.LEAVE)
        self.assertEqual(healthy.warnings, [])

    def test_invalid_date_keys_become_month_warnings(self) -> None:
        month_data = _generate(holidays={"someday": {"name": "?"}})
        self.assertEqual(len(month_data.warnings), 1)
        self.assertIn("someday", month_data.warnings[0])

    def test_missing_or_wrong_inputs_raise_input_error(self) -> None:
        with self.assertRaises(InputError):
            _generate(holidays=None)
        with self.assertRaises(InputError):
            _generate(overrides=["2025-02-10"])
        with self.assertRaises(InputError):
            _generate(group_changes=None)
        with self.assertRaises(InputError):
            generate_month_calendar(2025, 2, "Z", {}, {}, {}, [])

    def test_group_change_switches_rotation_mid_month(self) -> None:
        month_data = _generate(group_changes=[{"effective_date": "2025-02-13", "new_group": "A"}])
        before = _day(month_data, "2025-02-12")
        after = _day(month_data, "2025-02-13")

        self.assertEqual(before.effective_group, ShiftGroup.D)
        self.assertFalse(before.has_group_change)
        self.assertEqual(before.resolved_shift.type, ShiftType.NIGHT)
        self.assertEqual(after.effective_group, ShiftGroup.A)
        self.assertTrue(after.has_group_change)
        self.assertEqual(after.resolved_shift.type, ShiftType.DAY)
        self.assertEqual(after.resolved_shift.shift_number, "1st")

    def test_camel_case_inputs_are_honoured(self) -> None:
        month_data = _generate(
            holidays={"2025-02-11": {"name": "Unofficial Day", "isOfficial": False}},
            group_changes=[{"effectiveDate": "2025-02-13", "oldGroup": "D", "newGroup": "A"}],
        )
        holiday_day = _day(month_data, "2025-02-11")

        self.assertEqual(month_data.warnings, [])
        self.assertNotEqual(holiday_day.resolved_shift.type, ShiftType.PUBLIC)
        self.assertFalse(holiday_day.holiday.is_official)
        self.assertEqual(_day(month_data, "2025-02-13").effective_group, ShiftGroup.A)

    def test_unknown_entry_key_degrades_the_day(self) -> None:
        month_data = _generate(holidays={"2025-02-11": {"name": "Typo Day", "official": False}})
        day = _day(month_data, "2025-02-11")

        self.assertNotEqual(day.resolved_shift.type, ShiftType.PUBLIC)
        self.assertIsNone(day.holiday)
        self.assertEqual(len(day.warnings), 1)

    def test_padding_days_carry_no_holiday(self) -> None:
        month_data = _generate(holidays={"2025-01-26": {"name": "Padding Holiday"}})
        padding = _day(month_data, "2025-01-26")

        self.assertFalse(padding.is_current_month)
        self.assertIsNone(padding.holiday)
        self.assertNotEqual(padding.resolved_shift.type, ShiftType.PUBLIC)

    def test_today_and_weekend_flags(self) -> None:
        month_data = _generate()
        self.assertEqual([item.date for item in month_data.days if item.is_today], [date(2025, 2, 14)])
        self.assertTrue(_day(month_data, "2025-02-15").is_weekend)
        self.assertFalse(_day(month_data, "2025-02-14").is_weekend)

    def test_same_inputs_give_same_output_and_inputs_are_untouched(self) -> None:
        overrides = {"2025-02-10": {"type": "Overtime"}, "2025-02-20": {"type": "InLieu", "notes": "covered"}}
        snapshot = deepcopy(overrides)

        first = _generate(overrides=overrides)
        second = _generate(overrides=overrides)

        self.assertEqual(first.model_dump(), second.model_dump())
        self.assertEqual(overrides, snapshot)

    def test_logs_through_injected_logger(self) -> None:
        log = logging.getLogger("tests.calendar")
        with self.assertLogs(log, level="DEBUG") as captured:
            _generate(log=log)
        self.assertIn("calendar_generated", captured.output[0])


class BuildEmployeeCalendarTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session_factory()()
        self.employee = Employee(full_name="Test Employee", base_group=ShiftGroup.D)
        self.db.add(self.employee)
        self.db.flush()
        self.db.add_all(
            [
                Holiday(day_date=date(2025, 2, 11), name="National Day", is_official=True),
                ShiftOverride(employee_id=self.employee.id, day_date=date(2025, 2, 20), shift_type=ShiftType.IN_LIEU),
                Leave(
                    employee_id=self.employee.id,
                    start_date=date(2025, 2, 3),
                    end_date=date(2025, 2, 4),
                    days_taken=2,
                    type=LeaveType.SICK,
                    status=LeaveStatus.APPROVED,
                ),
                Leave(
                    employee_id=self.employee.id,
                    start_date=date(2025, 2, 6),
                    end_date=date(2025, 2, 6),
                    days_taken=1,
                    type=LeaveType.ANNUAL,
                    status=LeaveStatus.PENDING,
                ),
            ]
        )
        self.db.commit()

    def tearDown(self) -> None:
        self.db.close()

    def test_reads_inputs_from_storage(self) -> None:
        response = build_employee_calendar(
            self.db,
            employee_id=self.employee.id,
            year=2025,
            month=2,
            today=date(2025, 2, 1),
        )
        month_data = response.month

        self.assertEqual(response.schedule_revision, self.employee.schedule_revision)
        self.assertEqual(_day(month_data, "2025-02-03").resolved_shift.type, ShiftType.LEAVE)
        self.assertEqual(_day(month_data, "2025-02-04").resolved_shift.notes, "SICK")
        self.assertNotEqual(_day(month_data, "2025-02-06").resolved_shift.type, ShiftType.LEAVE)
        self.assertEqual(_day(month_data, "2025-02-11").resolved_shift.type, ShiftType.PUBLIC)
        self.assertEqual(_day(month_data, "2025-02-20").resolved_shift.type, ShiftType.IN_LIEU)

    def test_unknown_employee(self) -> None:
        with self.assertRaises(NotFoundError):
            build_employee_calendar(self.db, employee_id=404, year=2025, month=2, today=date(2025, 2, 1))


if __name__ == "__main__":
    unittest.main()
