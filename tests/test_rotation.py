from __future__ import annotations

from datetime import date, datetime, time, timedelta
import unittest

from shiftledger.errors import InputError
from shiftledger.models import ShiftGroup, ShiftType
from shiftledger.services import rotation


class RotationPatternTests(unittest.TestCase):
    def test_reference_date_puts_group_d_on_second_day_shift(self) -> None:
        self.assertEqual(rotation.shift_type("2025-01-01", "D"), ShiftType.DAY)
        self.assertEqual(rotation.shift_number("2025-01-01", "D"), "2nd")
        self.assertEqual(rotation.shift_type(date(2025, 1, 1), ShiftGroup.C), ShiftType.NIGHT)
        self.assertEqual(rotation.shift_number(date(2025, 1, 1), ShiftGroup.C), "2nd")

    def test_off_groups_have_no_shift_number(self) -> None:
        self.assertEqual(rotation.shift_type("2025-01-01", "A"), ShiftType.OFF)
        self.assertIsNone(rotation.shift_number("2025-01-01", "A"))

    def test_pattern_repeats_every_eight_days(self) -> None:
        start = date(2024, 11, 20)
        for offset in range(40):
            day = start + timedelta(days=offset)
            for group in ShiftGroup:
                self.assertEqual(
                    rotation.shift_type(day, group),
                    rotation.shift_type(day + timedelta(days=8), group),
                )
                self.assertEqual(
                    rotation.shift_number(day, group),
                    rotation.shift_number(day + timedelta(days=8), group),
                )

    def test_every_date_has_one_day_group_one_night_group_two_off(self) -> None:
        start = date(2024, 2, 25)
        for offset in range(16):
            day = start + timedelta(days=offset)
            types = [rotation.shift_type(day, group) for group in ShiftGroup]
            self.assertEqual(types.count(ShiftType.DAY), 1)
            self.assertEqual(types.count(ShiftType.NIGHT), 1)
            self.assertEqual(types.count(ShiftType.OFF), 2)

    def test_each_group_works_two_days_two_nights_then_four_off(self) -> None:
        for group in ShiftGroup:
            types = [rotation.shift_type(date(2025, 1, 1) + timedelta(days=offset), group) for offset in range(8)]
            self.assertEqual(types.count(ShiftType.DAY), 2)
            self.assertEqual(types.count(ShiftType.NIGHT), 2)
            self.assertEqual(types.count(ShiftType.OFF), 4)

    def test_dates_before_reference_use_positive_modulo(self) -> None:
        self.assertEqual(rotation.cycle_day("2024-12-31"), 7)
        self.assertEqual(rotation.shift_type("2024-12-31", "D"), ShiftType.DAY)
        self.assertEqual(rotation.shift_number("2024-12-31", "D"), "1st")

    def test_leap_day_and_datetime_inputs(self) -> None:
        leap_day = date(2028, 2, 29)
        self.assertEqual(
            rotation.shift_type(datetime(2028, 2, 29, 23, 59), "B"),
            rotation.shift_type(leap_day, "B"),
        )
        self.assertEqual(rotation.cycle_day(leap_day), (leap_day - rotation.REFERENCE_DATE).days % 8)

    def test_group_assignments_lists_off_groups(self) -> None:
        assignments = rotation.group_assignments("2025-01-01")
        self.assertEqual(assignments["day_shift"], [{"group": ShiftGroup.D, "is_first": False}])
        self.assertEqual(assignments["night_shift"], [{"group": ShiftGroup.C, "is_first": False}])
        self.assertEqual(assignments["off"], [ShiftGroup.A, ShiftGroup.B])

    def test_invalid_inputs_raise_input_error(self) -> None:
        with self.assertRaises(InputError):
            rotation.shift_type("2025-13-01", "A")
        with self.assertRaises(InputError):
            rotation.shift_type("2025-01-01", "E")
        with self.assertRaises(InputError):
            rotation.shift_number(20250101, "A")

    def test_group_codes_are_case_insensitive(self) -> None:
        self.assertEqual(rotation.coerce_group(" d "), ShiftGroup.D)

    def test_validate_pattern_rejects_same_group_on_day_and_night(self) -> None:
        broken = (rotation.PatternRow(ShiftGroup.A, 1, ShiftGroup.A, 1),) + rotation.ROTATION_PATTERN[1:]
        with self.assertRaises(ValueError):
            rotation.validate_pattern(broken)

    def test_shift_work_hours(self) -> None:
        self.assertEqual(rotation.shift_work_hours(ShiftType.DAY), (time(7, 0), time(19, 0)))
        self.assertEqual(rotation.shift_work_hours(ShiftType.NIGHT), (time(19, 0), time(7, 0)))
        self.assertIsNone(rotation.shift_work_hours(ShiftType.OFF))


if __name__ == "__main__":
    unittest.main()
