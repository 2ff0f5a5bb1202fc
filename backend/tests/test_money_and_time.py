import unittest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from stockdesk.money import compute_total, effective_discount, format_money, to_money
from stockdesk.storage.base import format_receipt_number, next_receipt_number
from stockdesk.time_utils import parse_iso_datetime, period_start, start_of_year, to_utc_z
from stockdesk.validation import ValidationError, parse_money


class MoneyTests(unittest.TestCase):

    def test_discount_examples(self):
        self.assertEqual(compute_total(Decimal("100"), Decimal("10"), "percentage"), Decimal("90.00"))
        self.assertEqual(compute_total(Decimal("100"), Decimal("10"), "fixed"), Decimal("90.00"))
        self.assertEqual(compute_total(Decimal("50"), Decimal("60"), "fixed"), Decimal("0.00"))

    def test_percentage_rounds_half_up(self):
        self.assertEqual(effective_discount(Decimal("9.99"), Decimal("5"), "percentage"), Decimal("0.50"))
        self.assertEqual(compute_total(Decimal("9.99"), Decimal("5"), "percentage"), Decimal("9.49"))

    def test_to_money(self):
        self.assertEqual(to_money(None), Decimal("0.00"))
        self.assertEqual(to_money(25.5), Decimal("25.50"))
        self.assertEqual(to_money(0.1 + 0.2), Decimal("0.30"))
        self.assertEqual(to_money("3"), Decimal("3.00"))

    def test_format_money(self):
        self.assertEqual(format_money(Decimal("7")), "7.00")
        self.assertIsNone(format_money(None))

    def test_parse_money_accepts_strings_and_ints(self):
        self.assertEqual(parse_money("price", "12.5"), Decimal("12.50"))
        self.assertEqual(parse_money("price", 12), Decimal("12.00"))

    def test_parse_money_rejects(self):
        for bad in (1.5, True, "", "abc", "1e3", "1.234", "NaN", "100000000.00", None):
            with self.assertRaises(ValidationError, msg=repr(bad)):
                parse_money("price", bad)


class ReceiptNumberTests(unittest.TestCase):

    def test_format(self):
        self.assertEqual(format_receipt_number(2026, 42), "RCP-2026-000042")

    def test_next_skips_taken(self):
        taken = {"RCP-2026-000004", "RCP-2026-000005"}
        self.assertEqual(next_receipt_number(2026, 3, taken.__contains__), "RCP-2026-000006")
        self.assertEqual(next_receipt_number(2026, 0, taken.__contains__), "RCP-2026-000001")


class TimeUtilsTests(unittest.TestCase):

    def setUp(self):
        # Fixed local wall clock at UTC+02:00
        self.tz = timezone(timedelta(hours=2))
        self.now = datetime(2026, 3, 18, 15, 30, tzinfo=self.tz)

    def test_today_starts_at_local_midnight(self):
        self.assertEqual(period_start("today", self.now), datetime(2026, 3, 17, 22, 0))

    def test_week_is_rolling(self):
        self.assertEqual(period_start("week", self.now), datetime(2026, 3, 11, 13, 30))

    def test_month_and_year_follow_calendar(self):
        self.assertEqual(period_start("month", self.now), datetime(2026, 2, 28, 22, 0))
        self.assertEqual(period_start("year", self.now), datetime(2025, 12, 31, 22, 0))

    def test_all_has_no_bound(self):
        self.assertIsNone(period_start("all", self.now))

    def test_unknown_period(self):
        with self.assertRaises(ValueError):
            period_start("decade", self.now)

    def test_start_of_year(self):
        self.assertEqual(start_of_year(self.now), (2026, datetime(2025, 12, 31, 22, 0)))

    def test_iso_round_trip(self):
        dt = datetime(2026, 3, 18, 13, 30, 5, 123456)
        self.assertEqual(to_utc_z(dt), "2026-03-18T13:30:05.123Z")
        self.assertEqual(parse_iso_datetime("2026-03-18T15:30:05.123+02:00"), datetime(2026, 3, 18, 13, 30, 5, 123000))
        self.assertIsNone(parse_iso_datetime(""))


if __name__ == "__main__":
    unittest.main()
