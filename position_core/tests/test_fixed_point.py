"""Fixed-point arithmetic tests."""

import unittest
from decimal import Decimal

from position_core.errors import ValidationError
from position_core.fixed_point import (
    DEBT_CHANGE_TO_CLOSE,
    MAX_DECIMAL,
    absolute,
    div,
    from_raw,
    is_close_sentinel,
    mul,
    to_decimal,
    to_raw,
)


class FixedPointTests(unittest.TestCase):
    def test_max_decimal_is_exact(self) -> None:
        self.assertEqual(to_raw(MAX_DECIMAL), 2**256 - 1)
        self.assertEqual(to_raw(absolute(DEBT_CHANGE_TO_CLOSE)), 2**256 - 1)
        self.assertTrue(is_close_sentinel(DEBT_CHANGE_TO_CLOSE))
        self.assertFalse(is_close_sentinel(MAX_DECIMAL))

    def test_division_truncates(self) -> None:
        self.assertEqual(div(Decimal(1), Decimal(3)), Decimal("0.333333333333333333"))
        self.assertEqual(div(Decimal(-1), Decimal(3)), Decimal("-0.333333333333333333"))

    def test_multiplication_truncates(self) -> None:
        value = mul(Decimal("0.000000000000000001"), Decimal("0.5"))
        self.assertEqual(value, Decimal(0))

    def test_division_by_zero(self) -> None:
        with self.assertRaises(ZeroDivisionError):
            div(Decimal(1), Decimal(0))

    def test_to_decimal_inputs(self) -> None:
        self.assertEqual(to_decimal("1.5"), Decimal("1.5"))
        self.assertEqual(to_decimal(3), Decimal(3))
        self.assertEqual(to_decimal("0.1234567890123456789"), Decimal("0.123456789012345678"))
        with self.assertRaises(ValidationError):
            to_decimal(0.1)
        with self.assertRaises(ValidationError):
            to_decimal("not-a-number")
        with self.assertRaises(ValidationError):
            to_decimal("Infinity")

    def test_raw_conversion(self) -> None:
        self.assertEqual(to_raw(Decimal("1.5"), 18), 1_500_000_000_000_000_000)
        self.assertEqual(to_raw(Decimal("0.123456789"), 8), 12_345_678)
        self.assertEqual(from_raw(150_000_000, 8), Decimal("1.5"))


if __name__ == "__main__":
    unittest.main()
