from datetime import date
from decimal import Decimal

import pytest

from ledger_sync.parsing import SENTINEL_DATE, parse_amount, parse_date


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("44927", date(2023, 1, 1)),
        ("44927.75", date(2023, 1, 1)),
        ("01/02/2024", date(2024, 1, 2)),
        ("2024-02-01", date(2024, 2, 1)),
        ("2024-02-01T10:30:00", date(2024, 2, 1)),
        ("13/02/2024", date(2024, 2, 13)),
        ("2024/02/13", date(2024, 2, 13)),
        ("12-25-2023", date(2023, 12, 25)),
        ("25-12-2023", date(2023, 12, 25)),
        ("31.12.2023", date(2023, 12, 31)),
        ("01/02/24", date(2024, 1, 2)),
        ("01/02/75", date(1975, 1, 2)),
        ("  03/04/2024  ", date(2024, 3, 4)),
        ("March 5, 2024", date(2024, 3, 5)),
    ],
)
def test_parse_date_known_formats(raw: str, expected: date):
    assert parse_date(raw) == expected


def test_parse_date_rejects_rollover():
    # Feb 30 must not wrap into March.
    assert parse_date("02/30/2024") == SENTINEL_DATE


@pytest.mark.parametrize("raw", ["", "   ", "########", "not a date", "13/13/13", "-5", "0"])
def test_parse_date_never_raises(raw: str):
    assert isinstance(parse_date(raw), date)


def test_parse_date_unreadable_is_sentinel():
    assert parse_date("########") == SENTINEL_DATE
    assert parse_date("") == SENTINEL_DATE
    assert parse_date(None) == SENTINEL_DATE


def test_parse_date_passes_dates_through():
    assert parse_date(date(2020, 6, 1)) == date(2020, 6, 1)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("$50.00", Decimal("50.00")),
        ("1,234.56", Decimal("1234.56")),
        ("(12.50)", Decimal("-12.50")),
        ("-7", Decimal("-7.00")),
        ("12.345", Decimal("12.35")),
        (" USD 9 ", Decimal("9.00")),
        (".5", Decimal("0.50")),
        ("", Decimal("0.00")),
        ("abc", Decimal("0.00")),
        ("--5", Decimal("0.00")),
        ("1.2.3", Decimal("0.00")),
        (None, Decimal("0.00")),
    ],
)
def test_parse_amount(raw, expected: Decimal):
    assert parse_amount(raw) == expected


def test_parse_amount_is_two_decimal():
    assert parse_amount("3").as_tuple().exponent == -2
