from decimal import Decimal

import pytest

from delivery_sheet.formatting import (
    format_currency,
    format_date,
    is_valid_date_string,
    parse_amount,
    slugify_title,
)


@pytest.mark.parametrize(
    "value, expected",
    [
        ("2024-03-05", "05/03"),
        ("2023-12-31", "31/12"),
        ("05/03/2024", "05/03"),
        ("5/3/2024", "05/03"),
        ("29/02/2024", "29/02"),
    ],
)
def test_format_date_drops_the_year(value, expected):
    assert format_date(value) == expected


def test_format_date_is_idempotent_for_day_month():
    assert format_date("07/11") == "07/11"
    assert format_date(format_date("2024-11-07")) == "07/11"


@pytest.mark.parametrize(
    "value",
    ["amanhã", "2023-02-30", "1/2/3/4", "2024-03", "2024-03-²", "①/03/2024", "12/³/2024"],
)
def test_format_date_returns_unparseable_input_unchanged(value):
    assert format_date(value) == value


def test_format_date_blank_is_not_available():
    assert format_date("") == "N/A"
    assert format_date(None) == "N/A"


def test_is_valid_date_string_checks_the_calendar():
    assert is_valid_date_string("2024-02-29") is True
    assert is_valid_date_string("2023-02-30") is False
    assert is_valid_date_string("29/02/2024") is True
    assert is_valid_date_string("29/02/2023") is False
    assert is_valid_date_string("29/02/2000") is True
    assert is_valid_date_string("29/02/1900") is False
    assert is_valid_date_string("31/04/2024") is False
    assert is_valid_date_string("1-5-2024") is True


def test_is_valid_date_string_rejects_other_forms():
    assert is_valid_date_string("12/03") is False
    assert is_valid_date_string("") is False
    assert is_valid_date_string("10/13/2024") is False
    assert is_valid_date_string("10/10/0999") is False
    assert is_valid_date_string("2024-3-5") is False


def test_parse_amount_accepts_comma_or_dot():
    assert parse_amount("1234,56") == Decimal("1234.56")
    assert parse_amount("1234.56") == Decimal("1234.56")
    assert parse_amount(10) == Decimal("10")
    assert parse_amount("12abc") == Decimal("12")
    assert parse_amount(" 7,5 ") == Decimal("7.5")


def test_parse_amount_unparseable_is_none():
    assert parse_amount("abc") is None
    assert parse_amount("") is None
    assert parse_amount(None) is None
    assert parse_amount(float("nan")) is None


def test_format_currency_comma_string_matches_number():
    assert format_currency("1234,56") == format_currency(1234.56)
    assert format_currency(1234.56) == "R$ 1.234,56"


def test_format_currency_empty_is_zero():
    assert format_currency("") == "R$ 0,00"
    assert format_currency(None) == "R$ 0,00"
    assert format_currency(0) == "R$ 0,00"


def test_format_currency_unparseable_is_placeholder():
    assert format_currency("abc") == "N/A"


def test_format_currency_rounding_and_sign():
    assert format_currency("0,005") == "R$ 0,01"
    assert format_currency(-1500) == "-R$ 1.500,00"
    assert format_currency(Decimal("1000000")) == "R$ 1.000.000,00"


def test_format_currency_keeps_every_digit_of_huge_amounts():
    assert format_currency("12345678901234567890123456789") == (
        "R$ 12.345.678.901.234.567.890.123.456.789,00"
    )
    assert format_currency("1e30") == "R$ 1" + ".000" * 10 + ",00"
    assert format_currency("-1e30").startswith("-R$ 1.000")


def test_amounts_beyond_double_range_are_unreadable():
    assert parse_amount("1e400") is None
    assert parse_amount(Decimal("1e400")) is None
    assert format_currency("1e400") == "N/A"
    assert parse_amount("1e-400") == Decimal("1e-400")
    assert format_currency("1e-400") == "R$ 0,00"


def test_slugify_title():
    assert slugify_title("Planilha de Entregas") == "planilha_de_entregas"
    assert slugify_title("  Março   2024 ") == "_março_2024_"
    assert slugify_title("") == "planilha"
