"""Tests for text, amount and date normalization."""

from datetime import date

from invoice_intake.extraction.normalizers import (
    AmountNormalizer,
    DateNormalizer,
    TextNormalizer,
    parse_extracted_date,
)

text_normalizer = TextNormalizer()
amounts = AmountNormalizer()
dates = DateNormalizer()


def test_normalize_fixes_ocr_confusions_and_spaces():
    assert text_normalizer.normalize("Total : 1O0,5l €") == "Total : 100,51 €"


def test_normalize_keeps_letters_not_next_to_digits():
    assert text_normalizer.normalize("BOLOGNE  Il\tvalide") == "BOLOGNE Il valide"


def test_normalize_empty():
    assert text_normalizer.normalize(None) == ""
    assert text_normalizer.normalize("   \n\t ") == ""


def test_normalize_lines_drops_blank_lines():
    assert text_normalizer.normalize_lines("A  B\n\n  \nC\tO1") == ["A B", "C 01"]


def test_french_and_english_amounts():
    assert amounts.to_float("1 234,56 €") == 1234.56
    assert amounts.to_float("1234.56€") == 1234.56
    assert amounts.to_float("12,340.00") == 12340.00


def test_comma_thousands_and_dot_decimal_variants():
    assert amounts.to_float("1.234,56") == 1234.56
    assert amounts.to_float("12,340") == 12340.0
    assert amounts.to_float("150,00 EUR") == 150.0
    assert amounts.to_float("abc") is None


def test_single_digit_after_comma_is_decimal():
    assert amounts.to_float("45,5 €") == 45.5
    assert amounts.to_float("1 234,5") == 1234.5
    assert amounts.to_float("1,234,567") == 1234567.0


def test_from_parts_with_french_months():
    assert dates.from_parts("14", "mars", "2024") == "2024-03-14"
    assert dates.from_parts("1", "février", "2023") == "2023-02-01"
    assert dates.from_parts("3", "déc.", "2022") == "2022-12-03"


def test_from_parts_rejects_impossible_dates_and_years():
    assert dates.from_parts("31", "02", "2024") is None
    assert dates.from_parts("10", "13", "2024") is None
    assert dates.from_parts("10", "05", "1999") is None
    assert dates.from_parts("10", "05", "2100") is None


def test_parse_extracted_date_formats():
    assert parse_extracted_date("2024-03-14") == date(2024, 3, 14)
    assert parse_extracted_date("14/03/2024") == date(2024, 3, 14)
    assert parse_extracted_date("14/03/24") == date(2024, 3, 14)
    assert parse_extracted_date("2024/03/14") == date(2024, 3, 14)
    assert parse_extracted_date("") is None
    assert parse_extracted_date("32/01/2024") is None
