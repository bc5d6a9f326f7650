import pytest

from app.mappers.phone import last4, normalize_phone, to_e164


@pytest.mark.parametrize(
    "raw",
    ["1-(415) 555-0100", "4155550100", "14155550100", "+1 415.555.0100", 14155550100],
)
def test_normalize_us_numbers(raw):
    assert normalize_phone(raw) == "4155550100"


def test_normalize_empty():
    assert normalize_phone("") == ""
    assert normalize_phone(None) == ""


def test_normalize_keeps_non_us_lengths():
    # only 11-digit numbers with a leading 1 lose a digit
    assert normalize_phone("+52 55 1234 56789") == "5255123456789"
    assert normalize_phone("24155550100") == "24155550100"


def test_normalize_garbage_degrades():
    assert normalize_phone("call me") == ""
    assert normalize_phone("ext 12") == "12"


def test_to_e164():
    assert to_e164("4155550100", phone_code="1") == "+14155550100"
    assert to_e164("4155550100", raw="+1 (415) 555-0100") == "+14155550100"
    assert to_e164("4155550100") is None
    assert to_e164("", phone_code="1") is None


def test_last4():
    assert last4("4155550100") == "0100"
    assert last4("12") == "none"
