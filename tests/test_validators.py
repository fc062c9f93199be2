import pytest

from condohub.shared.validators import (
    validate_email,
    validate_iban,
    validate_mobile_phone,
    validate_nif,
    validate_pt_phone,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("912345678", "912345678"),
        ("+351 912 345 678", "912345678"),
        ("00351 212 345 678", "212345678"),
        ("351912345678", "912345678"),
        (None, None),
    ],
)
def test_pt_phone(raw, expected):
    assert validate_pt_phone(raw) == expected


@pytest.mark.parametrize("raw", ["12345", "812345678", "9123456789"])
def test_invalid_pt_phone(raw):
    with pytest.raises(ValueError):
        validate_pt_phone(raw)


def test_mbway_needs_a_mobile_number():
    assert validate_mobile_phone("+351912345678") == "912345678"
    with pytest.raises(ValueError):
        validate_mobile_phone("212345678")


def test_email():
    assert validate_email("  John.Doe@Example.PT ") == "john.doe@example.pt"
    with pytest.raises(ValueError):
        validate_email("john@localhost")


def test_nif_check_digit():
    assert validate_nif("123 456 789") == "123456789"
    with pytest.raises(ValueError):
        validate_nif("123456780")
    with pytest.raises(ValueError):
        validate_nif("1234")


def test_iban_checksum():
    assert validate_iban("gb82 west 1234 5698 7654 32") == "GB82WEST12345698765432"
    with pytest.raises(ValueError):
        validate_iban("GB83WEST12345698765432")
    with pytest.raises(ValueError):
        validate_iban("not an iban")
