"""Shared validation utilities"""

import re
from typing import Optional

NIF_CHECK_WEIGHTS = (9, 8, 7, 6, 5, 4, 3, 2)


def validate_pt_phone(phone: Optional[str]) -> Optional[str]:
    """
    Validate and normalize a Portuguese phone number.

    Args:
        phone: Phone number string, with or without the +351 prefix

    Returns:
        The 9 national digits

    Raises:
        ValueError: If phone number is invalid
    """
    if not phone:
        return phone

    # Remove all non-digit characters
    digits = re.sub(r"\D", "", phone)

    if digits.startswith("00351"):
        digits = digits[5:]
    elif digits.startswith("351") and len(digits) == 12:
        digits = digits[3:]

    if len(digits) != 9 or digits[0] not in "29":
        raise ValueError("Phone number must have 9 digits")

    return digits


def validate_mobile_phone(phone: Optional[str]) -> Optional[str]:
    """Portuguese mobile number, as required by MB WAY"""
    phone = validate_pt_phone(phone)
    if phone and not phone.startswith("9"):
        raise ValueError("MB WAY requires a mobile phone number")
    return phone


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()

    email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"
    if not re.match(email_pattern, email):
        raise ValueError("Invalid email format")

    return email


def validate_nif(nif: Optional[str]) -> Optional[str]:
    """
    Validate a Portuguese tax number (NIF) including its check digit.

    Raises:
        ValueError: If the NIF is malformed or the check digit does not match
    """
    if not nif:
        return nif

    digits = re.sub(r"\D", "", nif)
    if len(digits) != 9:
        raise ValueError("NIF must have 9 digits")

    total = sum(int(d) * w for d, w in zip(digits[:8], NIF_CHECK_WEIGHTS))
    check = 11 - total % 11
    if check >= 10:
        check = 0
    if check != int(digits[8]):
        raise ValueError("Invalid NIF")

    return digits


def validate_iban(iban: Optional[str]) -> Optional[str]:
    """Normalize an IBAN and verify its mod-97 checksum"""
    if not iban:
        return iban

    value = re.sub(r"\s", "", iban).upper()
    if not re.match(r"^[A-Z]{2}\d{2}[A-Z0-9]{10,30}$", value):
        raise ValueError("Invalid IBAN format")

    rearranged = value[4:] + value[:4]
    numeric = "".join(str(int(ch, 36)) for ch in rearranged)
    if int(numeric) % 97 != 1:
        raise ValueError("Invalid IBAN checksum")

    return value
