# storefront/utils/validation.py
import re

# Persian (U+06F0..) and Arabic-Indic (U+0660..) digits
_DIGITS = str.maketrans("۰۱۲۳۴۵۶۷۸۹٠١٢٣٤٥٦٧٨٩", "01234567890123456789")
_NON_DIGIT = re.compile(r"\D")


def to_latin_digits(value: str) -> str:
    return (value or "").translate(_DIGITS)


def normalize_phone(raw: str) -> str:
    """0098912..., +98912..., 912... all become 0912..."""
    digits = _NON_DIGIT.sub("", to_latin_digits(raw))
    if not digits:
        return ""
    if digits.startswith("0098"):
        return "0" + digits[4:]
    if digits.startswith("98"):
        return "0" + digits[2:]
    if digits.startswith("9"):
        return "0" + digits
    return digits


def digits_only(value: str | None) -> str | None:
    if not value:
        return None
    digits = _NON_DIGIT.sub("", to_latin_digits(value))
    return digits or None
