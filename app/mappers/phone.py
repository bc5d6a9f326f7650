import re

_NON_DIGIT = re.compile(r"\D")


def normalize_phone(raw: str | int | None) -> str:
    """Reduce a raw phone value to a comparable digit key.

    "1-(415) 555-0100" → "4155550100"
    "14155550100" → "4155550100"
    "" → ""
    """
    if raw is None or raw == "":
        return ""
    digits = _NON_DIGIT.sub("", str(raw))
    if len(digits) == 11 and digits.startswith("1"):
        return digits[1:]
    return digits


def to_e164(
    digits: str, phone_code: str | None = None, raw: str | None = None
) -> str | None:
    if not digits:
        return None
    code = _NON_DIGIT.sub("", phone_code or "")
    if code:
        return f"+{code}{digits}"
    if raw and str(raw).strip().startswith("+"):
        return "+" + _NON_DIGIT.sub("", str(raw))
    return None


def last4(digits: str) -> str:
    return digits[-4:] if len(digits) >= 4 else "none"
