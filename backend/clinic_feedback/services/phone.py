from __future__ import annotations

import re

from clinic_feedback.core.errors import InvalidPhoneError

MIN_DIGITS = 10
MAX_DIGITS = 15

# Calling codes accepted without a leading "+", longest first.
COUNTRY_CODES = ("998", "996", "993", "992", "994", "995", "374", "375", "380", "7")

_SEPARATORS_RE = re.compile(r"[\s\-().,/\\_ ]+")


def normalize_phone(raw: str | None) -> str:
    """Return the canonical ``+<digits>`` form of ``raw`` or raise InvalidPhoneError.

    A national number dialled with a leading ``8`` is rewritten to the ``7``
    calling code before the calling-code allow-list is consulted.
    """
    text = _SEPARATORS_RE.sub("", str(raw or "")).strip()
    if not text:
        raise InvalidPhoneError(str(raw or ""), "empty phone number")

    has_plus = text.startswith("+")
    if has_plus:
        text = text[1:]
    if not text.isdigit():
        raise InvalidPhoneError(str(raw), "contains characters other than digits")

    if len(text) < MIN_DIGITS or len(text) > MAX_DIGITS:
        raise InvalidPhoneError(
            str(raw),
            f"invalid length: {len(text)} digits, expected {MIN_DIGITS}-{MAX_DIGITS}",
        )

    digits = text
    if not has_plus and digits.startswith("8"):
        digits = "7" + digits[1:]
    if not has_plus and digits.startswith(COUNTRY_CODES):
        has_plus = True
    if not has_plus:
        raise InvalidPhoneError(str(raw), "not in international format")

    return "+" + digits
