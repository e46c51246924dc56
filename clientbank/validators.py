"""
Field-level validation helpers.

Each check returns a bool and never raises. Models combine them into
per-variant error lists (see ``validation_errors`` in ``models``).
"""

import re
from decimal import Decimal
from typing import Any, Optional

from .money import to_decimal, HUNDRED
from .errors import InvalidInput

_PERSON_NAME = re.compile(r"^[a-zA-Z .'-]+$")
_BUSINESS_NAME = re.compile(r"^[a-zA-Z0-9 .,'&-]+$")
_ADDRESS = re.compile(r"^[a-zA-Z0-9 ,.'\-#]+$")
_PHONE_CHARS = re.compile(r"^[0-9.\-() ]+$")
_TAX_ID_CHARS = re.compile(r"^[0-9\- ]+$")


def digits_only(value: str) -> str:
    """Strip everything except 0-9"""
    return re.sub(r"[^0-9]", "", value or "")


def is_valid_string(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def is_valid_person_name(name: Any) -> bool:
    return (is_valid_string(name)
            and bool(_PERSON_NAME.match(name))
            and 3 <= len(name) <= 50)


def is_valid_business_name(name: Any) -> bool:
    return (is_valid_string(name)
            and bool(_BUSINESS_NAME.match(name))
            and 2 <= len(name) <= 100)


def is_valid_address(address: Any) -> bool:
    return (is_valid_string(address)
            and bool(_ADDRESS.match(address))
            and len(address) <= 200)


def is_valid_phone(phone: Any) -> bool:
    """10 digits, optionally separated by dots, dashes, parentheses or spaces"""
    if not is_valid_string(phone) or not _PHONE_CHARS.match(phone):
        return False
    return len(digits_only(phone)) == 10


def is_valid_tax_id(tax_id: Any) -> bool:
    """9 digits with optional hyphens/spaces: 123456789, 123-45-6789, 12-3456789"""
    if not is_valid_string(tax_id) or not _TAX_ID_CHARS.match(tax_id):
        return False
    return len(digits_only(tax_id)) == 9


# EINs share the tax id shape; only the display format differs
is_valid_ein = is_valid_tax_id


def is_valid_contact_name(name: Any) -> bool:
    return is_valid_string(name) and 3 <= len(name) <= 50


def is_valid_account_name(name: Any) -> bool:
    return is_valid_string(name) and 3 <= len(name) <= 30


def is_valid_credit_score(score: Any) -> bool:
    return isinstance(score, int) and not isinstance(score, bool) and 300 <= score <= 850


def _as_decimal(value: Any) -> Optional[Decimal]:
    try:
        return to_decimal(value)
    except InvalidInput:
        return None


def is_non_negative(value: Any) -> bool:
    amount = _as_decimal(value)
    return amount is not None and amount >= 0


def is_valid_percentage(value: Any) -> bool:
    amount = _as_decimal(value)
    return amount is not None and 0 <= amount <= HUNDRED


def is_valid_count(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def is_valid_id(value: Any) -> bool:
    """Stored identifiers are positive; 0 is the not-yet-persisted sentinel"""
    return is_valid_count(value)
