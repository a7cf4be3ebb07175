"""
Request body validators.

Each validator inspects the raw JSON body and returns every problem it finds,
in field order. An empty list means the body is valid. Validators never raise.
"""
import re
from decimal import Decimal, InvalidOperation
from typing import Any, List, Mapping, Optional

EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
# Plain decimal or exponent notation; no digit separators.
NUMBER_PATTERN = re.compile(r"[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?", re.ASCII)

MIN_NAME_LENGTH = 2
MIN_PASSWORD_LENGTH = 6

# Bounds of the investments.amount NUMERIC(12, 2) column.
AMOUNT_DECIMAL_PLACES = 2
MAX_AMOUNT = Decimal("10000000000")


def _non_empty_string(value: Any) -> bool:
    return isinstance(value, str) and value.strip() != ""


# PUBLIC_INTERFACE
def parse_amount(value: Any) -> Optional[Decimal]:
    """
    Coerce an amount to a Decimal.

    Accepts ints, floats and numeric strings. Returns None for missing values,
    booleans, non-numeric strings, NaN and infinities.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        text = str(value)
    elif isinstance(value, str):
        text = value.strip()
        if not NUMBER_PATTERN.fullmatch(text):
            return None
    else:
        return None
    try:
        amount = Decimal(text)
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    return amount


# PUBLIC_INTERFACE
def validate_registration(body: Mapping[str, Any]) -> List[str]:
    errors = []

    name = body.get("name")
    if not isinstance(name, str) or len(name.strip()) < MIN_NAME_LENGTH:
        errors.append("Name must be at least 2 characters")

    email = body.get("email")
    if not isinstance(email, str) or not EMAIL_PATTERN.fullmatch(email):
        errors.append("Valid email is required")

    password = body.get("password")
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        errors.append("Password must be at least 6 characters")
    elif "\x00" in password:
        errors.append("Password must not contain null characters")

    return errors


# PUBLIC_INTERFACE
def validate_login(body: Mapping[str, Any]) -> List[str]:
    """Presence check only; the email format is not re-validated on login."""
    email = body.get("email")
    password = body.get("password")
    if not isinstance(email, str) or not email or not isinstance(password, str) or not password:
        return ["Email and password are required"]
    return []


# PUBLIC_INTERFACE
def validate_investment(body: Mapping[str, Any]) -> List[str]:
    errors = []

    if not _non_empty_string(body.get("farmer_name")):
        errors.append("farmer_name is required and must be a non-empty string")

    amount = parse_amount(body.get("amount"))
    if amount is None or amount <= 0:
        errors.append("amount is required and must be a positive number")
    elif amount.normalize().as_tuple().exponent < -AMOUNT_DECIMAL_PLACES:
        errors.append("amount must have at most 2 decimal places")
    elif amount >= MAX_AMOUNT:
        errors.append("amount must be less than 10000000000")

    if not _non_empty_string(body.get("crop")):
        errors.append("crop is required and must be a non-empty string")

    return errors
