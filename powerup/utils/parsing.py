"""Helpers that turn raw JSON values into column values.

Every helper raises ``ValueError`` with a readable message; views turn that
into a 400.
"""

from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation


def parse_datetime(value, field):
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        text = value.strip()
        # fromisoformat() on older interpreters rejects the Z suffix
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise ValueError(f"'{field}' must be an ISO 8601 datetime")
    else:
        raise ValueError(f"'{field}' is required")

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_enum(enum_cls, value, field):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValueError(f"'{field}' must be one of: {allowed}")


MAX_AMOUNT = Decimal("99999999.99")


def parse_decimal(value, field):
    if value is None or isinstance(value, bool):
        raise ValueError(f"'{field}' must be a number")
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"'{field}' must be a number")
    # NaN and Infinity parse fine but cannot be compared or stored
    if not amount.is_finite():
        raise ValueError(f"'{field}' must be a number")
    if amount < 0:
        raise ValueError(f"'{field}' must not be negative")
    if amount > MAX_AMOUNT:
        raise ValueError(f"'{field}' must not exceed {MAX_AMOUNT}")
    return amount


def parse_str(value, field, strip=True):
    """Optional text field; None becomes an empty string."""
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"'{field}' must be a string")
    return value.strip() if strip else value


def parse_int(value, field, required=True):
    if value is None and not required:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"'{field}' must be an integer")
    return value


def parse_bool(value, field, default=None):
    if value is None and default is not None:
        return default
    if not isinstance(value, bool):
        raise ValueError(f"'{field}' must be true or false")
    return value


def isoformat(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return None


def money(value):
    return float(value) if value is not None else None
