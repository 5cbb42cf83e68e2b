"""
Input Validation

Two layers guard what reaches storage:

1. Parsing of untrusted text (CSV cells, form input) into typed values:
   amounts must be positive finite decimals, dates real calendar dates,
   months YYYY-MM.
2. Model validation: every record is built through its pydantic model,
   and pydantic failures are re-raised as the ledger's ValidationError
   naming the offending field.

Validation never silently fixes a value. It either returns the parsed
value or raises.
"""

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Sequence, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError


MONTH_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")

# Integer digits at which an amount is treated as garbage
MAX_AMOUNT_DIGITS = 15

ModelT = TypeVar("ModelT", bound=BaseModel)


class ValidationError(Exception):
    """
    A value supplied to the ledger is unacceptable.

    Raised per item: a batch only fails as a whole when every item does.
    """

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field


def parse_decimal(raw: Any, field: str = "amount") -> Decimal:
    """
    Parse a finite decimal of any sign.

    Values of MAX_AMOUNT_DIGITS or more integer digits are rejected so that
    later sums and negations stay inside the decimal context.
    """
    if raw is None or isinstance(raw, bool):
        raise ValidationError(f"Invalid {field} \"{raw}\"", field)

    text = raw if isinstance(raw, str) else str(raw)
    text = text.strip()
    try:
        value = Decimal(text)
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid {field} \"{raw}\"", field)

    if not value.is_finite() or (value and value.adjusted() >= MAX_AMOUNT_DIGITS):
        raise ValidationError(f"Invalid {field} \"{raw}\"", field)

    return value


def parse_amount(raw: Any, field: str = "amount") -> Decimal:
    """
    Parse a strictly positive, finite amount.

    Accepts Decimal, int, float or numeric text (surrounding whitespace
    ignored). Booleans are rejected.
    """
    amount = parse_decimal(raw, field)
    if amount <= 0:
        raise ValidationError(f"Invalid {field} \"{raw}\"", field)
    return amount


def parse_date(
    raw: Any,
    formats: Sequence[str] = (),
    field: str = "date",
) -> date:
    """
    Parse a calendar date.

    ISO 8601 dates and datetimes are tried first, then each strptime
    format in order.
    """
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if not isinstance(raw, str) or not raw.strip():
        raise ValidationError(f"Invalid {field} \"{raw}\"", field)

    text = raw.strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass

    for fmt in formats:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue

    raise ValidationError(f"Invalid {field} \"{raw}\"", field)


def validate_month(month: Any) -> str:
    """Check a month is in YYYY-MM format."""
    if isinstance(month, date):
        return month.strftime("%Y-%m")
    if not isinstance(month, str) or not MONTH_PATTERN.match(month.strip()):
        raise ValidationError(f"Month must be in YYYY-MM format, got \"{month}\"", "month")
    return month.strip()


def require_text(value: Any, field: str) -> str:
    """Check a required text field is present and not blank."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field.replace('_', ' ').capitalize()} is required", field)
    return value.strip()


def build_model(model_cls: type[ModelT], **fields: Any) -> ModelT:
    """
    Construct a model, converting pydantic failures to ValidationError.

    The first failing field is reported.
    """
    try:
        return model_cls(**fields)
    except PydanticValidationError as e:
        error = e.errors()[0]
        field = ".".join(str(part) for part in error.get("loc", ())) or None
        message = error.get("msg", "Invalid value")
        if field:
            message = f"{field}: {message}"
        raise ValidationError(message, field)
