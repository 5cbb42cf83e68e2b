"""Validation package."""

from pocketledger.validation.validator import (
    ValidationError,
    build_model,
    parse_amount,
    parse_date,
    parse_decimal,
    require_text,
    validate_month,
)

__all__ = [
    "ValidationError",
    "build_model",
    "parse_amount",
    "parse_date",
    "parse_decimal",
    "require_text",
    "validate_month",
]
