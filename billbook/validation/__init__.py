"""Input validation package."""

from billbook.validation.validator import (
    BillValidator,
    InputValidationError,
    normalize_bill_fields,
    parse_amount,
)

__all__ = [
    "BillValidator",
    "InputValidationError",
    "normalize_bill_fields",
    "parse_amount",
]
