"""
Decimal parsing and validation for prices and quantities

Prices and quantities (tons, rupees) arrive from forms and JSON as str,
int, float or Decimal. Everything is normalised to Decimal here so totals
like unit_price * quantity are exact.
"""

from decimal import Decimal, InvalidOperation
from typing import Any

from sealed_bidding.kernel.errors import ValidationError

# Largest accepted magnitude is 10**MAX_INTEGER_DIGITS - 1, so products of
# two parsed amounts stay far inside the decimal exponent range
MAX_INTEGER_DIGITS = 18


def to_decimal(value: Any, field: str, *, entity_id: str | None = None) -> Decimal:
    """
    Convert a value to a finite Decimal

    Floats go through str() so 0.1 stays 0.1 rather than its binary
    approximation.

    Raises:
        ValidationError: If the value is missing, not numeric, NaN, infinite
            or too large
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(field, "a number is required", entity_id=entity_id, value=value)

    try:
        if isinstance(value, Decimal):
            result = value
        elif isinstance(value, float):
            result = Decimal(str(value))
        else:
            result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(
            field, f"{value!r} is not a number", entity_id=entity_id, value=value
        ) from e

    if not result.is_finite():
        raise ValidationError(field, "must be finite", entity_id=entity_id, value=str(value))
    if result.adjusted() >= MAX_INTEGER_DIGITS:
        raise ValidationError(
            field,
            f"must be below 10^{MAX_INTEGER_DIGITS}",
            entity_id=entity_id,
            value=str(value),
        )
    return result


def validate_non_negative(value: Decimal, field: str, *, entity_id: str | None = None) -> None:
    if value < 0:
        raise ValidationError(field, "must not be negative", entity_id=entity_id, value=str(value))


def validate_positive(value: Decimal, field: str, *, entity_id: str | None = None) -> None:
    if value <= 0:
        raise ValidationError(field, "must be greater than zero", entity_id=entity_id, value=str(value))


def validate_decimal_places(
    value: Decimal, places: int, field: str, *, entity_id: str | None = None
) -> None:
    """Reject values with more fractional digits than allowed (e.g. 10.005 tons at 2 places)"""
    _, digits, exponent = value.as_tuple()
    extra = -exponent - places
    if extra > 0 and any(digits[-extra:]):
        raise ValidationError(
            field,
            f"at most {places} decimal places allowed",
            entity_id=entity_id,
            value=str(value),
        )


def parse_quantity(
    value: Any,
    field: str,
    places: int,
    *,
    entity_id: str | None = None,
    allow_zero: bool = False,
) -> Decimal:
    """Parse a quantity: finite, bounded precision, positive (or >= 0 with allow_zero)"""
    quantity = to_decimal(value, field, entity_id=entity_id)
    if allow_zero:
        validate_non_negative(quantity, field, entity_id=entity_id)
    else:
        validate_positive(quantity, field, entity_id=entity_id)
    validate_decimal_places(quantity, places, field, entity_id=entity_id)
    return quantity


def parse_price(value: Any, field: str, *, entity_id: str | None = None) -> Decimal:
    """Parse a unit price: finite and >= 0"""
    price = to_decimal(value, field, entity_id=entity_id)
    validate_non_negative(price, field, entity_id=entity_id)
    return price
