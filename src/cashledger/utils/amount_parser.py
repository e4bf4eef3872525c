"""Amount parsing utilities."""

from decimal import Decimal, InvalidOperation
import re


def parse_amount(amount_str: str, allow_zero: bool = False) -> Decimal:
    """Parse a money amount typed by a teller into a Decimal.

    Handles:
    - "123.45"
    - "$123.45"
    - "1,234.56"

    Amounts are never negative here; the direction of a movement comes from
    the command, not the sign.

    Args:
        amount_str: Amount string
        allow_zero: Accept "0"

    Returns:
        Decimal amount with at most two decimal places

    Raises:
        ValueError: If the string is not a positive amount in dollars and cents
    """
    if amount_str is None or not str(amount_str).strip():
        raise ValueError("Empty amount string")

    cleaned = re.sub(r"[$,\s]", "", str(amount_str))

    try:
        amount = Decimal(cleaned)
    except InvalidOperation as e:
        raise ValueError(f"Could not parse amount '{amount_str}'") from e

    if not amount.is_finite():
        raise ValueError(f"Could not parse amount '{amount_str}'")
    if amount < 0 or (amount == 0 and not allow_zero):
        raise ValueError(f"Amount must be greater than zero (got '{amount_str}')")
    if amount != amount.quantize(Decimal("0.01")):
        raise ValueError(f"Amount '{amount_str}' has more than two decimal places")
    return amount.quantize(Decimal("0.01"))
