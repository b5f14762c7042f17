from decimal import Decimal, InvalidOperation, localcontext
from typing import Union

AmountLike = Union[str, int, Decimal]

# uint256 needs 78 significant digits
_PRECISION = 96


def _to_decimal(amount: AmountLike) -> Decimal:
    """Parse a human amount without going through float."""
    if isinstance(amount, float):
        raise ValueError("Pass amounts as str or Decimal, floats lose precision.")
    if isinstance(amount, Decimal):
        parsed = amount
    else:
        try:
            parsed = Decimal(str(amount).strip())
        except InvalidOperation:
            raise ValueError(f"Invalid amount {amount!r}") from None
    if not parsed.is_finite():
        raise ValueError(f"Invalid amount {amount!r}")
    return parsed


def parse_units(amount: AmountLike, decimals: int) -> int:
    """
    Scale a human-readable amount to integer base units: amount * 10**decimals.

    Raises ValueError for negative amounts or precision finer than one base unit.
    """
    if decimals < 0:
        raise ValueError(f"Decimals must be non-negative, got {decimals}")
    value = _to_decimal(amount)
    if value < 0:
        raise ValueError(f"Amount must be non-negative, got {amount!r}")

    with localcontext() as context:
        context.prec = _PRECISION
        scaled = value.scaleb(decimals)
        integral = scaled.to_integral_value()
    if scaled != integral:
        raise ValueError(f"Amount {amount!r} has more than {decimals} decimal places")
    return int(integral)


def format_units(raw: int, decimals: int) -> str:
    """Render integer base units as a plain decimal string ('1.5', '0.000001', '42')."""
    if decimals < 0:
        raise ValueError(f"Decimals must be non-negative, got {decimals}")
    with localcontext() as context:
        context.prec = _PRECISION
        value = Decimal(int(raw)).scaleb(-decimals)
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"
