from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def ToAmount(value: Decimal | float | int | str | None) -> Decimal:
    if value is None:
        return ZERO
    try:
        amount = Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise ValueError(f"Invalid amount: {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return amount


def AmountToFloat(value: Decimal | None) -> float:
    return float(ToAmount(value))


def ToExactAmount(value: Decimal | float | int | str | None) -> Decimal:
    """Like ToAmount, but refuses values with fractions of a cent instead of rounding them."""
    amount = ToAmount(value)
    if value is not None and Decimal(str(value)) != amount:
        raise ValueError(f"Amount has more than two decimal places: {value!r}")
    return amount
