from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    """Coerce provider prices (str, float, int, Decimal) to a 2-decimal Decimal."""
    if isinstance(value, float):
        value = repr(value)
    try:
        return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, TypeError, ValueError):
        raise ValueError(f"Not a monetary amount: {value!r}")


def apply_markup(price: Decimal, markup_percentage) -> Decimal:
    """price * (1 + markup/100), rounded to cents."""
    factor = Decimal(1) + Decimal(str(markup_percentage)) / Decimal(100)
    return to_money(price * factor)
