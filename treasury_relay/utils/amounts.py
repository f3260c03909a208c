from decimal import Decimal, InvalidOperation

# Amounts carry 8 decimal places and are stored as integer base units
AMOUNT_SCALE = 8
AMOUNT_QUANTUM = Decimal(1).scaleb(-AMOUNT_SCALE)
UNITS_PER_TOKEN = 10 ** AMOUNT_SCALE
ZERO = Decimal("0")


def to_amount(value) -> Decimal:
    """Coerce DB/request values (Decimal, float, int, str) to an 8-place Decimal."""
    if value is None:
        return ZERO.quantize(AMOUNT_QUANTUM)
    if not isinstance(value, Decimal):
        try:
            value = Decimal(str(value))
        except InvalidOperation:
            raise ValueError(f"Not a valid amount: {value!r}")
    if not value.is_finite():
        raise ValueError(f"Not a valid amount: {value!r}")
    return value.quantize(AMOUNT_QUANTUM)


def to_units(value) -> int:
    """8-place amount to integer base units (1 unit = 1e-8)."""
    return int(to_amount(value).scaleb(AMOUNT_SCALE))


def from_units(units) -> Decimal:
    return to_amount(Decimal(int(units)).scaleb(-AMOUNT_SCALE))
