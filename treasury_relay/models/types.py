from sqlalchemy import BigInteger
from sqlalchemy.types import TypeDecorator

from treasury_relay.utils.amounts import from_units, to_units


class Amount(TypeDecorator):
    """
    Decimal amount stored as a BIGINT count of 1e-8 units.

    Arithmetic in SQL (balance + delta >= 0) stays exact on every backend,
    SQLite included. Plain Python values compared against or added to an
    Amount column are converted through this type as well.
    """
    impl = BigInteger
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return to_units(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return from_units(value)
