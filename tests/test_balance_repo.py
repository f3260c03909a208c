import pytest
from decimal import Decimal
from sqlalchemy.exc import IntegrityError

from treasury_relay.repositories import balance_repository


def test_create_balance_starts_at_zero(db_session):
    """Test creating a balance row."""
    balance = balance_repository.create_balance(db_session, "alice", "0xabc")

    assert balance.id is not None
    assert balance.username == "alice"
    assert balance.wallet_address == "0xabc"
    assert balance.available_balance == Decimal("0")


def test_create_balance_duplicate_username(db_session):
    """Test that usernames are unique across balance rows."""
    balance_repository.create_balance(db_session, "alice", "0xabc")

    with pytest.raises(IntegrityError):
        balance_repository.create_balance(db_session, "alice", "0xdef")
    db_session.rollback()


def test_get_by_username_missing(db_session):
    assert balance_repository.get_by_username(db_session, "nobody") is None


def test_apply_delta_credit_and_debit(db_session):
    """Test that deltas are applied in the database."""
    balance_repository.create_balance(db_session, "alice", "0xabc")

    assert balance_repository.apply_delta(db_session, "alice", Decimal("10")) is True
    assert balance_repository.apply_delta(db_session, "alice", Decimal("-4")) is True
    db_session.commit()

    balance = balance_repository.reload(db_session, "alice")
    assert balance.available_balance == Decimal("6")


def test_apply_delta_refuses_negative_result(db_session):
    """Test that a debit larger than the balance changes nothing."""
    balance_repository.create_balance(db_session, "alice", "0xabc")
    balance_repository.apply_delta(db_session, "alice", Decimal("5"))
    db_session.commit()

    assert balance_repository.apply_delta(db_session, "alice", Decimal("-5.00000001")) is False
    db_session.commit()

    balance = balance_repository.reload(db_session, "alice")
    assert balance.available_balance == Decimal("5")


def test_apply_delta_missing_row(db_session):
    assert balance_repository.apply_delta(db_session, "ghost", Decimal("1")) is False


def test_apply_delta_can_reach_exactly_zero(db_session):
    balance_repository.create_balance(db_session, "alice", "0xabc")
    balance_repository.apply_delta(db_session, "alice", Decimal("3"))
    assert balance_repository.apply_delta(db_session, "alice", Decimal("-3")) is True
    db_session.commit()

    assert balance_repository.reload(db_session, "alice").available_balance == Decimal("0")


def test_total_available(db_session):
    balance_repository.create_balance(db_session, "alice", "0xabc")
    balance_repository.create_balance(db_session, "bob", "0xdef")
    balance_repository.apply_delta(db_session, "alice", Decimal("1.25"))
    balance_repository.apply_delta(db_session, "bob", Decimal("2.5"))
    db_session.commit()

    assert balance_repository.total_available(db_session) == Decimal("3.75")


def test_total_available_empty(db_session):
    assert balance_repository.total_available(db_session) == Decimal("0")


def test_fractional_deltas_are_exact(db_session):
    """0.3 - 0.1 - 0.2 must land on exactly zero, not a float remainder."""
    balance_repository.create_balance(db_session, "alice", "0xabc")
    assert balance_repository.apply_delta(db_session, "alice", Decimal("0.3")) is True
    assert balance_repository.apply_delta(db_session, "alice", Decimal("-0.1")) is True
    assert balance_repository.apply_delta(db_session, "alice", Decimal("-0.2")) is True
    db_session.commit()

    balance = balance_repository.reload(db_session, "alice")
    assert balance.available_balance == Decimal("0")
    assert balance_repository.apply_delta(db_session, "alice", Decimal("-0.00000001")) is False


def test_smallest_unit_round_trips(db_session):
    balance_repository.create_balance(db_session, "alice", "0xabc")
    balance_repository.apply_delta(db_session, "alice", Decimal("12345.67890123"))
    db_session.commit()

    assert balance_repository.reload(db_session, "alice").available_balance == Decimal("12345.67890123")
    assert balance_repository.total_available(db_session) == Decimal("12345.67890123")
