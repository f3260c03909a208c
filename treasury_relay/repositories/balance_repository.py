from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from treasury_relay.models.balance import Balance
from treasury_relay.utils.amounts import to_amount


def get_by_username(db: Session, username: str) -> Optional[Balance]:
    """Fetch the balance row for a ledger username, or None if it was never created."""
    return db.query(Balance).filter(Balance.username == username).first()

def get_by_wallet(db: Session, wallet_address: str) -> Optional[Balance]:
    return db.query(Balance).filter(Balance.wallet_address == wallet_address).first()

def create_balance(db: Session, username: str, wallet_address: str, commit: bool = True) -> Balance:
    """
    Create a zero balance row.

    By default commits immediately so concurrent creators collide on the
    unique username instead of inside a larger transaction.
    """
    balance = Balance(
        username=username,
        wallet_address=wallet_address,
        available_balance=Decimal("0"),
    )
    db.add(balance)
    if commit:
        db.commit()
        db.refresh(balance)
    else:
        db.flush()
    return balance

def reload(db: Session, username: str) -> Optional[Balance]:
    """Re-read a balance row, discarding whatever the session has cached."""
    return db.query(Balance).filter(Balance.username == username).populate_existing().first()

def apply_delta(db: Session, username: str, delta: Decimal) -> bool:
    """
    Atomically add delta to a balance, refusing to go below zero.

    Runs a single conditional UPDATE, so two concurrent deltas for the same
    username are serialized by the database row lock and the second one sees
    the first one's result.

    Returns False when no row was updated (row missing or result would be negative).
    Does not commit.
    """
    stmt = (
        update(Balance)
        .where(Balance.username == username)
        .where(Balance.available_balance + delta >= 0)
        .values(
            available_balance=Balance.available_balance + delta,
            updated_at=datetime.now(),
        )
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    return result.rowcount == 1

def reassign_wallet(db: Session, balance: Balance, wallet_address: str) -> Balance:
    """Attach an implicit balance row to the wallet that registered its username."""
    balance.wallet_address = wallet_address
    db.flush()
    return balance

def total_available(db: Session) -> Decimal:
    """Sum of all credited balances."""
    total = db.query(func.coalesce(func.sum(Balance.available_balance), 0)).scalar()
    return to_amount(total)
