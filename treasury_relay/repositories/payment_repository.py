from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from treasury_relay.models.payment import Payment
from treasury_relay.utils.amounts import to_amount
from treasury_relay.utils.constants import PaymentStatus


def append_payment(
    db: Session,
    sender_address: str,
    recipient_username: str,
    amount: Decimal,
    tx_hash: str,
    status: str,
) -> Payment:
    """
    Insert one ledger entry. Rows are never updated or deleted afterwards.

    Flushes only, so the insert commits or rolls back with the balance update.
    """
    payment = Payment(
        sender_address=sender_address,
        recipient_username=recipient_username,
        amount=amount,
        tx_hash=tx_hash,
        status=status,
    )
    db.add(payment)
    db.flush()
    return payment


def get_by_tx_hash(db: Session, tx_hash: str, status: str = PaymentStatus.COMPLETED) -> Optional[Payment]:
    """Find the entry recorded for an on-chain transaction."""
    return db.query(Payment).filter(Payment.tx_hash == tx_hash, Payment.status == status).first()


def list_received(db: Session, usernames: Iterable[str]) -> List[Payment]:
    """Entries credited to (or withdrawn from) any of the given usernames."""
    names = list(usernames)
    if not names:
        return []
    return (
        db.query(Payment)
        .filter(Payment.recipient_username.in_(names))
        .order_by(Payment.created_at.desc(), Payment.id.desc())
        .all()
    )


def list_sent(db: Session, sender_address: str) -> List[Payment]:
    return (
        db.query(Payment)
        .filter(Payment.sender_address == sender_address)
        .order_by(Payment.created_at.desc(), Payment.id.desc())
        .all()
    )


def sum_by_recipient(db: Session) -> Dict[str, Decimal]:
    """Signed sum of entries per recipient username."""
    rows = (
        db.query(Payment.recipient_username, func.sum(Payment.amount))
        .group_by(Payment.recipient_username)
        .all()
    )
    return {username: to_amount(total) for username, total in rows}
