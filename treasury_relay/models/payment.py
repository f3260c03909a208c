from sqlalchemy import (
    Column, Integer, String, DateTime,
    BigInteger, Index, CheckConstraint, UniqueConstraint
)
from sqlalchemy.sql import func

from treasury_relay.database import Base
from treasury_relay.models.types import Amount


class Payment(Base):
    """
    Append-only ledger entry.

    Received payments carry a positive amount and status 'completed';
    withdrawals a negative amount and status 'withdrawn'.
    """
    __tablename__ = "payments"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)

    sender_address = Column(String(100), nullable=False, index=True)
    recipient_username = Column(String(64), nullable=False, index=True)

    amount = Column(Amount, nullable=False)

    tx_hash = Column(String(100), nullable=False, index=True)
    status = Column(String(20), nullable=False)

    created_at = Column(DateTime, server_default=func.now(), index=True)

    __table_args__ = (
        CheckConstraint("status IN ('completed', 'withdrawn')", name="chk_payment_status_valid"),
        CheckConstraint(
            "(status = 'completed' AND amount > 0) OR (status = 'withdrawn' AND amount < 0)",
            name="chk_payment_amount_sign",
        ),
        # One credit and one withdrawal at most per on-chain transaction
        UniqueConstraint("tx_hash", "status", name="uq_payment_tx_status"),
        Index("idx_payments_recipient_created", "recipient_username", "created_at"),
        {"mysql_engine": "InnoDB"},
    )
