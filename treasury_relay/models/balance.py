from sqlalchemy import (
    Column, Integer, String, DateTime, BigInteger, CheckConstraint
)
from sqlalchemy.sql import func
from treasury_relay.database import Base
from treasury_relay.models.types import Amount


class Balance(Base):
    __tablename__ = "balances"
    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)

    # Ledger identity; payments reference it by recipient_username
    username = Column(String(64), unique=True, nullable=False, index=True)

    # Equals username for implicit users that never registered a wallet
    wallet_address = Column(String(100), nullable=False, index=True)

    available_balance = Column(Amount, nullable=False, server_default="0")

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        # apply_delta already refuses updates that would break this
        CheckConstraint("available_balance >= 0", name="chk_available_balance_not_negative"),
        {"mysql_engine": "InnoDB"},
    )
