from sqlalchemy import Column, String, DateTime, BigInteger, Integer
from sqlalchemy.sql import func
from treasury_relay.database import Base


class PaymentLink(Base):
    __tablename__ = "payment_links"
    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)

    wallet_address = Column(String(100), nullable=False, index=True)
    username = Column(String(64), nullable=False)

    # e.g. "shop", "alice" - a pointer, never holds balance
    alias = Column(String(64), unique=True, nullable=False, index=True)

    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        {"mysql_engine": "InnoDB"},
    )
