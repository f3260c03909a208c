from sqlalchemy import Column, String, DateTime, BigInteger, Integer
from sqlalchemy.sql import func
from treasury_relay.database import Base


class User(Base):
    __tablename__ = "users"
    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)

    # Immutable once created
    wallet_address = Column(String(100), unique=True, nullable=False, index=True)

    # Display handle; the ledger identity lives on the balance row
    username = Column(String(64), unique=True, nullable=True, index=True)

    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        {"mysql_engine": "InnoDB"},
    )
