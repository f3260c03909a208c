
from treasury_relay.database import Base 
from .user import User
from .payment_link import PaymentLink
from .balance import Balance
from .payment import Payment

__all__ = ["Base", "User", "PaymentLink", "Balance", "Payment"]
