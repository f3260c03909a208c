from pydantic import Field
from decimal import Decimal
from typing import Optional
from datetime import datetime

from treasury_relay.schemas.common import CamelModel

class RegisterUserRequest(CamelModel):
    wallet_address: str = Field(..., min_length=1, max_length=100)
    username: Optional[str] = Field(None, max_length=64)

class UserResponse(CamelModel):
    id: int
    wallet_address: str
    username: Optional[str] = None
    created_at: Optional[datetime] = None

class BalanceResponse(CamelModel):
    username: str
    wallet_address: Optional[str] = None
    available_balance: Decimal
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
