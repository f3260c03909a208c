from pydantic import Field
from typing import Optional
from datetime import datetime

from treasury_relay.schemas.common import CamelModel

class CreatePaymentLinkRequest(CamelModel):
    wallet_address: str = Field(..., min_length=1, max_length=100)
    alias: str = Field(..., min_length=1, max_length=64)

class PaymentLinkResponse(CamelModel):
    id: int
    wallet_address: str
    username: str
    alias: str
    created_at: Optional[datetime] = None

class AliasAvailabilityResponse(CamelModel):
    alias: str
    available: bool

class ResolvedRecipientResponse(CamelModel):
    wallet_address: str
    username: str
    source: str
