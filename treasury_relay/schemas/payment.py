from pydantic import Field
from decimal import Decimal
from typing import Optional
from datetime import datetime

from treasury_relay.schemas.common import CamelModel

class PaymentRequest(CamelModel):
    sender_address: str = Field(..., min_length=1, max_length=100)
    recipient_identifier: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., gt=0)
    tx_hash: str = Field(..., min_length=1, max_length=100)

class PaymentResponse(CamelModel):
    id: int
    sender_address: str
    recipient_username: str
    amount: Decimal
    tx_hash: str
    status: str
    created_at: Optional[datetime] = None

class PaymentHistoryItem(PaymentResponse):
    is_sent: bool = False
