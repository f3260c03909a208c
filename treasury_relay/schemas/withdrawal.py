from decimal import Decimal
from typing import Optional

from treasury_relay.schemas.common import CamelModel

class WithdrawRequest(CamelModel):
    # Optional so that a missing field is reported as missing_params, not a 422
    username: Optional[str] = None
    amount: Optional[Decimal] = None
    destination_address: Optional[str] = None

    def missing_fields(self):
        missing = []
        if not self.username:
            missing.append("username")
        if self.amount is None:
            missing.append("amount")
        if not self.destination_address:
            missing.append("destinationAddress")
        return missing

class WithdrawResponse(CamelModel):
    tx_hash: str
    new_balance: Decimal
