from typing import Callable, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from treasury_relay.database import get_db
from treasury_relay.schemas.withdrawal import WithdrawRequest, WithdrawResponse
from treasury_relay.services.withdrawal_relay import WithdrawalRelay, get_relay
from treasury_relay.utils.exceptions import ValidationError

router = APIRouter()


def relay_provider() -> Callable[[], WithdrawalRelay]:
    """
    Returns the relay factory rather than the relay, so missing parameters are
    reported before an unconfigured treasury.
    """
    return get_relay


@router.post("", response_model=WithdrawResponse)
def withdraw(
    request: Optional[WithdrawRequest] = None,
    db: Session = Depends(get_db),
    provide_relay: Callable[[], WithdrawalRelay] = Depends(relay_provider),
):
    """
    Withdraw credited balance from the treasury to a wallet.
    The on-chain transfer is confirmed before the ledger is debited.
    """
    request = request or WithdrawRequest()
    missing = request.missing_fields()
    if missing:
        raise ValidationError(
            f"Requires username, amount, and destinationAddress (missing: {', '.join(missing)})",
            code="MISSING_PARAMS",
        )

    relay = provide_relay()
    result = relay.withdraw(db, request.username, request.amount, request.destination_address)
    return WithdrawResponse(tx_hash=result.tx_hash, new_balance=result.new_balance)
