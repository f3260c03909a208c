from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from treasury_relay.database import get_db
from treasury_relay.services import ledger_service, payment_recorder
from treasury_relay.schemas.payment import PaymentRequest, PaymentResponse, PaymentHistoryItem

router = APIRouter()

@router.post("", response_model=PaymentResponse)
def record_payment(request: PaymentRequest, db: Session = Depends(get_db)):
    """
    Record a confirmed deposit to the treasury and credit the recipient.
    Replaying the same txHash returns the original entry.
    """
    return payment_recorder.record_payment(
        db,
        sender_address=request.sender_address,
        recipient_identifier=request.recipient_identifier,
        amount=request.amount,
        tx_hash=request.tx_hash,
    )

@router.get("/{username}", response_model=List[PaymentHistoryItem])
def payment_history(
    username: str,
    viewer: Optional[str] = Query(None, description="Wallet used to mark sent entries"),
    db: Session = Depends(get_db)
):
    """Received and sent entries for a username, newest first."""
    return ledger_service.list_payments(db, username, viewer_wallet=viewer)
