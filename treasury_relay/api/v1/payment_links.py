from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from treasury_relay.database import get_db
from treasury_relay.services import alias_resolver, ledger_service
from treasury_relay.schemas.payment_link import (
    AliasAvailabilityResponse,
    CreatePaymentLinkRequest,
    PaymentLinkResponse,
    ResolvedRecipientResponse,
)
from treasury_relay.utils.identifiers import normalize_alias

router = APIRouter()

@router.get("/aliases/{candidate}/availability", response_model=AliasAvailabilityResponse)
def alias_availability(candidate: str, db: Session = Depends(get_db)):
    return AliasAvailabilityResponse(
        alias=normalize_alias(candidate),
        available=ledger_service.is_alias_available(db, candidate),
    )

@router.get("/aliases/{identifier}/resolve", response_model=ResolvedRecipientResponse)
def resolve_alias(identifier: str, db: Session = Depends(get_db)):
    """Resolve an alias, username or wallet address to its ledger identity."""
    return alias_resolver.resolve(db, identifier)

@router.post("/payment-links", response_model=PaymentLinkResponse)
def create_payment_link(request: CreatePaymentLinkRequest, db: Session = Depends(get_db)):
    return ledger_service.create_payment_link(db, request.wallet_address, request.alias)

@router.get("/payment-links", response_model=List[PaymentLinkResponse])
def list_payment_links(wallet: str = Query(..., min_length=1), db: Session = Depends(get_db)):
    return ledger_service.list_payment_links(db, wallet)

@router.get("/payment-links/{alias}", response_model=PaymentLinkResponse)
def get_payment_link(alias: str, db: Session = Depends(get_db)):
    link = ledger_service.get_payment_link(db, alias)
    if not link:
        raise HTTPException(status_code=404, detail=f"Payment link {alias} not found")
    return link

@router.delete("/payment-links/{link_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_payment_link(link_id: int, wallet: str = Query(..., min_length=1), db: Session = Depends(get_db)):
    """Delete a link owned by the given wallet."""
    ledger_service.delete_payment_link(db, link_id, wallet)
