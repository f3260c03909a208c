from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from treasury_relay.database import get_db
from treasury_relay.services import ledger_service
from treasury_relay.schemas.user import RegisterUserRequest, UserResponse, BalanceResponse

router = APIRouter()

@router.post("/users", response_model=UserResponse)
def register_user(request: RegisterUserRequest, db: Session = Depends(get_db)):
    """Register a wallet or return its existing registration."""
    return ledger_service.get_or_create_user(db, request.wallet_address, request.username)

@router.get("/users/by-wallet/{wallet_address}", response_model=UserResponse)
def get_user_by_wallet(wallet_address: str, db: Session = Depends(get_db)):
    user = ledger_service.get_user_by_wallet(db, wallet_address)
    if not user:
        raise HTTPException(status_code=404, detail=f"No user for wallet {wallet_address}")
    return user

@router.get("/users/{username}", response_model=UserResponse)
def get_user(username: str, db: Session = Depends(get_db)):
    user = ledger_service.get_user_by_username(db, username)
    if not user:
        raise HTTPException(status_code=404, detail=f"User {username} not found")
    return user

@router.get("/balances/{username}", response_model=BalanceResponse)
def get_balance(username: str, db: Session = Depends(get_db)):
    """
    Get the available balance for a ledger username.
    Unknown usernames read as zero.
    """
    return ledger_service.get_balance(db, username)
