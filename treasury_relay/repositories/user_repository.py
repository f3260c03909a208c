from sqlalchemy.orm import Session
from treasury_relay.models.user import User
from typing import Optional

def get_by_wallet(db: Session, wallet_address: str) -> Optional[User]:
    """Fetch a user by wallet address."""
    return db.query(User).filter(User.wallet_address == wallet_address).first()

def get_by_username(db: Session, username: str) -> Optional[User]:
    """Fetch a user by username."""
    return db.query(User).filter(User.username == username).first()

def create_user(db: Session, wallet_address: str, username: Optional[str]) -> User:
    """
    Create a new user row.

    Flushes only; the caller commits together with the initial balance row.
    """
    user = User(wallet_address=wallet_address, username=username)
    db.add(user)
    db.flush()
    return user

def update_username(db: Session, user: User, username: str) -> User:
    """Change a user's display username. wallet_address is never touched."""
    user.username = username
    db.flush()
    return user
