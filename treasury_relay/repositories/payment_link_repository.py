from sqlalchemy.orm import Session
from treasury_relay.models.payment_link import PaymentLink
from typing import List, Optional

def get_by_alias(db: Session, alias: str) -> Optional[PaymentLink]:
    return db.query(PaymentLink).filter(PaymentLink.alias == alias).first()

def get_by_id(db: Session, link_id: int) -> Optional[PaymentLink]:
    return db.query(PaymentLink).filter(PaymentLink.id == link_id).first()

def list_by_wallet(db: Session, wallet_address: str) -> List[PaymentLink]:
    """All links pointing at a wallet, newest first."""
    return (
        db.query(PaymentLink)
        .filter(PaymentLink.wallet_address == wallet_address)
        .order_by(PaymentLink.created_at.desc(), PaymentLink.id.desc())
        .all()
    )

def create_link(db: Session, wallet_address: str, username: str, alias: str) -> PaymentLink:
    link = PaymentLink(wallet_address=wallet_address, username=username, alias=alias)
    db.add(link)
    db.flush()
    return link

def delete_link(db: Session, link: PaymentLink) -> None:
    db.delete(link)
    db.flush()
