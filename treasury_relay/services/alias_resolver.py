"""
Turns a user-supplied handle (alias, username or raw wallet address) into the
ledger identity it points at.

Resolution never writes: creating implicit users is left to the caller.
"""
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from treasury_relay.repositories import balance_repo, link_repo, user_repo
from treasury_relay.utils.exceptions import AliasResolutionError, RecipientNotFoundError
from treasury_relay.utils.identifiers import (
    is_address_shaped,
    normalize_alias,
    normalize_wallet,
    placeholder_username,
)


@dataclass(frozen=True)
class Recipient:
    wallet_address: str
    username: str
    # which table matched: "alias", "username" or "address"
    source: str


def ledger_username_for(db: Session, wallet_address: str, default: str) -> str:
    """Username of the wallet's balance row, if it has one."""
    balance = balance_repo.get_by_wallet(db, wallet_address)
    if balance:
        return balance.username
    return default


def placeholder_for(db: Session, wallet_address: str) -> str:
    """
    Ledger username for a wallet that never chose one.

    The address tail is used unless another wallet already owns that name as
    a balance row, username or alias; then the full address is used so two
    wallets never share a row.
    """
    placeholder = placeholder_username(wallet_address)
    balance = balance_repo.get_by_username(db, placeholder)
    if balance and balance.wallet_address != wallet_address:
        return wallet_address
    user = user_repo.get_by_username(db, placeholder)
    if user and user.wallet_address != wallet_address:
        return wallet_address
    link = link_repo.get_by_alias(db, placeholder)
    if link and link.wallet_address != wallet_address:
        return wallet_address
    return placeholder


def try_resolve(db: Session, identifier: Optional[str]) -> Optional[Recipient]:
    """Same as resolve() but returns None when nothing matches."""
    if identifier is None or not str(identifier).strip():
        raise AliasResolutionError()

    raw = str(identifier).strip()
    handle = normalize_alias(raw)

    # 1. payment link alias
    if handle:
        link = link_repo.get_by_alias(db, handle)
        if link:
            return Recipient(
                wallet_address=link.wallet_address,
                username=ledger_username_for(db, link.wallet_address, link.username),
                source="alias",
            )

    # 2. registered username
    if handle:
        user = user_repo.get_by_username(db, handle)
        if user:
            return Recipient(
                wallet_address=user.wallet_address,
                username=ledger_username_for(db, user.wallet_address, user.username),
                source="username",
            )

    # 3. raw wallet address
    if is_address_shaped(raw):
        wallet = normalize_wallet(raw)
        user = user_repo.get_by_wallet(db, wallet)
        default = user.username if user and user.username else placeholder_for(db, wallet)
        return Recipient(
            wallet_address=wallet,
            username=ledger_username_for(db, wallet, default),
            source="address",
        )

    return None


def resolve(db: Session, identifier: Optional[str]) -> Recipient:
    recipient = try_resolve(db, identifier)
    if recipient is None:
        raise RecipientNotFoundError(f"No alias, username or address matches '{identifier}'")
    return recipient
