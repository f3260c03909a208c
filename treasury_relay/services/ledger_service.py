"""
Ledger store operations: users, balances, payment entries and payment links.

Balance mutation goes through adjust_balance() only; it is called by the
payment recorder (credits) and the withdrawal relay (debits).
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from treasury_relay.models.balance import Balance
from treasury_relay.models.payment import Payment
from treasury_relay.models.payment_link import PaymentLink
from treasury_relay.models.user import User
from treasury_relay.repositories import balance_repo, link_repo, payment_repo, user_repo
from treasury_relay.services import alias_resolver
from treasury_relay.services.alias_resolver import Recipient
from treasury_relay.utils.amounts import ZERO, to_amount
from treasury_relay.utils.exceptions import (
    AliasTakenError,
    InsufficientBalanceError,
    PaymentLinkNotFoundError,
    UsernameTakenError,
    ValidationError,
)
from treasury_relay.utils.identifiers import normalize_alias, normalize_wallet

logger = logging.getLogger(__name__)


@dataclass
class BalanceView:
    """Balance as shown to callers. exists=False means no row yet, shown as zero."""
    username: str
    wallet_address: Optional[str]
    available_balance: Decimal
    exists: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class PaymentView:
    id: int
    sender_address: str
    recipient_username: str
    amount: Decimal
    tx_hash: str
    status: str
    created_at: Optional[datetime]
    is_sent: bool = False


@dataclass
class LedgerMismatch:
    username: str
    available_balance: Decimal
    ledger_total: Decimal


@dataclass
class LedgerReport:
    total_balances: Decimal
    total_payments: Decimal
    mismatches: List[LedgerMismatch] = field(default_factory=list)

    @property
    def consistent(self) -> bool:
        return not self.mismatches and self.total_balances == self.total_payments


@dataclass
class SolvencyReport:
    treasury_balance: Decimal
    total_credited: Decimal

    @property
    def solvent(self) -> bool:
        return self.treasury_balance >= self.total_credited

    @property
    def shortfall(self) -> Decimal:
        return max(self.total_credited - self.treasury_balance, ZERO)


# Users

def _ensure_username_free(db: Session, username: str, wallet_address: str) -> None:
    """Raise UsernameTakenError if the name belongs to another wallet."""
    user = user_repo.get_by_username(db, username)
    if user and user.wallet_address != wallet_address:
        raise UsernameTakenError(f"Username '{username}' is already taken")

    link = link_repo.get_by_alias(db, username)
    if link and link.wallet_address != wallet_address:
        raise UsernameTakenError(f"Username '{username}' is already used as an alias")

    balance = balance_repo.get_by_username(db, username)
    # an implicit balance (wallet_address == username) can still be claimed
    if balance and balance.wallet_address not in (wallet_address, username):
        raise UsernameTakenError(f"Username '{username}' is already taken")


def get_or_create_user(db: Session, wallet_address: str, desired_username: Optional[str] = None) -> User:
    """
    Register a wallet, or return the existing registration.

    An existing user keeps its wallet; its username changes only when the
    desired one differs and is free. New users get a zero balance row unless
    the wallet (or an implicit user with the same name) already has one.
    """
    wallet = normalize_wallet(wallet_address)
    if not wallet:
        raise ValidationError("wallet_address is required")

    username = None
    if desired_username is not None:
        username = normalize_alias(desired_username)
        if not username:
            raise ValidationError("Invalid username", code="INVALID_USERNAME")

    user = user_repo.get_by_wallet(db, wallet)
    if user:
        if username and user.username != username:
            _ensure_username_free(db, username, wallet)
            # an existing user already has a row; an implicit one under the new
            # name can only be claimed by a new registration
            balance = balance_repo.get_by_username(db, username)
            if balance and balance.wallet_address != wallet:
                raise UsernameTakenError(f"Username '{username}' is already taken")
            try:
                user_repo.update_username(db, user, username)
                if link_repo.get_by_alias(db, username) is None:
                    ledger_username = alias_resolver.ledger_username_for(db, wallet, username)
                    link_repo.create_link(db, wallet, ledger_username, username)
                db.commit()
            except IntegrityError:
                db.rollback()
                raise UsernameTakenError(f"Username '{username}' is already taken")
            db.refresh(user)
            logger.info("Wallet %s renamed to %s", wallet, username)
        return user

    ledger_username = username or alias_resolver.placeholder_for(db, wallet)
    _ensure_username_free(db, ledger_username, wallet)

    try:
        user = user_repo.create_user(db, wallet, username)
        if balance_repo.get_by_wallet(db, wallet) is None:
            balance = balance_repo.get_by_username(db, ledger_username)
            if balance is None:
                balance_repo.create_balance(db, ledger_username, wallet, commit=False)
            else:
                # credits sent to this name before it was registered
                balance_repo.reassign_wallet(db, balance, wallet)
        db.commit()
    except IntegrityError:
        db.rollback()
        existing = user_repo.get_by_wallet(db, wallet)
        if existing:
            return existing
        raise UsernameTakenError(f"Username '{ledger_username}' is already taken")

    db.refresh(user)
    logger.info("Registered wallet %s as %s", wallet, ledger_username)
    return user


def get_user_by_username(db: Session, username: str) -> Optional[User]:
    return user_repo.get_by_username(db, normalize_alias(username))


def get_user_by_wallet(db: Session, wallet_address: str) -> Optional[User]:
    return user_repo.get_by_wallet(db, normalize_wallet(wallet_address))


# Balances

def find_balance(db: Session, username: str) -> Optional[Balance]:
    return balance_repo.get_by_username(db, username)


def resolve_ledger_username(db: Session, handle: str) -> str:
    """
    The balance row a handle reads and withdraws from.

    An exact balance-row username wins, then whatever the handle resolves
    to if that wallet has a row, else the handle itself.
    """
    handle = (handle or "").strip()
    if not handle or find_balance(db, handle) is not None:
        return handle
    recipient = alias_resolver.try_resolve(db, handle)
    if recipient and find_balance(db, recipient.username) is not None:
        return recipient.username
    return handle


def get_balance(db: Session, username: str) -> BalanceView:
    """
    Never returns None: a missing row reads as a zero balance.

    Renamed users and aliases read the same row a withdrawal would debit.
    """
    username = resolve_ledger_username(db, username)
    balance = find_balance(db, username)
    if balance is None:
        return BalanceView(
            username=username,
            wallet_address=None,
            available_balance=to_amount(ZERO),
            exists=False,
        )
    return BalanceView(
        username=balance.username,
        wallet_address=balance.wallet_address,
        available_balance=to_amount(balance.available_balance),
        exists=True,
        created_at=balance.created_at,
        updated_at=balance.updated_at,
    )


def ensure_balance(db: Session, username: str, wallet_address: str) -> None:
    """
    Create a zero balance row if the username has none.

    Commits the new row on its own, so call it before any other write in the
    current transaction.
    """
    if balance_repo.get_by_username(db, username) is not None:
        return
    try:
        balance_repo.create_balance(db, username, wallet_address)
    except IntegrityError:
        # created concurrently
        db.rollback()


def adjust_balance(db: Session, username: str, delta, wallet_address_fallback: Optional[str] = None) -> Balance:
    """
    Atomically add delta (signed) to a username's balance.

    The row is created with wallet_address_fallback if absent. Raises
    InsufficientBalanceError, leaving the balance untouched, when the result
    would be negative. Does not commit the update.
    """
    delta = to_amount(delta)
    ensure_balance(db, username, wallet_address_fallback or username)

    if not balance_repo.apply_delta(db, username, delta):
        current = balance_repo.reload(db, username)
        available = to_amount(current.available_balance) if current else to_amount(ZERO)
        raise InsufficientBalanceError(
            f"Insufficient balance for {username}. Balance: {available}, Required: {-delta}"
        )

    return balance_repo.reload(db, username)


# Payments

def append_payment(
    db: Session,
    sender_address: str,
    recipient_username: str,
    amount,
    tx_hash: str,
    status: str,
) -> Payment:
    return payment_repo.append_payment(
        db,
        sender_address=sender_address,
        recipient_username=recipient_username,
        amount=to_amount(amount),
        tx_hash=tx_hash,
        status=status,
    )


def list_payments(db: Session, username: str, viewer_wallet: Optional[str] = None) -> List[PaymentView]:
    """
    Received entries for a username plus entries sent from its wallet.

    is_sent is computed against viewer_wallet, defaulting to the username's wallet.
    """
    names = {username}
    wallet = None

    recipient = alias_resolver.try_resolve(db, username)
    if recipient:
        names.add(recipient.username)
        wallet = recipient.wallet_address
    else:
        balance = balance_repo.get_by_username(db, username)
        if balance and balance.wallet_address != balance.username:
            wallet = balance.wallet_address

    viewer = normalize_wallet(viewer_wallet) if viewer_wallet else wallet

    entries = {}
    for payment in payment_repo.list_received(db, names):
        entries[payment.id] = payment
    if wallet:
        for payment in payment_repo.list_sent(db, wallet):
            entries[payment.id] = payment

    views = [
        PaymentView(
            id=p.id,
            sender_address=p.sender_address,
            recipient_username=p.recipient_username,
            amount=to_amount(p.amount),
            tx_hash=p.tx_hash,
            status=p.status,
            created_at=p.created_at,
            is_sent=bool(viewer) and p.sender_address == viewer,
        )
        for p in entries.values()
    ]
    views.sort(key=lambda v: (v.created_at or datetime.min, v.id), reverse=True)
    return views


# Aliases

def resolve_alias(db: Session, alias: str) -> Optional[Recipient]:
    return alias_resolver.try_resolve(db, alias)


def is_alias_available(db: Session, candidate: Optional[str]) -> bool:
    """A candidate is free when, normalized, it is not an alias, username or balance row."""
    normalized = normalize_alias(candidate)
    if not normalized:
        return False
    if link_repo.get_by_alias(db, normalized):
        return False
    if user_repo.get_by_username(db, normalized):
        return False
    # implicit users exist only as balance rows
    return balance_repo.get_by_username(db, normalized) is None


def create_payment_link(db: Session, wallet_address: str, alias: str) -> PaymentLink:
    wallet = normalize_wallet(wallet_address)
    if not wallet:
        raise ValidationError("wallet_address is required")
    normalized = normalize_alias(alias)
    if not normalized:
        raise ValidationError("Invalid alias", code="INVALID_ALIAS")
    if not is_alias_available(db, normalized):
        raise AliasTakenError(f"Alias '{normalized}' is already taken")

    user = user_repo.get_by_wallet(db, wallet)
    default = user.username if user and user.username else alias_resolver.placeholder_for(db, wallet)
    ledger_username = alias_resolver.ledger_username_for(db, wallet, default)

    try:
        link = link_repo.create_link(db, wallet, ledger_username, normalized)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise AliasTakenError(f"Alias '{normalized}' is already taken")
    db.refresh(link)
    return link


def list_payment_links(db: Session, wallet_address: str) -> List[PaymentLink]:
    return link_repo.list_by_wallet(db, normalize_wallet(wallet_address))


def get_payment_link(db: Session, alias: str) -> Optional[PaymentLink]:
    return link_repo.get_by_alias(db, normalize_alias(alias))


def delete_payment_link(db: Session, link_id: int, wallet_address: str) -> None:
    """Only the owning wallet may delete its link."""
    link = link_repo.get_by_id(db, link_id)
    if link is None or link.wallet_address != normalize_wallet(wallet_address):
        raise PaymentLinkNotFoundError(f"Payment link {link_id} not found")
    link_repo.delete_link(db, link)
    db.commit()


# Reconciliation

def verify_ledger(db: Session) -> LedgerReport:
    """Compare every balance row with the sum of its ledger entries."""
    totals = payment_repo.sum_by_recipient(db)
    mismatches = []
    seen = set()

    for balance in db.query(Balance).order_by(Balance.username).all():
        seen.add(balance.username)
        available = to_amount(balance.available_balance)
        ledger_total = totals.get(balance.username, to_amount(ZERO))
        if available != ledger_total:
            mismatches.append(LedgerMismatch(balance.username, available, ledger_total))

    for username, ledger_total in totals.items():
        if username not in seen and ledger_total != 0:
            mismatches.append(LedgerMismatch(username, to_amount(ZERO), ledger_total))

    report = LedgerReport(
        total_balances=balance_repo.total_available(db),
        total_payments=to_amount(sum(totals.values(), ZERO)),
        mismatches=mismatches,
    )
    if not report.consistent:
        logger.error("Ledger mismatch for %d username(s)", len(mismatches))
    return report


def check_solvency(db: Session, chain_client) -> SolvencyReport:
    """Total credited balances must never exceed what the treasury holds on-chain."""
    report = SolvencyReport(
        treasury_balance=to_amount(chain_client.get_treasury_balance()),
        total_credited=balance_repo.total_available(db),
    )
    if not report.solvent:
        logger.critical(
            "Treasury under-collateralized: holds %s, credited %s",
            report.treasury_balance, report.total_credited,
        )
    return report
