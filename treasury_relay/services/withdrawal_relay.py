"""
Withdrawal relay: pays out from the shared treasury, then debits the ledger.

The on-chain transfer happens before the debit. A failed transfer leaves the
ledger untouched so the user can retry; a confirmed transfer whose debit then
fails is an invariant violation that needs manual reconciliation.
"""
import logging
import threading
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from treasury_relay.config import settings
from treasury_relay.models.payment import Payment
from treasury_relay.services import alias_resolver, ledger_service
from treasury_relay.services.chain_client import ChainClient, get_chain_client
from treasury_relay.services.notifications import BalanceNotifier, notifier as default_notifier
from treasury_relay.utils.amounts import to_amount
from treasury_relay.utils.constants import PaymentStatus
from treasury_relay.utils.exceptions import (
    ChainTransferError,
    InsufficientBalanceError,
    InvalidAddressError,
    LedgerInvariantViolationError,
    RecipientNotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)


@dataclass
class WithdrawalResult:
    tx_hash: str
    new_balance: Decimal
    payment: Payment


class WithdrawalRelay:
    """
    Owns the treasury signer for this process.

    Every withdrawal holds the signer lock from the balance check until the
    debit is committed, so two withdrawals never both pass the check against
    the same balance and treasury nonces are never used concurrently.
    """

    def __init__(
        self,
        chain_client: ChainClient,
        notifier: BalanceNotifier = default_notifier,
        confirmation_timeout: Optional[float] = None,
    ):
        self.chain_client = chain_client
        self.notifier = notifier
        self.confirmation_timeout = (
            confirmation_timeout if confirmation_timeout is not None
            else settings.CHAIN_CONFIRMATION_TIMEOUT
        )
        self._signer_lock = threading.Lock()

    def resolve_destination(self, db: Session, destination: str) -> str:
        """Raw addresses pass through; aliases and usernames resolve to their wallet."""
        destination = (destination or "").strip()
        if not destination:
            raise InvalidAddressError("destinationAddress is required")
        if self.chain_client.is_valid_address(destination):
            return destination

        try:
            recipient = alias_resolver.resolve(db, destination)
        except RecipientNotFoundError:
            raise InvalidAddressError(f"'{destination}' is not an address, alias or username")
        if not self.chain_client.is_valid_address(recipient.wallet_address):
            raise InvalidAddressError(f"'{destination}' has no withdrawable wallet")
        return recipient.wallet_address

    def withdraw(self, db: Session, username: str, amount, destination: str) -> WithdrawalResult:
        # Step 1: Validate input
        try:
            amount = to_amount(amount)
        except ValueError as e:
            raise ValidationError(str(e), code="INVALID_AMOUNT")
        if amount <= 0:
            raise ValidationError("Amount must be greater than zero", code="INVALID_AMOUNT")
        if not username or not username.strip():
            raise ValidationError("username is required", code="MISSING_USERNAME")

        destination_address = self.resolve_destination(db, destination)
        ledger_username = ledger_service.resolve_ledger_username(db, username)

        with self._signer_lock:
            # start a fresh snapshot so the previous holder's debit is visible
            db.rollback()

            # Step 2: Check balance before spending gas
            balance = ledger_service.get_balance(db, ledger_username)
            if amount > balance.available_balance:
                logger.warning(
                    "Withdrawal of %s by %s rejected: balance %s",
                    amount, ledger_username, balance.available_balance,
                )
                raise InsufficientBalanceError(
                    f"Insufficient balance. Balance: {balance.available_balance}, Required: {amount}"
                )
            # release the read snapshot before the long chain wait
            db.rollback()

            # Step 3: Transfer on-chain; no ledger change unless confirmed
            tx_hash = self._transfer(destination_address, amount)

            # Step 4 + 5: Debit and record in one transaction
            try:
                updated = ledger_service.adjust_balance(
                    db, ledger_username, -amount, balance.wallet_address
                )
                payment = ledger_service.append_payment(
                    db,
                    sender_address=settings.TREASURY_SENDER_LABEL,
                    recipient_username=ledger_username,
                    amount=-amount,
                    tx_hash=tx_hash,
                    status=PaymentStatus.WITHDRAWN,
                )
                new_balance = to_amount(updated.available_balance)
                db.commit()
                db.refresh(payment)
            except Exception as e:
                db.rollback()
                logger.critical(
                    "LEDGER INVARIANT VIOLATION: transfer %s of %s to %s confirmed "
                    "but debit of %s failed: %s",
                    tx_hash, amount, destination_address, ledger_username, e,
                )
                raise LedgerInvariantViolationError(
                    f"Transfer {tx_hash} succeeded on-chain but the ledger debit failed; "
                    f"manual reconciliation required",
                    tx_hash=tx_hash,
                    username=ledger_username,
                ) from e

        # Step 6: Notify and return
        logger.info(
            "Withdrew %s for %s to %s (tx %s), balance now %s",
            amount, ledger_username, destination_address, tx_hash, new_balance,
        )
        self.notifier.publish(ledger_username, new_balance)
        return WithdrawalResult(tx_hash=tx_hash, new_balance=new_balance, payment=payment)

    def _transfer(self, destination_address: str, amount: Decimal) -> str:
        """
        Send and confirm exactly once. Timeouts surface as
        ChainTransferTimeoutError and are never treated as success.
        """
        tx_hash = self.chain_client.send_transfer(destination_address, amount)
        result = self.chain_client.wait_for_confirmation(tx_hash, timeout=self.confirmation_timeout)
        if not result.success:
            logger.warning("Treasury transfer %s reverted", tx_hash)
            raise ChainTransferError(f"Transaction {tx_hash} reverted", tx_hash=tx_hash)
        return tx_hash


_relay: Optional[WithdrawalRelay] = None
_relay_lock = threading.Lock()


def get_relay() -> WithdrawalRelay:
    """Process-wide relay. FastAPI dependency; raises TreasuryNotConfiguredError."""
    global _relay
    chain_client = get_chain_client()
    with _relay_lock:
        if _relay is None:
            _relay = WithdrawalRelay(chain_client)
    return _relay
