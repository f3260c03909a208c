import logging

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from treasury_relay.models.payment import Payment
from treasury_relay.repositories import payment_repo
from treasury_relay.services import alias_resolver, ledger_service
from treasury_relay.services.notifications import BalanceNotifier, notifier as default_notifier
from treasury_relay.utils.amounts import to_amount
from treasury_relay.utils.constants import PaymentStatus
from treasury_relay.utils.exceptions import (
    AliasResolutionError,
    DuplicateTransactionError,
    LedgerUnavailableError,
    ValidationError,
)
from treasury_relay.utils.identifiers import normalize_alias, normalize_wallet

logger = logging.getLogger(__name__)


def record_payment(
    db: Session,
    sender_address: str,
    recipient_identifier: str,
    amount,
    tx_hash: str,
    notifier: BalanceNotifier = default_notifier,
) -> Payment:
    """
    Credit a confirmed on-chain deposit to its recipient, once per tx hash.

    A second call with the same tx_hash returns the entry recorded by the
    first call and credits nothing.
    """
    # Step 1: Validate
    try:
        amount = to_amount(amount)
    except ValueError as e:
        raise ValidationError(str(e), code="INVALID_AMOUNT")
    if amount <= 0:
        raise ValidationError("Amount must be greater than zero", code="INVALID_AMOUNT")
    tx_hash = (tx_hash or "").strip()
    if not tx_hash:
        raise ValidationError("txHash is required", code="MISSING_TX_HASH")
    sender = normalize_wallet(sender_address)
    if not sender:
        raise ValidationError("senderAddress is required", code="MISSING_SENDER")
    if recipient_identifier is None or not str(recipient_identifier).strip():
        raise AliasResolutionError()

    try:
        # Step 2: Check idempotency
        existing = payment_repo.get_by_tx_hash(db, tx_hash, PaymentStatus.COMPLETED)
        if existing:
            logger.info("Payment %s already recorded, skipping credit", tx_hash)
            return existing

        # Step 3: Resolve recipient, falling back to an implicit user
        recipient = alias_resolver.try_resolve(db, recipient_identifier)
        if recipient:
            username, wallet_address = recipient.username, recipient.wallet_address
        else:
            username = normalize_alias(recipient_identifier)
            if not username:
                raise AliasResolutionError(f"Cannot derive a username from '{recipient_identifier}'")
            wallet_address = username

        # Step 4: Credit and append in one transaction
        balance = ledger_service.adjust_balance(db, username, amount, wallet_address)
        payment = ledger_service.append_payment(
            db,
            sender_address=sender,
            recipient_username=username,
            amount=amount,
            tx_hash=tx_hash,
            status=PaymentStatus.COMPLETED,
        )
        new_balance = to_amount(balance.available_balance)
        db.commit()
        db.refresh(payment)

    except IntegrityError:
        db.rollback()
        # A concurrent call recorded the same tx hash first
        existing = payment_repo.get_by_tx_hash(db, tx_hash, PaymentStatus.COMPLETED)
        if existing:
            logger.info("Payment %s recorded concurrently, skipping credit", tx_hash)
            return existing
        raise DuplicateTransactionError(f"Payment with tx hash {tx_hash} could not be recorded")

    except OperationalError as e:
        db.rollback()
        logger.error("Ledger unavailable while recording %s: %s", tx_hash, e)
        raise LedgerUnavailableError(f"Ledger unavailable; payment {tx_hash} was not recorded")

    logger.info("Credited %s to %s (tx %s)", amount, username, tx_hash)
    notifier.publish(username, new_balance)
    return payment

