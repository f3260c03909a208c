from typing import Optional


class RelayException(Exception):
    """Base exception for all ledger and relay errors"""
    def __init__(self, message: str, code: str = "RELAY_ERROR"):
        self.message = message
        self.code = code
        super().__init__(self.message)

# Validation

class ValidationError(RelayException):
    def __init__(self, message: str = "Invalid request", code: str = "INVALID_REQUEST"):
        super().__init__(message, code=code)

class InvalidAddressError(ValidationError):
    def __init__(self, message: str = "Destination is not a valid chain address"):
        super().__init__(message, code="INVALID_ADDRESS")

# Resolution

class AliasResolutionError(RelayException):
    def __init__(self, message: str = "Recipient identifier is empty"):
        super().__init__(message, code="ALIAS_RESOLUTION_FAILED")

class RecipientNotFoundError(RelayException):
    def __init__(self, message: str = "No alias, username or address matches the recipient"):
        super().__init__(message, code="RECIPIENT_NOT_FOUND")

class PaymentLinkNotFoundError(RelayException):
    def __init__(self, message: str = "The requested payment link was not found"):
        super().__init__(message, code="PAYMENT_LINK_NOT_FOUND")

# Conflicts

class UsernameTakenError(RelayException):
    def __init__(self, message: str = "Username already taken"):
        super().__init__(message, code="USERNAME_TAKEN")

class AliasTakenError(RelayException):
    def __init__(self, message: str = "Alias already taken"):
        super().__init__(message, code="ALIAS_TAKEN")

class InsufficientBalanceError(RelayException):
    def __init__(self, message: str = "Insufficient balance to complete withdrawal"):
        super().__init__(message, code="INSUFFICIENT_BALANCE")

class DuplicateTransactionError(RelayException):
    def __init__(self, message: str = "A ledger entry for this transaction hash already exists"):
        super().__init__(message, code="DUPLICATE_TRANSACTION")

# External dependencies

class LedgerUnavailableError(RelayException):
    def __init__(self, message: str = "Ledger storage is unavailable"):
        super().__init__(message, code="LEDGER_UNAVAILABLE")

class TreasuryNotConfiguredError(RelayException):
    def __init__(self, message: str = "Withdrawal relayer is not configured"):
        super().__init__(message, code="NOT_CONFIGURED")

class ChainTransferError(RelayException):
    """The transfer did not happen: rejected, reverted, or treasury underfunded."""
    def __init__(self, message: str = "On-chain transfer failed", tx_hash: Optional[str] = None, code: str = "CHAIN_TRANSFER_FAILED"):
        self.tx_hash = tx_hash
        super().__init__(message, code=code)

class ChainTransferTimeoutError(ChainTransferError):
    """The transfer was submitted but its outcome is unknown."""
    def __init__(self, message: str = "On-chain transfer was not confirmed in time", tx_hash: Optional[str] = None):
        super().__init__(message, tx_hash=tx_hash, code="CHAIN_TRANSFER_UNCONFIRMED")

# Invariant violations

class LedgerInvariantViolationError(RelayException):
    """Treasury funds left on-chain but the ledger could not be debited."""
    def __init__(self, message: str, tx_hash: str, username: str):
        self.tx_hash = tx_hash
        self.username = username
        super().__init__(message, code="LEDGER_RECONCILIATION_REQUIRED")
