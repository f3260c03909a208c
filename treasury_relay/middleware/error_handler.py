import logging
from typing import Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError
from decimal import Decimal
from treasury_relay.utils.exceptions import (
    AliasResolutionError,
    AliasTakenError,
    ChainTransferError,
    ChainTransferTimeoutError,
    DuplicateTransactionError,
    InsufficientBalanceError,
    InvalidAddressError,
    LedgerInvariantViolationError,
    LedgerUnavailableError,
    PaymentLinkNotFoundError,
    RecipientNotFoundError,
    TreasuryNotConfiguredError,
    UsernameTakenError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def _error(status_code: int, error: str, message: str, details: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "message": message,
            "details": details or {}
        }
    )

async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors"""
    # Convert Decimal objects to strings for JSON serialization
    errors = exc.errors()
    for error in errors:
        ctx = error.get('ctx')
        if ctx:
            for key, value in list(ctx.items()):
                if isinstance(value, (Decimal, Exception)):
                    ctx[key] = str(value)
        if isinstance(error.get('input'), Decimal):
            error['input'] = str(error['input'])

    return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, "validation_error", "Invalid request data", errors)

async def invalid_address_handler(request: Request, exc: InvalidAddressError):
    return _error(status.HTTP_400_BAD_REQUEST, "invalid_address", exc.message)

async def ledger_validation_handler(request: Request, exc: ValidationError):
    """Handle bad input rejected by the services"""
    return _error(status.HTTP_400_BAD_REQUEST, exc.code.lower(), exc.message)

async def alias_resolution_handler(request: Request, exc: AliasResolutionError):
    return _error(status.HTTP_400_BAD_REQUEST, "alias_resolution_failed", exc.message)

async def recipient_not_found_handler(request: Request, exc: RecipientNotFoundError):
    return _error(status.HTTP_404_NOT_FOUND, "recipient_not_found", exc.message)

async def payment_link_not_found_handler(request: Request, exc: PaymentLinkNotFoundError):
    return _error(status.HTTP_404_NOT_FOUND, "payment_link_not_found", exc.message)

async def username_taken_handler(request: Request, exc: UsernameTakenError):
    return _error(status.HTTP_409_CONFLICT, "username_taken", exc.message)

async def alias_taken_handler(request: Request, exc: AliasTakenError):
    return _error(status.HTTP_409_CONFLICT, "alias_taken", exc.message)

async def insufficient_balance_handler(request: Request, exc: InsufficientBalanceError):
    """Handle insufficient balance errors"""
    return _error(status.HTTP_409_CONFLICT, "insufficient_balance", exc.message)

async def duplicate_transaction_handler(request: Request, exc: DuplicateTransactionError):
    """Handle duplicate transaction errors"""
    return _error(status.HTTP_409_CONFLICT, "duplicate_transaction", exc.message)

async def ledger_unavailable_handler(request: Request, exc: LedgerUnavailableError):
    return _error(status.HTTP_503_SERVICE_UNAVAILABLE, "ledger_unavailable", exc.message)

async def treasury_not_configured_handler(request: Request, exc: TreasuryNotConfiguredError):
    return _error(status.HTTP_501_NOT_IMPLEMENTED, "not_configured", exc.message)

async def chain_transfer_handler(request: Request, exc: ChainTransferError):
    """Transfer failed or its outcome is unknown; the ledger was not touched"""
    details = {"txHash": exc.tx_hash} if exc.tx_hash else {}
    if isinstance(exc, ChainTransferTimeoutError):
        return _error(status.HTTP_504_GATEWAY_TIMEOUT, "chain_transfer_unconfirmed", exc.message, details)
    return _error(status.HTTP_502_BAD_GATEWAY, "chain_transfer_failed", exc.message, details)

async def ledger_invariant_handler(request: Request, exc: LedgerInvariantViolationError):
    """Funds left the treasury without a ledger debit"""
    logger.critical(
        "Reconciliation required for %s: tx %s (%s %s)",
        exc.username, exc.tx_hash, request.method, request.url.path,
    )
    return _error(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "ledger_reconciliation_required",
        exc.message,
        {"txHash": exc.tx_hash, "username": exc.username},
    )

async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    """Handle database errors"""
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "database_error", "A database error occurred")

async def generic_exception_handler(request: Request, exc: Exception):
    """Handle all other exceptions"""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "internal_server_error", "An unexpected error occurred")
