from contextlib import asynccontextmanager

from fastapi import FastAPI
from treasury_relay.config import settings
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError
from treasury_relay.api.v1 import api_router, withdrawals
from treasury_relay.database import init_db
from treasury_relay.logging_config import configure_logging
from treasury_relay.schemas.withdrawal import WithdrawResponse
from treasury_relay.middleware.error_handler import (
    validation_exception_handler,
    invalid_address_handler,
    ledger_validation_handler,
    alias_resolution_handler,
    recipient_not_found_handler,
    payment_link_not_found_handler,
    username_taken_handler,
    alias_taken_handler,
    insufficient_balance_handler,
    duplicate_transaction_handler,
    ledger_unavailable_handler,
    treasury_not_configured_handler,
    chain_transfer_handler,
    ledger_invariant_handler,
    database_exception_handler,
    generic_exception_handler
)
from treasury_relay.utils.exceptions import (
    AliasResolutionError,
    AliasTakenError,
    ChainTransferError,
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

configure_logging(settings.LOG_LEVEL)

@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.APP_ENV == "development":
        init_db()
    yield

app = FastAPI(
    title=settings.PROJECT_NAME,
    lifespan=lifespan,
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json"
)

@app.get("/health")
def health_check():
    return {"status": "healthy", "treasury_configured": settings.treasury_configured}

# Register exception handlers
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(InvalidAddressError, invalid_address_handler)
app.add_exception_handler(ValidationError, ledger_validation_handler)
app.add_exception_handler(AliasResolutionError, alias_resolution_handler)
app.add_exception_handler(RecipientNotFoundError, recipient_not_found_handler)
app.add_exception_handler(PaymentLinkNotFoundError, payment_link_not_found_handler)
app.add_exception_handler(UsernameTakenError, username_taken_handler)
app.add_exception_handler(AliasTakenError, alias_taken_handler)
app.add_exception_handler(InsufficientBalanceError, insufficient_balance_handler)
app.add_exception_handler(DuplicateTransactionError, duplicate_transaction_handler)
app.add_exception_handler(LedgerUnavailableError, ledger_unavailable_handler)
app.add_exception_handler(TreasuryNotConfiguredError, treasury_not_configured_handler)
app.add_exception_handler(ChainTransferError, chain_transfer_handler)
app.add_exception_handler(LedgerInvariantViolationError, ledger_invariant_handler)
app.add_exception_handler(SQLAlchemyError, database_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# Include API routes
app.include_router(api_router, prefix=settings.API_V1_PREFIX)

# Relay path used by existing clients
app.add_api_route(
    "/withdraw",
    withdrawals.withdraw,
    methods=["POST"],
    response_model=WithdrawResponse,
    tags=["withdrawals"],
)
