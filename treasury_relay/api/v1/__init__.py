from fastapi import APIRouter
from . import payments, withdrawals, users, payment_links, reconciliation

api_router = APIRouter()

# Include all v1 routes
api_router.include_router(payments.router, prefix="/payments", tags=["payments"])
api_router.include_router(withdrawals.router, prefix="/withdrawals", tags=["withdrawals"])
api_router.include_router(users.router, tags=["users"])
api_router.include_router(payment_links.router, tags=["payment-links"])
api_router.include_router(reconciliation.router, prefix="/reconciliation", tags=["reconciliation"])
