from decimal import Decimal
from typing import List

from treasury_relay.schemas.common import CamelModel

class LedgerMismatchResponse(CamelModel):
    username: str
    available_balance: Decimal
    ledger_total: Decimal

class LedgerReportResponse(CamelModel):
    consistent: bool
    total_balances: Decimal
    total_payments: Decimal
    mismatches: List[LedgerMismatchResponse] = []

class SolvencyReportResponse(CamelModel):
    solvent: bool
    treasury_balance: Decimal
    total_credited: Decimal
    shortfall: Decimal
