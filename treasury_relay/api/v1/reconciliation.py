from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from treasury_relay.database import get_db
from treasury_relay.services import ledger_service
from treasury_relay.services.chain_client import ChainClient, get_chain_client
from treasury_relay.schemas.reconciliation import LedgerReportResponse, SolvencyReportResponse

router = APIRouter()

@router.get("/ledger", response_model=LedgerReportResponse)
def ledger_report(db: Session = Depends(get_db)):
    """Check every balance against the sum of its ledger entries."""
    return LedgerReportResponse.model_validate(ledger_service.verify_ledger(db))

@router.get("/solvency", response_model=SolvencyReportResponse)
def solvency_report(db: Session = Depends(get_db), chain_client: ChainClient = Depends(get_chain_client)):
    """Compare total credited balances with the treasury's on-chain holdings."""
    return SolvencyReportResponse.model_validate(ledger_service.check_solvency(db, chain_client))
