"""GET /v1/ledger - Per-period cash ledger and financial summary"""

import dataclasses
from datetime import date
from decimal import Decimal
from typing import Any, Dict
from fastapi import APIRouter, Depends, Query

from coop_ledger.api.v1.schemas import (
    FinancialSummarySchema,
    LedgerEntrySchema,
    LedgerResponse,
    LedgerTotalsSchema,
)
from coop_ledger.api.dependencies import get_state_store, get_today
from coop_ledger.domain.balances import build_period_ledger, financial_summary, ledger_totals
from coop_ledger.infrastructure.store import StateStore

router = APIRouter()


def _as_fields(record) -> Dict[str, Any]:
    return {k: float(v) if isinstance(v, Decimal) else v for k, v in dataclasses.asdict(record).items()}


@router.get("/ledger", response_model=LedgerResponse)
def get_ledger(
    user_id: str = Query(..., min_length=1, description="User identifier"),
    store: StateStore = Depends(get_state_store),
    today: date = Depends(get_today),
):
    """
    Opening, collections, disbursements, repayments and closing per period.

    Returns:
        Entries in date order, column totals and headline figures
    """
    state = store.load(user_id, today)
    entries = build_period_ledger(state)

    return LedgerResponse(
        user_id=user_id,
        entries=[LedgerEntrySchema(**_as_fields(e)) for e in entries],
        totals=LedgerTotalsSchema(**_as_fields(ledger_totals(entries))),
        summary=FinancialSummarySchema(**_as_fields(financial_summary(state))),
    )
