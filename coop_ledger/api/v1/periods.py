"""GET /v1/periods/{period_id}/compliance - Contributions measured against share commitments"""

from datetime import date
from decimal import Decimal
from fastapi import APIRouter, Depends, HTTPException, Query

from coop_ledger.api.v1.schemas import ComplianceItem, ComplianceResponse
from coop_ledger.api.dependencies import get_state_store, get_today
from coop_ledger.domain.dividends import check_payment_compliance
from coop_ledger.infrastructure.store import StateStore

router = APIRouter()


@router.get("/periods/{period_id}/compliance", response_model=ComplianceResponse)
def get_period_compliance(
    period_id: str,
    user_id: str = Query(..., min_length=1, description="User identifier"),
    store: StateStore = Depends(get_state_store),
    today: date = Depends(get_today),
):
    """
    Check every member's payment in the period against shares × share price.

    Members who did not pay count as paying 0.
    """
    state = store.load(user_id, today)
    period = state.find_period(period_id)

    if not period:
        raise HTTPException(status_code=404, detail="Collection period not found")

    paid = {p.member_id: p.amount for p in period.payments}
    members = []
    for member in state.members:
        result = check_payment_compliance(
            member.id,
            paid.get(member.id, Decimal("0")),
            member.committed_shares,
            state.share_price,
        )
        members.append(
            ComplianceItem(
                member_id=member.id,
                name=member.name,
                expected=float(result.expected),
                actual=float(result.actual),
                difference=float(result.difference),
                is_compliant=result.is_compliant,
            )
        )

    return ComplianceResponse(period_id=period.id, share_price=float(state.share_price), members=members)
