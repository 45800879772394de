"""GET /v1/loans/{loan_id}/schedule - Installment plan of one loan"""

from datetime import date
from fastapi import APIRouter, Depends, HTTPException, Query

from coop_ledger.api.v1.schemas import InstallmentSchema, ScheduleResponse
from coop_ledger.api.dependencies import get_state_store, get_today
from coop_ledger.domain.installments import build_installment_plan
from coop_ledger.domain.repayments import repaid_total
from coop_ledger.domain.valuation import calculate_installment_amount, calculate_total_due
from coop_ledger.infrastructure.store import StateStore

router = APIRouter()


@router.get("/loans/{loan_id}/schedule", response_model=ScheduleResponse)
def get_loan_schedule(
    loan_id: str,
    user_id: str = Query(..., min_length=1, description="User identifier"),
    store: StateStore = Depends(get_state_store),
    today: date = Depends(get_today),
):
    """
    Retrieve the loan's installments with paid/overdue/pending status.

    Pending or rejected loans, and loans without a plan or term, have no
    installments.
    """
    state = store.load(user_id, today)
    loan = state.find_loan(loan_id)

    if not loan:
        raise HTTPException(status_code=404, detail="Loan not found")

    installments = [
        InstallmentSchema(
            number=inst.number,
            due_date=inst.due_date,
            amount=float(inst.amount),
            status=inst.status,
        )
        for inst in build_installment_plan(loan, state.repayments, as_of=today)
    ]

    return ScheduleResponse(
        loan_id=loan.id,
        member_id=loan.member_id,
        status=loan.status.value,
        repayment_plan=loan.repayment_plan.value if loan.repayment_plan else None,
        total_due=float(calculate_total_due(loan)),
        installment_amount=float(calculate_installment_amount(loan)),
        total_repaid=float(repaid_total(loan.id, state.repayments)),
        installments=installments,
    )
