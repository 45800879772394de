"""State aggregation - running balance and per-period cash ledger"""

from decimal import Decimal
from typing import List, Sequence
from coop_ledger.domain.models import (
    CoopState,
    FinancialSummary,
    LedgerTotals,
    LoanStatus,
    PeriodLedgerEntry,
    EARNING_STATUSES,
)

ZERO = Decimal("0")


def compute_current_balance(state: CoopState) -> Decimal:
    """
    Collections plus repayments minus principal of loans currently APPROVED.

    Derived on every recompute and load, never read back from storage.
    """
    total_collected = sum((c.total_collected for c in state.collections), ZERO)
    total_repaid = sum((r.amount for r in state.repayments), ZERO)
    total_disbursed = sum(
        (loan.amount for loan in state.loans if loan.status == LoanStatus.APPROVED),
        ZERO,
    )
    return total_collected + total_repaid - total_disbursed


def build_period_ledger(state: CoopState) -> List[PeriodLedgerEntry]:
    """
    Opening/collection/disbursement/repayment/closing entry per period, in date order.

    The first period opens at the beginning balance; each later period opens at
    the previous closing. Penalties are reported but do not move the balance.
    """
    entries = []
    running = state.beginning_balance

    for period in state.sorted_periods():
        opening = running
        collections = period.total_collected
        disbursements = sum(
            (
                loan.amount
                for loan in state.loans
                if loan.disbursement_period_id == period.id and loan.status in EARNING_STATUSES
            ),
            ZERO,
        )
        repayments = sum((r.amount for r in state.repayments if r.period_id == period.id), ZERO)
        penalties = sum((p.amount for p in state.penalties if p.period_id == period.id), ZERO)
        closing = opening + collections + repayments - disbursements

        entries.append(
            PeriodLedgerEntry(
                period_id=period.id,
                period_date=period.date,
                opening_balance=opening,
                collections=collections,
                disbursements=disbursements,
                repayments=repayments,
                penalties=penalties,
                closing_balance=closing,
            )
        )
        running = closing

    return entries


def ledger_totals(entries: Sequence[PeriodLedgerEntry]) -> LedgerTotals:
    return LedgerTotals(
        collections=sum((e.collections for e in entries), ZERO),
        disbursements=sum((e.disbursements for e in entries), ZERO),
        repayments=sum((e.repayments for e in entries), ZERO),
        penalties=sum((e.penalties for e in entries), ZERO),
    )


def financial_summary(state: CoopState) -> FinancialSummary:
    return FinancialSummary(
        beginning_balance=state.beginning_balance,
        total_collected=sum((c.total_collected for c in state.collections), ZERO),
        total_disbursed=sum(
            (loan.amount for loan in state.loans if loan.status in EARNING_STATUSES),
            ZERO,
        ),
        total_repayments=sum((r.amount for r in state.repayments), ZERO),
        total_penalties=sum((p.amount for p in state.penalties), ZERO),
        current_balance=state.current_balance,
        total_members=len(state.members),
        total_periods=len(state.collections),
        total_loans=len(state.loans),
        active_loans=sum(1 for loan in state.loans if loan.status == LoanStatus.APPROVED),
        paid_loans=sum(1 for loan in state.loans if loan.status == LoanStatus.PAID),
    )
