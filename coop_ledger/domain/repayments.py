"""Repayment ledger - applies repayments to loans and keeps PAID status in sync"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional
from coop_ledger.domain.models import CoopState, Loan, LoanStatus, Penalty, Repayment
from coop_ledger.domain.valuation import calculate_interest_earned, calculate_total_due, is_earning


def repaid_total(loan_id: str, repayments: Iterable[Repayment]) -> Decimal:
    return sum((r.amount for r in repayments if r.loan_id == loan_id), Decimal("0"))


def penalty_total(loan_id: str, penalties: Iterable[Penalty]) -> Decimal:
    return sum((p.amount for p in penalties if p.loan_id == loan_id), Decimal("0"))


def amount_owed(loan: Loan, penalties: Iterable[Penalty]) -> Decimal:
    """Principal, interest and every penalty assessed against the loan"""
    return calculate_total_due(loan) + penalty_total(loan.id, penalties)


def is_fully_repaid(loan: Loan, state: CoopState) -> bool:
    return repaid_total(loan.id, state.repayments) >= amount_owed(loan, state.penalties)


def reconcile_loan_status(loan: Loan, state: CoopState, today: date) -> None:
    """
    Flip a loan between APPROVED and PAID to match its repayments.

    - Fully repaid and not REJECTED → PAID, stamping dateClosed once
    - PAID but no longer fully repaid → APPROVED, clearing dateClosed
    REJECTED loans never move.
    """
    if loan.status == LoanStatus.REJECTED:
        return
    if is_fully_repaid(loan, state):
        if loan.status != LoanStatus.PAID:
            loan.status = LoanStatus.PAID
            loan.date_closed = today
    elif loan.status == LoanStatus.PAID:
        loan.status = LoanStatus.APPROVED
        loan.date_closed = None


def record_repayment(state: CoopState, repayment: Repayment, today: date) -> None:
    """Append a repayment and mark its loan PAID when principal, interest and penalties are covered"""
    state.repayments.append(repayment)
    loan = state.find_loan(repayment.loan_id)
    if loan is not None:
        reconcile_loan_status(loan, state, today)


def reverse_repayment(state: CoopState, repayment_id: str, today: date) -> Optional[Repayment]:
    """Remove a repayment; a PAID loan it no longer covers reverts to APPROVED"""
    removed = next((r for r in state.repayments if r.id == repayment_id), None)
    if removed is None:
        return None
    state.repayments = [r for r in state.repayments if r.id != repayment_id]
    loan = state.find_loan(removed.loan_id)
    if loan is not None:
        reconcile_loan_status(loan, state, today)
    return removed


def remove_loan(state: CoopState, loan_id: str) -> Optional[Loan]:
    """Delete a loan with its repayments and penalties; an earning loan's interest leaves the pool"""
    loan = state.find_loan(loan_id)
    if loan is None:
        return None
    if is_earning(loan.status):
        state.total_interest_pool = max(Decimal("0"), state.total_interest_pool - calculate_interest_earned(loan))
    state.loans = [other for other in state.loans if other.id != loan_id]
    state.repayments = [r for r in state.repayments if r.loan_id != loan_id]
    state.penalties = [p for p in state.penalties if p.loan_id != loan_id]
    return loan


# Explicit status changes an administrator may make
ALLOWED_TRANSITIONS = {
    LoanStatus.PENDING: frozenset({LoanStatus.APPROVED, LoanStatus.REJECTED}),
    LoanStatus.APPROVED: frozenset({LoanStatus.PAID, LoanStatus.PENDING}),
    LoanStatus.PAID: frozenset({LoanStatus.APPROVED}),
    LoanStatus.REJECTED: frozenset(),
}


def can_transition(current: LoanStatus, target: LoanStatus) -> bool:
    return target == current or target in ALLOWED_TRANSITIONS[current]


def change_status(
    state: CoopState,
    loan: Loan,
    target: LoanStatus,
    today: date,
    date_approved: Optional[date] = None,
    disbursement_period_id: Optional[str] = None,
) -> None:
    """
    Move a loan to a new status and keep the interest pool in step.

    Approving from PENDING stamps the approval date (today unless given);
    marking PAID stamps dateClosed; reverting PAID → APPROVED clears it.
    Entering APPROVED/PAID adds the loan's interest to the pool, leaving
    subtracts it (the pool never goes below zero).
    """
    previous = loan.status
    if target == previous:
        return

    was_earning = is_earning(previous)
    interest_before = calculate_interest_earned(loan)

    loan.status = target
    if target == LoanStatus.APPROVED:
        if previous == LoanStatus.PENDING:
            loan.date_approved = date_approved or today
        elif date_approved is not None:
            loan.date_approved = date_approved
        if disbursement_period_id is not None:
            loan.disbursement_period_id = disbursement_period_id
        loan.date_closed = None
    elif target == LoanStatus.PAID:
        loan.date_closed = today

    if not was_earning and is_earning(target):
        state.total_interest_pool += calculate_interest_earned(loan)
    elif was_earning and not is_earning(target):
        state.total_interest_pool = max(Decimal("0"), state.total_interest_pool - interest_before)
