"""Installment schedule generation for cooperative loan repayment"""

from datetime import date
from decimal import Decimal, ROUND_DOWN
from typing import List, Sequence
from coop_ledger.domain.models import Installment, Loan, LoanStatus, RepaymentPlan, Repayment
from coop_ledger.domain.valuation import (
    CENTS,
    calculate_total_due,
    installment_count,
    resolve_plan,
    resolve_term_count,
    to_money,
)
from coop_ledger.utils.date_utils import add_months

FIRST_CUTOFF_DAY = 10
SECOND_CUTOFF_DAY = 25


def next_cutoff_on_or_after(base: date) -> date:
    """First 10th or 25th falling on or after base"""
    if base.day <= FIRST_CUTOFF_DAY:
        return base.replace(day=FIRST_CUTOFF_DAY)
    if base.day <= SECOND_CUTOFF_DAY:
        return base.replace(day=SECOND_CUTOFF_DAY)
    return add_months(base, 1).replace(day=FIRST_CUTOFF_DAY)


def generate_cutoff_schedule(start: date, count: int) -> List[date]:
    """
    Generate bi-monthly due dates alternating between the 10th and 25th.

    Example:
        start 2025-01-05, count 3 → [2025-01-10, 2025-01-25, 2025-02-10]
    """
    dates = []
    current = next_cutoff_on_or_after(start)
    for _ in range(count):
        dates.append(current)
        if current.day == FIRST_CUTOFF_DAY:
            current = current.replace(day=SECOND_CUTOFF_DAY)
        else:
            current = add_months(current, 1).replace(day=FIRST_CUTOFF_DAY)
    return dates


def generate_monthly_schedule(start: date, months: int) -> List[date]:
    """Single balloon due date `months` after start, clamped to the month's last day"""
    if months <= 0:
        return []
    return [add_months(start, months)]


def generate_schedule(start: date, count: int, plan: RepaymentPlan) -> List[date]:
    """
    Due dates for a loan.

    For CUT_OFF, count is the number of installments. For MONTHLY, count is the
    term in months and the result is one date.
    """
    if plan == RepaymentPlan.MONTHLY:
        return generate_monthly_schedule(start, count)
    return generate_cutoff_schedule(start, count)


def schedule_start(loan: Loan) -> date:
    return loan.date_approved or loan.date_issued


def loan_schedule(loan: Loan) -> List[date]:
    """Full due-date schedule for a loan, from approval (or issue) date"""
    plan = resolve_plan(loan)
    if plan == RepaymentPlan.MONTHLY:
        return generate_monthly_schedule(schedule_start(loan), resolve_term_count(loan))
    return generate_cutoff_schedule(schedule_start(loan), installment_count(loan))


def split_amount(total: Decimal, count: int) -> List[Decimal]:
    """
    Split total into count cent-rounded amounts.

    Last installment absorbs the rounding remainder so the amounts sum to total.
        11,800.00 / 12 → 11 × 983.33 + 983.37
    """
    if count <= 0:
        return []
    base = (total / count).quantize(CENTS, rounding=ROUND_DOWN)
    amounts = [base] * count
    amounts[-1] = to_money(total) - base * (count - 1)
    return amounts


def build_installment_plan(
    loan: Loan,
    repayments: Sequence[Repayment],
    as_of: date,
) -> List[Installment]:
    """
    Repayment plan for an approved or paid loan with per-installment status.

    An installment is paid once cumulative repayments cover it, overdue when
    unpaid and due before as_of, otherwise pending. Loans that are not yet
    approved, or lack a plan or term, have no plan.
    """
    if loan.status not in (LoanStatus.APPROVED, LoanStatus.PAID):
        return []
    if loan.repayment_plan is None or resolve_term_count(loan) <= 0:
        return []

    due_dates = loan_schedule(loan)
    amounts = split_amount(calculate_total_due(loan), len(due_dates))
    total_repaid = sum((r.amount for r in repayments if r.loan_id == loan.id), Decimal("0"))

    installments = []
    cumulative = Decimal("0")
    for i, (due_date, amount) in enumerate(zip(due_dates, amounts), start=1):
        cumulative += amount
        if total_repaid >= cumulative:
            status = "paid"
        elif due_date < as_of:
            status = "overdue"
        else:
            status = "pending"
        installments.append(Installment(number=i, due_date=due_date, amount=amount, status=status))

    return installments
