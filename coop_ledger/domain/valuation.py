"""Loan valuation - simple-interest totals, installment sizing and interest earned"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable
from coop_ledger.domain.models import Loan, LoanStatus, RepaymentPlan, EARNING_STATUSES

CENTS = Decimal("0.01")

DEFAULT_INTEREST_RATES = {
    RepaymentPlan.MONTHLY: Decimal("0.04"),
    RepaymentPlan.CUT_OFF: Decimal("0.03"),
}
DEFAULT_PENALTY_RATE = Decimal("0.03")
CUTOFFS_PER_MONTH = 2


def to_money(value: Decimal) -> Decimal:
    """Round to cents, half up"""
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def resolve_plan(loan: Loan) -> RepaymentPlan:
    """Loans created without a plan default to cut-off repayment"""
    return loan.repayment_plan or RepaymentPlan.CUT_OFF


def resolve_interest_rate(loan: Loan) -> Decimal:
    if loan.interest_rate is not None:
        return loan.interest_rate
    return DEFAULT_INTEREST_RATES[resolve_plan(loan)]


def resolve_term_count(loan: Loan) -> int:
    return loan.term_count or 0


def resolve_penalty_rate(loan: Loan) -> Decimal:
    return loan.penalty_rate if loan.penalty_rate is not None else DEFAULT_PENALTY_RATE


def calculate_total_due(loan: Loan) -> Decimal:
    """
    Principal plus simple interest over the term.

    totalDue = principal × (1 + rate × termCount), where termCount is in months
    for both plans.

    Example:
        10,000 on CUT_OFF at 3% for 6 months → 10,000 × 1.18 = 11,800
    """
    rate = resolve_interest_rate(loan)
    return loan.amount * (1 + rate * resolve_term_count(loan))


def installment_count(loan: Loan) -> int:
    """MONTHLY loans have one balloon payment, CUT_OFF loans two per month of term"""
    term = resolve_term_count(loan)
    if term <= 0:
        return 0
    if resolve_plan(loan) == RepaymentPlan.MONTHLY:
        return 1
    return term * CUTOFFS_PER_MONTH


def calculate_installment_amount(loan: Loan) -> Decimal:
    """Unrounded amount due per installment (zero when the loan has no term)"""
    count = installment_count(loan)
    if count == 0:
        return Decimal("0")
    return calculate_total_due(loan) / count


def calculate_interest_earned(loan: Loan) -> Decimal:
    """Interest contributed to the dividend pool; only approved or paid loans earn"""
    if loan.status not in EARNING_STATUSES:
        return Decimal("0")
    return calculate_total_due(loan) - loan.amount


def calculate_total_interest_pool(loans: Iterable[Loan]) -> Decimal:
    return sum((calculate_interest_earned(loan) for loan in loans), Decimal("0"))


def rate_matches_plan(plan: RepaymentPlan, rate: Decimal) -> bool:
    """Interest rate is fixed per plan: 4% for MONTHLY, 3% for CUT_OFF"""
    return rate == DEFAULT_INTEREST_RATES[plan]


def is_earning(status: LoanStatus) -> bool:
    return status in EARNING_STATUSES
