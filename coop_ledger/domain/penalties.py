"""Penalty assessment for missed loan installments"""

from datetime import date
from decimal import Decimal
from typing import Iterable, List, Sequence, Set
from coop_ledger.domain.installments import loan_schedule
from coop_ledger.domain.models import (
    CollectionPeriod,
    Loan,
    LoanStatus,
    Penalty,
    PenaltyKey,
    Repayment,
)
from coop_ledger.domain.valuation import (
    calculate_installment_amount,
    calculate_total_due,
    installment_count,
    resolve_penalty_rate,
    to_money,
)
from coop_ledger.utils.date_utils import to_ymd


def penalty_id(key: PenaltyKey) -> str:
    """Stored id of an assessed penalty"""
    return f"{key.loan_id}-missed-{key.installment}"


def reference_date(periods: Sequence[CollectionPeriod], today: date) -> date:
    """Latest collection period date, or today when there are no periods"""
    if not periods:
        return today
    return max(p.date for p in periods)


def attribution_period(missed_due: date, sorted_periods: Sequence[CollectionPeriod]) -> str:
    """First period strictly after the missed due date, else the latest period, else the date itself"""
    for period in sorted_periods:
        if period.date > missed_due:
            return period.id
    if sorted_periods:
        return sorted_periods[-1].id
    return to_ymd(missed_due)


def installments_covered(loan: Loan, paid: Decimal) -> int:
    """
    Whole installments covered by paid.

    floor(paid / installmentAmount) rewritten as floor(paid × count / totalDue)
    so the division stays exact for thirds and other repeating installments.
    """
    total_due = calculate_total_due(loan)
    if total_due <= 0:
        return 0
    return int((paid * installment_count(loan)) // total_due)


def assess_loan(
    loan: Loan,
    repayments: Iterable[Repayment],
    assessed: Set[PenaltyKey],
    sorted_periods: Sequence[CollectionPeriod],
    as_of: date,
    today: date,
) -> List[Penalty]:
    """Penalties for one loan's newly missed installments as of as_of"""
    if loan.status != LoanStatus.APPROVED:
        return []
    installment = calculate_installment_amount(loan)
    if installment <= 0:
        return []

    schedule = loan_schedule(loan)
    due_count = sum(1 for due in schedule if due <= as_of)
    if due_count == 0:
        return []

    paid_so_far = sum(
        (r.amount for r in repayments if r.loan_id == loan.id and r.date <= as_of),
        Decimal("0"),
    )
    covered = installments_covered(loan, paid_so_far)
    amount = to_money(resolve_penalty_rate(loan) * installment)

    penalties = []
    for k in range(covered + 1, due_count + 1):
        key = PenaltyKey(loan.id, k)
        if key in assessed:
            continue
        missed_due = schedule[k - 1]
        penalties.append(
            Penalty(
                id=penalty_id(key),
                loan_id=loan.id,
                amount=amount,
                date=today,
                period_id=attribution_period(missed_due, sorted_periods),
                reason=f"Missed installment #{k} due {to_ymd(missed_due)}",
                installment=k,
            )
        )
    return penalties


def assess_penalties(
    loans: Sequence[Loan],
    repayments: Sequence[Repayment],
    penalties: Sequence[Penalty],
    periods: Sequence[CollectionPeriod],
    today: date,
) -> List[Penalty]:
    """
    Scan every approved loan and return penalties for newly missed installments.

    Steps per loan:
    1. Schedule from approval (or issue) date
    2. dueCount = installments due on or before the reference date
    3. paidSoFar = repayments dated on or before the reference date
    4. Installments covered by paidSoFar
    5. One penalty per uncovered, due installment not already assessed

    Already-assessed installments are identified by PenaltyKey, so running this
    again over its own output yields nothing new.
    """
    sorted_periods = sorted(periods, key=lambda p: p.date)
    as_of = reference_date(sorted_periods, today)
    assessed = {p.key for p in penalties if p.key is not None}

    new_penalties: List[Penalty] = []
    for loan in loans:
        new_penalties.extend(assess_loan(loan, repayments, assessed, sorted_periods, as_of, today))
    return new_penalties
