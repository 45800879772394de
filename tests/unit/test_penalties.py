"""Unit tests for missed-installment penalty assessment"""

from datetime import date
from decimal import Decimal
from coop_ledger.domain.models import CollectionPeriod, Loan, LoanStatus, Penalty, PenaltyKey, RepaymentPlan, Repayment
from coop_ledger.domain.penalties import (
    assess_penalties,
    attribution_period,
    installments_covered,
    penalty_id,
    reference_date,
)

TODAY = date(2025, 3, 1)


def _loan(**overrides) -> Loan:
    fields = dict(
        id="loan-1",
        member_id=1,
        amount=Decimal("1000"),
        date_issued=date(2025, 1, 5),
        status=LoanStatus.APPROVED,
        date_approved=date(2025, 1, 5),
        repayment_plan=RepaymentPlan.CUT_OFF,
        interest_rate=Decimal("0.03"),
        term_count=1,
    )
    fields.update(overrides)
    return Loan(**fields)


def _periods(*days: date) -> list[CollectionPeriod]:
    return [CollectionPeriod(id=d.isoformat(), date=d) for d in days]


def _repayment(amount: str, on: date) -> Repayment:
    return Repayment(id=f"r-{on}", loan_id="loan-1", member_id=1, amount=Decimal(amount), date=on, period_id=on.isoformat())


def test_reference_date_is_latest_period_or_today():
    """Test reference date falls back to today without periods"""
    assert reference_date(_periods(date(2025, 1, 10), date(2025, 2, 10)), TODAY) == date(2025, 2, 10)
    assert reference_date([], TODAY) == TODAY


def test_attribution_period():
    """Test penalty lands in the first period after the missed date, else the latest, else the date"""
    periods = _periods(date(2025, 1, 10), date(2025, 1, 25), date(2025, 2, 10))

    assert attribution_period(date(2025, 1, 10), periods) == "2025-01-25"
    assert attribution_period(date(2025, 2, 10), periods) == "2025-02-10"
    assert attribution_period(date(2025, 2, 10), []) == "2025-02-10"


def test_installments_covered_with_repeating_installment():
    """Test coverage math does not lose a cent to repeating decimals"""
    loan = _loan(amount=Decimal("100"), interest_rate=Decimal("0.03"), term_count=3)  # 109 over 6
    assert installments_covered(loan, Decimal("109")) == 6
    assert installments_covered(loan, Decimal("18.16")) == 0
    assert installments_covered(loan, Decimal("18.17")) == 1


def test_missed_installments_are_penalized():
    """Test one penalty per uncovered due installment"""
    periods = _periods(date(2025, 1, 10), date(2025, 1, 25))

    penalties = assess_penalties([_loan()], [], [], periods, TODAY)

    assert [p.installment for p in penalties] == [1, 2]
    assert all(p.amount == Decimal("15.45") for p in penalties)  # 3% of 515
    assert penalties[0].id == "loan-1-missed-1"
    assert penalties[0].period_id == "2025-01-25"
    assert penalties[0].date == TODAY
    assert penalties[0].reason == "Missed installment #1 due 2025-01-10"


def test_assessment_is_idempotent():
    """Test a second run over its own output yields nothing"""
    loans = [_loan()]
    periods = _periods(date(2025, 1, 10), date(2025, 1, 25))

    first = assess_penalties(loans, [], [], periods, TODAY)
    second = assess_penalties(loans, [], first, periods, TODAY)

    assert len(first) == 2
    assert second == []


def test_covered_installments_not_penalized():
    """Test repayments dated by the reference date cover installments"""
    periods = _periods(date(2025, 1, 10), date(2025, 1, 25))
    repayments = [_repayment("515", date(2025, 1, 10))]

    penalties = assess_penalties([_loan()], repayments, [], periods, TODAY)

    assert [p.installment for p in penalties] == [2]


def test_repayments_after_reference_date_ignored():
    """Test only repayments on or before the reference date count"""
    periods = _periods(date(2025, 1, 10))
    repayments = [_repayment("1030", date(2025, 1, 20))]

    penalties = assess_penalties([_loan()], repayments, [], periods, TODAY)

    assert [p.installment for p in penalties] == [1]


def test_only_approved_loans_with_term_are_assessed():
    """Test pending, paid and term-less loans are skipped"""
    periods = _periods(date(2025, 1, 25))
    loans = [
        _loan(id="pending", status=LoanStatus.PENDING),
        _loan(id="paid", status=LoanStatus.PAID),
        _loan(id="no-term", term_count=None),
    ]
    assert assess_penalties(loans, [], [], periods, TODAY) == []


def test_manual_penalty_does_not_block_assessment():
    """Test penalties without an installment number are not treated as assessed"""
    periods = _periods(date(2025, 1, 10))
    manual = Penalty(id="manual", loan_id="loan-1", amount=Decimal("50"), date=TODAY, period_id="2025-01-10")

    penalties = assess_penalties([_loan()], [], [manual], periods, TODAY)

    assert [p.installment for p in penalties] == [1]


def test_custom_penalty_rate():
    """Test a loan's own penalty rate overrides the 3% default"""
    periods = _periods(date(2025, 1, 10))
    penalties = assess_penalties([_loan(penalty_rate=Decimal("0.1"))], [], [], periods, TODAY)

    assert penalties[0].amount == Decimal("51.50")


def test_penalty_id_format():
    """Test stored id of an assessed penalty"""
    assert penalty_id(PenaltyKey("abc", 3)) == "abc-missed-3"
