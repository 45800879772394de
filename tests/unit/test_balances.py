"""Unit tests for balance and ledger aggregation"""

from decimal import Decimal
from coop_ledger.domain.balances import build_period_ledger, compute_current_balance, financial_summary, ledger_totals
from coop_ledger.domain.models import CoopState, LoanStatus, Penalty, Repayment


def test_current_balance(sample_state: CoopState):
    """Test collections plus repayments minus approved principal"""
    sample_state.repayments.append(
        Repayment(id="r1", loan_id="loan-1", member_id=1, amount=Decimal("200"),
                  date=sample_state.collections[1].date, period_id="2025-01-25")
    )
    assert compute_current_balance(sample_state) == Decimal("700")  # 1500 + 200 - 1000


def test_paid_loans_do_not_reduce_balance(sample_state: CoopState):
    """Test only APPROVED principal is subtracted"""
    sample_state.loans[0].status = LoanStatus.PAID
    assert compute_current_balance(sample_state) == Decimal("1500")


def test_period_ledger_chains_balances(sample_state: CoopState):
    """Test each period opens at the previous closing"""
    sample_state.beginning_balance = Decimal("100")
    sample_state.repayments.append(
        Repayment(id="r1", loan_id="loan-1", member_id=1, amount=Decimal("515"),
                  date=sample_state.collections[1].date, period_id="2025-01-25")
    )
    sample_state.penalties.append(
        Penalty(id="p1", loan_id="loan-1", amount=Decimal("15.45"),
                date=sample_state.collections[1].date, period_id="2025-01-25")
    )

    first, second = build_period_ledger(sample_state)

    assert first.opening_balance == Decimal("100")
    assert first.collections == Decimal("1500")
    assert first.disbursements == Decimal("1000")
    assert first.closing_balance == Decimal("600")
    assert second.opening_balance == Decimal("600")
    assert second.repayments == Decimal("515")
    assert second.penalties == Decimal("15.45")
    assert second.closing_balance == Decimal("1115")


def test_ledger_totals(sample_state: CoopState):
    """Test column totals across entries"""
    totals = ledger_totals(build_period_ledger(sample_state))

    assert totals.collections == Decimal("1500")
    assert totals.disbursements == Decimal("1000")
    assert totals.repayments == Decimal("0")


def test_financial_summary(sample_state: CoopState):
    """Test headline counts and totals"""
    sample_state.current_balance = compute_current_balance(sample_state)

    summary = financial_summary(sample_state)

    assert summary.total_members == 3
    assert summary.total_periods == 2
    assert summary.active_loans == 1
    assert summary.paid_loans == 0
    assert summary.current_balance == Decimal("500")
