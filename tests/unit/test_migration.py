"""Unit tests for load-time normalization"""

from datetime import date
from decimal import Decimal
from coop_ledger.domain.migration import initial_state, needs_share_migration, normalize_state
from coop_ledger.domain.models import CollectionPeriod, CoopState, LoanStatus, Payment, Penalty, Repayment

TODAY = date(2025, 3, 1)


def test_initial_state():
    """Test fresh dataset has numbered members and the configured share price"""
    state = initial_state(20, Decimal("500"))

    assert len(state.members) == 20
    assert state.members[0].name == "Member 1"
    assert state.members[-1].id == 20
    assert state.share_price == Decimal("500")
    assert state.collections == []


def test_needs_share_migration():
    """Test snapshots missing any share-system key are migrated"""
    assert needs_share_migration({"members": []})
    assert not needs_share_migration({
        "sharePrice": 500,
        "totalInterestPool": 0,
        "dividendDistributions": [],
        "shareHistory": [],
    })


def test_duplicate_periods_and_payments_merged(sample_state: CoopState):
    """Test duplicated periods collapse and keep one payment per member"""
    duplicate = CollectionPeriod(
        id="2025-01-10",
        date=date(2025, 1, 10),
        total_collected=Decimal("9999"),
        payments=[
            Payment(member_id=1, amount=Decimal("500"), date=date(2025, 1, 10), collection_period="2025-01-10"),
            Payment(member_id=3, amount=Decimal("250"), date=date(2025, 1, 10), collection_period="2025-01-10"),
        ],
    )
    sample_state.collections.append(duplicate)

    state = normalize_state(sample_state, TODAY)

    period = state.find_period("2025-01-10")
    assert [c.id for c in state.collections].count("2025-01-10") == 1
    assert sorted(p.member_id for p in period.payments) == [1, 2, 3]
    assert period.total_collected == Decimal("1750")


def test_legacy_penalty_gets_installment(sample_state: CoopState):
    """Test assessed penalties saved without an installment recover it from the id"""
    sample_state.penalties.append(
        Penalty(id="loan-1-missed-2", loan_id="loan-1", amount=Decimal("15.45"), date=TODAY, period_id="2025-01-25")
    )
    sample_state.penalties.append(
        Penalty(id="manual-1", loan_id="loan-1", amount=Decimal("5"), date=TODAY, period_id="2025-01-25")
    )

    state = normalize_state(sample_state, TODAY)

    assert state.penalties[0].installment == 2
    assert state.penalties[1].installment is None


def test_fully_repaid_loan_upgraded_to_paid(sample_state: CoopState):
    """Test loans stored as APPROVED but fully repaid become PAID"""
    sample_state.repayments.append(
        Repayment(id="r1", loan_id="loan-1", member_id=1, amount=Decimal("1030"), date=date(2025, 1, 25), period_id="2025-01-25")
    )

    state = normalize_state(sample_state, TODAY)

    assert state.find_loan("loan-1").status == LoanStatus.PAID
    assert state.find_loan("loan-1").date_closed == TODAY


def test_pool_derived_only_when_migrating(sample_state: CoopState):
    """Test stored pool is trusted unless the snapshot predates the share system"""
    sample_state.total_interest_pool = Decimal("5")
    assert normalize_state(sample_state, TODAY).total_interest_pool == Decimal("5")

    assert normalize_state(sample_state, TODAY, migrate_shares=True).total_interest_pool == Decimal("30")


def test_balance_rederived_and_stale_selection_cleared(sample_state: CoopState):
    """Test stored balance is ignored and a dangling selection moves to the first period"""
    sample_state.current_balance = Decimal("123456")
    sample_state.selected_period = "1999-01-10"

    state = normalize_state(sample_state, TODAY)

    assert state.current_balance == Decimal("500")
    assert state.selected_period == "2025-01-10"
