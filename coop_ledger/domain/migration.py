"""Load-time normalization of stored snapshots, including upgrades of older layouts"""

import re
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Mapping
from coop_ledger.domain.balances import compute_current_balance
from coop_ledger.domain.models import CollectionPeriod, CoopState, LoanStatus, Member
from coop_ledger.domain.repayments import is_fully_repaid
from coop_ledger.domain.valuation import calculate_total_interest_pool

# Keys introduced with the share system; snapshots without them predate it
SHARE_SYSTEM_KEYS = ("sharePrice", "totalInterestPool", "dividendDistributions", "shareHistory")

_MISSED_INSTALLMENT = re.compile(r"-missed-(\d+)$")


def initial_state(member_count: int, share_price: Decimal) -> CoopState:
    """Fresh dataset for a login that has never saved anything"""
    return CoopState(
        members=[Member(id=i, name=f"Member {i}") for i in range(1, member_count + 1)],
        share_price=share_price,
    )


def needs_share_migration(raw: Mapping[str, Any]) -> bool:
    return any(key not in raw for key in SHARE_SYSTEM_KEYS)


def _merge_periods(periods: List[CollectionPeriod]) -> List[CollectionPeriod]:
    """Collapse periods sharing an id and keep one payment per member"""
    merged: Dict[str, CollectionPeriod] = {}
    for period in periods:
        target = merged.setdefault(period.id, CollectionPeriod(
            id=period.id,
            date=period.date,
            default_contribution=period.default_contribution,
        ))
        paid = {p.member_id for p in target.payments}
        for payment in period.payments:
            if payment.member_id not in paid:
                target.payments.append(payment)
                paid.add(payment.member_id)
    for period in merged.values():
        period.total_collected = sum((p.amount for p in period.payments), Decimal("0"))
    return list(merged.values())


def normalize_state(state: CoopState, today: date, migrate_shares: bool = False) -> CoopState:
    """
    Repair and upgrade a freshly loaded snapshot in place.

    - Duplicate periods merged, duplicate member payments dropped, totals re-synced
    - Assessed penalties saved without an installment number get it back from their id
    - Fully repaid loans that are not REJECTED become PAID
    - Snapshots predating the share system get their interest pool derived from the loans
    - Current balance is always re-derived
    """
    state.collections = _merge_periods(state.collections)

    for penalty in state.penalties:
        if penalty.installment is None:
            match = _MISSED_INSTALLMENT.search(penalty.id)
            if match:
                penalty.installment = int(match.group(1))

    for loan in state.loans:
        if loan.status not in (LoanStatus.REJECTED, LoanStatus.PAID) and is_fully_repaid(loan, state):
            loan.status = LoanStatus.PAID
            loan.date_closed = loan.date_closed or today

    if migrate_shares:
        state.total_interest_pool = calculate_total_interest_pool(state.loans)

    if state.selected_period and state.find_period(state.selected_period) is None:
        remaining = state.sorted_periods()
        state.selected_period = remaining[0].id if remaining else ""

    state.current_balance = compute_current_balance(state)
    return state
