"""Reducer - applies one action to a copy of the cooperative state, then re-derives"""

import copy
import dataclasses
import uuid
from datetime import date
from decimal import Decimal
from typing import Callable, Dict, Optional, Type
from coop_ledger.domain import actions as a
from coop_ledger.domain.archive import archive_year
from coop_ledger.domain.balances import compute_current_balance
from coop_ledger.domain.dividends import (
    calculate_dividend_distribution,
    calculate_forfeited_interest,
    calculate_per_share_dividend,
    calculate_total_shares,
)
from coop_ledger.domain.exceptions import NotFoundError, ValidationError
from coop_ledger.domain.models import (
    CollectionPeriod,
    CoopState,
    Loan,
    LoanStatus,
    Member,
    Payment,
    Penalty,
    Repayment,
    ShareHistoryEntry,
)
from coop_ledger.domain.penalties import assess_penalties
from coop_ledger.domain.repayments import (
    can_transition,
    change_status,
    reconcile_loan_status,
    record_repayment,
    remove_loan,
    reverse_repayment,
)
from coop_ledger.domain.valuation import (
    calculate_interest_earned,
    is_earning,
    rate_matches_plan,
    resolve_interest_rate,
    resolve_plan,
)
from coop_ledger.utils.date_utils import to_ymd

Handler = Callable[[CoopState, a.Action, date], None]


def _new_id() -> str:
    return str(uuid.uuid4())


def _require_member(state: CoopState, member_id: int) -> Member:
    member = state.find_member(member_id)
    if member is None:
        raise NotFoundError(f"Member {member_id} not found", field="memberId")
    return member


def _require_loan(state: CoopState, loan_id: str) -> Loan:
    loan = state.find_loan(loan_id)
    if loan is None:
        raise NotFoundError(f"Loan {loan_id} not found", field="loanId")
    return loan


def _require_period(state: CoopState, period_id: str) -> CollectionPeriod:
    period = state.find_period(period_id)
    if period is None:
        raise NotFoundError(f"Collection period {period_id} not found", field="periodId")
    return period


def _sync_total(period: CollectionPeriod) -> None:
    """Keep the cached total equal to the sum of the period's payments"""
    period.total_collected = sum((p.amount for p in period.payments), Decimal("0"))


# Payments


def _add_payment(state: CoopState, action: a.AddPayment, today: date) -> None:
    period = _require_period(state, action.collection_period)
    _require_member(state, action.member_id)

    # One payment per member per period; a second add is ignored
    if any(p.member_id == action.member_id for p in period.payments):
        return

    amount = action.amount if action.amount is not None else period.default_contribution
    if not amount or amount <= 0:
        raise ValidationError("Payment amount is required when the period has no default contribution", field="amount")

    period.payments.append(
        Payment(
            member_id=action.member_id,
            amount=amount,
            date=action.date or today,
            collection_period=period.id,
        )
    )
    _sync_total(period)


def _upsert_payment(state: CoopState, action: a.UpsertPayment, today: date) -> None:
    period = _require_period(state, action.collection_period)
    _require_member(state, action.member_id)

    existing = next((p for p in period.payments if p.member_id == action.member_id), None)
    if existing is not None:
        existing.amount = action.amount
        if action.date is not None:
            existing.date = action.date
    else:
        period.payments.append(
            Payment(
                member_id=action.member_id,
                amount=action.amount,
                date=action.date or today,
                collection_period=period.id,
            )
        )
    _sync_total(period)


def _remove_payment(state: CoopState, action: a.RemovePayment, today: date) -> None:
    period = state.find_period(action.collection_period)
    if period is None:
        return
    period.payments = [p for p in period.payments if p.member_id != action.member_id]
    _sync_total(period)


# Loans


def _add_loan(state: CoopState, action: a.AddLoan, today: date) -> None:
    _require_member(state, action.member_id)
    if action.id is not None and state.find_loan(action.id) is not None:
        raise ValidationError(f"Loan {action.id} already exists", field="id")
    if action.disbursement_period_id is not None:
        _require_period(state, action.disbursement_period_id)

    approved = action.status in (LoanStatus.APPROVED, LoanStatus.PAID)
    loan = Loan(
        id=action.id or _new_id(),
        member_id=action.member_id,
        amount=action.amount,
        date_issued=action.date_issued or today,
        status=action.status,
        date_approved=action.date_approved or (today if approved else None),
        disbursement_period_id=action.disbursement_period_id,
        repayment_plan=action.repayment_plan,
        interest_rate=action.interest_rate,
        date_closed=today if action.status == LoanStatus.PAID else None,
        term_count=action.term_count,
        penalty_rate=action.penalty_rate,
    )
    state.loans.append(loan)
    if is_earning(loan.status):
        state.total_interest_pool += calculate_interest_earned(loan)


def _update_loan(state: CoopState, action: a.UpdateLoan, today: date) -> None:
    loan = _require_loan(state, action.loan_id)
    changes = action.model_dump(exclude_none=True, exclude={"type", "loan_id", "status"})

    if "member_id" in changes:
        _require_member(state, changes["member_id"])
    if action.status is not None and not can_transition(loan.status, action.status):
        raise ValidationError(f"Loan cannot move from {loan.status.value} to {action.status.value}", field="status")

    updated = dataclasses.replace(loan, **changes)
    if (
        ("interest_rate" in changes or "repayment_plan" in changes)
        and updated.interest_rate is not None
        and not rate_matches_plan(resolve_plan(updated), resolve_interest_rate(updated))
    ):
        raise ValidationError("Interest rate must be 4% for MONTHLY or 3% for CUT_OFF plans", field="interestRate")

    # Edits to an earning loan move the pool by the change in interest
    if is_earning(loan.status):
        delta = calculate_interest_earned(updated) - calculate_interest_earned(loan)
        state.total_interest_pool = max(Decimal("0"), state.total_interest_pool + delta)

    for name, value in changes.items():
        setattr(loan, name, value)

    if action.status is not None:
        change_status(state, loan, action.status, today)
    elif is_earning(loan.status):
        # A new total due can open or close the loan against its repayments
        reconcile_loan_status(loan, state, today)


def _update_loan_status(state: CoopState, action: a.UpdateLoanStatus, today: date) -> None:
    loan = _require_loan(state, action.loan_id)
    if not can_transition(loan.status, action.status):
        raise ValidationError(f"Loan cannot move from {loan.status.value} to {action.status.value}", field="status")
    if action.disbursement_period_id is not None:
        _require_period(state, action.disbursement_period_id)
    change_status(
        state,
        loan,
        action.status,
        today,
        date_approved=action.date_approved,
        disbursement_period_id=action.disbursement_period_id,
    )


def _delete_loan(state: CoopState, action: a.DeleteLoan, today: date) -> None:
    remove_loan(state, action.loan_id)


# Repayments and penalties


def _add_repayment(state: CoopState, action: a.AddRepayment, today: date) -> None:
    loan = _require_loan(state, action.loan_id)
    _require_period(state, action.period_id)
    if action.member_id is not None and action.member_id != loan.member_id:
        raise ValidationError(f"Loan {loan.id} belongs to member {loan.member_id}", field="memberId")
    if action.id is not None and any(r.id == action.id for r in state.repayments):
        raise ValidationError(f"Repayment {action.id} already exists", field="id")

    repayment = Repayment(
        id=action.id or _new_id(),
        loan_id=loan.id,
        member_id=loan.member_id,
        amount=action.amount,
        date=action.date or today,
        period_id=action.period_id,
    )
    record_repayment(state, repayment, today)


def _remove_repayment(state: CoopState, action: a.RemoveRepayment, today: date) -> None:
    reverse_repayment(state, action.repayment_id, today)


def _add_penalty(state: CoopState, action: a.AddPenalty, today: date) -> None:
    _require_loan(state, action.loan_id)
    _require_period(state, action.period_id)
    if action.id is not None and any(p.id == action.id for p in state.penalties):
        return

    state.penalties.append(
        Penalty(
            id=action.id or _new_id(),
            loan_id=action.loan_id,
            amount=action.amount,
            date=action.date or today,
            period_id=action.period_id,
            reason=action.reason,
        )
    )


def _remove_penalty(state: CoopState, action: a.RemovePenalty, today: date) -> None:
    state.penalties = [p for p in state.penalties if p.id != action.penalty_id]


# Members and shares


def _add_member(state: CoopState, action: a.AddMember, today: date) -> None:
    next_id = max((m.id for m in state.members), default=0) + 1
    state.members.append(Member(id=next_id, name=action.name))


def _update_member(state: CoopState, action: a.UpdateMember, today: date) -> None:
    _require_member(state, action.member_id).name = action.name


def _delete_member(state: CoopState, action: a.DeleteMember, today: date) -> None:
    """Remove a member together with their payments, loans and repayments"""
    member_id = action.member_id
    if state.find_member(member_id) is None:
        return

    for period in state.collections:
        if any(p.member_id == member_id for p in period.payments):
            period.payments = [p for p in period.payments if p.member_id != member_id]
            _sync_total(period)

    for loan in [loan for loan in state.loans if loan.member_id == member_id]:
        remove_loan(state, loan.id)

    state.repayments = [r for r in state.repayments if r.member_id != member_id]
    state.members = [m for m in state.members if m.id != member_id]


def _set_shares(state: CoopState, member: Member, shares: Decimal, today: date) -> None:
    if member.committed_shares != shares:
        state.share_history.append(
            ShareHistoryEntry(
                member_id=member.id,
                date=today,
                previous_shares=member.committed_shares,
                new_shares=shares,
            )
        )
    member.committed_shares = shares


def _update_member_shares(state: CoopState, action: a.UpdateMemberShares, today: date) -> None:
    member = _require_member(state, action.member_id)
    _set_shares(state, member, action.shares, today)


def _bulk_update_shares(state: CoopState, action: a.BulkUpdateShares, today: date) -> None:
    # Resolve every member first so an unknown id rejects the whole batch
    members = [(_require_member(state, u.member_id), u.shares) for u in action.updates]
    for member, shares in members:
        _set_shares(state, member, shares, today)


def _update_share_price(state: CoopState, action: a.UpdateSharePrice, today: date) -> None:
    state.share_price = action.share_price


def _forfeit_interest(state: CoopState, action: a.ForfeitInterest, today: date) -> None:
    member = _require_member(state, action.member_id)
    per_share = calculate_per_share_dividend(state.total_interest_pool, calculate_total_shares(state.members))
    member.forfeited = True
    member.forfeiture_date = action.date or today
    member.forfeited_interest = calculate_forfeited_interest(member, per_share)


def _restore_member_interest(state: CoopState, action: a.RestoreMemberInterest, today: date) -> None:
    member = _require_member(state, action.member_id)
    member.forfeited = False
    member.forfeiture_date = None
    member.forfeited_interest = None


def _distribute_dividends(state: CoopState, action: a.DistributeDividends, today: date) -> None:
    distribution = calculate_dividend_distribution(
        state.total_interest_pool,
        state.members,
        action.date or today,
        [c.id for c in state.collections],
        action.id or f"dividend-{uuid.uuid4().hex}",
    )
    state.dividend_distributions.append(distribution)
    # With no shares outstanding nothing was paid out, so the pool carries over
    if distribution.total_shares > 0:
        state.total_interest_pool = Decimal("0")


# Collection periods


def _add_collection_period(state: CoopState, action: a.AddCollectionPeriod, today: date) -> None:
    period_id = action.id or to_ymd(action.date)
    if state.find_period(period_id) is not None:
        return
    state.collections.append(
        CollectionPeriod(id=period_id, date=action.date, default_contribution=action.default_contribution)
    )


def _update_collection_period(state: CoopState, action: a.UpdateCollectionPeriod, today: date) -> None:
    """Change a period's date; the id follows the date and every reference is re-pointed"""
    period = _require_period(state, action.period_id)
    old_id = period.id
    new_id = to_ymd(action.date) if action.date != period.date else old_id
    if new_id != old_id and state.find_period(new_id) is not None:
        raise ValidationError(f"Collection period {new_id} already exists", field="date")

    period.id = new_id
    period.date = action.date
    if action.default_contribution is not None:
        period.default_contribution = action.default_contribution
    for payment in period.payments:
        payment.collection_period = new_id

    if new_id == old_id:
        return
    for repayment in state.repayments:
        if repayment.period_id == old_id:
            repayment.period_id = new_id
    for penalty in state.penalties:
        if penalty.period_id == old_id:
            penalty.period_id = new_id
    for loan in state.loans:
        if loan.disbursement_period_id == old_id:
            loan.disbursement_period_id = new_id
    if state.selected_period == old_id:
        state.selected_period = new_id


def _delete_collection_period(state: CoopState, action: a.DeleteCollectionPeriod, today: date) -> None:
    """Remove a period with its payments, repayments and penalties"""
    period_id = action.period_id
    if state.find_period(period_id) is None:
        return

    affected = {r.loan_id for r in state.repayments if r.period_id == period_id}
    affected |= {p.loan_id for p in state.penalties if p.period_id == period_id}

    state.collections = [c for c in state.collections if c.id != period_id]
    state.repayments = [r for r in state.repayments if r.period_id != period_id]
    state.penalties = [p for p in state.penalties if p.period_id != period_id]
    for loan in state.loans:
        if loan.disbursement_period_id == period_id:
            loan.disbursement_period_id = None
        if loan.id in affected:
            reconcile_loan_status(loan, state, today)

    if state.selected_period == period_id:
        remaining = state.sorted_periods()
        state.selected_period = remaining[0].id if remaining else ""


def _update_period_default(state: CoopState, action: a.UpdatePeriodDefault, today: date) -> None:
    _require_period(state, action.period_id).default_contribution = action.default_contribution


def _set_selected_period(state: CoopState, action: a.SetSelectedPeriod, today: date) -> None:
    if action.period_id:
        _require_period(state, action.period_id)
    state.selected_period = action.period_id


def _archive_year(state: CoopState, action: a.ArchiveYear, today: date) -> None:
    if any(archive.year == action.year for archive in state.archives):
        raise ValidationError(f"Year {action.year} is already archived", field="year")
    archive_year(state, action.year, today)


def _reset_periods(state: CoopState, action: a.ResetPeriods, today: date) -> None:
    """Clear all transactional data, keeping members, shares and balances"""
    state.collections = []
    state.loans = []
    state.repayments = []
    state.penalties = []
    state.selected_period = ""


_HANDLERS: Dict[Type[a.Action], Handler] = {
    a.AddPayment: _add_payment,
    a.UpsertPayment: _upsert_payment,
    a.RemovePayment: _remove_payment,
    a.AddLoan: _add_loan,
    a.UpdateLoan: _update_loan,
    a.UpdateLoanStatus: _update_loan_status,
    a.DeleteLoan: _delete_loan,
    a.AddRepayment: _add_repayment,
    a.RemoveRepayment: _remove_repayment,
    a.AddPenalty: _add_penalty,
    a.RemovePenalty: _remove_penalty,
    a.AddMember: _add_member,
    a.UpdateMember: _update_member,
    a.DeleteMember: _delete_member,
    a.UpdateMemberShares: _update_member_shares,
    a.BulkUpdateShares: _bulk_update_shares,
    a.UpdateSharePrice: _update_share_price,
    a.ForfeitInterest: _forfeit_interest,
    a.RestoreMemberInterest: _restore_member_interest,
    a.DistributeDividends: _distribute_dividends,
    a.AddCollectionPeriod: _add_collection_period,
    a.UpdateCollectionPeriod: _update_collection_period,
    a.DeleteCollectionPeriod: _delete_collection_period,
    a.UpdatePeriodDefault: _update_period_default,
    a.SetSelectedPeriod: _set_selected_period,
    a.ArchiveYear: _archive_year,
    a.ResetPeriods: _reset_periods,
}


def apply_action(state: CoopState, action: a.Action, today: date) -> CoopState:
    """
    Apply one action to a deep copy of state and return the copy.

    The input state is never mutated, so a ValidationError raised part way
    through leaves the caller's snapshot untouched.
    """
    handler = _HANDLERS.get(type(action))
    if handler is None:
        raise ValidationError(f"Unsupported action: {type(action).__name__}")
    new_state = copy.deepcopy(state)
    handler(new_state, action, today)
    return new_state


def recompute(state: CoopState, today: date) -> CoopState:
    """
    Re-derive everything that follows from the records.

    - Current balance from collections, repayments and approved loans
    - Penalties for newly missed installments (idempotent)
    """
    state.current_balance = compute_current_balance(state)
    state.penalties.extend(
        assess_penalties(state.loans, state.repayments, state.penalties, state.collections, today)
    )
    return state


def dispatch(state: CoopState, action: a.Action, today: Optional[date] = None) -> CoopState:
    """Main entry point: apply an action, then recompute derived values"""
    today = today or date.today()
    return recompute(apply_action(state, action, today), today)
