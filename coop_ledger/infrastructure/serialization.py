"""Conversion between CoopState and its camelCase JSON document"""

from datetime import date
from decimal import Decimal
from typing import Any, Dict, Optional
from coop_ledger.domain.exceptions import ValidationError
from coop_ledger.domain.models import (
    ArchiveSummary,
    CollectionPeriod,
    CoopState,
    DividendDistribution,
    Loan,
    LoanStatus,
    Member,
    MemberDividend,
    Payment,
    Penalty,
    Repayment,
    RepaymentPlan,
    ShareHistoryEntry,
    YearlyArchive,
)
from coop_ledger.utils.date_utils import parse_date, to_ymd


def _num(value: Decimal) -> float:
    return float(value)


def _dec(value: Any, default: str = "0") -> Decimal:
    if value is None:
        return Decimal(default)
    return Decimal(str(value))


def _opt_dec(value: Any) -> Optional[Decimal]:
    return None if value is None else Decimal(str(value))


def _opt_date(value: Any) -> Optional[date]:
    return None if value in (None, "") else parse_date(value)


def _opt_ymd(value: Optional[date]) -> Optional[str]:
    return None if value is None else to_ymd(value)


# Encoding


def member_to_dict(m: Member) -> Dict[str, Any]:
    return {
        "id": m.id,
        "name": m.name,
        "committedShares": _num(m.committed_shares),
        "forfeited": m.forfeited,
        "forfeitureDate": _opt_ymd(m.forfeiture_date),
        "forfeitedInterest": None if m.forfeited_interest is None else _num(m.forfeited_interest),
    }


def period_to_dict(c: CollectionPeriod) -> Dict[str, Any]:
    return {
        "id": c.id,
        "date": to_ymd(c.date),
        "totalCollected": _num(c.total_collected),
        "payments": [
            {
                "memberId": p.member_id,
                "amount": _num(p.amount),
                "date": to_ymd(p.date),
                "collectionPeriod": p.collection_period,
            }
            for p in c.payments
        ],
        "defaultContribution": None if c.default_contribution is None else _num(c.default_contribution),
    }


def loan_to_dict(loan: Loan) -> Dict[str, Any]:
    return {
        "id": loan.id,
        "memberId": loan.member_id,
        "amount": _num(loan.amount),
        "dateIssued": to_ymd(loan.date_issued),
        "status": loan.status.value,
        "dateApproved": _opt_ymd(loan.date_approved),
        "disbursementPeriodId": loan.disbursement_period_id,
        "repaymentPlan": None if loan.repayment_plan is None else loan.repayment_plan.value,
        "interestRate": None if loan.interest_rate is None else _num(loan.interest_rate),
        "dateClosed": _opt_ymd(loan.date_closed),
        "termCount": loan.term_count,
        "penaltyRate": None if loan.penalty_rate is None else _num(loan.penalty_rate),
    }


def repayment_to_dict(r: Repayment) -> Dict[str, Any]:
    return {
        "id": r.id,
        "loanId": r.loan_id,
        "memberId": r.member_id,
        "amount": _num(r.amount),
        "date": to_ymd(r.date),
        "periodId": r.period_id,
    }


def penalty_to_dict(p: Penalty) -> Dict[str, Any]:
    return {
        "id": p.id,
        "loanId": p.loan_id,
        "amount": _num(p.amount),
        "date": to_ymd(p.date),
        "periodId": p.period_id,
        "reason": p.reason,
        "installment": p.installment,
    }


def distribution_to_dict(d: DividendDistribution) -> Dict[str, Any]:
    return {
        "id": d.id,
        "date": to_ymd(d.date),
        "totalInterestPool": _num(d.total_interest_pool),
        "totalShares": _num(d.total_shares),
        "perShareDividend": _num(d.per_share_dividend),
        "distributions": [
            {
                "memberId": md.member_id,
                "shares": _num(md.shares),
                "dividendAmount": _num(md.dividend_amount),
                "forfeited": md.forfeited,
            }
            for md in d.distributions
        ],
        "periodsCovered": list(d.periods_covered),
    }


def share_history_to_dict(h: ShareHistoryEntry) -> Dict[str, Any]:
    return {
        "memberId": h.member_id,
        "date": to_ymd(h.date),
        "previousShares": _num(h.previous_shares),
        "newShares": _num(h.new_shares),
    }


def archive_to_dict(a: YearlyArchive) -> Dict[str, Any]:
    s = a.summary
    return {
        "year": a.year,
        "archivedDate": to_ymd(a.archived_date),
        "summary": {
            "totalCollected": _num(s.total_collected),
            "totalDisbursed": _num(s.total_disbursed),
            "totalRepayments": _num(s.total_repayments),
            "totalPenalties": _num(s.total_penalties),
            "endingBalance": _num(s.ending_balance),
            "activeMembers": s.active_members,
            "totalLoansIssued": s.total_loans_issued,
            "totalShares": _num(s.total_shares),
            "totalDividendsDistributed": _num(s.total_dividends_distributed),
        },
        "collections": [period_to_dict(c) for c in a.collections],
        "loans": [loan_to_dict(loan) for loan in a.loans],
        "repayments": [repayment_to_dict(r) for r in a.repayments],
        "penalties": [penalty_to_dict(p) for p in a.penalties],
        "shareHistory": [share_history_to_dict(h) for h in a.share_history],
        "dividendDistributions": [distribution_to_dict(d) for d in a.dividend_distributions],
    }


def state_to_dict(state: CoopState) -> Dict[str, Any]:
    """Serialize a snapshot into the stored JSON document"""
    return {
        "beginningBalance": _num(state.beginning_balance),
        "currentBalance": _num(state.current_balance),
        "members": [member_to_dict(m) for m in state.members],
        "collections": [period_to_dict(c) for c in state.collections],
        "loans": [loan_to_dict(loan) for loan in state.loans],
        "repayments": [repayment_to_dict(r) for r in state.repayments],
        "penalties": [penalty_to_dict(p) for p in state.penalties],
        "selectedPeriod": state.selected_period,
        "archives": [archive_to_dict(a) for a in state.archives],
        "sharePrice": _num(state.share_price),
        "totalInterestPool": _num(state.total_interest_pool),
        "dividendDistributions": [distribution_to_dict(d) for d in state.dividend_distributions],
        "shareHistory": [share_history_to_dict(h) for h in state.share_history],
    }


# Decoding


def member_from_dict(d: Dict[str, Any]) -> Member:
    return Member(
        id=int(d["id"]),
        name=d["name"],
        committed_shares=_dec(d.get("committedShares")),
        forfeited=bool(d.get("forfeited", False)),
        forfeiture_date=_opt_date(d.get("forfeitureDate")),
        forfeited_interest=_opt_dec(d.get("forfeitedInterest")),
    )


def period_from_dict(d: Dict[str, Any]) -> CollectionPeriod:
    return CollectionPeriod(
        id=d["id"],
        date=parse_date(d["date"]),
        total_collected=_dec(d.get("totalCollected")),
        payments=[
            Payment(
                member_id=int(p["memberId"]),
                amount=_dec(p["amount"]),
                date=parse_date(p["date"]),
                collection_period=p.get("collectionPeriod", d["id"]),
            )
            for p in d.get("payments", [])
        ],
        default_contribution=_opt_dec(d.get("defaultContribution")),
    )


def loan_from_dict(d: Dict[str, Any]) -> Loan:
    plan = d.get("repaymentPlan")
    return Loan(
        id=d["id"],
        member_id=int(d["memberId"]),
        amount=_dec(d["amount"]),
        date_issued=parse_date(d["dateIssued"]),
        status=LoanStatus(d.get("status", LoanStatus.PENDING.value)),
        date_approved=_opt_date(d.get("dateApproved")),
        disbursement_period_id=d.get("disbursementPeriodId"),
        repayment_plan=RepaymentPlan(plan) if plan else None,
        interest_rate=_opt_dec(d.get("interestRate")),
        date_closed=_opt_date(d.get("dateClosed")),
        term_count=d.get("termCount"),
        penalty_rate=_opt_dec(d.get("penaltyRate")),
    )


def repayment_from_dict(d: Dict[str, Any]) -> Repayment:
    return Repayment(
        id=d["id"],
        loan_id=d["loanId"],
        member_id=int(d["memberId"]),
        amount=_dec(d["amount"]),
        date=parse_date(d["date"]),
        period_id=d["periodId"],
    )


def penalty_from_dict(d: Dict[str, Any]) -> Penalty:
    return Penalty(
        id=d["id"],
        loan_id=d["loanId"],
        amount=_dec(d["amount"]),
        date=parse_date(d["date"]),
        period_id=d["periodId"],
        reason=d.get("reason"),
        installment=d.get("installment"),
    )


def distribution_from_dict(d: Dict[str, Any]) -> DividendDistribution:
    return DividendDistribution(
        id=d["id"],
        date=parse_date(d["date"]),
        total_interest_pool=_dec(d.get("totalInterestPool")),
        total_shares=_dec(d.get("totalShares")),
        per_share_dividend=_dec(d.get("perShareDividend")),
        distributions=[
            MemberDividend(
                member_id=int(md["memberId"]),
                shares=_dec(md.get("shares")),
                dividend_amount=_dec(md.get("dividendAmount")),
                forfeited=bool(md.get("forfeited", False)),
            )
            for md in d.get("distributions", [])
        ],
        periods_covered=list(d.get("periodsCovered", [])),
    )


def share_history_from_dict(d: Dict[str, Any]) -> ShareHistoryEntry:
    return ShareHistoryEntry(
        member_id=int(d["memberId"]),
        date=parse_date(d["date"]),
        previous_shares=_dec(d.get("previousShares")),
        new_shares=_dec(d.get("newShares")),
    )


def archive_from_dict(d: Dict[str, Any]) -> YearlyArchive:
    s = d.get("summary", {})
    return YearlyArchive(
        year=int(d["year"]),
        archived_date=parse_date(d["archivedDate"]),
        summary=ArchiveSummary(
            total_collected=_dec(s.get("totalCollected")),
            total_disbursed=_dec(s.get("totalDisbursed")),
            total_repayments=_dec(s.get("totalRepayments")),
            total_penalties=_dec(s.get("totalPenalties")),
            ending_balance=_dec(s.get("endingBalance")),
            active_members=int(s.get("activeMembers", 0)),
            total_loans_issued=int(s.get("totalLoansIssued", 0)),
            total_shares=_dec(s.get("totalShares")),
            total_dividends_distributed=_dec(s.get("totalDividendsDistributed")),
        ),
        collections=[period_from_dict(c) for c in d.get("collections", [])],
        loans=[loan_from_dict(loan) for loan in d.get("loans", [])],
        repayments=[repayment_from_dict(r) for r in d.get("repayments", [])],
        penalties=[penalty_from_dict(p) for p in d.get("penalties", [])],
        share_history=[share_history_from_dict(h) for h in d.get("shareHistory", [])],
        dividend_distributions=[distribution_from_dict(x) for x in d.get("dividendDistributions", [])],
    )


def state_from_dict(data: Dict[str, Any]) -> CoopState:
    """
    Rebuild a snapshot from its stored document.

    Missing share-system keys fall back to defaults; currentBalance is read but
    callers re-derive it through normalize_state.

    Raises:
        ValidationError: the document is missing required fields or holds
            malformed values
    """
    try:
        return CoopState(
            beginning_balance=_dec(data.get("beginningBalance")),
            current_balance=_dec(data.get("currentBalance")),
            members=[member_from_dict(m) for m in data.get("members", [])],
            collections=[period_from_dict(c) for c in data.get("collections", [])],
            loans=[loan_from_dict(loan) for loan in data.get("loans", [])],
            repayments=[repayment_from_dict(r) for r in data.get("repayments", [])],
            penalties=[penalty_from_dict(p) for p in data.get("penalties", [])],
            selected_period=data.get("selectedPeriod") or "",
            archives=[archive_from_dict(a) for a in data.get("archives", [])],
            share_price=_dec(data.get("sharePrice"), "500"),
            total_interest_pool=_dec(data.get("totalInterestPool")),
            dividend_distributions=[distribution_from_dict(d) for d in data.get("dividendDistributions", [])],
            share_history=[share_history_from_dict(h) for h in data.get("shareHistory", [])],
        )
    except (KeyError, TypeError, ValueError, ArithmeticError) as e:
        raise ValidationError(f"Malformed stored state: {e}") from e
