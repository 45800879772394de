"""Yearly archiving - freeze one calendar year and carry its ending balance forward"""

from datetime import date
from decimal import Decimal
from coop_ledger.domain.dividends import calculate_total_dividends_distributed, calculate_total_shares
from coop_ledger.domain.models import ArchiveSummary, CoopState, LoanStatus, YearlyArchive

ZERO = Decimal("0")


def archive_year(state: CoopState, year: int, today: date) -> YearlyArchive:
    """
    Move one calendar year's records out of the live dataset into an archive.

    Periods are matched by date, loans by issue date, repayments, penalties,
    share changes and distributions by their own date. The archive's ending
    balance becomes the new beginning balance.
    """
    collections = [c for c in state.collections if c.date.year == year]
    loans = [loan for loan in state.loans if loan.date_issued.year == year]
    repayments = [r for r in state.repayments if r.date.year == year]
    penalties = [p for p in state.penalties if p.date.year == year]
    share_history = [h for h in state.share_history if h.date.year == year]
    distributions = [d for d in state.dividend_distributions if d.date.year == year]

    total_collected = sum((c.total_collected for c in collections), ZERO)
    total_disbursed = sum((loan.amount for loan in loans if loan.status == LoanStatus.APPROVED), ZERO)
    total_repayments = sum((r.amount for r in repayments), ZERO)
    total_penalties = sum((p.amount for p in penalties), ZERO)
    ending_balance = state.beginning_balance + total_collected + total_repayments - total_disbursed

    # Members who paid in at least once during the year
    active_members = {p.member_id for c in collections for p in c.payments}

    archive = YearlyArchive(
        year=year,
        archived_date=today,
        summary=ArchiveSummary(
            total_collected=total_collected,
            total_disbursed=total_disbursed,
            total_repayments=total_repayments,
            total_penalties=total_penalties,
            ending_balance=ending_balance,
            active_members=len(active_members),
            total_loans_issued=len(loans),
            total_shares=calculate_total_shares(state.members),
            total_dividends_distributed=calculate_total_dividends_distributed(distributions),
        ),
        collections=collections,
        loans=loans,
        repayments=repayments,
        penalties=penalties,
        share_history=share_history,
        dividend_distributions=distributions,
    )

    state.archives.append(archive)
    state.collections = [c for c in state.collections if c.date.year != year]
    state.loans = [loan for loan in state.loans if loan.date_issued.year != year]
    state.repayments = [r for r in state.repayments if r.date.year != year]
    state.penalties = [p for p in state.penalties if p.date.year != year]
    state.share_history = [h for h in state.share_history if h.date.year != year]
    state.dividend_distributions = [d for d in state.dividend_distributions if d.date.year != year]
    state.beginning_balance = ending_balance
    remaining = state.sorted_periods()
    state.selected_period = remaining[0].id if remaining else ""

    return archive
