"""Dividend distribution of the interest pool across committed shares"""

from datetime import date
from decimal import Decimal
from typing import Iterable, List, Sequence
from coop_ledger.domain.models import DividendDistribution, Member, MemberDividend, PaymentCompliance
from coop_ledger.domain.valuation import to_money


def calculate_total_shares(members: Iterable[Member]) -> Decimal:
    """Sum of committed shares, forfeited members included"""
    return sum((m.committed_shares for m in members), Decimal("0"))


def calculate_per_share_dividend(total_interest_pool: Decimal, total_shares: Decimal) -> Decimal:
    if total_shares <= 0:
        return Decimal("0")
    return total_interest_pool / total_shares


def calculate_dividend_distribution(
    total_interest_pool: Decimal,
    members: Sequence[Member],
    on: date,
    periods_covered: List[str],
    distribution_id: str,
) -> DividendDistribution:
    """
    Split the interest pool across members by committed shares.

    - perShareDividend = pool / totalShares (0 when nobody holds shares)
    - Forfeited members keep their shares in the denominator but receive 0,
      so their portion stays undistributed
    - Amounts are rounded to cents

    Example:
        20 members × 10 shares, pool 10,000 → 50 per share, 500 each
    """
    total_shares = calculate_total_shares(members)

    # Nothing to divide by: record an empty distribution
    if total_shares == 0:
        return DividendDistribution(
            id=distribution_id,
            date=on,
            total_interest_pool=Decimal("0"),
            total_shares=Decimal("0"),
            per_share_dividend=Decimal("0"),
            distributions=[],
            periods_covered=list(periods_covered),
        )

    per_share = calculate_per_share_dividend(total_interest_pool, total_shares)

    distributions = [
        MemberDividend(
            member_id=m.id,
            shares=m.committed_shares,
            dividend_amount=Decimal("0") if m.forfeited else to_money(m.committed_shares * per_share),
            forfeited=m.forfeited,
        )
        for m in members
    ]

    return DividendDistribution(
        id=distribution_id,
        date=on,
        total_interest_pool=total_interest_pool,
        total_shares=total_shares,
        per_share_dividend=per_share,
        distributions=distributions,
        periods_covered=list(periods_covered),
    )


def calculate_forfeited_interest(member: Member, per_share_dividend: Decimal) -> Decimal:
    """What the member would have received at the current per-share rate"""
    return to_money(member.committed_shares * per_share_dividend)


def calculate_total_dividends_distributed(distributions: Iterable[DividendDistribution]) -> Decimal:
    return sum(
        (md.dividend_amount for d in distributions for md in d.distributions),
        Decimal("0"),
    )


def calculate_expected_contribution(committed_shares: Decimal, share_price: Decimal) -> Decimal:
    return committed_shares * share_price


def check_payment_compliance(
    member_id: int,
    payment: Decimal,
    committed_shares: Decimal,
    share_price: Decimal,
) -> PaymentCompliance:
    """A payment is compliant when it covers the member's committed shares at the share price"""
    expected = calculate_expected_contribution(committed_shares, share_price)
    return PaymentCompliance(
        member_id=member_id,
        expected=expected,
        actual=payment,
        difference=payment - expected,
        is_compliant=payment >= expected,
    )
