"""Unit tests for dividend distribution and contribution compliance"""

from datetime import date
from decimal import Decimal
from coop_ledger.domain.dividends import (
    calculate_dividend_distribution,
    calculate_forfeited_interest,
    calculate_per_share_dividend,
    calculate_total_dividends_distributed,
    calculate_total_shares,
    check_payment_compliance,
)
from coop_ledger.domain.models import Member

ON = date(2025, 12, 20)


def _members(count: int, shares: str) -> list[Member]:
    return [Member(id=i, name=f"Member {i}", committed_shares=Decimal(shares)) for i in range(1, count + 1)]


def test_even_distribution():
    """Test 20 members × 10 shares over a 10,000 pool: 50 per share, 500 each"""
    members = _members(20, "10")

    result = calculate_dividend_distribution(Decimal("10000"), members, ON, ["2025-01-10"], "d1")

    assert result.total_shares == Decimal("200")
    assert result.per_share_dividend == Decimal("50")
    assert all(md.dividend_amount == Decimal("500.00") for md in result.distributions)
    assert result.periods_covered == ["2025-01-10"]
    assert calculate_total_dividends_distributed([result]) == Decimal("10000.00")


def test_forfeited_member_keeps_shares_in_denominator():
    """Test forfeited members receive nothing and their portion is not redistributed"""
    members = _members(2, "10")
    members[1].forfeited = True

    result = calculate_dividend_distribution(Decimal("1000"), members, ON, [], "d1")

    assert result.total_shares == Decimal("20")
    assert result.distributions[0].dividend_amount == Decimal("500.00")
    assert result.distributions[1].dividend_amount == Decimal("0")
    assert result.distributions[1].forfeited is True


def test_no_shares_records_empty_distribution():
    """Test nothing is paid out when nobody holds shares"""
    result = calculate_dividend_distribution(Decimal("1000"), _members(3, "0"), ON, [], "d1")

    assert result.total_shares == Decimal("0")
    assert result.per_share_dividend == Decimal("0")
    assert result.distributions == []


def test_amounts_round_to_cents():
    """Test uneven splits are rounded to cents"""
    members = _members(3, "1")
    result = calculate_dividend_distribution(Decimal("100"), members, ON, [], "d1")

    assert [md.dividend_amount for md in result.distributions] == [Decimal("33.33")] * 3


def test_per_share_and_total_shares():
    """Test share totals include forfeited members"""
    members = _members(2, "5")
    members[0].forfeited = True

    assert calculate_total_shares(members) == Decimal("10")
    assert calculate_per_share_dividend(Decimal("100"), Decimal("0")) == Decimal("0")


def test_forfeited_interest():
    """Test interest a member gives up at the current per-share rate"""
    member = Member(id=1, name="Member 1", committed_shares=Decimal("4"))
    assert calculate_forfeited_interest(member, Decimal("12.345")) == Decimal("49.38")


def test_payment_compliance():
    """Test payment compared with committed shares × share price"""
    short = check_payment_compliance(1, Decimal("4000"), Decimal("10"), Decimal("500"))
    exact = check_payment_compliance(2, Decimal("5000"), Decimal("10"), Decimal("500"))

    assert short.expected == Decimal("5000")
    assert short.difference == Decimal("-1000")
    assert short.is_compliant is False
    assert exact.is_compliant is True
