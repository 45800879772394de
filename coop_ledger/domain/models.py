"""Domain models - pure Python dataclasses representing cooperative records"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, NamedTuple, Optional


class LoanStatus(str, Enum):
    """Loan lifecycle states"""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    PAID = "PAID"


class RepaymentPlan(str, Enum):
    """MONTHLY is a single balloon payment, CUT_OFF pays on every 10th/25th"""

    MONTHLY = "MONTHLY"
    CUT_OFF = "CUT_OFF"


# Statuses whose interest counts toward the dividend pool
EARNING_STATUSES = frozenset({LoanStatus.APPROVED, LoanStatus.PAID})


@dataclass
class Member:
    """Cooperative member with an admin-assigned share commitment"""

    id: int
    name: str
    committed_shares: Decimal = Decimal("0")
    forfeited: bool = False
    forfeiture_date: Optional[date] = None
    forfeited_interest: Optional[Decimal] = None


@dataclass
class Payment:
    """A member's contribution within one collection period"""

    member_id: int
    amount: Decimal
    date: date
    collection_period: str


@dataclass
class CollectionPeriod:
    """Scheduled collection date; total_collected always equals the sum of payments"""

    id: str
    date: date
    total_collected: Decimal = Decimal("0")
    payments: List[Payment] = field(default_factory=list)
    default_contribution: Optional[Decimal] = None


@dataclass
class Loan:
    """Loan issued to a member"""

    id: str
    member_id: int
    amount: Decimal
    date_issued: date
    status: LoanStatus = LoanStatus.PENDING
    date_approved: Optional[date] = None
    disbursement_period_id: Optional[str] = None
    repayment_plan: Optional[RepaymentPlan] = None
    interest_rate: Optional[Decimal] = None
    date_closed: Optional[date] = None
    term_count: Optional[int] = None
    penalty_rate: Optional[Decimal] = None


@dataclass
class Repayment:
    """Money paid back against a loan"""

    id: str
    loan_id: str
    member_id: int
    amount: Decimal
    date: date
    period_id: str


class PenaltyKey(NamedTuple):
    """Identity of an assessed penalty: one per loan and missed installment"""

    loan_id: str
    installment: int


@dataclass
class Penalty:
    """Charge added to a loan, either assessed for a missed installment or entered manually"""

    id: str
    loan_id: str
    amount: Decimal
    date: date
    period_id: str
    reason: Optional[str] = None
    installment: Optional[int] = None  # set for assessed penalties

    @property
    def key(self) -> Optional[PenaltyKey]:
        if self.installment is None:
            return None
        return PenaltyKey(self.loan_id, self.installment)


@dataclass
class MemberDividend:
    """One member's share of a distribution"""

    member_id: int
    shares: Decimal
    dividend_amount: Decimal
    forfeited: bool


@dataclass
class DividendDistribution:
    """Immutable record of one interest-pool payout"""

    id: str
    date: date
    total_interest_pool: Decimal
    total_shares: Decimal
    per_share_dividend: Decimal
    distributions: List[MemberDividend] = field(default_factory=list)
    periods_covered: List[str] = field(default_factory=list)


@dataclass
class ShareHistoryEntry:
    """Administrator change to a member's committed shares"""

    member_id: int
    date: date
    previous_shares: Decimal
    new_shares: Decimal


@dataclass
class ArchiveSummary:
    """Totals for one archived calendar year"""

    total_collected: Decimal
    total_disbursed: Decimal
    total_repayments: Decimal
    total_penalties: Decimal
    ending_balance: Decimal
    active_members: int
    total_loans_issued: int
    total_shares: Decimal = Decimal("0")
    total_dividends_distributed: Decimal = Decimal("0")


@dataclass
class YearlyArchive:
    """Frozen snapshot of one calendar year removed from the live dataset"""

    year: int
    archived_date: date
    summary: ArchiveSummary
    collections: List[CollectionPeriod] = field(default_factory=list)
    loans: List[Loan] = field(default_factory=list)
    repayments: List[Repayment] = field(default_factory=list)
    penalties: List[Penalty] = field(default_factory=list)
    share_history: List[ShareHistoryEntry] = field(default_factory=list)
    dividend_distributions: List[DividendDistribution] = field(default_factory=list)


@dataclass
class CoopState:
    """The whole dataset for one login, held and mutated as a single snapshot"""

    beginning_balance: Decimal = Decimal("0")
    current_balance: Decimal = Decimal("0")
    members: List[Member] = field(default_factory=list)
    collections: List[CollectionPeriod] = field(default_factory=list)
    loans: List[Loan] = field(default_factory=list)
    repayments: List[Repayment] = field(default_factory=list)
    penalties: List[Penalty] = field(default_factory=list)
    selected_period: str = ""
    archives: List[YearlyArchive] = field(default_factory=list)
    share_price: Decimal = Decimal("500")
    total_interest_pool: Decimal = Decimal("0")
    dividend_distributions: List[DividendDistribution] = field(default_factory=list)
    share_history: List[ShareHistoryEntry] = field(default_factory=list)

    def find_member(self, member_id: int) -> Optional[Member]:
        return next((m for m in self.members if m.id == member_id), None)

    def find_loan(self, loan_id: str) -> Optional[Loan]:
        return next((loan for loan in self.loans if loan.id == loan_id), None)

    def find_period(self, period_id: str) -> Optional[CollectionPeriod]:
        return next((p for p in self.collections if p.id == period_id), None)

    def sorted_periods(self) -> List[CollectionPeriod]:
        return sorted(self.collections, key=lambda p: p.date)


@dataclass
class Installment:
    """Single scheduled payment in a loan's repayment plan"""

    number: int
    due_date: date
    amount: Decimal
    status: str = "pending"  # "paid" | "overdue" | "pending"


@dataclass
class PeriodLedgerEntry:
    """Cash movement through one collection period"""

    period_id: str
    period_date: date
    opening_balance: Decimal
    collections: Decimal
    disbursements: Decimal
    repayments: Decimal
    penalties: Decimal
    closing_balance: Decimal


@dataclass
class LedgerTotals:
    """Column totals across period ledger entries"""

    collections: Decimal
    disbursements: Decimal
    repayments: Decimal
    penalties: Decimal


@dataclass
class FinancialSummary:
    """Headline figures for the live dataset"""

    beginning_balance: Decimal
    total_collected: Decimal
    total_disbursed: Decimal
    total_repayments: Decimal
    total_penalties: Decimal
    current_balance: Decimal
    total_members: int
    total_periods: int
    total_loans: int
    active_loans: int
    paid_loans: int


@dataclass
class PaymentCompliance:
    """Member's period payment measured against their share commitment"""

    member_id: int
    expected: Decimal
    actual: Decimal
    difference: Decimal
    is_compliant: bool
