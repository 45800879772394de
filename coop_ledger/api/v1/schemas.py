"""Pydantic schemas for API responses"""

from datetime import date
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Responses are serialized with camelCase keys, matching the stored document"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ActionResponse(CamelModel):
    """Response for POST /v1/actions"""

    current_balance: float
    total_interest_pool: float
    penalties_assessed: int
    state: Dict[str, Any]


class InstallmentSchema(CamelModel):
    """Single installment in a loan's repayment plan"""

    number: int
    due_date: date
    amount: float
    status: str = "pending"


class ScheduleResponse(CamelModel):
    """Response for GET /v1/loans/{loan_id}/schedule"""

    loan_id: str
    member_id: int
    status: str
    repayment_plan: Optional[str] = None
    total_due: float
    installment_amount: float
    total_repaid: float
    installments: List[InstallmentSchema]


class LedgerEntrySchema(CamelModel):
    period_id: str
    period_date: date
    opening_balance: float
    collections: float
    disbursements: float
    repayments: float
    penalties: float
    closing_balance: float


class LedgerTotalsSchema(CamelModel):
    collections: float
    disbursements: float
    repayments: float
    penalties: float


class FinancialSummarySchema(CamelModel):
    beginning_balance: float
    total_collected: float
    total_disbursed: float
    total_repayments: float
    total_penalties: float
    current_balance: float
    total_members: int
    total_periods: int
    total_loans: int
    active_loans: int
    paid_loans: int


class LedgerResponse(CamelModel):
    """Response for GET /v1/ledger"""

    user_id: str
    entries: List[LedgerEntrySchema]
    totals: LedgerTotalsSchema
    summary: FinancialSummarySchema


class ComplianceItem(CamelModel):
    """One member's payment against their share commitment"""

    member_id: int
    name: str
    expected: float
    actual: float
    difference: float
    is_compliant: bool


class ComplianceResponse(CamelModel):
    """Response for GET /v1/periods/{period_id}/compliance"""

    period_id: str
    share_price: float
    members: List[ComplianceItem]
