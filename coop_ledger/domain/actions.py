"""State-transition requests - one validated model per action type"""

import datetime
from decimal import Decimal
from typing import Annotated, List, Literal, Optional, Union
from pydantic import AfterValidator, BaseModel, ConfigDict, Field, TypeAdapter, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel
from coop_ledger.domain.exceptions import ValidationError
from coop_ledger.domain.models import LoanStatus, RepaymentPlan
from coop_ledger.domain.valuation import rate_matches_plan, to_money

RATE_PRECISION = Decimal("0.000001")


def _to_rate(value: Decimal) -> Decimal:
    return value.quantize(RATE_PRECISION)


def _to_positive_money(value: Decimal) -> Decimal:
    rounded = to_money(value)
    if rounded <= 0:
        raise ValueError("Amount must be at least 0.01")
    return rounded


# Field types shared across actions
MemberId = Annotated[int, Field(ge=1)]
PositiveAmount = Annotated[Decimal, Field(gt=0, allow_inf_nan=False), AfterValidator(_to_positive_money)]
NonNegativeAmount = Annotated[Decimal, Field(ge=0, allow_inf_nan=False), AfterValidator(to_money)]
Rate = Annotated[Decimal, Field(ge=0, le=1, allow_inf_nan=False), AfterValidator(_to_rate)]
Shares = Annotated[Decimal, Field(ge=0, allow_inf_nan=False)]
RecordId = Annotated[str, Field(min_length=1)]
MemberName = Annotated[str, Field(min_length=1, max_length=100), AfterValidator(str.strip)]


class Action(BaseModel):
    """Base for all actions; accepts camelCase or snake_case keys"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True, extra="forbid")


# Payments


class AddPayment(Action):
    """Record a contribution; falls back to the period's default contribution when amount is omitted"""

    type: Literal["ADD_PAYMENT"] = "ADD_PAYMENT"
    member_id: MemberId
    collection_period: RecordId
    amount: Optional[PositiveAmount] = None
    date: Optional[datetime.date] = None


class UpsertPayment(Action):
    type: Literal["UPSERT_PAYMENT"] = "UPSERT_PAYMENT"
    member_id: MemberId
    collection_period: RecordId
    amount: PositiveAmount
    date: Optional[datetime.date] = None


class RemovePayment(Action):
    type: Literal["REMOVE_PAYMENT"] = "REMOVE_PAYMENT"
    member_id: MemberId
    collection_period: RecordId


# Loans


class AddLoan(Action):
    """New loan; interest rate, when given, must be the plan's fixed rate"""

    type: Literal["ADD_LOAN"] = "ADD_LOAN"
    id: Optional[RecordId] = None
    member_id: MemberId
    amount: PositiveAmount
    date_issued: Optional[datetime.date] = None
    status: LoanStatus = LoanStatus.PENDING
    date_approved: Optional[datetime.date] = None
    disbursement_period_id: Optional[RecordId] = None
    repayment_plan: RepaymentPlan = RepaymentPlan.CUT_OFF
    interest_rate: Optional[Rate] = None
    term_count: Optional[Annotated[int, Field(gt=0)]] = None
    penalty_rate: Optional[Rate] = None

    @model_validator(mode="after")
    def check_rate_matches_plan(self):
        if self.interest_rate is not None and not rate_matches_plan(self.repayment_plan, self.interest_rate):
            raise ValueError("Interest rate must be 4% for MONTHLY or 3% for CUT_OFF plans")
        return self


class UpdateLoan(Action):
    """Partial edit of a loan; omitted fields are left alone"""

    type: Literal["UPDATE_LOAN"] = "UPDATE_LOAN"
    loan_id: RecordId
    member_id: Optional[MemberId] = None
    amount: Optional[PositiveAmount] = None
    date_issued: Optional[datetime.date] = None
    status: Optional[LoanStatus] = None
    repayment_plan: Optional[RepaymentPlan] = None
    interest_rate: Optional[Rate] = None
    term_count: Optional[Annotated[int, Field(gt=0)]] = None
    penalty_rate: Optional[Rate] = None


class UpdateLoanStatus(Action):
    type: Literal["UPDATE_LOAN_STATUS"] = "UPDATE_LOAN_STATUS"
    loan_id: RecordId
    status: LoanStatus
    date_approved: Optional[datetime.date] = None
    disbursement_period_id: Optional[RecordId] = None


class DeleteLoan(Action):
    type: Literal["DELETE_LOAN"] = "DELETE_LOAN"
    loan_id: RecordId


# Repayments and penalties


class AddRepayment(Action):
    type: Literal["ADD_REPAYMENT"] = "ADD_REPAYMENT"
    id: Optional[RecordId] = None
    loan_id: RecordId
    member_id: Optional[MemberId] = None
    amount: PositiveAmount
    date: Optional[datetime.date] = None
    period_id: RecordId


class RemoveRepayment(Action):
    type: Literal["REMOVE_REPAYMENT"] = "REMOVE_REPAYMENT"
    repayment_id: RecordId


class AddPenalty(Action):
    type: Literal["ADD_PENALTY"] = "ADD_PENALTY"
    id: Optional[RecordId] = None
    loan_id: RecordId
    amount: PositiveAmount
    date: Optional[datetime.date] = None
    period_id: RecordId
    reason: Optional[str] = None


class RemovePenalty(Action):
    type: Literal["REMOVE_PENALTY"] = "REMOVE_PENALTY"
    penalty_id: RecordId


# Members and shares


class AddMember(Action):
    type: Literal["ADD_MEMBER"] = "ADD_MEMBER"
    name: MemberName


class UpdateMember(Action):
    type: Literal["UPDATE_MEMBER"] = "UPDATE_MEMBER"
    member_id: MemberId
    name: MemberName


class DeleteMember(Action):
    type: Literal["DELETE_MEMBER"] = "DELETE_MEMBER"
    member_id: MemberId


class UpdateMemberShares(Action):
    type: Literal["UPDATE_MEMBER_SHARES"] = "UPDATE_MEMBER_SHARES"
    member_id: MemberId
    shares: Shares


class ShareUpdate(Action):
    member_id: MemberId
    shares: Shares


class BulkUpdateShares(Action):
    type: Literal["BULK_UPDATE_SHARES"] = "BULK_UPDATE_SHARES"
    updates: List[ShareUpdate]


class UpdateSharePrice(Action):
    type: Literal["UPDATE_SHARE_PRICE"] = "UPDATE_SHARE_PRICE"
    share_price: PositiveAmount


class ForfeitInterest(Action):
    type: Literal["FORFEIT_INTEREST"] = "FORFEIT_INTEREST"
    member_id: MemberId
    date: Optional[datetime.date] = None


class RestoreMemberInterest(Action):
    type: Literal["RESTORE_MEMBER_INTEREST"] = "RESTORE_MEMBER_INTEREST"
    member_id: MemberId


class DistributeDividends(Action):
    type: Literal["DISTRIBUTE_DIVIDENDS"] = "DISTRIBUTE_DIVIDENDS"
    id: Optional[RecordId] = None
    date: Optional[datetime.date] = None


# Collection periods


class AddCollectionPeriod(Action):
    """New period; its id defaults to the date as YYYY-MM-DD"""

    type: Literal["ADD_COLLECTION_PERIOD"] = "ADD_COLLECTION_PERIOD"
    id: Optional[RecordId] = None
    date: datetime.date
    default_contribution: Optional[NonNegativeAmount] = None


class UpdateCollectionPeriod(Action):
    type: Literal["UPDATE_COLLECTION_PERIOD"] = "UPDATE_COLLECTION_PERIOD"
    period_id: RecordId
    date: datetime.date
    default_contribution: Optional[NonNegativeAmount] = None


class DeleteCollectionPeriod(Action):
    type: Literal["DELETE_COLLECTION_PERIOD"] = "DELETE_COLLECTION_PERIOD"
    period_id: RecordId


class UpdatePeriodDefault(Action):
    type: Literal["UPDATE_PERIOD_DEFAULT"] = "UPDATE_PERIOD_DEFAULT"
    period_id: RecordId
    default_contribution: NonNegativeAmount


class SetSelectedPeriod(Action):
    type: Literal["SET_SELECTED_PERIOD"] = "SET_SELECTED_PERIOD"
    period_id: str


class ArchiveYear(Action):
    type: Literal["ARCHIVE_YEAR"] = "ARCHIVE_YEAR"
    year: Annotated[int, Field(ge=2000, le=2100)]


class ResetPeriods(Action):
    type: Literal["RESET_PERIODS"] = "RESET_PERIODS"


CoopAction = Annotated[
    Union[
        AddPayment,
        UpsertPayment,
        RemovePayment,
        AddLoan,
        UpdateLoan,
        UpdateLoanStatus,
        DeleteLoan,
        AddRepayment,
        RemoveRepayment,
        AddPenalty,
        RemovePenalty,
        AddMember,
        UpdateMember,
        DeleteMember,
        UpdateMemberShares,
        BulkUpdateShares,
        UpdateSharePrice,
        ForfeitInterest,
        RestoreMemberInterest,
        DistributeDividends,
        AddCollectionPeriod,
        UpdateCollectionPeriod,
        DeleteCollectionPeriod,
        UpdatePeriodDefault,
        SetSelectedPeriod,
        ArchiveYear,
        ResetPeriods,
    ],
    Field(discriminator="type"),
]

_action_adapter = TypeAdapter(CoopAction)


def format_errors(error: PydanticValidationError) -> str:
    return ", ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in error.errors()
    )


def parse_action(data: dict) -> Action:
    """
    Validate a raw action payload ({"type": "ADD_LOAN", ...}).

    Raises:
        ValidationError: unknown type, missing fields, non-positive amounts,
            malformed dates or a rate that does not match the plan
    """
    try:
        return _action_adapter.validate_python(data)
    except PydanticValidationError as e:
        raise ValidationError(f"Validation failed: {format_errors(e)}") from e
