"""Core models for approval rules, expenses, and their approval flows."""

from __future__ import annotations

from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

from .exceptions import ValidationError


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ExpenseStatus(str, Enum):
    """Overall status of an expense."""

    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class StepStatus(str, Enum):
    """Status of a single approval step."""

    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class ApprovalType(str, Enum):
    """How a rule decides that an expense is approved."""

    ALL = "all"
    PERCENTAGE = "percentage"
    SPECIFIC = "specific"
    HYBRID = "hybrid"


class ApprovalAction(str, Enum):
    """Action an approver takes on their step."""

    APPROVE = "approve"
    REJECT = "reject"


class UserRole(str, Enum):
    """Roles known to the user directory."""

    ADMIN = "Admin"
    MANAGER = "Manager"
    EMPLOYEE = "Employee"


class ExpenseCategory(str, Enum):
    """Categories an expense can be filed under."""

    TRAVEL = "Travel"
    FOOD = "Food"
    ACCOMMODATION = "Accommodation"
    TRANSPORT = "Transport"
    OFFICE_SUPPLIES = "Office Supplies"
    OTHER = "Other"


class User(BaseModel):
    """User record as returned by the user directory."""

    user_id: str = Field(..., description="Unique user identifier")
    company_id: str = Field(..., description="Tenant the user belongs to")
    role: UserRole = Field(default=UserRole.EMPLOYEE, description="Directory role")
    manager_id: str | None = Field(
        default=None, description="Direct manager, used when building approval flows"
    )
    name: str | None = Field(default=None, description="Display name")
    email: str | None = Field(default=None, description="Contact email")
    currency: str | None = Field(
        default=None, description="Preferred currency for reviewing expense amounts"
    )

    model_config = ConfigDict(frozen=True)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class RuleApprover(BaseModel):
    """Designated approver configured on a rule."""

    user_id: str = Field(..., description="Approving user")
    sequence: int = Field(
        default=1,
        ge=1,
        description="Configured position; flow sequences are assigned when the flow is built",
    )

    model_config = ConfigDict(frozen=True)


class _RuleBase(BaseModel):
    """Fields shared by every approval rule variant."""

    rule_id: str = Field(..., description="Unique rule identifier")
    company_id: str = Field(..., description="Tenant that owns the rule")
    name: str = Field(..., min_length=1, description="Human-readable rule label")
    amount_threshold: Annotated[Decimal, Field(ge=0)] = Field(
        default=Decimal("0"),
        description="Rule applies to expenses with amount at or above this value",
    )
    is_sequential: bool = Field(
        default=False, description="Ordered steps when true, parallel steps otherwise"
    )
    is_manager_default_approver: bool = Field(
        default=False, description="Insert the submitter's manager as the first step"
    )
    approvers: tuple[RuleApprover, ...] = Field(
        default_factory=tuple, description="Designated non-manager approvers in order"
    )
    is_active: bool = Field(default=True, description="Inactive rules are never selected")
    created_at: datetime = Field(
        default_factory=_utcnow, description="When the rule snapshot was created"
    )

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("approvers", mode="before")
    @classmethod
    def _coerce_approvers(cls, value: object) -> object:
        # Plain user ids are accepted as shorthand in YAML configuration.
        if isinstance(value, (list, tuple)):
            return tuple(
                {"user_id": item, "sequence": index}
                if isinstance(item, str)
                else item
                for index, item in enumerate(value, start=1)
            )
        return value

    @property
    def specific_approver_id(self) -> str | None:
        """User whose approval short-circuits the flow, if the rule has one."""

        return None

    @property
    def percentage_threshold(self) -> Decimal | None:
        """Percentage of approved steps required, if the rule uses one."""

        return None

    def is_override_approver(self, user_id: str) -> bool:
        specific = self.specific_approver_id
        return specific is not None and specific == user_id


class AllApprovalRule(_RuleBase):
    """Every step must be approved."""

    approval_type: Literal["all"] = "all"


class PercentageApprovalRule(_RuleBase):
    """Approve once enough of the flow has approved."""

    approval_type: Literal["percentage"] = "percentage"
    percentage_required: Annotated[Decimal, Field(ge=0, le=100)] = Field(
        ..., description="Required share of approved steps, 0-100"
    )

    @property
    def percentage_threshold(self) -> Decimal | None:
        return self.percentage_required


class SpecificApprovalRule(_RuleBase):
    """Approve as soon as the specific approver approves."""

    approval_type: Literal["specific"] = "specific"
    specific_approver: str = Field(..., min_length=1, description="Override approver")

    @property
    def specific_approver_id(self) -> str | None:
        return self.specific_approver


class HybridApprovalRule(_RuleBase):
    """Approve on the specific approver or the percentage, whichever comes first."""

    approval_type: Literal["hybrid"] = "hybrid"
    percentage_required: Annotated[Decimal, Field(ge=0, le=100)] = Field(
        ..., description="Required share of approved steps, 0-100"
    )
    specific_approver: str = Field(..., min_length=1, description="Override approver")

    @property
    def specific_approver_id(self) -> str | None:
        return self.specific_approver

    @property
    def percentage_threshold(self) -> Decimal | None:
        return self.percentage_required


ApprovalRule = Annotated[
    Union[
        AllApprovalRule,
        PercentageApprovalRule,
        SpecificApprovalRule,
        HybridApprovalRule,
    ],
    Field(discriminator="approval_type"),
]

_RULE_ADAPTER: TypeAdapter[ApprovalRule] = TypeAdapter(ApprovalRule)


def parse_rule(data: dict[str, Any]) -> ApprovalRule:
    """Validate a raw rule mapping into the variant named by ``approval_type``."""

    payload = dict(data)
    approval_type = payload.get("approval_type") or ApprovalType.ALL
    if isinstance(approval_type, ApprovalType):
        approval_type = approval_type.value
    payload["approval_type"] = approval_type
    try:
        return _RULE_ADAPTER.validate_python(payload)
    except PydanticValidationError as exc:
        problems = "; ".join(_describe_error(error) for error in exc.errors())
        name = payload.get("name", "<unnamed>")
        msg = f"Invalid {approval_type} approval rule '{name}': {problems}"
        raise ValidationError(msg) from exc


def _describe_error(error: Any) -> str:
    # The first location entry is the union tag; the rest is the field path.
    field_path = ".".join(str(part) for part in error["loc"][1:])
    if not field_path:
        return str(error["msg"])
    return f"{field_path}: {error['msg']}"


class ReceiptRef(BaseModel):
    """Reference to a receipt held by external storage."""

    reference: str = Field(..., min_length=1, description="Storage key of the receipt")
    content_type: str = Field(..., description="MIME type of the stored receipt")

    model_config = ConfigDict(frozen=True)


class ApprovalStep(BaseModel):
    """A single approver's slot in an expense's approval flow."""

    approver_id: str = Field(..., description="User who must act on this step")
    sequence: int = Field(..., ge=1, description="Group number; equal values run in parallel")
    status: StepStatus = Field(default=StepStatus.PENDING, description="Step outcome")
    comments: str | None = Field(default=None, description="Approver comments")
    action_date: datetime | None = Field(default=None, description="When the step was acted on")


class ApprovalEvent(BaseModel):
    """Immutable audit record for a single approval or rejection."""

    actor_id: str = Field(..., description="User who acted")
    action: ApprovalAction = Field(..., description="Action taken")
    sequence: int = Field(..., description="Sequence of the step acted on")
    comments: str | None = Field(default=None, description="Comments supplied with the action")
    timestamp: datetime = Field(..., description="When the action was recorded")
    previous_status: ExpenseStatus = Field(..., description="Expense status before the action")
    new_status: ExpenseStatus = Field(..., description="Expense status after the action")

    model_config = ConfigDict(frozen=True)


class Expense(BaseModel):
    """An expense and the approval flow materialized for it at submission."""

    expense_id: str = Field(..., description="Unique expense identifier")
    employee_id: str = Field(..., description="Submitting user")
    company_id: str = Field(..., description="Tenant the expense belongs to")
    amount: Annotated[Decimal, Field(gt=0)] = Field(..., description="Amount spent")
    currency: str = Field(..., min_length=3, max_length=3, description="ISO currency code")
    category: ExpenseCategory = Field(..., description="Expense category")
    description: str = Field(..., min_length=1, description="What the expense was for")
    expense_date: date = Field(..., description="Date the expense was incurred")
    receipt: ReceiptRef | None = Field(default=None, description="Attached receipt, if any")
    status: ExpenseStatus = Field(default=ExpenseStatus.PENDING, description="Overall status")
    approval_flow: list[ApprovalStep] = Field(
        default_factory=list, description="Materialized approval steps"
    )
    current_approval_step: int = Field(
        default=0, ge=0, description="Active sequence number; 0 when there is no flow"
    )
    applied_rule: ApprovalRule | None = Field(
        default=None, description="Snapshot of the rule used to build the flow"
    )
    version: int = Field(default=0, ge=0, description="Optimistic concurrency token")
    created_at: datetime = Field(default_factory=_utcnow, description="Submission time")
    updated_at: datetime = Field(default_factory=_utcnow, description="Last modification time")
    history: tuple[ApprovalEvent, ...] = Field(
        default_factory=tuple, description="Append-only log of approval actions"
    )

    @field_validator("currency")
    @classmethod
    def _normalize_currency(cls, value: str) -> str:
        return value.upper()

    @property
    def is_terminal(self) -> bool:
        return self.status != ExpenseStatus.PENDING

    def steps_at(self, sequence: int) -> list[ApprovalStep]:
        """Return the steps sharing a sequence number."""

        return [step for step in self.approval_flow if step.sequence == sequence]

    def pending_step_for(self, user_id: str) -> ApprovalStep | None:
        """Return the user's Pending step at the current sequence, if any."""

        for step in self.steps_at(self.current_approval_step):
            if step.approver_id == user_id and step.status == StepStatus.PENDING:
                return step
        return None

    def approver_ids(self) -> set[str]:
        return {step.approver_id for step in self.approval_flow}
