"""Expense submission and approval operations exposed to API layers."""

from __future__ import annotations

from datetime import date
from decimal import Decimal, InvalidOperation
from uuid import uuid4

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from .access import AccessGuard
from .config import Settings
from .currency import CurrencyConverter
from .directory import UserDirectory
from .evaluator import record_action
from .exceptions import NotFoundError, ValidationError
from .flow import build_flow
from .logging_config import get_logger
from .models import (
    ApprovalAction,
    Expense,
    ExpenseCategory,
    ReceiptRef,
)
from .repository import RuleRepository
from .selector import select_rule
from .store import ExpenseStore

logger = get_logger("service")


class PendingApproval(BaseModel):
    """Expense awaiting an approver, with its amount in the approver's currency."""

    expense: Expense = Field(..., description="Expense awaiting action")
    converted_amount: Decimal = Field(..., description="Amount in the approver's currency")
    approver_currency: str = Field(..., description="Currency of converted_amount")


class ExpenseService:
    """Submit expenses and route approval actions through the workflow."""

    def __init__(
        self,
        rules: RuleRepository,
        users: UserDirectory,
        *,
        store: ExpenseStore | None = None,
        guard: AccessGuard | None = None,
        converter: CurrencyConverter | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.rules = rules
        self.users = users
        self.store = store or ExpenseStore()
        self.guard = guard or AccessGuard()
        self.converter = converter or CurrencyConverter(
            self.settings.exchange_api_url,
            timeout=self.settings.request_timeout_seconds,
        )

    @classmethod
    def from_settings(cls, settings: Settings, users: UserDirectory) -> ExpenseService:
        """Build a service whose rules come from the configured YAML file."""

        return cls(RuleRepository.from_file(settings.rules_path), users, settings=settings)

    def submit_expense(
        self,
        employee_id: str,
        amount: Decimal | int | float | str,
        currency: str,
        category: ExpenseCategory | str,
        description: str,
        expense_date: date,
        receipt: ReceiptRef | None = None,
    ) -> Expense:
        """Create an expense with its approval flow fully materialized."""

        employee = self.users.get_user(employee_id)
        try:
            normalized_amount = Decimal(str(amount))
        except InvalidOperation as exc:
            raise ValidationError(f"Invalid expense amount {amount!r}") from exc
        if not normalized_amount.is_finite():
            raise ValidationError(f"Invalid expense amount {amount!r}")

        applicable = self.rules.load_active_rules(employee.company_id, normalized_amount)
        rule = select_rule(applicable, employee.company_id, normalized_amount)
        plan = build_flow(rule, employee)

        try:
            expense = Expense(
                expense_id=uuid4().hex,
                employee_id=employee.user_id,
                company_id=employee.company_id,
                amount=normalized_amount,
                currency=currency,
                category=category,
                description=description,
                expense_date=expense_date,
                receipt=receipt,
                approval_flow=list(plan.steps),
                current_approval_step=plan.initial_step,
                applied_rule=rule,
            )
        except PydanticValidationError as exc:
            raise ValidationError(f"Invalid expense submission: {exc}") from exc

        self.store.create(expense)
        logger.info(
            "expense_submitted",
            extra={
                "expense_id": expense.expense_id,
                "employee_id": employee.user_id,
                "rule_id": rule.rule_id if rule is not None else None,
                "steps": len(plan.steps),
            },
        )
        return expense

    def act_on_expense(
        self,
        expense_id: str,
        acting_user_id: str,
        action: ApprovalAction | str,
        comments: str | None = None,
    ) -> Expense:
        """Approve or reject an expense as ``acting_user_id``.

        The update is saved with a compare-and-swap on the version that was
        loaded; a concurrent writer makes this raise ``ConflictError`` and the
        caller should reload and retry.
        """

        try:
            resolved_action = ApprovalAction(action)
        except ValueError as exc:
            raise ValidationError(f"Unsupported approval action {action!r}") from exc

        actor = self.users.get_user(acting_user_id)
        expense = self.store.load(expense_id)
        self.guard.require_can_act(actor, expense)

        updated = record_action(
            expense, expense.applied_rule, actor.user_id, resolved_action, comments
        )
        return self.store.save(updated, expected_version=expense.version)

    def list_pending_for_approver(self, user_id: str) -> list[Expense]:
        """Expenses where the user holds a Pending step at the current sequence."""

        pending = self.store.find(
            lambda expense: not expense.is_terminal
            and expense.pending_step_for(user_id) is not None
        )
        return sorted(pending, key=lambda expense: expense.created_at, reverse=True)

    def pending_approvals(self, user_id: str) -> list[PendingApproval]:
        """Pending expenses for the user with amounts in their preferred currency."""

        approver = self.users.get_user(user_id)
        target_currency = approver.currency or self.settings.default_currency
        return [
            PendingApproval(
                expense=expense,
                converted_amount=self.converter.convert(
                    expense.amount, expense.currency, target_currency
                ),
                approver_currency=target_currency,
            )
            for expense in self.list_pending_for_approver(user_id)
        ]

    def get_expense(self, expense_id: str) -> Expense:
        return self.store.load(expense_id)

    def list_expenses_for_employee(self, employee_id: str) -> list[Expense]:
        """The employee's own submissions, newest first."""

        own = self.store.find(lambda expense: expense.employee_id == employee_id)
        return sorted(own, key=lambda expense: expense.created_at, reverse=True)

    def get_receipt(self, actor_id: str, expense_id: str) -> ReceiptRef:
        """Return the receipt reference if the actor may view it."""

        actor = self.users.get_user(actor_id)
        expense = self.store.load(expense_id)
        if expense.receipt is None:
            raise NotFoundError("Receipt for expense", expense_id)
        self.guard.require_receipt_access(actor, expense)
        return expense.receipt
