"""State machine that applies approval actions to an expense's flow."""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal

from .exceptions import AuthorizationError
from .logging_config import get_logger
from .models import (
    ApprovalAction,
    ApprovalEvent,
    ApprovalRule,
    Expense,
    ExpenseStatus,
    StepStatus,
)

logger = get_logger("evaluator")


def record_action(
    expense: Expense,
    rule: ApprovalRule | None,
    acting_user_id: str,
    action: ApprovalAction | str,
    comments: str | None = None,
    *,
    now: datetime | None = None,
) -> Expense:
    """Apply one approve/reject action and return the updated expense.

    The acting user must hold a Pending step at the expense's current
    sequence. The input expense is never modified; callers persist the
    returned copy. ``AuthorizationError`` is raised, with nothing changed,
    when the expense is already terminal or the user has no such step.
    """

    action = ApprovalAction(action)
    if expense.is_terminal:
        raise AuthorizationError(
            f"Expense '{expense.expense_id}' is already {expense.status.value}"
        )

    updated = expense.model_copy(deep=True)
    step = updated.pending_step_for(acting_user_id)
    if step is None:
        logger.warning(
            "approval_action_denied",
            extra={
                "expense_id": expense.expense_id,
                "actor_id": acting_user_id,
                "current_step": expense.current_approval_step,
            },
        )
        raise AuthorizationError(
            f"User '{acting_user_id}' has no pending step at sequence "
            f"{expense.current_approval_step} of expense '{expense.expense_id}'"
        )

    timestamp = now or datetime.now(UTC)
    step.status = (
        StepStatus.APPROVED if action == ApprovalAction.APPROVE else StepStatus.REJECTED
    )
    step.comments = comments
    step.action_date = timestamp

    previous_status = updated.status
    if action == ApprovalAction.REJECT:
        updated.status = ExpenseStatus.REJECTED
    else:
        _apply_approval(updated, rule, acting_user_id)

    updated.history = (
        *updated.history,
        ApprovalEvent(
            actor_id=acting_user_id,
            action=action,
            sequence=step.sequence,
            comments=comments,
            timestamp=timestamp,
            previous_status=previous_status,
            new_status=updated.status,
        ),
    )
    updated.version += 1
    updated.updated_at = timestamp

    logger.info(
        "approval_action_recorded",
        extra={
            "expense_id": updated.expense_id,
            "actor_id": acting_user_id,
            "action": action.value,
            "status": updated.status.value,
            "current_step": updated.current_approval_step,
        },
    )
    return updated


def _apply_approval(expense: Expense, rule: ApprovalRule | None, acting_user_id: str) -> None:
    if rule is not None and rule.is_override_approver(acting_user_id):
        expense.status = ExpenseStatus.APPROVED
        return

    has_next = bool(expense.steps_at(expense.current_approval_step + 1))
    if has_next and rule is not None and rule.is_sequential:
        expense.current_approval_step += 1
        return

    threshold = rule.percentage_threshold if rule is not None else None
    if threshold is not None:
        if percentage_met(expense, threshold):
            expense.status = ExpenseStatus.APPROVED
        return

    # Parallel steps share one sequence; completion needs every step Approved.
    if all(step.status == StepStatus.APPROVED for step in expense.approval_flow):
        expense.status = ExpenseStatus.APPROVED


def percentage_met(expense: Expense, required: Decimal) -> bool:
    """Return True when approved steps reach ``required`` percent of the flow.

    Compared as ``approved * 100 >= required * total`` to avoid rounding.
    """

    total = len(expense.approval_flow)
    if total == 0:
        return False
    approved = sum(1 for step in expense.approval_flow if step.status == StepStatus.APPROVED)
    return approved * 100 >= required * total
