"""Tests for receipt visibility and action authorization."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from expense_approval.access import AccessGuard, AccessPurpose, AuditLog
from expense_approval.exceptions import AuthorizationError
from expense_approval.models import (
    ApprovalStep,
    Expense,
    ExpenseStatus,
    ReceiptRef,
    User,
    UserRole,
)

SUBMITTER = User(user_id="emp", company_id="acme", manager_id="mgr")
MANAGER = User(user_id="mgr", company_id="acme", role=UserRole.MANAGER)
LATER_APPROVER = User(user_id="B", company_id="acme", role=UserRole.MANAGER)
ADMIN = User(user_id="admin", company_id="acme", role=UserRole.ADMIN)
FOREIGN_ADMIN = User(user_id="other-admin", company_id="globex", role=UserRole.ADMIN)
OUTSIDER = User(user_id="outsider", company_id="acme")


@pytest.fixture()
def expense() -> Expense:
    return Expense(
        expense_id="exp-9",
        employee_id="emp",
        company_id="acme",
        amount=Decimal("88.40"),
        currency="USD",
        category="Food",
        description="Team dinner",
        expense_date=date(2025, 4, 2),
        receipt=ReceiptRef(reference="receipts/exp-9.pdf", content_type="application/pdf"),
        approval_flow=[
            ApprovalStep(approver_id="mgr", sequence=1),
            ApprovalStep(approver_id="B", sequence=2),
        ],
        current_approval_step=1,
    )


@pytest.mark.parametrize(
    ("actor", "allowed"),
    [
        (SUBMITTER, True),
        (MANAGER, True),
        (LATER_APPROVER, True),
        (ADMIN, True),
        (FOREIGN_ADMIN, False),
        (OUTSIDER, False),
    ],
)
def test_receipt_visibility(expense: Expense, actor: User, allowed: bool) -> None:
    guard = AccessGuard()

    assert guard.can_view_receipt(actor, expense) is allowed


def test_denied_receipt_access_raises_and_is_audited(expense: Expense) -> None:
    audit_log = AuditLog()
    guard = AccessGuard(audit_log)

    with pytest.raises(AuthorizationError) as excinfo:
        guard.require_receipt_access(FOREIGN_ADMIN, expense)

    assert excinfo.value.code == "NOT_AUTHORIZED"
    (event,) = audit_log.filter_by_purpose(AccessPurpose.VIEW_RECEIPT)
    assert (event.actor, event.expense_id, event.outcome) == ("other-admin", "exp-9", "denied")
    assert event.metadata["tenant_admin"] is False


def test_only_current_step_holder_can_act(expense: Expense) -> None:
    audit_log = AuditLog()
    guard = AccessGuard(audit_log)

    assert guard.can_act(MANAGER, expense)
    assert not guard.can_act(LATER_APPROVER, expense)
    assert not guard.can_act(ADMIN, expense)

    outcomes = [event.outcome for event in audit_log.filter_by_purpose(AccessPurpose.ACT)]
    assert outcomes == ["allowed", "denied", "denied"]


def test_require_can_act_rejects_terminal_expense(expense: Expense) -> None:
    expense.status = ExpenseStatus.APPROVED
    guard = AccessGuard()

    with pytest.raises(AuthorizationError) as excinfo:
        guard.require_can_act(MANAGER, expense)

    assert "already Approved" in str(excinfo.value)


def test_require_can_act_rejects_out_of_turn_approver(expense: Expense) -> None:
    with pytest.raises(AuthorizationError):
        AccessGuard().require_can_act(LATER_APPROVER, expense)


def test_audit_log_keeps_only_recent_events(expense: Expense) -> None:
    audit_log = AuditLog(max_events=2)
    guard = AccessGuard(audit_log)

    guard.can_view_receipt(SUBMITTER, expense)
    guard.can_view_receipt(OUTSIDER, expense)
    guard.can_act(MANAGER, expense)

    assert [event.actor for event in audit_log.events] == ["outsider", "mgr"]
    assert len(audit_log.filter_by_purpose(AccessPurpose.VIEW_RECEIPT)) == 1


def test_audit_log_size_must_be_positive() -> None:
    with pytest.raises(ValueError):
        AuditLog(max_events=0)
