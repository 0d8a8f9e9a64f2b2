"""Typed errors raised by the expense approval workflow.

Each error carries a stable ``code`` so API layers can map failures without
parsing messages, and also derives from the builtin exception callers would
otherwise expect (``ValueError``, ``LookupError``, ``PermissionError``).
"""

from __future__ import annotations


class ExpenseWorkflowError(Exception):
    """Base class for all workflow errors."""

    code: str = "WORKFLOW_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ExpenseWorkflowError, ValueError):
    """A rule definition or request payload has missing or invalid fields."""

    code = "VALIDATION_FAILED"


class NotFoundError(ExpenseWorkflowError, LookupError):
    """A rule, expense, or user does not exist."""

    code = "NOT_FOUND"

    def __init__(self, kind: str, identifier: str) -> None:
        super().__init__(f"{kind} '{identifier}' not found")
        self.kind = kind
        self.identifier = identifier


class AuthorizationError(ExpenseWorkflowError, PermissionError):
    """The actor is not entitled to act on or view the expense."""

    code = "NOT_AUTHORIZED"


class ConflictError(ExpenseWorkflowError, RuntimeError):
    """A concurrent modification was detected while saving an expense."""

    code = "CONFLICT"

    def __init__(self, expense_id: str, expected: int, actual: int) -> None:
        super().__init__(
            f"Expense '{expense_id}' was modified concurrently "
            f"(expected version {expected}, found {actual}); reload and retry"
        )
        self.expense_id = expense_id
        self.expected_version = expected
        self.actual_version = actual


class ExternalServiceError(ExpenseWorkflowError, RuntimeError):
    """A best-effort external lookup failed."""

    code = "EXTERNAL_SERVICE"
