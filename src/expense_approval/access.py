"""Access checks for viewing and acting on expenses."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from .exceptions import AuthorizationError
from .logging_config import get_logger
from .models import Expense, User

logger = get_logger("access")


class AccessPurpose(StrEnum):
    """What an actor is trying to do with an expense."""

    VIEW_RECEIPT = "view_receipt"
    ACT = "act"


@dataclass
class AuditLogEvent:
    """Single audit log entry capturing an access decision."""

    purpose: AccessPurpose
    actor: str
    expense_id: str
    outcome: str
    metadata: dict[str, Any]
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


DEFAULT_AUDIT_LOG_SIZE = 10_000


@dataclass
class AuditLog:
    """In-memory audit log of access decisions.

    Only the most recent ``max_events`` entries are kept; ship them to durable
    storage if a complete trail is needed.
    """

    max_events: int = DEFAULT_AUDIT_LOG_SIZE
    events: deque[AuditLogEvent] = field(init=False)

    def __post_init__(self) -> None:
        if self.max_events < 1:
            raise ValueError("max_events must be at least 1")
        self.events = deque(maxlen=self.max_events)

    def record(
        self,
        purpose: AccessPurpose,
        actor: str,
        expense_id: str,
        outcome: str,
        metadata: dict[str, Any] | None = None,
    ) -> AuditLogEvent:
        """Record a new audit event."""

        event = AuditLogEvent(
            purpose=purpose,
            actor=actor,
            expense_id=expense_id,
            outcome=outcome,
            metadata=metadata or {},
        )
        self.events.append(event)
        return event

    def filter_by_purpose(self, purpose: AccessPurpose) -> list[AuditLogEvent]:
        """Return audit events filtered by purpose."""

        return [event for event in self.events if event.purpose == purpose]


class AccessGuard:
    """Decides who may view a receipt or act on an expense."""

    def __init__(self, audit_log: AuditLog | None = None) -> None:
        self.audit_log = audit_log or AuditLog()

    def can_view_receipt(self, actor: User, expense: Expense) -> bool:
        """Submitter, same-tenant admins, and anyone in the flow may view."""

        is_submitter = actor.user_id == expense.employee_id
        is_tenant_admin = actor.is_admin and actor.company_id == expense.company_id
        in_flow = actor.user_id in expense.approver_ids()

        allowed = is_submitter or is_tenant_admin or in_flow
        self._record(
            AccessPurpose.VIEW_RECEIPT,
            actor,
            expense,
            allowed,
            {
                "submitter": is_submitter,
                "tenant_admin": is_tenant_admin,
                "in_flow": in_flow,
            },
        )
        return allowed

    def can_act(self, actor: User, expense: Expense) -> bool:
        """True when the expense is open and the actor has a step due now."""

        allowed = (
            not expense.is_terminal and expense.pending_step_for(actor.user_id) is not None
        )
        self._record(
            AccessPurpose.ACT,
            actor,
            expense,
            allowed,
            {
                "status": expense.status.value,
                "current_step": expense.current_approval_step,
            },
        )
        return allowed

    def require_receipt_access(self, actor: User, expense: Expense) -> None:
        if not self.can_view_receipt(actor, expense):
            raise AuthorizationError(
                f"User '{actor.user_id}' is not authorized to view the receipt "
                f"of expense '{expense.expense_id}'"
            )

    def require_can_act(self, actor: User, expense: Expense) -> None:
        if expense.is_terminal:
            self._record(AccessPurpose.ACT, actor, expense, False, {"status": expense.status.value})
            raise AuthorizationError(
                f"Expense '{expense.expense_id}' is already {expense.status.value}"
            )
        if not self.can_act(actor, expense):
            raise AuthorizationError(
                f"User '{actor.user_id}' is not authorized to act on expense "
                f"'{expense.expense_id}' at this stage"
            )

    def _record(
        self,
        purpose: AccessPurpose,
        actor: User,
        expense: Expense,
        allowed: bool,
        metadata: dict[str, Any],
    ) -> None:
        outcome = "allowed" if allowed else "denied"
        self.audit_log.record(
            purpose=purpose,
            actor=actor.user_id,
            expense_id=expense.expense_id,
            outcome=outcome,
            metadata=metadata,
        )
        if not allowed:
            logger.warning(
                "access_denied",
                extra={
                    "purpose": purpose.value,
                    "actor_id": actor.user_id,
                    "expense_id": expense.expense_id,
                },
            )
