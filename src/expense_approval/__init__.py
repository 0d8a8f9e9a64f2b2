"""Expense Approval - Multi-step approval workflow engine for expense reports."""

from .access import AccessGuard, AccessPurpose, AuditLog
from .config import Settings, load_settings
from .currency import CurrencyConverter
from .directory import UserDirectory
from .evaluator import percentage_met, record_action
from .exceptions import (
    AuthorizationError,
    ConflictError,
    ExpenseWorkflowError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)
from .flow import FlowPlan, build_flow
from .logging_config import configure_logging, get_logger
from .models import (
    AllApprovalRule,
    ApprovalAction,
    ApprovalEvent,
    ApprovalRule,
    ApprovalStep,
    ApprovalType,
    Expense,
    ExpenseCategory,
    ExpenseStatus,
    HybridApprovalRule,
    PercentageApprovalRule,
    ReceiptRef,
    RuleApprover,
    SpecificApprovalRule,
    StepStatus,
    User,
    UserRole,
    parse_rule,
)
from .repository import RuleRepository
from .selector import select_rule
from .service import ExpenseService, PendingApproval
from .store import ExpenseStore

__all__ = [
    "AccessGuard",
    "AccessPurpose",
    "AllApprovalRule",
    "ApprovalAction",
    "ApprovalEvent",
    "ApprovalRule",
    "ApprovalStep",
    "ApprovalType",
    "AuditLog",
    "AuthorizationError",
    "ConflictError",
    "CurrencyConverter",
    "Expense",
    "ExpenseCategory",
    "ExpenseService",
    "ExpenseStatus",
    "ExpenseStore",
    "ExpenseWorkflowError",
    "ExternalServiceError",
    "FlowPlan",
    "HybridApprovalRule",
    "NotFoundError",
    "PendingApproval",
    "PercentageApprovalRule",
    "ReceiptRef",
    "RuleApprover",
    "RuleRepository",
    "Settings",
    "SpecificApprovalRule",
    "StepStatus",
    "User",
    "UserDirectory",
    "UserRole",
    "ValidationError",
    "build_flow",
    "configure_logging",
    "get_logger",
    "load_settings",
    "parse_rule",
    "percentage_met",
    "record_action",
    "select_rule",
    "__version__",
]
__version__ = "0.1.0"
