"""Tests for loading and editing approval rules."""

from __future__ import annotations

import os
from decimal import Decimal

import pytest

from expense_approval.exceptions import NotFoundError, ValidationError
from expense_approval.models import (
    AllApprovalRule,
    HybridApprovalRule,
    PercentageApprovalRule,
)
from expense_approval.repository import RuleRepository


def test_load_rules_from_file() -> None:
    """RuleRepository should load the default configuration file."""

    repository = RuleRepository.from_file()

    rules = repository.list_for_company("acme")
    assert [rule.rule_id for rule in rules] == [
        "acme-small",
        "acme-travel-panel",
        "acme-executive",
        "acme-retired",
    ]
    assert isinstance(repository.get("acme-executive"), HybridApprovalRule)


def test_load_rules_from_environment() -> None:
    """Approval rules can be loaded from environment variables."""

    os.environ["APPROVAL_RULES"] = """
rules:
  - company_id: env-co
    name: env_default
    approval_type: percentage
    percentage_required: 50
    approvers: [a, b]
"""
    try:
        repository = RuleRepository.from_environment()
    finally:
        os.environ.pop("APPROVAL_RULES", None)

    (rule,) = repository.list_for_company("env-co")
    assert isinstance(rule, PercentageApprovalRule)
    assert rule.rule_id


def test_from_yaml_requires_rules_list() -> None:
    with pytest.raises(ValidationError):
        RuleRepository.from_yaml("rules: []")


def test_from_yaml_reports_invalid_rule() -> None:
    content = """
rules:
  - rule_id: broken
    company_id: acme
    name: Broken hybrid
    approval_type: hybrid
    specific_approver: S
"""
    with pytest.raises(ValidationError) as excinfo:
        RuleRepository.from_yaml(content)

    assert "percentage_required" in str(excinfo.value)


def test_create_and_get() -> None:
    repository = RuleRepository()

    rule = repository.create("acme", {"name": "Managers", "is_manager_default_approver": True})

    assert repository.get(rule.rule_id) == rule
    assert rule.company_id == "acme"


def test_duplicate_rule_id_is_rejected(rule_factory) -> None:
    repository = RuleRepository([rule_factory()])

    with pytest.raises(ValidationError):
        repository.add(rule_factory())


def test_get_missing_rule_raises_not_found() -> None:
    with pytest.raises(NotFoundError) as excinfo:
        RuleRepository().get("missing")

    assert excinfo.value.code == "NOT_FOUND"


def test_update_replaces_snapshot_without_touching_old_one(rule_factory) -> None:
    original = rule_factory(approvers=["B"])
    repository = RuleRepository([original])

    updated = repository.update("rule-1", {"approvers": ["B", "C"], "amount_threshold": 250})

    assert [a.user_id for a in original.approvers] == ["B"]
    assert [a.user_id for a in updated.approvers] == ["B", "C"]
    assert updated.amount_threshold == Decimal("250")
    assert repository.get("rule-1") is updated


def test_update_can_switch_approval_type(rule_factory) -> None:
    repository = RuleRepository(
        [rule_factory(approval_type="percentage", percentage_required=60)]
    )

    as_hybrid = repository.update(
        "rule-1", {"approval_type": "hybrid", "specific_approver": "S"}
    )
    assert isinstance(as_hybrid, HybridApprovalRule)
    assert as_hybrid.percentage_required == Decimal("60")

    as_all = repository.update("rule-1", {"approval_type": "all"})
    assert isinstance(as_all, AllApprovalRule)


def test_update_validates_changes(rule_factory) -> None:
    repository = RuleRepository([rule_factory()])

    with pytest.raises(ValidationError):
        repository.update("rule-1", {"approval_type": "percentage"})
    assert isinstance(repository.get("rule-1"), AllApprovalRule)


def test_deactivate_and_delete(rule_factory) -> None:
    repository = RuleRepository([rule_factory()])

    assert repository.deactivate("rule-1").is_active is False
    assert repository.load_active_rules("acme", Decimal("1000")) == []

    repository.delete("rule-1")
    with pytest.raises(NotFoundError):
        repository.delete("rule-1")


def test_load_active_rules_filters_threshold_and_tenant(rule_factory) -> None:
    repository = RuleRepository(
        [
            rule_factory(rule_id="low", amount_threshold=0),
            rule_factory(rule_id="high", amount_threshold=5000),
            rule_factory(rule_id="other", company_id="globex"),
        ]
    )

    active = repository.load_active_rules("acme", Decimal("1000"))

    assert [rule.rule_id for rule in active] == ["low"]
