"""Tenant-scoped storage for approval rule snapshots."""

from __future__ import annotations

import os
import threading
from collections.abc import Iterable
from decimal import Decimal
from pathlib import Path
from typing import Any
from uuid import uuid4

import yaml

from .exceptions import NotFoundError, ValidationError
from .models import ApprovalRule, ApprovalType, parse_rule


_VARIANT_FIELDS: dict[str, set[str]] = {
    ApprovalType.ALL.value: set(),
    ApprovalType.PERCENTAGE.value: {"percentage_required"},
    ApprovalType.SPECIFIC.value: {"specific_approver"},
    ApprovalType.HYBRID.value: {"percentage_required", "specific_approver"},
}


def _default_rules_path() -> Path | None:
    """Return the default approval rules configuration path if present."""

    for parent in Path(__file__).resolve().parents:
        candidate = parent / "config" / "approval_rules.yaml"
        if candidate.exists():
            return candidate
    return None


class RuleRepository:
    """In-memory rule store keyed by rule id.

    Rules are immutable snapshots. ``update`` replaces the stored snapshot
    with a new one, so expenses that embedded the previous snapshot are not
    affected by the edit.
    """

    def __init__(self, rules: Iterable[ApprovalRule] = ()) -> None:
        self._rules: dict[str, ApprovalRule] = {}
        self._lock = threading.Lock()
        for rule in rules:
            self.add(rule)

    @classmethod
    def from_yaml(cls, content: str) -> RuleRepository:
        """Load approval rules from YAML content with a top-level ``rules`` list."""

        data = yaml.safe_load(content) or {}
        raw_rules = data.get("rules") if isinstance(data, dict) else None
        if not raw_rules:
            raise ValidationError(
                "Approval rules configuration must include a 'rules' list"
            )
        rules = []
        for raw in raw_rules:
            payload = dict(raw)
            payload.setdefault("rule_id", uuid4().hex)
            rules.append(parse_rule(payload))
        return cls(rules)

    @classmethod
    def from_file(cls, path: str | Path | None = None) -> RuleRepository:
        """Load approval rules from a YAML file."""

        target_path = Path(path) if path is not None else _default_rules_path()
        if target_path is None:
            raise FileNotFoundError("No approval rules file found")
        return cls.from_yaml(target_path.read_text(encoding="utf-8"))

    @classmethod
    def from_environment(cls, env_var: str = "APPROVAL_RULES") -> RuleRepository:
        """Load approval rules from an environment variable containing YAML."""

        content = os.getenv(env_var)
        if not content:
            raise ValueError(f"Environment variable '{env_var}' is not set or empty")
        return cls.from_yaml(content)

    def add(self, rule: ApprovalRule) -> ApprovalRule:
        with self._lock:
            if rule.rule_id in self._rules:
                raise ValidationError(f"Approval rule '{rule.rule_id}' already exists")
            self._rules[rule.rule_id] = rule
        return rule

    def create(self, company_id: str, data: dict[str, Any]) -> ApprovalRule:
        """Validate a raw rule definition for a company and store it."""

        payload = dict(data)
        payload["company_id"] = company_id
        payload.setdefault("rule_id", uuid4().hex)
        return self.add(parse_rule(payload))

    def get(self, rule_id: str) -> ApprovalRule:
        try:
            return self._rules[rule_id]
        except KeyError:
            raise NotFoundError("Approval rule", rule_id) from None

    def update(self, rule_id: str, changes: dict[str, Any]) -> ApprovalRule:
        """Replace a rule with a revalidated snapshot carrying ``changes``."""

        with self._lock:
            current = self.get(rule_id)
            payload = current.model_dump()
            payload.update(changes)
            payload["rule_id"] = current.rule_id
            payload["company_id"] = current.company_id
            approval_type = payload.get("approval_type")
            if isinstance(approval_type, ApprovalType):
                approval_type = approval_type.value
            kept = _VARIANT_FIELDS.get(str(approval_type), set())
            for field_name in set().union(*_VARIANT_FIELDS.values()) - kept:
                payload.pop(field_name, None)
            updated = parse_rule(payload)
            self._rules[rule_id] = updated
        return updated

    def deactivate(self, rule_id: str) -> ApprovalRule:
        return self.update(rule_id, {"is_active": False})

    def delete(self, rule_id: str) -> None:
        with self._lock:
            if self._rules.pop(rule_id, None) is None:
                raise NotFoundError("Approval rule", rule_id)

    def list_for_company(self, company_id: str) -> list[ApprovalRule]:
        """Return all of a company's rules ordered by ascending threshold."""

        return sorted(
            (rule for rule in self._rules.values() if rule.company_id == company_id),
            key=lambda rule: (rule.amount_threshold, rule.created_at, rule.name),
        )

    def load_active_rules(
        self, company_id: str, max_threshold: Decimal
    ) -> list[ApprovalRule]:
        """Return active company rules whose threshold does not exceed ``max_threshold``."""

        return [
            rule
            for rule in self.list_for_company(company_id)
            if rule.is_active and rule.amount_threshold <= max_threshold
        ]
