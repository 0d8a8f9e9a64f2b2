"""Selection of the approval rule that governs a new expense."""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from .models import ApprovalRule


def _specificity(rule: ApprovalRule) -> tuple[object, ...]:
    # Highest threshold first; ties go to the oldest rule, then by name and id.
    return (-rule.amount_threshold, rule.created_at, rule.name, rule.rule_id)


def select_rule(
    rules: Iterable[ApprovalRule], company_id: str, amount: Decimal
) -> ApprovalRule | None:
    """Return the most specific active rule for the company and amount.

    A rule qualifies when it is active, belongs to ``company_id``, and its
    ``amount_threshold`` is at or below ``amount``. The qualifying rule with
    the largest threshold wins. ``None`` is returned when nothing qualifies.
    """

    candidates = [
        rule
        for rule in rules
        if rule.company_id == company_id
        and rule.is_active
        and rule.amount_threshold <= amount
    ]
    if not candidates:
        return None
    return min(candidates, key=_specificity)
