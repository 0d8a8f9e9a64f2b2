"""Materialization of approval flows for newly submitted expenses."""

from __future__ import annotations

from dataclasses import dataclass

from .models import ApprovalRule, ApprovalStep, User


@dataclass(frozen=True)
class FlowPlan:
    """Steps required for an expense and the sequence that is active first."""

    steps: tuple[ApprovalStep, ...]
    initial_step: int

    @property
    def is_empty(self) -> bool:
        return not self.steps


def build_flow(rule: ApprovalRule | None, employee: User) -> FlowPlan:
    """Build the approval steps for an expense submitted by ``employee``.

    Without a rule the employee's manager approves alone. With a rule the
    manager optionally goes first, followed by the rule's approvers in their
    configured order. Sequential rules number each step consecutively;
    parallel rules put every step on the same sequence. An employee with
    neither a rule nor a manager gets an empty flow, which leaves the expense
    Pending until someone intervenes outside the workflow.
    """

    steps: list[ApprovalStep] = []

    if rule is None:
        if employee.manager_id:
            steps.append(ApprovalStep(approver_id=employee.manager_id, sequence=1))
        return FlowPlan(steps=tuple(steps), initial_step=1 if steps else 0)

    sequence = 1
    if rule.is_manager_default_approver and employee.manager_id:
        steps.append(ApprovalStep(approver_id=employee.manager_id, sequence=sequence))
        if rule.is_sequential:
            sequence += 1

    for approver in rule.approvers:
        steps.append(ApprovalStep(approver_id=approver.user_id, sequence=sequence))
        if rule.is_sequential:
            sequence += 1

    return FlowPlan(steps=tuple(steps), initial_step=1 if steps else 0)
