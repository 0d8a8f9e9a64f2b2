"""Command-line interface for previewing rule selection and approval flows."""

from __future__ import annotations

import argparse
import json
import sys
from decimal import Decimal, InvalidOperation
from pathlib import Path

import yaml

from .config import load_settings
from .exceptions import ExpenseWorkflowError
from .flow import build_flow
from .logging_config import configure_logging
from .models import User
from .repository import RuleRepository
from .selector import select_rule


def _amount(value: str) -> Decimal:
    try:
        amount = Decimal(value)
    except InvalidOperation as exc:
        raise argparse.ArgumentTypeError(f"Invalid amount: {value}") from exc
    if not amount.is_finite():
        raise argparse.ArgumentTypeError(f"Invalid amount: {value}")
    return amount


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="expense-flow",
        description=(
            "Show which approval rule applies to an expense and the approval flow it produces."
        ),
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    select_parser = subparsers.add_parser("select", help="Print the applicable rule.")
    preview_parser = subparsers.add_parser("preview", help="Print the approval flow.")
    for subparser in (select_parser, preview_parser):
        subparser.add_argument("rules_yaml", type=Path, help="Path to approval rules YAML.")
        subparser.add_argument("--company", required=True, help="Company identifier.")
        subparser.add_argument("--amount", required=True, type=_amount, help="Expense amount.")

    preview_parser.add_argument("--employee", required=True, help="Submitting employee id.")
    preview_parser.add_argument("--manager", default=None, help="Employee's manager id.")
    return parser


def _load_rules(path: Path) -> RuleRepository:
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        msg = f"Rules file not found: {path}"
        raise FileNotFoundError(msg) from exc
    except OSError as exc:
        msg = f"Unable to read rules file: {path}"
        raise OSError(msg) from exc
    return RuleRepository.from_yaml(content)


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    try:
        configure_logging(level=load_settings().log_level)
    except (yaml.YAMLError, ValueError, OSError) as exc:
        print(f"Error: Invalid settings: {exc}", file=sys.stderr)
        return 1

    try:
        repository = _load_rules(args.rules_yaml)
        rules = repository.load_active_rules(args.company, args.amount)
        rule = select_rule(rules, args.company, args.amount)
        if args.command == "select":
            payload: object = rule.model_dump(mode="json") if rule is not None else None
        else:
            employee = User(
                user_id=args.employee,
                company_id=args.company,
                manager_id=args.manager,
            )
            plan = build_flow(rule, employee)
            payload = {
                "rule": rule.name if rule is not None else None,
                "initial_step": plan.initial_step,
                "steps": [step.model_dump(mode="json") for step in plan.steps],
            }
    except yaml.YAMLError as exc:
        print(f"Error: Invalid YAML in rules file: {exc}", file=sys.stderr)
        return 1
    except ExpenseWorkflowError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except FileNotFoundError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except OSError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(json.dumps(payload, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
