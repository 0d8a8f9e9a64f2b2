"""Test configuration for adding src to the import path."""

from __future__ import annotations

import sys
from collections.abc import Callable
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any

import pytest

ROOT = Path(__file__).resolve().parents[2]
SRC_PATH = ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from expense_approval import (  # noqa: E402
    ApprovalRule,
    CurrencyConverter,
    Expense,
    ExpenseService,
    RuleRepository,
    User,
    UserDirectory,
    UserRole,
    parse_rule,
)


class FakeResponse:
    def __init__(self, payload: Any = None, error: Exception | None = None) -> None:
        self._payload = payload
        self._error = error

    def raise_for_status(self) -> None:
        if self._error is not None:
            raise self._error

    def json(self) -> Any:
        return self._payload


class FakeSession:
    """Stands in for ``requests.Session`` with canned rate responses."""

    def __init__(self, rates: dict[str, dict[str, float]] | None = None) -> None:
        self.rates = rates or {}
        self.error: Exception | None = None
        self.calls: list[str] = []
        self.canned: tuple[Any] | None = None

    def get(self, url: str, timeout: float | None = None) -> FakeResponse:
        self.calls.append(url)
        if self.error is not None:
            raise self.error
        if self.canned is not None:
            return FakeResponse(self.canned[0])
        base = url.rsplit("/", 1)[-1]
        return FakeResponse({"base": base, "rates": self.rates.get(base, {})})


@pytest.fixture()
def rule_factory() -> Callable[..., ApprovalRule]:
    def _factory(**overrides: object) -> ApprovalRule:
        data: dict[str, object] = {
            "rule_id": "rule-1",
            "company_id": "acme",
            "name": "Default rule",
            "amount_threshold": Decimal("0"),
        }
        data.update(overrides)
        return parse_rule(data)

    return _factory


@pytest.fixture()
def employee() -> User:
    return User(user_id="emp", company_id="acme", manager_id="mgr", currency="EUR")


@pytest.fixture()
def directory() -> UserDirectory:
    users = [
        User(user_id="emp", company_id="acme", manager_id="mgr"),
        User(user_id="emp-solo", company_id="acme"),
        User(user_id="mgr", company_id="acme", role=UserRole.MANAGER, currency="EUR"),
        User(user_id="admin", company_id="acme", role=UserRole.ADMIN),
        User(user_id="other-admin", company_id="globex", role=UserRole.ADMIN),
        User(user_id="outsider", company_id="acme"),
    ]
    users.extend(
        User(user_id=user_id, company_id="acme", role=UserRole.MANAGER)
        for user_id in ("B", "C", "X", "Y", "Z", "S", "T", "U", "V")
    )
    return UserDirectory(users)


@pytest.fixture()
def fake_session() -> FakeSession:
    return FakeSession({"USD": {"EUR": 0.9, "USD": 1.0}})


@pytest.fixture()
def service_factory(
    directory: UserDirectory, fake_session: FakeSession
) -> Callable[..., ExpenseService]:
    def _factory(*rules: ApprovalRule) -> ExpenseService:
        return ExpenseService(
            RuleRepository(rules),
            directory,
            converter=CurrencyConverter(session=fake_session),
        )

    return _factory


@pytest.fixture()
def submit() -> Callable[..., Expense]:
    def _submit(
        service: ExpenseService,
        employee_id: str = "emp",
        amount: str = "500.00",
        **overrides: Any,
    ) -> Expense:
        data: dict[str, Any] = {
            "currency": "USD",
            "category": "Travel",
            "description": "Client visit",
            "expense_date": date(2025, 3, 14),
        }
        data.update(overrides)
        return service.submit_expense(employee_id, amount, **data)

    return _submit
