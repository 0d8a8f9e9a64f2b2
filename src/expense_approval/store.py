"""In-memory expense persistence with compare-and-swap saves."""

from __future__ import annotations

import threading
from collections.abc import Callable

from .exceptions import ConflictError, NotFoundError
from .models import Expense


class ExpenseStore:
    """Thread-safe expense store.

    ``load`` hands out copies, and ``save`` only succeeds when the stored
    record still carries ``expected_version``. Two writers that loaded the
    same version cannot both save.
    """

    def __init__(self) -> None:
        self._expenses: dict[str, Expense] = {}
        self._lock = threading.Lock()

    def create(self, expense: Expense) -> Expense:
        with self._lock:
            if expense.expense_id in self._expenses:
                raise ValueError(f"Expense '{expense.expense_id}' already exists")
            self._expenses[expense.expense_id] = expense.model_copy(deep=True)
        return expense

    def load(self, expense_id: str) -> Expense:
        with self._lock:
            stored = self._expenses.get(expense_id)
            if stored is None:
                raise NotFoundError("Expense", expense_id)
            return stored.model_copy(deep=True)

    def save(self, expense: Expense, expected_version: int) -> Expense:
        """Replace the stored expense if its version is still ``expected_version``."""

        with self._lock:
            stored = self._expenses.get(expense.expense_id)
            if stored is None:
                raise NotFoundError("Expense", expense.expense_id)
            if stored.version != expected_version:
                raise ConflictError(expense.expense_id, expected_version, stored.version)
            self._expenses[expense.expense_id] = expense.model_copy(deep=True)
        return expense

    def find(self, predicate: Callable[[Expense], bool] | None = None) -> list[Expense]:
        with self._lock:
            snapshot = [expense.model_copy(deep=True) for expense in self._expenses.values()]
        if predicate is None:
            return snapshot
        return [expense for expense in snapshot if predicate(expense)]
