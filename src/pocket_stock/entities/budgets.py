"""Budgets per expense category."""

from typing import Iterable

from pocket_stock.database.models import Budget, Collection, Expense

from .base import EntityAccess

ON_TRACK = "On Track"
WARNING = "Warning"
OVER_BUDGET = "Over Budget"

WARNING_PERCENT = 80.0


def budget_status(amount: float, spent: float) -> str:
    """Classify spending against a budget amount."""
    if amount <= 0:
        return OVER_BUDGET if spent > 0 else ON_TRACK
    percentage = spent / amount * 100
    if percentage >= 100:
        return OVER_BUDGET
    if percentage >= WARNING_PERCENT:
        return WARNING
    return ON_TRACK


class BudgetAccess(EntityAccess):
    collection = Collection.BUDGETS
    required_fields = ("category", "amount")

    def get_total_budget(self) -> float:
        return sum(float(b.amount) for b in self.list())

    def get_by_category(self, category: str) -> list[Budget]:
        return [b for b in self.list() if b.category == category]

    @staticmethod
    def get_spent(budget: Budget, expenses: Iterable[Expense]) -> float:
        return sum(float(e.amount) for e in expenses
                   if e.category == budget.category)

    def get_budget_status(self, budget: Budget,
                          expenses: Iterable[Expense]) -> str:
        """Status of *budget* against the expenses in its category."""
        return budget_status(float(budget.amount),
                             self.get_spent(budget, expenses))
