"""Expenses and their derived totals."""

from pocket_stock.database.models import Collection, Expense

from .base import EntityAccess


class ExpenseAccess(EntityAccess):
    collection = Collection.EXPENSES
    required_fields = ("amount", "category", "date")

    def get_total_for_date_range(self, start_date: str, end_date: str) -> float:
        """Sum of expense amounts dated within [start_date, end_date].

        Dates are ISO strings and compare lexically, so both bounds are
        inclusive for plain ``YYYY-MM-DD`` values.
        """
        return sum(
            float(e.amount) for e in self.list()
            if start_date <= e.date <= end_date
        )

    def get_by_category(self, category: str) -> list[Expense]:
        return [e for e in self.list() if e.category == category]

    def get_totals_by_category(self) -> dict[str, float]:
        totals: dict[str, float] = {}
        for e in self.list():
            totals[e.category] = totals.get(e.category, 0.0) + float(e.amount)
        return totals

    def get_total(self) -> float:
        return sum(float(e.amount) for e in self.list())
