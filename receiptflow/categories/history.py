"""
Dostęp do historii wydatków używanej przez sugestie kategorii.

Silnik sugestii nie zna magazynu wydatków. Dostaje czytnik ograniczony do
jednego właściciela (użytkownik / rodzina) i okna czasowego.
"""
from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Protocol, Sequence

from receiptflow.categories.schemas import HistoricalExpenseRecord, HistoricalLineItem


class HistoricalExpenseReader(Protocol):

    async def get_expenses(self, owner_id: str, since: datetime) -> List[HistoricalExpenseRecord]:
        """Expenses of one owner dated at or after `since`."""
        ...

    async def get_line_items(self, expense_ids: Sequence[str]) -> List[HistoricalLineItem]:
        """Receipt lines belonging to the given expenses."""
        ...


class InMemoryHistoryReader:
    """Reader over snapshots held in memory (tests, demo accounts, local runs)."""

    def __init__(self):
        self._expenses: Dict[str, List[HistoricalExpenseRecord]] = defaultdict(list)
        self._line_items: List[HistoricalLineItem] = []

    def add_expenses(self, owner_id: str, expenses: Iterable[HistoricalExpenseRecord]) -> None:
        self._expenses[owner_id].extend(expenses)

    def add_line_items(self, line_items: Iterable[HistoricalLineItem]) -> None:
        self._line_items.extend(line_items)

    async def get_expenses(self, owner_id: str, since: datetime) -> List[HistoricalExpenseRecord]:
        # Kopia listy - wołający dostaje niezmienny snapshot
        return [
            expense for expense in self._expenses.get(owner_id, [])
            if expense.date.replace(tzinfo=None) >= since.replace(tzinfo=None)
        ]

    async def get_line_items(self, expense_ids: Sequence[str]) -> List[HistoricalLineItem]:
        wanted = set(expense_ids)
        return [item for item in self._line_items if item.expense_id in wanted]
