from typing import Annotated

from fastapi import Depends

from receiptflow.categories.history import HistoricalExpenseReader, InMemoryHistoryReader
from receiptflow.categories.services import CategorySuggestionEngine, CategorySuggestionService

# Magazyn wydatków jest zewnętrzny; aplikacja podmienia czytnik przez dependency_overrides
_default_reader = InMemoryHistoryReader()


async def get_history_reader() -> HistoricalExpenseReader:
    return _default_reader


async def get_category_suggestion_service(
    reader: Annotated[HistoricalExpenseReader, Depends(get_history_reader)]
) -> CategorySuggestionService:
    return CategorySuggestionService(reader=reader, engine=CategorySuggestionEngine())


SuggestionServiceDependency = Annotated[CategorySuggestionService, Depends(get_category_suggestion_service)]
