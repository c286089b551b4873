from receiptflow.categories.history import HistoricalExpenseReader, InMemoryHistoryReader
from receiptflow.categories.rules import apply_rules
from receiptflow.categories.schemas import (
    CandidateCategory,
    CategorizationRule,
    CategorySuggestion,
    HistoricalExpenseRecord,
    HistoricalLineItem,
    RulePatternType,
)
from receiptflow.categories.services import CategorySuggestionEngine, CategorySuggestionService

__all__ = [
    "CategorySuggestionEngine",
    "CategorySuggestionService",
    "HistoricalExpenseReader",
    "InMemoryHistoryReader",
    "apply_rules",
    "CandidateCategory",
    "CategorizationRule",
    "CategorySuggestion",
    "HistoricalExpenseRecord",
    "HistoricalLineItem",
    "RulePatternType",
]
