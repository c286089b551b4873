"""
Sugestie kategorii na podstawie historii wydatków użytkownika.

Wynik kategorii to ważona suma pięciu czynników (sklep, podobne pozycje,
częstotliwość, świeżość, pora zakupu). Każdy czynnik jest normalizowany
przez maksimum po wszystkich kategoriach, więc lider czynnika ma zawsze 1.0.
Nic nie jest cache'owane - historia zmienia się ciągle.
"""
import logging
import re
from collections import Counter
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Set

from receiptflow.config import settings
from receiptflow.categories.history import HistoricalExpenseReader
from receiptflow.categories.schemas import (
    CandidateCategory,
    CategorySuggestion,
    HistoricalExpenseRecord,
    HistoricalLineItem,
)
from receiptflow.line_items.schemas import LineItem

logger = logging.getLogger(__name__)

FACTOR_WEIGHTS = {
    "merchant": 0.30,
    "line_item": 0.25,
    "frequency": 0.20,
    "recency": 0.15,
    "temporal": 0.10,
}

# Progi, od których czynnik trafia do uzasadnienia
REASON_THRESHOLDS = {
    "merchant": 0.3,
    "line_item": 0.3,
    "frequency": 0.5,
    "recency": 0.3,
    "temporal": 0.3,
}

MAX_CONFIDENCE = 95.0
TEMPORAL_HOUR_WINDOW = 2
MIN_TOKEN_LENGTH = 3
FALLBACK_REASON = "Based on spending patterns"

_TOKEN = re.compile(r"\w+")


def months_before(moment: datetime, months: int) -> datetime:
    """Same wall-clock moment `months` calendar months earlier, clamped to month end."""
    month_index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    next_month = datetime(year + (month // 12), month % 12 + 1, 1)
    last_day = (next_month - timedelta(days=1)).day
    return moment.replace(year=year, month=month, day=min(moment.day, last_day))


def tokenize(text: Optional[str]) -> Set[str]:
    if not text:
        return set()
    return {token for token in _TOKEN.findall(text.lower()) if len(token) >= MIN_TOKEN_LENGTH}


def _wall_clock(moment: datetime) -> datetime:
    # Historia i "teraz" porównywane po czasie lokalnym zapisanym w rekordzie
    return moment.replace(tzinfo=None)


def _hour_distance(first: int, second: int) -> int:
    # Zegar jest cykliczny: 23:00 i 01:00 dzielą 2 godziny
    distance = abs(first - second) % 24
    return min(distance, 24 - distance)


def _normalize(raw: Dict[str, float]) -> Dict[str, float]:
    highest = max(raw.values(), default=0.0)
    if highest <= 0:
        return {key: 0.0 for key in raw}
    return {key: value / highest for key, value in raw.items()}


class CategorySuggestionEngine:
    """
    Pure scorer: works only on the snapshot it is handed, no I/O.
    """

    def __init__(
        self,
        history_months: Optional[int] = None,
        recency_days: Optional[int] = None,
        min_score: Optional[float] = None,
        limit: Optional[int] = None,
    ):
        self.history_months = history_months if history_months is not None else settings.SUGGESTION_HISTORY_MONTHS
        self.recency_days = recency_days if recency_days is not None else settings.SUGGESTION_RECENCY_DAYS
        self.min_score = min_score if min_score is not None else settings.SUGGESTION_MIN_SCORE
        self.limit = limit if limit is not None else settings.SUGGESTION_LIMIT

    def window_start(self, now: datetime) -> datetime:
        return months_before(_wall_clock(now), self.history_months)

    def suggest(
        self,
        merchant_name: Optional[str],
        current_line_items: Sequence[LineItem],
        historical_expenses: Sequence[HistoricalExpenseRecord],
        historical_line_items: Sequence[HistoricalLineItem],
        candidate_categories: Sequence[CandidateCategory],
        now: Optional[datetime] = None,
    ) -> List[CategorySuggestion]:
        """
        Ranks candidate categories for a receipt.

        Args:
            merchant_name: Merchant of the current receipt
            current_line_items: Lines of the current receipt (may carry rule suggestions)
            historical_expenses: Owner's past expenses
            historical_line_items: Lines of those past expenses
            candidate_categories: Categories to choose from
            now: Reference moment (defaults to datetime.now())

        Returns:
            At most `limit` suggestions with score above `min_score`, best first.
            Empty when there is no history or no candidate.
        """
        if not historical_expenses or not candidate_categories:
            return []

        now = _wall_clock(now or datetime.now())
        window_start = months_before(now, self.history_months)
        recency_start = now - timedelta(days=self.recency_days)

        window = [expense for expense in historical_expenses if _wall_clock(expense.date) >= window_start]
        if not window:
            return []

        category_ids = [category.id for category in candidate_categories]
        known = set(category_ids)
        in_window = [expense for expense in window if expense.category_id in known]

        merchant_raw = self._merchant_counts(merchant_name, in_window)
        line_item_raw = self._line_item_scores(current_line_items, window, historical_line_items, known)
        frequency_raw = Counter(expense.category_id for expense in in_window)
        recency_raw = Counter(
            expense.category_id for expense in in_window
            if _wall_clock(expense.date) >= recency_start
        )
        temporal_raw = Counter(
            expense.category_id for expense in in_window
            if _hour_distance(expense.date.hour, now.hour) <= TEMPORAL_HOUR_WINDOW
            or expense.date.weekday() == now.weekday()
        )

        factors = {
            "merchant": _normalize({cid: float(merchant_raw.get(cid, 0)) for cid in category_ids}),
            "line_item": _normalize({cid: float(line_item_raw.get(cid, 0.0)) for cid in category_ids}),
            "frequency": _normalize({cid: float(frequency_raw.get(cid, 0)) for cid in category_ids}),
            "recency": _normalize({cid: float(recency_raw.get(cid, 0)) for cid in category_ids}),
            "temporal": _normalize({cid: float(temporal_raw.get(cid, 0)) for cid in category_ids}),
        }

        suggestions: List[CategorySuggestion] = []
        seen: Set[str] = set()
        for category in candidate_categories:
            if category.id in seen:
                continue
            seen.add(category.id)

            values = {name: factor[category.id] for name, factor in factors.items()}
            score = sum(FACTOR_WEIGHTS[name] * value for name, value in values.items())
            if score <= self.min_score:
                continue

            suggestions.append(CategorySuggestion(
                category_id=category.id,
                category_name=category.name,
                score=min(score, 1.0),
                confidence=round(min(score * 100, MAX_CONFIDENCE), 2),
                reasons=self._reasons(values, merchant_name),
            ))

        # sorted() jest stabilne - remisy zostają w kolejności kandydatów
        suggestions = sorted(suggestions, key=lambda suggestion: -suggestion.score)[:self.limit]

        logger.debug(
            f"Generated {len(suggestions)} category suggestions",
            extra={"merchant_name": merchant_name, "history_size": len(window)}
        )
        return suggestions

    def annotate(
        self,
        merchant_name: Optional[str],
        line_items: Sequence[LineItem],
        historical_expenses: Sequence[HistoricalExpenseRecord],
        historical_line_items: Sequence[HistoricalLineItem],
        candidate_categories: Sequence[CandidateCategory],
        now: Optional[datetime] = None,
    ) -> List[LineItem]:
        """
        Sets `suggested_category_id` and `category_confidence` on every line
        item from its best suggestion. Items without a suggestion keep what
        they had (e.g. a rule match).
        """
        annotated: List[LineItem] = []
        for item in line_items:
            suggestions = self.suggest(
                merchant_name,
                [item],
                historical_expenses,
                historical_line_items,
                candidate_categories,
                now=now,
            )
            if not suggestions:
                annotated.append(item)
                continue

            top = suggestions[0]
            annotated.append(item.model_copy(update={
                "suggested_category_id": top.category_id,
                "category_confidence": round(top.confidence / 100, 4),
            }))
        return annotated

    def _merchant_counts(
        self,
        merchant_name: Optional[str],
        expenses: Sequence[HistoricalExpenseRecord]
    ) -> Counter:
        tokens = (merchant_name or "").lower().split()
        if not tokens:
            return Counter()

        # "SuperMart #42" -> "supermart"
        first_token = tokens[0]
        return Counter(
            expense.category_id for expense in expenses
            if expense.merchant and first_token in expense.merchant.lower()
        )

    def _line_item_scores(
        self,
        current_line_items: Sequence[LineItem],
        window: Sequence[HistoricalExpenseRecord],
        historical_line_items: Sequence[HistoricalLineItem],
        known: Set[str],
    ) -> Dict[str, float]:
        scores: Dict[str, float] = {}

        # Kategorie już zasugerowane dla bieżących pozycji (np. przez reguły)
        for item in current_line_items:
            if item.suggested_category_id in known:
                scores[item.suggested_category_id] = (
                    scores.get(item.suggested_category_id, 0.0) + (item.category_confidence or 0.0)
                )

        current_tokens: Set[str] = set()
        for item in current_line_items:
            current_tokens |= tokenize(item.description)
        if not current_tokens:
            return scores

        expense_categories = {expense.id: expense.category_id for expense in window}
        for historical in historical_line_items:
            if historical.expense_id not in expense_categories:
                continue

            historical_tokens = tokenize(historical.description)
            matches = any(
                current in past or past in current
                for current in current_tokens
                for past in historical_tokens
            )
            if not matches:
                continue

            # Kategoria pozycji, potem kategoria całego wydatku
            category_id = next(
                (
                    candidate
                    for candidate in (historical.category_id, expense_categories[historical.expense_id])
                    if candidate in known
                ),
                None,
            )
            if category_id is not None:
                scores[category_id] = scores.get(category_id, 0.0) + 1.0
            elif historical.suggested_category_id in known:
                scores[historical.suggested_category_id] = (
                    scores.get(historical.suggested_category_id, 0.0) + (historical.category_confidence or 0.0)
                )

        return scores

    def _reasons(self, values: Dict[str, float], merchant_name: Optional[str]) -> List[str]:
        reasons: List[str] = []
        if values["merchant"] > REASON_THRESHOLDS["merchant"]:
            reasons.append(f"Based on {merchant_name} purchases")
        if values["line_item"] > REASON_THRESHOLDS["line_item"]:
            reasons.append("Similar items purchased")
        if values["frequency"] > REASON_THRESHOLDS["frequency"]:
            reasons.append("Frequently used")
        if values["recency"] > REASON_THRESHOLDS["recency"]:
            reasons.append("Recently used")
        if values["temporal"] > REASON_THRESHOLDS["temporal"]:
            reasons.append("Common at this time")
        return reasons or [FALLBACK_REASON]


class CategorySuggestionService:
    """
    Reads one owner's trailing history through the injected reader and runs
    the engine on that snapshot.
    """

    def __init__(self, reader: HistoricalExpenseReader, engine: Optional[CategorySuggestionEngine] = None):
        self.reader = reader
        self.engine = engine or CategorySuggestionEngine()

    async def _load_history(self, owner_id: str, now: datetime):
        since = self.engine.window_start(now)
        expenses = await self.reader.get_expenses(owner_id, since)
        line_items = await self.reader.get_line_items([expense.id for expense in expenses]) if expenses else []
        logger.info(
            f"Loaded suggestion history for owner {owner_id}",
            extra={"expenses_count": len(expenses), "line_items_count": len(line_items)}
        )
        return expenses, line_items

    async def suggest(
        self,
        owner_id: str,
        merchant_name: Optional[str],
        line_items: Sequence[LineItem],
        candidate_categories: Sequence[CandidateCategory],
        now: Optional[datetime] = None,
    ) -> List[CategorySuggestion]:
        now = now or datetime.now()
        expenses, history_items = await self._load_history(owner_id, now)
        return self.engine.suggest(merchant_name, line_items, expenses, history_items, candidate_categories, now=now)

    async def annotate(
        self,
        owner_id: str,
        merchant_name: Optional[str],
        line_items: Sequence[LineItem],
        candidate_categories: Sequence[CandidateCategory],
        now: Optional[datetime] = None,
    ) -> List[LineItem]:
        if not line_items:
            return []
        now = now or datetime.now()
        expenses, history_items = await self._load_history(owner_id, now)
        return self.engine.annotate(merchant_name, line_items, expenses, history_items, candidate_categories, now=now)
