from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import Field

from receiptflow.common.schemas import AppBaseModel, RequestModel


class CandidateCategory(AppBaseModel):
    """Category the user may pick for an expense."""
    id: str = Field(..., min_length=1, description="Category ID")
    name: str = Field(..., min_length=1, max_length=255, description="Category name")


class HistoricalExpenseRecord(AppBaseModel):
    """Read-only snapshot of a past expense, owned by the expense store."""
    id: str = Field(..., description="Expense ID")
    date: datetime = Field(..., description="When the expense happened")
    merchant: Optional[str] = Field(None, description="Merchant / place as stored")
    category_id: Optional[str] = Field(None, description="Category assigned by the user")


class HistoricalLineItem(AppBaseModel):
    """Read-only snapshot of a past receipt line."""
    expense_id: str
    description: str
    category_id: Optional[str] = None
    suggested_category_id: Optional[str] = None
    category_confidence: Optional[float] = Field(None, ge=0.0, le=1.0)


class CategorySuggestion(AppBaseModel):
    """Ranked, explainable category guess. Recomputed on every call."""
    category_id: str
    category_name: str
    score: float = Field(..., ge=0.0, le=1.0, description="Weighted factor score")
    confidence: float = Field(..., ge=0.0, le=95.0, description="Score as a percentage, capped at 95")
    reasons: List[str] = Field(default_factory=list, description="Human-readable reasons, never empty")


class RulePatternType(str, Enum):
    VENDOR = "vendor"
    ITEM = "item"


class CategorizationRule(AppBaseModel):
    """User-defined pattern that maps a vendor or item description to a category."""
    id: str
    name: str = Field(..., max_length=255)
    pattern: str = Field(..., min_length=1, description="Case-insensitive substring")
    pattern_type: RulePatternType
    category_id: str
    priority: int = Field(default=0, description="Higher priority rules are tried first")
    is_active: bool = True


# --- API ---
class SuggestionLineItem(RequestModel):
    description: str = Field(..., min_length=1, max_length=500)
    suggested_category_id: Optional[str] = None
    category_confidence: Optional[float] = Field(None, ge=0.0, le=1.0)


class SuggestionCategory(RequestModel):
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=255)


class CategorySuggestionRequest(RequestModel):
    owner_id: str = Field(..., min_length=1, description="User or family whose history is scored")
    merchant_name: Optional[str] = Field(None, max_length=200)
    line_items: List[SuggestionLineItem] = Field(default_factory=list)
    candidate_categories: List[SuggestionCategory] = Field(default_factory=list)


class CategorySuggestionResponse(AppBaseModel):
    suggestions: List[CategorySuggestion] = Field(default_factory=list)
