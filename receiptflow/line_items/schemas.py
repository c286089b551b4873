from decimal import Decimal
from enum import Enum
from typing import Any, List, Optional
from pydantic import Field

from receiptflow.common.schemas import AppBaseModel

UNKNOWN_ITEM = "Unknown item"


class PriceRegime(str, Enum):
    """How a provider encodes money in line items."""
    MINOR_UNITS = "minor_units"  # integer cents: 1250 -> 12.50
    DECIMAL = "decimal"          # already decimal: 12.5 -> 12.50


class LineItem(AppBaseModel):
    """Canonical receipt line item."""
    description: str = Field(default=UNKNOWN_ITEM, min_length=1, max_length=500, description="Item description")
    quantity: Decimal = Field(default=Decimal("1"), description="Quantity")
    unit_price: Optional[Decimal] = Field(None, description="Unit price")
    total_price: Decimal = Field(default=Decimal("0.00"), description="Total price of the line (0.00 when unreadable)")
    confidence: float = Field(default=0.0, ge=0.0, le=1.0, description="Read confidence (0.0-1.0)")
    discounted: bool = Field(default=False, description="Provider marked a discount on this line")
    sku: Optional[str] = Field(None, max_length=100, description="Product code, carried through as-is")

    # Wypełniane przez sugestie kategorii, nigdy przez ekstrakcję
    suggested_category_id: Optional[str] = Field(None, description="Suggested category ID")
    category_confidence: Optional[float] = Field(None, ge=0.0, le=1.0, description="Confidence of the suggested category")


class ProviderLineItem(AppBaseModel):
    """
    One line entry as a provider sent it, before normalization.

    Prices keep their raw Python type (int, float, str) because the
    normalizer decides the price regime from it.
    """
    description: Optional[str] = None
    quantity: Any = None
    unit_price: Any = None
    total_price: Any = None
    confidence_signals: List[float] = Field(default_factory=list)
    discounted: bool = False
    sku: Optional[str] = None
