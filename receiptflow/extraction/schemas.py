from datetime import date as date_type
from decimal import Decimal
from typing import Any, List, Optional
from pydantic import Field, ConfigDict

from receiptflow.common.schemas import AppBaseModel
from receiptflow.confidence.schemas import ConfidenceSummary
from receiptflow.line_items.schemas import LineItem


class ReceiptExtraction(AppBaseModel):
    """Structured receipt produced by the extraction pipeline (not persisted here)."""
    merchant_name: Optional[str] = Field(None, max_length=200, description="Merchant name")
    total_amount: Optional[Decimal] = Field(None, description="Grand total; None or 0 when not visible in the image")
    transaction_date: Optional[date_type] = Field(None, description="Purchase date")
    currency: Optional[str] = Field(None, max_length=10, description="Currency code as printed")
    tax_amount: Optional[Decimal] = Field(None, description="Tax amount")
    subtotal: Optional[Decimal] = Field(None, description="Subtotal before tax")
    line_items: List[LineItem] = Field(default_factory=list, description="Line items in receipt order")
    confidence: ConfidenceSummary = Field(default_factory=ConfidenceSummary, description="Per-field confidence")
    provider_confidence: float = Field(default=0.5, ge=0.0, le=1.0, description="Completeness heuristic of the provider reply")
    date_issues: List[str] = Field(default_factory=list, description="Warnings from date validation and repair")
    raw_provider_payload: Any = Field(None, description="Provider reply kept for audit, never parsed downstream")

    @property
    def is_partial(self) -> bool:
        """A zero grand total means a partial or multi-page scan: ask for the next page."""
        return self.total_amount is not None and self.total_amount == 0


class ExtractReceiptResponse(AppBaseModel):
    """Odpowiedź endpointu ekstrakcji"""
    success: bool = Field(default=True, description="Status operacji")
    message: str = Field(default="Extraction completed", description="Message for the user")
    is_partial: bool = Field(default=False, description="No grand total visible, scan the next page")
    data: ReceiptExtraction = Field(..., description="Extracted data")
    execution_time: float = Field(..., description="Processing time in seconds")


# Schemat odpowiedzi przekazywany do Gemini (response_schema)
class LLMReceiptLineItem(AppBaseModel):
    """Schema of one line item requested from the provider"""
    model_config = ConfigDict(extra='forbid')

    description: str
    total_price: float
    quantity: Optional[float] = None
    unit_price: Optional[float] = None
    discount: Optional[bool] = None
    sku: Optional[str] = None
    confidence: Optional[float] = None


class LLMReceiptExtraction(AppBaseModel):
    """Schema of the whole receipt requested from the provider"""
    model_config = ConfigDict(extra='forbid')

    merchant_name: Optional[str] = None
    total_amount: float
    date: Optional[str] = None  # Format ISO 8601
    tax_amount: Optional[float] = None
    subtotal: Optional[float] = None
    currency: Optional[str] = None
    line_items: List[LLMReceiptLineItem]
