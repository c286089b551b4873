from datetime import date as date_type
from typing import List, Optional
from pydantic import Field

from receiptflow.common.schemas import AppBaseModel


class DateCorrectionResult(AppBaseModel):
    """Outcome of repairing a free-text OCR date."""
    corrected_date: str = Field(..., description="Repaired DD/MM/YYYY text, or the original input when unparseable")
    parsed_date: Optional[date_type] = Field(None, description="Calendar date, None when the text could not be parsed")
    confidence: float = Field(..., ge=0.0, le=1.0, description="Plausibility of the date (0.0-1.0)")
    was_corrected: bool = Field(default=False, description="Whether any repair changed the text")
    issues: List[str] = Field(default_factory=list, description="Applied repairs and warnings, in order")


class ProviderDateValidation(AppBaseModel):
    """Outcome of validating a provider's typed date field."""
    date: date_type = Field(..., description="Validated date (today when the field was unusable)")
    confidence: float = Field(..., ge=0.0, le=1.0, description="Plausibility of the date (0.0-1.0)")
    fallback_used: bool = Field(default=False, description="True when today's date was substituted")
    is_future: bool = Field(default=False, description="True when the parsed date lies after today")
    issues: List[str] = Field(default_factory=list, description="Warnings, in order")
