"""
Date repair and validation for receipt extraction.

Two paths live here: `DateCorrector` for free OCR text and
`validate_provider_date` for a provider's typed date field.
"""

from receiptflow.dates.corrector import DateCorrector, DateRepairStep, DEFAULT_REPAIR_STEPS
from receiptflow.dates.validation import validate_provider_date, swap_day_month
from receiptflow.dates.schemas import DateCorrectionResult, ProviderDateValidation

__all__ = [
    "DateCorrector",
    "DateRepairStep",
    "DEFAULT_REPAIR_STEPS",
    "validate_provider_date",
    "swap_day_month",
    "DateCorrectionResult",
    "ProviderDateValidation",
]
