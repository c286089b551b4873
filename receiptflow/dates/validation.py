"""
Validation of typed date fields returned by an extraction provider.

Unlike `DateCorrector`, which repairs free OCR text, this path expects an
ISO-like value and only judges whether it is plausible.
"""
import logging
from datetime import date, datetime
from typing import List, Optional, Union

from receiptflow.dates.corrector import parse_date_text, years_before
from receiptflow.dates.schemas import ProviderDateValidation

logger = logging.getLogger(__name__)

FALLBACK_CONFIDENCE = 0.2
OLD_DATE_PENALTY = 0.3
FUTURE_DATE_PENALTY = 0.4


def validate_provider_date(
    value: Union[date, datetime, str, None],
    today: Optional[date] = None
) -> ProviderDateValidation:
    """
    Validates a provider's date field using calendar-local parsing.

    Args:
        value: Date, datetime or ISO string from the provider (may be None)
        today: Reference day (defaults to date.today())

    Returns:
        ProviderDateValidation; when the value is absent or unparseable,
        today's date with confidence 0.2 and fallback_used=True.
    """
    today = today or date.today()

    if value is None or (isinstance(value, str) and not value.strip()):
        logger.info("No date provided, using current date as fallback")
        return ProviderDateValidation(
            date=today,
            confidence=FALLBACK_CONFIDENCE,
            fallback_used=True,
            issues=["No date detected in receipt, using current date"],
        )

    if isinstance(value, datetime):
        parsed: Optional[date] = value.date()
    elif isinstance(value, date):
        parsed = value
    else:
        parsed = parse_date_text(str(value))

    if parsed is None:
        logger.info(f"Invalid provider date {value!r}, using current date as fallback")
        return ProviderDateValidation(
            date=today,
            confidence=FALLBACK_CONFIDENCE,
            fallback_used=True,
            issues=["Invalid date format detected, using current date"],
        )

    issues: List[str] = []
    confidence = 1.0

    if parsed < years_before(today, 5):
        issues.append("Date seems too old (more than 5 years ago)")
        confidence -= OLD_DATE_PENALTY

    is_future = parsed > today
    if is_future:
        issues.append("Date is in the future")
        confidence -= FUTURE_DATE_PENALTY

    confidence = round(max(0.1, min(1.0, confidence)), 4)

    return ProviderDateValidation(
        date=parsed,
        confidence=confidence,
        fallback_used=False,
        is_future=is_future,
        issues=issues,
    )


def swap_day_month(value: date) -> Optional[date]:
    """
    Reads the same numeric groups the other way round (DD/MM <-> MM/DD).

    Returns None when the swapped reading is not a real calendar date.
    """
    if value.day > 12:
        return None
    try:
        return date(value.year, value.day, value.month)
    except ValueError:
        return None
