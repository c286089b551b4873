"""
Naprawa dat odczytanych przez OCR.

Tekst daty przechodzi przez uporządkowaną listę czystych transformacji
(str -> str). Każdy krok, który faktycznie zmienił tekst, zostawia wpis w
`issues`. Nowe heurystyki dodaje się jako kolejny `DateRepairStep`, bez
modyfikowania istniejących.

Format kanoniczny: DD/MM/YYYY. Daty niejednoznaczne (dzień i miesiąc <= 12)
interpretujemy jako DD/MM.
"""
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, List, Optional, Sequence

from receiptflow.dates.schemas import DateCorrectionResult

logger = logging.getLogger(__name__)

_CONFUSABLE_CHARS = str.maketrans({"O": "0", "o": "0", "l": "1", "I": "1", "S": "5", "B": "8"})
_NUMERIC_TOKEN = re.compile(r"[0-9OolISB/\-_.]+")
_SEPARATOR = r"[\s\-_./]+"
_DAY_FIRST = re.compile(rf"^(\d{{1,2}}){_SEPARATOR}(\d{{1,2}}){_SEPARATOR}(\d{{4}}|\d{{2}})$")
_YEAR_FIRST = re.compile(rf"^(\d{{4}}){_SEPARATOR}(\d{{1,2}}){_SEPARATOR}(\d{{1,2}})$")
_SHORT_YEAR = re.compile(r"^(\d{2})/(\d{2})/(\d{2})$")
_CANONICAL = re.compile(r"^(\d{2})/(\d{2})/(\d{4})$")
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

_TEXT_FORMATS = ("%b %d, %Y", "%B %d, %Y", "%d %b %Y", "%d %B %Y", "%b %d %Y", "%B %d %Y")


def repair_confused_characters(text: str) -> str:
    """O/o -> 0, l/I -> 1, S -> 5, B -> 8, only inside tokens that look numeric."""
    parts = re.split(r"(\s+)", text)
    return "".join(
        part.translate(_CONFUSABLE_CHARS) if _NUMERIC_TOKEN.fullmatch(part) else part
        for part in parts
    )


def normalize_separators(text: str) -> str:
    """
    Unifies separators between numeric groups.

    Day-first dates become zero-padded DD/MM/YY(YY); year-first dates become
    ISO YYYY-MM-DD. Anything else is returned untouched.

    Examples:
        >>> normalize_separators("8-11-2025")
        '08/11/2025'
        >>> normalize_separators("2025.11.08")
        '2025-11-08'
    """
    stripped = text.strip()

    match = _DAY_FIRST.match(stripped)
    if match:
        first, second, year = match.groups()
        return f"{int(first):02d}/{int(second):02d}/{year}"

    match = _YEAR_FIRST.match(stripped)
    if match:
        year, month, day = match.groups()
        return f"{year}-{int(month):02d}-{int(day):02d}"

    return text


def expand_century(text: str) -> str:
    return _SHORT_YEAR.sub(r"\1/\2/20\3", text)


def order_day_month(text: str) -> str:
    """
    Brings a numeric date into DD/MM order.

    A second group above 12 can only be a day, so the text was month-first
    and gets swapped. A first group above 12 is already a day. When both are
    <= 12 the day-first reading is kept.
    """
    match = _CANONICAL.match(text)
    if not match:
        return text

    first, second, year = match.groups()
    if int(first) <= 12 and int(second) > 12:
        return f"{second}/{first}/{year}"
    return text


@dataclass(frozen=True)
class DateRepairStep:
    description: str
    transform: Callable[[str], str]


DEFAULT_REPAIR_STEPS: List[DateRepairStep] = [
    DateRepairStep("Repaired OCR character confusion (O->0, l/I->1, S->5, B->8)", repair_confused_characters),
    DateRepairStep("Normalized date separators", normalize_separators),
    DateRepairStep("Added century to year", expand_century),
    DateRepairStep("Detected MM/DD format, reordered to DD/MM", order_day_month),
]


def parse_date_text(text: str) -> Optional[date]:
    """
    Parses DD/MM/YYYY, ISO dates (with or without time) and textual month forms.

    ISO datetimes keep the calendar day as written, without shifting to UTC.
    """
    candidate = text.strip()
    if not candidate:
        return None

    match = _CANONICAL.match(candidate)
    if match:
        day, month, year = (int(group) for group in match.groups())
        try:
            return date(year, month, day)
        except ValueError:
            return None

    if _ISO_DATE.match(candidate) or candidate[:4].isdigit():
        try:
            return datetime.fromisoformat(candidate.replace("Z", "+00:00")).date()
        except ValueError:
            pass

    for fmt in _TEXT_FORMATS:
        try:
            return datetime.strptime(candidate, fmt).date()
        except ValueError:
            continue

    return None


def years_before(reference: date, years: int) -> date:
    try:
        return reference.replace(year=reference.year - years)
    except ValueError:
        # 29 lutego w roku nieprzestępnym
        return reference.replace(year=reference.year - years, day=28)


class DateCorrector:
    """
    Repairs OCR-garbled or ambiguous receipt dates and scores their plausibility.

    Never raises: an unparseable input comes back unchanged with confidence 0.1.
    """

    BASE_CONFIDENCE = 0.8
    FAILED_CONFIDENCE = 0.1
    OLD_DATE_FACTOR = 0.7
    FUTURE_DATE_FACTOR = 0.6
    FUTURE_TOLERANCE = timedelta(days=182)

    def __init__(self, steps: Optional[Sequence[DateRepairStep]] = None):
        self.steps = list(steps) if steps is not None else list(DEFAULT_REPAIR_STEPS)

    def correct(self, raw_date: str, today: Optional[date] = None) -> DateCorrectionResult:
        today = today or date.today()
        raw_date = raw_date or ""
        issues: List[str] = []
        corrected = raw_date

        for step in self.steps:
            before = corrected
            corrected = step.transform(corrected)
            if corrected != before:
                issues.append(step.description)

        parsed = parse_date_text(corrected)
        if parsed is None:
            issues.append("Could not parse as valid date")
            logger.info(f"Date correction failed for {raw_date!r}", extra={"issues": issues})
            return DateCorrectionResult(
                corrected_date=raw_date,
                parsed_date=None,
                confidence=self.FAILED_CONFIDENCE,
                was_corrected=False,
                issues=issues,
            )

        match = _CANONICAL.match(corrected)
        if match and int(match.group(1)) <= 12 and match.group(1) != match.group(2):
            issues.append("Ambiguous day/month order, assuming DD/MM")

        confidence = self.BASE_CONFIDENCE
        if parsed < years_before(today, 1):
            confidence *= self.OLD_DATE_FACTOR
            issues.append("Date is quite old")
        elif parsed > today + self.FUTURE_TOLERANCE:
            confidence *= self.FUTURE_DATE_FACTOR
            issues.append("Date is in the future - please verify")

        was_corrected = corrected != raw_date
        if was_corrected:
            logger.debug(f"Date corrected: {raw_date!r} -> {corrected!r}", extra={"issues": issues})

        return DateCorrectionResult(
            corrected_date=corrected,
            parsed_date=parsed,
            confidence=confidence,
            was_corrected=was_corrected,
            issues=issues,
        )
