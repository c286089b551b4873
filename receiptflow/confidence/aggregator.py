from typing import Iterable, Optional

from receiptflow.confidence.schemas import ConfidenceSummary
from receiptflow.line_items.schemas import LineItem


def _clamp(value: float) -> float:
    return min(1.0, max(0.0, float(value)))


def aggregate(
    merchant: Optional[float] = None,
    total: Optional[float] = None,
    date: Optional[float] = None,
    line_items: Iterable[LineItem] = (),
) -> ConfidenceSummary:
    """
    Combines per-field confidences into one summary.

    Pure and total: every combination of inputs, including all-None, yields a
    summary. Missing fields count as 0 in the summary but are left out of
    `overall`, which is 0 when none of merchant/total/date is known.
    """
    present = [_clamp(value) for value in (merchant, total, date) if value is not None]
    overall = sum(present) / len(present) if present else 0.0

    item_scores = [_clamp(item.confidence) for item in line_items]
    line_item_score = sum(item_scores) / len(item_scores) if item_scores else 0.0

    return ConfidenceSummary(
        overall=overall,
        line_items=line_item_score,
        total=_clamp(total) if total is not None else 0.0,
        date=_clamp(date) if date is not None else 0.0,
        merchant=_clamp(merchant) if merchant is not None else 0.0,
    )
