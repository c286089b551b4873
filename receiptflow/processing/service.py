"""
Receipt Processing Service.

Orchestrates one receipt from image to category-annotated extraction:
quota check -> extraction -> user rules -> history-based suggestions.
Persisting the result is left to the caller.
"""
import asyncio
import logging
from datetime import datetime
from typing import List, Optional, Protocol, Sequence, Union

from receiptflow.categories.rules import apply_rules
from receiptflow.categories.schemas import CandidateCategory, CategorizationRule
from receiptflow.categories.services import CategorySuggestionService
from receiptflow.extraction.exceptions import ExtractionError, QuotaExceeded
from receiptflow.extraction.schemas import ReceiptExtraction
from receiptflow.extraction.service import ExtractionAdapter

logger = logging.getLogger(__name__)

ExtractionResult = Union[ReceiptExtraction, ExtractionError]


class ScanQuotaGuard(Protocol):
    """Precondition owned by the billing/quota system."""

    async def can_proceed(self, owner_id: str) -> bool:
        ...


class UnlimitedScanQuota:
    """Guard that never refuses (local runs, plans without limits)."""

    async def can_proceed(self, owner_id: str) -> bool:
        return True


class ReceiptProcessingService:
    """
    Service orchestrating receipt processing pipeline.

    Flow:
    1. Ask the quota guard whether the owner may scan
    2. Extract the receipt (ExtractionAdapter)
    3. Pre-annotate line items with the owner's categorization rules
    4. Annotate line items with history-based category suggestions
    """

    def __init__(
        self,
        adapter: ExtractionAdapter,
        quota_guard: Optional[ScanQuotaGuard] = None,
        suggestion_service: Optional[CategorySuggestionService] = None,
    ):
        self.adapter = adapter
        self.quota_guard = quota_guard or UnlimitedScanQuota()
        self.suggestion_service = suggestion_service

    async def process(
        self,
        owner_id: str,
        image_bytes: bytes,
        candidate_categories: Sequence[CandidateCategory] = (),
        rules: Sequence[CategorizationRule] = (),
        mime_type: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ExtractionResult:
        logger.info(f"Starting receipt processing for owner_id={owner_id}")

        if not await self.quota_guard.can_proceed(owner_id):
            logger.warning(f"Scan quota refused for owner_id={owner_id}")
            return QuotaExceeded("Scan quota exhausted for this account")

        result = await self.adapter.extract(
            image_bytes,
            mime_type=mime_type,
            today=now.date() if now else None,
        )
        if isinstance(result, ExtractionError):
            logger.warning(
                f"Receipt extraction failed for owner_id={owner_id}: {result.message}",
                extra={"kind": result.kind, "status": result.status}
            )
            return result

        line_items = apply_rules(result.line_items, result.merchant_name, rules)

        if self.suggestion_service is not None and candidate_categories:
            line_items = await self.suggestion_service.annotate(
                owner_id,
                result.merchant_name,
                line_items,
                candidate_categories,
                now=now,
            )

        logger.info(
            f"Receipt processing completed for owner_id={owner_id}",
            extra={"items_count": len(line_items), "is_partial": result.is_partial}
        )
        return result.model_copy(update={"line_items": line_items})

    async def extract_pages(
        self,
        images: Sequence[bytes],
        mime_type: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> List[ExtractionResult]:
        """
        Extracts every page of a multi-page receipt concurrently.

        Pages are independent until merged, which is the caller's job.
        Results come back in page order.
        """
        today = now.date() if now else None
        return list(await asyncio.gather(
            *(self.adapter.extract(image, mime_type=mime_type, today=today) for image in images)
        ))
