import asyncio
import json
import logging
from datetime import date
from decimal import Decimal
from typing import Optional, List, Dict, Any, Tuple, Union

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception,
)

from receiptflow.config import settings
from receiptflow.confidence import aggregate
from receiptflow.dates import DateCorrector, validate_provider_date, swap_day_month
from receiptflow.extraction.exceptions import (
    ExtractionError,
    ConfigurationError,
    RateLimited,
    QuotaExceeded,
    MalformedResponse,
    ProviderError,
)
from receiptflow.extraction.images import sniff_mime_type
from receiptflow.extraction.schemas import ReceiptExtraction, LLMReceiptExtraction
from receiptflow.line_items import LineItemNormalizer, PriceRegime, parse_amount

logger = logging.getLogger(__name__)

TOTAL_CONFIDENCE = 0.95
MERCHANT_CONFIDENCE = 0.9
DATE_CONFIDENCE = 0.85
LINE_ITEMS_CONFIDENCE = 0.8
DEFAULT_PROVIDER_CONFIDENCE = 0.5


def _should_retry_gemini_error(exception: BaseException) -> bool:
    """
    Sprawdza, czy błąd Gemini powinien być retryowany.

    NIE retryujemy:
    - TooManyRequests / ResourceExhausted (429) - wołający dostaje RateLimited
    - InvalidArgument, PermissionDenied (błędne żądanie)

    Retryujemy:
    - ServiceUnavailable (503)
    - InternalServerError (500)
    - Aborted
    """
    if isinstance(exception, (
        google_exceptions.ServiceUnavailable,
        google_exceptions.InternalServerError,
        google_exceptions.Aborted,
    )):
        logger.warning(f"Gemini API error (will retry): {str(exception)}")
        return True

    return False


def _error_status(exception: google_exceptions.GoogleAPICallError) -> Optional[int]:
    code = getattr(exception, "code", None)
    return int(code) if code is not None else None


def _text(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    return value.strip() or None


def _amount(value: Any) -> Optional[Decimal]:
    amount = parse_amount(value)
    if amount is None and value is not None:
        logger.warning(f"Ignoring unreadable amount {value!r}")
    return amount


class ExtractionAdapter:
    """
    Vision extraction of receipt images through Gemini structured output.

    `extract` never raises: every outcome is either a `ReceiptExtraction`
    or one of the `ExtractionError` values. A missing model means the
    provider credential is not configured.
    """

    def __init__(
        self,
        model: Optional[genai.GenerativeModel],
        timeout: Optional[float] = None,
        normalizer: Optional[LineItemNormalizer] = None,
        date_corrector: Optional[DateCorrector] = None,
    ):
        self.model = model
        self.timeout = timeout if timeout is not None else settings.GEMINI_TIMEOUT
        # Schemat prosi o kwoty dziesiętne, więc nie zgadujemy reżimu cen
        self.normalizer = normalizer or LineItemNormalizer(price_regime=PriceRegime.DECIMAL)
        self.date_corrector = date_corrector or DateCorrector()

    async def extract(
        self,
        image_bytes: bytes,
        mime_type: Optional[str] = None,
        today: Optional[date] = None,
    ) -> Union[ReceiptExtraction, ExtractionError]:
        """
        Główna metoda ekstrakcji danych z paragonu.

        Args:
            image_bytes: Obraz paragonu
            mime_type: Typ MIME (wykrywany z magic bytes, gdy brak)
            today: Dzień odniesienia dla walidacji daty

        Returns:
            ReceiptExtraction albo ExtractionError (nigdy nie rzuca)
        """
        if self.model is None:
            logger.error("Extraction requested but GEMINI_API_KEY is not configured")
            return ConfigurationError("Extraction provider credential is not configured")

        mime_type = mime_type or sniff_mime_type(image_bytes)
        logger.info("Receipt extraction started", extra={"mime_type": mime_type, "image_size": len(image_bytes)})

        parts = self._build_prompt_parts({"mime_type": mime_type, "data": image_bytes})

        try:
            text = await asyncio.wait_for(self._call_gemini_with_retry(parts), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error(f"Gemini call timed out after {self.timeout}s")
            return ProviderError(f"Extraction provider timed out after {self.timeout}s")
        except ExtractionError as e:
            return e
        except google_exceptions.TooManyRequests as e:
            logger.warning(f"Gemini rate limit hit: {e.message}")
            return RateLimited("Extraction provider rate limit exceeded", status=_error_status(e), raw_body=e.message)
        except google_exceptions.GoogleAPICallError as e:
            status = _error_status(e)
            if status == 402:
                logger.warning(f"Gemini quota exhausted: {e.message}")
                return QuotaExceeded("Extraction provider quota exceeded", status=status, raw_body=e.message)
            logger.error("Gemini API error", exc_info=True, extra={"status": status})
            return ProviderError(f"Extraction provider error: {e.message}", status=status, raw_body=e.message)
        except Exception as e:
            logger.error("Gemini API error", exc_info=True, extra={"error": str(e)})
            return ProviderError(f"Extraction provider error: {str(e)}", raw_body=str(e))

        try:
            payload = self._decode_payload(text)
        except MalformedResponse as e:
            return e

        result = self._parse_response(payload, today=today)

        logger.info(
            "Receipt extraction completed",
            extra={
                "items_count": len(result.line_items),
                "merchant_name": result.merchant_name,
                "is_partial": result.is_partial,
            }
        )
        return result

    def _build_prompt_parts(self, image_part: Dict[str, Any]) -> List[Any]:
        """
        Konstruuje części promptu dla Gemini.
        """
        system_prompt = """You are an expert OCR system specialized in reading retail receipts.

Your task is to extract the following information:
1. Merchant name
2. Purchase date in ISO 8601 format (YYYY-MM-DD)
3. List of all purchased items with:
   - Description (exactly as written on receipt)
   - Quantity (if printed)
   - Unit price (if available)
   - Total price for the item as a decimal number (e.g. 12.50, not 1250)
   - Whether a discount was applied to the item
   - Product code / SKU (if printed)
   - Confidence (0.0-1.0) based on text clarity
4. Total amount to pay, tax amount and subtotal
5. Currency code

Rules:
- Extract data exactly as shown on the receipt
- If the grand total is not visible (partial or multi-page receipt), set total_amount to 0
- Every line item must have a description and a total_price
- If the date is not found, set it to null
- Receipts usually print dates day first (DD/MM/YYYY)
"""
        return [system_prompt, image_part]

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=4),
        retry=retry_if_exception(_should_retry_gemini_error),
        reraise=True
    )
    async def _call_gemini_with_retry(self, parts: List[Any]) -> str:
        """
        Wywołuje Gemini API z automatycznym retry. Zwraca surowy tekst odpowiedzi.
        """
        # Gemini API nie obsługuje części słów kluczowych JSON Schema,
        # które Pydantic generuje domyślnie. Musimy ręcznie wyczyścić schemat.
        schema = LLMReceiptExtraction.model_json_schema()
        self._sanitize_schema(schema)

        response = await self.model.generate_content_async(
            parts,
            generation_config=genai.GenerationConfig(
                response_mime_type="application/json",
                response_schema=schema,
                temperature=settings.EXTRACTION_TEMPERATURE,
            )
        )

        try:
            # .text rzuca ValueError, gdy odpowiedź została zablokowana
            return response.text
        except ValueError as e:
            raise MalformedResponse(f"Gemini returned no usable content: {str(e)}") from e

    def _decode_payload(self, text: Optional[str]) -> Dict[str, Any]:
        if not text or not text.strip():
            raise MalformedResponse("Gemini returned an empty response", raw_body=text)

        try:
            payload = json.loads(text)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse Gemini JSON response: {str(e)}")
            raise MalformedResponse(f"Invalid JSON from extraction provider: {str(e)}", raw_body=text) from e

        if not isinstance(payload, dict):
            raise MalformedResponse(
                f"Expected a JSON object from extraction provider, got {type(payload).__name__}",
                raw_body=text,
            )
        return payload

    def _sanitize_schema(self, schema: Any) -> None:
        """
        Usuwa klucze 'default', 'title' i '$defs' ze schematu JSON Schema,
        ponieważ API Gemini (Protobuf) ich nie obsługuje.
        Rozwija referencje ($ref) przez inlining definicji, a Optional
        (anyOf z null) zamienia na 'nullable'.
        Działa rekurencyjnie (mutuje słownik).
        """
        if isinstance(schema, dict):
            # Najpierw rozwiąż definicje ($defs), jeśli istnieją na najwyższym poziomie
            defs = schema.pop('$defs', {})
            if defs:
                self._resolve_refs(schema, defs)

            variants = schema.pop('anyOf', None)
            if variants:
                concrete = [variant for variant in variants if variant.get('type') != 'null']
                if len(concrete) == 1:
                    schema.update(concrete[0])
                if len(concrete) < len(variants):
                    schema['nullable'] = True

            # Usuń nieobsługiwane klucze
            for key in ['default', 'title', 'additionalProperties']:
                if key in schema:
                    del schema[key]

            # Rekurencja dla zagnieżdżonych struktur
            for value in schema.values():
                self._sanitize_schema(value)
        elif isinstance(schema, list):
            for item in schema:
                self._sanitize_schema(item)

    def _resolve_refs(self, schema: Any, defs: Dict[str, Any]) -> None:
        """
        Rekurencyjnie zamienia $ref na definicje z $defs (inlining).
        Gemini nie obsługuje $ref/$defs w JSON Schema.
        """
        if isinstance(schema, dict):
            if '$ref' in schema:
                ref_name = schema.pop('$ref').split('/')[-1]
                if ref_name in defs:
                    schema.update(defs[ref_name])
                    self._resolve_refs(schema, defs)

            for value in schema.values():
                self._resolve_refs(value, defs)
        elif isinstance(schema, list):
            for item in schema:
                self._resolve_refs(item, defs)

    def _resolve_date(self, raw: Any, today: date) -> Tuple[Optional[date], Optional[float], List[str]]:
        """
        Data od dostawcy: walidacja pola typowanego, a gdy się nie parsuje,
        naprawa jak tekstu z OCR.

        Returns:
            (data, pewność, uwagi); brak daty -> (None, None, [])
        """
        text = _text(raw)
        if text is None:
            return None, None, []

        validation = validate_provider_date(text, today=today)

        if not validation.fallback_used:
            if validation.is_future:
                swapped = swap_day_month(validation.date)
                if swapped is not None and swapped <= today:
                    revalidated = validate_provider_date(swapped, today=today)
                    logger.info(f"Future date {validation.date} reinterpreted as DD/MM: {swapped}")
                    issues = validation.issues + ["Reinterpreted future date as DD/MM"] + revalidated.issues
                    return swapped, revalidated.confidence, issues
            return validation.date, validation.confidence, validation.issues

        correction = self.date_corrector.correct(text, today=today)
        if correction.parsed_date is None:
            logger.warning(f"Provider date {text!r} could not be repaired, leaving it empty")
            return None, None, correction.issues
        return correction.parsed_date, correction.confidence, correction.issues

    def _parse_response(self, payload: Dict[str, Any], today: Optional[date] = None) -> ReceiptExtraction:
        """
        Konwertuje odpowiedź dostawcy na ReceiptExtraction, pole po polu.
        Brakujące pola degradują się do None zamiast przerywać ekstrakcję.
        """
        today = today or date.today()

        merchant_name = _text(payload.get("merchant_name"))
        total_amount = _amount(payload.get("total_amount"))
        transaction_date, date_confidence, date_issues = self._resolve_date(payload.get("date"), today)

        raw_items = payload.get("line_items")
        if raw_items is None:
            raw_items = payload.get("items")
        if not isinstance(raw_items, list):
            raw_items = []
        line_items = self.normalizer.normalize(raw_items)

        merchant_score = MERCHANT_CONFIDENCE if merchant_name else None
        # Zero oznacza brak widocznej sumy (paragon częściowy), nie odczytaną sumę
        total_score = TOTAL_CONFIDENCE if total_amount else None
        date_score = min(DATE_CONFIDENCE, date_confidence) if transaction_date and date_confidence is not None else None
        line_items_score = LINE_ITEMS_CONFIDENCE if line_items else None

        factors = [score for score in (merchant_score, total_score, date_score, line_items_score) if score is not None]
        provider_confidence = sum(factors) / len(factors) if factors else DEFAULT_PROVIDER_CONFIDENCE

        currency = _text(payload.get("currency"))

        return ReceiptExtraction(
            merchant_name=merchant_name[:200] if merchant_name else None,
            total_amount=total_amount,
            transaction_date=transaction_date,
            currency=currency.upper()[:10] if currency else None,
            tax_amount=_amount(payload.get("tax_amount")),
            subtotal=_amount(payload.get("subtotal")),
            line_items=line_items,
            confidence=aggregate(
                merchant=merchant_score,
                total=total_score,
                date=date_score,
                line_items=line_items,
            ),
            provider_confidence=provider_confidence,
            date_issues=date_issues,
            raw_provider_payload=payload,
        )
