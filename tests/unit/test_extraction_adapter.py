"""
Unit tests for ExtractionAdapter.

Gemini is mocked at the model level (generate_content_async); the adapter's
own parsing, retry and error mapping run for real.
"""
import asyncio
import json
from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest
from google.api_core import exceptions as google_exceptions

from receiptflow.extraction import (
    ExtractionAdapter,
    ReceiptExtraction,
    ConfigurationError,
    RateLimited,
    QuotaExceeded,
    MalformedResponse,
    ProviderError,
)
from receiptflow.extraction.schemas import LLMReceiptExtraction
from receiptflow.extraction.images import detect_mime_type, sniff_mime_type, validate_image
from receiptflow.common.exceptions import FileValidationError


class _BlockedResponse:
    """Mimics a Gemini response whose candidates were blocked."""

    @property
    def text(self):
        raise ValueError("The response was blocked")


class TestExtractionSuccess:

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_full_receipt(self, make_adapter, receipt_payload, jpeg_bytes, today):
        adapter = make_adapter(receipt_payload)

        result = await adapter.extract(jpeg_bytes, today=today)

        assert isinstance(result, ReceiptExtraction)
        assert result.merchant_name == "SuperMart #42"
        assert result.total_amount == Decimal("23.50")
        assert result.transaction_date == date(2025, 11, 8)
        assert result.currency == "USD"
        assert result.tax_amount == Decimal("1.74")
        assert result.subtotal == Decimal("21.76")
        assert [item.description for item in result.line_items] == ["Organic milk 1L", "Sourdough bread"]
        assert result.line_items[0].total_price == Decimal("6.50")
        assert result.line_items[1].discounted is True
        assert result.line_items[1].sku == "BR-001"
        assert result.is_partial is False
        assert result.raw_provider_payload == receipt_payload

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_confidence_heuristic(self, make_adapter, receipt_payload, jpeg_bytes, today):
        result = await make_adapter(receipt_payload).extract(jpeg_bytes, today=today)

        assert result.provider_confidence == pytest.approx((0.95 + 0.9 + 0.85 + 0.8) / 4)
        assert result.confidence.merchant == pytest.approx(0.9)
        assert result.confidence.total == pytest.approx(0.95)
        assert result.confidence.date == pytest.approx(0.85)
        assert result.confidence.overall == pytest.approx(0.9)
        assert result.confidence.line_items == pytest.approx(0.45)

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_zero_total_is_partial_not_error(self, make_adapter, jpeg_bytes, today):
        payload = {
            "merchant_name": "SuperMart",
            "total_amount": 0,
            "line_items": [
                {"description": "Apples", "total_price": 3.2},
                {"description": "Pears", "total_price": 2.8},
                {"description": "Plums", "total_price": 4.0},
            ],
        }

        result = await make_adapter(payload).extract(jpeg_bytes, today=today)

        assert isinstance(result, ReceiptExtraction)
        assert result.total_amount == 0
        assert result.is_partial is True
        assert len(result.line_items) == 3
        assert result.confidence.total == 0.0

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_missing_fields_degrade(self, make_adapter, jpeg_bytes, today):
        result = await make_adapter({}).extract(jpeg_bytes, today=today)

        assert isinstance(result, ReceiptExtraction)
        assert result.merchant_name is None
        assert result.total_amount is None
        assert result.transaction_date is None
        assert result.line_items == []
        assert result.provider_confidence == pytest.approx(0.5)
        assert result.confidence.overall == 0.0

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_out_of_range_amounts_degrade(self, make_adapter, jpeg_bytes, today):
        payload = {
            "merchant_name": "A",
            "total_amount": 1e27,
            "tax_amount": "1e40",
            "subtotal": "1,234.56",
            "line_items": [{"description": "TV", "total_price": 1e27}],
        }

        result = await make_adapter(payload).extract(jpeg_bytes, today=today)

        assert isinstance(result, ReceiptExtraction)
        assert result.total_amount is None
        assert result.tax_amount is None
        assert result.subtotal == Decimal("1234.56")
        assert result.line_items[0].total_price == Decimal("0.00")

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_wrongly_typed_fields_degrade(self, make_adapter, jpeg_bytes, today):
        payload = {"merchant_name": 42, "total_amount": "abc", "line_items": "none", "date": 20251108}

        result = await make_adapter(payload).extract(jpeg_bytes, today=today)

        assert isinstance(result, ReceiptExtraction)
        assert result.merchant_name is None
        assert result.total_amount is None
        assert result.line_items == []
        assert result.transaction_date is None

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_sends_image_with_sniffed_mime_type(self, make_adapter, receipt_payload, png_bytes, today):
        adapter = make_adapter(receipt_payload)

        await adapter.extract(png_bytes, today=today)

        parts = adapter.model.generate_content_async.await_args.args[0]
        assert parts[1] == {"mime_type": "image/png", "data": png_bytes}
        config = adapter.model.generate_content_async.await_args.kwargs["generation_config"]
        assert config.response_mime_type == "application/json"


class TestExtractionDates:

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_future_date_is_reinterpreted_as_day_month(self, make_adapter, jpeg_bytes, today):
        result = await make_adapter({"date": "2025-12-05"}).extract(jpeg_bytes, today=today)

        assert result.transaction_date == date(2025, 5, 12)
        assert result.confidence.date == pytest.approx(0.85)
        assert "Reinterpreted future date as DD/MM" in result.date_issues

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_future_date_without_valid_swap_is_kept(self, make_adapter, jpeg_bytes, today):
        result = await make_adapter({"date": "2025-12-25"}).extract(jpeg_bytes, today=today)

        assert result.transaction_date == date(2025, 12, 25)
        assert result.confidence.date == pytest.approx(0.6)
        assert "Date is in the future" in result.date_issues

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_garbled_date_goes_through_corrector(self, make_adapter, jpeg_bytes, today):
        result = await make_adapter({"date": "O8/11/2O25"}).extract(jpeg_bytes, today=today)

        assert result.transaction_date == date(2025, 11, 8)
        assert result.confidence.date == pytest.approx(0.8)
        assert "Repaired OCR character confusion (O->0, l/I->1, S->5, B->8)" in result.date_issues

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_unrecoverable_date_is_empty(self, make_adapter, jpeg_bytes, today):
        result = await make_adapter({"date": "sometime last week", "merchant_name": "Shop"}).extract(jpeg_bytes, today=today)

        assert result.transaction_date is None
        assert result.confidence.date == 0.0
        assert result.confidence.overall == pytest.approx(0.9)
        assert "Could not parse as valid date" in result.date_issues


class TestExtractionErrors:

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_missing_credential(self, jpeg_bytes):
        result = await ExtractionAdapter(model=None).extract(jpeg_bytes)

        assert isinstance(result, ConfigurationError)
        assert result.kind == "configuration"

    @pytest.mark.parametrize(
        "error",
        [
            google_exceptions.TooManyRequests("Slow down"),
            google_exceptions.ResourceExhausted("Quota per minute exceeded"),
        ],
    )
    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_rate_limit_keeps_status_and_is_not_retried(self, make_adapter, jpeg_bytes, error):
        adapter = make_adapter(side_effect=error)

        result = await adapter.extract(jpeg_bytes)

        assert isinstance(result, RateLimited)
        assert result.status == 429
        assert result.raw_body == error.message
        assert adapter.model.generate_content_async.await_count == 1

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_payment_required_is_quota_exceeded(self, make_adapter, jpeg_bytes):
        result = await make_adapter(side_effect=google_exceptions.from_http_status(402, "Billing required")).extract(jpeg_bytes)

        assert isinstance(result, QuotaExceeded)
        assert result.status == 402

    @pytest.mark.parametrize("reply", ["not json at all", "[1, 2, 3]", "\"text\"", "", "   "])
    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_non_object_reply_is_malformed(self, make_adapter, jpeg_bytes, reply):
        result = await make_adapter(reply).extract(jpeg_bytes)

        assert isinstance(result, MalformedResponse)
        assert result.raw_body == reply

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_blocked_response_is_malformed(self, make_adapter, jpeg_bytes):
        result = await make_adapter(side_effect=[_BlockedResponse()]).extract(jpeg_bytes)

        assert isinstance(result, MalformedResponse)

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_other_api_error_is_provider_error(self, make_adapter, jpeg_bytes):
        adapter = make_adapter(side_effect=google_exceptions.InvalidArgument("Image too large"))

        result = await adapter.extract(jpeg_bytes)

        assert isinstance(result, ProviderError)
        assert result.status == 400
        assert adapter.model.generate_content_async.await_count == 1

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_unexpected_exception_is_provider_error(self, make_adapter, jpeg_bytes):
        result = await make_adapter(side_effect=ConnectionError("reset by peer")).extract(jpeg_bytes)

        assert isinstance(result, ProviderError)
        assert result.status is None

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_timeout_is_provider_error(self, make_adapter, jpeg_bytes):
        async def never_answers(*args, **kwargs):
            await asyncio.sleep(1)

        result = await make_adapter(side_effect=never_answers, timeout=0.01).extract(jpeg_bytes)

        assert isinstance(result, ProviderError)
        assert "timed out" in result.message

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_transient_error_is_retried(self, make_adapter, receipt_payload, jpeg_bytes, today):
        adapter = make_adapter(side_effect=[
            google_exceptions.ServiceUnavailable("Try again"),
            SimpleNamespace(text=json.dumps(receipt_payload)),
        ])

        result = await adapter.extract(jpeg_bytes, today=today)

        assert isinstance(result, ReceiptExtraction)
        assert adapter.model.generate_content_async.await_count == 2


class TestResponseSchema:

    @staticmethod
    def _keys(node):
        if isinstance(node, dict):
            for key, value in node.items():
                yield key
                yield from TestResponseSchema._keys(value)
        elif isinstance(node, list):
            for item in node:
                yield from TestResponseSchema._keys(item)

    @pytest.mark.unit
    def test_schema_is_sanitized_for_gemini(self):
        schema = LLMReceiptExtraction.model_json_schema()

        ExtractionAdapter(model=None)._sanitize_schema(schema)

        keys = set(self._keys(schema))
        assert keys.isdisjoint({"$defs", "$ref", "anyOf", "default", "title", "additionalProperties"})
        assert schema["properties"]["merchant_name"] == {"type": "string", "nullable": True}
        line_item = schema["properties"]["line_items"]["items"]
        assert set(line_item["required"]) == {"description", "total_price"}
        assert "total_amount" in schema["required"]


class TestImages:

    @pytest.mark.parametrize(
        "data,expected",
        [
            (b"\xff\xd8\xff\xe0rest", "image/jpeg"),
            (b"\x89PNG\r\n\x1a\nrest", "image/png"),
            (b"RIFF\x00\x00\x00\x00WEBPVP8 ", "image/webp"),
            (b"RIFF\x00\x00\x00\x00WAVEfmt ", None),
            (b"GIF89a", None),
        ],
    )
    @pytest.mark.unit
    def test_detect_mime_type(self, data, expected):
        assert detect_mime_type(data) == expected

    @pytest.mark.unit
    def test_sniff_defaults_to_jpeg(self):
        assert sniff_mime_type(b"unknown") == "image/jpeg"

    @pytest.mark.parametrize("data", [b"", b"\xff\xd8", b"GIF89a-not-allowed", b"\xff\xd8\xff" + b"\x00" * 200])
    @pytest.mark.unit
    def test_validate_image_rejects(self, data):
        with pytest.raises(FileValidationError):
            validate_image(data, max_size=100)

    @pytest.mark.unit
    def test_validate_image_accepts(self, jpeg_bytes):
        assert validate_image(jpeg_bytes, max_size=1024) == "image/jpeg"
