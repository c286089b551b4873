"""
Pytest configuration and shared fixtures for receiptflow tests.
"""
import json
from datetime import date, datetime
from types import SimpleNamespace
from typing import Any, AsyncGenerator, Callable
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import AsyncClient, ASGITransport

from receiptflow.config import Settings
from receiptflow.extraction.service import ExtractionAdapter
from main import app

# Minimalne nagłówki obrazów (magic bytes) - treść nie jest czytana przez mock
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 64
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings with overridden values."""
    return Settings(
        ENV="test",
        PORT=8000,
        GEMINI_API_KEY="test-gemini-key",
        GEMINI_TIMEOUT=5,
    )


@pytest.fixture
def today() -> date:
    return date(2025, 11, 20)


@pytest.fixture
def now() -> datetime:
    # Czwartek, południe
    return datetime(2025, 11, 20, 12, 0)


@pytest.fixture
def receipt_payload() -> dict:
    """Well-formed provider reply for a small grocery receipt."""
    return {
        "merchant_name": "SuperMart #42",
        "total_amount": 23.5,
        "date": "2025-11-08",
        "tax_amount": 1.74,
        "subtotal": 21.76,
        "currency": "usd",
        "line_items": [
            {"description": "Organic milk 1L", "quantity": 2, "unit_price": 3.25, "total_price": 6.5, "confidence": 0.9},
            {"description": "Sourdough bread", "total_price": 17.0, "discount": True, "sku": "BR-001"},
        ],
    }


@pytest.fixture
def make_gemini_model() -> Callable[..., MagicMock]:
    """
    Builds a mocked genai.GenerativeModel.

    Pass a dict/list (sent back as JSON text), a raw string, or `side_effect`
    (exception, list of outcomes, or coroutine function).
    """
    def _make(reply: Any = None, side_effect: Any = None) -> MagicMock:
        model = MagicMock()
        if side_effect is not None:
            model.generate_content_async = AsyncMock(side_effect=side_effect)
        else:
            text = reply if isinstance(reply, str) else json.dumps(reply)
            model.generate_content_async = AsyncMock(return_value=SimpleNamespace(text=text))
        return model

    return _make


@pytest.fixture
def make_adapter(make_gemini_model) -> Callable[..., ExtractionAdapter]:
    def _make(reply: Any = None, side_effect: Any = None, timeout: float = 5) -> ExtractionAdapter:
        return ExtractionAdapter(model=make_gemini_model(reply, side_effect), timeout=timeout)

    return _make


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """
    Create a test client for FastAPI application.
    Tests override adapter / history reader dependencies as needed.
    """
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def jpeg_bytes() -> bytes:
    return JPEG_BYTES


@pytest.fixture
def png_bytes() -> bytes:
    return PNG_BYTES
