import logging
from typing import Annotated

from fastapi import Depends
import google.generativeai as genai

from receiptflow.config import settings
from receiptflow.extraction.service import ExtractionAdapter

logger = logging.getLogger(__name__)


async def get_extraction_adapter() -> ExtractionAdapter:
    """
    Fabryka ExtractionAdapter.

    Bez GEMINI_API_KEY zwraca adapter bez modelu, który na każde wywołanie
    odpowiada ConfigurationError zamiast wywracać aplikację przy starcie.
    """
    if not settings.GEMINI_API_KEY:
        logger.warning("GEMINI_API_KEY is not set, extraction will report a configuration error")
        return ExtractionAdapter(model=None)

    # Konfiguracja Gemini API (globalna dla biblioteki, ale bezpieczna w tym kontekście)
    genai.configure(api_key=settings.GEMINI_API_KEY)

    model = genai.GenerativeModel(settings.GEMINI_MODEL)

    return ExtractionAdapter(model=model, timeout=settings.GEMINI_TIMEOUT)


ExtractionAdapterDependency = Annotated[ExtractionAdapter, Depends(get_extraction_adapter)]
