from receiptflow.extraction.exceptions import (
    ExtractionError,
    ConfigurationError,
    RateLimited,
    QuotaExceeded,
    MalformedResponse,
    ProviderError,
)
from receiptflow.extraction.schemas import ReceiptExtraction
from receiptflow.extraction.service import ExtractionAdapter

__all__ = [
    "ExtractionAdapter",
    "ReceiptExtraction",
    "ExtractionError",
    "ConfigurationError",
    "RateLimited",
    "QuotaExceeded",
    "MalformedResponse",
    "ProviderError",
]
